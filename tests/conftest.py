"""
Shared fixtures for the test suite.
"""
import pytest

from core.config import reset_settings


@pytest.fixture(autouse=True)
def fresh_settings():
    """Each test reads settings from its own environment."""
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def credit_agricole_csv():
    """Semicolon export with a Credit Agricole header."""
    return "\n".join([
        "Date;Libelle;Montant",
        "01/10/2025;CB NETFLIX.COM 01/10/25;-15,99",
        "02/10/2025;PRLV SEPA SALLE ESCALADE;-35,00",
        "01/09/2025;CB NETFLIX.COM 01/09/25;-15,99",
        "02/09/2025;PRLV SEPA SALLE ESCALADE;-35,00",
        "12/09/2025;CB BOULANGERIE DU COIN;-4,20",
        "15/09/2025;VIREMENT SALAIRE;2 100,00",
    ])
