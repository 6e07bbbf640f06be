"""
Unit tests for statement parsing across layouts.
"""
from datetime import date
from decimal import Decimal

import pytest

from core.parsing import (
    StatementParser,
    clean_fixed_token_label,
    looks_like_fixed_token,
    parse_statement,
    split_lines,
    split_row,
)
from core.profiles import get_profile

FIXED_TOKEN_STATEMENT = "\n".join([
    "Compte courant 00012345 -- solde au 30/09/2025 1 234,56",
    "01092025-1107Virement COURSES 123456",
    "05092025+250000Salaire SEPTEMBRE",
    "03092025-1599CB NETFLIX.COM 0309202501ABC",
    "short",
])

FRENCH_STATEMENT = "\n".join([
    "Solde au 30/09/2025;1 234,56;;;",
    "01/10/2025;-15,99;;;NETFLIX.COM",
    "15/09/2025;-1 200,00;;;LOYER",
    "20/09/2025;2 000,00;;;SALAIRE",
    "18/09/2025;-9,99;;;",
    "bad;line",
])


@pytest.fixture
def parser():
    return StatementParser()


def test_split_lines_any_newline():
    assert split_lines("a\r\nb\rc\nd") == ["a", "b", "c", "d"]
    assert split_lines("\ufeffheader\nrow\n\n") == ["header", "row"]
    assert split_lines("") == []


def test_split_row_strips_quotes():
    assert split_row('"01/10/2025";"NETFLIX";"-15,99"', ";") == ["01/10/2025", "NETFLIX", "-15,99"]
    assert split_row('2025-10-01,"Gym, monthly",30.00', ",") == ["2025-10-01", "Gym, monthly", "30.00"]


def test_delimited_credit_agricole(parser, credit_agricole_csv):
    statement = parser.parse(credit_agricole_csv)

    assert statement.profile == "Credit Agricole"
    assert statement.line_count == 7
    assert len(statement.transactions) == 6
    # Newest first
    assert [t.date for t in statement.transactions] == sorted(
        (t.date for t in statement.transactions), reverse=True
    )
    latest = statement.transactions[0]
    assert latest.date == date(2025, 10, 2)
    assert latest.label == "PRLV SEPA SALLE ESCALADE"
    assert latest.amount == Decimal("35.00")


def test_delimited_generic_comma(parser):
    text = "date,description,amount\n2025-09-01,Gym,-30.00\n2025-10-01,Gym,-30.00\n"
    statement = parser.parse(text)

    assert statement.profile == "Generic"
    assert [t.date for t in statement.transactions] == [date(2025, 10, 1), date(2025, 9, 1)]
    assert all(t.amount == Decimal("30.00") for t in statement.transactions)


def test_delimited_bnp_columns(parser):
    text = "Date;Valeur;Libelle;Montant\n01/10/2025;02/10/2025;PRLV FREE MOBILE;-19,99"
    statement = parser.parse(text)

    assert statement.profile == "BNP Paribas"
    assert statement.transactions[0].label == "PRLV FREE MOBILE"
    assert statement.transactions[0].amount == Decimal("19.99")


def test_delimited_skips_bad_rows(parser):
    text = "\n".join([
        "Date;Libelle;Montant",
        "01/10/2025;CB NETFLIX.COM;-15,99",
        "not a date;GARBAGE;-1,00",
        "02/10/2025",
        "03/10/2025;ZERO;0,00",
        "04/10/2025;;-5,00",
        "05/10/2025;NO AMOUNT;n/a",
        "",
        "31/02/2025;IMPOSSIBLE DATE;-3,00",
        "99999999999999999999/10/2025;HUGE DAY;-1,00",
        "01/10/99999999999999999999;HUGE YEAR;-1,00",
    ])
    statement = parser.parse(text)

    assert [t.label for t in statement.transactions] == ["CB NETFLIX.COM"]
    assert statement.skipped_lines == 5


def test_unknown_header_falls_back_to_generic(parser):
    text = "when,what,how much\n2025-10-01,Gym,30.00"
    statement = parser.parse(text)
    assert statement.profile == "Generic"
    assert statement.transactions[0].label == "Gym"


def test_fixed_token_layout(parser):
    statement = parser.parse(FIXED_TOKEN_STATEMENT)

    assert statement.profile == "Boursobank"
    # Oldest first, credits dropped
    assert [(t.date, t.label, t.amount) for t in statement.transactions] == [
        (date(2025, 9, 1), "Virement COURSES", Decimal("11.07")),
        (date(2025, 9, 3), "CB NETFLIX.COM", Decimal("15.99")),
    ]


def test_fixed_token_unsigned_amount_is_credit(parser):
    text = "Compte -- releve 2025\n0109202511070Virement COURSES\n02092025-11070Virement COURSES 99"
    statement = parser.parse(text)

    assert len(statement.transactions) == 1
    txn = statement.transactions[0]
    assert txn.date == date(2025, 9, 2)
    assert txn.amount == Decimal("110.70")
    assert txn.label == "Virement COURSES"


def test_looks_like_fixed_token_ignores_balance_lines():
    assert not looks_like_fixed_token(["01092025-1107 -- header line"])
    assert looks_like_fixed_token(["header", "01092025-1107Virement"])
    assert not looks_like_fixed_token(["Date;Libelle;Montant", "01/10/2025;X;-1,00"])


def test_clean_fixed_token_label():
    assert clean_fixed_token_label("Virement COURSES 123456") == "Virement COURSES"
    assert clean_fixed_token_label("CB NETFLIX.COM 0309202501ABC") == "CB NETFLIX.COM"
    assert clean_fixed_token_label("Prelevement EDF") == "Prelevement EDF"


def test_fixed_token_without_debits_falls_through(parser):
    """A fixed-token match yielding nothing lets the delimited parser run."""
    text = "date,description,amount\n01092025+100Refund,x,1\n2025-10-01,Gym,-30.00"
    statement = parser.parse(text)
    assert statement.profile == "Generic"
    assert [t.label for t in statement.transactions] == ["Gym"]


def test_french_locale_forced(parser):
    statement = parser.parse(FRENCH_STATEMENT, get_profile("french_locale"))

    assert statement.profile == "french_locale"
    assert [(t.date, t.label, t.amount) for t in statement.transactions] == [
        (date(2025, 10, 1), "NETFLIX.COM", Decimal("15.99")),
        (date(2025, 9, 18), "Inconnu", Decimal("9.99")),
        (date(2025, 9, 15), "LOYER", Decimal("1200.00")),
    ]
    assert statement.skipped_lines == 1


def test_french_locale_detected_as_last_resort(parser):
    statement = parser.parse(FRENCH_STATEMENT)
    assert statement.profile == "french_locale"
    assert len(statement.transactions) == 3


def test_french_locale_non_breaking_spaces(parser):
    text = "Solde;0;;;\n01/10/2025;-1\u00a0200,50;;;LOYER\n"
    statement = parser.parse(text, get_profile("french_locale"))
    assert statement.transactions[0].amount == Decimal("1200.50")


@pytest.mark.parametrize("text", ["", "Date;Libelle;Montant", "\n\n   \n"])
def test_too_few_lines(parser, text):
    statement = parser.parse(text)
    assert statement.transactions == []
    assert statement.profile is None


def test_crlf_and_bom(parser):
    text = "\ufeffDate;Libelle;Montant\r\n01/10/2025;CB NETFLIX.COM;-15,99\r\n"
    statement = parser.parse(text)
    assert statement.profile == "Credit Agricole"
    assert statement.transactions[0].label == "CB NETFLIX.COM"


def test_parse_is_idempotent(credit_agricole_csv):
    assert parse_statement(credit_agricole_csv) == parse_statement(credit_agricole_csv)


def test_amounts_are_positive(credit_agricole_csv):
    for text in (credit_agricole_csv, FIXED_TOKEN_STATEMENT, FRENCH_STATEMENT):
        assert all(t.amount > 0 for t in parse_statement(text))


def test_oversized_amount_drops_only_that_row(parser):
    text = "\n".join([
        "Date;Libelle;Montant",
        "01/10/2025;CB NETFLIX.COM;-15,99",
        "02/10/2025;CB SPOTIFY;-123456789012345678901234567890",
    ])
    statement = parser.parse(text)
    assert [t.label for t in statement.transactions] == ["CB NETFLIX.COM"]


def test_french_locale_overflowing_date_is_skipped(parser):
    text = "Solde;0;;;\n99999999999999999999/10/2025;-9,99;;;X\n01/10/2025;-15,99;;;NETFLIX.COM"
    statement = parser.parse(text, get_profile("french_locale"))
    assert [t.label for t in statement.transactions] == ["NETFLIX.COM"]
    assert statement.skipped_lines == 1


def test_delimited_debits_only(parser, credit_agricole_csv):
    """A debits-only profile drops the incoming salary."""
    profile = get_profile("Credit Agricole").model_copy(update={"debits_only": True})
    statement = parser.parse(credit_agricole_csv, profile)

    assert "VIREMENT SALAIRE" not in [t.label for t in statement.transactions]
    assert len(statement.transactions) == 5


def test_delimited_keeps_credits_by_default(parser, credit_agricole_csv):
    statement = parser.parse(credit_agricole_csv)
    salary = next(t for t in statement.transactions if t.label == "VIREMENT SALAIRE")
    assert salary.amount == Decimal("2100.00")


def test_delimited_without_header_row(parser):
    profile = get_profile("Credit Agricole").model_copy(update={"skip_first_line": False})
    text = "01/10/2025;CB NETFLIX.COM;-15,99\n01/09/2025;CB NETFLIX.COM;-15,99"

    statement = parser.parse(text, profile)
    assert len(statement.transactions) == 2
    assert statement.skipped_lines == 0


def test_french_locale_with_credits(parser):
    profile = get_profile("french_locale").model_copy(update={"debits_only": False})
    statement = parser.parse(FRENCH_STATEMENT, profile)

    labels = [t.label for t in statement.transactions]
    assert "SALAIRE" in labels
    assert len(labels) == 4


def test_french_locale_without_summary_line(parser):
    profile = get_profile("french_locale").model_copy(update={"skip_first_line": False})
    text = "01/10/2025;-15,99;;;NETFLIX.COM\n01/09/2025;-15,99;;;NETFLIX.COM"

    statement = parser.parse(text, profile)
    assert len(statement.transactions) == 2


def test_fixed_token_with_credits(parser):
    profile = get_profile("Boursobank").model_copy(update={"debits_only": False})
    statement = parser.parse(FIXED_TOKEN_STATEMENT, profile)

    assert [(t.label, t.amount) for t in statement.transactions] == [
        ("Virement COURSES", Decimal("11.07")),
        ("CB NETFLIX.COM", Decimal("15.99")),
        ("Salaire SEPTEMBRE", Decimal("2500.00")),
    ]


def test_fixed_token_skip_first_line(parser):
    profile = get_profile("Boursobank").model_copy(update={"skip_first_line": True})
    text = "01092025-1107Virement COURSES\n03092025-1599CB NETFLIX.COM"

    statement = parser.parse(text, profile)
    assert [t.label for t in statement.transactions] == ["CB NETFLIX.COM"]
