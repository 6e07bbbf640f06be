"""
Bank export profiles and header-based profile detection.

Every supported layout is an entry of the same table: the named tabular
exports, the concatenated fixed-token export and the French semicolon export
used by the bank-linking flow.
"""
from typing import Iterable, List, Optional, Sequence, Tuple

from pydantic import ValidationError as PydanticValidationError

from core.exceptions import ConfigurationError, DataNotFoundError
from core.logger import setup_logger
from core.schema import BankProfile, ColumnMapping

logger = setup_logger(__name__)

# Minimum number of signature tokens found in the header for a profile to qualify
MIN_SIGNATURE_MATCHES = 2

GENERIC_PROFILE_NAME = "Generic"
FIXED_TOKEN_PROFILE_NAME = "Boursobank"
FRENCH_LOCALE_PROFILE_NAME = "french_locale"


def build_profiles(entries: Iterable[dict]) -> Tuple[BankProfile, ...]:
    """
    Validate raw profile definitions into an immutable table.

    Raises:
        ConfigurationError: If an entry is invalid or a name is duplicated
    """
    profiles: List[BankProfile] = []
    seen = set()
    for entry in entries:
        try:
            profile = BankProfile(**entry)
        except PydanticValidationError as e:
            raise ConfigurationError(
                f"Invalid bank profile definition: {entry.get('name', '<unnamed>')}",
                details={"errors": e.errors(include_url=False)}
            )
        if profile.name.lower() in seen:
            raise ConfigurationError(
                f"Duplicate bank profile name: {profile.name}",
                details={"name": profile.name}
            )
        seen.add(profile.name.lower())
        profiles.append(profile)
    return tuple(profiles)


BANK_PROFILES: Tuple[BankProfile, ...] = build_profiles([
    {
        "name": "Boursorama",
        "delimiter": ";",
        "date_format": "DD/MM/YYYY",
        "columns": ColumnMapping(date=0, label=1, amount=2),
        "header_signature": ("dateOp", "label", "amount"),
    },
    {
        "name": "BNP Paribas",
        "delimiter": ";",
        "date_format": "DD/MM/YYYY",
        "columns": ColumnMapping(date=0, label=2, amount=3),
        "header_signature": ("Date", "Valeur", "Libelle", "Montant"),
    },
    {
        "name": "Credit Agricole",
        "delimiter": ";",
        "date_format": "DD/MM/YYYY",
        "columns": ColumnMapping(date=0, label=1, amount=2),
        "header_signature": ("Date", "Libelle", "Montant"),
    },
    {
        "name": GENERIC_PROFILE_NAME,
        "delimiter": ",",
        "date_format": "YYYY-MM-DD",
        "columns": ColumnMapping(date=0, label=1, amount=2),
        "header_signature": ("date", "description", "amount"),
    },
    {
        # DDMMYYYY + signed amount in cents + label, no delimiter
        "name": FIXED_TOKEN_PROFILE_NAME,
        "layout": "fixed_token",
        "date_format": "DD/MM/YYYY",
        "skip_first_line": False,
        "debits_only": True,
    },
    {
        # First line is a balance summary, label sits in column 4
        "name": FRENCH_LOCALE_PROFILE_NAME,
        "layout": "french_locale",
        "delimiter": ";",
        "date_format": "DD/MM/YYYY",
        "columns": ColumnMapping(date=0, label=4, amount=1),
        "min_columns": 5,
        "debits_only": True,
        "default_label": "Inconnu",
        "confidence_policy": "flat",
    },
])


def tabular_profiles(profiles: Sequence[BankProfile]) -> List[BankProfile]:
    """Profiles eligible for header detection, in table order."""
    return [p for p in profiles if p.layout == "delimited"]


def get_profile(name: str, profiles: Optional[Sequence[BankProfile]] = None) -> BankProfile:
    """
    Look up a profile by name (case-insensitive).

    Raises:
        DataNotFoundError: If no profile has that name
    """
    table = BANK_PROFILES if profiles is None else profiles
    wanted = name.strip().lower()
    for profile in table:
        if profile.name.lower() == wanted:
            return profile
    raise DataNotFoundError(
        f"Unknown bank profile: {name}",
        details={"available": [p.name for p in table]}
    )


def score_profile(profile: BankProfile, headers: Sequence[str]) -> int:
    """Count signature tokens found as substrings of the header cells."""
    normalized = [h.lower().strip() for h in headers]
    return sum(
        1 for token in profile.header_signature
        if any(token in header for header in normalized)
    )


def detect_bank_profile(
    headers: Sequence[str],
    profiles: Optional[Sequence[BankProfile]] = None
) -> BankProfile:
    """
    Pick the tabular profile whose header signature best matches.

    A profile qualifies with at least MIN_SIGNATURE_MATCHES tokens found.
    Qualifying profiles are ranked by share of their signature matched, then
    by absolute match count, then by table order. Without a qualifying
    profile the generic profile is returned.

    Args:
        headers: Header cells, quotes already stripped
        profiles: Profile table (defaults to BANK_PROFILES)

    Returns:
        The selected BankProfile
    """
    candidates = tabular_profiles(BANK_PROFILES if profiles is None else profiles)
    if not candidates:
        raise ConfigurationError("No tabular bank profile configured")

    best: Optional[BankProfile] = None
    best_rank = (0.0, 0)
    for profile in candidates:
        if not profile.header_signature:
            continue
        matches = score_profile(profile, headers)
        if matches < MIN_SIGNATURE_MATCHES:
            continue
        rank = (matches / len(profile.header_signature), matches)
        if rank > best_rank:
            best, best_rank = profile, rank

    if best is not None:
        logger.debug(f"Header {list(headers)} matched profile {best.name} (rank={best_rank})")
        return best

    fallback = next(
        (p for p in candidates if p.name == GENERIC_PROFILE_NAME),
        candidates[-1]
    )
    logger.debug(f"Header {list(headers)} matched no profile, falling back to {fallback.name}")
    return fallback
