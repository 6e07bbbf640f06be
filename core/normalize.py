"""
Cell and label normalization.
Handles amount cleaning, date parsing and merchant label cleanup.
"""
import re
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, List, Optional, Tuple

from core.logger import setup_logger

logger = setup_logger(__name__)

ZERO = Decimal("0")

# Amounts at or above this magnitude are treated as unparseable
MAX_ABS_AMOUNT = Decimal("1e15")

# Banking jargon removed from labels before grouping
BOILERPLATE_TOKENS: Tuple[str, ...] = (
    "CB", "PRLV", "SEPA", "VIR", "INST", "PAIEMENT",
    "CARTE", "ACHAT", "FACTURE", "COM", "BILL",
)

_AMOUNT_JUNK_RE = re.compile(r"[^\d,.\-]")
_DATE_SPLIT_RE = re.compile(r"[/\-.]")
_EMBEDDED_DATE_RE = re.compile(r"\b\d{1,2}/\d{1,2}(?:/\d{2,4})?\b")
_DIGIT_RUN_RE = re.compile(r"\b\d+\b")
# Anything that is neither a letter nor whitespace
_NON_LETTER_RE = re.compile(r"[^\w\s]|[\d_]")
_BOILERPLATE_RE = re.compile(
    r"\b(?:" + "|".join(BOILERPLATE_TOKENS) + r")\b",
    re.IGNORECASE
)
_WHITESPACE_RE = re.compile(r"\s+")

# Ordered label cleanup rules: (pattern, replacement).
# Boilerplate goes after punctuation so glued tokens ("CB*MONOPRIX") are split first.
LABEL_RULES: List[Tuple[re.Pattern, str]] = [
    (_EMBEDDED_DATE_RE, " "),
    (_DIGIT_RUN_RE, " "),
    (_NON_LETTER_RE, " "),
    (_BOILERPLATE_RE, " "),
    (_WHITESPACE_RE, " "),
]


def parse_amount(value: Any) -> Decimal:
    """
    Parse a monetary cell into a Decimal.

    Every character other than digits, comma, period and minus is removed.
    A comma is read as the decimal separator; when both separators appear
    the last one is the decimal separator and the other groups thousands.

    Args:
        value: Raw cell content

    Returns:
        Decimal value, or zero when the cell cannot be converted or its
        magnitude reaches MAX_ABS_AMOUNT
    """
    if value is None:
        return ZERO

    cleaned = _AMOUNT_JUNK_RE.sub("", str(value))
    if not cleaned:
        return ZERO

    if "," in cleaned and "." in cleaned:
        if cleaned.rfind(",") > cleaned.rfind("."):
            cleaned = cleaned.replace(".", "").replace(",", ".")
        else:
            cleaned = cleaned.replace(",", "")
    else:
        cleaned = cleaned.replace(",", ".")

    try:
        result = Decimal(cleaned)
    except InvalidOperation:
        logger.debug(f"Failed to parse amount: '{value}'")
        return ZERO

    if not result.is_finite() or abs(result) >= MAX_ABS_AMOUNT:
        logger.debug(f"Amount out of range: '{value}'")
        return ZERO
    return result


def parse_date(value: str, date_format: str) -> date:
    """
    Parse a date cell according to a profile date format.

    Args:
        value: Raw cell content, optionally followed by a time part
        date_format: One of DD/MM/YYYY, MM/DD/YYYY, YYYY-MM-DD

    Returns:
        Calendar date

    Raises:
        ValueError: If the cell does not hold a valid date
    """
    text = (value or "").strip()
    if not text:
        raise ValueError("empty date")

    # Drop a trailing time part ("2025-10-01 08:00" or "2025-10-01T08:00")
    text = text.split()[0].split("T")[0]
    parts = _DATE_SPLIT_RE.split(text)
    if len(parts) != 3 or not all(p.isdigit() for p in parts):
        raise ValueError(f"invalid date: {value!r}")

    first, second, third = parts
    if date_format == "DD/MM/YYYY":
        day, month, year = first, second, third
    elif date_format == "MM/DD/YYYY":
        month, day, year = first, second, third
    elif date_format == "YYYY-MM-DD":
        year, month, day = first, second, third
    else:
        raise ValueError(f"unsupported date format: {date_format}")

    # Day and month take 1-2 digits, year 2 or 4
    if len(day) > 2 or len(month) > 2 or len(year) not in (2, 4):
        raise ValueError(f"invalid date: {value!r}")

    year_number = int(year)
    if year_number < 100:
        year_number += 2000
    return date(year_number, int(month), int(day))


def normalize_label(label: Optional[str]) -> str:
    """
    Reduce a raw statement label to a merchant grouping key.

    Embedded dates, digit runs, punctuation and banking boilerplate are
    removed, whitespace is collapsed and the result is lowercased.

    >>> normalize_label("PRLV SEPA SALLE ESCALADE 12/09 REF 4471")
    'salle escalade ref'
    """
    if not label:
        return ""
    return apply_rules(label, LABEL_RULES).strip().lower()


def display_name(key: str, max_length: int = 20) -> str:
    """Title-case a grouping key, capped at max_length with an ellipsis."""
    name = key.strip().title()
    if len(name) > max_length:
        return name[:max_length].rstrip() + "..."
    return name


def initial_icon(name: str, default: str = "📄") -> str:
    """First letter of a display name, used as icon for unknown merchants."""
    for char in name:
        if char.isalpha():
            return char.upper()
    return default


def apply_rules(text: str, rules: List[Tuple[re.Pattern, str]]) -> str:
    """Apply an ordered list of substitution rules to text."""
    for pattern, replacement in rules:
        text = pattern.sub(replacement, text)
    return text


LabelNormalizer = Callable[[Optional[str]], str]
