"""
Bank statement CSV parsing.
Detects the export layout and extracts debit transactions.

Supported layouts, tried in this order when no profile is forced:
- fixed_token: DDMMYYYY + signed amount in cents + label, no delimiter
- delimited: header row matched against the bank profile table
- french_locale: semicolon export whose first line is a balance summary
"""
import csv
import re
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple

from core.logger import setup_logger
from core.normalize import ZERO, parse_amount, parse_date
from core.profiles import BANK_PROFILES, detect_bank_profile
from core.schema import BankProfile, ParsedStatement, Transaction

logger = setup_logger(__name__)

# Header row plus at least one data row
MIN_LINE_COUNT = 2

# Shortest line that can hold a fixed-token record
MIN_FIXED_TOKEN_LENGTH = 10

FIXED_TOKEN_RE = re.compile(r"^(\d{8})([+-]?\d+)([A-Za-z])(.*)$")
# Bank-generated reference glued to the end of fixed-token labels
_AUTO_SUFFIX_RE = re.compile(r"\d{8}0\w+$")
_TRAILING_DIGITS_RE = re.compile(r"[\s\-/]*\d+$")
_NEWLINE_RE = re.compile(r"\r\n|\r|\n")

MINOR_UNITS = Decimal("100")


def split_lines(text: str) -> List[str]:
    """Split statement text on any newline convention, outer blank space removed."""
    if not text:
        return []
    return _NEWLINE_RE.split(text.lstrip("\ufeff").strip())


def split_row(line: str, delimiter: str) -> List[str]:
    """Split one line into cells, honouring quotes and stripping quote characters."""
    try:
        cells = next(csv.reader([line], delimiter=delimiter), [])
    except csv.Error:
        cells = line.split(delimiter)
    return [cell.replace('"', "").strip() for cell in cells]


def is_balance_line(line: str) -> bool:
    """Header/balance lines of fixed-token exports mix spaces and dash runs."""
    return " " in line and "--" in line


def clean_fixed_token_label(label: str) -> str:
    """Strip the generated reference and trailing digit runs from a label."""
    label = _AUTO_SUFFIX_RE.sub("", label.strip())
    label = _TRAILING_DIGITS_RE.sub("", label)
    return label.strip()


def looks_like_fixed_token(lines: Sequence[str]) -> bool:
    """True when at least one non-header line matches the fixed-token pattern."""
    for line in lines:
        trimmed = line.strip()
        if is_balance_line(trimmed):
            continue
        if FIXED_TOKEN_RE.match(trimmed):
            return True
    return False


def kept_amount(amount: Decimal, profile: BankProfile) -> Decimal:
    """
    Positive amount recorded for a row, zero when the row is dropped.

    Debits-only profiles keep negative amounts; other profiles keep both
    directions as absolute values.
    """
    if profile.debits_only:
        return -amount if amount < 0 else ZERO
    return abs(amount)


def _sort(transactions: List[Transaction], newest_first: bool) -> List[Transaction]:
    return sorted(transactions, key=lambda t: t.date, reverse=newest_first)


class StatementParser:
    """
    Turn raw statement text into an ordered list of debit transactions.

    Malformed rows are skipped and counted, never raised.
    """

    def __init__(self, profiles: Optional[Sequence[BankProfile]] = None):
        """
        Args:
            profiles: Bank profile table (defaults to BANK_PROFILES)
        """
        self.profiles = tuple(BANK_PROFILES if profiles is None else profiles)

    def _profile_for_layout(self, layout: str) -> Optional[BankProfile]:
        return next((p for p in self.profiles if p.layout == layout), None)

    def parse(self, text: str, profile: Optional[BankProfile] = None) -> ParsedStatement:
        """
        Parse one statement file.

        Args:
            text: Full file content
            profile: Force a profile instead of detecting the layout

        Returns:
            ParsedStatement with the transactions and the profile used
        """
        lines = split_lines(text)
        if len(lines) < MIN_LINE_COUNT:
            logger.info(f"Statement has {len(lines)} line(s), nothing to parse")
            return ParsedStatement(profile=None, transactions=[], line_count=len(lines))

        if profile is not None:
            transactions, skipped = self._extract(lines, profile)
            return self._result(profile, transactions, lines, skipped)

        fixed = self._profile_for_layout("fixed_token")
        if fixed is not None and looks_like_fixed_token(lines):
            transactions, skipped = self.parse_fixed_token(lines, fixed)
            if transactions:
                return self._result(fixed, transactions, lines, skipped)
            logger.info("Fixed-token pattern found but no debit extracted, trying delimited layout")

        transactions, skipped, tabular = self.parse_delimited(lines)
        if transactions:
            return self._result(tabular, transactions, lines, skipped)

        french = self._profile_for_layout("french_locale")
        if french is not None:
            french_transactions, french_skipped = self.parse_french_locale(lines, french)
            if french_transactions:
                return self._result(french, french_transactions, lines, french_skipped)

        return self._result(tabular, [], lines, skipped)

    def _result(
        self,
        profile: Optional[BankProfile],
        transactions: List[Transaction],
        lines: Sequence[str],
        skipped: int
    ) -> ParsedStatement:
        name = profile.name if profile else None
        logger.info(
            f"Parsed {len(transactions)} transactions from {len(lines)} lines "
            f"(profile={name}, skipped={skipped})"
        )
        return ParsedStatement(
            profile=name,
            transactions=transactions,
            line_count=len(lines),
            skipped_lines=skipped,
        )

    def _extract(self, lines: Sequence[str], profile: BankProfile) -> Tuple[List[Transaction], int]:
        if profile.layout == "fixed_token":
            return self.parse_fixed_token(lines, profile)
        if profile.layout == "french_locale":
            return self.parse_french_locale(lines, profile)
        transactions, skipped, _ = self.parse_delimited(lines, profile)
        return transactions, skipped

    def parse_fixed_token(
        self,
        lines: Sequence[str],
        profile: BankProfile
    ) -> Tuple[List[Transaction], int]:
        """
        Extract transactions from a concatenated fixed-token export.

        Amounts are in cents; credits are dropped for debits-only profiles.

        Returns:
            (transactions oldest-first, skipped line count)
        """
        data_lines = lines[1:] if profile.skip_first_line else lines
        transactions: List[Transaction] = []
        skipped = 0

        for line in data_lines:
            trimmed = line.strip()
            if not trimmed or is_balance_line(trimmed) or len(trimmed) < MIN_FIXED_TOKEN_LENGTH:
                continue

            match = FIXED_TOKEN_RE.match(trimmed)
            if not match:
                skipped += 1
                logger.debug(f"Skipping unrecognized line: {trimmed!r}")
                continue

            date_str, amount_str, type_code, rest = match.groups()
            try:
                txn_date = parse_date(f"{date_str[:2]}/{date_str[2:4]}/{date_str[4:]}", profile.date_format)
            except ValueError:
                skipped += 1
                logger.debug(f"Skipping line with invalid date: {trimmed!r}")
                continue

            amount = kept_amount(parse_amount(amount_str) / MINOR_UNITS, profile)
            label = clean_fixed_token_label(type_code + rest)

            if amount <= 0 or not label:
                continue

            transactions.append(Transaction(date=txn_date, label=label, amount=amount))

        return _sort(transactions, newest_first=False), skipped

    def parse_delimited(
        self,
        lines: Sequence[str],
        profile: Optional[BankProfile] = None
    ) -> Tuple[List[Transaction], int, BankProfile]:
        """
        Extract transactions from a delimited export with a header row.

        The delimiter comes from the header line (``;`` preferred, else ``,``).
        Profiles with ``skip_first_line`` off have no header: the first
        non-blank line is data.

        Returns:
            (transactions newest-first, skipped line count, profile used)
        """
        header_index = next((i for i, line in enumerate(lines) if line.strip()), 0)
        header_line = lines[header_index]
        delimiter = ";" if ";" in header_line else ","
        headers = split_row(header_line, delimiter)

        if profile is None:
            profile = detect_bank_profile(headers, self.profiles)
        logger.info(f"Detected delimited layout: profile={profile.name}, delimiter={delimiter!r}")

        columns = profile.columns
        transactions: List[Transaction] = []
        skipped = 0

        data_start = header_index + 1 if profile.skip_first_line else header_index
        for line in lines[data_start:]:
            if not line.strip():
                continue
            cells = split_row(line, delimiter)
            try:
                txn_date = parse_date(cells[columns.date], profile.date_format)
                label = cells[columns.label]
                amount = kept_amount(parse_amount(cells[columns.amount]), profile)
            except (IndexError, ValueError) as e:
                skipped += 1
                logger.debug(f"Failed to parse line {line!r}: {e}")
                continue

            if amount <= 0 or not label:
                continue

            transactions.append(Transaction(date=txn_date, label=label, amount=amount))

        return _sort(transactions, newest_first=True), skipped, profile

    def parse_french_locale(
        self,
        lines: Sequence[str],
        profile: BankProfile
    ) -> Tuple[List[Transaction], int]:
        """
        Extract debits from the French semicolon export.

        The first line is a balance summary, skipped unless the profile
        turns ``skip_first_line`` off.

        Returns:
            (transactions newest-first, skipped line count)
        """
        columns = profile.columns
        data_lines = lines[1:] if profile.skip_first_line else lines
        transactions: List[Transaction] = []
        skipped = 0

        for line in data_lines:
            if not line.strip():
                continue
            cells = split_row(line, profile.delimiter)
            if len(cells) < profile.min_columns:
                skipped += 1
                logger.debug(f"Skipping short line ({len(cells)} columns): {line!r}")
                continue

            try:
                txn_date = parse_date(cells[columns.date], profile.date_format)
                raw_amount = re.sub(r"[\s\u00a0\u202f]", "", cells[columns.amount])
            except (IndexError, ValueError) as e:
                skipped += 1
                logger.debug(f"Failed to parse line {line!r}: {e}")
                continue

            amount = kept_amount(parse_amount(raw_amount), profile)
            if amount <= 0:
                continue

            label = cells[columns.label] if columns.label < len(cells) else ""
            label = label or profile.default_label or ""
            if not label:
                continue

            transactions.append(Transaction(date=txn_date, label=label, amount=amount))

        return _sort(transactions, newest_first=True), skipped


def parse_statement(text: str, profile: Optional[BankProfile] = None) -> List[Transaction]:
    """Parse statement text with the default profile table."""
    return StatementParser().parse(text, profile).transactions
