"""
Pydantic schemas for transactions, static tables and detection output.
All domain records are frozen: they are produced once and never mutated.
"""
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated, List, Literal, Optional, Tuple

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_serializer, field_validator

CENT = Decimal("0.01")

Confidence = Literal["high", "medium", "low"]
DateFormat = Literal["DD/MM/YYYY", "MM/DD/YYYY", "YYYY-MM-DD"]
Layout = Literal["delimited", "fixed_token", "french_locale"]
ConfidencePolicy = Literal["by_count", "flat"]


def quantize_cost(v):
    """Round a monetary value half-up to cents."""
    if v is None:
        return v
    return Decimal(str(v)).quantize(CENT, rounding=ROUND_HALF_UP)


def normalize_keyword(v):
    """Catalog keywords are matched lowercase."""
    if isinstance(v, str):
        return " ".join(v.lower().split())
    return v


class Transaction(BaseModel):
    """A single debit line of a bank statement."""
    model_config = ConfigDict(frozen=True)

    date: date
    label: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0, description="Absolute debit amount")


class KnownService(BaseModel):
    """Catalog entry: a keyword found in statement labels and how to display it."""
    model_config = ConfigDict(frozen=True)

    keyword: Annotated[str, BeforeValidator(normalize_keyword)] = Field(..., min_length=2)
    name: str = Field(..., min_length=1)
    icon: str = Field(..., min_length=1)


class ColumnMapping(BaseModel):
    """Zero-based column indexes of a tabular bank export."""
    model_config = ConfigDict(frozen=True)

    date: int = Field(..., ge=0)
    label: int = Field(..., ge=0)
    amount: int = Field(..., ge=0)


class BankProfile(BaseModel):
    """
    Declarative description of one bank export layout.

    ``layout`` selects the extraction routine; the remaining fields
    parameterize it.
    """
    model_config = ConfigDict(frozen=True)

    name: str
    layout: Layout = "delimited"
    delimiter: str = Field(default=",", min_length=1, max_length=1)
    date_format: DateFormat = "YYYY-MM-DD"
    columns: ColumnMapping = ColumnMapping(date=0, label=1, amount=2)
    header_signature: Tuple[str, ...] = ()
    min_columns: int = Field(default=0, ge=0)
    skip_first_line: bool = True
    debits_only: bool = False
    default_label: Optional[str] = None
    confidence_policy: Optional[ConfidencePolicy] = None

    @field_validator("header_signature")
    @classmethod
    def lowercase_signature(cls, v):
        return tuple(token.lower() for token in v)


class ParsedStatement(BaseModel):
    """Parser output for one file."""
    model_config = ConfigDict(frozen=True)

    profile: Optional[str] = None
    transactions: List[Transaction] = Field(default_factory=list)
    line_count: int = 0
    skipped_lines: int = 0


class DetectedSubscription(BaseModel):
    """A recurring payment inferred from a transaction group."""
    model_config = ConfigDict(frozen=True)

    service_name: str
    monthly_cost: Annotated[Decimal, BeforeValidator(quantize_cost)] = Field(..., ge=0)
    renewal_date: date
    confidence: Confidence
    icon: str

    @field_serializer("monthly_cost")
    def serialize_cost(self, v: Decimal) -> float:
        return float(v)


class DetectionResult(BaseModel):
    """API response for one analyzed statement."""
    filename: Optional[str] = None
    profile: Optional[str] = None
    line_count: int = 0
    transaction_count: int = 0
    skipped_lines: int = 0
    subscriptions: List[DetectedSubscription] = Field(default_factory=list)
    total_monthly_cost: Annotated[Decimal, BeforeValidator(quantize_cost)] = Decimal("0.00")
    message: str = ""

    @field_serializer("total_monthly_cost")
    def serialize_total(self, v: Decimal) -> float:
        return float(v)
