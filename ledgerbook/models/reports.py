"""
Report and Validation Models

Derived views over the ledger (order books, delivery packages, report
filters and summaries) plus the result shape of transaction validation.
None of these are stored - they are recomputed from the transaction list.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ledgerbook.models.ledger import (
    BuyTransaction,
    Currency,
    DeliveryTransaction,
    OrderStatus,
    Transaction,
    TransactionType,
)


Balances = dict[str, dict[Currency, Decimal]]


def zero_totals() -> dict[Currency, Decimal]:
    return {currency: Decimal("0") for currency in Currency}


# =============================================================================
# REPORT FILTER
# =============================================================================

class ReportFilter(BaseModel):
    """
    Criteria for the transaction report.

    Every criterion is optional; an omitted criterion matches everything.
    Dates are whole days, inclusive on both ends.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    start_date: Optional[date] = None
    end_date: Optional[date] = None
    person: Optional[str] = Field(
        default=None,
        description="Matches person, sender or receiver"
    )
    search: Optional[str] = Field(
        default=None,
        description="Substring of a person, order or delivery identifier"
    )
    type: Optional[TransactionType] = None

    @model_validator(mode="after")
    def validate_range(self) -> "ReportFilter":
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("Report end date cannot be before start date")
        return self


# =============================================================================
# ORDERS AND DELIVERIES
# =============================================================================

class OrderSummary(BaseModel):
    """All purchase lines sharing one order number."""

    order_number: str
    transactions: list[BuyTransaction] = Field(
        default_factory=list,
        description="Order lines in insertion order"
    )
    total_amount: Decimal = Decimal("0")
    currency_totals: dict[Currency, Decimal] = Field(default_factory=zero_totals)
    last_date: Optional[datetime] = None
    status: OrderStatus = OrderStatus.ACTIVE

    @property
    def line_count(self) -> int:
        return len(self.transactions)


class DeliverySummary(BaseModel):
    """All package records sharing one delivery number."""

    delivery_number: str
    packages: list[DeliveryTransaction] = Field(
        default_factory=list,
        description="Package records, newest first"
    )
    total_boxes: int = 0
    total_weight: Decimal = Decimal("0")
    last_date: Optional[datetime] = None


# =============================================================================
# REPORT SUMMARY
# =============================================================================

class TypeSummary(BaseModel):
    """Per-type, per-currency totals over a set of report rows."""

    by_type: dict[TransactionType, dict[Currency, Decimal]] = Field(
        default_factory=lambda: {t: zero_totals() for t in TransactionType}
    )
    totals: dict[Currency, Decimal] = Field(default_factory=zero_totals)
    row_count: int = 0


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'negative_balance')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggestion for how to fix the issue"
    )


class ValidationResult(BaseModel):
    """
    Result of the two-stage transaction validation.

    Stage 1: Schema validation (fields required by the transaction type)
    Stage 2: Ledger validation (known persons, negative balance policy)
    """

    validated_at: datetime = Field(default_factory=datetime.utcnow)
    schema_valid: bool
    ledger_valid: bool
    transaction: Optional[Transaction] = Field(
        default=None,
        description="The parsed record when the schema stage passed"
    )
    requires_confirmation: bool = Field(
        default=False,
        description="Acceptable only after the user confirms (e.g. a negative balance)"
    )
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return self.schema_valid and self.ledger_valid

    @property
    def has_errors(self) -> bool:
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def warnings(self) -> list[str]:
        return [issue.message for issue in self.issues if issue.severity == "warning"]
