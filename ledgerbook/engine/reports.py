"""
Report Filtering and Summaries

DESIGN DECISION: Filtering is a pure conjunction of independent,
optional predicates. An omitted criterion matches everything, so
applying the same filter twice yields the same rows.

Rows are sorted by date, newest first. The sort is stable, so records
sharing a timestamp keep their insertion order. Undated records sort
last and never fall inside a date range.
"""

from collections.abc import Iterable
from datetime import timezone
from decimal import Decimal
from typing import Any, NamedTuple, Optional

from ledgerbook.engine.records import iter_transactions
from ledgerbook.models.ledger import Currency, Transaction, TransactionType
from ledgerbook.models.reports import ReportFilter, TypeSummary


def _matches(transaction: Transaction, criteria: ReportFilter) -> bool:
    if criteria.start_date or criteria.end_date:
        if transaction.date is None:
            return False
        day = transaction.date.astimezone(timezone.utc).date()
        if criteria.start_date and day < criteria.start_date:
            return False
        if criteria.end_date and day > criteria.end_date:
            return False
    if criteria.person and criteria.person not in transaction.parties:
        return False
    if criteria.type and transaction.type != criteria.type.value:
        return False
    if criteria.search:
        needle = criteria.search.casefold()
        if not any(needle in key.casefold() for key in transaction.search_keys()):
            return False
    return True


def filter_transactions(
    transactions: Iterable[Any],
    criteria: Optional[ReportFilter] = None,
) -> list[Transaction]:
    """
    Select report rows matching ``criteria``, newest first.

    Criteria:
    - start_date / end_date: whole days, inclusive on both ends (UTC)
    - person: matches person, sender or receiver
    - search: case-insensitive substring of a person, order number or
      delivery number
    - type: exact transaction type
    """
    criteria = criteria or ReportFilter()
    rows = [t for t in iter_transactions(transactions) if _matches(t, criteria)]
    rows.sort(key=lambda t: t.sort_date, reverse=True)
    return rows


def summarize_by_type(transactions: Iterable[Any]) -> TypeSummary:
    """Per-type and overall per-currency totals of monetary rows."""
    summary = TypeSummary()

    for transaction in iter_transactions(transactions):
        summary.row_count += 1
        amount = getattr(transaction, "amount", None)
        currency = getattr(transaction, "currency", None)
        if amount is None or currency is None:
            # Deliveries carry no money
            continue
        summary.by_type[TransactionType(transaction.type)][currency] += amount
        summary.totals[currency] += amount

    return summary


def report_persons(transactions: Iterable[Any]) -> list[str]:
    """Sorted distinct persons appearing in any record."""
    names: set[str] = set()
    for transaction in iter_transactions(transactions):
        names.update(transaction.parties)
    return sorted(names)


class FormattedAmount(NamedTuple):
    """An amount rendered for display."""
    value: str
    negative: bool


def format_number(value: Decimal) -> str:
    """Thousands-separated, at most three decimals, no trailing zeros."""
    text = f"{value.quantize(Decimal('0.001')):,f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    if text in ("-0", ""):
        text = "0"
    return text


def format_amount(value: Decimal, currency: Currency) -> FormattedAmount:
    """Amount plus currency symbol; negatives are flagged for red display."""
    return FormattedAmount(
        value=f"{format_number(value)} {currency.symbol}",
        negative=value < 0,
    )
