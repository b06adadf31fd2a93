"""
Report Rows

The spreadsheet and the print view show the same fixed column set, so
both are built from the rows produced here.
"""

from collections.abc import Iterable
from datetime import datetime
from typing import Any, Optional

from ledgerbook.engine import format_amount, format_number, iter_transactions
from ledgerbook.models.ledger import (
    BuyTransaction,
    Category,
    TransferTransaction,
    category_label,
)


REPORT_COLUMNS = (
    "Type",
    "User",
    "Person",
    "Amount",
    "Currency",
    "Rate",
    "Date",
    "Description",
)

ORDER_COLUMNS = (
    "Date",
    "Amount",
    "Category",
    "Description",
    "Status",
)


def format_date(value: Optional[datetime]) -> str:
    if value is None:
        return ""
    return value.strftime("%m/%d/%Y, %I:%M:%S %p")


def _counterparty(transaction: Any) -> str:
    if isinstance(transaction, TransferTransaction):
        return f"{transaction.from_person} → {transaction.to_person}"
    return getattr(transaction, "person", "") or ""


def report_rows(transactions: Iterable[Any]) -> list[dict[str, str]]:
    """One display row per transaction, keyed by REPORT_COLUMNS."""
    rows = []
    for transaction in iter_transactions(transactions):
        amount = getattr(transaction, "amount", None)
        currency = getattr(transaction, "currency", None)
        rate = getattr(transaction, "rate", None)
        rows.append({
            "Type": transaction.type,
            "User": transaction.user or "",
            "Person": _counterparty(transaction),
            "Amount": format_amount(amount, currency).value if amount is not None else "",
            "Currency": currency.label_zh if currency is not None else "",
            "Rate": format_number(rate) if rate is not None else "",
            "Date": format_date(transaction.date),
            "Description": transaction.description,
        })
    return rows


def order_rows(
    lines: Iterable[BuyTransaction],
    categories: tuple[Category, ...],
) -> list[dict[str, str]]:
    """Rows of one order's lines, keyed by ORDER_COLUMNS."""
    return [
        {
            "Date": format_date(line.date),
            "Amount": format_number(line.amount),
            "Category": category_label(categories, line.category),
            "Description": line.description,
            "Status": line.status.value,
        }
        for line in lines
    ]
