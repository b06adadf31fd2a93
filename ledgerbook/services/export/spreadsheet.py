"""
Spreadsheet Export

Generates .xlsx downloads of report rows and of single orders.
"""

import io
import re
from collections.abc import Iterable
from typing import Any

import pandas as pd
import structlog

from ledgerbook.models.ledger import Category
from ledgerbook.models.reports import OrderSummary
from ledgerbook.services.export.rows import ORDER_COLUMNS, REPORT_COLUMNS, order_rows, report_rows


logger = structlog.get_logger(__name__)

# Excel rejects these in sheet names and caps them at 31 characters
_SHEET_NAME_INVALID = re.compile(r"[\[\]:*?/\\]")


def _sheet_name(name: str) -> str:
    return _SHEET_NAME_INVALID.sub("-", name)[:31] or "Sheet1"


def _to_xlsx(rows: list[dict[str, str]], columns: tuple[str, ...], sheet_name: str) -> io.BytesIO:
    df = pd.DataFrame(rows, columns=list(columns))

    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name=_sheet_name(sheet_name), index=False)

    buffer.seek(0)
    return buffer


def export_report_xlsx(transactions: Iterable[Any]) -> io.BytesIO:
    """
    Export report rows as an Excel (.xlsx) file.

    Args:
        transactions: The rows currently shown, already filtered and sorted

    Returns:
        A BytesIO buffer containing the workbook
    """
    rows = report_rows(transactions)
    buffer = _to_xlsx(rows, REPORT_COLUMNS, "Transactions")
    logger.info("report_exported", format="xlsx", rows=len(rows))
    return buffer


def export_order_xlsx(order: OrderSummary, categories: tuple[Category, ...]) -> io.BytesIO:
    """Export one order's lines; the sheet is named after the order."""
    rows = order_rows(order.transactions, categories)
    buffer = _to_xlsx(rows, ORDER_COLUMNS, order.order_number)
    logger.info("order_exported", order_number=order.order_number, rows=len(rows))
    return buffer
