"""Tests for spreadsheet and print exports."""

from datetime import datetime, timezone

import pandas as pd

from ledgerbook.engine import summarize_order
from ledgerbook.models.ledger import DEFAULT_CATEGORIES
from ledgerbook.services.export import (
    ORDER_COLUMNS,
    REPORT_COLUMNS,
    export_order_xlsx,
    export_report_xlsx,
    render_report_html,
    report_rows,
)


WHEN = datetime(2024, 2, 1, 15, 30, tzinfo=timezone.utc)

RECORDS = [
    {"type": "receive", "person": "Amir", "amount": 1500, "currency": "usd", "rate": 7.25,
     "date": WHEN, "user": "Amir", "description": "cash"},
    {"type": "transfer", "from": "Amir", "to": "JD", "amount": 20, "currency": "cny", "date": WHEN},
    {"type": "delivery", "deliveryNumber": "D-1", "boxCount": 1, "weight": 2,
     "receiptNumber": "R", "date": WHEN},
]


class TestReportRows:
    """Tests for the shared row shape."""

    def test_fixed_columns(self):
        """Test that every row has exactly the report columns."""
        for row in report_rows(RECORDS):
            assert tuple(row) == REPORT_COLUMNS

    def test_row_values(self):
        """Test amount with symbol, Chinese currency label and rate."""
        row = report_rows(RECORDS)[0]
        assert row["Type"] == "receive"
        assert row["User"] == "Amir"
        assert row["Amount"] == "1,500 $"
        assert row["Currency"] == "美元"
        assert row["Rate"] == "7.25"
        assert row["Date"] == "02/01/2024, 03:30:00 PM"

    def test_transfer_counterparty(self):
        """Test the sender → receiver column."""
        assert report_rows(RECORDS)[1]["Person"] == "Amir → JD"

    def test_delivery_has_blank_money_columns(self):
        """Test that a package row carries no amount."""
        row = report_rows(RECORDS)[2]
        assert row["Amount"] == ""
        assert row["Currency"] == ""

    def test_undated_record_has_blank_date(self):
        """Test that a stored record without a date prints an empty date."""
        row = report_rows([{"type": "pay", "person": "A", "amount": 1, "currency": "usd"}])[0]
        assert row["Date"] == ""


class TestSpreadsheet:
    """Tests for .xlsx output."""

    def test_report_workbook(self):
        """Test that the workbook reads back with the same columns."""
        buffer = export_report_xlsx(RECORDS)
        df = pd.read_excel(buffer, sheet_name="Transactions", engine="openpyxl")
        assert tuple(df.columns) == REPORT_COLUMNS
        assert len(df) == 3

    def test_empty_report_keeps_header(self):
        """Test that an empty report still has its columns."""
        df = pd.read_excel(export_report_xlsx([]), engine="openpyxl")
        assert tuple(df.columns) == REPORT_COLUMNS
        assert df.empty

    def test_order_workbook_named_after_order(self):
        """Test the per-order sheet and category labels."""
        lines = [{
            "type": "buy", "person": "JACK", "amount": 12, "currency": "cny",
            "orderNumber": "ORD-9", "category": "shipping", "date": WHEN,
        }]
        buffer = export_order_xlsx(summarize_order(lines, "ORD-9"), DEFAULT_CATEGORIES)
        df = pd.read_excel(buffer, sheet_name="ORD-9", engine="openpyxl")
        assert tuple(df.columns) == ORDER_COLUMNS
        assert df.loc[0, "Category"] == "Shipping"
        assert df.loc[0, "Status"] == "active"


class TestPrintView:
    """Tests for the printable HTML table."""

    def test_contains_rows(self):
        """Test the table content."""
        html = render_report_html(RECORDS)
        assert "<table>" in html
        assert "Amir → JD" in html
        assert "3 rows" in html

    def test_escapes_descriptions(self):
        """Test that user text is HTML-escaped."""
        records = [{"type": "pay", "person": "A", "amount": 1, "currency": "usd",
                    "description": "<script>x</script>"}]
        html = render_report_html(records)
        assert "<script>" not in html
        assert "&lt;script&gt;" in html
