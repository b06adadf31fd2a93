"""Report export: spreadsheets and print view."""

from ledgerbook.services.export.printable import render_report_html
from ledgerbook.services.export.rows import ORDER_COLUMNS, REPORT_COLUMNS, order_rows, report_rows
from ledgerbook.services.export.spreadsheet import export_order_xlsx, export_report_xlsx

__all__ = [
    "ORDER_COLUMNS",
    "REPORT_COLUMNS",
    "export_order_xlsx",
    "export_report_xlsx",
    "order_rows",
    "render_report_html",
    "report_rows",
]
