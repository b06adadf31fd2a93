"""Print-formatted HTML table of report rows."""

import os
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from jinja2 import Environment, FileSystemLoader, select_autoescape

from ledgerbook.services.export.rows import REPORT_COLUMNS, format_date, report_rows


TEMPLATE_DIR = os.path.join(os.path.dirname(__file__), "templates")


def _template_env(template_dir: str = TEMPLATE_DIR) -> Environment:
    return Environment(
        loader=FileSystemLoader(template_dir),
        autoescape=select_autoescape(["html", "xml"]),
    )


def render_report_html(
    transactions: Iterable[Any],
    title: str = "Reports",
) -> str:
    """Render the rows as a standalone page ready for printing."""
    tpl = _template_env().get_template("report.html")
    return tpl.render(
        title=title,
        columns=REPORT_COLUMNS,
        rows=report_rows(transactions),
        generated_at=format_date(datetime.now()),
    )
