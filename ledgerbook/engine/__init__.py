"""
Ledger Engine

Pure computation over the transaction list: balances, the average rate,
order and delivery summaries, report filtering and conversion pairs.
Nothing here performs I/O or mutates its inputs.
"""

from ledgerbook.engine.balances import (
    average_rate,
    calculate_balances,
    currency_totals,
    person_balance,
)
from ledgerbook.engine.conversion import ConversionError, build_conversion
from ledgerbook.engine.orders import (
    DEFAULT_ORDER_OWNER,
    delivery_numbers,
    order_numbers,
    order_status_counts,
    summarize_deliveries,
    summarize_delivery,
    summarize_order,
    summarize_orders,
)
from ledgerbook.engine.records import iter_transactions
from ledgerbook.engine.reports import (
    FormattedAmount,
    filter_transactions,
    format_amount,
    format_number,
    report_persons,
    summarize_by_type,
)

__all__ = [
    "average_rate",
    "calculate_balances",
    "currency_totals",
    "person_balance",
    "ConversionError",
    "build_conversion",
    "DEFAULT_ORDER_OWNER",
    "delivery_numbers",
    "order_numbers",
    "order_status_counts",
    "summarize_deliveries",
    "summarize_delivery",
    "summarize_order",
    "summarize_orders",
    "iter_transactions",
    "FormattedAmount",
    "filter_transactions",
    "format_amount",
    "format_number",
    "report_persons",
    "summarize_by_type",
]
