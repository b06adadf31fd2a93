"""
Order and Delivery Aggregation

Groups purchase lines by order number and package records by delivery
number. Group keys are not unique anywhere else - many records may share
one - so the summaries here are the only notion of an "order" or a
"delivery package".

DESIGN DECISION: An order's current status is the status of its
chronologically last line. Timestamps can collide, so ties fall back to
insertion order.
"""

from collections.abc import Iterable
from decimal import Decimal
from typing import Any, Optional

from ledgerbook.engine.records import iter_transactions
from ledgerbook.models.ledger import BuyTransaction, DeliveryTransaction, OrderStatus
from ledgerbook.models.reports import DeliverySummary, OrderSummary, zero_totals


DEFAULT_ORDER_OWNER = "JACK"


def _order_lines(
    transactions: Iterable[Any],
    owner: Optional[str],
) -> list[BuyTransaction]:
    return [
        t for t in iter_transactions(transactions)
        if isinstance(t, BuyTransaction) and (owner is None or t.person == owner)
    ]


def _packages(transactions: Iterable[Any]) -> list[DeliveryTransaction]:
    return [
        t for t in iter_transactions(transactions)
        if isinstance(t, DeliveryTransaction)
    ]


def _build_order(order_number: str, lines: list[BuyTransaction]) -> OrderSummary:
    summary = OrderSummary(order_number=order_number, transactions=lines)
    if not lines:
        return summary

    for line in lines:
        summary.total_amount += line.amount
        summary.currency_totals[line.currency] += line.amount

    # max() keeps the first maximum, so rank by (date, position)
    _, last = max(enumerate(lines), key=lambda pair: (pair[1].sort_date, pair[0]))
    summary.last_date = last.date
    summary.status = last.status
    return summary


# =============================================================================
# ORDERS
# =============================================================================

def order_numbers(
    transactions: Iterable[Any],
    owner: Optional[str] = DEFAULT_ORDER_OWNER,
) -> list[str]:
    """Distinct order numbers of ``owner``'s purchases, descending."""
    return sorted(
        {line.order_number for line in _order_lines(transactions, owner)},
        reverse=True,
    )


def summarize_order(
    transactions: Iterable[Any],
    order_number: str,
    owner: Optional[str] = DEFAULT_ORDER_OWNER,
) -> OrderSummary:
    """
    Summarize one order.

    An order number with no lines yields an empty, active summary.
    """
    lines = [
        line for line in _order_lines(transactions, owner)
        if line.order_number == order_number
    ]
    return _build_order(order_number, lines)


def summarize_orders(
    transactions: Iterable[Any],
    owner: Optional[str] = DEFAULT_ORDER_OWNER,
) -> list[OrderSummary]:
    """Summaries of every order, by descending order number."""
    grouped: dict[str, list[BuyTransaction]] = {}
    for line in _order_lines(transactions, owner):
        grouped.setdefault(line.order_number, []).append(line)

    return [
        _build_order(number, grouped[number])
        for number in sorted(grouped, reverse=True)
    ]


def order_status_counts(summaries: Iterable[OrderSummary]) -> dict[OrderStatus, int]:
    """How many orders are in each status."""
    counts = {status: 0 for status in OrderStatus}
    for summary in summaries:
        counts[summary.status] += 1
    return counts


# =============================================================================
# DELIVERIES
# =============================================================================

def _build_delivery(
    delivery_number: str,
    packages: list[DeliveryTransaction],
) -> DeliverySummary:
    # sorted() is stable, equal dates keep insertion order
    newest_first = sorted(packages, key=lambda p: p.sort_date, reverse=True)
    return DeliverySummary(
        delivery_number=delivery_number,
        packages=newest_first,
        total_boxes=sum(p.box_count for p in packages),
        total_weight=sum((p.weight for p in packages), Decimal("0")),
        last_date=newest_first[0].date if newest_first else None,
    )


def delivery_numbers(transactions: Iterable[Any]) -> list[str]:
    """Distinct delivery numbers, descending."""
    return sorted(
        {package.delivery_number for package in _packages(transactions)},
        reverse=True,
    )


def summarize_delivery(
    transactions: Iterable[Any],
    delivery_number: str,
) -> DeliverySummary:
    """Summarize one delivery package group."""
    packages = [
        package for package in _packages(transactions)
        if package.delivery_number == delivery_number
    ]
    return _build_delivery(delivery_number, packages)


def summarize_deliveries(transactions: Iterable[Any]) -> list[DeliverySummary]:
    """Summaries of every delivery, by descending delivery number."""
    grouped: dict[str, list[DeliveryTransaction]] = {}
    for package in _packages(transactions):
        grouped.setdefault(package.delivery_number, []).append(package)

    return [
        _build_delivery(number, grouped[number])
        for number in sorted(grouped, reverse=True)
    ]
