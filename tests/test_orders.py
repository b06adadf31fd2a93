"""Tests for order and delivery aggregation."""

from datetime import datetime, timezone
from decimal import Decimal

from ledgerbook.engine import (
    delivery_numbers,
    order_numbers,
    order_status_counts,
    summarize_deliveries,
    summarize_delivery,
    summarize_order,
    summarize_orders,
)
from ledgerbook.models.ledger import Currency, OrderStatus


def at(day, hour=12):
    return datetime(2024, 6, day, hour, tzinfo=timezone.utc)


def buy(order, amount, when, status="active", person="JACK", currency="cny"):
    return {
        "type": "buy",
        "person": person,
        "amount": amount,
        "currency": currency,
        "orderNumber": order,
        "category": "material",
        "status": status,
        "date": when,
    }


def package(number, boxes, weight, when):
    return {
        "type": "delivery",
        "deliveryNumber": number,
        "boxCount": boxes,
        "weight": weight,
        "receiptNumber": f"R-{number}",
        "date": when,
    }


class TestOrders:
    """Tests for order grouping."""

    def test_order_numbers_descending_and_owner_only(self):
        """Test that only the owner's orders are listed, newest number first."""
        records = [
            buy("A-1", 10, at(1)),
            buy("B-2", 10, at(2)),
            buy("A-1", 5, at(3)),
            buy("Z-9", 5, at(3), person="AMiR"),
        ]
        assert order_numbers(records) == ["B-2", "A-1"]
        assert order_numbers(records, owner=None) == ["Z-9", "B-2", "A-1"]

    def test_summary_totals_and_last_date(self):
        """Test totals and the most recent timestamp."""
        records = [buy("A-1", 10, at(1)), buy("A-1", "2.5", at(4)), buy("A-1", 1, at(2))]
        summary = summarize_order(records, "A-1")
        assert summary.total_amount == Decimal("13.5")
        assert summary.currency_totals[Currency.CNY] == Decimal("13.5")
        assert summary.last_date == at(4)
        assert summary.line_count == 3

    def test_status_from_chronologically_last_line(self):
        """Test that status follows the latest date, not the list order."""
        records = [
            buy("A-1", 1, at(5), status="completed"),
            buy("A-1", 1, at(1), status="cancelled"),
        ]
        assert summarize_order(records, "A-1").status == OrderStatus.COMPLETED

    def test_status_ties_broken_by_insertion_order(self):
        """Test that equal timestamps fall back to the later entry."""
        records = [
            buy("A-1", 1, at(3), status="cancelled"),
            buy("A-1", 1, at(3), status="completed"),
        ]
        assert summarize_order(records, "A-1").status == OrderStatus.COMPLETED

    def test_empty_order_is_active(self):
        """Test that an order without lines is reported active."""
        summary = summarize_order([], "NEW-1")
        assert summary.status == OrderStatus.ACTIVE
        assert summary.total_amount == 0
        assert summary.last_date is None

    def test_summarize_orders_and_status_counts(self):
        """Test summaries for every order and the status tally."""
        records = [
            buy("A-1", 1, at(1), status="completed"),
            buy("B-2", 1, at(2)),
            buy("C-3", 1, at(3), status="completed"),
        ]
        summaries = summarize_orders(records)
        assert [s.order_number for s in summaries] == ["C-3", "B-2", "A-1"]
        counts = order_status_counts(summaries)
        assert counts[OrderStatus.COMPLETED] == 2
        assert counts[OrderStatus.ACTIVE] == 1
        assert counts[OrderStatus.CANCELLED] == 0


class TestDeliveries:
    """Tests for delivery package grouping."""

    def test_delivery_numbers_descending(self):
        """Test distinct delivery numbers, descending."""
        records = [package("D-1", 1, 1, at(1)), package("D-3", 1, 1, at(2)), package("D-1", 2, 2, at(3))]
        assert delivery_numbers(records) == ["D-3", "D-1"]

    def test_packages_newest_first(self):
        """Test package order and totals."""
        records = [
            package("D-1", 2, "10.5", at(1)),
            package("D-1", 3, 4, at(6)),
            package("D-2", 9, 9, at(7)),
        ]
        summary = summarize_delivery(records, "D-1")
        assert [p.box_count for p in summary.packages] == [3, 2]
        assert summary.total_boxes == 5
        assert summary.total_weight == Decimal("14.5")
        assert summary.last_date == at(6)

    def test_summarize_deliveries_ignores_money(self):
        """Test that purchase lines are not delivery packages."""
        records = [buy("A-1", 1, at(1)), package("D-1", 1, 1, at(1))]
        summaries = summarize_deliveries(records)
        assert [s.delivery_number for s in summaries] == ["D-1"]


class TestRecordsFromOlderForms:
    """Tests for stored purchase lines outside today's form rules."""

    def test_free_form_order_number_is_summarized(self):
        """Test that an order number with spaces and slashes still groups."""
        records = [{
            "type": "buy", "person": "JACK", "amount": 300, "currency": "cny",
            "orderNumber": "PO 12/A",
        }]
        summaries = summarize_orders(records)
        assert [s.order_number for s in summaries] == ["PO 12/A"]
        assert summaries[0].total_amount == Decimal("300")

    def test_undated_line_is_oldest(self):
        """Test that a dateless line never decides status or last date."""
        undated = buy("A-1", 1, None, status="cancelled")
        del undated["date"]
        records = [buy("A-1", 1, at(2), status="completed"), undated]
        summary = summarize_order(records, "A-1")
        assert summary.status == OrderStatus.COMPLETED
        assert summary.last_date == at(2)
