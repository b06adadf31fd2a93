"""
Balance Calculator

DESIGN DECISION: Balances are NEVER stored.
They are recomputed on demand by folding the full transaction list, so
an edit or a delete anywhere in history is reflected immediately and
there is no cached total that can drift from the records.

Each transaction contributes signed (person, currency, delta) entries:
- receive credits the person
- pay and buy debit the person
- transfer debits the sender and credits the receiver
- delivery has no effect on money
"""

from collections.abc import Iterable, Sequence
from decimal import Decimal
from typing import Any

from ledgerbook.engine.records import iter_transactions
from ledgerbook.models.ledger import Currency, ReceiveTransaction
from ledgerbook.models.reports import Balances, zero_totals


def calculate_balances(
    persons: Sequence[str],
    transactions: Iterable[Any],
) -> Balances:
    """
    Fold transactions into per-person, per-currency balances.

    Every known person appears in the result with every currency, even
    without transactions. Persons referenced by a transaction but not
    known are added with zero-initialized totals. Malformed records are
    skipped.

    Args:
        persons: Known person names
        transactions: Parsed transactions or raw stored records

    Returns:
        Mapping person -> currency -> signed Decimal total
    """
    balances: Balances = {person: zero_totals() for person in persons}

    for transaction in iter_transactions(transactions):
        for person, currency, delta in transaction.ledger_entries():
            totals = balances.setdefault(person, zero_totals())
            totals[currency] += delta

    return balances


def person_balance(
    transactions: Iterable[Any],
    person: str,
    currency: Currency,
) -> Decimal:
    """Current balance of one person in one currency."""
    total = Decimal("0")
    for transaction in iter_transactions(transactions):
        for name, entry_currency, delta in transaction.ledger_entries():
            if name == person and entry_currency == currency:
                total += delta
    return total


def currency_totals(balances: Balances) -> dict[Currency, Decimal]:
    """Sum of all persons' balances per currency."""
    totals = zero_totals()
    for person_totals in balances.values():
        for currency, amount in person_totals.items():
            totals[currency] += amount
    return totals


def average_rate(
    transactions: Iterable[Any],
    currency: Currency = Currency.USD,
) -> Decimal:
    """
    Volume-weighted average rate of receipts in ``currency``.

    sum(amount * rate) / sum(amount) over receive records that carry a
    rate. Returns Decimal 0 when no record qualifies.
    """
    weighted = Decimal("0")
    volume = Decimal("0")

    for transaction in iter_transactions(transactions):
        if not isinstance(transaction, ReceiveTransaction):
            continue
        if transaction.currency != currency or transaction.rate is None:
            continue
        weighted += transaction.amount * transaction.rate
        volume += transaction.amount

    if volume == 0:
        return Decimal("0")
    return weighted / volume
