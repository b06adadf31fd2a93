"""
Currency Conversion

A conversion is not a transaction kind of its own. It is recorded as a
pair: a ``pay`` of the source amount from the sender and a ``receive``
of the converted amount, carrying the rate, to the receiver. Balances
and the average-rate figure then need no special case for it.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import ValidationError

from ledgerbook.models.ledger import (
    Currency,
    PayEntry,
    PayTransaction,
    ReceiveEntry,
    ReceiveTransaction,
    utcnow,
)


class ConversionError(ValueError):
    """A conversion request that cannot be recorded."""
    pass


def build_conversion(
    sender: str,
    receiver: str,
    amount: Decimal,
    rate: Decimal,
    user: Optional[str],
    from_currency: Currency = Currency.USD,
    to_currency: Currency = Currency.CNY,
    description: str = "",
    date: Optional[datetime] = None,
) -> tuple[PayTransaction, ReceiveTransaction]:
    """
    Build the pay/receive pair for a conversion.

    Both records share one timestamp. The received amount is
    ``amount * rate``.

    Raises:
        ConversionError: if the parties are the same, the currencies are
            the same, the target currency takes no rate, or an amount or
            rate is not positive
    """
    if sender == receiver:
        raise ConversionError("Sender and receiver must be different persons")
    if from_currency == to_currency:
        raise ConversionError("Source and target currency must differ")
    if not to_currency.accepts_rate:
        raise ConversionError(f"Cannot convert into {to_currency.value}")

    date = date or utcnow()
    try:
        amount = Decimal(str(amount))
        rate = Decimal(str(rate))
        pay = PayEntry(
            user=user,
            person=sender,
            amount=amount,
            currency=from_currency,
            description=description,
            date=date,
        )
        receive = ReceiveEntry(
            user=user,
            person=receiver,
            amount=amount * rate,
            currency=to_currency,
            rate=rate,
            description=description,
            date=date,
        )
    except ArithmeticError as e:
        raise ConversionError(f"Invalid amount or rate: {e}") from e
    except ValidationError as e:
        messages = "; ".join(err["msg"] for err in e.errors())
        raise ConversionError(messages) from e

    return pay, receive
