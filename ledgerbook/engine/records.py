"""
Record Coercion for the Ledger Engine

Engine functions accept either parsed transaction models or raw stored
mappings. Raw mappings are parsed here; anything that fails to parse is
skipped and logged so a single bad record cannot blank a whole report.

Stored records written before ids existed get an id derived from their
position and content, so reading the same list twice yields the same
transactions.
"""

import json
from collections.abc import Iterable, Iterator
from typing import Any
from uuid import UUID, uuid5

import structlog
from pydantic import ValidationError

from ledgerbook.models.ledger import Transaction, parse_transaction


logger = structlog.get_logger(__name__)

_LEGACY_ID_NAMESPACE = UUID("6f1c2b9e-3d4a-5e7f-8a9b-0c1d2e3f4a5b")


def legacy_id(index: int, record: dict[str, Any]) -> UUID:
    """Stable id for an id-less stored record at ``index``."""
    content = json.dumps(record, sort_keys=True, default=str)
    return uuid5(_LEGACY_ID_NAMESPACE, f"{index}:{content}")


def parse_stored(record: Any, index: int) -> Transaction:
    """
    Read one stored record at ``index`` of its collection.

    Raises:
        pydantic.ValidationError: if the record cannot take part in
            balances or reports
    """
    if isinstance(record, dict) and not record.get("id"):
        record = {**record, "id": legacy_id(index, record)}
    return parse_transaction(record)


def iter_transactions(records: Iterable[Any]) -> Iterator[Transaction]:
    """
    Yield the valid transactions in ``records`` in their given order.

    Malformed entries (missing persons, non-numeric amounts, unknown
    currency or type) are dropped with a warning.
    """
    for index, record in enumerate(records):
        try:
            yield parse_stored(record, index)
        except ValidationError as e:
            logger.warning(
                "ledger_record_skipped",
                index=index,
                error_count=e.error_count(),
                errors=[err["msg"] for err in e.errors()],
            )
