"""
Persistence: Debounced Saves, Loading and Backups

DESIGN DECISION: The reducer never touches storage.
State changes only mark collections dirty; a debounced timer later
snapshots the current state and writes the dirty collections whole.
Bursts of changes within the quiet period collapse into one write.

The trade-off is explicit: changes made in the last quiet period are
lost if the process dies before the timer fires. ``flush()`` closes
that window on shutdown.

Loading is lenient: unreadable stored records are logged, left out of
the ledger and written back untouched. Import is strict: any bad record
rejects the whole backup.
"""

import json
import threading
from collections.abc import Callable, Iterable
from typing import Any, NamedTuple, Optional, Union

import structlog
from pydantic import ValidationError

from ledgerbook.audit import AuditLogger
from ledgerbook.config import get_settings
from ledgerbook.engine.records import parse_stored
from ledgerbook.models.ledger import Backup, Transaction, utcnow
from ledgerbook.services.storage import (
    KeyValueStorageInterface,
    StorageError,
    StorageKey,
)
from ledgerbook.state import AppState, LedgerError, categories_from_settings, initial_state


logger = structlog.get_logger(__name__)

COLLECTION_KEYS = (
    StorageKey.TRANSACTIONS,
    StorageKey.PERSONS,
    StorageKey.PRODUCTS,
    StorageKey.SETTINGS,
)


class BackupImportError(LedgerError):
    """A backup file could not be imported. Nothing was applied."""
    pass


# =============================================================================
# SNAPSHOTS
# =============================================================================

def settings_record(state: AppState) -> dict[str, Any]:
    """The settings collection, with categories folded in."""
    return {
        **state.settings,
        "categories": [c.model_dump() for c in state.categories],
    }


def collection_records(state: AppState) -> dict[StorageKey, Any]:
    """JSON values of every stored collection."""
    transactions = [t.to_record() for t in state.transactions]
    transactions.extend(state.unreadable)
    return {
        StorageKey.TRANSACTIONS: transactions,
        StorageKey.PERSONS: list(state.persons),
        StorageKey.PRODUCTS: [dict(p) for p in state.products],
        StorageKey.SETTINGS: settings_record(state),
    }


def build_backup(state: AppState) -> dict[str, Any]:
    """
    A whole-state snapshot in the backup file shape.

    Unreadable stored records stay in storage but are left out, so
    every exported backup imports cleanly.
    """
    records = collection_records(state)
    return {
        "transactions": [t.to_record() for t in state.transactions],
        "persons": records[StorageKey.PERSONS],
        "products": records[StorageKey.PRODUCTS],
        "settings": records[StorageKey.SETTINGS],
        "timestamp": utcnow().isoformat(),
    }


def parse_backup(raw: Union[str, bytes, dict[str, Any]]) -> Backup:
    """
    Parse an uploaded backup file.

    Raises:
        BackupImportError: on malformed JSON, a non-object top level,
            or any invalid record
    """
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise BackupImportError(f"Backup is not valid JSON: {e}") from e

    if not isinstance(raw, dict):
        raise BackupImportError("Backup must be a JSON object")

    try:
        backup = Backup.model_validate(raw)
        if backup.settings is not None:
            categories_from_settings(backup.settings)
    except ValidationError as e:
        first = e.errors()[0]
        where = ".".join(str(part) for part in first["loc"])
        raise BackupImportError(
            f"Backup rejected: {e.error_count()} invalid field(s), first at {where}: {first['msg']}"
        ) from e

    return backup


# =============================================================================
# LOADING
# =============================================================================

class LoadResult(NamedTuple):
    state: AppState
    skipped: int
    needs_save: bool


def _read(storage: KeyValueStorageInterface, key: StorageKey) -> Optional[Any]:
    try:
        return storage.read(key)
    except StorageError as e:
        logger.error("storage_read_failed", key=key.value, error=str(e))
        return None


def _load_transactions(
    raw: Any,
    audit: Optional[AuditLogger],
) -> tuple[list[Transaction], list[Any], bool]:
    if not isinstance(raw, list):
        return [], [], False

    transactions: list[Transaction] = []
    unreadable: list[Any] = []
    missing_ids = False
    for index, record in enumerate(raw):
        try:
            transactions.append(parse_stored(record, index))
        except ValidationError as e:
            unreadable.append(record)
            if audit:
                audit.log_record_skipped(str(e), record)
            else:
                logger.warning("stored_record_skipped", error=str(e))
            continue
        if not isinstance(record, dict) or not record.get("id"):
            missing_ids = True
    return transactions, unreadable, missing_ids


def load_state(
    storage: KeyValueStorageInterface,
    audit: Optional[AuditLogger] = None,
) -> LoadResult:
    """
    Rebuild the application state from storage.

    Missing collections fall back to defaults. Stored transactions
    without an id get a stable one; ``needs_save`` then asks the caller
    to persist them. Records that cannot be read are kept verbatim in
    ``unreadable`` so that save writes them back untouched.
    """
    state = initial_state()
    update: dict[str, Any] = {}

    transactions, unreadable, missing_ids = _load_transactions(
        _read(storage, StorageKey.TRANSACTIONS), audit
    )
    update["transactions"] = tuple(transactions)
    update["unreadable"] = tuple(unreadable)

    persons = _read(storage, StorageKey.PERSONS)
    if isinstance(persons, list) and all(isinstance(p, str) for p in persons):
        update["persons"] = tuple(dict.fromkeys(p.strip() for p in persons if p.strip()))

    products = _read(storage, StorageKey.PRODUCTS)
    if isinstance(products, list):
        update["products"] = tuple(p for p in products if isinstance(p, dict))

    settings = _read(storage, StorageKey.SETTINGS)
    if isinstance(settings, dict):
        update["settings"] = settings
        try:
            update["categories"] = categories_from_settings(settings)
        except ValidationError as e:
            logger.warning("stored_categories_skipped", error=str(e))

    state = state.model_copy(update=update)

    if audit:
        audit.log_state_loaded(
            {
                "transactions": len(state.transactions),
                "persons": len(state.persons),
                "products": len(state.products),
            },
            len(unreadable),
        )
    return LoadResult(state=state, skipped=len(unreadable), needs_save=missing_ids)


# =============================================================================
# DEBOUNCED SAVER
# =============================================================================

class DebouncedSaver:
    """
    Coalesces state changes into periodic whole-collection writes.

    Usage:
        saver = DebouncedSaver(storage, snapshot=lambda: book.state)
        saver.mark_dirty(StorageKey.TRANSACTIONS)
        ...
        saver.flush()
    """

    def __init__(
        self,
        storage: KeyValueStorageInterface,
        snapshot: Callable[[], AppState],
        delay: Optional[float] = None,
        backup_every: Optional[int] = None,
        audit: Optional[AuditLogger] = None,
        on_error: Optional[Callable[[StorageKey, Exception], None]] = None,
    ):
        settings = get_settings().storage
        self._storage = storage
        self._snapshot = snapshot
        self._delay = settings.save_debounce_seconds if delay is None else delay
        self._backup_every = backup_every or settings.backup_every
        self._audit = audit
        self._on_error = on_error

        self._lock = threading.RLock()
        self._timer: Optional[threading.Timer] = None
        self._dirty: set[StorageKey] = set()
        self._write_count = 0

    @property
    def pending(self) -> set[StorageKey]:
        with self._lock:
            return set(self._dirty)

    @property
    def write_count(self) -> int:
        return self._write_count

    def mark_dirty(self, *keys: Union[StorageKey, str]) -> None:
        """Schedule the given collections for saving."""
        with self._lock:
            self._dirty.update(StorageKey(k) for k in keys)
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

            if self._delay <= 0:
                self._write_pending()
                return

            self._timer = threading.Timer(self._delay, self._fire)
            self._timer.daemon = True
            self._timer.start()

    def flush(self) -> None:
        """Write everything pending now."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._write_pending()

    def _fire(self) -> None:
        with self._lock:
            self._timer = None
            self._write_pending()

    def _write_pending(self) -> None:
        if not self._dirty:
            return

        state = self._snapshot()
        records = collection_records(state)
        failed: set[StorageKey] = set()

        for key in sorted(self._dirty, key=lambda k: k.value):
            if self._write(key, records[key]):
                self._after_write(state)
            else:
                failed.add(key)

        self._dirty = failed

    def _write(self, key: StorageKey, value: Any) -> bool:
        try:
            self._storage.write(key, value)
        except StorageError as e:
            if self._audit:
                self._audit.log_save_failed(key.value, str(e))
            else:
                logger.error("save_failed", key=key.value, error=str(e))
            if self._on_error:
                self._on_error(key, e)
            return False

        if self._audit:
            self._audit.log_state_saved(key.value, len(value) if isinstance(value, list) else 1)
        return True

    def _after_write(self, state: AppState) -> None:
        self._write_count += 1
        if self._write_count % self._backup_every == 0:
            self._write(StorageKey.BACKUP, build_backup(state))


def dirty_keys_for(backup: Backup) -> Iterable[StorageKey]:
    """Collections an imported backup overwrites."""
    present = backup.model_fields_set
    return [
        key for key in COLLECTION_KEYS
        if key.value in present and getattr(backup, key.value) is not None
    ]
