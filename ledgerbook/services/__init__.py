"""Services package."""

from ledgerbook.services.storage import (
    CorruptDataError,
    InMemoryStorage,
    KeyValueStorageInterface,
    LocalJsonStorage,
    SerializationError,
    StorageError,
    StorageKey,
)
from ledgerbook.services.persistence import (
    BackupImportError,
    DebouncedSaver,
    LoadResult,
    build_backup,
    collection_records,
    load_state,
    parse_backup,
)
from ledgerbook.services.export import (
    export_order_xlsx,
    export_report_xlsx,
    render_report_html,
)

__all__ = [
    # Storage
    "CorruptDataError",
    "InMemoryStorage",
    "KeyValueStorageInterface",
    "LocalJsonStorage",
    "SerializationError",
    "StorageError",
    "StorageKey",
    # Persistence
    "BackupImportError",
    "DebouncedSaver",
    "LoadResult",
    "build_backup",
    "collection_records",
    "load_state",
    "parse_backup",
    # Export
    "export_order_xlsx",
    "export_report_xlsx",
    "render_report_html",
]
