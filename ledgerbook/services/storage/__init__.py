"""
Storage Services Package

Provides the abstract key-value interface and concrete implementations.
Local JSON files are the default backend; memory storage backs the tests.
"""

from ledgerbook.services.storage.interface import (
    CorruptDataError,
    KeyValueStorageInterface,
    SerializationError,
    StorageError,
    StorageKey,
)
from ledgerbook.services.storage.local_json import LocalJsonStorage
from ledgerbook.services.storage.memory import InMemoryStorage

__all__ = [
    # Interface
    "KeyValueStorageInterface",
    "StorageKey",
    # Exceptions
    "CorruptDataError",
    "SerializationError",
    "StorageError",
    # Implementations
    "InMemoryStorage",
    "LocalJsonStorage",
]
