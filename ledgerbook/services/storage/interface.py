"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Keep the ledger on local JSON files today
2. Use in-memory storage for testing
3. Swap in another key-value backend later
4. Keep business logic decoupled from storage implementation

The interface is intentionally tiny. Values are whole collections
addressed by a fixed set of keys; there are no partial updates, every
write replaces the entire value.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Optional


class StorageKey(str, Enum):
    """Fixed logical keys of the key-value store."""
    TRANSACTIONS = "transactions"
    PERSONS = "persons"
    PRODUCTS = "products"
    SETTINGS = "settings"
    BACKUP = "backup"


class KeyValueStorageInterface(ABC):
    """
    Abstract interface for whole-collection storage.

    Any storage implementation (local files, memory, ...) must
    implement these methods.
    """

    @abstractmethod
    def read(self, key: StorageKey) -> Optional[Any]:
        """
        Read the value stored under a key.

        Returns:
            The decoded JSON value, or None if nothing is stored

        Raises:
            CorruptDataError: If the stored value cannot be decoded
            StorageError: If the read fails
        """
        pass

    @abstractmethod
    def write(self, key: StorageKey, value: Any) -> None:
        """
        Replace the value stored under a key.

        Raises:
            SerializationError: If the value is not JSON serializable
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    def delete(self, key: StorageKey) -> bool:
        """
        Remove a key.

        Returns:
            True if something was removed
        """
        pass

    @abstractmethod
    def keys(self) -> list[StorageKey]:
        """Keys that currently hold a value."""
        pass


# =============================================================================
# Exceptions
# =============================================================================

class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class CorruptDataError(StorageError):
    """Stored value could not be decoded."""
    pass


class SerializationError(StorageError):
    """Value could not be encoded for storage."""
    pass
