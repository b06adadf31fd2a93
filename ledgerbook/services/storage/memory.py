"""In-memory storage, used by tests and throwaway sessions."""

import json
from typing import Any, Optional

from ledgerbook.services.storage.interface import (
    KeyValueStorageInterface,
    SerializationError,
    StorageKey,
)


class InMemoryStorage(KeyValueStorageInterface):
    """
    Keeps encoded JSON in a dict.

    Values round-trip through ``json`` so they behave like the file
    backend: callers never share mutable objects with the store.
    """

    def __init__(self, initial: Optional[dict[StorageKey, Any]] = None):
        self._data: dict[StorageKey, str] = {}
        self.write_count = 0
        for key, value in (initial or {}).items():
            self.write(key, value)
        self.write_count = 0

    def read(self, key: StorageKey) -> Optional[Any]:
        raw = self._data.get(StorageKey(key))
        return None if raw is None else json.loads(raw)

    def write(self, key: StorageKey, value: Any) -> None:
        try:
            self._data[StorageKey(key)] = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise SerializationError(f"Cannot serialize {key}: {e}") from e
        self.write_count += 1

    def delete(self, key: StorageKey) -> bool:
        return self._data.pop(StorageKey(key), None) is not None

    def keys(self) -> list[StorageKey]:
        return [key for key in StorageKey if key in self._data]
