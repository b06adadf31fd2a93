"""
Local JSON File Storage

One JSON file per storage key inside a data directory.

Writes go to a temporary file in the same directory which then replaces
the target, so a crash mid-write leaves the previous value intact.
Transient filesystem errors are retried.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ledgerbook.config import get_settings
from ledgerbook.services.storage.interface import (
    CorruptDataError,
    KeyValueStorageInterface,
    SerializationError,
    StorageError,
    StorageKey,
)


logger = structlog.get_logger(__name__)

_retry_io = retry(
    retry=retry_if_exception_type(OSError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.1, min=0.1, max=2),
    reraise=True,
)


class LocalJsonStorage(KeyValueStorageInterface):
    """Key-value storage on the local filesystem."""

    def __init__(self, data_dir: Optional[Path] = None):
        self._data_dir = Path(data_dir) if data_dir else get_settings().storage.data_dir

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def _path(self, key: StorageKey) -> Path:
        return self._data_dir / f"{StorageKey(key).value}.json"

    @_retry_io
    def _read_text(self, path: Path) -> str:
        return path.read_text(encoding="utf-8")

    @_retry_io
    def _replace(self, path: Path, payload: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=path.parent, prefix=f".{path.stem}-", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def read(self, key: StorageKey) -> Optional[Any]:
        path = self._path(key)
        if not path.exists():
            return None

        try:
            text = self._read_text(path)
        except OSError as e:
            raise StorageError(f"Failed to read {path.name}: {e}") from e

        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise CorruptDataError(f"{path.name} is not valid JSON: {e}") from e

    def write(self, key: StorageKey, value: Any) -> None:
        path = self._path(key)
        try:
            payload = json.dumps(value, ensure_ascii=False, indent=2)
        except (TypeError, ValueError) as e:
            raise SerializationError(f"Cannot serialize {path.stem}: {e}") from e

        try:
            self._replace(path, payload)
        except OSError as e:
            raise StorageError(f"Failed to write {path.name}: {e}") from e

        logger.debug("storage_write", key=path.stem, bytes=len(payload))

    def delete(self, key: StorageKey) -> bool:
        path = self._path(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError(f"Failed to delete {path.name}: {e}") from e
        return True

    def keys(self) -> list[StorageKey]:
        return [key for key in StorageKey if self._path(key).exists()]
