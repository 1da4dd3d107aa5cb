"""
Key-value cart storage

String keys to string values, synchronous, one logical writer per namespace.
Backends: in-process memory and a JSON file on disk. NamespacedStorage scopes
a shared backend to a single cart session.
"""
import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

from storefront.core.exceptions import CartStorageError

logger = logging.getLogger(__name__)


class KeyValueStorage(ABC):
    """getItem/setItem/removeItem contract."""

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def remove_item(self, key: str) -> None:
        ...


class MemoryStorage(KeyValueStorage):
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = str(value)

    def remove_item(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStorage(KeyValueStorage):
    """
    All keys in one JSON object on disk, rewritten atomically on every write.

    An unreadable file is treated as empty and replaced on the next write.
    """

    def __init__(self, path: str):
        self.path = Path(path)
        self._lock = threading.Lock()
        self._data: Dict[str, str] = self._load()

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"[STORAGE] Could not read {self.path}: {e}. Starting empty.")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"[STORAGE] {self.path} does not hold an object. Starting empty.")
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _flush(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=str(self.path.parent), suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(self._data, fh, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise CartStorageError(
                f"Could not write cart storage: {e}",
                details={"path": str(self.path)},
            ) from e

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = str(value)
            self._flush()

    def remove_item(self, key: str) -> None:
        with self._lock:
            if self._data.pop(key, None) is not None:
                self._flush()


class NamespacedStorage(KeyValueStorage):
    """Prefixes every key with `<namespace>:`."""

    def __init__(self, backend: KeyValueStorage, namespace: str):
        self.backend = backend
        self.namespace = namespace

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    def get_item(self, key: str) -> Optional[str]:
        return self.backend.get_item(self._key(key))

    def set_item(self, key: str, value: str) -> None:
        self.backend.set_item(self._key(key), value)

    def remove_item(self, key: str) -> None:
        self.backend.remove_item(self._key(key))


def build_storage(backend: str, path: str) -> KeyValueStorage:
    """Create the configured storage backend."""
    if backend == "file":
        logger.info(f"[STORAGE] Using JSON file storage at {path}")
        return JsonFileStorage(path)
    return MemoryStorage()
