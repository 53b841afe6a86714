"""Durable key-value namespaces the store persists into.

A storage holds one serialized record (a JSON text) per key.  The store
uses four keys, one per collection; see
:data:`memorymap.persistence.COLLECTION_KEYS`.
"""
import logging
import os
import re
import tempfile
from typing import Dict, Optional

from .errors import StorageError

_SAFE_KEY = re.compile(r'^[A-Za-z0-9_.-]+$')


class KeyValueStorage:
    """Interface shared by every storage backend.

    Backends raise :class:`~memorymap.errors.StorageError` when the
    underlying medium fails; a missing key is *not* an error.
    """

    def __init__(self, namespace: str = 'memorymap') -> None:
        self.namespace = namespace
        self._log = logging.getLogger(f'memorymap.storage.{type(self).__name__}')

    def get(self, key: str) -> Optional[str]:
        """Return the text stored under *key*, or ``None`` if absent."""
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        """Store *value* under *key*, replacing any previous value."""
        raise NotImplementedError

    def set_many(self, items: Dict[str, str]) -> None:
        """Store several keys.  Backends may override to do it in one unit."""
        for key, value in items.items():
            self.set(key, value)

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def close(self) -> None:
        """Release any resources held by the backend."""


class MemoryStorage(KeyValueStorage):
    """Keeps values in a dict.  Nothing survives the process."""

    def __init__(self, namespace: str = 'memorymap') -> None:
        super().__init__(namespace)
        self.data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def delete(self, key: str) -> None:
        self.data.pop(key, None)


class JsonFileStorage(KeyValueStorage):
    """Stores each key as ``<data_dir>/<namespace>/<key>.json``.

    Writes go through a sibling temp file followed by a rename, so a file is
    never left partially written.
    """

    def __init__(self, data_dir: str, namespace: str = 'memorymap') -> None:
        super().__init__(namespace)
        self._dir = os.path.join(data_dir, namespace)

    @property
    def directory(self) -> str:
        return self._dir

    def _path(self, key: str) -> str:
        if not _SAFE_KEY.match(key):
            raise StorageError(f"Invalid storage key: {key!r}")
        return os.path.join(self._dir, f'{key}.json')

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not os.path.exists(path):
            return None
        try:
            with open(path, 'r', encoding='utf-8') as fh:
                return fh.read()
        except OSError as exc:
            raise StorageError(f"Could not read {path}: {exc}") from exc

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        try:
            os.makedirs(self._dir, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self._dir, suffix='.tmp')
        except OSError as exc:
            raise StorageError(f"Could not write {path}: {exc}") from exc
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as fh:
                fh.write(value)
            os.replace(tmp_path, path)
        except (OSError, ValueError) as exc:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise StorageError(f"Could not write {path}: {exc}") from exc
        self._log.debug("Wrote %s (%d bytes)", path, len(value))

    def delete(self, key: str) -> None:
        path = self._path(key)
        try:
            os.unlink(path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            raise StorageError(f"Could not delete {path}: {exc}") from exc
