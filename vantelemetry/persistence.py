"""
JSON document stores.

JsonFileStore keeps one file per key under a data directory; every read and
write goes through a single lock. InMemoryStore keeps serialized copies in a
dict and is used for tests and the "memory" storage mode.
"""
import json
import logging
import os
import tempfile
import threading
from typing import Any, Dict, List, Optional

from .exceptions import PersistenceError
from .interfaces import BlobStore

logger = logging.getLogger("Persistence")


def _check_key(key: str) -> str:
    if not key or os.path.basename(key) != key or key in (".", ".."):
        raise PersistenceError(f"Invalid store key: {key!r}")
    return key


class JsonFileStore(BlobStore):

    def __init__(self, data_dir: str):
        self._data_dir = os.path.abspath(data_dir)
        self._lock = threading.Lock()

    @property
    def data_dir(self) -> str:
        return self._data_dir

    def _path(self, key: str) -> str:
        return os.path.join(self._data_dir, _check_key(key))

    def save(self, key: str, value: Any) -> None:
        path = self._path(key)
        with self._lock:
            try:
                os.makedirs(self._data_dir, exist_ok=True)
                # Write to a sibling temp file then swap it in
                fd, tmp_path = tempfile.mkstemp(dir=self._data_dir, prefix=f".{key}.", suffix=".tmp")
                try:
                    with os.fdopen(fd, 'w', encoding='utf-8') as f:
                        json.dump(value, f, indent=2)
                    os.replace(tmp_path, path)
                except BaseException:
                    if os.path.exists(tmp_path):
                        os.unlink(tmp_path)
                    raise
            except (OSError, TypeError, ValueError) as e:
                logger.error(f"Error saving {key}: {e}")
                raise PersistenceError(f"Could not save {key}: {e}") from e
        logger.debug(f"Saved {key}")

    def load(self, key: str) -> Optional[Any]:
        path = self._path(key)
        with self._lock:
            if not os.path.exists(path):
                logger.debug(f"{key} not found in {self._data_dir}")
                return None
            try:
                with open(path, 'r', encoding='utf-8') as f:
                    return json.load(f)
            except (OSError, ValueError) as e:
                logger.error(f"Error loading {key}: {e}")
                raise PersistenceError(f"Could not load {key}: {e}") from e

    def delete(self, key: str) -> None:
        path = self._path(key)
        with self._lock:
            try:
                if os.path.exists(path):
                    os.remove(path)
                    logger.info(f"Deleted {key}")
            except OSError as e:
                logger.error(f"Error deleting {key}: {e}")
                raise PersistenceError(f"Could not delete {key}: {e}") from e

    def exists(self, key: str) -> bool:
        with self._lock:
            return os.path.exists(self._path(key))

    def keys(self) -> List[str]:
        with self._lock:
            if not os.path.isdir(self._data_dir):
                return []
            return sorted(name for name in os.listdir(self._data_dir) if name.endswith('.json'))


class InMemoryStore(BlobStore):

    def __init__(self):
        self._docs: Dict[str, str] = {}
        self._lock = threading.Lock()

    def save(self, key: str, value: Any) -> None:
        _check_key(key)
        try:
            encoded = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"Could not save {key}: {e}") from e
        with self._lock:
            self._docs[key] = encoded

    def load(self, key: str) -> Optional[Any]:
        _check_key(key)
        with self._lock:
            encoded = self._docs.get(key)
        if encoded is None:
            return None
        try:
            return json.loads(encoded)
        except ValueError as e:
            raise PersistenceError(f"Could not load {key}: {e}") from e

    def put_raw(self, key: str, text: str) -> None:
        """Store text without validation. Lets tests plant corrupt documents."""
        with self._lock:
            self._docs[key] = text

    def delete(self, key: str) -> None:
        with self._lock:
            self._docs.pop(key, None)

    def exists(self, key: str) -> bool:
        with self._lock:
            return key in self._docs

    def keys(self) -> List[str]:
        with self._lock:
            return sorted(self._docs)
