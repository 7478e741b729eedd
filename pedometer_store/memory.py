"""In-memory key-value store."""

import threading
from typing import Any, Dict, Optional

from pedometer_store.base import KeyValueStore


class MemoryStore(KeyValueStore):
    """Dict-backed store, used by tests and dry runs."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = dict(initial or {})
        self._lock = threading.Lock()
        self.commit_count = 0

    def _read(self, key: str) -> Optional[Any]:
        with self._lock:
            return self._data.get(key)

    def _commit(self, changes: Dict[str, Any]) -> None:
        with self._lock:
            self._data.update(changes)
            self.commit_count += 1

    def as_dict(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self._data)
