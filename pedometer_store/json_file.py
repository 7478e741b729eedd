"""
JSON File Store
===============

Key-value store persisted as one JSON object on disk.

Design:
- Whole file cached in memory, loaded once at construction
- Each commit rewrites the file atomically (temp file + os.replace), so a
  crash mid-flush leaves either the old or the new contents, never a mix
- Thread-safe (single lock around cache and file write)
"""

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, Optional, Union

from pedometer_store.base import KeyValueStore, StoreError

logger = logging.getLogger(__name__)


class JsonFileStore(KeyValueStore):
    """
    File-backed key-value store.

    Args:
        path: JSON file location (created on first commit)

    Raises:
        StoreError: If an existing file is not a JSON object
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._lock = threading.Lock()
        self._data: Dict[str, Any] = self._load()

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            logger.info(f"Store file not found, starting empty: {self.path}")
            return {}

        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StoreError(f"Cannot read store file {self.path}: {e}") from e

        if not isinstance(data, dict):
            raise StoreError(
                f"Store file {self.path} must hold a JSON object, got {type(data).__name__}"
            )
        return data

    def _read(self, key: str) -> Optional[Any]:
        with self._lock:
            return self._data.get(key)

    def _commit(self, changes: Dict[str, Any]) -> None:
        with self._lock:
            merged = dict(self._data)
            merged.update(changes)
            self._write(merged)
            self._data = merged

    def _write(self, data: Dict[str, Any]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2, sort_keys=True)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            raise StoreError(f"Cannot write store file {self.path}: {e}") from e

    def as_dict(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self._data)
