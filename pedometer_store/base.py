"""
Key-Value Store Interface
=========================

Bounded Context: Persistence substrate.

A flat string-keyed store with typed accessors and caller-supplied defaults,
in the manner of mobile preference stores. Writes go through an editor batch
that is committed as one unit when the `with` block exits cleanly.

Example:
    >>> store = MemoryStore()
    >>> with store.edit() as editor:
    ...     editor.put_float("initialStepCount", 500.0)
    ...     editor.put_long("lastResetTime", 1736150400000)
    >>> store.get_float("initialStepCount", -1.0)
    500.0
"""

import math
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional


class StoreError(Exception):
    """Raised when the backing store cannot be read or written."""
    pass


class StoreTypeError(StoreError, TypeError):
    """Raised when a stored value does not match the requested type."""
    pass


class StoreEditor:
    """
    Batch of typed writes, committed together.

    Nothing reaches the store if the `with` block raises.
    """

    def __init__(self, store: "KeyValueStore"):
        self._store = store
        self._changes: Dict[str, Any] = {}

    def put_float(self, key: str, value: float) -> "StoreEditor":
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise StoreTypeError(f"put_float('{key}') expects a number, got {type(value).__name__}")
        if not math.isfinite(value):
            raise StoreTypeError(f"put_float('{key}') expects a finite number, got {value}")
        self._changes[key] = float(value)
        return self

    def put_int(self, key: str, value: int) -> "StoreEditor":
        if isinstance(value, bool) or not isinstance(value, int):
            raise StoreTypeError(f"put_int('{key}') expects an int, got {type(value).__name__}")
        self._changes[key] = int(value)
        return self

    def put_long(self, key: str, value: int) -> "StoreEditor":
        return self.put_int(key, value)

    def put_bool(self, key: str, value: bool) -> "StoreEditor":
        if not isinstance(value, bool):
            raise StoreTypeError(f"put_bool('{key}') expects a bool, got {type(value).__name__}")
        self._changes[key] = value
        return self

    def put_string(self, key: str, value: str) -> "StoreEditor":
        if not isinstance(value, str):
            raise StoreTypeError(f"put_string('{key}') expects a str, got {type(value).__name__}")
        self._changes[key] = value
        return self

    @property
    def pending(self) -> Dict[str, Any]:
        return dict(self._changes)

    def commit(self) -> None:
        if self._changes:
            self._store._commit(dict(self._changes))
            self._changes.clear()

    def __enter__(self) -> "StoreEditor":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is None:
            self.commit()
        else:
            self._changes.clear()
        return False


class KeyValueStore(ABC):
    """
    Abstract typed key-value store.

    Subclasses implement raw `_read()` and atomic `_commit()`.
    """

    @abstractmethod
    def _read(self, key: str) -> Optional[Any]:
        """Return the raw stored value, or None when the key is absent."""
        raise NotImplementedError("Subclasses must implement _read()")

    @abstractmethod
    def _commit(self, changes: Dict[str, Any]) -> None:
        """Apply all `changes` as one write."""
        raise NotImplementedError("Subclasses must implement _commit()")

    def contains(self, key: str) -> bool:
        return self._read(key) is not None

    def edit(self) -> StoreEditor:
        return StoreEditor(self)

    def get_float(self, key: str, default: float) -> float:
        value = self._read(key)
        if value is None:
            return default
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise StoreTypeError(f"'{key}' holds {type(value).__name__}, not float")
        return float(value)

    def get_int(self, key: str, default: int) -> int:
        value = self._read(key)
        if value is None:
            return default
        if isinstance(value, bool) or not isinstance(value, int):
            raise StoreTypeError(f"'{key}' holds {type(value).__name__}, not int")
        return value

    def get_long(self, key: str, default: int) -> int:
        return self.get_int(key, default)

    def get_bool(self, key: str, default: bool) -> bool:
        value = self._read(key)
        if value is None:
            return default
        if not isinstance(value, bool):
            raise StoreTypeError(f"'{key}' holds {type(value).__name__}, not bool")
        return value

    def get_string(self, key: str, default: str) -> str:
        value = self._read(key)
        if value is None:
            return default
        if not isinstance(value, str):
            raise StoreTypeError(f"'{key}' holds {type(value).__name__}, not str")
        return value
