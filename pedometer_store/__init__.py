"""
pedometer_store - Key-value persistence for the step tracker

Bounded Context: Persistence

Architecture:
- KeyValueStore: typed get/put with defaults, batched editor commits
- MemoryStore / JsonFileStore: concrete substrates
- StateRepository: PersistedState <-> flat key schema
"""

from pedometer_store.base import KeyValueStore, StoreEditor, StoreError, StoreTypeError
from pedometer_store.json_file import JsonFileStore
from pedometer_store.memory import MemoryStore
from pedometer_store.repository import StateRepository

__all__ = [
    "KeyValueStore",
    "StoreEditor",
    "StoreError",
    "StoreTypeError",
    "JsonFileStore",
    "MemoryStore",
    "StateRepository",
]
