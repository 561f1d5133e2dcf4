"""Snapshot store implementations."""

from stepflow.persistence.stores.base import FlowStore, KVStorage
from stepflow.persistence.stores.dict_storage import DictStorage
from stepflow.persistence.stores.kv import KVStorageAdapter
from stepflow.persistence.stores.memory import MemoryStore
from stepflow.persistence.stores.sqlite import SQLiteStorage

__all__ = [
    "DictStorage",
    "FlowStore",
    "KVStorage",
    "KVStorageAdapter",
    "MemoryStore",
    "SQLiteStorage",
]
