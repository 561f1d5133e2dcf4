"""Persistence exports."""

from stepflow.persistence.keys import KeySpace, StorageKey
from stepflow.persistence.persister import (
    FlowPersister,
    PersistOptions,
    Persister,
    create_persister,
)
from stepflow.persistence.serializer import (
    JsonBytesSerializer,
    JsonSerializer,
    Serializer,
    StringSerializer,
)
from stepflow.persistence.state import ValidationResult, validate_persisted_state
from stepflow.persistence.stores import (
    DictStorage,
    FlowStore,
    KVStorage,
    KVStorageAdapter,
    MemoryStore,
    SQLiteStorage,
)

__all__ = [
    "DictStorage",
    "FlowPersister",
    "FlowStore",
    "JsonBytesSerializer",
    "JsonSerializer",
    "KVStorage",
    "KVStorageAdapter",
    "KeySpace",
    "MemoryStore",
    "PersistOptions",
    "Persister",
    "SQLiteStorage",
    "Serializer",
    "StorageKey",
    "StringSerializer",
    "ValidationResult",
    "create_persister",
    "validate_persisted_state",
]
