"""Snapshot store tests."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from stepflow.engine.definition import define_flow
from stepflow.engine.reducer import create_initial_state
from stepflow.persistence.keys import KeySpace
from stepflow.persistence.stores import DictStorage, KVStorageAdapter, MemoryStore, SQLiteStorage
from stepflow.schemas.state_models import PersistedFlowState

DEFINITION = define_flow({"id": "f", "start": "a", "steps": {"a": {"next": "b"}, "b": {}}})


def _snapshot(**context: object) -> PersistedFlowState:
    return PersistedFlowState.from_flow_state(create_initial_state(DEFINITION, context))


class _AsyncStorage:
    """Backend whose methods are coroutines, like a remote KV client."""

    def __init__(self) -> None:
        self.items: dict[str, str] = {}

    async def get_item(self, key: str) -> str | None:
        return self.items.get(key)

    async def set_item(self, key: str, value: str) -> None:
        self.items[key] = value

    async def remove_item(self, key: str) -> None:
        self.items.pop(key, None)

    async def list_keys(self) -> list[str]:
        return list(self.items)


def _stores(tmp_path: Path) -> list:
    return [
        MemoryStore(),
        KVStorageAdapter(DictStorage()),
        KVStorageAdapter(_AsyncStorage()),
        KVStorageAdapter(SQLiteStorage(tmp_path / "db" / "flows.db")),
    ]


@pytest.mark.parametrize("index", range(4))
def test_store_contract(tmp_path: Path, index: int) -> None:
    """Every store keeps instances/variants apart and supports bulk removal."""
    store = _stores(tmp_path)[index]

    async def scenario() -> None:
        await store.set("f", _snapshot(n=1), instance_id="task-1")
        await store.set("f", _snapshot(n=2), instance_id="task-2")
        await store.set("f", _snapshot(n=3), instance_id="task-1", variant_id="b")
        await store.set("g", _snapshot(n=4))

        first = await store.get("f", instance_id="task-1")
        assert first is not None and first.context == {"n": 1}
        variant = await store.get("f", instance_id="task-1", variant_id="b")
        assert variant is not None and variant.context == {"n": 3}
        assert await store.get("f") is None

        await store.remove("f", instance_id="task-1")
        assert await store.get("f", instance_id="task-1") is None
        second = await store.get("f", instance_id="task-2")
        assert second is not None and second.context == {"n": 2}

        listed = await store.list("f")
        assert sorted((i.instance_id, i.variant_id) for i in listed) == [
            ("task-1", "b"),
            ("task-2", "default"),
        ]

        await store.remove_flow("f")
        assert await store.list("f") == []
        assert await store.get("g") is not None

        await store.remove_all()
        assert await store.get("g") is None

    asyncio.run(scenario())


def test_memory_store_isolates_stored_copies() -> None:
    store = MemoryStore()
    snapshot = _snapshot(items=[1])

    async def scenario() -> None:
        await store.set("f", snapshot)
        snapshot.context["items"].append(2)
        loaded = await store.get("f")
        assert loaded is not None and loaded.context == {"items": [1]}

    asyncio.run(scenario())


def test_kv_adapter_ignores_unreadable_payloads(caplog) -> None:  # type: ignore[no-untyped-def]
    storage = DictStorage()
    adapter = KVStorageAdapter(storage)
    storage.set_item(adapter.format_key("f"), "{corrupt")

    assert asyncio.run(adapter.get("f")) is None
    assert asyncio.run(adapter.list("f")) == []
    assert "unreadable snapshot" in caplog.text


def test_kv_adapter_leaves_foreign_keys_alone() -> None:
    storage = DictStorage({"theme": "dark"})
    adapter = KVStorageAdapter(storage, key_space=KeySpace(prefix="wizard"))
    asyncio.run(adapter.set("f", _snapshot()))
    asyncio.run(adapter.remove_all())
    assert storage.list_keys() == ["theme"]


def test_bulk_operations_noop_without_key_listing() -> None:
    class _Minimal:
        def __init__(self) -> None:
            self.items: dict[str, str] = {}

        def get_item(self, key: str) -> str | None:
            return self.items.get(key)

        def set_item(self, key: str, value: str) -> None:
            self.items[key] = value

        def remove_item(self, key: str) -> None:
            self.items.pop(key, None)

    backend = _Minimal()
    adapter = KVStorageAdapter(backend)
    asyncio.run(adapter.set("f", _snapshot()))
    asyncio.run(adapter.remove_flow("f"))
    assert len(backend.items) == 1
    assert asyncio.run(adapter.list("f")) == []


def test_sqlite_storage_survives_reopen(tmp_path: Path) -> None:
    db_path = tmp_path / "flows.db"
    SQLiteStorage(db_path).set_item("k", "v1")
    SQLiteStorage(db_path).set_item("k", "v2")
    reopened = SQLiteStorage(db_path)
    assert reopened.get_item("k") == "v2"
    assert reopened.list_keys() == ["k"]
    reopened.remove_item("k")
    assert reopened.get_item("k") is None
