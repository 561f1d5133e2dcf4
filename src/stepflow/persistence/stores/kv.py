"""Adapter turning any key-value backend into a ``FlowStore``."""

from __future__ import annotations

import logging
from typing import Any

from stepflow.persistence.keys import KeySpace
from stepflow.persistence.serializer import DEFAULT_SERIALIZER, Serializer
from stepflow.persistence.stores.base import KVStorage, maybe_await
from stepflow.schemas.state_models import PersistedFlowInstance, PersistedFlowState

LOGGER = logging.getLogger(__name__)


class KVStorageAdapter:
    """Serializes snapshots into a ``KVStorage`` backend.

    Bulk operations (``remove_flow``, ``remove_all``, ``list``) need the backend
    to expose ``list_keys()``; without it they are no-ops returning nothing.
    """

    def __init__(
        self,
        storage: KVStorage[Any],
        *,
        serializer: Serializer[Any] = DEFAULT_SERIALIZER,
        key_space: KeySpace | None = None,
    ) -> None:
        self.storage = storage
        self.serializer = serializer
        self.key_space = key_space or KeySpace()

    def format_key(
        self,
        flow_id: str,
        instance_id: str | None = None,
        variant_id: str | None = None,
    ) -> str:
        return self.key_space.format_key(flow_id, instance_id, variant_id)

    async def get(
        self,
        flow_id: str,
        *,
        instance_id: str | None = None,
        variant_id: str | None = None,
    ) -> PersistedFlowState | None:
        key = self.format_key(flow_id, instance_id, variant_id)
        data = await maybe_await(self.storage.get_item(key))
        if data is None:
            return None
        state = self.serializer.deserialize(data)
        if state is None:
            LOGGER.warning("Ignoring unreadable snapshot at key %s", key)
        return state

    async def set(
        self,
        flow_id: str,
        state: PersistedFlowState,
        *,
        instance_id: str | None = None,
        variant_id: str | None = None,
    ) -> None:
        key = self.format_key(flow_id, instance_id, variant_id)
        await maybe_await(self.storage.set_item(key, self.serializer.serialize(state)))
        LOGGER.debug("Stored snapshot at key %s", key)

    async def remove(
        self,
        flow_id: str,
        *,
        instance_id: str | None = None,
        variant_id: str | None = None,
    ) -> None:
        key = self.format_key(flow_id, instance_id, variant_id)
        await maybe_await(self.storage.remove_item(key))

    async def remove_flow(self, flow_id: str) -> None:
        for key in await self._owned_keys(flow_id):
            await maybe_await(self.storage.remove_item(key))

    async def remove_all(self) -> None:
        for key in await self._owned_keys():
            await maybe_await(self.storage.remove_item(key))

    async def list(self, flow_id: str) -> list[PersistedFlowInstance]:
        instances: list[PersistedFlowInstance] = []
        for key in await self._owned_keys(flow_id):
            parsed = self.key_space.parse_key(key)
            data = await maybe_await(self.storage.get_item(key))
            if parsed is None or data is None:
                continue
            state = self.serializer.deserialize(data)
            if state is None:
                LOGGER.warning("Skipping unreadable snapshot at key %s", key)
                continue
            instances.append(
                PersistedFlowInstance(
                    flow_id=parsed.flow_id,
                    instance_id=parsed.instance_id,
                    variant_id=parsed.variant_id,
                    state=state,
                )
            )
        return instances

    async def _owned_keys(self, flow_id: str | None = None) -> list[str]:
        list_keys = getattr(self.storage, "list_keys", None)
        if list_keys is None:
            LOGGER.debug("Storage backend cannot enumerate keys; bulk operation skipped")
            return []
        keys = await maybe_await(list_keys())
        return self.key_space.filter_keys(list(keys), flow_id)
