"""Storage contracts used by the persister."""

from __future__ import annotations

import inspect
from typing import Awaitable, Protocol, TypeVar, runtime_checkable

from stepflow.schemas.state_models import PersistedFlowInstance, PersistedFlowState

T = TypeVar("T")


class FlowStore(Protocol):
    """Snapshot store addressed by flow, instance and variant identity."""

    async def get(
        self,
        flow_id: str,
        *,
        instance_id: str | None = None,
        variant_id: str | None = None,
    ) -> PersistedFlowState | None:
        """Return the stored snapshot or ``None``."""

    async def set(
        self,
        flow_id: str,
        state: PersistedFlowState,
        *,
        instance_id: str | None = None,
        variant_id: str | None = None,
    ) -> None:
        """Store ``state``, replacing any previous snapshot for the same key."""

    async def remove(
        self,
        flow_id: str,
        *,
        instance_id: str | None = None,
        variant_id: str | None = None,
    ) -> None:
        """Delete exactly one snapshot."""

    async def remove_flow(self, flow_id: str) -> None:
        """Delete every instance and variant of ``flow_id``."""

    async def remove_all(self) -> None:
        """Delete every snapshot owned by this store."""

    async def list(self, flow_id: str) -> list[PersistedFlowInstance]:
        """Return every stored instance of ``flow_id``."""


@runtime_checkable
class KVStorage(Protocol[T]):
    """Key-value backend; methods may be plain or ``async``."""

    def get_item(self, key: str) -> T | None | Awaitable[T | None]: ...

    def set_item(self, key: str, value: T) -> None | Awaitable[None]: ...

    def remove_item(self, key: str) -> None | Awaitable[None]: ...


async def maybe_await(value: T | Awaitable[T]) -> T:
    """Await ``value`` when a backend returned an awaitable."""
    if inspect.isawaitable(value):
        return await value
    return value
