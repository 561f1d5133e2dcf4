"""Storage-agnostic save/restore/remove with versioning and migration."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, Callable, Mapping, Protocol

from pydantic import ValidationError

from stepflow.engine.runtime import MigrateFunction, RuntimeFlowDefinition
from stepflow.errors import (
    PersistedStateValidationError,
    PersistenceError,
    VersionMismatchError,
)
from stepflow.persistence.state import validate_persisted_state
from stepflow.persistence.stores.base import FlowStore
from stepflow.schemas.definition_models import FlowDefinition
from stepflow.schemas.state_models import (
    FlowState,
    PersistedFlowInstance,
    PersistedFlowState,
)

LOGGER = logging.getLogger(__name__)

SaveCallback = Callable[[str, PersistedFlowState], None]
RestoreCallback = Callable[[str, PersistedFlowState], None]
ErrorCallback = Callable[[PersistenceError], None]
StateValidator = Callable[[PersistedFlowState], bool]


@dataclass(frozen=True)
class PersistOptions:
    """Identity and versioning inputs for one persister call."""

    version: str | None = None
    instance_id: str | None = None
    variant_id: str | None = None
    migrate: MigrateFunction | None = None


class FlowPersister(Protocol):
    """The only persistence boundary hosts call into."""

    async def save(
        self,
        flow_id: str,
        state: FlowState,
        options: PersistOptions | None = None,
    ) -> PersistedFlowState | None:
        """Persist ``state``; ``None`` when the write failed."""

    async def restore(
        self,
        flow_id: str,
        options: PersistOptions | None = None,
    ) -> PersistedFlowState | None:
        """Load a usable snapshot; ``None`` means start from initial state."""

    async def remove(self, flow_id: str, options: PersistOptions | None = None) -> None:
        """Delete one ``(flow, instance, variant)`` snapshot."""


class Persister:
    """Default ``FlowPersister`` over any ``FlowStore``.

    Failures never propagate: they are logged, wrapped in ``PersistenceError``
    and passed to ``on_error``. Overlapping saves are last-write-wins unless
    ``serialize_saves`` queues them per key.
    """

    def __init__(
        self,
        store: FlowStore,
        *,
        definition: FlowDefinition | RuntimeFlowDefinition | None = None,
        validate: StateValidator | None = None,
        ttl: timedelta | None = None,
        serialize_saves: bool = False,
        on_save: SaveCallback | None = None,
        on_restore: RestoreCallback | None = None,
        on_error: ErrorCallback | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.definition = definition
        self.validate = validate
        self.ttl = ttl
        self.serialize_saves = serialize_saves
        self.on_save = on_save
        self.on_restore = on_restore
        self.on_error = on_error
        self._clock = clock or (lambda: datetime.now(UTC))
        self._save_locks: dict[tuple[str, str | None, str | None], asyncio.Lock] = {}

    async def save(
        self,
        flow_id: str,
        state: FlowState,
        options: PersistOptions | None = None,
    ) -> PersistedFlowState | None:
        opts = options or PersistOptions()
        persisted = PersistedFlowState.from_flow_state(
            state,
            version=opts.version,
            instance_id=opts.instance_id,
            variant_id=opts.variant_id,
            saved_at=self._clock(),
        )
        try:
            if self.serialize_saves:
                async with self._lock_for(flow_id, opts):
                    await self._write(flow_id, persisted, opts)
            else:
                await self._write(flow_id, persisted, opts)
        except Exception as exc:  # noqa: BLE001
            self._report(
                PersistenceError(
                    f"Failed to save flow {flow_id!r}: {exc}",
                    operation="save",
                    flow_id=flow_id,
                ),
                exc,
            )
            return None
        if self.on_save is not None:
            self.on_save(flow_id, persisted)
        return persisted

    async def restore(
        self,
        flow_id: str,
        options: PersistOptions | None = None,
    ) -> PersistedFlowState | None:
        opts = options or PersistOptions()
        try:
            state = await self.store.get(
                flow_id, instance_id=opts.instance_id, variant_id=opts.variant_id
            )
            if state is None:
                return None
            if self._expired(state):
                LOGGER.info("Discarding expired snapshot for flow %s", flow_id)
                await self.store.remove(
                    flow_id, instance_id=opts.instance_id, variant_id=opts.variant_id
                )
                return None
            state = self._reconcile_version(flow_id, state, opts)
            if state is None:
                return None
            if not self._is_valid(flow_id, state):
                return None
        except Exception as exc:  # noqa: BLE001
            self._report(
                PersistenceError(
                    f"Failed to restore flow {flow_id!r}: {exc}",
                    operation="restore",
                    flow_id=flow_id,
                ),
                exc,
            )
            return None
        if self.on_restore is not None:
            self.on_restore(flow_id, state)
        return state

    async def remove(self, flow_id: str, options: PersistOptions | None = None) -> None:
        opts = options or PersistOptions()
        try:
            await self.store.remove(
                flow_id, instance_id=opts.instance_id, variant_id=opts.variant_id
            )
        except Exception as exc:  # noqa: BLE001
            self._report(
                PersistenceError(
                    f"Failed to remove flow {flow_id!r}: {exc}",
                    operation="remove",
                    flow_id=flow_id,
                ),
                exc,
            )

    async def remove_flow(self, flow_id: str) -> None:
        """Remove every instance and variant of ``flow_id``."""
        try:
            await self.store.remove_flow(flow_id)
        except Exception as exc:  # noqa: BLE001
            self._report(
                PersistenceError(
                    f"Failed to remove snapshots of flow {flow_id!r}: {exc}",
                    operation="remove_flow",
                    flow_id=flow_id,
                ),
                exc,
            )

    async def remove_all(self) -> None:
        try:
            await self.store.remove_all()
        except Exception as exc:  # noqa: BLE001
            self._report(
                PersistenceError(
                    f"Failed to remove all snapshots: {exc}",
                    operation="remove_all",
                    flow_id="*",
                ),
                exc,
            )

    async def list(self, flow_id: str) -> list[PersistedFlowInstance]:
        try:
            return await self.store.list(flow_id)
        except Exception as exc:  # noqa: BLE001
            self._report(
                PersistenceError(
                    f"Failed to list snapshots of flow {flow_id!r}: {exc}",
                    operation="list",
                    flow_id=flow_id,
                ),
                exc,
            )
            return []

    async def _write(
        self,
        flow_id: str,
        persisted: PersistedFlowState,
        opts: PersistOptions,
    ) -> None:
        await self.store.set(
            flow_id,
            persisted,
            instance_id=opts.instance_id,
            variant_id=opts.variant_id,
        )

    def _lock_for(self, flow_id: str, opts: PersistOptions) -> asyncio.Lock:
        key = (flow_id, opts.instance_id, opts.variant_id)
        lock = self._save_locks.get(key)
        if lock is None:
            lock = self._save_locks[key] = asyncio.Lock()
        return lock

    def _expired(self, state: PersistedFlowState) -> bool:
        if self.ttl is None or state.saved_at is None:
            return False
        return self._clock() - state.saved_at > self.ttl

    def _reconcile_version(
        self,
        flow_id: str,
        state: PersistedFlowState,
        opts: PersistOptions,
    ) -> PersistedFlowState | None:
        if opts.version is None or state.version == opts.version:
            return state
        if opts.migrate is None:
            self._report(
                VersionMismatchError(
                    flow_id=flow_id,
                    stored_version=state.version,
                    expected_version=opts.version,
                )
            )
            return None
        migrated = opts.migrate(state, state.version)
        if migrated is None:
            LOGGER.info(
                "Migration from version %s discarded snapshot for flow %s",
                state.version,
                flow_id,
            )
            return None
        return _coerce_migrated(migrated, opts)

    def _is_valid(self, flow_id: str, state: PersistedFlowState) -> bool:
        if self.definition is not None:
            result = validate_persisted_state(state, self.definition)
            if not result.valid:
                self._report(
                    PersistedStateValidationError(flow_id=flow_id, errors=result.errors)
                )
                return False
        if self.validate is not None and not self.validate(state):
            LOGGER.info("Custom validation rejected snapshot for flow %s", flow_id)
            return False
        return True

    def _report(self, error: PersistenceError, cause: BaseException | None = None) -> None:
        if cause is not None:
            error.__cause__ = cause
        LOGGER.warning("%s", error)
        if self.on_error is not None:
            self.on_error(error)


def _coerce_migrated(
    migrated: PersistedFlowState | Mapping[str, Any],
    opts: PersistOptions,
) -> PersistedFlowState:
    if isinstance(migrated, PersistedFlowState):
        return migrated.model_copy(update={"version": opts.version})
    if isinstance(migrated, FlowState):
        return PersistedFlowState.from_flow_state(
            migrated,
            version=opts.version,
            instance_id=opts.instance_id,
            variant_id=opts.variant_id,
        )
    try:
        return PersistedFlowState.model_validate({**migrated, "version": opts.version})
    except ValidationError as exc:
        raise ValueError(f"migrate returned an invalid snapshot: {exc}") from exc


def create_persister(store: FlowStore, **options: Any) -> Persister:
    """Build a ``Persister``; keyword options are passed through."""
    return Persister(store, **options)
