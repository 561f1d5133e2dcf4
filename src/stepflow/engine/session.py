"""Explicitly owned flow state for one ``(flow_id, instance_id)`` pair.

``FlowSession`` is the framework-agnostic seam a host binds its UI to: it
holds the current ``FlowState``, routes every change through the reducer,
emits lifecycle callbacks, and talks to an optional persister.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from dataclasses import dataclass
from typing import Any, Callable, Literal, Mapping

from stepflow.engine.actions import (
    Back,
    ContextUpdate,
    FlowAction,
    Next,
    Reset,
    Restore,
    SetContext,
    Skip,
)
from stepflow.engine.reducer import Clock, create_initial_state, reduce, utc_now
from stepflow.engine.runtime import RuntimeFlowDefinition
from stepflow.errors import PersistedStateValidationError
from stepflow.persistence.persister import FlowPersister, PersistOptions
from stepflow.persistence.state import validate_persisted_state
from stepflow.schemas.definition_models import FlowDefinition
from stepflow.schemas.enums import FlowStatus, SaveMode, normalize_save_mode
from stepflow.schemas.state_models import FlowState, HistoryEntry, PersistedFlowState

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransitionEvent:
    from_step: str
    to_step: str
    direction: Literal["forward", "backward"]
    old_context: dict[str, Any]
    new_context: dict[str, Any]


TransitionCallback = Callable[[TransitionEvent], None]
ContextCallback = Callable[[dict[str, Any], dict[str, Any]], None]
StateCallback = Callable[[FlowState], None]
ErrorCallback = Callable[[Exception], None]


class FlowSession:
    """Drives one flow instance.

    ``initial_context`` is deep-copied once here; ``reset()`` always returns to
    that snapshot regardless of what the host holds later.
    """

    def __init__(
        self,
        definition: FlowDefinition | RuntimeFlowDefinition,
        initial_context: Mapping[str, Any] | None = None,
        *,
        instance_id: str | None = None,
        persister: FlowPersister | None = None,
        save_mode: SaveMode | str = SaveMode.NAVIGATION,
        strict: bool = False,
        clock: Clock = utc_now,
        on_next: TransitionCallback | None = None,
        on_skip: TransitionCallback | None = None,
        on_back: TransitionCallback | None = None,
        on_transition: TransitionCallback | None = None,
        on_context_update: ContextCallback | None = None,
        on_complete: StateCallback | None = None,
        on_persistence_error: ErrorCallback | None = None,
    ) -> None:
        if isinstance(definition, FlowDefinition):
            definition = RuntimeFlowDefinition(config=definition)
        self.definition = definition
        self.instance_id = instance_id
        self.persister = persister
        self.save_mode = normalize_save_mode(save_mode)
        self.strict = strict
        self._clock = clock
        self._initial_context = copy.deepcopy(dict(initial_context or {}))
        self._state = create_initial_state(
            definition, copy.deepcopy(self._initial_context), clock=clock
        )
        self._restoring = False
        self._pending_saves: set[asyncio.Task[Any]] = set()
        self.on_next = on_next
        self.on_skip = on_skip
        self.on_back = on_back
        self.on_transition = on_transition
        self.on_context_update = on_context_update
        self.on_complete = on_complete
        self.on_persistence_error = on_persistence_error

    @property
    def flow_id(self) -> str:
        return self.definition.id

    @property
    def state(self) -> FlowState:
        return self._state

    @property
    def step_id(self) -> str:
        return self._state.step_id

    @property
    def context(self) -> dict[str, Any]:
        return self._state.context

    @property
    def status(self) -> FlowStatus:
        return self._state.status

    @property
    def path(self) -> tuple[HistoryEntry, ...]:
        return self._state.path

    @property
    def history(self) -> tuple[HistoryEntry, ...]:
        return self._state.history

    @property
    def is_restoring(self) -> bool:
        return self._restoring

    @property
    def can_go_back(self) -> bool:
        return len(self._state.path) > 1

    @property
    def initial_context(self) -> dict[str, Any]:
        return copy.deepcopy(self._initial_context)

    @property
    def next_steps(self) -> tuple[str, ...]:
        """Statically declared candidates for leaving the current step."""
        step = self.definition.config.get_step(self._state.step_id)
        return step.static_targets if step is not None else ()

    def persist_options(self) -> PersistOptions:
        return PersistOptions(
            version=self.definition.version,
            instance_id=self.instance_id,
            variant_id=self.definition.variant_id,
            migrate=self.definition.migrate,
        )

    def dispatch(self, action: FlowAction) -> FlowState:
        if self._restoring and not isinstance(action, Restore):
            LOGGER.warning(
                "Dispatching %s to flow %s while a restore is in flight",
                type(action).__name__,
                self.flow_id,
            )
        previous = self._state
        self._state = reduce(
            previous,
            action,
            self.definition,
            clock=self._clock,
            strict=self.strict,
        )
        self._notify(action, previous, self._state)
        self._schedule_autosave(action, previous, self._state)
        return self._state

    def next(self, target: str | None = None, update: ContextUpdate | None = None) -> FlowState:
        return self.dispatch(Next(target=target, update=update))

    def skip(self, target: str | None = None, update: ContextUpdate | None = None) -> FlowState:
        return self.dispatch(Skip(target=target, update=update))

    def back(self) -> FlowState:
        return self.dispatch(Back())

    def set_context(self, update: ContextUpdate) -> FlowState:
        return self.dispatch(SetContext(update=update))

    async def restore(self) -> FlowState:
        """Load the persisted snapshot once; keeps the initial state on any miss.

        The snapshot is checked against this session's definition before it
        becomes live, whatever persister produced it.
        """
        if self.persister is None:
            return self._state
        self._restoring = True
        try:
            persisted = await self.persister.restore(self.flow_id, self.persist_options())
        except Exception as exc:  # noqa: BLE001
            self._persistence_failed(exc)
            return self._state
        finally:
            self._restoring = False
        if persisted is None:
            return self._state
        result = validate_persisted_state(persisted, self.definition)
        if not result.valid:
            self._persistence_failed(
                PersistedStateValidationError(flow_id=self.flow_id, errors=result.errors)
            )
            return self._state
        self.dispatch(Restore(state=persisted))
        return self._state

    async def save(self) -> PersistedFlowState | None:
        if self.persister is None:
            return None
        try:
            return await self.persister.save(
                self.flow_id, self._state, self.persist_options()
            )
        except Exception as exc:  # noqa: BLE001
            self._persistence_failed(exc)
            return None

    async def reset(self) -> FlowState:
        """Drop the persisted snapshot and return to the captured initial context."""
        if self.persister is not None:
            try:
                await self.persister.remove(self.flow_id, self.persist_options())
            except Exception as exc:  # noqa: BLE001
                self._persistence_failed(exc)
        return self.dispatch(Reset(initial_context=copy.deepcopy(self._initial_context)))

    async def flush(self) -> None:
        """Wait for auto-saves scheduled by earlier dispatches."""
        if self._pending_saves:
            await asyncio.gather(*self._pending_saves, return_exceptions=True)

    def _notify(self, action: FlowAction, previous: FlowState, current: FlowState) -> None:
        moved = previous.step_id != current.step_id
        if moved and isinstance(action, (Next, Skip, Back)):
            event = TransitionEvent(
                from_step=previous.step_id,
                to_step=current.step_id,
                direction="backward" if isinstance(action, Back) else "forward",
                old_context=previous.context,
                new_context=current.context,
            )
            if isinstance(action, Back):
                specific = self.on_back
            elif isinstance(action, Skip):
                specific = self.on_skip
            else:
                specific = self.on_next
            if specific is not None:
                specific(event)
            if self.on_transition is not None:
                self.on_transition(event)
        if (
            self.on_context_update is not None
            and isinstance(action, (Next, Skip, SetContext))
            and previous.context != current.context
        ):
            self.on_context_update(previous.context, current.context)
        if (
            self.on_complete is not None
            and current.is_complete
            and not previous.is_complete
            and isinstance(action, (Next, Skip))
        ):
            self.on_complete(current)

    def _schedule_autosave(
        self,
        action: FlowAction,
        previous: FlowState,
        current: FlowState,
    ) -> None:
        if self.persister is None or current is previous:
            return
        if isinstance(action, (Restore, Reset)) or self.save_mode is SaveMode.MANUAL:
            return
        if self.save_mode is SaveMode.NAVIGATION and previous.step_id == current.step_id:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            LOGGER.debug("No running event loop; auto-save for %s left to host", self.flow_id)
            return
        task = loop.create_task(self.save())
        self._pending_saves.add(task)
        task.add_done_callback(self._pending_saves.discard)

    def _persistence_failed(self, exc: Exception) -> None:
        LOGGER.warning("Persistence failure in flow %s: %s", self.flow_id, exc)
        if self.on_persistence_error is not None:
            self.on_persistence_error(exc)
