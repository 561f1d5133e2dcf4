"""Pure transition reducer for flow state."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any, Callable, Mapping

from stepflow.engine.actions import (
    Back,
    ContextUpdate,
    FlowAction,
    ForwardAction,
    Next,
    Reset,
    Restore,
    SetContext,
    Skip,
)
from stepflow.engine.runtime import ResolverMap, RuntimeFlowDefinition
from stepflow.errors import NavigationAmbiguityError
from stepflow.schemas.definition_models import FlowDefinition
from stepflow.schemas.enums import FlowStatus, NavigationAction
from stepflow.schemas.state_models import FlowState, HistoryEntry, PersistedFlowState

LOGGER = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


def apply_context_update(
    current: Mapping[str, Any],
    update: ContextUpdate | None,
) -> dict[str, Any]:
    """Shallow-merge a mapping, or the mapping returned by an updater, into context."""
    if update is None:
        return dict(current)
    partial = update(dict(current)) if callable(update) else update
    if not isinstance(partial, Mapping):
        raise TypeError(
            f"Context update must produce a mapping, got {type(partial).__name__}"
        )
    return {**current, **partial}


def has_outgoing_transition(
    definition: FlowDefinition,
    step_id: str,
    resolvers: ResolverMap | None = None,
) -> bool:
    """Return whether ``step_id`` can still move forward."""
    if resolvers and step_id in resolvers:
        return True
    step = definition.get_step(step_id)
    return step is not None and not step.is_terminal


def resolve_destination(
    definition: FlowDefinition,
    step_id: str,
    context: dict[str, Any],
    *,
    target: str | None = None,
    resolvers: ResolverMap | None = None,
) -> tuple[str | None, str]:
    """Compute the destination for NEXT/SKIP.

    Priority: explicit target (verbatim), resolver for the current step, then
    the static ``next``. Returns ``(destination, reason)``; ``reason`` explains
    a ``None`` destination.
    """
    if target is not None:
        return target, "explicit target"

    resolver = (resolvers or {}).get(step_id)
    if resolver is not None:
        resolved = resolver(context)
        if resolved is None:
            return None, "resolver returned no step"
        if not definition.has_step(resolved):
            return None, f"resolver returned unknown step {resolved!r}"
        return resolved, "resolver"

    step = definition.get_step(step_id)
    if step is None:
        return None, "current step is not part of the definition"
    if step.next is None:
        return None, "step is terminal"
    if isinstance(step.next, str):
        return step.next, "static next"
    if isinstance(step.next, tuple):
        return None, (
            f"next has several candidates ({', '.join(step.next)}); "
            "pass a target or register a resolver"
        )
    dynamic = step.next(context)
    if dynamic is None:
        return None, "next function returned no step"
    return dynamic, "next function"


def create_initial_state(
    definition: FlowDefinition | RuntimeFlowDefinition,
    initial_context: Mapping[str, Any] | None = None,
    *,
    resolvers: ResolverMap | None = None,
    clock: Clock = utc_now,
) -> FlowState:
    """Create a fresh state positioned on the start step."""
    config, resolvers = _unwrap(definition, resolvers)
    now = clock()
    entry = HistoryEntry(step_id=config.start, started_at=now)
    complete = not has_outgoing_transition(config, config.start, resolvers)
    return FlowState(
        step_id=config.start,
        context=dict(initial_context or {}),
        status=FlowStatus.COMPLETE if complete else FlowStatus.ACTIVE,
        path=(entry,),
        history=(entry,),
        started_at=now,
        completed_at=now if complete else None,
    )


def reduce(
    state: FlowState,
    action: FlowAction,
    definition: FlowDefinition | RuntimeFlowDefinition,
    *,
    resolvers: ResolverMap | None = None,
    clock: Clock = utc_now,
    strict: bool = False,
) -> FlowState:
    """Apply ``action`` to ``state`` and return the resulting state.

    Never mutates its inputs. With ``strict`` an unresolvable NEXT/SKIP raises
    ``NavigationAmbiguityError`` instead of leaving the step unchanged.
    """
    config, resolvers = _unwrap(definition, resolvers)

    if isinstance(action, (Next, Skip)):
        return _advance(state, action, config, resolvers, clock=clock, strict=strict)
    if isinstance(action, Back):
        return _go_back(state, clock=clock)
    if isinstance(action, SetContext):
        return state.model_copy(
            update={"context": apply_context_update(state.context, action.update)}
        )
    if isinstance(action, Restore):
        restored = action.state
        if isinstance(restored, PersistedFlowState):
            return restored.to_flow_state()
        return restored
    if isinstance(action, Reset):
        return create_initial_state(
            config, action.initial_context, resolvers=resolvers, clock=clock
        )
    raise TypeError(f"Unsupported flow action: {action!r}")


def _advance(
    state: FlowState,
    action: ForwardAction,
    definition: FlowDefinition,
    resolvers: ResolverMap | None,
    *,
    clock: Clock,
    strict: bool,
) -> FlowState:
    context = (
        apply_context_update(state.context, action.update)
        if action.update is not None
        else state.context
    )
    updated = (
        state
        if context is state.context
        else state.model_copy(update={"context": context})
    )

    if state.is_complete and action.target is None:
        LOGGER.debug("Flow already complete at %s; forward navigation ignored", state.step_id)
        return updated

    destination, reason = resolve_destination(
        definition,
        state.step_id,
        context,
        target=action.target,
        resolvers=resolvers,
    )
    if destination is None:
        if strict:
            raise NavigationAmbiguityError(state.step_id, reason)
        LOGGER.warning(
            "%s from step %r did not move: %s",
            action.navigation.value.upper(),
            state.step_id,
            reason,
        )
        return updated

    now = clock()
    opened = HistoryEntry(step_id=destination, started_at=now)
    path = (*_close_last(state.path, at=now, action=action), opened)
    history = (*_close_last(state.history, at=now, action=action), opened)
    complete = not has_outgoing_transition(definition, destination, resolvers)
    return updated.model_copy(
        update={
            "step_id": destination,
            "path": path,
            "history": history,
            "status": FlowStatus.COMPLETE if complete else FlowStatus.ACTIVE,
            "completed_at": now if complete else None,
        }
    )


def _go_back(state: FlowState, *, clock: Clock) -> FlowState:
    if len(state.path) <= 1:
        return state

    now = clock()
    remaining = state.path[:-1]
    returned_to = HistoryEntry(step_id=remaining[-1].step_id, started_at=now)
    history = (*_close_last(state.history, at=now, action=Back()), returned_to)
    return state.model_copy(
        update={
            "step_id": returned_to.step_id,
            "path": (*remaining[:-1], returned_to),
            "history": history,
            "status": FlowStatus.ACTIVE,
            "completed_at": None,
        }
    )


def _close_last(
    entries: tuple[HistoryEntry, ...],
    *,
    at: datetime,
    action: FlowAction,
) -> tuple[HistoryEntry, ...]:
    if not entries or not entries[-1].is_open:
        return entries
    navigation = action.navigation if isinstance(action, (Next, Skip)) else NavigationAction.BACK
    return (*entries[:-1], entries[-1].close(at=at, action=navigation))


def _unwrap(
    definition: FlowDefinition | RuntimeFlowDefinition,
    resolvers: ResolverMap | None,
) -> tuple[FlowDefinition, ResolverMap | None]:
    if isinstance(definition, RuntimeFlowDefinition):
        if resolvers is None:
            resolvers = definition.resolvers
        return definition.config, resolvers
    return definition, resolvers

