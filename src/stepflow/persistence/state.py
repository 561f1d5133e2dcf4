"""Compatibility checks between persisted snapshots and flow definitions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from pydantic import ValidationError

from stepflow.engine.reducer import has_outgoing_transition
from stepflow.engine.runtime import ResolverMap, RuntimeFlowDefinition
from stepflow.schemas.definition_models import FlowDefinition
from stepflow.schemas.enums import FlowStatus
from stepflow.schemas.state_models import FlowState, PersistedFlowState


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)


def validate_persisted_state(
    state: FlowState | Mapping[str, Any],
    definition: FlowDefinition | RuntimeFlowDefinition,
    *,
    resolvers: ResolverMap | None = None,
) -> ValidationResult:
    """Check that a snapshot can be resumed against ``definition``.

    Verifies the snapshot shape, that every referenced step exists, that the
    path starts at ``start`` and ends on the current step, and that ``status``
    agrees with the current step's outgoing transitions.
    """
    if isinstance(definition, RuntimeFlowDefinition):
        if resolvers is None:
            resolvers = definition.resolvers
        definition = definition.config

    if isinstance(state, FlowState):
        snapshot = state
    else:
        try:
            snapshot = PersistedFlowState.model_validate(dict(state))
        except ValidationError as exc:
            return ValidationResult(
                valid=False,
                errors=[_format_shape_error(error) for error in exc.errors()],
            )

    errors: list[str] = []
    available = ", ".join(definition.step_ids)

    if not definition.has_step(snapshot.step_id):
        errors.append(
            f'Current step "{snapshot.step_id}" not found in flow definition. '
            f"Available steps: {available}"
        )

    if not snapshot.path:
        errors.append("Path cannot be empty")
    else:
        if snapshot.path[0].step_id != definition.start:
            errors.append(
                f'Path must start with "{definition.start}", got "{snapshot.path[0].step_id}"'
            )
        for entry in snapshot.path:
            if not definition.has_step(entry.step_id):
                errors.append(f'Path contains non-existent step "{entry.step_id}"')
        if snapshot.path[-1].step_id != snapshot.step_id:
            errors.append(
                f'Current stepId "{snapshot.step_id}" must match last path entry '
                f'"{snapshot.path[-1].step_id}"'
            )

    if not snapshot.history:
        errors.append("History cannot be empty")
    else:
        for step_id in sorted({entry.step_id for entry in snapshot.history}):
            if not definition.has_step(step_id):
                errors.append(f'History contains non-existent step "{step_id}"')
        if snapshot.history[-1].step_id != snapshot.step_id:
            errors.append(
                f'Current stepId "{snapshot.step_id}" must match last history entry '
                f'"{snapshot.history[-1].step_id}"'
            )

    if definition.has_step(snapshot.step_id):
        expected = (
            FlowStatus.ACTIVE
            if has_outgoing_transition(definition, snapshot.step_id, resolvers)
            else FlowStatus.COMPLETE
        )
        if snapshot.status is not expected:
            errors.append(
                f'Status "{snapshot.status.value}" doesn\'t match expected '
                f'"{expected.value}" for step "{snapshot.step_id}"'
            )

    return ValidationResult(valid=not errors, errors=errors)


def _format_shape_error(error: Mapping[str, Any]) -> str:
    location = ".".join(str(part) for part in error.get("loc", ())) or "<root>"
    return f"{location}: {error.get('msg', 'invalid value')}"
