"""Flow definition construction and static graph validation."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Mapping, overload

from pydantic import ValidationError

from stepflow.errors import DefinitionError, DefinitionIssue
from stepflow.schemas.definition_models import FlowDefinition

if TYPE_CHECKING:
    from stepflow.engine.runtime import RuntimeConfigBuilder, RuntimeFlowDefinition


def collect_definition_issues(definition: FlowDefinition) -> list[DefinitionIssue]:
    """Return every dangling start/next reference in ``definition``.

    Callable ``next`` values and resolvers cannot be checked ahead of time and
    are skipped.
    """
    known = definition.step_ids
    available = ", ".join(known)
    issues: list[DefinitionIssue] = []

    if not definition.has_step(definition.start):
        issues.append(
            DefinitionIssue(
                step_id=None,
                target=definition.start,
                source="start",
                message=(
                    f'Start step "{definition.start}" does not exist in steps. '
                    f"Available steps: {available}"
                ),
            )
        )

    for step_id, step in definition.steps.items():
        source = "next array" if isinstance(step.next, tuple) else "next"
        for target in step.static_targets:
            if definition.has_step(target):
                continue
            issues.append(
                DefinitionIssue(
                    step_id=step_id,
                    target=target,
                    source=source,
                    message=(
                        f'Step "{step_id}" references non-existent step "{target}" '
                        f"in {source}. Available steps: {available}"
                    ),
                )
            )
    return issues


def validate_flow_definition(definition: FlowDefinition) -> None:
    """Raise ``DefinitionError`` if the graph has dangling references."""
    issues = collect_definition_issues(definition)
    if issues:
        raise DefinitionError(issues)


@overload
def define_flow(raw_config: FlowDefinition | Mapping[str, Any]) -> FlowDefinition: ...


@overload
def define_flow(
    raw_config: FlowDefinition | Mapping[str, Any],
    runtime: "RuntimeConfigBuilder",
) -> "RuntimeFlowDefinition": ...


def define_flow(
    raw_config: FlowDefinition | Mapping[str, Any],
    runtime: "RuntimeConfigBuilder | None" = None,
) -> "FlowDefinition | RuntimeFlowDefinition":
    """Build and validate a flow definition.

    ``raw_config`` may be the wire form (camelCase or snake_case keys) or an
    existing ``FlowDefinition``. When ``runtime`` is given, resolvers and
    migration are attached and a ``RuntimeFlowDefinition`` is returned.
    """
    if isinstance(raw_config, FlowDefinition):
        definition = raw_config
    else:
        try:
            definition = FlowDefinition.model_validate(dict(raw_config))
        except ValidationError as exc:
            raise DefinitionError(f"Malformed flow definition: {exc}") from exc

    validate_flow_definition(definition)
    if runtime is None:
        return definition
    return definition.with_runtime(runtime)
