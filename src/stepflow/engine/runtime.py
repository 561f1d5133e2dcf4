"""Runtime configuration attached outside the serializable definition.

A ``FlowDefinition`` stays plain data so it can be fetched from a database or
API and swapped per variant. Branching resolvers and version migration are
code, so they live on a separate ``RuntimeFlowDefinition`` handle produced by
``FlowDefinition.with_runtime``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Mapping

from stepflow.schemas.definition_models import FlowDefinition
from stepflow.schemas.state_models import PersistedFlowState

if TYPE_CHECKING:
    from stepflow.engine.actions import FlowAction
    from stepflow.schemas.state_models import FlowState

LOGGER = logging.getLogger(__name__)

ResolveFunction = Callable[[dict[str, Any]], str | None]
ResolverMap = Mapping[str, ResolveFunction]
MigrateFunction = Callable[
    [PersistedFlowState, str | None],
    PersistedFlowState | Mapping[str, Any] | None,
]


class StepRefs:
    """Attribute access to step ids: ``steps.business == "business"``.

    Unknown names raise ``AttributeError`` so typos fail while the runtime
    builder runs instead of at navigation time.
    """

    __slots__ = ("_ids",)

    def __init__(self, step_ids: tuple[str, ...]) -> None:
        object.__setattr__(self, "_ids", frozenset(step_ids))

    def __getattr__(self, name: str) -> str:
        if name in self._ids:
            return name
        raise AttributeError(f"Unknown step {name!r}")

    def __getitem__(self, name: str) -> str:
        if name in self._ids:
            return name
        raise KeyError(name)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("StepRefs is read-only")

    def __contains__(self, name: object) -> bool:
        return name in self._ids

    def __iter__(self):
        return iter(sorted(self._ids))


@dataclass(frozen=True)
class RuntimeConfig:
    """Executable behaviours for one flow definition."""

    resolvers: Mapping[str, ResolveFunction] = field(default_factory=dict)
    migrate: MigrateFunction | None = None


RuntimeConfigBuilder = Callable[[StepRefs], "RuntimeConfig | Mapping[str, Any]"]


@dataclass(frozen=True)
class RuntimeFlowDefinition:
    """Plain definition plus its locally attached runtime config."""

    config: FlowDefinition
    runtime_config: RuntimeConfig = field(default_factory=RuntimeConfig)

    @property
    def id(self) -> str:
        return self.config.id

    @property
    def version(self) -> str | None:
        return self.config.version

    @property
    def variant_id(self) -> str | None:
        return self.config.variant_id

    @property
    def resolvers(self) -> Mapping[str, ResolveFunction]:
        return self.runtime_config.resolvers

    @property
    def migrate(self) -> MigrateFunction | None:
        return self.runtime_config.migrate

    def with_runtime(self, builder: RuntimeConfigBuilder) -> "RuntimeFlowDefinition":
        """Rebuild the runtime config against the same plain definition."""
        return attach_runtime_config(self.config, builder)

    def initial_state(
        self,
        initial_context: Mapping[str, Any] | None = None,
        **kwargs: Any,
    ) -> "FlowState":
        from stepflow.engine.reducer import create_initial_state

        return create_initial_state(self, initial_context, **kwargs)

    def reduce(self, state: "FlowState", action: "FlowAction", **kwargs: Any) -> "FlowState":
        from stepflow.engine.reducer import reduce

        return reduce(state, action, self, **kwargs)


def attach_runtime_config(
    definition: FlowDefinition,
    builder: RuntimeConfigBuilder,
) -> RuntimeFlowDefinition:
    """Run ``builder`` with step references and wrap the result."""
    built = builder(StepRefs(definition.step_ids))
    runtime_config = _coerce_runtime_config(built)
    for step_id in runtime_config.resolvers:
        if not definition.has_step(step_id):
            LOGGER.warning(
                "Resolver registered for unknown step %r in flow %r", step_id, definition.id
            )
    return RuntimeFlowDefinition(config=definition, runtime_config=runtime_config)


def _coerce_runtime_config(built: RuntimeConfig | Mapping[str, Any] | None) -> RuntimeConfig:
    if built is None:
        return RuntimeConfig()
    if isinstance(built, RuntimeConfig):
        return RuntimeConfig(resolvers=dict(built.resolvers), migrate=built.migrate)
    if not isinstance(built, Mapping):
        raise TypeError(
            f"Runtime builder must return RuntimeConfig or a mapping, got {type(built).__name__}"
        )
    unknown = set(built) - {"resolve", "resolvers", "migrate"}
    if unknown:
        raise TypeError(f"Unsupported runtime config keys: {', '.join(sorted(unknown))}")
    resolvers = built.get("resolve", built.get("resolvers")) or {}
    for step_id, resolver in resolvers.items():
        if not callable(resolver):
            raise TypeError(f"Resolver for step {step_id!r} is not callable")
    migrate = built.get("migrate")
    if migrate is not None and not callable(migrate):
        raise TypeError("migrate must be callable")
    return RuntimeConfig(resolvers=dict(resolvers), migrate=migrate)
