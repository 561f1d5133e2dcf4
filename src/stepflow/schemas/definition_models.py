"""Flow definition contracts: the plain-data step graph."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable

from pydantic import ConfigDict, Field, field_validator

from stepflow.schemas.base import WireModel

if TYPE_CHECKING:
    from stepflow.engine.runtime import RuntimeConfigBuilder, RuntimeFlowDefinition

NextResolver = Callable[[dict[str, Any]], str | None]


class StepDefinition(WireModel):
    """A node of the flow graph.

    ``next`` is a single step id, a tuple of candidate ids (disambiguated by an
    explicit target or a resolver), or a callable computing the id from context.
    A step without ``next`` is terminal. Extra keys such as labels are kept.
    """

    model_config = ConfigDict(
        extra="allow",
        frozen=True,
        populate_by_name=True,
    )

    next: str | tuple[str, ...] | NextResolver | None = None

    @field_validator("next", mode="before")
    @classmethod
    def reject_empty_targets(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple)) and not value:
            raise ValueError("next must name at least one step when given as a list")
        if isinstance(value, str) and not value:
            raise ValueError("next must be a non-empty step id")
        return value

    @property
    def is_terminal(self) -> bool:
        return self.next is None

    @property
    def is_dynamic(self) -> bool:
        return callable(self.next)

    @property
    def static_targets(self) -> tuple[str, ...]:
        """Step ids named literally by ``next``."""
        if isinstance(self.next, str):
            return (self.next,)
        if isinstance(self.next, tuple):
            return self.next
        return ()

    @property
    def extras(self) -> dict[str, Any]:
        return dict(self.model_extra or {})


class FlowDefinition(WireModel):
    """Declarative, JSON-serializable flow graph."""

    id: str = Field(min_length=1)
    start: str = Field(min_length=1)
    version: str | None = None
    variant_id: str | None = None
    steps: dict[str, StepDefinition] = Field(min_length=1)

    @property
    def step_ids(self) -> tuple[str, ...]:
        return tuple(self.steps)

    def has_step(self, step_id: str) -> bool:
        return step_id in self.steps

    def get_step(self, step_id: str) -> StepDefinition | None:
        return self.steps.get(step_id)

    @property
    def has_executable_fields(self) -> bool:
        return any(step.is_dynamic for step in self.steps.values())

    def to_wire(self) -> dict[str, Any]:
        """Return the remote wire form of this definition.

        Raises ``DefinitionError`` when a step carries a callable ``next``;
        executable routing must be attached locally with ``with_runtime``.
        """
        from stepflow.errors import DefinitionError

        dynamic = [step_id for step_id, step in self.steps.items() if step.is_dynamic]
        if dynamic:
            raise DefinitionError(
                "Steps with callable next cannot be serialized: " + ", ".join(dynamic)
            )
        payload: dict[str, Any] = {"id": self.id, "start": self.start}
        if self.version is not None:
            payload["version"] = self.version
        if self.variant_id is not None:
            payload["variantId"] = self.variant_id
        steps: dict[str, Any] = {}
        for step_id, step in self.steps.items():
            entry: dict[str, Any] = dict(step.extras)
            if isinstance(step.next, str):
                entry["next"] = step.next
            elif isinstance(step.next, tuple):
                entry["next"] = list(step.next)
            steps[step_id] = entry
        payload["steps"] = steps
        return payload

    def with_runtime(self, builder: "RuntimeConfigBuilder") -> "RuntimeFlowDefinition":
        """Attach resolvers/migration without touching this plain definition."""
        from stepflow.engine.runtime import attach_runtime_config

        return attach_runtime_config(self, builder)
