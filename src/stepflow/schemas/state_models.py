"""Flow state contracts shared by the reducer and persistence layers."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import Field

from stepflow.schemas.base import WireModel
from stepflow.schemas.enums import FlowStatus, NavigationAction


class HistoryEntry(WireModel):
    """A visit to one step.

    The open entry (no ``completed_at``/``action``) is the step the user is on.
    """

    step_id: str = Field(min_length=1)
    started_at: datetime
    completed_at: datetime | None = None
    action: NavigationAction | None = None

    @property
    def is_open(self) -> bool:
        return self.completed_at is None

    def close(self, *, at: datetime, action: NavigationAction) -> "HistoryEntry":
        return self.model_copy(update={"completed_at": at, "action": action})


PathEntry = HistoryEntry


class FlowState(WireModel):
    """Snapshot of one flow instance."""

    step_id: str = Field(min_length=1)
    context: dict[str, Any] = Field(default_factory=dict)
    status: FlowStatus = FlowStatus.ACTIVE
    path: tuple[PathEntry, ...] = ()
    history: tuple[HistoryEntry, ...] = ()
    started_at: datetime
    completed_at: datetime | None = None

    @property
    def is_complete(self) -> bool:
        return self.status is FlowStatus.COMPLETE

    @property
    def previous_step_id(self) -> str | None:
        if len(self.path) < 2:
            return None
        return self.path[-2].step_id


class PersistedFlowState(FlowState):
    """Flow state plus the persistence envelope."""

    version: str | None = None
    instance_id: str | None = None
    variant_id: str | None = None
    saved_at: datetime | None = None

    @classmethod
    def from_flow_state(
        cls,
        state: FlowState,
        *,
        version: str | None = None,
        instance_id: str | None = None,
        variant_id: str | None = None,
        saved_at: datetime | None = None,
    ) -> "PersistedFlowState":
        return cls(
            **{name: getattr(state, name) for name in FlowState.model_fields},
            version=version,
            instance_id=instance_id,
            variant_id=variant_id,
            saved_at=saved_at,
        )

    def to_flow_state(self) -> FlowState:
        """Drop the envelope."""
        return FlowState(**{name: getattr(self, name) for name in FlowState.model_fields})


class PersistedFlowInstance(WireModel):
    """Self-describing stored record with every identifying segment."""

    flow_id: str = Field(min_length=1)
    instance_id: str
    variant_id: str
    state: PersistedFlowState
