"""Schema contract exports."""

from stepflow.schemas.definition_models import FlowDefinition, NextResolver, StepDefinition
from stepflow.schemas.enums import FlowStatus, NavigationAction, SaveMode
from stepflow.schemas.state_models import (
    FlowState,
    HistoryEntry,
    PathEntry,
    PersistedFlowInstance,
    PersistedFlowState,
)

__all__ = [
    "FlowDefinition",
    "FlowState",
    "FlowStatus",
    "HistoryEntry",
    "NavigationAction",
    "NextResolver",
    "PathEntry",
    "PersistedFlowInstance",
    "PersistedFlowState",
    "SaveMode",
    "StepDefinition",
]
