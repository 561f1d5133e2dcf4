"""Flow engine exports."""

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
from stepflow.engine.definition import (
    collect_definition_issues,
    define_flow,
    validate_flow_definition,
)
from stepflow.engine.reducer import (
    apply_context_update,
    create_initial_state,
    has_outgoing_transition,
    reduce,
    resolve_destination,
)
from stepflow.engine.runtime import (
    MigrateFunction,
    ResolverMap,
    RuntimeConfig,
    RuntimeFlowDefinition,
    StepRefs,
)
from stepflow.engine.session import FlowSession, TransitionEvent

__all__ = [
    "Back",
    "ContextUpdate",
    "FlowAction",
    "FlowSession",
    "MigrateFunction",
    "Next",
    "Reset",
    "ResolverMap",
    "Restore",
    "RuntimeConfig",
    "RuntimeFlowDefinition",
    "SetContext",
    "Skip",
    "StepRefs",
    "TransitionEvent",
    "apply_context_update",
    "collect_definition_issues",
    "create_initial_state",
    "define_flow",
    "has_outgoing_transition",
    "reduce",
    "resolve_destination",
    "validate_flow_definition",
]
