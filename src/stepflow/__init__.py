"""stepflow: transition engine for multi-step flows."""

from stepflow.constants import PACKAGE_VERSION
from stepflow.engine import (
    Back,
    FlowSession,
    Next,
    Reset,
    Restore,
    RuntimeConfig,
    RuntimeFlowDefinition,
    SetContext,
    Skip,
    create_initial_state,
    define_flow,
    reduce,
    validate_flow_definition,
)
from stepflow.errors import (
    DefinitionError,
    NavigationAmbiguityError,
    PersistedStateValidationError,
    PersistenceError,
    StepflowError,
    VersionMismatchError,
)
from stepflow.persistence import (
    KeySpace,
    MemoryStore,
    PersistOptions,
    Persister,
    create_persister,
    validate_persisted_state,
)
from stepflow.schemas import FlowDefinition, FlowState, FlowStatus, PersistedFlowState

__all__ = [
    "Back",
    "DefinitionError",
    "FlowDefinition",
    "FlowSession",
    "FlowState",
    "FlowStatus",
    "KeySpace",
    "MemoryStore",
    "NavigationAmbiguityError",
    "Next",
    "PersistOptions",
    "PersistedFlowState",
    "PersistedStateValidationError",
    "PersistenceError",
    "Persister",
    "Reset",
    "Restore",
    "RuntimeConfig",
    "RuntimeFlowDefinition",
    "SetContext",
    "Skip",
    "StepflowError",
    "VersionMismatchError",
    "__version__",
    "create_initial_state",
    "create_persister",
    "define_flow",
    "reduce",
    "validate_flow_definition",
    "validate_persisted_state",
]
__version__ = PACKAGE_VERSION
