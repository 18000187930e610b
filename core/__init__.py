# ============================================================================
# CORE MODULE
# ============================================================================
# EPOCH: 1 - RECIPE ENGINE
# STATUS: Core module initialization
# PURPOSE: Export core contracts, errors and models
# CREATED: 19 OCT 2026
# ============================================================================

from core.contracts import ExecutionStatus, NodeResultStatus, ActionType, OnError, ErrorKind
from core.errors import (
    RecipeEngineError,
    RecipeValidationError,
    MappingError,
    CapabilityError,
    NodeTimeoutError,
    OrchestratorFatalError,
)
from core.models import (
    RecipeDefinition,
    ActionNode,
    ExecutionContext,
    NodeResult,
    ExecutionEvent,
)

__all__ = [
    # Enums
    "ExecutionStatus",
    "NodeResultStatus",
    "ActionType",
    "OnError",
    "ErrorKind",
    # Errors
    "RecipeEngineError",
    "RecipeValidationError",
    "MappingError",
    "CapabilityError",
    "NodeTimeoutError",
    "OrchestratorFatalError",
    # Models
    "RecipeDefinition",
    "ActionNode",
    "ExecutionContext",
    "NodeResult",
    "ExecutionEvent",
]
