# ============================================================================
# ERROR TAXONOMY
# ============================================================================
# EPOCH: 1 - RECIPE ENGINE
# STATUS: Foundation - Exceptions raised across the engine
# PURPOSE: Typed errors for validation, mapping, capability and fatal faults
# CREATED: 19 OCT 2026
# ============================================================================
"""
Engine Errors

Two families:

- Pre-execution / fatal: RecipeValidationError, OrchestratorFatalError.
  These surface synchronously to the caller and abort the run regardless
  of any node's error policy.
- Node-scoped: MappingError, CapabilityError, NodeTimeoutError.
  These are captured into the failing node's result and handled by the
  node's error policy (fail / skip / retry).
"""

from dataclasses import dataclass, field
from typing import List, Optional

from core.contracts import ErrorKind


# ============================================================================
# BASE
# ============================================================================

class RecipeEngineError(Exception):
    """Base exception for recipe engine errors."""
    kind: ErrorKind = ErrorKind.FATAL


# ============================================================================
# VALIDATION
# ============================================================================

@dataclass
class StructuralError:
    """
    One structural problem found in a recipe graph.

    code is a short machine-readable tag (cycle, dangling_edge,
    duplicate_output_key, ...); path carries the offending node ids.
    """
    code: str
    message: str
    node_id: Optional[str] = None
    path: List[str] = field(default_factory=list)

    def __str__(self) -> str:
        return self.message


class RecipeValidationError(RecipeEngineError):
    """Recipe graph failed structural validation."""
    kind = ErrorKind.VALIDATION

    def __init__(self, errors: List[StructuralError], recipe_id: Optional[str] = None):
        self.errors = errors
        self.recipe_id = recipe_id
        prefix = f"Invalid recipe {recipe_id}" if recipe_id else "Invalid recipe"
        super().__init__(f"{prefix}: " + "; ".join(str(e) for e in errors))


# ============================================================================
# NODE-SCOPED
# ============================================================================

class NodeError(RecipeEngineError):
    """Error scoped to a single node; subject to that node's error policy."""

    def __init__(self, message: str, node_id: Optional[str] = None):
        self.node_id = node_id
        super().__init__(message)


class MappingError(NodeError):
    """An input mapping could not be resolved."""
    kind = ErrorKind.MAPPING


class CapabilityError(NodeError):
    """Executor call failed or returned an unusable result."""
    kind = ErrorKind.CAPABILITY


class NodeTimeoutError(NodeError):
    """Executor call exceeded the node's wall-clock budget."""
    kind = ErrorKind.TIMEOUT

    def __init__(self, node_id: str, timeout_ms: int):
        self.timeout_ms = timeout_ms
        super().__init__(f"Node {node_id} timed out after {timeout_ms}ms", node_id=node_id)


# ============================================================================
# FATAL
# ============================================================================

class OrchestratorFatalError(RecipeEngineError):
    """Always aborts the run regardless of per-node policy."""
    kind = ErrorKind.FATAL


class SchedulerInconsistencyError(OrchestratorFatalError):
    """Nodes remained unscheduled after validation passed."""

    def __init__(self, remaining: List[str]):
        self.remaining = remaining
        super().__init__(f"Scheduler could not order nodes: {remaining}")


class PersistenceConflictError(OrchestratorFatalError):
    """Conditional write lost: another writer owns the execution record."""

    def __init__(self, execution_id: str, expected_version: int):
        self.execution_id = execution_id
        self.expected_version = expected_version
        super().__init__(
            f"Version conflict on execution {execution_id} "
            f"(expected version {expected_version})"
        )


# ============================================================================
# LOOKUP / STATE
# ============================================================================

class RecipeNotFoundError(RecipeEngineError, KeyError):
    def __init__(self, recipe_id: str, version: Optional[int] = None):
        self.recipe_id = recipe_id
        self.version = version
        suffix = f" v{version}" if version is not None else ""
        super().__init__(f"Recipe not found: {recipe_id}{suffix}")

    def __str__(self) -> str:
        return self.args[0]


class ExecutionNotFoundError(RecipeEngineError, KeyError):
    def __init__(self, execution_id: str):
        self.execution_id = execution_id
        super().__init__(f"Execution not found: {execution_id}")

    def __str__(self) -> str:
        return self.args[0]


class IllegalStateError(RecipeEngineError):
    """Operation not allowed in the execution's current state."""


class ProviderNotFoundError(RecipeEngineError):
    def __init__(self, capability: str, provider_id: Optional[str] = None):
        self.capability = capability
        self.provider_id = provider_id
        target = provider_id or "<default>"
        super().__init__(f"No {capability} provider registered: {target}")


class DuplicateProviderError(RecipeEngineError):
    def __init__(self, capability: str, provider_id: str):
        self.capability = capability
        self.provider_id = provider_id
        super().__init__(f"Provider already registered: {capability}/{provider_id}")


def format_error(e: BaseException, limit: int = 2000) -> str:
    """Render an exception for storage on a record."""
    return f"{type(e).__name__}: {e}"[:limit]


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "RecipeEngineError",
    "StructuralError",
    "RecipeValidationError",
    "NodeError",
    "MappingError",
    "CapabilityError",
    "NodeTimeoutError",
    "OrchestratorFatalError",
    "SchedulerInconsistencyError",
    "PersistenceConflictError",
    "RecipeNotFoundError",
    "ExecutionNotFoundError",
    "IllegalStateError",
    "ProviderNotFoundError",
    "DuplicateProviderError",
    "format_error",
]
