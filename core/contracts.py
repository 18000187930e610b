# ============================================================================
# BASE CONTRACTS & ENUMS
# ============================================================================
# EPOCH: 1 - RECIPE ENGINE
# STATUS: Foundation - Core enums shared by every layer
# PURPOSE: Status, action-type and error-policy enums for recipe execution
# CREATED: 19 OCT 2026
# ============================================================================
"""
Base contracts for the recipe execution engine.

These enums cross every boundary:
- SQL (PostgreSQL enum types)
- HTTP (API request/response bodies)
- Python (orchestrator, dispatcher, executors)
"""

from enum import Enum


# ============================================================================
# STATUS ENUMS
# ============================================================================

class ExecutionStatus(str, Enum):
    """
    Execution lifecycle states.

    State transitions:
        (created) -> RUNNING -> COMPLETED
                             -> FAILED

    Both terminal states are absorbing. Cancellation resolves to FAILED
    with a distinguishable error kind.
    """
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    def is_terminal(self) -> bool:
        """Check if this is a terminal state (no further transitions)."""
        return self in (ExecutionStatus.COMPLETED, ExecutionStatus.FAILED)


class NodeResultStatus(str, Enum):
    """Outcome of one dispatch attempt of a node."""
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"

    def is_successful(self) -> bool:
        """Completed and skipped nodes both let successors run."""
        return self in (NodeResultStatus.COMPLETED, NodeResultStatus.SKIPPED)


# ============================================================================
# NODE ENUMS
# ============================================================================

class ActionType(str, Enum):
    """Capability a node dispatches to."""
    TEXT_GENERATION = "text_generation"
    IMAGE_GENERATION = "image_generation"
    VIDEO_GENERATION = "video_generation"
    DATA_PROCESSING = "data_processing"

    def is_generative(self) -> bool:
        """Generative nodes call an external (metered) provider."""
        return self != ActionType.DATA_PROCESSING


class OnError(str, Enum):
    """Per-node error policy."""
    FAIL = "fail"
    SKIP = "skip"
    RETRY = "retry"


class ErrorKind(str, Enum):
    """Error taxonomy recorded on node results and executions."""
    VALIDATION = "validation"
    MAPPING = "mapping"
    CAPABILITY = "capability"
    TIMEOUT = "timeout"
    FATAL = "fatal"
    CANCELLED = "cancelled"


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "ExecutionStatus",
    "NodeResultStatus",
    "ActionType",
    "OnError",
    "ErrorKind",
]
