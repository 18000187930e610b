# ============================================================================
# EXECUTION EVENT MODEL
# ============================================================================
# EPOCH: 1 - RECIPE ENGINE
# STATUS: Core model - Progress events published by the orchestrator
# PURPOSE: Advisory progress stream (stage, message, percent)
# CREATED: 19 OCT 2026
# ============================================================================
"""
Execution Event Model

ExecutionEvent is what the orchestrator publishes to the event channel as
an execution moves along. Events are advisory: nothing in the engine reads
them back, and a failed publish never affects an execution.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field


class EventType(str, Enum):
    """Milestones during an execution."""

    # Execution lifecycle
    EXECUTION_STARTED = "execution_started"
    EXECUTION_COMPLETED = "execution_completed"
    EXECUTION_FAILED = "execution_failed"
    EXECUTION_CANCELLED = "execution_cancelled"

    # Node lifecycle
    NODE_STARTED = "node_started"
    NODE_COMPLETED = "node_completed"
    NODE_FAILED = "node_failed"
    NODE_SKIPPED = "node_skipped"
    NODE_RETRY = "node_retry"
    NODE_TIMEOUT = "node_timeout"
    NODE_PROGRESS = "node_progress"


class EventStatus(str, Enum):
    """Status/severity of an event."""
    SUCCESS = "success"
    FAILURE = "failure"
    WARNING = "warning"
    INFO = "info"


class ExecutionEvent(BaseModel):
    """A single progress event for an execution."""

    execution_id: str = Field(..., max_length=64)
    event_type: EventType
    event_status: EventStatus = Field(default=EventStatus.INFO)
    node_id: Optional[str] = Field(default=None, max_length=64)

    # Progress contract consumed by UIs
    stage: str = Field(..., max_length=64, description="Coarse phase, usually the node id")
    message: str = Field(default="", max_length=2000)
    percent: int = Field(default=0, ge=0, le=100)

    data: Dict[str, Any] = Field(default_factory=dict)
    duration_ms: Optional[int] = Field(default=None, ge=0)
    created_at: datetime = Field(default_factory=datetime.utcnow)


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = ["ExecutionEvent", "EventType", "EventStatus"]
