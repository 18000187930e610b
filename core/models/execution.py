# ============================================================================
# EXECUTION MODEL
# ============================================================================
# EPOCH: 1 - RECIPE ENGINE
# STATUS: Core model - One run of a recipe
# PURPOSE: Durable, poll-friendly execution record and per-node results
# CREATED: 19 OCT 2026
# ============================================================================
"""
Execution Models

An ExecutionContext is one run of a recipe against concrete input.

Lifecycle:
    1. Created with status=RUNNING and persisted before any node dispatches
    2. Updated after every node settles (node_outputs + action_results)
    3. Finalized exactly once as COMPLETED or FAILED; terminal records
       are never mutated again

node_outputs is scoped to the execution (keyed by each node's output_key),
so concurrent executions never share an accumulator.
"""

import uuid
from datetime import datetime
from typing import Any, ClassVar, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from core.contracts import ErrorKind, ExecutionStatus, NodeResultStatus
from core.errors import IllegalStateError


def generate_execution_id() -> str:
    return f"exec_{uuid.uuid4()}"


# ============================================================================
# ERROR INFO
# ============================================================================

class ErrorInfo(BaseModel):
    """Which node failed, why, and of what kind."""
    kind: ErrorKind
    message: str = Field(..., max_length=2000)
    node_id: Optional[str] = None


# ============================================================================
# NODE RESULT
# ============================================================================

class NodeResult(BaseModel):
    """
    One dispatch attempt of one node.

    Retries produce one NodeResult per attempt, so the audit trail
    shows every billed provider call.
    """
    model_config = ConfigDict(ser_json_bytes="base64")

    node_id: str
    status: NodeResultStatus
    attempt: int = Field(default=1, ge=1)
    input: Dict[str, Any] = Field(default_factory=dict)
    output: Any = None
    started_at: datetime
    completed_at: datetime
    duration_ms: int = Field(default=0, ge=0)
    error: Optional[ErrorInfo] = None

    # Cost attribution reported by the provider (token counts, credits)
    usage: Dict[str, Any] = Field(default_factory=dict)
    # Provider facts that are not part of the output (mime type, source URL)
    metadata: Dict[str, Any] = Field(default_factory=dict)


# ============================================================================
# EXECUTION CONTEXT
# ============================================================================

class ExecutionContext(BaseModel):
    """
    Execution record.

    Maps to: recipeapp.recipe_executions table
    """
    model_config = ConfigDict(ser_json_bytes="base64")

    # =========================================================================
    # SQL DDL METADATA (Used by PydanticToSQL generator)
    # =========================================================================
    __sql_table__: ClassVar[str] = "recipe_executions"
    __sql_schema__: ClassVar[str] = "recipeapp"
    __sql_primary_key__: ClassVar[List[str]] = ["execution_id"]
    __sql_foreign_keys__: ClassVar[Dict[str, str]] = {}
    __sql_indexes__: ClassVar[List[Any]] = [
        ("idx_recipe_executions_status", ["status"]),
        {"name": "idx_recipe_executions_recipe", "columns": ["recipe_id", "started_at"]},
        {"name": "idx_recipe_executions_project", "columns": ["project_id", "started_at"]},
    ]

    # Identity
    execution_id: str = Field(default_factory=generate_execution_id, max_length=64)
    recipe_id: str = Field(..., max_length=64)
    recipe_version: int = Field(..., ge=1)
    recipe_snapshot: Dict[str, Any] = Field(
        ...,
        description="Serialized RecipeDefinition pinned at creation (immutable)"
    )

    # Caller scope
    project_id: Optional[str] = Field(default=None, max_length=64)
    stage_id: Optional[str] = Field(default=None, max_length=64)
    triggered_by: Optional[str] = Field(default=None, max_length=64)
    retry_of: Optional[str] = Field(
        default=None,
        max_length=64,
        description="Execution this run re-ran, if any"
    )
    external_input: Dict[str, Any] = Field(default_factory=dict)

    # State
    status: ExecutionStatus = Field(default=ExecutionStatus.RUNNING)
    node_outputs: Dict[str, Any] = Field(
        default_factory=dict,
        description="output_key -> node output"
    )
    action_results: List[NodeResult] = Field(default_factory=list)
    result: Optional[Any] = Field(
        default=None,
        description="Output of the last node in run order, once completed"
    )
    result_key: Optional[str] = Field(
        default=None,
        max_length=64,
        description="output_key the result was read from"
    )
    error: Optional[ErrorInfo] = None
    failed_node_id: Optional[str] = Field(default=None, max_length=64)
    cancel_requested: bool = False

    # Timestamps
    started_at: datetime = Field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    # Optimistic locking
    version: int = Field(
        default=1,
        ge=1,
        description="Incremented on each persisted update"
    )

    @computed_field
    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal()

    @computed_field
    @property
    def duration_ms(self) -> Optional[int]:
        if not self.completed_at:
            return None
        return int((self.completed_at - self.started_at).total_seconds() * 1000)

    def get_pinned_recipe(self) -> "RecipeDefinition":
        """Deserialize the pinned recipe snapshot."""
        from core.models.recipe import RecipeDefinition
        return RecipeDefinition.model_validate(self.recipe_snapshot)

    def can_transition_to(self, new_status: ExecutionStatus) -> bool:
        """
        RUNNING -> COMPLETED, FAILED
        COMPLETED, FAILED -> (none, terminal)
        """
        allowed = {
            ExecutionStatus.RUNNING: {ExecutionStatus.COMPLETED, ExecutionStatus.FAILED},
            ExecutionStatus.COMPLETED: set(),
            ExecutionStatus.FAILED: set(),
        }
        return new_status in allowed.get(self.status, set())

    def _ensure_running(self) -> None:
        if self.status.is_terminal():
            raise IllegalStateError(
                f"Execution {self.execution_id} is {self.status.value} and cannot change"
            )

    def record_attempt(self, result: NodeResult) -> None:
        """Append one attempt to the audit trail."""
        self._ensure_running()
        self.action_results.append(result)
        self.updated_at = datetime.utcnow()

    def store_output(self, output_key: str, value: Any) -> None:
        self._ensure_running()
        self.node_outputs[output_key] = value
        self.updated_at = datetime.utcnow()

    def mark_completed(self, result: Any = None, result_key: Optional[str] = None) -> None:
        if not self.can_transition_to(ExecutionStatus.COMPLETED):
            raise IllegalStateError(f"Cannot transition from {self.status.value} to completed")
        now = datetime.utcnow()
        self.status = ExecutionStatus.COMPLETED
        self.result = result
        self.result_key = result_key
        self.completed_at = now
        self.updated_at = now

    def mark_failed(self, error: ErrorInfo) -> None:
        if not self.can_transition_to(ExecutionStatus.FAILED):
            raise IllegalStateError(f"Cannot transition from {self.status.value} to failed")
        now = datetime.utcnow()
        self.status = ExecutionStatus.FAILED
        self.error = error
        self.failed_node_id = error.node_id
        self.completed_at = now
        self.updated_at = now

    def results_for(self, node_id: str) -> List[NodeResult]:
        return [r for r in self.action_results if r.node_id == node_id]

    def final_result_for(self, node_id: str) -> Optional[NodeResult]:
        """Last recorded attempt of a node."""
        results = self.results_for(node_id)
        return results[-1] if results else None

    def settled_node_ids(self) -> List[str]:
        """Nodes whose last attempt let successors proceed, in settle order."""
        seen: Dict[str, NodeResultStatus] = {}
        for r in self.action_results:
            seen[r.node_id] = r.status
        return [node_id for node_id, status in seen.items() if status.is_successful()]


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "ErrorInfo",
    "NodeResult",
    "ExecutionContext",
    "generate_execution_id",
]
