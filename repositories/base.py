# ============================================================================
# EXECUTION STORE INTERFACE
# ============================================================================
# EPOCH: 1 - RECIPE ENGINE
# STATUS: Core - Persistence contract for execution records
# PURPOSE: One interface over the PostgreSQL and in-memory stores
# CREATED: 19 OCT 2026
# ============================================================================
"""
Execution Store Interface

The orchestrator depends only on this contract:

- create: insert the initial RUNNING record
- update: conditional write, keyed on (execution_id, version) and
  status = running. Returns False when another writer got there first or
  the record is already terminal; callers treat that as a conflict.
- get / list_by_recipe / list_by_project: pure reads
- request_cancel / is_cancel_requested: out-of-band abort flag, honoured
  by the running orchestrator at node boundaries
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from core.models import ExecutionContext


class ExecutionStore(ABC):
    """Persistence sink for ExecutionContext records."""

    @abstractmethod
    async def create(self, execution: ExecutionContext) -> ExecutionContext:
        """Insert a new record."""

    @abstractmethod
    async def get(self, execution_id: str) -> Optional[ExecutionContext]:
        """Point read by id, or None."""

    @abstractmethod
    async def update(self, execution: ExecutionContext) -> bool:
        """
        Conditional write of the full mutable state.

        On success the store's version and execution.version are both
        incremented. On conflict nothing changes and False is returned.
        """

    @abstractmethod
    async def list_by_recipe(self, recipe_id: str, limit: int = 100) -> List[ExecutionContext]:
        """Executions of a recipe, newest started first."""

    @abstractmethod
    async def list_by_project(self, project_id: str, limit: int = 100) -> List[ExecutionContext]:
        """Executions in a project, newest started first."""

    @abstractmethod
    async def request_cancel(self, execution_id: str) -> bool:
        """Flag a running execution for cancellation. False if not running."""

    @abstractmethod
    async def is_cancel_requested(self, execution_id: str) -> bool:
        """Whether the cancellation flag is set."""


__all__ = ["ExecutionStore"]
