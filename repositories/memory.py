# ============================================================================
# IN-MEMORY EXECUTION REPOSITORY
# ============================================================================
# EPOCH: 1 - RECIPE ENGINE
# STATUS: Core - Dict-backed execution store
# PURPOSE: Local development and tests without PostgreSQL
# CREATED: 19 OCT 2026
# ============================================================================
"""
In-Memory Execution Repository

Same contract as ExecutionRepository. Records are deep-copied on every
read and write, so callers never share mutable state with the store, and
update() enforces the same version/status condition as the SQL WHERE
clause.
"""

import asyncio
import logging
from datetime import datetime
from typing import Dict, List, Optional

from core.contracts import ExecutionStatus
from core.models import ExecutionContext
from .base import ExecutionStore

logger = logging.getLogger(__name__)


class InMemoryExecutionRepository(ExecutionStore):
    """ExecutionStore kept in a dict, guarded by an asyncio lock."""

    def __init__(self):
        self._records: Dict[str, ExecutionContext] = {}
        self._lock = asyncio.Lock()

    async def create(self, execution: ExecutionContext) -> ExecutionContext:
        async with self._lock:
            if execution.execution_id in self._records:
                raise ValueError(f"Execution already exists: {execution.execution_id}")
            self._records[execution.execution_id] = execution.model_copy(deep=True)
        logger.info(f"Created execution {execution.execution_id} for recipe {execution.recipe_id}")
        return execution

    async def get(self, execution_id: str) -> Optional[ExecutionContext]:
        record = self._records.get(execution_id)
        return record.model_copy(deep=True) if record else None

    async def update(self, execution: ExecutionContext) -> bool:
        async with self._lock:
            stored = self._records.get(execution.execution_id)
            if (
                stored is None
                or stored.version != execution.version
                or stored.status != ExecutionStatus.RUNNING
            ):
                logger.warning(
                    f"Version conflict updating execution {execution.execution_id} "
                    f"(expected version {execution.version})"
                )
                return False

            replacement = execution.model_copy(deep=True)
            replacement.version = stored.version + 1
            # The cancel flag is owned by request_cancel()
            replacement.cancel_requested = stored.cancel_requested
            replacement.updated_at = datetime.utcnow()
            self._records[execution.execution_id] = replacement

        execution.version += 1
        return True

    async def list_by_recipe(self, recipe_id: str, limit: int = 100) -> List[ExecutionContext]:
        return self._select(lambda r: r.recipe_id == recipe_id, limit)

    async def list_by_project(self, project_id: str, limit: int = 100) -> List[ExecutionContext]:
        return self._select(lambda r: r.project_id == project_id, limit)

    async def request_cancel(self, execution_id: str) -> bool:
        async with self._lock:
            stored = self._records.get(execution_id)
            if stored is None or stored.status != ExecutionStatus.RUNNING:
                return False
            stored.cancel_requested = True
        logger.info(f"Cancellation requested for execution {execution_id}")
        return True

    async def is_cancel_requested(self, execution_id: str) -> bool:
        stored = self._records.get(execution_id)
        return bool(stored and stored.cancel_requested)

    def _select(self, predicate, limit: int) -> List[ExecutionContext]:
        matches = [r for r in self._records.values() if predicate(r)]
        matches.sort(key=lambda r: r.started_at, reverse=True)
        return [r.model_copy(deep=True) for r in matches[:limit]]

    def __len__(self) -> int:
        return len(self._records)


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = ["InMemoryExecutionRepository"]
