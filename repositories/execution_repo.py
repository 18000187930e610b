# ============================================================================
# EXECUTION REPOSITORY
# ============================================================================
# EPOCH: 1 - RECIPE ENGINE
# STATUS: Core - Execution record CRUD
# PURPOSE: Database access for recipe_executions table
# CREATED: 19 OCT 2026
# ============================================================================
"""
Execution Repository

PostgreSQL-backed ExecutionStore.

Writes are conditional on (execution_id, version) and status = 'running',
so at most one orchestrator mutates a record at a time and terminal
records are never rewritten. The cancel flag is written separately and is
never touched by update(), so a cancel request cannot be lost to a
concurrent node update.

JSON columns hold the model's JSON form; bytes outputs are stored as
base64 text.
"""

import logging
from typing import Any, Dict, List, Optional

from psycopg import sql
from psycopg.rows import dict_row
from psycopg.types.json import Json
from psycopg_pool import AsyncConnectionPool

from core.contracts import ExecutionStatus
from core.models import ExecutionContext
from .base import ExecutionStore
from .database import TABLE_EXECUTIONS

logger = logging.getLogger(__name__)

_JSON_COLUMNS = (
    "recipe_snapshot",
    "external_input",
    "node_outputs",
    "action_results",
    "result",
    "error",
)


class ExecutionRepository(ExecutionStore):
    """Repository for ExecutionContext records."""

    def __init__(self, pool: AsyncConnectionPool):
        self.pool = pool

    def _json_params(self, execution: ExecutionContext) -> Dict[str, Any]:
        dumped = execution.model_dump(mode="json", include=set(_JSON_COLUMNS))
        return {
            column: Json(dumped[column]) if dumped.get(column) is not None else None
            for column in _JSON_COLUMNS
        }

    async def create(self, execution: ExecutionContext) -> ExecutionContext:
        """
        Insert the initial record.

        Args:
            execution: ExecutionContext in RUNNING state

        Returns:
            The same execution
        """
        params = {
            "execution_id": execution.execution_id,
            "recipe_id": execution.recipe_id,
            "recipe_version": execution.recipe_version,
            "project_id": execution.project_id,
            "stage_id": execution.stage_id,
            "triggered_by": execution.triggered_by,
            "retry_of": execution.retry_of,
            "status": execution.status.value,
            "result_key": execution.result_key,
            "failed_node_id": execution.failed_node_id,
            "cancel_requested": execution.cancel_requested,
            "started_at": execution.started_at,
            "completed_at": execution.completed_at,
            "updated_at": execution.updated_at,
            "version": execution.version,
            **self._json_params(execution),
        }

        async with self.pool.connection() as conn:
            await conn.execute(
                sql.SQL("""
                INSERT INTO {} (
                    execution_id, recipe_id, recipe_version, recipe_snapshot,
                    project_id, stage_id, triggered_by, retry_of, external_input,
                    status, node_outputs, action_results, result, result_key,
                    error, failed_node_id, cancel_requested,
                    started_at, completed_at, updated_at, version
                ) VALUES (
                    %(execution_id)s, %(recipe_id)s, %(recipe_version)s, %(recipe_snapshot)s,
                    %(project_id)s, %(stage_id)s, %(triggered_by)s, %(retry_of)s, %(external_input)s,
                    %(status)s, %(node_outputs)s, %(action_results)s, %(result)s, %(result_key)s,
                    %(error)s, %(failed_node_id)s, %(cancel_requested)s,
                    %(started_at)s, %(completed_at)s, %(updated_at)s, %(version)s
                )
                """).format(TABLE_EXECUTIONS),
                params,
            )
        logger.info(f"Created execution {execution.execution_id} for recipe {execution.recipe_id}")
        return execution

    async def get(self, execution_id: str) -> Optional[ExecutionContext]:
        """Get an execution by ID, or None if not found."""
        async with self.pool.connection() as conn:
            conn.row_factory = dict_row
            result = await conn.execute(
                sql.SQL("SELECT * FROM {} WHERE execution_id = %s").format(TABLE_EXECUTIONS),
                (execution_id,),
            )
            row = await result.fetchone()

            if row is None:
                return None

            return self._row_to_execution(row)

    async def update(self, execution: ExecutionContext) -> bool:
        """
        Update a running execution with optimistic locking.

        Returns:
            True if update succeeded, False on version conflict or when the
            stored record is already terminal
        """
        params = {
            "execution_id": execution.execution_id,
            "status": execution.status.value,
            "result_key": execution.result_key,
            "failed_node_id": execution.failed_node_id,
            "completed_at": execution.completed_at,
            "updated_at": execution.updated_at,
            "version": execution.version,
            "running": ExecutionStatus.RUNNING.value,
            **self._json_params(execution),
        }

        async with self.pool.connection() as conn:
            result = await conn.execute(
                sql.SQL("""
                UPDATE {} SET
                    status = %(status)s,
                    node_outputs = %(node_outputs)s,
                    action_results = %(action_results)s,
                    result = %(result)s,
                    result_key = %(result_key)s,
                    error = %(error)s,
                    failed_node_id = %(failed_node_id)s,
                    completed_at = %(completed_at)s,
                    updated_at = %(updated_at)s,
                    version = version + 1
                WHERE execution_id = %(execution_id)s
                  AND version = %(version)s
                  AND status = %(running)s
                """).format(TABLE_EXECUTIONS),
                params,
            )

            if result.rowcount == 0:
                logger.warning(
                    f"Version conflict updating execution {execution.execution_id} "
                    f"(expected version {execution.version})"
                )
                return False

        execution.version += 1
        logger.debug(
            f"Updated execution {execution.execution_id} status={execution.status.value} "
            f"version={execution.version}"
        )
        return True

    async def list_by_recipe(self, recipe_id: str, limit: int = 100) -> List[ExecutionContext]:
        """Executions of a recipe ordered by started_at DESC."""
        async with self.pool.connection() as conn:
            conn.row_factory = dict_row
            result = await conn.execute(
                sql.SQL("""
                SELECT * FROM {}
                WHERE recipe_id = %s
                ORDER BY started_at DESC
                LIMIT %s
                """).format(TABLE_EXECUTIONS),
                (recipe_id, limit),
            )
            rows = await result.fetchall()
            return [self._row_to_execution(row) for row in rows]

    async def list_by_project(self, project_id: str, limit: int = 100) -> List[ExecutionContext]:
        """Executions in a project ordered by started_at DESC."""
        async with self.pool.connection() as conn:
            conn.row_factory = dict_row
            result = await conn.execute(
                sql.SQL("""
                SELECT * FROM {}
                WHERE project_id = %s
                ORDER BY started_at DESC
                LIMIT %s
                """).format(TABLE_EXECUTIONS),
                (project_id, limit),
            )
            rows = await result.fetchall()
            return [self._row_to_execution(row) for row in rows]

    async def request_cancel(self, execution_id: str) -> bool:
        """Set the cancel flag on a running execution."""
        async with self.pool.connection() as conn:
            result = await conn.execute(
                sql.SQL("""
                UPDATE {}
                SET cancel_requested = TRUE
                WHERE execution_id = %s
                  AND status = %s
                """).format(TABLE_EXECUTIONS),
                (execution_id, ExecutionStatus.RUNNING.value),
            )
            requested = result.rowcount > 0
            if requested:
                logger.info(f"Cancellation requested for execution {execution_id}")
            return requested

    async def is_cancel_requested(self, execution_id: str) -> bool:
        async with self.pool.connection() as conn:
            result = await conn.execute(
                sql.SQL("SELECT cancel_requested FROM {} WHERE execution_id = %s").format(
                    TABLE_EXECUTIONS
                ),
                (execution_id,),
            )
            row = await result.fetchone()
            return bool(row and row[0])

    def _row_to_execution(self, row: Dict[str, Any]) -> ExecutionContext:
        """Convert database row to ExecutionContext model."""
        data = dict(row)
        for column in ("external_input", "node_outputs"):
            if data.get(column) is None:
                data[column] = {}
        if data.get("action_results") is None:
            data["action_results"] = []
        data["updated_at"] = data.get("updated_at") or data.get("started_at")
        return ExecutionContext.model_validate(data)


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = ["ExecutionRepository"]
