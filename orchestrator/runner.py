# ============================================================================
# RECIPE ORCHESTRATOR
# ============================================================================
# EPOCH: 1 - RECIPE ENGINE
# STATUS: Core - Execution state machine
# PURPOSE: Validate, schedule, dispatch and persist one recipe execution
# CREATED: 19 OCT 2026
# ============================================================================
"""
Recipe Orchestrator

Top-level state machine for recipe executions:

    executeRecipe
        -> load recipe -> validate -> topological order
        -> persist RUNNING record (before any node dispatches)
        -> background task: dispatch nodes one at a time
               after each node: persist node_outputs + action_results
        -> COMPLETED (result = output of the last node in run order)
           or FAILED (error + failed_node_id; no further dispatch)

Validation and fatal errors surface synchronously from execute_recipe().
Node-scoped errors are handled by the dispatcher under each node's error
policy and only reach the record through the DispatchOutcome.

Concurrency:
- Nodes of one execution run strictly sequentially.
  execution_config.parallel_execution is accepted but not acted on.
- Executions are independent asyncio tasks; all per-run state lives on
  the ExecutionContext, never on the orchestrator.
- Every write is conditional on the record version, so a second writer
  for the same execution_id loses with PersistenceConflictError instead
  of silently interleaving.

Cancellation is honoured at node boundaries and resolves the run to
FAILED with error kind "cancelled". Attempts are recorded on the record
as they end, so a run stopped mid-node keeps every attempt it made.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field

from core.contracts import ErrorKind, NodeResultStatus
from core.errors import (
    ExecutionNotFoundError,
    IllegalStateError,
    OrchestratorFatalError,
    PersistenceConflictError,
    format_error,
)
from core.logging import ComponentType, log_checkpoint, log_context
from core.models import (
    ActionNode,
    ErrorInfo,
    ExecutionContext,
    NodeResult,
    RecipeDefinition,
)
from core.models.events import EventStatus, EventType
from orchestrator.dispatcher import ActionDispatcher, DispatchOutcome, add_usage
from orchestrator.engine.graph import GraphBuilder
from orchestrator.engine.resolver import ResolutionContext, render_prompt
from orchestrator.engine.scheduler import TopologicalScheduler
from orchestrator.engine.validator import DAGValidator
from repositories.base import ExecutionStore

if TYPE_CHECKING:
    from services.event_service import EventService
    from services.recipe_service import RecipeService

logger = logging.getLogger(__name__)


# ============================================================================
# PREVIEW RESULT
# ============================================================================

class PreviewResult(BaseModel):
    """Outcome of running a single node outside any execution."""
    model_config = ConfigDict(ser_json_bytes="base64")

    recipe_id: str
    recipe_version: int
    node_id: str
    status: NodeResultStatus
    prompt: Optional[str] = Field(default=None, description="Rendered prompt, when inputs resolved")
    input: Dict[str, Any] = Field(default_factory=dict)
    output: Any = None
    error: Optional[ErrorInfo] = None
    upstream_nodes: List[str] = Field(
        default_factory=list,
        description="Dependencies that were run because no mock output was given"
    )
    upstream: List[NodeResult] = Field(
        default_factory=list,
        description="Final attempt of each dependency that was run: input, output, duration"
    )
    attempts: List[NodeResult] = Field(default_factory=list)


# ============================================================================
# ORCHESTRATOR
# ============================================================================

class RecipeOrchestrator:
    """
    Runs recipe executions as background asyncio tasks.

    One instance per process. Holds no per-execution state beyond the
    handles of the tasks it started.
    """

    def __init__(
        self,
        recipe_service: "RecipeService",
        repository: ExecutionStore,
        dispatcher: ActionDispatcher,
        event_service: Optional["EventService"] = None,
    ):
        """
        Initialize orchestrator.

        Args:
            recipe_service: Recipe definition lookup
            repository: Execution record store
            dispatcher: Node dispatcher bound to a provider registry
            event_service: Optional progress channel
        """
        self.recipe_service = recipe_service
        self.repository = repository
        self.dispatcher = dispatcher
        self.events = event_service

        self.validator = DAGValidator()
        self.scheduler = TopologicalScheduler()
        self._graph_builder = GraphBuilder()

        self._tasks: Dict[str, asyncio.Task] = {}
        self._cancel_flags: Set[str] = set()

        # Metrics
        self._started_at = datetime.now(timezone.utc)
        self._executions_started = 0
        self._executions_completed = 0
        self._executions_failed = 0
        self._executions_cancelled = 0
        self._nodes_dispatched = 0
        self._node_attempts = 0

    # =========================================================================
    # EXECUTE
    # =========================================================================

    async def execute_recipe(
        self,
        recipe_id: str,
        external_input: Optional[Dict[str, Any]] = None,
        project_id: Optional[str] = None,
        stage_id: Optional[str] = None,
        triggered_by: Optional[str] = None,
        version: Optional[int] = None,
        retry_of: Optional[str] = None,
    ) -> str:
        """
        Start an execution.

        Returns once the RUNNING record is persisted; nodes run in the
        background.

        Returns:
            execution_id

        Raises:
            RecipeNotFoundError: unknown recipe/version
            RecipeValidationError: graph is structurally invalid
            OrchestratorFatalError: scheduling or persistence failed
        """
        recipe = self.recipe_service.get_or_raise(recipe_id, version)
        order = self._plan(recipe)

        if recipe.execution_config.parallel_execution:
            logger.info(
                f"Recipe {recipe.recipe_id} requests parallel_execution; "
                f"nodes will run sequentially"
            )

        execution = ExecutionContext(
            recipe_id=recipe.recipe_id,
            recipe_version=recipe.version,
            recipe_snapshot=recipe.snapshot(),
            project_id=project_id,
            stage_id=stage_id,
            triggered_by=triggered_by,
            retry_of=retry_of,
            external_input=external_input or {},
        )

        try:
            await self.repository.create(execution)
        except Exception as e:
            logger.error(f"Failed to persist execution for recipe {recipe_id}: {e}")
            raise OrchestratorFatalError(
                f"Could not persist execution record: {format_error(e)}"
            ) from e

        self._executions_started += 1
        execution_id = execution.execution_id
        task = asyncio.create_task(
            self._run(execution, recipe, order),
            name=f"execution-{execution_id}",
        )
        self._tasks[execution_id] = task
        task.add_done_callback(lambda _t: self._forget(execution_id))

        logger.info(
            f"Execution {execution_id} started: recipe={recipe.recipe_id} "
            f"v{recipe.version}, nodes={[n.id for n in order]}"
        )
        return execution_id

    def _plan(self, recipe: RecipeDefinition) -> List[ActionNode]:
        """Validate and order. No side effects."""
        self.validator.ensure_valid(recipe)
        return self.scheduler.order(recipe.nodes, recipe.edges)

    def _forget(self, execution_id: str) -> None:
        self._tasks.pop(execution_id, None)
        self._cancel_flags.discard(execution_id)

    # =========================================================================
    # RUN LOOP
    # =========================================================================

    async def _run(
        self,
        execution: ExecutionContext,
        recipe: RecipeDefinition,
        order: List[ActionNode],
    ) -> None:
        with log_context(
            execution_id=execution.execution_id,
            recipe_id=execution.recipe_id,
            project_id=execution.project_id,
            component=ComponentType.ORCHESTRATOR.value,
        ):
            log_checkpoint("execution_started", {"node_count": len(order)}, logger)
            await self._emit(
                EventType.EXECUTION_STARTED,
                execution,
                stage="start",
                message=f"Running {len(order)} nodes",
            )

            try:
                await self._run_nodes(execution, recipe, order)

            except asyncio.CancelledError:
                # Cancellation inside a node is finalized by _run_nodes
                if not execution.is_terminal:
                    logger.warning(f"Execution {execution.execution_id} task cancelled")
                    await self._finalize_after_error(
                        execution,
                        ErrorInfo(kind=ErrorKind.CANCELLED, message="Execution task was cancelled"),
                    )
                raise

            except PersistenceConflictError as e:
                # Another writer owns the record; do not write again
                self._executions_failed += 1
                logger.error(f"Execution {execution.execution_id} abandoned: {e}")
                log_checkpoint("execution_conflict", {"error": str(e)}, logger)

            except OrchestratorFatalError as e:
                logger.error(f"Execution {execution.execution_id} fatal error: {e}")
                await self._finalize_after_error(
                    execution,
                    ErrorInfo(kind=ErrorKind.FATAL, message=format_error(e)),
                )

            except Exception as e:
                logger.exception(f"Execution {execution.execution_id} crashed")
                await self._finalize_after_error(
                    execution,
                    ErrorInfo(kind=ErrorKind.FATAL, message=format_error(e)),
                )

    async def _run_nodes(
        self,
        execution: ExecutionContext,
        recipe: RecipeDefinition,
        order: List[ActionNode],
    ) -> None:
        config = recipe.execution_config
        resolution = ResolutionContext.from_execution(execution, recipe)
        total = len(order)

        for index, node in enumerate(order):
            if await self._is_cancel_requested(execution.execution_id):
                await self._finalize_cancelled(execution, before_node=node.id)
                return

            await self._emit(
                EventType.NODE_STARTED,
                execution,
                stage=node.id,
                node_id=node.id,
                message=f"Running {node.display_name}",
                percent=int(index * 100 / total),
            )

            try:
                outcome = await self.dispatcher.execute_action(
                    node, resolution, config, on_attempt=execution.record_attempt
                )
            except asyncio.CancelledError:
                logger.warning(f"Execution {execution.execution_id} cancelled during node {node.id}")
                await self._finalize_after_error(
                    execution,
                    ErrorInfo(
                        kind=ErrorKind.CANCELLED,
                        message=f"Execution task was cancelled during node {node.id}",
                        node_id=node.id,
                    ),
                )
                raise
            self._nodes_dispatched += 1
            self._node_attempts += len(outcome.attempts)
            await self._emit_attempt_events(execution, node, outcome)

            if outcome.status == NodeResultStatus.FAILED:
                execution.mark_failed(outcome.error)
                await self._persist(execution)
                self._executions_failed += 1

                with log_context(node_id=node.id):
                    log_checkpoint("execution_failed", {"error": outcome.error.message}, logger)
                await self._emit(
                    EventType.NODE_FAILED,
                    execution,
                    stage=node.id,
                    node_id=node.id,
                    status=EventStatus.FAILURE,
                    message=outcome.error.message,
                    percent=int(index * 100 / total),
                )
                await self._emit(
                    EventType.EXECUTION_FAILED,
                    execution,
                    stage="failed",
                    status=EventStatus.FAILURE,
                    message=f"Node {node.id} failed: {outcome.error.message}",
                    percent=int(index * 100 / total),
                    duration_ms=execution.duration_ms,
                )
                return

            execution.store_output(node.output_key, outcome.output)
            await self._persist(execution)

            with log_context(node_id=node.id):
                log_checkpoint(f"node_{outcome.status.value}", {"attempts": len(outcome.attempts)}, logger)

            skipped = outcome.status == NodeResultStatus.SKIPPED
            await self._emit(
                EventType.NODE_SKIPPED if skipped else EventType.NODE_COMPLETED,
                execution,
                stage=node.id,
                node_id=node.id,
                status=EventStatus.WARNING if skipped else EventStatus.SUCCESS,
                message=outcome.error.message if skipped else f"{node.display_name} done",
                percent=int((index + 1) * 100 / total),
                duration_ms=outcome.attempts[-1].duration_ms,
            )

        last = order[-1]
        execution.mark_completed(execution.node_outputs.get(last.output_key), last.output_key)
        await self._persist(execution)
        self._executions_completed += 1

        log_checkpoint("execution_completed", {"duration_ms": execution.duration_ms}, logger)
        await self._emit(
            EventType.EXECUTION_COMPLETED,
            execution,
            stage="complete",
            status=EventStatus.SUCCESS,
            message="Execution completed",
            percent=100,
            duration_ms=execution.duration_ms,
        )
        logger.info(
            f"Execution {execution.execution_id} completed in {execution.duration_ms}ms "
            f"(result from {last.output_key})"
        )

    # =========================================================================
    # PERSISTENCE
    # =========================================================================

    async def _persist(self, execution: ExecutionContext) -> None:
        """
        Conditional write of the record.

        Raises:
            PersistenceConflictError: another writer changed the record
            OrchestratorFatalError: the store is unavailable
        """
        expected = execution.version
        try:
            ok = await self.repository.update(execution)
        except Exception as e:
            raise OrchestratorFatalError(
                f"Could not persist execution {execution.execution_id}: {format_error(e)}"
            ) from e
        if not ok:
            raise PersistenceConflictError(execution.execution_id, expected)

    async def _finalize_cancelled(self, execution: ExecutionContext, before_node: Optional[str] = None) -> None:
        message = "Execution cancelled"
        if before_node:
            message += f" before node {before_node}"
        execution.mark_failed(ErrorInfo(kind=ErrorKind.CANCELLED, message=message))
        await self._persist(execution)
        self._executions_cancelled += 1

        log_checkpoint("execution_cancelled", {"before_node": before_node}, logger)
        await self._emit(
            EventType.EXECUTION_CANCELLED,
            execution,
            stage="cancelled",
            status=EventStatus.WARNING,
            message=message,
        )
        logger.info(f"Execution {execution.execution_id}: {message}")

    async def _finalize_after_error(self, execution: ExecutionContext, error: ErrorInfo) -> None:
        """Best-effort terminal write after the run loop aborted."""
        try:
            if not execution.is_terminal:
                execution.mark_failed(error)
            await self._persist(execution)
        except Exception as e:
            logger.error(
                f"Could not finalize execution {execution.execution_id} "
                f"after {error.kind.value} error: {e}"
            )
            return

        if error.kind == ErrorKind.CANCELLED:
            self._executions_cancelled += 1
        else:
            self._executions_failed += 1
        await self._emit(
            EventType.EXECUTION_FAILED,
            execution,
            stage="failed",
            status=EventStatus.FAILURE,
            message=error.message,
        )

    async def _is_cancel_requested(self, execution_id: str) -> bool:
        if execution_id in self._cancel_flags:
            return True
        return await self.repository.is_cancel_requested(execution_id)

    # =========================================================================
    # EVENTS
    # =========================================================================

    async def _emit(
        self,
        event_type: EventType,
        execution: ExecutionContext,
        stage: str,
        message: str = "",
        percent: int = 0,
        node_id: Optional[str] = None,
        status: EventStatus = EventStatus.INFO,
        duration_ms: Optional[int] = None,
    ) -> None:
        if self.events is None:
            return
        await self.events.emit(
            event_type=event_type,
            execution_id=execution.execution_id,
            stage=stage,
            message=message,
            percent=percent,
            node_id=node_id,
            status=status,
            duration_ms=duration_ms,
        )

    async def _emit_attempt_events(
        self,
        execution: ExecutionContext,
        node: ActionNode,
        outcome: DispatchOutcome,
    ) -> None:
        """Timeout and retry events for every attempt that did not settle the node."""
        for attempt in outcome.attempts:
            if attempt.error is None:
                continue
            if attempt.error.kind == ErrorKind.TIMEOUT:
                await self._emit(
                    EventType.NODE_TIMEOUT,
                    execution,
                    stage=node.id,
                    node_id=node.id,
                    status=EventStatus.WARNING,
                    message=attempt.error.message,
                )
            if attempt is not outcome.attempts[-1]:
                await self._emit(
                    EventType.NODE_RETRY,
                    execution,
                    stage=node.id,
                    node_id=node.id,
                    status=EventStatus.WARNING,
                    message=f"Attempt {attempt.attempt} failed: {attempt.error.message}",
                )

    # =========================================================================
    # QUERIES (pure reads)
    # =========================================================================

    async def get_execution_status(self, execution_id: str) -> ExecutionContext:
        """
        Read an execution record. Never mutates.

        Raises:
            ExecutionNotFoundError
        """
        execution = await self.repository.get(execution_id)
        if execution is None:
            raise ExecutionNotFoundError(execution_id)
        return execution

    async def get_recipe_executions(self, recipe_id: str, limit: int = 100) -> List[ExecutionContext]:
        return await self.repository.list_by_recipe(recipe_id, limit)

    async def get_project_executions(self, project_id: str, limit: int = 100) -> List[ExecutionContext]:
        return await self.repository.list_by_project(project_id, limit)

    async def get_execution_summary(self, execution_id: str) -> Dict[str, Any]:
        """
        Per-node final statuses, counts, attempt durations and provider usage.

        Node names and the nodes that never ran come from the pinned recipe,
        so a later recipe version does not change the summary.
        """
        execution = await self.get_execution_status(execution_id)
        pinned_nodes = execution.get_pinned_recipe().nodes if execution.recipe_snapshot else []
        names = {node.id: node.display_name for node in pinned_nodes}

        finals: Dict[str, NodeResult] = {}
        attempts_per_node: Dict[str, int] = {}
        usage_per_node: Dict[str, Dict[str, Any]] = {}
        total_usage: Dict[str, Any] = {}
        for result in execution.action_results:
            finals[result.node_id] = result
            attempts_per_node[result.node_id] = attempts_per_node.get(result.node_id, 0) + 1
            add_usage(usage_per_node.setdefault(result.node_id, {}), result.usage)
            add_usage(total_usage, result.usage)

        counts = {status.value: 0 for status in NodeResultStatus}
        for result in finals.values():
            counts[result.status.value] += 1

        return {
            "execution_id": execution.execution_id,
            "recipe_id": execution.recipe_id,
            "recipe_version": execution.recipe_version,
            "status": execution.status.value,
            "node_count": len(pinned_nodes),
            "nodes_completed": counts[NodeResultStatus.COMPLETED.value],
            "nodes_failed": counts[NodeResultStatus.FAILED.value],
            "nodes_skipped": counts[NodeResultStatus.SKIPPED.value],
            "nodes_not_run": [node.id for node in pinned_nodes if node.id not in finals],
            "attempts": len(execution.action_results),
            "total_duration_ms": sum(r.duration_ms for r in execution.action_results),
            "usage": total_usage,
            "duration_ms": execution.duration_ms,
            "failed_node_id": execution.failed_node_id,
            "error": execution.error.model_dump(mode="json") if execution.error else None,
            "nodes": [
                {
                    "node_id": node_id,
                    "name": names.get(node_id, node_id),
                    "status": result.status.value,
                    "attempts": attempts_per_node[node_id],
                    "duration_ms": result.duration_ms,
                    "usage": usage_per_node[node_id],
                    "error": result.error.message if result.error else None,
                }
                for node_id, result in finals.items()
            ],
        }

    async def wait_for_execution(self, execution_id: str, timeout: Optional[float] = None) -> ExecutionContext:
        """Wait for a locally running execution to settle, then read it."""
        task = self._tasks.get(execution_id)
        if task is not None:
            await asyncio.wait({task}, timeout=timeout)
        return await self.get_execution_status(execution_id)

    # =========================================================================
    # CONTROL
    # =========================================================================

    async def cancel_execution(self, execution_id: str) -> ExecutionContext:
        """
        Request cancellation.

        A run owned by this process stops at its next node boundary. A
        record with no local run (orphaned by a crash, or owned elsewhere)
        is finalized directly with a conditional write; if its owner is
        alive and writes first, the owner honours the flag instead.

        Raises:
            ExecutionNotFoundError
            IllegalStateError: the execution is already terminal
        """
        execution = await self.get_execution_status(execution_id)
        if execution.is_terminal:
            raise IllegalStateError(
                f"Execution {execution_id} is already {execution.status.value}"
            )

        if not await self.repository.request_cancel(execution_id):
            raise IllegalStateError(f"Execution {execution_id} finished before it could be cancelled")

        if execution_id in self._tasks:
            self._cancel_flags.add(execution_id)
            logger.info(f"Cancellation of {execution_id} will apply at the next node boundary")
            return await self.get_execution_status(execution_id)

        execution = await self.get_execution_status(execution_id)
        if not execution.is_terminal:
            execution.mark_failed(ErrorInfo(kind=ErrorKind.CANCELLED, message="Execution cancelled"))
            if await self.repository.update(execution):
                self._executions_cancelled += 1
                logger.info(f"Execution {execution_id} cancelled without a local run")
            else:
                logger.info(f"Execution {execution_id} is owned elsewhere; owner will honour the cancel")
        return await self.get_execution_status(execution_id)

    async def retry_execution(self, execution_id: str) -> str:
        """
        Re-run a finished execution against the current recipe version.

        Returns:
            The new execution_id

        Raises:
            IllegalStateError: the execution is still running
        """
        original = await self.get_execution_status(execution_id)
        if not original.is_terminal:
            raise IllegalStateError(f"Execution {execution_id} is still running")

        return await self.execute_recipe(
            recipe_id=original.recipe_id,
            external_input=original.external_input,
            project_id=original.project_id,
            stage_id=original.stage_id,
            triggered_by=original.triggered_by,
            retry_of=original.execution_id,
        )

    async def preview_node(
        self,
        recipe_id: str,
        node_id: str,
        external_input: Optional[Dict[str, Any]] = None,
        mock_outputs: Optional[Dict[str, Any]] = None,
        version: Optional[int] = None,
        execute_dependencies: bool = True,
    ) -> PreviewResult:
        """
        Run one node for prompt tuning. Nothing is persisted.

        Dependency outputs come from mock_outputs (keyed by node id). With
        execute_dependencies, any dependency without a mock is run first,
        along with whatever it needs in turn, and its final attempt is
        returned in PreviewResult.upstream. Without it, unmocked
        dependencies stay absent and the target resolves against what
        is there.

        Raises:
            RecipeNotFoundError, RecipeValidationError
            KeyError: node_id is not in the recipe
        """
        recipe = self.recipe_service.get_or_raise(recipe_id, version)
        order = self._plan(recipe)
        target = recipe.get_node(node_id)
        mocks = mock_outputs or {}

        graph = self._graph_builder.build(recipe.nodes, recipe.edges)
        needed: Set[str] = set()
        pending = list(graph.get_dependencies(node_id)) if execute_dependencies else []
        while pending:
            dep = pending.pop()
            if dep in mocks or dep in needed:
                continue
            needed.add(dep)
            pending.extend(graph.get_dependencies(dep))

        output_keys = recipe.output_keys()
        context = ResolutionContext(
            external_input=external_input or {},
            node_outputs={output_keys[n]: value for n, value in mocks.items() if n in output_keys},
            output_keys=output_keys,
        )
        config = recipe.execution_config
        upstream: List[NodeResult] = []

        with log_context(recipe_id=recipe_id, node_id=node_id, operation="preview"):
            for node in order:
                if node.id not in needed:
                    continue
                outcome = await self.dispatcher.execute_action(node, context, config)
                upstream.append(outcome.attempts[-1])
                if outcome.status == NodeResultStatus.FAILED:
                    return PreviewResult(
                        recipe_id=recipe.recipe_id,
                        recipe_version=recipe.version,
                        node_id=node_id,
                        status=NodeResultStatus.FAILED,
                        error=outcome.error,
                        upstream_nodes=[r.node_id for r in upstream],
                        upstream=upstream,
                        attempts=outcome.attempts,
                    )
                context.node_outputs[node.output_key] = outcome.output

            prompt = None
            params: Dict[str, Any] = {}
            try:
                params = self.dispatcher.resolver.resolve(target, context)
                prompt = render_prompt(target.prompt, params)
            except Exception as e:
                logger.debug(f"Preview inputs for {node_id} did not resolve: {e}")

            outcome = await self.dispatcher.execute_action(target, context, config)

        return PreviewResult(
            recipe_id=recipe.recipe_id,
            recipe_version=recipe.version,
            node_id=node_id,
            status=outcome.status,
            prompt=prompt,
            input=params,
            output=outcome.output,
            error=outcome.error,
            upstream_nodes=[r.node_id for r in upstream],
            upstream=upstream,
            attempts=outcome.attempts,
        )

    async def stop(self) -> None:
        """Cancel in-flight executions and wait for them to record a terminal state."""
        tasks = list(self._tasks.values())
        logger.info(f"Stopping orchestrator ({len(tasks)} executions in flight)")

        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        logger.info(
            f"Orchestrator stopped (started={self._executions_started}, "
            f"completed={self._executions_completed}, failed={self._executions_failed}, "
            f"cancelled={self._executions_cancelled})"
        )

    # =========================================================================
    # STATS AND PROPERTIES
    # =========================================================================

    @property
    def active_executions(self) -> List[str]:
        return list(self._tasks)

    @property
    def stats(self) -> Dict[str, Any]:
        """Get orchestrator statistics."""
        uptime_seconds = (datetime.now(timezone.utc) - self._started_at).total_seconds()
        return {
            "started_at": self._started_at.isoformat(),
            "uptime_seconds": uptime_seconds,
            "active_executions": len(self._tasks),
            "executions_started": self._executions_started,
            "executions_completed": self._executions_completed,
            "executions_failed": self._executions_failed,
            "executions_cancelled": self._executions_cancelled,
            "nodes_dispatched": self._nodes_dispatched,
            "node_attempts": self._node_attempts,
            "providers": len(self.dispatcher.registry),
        }


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = ["RecipeOrchestrator", "PreviewResult"]
