# ============================================================================
# API ROUTES
# ============================================================================
# EPOCH: 1 - RECIPE ENGINE
# STATUS: Core - FastAPI route definitions
# PURPOSE: HTTP endpoints for recipes and executions
# CREATED: 19 OCT 2026
# ============================================================================
"""
API Routes

FastAPI routes for the recipe engine. Mounted under /api/v1 by main.py.

Engine errors map onto status codes:
    RecipeNotFoundError / ExecutionNotFoundError -> 404
    RecipeValidationError / pydantic ValidationError -> 422
    IllegalStateError / duplicate recipe version -> 409
    OrchestratorFatalError -> 500
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, HTTPException, Query
from pydantic import ValidationError

from core.errors import (
    ExecutionNotFoundError,
    IllegalStateError,
    OrchestratorFatalError,
    RecipeNotFoundError,
    RecipeValidationError,
)
from core.models import ExecutionContext, RecipeDefinition
from orchestrator.runner import PreviewResult
from .schemas import (
    ExecuteRecipeRequest,
    PreviewNodeRequest,
    CreateVersionRequest,
    ExecutionAcceptedResponse,
    ExecutionListResponse,
    EventListResponse,
    RecipeSummary,
    RecipeListResponse,
    ErrorResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================================================
# DEPENDENCY INJECTION
# ============================================================================
# These will be set by the main app at startup

_recipe_service = None
_orchestrator = None
_event_service = None


def set_services(recipe_service, orchestrator, event_service=None):
    """Set service instances for dependency injection."""
    global _recipe_service, _orchestrator, _event_service
    _recipe_service = recipe_service
    _orchestrator = orchestrator
    _event_service = event_service


def get_recipe_service():
    if _recipe_service is None:
        raise HTTPException(500, "Services not initialized")
    return _recipe_service


def get_orchestrator():
    if _orchestrator is None:
        raise HTTPException(500, "Orchestrator not initialized")
    return _orchestrator


def get_event_service():
    if _event_service is None:
        raise HTTPException(500, "Event service not initialized")
    return _event_service


def _http_error(e: Exception) -> HTTPException:
    """Translate an engine exception into an HTTPException."""
    if isinstance(e, (RecipeNotFoundError, ExecutionNotFoundError)):
        return HTTPException(404, str(e))
    if isinstance(e, RecipeValidationError):
        return HTTPException(
            422,
            {
                "error": str(e),
                "errors": [
                    {"code": err.code, "message": err.message, "node_id": err.node_id, "path": err.path}
                    for err in e.errors
                ],
            },
        )
    if isinstance(e, ValidationError):
        return HTTPException(422, e.errors(include_url=False, include_context=False))
    if isinstance(e, IllegalStateError):
        return HTTPException(409, str(e))
    if isinstance(e, OrchestratorFatalError):
        logger.error(f"Orchestrator failure: {e}")
        return HTTPException(500, str(e))
    logger.exception(f"Unhandled API error: {e}")
    return HTTPException(500, str(e))


_ENGINE_ERRORS = (
    RecipeNotFoundError,
    ExecutionNotFoundError,
    RecipeValidationError,
    ValidationError,
    IllegalStateError,
    OrchestratorFatalError,
)


# ============================================================================
# ORCHESTRATOR STATUS
# ============================================================================

@router.get("/orchestrator/status", tags=["Orchestrator"])
async def get_orchestrator_status():
    """
    Get orchestrator status and statistics.

    Returns counts of executions started/completed/failed/cancelled,
    node dispatches and the ids of executions running in this process.
    """
    orchestrator = get_orchestrator()
    stats = orchestrator.stats

    return {
        "status": "running",
        "started_at": stats["started_at"],
        "uptime_seconds": stats["uptime_seconds"],
        "active_executions": orchestrator.active_executions,
        "metrics": {
            "executions_started": stats["executions_started"],
            "executions_completed": stats["executions_completed"],
            "executions_failed": stats["executions_failed"],
            "executions_cancelled": stats["executions_cancelled"],
            "nodes_dispatched": stats["nodes_dispatched"],
            "node_attempts": stats["node_attempts"],
            "providers": stats["providers"],
        },
    }


# ============================================================================
# RECIPES
# ============================================================================

@router.get("/recipes", response_model=RecipeListResponse, tags=["Recipes"])
async def list_recipes(
    stage_type: Optional[str] = Query(None, description="Filter by stage type"),
    active_only: bool = Query(False),
):
    """
    List recipe definitions (one entry per recipe, active version preferred).
    """
    service = get_recipe_service()
    recipes = service.list_all(stage_type=stage_type, active_only=active_only)

    return RecipeListResponse(
        recipes=[RecipeSummary.from_recipe(r) for r in recipes],
        total=len(recipes),
    )


@router.get(
    "/recipes/{recipe_id}",
    tags=["Recipes"],
    responses={404: {"model": ErrorResponse}},
)
async def get_recipe(
    recipe_id: str,
    version: Optional[int] = Query(None, ge=1, description="Specific version (default: active)"),
):
    """
    Get a recipe definition.
    """
    service = get_recipe_service()
    try:
        recipe = service.get_or_raise(recipe_id, version)
    except RecipeNotFoundError as e:
        raise _http_error(e)

    return recipe.model_dump(mode="json", by_alias=True)


@router.post(
    "/recipes",
    status_code=201,
    tags=["Recipes"],
    responses={
        201: {"description": "Recipe registered"},
        409: {"model": ErrorResponse, "description": "Version already exists"},
        422: {"model": ErrorResponse, "description": "Invalid recipe"},
    },
)
async def register_recipe(payload: Dict[str, Any] = Body(...)):
    """
    Register a recipe definition.

    The graph is validated before it is stored; an existing
    (recipe_id, version) pair is never overwritten.
    """
    service = get_recipe_service()
    try:
        recipe = RecipeDefinition.model_validate(payload)
        stored = service.register(recipe)
    except _ENGINE_ERRORS as e:
        raise _http_error(e)
    except ValueError as e:
        raise HTTPException(409, str(e))

    logger.info(f"Registered recipe {stored.recipe_id} v{stored.version}")
    return stored.model_dump(mode="json", by_alias=True)


@router.post(
    "/recipes/{recipe_id}/versions",
    status_code=201,
    tags=["Recipes"],
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def create_recipe_version(recipe_id: str, request: CreateVersionRequest):
    """
    Derive a new version of a recipe. Earlier versions stay untouched.
    """
    service = get_recipe_service()
    try:
        recipe = service.create_version(recipe_id, request.changes)
    except _ENGINE_ERRORS as e:
        raise _http_error(e)

    return recipe.model_dump(mode="json", by_alias=True)


@router.post(
    "/recipes/{recipe_id}/activate",
    tags=["Recipes"],
    responses={404: {"model": ErrorResponse}},
)
async def activate_recipe(recipe_id: str, version: int = Query(..., ge=1)):
    """
    Make one version the active version of a recipe.
    """
    service = get_recipe_service()
    try:
        recipe = service.activate(recipe_id, version)
    except RecipeNotFoundError as e:
        raise _http_error(e)

    return RecipeSummary.from_recipe(recipe)


@router.post("/recipes/reload", tags=["Recipes"])
async def reload_recipes():
    """
    Re-read recipe files from disk.
    """
    service = get_recipe_service()
    count = service.reload()
    return {"loaded": count}


# ============================================================================
# EXECUTIONS
# ============================================================================

@router.post(
    "/recipes/{recipe_id}/execute",
    response_model=ExecutionAcceptedResponse,
    status_code=202,
    tags=["Executions"],
    responses={
        202: {"description": "Execution started"},
        404: {"model": ErrorResponse, "description": "Recipe not found"},
        422: {"model": ErrorResponse, "description": "Recipe graph invalid"},
    },
)
async def execute_recipe(recipe_id: str, request: Optional[ExecuteRecipeRequest] = None):
    """
    Start a recipe execution.

    Returns once the execution record exists. Poll
    GET /executions/{execution_id} to monitor progress.
    """
    orchestrator = get_orchestrator()
    request = request or ExecuteRecipeRequest()

    try:
        execution_id = await orchestrator.execute_recipe(
            recipe_id=recipe_id,
            external_input=request.external_input,
            project_id=request.project_id,
            stage_id=request.stage_id,
            triggered_by=request.triggered_by,
            version=request.version,
        )
    except _ENGINE_ERRORS as e:
        raise _http_error(e)

    logger.info(f"Accepted execution {execution_id} for recipe {recipe_id}")
    return ExecutionAcceptedResponse(execution_id=execution_id)


@router.get(
    "/executions/{execution_id}",
    response_model=ExecutionContext,
    tags=["Executions"],
    responses={404: {"model": ErrorResponse}},
)
async def get_execution(execution_id: str):
    """
    Get the full execution record: status, node outputs and every attempt.
    """
    orchestrator = get_orchestrator()
    try:
        return await orchestrator.get_execution_status(execution_id)
    except ExecutionNotFoundError as e:
        raise _http_error(e)


@router.get(
    "/executions/{execution_id}/summary",
    tags=["Executions"],
    responses={404: {"model": ErrorResponse}},
)
async def get_execution_summary(execution_id: str):
    """
    Per-node final status, counts and durations for an execution.
    """
    orchestrator = get_orchestrator()
    try:
        return await orchestrator.get_execution_summary(execution_id)
    except ExecutionNotFoundError as e:
        raise _http_error(e)


@router.get(
    "/executions/{execution_id}/events",
    response_model=EventListResponse,
    tags=["Executions"],
    responses={404: {"model": ErrorResponse}},
)
async def get_execution_events(
    execution_id: str,
    limit: int = Query(100, ge=1, le=1000, description="Maximum events to return"),
):
    """
    Recent progress events for an execution, oldest first.

    Events are buffered in this process only; an execution started by
    another instance has no events here.
    """
    orchestrator = get_orchestrator()
    try:
        await orchestrator.get_execution_status(execution_id)
    except ExecutionNotFoundError as e:
        raise _http_error(e)

    events = get_event_service().recent(execution_id, limit)
    return EventListResponse(
        execution_id=execution_id,
        event_count=len(events),
        events=events,
    )


@router.post(
    "/executions/{execution_id}/cancel",
    response_model=ExecutionContext,
    tags=["Executions"],
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def cancel_execution(execution_id: str):
    """
    Cancel a running execution. Takes effect at the next node boundary.
    """
    orchestrator = get_orchestrator()
    try:
        return await orchestrator.cancel_execution(execution_id)
    except _ENGINE_ERRORS as e:
        raise _http_error(e)


@router.post(
    "/executions/{execution_id}/retry",
    response_model=ExecutionAcceptedResponse,
    status_code=202,
    tags=["Executions"],
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def retry_execution(execution_id: str):
    """
    Re-run a finished execution with the same input and attribution.
    """
    orchestrator = get_orchestrator()
    try:
        new_id = await orchestrator.retry_execution(execution_id)
    except _ENGINE_ERRORS as e:
        raise _http_error(e)

    return ExecutionAcceptedResponse(execution_id=new_id, retry_of=execution_id)


@router.get("/recipes/{recipe_id}/executions", response_model=ExecutionListResponse, tags=["Executions"])
async def list_recipe_executions(recipe_id: str, limit: int = Query(100, ge=1, le=1000)):
    """
    List executions of a recipe, newest first.
    """
    executions = await get_orchestrator().get_recipe_executions(recipe_id, limit)
    return ExecutionListResponse(executions=executions, total=len(executions))


@router.get("/projects/{project_id}/executions", response_model=ExecutionListResponse, tags=["Executions"])
async def list_project_executions(project_id: str, limit: int = Query(100, ge=1, le=1000)):
    """
    List executions attributed to a project, newest first.
    """
    executions = await get_orchestrator().get_project_executions(project_id, limit)
    return ExecutionListResponse(executions=executions, total=len(executions))


# ============================================================================
# PREVIEW
# ============================================================================

@router.post(
    "/recipes/{recipe_id}/nodes/{node_id}/preview",
    response_model=PreviewResult,
    tags=["Recipes"],
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def preview_node(recipe_id: str, node_id: str, request: Optional[PreviewNodeRequest] = None):
    """
    Run a single node for prompt tuning. Nothing is persisted.
    """
    orchestrator = get_orchestrator()
    request = request or PreviewNodeRequest()

    try:
        return await orchestrator.preview_node(
            recipe_id=recipe_id,
            node_id=node_id,
            external_input=request.external_input,
            mock_outputs=request.mock_outputs,
            version=request.version,
            execute_dependencies=request.execute_dependencies,
        )
    except _ENGINE_ERRORS as e:
        raise _http_error(e)
    except KeyError:
        raise HTTPException(404, f"Node {node_id} not found in recipe {recipe_id}")
