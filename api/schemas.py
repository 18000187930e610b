# ============================================================================
# API SCHEMAS
# ============================================================================
# EPOCH: 1 - RECIPE ENGINE
# STATUS: Core - Request/Response schemas
# PURPOSE: Pydantic models for API validation
# CREATED: 19 OCT 2026
# ============================================================================
"""
API Schemas

Request and response models for the API. Execution records and recipe
definitions are returned as the domain models themselves.
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from core.contracts import ExecutionStatus
from core.models import ExecutionContext, ExecutionEvent, RecipeDefinition


# ============================================================================
# REQUEST SCHEMAS
# ============================================================================

class ExecuteRecipeRequest(BaseModel):
    """Request to start a recipe execution."""
    external_input: Dict[str, Any] = Field(
        default_factory=dict,
        description="Caller-supplied values referenced by external_input mappings"
    )
    project_id: Optional[str] = Field(None, max_length=64)
    stage_id: Optional[str] = Field(None, max_length=64)
    triggered_by: Optional[str] = Field(None, max_length=64)
    version: Optional[int] = Field(
        None,
        ge=1,
        description="Pin a specific recipe version (default: active version)"
    )

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "external_input": {"audience": "urban cyclists", "count": 3},
                    "project_id": "proj-42",
                    "triggered_by": "studio-ui",
                }
            ]
        }
    }


class PreviewNodeRequest(BaseModel):
    """Request to run one node in isolation."""
    external_input: Dict[str, Any] = Field(default_factory=dict)
    mock_outputs: Dict[str, Any] = Field(
        default_factory=dict,
        description="Upstream outputs keyed by node id; unmocked upstream nodes run first"
    )
    execute_dependencies: bool = Field(
        default=True,
        description="Run unmocked upstream nodes; when false they are left unresolved"
    )
    version: Optional[int] = Field(None, ge=1)


class CreateVersionRequest(BaseModel):
    """Fields to change when deriving a new recipe version."""
    changes: Dict[str, Any] = Field(..., min_length=1)


# ============================================================================
# RESPONSE SCHEMAS
# ============================================================================

class ExecutionAcceptedResponse(BaseModel):
    """Returned when an execution has been persisted and started."""
    execution_id: str
    status: ExecutionStatus = ExecutionStatus.RUNNING
    retry_of: Optional[str] = None


class ExecutionListResponse(BaseModel):
    """List of execution records."""
    executions: List[ExecutionContext]
    total: int


class EventListResponse(BaseModel):
    """Recent progress events for one execution."""
    execution_id: str
    event_count: int
    events: List[ExecutionEvent]


class RecipeSummary(BaseModel):
    """Recipe listing entry."""
    recipe_id: str
    name: str
    version: int
    stage_type: Optional[str] = None
    description: Optional[str] = None
    is_active: bool = True
    node_count: int = 0

    @classmethod
    def from_recipe(cls, recipe: RecipeDefinition) -> "RecipeSummary":
        return cls(
            recipe_id=recipe.recipe_id,
            name=recipe.name,
            version=recipe.version,
            stage_type=recipe.stage_type,
            description=recipe.description,
            is_active=recipe.is_active,
            node_count=len(recipe.nodes),
        )


class RecipeListResponse(BaseModel):
    """List of recipes response."""
    recipes: List[RecipeSummary]
    total: int


class ErrorResponse(BaseModel):
    """Error response."""
    error: str
    detail: Optional[Any] = None
    execution_id: Optional[str] = None


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "ExecuteRecipeRequest",
    "PreviewNodeRequest",
    "CreateVersionRequest",
    "ExecutionAcceptedResponse",
    "ExecutionListResponse",
    "EventListResponse",
    "RecipeSummary",
    "RecipeListResponse",
    "ErrorResponse",
]
