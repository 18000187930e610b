# ============================================================================
# API MODULE
# ============================================================================
# EPOCH: 1 - RECIPE ENGINE
# STATUS: Core - FastAPI routes
# PURPOSE: HTTP API for recipe and execution management
# CREATED: 19 OCT 2026
# ============================================================================
"""
API Module

FastAPI routes for the recipe engine.
"""

from .routes import router, set_services
from .schemas import (
    ExecuteRecipeRequest,
    PreviewNodeRequest,
    ExecutionAcceptedResponse,
    ExecutionListResponse,
    RecipeListResponse,
    ErrorResponse,
)

__all__ = [
    "router",
    "set_services",
    "ExecuteRecipeRequest",
    "PreviewNodeRequest",
    "ExecutionAcceptedResponse",
    "ExecutionListResponse",
    "RecipeListResponse",
    "ErrorResponse",
]
