# ============================================================================
# ORCHESTRATOR MODULE
# ============================================================================
# EPOCH: 1 - RECIPE ENGINE
# STATUS: Core - Recipe execution
# PURPOSE: Coordinate recipe execution across nodes
# CREATED: 19 OCT 2026
# ============================================================================
"""
Orchestrator Module

The state machine that drives recipe executions.

Usage:
    from orchestrator import RecipeOrchestrator, ActionDispatcher

    dispatcher = ActionDispatcher(registry)
    orchestrator = RecipeOrchestrator(recipe_service, repository, dispatcher)
    execution_id = await orchestrator.execute_recipe("persona_pipeline", {"count": 2})
"""

from .dispatcher import ActionDispatcher, DispatchOutcome
from .runner import RecipeOrchestrator, PreviewResult

__all__ = [
    "ActionDispatcher",
    "DispatchOutcome",
    "RecipeOrchestrator",
    "PreviewResult",
]
