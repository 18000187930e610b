# ============================================================================
# MODELS MODULE
# ============================================================================
# EPOCH: 1 - RECIPE ENGINE
# STATUS: Model exports
# PURPOSE: Central export point for all Pydantic models
# CREATED: 19 OCT 2026
# ============================================================================
"""
Models Module - Central Export Point

All Pydantic models for the recipe engine.
ExecutionContext defines SQL metadata via __sql_* ClassVar attributes
for DDL generation.
"""

from core.models.recipe import (
    ExternalInput,
    NodeOutput,
    SourceRef,
    parse_source_ref,
    ModelConfig,
    ErrorPolicy,
    ActionNode,
    Edge,
    RetryPolicy,
    ExecutionConfig,
    RecipeDefinition,
)
from core.models.execution import (
    ErrorInfo,
    NodeResult,
    ExecutionContext,
    generate_execution_id,
)
from core.models.events import ExecutionEvent, EventType, EventStatus

__all__ = [
    # Recipe
    "ExternalInput",
    "NodeOutput",
    "SourceRef",
    "parse_source_ref",
    "ModelConfig",
    "ErrorPolicy",
    "ActionNode",
    "Edge",
    "RetryPolicy",
    "ExecutionConfig",
    "RecipeDefinition",
    # Execution
    "ErrorInfo",
    "NodeResult",
    "ExecutionContext",
    "generate_execution_id",
    # Events
    "ExecutionEvent",
    "EventType",
    "EventStatus",
]
