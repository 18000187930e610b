# ============================================================================
# ORCHESTRATOR ENGINE
# ============================================================================
# EPOCH: 1 - RECIPE ENGINE
# STATUS: Core - Engine components
# PURPOSE: Graph validation, scheduling, input resolution
# CREATED: 19 OCT 2026
# ============================================================================
"""
Orchestrator Engine Components

- graph: dependency graph built from edges and node dependencies
- validator: structural checks (cycles, dangling refs, duplicate keys)
- scheduler: deterministic topological order
- resolver: SourceRef interpreter and prompt rendering
"""

from orchestrator.engine.graph import DependencyGraph, GraphBuilder
from orchestrator.engine.validator import DAGValidator
from orchestrator.engine.scheduler import TopologicalScheduler
from orchestrator.engine.resolver import (
    ResolutionContext,
    InputResolver,
    render_prompt,
    find_tokens,
)

__all__ = [
    # Graph
    "DependencyGraph",
    "GraphBuilder",
    # Validation / scheduling
    "DAGValidator",
    "TopologicalScheduler",
    # Resolution
    "ResolutionContext",
    "InputResolver",
    "render_prompt",
    "find_tokens",
]
