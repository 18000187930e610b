# ============================================================================
# DEPENDENCY GRAPH
# ============================================================================
# EPOCH: 1 - RECIPE ENGINE
# STATUS: Core - Graph construction from recipe nodes and edges
# PURPOSE: Shared adjacency structure for validation and scheduling
# CREATED: 19 OCT 2026
# ============================================================================
"""
Dependency Graph

A -> B means "B depends on A" (A must settle before B dispatches).

Edges come from two places in a recipe: the explicit edge list and each
node's dependency set. The builder takes their union so the validator can
compare them and the scheduler never misses a constraint.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Set

from core.models import ActionNode, Edge

logger = logging.getLogger(__name__)


@dataclass
class DependencyGraph:
    """Adjacency lists keyed by node id, preserving declaration order."""
    # Node ID -> nodes that depend on it
    forward_edges: Dict[str, List[str]] = field(default_factory=lambda: defaultdict(list))

    # Node ID -> nodes it depends on
    backward_edges: Dict[str, List[str]] = field(default_factory=lambda: defaultdict(list))

    # Node IDs in recipe order
    nodes: List[str] = field(default_factory=list)

    def add_node(self, node_id: str) -> None:
        if node_id not in self.nodes:
            self.nodes.append(node_id)

    def add_edge(self, from_node: str, to_node: str) -> None:
        """Add a dependency edge: to_node depends on from_node. Duplicates are ignored."""
        if to_node in self.forward_edges.get(from_node, []):
            return
        self.forward_edges[from_node].append(to_node)
        self.backward_edges[to_node].append(from_node)

    def get_dependencies(self, node_id: str) -> List[str]:
        """Get nodes that this node depends on."""
        return self.backward_edges.get(node_id, [])

    def get_dependents(self, node_id: str) -> List[str]:
        """Get nodes that depend on this node."""
        return self.forward_edges.get(node_id, [])

    def get_ancestors(self, node_id: str) -> Set[str]:
        """All transitive dependencies of a node (cycle-safe)."""
        return self._walk(node_id, self.get_dependencies)

    def get_descendants(self, node_id: str) -> Set[str]:
        """All nodes transitively depending on a node (cycle-safe)."""
        return self._walk(node_id, self.get_dependents)

    @staticmethod
    def _walk(start: str, neighbours) -> Set[str]:
        seen: Set[str] = set()
        stack = list(neighbours(start))
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            stack.extend(neighbours(current))
        return seen


class GraphBuilder:
    """Builds a dependency graph from recipe nodes and edges."""

    def build(self, nodes: Iterable[ActionNode], edges: Iterable[Edge]) -> DependencyGraph:
        """
        Build the union graph of edges and per-node dependencies.

        Endpoints that are not declared nodes are still added as edges;
        the validator reports them as dangling.
        """
        graph = DependencyGraph()
        nodes = list(nodes)

        for node in nodes:
            graph.add_node(node.id)

        for edge in edges:
            graph.add_edge(edge.from_node, edge.to_node)

        for node in nodes:
            for dep in node.dependencies:
                graph.add_edge(dep, node.id)

        return graph


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = ["DependencyGraph", "GraphBuilder"]
