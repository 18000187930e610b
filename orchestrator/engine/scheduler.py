# ============================================================================
# TOPOLOGICAL SCHEDULER
# ============================================================================
# EPOCH: 1 - RECIPE ENGINE
# STATUS: Core - Deterministic run order for validated recipes
# PURPOSE: Kahn's algorithm with (order, position) tie-break
# CREATED: 19 OCT 2026
# ============================================================================
"""
Topological Scheduler

Computes the run order of a validated recipe. Among nodes that become
eligible at the same time, the one with the smallest `order` runs first,
then the one declared earliest. The same recipe therefore always produces
the same sequence of provider calls.

Nodes left over after the queue drains mean the graph was not a DAG. The
validator rejects such graphs first, so reaching that state here is an
internal inconsistency and raises SchedulerInconsistencyError.
"""

import heapq
import logging
from typing import Dict, List, Sequence, Tuple

from core.errors import SchedulerInconsistencyError
from core.models import ActionNode, Edge
from orchestrator.engine.graph import GraphBuilder

logger = logging.getLogger(__name__)


class TopologicalScheduler:
    """Orders nodes so every dependency precedes its dependents."""

    def __init__(self):
        self._builder = GraphBuilder()

    def order(self, nodes: Sequence[ActionNode], edges: Sequence[Edge]) -> List[ActionNode]:
        """
        Compute the run order.

        Raises:
            SchedulerInconsistencyError: graph references unknown nodes or
                contains a cycle
        """
        graph = self._builder.build(nodes, edges)
        by_id: Dict[str, ActionNode] = {}
        position: Dict[str, int] = {}
        for index, node in enumerate(nodes):
            by_id.setdefault(node.id, node)
            position.setdefault(node.id, index)

        unknown = sorted(
            {n for n in graph.forward_edges if n not in by_id}
            | {n for n in graph.backward_edges if n not in by_id}
        )
        if unknown:
            raise SchedulerInconsistencyError(unknown)

        in_degree = {node_id: len(graph.get_dependencies(node_id)) for node_id in by_id}

        def key(node_id: str) -> Tuple[int, int, str]:
            return (by_id[node_id].order, position[node_id], node_id)

        ready = [key(node_id) for node_id, degree in in_degree.items() if degree == 0]
        heapq.heapify(ready)

        ordered: List[ActionNode] = []
        while ready:
            _, _, node_id = heapq.heappop(ready)
            ordered.append(by_id[node_id])

            for dependent in graph.get_dependents(node_id):
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    heapq.heappush(ready, key(dependent))

        if len(ordered) != len(by_id):
            placed = {n.id for n in ordered}
            remaining = [node_id for node_id in by_id if node_id not in placed]
            logger.error(f"Scheduler left nodes unordered: {remaining}")
            raise SchedulerInconsistencyError(remaining)

        logger.debug(f"Run order: {[n.id for n in ordered]}")
        return ordered


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = ["TopologicalScheduler"]
