# ============================================================================
# DAG VALIDATOR
# ============================================================================
# EPOCH: 1 - RECIPE ENGINE
# STATUS: Core - Structural validation of recipe graphs
# PURPOSE: Reject malformed recipes before any executor is touched
# CREATED: 19 OCT 2026
# ============================================================================
"""
DAG Validator

Checks a recipe's node/edge graph for structural correctness. Runs when a
recipe is loaded or registered, and again on every execution request, so a
bad graph never costs a provider call.

Detects:
- empty recipes, duplicate node ids, duplicate output keys
- edges and dependencies referencing unknown node ids
- self loops, and edges that disagree with declared dependencies
- cycles (reported with the offending path)
- input mappings reading a node outside the reader's transitive dependencies

The validator is stateless and never raises from validate(); ensure_valid()
raises RecipeValidationError with every problem found.
"""

import logging
from collections import Counter
from typing import Dict, List, Optional, Sequence, Set

from core.errors import RecipeValidationError, StructuralError
from core.models import ActionNode, Edge, RecipeDefinition
from orchestrator.engine.graph import DependencyGraph, GraphBuilder

logger = logging.getLogger(__name__)


class DAGValidator:
    """Structural checks over a recipe graph."""

    def __init__(self):
        self._builder = GraphBuilder()

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    def validate(self, nodes: Sequence[ActionNode], edges: Sequence[Edge]) -> List[StructuralError]:
        """
        Validate a node/edge graph.

        Returns:
            List of StructuralError (empty if valid)
        """
        if not nodes:
            return [StructuralError(code="empty_recipe", message="Recipe must contain at least one node")]

        errors: List[StructuralError] = []
        known = {n.id for n in nodes}

        errors.extend(self._check_duplicates(nodes))
        errors.extend(self._check_references(nodes, edges, known))
        errors.extend(self._check_edge_agreement(nodes, edges, known))

        graph = self._builder.build(nodes, edges)

        cycle = self._find_cycle(graph, known)
        if cycle:
            errors.append(StructuralError(
                code="cycle",
                message=f"Cycle detected: {' -> '.join(cycle)}",
                node_id=cycle[0],
                path=cycle,
            ))

        errors.extend(self._check_input_mappings(nodes, graph, known))

        return errors

    def validate_recipe(self, recipe: RecipeDefinition) -> List[StructuralError]:
        return self.validate(recipe.nodes, recipe.edges)

    def ensure_valid(self, recipe: RecipeDefinition) -> None:
        """
        Raise if the recipe has any structural error.

        Raises:
            RecipeValidationError listing every error found
        """
        errors = self.validate_recipe(recipe)
        if errors:
            logger.warning(
                f"Recipe {recipe.recipe_id} v{recipe.version} failed validation: "
                f"{[e.code for e in errors]}"
            )
            raise RecipeValidationError(errors, recipe_id=recipe.recipe_id)

    # =========================================================================
    # CHECKS
    # =========================================================================

    def _check_duplicates(self, nodes: Sequence[ActionNode]) -> List[StructuralError]:
        errors = []

        for node_id, count in Counter(n.id for n in nodes).items():
            if count > 1:
                errors.append(StructuralError(
                    code="duplicate_node_id",
                    message=f"Node id '{node_id}' is declared {count} times",
                    node_id=node_id,
                ))

        owners: Dict[str, List[str]] = {}
        for node in nodes:
            owners.setdefault(node.output_key, []).append(node.id)
        for output_key, node_ids in owners.items():
            if len(node_ids) > 1:
                errors.append(StructuralError(
                    code="duplicate_output_key",
                    message=f"Output key '{output_key}' is used by nodes {node_ids}",
                    node_id=node_ids[1],
                    path=node_ids,
                ))

        return errors

    def _check_references(
        self,
        nodes: Sequence[ActionNode],
        edges: Sequence[Edge],
        known: Set[str],
    ) -> List[StructuralError]:
        errors = []

        for edge in edges:
            for endpoint in (edge.from_node, edge.to_node):
                if endpoint not in known:
                    errors.append(StructuralError(
                        code="dangling_edge",
                        message=f"Edge {edge.from_node} -> {edge.to_node} references unknown node '{endpoint}'",
                        node_id=endpoint,
                        path=[edge.from_node, edge.to_node],
                    ))
            if edge.from_node == edge.to_node:
                errors.append(StructuralError(
                    code="self_loop",
                    message=f"Node '{edge.from_node}' has an edge to itself",
                    node_id=edge.from_node,
                    path=[edge.from_node, edge.to_node],
                ))

        for node in nodes:
            for dep in node.dependencies:
                if dep not in known:
                    errors.append(StructuralError(
                        code="dangling_dependency",
                        message=f"Node '{node.id}' depends on unknown node '{dep}'",
                        node_id=node.id,
                        path=[dep, node.id],
                    ))
                elif dep == node.id:
                    errors.append(StructuralError(
                        code="self_loop",
                        message=f"Node '{node.id}' depends on itself",
                        node_id=node.id,
                        path=[node.id, node.id],
                    ))

        return errors

    def _check_edge_agreement(
        self,
        nodes: Sequence[ActionNode],
        edges: Sequence[Edge],
        known: Set[str],
    ) -> List[StructuralError]:
        """Every edge must be a declared dependency and vice versa."""
        errors = []
        edge_set = {e.as_tuple() for e in edges if e.from_node in known and e.to_node in known}
        dep_set = {(dep, n.id) for n in nodes for dep in n.dependencies if dep in known}

        for from_node, to_node in sorted(edge_set - dep_set):
            errors.append(StructuralError(
                code="edge_without_dependency",
                message=f"Edge {from_node} -> {to_node} is not listed in '{to_node}' dependencies",
                node_id=to_node,
                path=[from_node, to_node],
            ))
        for from_node, to_node in sorted(dep_set - edge_set):
            errors.append(StructuralError(
                code="dependency_without_edge",
                message=f"Node '{to_node}' depends on '{from_node}' but no edge connects them",
                node_id=to_node,
                path=[from_node, to_node],
            ))

        return errors

    def _find_cycle(self, graph: DependencyGraph, known: Set[str]) -> Optional[List[str]]:
        """
        Depth-first search for a back edge, with an explicit stack so
        long chains do not hit the interpreter recursion limit.

        Returns:
            The cycle as a closed path (first == last), or None
        """
        WHITE, GREY, BLACK = 0, 1, 2
        colour = {node_id: WHITE for node_id in graph.nodes}

        for root in graph.nodes:
            if colour[root] != WHITE:
                continue

            path: List[str] = [root]
            frames = [iter(graph.get_dependents(root))]
            colour[root] = GREY

            while frames:
                nxt = next(frames[-1], None)
                if nxt is None:
                    colour[path.pop()] = BLACK
                    frames.pop()
                    continue
                if nxt not in known or nxt == path[-1]:
                    continue
                if colour[nxt] == GREY:
                    return path[path.index(nxt):] + [nxt]
                if colour[nxt] == WHITE:
                    colour[nxt] = GREY
                    path.append(nxt)
                    frames.append(iter(graph.get_dependents(nxt)))
        return None

    def _check_input_mappings(
        self,
        nodes: Sequence[ActionNode],
        graph: DependencyGraph,
        known: Set[str],
    ) -> List[StructuralError]:
        """A node may only read outputs of nodes it (transitively) depends on."""
        errors = []

        for node in nodes:
            ancestors = graph.get_ancestors(node.id)
            for param, ref in node.node_output_refs().items():
                if ref.node_id not in known:
                    errors.append(StructuralError(
                        code="unknown_mapping_source",
                        message=f"Node '{node.id}' input '{param}' reads unknown node '{ref.node_id}'",
                        node_id=node.id,
                        path=[ref.node_id, node.id],
                    ))
                elif ref.node_id == node.id or ref.node_id not in ancestors:
                    errors.append(StructuralError(
                        code="undeclared_dependency",
                        message=(
                            f"Node '{node.id}' input '{param}' reads '{ref}' "
                            f"but '{ref.node_id}' is not among its dependencies"
                        ),
                        node_id=node.id,
                        path=[ref.node_id, node.id],
                    ))

        return errors


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = ["DAGValidator"]
