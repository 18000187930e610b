# ============================================================================
# INPUT RESOLVER
# ============================================================================
# EPOCH: 1 - RECIPE ENGINE
# STATUS: Core - Input mapping and prompt template resolution
# PURPOSE: Turn a node's SourceRefs into concrete params; fill prompt tokens
# CREATED: 19 OCT 2026
# ============================================================================
"""
Input Resolver

Resolves each node's declared input mapping against the execution:

- ExternalInput{field}          -> caller's external_input[field]
- NodeOutput{node_id, subpath}  -> node_outputs[output_key of node_id], then
                                   dotted subpath (dict keys / list indices)

Any unresolvable reference raises MappingError scoped to the node, so the
node's error policy decides what happens next. A NodeOutput whose source
produced None (for example a skipped node with no default output) is also
unresolvable: the downstream node fails explicitly instead of receiving a
silent null.

Prompt templates substitute {param} (and {{ param }}) tokens from the
resolved params. Unknown tokens are left verbatim so prompts may embed
literal JSON. Non-string values are substituted as JSON.
"""

import copy
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from core.errors import MappingError
from core.models import ActionNode, ExternalInput, NodeOutput, RecipeDefinition, ExecutionContext

logger = logging.getLogger(__name__)

_TOKEN_PATTERN = re.compile(r"\{\{\s*([A-Za-z_]\w*)\s*\}\}|\{([A-Za-z_]\w*)\}")


# ============================================================================
# RESOLUTION CONTEXT
# ============================================================================

@dataclass
class ResolutionContext:
    """
    What a node can read from.

    node_outputs is keyed by output_key; output_keys maps node_id to the
    key that node writes.
    """
    external_input: Dict[str, Any] = field(default_factory=dict)
    node_outputs: Dict[str, Any] = field(default_factory=dict)
    output_keys: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_execution(
        cls,
        execution: ExecutionContext,
        recipe: RecipeDefinition,
    ) -> "ResolutionContext":
        return cls(
            external_input=execution.external_input,
            node_outputs=execution.node_outputs,
            output_keys=recipe.output_keys(),
        )


# ============================================================================
# RESOLVER
# ============================================================================

class InputResolver:
    """Small interpreter over SourceRef variants."""

    def resolve(self, node: ActionNode, context: ResolutionContext) -> Dict[str, Any]:
        """
        Resolve every entry of node.input_mapping.

        Returns:
            param -> value (deep-copied, so executors cannot mutate
            stored outputs)

        Raises:
            MappingError on the first unresolvable entry
        """
        params: Dict[str, Any] = {}
        for param, ref in node.input_mapping.items():
            if isinstance(ref, ExternalInput):
                value = self._resolve_external(node, param, ref, context)
            else:
                value = self._resolve_node_output(node, param, ref, context)
            params[param] = copy.deepcopy(value)
        return params

    def _resolve_external(
        self,
        node: ActionNode,
        param: str,
        ref: ExternalInput,
        context: ResolutionContext,
    ) -> Any:
        if ref.field in context.external_input:
            return context.external_input[ref.field]
        if ref.required:
            raise MappingError(
                f"Node '{node.id}' input '{param}': external input field "
                f"'{ref.field}' was not provided",
                node_id=node.id,
            )
        return None

    def _resolve_node_output(
        self,
        node: ActionNode,
        param: str,
        ref: NodeOutput,
        context: ResolutionContext,
    ) -> Any:
        output_key = context.output_keys.get(ref.node_id)
        if output_key is None:
            raise MappingError(
                f"Node '{node.id}' input '{param}': unknown source node '{ref.node_id}'",
                node_id=node.id,
            )
        if output_key not in context.node_outputs:
            raise MappingError(
                f"Node '{node.id}' input '{param}': node '{ref.node_id}' has not "
                f"produced output '{output_key}'",
                node_id=node.id,
            )

        value = context.node_outputs[output_key]
        if value is None:
            raise MappingError(
                f"Node '{node.id}' input '{param}': node '{ref.node_id}' output is null",
                node_id=node.id,
            )

        walked: List[str] = []
        for segment in ref.path_segments:
            walked.append(segment)
            value = _step(value, segment)
            if value is _MISSING:
                raise MappingError(
                    f"Node '{node.id}' input '{param}': path "
                    f"'{'.'.join(walked)}' not found in output of '{ref.node_id}'",
                    node_id=node.id,
                )
        return value


_MISSING = object()


def _step(value: Any, segment: str) -> Any:
    """One subpath hop: mapping key, or integer index into a list."""
    if isinstance(value, Mapping):
        return value.get(segment, _MISSING)
    if isinstance(value, (list, tuple)):
        try:
            index = int(segment)
        except ValueError:
            return _MISSING
        if -len(value) <= index < len(value):
            return value[index]
    return _MISSING


# ============================================================================
# PROMPT RENDERING
# ============================================================================

def render_prompt(template: Optional[str], params: Mapping[str, Any]) -> str:
    """
    Substitute {param} tokens in a prompt.

    Unknown tokens stay in place; executors must tolerate partially
    substituted text.
    """
    if not template:
        return ""

    unresolved: List[str] = []

    def substitute(match: "re.Match[str]") -> str:
        name = match.group(1) or match.group(2)
        if name not in params:
            unresolved.append(name)
            return match.group(0)
        value = params[name]
        if isinstance(value, str):
            return value
        return json.dumps(value, default=str)

    rendered = _TOKEN_PATTERN.sub(substitute, template)
    if unresolved:
        logger.debug(f"Prompt tokens left unresolved: {unresolved}")
    return rendered


def find_tokens(template: Optional[str]) -> List[str]:
    """Token names referenced by a prompt template."""
    if not template:
        return []
    return [m.group(1) or m.group(2) for m in _TOKEN_PATTERN.finditer(template)]


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "ResolutionContext",
    "InputResolver",
    "render_prompt",
    "find_tokens",
]
