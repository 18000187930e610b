# ============================================================================
# RECIPE DEFINITION MODEL
# ============================================================================
# EPOCH: 1 - RECIPE ENGINE
# STATUS: Core model - Recipe template/blueprint
# PURPOSE: Define the node/edge graph of a generation pipeline
# CREATED: 19 OCT 2026
# ============================================================================
"""
Recipe Definition Models

A RecipeDefinition is the versioned blueprint for an execution. It defines:
- What action nodes exist and which capability each dispatches to
- Where each node's inputs come from (SourceRef)
- Dependencies between nodes (edges + per-node dependency sets)
- Per-node error policy and recipe-wide execution config

Recipes are loaded from YAML files and cached. An execution snapshots the
recipe it ran against, so later versions never alter past records.
"""

from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from core.config import get_defaults
from core.contracts import ActionType, OnError


# ============================================================================
# SOURCE REFERENCES
# ============================================================================

EXTERNAL_INPUT_PREFIX = "external_input"
NODE_OUTPUT_SEGMENT = "output"


class ExternalInput(BaseModel):
    """Read a field from the caller's external input object."""
    kind: Literal["external_input"] = "external_input"
    field: str = Field(..., min_length=1)
    required: bool = True

    def __str__(self) -> str:
        return f"{EXTERNAL_INPUT_PREFIX}.{self.field}"


class NodeOutput(BaseModel):
    """Read another node's output, optionally drilling into a dotted subpath."""
    kind: Literal["node_output"] = "node_output"
    node_id: str = Field(..., min_length=1)
    subpath: Optional[str] = None

    @property
    def path_segments(self) -> List[str]:
        return self.subpath.split(".") if self.subpath else []

    def __str__(self) -> str:
        base = f"{self.node_id}.{NODE_OUTPUT_SEGMENT}"
        return f"{base}.{self.subpath}" if self.subpath else base


SourceRef = Annotated[Union[ExternalInput, NodeOutput], Field(discriminator="kind")]


def parse_source_ref(value: Any) -> Any:
    """
    Parse the shorthand string form of a source reference.

    Accepted forms:
        "external_input.<field>"
        "<node_id>.output"
        "<node_id>.output.<subpath>"

    Dicts and model instances pass through untouched. Anything else
    raises ValueError, which pydantic reports as a ValidationError.
    """
    if not isinstance(value, str):
        return value

    parts = value.strip().split(".")
    if any(not p for p in parts):
        raise ValueError(f"Malformed source reference: '{value}'")

    if parts[0] == EXTERNAL_INPUT_PREFIX:
        if len(parts) != 2:
            raise ValueError(
                f"External input reference must be 'external_input.<field>': '{value}'"
            )
        return {"kind": "external_input", "field": parts[1]}

    if len(parts) >= 2 and parts[1] == NODE_OUTPUT_SEGMENT:
        subpath = ".".join(parts[2:]) or None
        return {"kind": "node_output", "node_id": parts[0], "subpath": subpath}

    raise ValueError(
        f"Source reference must be 'external_input.<field>' or "
        f"'<node_id>.output[.<subpath>]': '{value}'"
    )


# ============================================================================
# NODE CONFIGURATION
# ============================================================================

class ModelConfig(BaseModel):
    """Which provider/model a generative node uses."""
    model_config = ConfigDict(protected_namespaces=())

    provider: Optional[str] = Field(
        default=None,
        description="Provider id in the registry (None = capability default)"
    )
    model_name: Optional[str] = None
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=None, ge=1)

    def as_options(self) -> Dict[str, Any]:
        """Provider options, dropping unset values."""
        return self.model_dump(exclude_none=True, exclude={"provider"})


class ErrorPolicy(BaseModel):
    """Per-node failure handling."""
    on_error: OnError = Field(default=OnError.FAIL)
    retry_count: Optional[int] = Field(
        default=None,
        ge=0,
        le=10,
        description="Extra attempts for RETRY (None = recipe retry_policy.max_retries)"
    )
    timeout_ms: Optional[int] = Field(
        default=None,
        ge=1,
        description="Wall-clock budget per attempt (None = recipe timeout_ms)"
    )
    default_output: Any = Field(
        default=None,
        description="Output stored for the node when SKIP absorbs a failure"
    )


class ActionNode(BaseModel):
    """
    One unit of work in a recipe.

    input_mapping maps a parameter name to where its value comes from;
    the resolved parameters feed both the prompt template and the
    executor call.
    """
    id: str = Field(..., min_length=1, max_length=64)
    name: Optional[str] = Field(default=None, max_length=128)
    type: ActionType
    order: int = Field(default=0, description="Scheduling tie-break hint")
    input_mapping: Dict[str, SourceRef] = Field(default_factory=dict)
    output_key: str = Field(..., min_length=1, max_length=64)
    model: Optional[ModelConfig] = None
    prompt: Optional[str] = None
    config: Dict[str, Any] = Field(
        default_factory=dict,
        description="Executor-specific settings (output_format, for_each, operation, ...)"
    )
    dependencies: List[str] = Field(default_factory=list)
    error_policy: Optional[ErrorPolicy] = None

    @field_validator("input_mapping", mode="before")
    @classmethod
    def parse_mapping_shorthand(cls, v):
        """Allow 'external_input.x' / 'node.output.path' strings as values."""
        if isinstance(v, dict):
            return {param: parse_source_ref(ref) for param, ref in v.items()}
        return v

    @field_validator("dependencies", mode="before")
    @classmethod
    def handle_string_dependency(cls, v):
        """Allow single string as shorthand for single-item list."""
        if isinstance(v, str):
            return [v]
        return v

    @property
    def display_name(self) -> str:
        return self.name or self.id

    def node_output_refs(self) -> Dict[str, NodeOutput]:
        """Inputs read from other nodes, by parameter name."""
        return {param: ref for param, ref in self.input_mapping.items() if isinstance(ref, NodeOutput)}


# ============================================================================
# GRAPH
# ============================================================================

class Edge(BaseModel):
    """Directed dependency edge: from_node must settle before to_node runs."""
    model_config = ConfigDict(populate_by_name=True)

    from_node: str = Field(..., alias="from")
    to_node: str = Field(..., alias="to")

    def as_tuple(self) -> tuple:
        return (self.from_node, self.to_node)


class RetryPolicy(BaseModel):
    """Recipe-wide retry defaults."""
    max_retries: int = Field(default_factory=lambda: get_defaults().execution.default_max_retries, ge=0, le=10)
    backoff_ms: int = Field(default_factory=lambda: get_defaults().execution.default_backoff_ms, ge=0)


class ExecutionConfig(BaseModel):
    """Recipe-wide execution settings."""
    timeout_ms: int = Field(default_factory=lambda: get_defaults().execution.default_timeout_ms, ge=1)
    retry_policy: RetryPolicy = Field(default_factory=RetryPolicy)
    parallel_execution: bool = Field(
        default=False,
        description="Reserved; executions currently run sequentially"
    )
    continue_on_error: bool = Field(
        default=False,
        description="Nodes without an error_policy skip instead of failing"
    )


class RecipeDefinition(BaseModel):
    """
    Complete recipe definition loaded from YAML or registered via the API.

    Immutable once an execution snapshots it; changes require a new version.
    """
    recipe_id: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., max_length=128)
    stage_type: Optional[str] = Field(default=None, max_length=64)
    version: int = Field(default=1, ge=1)
    description: Optional[str] = None

    nodes: List[ActionNode] = Field(..., min_length=1)
    edges: List[Edge] = Field(default_factory=list)
    execution_config: ExecutionConfig = Field(default_factory=ExecutionConfig)

    is_active: bool = True
    tags: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @model_validator(mode="before")
    @classmethod
    def derive_edges_from_dependencies(cls, data):
        """When a definition omits edges entirely, build them from dependencies."""
        if isinstance(data, dict) and "edges" not in data:
            edges = []
            for node in data.get("nodes") or []:
                if isinstance(node, ActionNode):
                    node_id, deps = node.id, node.dependencies
                elif isinstance(node, dict):
                    node_id, deps = node.get("id"), node.get("dependencies") or []
                    if isinstance(deps, str):
                        deps = [deps]
                else:
                    continue
                edges.extend({"from": dep, "to": node_id} for dep in deps)
            data = {**data, "edges": edges}
        return data

    def get_node(self, node_id: str) -> ActionNode:
        """Get a node by ID."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        raise KeyError(f"Node '{node_id}' not found in recipe '{self.recipe_id}'")

    def node_ids(self) -> List[str]:
        return [n.id for n in self.nodes]

    def output_keys(self) -> Dict[str, str]:
        """node_id -> output_key."""
        return {n.id: n.output_key for n in self.nodes}

    def snapshot(self) -> Dict[str, Any]:
        """Serialized form pinned on an execution record."""
        return self.model_dump(mode="json", by_alias=True)


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
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
]
