# ============================================================================
# INPUT RESOLVER TESTS
# ============================================================================
# EPOCH: 1 - RECIPE ENGINE
# STATUS: Tests - Input mapping resolution and prompt rendering
# PURPOSE: Verify SourceRef interpretation and {param} substitution
# CREATED: 19 OCT 2026
# ============================================================================
"""
Input Resolver Tests

Covers:
1. external_input lookups (required / optional)
2. node_output lookups with dotted subpaths into dicts and lists
3. MappingError for missing producers, null outputs, bad paths
4. Resolved values are copies (executors cannot mutate stored outputs)
5. render_prompt / find_tokens

Run with:
    pytest tests/test_resolver.py -v
"""

import pytest

from core.contracts import ErrorKind
from core.errors import MappingError
from core.models import ActionNode, ExternalInput
from orchestrator.engine import InputResolver, ResolutionContext, find_tokens, render_prompt


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def resolver():
    return InputResolver()


@pytest.fixture
def context():
    return ResolutionContext(
        external_input={"topic": "bicycles", "count": 3},
        node_outputs={
            "personas": [{"name": "Ana", "tags": ["urban"]}, {"name": "Ben", "tags": []}],
            "summary": {"title": "Riders", "stats": {"total": 2}},
            "empty": None,
        },
        output_keys={"gen": "personas", "sum": "summary", "nothing": "empty", "later": "later_out"},
    )


def _consumer(mapping):
    return ActionNode(id="consumer", type="text_generation", output_key="c", input_mapping=mapping)


# ============================================================================
# RESOLUTION
# ============================================================================

class TestResolve:

    def test_external_input(self, resolver, context):
        params = resolver.resolve(_consumer({"t": "external_input.topic"}), context)
        assert params == {"t": "bicycles"}

    def test_missing_required_external_input(self, resolver, context):
        with pytest.raises(MappingError) as exc_info:
            resolver.resolve(_consumer({"t": "external_input.audience"}), context)

        assert exc_info.value.kind == ErrorKind.MAPPING
        assert exc_info.value.node_id == "consumer"
        assert "audience" in str(exc_info.value)

    def test_missing_optional_external_input(self, resolver, context):
        node = _consumer({"t": ExternalInput(field="audience", required=False)})
        assert resolver.resolve(node, context) == {"t": None}

    def test_whole_node_output(self, resolver, context):
        params = resolver.resolve(_consumer({"p": "gen.output"}), context)
        assert [p["name"] for p in params["p"]] == ["Ana", "Ben"]

    def test_subpath_into_list_and_dict(self, resolver, context):
        params = resolver.resolve(
            _consumer({"first": "gen.output.0.name", "tag": "gen.output.0.tags.0", "total": "sum.output.stats.total"}),
            context,
        )
        assert params == {"first": "Ana", "tag": "urban", "total": 2}

    def test_negative_list_index(self, resolver, context):
        params = resolver.resolve(_consumer({"last": "gen.output.-1.name"}), context)
        assert params == {"last": "Ben"}

    def test_bad_subpath(self, resolver, context):
        with pytest.raises(MappingError, match="sum.output|stats.missing"):
            resolver.resolve(_consumer({"x": "sum.output.stats.missing"}), context)

    def test_index_out_of_range(self, resolver, context):
        with pytest.raises(MappingError):
            resolver.resolve(_consumer({"x": "gen.output.5"}), context)

    def test_non_numeric_index_into_list(self, resolver, context):
        with pytest.raises(MappingError):
            resolver.resolve(_consumer({"x": "gen.output.first"}), context)

    def test_producer_not_yet_run(self, resolver, context):
        with pytest.raises(MappingError, match="has not produced"):
            resolver.resolve(_consumer({"x": "later.output"}), context)

    def test_unknown_producer(self, resolver, context):
        with pytest.raises(MappingError, match="unknown source node"):
            resolver.resolve(_consumer({"x": "ghost.output"}), context)

    def test_null_output_is_an_error(self, resolver, context):
        with pytest.raises(MappingError, match="null"):
            resolver.resolve(_consumer({"x": "nothing.output"}), context)

    def test_resolved_values_are_copies(self, resolver, context):
        params = resolver.resolve(_consumer({"p": "gen.output"}), context)
        params["p"][0]["name"] = "Mutated"
        params["p"].append({"name": "Extra"})

        assert context.node_outputs["personas"][0]["name"] == "Ana"
        assert len(context.node_outputs["personas"]) == 2

    def test_empty_mapping(self, resolver, context):
        assert resolver.resolve(_consumer({}), context) == {}


# ============================================================================
# PROMPTS
# ============================================================================

class TestRenderPrompt:

    def test_single_and_double_brace_tokens(self):
        rendered = render_prompt("Write about {topic} for {{ audience }}", {"topic": "tea", "audience": "kids"})
        assert rendered == "Write about tea for kids"

    def test_non_string_values_json_encoded(self):
        rendered = render_prompt("Items: {items}", {"items": ["a", "b"]})
        assert rendered == 'Items: ["a", "b"]'

    def test_unknown_tokens_left_in_place(self):
        assert render_prompt("Hello {name} and {other}", {"name": "Ana"}) == "Hello Ana and {other}"

    def test_empty_template(self):
        assert render_prompt(None, {"x": 1}) == ""
        assert render_prompt("", {}) == ""

    def test_find_tokens(self):
        assert find_tokens("{a} then {{ b }} then {a}") == ["a", "b", "a"]
        assert find_tokens(None) == []
