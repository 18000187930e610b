# ============================================================================
# ACTION DISPATCHER TESTS
# ============================================================================
# EPOCH: 1 - RECIPE ENGINE
# STATUS: Tests - Per-node execution under error policy
# PURPOSE: Verify attempts, retry/skip/fail semantics, timeouts, for_each
# CREATED: 19 OCT 2026
# ============================================================================
"""
Action Dispatcher Tests

Covers:
1. Successful dispatch: options assembly, prompt rendering, output normalization
2. FAIL policy: one attempt, failed outcome with the error kind
3. RETRY policy: 1 + retry_count attempts, fixed delay between them
4. SKIP policy: last attempt recorded as skipped with default_output
5. continue_on_error fallback when a node declares no policy
6. Timeouts map to ErrorKind.TIMEOUT
7. Mapping failures are node-scoped, never raised
8. for_each fan-out over a list param
9. Provider usage and metadata on attempts; incremental attempt reporting
10. JSON output parsing with code-fence fallback

Run with:
    pytest tests/test_dispatcher.py -v
"""

import asyncio
import pytest
from typing import Any, Dict, List
from unittest.mock import AsyncMock

from core.config import ExecutionDefaults
from core.contracts import ErrorKind, NodeResultStatus, OnError
from core.errors import CapabilityError
from core.models import ActionNode, ErrorPolicy, ExecutionConfig, RetryPolicy
from executors import (
    ImageGenerationProvider,
    ImageResult,
    ProviderRegistry,
    TextGenerationProvider,
    TextResult,
)
from orchestrator.dispatcher import ActionDispatcher, parse_json_output
from orchestrator.engine import ResolutionContext


# ============================================================================
# FIXTURES
# ============================================================================

class ScriptedText(TextGenerationProvider):
    """Fails the first `failures` calls, then returns `text`."""

    def __init__(self, provider_id="scripted", failures=0, text="ok", error=None):
        super().__init__(provider_id)
        self.failures = failures
        self.text = text
        self.error = error or CapabilityError("provider unavailable")
        self.calls: List[Dict[str, Any]] = []

    async def generate(self, prompt: str, options: Dict[str, Any]) -> TextResult:
        self.calls.append({"prompt": prompt, "options": options})
        if len(self.calls) <= self.failures:
            raise self.error
        return TextResult(text=self.text)


class SlowText(TextGenerationProvider):
    def __init__(self, delay):
        super().__init__("slow")
        self.delay = delay

    async def generate(self, prompt, options):
        await asyncio.sleep(self.delay)
        return TextResult(text="late")


class CountingImage(ImageGenerationProvider):
    def __init__(self):
        super().__init__("counting")
        self.prompts: List[str] = []

    async def generate(self, prompt, options):
        self.prompts.append(prompt)
        return ImageResult(image_url=f"https://img.local/{options['index']}.png")


def _make_dispatcher(*providers):
    registry = ProviderRegistry()
    for provider in providers:
        registry.register(provider)
    sleep = AsyncMock()
    dispatcher = ActionDispatcher(
        registry,
        defaults=ExecutionDefaults(min_retry_delay_ms=500, item_delay_ms=250),
        sleep=sleep,
    )
    return dispatcher, sleep


def _node(**kwargs):
    base = {"id": "write", "type": "text_generation", "output_key": "copy", "prompt": "About {topic}"}
    base.update(kwargs)
    return ActionNode(**base)


@pytest.fixture
def context():
    return ResolutionContext(
        external_input={"topic": "tea"},
        node_outputs={"people": [{"name": "Ana"}, {"name": "Ben"}, {"name": "Cy"}]},
        output_keys={"gen": "people", "write": "copy"},
    )


@pytest.fixture
def config():
    return ExecutionConfig(timeout_ms=5000, retry_policy=RetryPolicy(max_retries=2, backoff_ms=1000))


# ============================================================================
# SUCCESS
# ============================================================================

class TestSuccessfulDispatch:

    def test_completed_outcome(self, context, config):
        provider = ScriptedText(text="Tea is great")
        dispatcher, _ = _make_dispatcher(provider)
        node = _node(input_mapping={"topic": "external_input.topic"})

        outcome = asyncio.run(dispatcher.execute_action(node, context, config))

        assert outcome.status == NodeResultStatus.COMPLETED
        assert outcome.succeeded and outcome.proceeds
        assert outcome.output == "Tea is great"
        assert len(outcome.attempts) == 1
        assert outcome.attempts[0].input == {"topic": "tea"}
        assert outcome.attempts[0].attempt == 1
        assert provider.calls[0]["prompt"] == "About tea"

    def test_options_merge_model_config_and_params(self, context, config):
        provider = ScriptedText()
        dispatcher, _ = _make_dispatcher(provider)
        node = _node(
            input_mapping={"topic": "external_input.topic"},
            model={"provider": "scripted", "model_name": "m-1", "temperature": 0.2},
            config={"style": "short"},
        )

        asyncio.run(dispatcher.execute_action(node, context, config))

        options = provider.calls[0]["options"]
        assert options["model_name"] == "m-1"
        assert options["temperature"] == 0.2
        assert options["style"] == "short"
        assert options["params"] == {"topic": "tea"}
        assert "provider" not in options

    def test_unknown_provider_is_capability_failure(self, context, config):
        dispatcher, _ = _make_dispatcher(ScriptedText())
        node = _node(model={"provider": "missing"})

        outcome = asyncio.run(dispatcher.execute_action(node, context, config))

        assert outcome.status == NodeResultStatus.FAILED
        assert outcome.error.kind == ErrorKind.CAPABILITY

    def test_json_output_parsed(self, context, config):
        dispatcher, _ = _make_dispatcher(ScriptedText(text='[{"name": "Ana"}]'))
        node = _node(config={"output_format": "json"})

        outcome = asyncio.run(dispatcher.execute_action(node, context, config))

        assert outcome.output == [{"name": "Ana"}]

    def test_invalid_json_output_fails(self, context, config):
        dispatcher, _ = _make_dispatcher(ScriptedText(text="not json at all"))
        node = _node(config={"output_format": "json"})

        outcome = asyncio.run(dispatcher.execute_action(node, context, config))

        assert outcome.status == NodeResultStatus.FAILED
        assert outcome.error.kind == ErrorKind.CAPABILITY


# ============================================================================
# ERROR POLICIES
# ============================================================================

class TestErrorPolicies:

    def test_fail_policy_single_attempt(self, context, config):
        provider = ScriptedText(failures=5)
        dispatcher, sleep = _make_dispatcher(provider)
        node = _node(error_policy={"on_error": "fail"})

        outcome = asyncio.run(dispatcher.execute_action(node, context, config))

        assert outcome.status == NodeResultStatus.FAILED
        assert not outcome.proceeds
        assert len(outcome.attempts) == 1
        assert outcome.error.kind == ErrorKind.CAPABILITY
        assert outcome.error.node_id == "write"
        sleep.assert_not_awaited()

    def test_retry_until_success(self, context, config):
        provider = ScriptedText(failures=2, text="third time")
        dispatcher, sleep = _make_dispatcher(provider)
        node = _node(error_policy={"on_error": "retry", "retry_count": 3})

        outcome = asyncio.run(dispatcher.execute_action(node, context, config))

        assert outcome.status == NodeResultStatus.COMPLETED
        assert outcome.output == "third time"
        assert [a.attempt for a in outcome.attempts] == [1, 2, 3]
        assert [a.status for a in outcome.attempts] == [
            NodeResultStatus.FAILED, NodeResultStatus.FAILED, NodeResultStatus.COMPLETED,
        ]
        assert sleep.await_count == 2

    def test_retry_exhausted(self, context, config):
        provider = ScriptedText(failures=10)
        dispatcher, _ = _make_dispatcher(provider)
        node = _node(error_policy={"on_error": "retry", "retry_count": 2})

        outcome = asyncio.run(dispatcher.execute_action(node, context, config))

        assert outcome.status == NodeResultStatus.FAILED
        assert len(outcome.attempts) == 3
        assert len(provider.calls) == 3

    def test_retry_count_defaults_to_recipe_policy(self, context, config):
        provider = ScriptedText(failures=10)
        dispatcher, _ = _make_dispatcher(provider)
        node = _node(error_policy={"on_error": "retry"})

        outcome = asyncio.run(dispatcher.execute_action(node, context, config))

        assert len(outcome.attempts) == 1 + config.retry_policy.max_retries

    def test_retry_delay_uses_floor(self, context):
        dispatcher, sleep = _make_dispatcher(ScriptedText(failures=1))
        config = ExecutionConfig(retry_policy=RetryPolicy(max_retries=1, backoff_ms=100))
        node = _node(error_policy={"on_error": "retry"})

        asyncio.run(dispatcher.execute_action(node, context, config))

        sleep.assert_awaited_once_with(0.5)

    def test_retry_delay_uses_backoff_when_larger(self, context, config):
        dispatcher, sleep = _make_dispatcher(ScriptedText(failures=1))
        node = _node(error_policy={"on_error": "retry", "retry_count": 1})

        asyncio.run(dispatcher.execute_action(node, context, config))

        sleep.assert_awaited_once_with(1.0)

    def test_skip_records_default_output(self, context, config):
        dispatcher, _ = _make_dispatcher(ScriptedText(failures=1))
        node = _node(error_policy={"on_error": "skip", "default_output": {"fallback": True}})

        outcome = asyncio.run(dispatcher.execute_action(node, context, config))

        assert outcome.status == NodeResultStatus.SKIPPED
        assert outcome.proceeds and not outcome.succeeded
        assert outcome.output == {"fallback": True}
        assert len(outcome.attempts) == 1
        assert outcome.attempts[0].status == NodeResultStatus.SKIPPED
        assert outcome.attempts[0].output == {"fallback": True}
        assert outcome.attempts[0].error.kind == ErrorKind.CAPABILITY

    def test_continue_on_error_means_skip(self, context):
        dispatcher, _ = _make_dispatcher(ScriptedText(failures=1))
        config = ExecutionConfig(continue_on_error=True)

        outcome = asyncio.run(dispatcher.execute_action(_node(), context, config))

        assert outcome.status == NodeResultStatus.SKIPPED
        assert outcome.output is None

    def test_explicit_policy_beats_continue_on_error(self, context):
        dispatcher, _ = _make_dispatcher(ScriptedText(failures=1))
        config = ExecutionConfig(continue_on_error=True)
        node = _node(error_policy={"on_error": "fail"})

        outcome = asyncio.run(dispatcher.execute_action(node, context, config))

        assert outcome.status == NodeResultStatus.FAILED

    def test_effective_policy_fallback(self, config):
        dispatcher, _ = _make_dispatcher()
        assert dispatcher.effective_policy(_node(), config).on_error == OnError.FAIL
        skip_config = ExecutionConfig(continue_on_error=True)
        assert dispatcher.effective_policy(_node(), skip_config).on_error == OnError.SKIP


# ============================================================================
# TIMEOUTS AND MAPPING
# ============================================================================

class TestTimeoutsAndMapping:

    def test_timeout_kind(self, context, config):
        dispatcher, _ = _make_dispatcher(SlowText(delay=2))
        node = _node(error_policy={"on_error": "fail", "timeout_ms": 20})

        outcome = asyncio.run(dispatcher.execute_action(node, context, config))

        assert outcome.status == NodeResultStatus.FAILED
        assert outcome.error.kind == ErrorKind.TIMEOUT
        assert "20ms" in outcome.error.message

    def test_timeout_then_skip(self, context, config):
        dispatcher, _ = _make_dispatcher(SlowText(delay=2))
        node = _node(error_policy={"on_error": "skip", "timeout_ms": 20, "default_output": "n/a"})

        outcome = asyncio.run(dispatcher.execute_action(node, context, config))

        assert outcome.status == NodeResultStatus.SKIPPED
        assert outcome.output == "n/a"
        assert outcome.error.kind == ErrorKind.TIMEOUT

    def test_mapping_error_is_captured(self, context, config):
        provider = ScriptedText()
        dispatcher, _ = _make_dispatcher(provider)
        node = _node(input_mapping={"missing": "external_input.audience"})

        outcome = asyncio.run(dispatcher.execute_action(node, context, config))

        assert outcome.status == NodeResultStatus.FAILED
        assert outcome.error.kind == ErrorKind.MAPPING
        assert provider.calls == []

    def test_unexpected_exception_is_capability_failure(self, context, config):
        dispatcher, _ = _make_dispatcher(ScriptedText(failures=1, error=RuntimeError("boom")))

        outcome = asyncio.run(dispatcher.execute_action(_node(), context, config))

        assert outcome.error.kind == ErrorKind.CAPABILITY
        assert "RuntimeError: boom" in outcome.error.message


# ============================================================================
# FOR EACH
# ============================================================================

class TestForEach:

    def test_one_call_per_item_in_order(self, context, config):
        provider = CountingImage()
        dispatcher, sleep = _make_dispatcher(provider)
        node = ActionNode(
            id="portraits",
            type="image_generation",
            output_key="portraits",
            prompt="Portrait of {name} (#{index})",
            input_mapping={"people": "gen.output"},
            config={"for_each": "people"},
        )

        outcome = asyncio.run(dispatcher.execute_action(node, context, config))

        assert outcome.status == NodeResultStatus.COMPLETED
        assert outcome.output == [
            "https://img.local/0.png",
            "https://img.local/1.png",
            "https://img.local/2.png",
        ]
        assert provider.prompts == ["Portrait of Ana (#0)", "Portrait of Ben (#1)", "Portrait of Cy (#2)"]
        assert sleep.await_count == 2
        sleep.assert_awaited_with(0.25)

    def test_for_each_requires_list(self, context, config):
        dispatcher, _ = _make_dispatcher(CountingImage())
        node = ActionNode(
            id="portraits",
            type="image_generation",
            output_key="portraits",
            input_mapping={"topic": "external_input.topic"},
            config={"for_each": "topic"},
        )

        outcome = asyncio.run(dispatcher.execute_action(node, context, config))

        assert outcome.status == NodeResultStatus.FAILED
        assert "expected a list" in outcome.error.message


# ============================================================================
# USAGE AND ATTEMPT RECORDING
# ============================================================================

class MeteredText(TextGenerationProvider):
    def __init__(self, usage):
        super().__init__("metered")
        self.usage = usage

    async def generate(self, prompt, options):
        return TextResult(text=prompt, usage=dict(self.usage))


class MeteredImage(ImageGenerationProvider):
    def __init__(self):
        super().__init__("metered-image")

    async def generate(self, prompt, options):
        return ImageResult(image_bytes=b"jpeg!", mime_type="image/jpeg", usage={"credits": 2})


class TestUsageAndRecording:

    def test_usage_lands_on_attempt(self, context, config):
        dispatcher, _ = _make_dispatcher(MeteredText({"prompt_tokens": 4242, "model": "m1"}))

        outcome = asyncio.run(dispatcher.execute_action(_node(), context, config))

        attempt = outcome.attempts[0]
        assert attempt.usage == {"prompt_tokens": 4242, "model": "m1"}
        assert attempt.metadata == {"provider_id": "metered"}
        assert "4242" in attempt.model_dump_json()

    def test_image_metadata_survives_normalization(self, context, config):
        dispatcher, _ = _make_dispatcher(MeteredImage())
        node = ActionNode(id="img", type="image_generation", output_key="img", prompt="cat")

        outcome = asyncio.run(dispatcher.execute_action(node, context, config))

        assert outcome.output == b"jpeg!"
        assert outcome.attempts[0].metadata == {
            "mime_type": "image/jpeg",
            "size_bytes": 5,
            "provider_id": "metered-image",
        }
        assert outcome.attempts[0].usage == {"credits": 2}

    def test_for_each_sums_usage(self, context, config):
        dispatcher, _ = _make_dispatcher(MeteredText({"total_tokens": 10, "model": "m1"}))
        node = _node(input_mapping={"people": "gen.output"}, config={"for_each": "people"})

        outcome = asyncio.run(dispatcher.execute_action(node, context, config))

        attempt = outcome.attempts[0]
        assert attempt.usage == {"total_tokens": 30, "model": "m1"}
        assert attempt.metadata == {"provider_id": "metered", "item_count": 3}

    def test_failed_attempt_has_no_usage(self, context, config):
        dispatcher, _ = _make_dispatcher(ScriptedText(failures=5))

        outcome = asyncio.run(dispatcher.execute_action(_node(), context, config))

        assert outcome.attempts[0].usage == {}

    def test_on_attempt_reports_each_attempt_with_final_status(self, context):
        dispatcher, _ = _make_dispatcher(ScriptedText(failures=5))
        config = ExecutionConfig(timeout_ms=5000, retry_policy=RetryPolicy(max_retries=2, backoff_ms=0))
        node = _node(error_policy=ErrorPolicy(on_error=OnError.SKIP, default_output="n/a"))
        retrying = _node(error_policy=ErrorPolicy(on_error=OnError.RETRY, retry_count=2))
        seen = []

        asyncio.run(dispatcher.execute_action(retrying, context, config, on_attempt=seen.append))
        assert [(r.attempt, r.status) for r in seen] == [
            (1, NodeResultStatus.FAILED),
            (2, NodeResultStatus.FAILED),
            (3, NodeResultStatus.FAILED),
        ]

        seen.clear()
        outcome = asyncio.run(dispatcher.execute_action(node, context, config, on_attempt=seen.append))
        assert [r.status for r in seen] == [NodeResultStatus.SKIPPED]
        assert seen == outcome.attempts
        assert seen[0].output == "n/a"

    def test_attempts_reported_before_cancellation(self, context, config):
        async def scenario():
            blocked = asyncio.Event()

            async def blocking_sleep(seconds):
                blocked.set()
                await asyncio.Event().wait()

            registry = ProviderRegistry()
            registry.register(ScriptedText(failures=5))
            dispatcher = ActionDispatcher(registry, defaults=ExecutionDefaults(), sleep=blocking_sleep)
            node = _node(error_policy=ErrorPolicy(on_error=OnError.RETRY, retry_count=3))
            seen = []

            task = asyncio.create_task(
                dispatcher.execute_action(node, context, config, on_attempt=seen.append)
            )
            await blocked.wait()
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
            return seen

        seen = asyncio.run(scenario())

        assert [r.attempt for r in seen] == [1]
        assert seen[0].error.kind == ErrorKind.CAPABILITY


# ============================================================================
# JSON PARSING
# ============================================================================

class TestParseJsonOutput:

    def test_plain_json(self):
        assert parse_json_output('{"a": 1}') == {"a": 1}

    def test_fenced_json(self):
        text = 'Here you go:\n```json\n[{"name": "Ana"}]\n```\nEnjoy.'
        assert parse_json_output(text) == [{"name": "Ana"}]

    def test_non_string_passthrough(self):
        assert parse_json_output([1, 2]) == [1, 2]

    def test_garbage_raises(self):
        with pytest.raises(CapabilityError):
            parse_json_output("definitely not json", "n1")
