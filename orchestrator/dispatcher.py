# ============================================================================
# ACTION DISPATCHER
# ============================================================================
# EPOCH: 1 - RECIPE ENGINE
# STATUS: Core - Node execution with timeout and error policy
# PURPOSE: Route a node to its provider; apply fail/skip/retry; record attempts
# CREATED: 19 OCT 2026
# ============================================================================
"""
Action Dispatcher

Executes one node and owns every cross-cutting concern around the
provider call:

- Input resolution (MappingError is node-scoped, so policy applies)
- Prompt rendering and provider options
- Timeout: error_policy.timeout_ms, else the recipe timeout_ms; an expired
  call is abandoned, never re-invoked unless the policy is RETRY
- Error policy:
    FAIL   one attempt; failure settles the node FAILED
    SKIP   one attempt; failure settles the node SKIPPED with default_output
    RETRY  1 + retry_count attempts with a fixed delay between them;
           exhaustion settles the node FAILED
- Recording: one NodeResult per attempt, carrying provider usage

The dispatcher never touches the execution record. It returns a
DispatchOutcome and the orchestrator decides what to persist.
"""

import asyncio
import json
import logging
import re
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

from core.config import ExecutionDefaults, get_defaults
from core.contracts import ActionType, ErrorKind, NodeResultStatus, OnError
from core.errors import (
    CapabilityError,
    NodeError,
    NodeTimeoutError,
    ProviderNotFoundError,
    format_error,
)
from core.logging import log_context
from core.models import ActionNode, ErrorInfo, ErrorPolicy, ExecutionConfig, NodeResult
from executors.base import CapabilityProvider, normalize_output, result_metadata, result_usage
from executors.registry import ProviderRegistry
from orchestrator.engine.resolver import InputResolver, ResolutionContext, render_prompt

logger = logging.getLogger(__name__)

_JSON_FENCE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)


# ============================================================================
# OUTCOME
# ============================================================================

@dataclass
class ProviderCall:
    """Normalized output of one provider invocation plus what it cost."""
    output: Any = None
    usage: Dict[str, Any] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)


def add_usage(total: Dict[str, Any], usage: Mapping[str, Any]) -> Dict[str, Any]:
    """Accumulate usage in place: numbers are summed, anything else is overwritten."""
    for key, value in usage.items():
        current = total.get(key)
        if (
            isinstance(value, (int, float)) and not isinstance(value, bool)
            and isinstance(current, (int, float)) and not isinstance(current, bool)
        ):
            total[key] = current + value
        else:
            total[key] = value
    return total


@dataclass
class DispatchOutcome:
    """How a node settled, plus every attempt it took to get there."""
    node_id: str
    status: NodeResultStatus
    output: Any = None
    attempts: List[NodeResult] = field(default_factory=list)
    error: Optional[ErrorInfo] = None

    @property
    def succeeded(self) -> bool:
        return self.status == NodeResultStatus.COMPLETED

    @property
    def proceeds(self) -> bool:
        """True when successors may run (completed or skipped)."""
        return self.status.is_successful()


# ============================================================================
# DISPATCHER
# ============================================================================

class ActionDispatcher:
    """Run nodes against the provider registry under their error policy."""

    def __init__(
        self,
        registry: ProviderRegistry,
        resolver: Optional[InputResolver] = None,
        defaults: Optional[ExecutionDefaults] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.registry = registry
        self.resolver = resolver or InputResolver()
        self.defaults = defaults or get_defaults().execution
        self._sleep = sleep

    # =========================================================================
    # POLICY
    # =========================================================================

    def effective_policy(self, node: ActionNode, config: ExecutionConfig) -> ErrorPolicy:
        """Node policy, or the recipe-wide fallback when none is declared."""
        if node.error_policy is not None:
            return node.error_policy
        return ErrorPolicy(on_error=OnError.SKIP if config.continue_on_error else OnError.FAIL)

    def max_attempts(self, policy: ErrorPolicy, config: ExecutionConfig) -> int:
        if policy.on_error != OnError.RETRY:
            return 1
        retries = policy.retry_count
        if retries is None:
            retries = config.retry_policy.max_retries
        return 1 + retries

    def retry_delay_seconds(self, config: ExecutionConfig) -> float:
        delay_ms = max(config.retry_policy.backoff_ms, self.defaults.min_retry_delay_ms)
        return delay_ms / 1000.0

    def timeout_ms(self, policy: ErrorPolicy, config: ExecutionConfig) -> int:
        return policy.timeout_ms or config.timeout_ms

    # =========================================================================
    # EXECUTE
    # =========================================================================

    async def execute_action(
        self,
        node: ActionNode,
        context: ResolutionContext,
        config: ExecutionConfig,
        on_attempt: Optional[Callable[[NodeResult], Any]] = None,
    ) -> DispatchOutcome:
        """
        Execute a node to a settled state.

        Node-scoped failures never escape; they become the outcome.
        CancelledError propagates so an abandoned run stops promptly.

        Args:
            on_attempt: called with each NodeResult as soon as the attempt
                ends, so attempts survive a cancellation mid-node. The
                last attempt is reported with the node's final status.
        """
        policy = self.effective_policy(node, config)
        attempts_allowed = self.max_attempts(policy, config)
        timeout_ms = self.timeout_ms(policy, config)
        attempts: List[NodeResult] = []

        with log_context(node_id=node.id):
            for attempt in range(1, attempts_allowed + 1):
                result = await self._attempt(node, context, attempt, timeout_ms)

                exhausted = result.status != NodeResultStatus.COMPLETED and attempt == attempts_allowed
                if exhausted and policy.on_error == OnError.SKIP:
                    # The failed attempt is recorded as skipped; that is the node's final state
                    result = result.model_copy(
                        update={"status": NodeResultStatus.SKIPPED, "output": policy.default_output}
                    )

                attempts.append(result)
                if on_attempt is not None:
                    on_attempt(result)

                if result.status == NodeResultStatus.COMPLETED:
                    logger.info(
                        f"Node {node.id} completed on attempt {attempt} "
                        f"({result.duration_ms}ms)"
                    )
                    return DispatchOutcome(
                        node_id=node.id,
                        status=NodeResultStatus.COMPLETED,
                        output=result.output,
                        attempts=attempts,
                    )

                if attempt < attempts_allowed:
                    delay = self.retry_delay_seconds(config)
                    logger.warning(
                        f"Node {node.id} attempt {attempt}/{attempts_allowed} failed "
                        f"({result.error.kind.value}); retrying in {delay:.1f}s"
                    )
                    await self._sleep(delay)

            last_error = attempts[-1].error

            if policy.on_error == OnError.SKIP:
                logger.warning(f"Node {node.id} skipped: {last_error.message}")
                return DispatchOutcome(
                    node_id=node.id,
                    status=NodeResultStatus.SKIPPED,
                    output=policy.default_output,
                    attempts=attempts,
                    error=last_error,
                )

            logger.error(
                f"Node {node.id} failed after {len(attempts)} attempt(s): {last_error.message}"
            )
            return DispatchOutcome(
                node_id=node.id,
                status=NodeResultStatus.FAILED,
                attempts=attempts,
                error=last_error,
            )

    async def _attempt(
        self,
        node: ActionNode,
        context: ResolutionContext,
        attempt: int,
        timeout_ms: int,
    ) -> NodeResult:
        """One attempt: resolve, call under timeout, capture the result."""
        started_at = datetime.utcnow()
        start = time.monotonic()
        params: Dict[str, Any] = {}
        call = ProviderCall()

        try:
            params = self.resolver.resolve(node, context)
            call = await asyncio.wait_for(
                self._invoke(node, params),
                timeout=timeout_ms / 1000.0,
            )
            status = NodeResultStatus.COMPLETED
            error = None

        except asyncio.TimeoutError:
            exc = NodeTimeoutError(node.id, timeout_ms)
            status = NodeResultStatus.FAILED
            error = ErrorInfo(kind=exc.kind, message=str(exc), node_id=node.id)

        except NodeError as e:
            status = NodeResultStatus.FAILED
            error = ErrorInfo(kind=e.kind, message=format_error(e), node_id=node.id)

        except Exception as e:
            logger.exception(f"Unexpected error in node {node.id}")
            status = NodeResultStatus.FAILED
            error = ErrorInfo(kind=ErrorKind.CAPABILITY, message=format_error(e), node_id=node.id)

        return NodeResult(
            node_id=node.id,
            status=status,
            attempt=attempt,
            input=params,
            output=call.output,
            started_at=started_at,
            completed_at=datetime.utcnow(),
            duration_ms=int((time.monotonic() - start) * 1000),
            error=error,
            usage=call.usage,
            metadata=call.metadata,
        )

    # =========================================================================
    # PROVIDER CALL
    # =========================================================================

    def _provider_for(self, node: ActionNode) -> CapabilityProvider:
        provider_id = node.model.provider if node.model else None
        try:
            return self.registry.get_or_raise(node.type, provider_id)
        except ProviderNotFoundError as e:
            raise CapabilityError(str(e), node_id=node.id) from e

    def build_options(self, node: ActionNode, params: Dict[str, Any]) -> Dict[str, Any]:
        """Model settings, then node config, then the resolved params."""
        options: Dict[str, Any] = {}
        if node.model:
            options.update(node.model.as_options())
        options.update(node.config)
        options["params"] = params
        return options

    async def _invoke(self, node: ActionNode, params: Dict[str, Any]) -> ProviderCall:
        provider = self._provider_for(node)
        options = self.build_options(node, params)

        for_each = node.config.get("for_each")
        if for_each and node.type.is_generative():
            return await self._invoke_for_each(node, provider, params, options, for_each)

        prompt = render_prompt(node.prompt, params)
        raw = await provider.generate(prompt, options)
        metadata = result_metadata(raw)
        metadata["provider_id"] = provider.provider_id
        return ProviderCall(self._finish(node, raw), result_usage(raw), metadata)

    async def _invoke_for_each(
        self,
        node: ActionNode,
        provider: CapabilityProvider,
        params: Dict[str, Any],
        options: Dict[str, Any],
        param_name: str,
    ) -> ProviderCall:
        """One provider call per item of a list param, results in input order."""
        if param_name not in params:
            raise CapabilityError(
                f"for_each param '{param_name}' is not among the inputs of node {node.id}",
                node_id=node.id,
            )
        items = params[param_name]
        if not isinstance(items, (list, tuple)):
            raise CapabilityError(
                f"for_each param '{param_name}' is {type(items).__name__}, expected a list",
                node_id=node.id,
            )

        delay = self.defaults.item_delay_ms / 1000.0
        outputs: List[Any] = []
        usage: Dict[str, Any] = {}
        item_metadata: List[Dict[str, Any]] = []
        for index, item in enumerate(items):
            if index and delay:
                await self._sleep(delay)

            item_params = dict(params)
            if isinstance(item, Mapping):
                item_params.update(item)
            item_params["item"] = item
            item_params["index"] = index

            prompt = render_prompt(node.prompt, item_params)
            raw = await provider.generate(
                prompt,
                {**options, "params": item_params, "item": item, "index": index},
            )
            outputs.append(self._finish(node, raw))
            add_usage(usage, result_usage(raw))
            item_metadata.append(result_metadata(raw))
            logger.debug(f"Node {node.id} item {index + 1}/{len(items)} done")

        metadata: Dict[str, Any] = {"provider_id": provider.provider_id, "item_count": len(items)}
        if any(item_metadata):
            metadata["items"] = item_metadata
        return ProviderCall(outputs, usage, metadata)

    def _finish(self, node: ActionNode, raw: Any) -> Any:
        value = normalize_output(raw)
        if value is None and node.type.is_generative():
            raise CapabilityError(f"Provider returned no output for node {node.id}", node_id=node.id)
        if node.type == ActionType.TEXT_GENERATION and node.config.get("output_format") == "json":
            return parse_json_output(value, node.id)
        return value


def parse_json_output(text: Any, node_id: Optional[str] = None) -> Any:
    """
    Parse model text as JSON, falling back to the first fenced block.

    Raises:
        CapabilityError if neither parses
    """
    if not isinstance(text, str):
        return text
    try:
        return json.loads(text)
    except ValueError:
        pass

    match = _JSON_FENCE.search(text)
    if match:
        try:
            return json.loads(match.group(1))
        except ValueError:
            pass

    raise CapabilityError(
        f"Output of node {node_id} is not valid JSON: {text[:200]!r}",
        node_id=node_id,
    )


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "DispatchOutcome",
    "ProviderCall",
    "add_usage",
    "ActionDispatcher",
    "parse_json_output",
]
