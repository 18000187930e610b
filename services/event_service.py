# ============================================================================
# EVENT SERVICE
# ============================================================================
# EPOCH: 1 - RECIPE ENGINE
# STATUS: Core - Execution progress channel
# PURPOSE: Publish execution/node milestones to subscribers
# CREATED: 19 OCT 2026
# ============================================================================
"""
Event Service

The channel the orchestrator publishes progress to: stage, message,
percent. Events are advisory and fire-and-forget - a failing subscriber
is logged and never affects the execution.

Subscribers are async callables taking an ExecutionEvent. The service also
keeps a bounded buffer of recent events per execution for the
GET /executions/{id}/events endpoint.
"""

import logging
from collections import OrderedDict, deque
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional

from core.models.events import EventStatus, EventType, ExecutionEvent

logger = logging.getLogger(__name__)

EventSubscriber = Callable[[ExecutionEvent], Awaitable[None]]

MAX_EVENTS_PER_EXECUTION = 200
MAX_TRACKED_EXECUTIONS = 500


class EventService:
    """In-process publish/subscribe for execution events."""

    def __init__(
        self,
        max_events_per_execution: int = MAX_EVENTS_PER_EXECUTION,
        max_tracked_executions: int = MAX_TRACKED_EXECUTIONS,
    ):
        self._subscribers: List[EventSubscriber] = []
        self._recent: "OrderedDict[str, Deque[ExecutionEvent]]" = OrderedDict()
        self._max_events = max_events_per_execution
        self._max_executions = max_tracked_executions

    # =========================================================================
    # SUBSCRIPTIONS
    # =========================================================================

    def subscribe(self, subscriber: EventSubscriber) -> None:
        self._subscribers.append(subscriber)

    def unsubscribe(self, subscriber: EventSubscriber) -> None:
        if subscriber in self._subscribers:
            self._subscribers.remove(subscriber)

    # =========================================================================
    # CORE PUBLISH
    # =========================================================================

    async def publish(self, event: ExecutionEvent) -> None:
        """Buffer the event and deliver it. Never raises."""
        self._remember(event)

        for subscriber in list(self._subscribers):
            try:
                await subscriber(event)
            except Exception as e:
                # Fire-and-forget - log but don't raise
                logger.warning(
                    f"Event subscriber failed on {event.event_type.value} "
                    f"for execution {event.execution_id}: {e}"
                )

    async def emit(
        self,
        event_type: EventType,
        execution_id: str,
        stage: str,
        message: str = "",
        percent: int = 0,
        node_id: Optional[str] = None,
        status: EventStatus = EventStatus.INFO,
        data: Optional[Dict[str, Any]] = None,
        duration_ms: Optional[int] = None,
    ) -> Optional[ExecutionEvent]:
        """
        Build and publish an event.

        Returns:
            The published event, or None if it could not be built
        """
        try:
            event = ExecutionEvent(
                execution_id=execution_id,
                event_type=event_type,
                event_status=status,
                node_id=node_id,
                stage=stage,
                message=message[:2000],
                percent=max(0, min(100, percent)),
                data=data or {},
                duration_ms=duration_ms,
            )
        except Exception as e:
            logger.warning(f"Failed to build event {event_type.value} for execution {execution_id}: {e}")
            return None

        await self.publish(event)
        logger.debug(
            f"Event emitted: {event_type.value} for execution={execution_id}"
            + (f", node={node_id}" if node_id else "")
        )
        return event

    # =========================================================================
    # RETRIEVAL
    # =========================================================================

    def recent(self, execution_id: str, limit: Optional[int] = None) -> List[ExecutionEvent]:
        """Buffered events for an execution, oldest first."""
        events = list(self._recent.get(execution_id, ()))
        if limit is not None:
            events = events[-limit:]
        return events

    def _remember(self, event: ExecutionEvent) -> None:
        buffer = self._recent.get(event.execution_id)
        if buffer is None:
            buffer = deque(maxlen=self._max_events)
            self._recent[event.execution_id] = buffer
            while len(self._recent) > self._max_executions:
                self._recent.popitem(last=False)
        buffer.append(event)


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = ["EventService", "EventSubscriber"]
