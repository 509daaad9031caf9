"""Webhook event dispatcher: in-memory FIFO queue routed to subscribers.

Maps Zoom Phone event types to categories and drains queued events to the
callbacks registered for each category.

Contract:
- handle_event() dedups and enqueues synchronously, then schedules the drain
  as a background task; the webhook response never waits for subscribers
- One drain at a time (boolean guard); events queued while a drain runs are
  picked up by that drain's loop
- Subscribers run in registration order; a failing subscriber is logged and
  does not stop its siblings or later events
- Identity is marked processed after dispatch, re-checked at drain time
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Union

from zoomphone.webhooks.idempotency import DEFAULT_DEDUP_CAPACITY, DedupSet, event_identity

logger = logging.getLogger(__name__)

URL_VALIDATION_EVENT = "endpoint.url_validation"


@dataclass(frozen=True)
class WebhookEvent:
    """Verified Zoom webhook delivery."""

    event_type: str
    event_ts: int
    account_id: str
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def object(self) -> dict[str, Any]:
        """The event's ``payload.object`` (call details), or an empty dict."""
        obj = self.payload.get("object")
        return obj if isinstance(obj, dict) else {}

    @classmethod
    def from_body(cls, body: Any) -> WebhookEvent:
        """Build from a decoded request body. Raises ValueError when malformed."""
        if not isinstance(body, dict) or not isinstance(body.get("event"), str):
            raise ValueError("webhook body must be an object with an 'event' string")
        payload = body.get("payload")
        if not isinstance(payload, dict):
            payload = {}
        try:
            event_ts = int(body.get("event_ts") or 0)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"invalid event_ts: {body.get('event_ts')!r}") from exc
        return cls(
            event_type=body["event"],
            event_ts=event_ts,
            account_id=str(payload.get("account_id", "")),
            payload=payload,
        )


class EventCategory(str, Enum):
    CALL_COMPLETED = "call_completed"
    RINGING = "ringing"
    ANSWERED = "answered"
    MISSED = "missed"
    ENDED = "ended"


# Zoom event type -> subscriber category
EVENT_CATEGORIES: dict[str, EventCategory] = {
    "phone.callee_call_history_completed": EventCategory.CALL_COMPLETED,
    "phone.caller_call_history_completed": EventCategory.CALL_COMPLETED,
    "phone.callee_ringing": EventCategory.RINGING,
    "phone.callee_answered": EventCategory.ANSWERED,
    "phone.callee_missed": EventCategory.MISSED,
    "phone.callee_ended": EventCategory.ENDED,
}

Subscriber = Callable[[WebhookEvent], Union[Awaitable[None], None]]


@dataclass
class QueuedEvent:
    event: WebhookEvent
    identity: str
    received_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class EventDispatchQueue:
    """FIFO of verified events with dedup and a single background drain."""

    def __init__(self, dedup_capacity: int = DEFAULT_DEDUP_CAPACITY) -> None:
        self._queue: deque[QueuedEvent] = deque()
        self._processed = DedupSet(dedup_capacity)
        self._subscribers: dict[EventCategory, list[Subscriber]] = {
            category: [] for category in EventCategory
        }
        self._draining = False
        self._drain_task: asyncio.Task | None = None

    # -- Registration --------------------------------------------------------

    def subscribe(self, category: EventCategory, callback: Subscriber) -> None:
        self._subscribers[category].append(callback)
        logger.debug(
            "Subscriber registered for %s (total: %d)",
            category.value,
            len(self._subscribers[category]),
        )

    def on_call_completed(self, callback: Subscriber) -> None:
        self.subscribe(EventCategory.CALL_COMPLETED, callback)

    def on_ringing(self, callback: Subscriber) -> None:
        self.subscribe(EventCategory.RINGING, callback)

    def on_answered(self, callback: Subscriber) -> None:
        self.subscribe(EventCategory.ANSWERED, callback)

    def on_missed(self, callback: Subscriber) -> None:
        self.subscribe(EventCategory.MISSED, callback)

    def on_ended(self, callback: Subscriber) -> None:
        self.subscribe(EventCategory.ENDED, callback)

    def subscriber_count(self, category: EventCategory) -> int:
        return len(self._subscribers[category])

    # -- Monitoring ----------------------------------------------------------

    @property
    def queue_length(self) -> int:
        return len(self._queue)

    @property
    def processed_count(self) -> int:
        return len(self._processed)

    def is_processed(self, event: WebhookEvent) -> bool:
        return event_identity(event) in self._processed

    # -- Intake --------------------------------------------------------------

    def handle_event(self, event: WebhookEvent) -> bool:
        """Enqueue a verified event and schedule the drain.

        Must be called from a running event loop. Returns False when the
        event was already processed and has been dropped.
        """
        identity = event_identity(event)
        logger.info(
            "Received webhook event: %s (event_ts=%d, account=%s)",
            event.event_type,
            event.event_ts,
            event.account_id,
        )
        if identity in self._processed:
            logger.debug("Duplicate event detected, skipping: %s", identity)
            return False

        self._queue.append(QueuedEvent(event=event, identity=identity))
        logger.debug("Event queued: %s (queue length: %d)", identity, len(self._queue))

        if not self._draining:
            self._draining = True
            self._drain_task = asyncio.get_running_loop().create_task(self._drain())
            self._drain_task.add_done_callback(self._on_drain_done)
        return True

    async def wait_idle(self) -> None:
        """Wait until the current drain (if any) has emptied the queue."""
        while self._drain_task is not None and not self._drain_task.done():
            await asyncio.shield(self._drain_task)

    # -- Drain ---------------------------------------------------------------

    async def _drain(self) -> None:
        try:
            while self._queue:
                queued = self._queue.popleft()
                # Same identity may have been queued twice before the first finished.
                if queued.identity in self._processed:
                    continue
                await self._dispatch(queued.event)
                self._processed.add(queued.identity)
        finally:
            self._draining = False

    async def _dispatch(self, event: WebhookEvent) -> None:
        category = EVENT_CATEGORIES.get(event.event_type)
        if category is None:
            logger.debug("Unhandled event type: %s", event.event_type)
            return

        obj = event.object
        logger.info(
            "Dispatching %s (call_id=%s, call_log_id=%s) to %d subscriber(s)",
            event.event_type,
            obj.get("call_id"),
            obj.get("call_log_id"),
            len(self._subscribers[category]),
        )
        for callback in list(self._subscribers[category]):
            try:
                outcome = callback(event)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception:
                logger.exception(
                    "Error in %s subscriber (call_id=%s)",
                    category.value,
                    obj.get("call_id"),
                )

    @staticmethod
    def _on_drain_done(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Error processing event queue", exc_info=exc)
