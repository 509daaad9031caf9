"""Tests for the event dispatch queue and dedup set.

Tests:
- Duplicate deliveries invoke subscribers once
- Subscriber isolation and registration order
- FIFO dispatch order and category routing
- Bounded dedup set eviction
"""

from __future__ import annotations

import asyncio

import pytest
from helpers import zoom_event
from hypothesis import given
from hypothesis import strategies as st

from zoomphone.webhooks.dispatcher import EventCategory, EventDispatchQueue, WebhookEvent
from zoomphone.webhooks.idempotency import DedupSet, event_identity

COMPLETED = "phone.callee_call_history_completed"


def _event(event_type: str = COMPLETED, event_ts: int = 1700000000000, **obj) -> WebhookEvent:
    return WebhookEvent.from_body(zoom_event(event_type, obj, event_ts=event_ts))


class TestEventIdentity:
    def test_prefers_call_log_id(self):
        event = _event(call_log_id="L1", call_id="C1")
        assert event_identity(event) == f"{COMPLETED}:L1"

    def test_falls_back_to_call_id(self):
        event = _event("phone.callee_ringing", call_id="C1")
        assert event_identity(event) == "phone.callee_ringing:C1"

    def test_falls_back_to_event_ts(self):
        event = _event("phone.callee_ended", event_ts=42)
        assert event_identity(event) == "phone.callee_ended:42"

    def test_same_call_different_event_types_are_distinct(self):
        assert event_identity(_event(COMPLETED, call_log_id="L1")) != event_identity(
            _event("phone.caller_call_history_completed", call_log_id="L1")
        )


class TestWebhookEvent:
    def test_from_body_maps_fields(self):
        event = _event(call_id="C1")
        assert event.event_type == COMPLETED
        assert event.account_id == "acct-1"
        assert event.object == {"call_id": "C1"}

    def test_body_without_event_rejected(self):
        with pytest.raises(ValueError):
            WebhookEvent.from_body({"payload": {}})

    def test_non_object_body_rejected(self):
        with pytest.raises(ValueError):
            WebhookEvent.from_body(["not", "an", "object"])


class TestDispatch:
    @pytest.mark.asyncio
    async def test_duplicate_delivery_invokes_once(self):
        queue = EventDispatchQueue()
        seen = []
        queue.on_call_completed(lambda event: seen.append(event.object["call_log_id"]))

        assert queue.handle_event(_event(call_log_id="L1")) is True
        await queue.wait_idle()
        assert queue.handle_event(_event(call_log_id="L1")) is False
        await queue.wait_idle()

        assert seen == ["L1"]
        assert queue.processed_count == 1

    @pytest.mark.asyncio
    async def test_duplicate_queued_before_first_drains_invokes_once(self):
        queue = EventDispatchQueue()
        seen = []

        async def subscriber(event: WebhookEvent) -> None:
            await asyncio.sleep(0)
            seen.append(event.object["call_log_id"])

        queue.on_call_completed(subscriber)
        queue.handle_event(_event(call_log_id="L1"))
        queue.handle_event(_event(call_log_id="L1"))
        await queue.wait_idle()

        assert seen == ["L1"]

    @pytest.mark.asyncio
    async def test_failing_subscriber_is_isolated(self):
        queue = EventDispatchQueue()
        calls = []

        def broken(event: WebhookEvent) -> None:
            calls.append("broken")
            raise RuntimeError("subscriber bug")

        async def healthy(event: WebhookEvent) -> None:
            calls.append("healthy")

        queue.on_call_completed(broken)
        queue.on_call_completed(healthy)

        queue.handle_event(_event(call_log_id="L1"))
        queue.handle_event(_event(call_log_id="L2"))
        await queue.wait_idle()

        assert calls == ["broken", "healthy", "broken", "healthy"]
        assert queue.processed_count == 2

    @pytest.mark.asyncio
    async def test_events_dispatched_in_fifo_order(self):
        queue = EventDispatchQueue()
        order = []

        async def subscriber(event: WebhookEvent) -> None:
            await asyncio.sleep(0)
            order.append(event.object["call_log_id"])

        queue.on_call_completed(subscriber)
        for n in range(5):
            queue.handle_event(_event(call_log_id=f"L{n}"))
        await queue.wait_idle()

        assert order == ["L0", "L1", "L2", "L3", "L4"]
        assert queue.queue_length == 0

    @pytest.mark.asyncio
    async def test_handle_event_returns_before_subscribers_run(self):
        queue = EventDispatchQueue()
        seen = []
        queue.on_ringing(lambda event: seen.append(event.object["call_id"]))

        queue.handle_event(_event("phone.callee_ringing", call_id="C1"))
        assert seen == []
        assert queue.queue_length == 1

        await queue.wait_idle()
        assert seen == ["C1"]

    @pytest.mark.asyncio
    async def test_routes_by_category(self):
        queue = EventDispatchQueue()
        seen: dict[str, list[str]] = {c.value: [] for c in EventCategory}
        for category in EventCategory:
            queue.subscribe(category, lambda e, c=category: seen[c.value].append(e.event_type))

        for event_type in (
            "phone.caller_call_history_completed",
            "phone.callee_ringing",
            "phone.callee_answered",
            "phone.callee_missed",
            "phone.callee_ended",
            "phone.something_else",
        ):
            queue.handle_event(_event(event_type, call_id=event_type))
        await queue.wait_idle()

        assert seen == {
            "call_completed": ["phone.caller_call_history_completed"],
            "ringing": ["phone.callee_ringing"],
            "answered": ["phone.callee_answered"],
            "missed": ["phone.callee_missed"],
            "ended": ["phone.callee_ended"],
        }

    @pytest.mark.asyncio
    async def test_every_subscriber_in_a_category_runs(self):
        queue = EventDispatchQueue()
        calls = []
        for n in range(3):
            queue.on_missed(lambda e, n=n: calls.append(n))
        assert queue.subscriber_count(EventCategory.MISSED) == 3

        queue.handle_event(_event("phone.callee_missed", call_id="C9"))
        await queue.wait_idle()
        assert calls == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_eviction_allows_redelivery_after_cap(self):
        queue = EventDispatchQueue(dedup_capacity=2)
        seen = []
        queue.on_call_completed(lambda e: seen.append(e.object["call_log_id"]))

        for log_id in ("L1", "L2", "L3"):
            queue.handle_event(_event(call_log_id=log_id))
        await queue.wait_idle()
        queue.handle_event(_event(call_log_id="L1"))
        await queue.wait_idle()

        assert seen == ["L1", "L2", "L3", "L1"]
        assert queue.processed_count == 2


class TestDedupSet:
    @given(st.lists(st.text(min_size=1, max_size=8), max_size=300), st.integers(1, 50))
    def test_never_exceeds_capacity_and_keeps_newest(self, identities, capacity):
        dedup = DedupSet(capacity)
        for identity in identities:
            dedup.add(identity)

        assert len(dedup) <= capacity
        if identities:
            assert identities[-1] in dedup

    def test_oldest_evicted_first(self):
        dedup = DedupSet(2)
        for identity in ("a", "b", "c"):
            dedup.add(identity)
        assert "a" not in dedup
        assert "b" in dedup and "c" in dedup

    def test_capacity_must_be_positive(self):
        with pytest.raises(ValueError):
            DedupSet(0)
