"""Webhook idempotency: bounded in-memory deduplication.

Contract:
- Event identity is "{event_type}:{call_log_id | call_id | event_ts}"
- Identities are remembered in insertion order, capped at 1000 entries
- Above the cap the oldest identities are evicted, so a duplicate arriving
  after 1000 newer distinct events would be dispatched again
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from zoomphone.webhooks.dispatcher import WebhookEvent

logger = logging.getLogger(__name__)

DEFAULT_DEDUP_CAPACITY = 1000


def event_identity(event: WebhookEvent) -> str:
    """Derived identity used for duplicate detection."""
    obj = event.object
    for key in ("call_log_id", "call_id"):
        value = obj.get(key)
        if value:
            return f"{event.event_type}:{value}"
    return f"{event.event_type}:{event.event_ts}"


class DedupSet:
    """Insertion-ordered set of processed identities with FIFO eviction."""

    def __init__(self, capacity: int = DEFAULT_DEDUP_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self._capacity = capacity
        self._seen: OrderedDict[str, None] = OrderedDict()

    @property
    def capacity(self) -> int:
        return self._capacity

    def __contains__(self, identity: object) -> bool:
        return identity in self._seen

    def __len__(self) -> int:
        return len(self._seen)

    def add(self, identity: str) -> None:
        """Mark an identity processed, evicting the oldest entries above capacity."""
        self._seen[identity] = None
        while len(self._seen) > self._capacity:
            evicted, _ = self._seen.popitem(last=False)
            logger.debug("Evicted processed event id: %s", evicted)

    def clear(self) -> None:
        self._seen.clear()
