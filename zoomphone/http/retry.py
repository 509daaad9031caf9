"""Retry policy and exponential backoff for outbound API calls.

Retries on transient HTTP statuses (429, 500, 502, 503, 504).
A Retry-After hint on a 429 replaces the exponential delay for that attempt.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from zoomphone.http.errors import parse_retry_after

logger = logging.getLogger(__name__)

# HTTP status codes that trigger a retry
RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


@dataclass(frozen=True)
class RetryPolicy:
    """Immutable retry configuration shared by a client.

    Args:
        max_retries: Retries after the first attempt (total attempts = max_retries + 1).
        base_delay: Initial backoff in seconds.
        max_delay: Cap on the exponential backoff in seconds.
        retryable_status_codes: Statuses that may be retried.
        retry_network_errors: Also retry when no response was received.
    """

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    retryable_status_codes: frozenset[int] = RETRYABLE_STATUS_CODES
    retry_network_errors: bool = False

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must be >= 0")

    def is_retryable(self, status_code: int) -> bool:
        return status_code in self.retryable_status_codes

    def backoff(self, attempt: int) -> float:
        """Exponential backoff: base * 2^attempt, capped at max_delay."""
        return min(self.base_delay * (2**attempt), self.max_delay)

    def compute_delay(self, attempt: int, response: httpx.Response | None = None) -> float:
        """Delay before the next attempt, honoring Retry-After on 429."""
        if response is not None and response.status_code == 429:
            retry_after = parse_retry_after(response.headers.get("Retry-After"))
            # Retry-After: 0 uses backoff
            if retry_after:
                return retry_after
        return self.backoff(attempt)


DEFAULT_RETRY_POLICY = RetryPolicy()
