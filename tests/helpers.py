"""Test doubles and request builders shared across test modules."""

from __future__ import annotations

import hashlib
import hmac
import json
import time
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx

from zoomphone.auth.token_store import CredentialRecord

WEBHOOK_SECRET = "whsec-test-secret"
CLIENT_ID = "client-id"
CLIENT_SECRET = "client-secret"
REDIRECT_URI = "http://localhost:3000/oauth/callback"


class RecordingSleep:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class TokenEndpoint:
    """MockTransport handler for the OAuth token endpoint.

    Responses are served in order; the last one repeats.
    """

    def __init__(self, *responses: httpx.Response) -> None:
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        index = min(len(self.requests), len(self.responses)) - 1
        return self.responses[index]

    @property
    def call_count(self) -> int:
        return len(self.requests)

    def form(self, index: int = -1) -> dict[str, str]:
        return dict(httpx.QueryParams(self.requests[index].content.decode()))


def token_response(access_token: str, refresh_token: str = "RT", expires_in: int = 3600) -> httpx.Response:
    return httpx.Response(
        200,
        json={
            "access_token": access_token,
            "refresh_token": refresh_token,
            "token_type": "bearer",
            "expires_in": expires_in,
            "scope": "phone:read:list_call_logs",
        },
    )


def record_expiring_in(delta: timedelta, access_token: str = "AT0", refresh_token: str = "RT0") -> CredentialRecord:
    return CredentialRecord(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_at=datetime.now(timezone.utc) + delta,
    )


def sign_delivery(body: bytes, timestamp: int | None = None, secret: str = WEBHOOK_SECRET) -> dict[str, str]:
    """Headers for a correctly signed Zoom webhook delivery."""
    ts = str(timestamp if timestamp is not None else int(time.time()))
    digest = hmac.new(secret.encode(), f"v0:{ts}:".encode() + body, hashlib.sha256).hexdigest()
    return {
        "x-zm-signature": f"v0={digest}",
        "x-zm-request-timestamp": ts,
        "content-type": "application/json",
    }


def zoom_event(event: str, obj: dict[str, Any] | None = None, event_ts: int = 1700000000000) -> dict[str, Any]:
    return {
        "event": event,
        "event_ts": event_ts,
        "payload": {"account_id": "acct-1", "object": obj or {}},
    }


def json_body(data: Any) -> bytes:
    return json.dumps(data).encode()
