"""Shared fixtures for the zoomphone test suite."""

from __future__ import annotations

from typing import Callable

import httpx
import pytest
from helpers import CLIENT_ID, CLIENT_SECRET, REDIRECT_URI, RecordingSleep

from zoomphone.auth.oauth import OAuthService
from zoomphone.auth.token_store import InMemoryTokenStore


@pytest.fixture()
def memory_store() -> InMemoryTokenStore:
    return InMemoryTokenStore()


@pytest.fixture()
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture()
def make_oauth(memory_store: InMemoryTokenStore) -> Callable[..., OAuthService]:
    """Build an OAuthService whose token endpoint is the given handler."""

    def _make(handler: Callable[[httpx.Request], httpx.Response], store=None) -> OAuthService:
        return OAuthService(
            CLIENT_ID,
            CLIENT_SECRET,
            REDIRECT_URI,
            store if store is not None else memory_store,
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )

    return _make
