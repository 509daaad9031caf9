"""Tests for the local OAuth callback server app."""

from __future__ import annotations

import httpx
import pytest
from fastapi.testclient import TestClient
from helpers import TokenEndpoint, token_response

from zoomphone.auth.callback import CallbackResult, create_callback_app


@pytest.fixture()
def results() -> list[CallbackResult]:
    return []


def _client(oauth, results, state="state-1") -> TestClient:
    return TestClient(create_callback_app(oauth, state, results.append))


class TestCallbackRoute:
    def test_successful_exchange(self, make_oauth, memory_store, results):
        endpoint = TokenEndpoint(token_response("AT1", "RT1"))
        client = _client(make_oauth(endpoint), results)

        resp = client.get("/oauth/callback", params={"code": "abc123", "state": "state-1"})

        assert resp.status_code == 200
        assert "Authentication Successful" in resp.text
        assert results == [CallbackResult(success=True)]
        assert memory_store.record.access_token == "AT1"
        assert endpoint.call_count == 1

    def test_vendor_error_is_reported(self, make_oauth, results):
        client = _client(make_oauth(TokenEndpoint(token_response("unused"))), results)

        resp = client.get(
            "/oauth/callback",
            params={"error": "access_denied", "error_description": "User denied <access>"},
        )

        assert resp.status_code == 400
        assert "User denied &lt;access&gt;" in resp.text
        assert results[0].success is False
        assert results[0].error == "access_denied: User denied <access>"

    def test_missing_code(self, make_oauth, results):
        endpoint = TokenEndpoint(token_response("unused"))
        resp = _client(make_oauth(endpoint), results).get("/oauth/callback", params={"state": "state-1"})

        assert resp.status_code == 400
        assert results[0].error == "No authorization code received"
        assert endpoint.call_count == 0

    def test_state_mismatch_skips_exchange(self, make_oauth, results):
        endpoint = TokenEndpoint(token_response("AT1"))
        client = _client(make_oauth(endpoint), results)

        resp = client.get("/oauth/callback", params={"code": "abc123", "state": "forged"})

        assert resp.status_code == 400
        assert results[0].error == "State mismatch"
        assert endpoint.call_count == 0

    def test_rejected_code(self, make_oauth, results):
        endpoint = TokenEndpoint(httpx.Response(400, json={"reason": "Invalid authorization code"}))
        client = _client(make_oauth(endpoint), results)

        resp = client.get("/oauth/callback", params={"code": "bad", "state": "state-1"})

        assert resp.status_code == 400
        assert "Invalid authorization code" in resp.text
        assert results[0].success is False

    def test_health(self, make_oauth, results):
        resp = _client(make_oauth(TokenEndpoint(token_response("unused"))), results).get("/health")
        assert resp.json() == {"status": "ok", "service": "oauth-callback"}
