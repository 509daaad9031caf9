"""Webhook handler integration tests.

Verifies the full HTTP request flow:
- Signature verification at HTTP level (401, never queued)
- endpoint.url_validation answered synchronously
- 200 {"status": "received"} for accepted and duplicate events
- 500 without details for unparseable bodies
- Dispatch to subscribers after the response
"""

from __future__ import annotations

import time

import httpx
import pytest
from fastapi.testclient import TestClient
from helpers import WEBHOOK_SECRET, json_body, sign_delivery, zoom_event

from zoomphone.webhooks.dispatcher import EventDispatchQueue
from zoomphone.webhooks.handlers import create_webhook_app
from zoomphone.webhooks.verification import encrypt_plain_token

COMPLETED = "phone.callee_call_history_completed"


@pytest.fixture()
def queue() -> EventDispatchQueue:
    return EventDispatchQueue()


@pytest.fixture()
def client(queue) -> TestClient:
    return TestClient(create_webhook_app(WEBHOOK_SECRET, queue))


class TestWebhookEndpoint:
    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}

    @pytest.mark.parametrize("path", ["/", "/webhook"])
    def test_valid_event_returns_received(self, client, queue, path):
        body = json_body(zoom_event(COMPLETED, {"call_log_id": "L1"}))
        resp = client.post(path, content=body, headers=sign_delivery(body))

        assert resp.status_code == 200
        assert resp.json() == {"status": "received"}

    def test_url_validation_answered_and_not_queued(self, client, queue):
        body = json_body({"event": "endpoint.url_validation", "payload": {"plainToken": "qgg8vlvZRS6UYooatFL8Aw"}})
        resp = client.post("/webhook", content=body, headers=sign_delivery(body))

        assert resp.status_code == 200
        assert resp.json() == {
            "plainToken": "qgg8vlvZRS6UYooatFL8Aw",
            "encryptedToken": encrypt_plain_token(WEBHOOK_SECRET, "qgg8vlvZRS6UYooatFL8Aw"),
        }
        assert queue.processed_count == 0
        assert queue.queue_length == 0

    def test_altered_body_returns_401(self, client, queue):
        body = json_body(zoom_event(COMPLETED, {"call_log_id": "L1"}))
        headers = sign_delivery(body)
        tampered = body.replace(b"L1", b"L2")

        resp = client.post("/webhook", content=tampered, headers=headers)

        assert resp.status_code == 401
        assert resp.json() == {"error": "Invalid signature"}
        assert queue.queue_length == 0
        assert queue.processed_count == 0

    def test_ten_minute_old_timestamp_returns_401(self, client):
        body = json_body(zoom_event(COMPLETED, {"call_log_id": "L1"}))
        headers = sign_delivery(body, timestamp=int(time.time()) - 600)

        resp = client.post("/webhook", content=body, headers=headers)
        assert resp.status_code == 401

    def test_oversized_timestamp_returns_401(self, client, queue):
        body = json_body(zoom_event(COMPLETED, {"call_log_id": "L1"}))
        headers = sign_delivery(body, timestamp=int("9" * 400))

        resp = client.post("/webhook", content=body, headers=headers)

        assert resp.status_code == 401
        assert resp.json() == {"error": "Invalid signature"}
        assert queue.queue_length == 0

    def test_missing_headers_return_401(self, client):
        resp = client.post("/webhook", content=b"{}", headers={"content-type": "application/json"})
        assert resp.status_code == 401

    def test_unparseable_body_returns_500_without_details(self, client):
        body = b"{not json"
        resp = client.post("/webhook", content=body, headers=sign_delivery(body))

        assert resp.status_code == 500
        assert resp.json() == {"error": "Internal server error"}

    def test_missing_secret_rejects_everything(self, queue):
        client = TestClient(create_webhook_app("", queue))
        body = json_body(zoom_event(COMPLETED, {"call_log_id": "L1"}))
        resp = client.post("/webhook", content=body, headers=sign_delivery(body, secret=""))
        assert resp.status_code == 401


class TestDeliveryToSubscribers:
    @pytest.mark.asyncio
    async def test_two_deliveries_of_same_call_invoke_callback_once(self, queue):
        calls = []
        queue.on_call_completed(lambda event: calls.append(event.object["call_log_id"]))
        app = create_webhook_app(WEBHOOK_SECRET, queue)
        body = json_body(zoom_event(COMPLETED, {"call_log_id": "L1"}))

        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
            first = await client.post("/webhook", content=body, headers=sign_delivery(body))
            await queue.wait_idle()
            second = await client.post("/webhook", content=body, headers=sign_delivery(body))
            await queue.wait_idle()

        assert first.status_code == second.status_code == 200
        assert second.json() == {"status": "received"}
        assert calls == ["L1"]

    @pytest.mark.asyncio
    async def test_failing_subscriber_does_not_fail_delivery(self, queue):
        def broken(event):
            raise RuntimeError("boom")

        queue.on_ringing(broken)
        app = create_webhook_app(WEBHOOK_SECRET, queue)
        body = json_body(zoom_event("phone.callee_ringing", {"call_id": "C1"}))

        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
            resp = await client.post("/", content=body, headers=sign_delivery(body))
            await queue.wait_idle()

        assert resp.status_code == 200
        assert queue.processed_count == 1
