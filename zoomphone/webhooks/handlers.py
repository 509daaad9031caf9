"""Webhook HTTP handlers: FastAPI routes for inbound Zoom deliveries.

Each delivery:
1. Reads raw body (needed for HMAC verification)
2. Verifies signature and timestamp
3. Answers endpoint.url_validation synchronously (never queued)
4. Dedups and enqueues the event
5. Returns 200 immediately (subscribers run in the background drain)

Security contract:
- Never return error details to the webhook sender
- Return 401 only for signature failures
- Log all webhook activity for audit trail
"""

from __future__ import annotations

import json
import logging
import time

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from zoomphone.config import Settings
from zoomphone.serving import bind_socket, make_server
from zoomphone.webhooks.dispatcher import URL_VALIDATION_EVENT, EventDispatchQueue, WebhookEvent
from zoomphone.webhooks.verification import (
    SIGNATURE_HEADER,
    TIMESTAMP_HEADER,
    encrypt_plain_token,
    verify_signature,
)

logger = logging.getLogger(__name__)


def _log_webhook(event_type: str, status: str) -> None:
    """Audit log for webhook activity."""
    logger.info("WEBHOOK_AUDIT event=%s status=%s", event_type, status)


def create_webhook_app(secret: str, queue: EventDispatchQueue) -> FastAPI:
    """Build the webhook receiver app bound to a secret and a dispatch queue."""
    app = FastAPI(title="Zoom Phone Webhooks")
    app.state.queue = queue

    async def receive(request: Request) -> JSONResponse:
        start = time.time()
        body = await request.body()

        if not verify_signature(
            secret,
            body,
            request.headers.get(SIGNATURE_HEADER),
            request.headers.get(TIMESTAMP_HEADER),
        ):
            _log_webhook("unknown", "signature_failed")
            return JSONResponse({"error": "Invalid signature"}, status_code=401)

        try:
            data = json.loads(body)
            event = WebhookEvent.from_body(data)

            if event.event_type == URL_VALIDATION_EVENT:
                plain_token = event.payload.get("plainToken")
                if plain_token:
                    _log_webhook(event.event_type, "validated")
                    return JSONResponse(
                        {
                            "plainToken": plain_token,
                            "encryptedToken": encrypt_plain_token(secret, str(plain_token)),
                        }
                    )

            queued = queue.handle_event(event)
        except Exception:
            logger.exception("Error handling webhook request")
            _log_webhook("unknown", "error")
            return JSONResponse({"error": "Internal server error"}, status_code=500)

        _log_webhook(event.event_type, "queued" if queued else "duplicate")
        elapsed_ms = (time.time() - start) * 1000
        logger.debug("Webhook accepted in %.1fms: %s", elapsed_ms, event.event_type)
        return JSONResponse({"status": "received"})

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    app.add_api_route("/", receive, methods=["POST"])
    app.add_api_route("/webhook", receive, methods=["POST"])

    logger.debug("Webhook routes registered: /, /webhook, /health")
    return app


class WebhookServer:
    """Runs the webhook app under uvicorn on the configured port."""

    def __init__(
        self,
        settings: Settings,
        queue: EventDispatchQueue,
        host: str = "0.0.0.0",
        port: int | None = None,
    ) -> None:
        self._settings = settings
        self.queue = queue
        self.host = host
        self.port = port or settings.webhook_port
        self.app = create_webhook_app(settings.webhook_secret, queue)
        self._server: uvicorn.Server | None = None

    async def serve(self) -> None:
        """Serve until stopped. A port that cannot be bound aborts startup."""
        if not self._settings.webhook_secret:
            logger.warning("ZOOM_WEBHOOK_SECRET_TOKEN not set, every delivery will be rejected")
        sock = bind_socket(self.host, self.port)
        self._server = make_server(self.app, self.host, self.port)
        logger.info(
            "Webhook server starting on %s:%d (endpoints: /health, /, /webhook)",
            self.host,
            self.port,
        )
        try:
            await self._server.serve(sockets=[sock])
        finally:
            sock.close()
        logger.info("Webhook server stopped")

    def stop(self) -> None:
        if self._server is not None:
            self._server.should_exit = True
