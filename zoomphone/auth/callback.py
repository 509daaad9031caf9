"""Local OAuth redirect target for the interactive authorization flow.

Zoom redirects the browser to ZOOM_REDIRECT_URI (http://localhost:3000/oauth/callback
by default) with ?code=...&state=... . The handler exchanges the code through
OAuthService and renders a small HTML page for the user.
"""

from __future__ import annotations

import asyncio
import html
import logging
from dataclasses import dataclass
from typing import Callable

from fastapi import FastAPI
from fastapi.responses import HTMLResponse

from zoomphone.auth.oauth import OAuthService
from zoomphone.serving import bind_socket, make_server

logger = logging.getLogger(__name__)

CALLBACK_PORT = 3000
AUTH_TIMEOUT_SECONDS = 300.0

_PAGE_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <title>{title}</title>
  <style>
    body {{ font-family: -apple-system, 'Segoe UI', Roboto, sans-serif; display: flex;
           justify-content: center; align-items: center; min-height: 100vh; margin: 0;
           background-color: #f5f5f5; }}
    .container {{ text-align: center; padding: 40px; background: white; border-radius: 8px;
                 box-shadow: 0 2px 10px rgba(0,0,0,0.1); max-width: 500px; }}
    .success {{ color: #28a745; font-weight: bold; }}
    .error {{ color: #dc3545; font-weight: bold; }}
  </style>
</head>
<body>
  <div class="container">
    <h1>{title}</h1>
    <p class="{css_class}">{message}</p>
    <p>{hint}</p>
  </div>
</body>
</html>"""


@dataclass(frozen=True)
class CallbackResult:
    success: bool
    error: str | None = None


def _render(title: str, message: str, ok: bool) -> HTMLResponse:
    hint = (
        "You can close this window and return to the terminal."
        if ok
        else "Please close this window and try again."
    )
    page = _PAGE_TEMPLATE.format(
        title=html.escape(title),
        css_class="success" if ok else "error",
        message=html.escape(message),
        hint=hint,
    )
    return HTMLResponse(page, status_code=200 if ok else 400)


def create_callback_app(
    oauth: OAuthService,
    expected_state: str | None,
    on_result: Callable[[CallbackResult], None],
) -> FastAPI:
    """FastAPI app serving /oauth/callback and /health."""
    app = FastAPI(title="Zoom OAuth Callback")

    @app.get("/oauth/callback")
    async def oauth_callback(
        code: str | None = None,
        state: str | None = None,
        error: str | None = None,
        error_description: str | None = None,
    ):
        if error:
            message = f"{error}: {error_description}" if error_description else error
            logger.error("OAuth error received: %s", message)
            on_result(CallbackResult(success=False, error=message))
            return _render("Authentication Error", f"Error: {message}", ok=False)

        if not code:
            logger.error("No authorization code received")
            on_result(CallbackResult(success=False, error="No authorization code received"))
            return _render("Authentication Error", "No authorization code received.", ok=False)

        if expected_state is not None and state != expected_state:
            logger.error("OAuth state mismatch, ignoring callback")
            on_result(CallbackResult(success=False, error="State mismatch"))
            return _render("Authentication Error", "State mismatch.", ok=False)

        logger.info("Received authorization code, exchanging for token")
        result = await oauth.exchange_code(code)
        if not result.success:
            on_result(CallbackResult(success=False, error=result.error.message))
            return _render(
                "Authentication Error",
                f"Failed to exchange authorization code: {result.error.message}",
                ok=False,
            )

        on_result(CallbackResult(success=True))
        return _render("Authentication Successful", "Authentication completed successfully!", ok=True)

    @app.get("/health")
    async def health():
        return {"status": "ok", "service": "oauth-callback"}

    return app


async def wait_for_callback(
    oauth: OAuthService,
    state: str,
    host: str = "127.0.0.1",
    port: int = CALLBACK_PORT,
    timeout: float = AUTH_TIMEOUT_SECONDS,
) -> CallbackResult:
    """Serve the callback app until the first callback arrives or ``timeout`` elapses."""
    loop = asyncio.get_running_loop()
    outcome: asyncio.Future[CallbackResult] = loop.create_future()

    def on_result(result: CallbackResult) -> None:
        if not outcome.done():
            outcome.set_result(result)

    try:
        sock = bind_socket(host, port)
    except OSError as exc:
        return CallbackResult(
            success=False,
            error=f"Port {port} is already in use. Please stop any other service using this port. ({exc})",
        )

    server = make_server(create_callback_app(oauth, state, on_result), host, port)
    serve_task = asyncio.create_task(server.serve(sockets=[sock]))
    logger.info("OAuth callback server started on %s:%d", host, port)
    try:
        done, _ = await asyncio.wait(
            {outcome, serve_task}, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
        )
        if outcome in done:
            return outcome.result()
        if serve_task in done:
            return CallbackResult(success=False, error="Callback server stopped unexpectedly")
        logger.warning("OAuth callback timeout")
        return CallbackResult(success=False, error="Authentication timeout. Please try again.")
    finally:
        server.should_exit = True
        await serve_task
        sock.close()
        logger.info("OAuth callback server stopped")
