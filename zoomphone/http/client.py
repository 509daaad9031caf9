"""Resilient HTTP client for the Zoom REST API.

Wraps httpx.AsyncClient with:
- Bearer token injection (token supplied by the caller via set_auth_token)
- Bounded retry loop with exponential backoff / Retry-After (see retry.py)
- Single classification of failures into ApiError variants (see errors.py)

Nothing here raises for HTTP or transport failures; every call returns
Ok(decoded body) or Err(ApiError). The client does not know how to obtain a
token. Callers fetch one from OAuthService before each domain operation.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

import httpx

from zoomphone.http.errors import ApiError, classify_exception, classify_response
from zoomphone.http.retry import DEFAULT_RETRY_POLICY, RetryPolicy
from zoomphone.result import Err, Ok, Result

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
DOWNLOAD_TIMEOUT_SECONDS = 300.0

SleepFn = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class DownloadedContent:
    """Raw bytes of a binary download plus the reported media type."""

    content: bytes
    content_type: str


def _decode(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class ResilientHttpClient:
    """Async HTTP client with retry/backoff and typed error results."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        policy: RetryPolicy = DEFAULT_RETRY_POLICY,
        sleep: SleepFn = asyncio.sleep,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._policy = policy
        self._sleep = sleep
        self._auth_token: str | None = None
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            follow_redirects=True,
        )

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    @property
    def has_auth_token(self) -> bool:
        return self._auth_token is not None

    def set_auth_token(self, token: str) -> None:
        self._auth_token = token
        logger.debug("Auth token set")

    def clear_auth_token(self) -> None:
        self._auth_token = None
        logger.debug("Auth token cleared")

    async def get(
        self,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> Result[Any, ApiError]:
        result = await self._execute("GET", path, params=params, headers=headers, timeout=timeout)
        if not result.success:
            return result
        return Ok(_decode(result.value))

    async def post(
        self,
        path: str,
        *,
        json: Any = None,
        data: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> Result[Any, ApiError]:
        result = await self._execute(
            "POST", path, json=json, data=data, headers=headers, timeout=timeout
        )
        if not result.success:
            return result
        return Ok(_decode(result.value))

    async def download(
        self,
        path: str,
        *,
        timeout: float = DOWNLOAD_TIMEOUT_SECONDS,
    ) -> Result[DownloadedContent, ApiError]:
        """GET binary content using the extended download timeout."""
        result = await self._execute("GET", path, timeout=timeout)
        if not result.success:
            return result
        response = result.value
        return Ok(
            DownloadedContent(
                content=response.content,
                content_type=response.headers.get("content-type", "audio/mpeg"),
            )
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> ResilientHttpClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    def _headers(self, extra: dict[str, str] | None) -> dict[str, str]:
        headers = dict(extra or {})
        if self._auth_token:
            headers["Authorization"] = f"Bearer {self._auth_token}"
        return headers

    async def _execute(
        self,
        method: str,
        path: str,
        *,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
        **kwargs: Any,
    ) -> Result[httpx.Response, ApiError]:
        """Issue a request, retrying per policy. Attempts = max_retries + 1."""
        request_kwargs = {k: v for k, v in kwargs.items() if v is not None}
        if timeout is not None:
            request_kwargs["timeout"] = timeout
        max_retries = self._policy.max_retries

        for attempt in range(max_retries + 1):
            logger.debug("HTTP %s %s (attempt %d)", method, path, attempt + 1)
            try:
                response = await self._client.request(
                    method, path, headers=self._headers(headers), **request_kwargs
                )
            except httpx.TransportError as exc:
                if self._policy.retry_network_errors and attempt < max_retries:
                    delay = self._policy.backoff(attempt)
                    logger.warning(
                        "Retry %d/%d for %s %s (connection error: %s), waiting %.1fs",
                        attempt + 1,
                        max_retries,
                        method,
                        path,
                        type(exc).__name__,
                        delay,
                    )
                    await self._sleep(delay)
                    continue
                logger.error("HTTP %s %s failed without response: %s", method, path, exc)
                return Err(classify_exception(exc))

            if response.is_success:
                logger.debug("HTTP %s %s -> %d", method, path, response.status_code)
                return Ok(response)

            status = response.status_code
            if self._policy.is_retryable(status) and attempt < max_retries:
                delay = self._policy.compute_delay(attempt, response)
                logger.warning(
                    "Retry %d/%d for %s %s (HTTP %d), waiting %.1fs",
                    attempt + 1,
                    max_retries,
                    method,
                    path,
                    status,
                    delay,
                )
                await self._sleep(delay)
                continue

            error = classify_response(response)
            logger.warning(
                "HTTP %s %s failed: %s (HTTP %d)", method, path, error.kind.value, status
            )
            return Err(error)

        # Unreachable: the final attempt always returns above.
        raise RuntimeError("retry loop exited without a result")
