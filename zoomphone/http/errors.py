"""API error taxonomy: one classification at the HTTP boundary.

Every failed outbound call becomes exactly one ApiError subclass. Callers
branch on ``error.kind`` and never re-interpret status codes themselves.

Status mapping:
- 400 -> validation (field details from the body's ``errors`` list)
- 401 -> auth
- 403 -> permission (``required_scopes`` hint when present)
- 404 -> not_found
- 429 -> rate_limited (Retry-After header, 60s when absent)
- anything else -> server_error (status code kept)
- no response -> network_error (underlying exception kept)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar

import httpx

logger = logging.getLogger(__name__)

DEFAULT_RETRY_AFTER_SECONDS = 60.0


class ApiErrorKind(str, Enum):
    """Discriminator for ApiError variants."""

    VALIDATION = "validation"
    AUTH = "auth"
    PERMISSION = "permission"
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    NETWORK_ERROR = "network_error"


@dataclass(frozen=True)
class ValidationDetail:
    field: str
    message: str


@dataclass(frozen=True)
class ApiError:
    """Base for all classified API errors."""

    message: str

    kind: ClassVar[ApiErrorKind]


@dataclass(frozen=True)
class ValidationError(ApiError):
    details: tuple[ValidationDetail, ...] = ()

    kind: ClassVar[ApiErrorKind] = ApiErrorKind.VALIDATION


@dataclass(frozen=True)
class AuthenticationError(ApiError):
    kind: ClassVar[ApiErrorKind] = ApiErrorKind.AUTH


@dataclass(frozen=True)
class PermissionDenied(ApiError):
    required_scopes: tuple[str, ...] = ()

    kind: ClassVar[ApiErrorKind] = ApiErrorKind.PERMISSION


@dataclass(frozen=True)
class NotFound(ApiError):
    resource_type: str = "unknown"
    resource_id: str = "unknown"

    kind: ClassVar[ApiErrorKind] = ApiErrorKind.NOT_FOUND


@dataclass(frozen=True)
class RateLimited(ApiError):
    retry_after: float = DEFAULT_RETRY_AFTER_SECONDS

    kind: ClassVar[ApiErrorKind] = ApiErrorKind.RATE_LIMITED


@dataclass(frozen=True)
class ServerError(ApiError):
    status_code: int = 500

    kind: ClassVar[ApiErrorKind] = ApiErrorKind.SERVER_ERROR


@dataclass(frozen=True)
class NetworkError(ApiError):
    cause: BaseException | None = None

    kind: ClassVar[ApiErrorKind] = ApiErrorKind.NETWORK_ERROR


class ApiRequestError(Exception):
    """Raised by iterator-style APIs that cannot return a Result."""

    def __init__(self, error: ApiError) -> None:
        super().__init__(error.message)
        self.error = error


def parse_retry_after(value: str | None) -> float | None:
    """Parse a Retry-After header given in seconds. HTTP-date form is ignored.

    Zero is returned as 0.0; negative values are treated as absent.
    """
    if not value:
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        logger.debug("Unparseable Retry-After header: %r", value)
        return None
    return seconds if seconds >= 0 else None


def _body_of(response: httpx.Response) -> dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def _validation_details(raw: Any) -> tuple[ValidationDetail, ...]:
    if not isinstance(raw, list):
        return ()
    details = []
    for item in raw:
        if isinstance(item, dict):
            details.append(
                ValidationDetail(
                    field=str(item.get("field", "")),
                    message=str(item.get("message", "")),
                )
            )
    return tuple(details)


def classify_response(response: httpx.Response) -> ApiError:
    """Map a non-2xx response to its ApiError variant."""
    status = response.status_code
    body = _body_of(response)
    message = str(body.get("message") or response.reason_phrase or f"HTTP {status}")

    if status == 400:
        return ValidationError(message=message, details=_validation_details(body.get("errors")))
    if status == 401:
        return AuthenticationError(message=message)
    if status == 403:
        scopes = body.get("required_scopes")
        return PermissionDenied(
            message=message,
            required_scopes=tuple(scopes) if isinstance(scopes, list) else (),
        )
    if status == 404:
        return NotFound(message=message)
    if status == 429:
        retry_after = parse_retry_after(response.headers.get("Retry-After"))
        return RateLimited(
            message="Rate limit exceeded",
            retry_after=retry_after if retry_after is not None else DEFAULT_RETRY_AFTER_SECONDS,
        )
    return ServerError(message=message, status_code=status)


def classify_exception(exc: Exception) -> NetworkError:
    """Map a transport failure (no response received) to a NetworkError."""
    return NetworkError(message=str(exc) or type(exc).__name__, cause=exc)
