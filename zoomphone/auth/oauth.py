"""OAuth token lifecycle manager for the Zoom API.

Owns the cached CredentialRecord, decides when to refresh, talks to the
Zoom token endpoint and mirrors every new credential to a CredentialStore.

Refresh policy: proactive. When the cached credential has 15 minutes or
less left, get_access_token() refreshes before returning, so domain calls
never go out with a token about to lapse. The check uses the stored absolute
expiry and the local clock only.

Concurrent get_access_token() calls share one refresh (single-flight lock).
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Callable
from urllib.parse import urlencode

import httpx
from pydantic import BaseModel

from zoomphone.auth.errors import AuthError, AuthErrorKind
from zoomphone.auth.token_store import CredentialRecord, CredentialStore, TokenStoreError
from zoomphone.result import Err, Ok, Result

if TYPE_CHECKING:
    from zoomphone.config import Settings

logger = logging.getLogger(__name__)

AUTHORIZE_URL = "https://zoom.us/oauth/authorize"
TOKEN_URL = "https://zoom.us/oauth/token"

# User-level scopes; account-wide access would need the :admin variants.
REQUIRED_SCOPES = (
    "phone:read:list_call_logs",
    "phone:read:call_log",
    "phone:read:list_recordings",
    "phone:read:call_recording",
)

REFRESH_THRESHOLD = timedelta(minutes=15)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenResponse(BaseModel):
    """Body returned by the token endpoint."""

    access_token: str
    refresh_token: str = ""
    token_type: str = "bearer"
    expires_in: int
    scope: str = ""


def _vendor_reason(response: httpx.Response) -> str:
    """Best human-readable failure reason from a token endpoint error."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("reason", "error_description", "error"):
            if body.get(key):
                return str(body[key])
    return f"HTTP {response.status_code}"


class OAuthService:
    """Token lifecycle manager: authorize URL, code exchange, refresh, cache."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        store: CredentialStore,
        *,
        http_client: httpx.AsyncClient | None = None,
        authorize_url: str = AUTHORIZE_URL,
        token_url: str = TOKEN_URL,
        refresh_threshold: timedelta = REFRESH_THRESHOLD,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._redirect_uri = redirect_uri
        self._store = store
        self._http = http_client or httpx.AsyncClient(timeout=30.0)
        self._authorize_url = authorize_url
        self._token_url = token_url
        self._refresh_threshold = refresh_threshold
        self._clock = clock
        self._cached: CredentialRecord | None = None
        self._refresh_lock = asyncio.Lock()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: CredentialStore,
        http_client: httpx.AsyncClient | None = None,
    ) -> OAuthService:
        return cls(
            client_id=settings.client_id,
            client_secret=settings.client_secret,
            redirect_uri=settings.redirect_uri,
            store=store,
            http_client=http_client,
        )

    @property
    def credential(self) -> CredentialRecord | None:
        """The cached credential, loading it from the store on first access."""
        return self._load_cached()

    def get_authorization_url(self, state: str) -> str:
        """Build the vendor authorization URL for the given anti-CSRF state."""
        params = {
            "response_type": "code",
            "client_id": self._client_id,
            "redirect_uri": self._redirect_uri,
            "state": state,
            "scope": " ".join(REQUIRED_SCOPES),
        }
        logger.debug(
            "Generated authorization URL (client_id=%s, redirect_uri=%s)",
            self._client_id,
            self._redirect_uri,
        )
        return f"{self._authorize_url}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> Result[CredentialRecord, AuthError]:
        """Exchange an authorization code for a credential; persist and cache it."""
        logger.info("Exchanging authorization code for token")
        result = await self._request_token(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self._redirect_uri,
            },
            failure_kind=AuthErrorKind.INVALID_CODE,
            failure_prefix="Failed to exchange code",
        )
        if result.success:
            logger.info("Token exchange successful, expires at %s", result.value.expires_at.isoformat())
        return result

    async def refresh(self) -> Result[CredentialRecord, AuthError]:
        """Trade the current refresh token for a new credential pair."""
        logger.info("Refreshing access token")
        current = self._load_cached()
        if current is None or not current.refresh_token:
            return Err(AuthError(AuthErrorKind.REFRESH_FAILED, "No refresh token available"))

        result = await self._request_token(
            {"grant_type": "refresh_token", "refresh_token": current.refresh_token},
            failure_kind=AuthErrorKind.REFRESH_FAILED,
            failure_prefix="Failed to refresh token",
            fallback_refresh_token=current.refresh_token,
        )
        if result.success:
            logger.info("Token refresh successful, expires at %s", result.value.expires_at.isoformat())
        return result

    async def get_access_token(self) -> Result[str, AuthError]:
        """Return a usable access token, refreshing first when close to expiry."""
        record = self._load_cached()
        if record is None:
            return Err(
                AuthError(
                    AuthErrorKind.TOKEN_EXPIRED,
                    "No token available. Please authenticate first.",
                )
            )

        if not record.needs_refresh(self._refresh_threshold, now=self._clock()):
            return Ok(record.access_token)

        async with self._refresh_lock:
            # Another caller may have refreshed while we waited for the lock.
            current = self._cached
            now = self._clock()
            if current is not None and not current.needs_refresh(self._refresh_threshold, now=now):
                return Ok(current.access_token)

            logger.info("Token expired or about to expire, refreshing")
            refreshed = await self.refresh()
            if not refreshed.success:
                return refreshed
            return Ok(refreshed.value.access_token)

    def is_authenticated(self) -> bool:
        """True when a credential is cached that is either fresh or refreshable."""
        record = self._load_cached()
        if record is None:
            return False
        if record.refresh_token:
            return True
        return not record.needs_refresh(self._refresh_threshold, now=self._clock())

    def logout(self) -> None:
        """Forget the credential. Store failures are logged, never raised."""
        self._cached = None
        try:
            self._store.clear()
        except TokenStoreError:
            logger.exception("Failed to clear token store")
        logger.info("Logged out successfully")

    async def aclose(self) -> None:
        await self._http.aclose()

    def _load_cached(self) -> CredentialRecord | None:
        if self._cached is None:
            try:
                self._cached = self._store.load()
            except TokenStoreError as exc:
                logger.warning("Stored credential unusable, treating as logged out: %s", exc)
                return None
        return self._cached

    async def _request_token(
        self,
        form: dict[str, str],
        *,
        failure_kind: AuthErrorKind,
        failure_prefix: str,
        fallback_refresh_token: str = "",
    ) -> Result[CredentialRecord, AuthError]:
        try:
            response = await self._http.post(
                self._token_url,
                data=form,
                auth=httpx.BasicAuth(self._client_id, self._client_secret),
            )
        except httpx.TransportError as exc:
            logger.error("%s: network error: %s", failure_prefix, exc)
            return Err(AuthError(AuthErrorKind.NETWORK_ERROR, f"{failure_prefix}: {exc}"))

        if not response.is_success:
            reason = _vendor_reason(response)
            logger.error("%s (HTTP %d): %s", failure_prefix, response.status_code, reason)
            return Err(AuthError(failure_kind, f"{failure_prefix}: {reason}"))

        try:
            token = TokenResponse.model_validate(response.json())
        except ValueError as exc:
            logger.error("%s: malformed token response: %s", failure_prefix, exc)
            return Err(AuthError(failure_kind, f"{failure_prefix}: malformed token response"))

        record = CredentialRecord.issued(
            access_token=token.access_token,
            refresh_token=token.refresh_token or fallback_refresh_token,
            expires_in=token.expires_in,
            now=self._clock(),
        )
        try:
            self._store.save(record)
        except TokenStoreError as exc:
            return Err(AuthError(failure_kind, f"{failure_prefix}: {exc}"))

        self._cached = record
        return Ok(record)

