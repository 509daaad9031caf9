from __future__ import annotations

import logging

from zoomphone.auth.oauth import OAuthService
from zoomphone.http.client import ResilientHttpClient
from zoomphone.http.errors import ApiError
from zoomphone.result import Err

logger = logging.getLogger(__name__)


class AuthorizedService:
    """Base for domain services: fetches a token before every API call."""

    def __init__(self, http: ResilientHttpClient, oauth: OAuthService) -> None:
        self._http = http
        self._oauth = oauth

    async def _authorize(self) -> Err[ApiError] | None:
        """Install a fresh bearer token on the client, or return the auth failure."""
        token = await self._oauth.get_access_token()
        if not token.success:
            logger.warning("Cannot obtain access token: %s", token.error.message)
            return Err(token.error.to_api_error())
        self._http.set_auth_token(token.value)
        return None
