"""Authentication-flow errors and their translation to the API taxonomy."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from zoomphone.http.errors import AuthenticationError


class AuthErrorKind(str, Enum):
    INVALID_CODE = "invalid_code"
    TOKEN_EXPIRED = "token_expired"
    REFRESH_FAILED = "refresh_failed"
    NETWORK_ERROR = "network_error"


@dataclass(frozen=True)
class AuthError:
    """Failure local to the OAuth flows."""

    kind: AuthErrorKind
    message: str

    def to_api_error(self) -> AuthenticationError:
        """Collapse into the single ``auth`` kind seen by domain callers."""
        return AuthenticationError(message=self.message)
