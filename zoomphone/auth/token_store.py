"""Credential record and its durable persistence.

The token file is a JSON object ``{accessToken, refreshToken, expiresAt}``
with ``expiresAt`` in epoch milliseconds. It is overwritten wholesale on
every save. A missing file is the normal "not authenticated" state.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Protocol

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_FILE = ".tokens.json"


class TokenStoreError(Exception):
    """Raised when the token file exists but cannot be read or written."""


@dataclass(frozen=True)
class CredentialRecord:
    """OAuth access/refresh token pair with its absolute expiry (UTC)."""

    access_token: str
    refresh_token: str
    expires_at: datetime

    @classmethod
    def issued(
        cls,
        access_token: str,
        refresh_token: str,
        expires_in: float,
        now: datetime | None = None,
    ) -> CredentialRecord:
        """Build a record whose expiry is ``now + expires_in`` seconds."""
        issued_at = now or datetime.now(timezone.utc)
        return cls(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=issued_at + timedelta(seconds=expires_in),
        )

    def remaining(self, now: datetime | None = None) -> timedelta:
        return self.expires_at - (now or datetime.now(timezone.utc))

    def needs_refresh(self, threshold: timedelta, now: datetime | None = None) -> bool:
        """True when the remaining lifetime is at or below ``threshold``."""
        return self.remaining(now) <= threshold

    def to_dict(self) -> dict[str, Any]:
        return {
            "accessToken": self.access_token,
            "refreshToken": self.refresh_token,
            "expiresAt": int(self.expires_at.timestamp() * 1000),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CredentialRecord:
        try:
            expires_ms = int(data["expiresAt"])
            return cls(
                access_token=str(data["accessToken"]),
                refresh_token=str(data.get("refreshToken") or ""),
                expires_at=datetime.fromtimestamp(expires_ms / 1000, tz=timezone.utc),
            )
        except (KeyError, TypeError, ValueError, OverflowError, OSError) as exc:
            # OverflowError/OSError: expiresAt outside the platform datetime range
            raise TokenStoreError(f"Malformed credential record: {exc}") from exc


class CredentialStore(Protocol):
    """Persistence for a single credential record."""

    def save(self, record: CredentialRecord) -> None: ...

    def load(self) -> CredentialRecord | None: ...

    def clear(self) -> None: ...


class FileTokenStore:
    """JSON-file credential store."""

    def __init__(self, path: str | os.PathLike[str] | None = None) -> None:
        self._path = Path(path) if path else Path.cwd() / DEFAULT_TOKEN_FILE

    @property
    def path(self) -> Path:
        return self._path

    def save(self, record: CredentialRecord) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(record.to_dict(), indent=2), encoding="utf-8")
        except OSError as exc:
            logger.error("Failed to save token to %s: %s", self._path, exc)
            raise TokenStoreError(f"Cannot write token file: {exc}") from exc
        logger.debug("Token saved to %s", self._path)

    def load(self) -> CredentialRecord | None:
        try:
            content = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.debug("Token file not found: %s", self._path)
            return None
        except UnicodeDecodeError as exc:
            raise TokenStoreError(f"Token file is not valid UTF-8: {exc}") from exc
        except OSError as exc:
            logger.error("Failed to read token file %s: %s", self._path, exc)
            raise TokenStoreError(f"Cannot read token file: {exc}") from exc

        try:
            data = json.loads(content)
        except json.JSONDecodeError as exc:
            raise TokenStoreError(f"Token file is not valid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise TokenStoreError("Token file must contain a JSON object")

        logger.debug("Token loaded from %s", self._path)
        return CredentialRecord.from_dict(data)

    def clear(self) -> None:
        try:
            self._path.unlink()
        except FileNotFoundError:
            logger.debug("Token file does not exist, nothing to clear")
            return
        except OSError as exc:
            logger.error("Failed to clear token file %s: %s", self._path, exc)
            raise TokenStoreError(f"Cannot delete token file: {exc}") from exc
        logger.debug("Token file cleared: %s", self._path)


class InMemoryTokenStore:
    """Process-local store, used when no file persistence is wanted."""

    def __init__(self, record: CredentialRecord | None = None) -> None:
        self.record = record
        self.save_count = 0

    def save(self, record: CredentialRecord) -> None:
        self.record = record
        self.save_count += 1

    def load(self) -> CredentialRecord | None:
        return self.record

    def clear(self) -> None:
        self.record = None
