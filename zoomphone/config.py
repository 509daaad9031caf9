"""Runtime configuration from environment variables.

Every setting has a default so the package imports without any environment;
commands that need OAuth credentials check missing_credentials() first.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping

logger = logging.getLogger(__name__)

DEFAULT_REDIRECT_URI = "http://localhost:3000/oauth/callback"
DEFAULT_API_BASE_URL = "https://api.zoom.us/v2"
DEFAULT_WEBHOOK_PORT = 3001


class ConfigError(Exception):
    """Raised when an environment variable holds an unusable value."""


@dataclass(frozen=True)
class Settings:
    client_id: str = ""
    client_secret: str = ""
    redirect_uri: str = DEFAULT_REDIRECT_URI
    api_base_url: str = DEFAULT_API_BASE_URL
    webhook_secret: str = ""
    webhook_port: int = DEFAULT_WEBHOOK_PORT
    log_level: str = "INFO"
    recordings_dir: str = "./recordings"
    token_file: str = ".tokens.json"

    def missing_credentials(self) -> list[str]:
        """Names of unset variables required for the OAuth flows."""
        missing = []
        if not self.client_id:
            missing.append("ZOOM_CLIENT_ID")
        if not self.client_secret:
            missing.append("ZOOM_CLIENT_SECRET")
        return missing


def _int_var(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name, "")
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Read settings from ``environ`` (defaults to os.environ)."""
    env = os.environ if environ is None else environ
    settings = Settings(
        client_id=env.get("ZOOM_CLIENT_ID", ""),
        client_secret=env.get("ZOOM_CLIENT_SECRET", ""),
        redirect_uri=env.get("ZOOM_REDIRECT_URI") or DEFAULT_REDIRECT_URI,
        api_base_url=(env.get("ZOOM_API_BASE_URL") or DEFAULT_API_BASE_URL).rstrip("/"),
        webhook_secret=env.get("ZOOM_WEBHOOK_SECRET_TOKEN", ""),
        webhook_port=_int_var(env, "WEBHOOK_PORT", DEFAULT_WEBHOOK_PORT),
        log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
        recordings_dir=env.get("RECORDINGS_OUTPUT_DIR") or "./recordings",
        token_file=env.get("ZOOM_TOKEN_FILE") or ".tokens.json",
    )
    logger.debug(
        "Settings loaded (api_base_url=%s, webhook_port=%d)",
        settings.api_base_url,
        settings.webhook_port,
    )
    return settings
