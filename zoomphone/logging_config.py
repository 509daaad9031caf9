"""Process-wide logging setup with credential redaction.

Modules log through ``logging.getLogger(__name__)``; configure_logging()
installs one stream handler on the package logger whose RedactingFilter
masks OAuth secrets before any record is formatted.
"""

from __future__ import annotations

import logging
import re
import sys

__all__ = ["RedactingFilter", "configure_logging", "mask_secret", "redact"]

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

_BEARER_PAT: re.Pattern[str] = re.compile(r"(Bearer\s+)([A-Za-z0-9\-._~+/]+=*)", re.IGNORECASE)
_BASIC_PAT: re.Pattern[str] = re.compile(r"(Basic\s+)([A-Za-z0-9+/]+=*)", re.IGNORECASE)
_KEYED_SECRET_PAT: re.Pattern[str] = re.compile(
    r"((?:access_token|refresh_token|client_secret|accessToken|refreshToken|"
    r"plainToken|encryptedToken)[\"']?\s*[=:]\s*[\"']?)([^\"'\s,&}]+)",
)

_PATTERNS: tuple[re.Pattern[str], ...] = (_BEARER_PAT, _BASIC_PAT, _KEYED_SECRET_PAT)


def mask_secret(value: str) -> str:
    """Keep the first and last four characters of long values; hide short ones."""
    if len(value) <= 12:
        return "****"
    return f"{value[:4]}...{value[-4:]}"


def redact(text: str) -> str:
    for pattern in _PATTERNS:
        text = pattern.sub(lambda m: m.group(1) + mask_secret(m.group(2)), text)
    return text


class RedactingFilter(logging.Filter):
    """Rewrites each record's message with secrets masked."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def configure_logging(level: str | int = "INFO", stream=None) -> logging.Logger:
    """Attach a redacting stream handler to the ``zoomphone`` logger.

    Calling it again replaces the handler instead of adding a second one.
    """
    root = logging.getLogger("zoomphone")
    for handler in list(root.handlers):
        if getattr(handler, "_zoomphone_handler", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(RedactingFilter())
    handler._zoomphone_handler = True  # type: ignore[attr-defined]

    root.addHandler(handler)
    root.setLevel(level if isinstance(level, int) else level.upper())
    root.propagate = False
    return root
