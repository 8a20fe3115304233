"""Helpers for safe logging.

Redis URLs may carry a username and password.  This module strips them
before the URL is emitted in logs.
"""

from __future__ import annotations

from urllib.parse import urlsplit, urlunsplit


def redact_url(url: str) -> str:
    """Return *url* with any credentials replaced by ``<redacted>``."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return "<unparseable-url>"
    if not parts.username and not parts.password:
        return url
    host = parts.hostname or ""
    if parts.port is not None:
        host = f"{host}:{parts.port}"
    return urlunsplit(parts._replace(netloc=f"<redacted>@{host}"))
