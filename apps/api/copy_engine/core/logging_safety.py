"""Helpers that keep client identifiers, share links and upstream payloads out of raw logs."""

from __future__ import annotations

import hashlib
from typing import Any
from urllib.parse import urlsplit


def safe_log_identifier(value: Any, *, prefix: str) -> str:
    """Return a deterministic non-reversible token for log correlation fields."""
    text = str(value or "").strip()
    if not text:
        return f"{prefix}-missing"

    digest = hashlib.sha256(text.encode("utf-8")).hexdigest()[:12]
    return f"{prefix}-{digest}"


def safe_log_url(url: str | None) -> str:
    """Keep the host for triage; path and query (share ids, signed tokens) are hashed."""
    token = safe_log_identifier(url, prefix="url")
    host = urlsplit((url or "").strip()).hostname
    return f"{host}/{token}" if host else token


def truncate_for_log(text: str | None, limit: int = 500) -> str:
    """Clip upstream payloads before they are embedded in messages or logs."""
    if not text:
        return "empty"
    return text[:limit]
