"""Dotted-path lookup over JSON payloads of unknown shape."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any


def pick_text_by_path(data: Any, path: str | None) -> str | None:
    """Walk ``a.b.0.c`` over nested dicts/lists and return the leaf if it is a string.

    Segments address dict keys first; numeric segments also index lists. Keys
    may contain characters such as ``(`` or ``/`` but never a dot.
    """
    if not path or not path.strip():
        return None
    segments = [segment.strip() for segment in path.split(".") if segment.strip()]
    if not segments:
        return None

    current = data
    for segment in segments:
        if isinstance(current, dict):
            if segment not in current:
                return None
            current = current[segment]
        elif isinstance(current, list) and segment.isdigit():
            index = int(segment)
            if index >= len(current):
                return None
            current = current[index]
        else:
            return None
    return current if isinstance(current, str) else None


def pick_first_text(data: Any, explicit_path: str | None, candidates: Iterable[str]) -> str | None:
    """Return the first non-blank string from the operator path, then the candidate paths."""
    for path in (explicit_path, *candidates):
        value = pick_text_by_path(data, path)
        if value and value.strip():
            return value.strip()
    return None
