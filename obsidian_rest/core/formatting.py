"""Display helpers shared by the search engine and note tools."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from obsidian_rest.constants import MAX_LOGGED_QUERY_CHARS, TIMESTAMP_FORMAT

_SENSITIVE_KEYS = {"api_key", "apikey", "authorization", "token", "password"}


def format_timestamp(epoch_ms: float) -> str:
    """Render an epoch-milliseconds timestamp as ``hh:mm:ss AM | MM-dd-yyyy`` (local time)."""
    return datetime.fromtimestamp(epoch_ms / 1000).strftime(TIMESTAMP_FORMAT)


def format_stat(ctime: float, mtime: float, size: int) -> dict[str, Any]:
    return {
        "created_time": format_timestamp(ctime),
        "modified_time": format_timestamp(mtime),
        "size": size,
    }


def sanitize_for_logging(value: Any, max_chars: int = MAX_LOGGED_QUERY_CHARS) -> Any:
    """Return a log-safe copy: long strings truncated, credential-like keys redacted."""
    if isinstance(value, str):
        if len(value) <= max_chars:
            return value
        return f"{value[:max_chars]}... ({len(value)} chars)"
    if isinstance(value, dict):
        return {
            key: "[REDACTED]"
            if str(key).lower() in _SENSITIVE_KEYS
            else sanitize_for_logging(item, max_chars)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [sanitize_for_logging(item, max_chars) for item in value]
    return value
