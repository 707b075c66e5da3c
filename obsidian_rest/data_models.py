"""Data models for server configuration, remote notes and the vault cache."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass(frozen=True)
class ServerConfiguration:
    """Normalized server settings loaded from ``config.yaml`` and the environment."""

    base_url: str
    api_key: str
    verify_ssl: bool
    enable_cache: bool
    cache_refresh_interval_min: int
    api_search_timeout_ms: int
    log_level: str

    @property
    def cache_refresh_interval_seconds(self) -> float:
        return self.cache_refresh_interval_min * 60.0

    @property
    def api_search_timeout_seconds(self) -> float:
        return self.api_search_timeout_ms / 1000.0

    def as_payload(self) -> dict[str, Any]:
        """Return a serializable payload with the API key redacted."""
        return {
            "base_url": self.base_url,
            "api_key_configured": bool(self.api_key),
            "verify_ssl": self.verify_ssl,
            "enable_cache": self.enable_cache,
            "cache_refresh_interval_min": self.cache_refresh_interval_min,
            "api_search_timeout_ms": self.api_search_timeout_ms,
            "log_level": self.log_level,
        }


@dataclass(frozen=True)
class NoteStat:
    """Filesystem stat reported by the REST API (timestamps in epoch milliseconds)."""

    ctime: float
    mtime: float
    size: int

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "NoteStat":
        return cls(
            ctime=float(payload.get("ctime", 0) or 0),
            mtime=float(payload.get("mtime", 0) or 0),
            size=int(payload.get("size", 0) or 0),
        )

    def as_payload(self) -> dict[str, Any]:
        return {"ctime": self.ctime, "mtime": self.mtime, "size": self.size}


@dataclass(frozen=True)
class NoteJson:
    """JSON representation of a note (``application/vnd.olrapi.note+json``)."""

    path: str
    content: str
    stat: NoteStat
    frontmatter: dict[str, Any] = field(default_factory=dict)
    tags: list[str] = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: dict[str, Any], fallback_path: str = "") -> "NoteJson":
        return cls(
            path=payload.get("path") or fallback_path,
            content=payload.get("content") or "",
            stat=NoteStat.from_payload(payload.get("stat") or {}),
            frontmatter=dict(payload.get("frontmatter") or {}),
            tags=list(payload.get("tags") or []),
        )

    def as_payload(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "content": self.content,
            "frontmatter": self.frontmatter,
            "tags": self.tags,
            "stat": self.stat.as_payload(),
        }


@dataclass(frozen=True)
class SimpleSearchMatch:
    """One contextual match from ``POST /search/simple/``."""

    context: str
    start: int
    end: int


@dataclass(frozen=True)
class SimpleSearchResult:
    """One file returned by the remote simple search."""

    filename: str
    score: float
    matches: list[SimpleSearchMatch]

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "SimpleSearchResult":
        matches = []
        for raw in payload.get("matches") or []:
            span = raw.get("match") or {}
            matches.append(
                SimpleSearchMatch(
                    context=raw.get("context", ""),
                    start=int(span.get("start", 0) or 0),
                    end=int(span.get("end", 0) or 0),
                )
            )
        return cls(
            filename=payload.get("filename", ""),
            score=float(payload.get("score", 0) or 0),
            matches=matches,
        )


@dataclass(frozen=True)
class CacheEntry:
    """In-memory mirror of one vault file.

    ``content`` and the stat fields always come from the same remote read.
    """

    path: str
    content: str
    mtime: float
    ctime: float
    size: int

    @classmethod
    def from_note(cls, note: NoteJson, path: Optional[str] = None) -> "CacheEntry":
        return cls(
            path=path or note.path,
            content=note.content,
            mtime=note.stat.mtime,
            ctime=note.stat.ctime,
            size=note.stat.size,
        )
