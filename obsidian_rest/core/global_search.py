"""Vault-wide search: live REST API first, in-memory cache as fallback.

Both paths produce the same result shape. Only cache-path matches carry
``match_text`` and ``position`` because the REST API does not report exact
offsets inside its context snippets.
"""

from __future__ import annotations

import logging
import math
import posixpath
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from obsidian_rest.constants import (
    API_SEARCH_MAX_ATTEMPTS,
    API_SEARCH_RETRY_DELAY_SECONDS,
    DEFAULT_CONTEXT_LENGTH,
    DEFAULT_MAX_MATCHES_PER_FILE,
    DEFAULT_PAGE_SIZE,
)
from obsidian_rest.core.date_parsing import parse_date_filter
from obsidian_rest.core.formatting import format_timestamp, sanitize_for_logging
from obsidian_rest.core.retry import call_with_timeout, describe_error, retry_with_delay
from obsidian_rest.data_models import SimpleSearchResult
from obsidian_rest.errors import ErrorKind, VaultError
from obsidian_rest.services.rest_client import VaultClient
from obsidian_rest.services.vault_cache import VaultCacheStore

logger = logging.getLogger(__name__)

STRATEGY_API = "api"
STRATEGY_CACHE = "cache"


# ==============================================================================
# RESULT TYPES
# ==============================================================================


@dataclass(frozen=True)
class SearchParameters:
    """Validated search request handed to :meth:`GlobalSearchEngine.search`."""

    query: str
    search_in_path: Optional[str] = None
    context_length: int = DEFAULT_CONTEXT_LENGTH
    modified_since: Optional[str] = None
    modified_until: Optional[str] = None
    use_regex: bool = False
    case_sensitive: bool = False
    page_size: int = DEFAULT_PAGE_SIZE
    page: int = 1
    max_matches_per_file: int = DEFAULT_MAX_MATCHES_PER_FILE


@dataclass(frozen=True)
class SearchMatch:
    context: str
    match_text: Optional[str] = None
    position: Optional[int] = None

    def as_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"context": self.context}
        if self.match_text is not None:
            payload["match_text"] = self.match_text
        if self.position is not None:
            payload["position"] = self.position
        return payload


@dataclass(frozen=True)
class SearchFileResult:
    path: str
    filename: str
    matches: list[SearchMatch]
    match_count: int
    modified_time: str
    created_time: str
    numeric_mtime: float

    def as_payload(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "filename": self.filename,
            "matches": [match.as_payload() for match in self.matches],
            "match_count": self.match_count,
            "modified_time": self.modified_time,
            "created_time": self.created_time,
            "numeric_mtime": self.numeric_mtime,
        }


@dataclass(frozen=True)
class GlobalSearchResponse:
    success: bool
    message: str
    strategy: str
    results: list[SearchFileResult]
    total_files_found: int
    total_matches_found: int
    current_page: int
    page_size: int
    total_pages: int
    also_found_in_files: Optional[list[str]] = field(default=None)

    def as_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "success": self.success,
            "message": self.message,
            "strategy": self.strategy,
            "results": [result.as_payload() for result in self.results],
            "total_files_found": self.total_files_found,
            "total_matches_found": self.total_matches_found,
            "current_page": self.current_page,
            "page_size": self.page_size,
            "total_pages": self.total_pages,
        }
        if self.also_found_in_files is not None:
            payload["also_found_in_files"] = self.also_found_in_files
        return payload


# ==============================================================================
# HELPER FUNCTIONS
# ==============================================================================


def compile_search_pattern(query: str, use_regex: bool, case_sensitive: bool) -> re.Pattern[str]:
    """Compile the query, escaping it unless ``use_regex`` is set.

    Raises:
        VaultError: ``VALIDATION_ERROR`` for an invalid regular expression.
    """
    flags = 0 if case_sensitive else re.IGNORECASE
    source = query if use_regex else re.escape(query)
    try:
        return re.compile(source, flags)
    except re.error as exc:
        raise VaultError(
            ErrorKind.VALIDATION_ERROR,
            f"Invalid regex pattern: {query} ({exc})",
            {"operation": "compile_search_pattern", "query": query},
        ) from exc


def find_matches_in_content(
    content: str,
    pattern: re.Pattern[str],
    context_length: int,
) -> list[SearchMatch]:
    """Scan ``content`` forward and return every non-overlapping match.

    A zero-width match advances the scan by one character.
    """
    matches: list[SearchMatch] = []
    position = 0
    while position <= len(content):
        found = pattern.search(content, position)
        if found is None:
            break
        match_text = found.group(0)
        start = max(0, found.start() - context_length)
        end = min(len(content), found.end() + context_length)
        matches.append(
            SearchMatch(
                context=content[start:end],
                match_text=match_text,
                position=found.start() - start,
            )
        )
        position = found.end() if found.end() > found.start() else found.end() + 1
    return matches


def normalize_path_prefix(search_in_path: Optional[str]) -> str:
    """Turn ``"/Notes/Projects"`` into ``"Notes/Projects/"``; ``"/"`` and ``None`` mean the whole vault."""
    if not search_in_path:
        return ""
    stripped = search_in_path.replace("\\", "/").strip().strip("/")
    return f"{stripped}/" if stripped else ""


def _to_epoch_ms(value: Optional[datetime]) -> Optional[float]:
    return value.timestamp() * 1000 if value is not None else None


def _outside_window(mtime: float, since_ms: Optional[float], until_ms: Optional[float]) -> bool:
    return (since_ms is not None and mtime < since_ms) or (until_ms is not None and mtime > until_ms)


def paginate_results(
    results: list[SearchFileResult], page: int, page_size: int
) -> tuple[list[SearchFileResult], int, Optional[list[str]]]:
    """Sort by mtime descending and slice one page.

    Returns:
        ``(page_results, total_pages, also_found_in_files)``. The last element is
        ``None`` unless more than one page exists.
    """
    ordered = sorted(results, key=lambda result: result.numeric_mtime, reverse=True)
    total_pages = math.ceil(len(ordered) / page_size)
    start = (page - 1) * page_size
    page_results = ordered[start : start + page_size]

    also_found: Optional[list[str]] = None
    if total_pages > 1:
        on_page = {result.path for result in page_results}
        also_found = list(
            dict.fromkeys(result.filename for result in ordered if result.path not in on_page)
        )
    return page_results, total_pages, also_found


# ==============================================================================
# ENGINE
# ==============================================================================


class GlobalSearchEngine:
    """API-first search with a cache-scan fallback.

    Args:
        client: Remote vault client.
        cache: Cache store, or ``None`` when caching is disabled.
        api_timeout_seconds: Hard time box for each API search attempt.
        api_max_attempts: Attempts for the API search.
        api_retry_delay_seconds: Delay between API attempts.
    """

    def __init__(
        self,
        client: VaultClient,
        cache: Optional[VaultCacheStore],
        api_timeout_seconds: float,
        api_max_attempts: int = API_SEARCH_MAX_ATTEMPTS,
        api_retry_delay_seconds: float = API_SEARCH_RETRY_DELAY_SECONDS,
    ) -> None:
        self._client = client
        self._cache = cache
        self._api_timeout_seconds = api_timeout_seconds
        self._api_max_attempts = api_max_attempts
        self._api_retry_delay_seconds = api_retry_delay_seconds

    async def search(self, params: SearchParameters) -> GlobalSearchResponse:
        """Run one search request.

        Raises:
            VaultError: ``VALIDATION_ERROR`` for bad dates or regex (before any
                remote call); ``SERVICE_UNAVAILABLE`` when the API failed and
                the cache is disabled or not ready.
        """
        logger.info(
            "Processing global search for %r (API-first)",
            sanitize_for_logging(params.query),
        )

        since = parse_date_filter(params.modified_since, "modified_since") if params.modified_since else None
        until = parse_date_filter(params.modified_until, "modified_until") if params.modified_until else None
        since_ms, until_ms = _to_epoch_ms(since), _to_epoch_ms(until)
        pattern = compile_search_pattern(params.query, params.use_regex, params.case_sensitive)
        prefix = normalize_path_prefix(params.search_in_path)
        scope = prefix or "entire vault"

        strategy_message = (
            f"Attempting live API search with retries "
            f"(timeout: {self._api_timeout_seconds:g}s per attempt). "
        )
        try:
            api_results = await retry_with_delay(
                lambda: call_with_timeout(
                    lambda: self._client.search_simple(params.query, params.context_length),
                    self._api_timeout_seconds,
                    "search_simple",
                ),
                operation_name="search_simple",
                max_attempts=self._api_max_attempts,
                delay_seconds=self._api_retry_delay_seconds,
            )
        except VaultError as exc:
            strategy_message += f"API search failed or timed out ({describe_error(exc)}). "
            logger.warning("API search failed; considering cache fallback: %s", exc)
            results, total_matches, strategy_message = self._search_cache(
                pattern, params, prefix, since_ms, until_ms, strategy_message
            )
            strategy = STRATEGY_CACHE
        else:
            strategy_message += f"API search successful, returned {len(api_results)} potential files. "
            results, total_matches = await self._collect_api_results(
                api_results, params, prefix, since_ms, until_ms
            )
            strategy_message += (
                f"Processed {len(results)} files matching all filters (path: '{scope}'). "
            )
            strategy = STRATEGY_API

        page_results, total_pages, also_found = paginate_results(
            results, params.page, params.page_size
        )
        message = (
            f"{strategy_message}Found {total_matches} matches across {len(results)} files "
            f"matching all criteria. Returning page {params.page} of {total_pages} "
            f"({len(page_results)} files on this page, page size {params.page_size}, "
            f"max matches per file {params.max_matches_per_file})."
        )
        logger.info("Global search completed via %s: %s", strategy, message)
        return GlobalSearchResponse(
            success=True,
            message=message,
            strategy=strategy,
            results=page_results,
            total_files_found=len(results),
            total_matches_found=total_matches,
            current_page=params.page,
            page_size=params.page_size,
            total_pages=total_pages,
            also_found_in_files=also_found,
        )

    async def _collect_api_results(
        self,
        api_results: list[SimpleSearchResult],
        params: SearchParameters,
        prefix: str,
        since_ms: Optional[float],
        until_ms: Optional[float],
    ) -> tuple[list[SearchFileResult], int]:
        results: list[SearchFileResult] = []
        total_matches = 0
        for api_result in api_results:
            path = api_result.filename
            if prefix and not path.startswith(prefix):
                continue
            try:
                note = await self._client.get_file_content(path)
            except VaultError as exc:
                logger.warning("Failed to fetch stats for '%s'; skipping file: %s", path, exc)
                continue
            if _outside_window(note.stat.mtime, since_ms, until_ms):
                continue

            matches = [SearchMatch(context=match.context) for match in api_result.matches]
            if not matches:
                continue
            results.append(
                SearchFileResult(
                    path=path,
                    filename=posixpath.basename(path),
                    matches=matches[: params.max_matches_per_file],
                    match_count=len(matches),
                    modified_time=format_timestamp(note.stat.mtime),
                    created_time=format_timestamp(note.stat.ctime),
                    numeric_mtime=note.stat.mtime,
                )
            )
            total_matches += len(matches)
        return results, total_matches

    def _search_cache(
        self,
        pattern: re.Pattern[str],
        params: SearchParameters,
        prefix: str,
        since_ms: Optional[float],
        until_ms: Optional[float],
        strategy_message: str,
    ) -> tuple[list[SearchFileResult], int, str]:
        if self._cache is None or not self._cache.is_ready():
            reason = "is disabled" if self._cache is None else "is not ready"
            logger.error("API search failed and cache %s; cannot search", reason)
            raise VaultError(
                ErrorKind.SERVICE_UNAVAILABLE,
                f"Live API search failed and the cache is currently {reason}. Ensure the "
                "Obsidian REST API is running and reachable, and that the cache is enabled "
                "and has had time to build.",
                {"operation": "global_search", "cache_state": reason},
            )

        strategy_message += "Falling back to in-memory cache. "
        snapshot = self._cache.get_cache()
        results: list[SearchFileResult] = []
        total_matches = 0
        for path, entry in snapshot.items():
            if prefix and not path.startswith(prefix):
                continue
            if _outside_window(entry.mtime, since_ms, until_ms):
                continue
            matches = find_matches_in_content(entry.content, pattern, params.context_length)
            if not matches:
                continue
            results.append(
                SearchFileResult(
                    path=path,
                    filename=posixpath.basename(path),
                    matches=matches[: params.max_matches_per_file],
                    match_count=len(matches),
                    modified_time=format_timestamp(entry.mtime),
                    created_time=format_timestamp(entry.ctime or entry.mtime),
                    numeric_mtime=entry.mtime,
                )
            )
            total_matches += len(matches)

        strategy_message += (
            f"Searched {len(snapshot)} cached files, processed {len(results)} matching all "
            f"filters (path: '{prefix or 'entire vault'}'). "
        )
        return results, total_matches, strategy_message
