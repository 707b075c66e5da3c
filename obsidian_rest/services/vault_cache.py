"""In-memory mirror of the vault's markdown files.

The store is owned by the server lifespan and handed to the search engine and the
write tools. A full rebuild assembles a fresh mapping and swaps it in only once
the walk has finished, so readers never see a partially rebuilt tree. Single-file
refreshes upsert or delete exactly one key.
"""

from __future__ import annotations

import asyncio
import logging
import posixpath
import time
from datetime import datetime
from types import MappingProxyType
from typing import Mapping, Optional

from obsidian_rest.constants import (
    CACHED_FILE_SUFFIX,
    NOTE_RETRY_ATTEMPTS,
    NOTE_RETRY_DELAY_SECONDS,
)
from obsidian_rest.core.retry import retry_on_kinds, retry_with_delay
from obsidian_rest.data_models import CacheEntry
from obsidian_rest.errors import ErrorKind, VaultError, is_kind
from obsidian_rest.services.rest_client import VaultClient

logger = logging.getLogger(__name__)


def _normalize_dir(dir_path: str) -> str:
    """Canonical vault-relative directory key (``""`` is the vault root)."""
    cleaned = dir_path.replace("\\", "/").strip().strip("/")
    if not cleaned:
        return ""
    normalized = posixpath.normpath(cleaned)
    return "" if normalized == "." else normalized


class VaultCacheStore:
    """Process-wide cache of ``path -> CacheEntry``.

    Args:
        client: Remote vault client used for listing and fetching files.
        refresh_interval_seconds: Period of the background full rebuild.
        retry_attempts: Attempts per remote fetch.
        retry_delay_seconds: Delay between those attempts.
    """

    def __init__(
        self,
        client: VaultClient,
        refresh_interval_seconds: float,
        retry_attempts: int = NOTE_RETRY_ATTEMPTS,
        retry_delay_seconds: float = NOTE_RETRY_DELAY_SECONDS,
    ) -> None:
        self._client = client
        self._refresh_interval_seconds = refresh_interval_seconds
        self._retry_attempts = retry_attempts
        self._retry_delay_seconds = retry_delay_seconds
        self._entries: dict[str, CacheEntry] = {}
        self._ready = False
        self._building = False
        self._disposed = False
        self._refresh_task: Optional[asyncio.Task] = None
        self.last_rebuild_time: Optional[datetime] = None

    # ==========================================================================
    # QUERIES
    # ==========================================================================

    def is_ready(self) -> bool:
        return self._ready

    def is_building(self) -> bool:
        return self._building

    def get_cache(self) -> Mapping[str, CacheEntry]:
        """Read-only view of the current snapshot."""
        return MappingProxyType(self._entries)

    def get_entry(self, path: str) -> Optional[CacheEntry]:
        return self._entries.get(path)

    def __len__(self) -> int:
        return len(self._entries)

    # ==========================================================================
    # FULL REBUILD
    # ==========================================================================

    async def initialize(self) -> None:
        """Run the first full build.

        Raises:
            VaultError: If the vault tree could not be listed. The store stays
                not-ready in that case.
        """
        if self._ready:
            logger.info("Vault cache already built; skipping initial build")
            return
        await self._rebuild(raise_errors=True)

    async def rebuild(self) -> bool:
        """Rebuild the whole cache. Failures are logged, never raised.

        Returns:
            True when a new snapshot was installed.
        """
        return await self._rebuild(raise_errors=False)

    async def _rebuild(self, raise_errors: bool) -> bool:
        if self._disposed:
            logger.warning("Vault cache is disposed; rebuild ignored")
            return False
        if self._building:
            logger.warning("Vault cache rebuild already in progress; skipping")
            return False

        self._building = True
        started = time.monotonic()
        logger.info("Starting vault cache rebuild")
        try:
            paths = await self._list_markdown_files("", set())
            snapshot: dict[str, CacheEntry] = {}
            for path in paths:
                entry = await self._fetch_entry(path)
                if entry is not None:
                    snapshot[path] = entry
        except Exception as exc:
            logger.error(
                "Vault cache rebuild failed; keeping previous snapshot (%d files): %s",
                len(self._entries),
                exc,
            )
            if raise_errors:
                raise
            return False
        finally:
            self._building = False

        previous = self._entries
        added = sum(1 for path in snapshot if path not in previous)
        removed = sum(1 for path in previous if path not in snapshot)
        updated = sum(
            1 for path, entry in snapshot.items() if path in previous and previous[path] != entry
        )

        self._entries = snapshot
        self._ready = True
        self.last_rebuild_time = datetime.now()
        logger.info(
            "Vault cache rebuild completed in %.2fs. Added: %d, Updated: %d, Removed: %d. "
            "Total cached: %d.",
            time.monotonic() - started,
            added,
            updated,
            removed,
            len(snapshot),
        )
        return True

    async def _list_markdown_files(self, dir_path: str, visited: set[str]) -> list[str]:
        """Recursively collect markdown paths below ``dir_path``.

        Transient listing failures are retried. A directory that is still missing
        after the retries is skipped; any other final failure propagates and
        aborts the rebuild.
        """
        normalized = _normalize_dir(dir_path)
        if normalized in visited:
            logger.warning("Directory already visited during cache build: '%s'", normalized or "/")
            return []
        visited.add(normalized)

        try:
            names = await retry_with_delay(
                lambda: self._client.list_files(normalized),
                operation_name="cacheListDirectory",
                max_attempts=self._retry_attempts,
                delay_seconds=self._retry_delay_seconds,
                should_retry=retry_on_kinds(
                    ErrorKind.NOT_FOUND, ErrorKind.SERVICE_UNAVAILABLE, ErrorKind.TIMEOUT
                ),
            )
        except VaultError as exc:
            if exc.kind is ErrorKind.NOT_FOUND:
                logger.warning("Directory not found during cache build, skipping: '%s'", normalized)
                return []
            raise

        files: list[str] = []
        for name in names:
            full_path = posixpath.join(normalized, name) if normalized else name
            if name.endswith("/"):
                files.extend(await self._list_markdown_files(full_path, visited))
            elif name.lower().endswith(CACHED_FILE_SUFFIX):
                files.append(full_path)
        return files

    async def _fetch_entry(self, path: str) -> Optional[CacheEntry]:
        try:
            note = await retry_with_delay(
                lambda: self._client.get_file_content(path),
                operation_name="cacheFetchFile",
                max_attempts=self._retry_attempts,
                delay_seconds=self._retry_delay_seconds,
                should_retry=retry_on_kinds(ErrorKind.NOT_FOUND),
            )
        except VaultError as exc:
            logger.error("Failed to cache '%s'; skipping for this rebuild: %s", path, exc)
            return None
        return CacheEntry.from_note(note, path=path)

    # ==========================================================================
    # SINGLE-FILE REFRESH
    # ==========================================================================

    async def update_cache_for_file(self, path: str) -> bool:
        """Refresh one entry after a write. Never raises.

        A file that no longer exists is dropped from the cache.

        Returns:
            True when the entry was upserted or removed, False when the refresh
            failed and the previous entry (if any) was left untouched.
        """
        try:
            note = await retry_with_delay(
                lambda: self._client.get_file_content(path),
                operation_name="proactiveCacheUpdate",
                max_attempts=self._retry_attempts,
                delay_seconds=self._retry_delay_seconds,
                should_retry=retry_on_kinds(ErrorKind.NOT_FOUND, ErrorKind.SERVICE_UNAVAILABLE),
            )
        except Exception as exc:
            if is_kind(exc, ErrorKind.NOT_FOUND):
                if self._entries.pop(path, None) is not None:
                    logger.info("Removed deleted file from cache: '%s'", path)
                return True
            logger.error("Failed to refresh cache for '%s': %s", path, exc)
            return False

        self._entries[path] = CacheEntry.from_note(note, path=path)
        logger.debug("Refreshed cache entry for '%s'", path)
        return True

    # ==========================================================================
    # LIFECYCLE
    # ==========================================================================

    def start_periodic_refresh(self) -> None:
        """Schedule background full rebuilds on the running event loop."""
        if self._refresh_task is not None and not self._refresh_task.done():
            logger.warning("Periodic cache refresh is already running")
            return
        self._refresh_task = asyncio.create_task(self._refresh_loop(), name="vault-cache-refresh")
        logger.info(
            "Vault cache refresh scheduled every %.0f minutes",
            self._refresh_interval_seconds / 60,
        )

    async def _refresh_loop(self) -> None:
        while True:
            await asyncio.sleep(self._refresh_interval_seconds)
            try:
                await self.rebuild()
            except Exception:
                logger.exception("Unexpected error in periodic cache refresh")

    async def dispose(self) -> None:
        """Stop the background refresh. The store accepts no further rebuilds."""
        self._disposed = True
        task, self._refresh_task = self._refresh_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Stopped periodic cache refresh")
