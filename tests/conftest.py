"""Shared fixtures: an in-memory stand-in for the Obsidian Local REST API."""

from __future__ import annotations

import asyncio
from typing import Optional

import pytest

from obsidian_rest.data_models import NoteJson, NoteStat, SimpleSearchMatch, SimpleSearchResult
from obsidian_rest.errors import ErrorKind, VaultError


class FakeVaultClient:
    """Implements the vault client protocol over a dict of files.

    Failure injection:
        - ``get_failures[path]``: list of error kinds raised by successive reads
        - ``list_failures[dir]``: error kind raised when listing that directory
        - ``search_error`` / ``search_delay``: applied to every ``search_simple`` call
    """

    def __init__(self) -> None:
        self.files: dict[str, dict] = {}
        self.get_failures: dict[str, list[ErrorKind]] = {}
        self.list_failures: dict[str, ErrorKind] = {}
        self.search_results: list[SimpleSearchResult] = []
        self.search_error: Optional[Exception] = None
        self.search_delay: float = 0.0
        self.calls: list[tuple[str, str]] = []
        self._clock = 10_000.0

    # -- helpers ---------------------------------------------------------------

    def add_file(
        self,
        path: str,
        content: str,
        mtime: Optional[float] = None,
        ctime: Optional[float] = None,
    ) -> None:
        self._clock += 1
        mtime = self._clock if mtime is None else mtime
        self.files[path] = {
            "content": content,
            "mtime": mtime,
            "ctime": mtime if ctime is None else ctime,
        }

    def add_search_hit(self, filename: str, *contexts: str) -> None:
        self.search_results.append(
            SimpleSearchResult(
                filename=filename,
                score=1.0,
                matches=[SimpleSearchMatch(context=text, start=0, end=len(text)) for text in contexts],
            )
        )

    def count(self, method: str) -> int:
        return sum(1 for name, _ in self.calls if name == method)

    def _note(self, path: str) -> NoteJson:
        data = self.files[path]
        return NoteJson(
            path=path,
            content=data["content"],
            stat=NoteStat(ctime=data["ctime"], mtime=data["mtime"], size=len(data["content"])),
        )

    def _missing(self, path: str) -> VaultError:
        return VaultError(ErrorKind.NOT_FOUND, f"Resource not found: {path}", {"path": path})

    # -- protocol ---------------------------------------------------------------

    async def get_file_content(self, path: str) -> NoteJson:
        self.calls.append(("get_file_content", path))
        failures = self.get_failures.get(path)
        if failures:
            kind = failures.pop(0)
            raise VaultError(kind, f"Injected {kind.value} for {path}", {"path": path})
        if path not in self.files:
            raise self._missing(path)
        return self._note(path)

    async def get_file_markdown(self, path: str) -> str:
        self.calls.append(("get_file_markdown", path))
        if path not in self.files:
            raise self._missing(path)
        return self.files[path]["content"]

    async def list_files(self, dir_path: str = "") -> list[str]:
        self.calls.append(("list_files", dir_path))
        normalized = dir_path.strip("/")
        if normalized in self.list_failures:
            kind = self.list_failures[normalized]
            raise VaultError(kind, f"Injected {kind.value} listing {normalized}")

        prefix = f"{normalized}/" if normalized else ""
        entries: list[str] = []
        for path in self.files:
            if not path.startswith(prefix):
                continue
            remainder = path[len(prefix):]
            head, sep, _ = remainder.partition("/")
            entry = f"{head}/" if sep else head
            if entry not in entries:
                entries.append(entry)
        if normalized and not entries:
            raise self._missing(normalized)
        return entries

    async def search_simple(self, query: str, context_length: int) -> list[SimpleSearchResult]:
        self.calls.append(("search_simple", query))
        if self.search_delay:
            await asyncio.sleep(self.search_delay)
        if self.search_error is not None:
            raise self.search_error
        return list(self.search_results)

    async def update_file_content(self, path: str, content: str) -> None:
        self.calls.append(("update_file_content", path))
        ctime = self.files.get(path, {}).get("ctime")
        self.add_file(path, content, ctime=ctime)

    async def append_file_content(self, path: str, content: str) -> None:
        self.calls.append(("append_file_content", path))
        existing = self.files.get(path, {}).get("content", "")
        self.add_file(path, existing + content)

    async def delete_file(self, path: str) -> None:
        self.calls.append(("delete_file", path))
        if path not in self.files:
            raise self._missing(path)
        del self.files[path]


@pytest.fixture
def fake_client() -> FakeVaultClient:
    return FakeVaultClient()


@pytest.fixture(autouse=True)
def fast_note_retries(monkeypatch):
    """Remove retry sleeps from note operations."""
    monkeypatch.setattr("obsidian_rest.core.note_operations.NOTE_RETRY_DELAY_SECONDS", 0)