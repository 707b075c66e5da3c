"""Core business logic for note listing, reading, writing and deletion."""

from __future__ import annotations

import logging
import posixpath
import re
from dataclasses import dataclass, field
from typing import Any, Optional

from obsidian_rest.constants import NOTE_RETRY_ATTEMPTS, NOTE_RETRY_DELAY_SECONDS
from obsidian_rest.core.formatting import format_stat
from obsidian_rest.core.retry import retry_on_kinds, retry_with_delay
from obsidian_rest.data_models import NoteJson
from obsidian_rest.errors import ErrorKind, VaultError
from obsidian_rest.services.rest_client import VaultClient
from obsidian_rest.services.vault_cache import VaultCacheStore

logger = logging.getLogger(__name__)

_retry_not_found = retry_on_kinds(ErrorKind.NOT_FOUND)
_retry_transient = retry_on_kinds(
    ErrorKind.NOT_FOUND, ErrorKind.SERVICE_UNAVAILABLE, ErrorKind.TIMEOUT
)

UPDATE_MODES = ("append", "prepend", "overwrite")


# ==============================================================================
# HELPER FUNCTIONS
# ==============================================================================


def _combine_with_newline(left: str, right: str) -> str:
    """Concatenate two strings, inserting a single newline between them when needed."""
    if not left:
        return right
    if not right:
        return left
    if not left.endswith("\n") and not right.startswith("\n"):
        return f"{left}\n{right}"
    return left + right


async def fetch_note(client: VaultClient, path: str) -> NoteJson:
    """Read a note as JSON, retrying NOT_FOUND races after recent writes."""
    return await retry_with_delay(
        lambda: client.get_file_content(path),
        operation_name="readNoteJson",
        max_attempts=NOTE_RETRY_ATTEMPTS,
        delay_seconds=NOTE_RETRY_DELAY_SECONDS,
        should_retry=_retry_not_found,
    )


async def fetch_markdown(client: VaultClient, path: str) -> str:
    return await retry_with_delay(
        lambda: client.get_file_markdown(path),
        operation_name="readNoteMarkdown",
        max_attempts=NOTE_RETRY_ATTEMPTS,
        delay_seconds=NOTE_RETRY_DELAY_SECONDS,
        should_retry=_retry_not_found,
    )


async def write_note(client: VaultClient, path: str, content: str) -> None:
    await retry_with_delay(
        lambda: client.update_file_content(path, content),
        operation_name="writeNote",
        max_attempts=NOTE_RETRY_ATTEMPTS,
        delay_seconds=NOTE_RETRY_DELAY_SECONDS,
        should_retry=_retry_not_found,
    )


async def refresh_cache_entry(cache: Optional[VaultCacheStore], path: str) -> None:
    """Best-effort cache refresh after a successful write."""
    if cache is None:
        return
    if not await cache.update_cache_for_file(path):
        logger.warning("Cache entry for '%s' could not be refreshed after write", path)


async def locate_note(client: VaultClient, file_path: str) -> tuple[str, NoteJson]:
    """Read ``file_path``, tolerating differences in filename case.

    The exact path is tried first. When it is missing the parent directory is
    listed and a unique case-insensitive filename match is read instead.

    Returns:
        ``(effective_path, note)``.

    Raises:
        VaultError: ``NOT_FOUND`` when nothing matches, ``CONFLICT`` when several
            files differ only by case.
    """
    try:
        return file_path, await fetch_note(client, file_path)
    except VaultError as exc:
        if exc.kind is not ErrorKind.NOT_FOUND:
            raise

    dirname = posixpath.dirname(file_path)
    wanted = posixpath.basename(file_path).lower()
    logger.info("'%s' not found; trying case-insensitive match in '%s'", file_path, dirname or "/")

    try:
        entries = await retry_with_delay(
            lambda: client.list_files(dirname),
            operation_name="listFilesForCaseFallback",
            max_attempts=NOTE_RETRY_ATTEMPTS,
            delay_seconds=NOTE_RETRY_DELAY_SECONDS,
            should_retry=_retry_not_found,
        )
    except VaultError as exc:
        if exc.kind is ErrorKind.NOT_FOUND:
            raise VaultError(
                ErrorKind.NOT_FOUND,
                f"File not found: '{file_path}' (directory '{dirname or '/'}' does not exist).",
                {"operation": "locate_note", "path": file_path},
            ) from exc
        raise

    matches = [
        entry
        for entry in entries
        if not entry.endswith("/") and posixpath.basename(entry).lower() == wanted
    ]
    if len(matches) == 1:
        resolved = posixpath.join(dirname, posixpath.basename(matches[0]))
        logger.info("Resolved '%s' to '%s' by case-insensitive match", file_path, resolved)
        return resolved, await fetch_note(client, resolved)
    if len(matches) > 1:
        raise VaultError(
            ErrorKind.CONFLICT,
            f"Ambiguous case-insensitive matches for '{file_path}' in '{dirname or '/'}': "
            f"{', '.join(matches)}",
            {"operation": "locate_note", "path": file_path, "matches": matches},
        )
    raise VaultError(
        ErrorKind.NOT_FOUND,
        f"File not found: '{file_path}' (case-insensitive match also failed in '{dirname or '/'}').",
        {"operation": "locate_note", "path": file_path},
    )


# ==============================================================================
# LIST OPERATIONS
# ==============================================================================


@dataclass
class _TreeNode:
    name: str
    is_directory: bool
    children: list["_TreeNode"] = field(default_factory=list)


def _format_tree(nodes: list[_TreeNode], indent: str = "") -> tuple[list[str], int]:
    lines: list[str] = []
    count = len(nodes)
    for index, node in enumerate(nodes):
        is_last = index == len(nodes) - 1
        lines.append(f"{indent}{'└── ' if is_last else '├── '}{node.name}")
        if node.children:
            child_lines, child_count = _format_tree(
                node.children, indent + ("    " if is_last else "│   ")
            )
            lines.extend(child_lines)
            count += child_count
    return lines, count


async def _build_tree(
    client: VaultClient,
    dir_path: str,
    depth: int,
    recursion_depth: int,
    extensions: Optional[list[str]],
    name_pattern: Optional[re.Pattern[str]],
) -> list[_TreeNode]:
    if recursion_depth != -1 and depth > recursion_depth:
        return []

    try:
        names = await client.list_files(dir_path)
    except VaultError as exc:
        if exc.kind is ErrorKind.NOT_FOUND and depth > 0:
            logger.warning("Directory not found during recursive list, skipping: '%s'", dir_path)
            return []
        raise

    nodes: list[_TreeNode] = []
    for name in names:
        is_directory = name.endswith("/")
        clean_name = name[:-1] if is_directory else name
        if name_pattern is not None and not name_pattern.search(clean_name):
            continue
        if not is_directory and extensions:
            if posixpath.splitext(clean_name)[1] not in extensions:
                continue
        node = _TreeNode(name=f"{clean_name}/" if is_directory else clean_name, is_directory=is_directory)
        if is_directory:
            child_path = posixpath.join(dir_path, clean_name) if dir_path else clean_name
            node.children = await _build_tree(
                client, child_path, depth + 1, recursion_depth, extensions, name_pattern
            )
        nodes.append(node)

    nodes.sort(key=lambda node: (not node.is_directory, node.name.lower(), node.name))
    return nodes


async def list_notes(
    client: VaultClient,
    dir_path: str,
    file_extension_filter: Optional[list[str]] = None,
    name_regex_filter: Optional[str] = None,
    recursion_depth: int = -1,
) -> dict[str, Any]:
    """List a directory as an ASCII tree, directories first.

    Args:
        client: Remote vault client.
        dir_path: Vault-relative directory (``""`` or ``"/"`` for the root).
        file_extension_filter: Extensions such as ``[".md"]``; directories are always kept.
        name_regex_filter: Regex matched against entry names.
        recursion_depth: ``0`` for this directory only, ``-1`` for unlimited.

    Returns:
        ``{"directory_path", "tree", "total_entries"}``.

    Raises:
        VaultError: ``NOT_FOUND`` for a missing directory, ``VALIDATION_ERROR``
            for an invalid name filter.
    """
    normalized = dir_path.strip().strip("/")
    display_path = normalized or "/"
    name_pattern = None
    if name_regex_filter and name_regex_filter.strip():
        try:
            name_pattern = re.compile(name_regex_filter)
        except re.error as exc:
            raise VaultError(
                ErrorKind.VALIDATION_ERROR,
                f"Invalid name_regex_filter: {name_regex_filter} ({exc})",
                {"operation": "list_notes"},
            ) from exc

    logger.info("Listing notes in '%s' (depth %s)", display_path, recursion_depth)
    try:
        tree = await retry_with_delay(
            lambda: _build_tree(
                client, normalized, 0, recursion_depth, file_extension_filter, name_pattern
            ),
            operation_name="buildFileTree",
            max_attempts=NOTE_RETRY_ATTEMPTS,
            delay_seconds=NOTE_RETRY_DELAY_SECONDS,
            should_retry=_retry_not_found,
        )
    except VaultError as exc:
        if exc.kind is ErrorKind.NOT_FOUND:
            raise VaultError(
                ErrorKind.NOT_FOUND,
                f"Directory not found: '{display_path}'",
                {"operation": "list_notes", "path": display_path},
            ) from exc
        raise

    if not tree:
        return {
            "directory_path": display_path,
            "tree": "(empty or all items filtered)",
            "total_entries": 0,
        }

    lines, count = _format_tree(tree)
    return {"directory_path": display_path, "tree": "\n".join(lines), "total_entries": count}


# ==============================================================================
# READ OPERATIONS
# ==============================================================================


async def read_note(
    client: VaultClient,
    file_path: str,
    output_format: str = "markdown",
    include_stat: bool = False,
) -> dict[str, Any]:
    """Read a note, falling back to a case-insensitive filename match.

    Returns:
        ``{"path", "content"}`` plus ``"stat"`` when requested. With
        ``output_format="json"`` the content is the full note document and the
        stat is always included.
    """
    effective_path, note = await locate_note(client, file_path)
    stat = format_stat(note.stat.ctime, note.stat.mtime, note.stat.size)

    if output_format == "json":
        return {"path": effective_path, "content": note.as_payload(), "stat": stat}

    response: dict[str, Any] = {"path": effective_path, "content": note.content}
    if include_stat:
        response["stat"] = stat
    return response


# ==============================================================================
# WRITE OPERATIONS
# ==============================================================================


async def _exists(client: VaultClient, path: str) -> bool:
    try:
        await client.get_file_content(path)
        return True
    except VaultError as exc:
        if exc.kind is ErrorKind.NOT_FOUND:
            return False
        raise


async def update_note(
    client: VaultClient,
    cache: Optional[VaultCacheStore],
    file_path: str,
    content: str,
    mode: str = "append",
    create_if_needed: bool = True,
    overwrite_if_exists: bool = False,
    return_content: bool = False,
) -> dict[str, Any]:
    """Append, prepend or overwrite a whole note.

    Raises:
        VaultError: ``CONFLICT`` when overwriting an existing note without
            ``overwrite_if_exists``; ``NOT_FOUND`` when the note is missing and
            ``create_if_needed`` is false.
    """
    if mode not in UPDATE_MODES:
        raise VaultError(ErrorKind.VALIDATION_ERROR, f"Invalid update mode: {mode}")

    exists_before = await _exists(client, file_path)

    if mode == "overwrite" and exists_before and not overwrite_if_exists:
        raise VaultError(
            ErrorKind.CONFLICT,
            f"File '{file_path}' exists and overwrite_if_exists is false.",
            {"operation": "update_note", "path": file_path},
        )
    if not exists_before and not create_if_needed:
        raise VaultError(
            ErrorKind.NOT_FOUND,
            f"File '{file_path}' does not exist and create_if_needed is false.",
            {"operation": "update_note", "path": file_path},
        )

    if mode == "overwrite":
        new_content = content
    else:
        existing = await fetch_markdown(client, file_path) if exists_before else ""
        if mode == "append":
            new_content = _combine_with_newline(existing, content)
        else:
            new_content = _combine_with_newline(content, existing)

    await write_note(client, file_path, new_content)
    await refresh_cache_entry(cache, file_path)

    was_created = not exists_before
    if was_created:
        action = "created" if mode == "overwrite" else f"{mode}ed (and created)"
    else:
        action = "overwritten" if mode == "overwrite" else f"{mode}ed"
    message = f"File content successfully {action} for '{file_path}'."
    logger.info(message)

    response: dict[str, Any] = {
        "success": True,
        "message": message,
        "path": file_path,
        "created": was_created,
    }

    try:
        final_state = await retry_with_delay(
            lambda: client.get_file_content(file_path),
            operation_name="readFinalStateAfterUpdate",
            max_attempts=NOTE_RETRY_ATTEMPTS,
            delay_seconds=NOTE_RETRY_DELAY_SECONDS,
            should_retry=_retry_transient,
        )
    except VaultError as exc:
        logger.warning("Could not read '%s' back after update: %s", file_path, exc)
        response["message"] += " (Warning: could not retrieve final file stats/content after update.)"
        return response

    response["stat"] = format_stat(
        final_state.stat.ctime, final_state.stat.mtime, final_state.stat.size
    )
    if return_content:
        response["final_content"] = final_state.content
    return response


async def delete_note(
    client: VaultClient,
    cache: Optional[VaultCacheStore],
    file_path: str,
) -> dict[str, Any]:
    """Delete a note (case-insensitive fallback) and drop it from the cache."""
    effective_path, _ = await locate_note(client, file_path)
    await retry_with_delay(
        lambda: client.delete_file(effective_path),
        operation_name="deleteNote",
        max_attempts=NOTE_RETRY_ATTEMPTS,
        delay_seconds=NOTE_RETRY_DELAY_SECONDS,
        should_retry=_retry_not_found,
    )
    await refresh_cache_entry(cache, effective_path)

    message = f"File '{effective_path}' deleted successfully."
    if effective_path != file_path:
        message += f" (Resolved from '{file_path}' by case-insensitive match.)"
    logger.info(message)
    return {"success": True, "message": message, "path": effective_path}