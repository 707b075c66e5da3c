"""Tag management across frontmatter ``tags`` and inline ``#tags``."""

from __future__ import annotations

import logging
import re
from typing import Any, Iterable, Optional

from obsidian_rest.core.frontmatter_operations import (
    load_note_frontmatter,
    serialize_frontmatter,
)
from obsidian_rest.core.note_operations import refresh_cache_entry, write_note
from obsidian_rest.errors import ErrorKind, VaultError
from obsidian_rest.services.rest_client import VaultClient
from obsidian_rest.services.vault_cache import VaultCacheStore

logger = logging.getLogger(__name__)

TAG_OPERATIONS = ("add", "remove", "list")

# A tag needs at least one non-digit character.
_INLINE_TAG = re.compile(r"(?<![\w#/-])#([\w/-]*[^\W\d][\w/-]*)")
_FENCED_CODE = re.compile(r"^(```|~~~).*?^\1", re.MULTILINE | re.DOTALL)


# ==============================================================================
# HELPER FUNCTIONS
# ==============================================================================


def sanitize_tag(tag: str) -> str:
    """Strip whitespace and leading ``#`` characters."""
    return tag.strip().lstrip("#").strip()


def _dedupe(tags: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(tag for tag in tags if tag))


def frontmatter_tags(metadata: dict[str, Any]) -> list[str]:
    """Read the ``tags`` key, accepting a list or a comma/space separated string."""
    raw = metadata.get("tags")
    if raw is None:
        return []
    if isinstance(raw, str):
        items = re.split(r"[,\s]+", raw)
    elif isinstance(raw, list):
        items = [str(item) for item in raw if item is not None]
    else:
        items = [str(raw)]
    return _dedupe(sanitize_tag(item) for item in items)


def inline_tags(body: str) -> list[str]:
    """Collect ``#tags`` from the note body, ignoring fenced code blocks."""
    return _dedupe(_INLINE_TAG.findall(_FENCED_CODE.sub("", body)))


def remove_inline_tag(body: str, tag: str) -> tuple[str, int]:
    """Strip ``#tag`` from the body outside fenced code blocks."""
    pattern = re.compile(rf"(^|[^\w#/-])#{re.escape(tag)}(?![\w/-])")
    pieces: list[str] = []
    removed = 0
    position = 0
    for fence in _FENCED_CODE.finditer(body):
        text, count = pattern.subn(r"\1", body[position : fence.start()])
        pieces.extend((text, fence.group(0)))
        removed += count
        position = fence.end()
    text, count = pattern.subn(r"\1", body[position:])
    pieces.append(text)
    return "".join(pieces), removed + count


# ==============================================================================
# TAG OPERATIONS
# ==============================================================================


async def manage_tags(
    client: VaultClient,
    cache: Optional[VaultCacheStore],
    file_path: str,
    operation: str,
    tags: Optional[list[str]] = None,
) -> dict[str, Any]:
    """List, add or remove tags on one note.

    ``add`` writes to the frontmatter ``tags`` list. ``remove`` deletes from the
    frontmatter and strips matching inline ``#tag`` occurrences.

    Returns:
        ``{"success", "message", "path", "current_tags"}``.
    """
    if operation not in TAG_OPERATIONS:
        raise VaultError(ErrorKind.VALIDATION_ERROR, f"Invalid operation: {operation}")

    requested = _dedupe(sanitize_tag(tag) for tag in tags or [])
    if operation != "list" and not requested:
        raise VaultError(
            ErrorKind.VALIDATION_ERROR,
            f"At least one tag is required for the '{operation}' operation.",
            {"operation": "manage_tags"},
        )

    metadata, body = await load_note_frontmatter(client, file_path)
    fm_tags = frontmatter_tags(metadata)
    current = _dedupe([*fm_tags, *inline_tags(body)])

    if operation == "list":
        return {
            "success": True,
            "message": "Successfully listed all tags.",
            "path": file_path,
            "current_tags": current,
        }

    if operation == "add":
        to_add = [tag for tag in requested if tag not in current]
        if not to_add:
            return {
                "success": True,
                "message": "No new tags to add; all provided tags already exist in the note.",
                "path": file_path,
                "current_tags": current,
            }
        metadata["tags"] = _dedupe([*fm_tags, *to_add])
        await write_note(client, file_path, serialize_frontmatter(metadata, body))
        await refresh_cache_entry(cache, file_path)
        logger.info("Added tags %s to '%s'", to_add, file_path)
        return {
            "success": True,
            "message": f"Successfully added tags: {', '.join(to_add)}.",
            "path": file_path,
            "current_tags": _dedupe([*current, *to_add]),
        }

    to_remove = [tag for tag in requested if tag in current]
    if not to_remove:
        return {
            "success": True,
            "message": "No tags to remove; none of the provided tags exist in the note.",
            "path": file_path,
            "current_tags": current,
        }

    remaining_fm = [tag for tag in fm_tags if tag not in to_remove]
    if remaining_fm:
        metadata["tags"] = remaining_fm
    else:
        metadata.pop("tags", None)
    for tag in to_remove:
        body, _ = remove_inline_tag(body, tag)

    await write_note(client, file_path, serialize_frontmatter(metadata, body))
    await refresh_cache_entry(cache, file_path)
    logger.info("Removed tags %s from '%s'", to_remove, file_path)
    return {
        "success": True,
        "message": f"Successfully removed tags: {', '.join(to_remove)}.",
        "path": file_path,
        "current_tags": [tag for tag in current if tag not in to_remove],
    }
