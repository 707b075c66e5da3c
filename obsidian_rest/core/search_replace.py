"""In-note search and replace over the note's markdown."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from obsidian_rest.core.formatting import format_stat
from obsidian_rest.core.note_operations import (
    fetch_note,
    locate_note,
    refresh_cache_entry,
    write_note,
)
from obsidian_rest.errors import ErrorKind, VaultError
from obsidian_rest.services.rest_client import VaultClient
from obsidian_rest.services.vault_cache import VaultCacheStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Replacement:
    search: str
    replace: str


def build_replacement_pattern(
    search: str,
    use_regex: bool,
    case_sensitive: bool,
    whole_word: bool,
    flexible_whitespace: bool,
) -> re.Pattern[str]:
    """Compile one replacement block's search pattern.

    Raises:
        VaultError: ``VALIDATION_ERROR`` for an invalid regular expression.
    """
    if use_regex:
        source = rf"\b(?:{search})\b" if whole_word else search
    else:
        source = re.escape(search)
        if flexible_whitespace:
            source = re.sub(r"(?:\\\s|\s)+", r"\\s+", source)
        if whole_word:
            source = rf"\b{source}\b"

    try:
        return re.compile(source, 0 if case_sensitive else re.IGNORECASE)
    except re.error as exc:
        raise VaultError(
            ErrorKind.VALIDATION_ERROR,
            f"Invalid regex pattern in replacement block: {search} ({exc})",
            {"operation": "search_replace", "search": search},
        ) from exc


def apply_replacements(
    content: str,
    replacements: Sequence[Replacement],
    use_regex: bool = False,
    case_sensitive: bool = True,
    replace_all: bool = True,
    whole_word: bool = False,
    flexible_whitespace: bool = False,
) -> tuple[str, list[int]]:
    """Apply each replacement block in order.

    Literal replacement text is inserted verbatim. In regex mode the replacement
    may use ``\\1`` / ``\\g<name>`` group references.

    Returns:
        ``(new_content, per_block_counts)``.
    """
    counts: list[int] = []
    for block in replacements:
        pattern = build_replacement_pattern(
            block.search, use_regex, case_sensitive, whole_word, flexible_whitespace
        )
        replacement: Any = block.replace if use_regex else (lambda _match, text=block.replace: text)
        try:
            content, made = pattern.subn(replacement, content, count=0 if replace_all else 1)
        except (re.error, IndexError) as exc:
            raise VaultError(
                ErrorKind.VALIDATION_ERROR,
                f"Invalid replacement text for search '{block.search}': {exc}",
                {"operation": "search_replace", "search": block.search},
            ) from exc
        logger.debug("Replacement block %r made %d change(s)", block.search, made)
        counts.append(made)
    return content, counts


async def search_replace_in_note(
    client: VaultClient,
    cache: Optional[VaultCacheStore],
    file_path: str,
    replacements: Sequence[Replacement],
    use_regex: bool = False,
    case_sensitive: bool = True,
    replace_all: bool = True,
    whole_word: bool = False,
    flexible_whitespace: bool = False,
    return_content: bool = False,
) -> dict[str, Any]:
    """Run replacements against one note and write it back when anything changed."""
    effective_path, note = await locate_note(client, file_path)
    original = note.content

    updated, counts = apply_replacements(
        original,
        replacements,
        use_regex=use_regex,
        case_sensitive=case_sensitive,
        replace_all=replace_all,
        whole_word=whole_word,
        flexible_whitespace=flexible_whitespace,
    )
    total = sum(counts)
    response: dict[str, Any] = {
        "success": True,
        "path": effective_path,
        "total_replacements_made": total,
        "replacements_per_block": [
            {"search": block.search, "replacements_made": count}
            for block, count in zip(replacements, counts)
        ],
    }

    if updated == original:
        response["message"] = f"No changes made to '{effective_path}'; no matches found."
        if return_content:
            response["final_content"] = original
        return response

    await write_note(client, effective_path, updated)
    await refresh_cache_entry(cache, effective_path)
    response["message"] = (
        f"Search/replace completed on '{effective_path}'. "
        f"Successfully made {total} replacement(s)."
    )
    logger.info(response["message"])

    try:
        final_state = await fetch_note(client, effective_path)
    except VaultError as exc:
        logger.warning("Could not read '%s' back after search/replace: %s", effective_path, exc)
        if return_content:
            response["final_content"] = updated
        return response

    response["stat"] = format_stat(
        final_state.stat.ctime, final_state.stat.mtime, final_state.stat.size
    )
    if return_content:
        response["final_content"] = final_state.content
    return response
