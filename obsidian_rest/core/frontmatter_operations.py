"""YAML frontmatter manipulation over notes stored in the remote vault."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import date, datetime
from typing import Any, Optional

import frontmatter
import yaml

from obsidian_rest.core.note_operations import fetch_markdown, refresh_cache_entry, write_note
from obsidian_rest.errors import ErrorKind, VaultError
from obsidian_rest.services.rest_client import VaultClient
from obsidian_rest.services.vault_cache import VaultCacheStore

logger = logging.getLogger(__name__)

FRONTMATTER_OPERATIONS = ("get", "set", "delete")


# ==============================================================================
# HELPER FUNCTIONS
# ==============================================================================


def parse_frontmatter(text: str) -> tuple[dict[str, Any], str]:
    """Split raw markdown into ``(metadata, body)``.

    Raises:
        VaultError: ``VALIDATION_ERROR`` when the frontmatter block is not valid YAML.
    """
    if not text:
        return {}, ""

    try:
        post = frontmatter.loads(text)
    except yaml.YAMLError as exc:
        raise VaultError(
            ErrorKind.VALIDATION_ERROR,
            f"Frontmatter contains invalid YAML: {exc}",
            {"operation": "parse_frontmatter"},
        ) from exc

    metadata = {key: _sanitize(value, key) for key, value in (post.metadata or {}).items()}
    return metadata, post.content if post.content is not None else ""


def serialize_frontmatter(metadata: dict[str, Any], content: str) -> str:
    """Rebuild markdown from metadata and body. Empty metadata drops the block."""
    if not metadata:
        return content

    post = frontmatter.Post(content)
    post.metadata.update(metadata)
    text = frontmatter.dumps(post, sort_keys=False)
    return text if text.endswith("\n") else f"{text}\n"


def _sanitize(value: Any, path: str) -> Any:
    """Coerce parsed YAML values into JSON-friendly types."""
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [_sanitize(item, f"{path}[{index}]") for index, item in enumerate(value)]
    if isinstance(value, Mapping):
        return {str(key): _sanitize(item, f"{path}.{key}") for key, item in value.items()}
    raise VaultError(
        ErrorKind.VALIDATION_ERROR,
        f"Frontmatter field '{path}' uses unsupported type '{type(value).__name__}'.",
    )


async def load_note_frontmatter(client: VaultClient, file_path: str) -> tuple[dict[str, Any], str]:
    text = await fetch_markdown(client, file_path)
    return parse_frontmatter(text)


# ==============================================================================
# FRONTMATTER OPERATIONS
# ==============================================================================


async def manage_frontmatter(
    client: VaultClient,
    cache: Optional[VaultCacheStore],
    file_path: str,
    operation: str,
    key: str,
    value: Any = None,
) -> dict[str, Any]:
    """Get, set or delete a single frontmatter key.

    Args:
        client: Remote vault client.
        cache: Cache store refreshed after writes (``None`` when disabled).
        file_path: Vault-relative note path.
        operation: ``"get"``, ``"set"`` or ``"delete"``.
        key: Frontmatter key.
        value: New value for ``set``.

    Returns:
        ``{"success", "message", "path", "value"}``.
    """
    if operation not in FRONTMATTER_OPERATIONS:
        raise VaultError(ErrorKind.VALIDATION_ERROR, f"Invalid operation: {operation}")

    metadata, body = await load_note_frontmatter(client, file_path)

    if operation == "get":
        return {
            "success": True,
            "message": f"Successfully retrieved key '{key}' from frontmatter.",
            "path": file_path,
            "value": metadata.get(key),
        }

    if operation == "set":
        if value is None:
            raise VaultError(
                ErrorKind.VALIDATION_ERROR,
                "A 'value' is required for the 'set' operation.",
                {"operation": "manage_frontmatter", "key": key},
            )
        metadata[key] = _sanitize(value, key)
        await write_note(client, file_path, serialize_frontmatter(metadata, body))
        await refresh_cache_entry(cache, file_path)
        logger.info("Set frontmatter key '%s' on '%s'", key, file_path)
        return {
            "success": True,
            "message": f"Successfully set key '{key}' in frontmatter.",
            "path": file_path,
            "value": {key: metadata[key]},
        }

    if key not in metadata:
        return {
            "success": True,
            "message": f"Key '{key}' not found in frontmatter. No action taken.",
            "path": file_path,
            "value": {},
        }

    del metadata[key]
    await write_note(client, file_path, serialize_frontmatter(metadata, body))
    await refresh_cache_entry(cache, file_path)
    logger.info("Deleted frontmatter key '%s' from '%s'", key, file_path)
    return {
        "success": True,
        "message": f"Successfully deleted key '{key}' from frontmatter.",
        "path": file_path,
        "value": {},
    }
