"""Frontmatter and tag management MCP tools.

All tools delegate to obsidian_rest.core.frontmatter_operations and
obsidian_rest.core.tag_operations.
"""
from __future__ import annotations

from typing import Any

from mcp.server.fastmcp import Context

from obsidian_rest.server import mcp
from obsidian_rest.session import resolve_services
from obsidian_rest.models import ManageFrontmatterInput, ManageTagsInput
from obsidian_rest.core.frontmatter_operations import manage_frontmatter
from obsidian_rest.core.tag_operations import manage_tags


# ==============================================================================
# FRONTMATTER OPERATIONS
# ==============================================================================

@mcp.tool()
async def obsidian_manage_frontmatter(
    input: ManageFrontmatterInput,
    ctx: Context | None = None,
) -> dict[str, Any]:
    """Get, set or delete one key in a note's YAML frontmatter.

    Args:
        input (ManageFrontmatterInput): Validated input containing:
            - file_path (str): Vault-relative path
            - operation ('get' | 'set' | 'delete')
            - key (str): Frontmatter key
            - value (any, optional): Required for 'set'

    Returns:
        {"success": True, "message": str, "path": str, "value": Any}
    """
    services = resolve_services(ctx)
    return await manage_frontmatter(
        services.client,
        services.cache,
        input.file_path,
        input.operation,
        input.key,
        input.value,
    )


# ==============================================================================
# TAG OPERATIONS
# ==============================================================================

@mcp.tool()
async def obsidian_manage_tags(
    input: ManageTagsInput,
    ctx: Context | None = None,
) -> dict[str, Any]:
    """List, add or remove tags on a note.

    'add' writes to the frontmatter 'tags' list; 'remove' deletes from the
    frontmatter and strips inline #tags; 'list' reports both kinds.

    Returns:
        {"success": True, "message": str, "path": str, "current_tags": [str]}
    """
    services = resolve_services(ctx)
    return await manage_tags(
        services.client,
        services.cache,
        input.file_path,
        input.operation,
        input.tags,
    )
