"""Note management MCP tools.

This module provides MCP tool wrappers for note operations:
- List a directory as a tree
- Read a note (markdown or JSON)
- Append, prepend or overwrite a note
- Delete a note

All tools delegate to core operations in obsidian_rest.core.note_operations.
"""
from __future__ import annotations

from typing import Any

from mcp.server.fastmcp import Context

from obsidian_rest.server import mcp
from obsidian_rest.session import resolve_services
from obsidian_rest.models import (
    ListNotesInput,
    ReadNoteInput,
    UpdateNoteInput,
    DeleteNoteInput,
)
from obsidian_rest.core.note_operations import (
    list_notes,
    read_note,
    update_note,
    delete_note,
)


# ==============================================================================
# READ OPERATIONS
# ==============================================================================

@mcp.tool()
async def obsidian_list_notes(
    input: ListNotesInput,
    ctx: Context | None = None,
) -> dict[str, Any]:
    """List files and subdirectories of a vault directory as a tree.

    Directories are listed first, then files, each alphabetically.

    Args:
        input (ListNotesInput): Validated input containing:
            - dir_path (str): Directory to list ('' or '/' for the root)
            - file_extension_filter (list[str], optional): e.g. ['.md']
            - name_regex_filter (str, optional): Regex on entry names
            - recursion_depth (int): 0 for this directory only, -1 unlimited

    Returns:
        {
            "directory_path": str,
            "tree": str,          # ├── / └── formatted listing
            "total_entries": int
        }

    Error Handling:
        - Directory not found → NOT_FOUND error
        - Invalid name_regex_filter → validation error
    """
    services = resolve_services(ctx)
    return await list_notes(
        services.client,
        input.dir_path,
        file_extension_filter=input.file_extension_filter,
        name_regex_filter=input.name_regex_filter,
        recursion_depth=input.recursion_depth,
    )


# Falls back to a case-insensitive filename match when the exact path is missing.
@mcp.tool()
async def obsidian_read_note(
    input: ReadNoteInput,
    ctx: Context | None = None,
) -> dict[str, Any]:
    """Read the content of a note.

    Args:
        input (ReadNoteInput): Validated input containing:
            - file_path (str): Vault-relative path including extension
            - format ('markdown' | 'json'): Output format
            - include_stat (bool): Add created/modified times and size

    Returns:
        {
            "path": str,              # Path actually read
            "content": str | dict,    # dict for 'json' format
            "stat": dict              # when requested or for 'json'
        }

    Error Handling:
        - File not found (case-insensitive fallback also failed) → NOT_FOUND
        - Several files match case-insensitively → CONFLICT
    """
    services = resolve_services(ctx)
    return await read_note(
        services.client,
        input.file_path,
        output_format=input.format,
        include_stat=input.include_stat,
    )


# ==============================================================================
# WRITE OPERATIONS
# ==============================================================================

@mcp.tool()
async def obsidian_update_note(
    input: UpdateNoteInput,
    ctx: Context | None = None,
) -> dict[str, Any]:
    """Append, prepend or overwrite a whole note.

    Args:
        input (UpdateNoteInput): Validated input containing:
            - file_path (str): Vault-relative path including extension
            - content (str): Markdown to write
            - mode ('append' | 'prepend' | 'overwrite')
            - create_if_needed (bool): Create the note when missing (default True)
            - overwrite_if_exists (bool): Allow 'overwrite' on an existing note
            - return_content (bool): Include the final content

    Returns:
        {"success": True, "message": str, "path": str, "created": bool,
         "stat": dict, "final_content": str (optional)}

    Error Handling:
        - Overwriting an existing note without overwrite_if_exists → CONFLICT
        - Missing note with create_if_needed=False → NOT_FOUND
    """
    services = resolve_services(ctx)
    return await update_note(
        services.client,
        services.cache,
        input.file_path,
        input.content,
        mode=input.mode,
        create_if_needed=input.create_if_needed,
        overwrite_if_exists=input.overwrite_if_exists,
        return_content=input.return_content,
    )


@mcp.tool()
async def obsidian_delete_note(
    input: DeleteNoteInput,
    ctx: Context | None = None,
) -> dict[str, Any]:
    """Permanently delete a note (case-insensitive fallback on the filename).

    Returns:
        {"success": True, "message": str, "path": str}
    """
    services = resolve_services(ctx)
    return await delete_note(services.client, services.cache, input.file_path)
