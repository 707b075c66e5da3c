"""Search tools: vault-wide search and in-note search/replace."""
from __future__ import annotations

from typing import Any

from mcp.server.fastmcp import Context

from obsidian_rest.server import mcp
from obsidian_rest.session import resolve_services
from obsidian_rest.models import GlobalSearchInput, SearchReplaceInput
from obsidian_rest.core.global_search import SearchParameters
from obsidian_rest.core.search_replace import Replacement, search_replace_in_note


# ==============================================================================
# SEARCH TOOLS
# ==============================================================================


@mcp.tool()
async def obsidian_global_search(
    input: GlobalSearchInput,
    ctx: Context | None = None,
) -> dict[str, Any]:
    """Search note contents across the vault (text or regex).

    Tries the live Obsidian search first. If it fails or times out, the
    in-memory vault cache is searched instead and the message says so. Results
    are sorted by modification time (newest first) and paginated.

    Args:
        input (GlobalSearchInput): Validated input containing:
            - query (str): Text or regex
            - search_in_path (str, optional): Directory to search recursively
            - modified_since / modified_until (str, optional): e.g. '2 weeks ago'
            - use_regex, case_sensitive (bool)
            - page, page_size, max_matches_per_file, context_length (int)

    Returns:
        {
            "success": bool,
            "message": str,            # states whether API or cache was used
            "strategy": "api" | "cache",
            "results": [
                {
                    "path": str,
                    "filename": str,
                    "matches": [{"context": str, "match_text"?: str, "position"?: int}],
                    "match_count": int,
                    "modified_time": str,
                    "created_time": str,
                    "numeric_mtime": float
                }
            ],
            "total_files_found": int,
            "total_matches_found": int,
            "current_page": int,
            "page_size": int,
            "total_pages": int,
            "also_found_in_files": [str]   # only when more than one page
        }

    Error Handling:
        - Invalid regex or date filter → validation error
        - API failed and cache disabled or still building → SERVICE_UNAVAILABLE
    """
    services = resolve_services(ctx)
    params = SearchParameters(
        query=input.query,
        search_in_path=input.search_in_path,
        context_length=input.context_length,
        modified_since=input.modified_since,
        modified_until=input.modified_until,
        use_regex=input.use_regex,
        case_sensitive=input.case_sensitive,
        page_size=input.page_size,
        page=input.page,
        max_matches_per_file=input.max_matches_per_file,
    )
    response = await services.search_engine.search(params)
    return response.as_payload()


@mcp.tool()
async def obsidian_search_replace(
    input: SearchReplaceInput,
    ctx: Context | None = None,
) -> dict[str, Any]:
    """Apply one or more search/replace blocks to a single note.

    The note is only written when something changed.

    Returns:
        {
            "success": True,
            "message": str,
            "path": str,
            "total_replacements_made": int,
            "replacements_per_block": [{"search": str, "replacements_made": int}],
            "stat": dict (when written),
            "final_content": str (optional)
        }
    """
    services = resolve_services(ctx)
    return await search_replace_in_note(
        services.client,
        services.cache,
        input.file_path,
        [Replacement(search=block.search, replace=block.replace) for block in input.replacements],
        use_regex=input.use_regex,
        case_sensitive=input.case_sensitive,
        replace_all=input.replace_all,
        whole_word=input.whole_word,
        flexible_whitespace=input.flexible_whitespace,
        return_content=input.return_content,
    )
