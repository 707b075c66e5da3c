"""Pydantic input models for vault-wide search and search/replace."""

from __future__ import annotations

import re
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from obsidian_rest.constants import (
    DEFAULT_CONTEXT_LENGTH,
    DEFAULT_MAX_MATCHES_PER_FILE,
    DEFAULT_PAGE_SIZE,
)
from obsidian_rest.models.base import BaseNoteInput


class GlobalSearchInput(BaseModel):
    """Input model for obsidian_global_search tool.

    Examples:
        >>> GlobalSearchInput(query="meeting notes")
        >>> GlobalSearchInput(query="TODO\\\\s+\\\\w+", use_regex=True, search_in_path="Projects")
        >>> GlobalSearchInput(query="budget", modified_since="2 weeks ago", page=2)
    """

    query: str = Field(
        min_length=1,
        description="The search query (text or regex pattern).",
    )

    search_in_path: Optional[str] = Field(
        None,
        description=(
            "Optional vault-relative directory to search recursively "
            "(e.g. 'Notes/Projects'). Omit or use '/' for the entire vault."
        ),
    )

    context_length: int = Field(
        DEFAULT_CONTEXT_LENGTH,
        gt=0,
        description="Characters of context on each side of a match.",
    )

    modified_since: Optional[str] = Field(
        None,
        description="Only files modified since this date/time (e.g. '2 weeks ago', '2024-01-15').",
    )

    modified_until: Optional[str] = Field(
        None,
        description="Only files modified until this date/time (e.g. 'today', '2024-03-20 17:00').",
    )

    use_regex: bool = Field(False, description="Treat 'query' as a regular expression.")

    case_sensitive: bool = Field(False, description="Perform a case-sensitive search.")

    page_size: int = Field(
        DEFAULT_PAGE_SIZE, gt=0, description="Maximum number of result files per page."
    )

    page: int = Field(1, gt=0, description="Page number of results to return (1-based).")

    max_matches_per_file: int = Field(
        DEFAULT_MAX_MATCHES_PER_FILE,
        gt=0,
        description="Maximum number of matches shown per file.",
    )

    @field_validator('query')
    @classmethod
    def validate_query(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Search query cannot be empty or whitespace only.")
        return v

    @field_validator('modified_since', 'modified_until', 'search_in_path')
    @classmethod
    def empty_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return v.strip()

    @model_validator(mode='after')
    def validate_regex(self) -> "GlobalSearchInput":
        if self.use_regex:
            try:
                re.compile(self.query)
            except re.error as exc:
                raise ValueError(f"Invalid regex pattern '{self.query}': {exc}") from exc
        return self

    class Config:
        """Pydantic model configuration."""
        json_schema_extra = {
            "examples": [
                {"query": "meeting notes"},
                {"query": "TODO\\s+\\w+", "use_regex": True, "search_in_path": "Projects"},
                {"query": "budget", "modified_since": "2 weeks ago", "page": 2, "page_size": 20},
            ]
        }


class ReplacementBlock(BaseModel):
    """One search/replace pair."""

    search: str = Field(min_length=1, description="Text or regex pattern to find.")
    replace: str = Field(description="Replacement text (may be empty).")


class SearchReplaceInput(BaseNoteInput):
    """Input model for obsidian_search_replace tool.

    Examples:
        >>> SearchReplaceInput(file_path="Notes/a.md", replacements=[{"search": "foo", "replace": "bar"}])
    """

    replacements: list[ReplacementBlock] = Field(
        min_length=1,
        description="Ordered list of {search, replace} blocks applied one after another.",
    )

    use_regex: bool = Field(
        False,
        description=(
            "Treat each 'search' as a regular expression. "
            "Replacements may then use \\1 or \\g<name> group references."
        ),
    )

    case_sensitive: bool = Field(True, description="Match case exactly.")

    replace_all: bool = Field(
        True, description="Replace every occurrence (false replaces only the first)."
    )

    whole_word: bool = Field(False, description="Match whole words only.")

    flexible_whitespace: bool = Field(
        False,
        description="Treat any run of whitespace in 'search' as matching any whitespace run. "
        "Not allowed together with use_regex.",
    )

    return_content: bool = Field(False, description="Include the final note content in the result.")

    @model_validator(mode='after')
    def validate_options(self) -> "SearchReplaceInput":
        if self.flexible_whitespace and self.use_regex:
            raise ValueError("flexible_whitespace cannot be combined with use_regex.")
        if self.use_regex:
            for block in self.replacements:
                try:
                    re.compile(block.search)
                except re.error as exc:
                    raise ValueError(f"Invalid regex pattern '{block.search}': {exc}") from exc
        return self
