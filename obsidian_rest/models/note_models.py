"""Pydantic input models for note listing and CRUD operations."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from obsidian_rest.models.base import BaseNoteInput


class ListNotesInput(BaseModel):
    """Input model for obsidian_list_notes tool.

    Examples:
        >>> ListNotesInput(dir_path="/")
        >>> ListNotesInput(dir_path="Projects", file_extension_filter=[".md"], recursion_depth=0)
    """

    dir_path: str = Field(
        "",
        description=(
            "Vault-relative directory to list (e.g. 'Projects/Active'). "
            "Use '' or '/' for the vault root. Case-sensitive."
        ),
    )

    file_extension_filter: Optional[list[str]] = Field(
        None,
        description="Only list files with these extensions (e.g. ['.md']). Directories are always listed.",
    )

    name_regex_filter: Optional[str] = Field(
        None,
        description="Regex matched against entry names.",
    )

    recursion_depth: int = Field(
        -1,
        ge=-1,
        description="Maximum recursion depth: 0 lists only this directory, -1 is unlimited.",
    )

    @field_validator('dir_path')
    @classmethod
    def validate_dir_path(cls, v: str) -> str:
        cleaned = v.strip().replace("\\", "/").strip("/")
        if any(part in {".", ".."} for part in cleaned.split("/") if part):
            raise ValueError(
                "dir_path cannot contain '.' or '..' path segments. "
                f"Invalid path: '{v}'"
            )
        return cleaned

    @field_validator('file_extension_filter')
    @classmethod
    def validate_extensions(cls, v: Optional[list[str]]) -> Optional[list[str]]:
        if v is None:
            return None
        for extension in v:
            if not extension.startswith("."):
                raise ValueError(f"Extension must start with a dot '.': '{extension}'")
        return v


class ReadNoteInput(BaseNoteInput):
    """Input model for obsidian_read_note tool."""

    format: Literal["markdown", "json"] = Field(
        "markdown",
        description="'markdown' returns the raw text; 'json' returns content, frontmatter, tags and stat.",
    )

    include_stat: bool = Field(
        False,
        description="Include created/modified times and size (always included for 'json').",
    )


class UpdateNoteInput(BaseNoteInput):
    """Input model for obsidian_update_note tool.

    Examples:
        >>> UpdateNoteInput(file_path="Inbox.md", content="- new idea", mode="append")
        >>> UpdateNoteInput(file_path="Plan.md", content="# Plan", mode="overwrite", overwrite_if_exists=True)
    """

    content: str = Field(description="Markdown content to write.")

    mode: Literal["append", "prepend", "overwrite"] = Field(
        "append",
        description="How to combine 'content' with the existing note.",
    )

    create_if_needed: bool = Field(True, description="Create the note if it does not exist.")

    overwrite_if_exists: bool = Field(
        False,
        description="Required to overwrite an existing note in 'overwrite' mode.",
    )

    return_content: bool = Field(False, description="Include the final note content in the result.")


class DeleteNoteInput(BaseNoteInput):
    """Input model for obsidian_delete_note tool."""
