"""Pydantic input models for frontmatter and tag management."""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import Field, field_validator, model_validator

from obsidian_rest.models.base import BaseNoteInput


class ManageFrontmatterInput(BaseNoteInput):
    """Input model for obsidian_manage_frontmatter tool.

    Examples:
        >>> ManageFrontmatterInput(file_path="a.md", operation="get", key="status")
        >>> ManageFrontmatterInput(file_path="a.md", operation="set", key="status", value="done")
    """

    operation: Literal["get", "set", "delete"] = Field(
        description="'get' reads a key, 'set' creates or replaces it, 'delete' removes it.",
    )

    key: str = Field(min_length=1, description="Frontmatter key to operate on.")

    value: Optional[Any] = Field(
        None,
        description="Value for 'set' (string, number, boolean, list or object).",
    )

    @field_validator('key')
    @classmethod
    def validate_key(cls, v: str) -> str:
        cleaned = v.strip()
        if not cleaned:
            raise ValueError("Frontmatter key cannot be empty.")
        return cleaned

    @model_validator(mode='after')
    def validate_value(self) -> "ManageFrontmatterInput":
        if self.operation == "set" and self.value is None:
            raise ValueError("A 'value' is required for the 'set' operation.")
        return self


class ManageTagsInput(BaseNoteInput):
    """Input model for obsidian_manage_tags tool.

    Examples:
        >>> ManageTagsInput(file_path="a.md", operation="list")
        >>> ManageTagsInput(file_path="a.md", operation="add", tags=["project", "#urgent"])
    """

    operation: Literal["add", "remove", "list"] = Field(
        description="'add' writes to frontmatter tags, 'remove' also strips inline #tags, 'list' reports both.",
    )

    tags: list[str] = Field(
        default_factory=list,
        description="Tag names, with or without a leading '#'.",
    )

    @field_validator('tags')
    @classmethod
    def validate_tags(cls, v: list[str]) -> list[str]:
        cleaned = [tag.strip().lstrip("#").strip() for tag in v]
        for tag in cleaned:
            if not tag:
                raise ValueError("Tags cannot be empty.")
            if any(char.isspace() for char in tag):
                raise ValueError(f"Tags cannot contain whitespace: '{tag}'")
        return cleaned

    @model_validator(mode='after')
    def validate_operation_tags(self) -> "ManageTagsInput":
        if self.operation in ("add", "remove") and not self.tags:
            raise ValueError(f"At least one tag is required for the '{self.operation}' operation.")
        return self
