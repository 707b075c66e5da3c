"""Base Pydantic models for MCP tool input validation.

Every note-targeting tool input inherits :class:`BaseNoteInput`, which owns the
vault-relative ``file_path`` rules.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator


def normalize_vault_path(value: str, field_name: str = "file_path") -> str:
    """Normalize a vault-relative path.

    Enforces:
    - Non-empty after stripping whitespace
    - Backslashes converted to forward slashes
    - Leading ``/`` removed (paths are always vault-relative)
    - No ``.`` or ``..`` segments

    Raises:
        ValueError: If the path is empty or attempts traversal.
    """
    cleaned = value.strip().replace("\\", "/").lstrip("/")

    if not cleaned:
        raise ValueError(
            f"{field_name} cannot be empty. "
            "Provide a vault-relative path like 'Projects/Plan.md'."
        )

    if any(part in {".", ".."} for part in cleaned.split("/")):
        raise ValueError(
            f"{field_name} cannot contain '.' or '..' path segments. "
            f"Invalid path: '{cleaned}'"
        )

    return cleaned


class BaseNoteInput(BaseModel):
    """Base model for operations on a single vault file."""

    file_path: str = Field(
        min_length=1,
        description=(
            "Vault-relative path to the file, including its extension. "
            "Examples: 'Daily Notes/2025-10-27.md', 'Projects/Plan.md'. "
            "If the exact case does not match, a unique case-insensitive match is used."
        ),
        examples=["Daily Notes/2025-10-27.md", "Projects/Plan.md", "README.md"]
    )

    @field_validator('file_path')
    @classmethod
    def validate_file_path(cls, v: str) -> str:
        return normalize_vault_path(v)
