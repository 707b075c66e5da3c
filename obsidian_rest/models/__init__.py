"""Pydantic input models for MCP tool validation.

Architecture:
- base: BaseNoteInput with the shared vault-relative path rules
- note_models: list/read/update/delete inputs
- search_models: global search and search/replace inputs
- frontmatter_models: frontmatter and tag management inputs
"""

from .base import BaseNoteInput, normalize_vault_path
from .note_models import (
    ListNotesInput,
    ReadNoteInput,
    UpdateNoteInput,
    DeleteNoteInput,
)
from .search_models import (
    GlobalSearchInput,
    ReplacementBlock,
    SearchReplaceInput,
)
from .frontmatter_models import (
    ManageFrontmatterInput,
    ManageTagsInput,
)

__all__ = [
    "BaseNoteInput",
    "normalize_vault_path",
    "ListNotesInput",
    "ReadNoteInput",
    "UpdateNoteInput",
    "DeleteNoteInput",
    "GlobalSearchInput",
    "ReplacementBlock",
    "SearchReplaceInput",
    "ManageFrontmatterInput",
    "ManageTagsInput",
]
