"""Error taxonomy shared by the REST client, cache store and tools."""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    """Closed set of failure classes used for retry and fallback decisions."""

    NOT_FOUND = "not_found"
    TIMEOUT = "timeout"
    SERVICE_UNAVAILABLE = "service_unavailable"
    VALIDATION_ERROR = "validation_error"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    CONFLICT = "conflict"
    CONFIGURATION_ERROR = "configuration_error"
    INTERNAL_ERROR = "internal_error"


class VaultError(Exception):
    """Classified failure raised by vault operations.

    Args:
        kind: The :class:`ErrorKind` classifying the failure.
        message: Human-readable message (no stack traces).
        details: Optional structured context such as the operation name and
            target path. Retry helpers add attempt metadata here.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.details: dict[str, Any] = dict(details or {})

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return f"VaultError(kind={self.kind.value!r}, message={self.message!r})"


def is_kind(error: BaseException, *kinds: ErrorKind) -> bool:
    """Return True when ``error`` is a :class:`VaultError` of one of ``kinds``."""
    return isinstance(error, VaultError) and error.kind in kinds
