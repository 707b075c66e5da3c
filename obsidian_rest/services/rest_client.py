"""Async client for the Obsidian Local REST API.

Every remote failure is classified into a :class:`VaultError` so that retry and
fallback decisions can match on :class:`ErrorKind` rather than on HTTP details.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol, runtime_checkable
from urllib.parse import quote

import httpx

from obsidian_rest.constants import (
    MARKDOWN_MEDIA_TYPE,
    NOTE_JSON_MEDIA_TYPE,
    REQUEST_TIMEOUT_SECONDS,
)
from obsidian_rest.data_models import NoteJson, ServerConfiguration, SimpleSearchResult
from obsidian_rest.errors import ErrorKind, VaultError

logger = logging.getLogger(__name__)


@runtime_checkable
class VaultClient(Protocol):
    """Remote vault operations consumed by the cache store, search engine and tools."""

    async def get_file_content(self, path: str) -> NoteJson: ...

    async def get_file_markdown(self, path: str) -> str: ...

    async def list_files(self, dir_path: str = "") -> list[str]: ...

    async def search_simple(
        self, query: str, context_length: int
    ) -> list[SimpleSearchResult]: ...

    async def update_file_content(self, path: str, content: str) -> None: ...

    async def append_file_content(self, path: str, content: str) -> None: ...

    async def delete_file(self, path: str) -> None: ...


# ==============================================================================
# HELPER FUNCTIONS
# ==============================================================================


def encode_vault_path(path: str) -> str:
    """Percent-encode each segment of a vault-relative path, keeping ``/`` separators."""
    trimmed = path.strip().strip("/")
    if not trimmed:
        return ""
    return "/".join(quote(segment, safe="") for segment in trimmed.split("/"))


_STATUS_KINDS = {
    400: ErrorKind.VALIDATION_ERROR,
    401: ErrorKind.UNAUTHORIZED,
    403: ErrorKind.FORBIDDEN,
    404: ErrorKind.NOT_FOUND,
    405: ErrorKind.VALIDATION_ERROR,
    503: ErrorKind.SERVICE_UNAVAILABLE,
}


def _remote_message(response: httpx.Response) -> str:
    """Extract the REST API's own error message when the body carries one."""
    try:
        payload = response.json()
    except ValueError:
        return response.text.strip()[:200] or response.reason_phrase
    if isinstance(payload, dict) and payload.get("message"):
        return str(payload["message"])
    return response.reason_phrase


def classify_response_error(
    response: httpx.Response, operation: str, context: dict[str, Any]
) -> VaultError:
    """Map a non-success response to a classified :class:`VaultError`."""
    kind = _STATUS_KINDS.get(response.status_code, ErrorKind.INTERNAL_ERROR)
    message = _remote_message(response)
    details = {"operation": operation, "status": response.status_code, **context}

    if kind is ErrorKind.NOT_FOUND:
        logger.debug("Remote resource not found during %s: %s", operation, context)
        return VaultError(kind, f"Resource not found during {operation}: {message}", details)

    logger.error(
        "Obsidian REST API returned %s during %s: %s",
        response.status_code,
        operation,
        message,
    )
    if kind is ErrorKind.UNAUTHORIZED:
        text = "Authentication failed. Check OBSIDIAN_API_KEY."
    elif kind is ErrorKind.FORBIDDEN:
        text = f"Access denied during {operation}."
    elif kind is ErrorKind.SERVICE_UNAVAILABLE:
        text = f"Obsidian REST API is unavailable ({operation}): {message}"
    elif kind is ErrorKind.VALIDATION_ERROR:
        text = f"Bad request during {operation}: {message}"
    else:
        text = f"Obsidian REST API error {response.status_code} during {operation}: {message}"
    return VaultError(kind, text, details)


def classify_transport_error(
    exc: httpx.HTTPError, operation: str, context: dict[str, Any]
) -> VaultError:
    """Map an exception raised before any response arrived."""
    details = {"operation": operation, **context}
    if isinstance(exc, httpx.TimeoutException):
        logger.error("Request timed out during %s: %s", operation, exc)
        return VaultError(
            ErrorKind.TIMEOUT, f"Request to Obsidian REST API timed out during {operation}", details
        )
    logger.error("No response from Obsidian REST API during %s: %s", operation, exc)
    return VaultError(
        ErrorKind.SERVICE_UNAVAILABLE,
        f"No response from Obsidian REST API during {operation}. Is Obsidian running with the "
        "Local REST API plugin enabled?",
        details,
    )


# ==============================================================================
# CLIENT
# ==============================================================================


class ObsidianRestClient:
    """``httpx.AsyncClient``-backed implementation of :class:`VaultClient`.

    Args:
        configuration: Server settings providing base URL, API key and TLS mode.
        transport: Optional httpx transport (tests pass ``httpx.MockTransport``).

    Raises:
        VaultError: ``CONFIGURATION_ERROR`` when no API key is configured.
    """

    def __init__(
        self,
        configuration: ServerConfiguration,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not configuration.api_key:
            raise VaultError(
                ErrorKind.CONFIGURATION_ERROR,
                "Obsidian API key is missing. Set OBSIDIAN_API_KEY or obsidian.api_key in config.yaml.",
            )
        self.base_url = configuration.base_url
        self._client = httpx.AsyncClient(
            base_url=configuration.base_url,
            headers={"Authorization": f"Bearer {configuration.api_key}"},
            verify=configuration.verify_ssl,
            timeout=httpx.Timeout(REQUEST_TIMEOUT_SECONDS),
            transport=transport,
        )
        logger.info("Obsidian REST client configured for %s", configuration.base_url)

    async def _request(
        self,
        method: str,
        url: str,
        operation: str,
        context: Optional[dict[str, Any]] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        context = context or {}
        logger.debug("%s %s (%s)", method, url, operation)
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise classify_transport_error(exc, operation, context) from exc
        if response.is_error:
            raise classify_response_error(response, operation, context)
        return response

    async def check_status(self) -> dict[str, Any]:
        """Return the server status document (``GET /``)."""
        response = await self._request("GET", "/", "check_status")
        return response.json()

    async def get_file_content(self, path: str) -> NoteJson:
        response = await self._request(
            "GET",
            f"/vault/{encode_vault_path(path)}",
            "get_file_content",
            {"path": path},
            headers={"Accept": NOTE_JSON_MEDIA_TYPE},
        )
        return NoteJson.from_payload(response.json(), fallback_path=path)

    async def get_file_markdown(self, path: str) -> str:
        response = await self._request(
            "GET",
            f"/vault/{encode_vault_path(path)}",
            "get_file_markdown",
            {"path": path},
            headers={"Accept": MARKDOWN_MEDIA_TYPE},
        )
        return response.text

    async def list_files(self, dir_path: str = "") -> list[str]:
        """List one directory. Subdirectory names end with ``/``."""
        encoded = encode_vault_path(dir_path)
        url = f"/vault/{encoded}/" if encoded else "/vault/"
        response = await self._request("GET", url, "list_files", {"path": dir_path or "/"})
        payload = response.json()
        return list(payload.get("files") or [])

    async def search_simple(self, query: str, context_length: int) -> list[SimpleSearchResult]:
        response = await self._request(
            "POST",
            "/search/simple/",
            "search_simple",
            {"context_length": context_length},
            params={"query": query, "contextLength": context_length},
        )
        return [SimpleSearchResult.from_payload(item) for item in response.json() or []]

    async def update_file_content(self, path: str, content: str) -> None:
        await self._request(
            "PUT",
            f"/vault/{encode_vault_path(path)}",
            "update_file_content",
            {"path": path},
            content=content.encode("utf-8"),
            headers={"Content-Type": MARKDOWN_MEDIA_TYPE},
        )

    async def append_file_content(self, path: str, content: str) -> None:
        await self._request(
            "POST",
            f"/vault/{encode_vault_path(path)}",
            "append_file_content",
            {"path": path},
            content=content.encode("utf-8"),
            headers={"Content-Type": MARKDOWN_MEDIA_TYPE},
        )

    async def delete_file(self, path: str) -> None:
        await self._request(
            "DELETE",
            f"/vault/{encode_vault_path(path)}",
            "delete_file",
            {"path": path},
        )

    async def aclose(self) -> None:
        await self._client.aclose()
