"""Shared service handles for tool invocations."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from mcp.server.fastmcp import Context

from obsidian_rest.core.global_search import GlobalSearchEngine
from obsidian_rest.data_models import ServerConfiguration
from obsidian_rest.errors import ErrorKind, VaultError
from obsidian_rest.services.rest_client import ObsidianRestClient, VaultClient
from obsidian_rest.services.vault_cache import VaultCacheStore


@dataclass
class ServerServices:
    """Services owned by the server lifespan and shared by every tool call.

    ``cache`` is ``None`` when caching is disabled by configuration.
    """

    configuration: ServerConfiguration
    client: VaultClient
    cache: Optional[VaultCacheStore]
    search_engine: GlobalSearchEngine


# Services registered by the running lifespan, used when no context is supplied
_ACTIVE_SERVICES: Optional[ServerServices] = None


def build_services(
    configuration: ServerConfiguration,
    client: Optional[VaultClient] = None,
) -> ServerServices:
    """Construct the client, cache store and search engine for ``configuration``.

    Raises:
        VaultError: ``CONFIGURATION_ERROR`` when the API key is missing.
    """
    client = client if client is not None else ObsidianRestClient(configuration)
    cache = (
        VaultCacheStore(client, configuration.cache_refresh_interval_seconds)
        if configuration.enable_cache
        else None
    )
    engine = GlobalSearchEngine(client, cache, configuration.api_search_timeout_seconds)
    return ServerServices(
        configuration=configuration,
        client=client,
        cache=cache,
        search_engine=engine,
    )


def register_services(services: Optional[ServerServices]) -> None:
    global _ACTIVE_SERVICES
    _ACTIVE_SERVICES = services


def resolve_services(ctx: Optional[Context] = None) -> ServerServices:
    """Return the services for a tool call.

    Args:
        ctx: FastMCP request context. Its lifespan context holds the services
            created at startup.

    Returns:
        The :class:`ServerServices` for this server process.

    Raises:
        VaultError: ``SERVICE_UNAVAILABLE`` if called before the server started.
    """
    if ctx is not None:
        lifespan_context = ctx.request_context.lifespan_context
        if isinstance(lifespan_context, ServerServices):
            return lifespan_context

    if _ACTIVE_SERVICES is not None:
        return _ACTIVE_SERVICES

    raise VaultError(
        ErrorKind.SERVICE_UNAVAILABLE,
        "Server services are not initialized. Is the MCP server running?",
    )
