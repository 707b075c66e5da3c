"""FastMCP server initialization, service lifespan and tool registration."""

import asyncio
import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from mcp.server.fastmcp import FastMCP

from obsidian_rest.config import SERVER_CONFIGURATION
from obsidian_rest.errors import VaultError
from obsidian_rest.session import ServerServices, build_services, register_services

# Initialize logger (stdout belongs to the stdio transport)
logging.basicConfig(
    level=SERVER_CONFIGURATION.log_level,
    stream=sys.stderr,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


async def _initial_cache_build(services: ServerServices) -> None:
    try:
        await services.cache.initialize()
    except VaultError as exc:
        logger.error(
            "Initial vault cache build failed; search fallback unavailable until the next "
            "refresh: %s",
            exc,
        )
    except Exception:
        logger.exception(
            "Initial vault cache build crashed; search fallback unavailable until the next refresh"
        )


@asynccontextmanager
async def lifespan(server: FastMCP) -> AsyncIterator[ServerServices]:
    """Create shared services on startup and release them on shutdown."""
    services = build_services(SERVER_CONFIGURATION)
    register_services(services)
    logger.info("Server configuration: %s", services.configuration.as_payload())

    try:
        status = await services.client.check_status()
        logger.info("Connected to Obsidian REST API: %s", status.get("service", status))
    except VaultError as exc:
        logger.warning("Obsidian REST API status check failed: %s", exc)

    build_task = None
    if services.cache is not None:
        build_task = asyncio.create_task(_initial_cache_build(services), name="vault-cache-initial")
        services.cache.start_periodic_refresh()
    else:
        logger.info("Vault cache disabled; global search has no fallback")

    try:
        yield services
    finally:
        if build_task is not None and not build_task.done():
            build_task.cancel()
        if services.cache is not None:
            await services.cache.dispose()
        aclose = getattr(services.client, "aclose", None)
        if aclose is not None:
            await aclose()
        register_services(None)
        logger.info("Obsidian MCP server shut down")


# Initialize FastMCP server
mcp = FastMCP("obsidian_rest", lifespan=lifespan)

# Tool modules are imported in __init__.py to register all @mcp.tool() decorators


def run_server():
    """Start the MCP server with stdio transport."""
    logger.info("Starting Obsidian REST MCP Server")
    mcp.run(transport="stdio")


if __name__ == "__main__":
    run_server()
