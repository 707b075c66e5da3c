"""Obsidian REST MCP Server

Obsidian vault access over the Local REST API via Model Context Protocol,
with an in-memory vault cache backing global search.
"""

from obsidian_rest.config import SERVER_CONFIGURATION
from obsidian_rest.data_models import ServerConfiguration, CacheEntry, NoteJson
from obsidian_rest.errors import ErrorKind, VaultError
from obsidian_rest.session import ServerServices, build_services, resolve_services
from obsidian_rest.server import mcp, run_server

# Import tools to register them with the MCP server
from obsidian_rest import tools  # noqa: F401

__version__ = "2.0.0"
__all__ = [
    "SERVER_CONFIGURATION",
    "ServerConfiguration",
    "CacheEntry",
    "NoteJson",
    "ErrorKind",
    "VaultError",
    "ServerServices",
    "build_services",
    "resolve_services",
    "mcp",
    "run_server",
]
