"""Core operations behind the MCP tools."""
