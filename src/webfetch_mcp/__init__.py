"""Web fetch MCP server with adaptive multi-backend retrieval."""

__version__ = "0.1.0"
