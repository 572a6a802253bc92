"""MCP server for resilient web retrieval."""

from __future__ import annotations

from mcp.server.fastmcp import FastMCP

from webfetch_mcp.admin import (
    api_cache_clear,
    api_config_get,
    api_stats,
    api_strategies,
    health_check,
)
from webfetch_mcp.config import get_settings
from webfetch_mcp.tools import (
    register_cache_resources,
    register_cache_tools,
    register_scraping_tools,
)

# Create MCP server with stateless mode enabled
# Stateless mode auto-creates sessions for unknown session IDs
mcp = FastMCP(
    "Web Fetch MCP",
    instructions=(
        "A web retrieval MCP server that fetches pages through several scraping "
        "backends, falling back from one to the next until one succeeds. "
        "Remembers which backend works for each kind of URL, caches retrieved "
        "content, and returns markdown, HTML or text in paginated chunks."
    ),
    stateless_http=True,  # Accept requests without requiring initialize handshake
)

register_scraping_tools(mcp)
register_cache_resources(mcp)

# Set ENABLE_CACHE_TOOLS=true to expose cache_stats, cache_versions, cache_read and cache_clear_all
if get_settings().enable_cache_tools:
    register_cache_tools(mcp)

mcp.custom_route("/healthz", methods=["GET"])(health_check)
mcp.custom_route("/api/stats", methods=["GET"])(api_stats)
mcp.custom_route("/api/cache/clear", methods=["POST"])(api_cache_clear)
mcp.custom_route("/api/config", methods=["GET"])(api_config_get)
mcp.custom_route("/api/strategies", methods=["GET"])(api_strategies)


def run_server(transport: str = "streamable-http", host: str = "0.0.0.0", port: int = 8000) -> None:
    """Run the MCP server.

    Args:
        transport: Transport type ('streamable-http', 'sse' or 'stdio')
        host: Host to bind to (default: 0.0.0.0)
        port: Port to bind to (default: 8000)
    """
    # Configure host and port via settings
    mcp.settings.host = host
    mcp.settings.port = port

    # Run server with specified transport
    mcp.run(transport=transport)


if __name__ == "__main__":
    run_server()
