"""MCP scraping tools and business logic.

This module provides the scraping functionality exposed as MCP tools:
- scrape: Single-URL retrieval with backend fallback, caching and pagination
- strategy_config_list: Learned URL prefix -> backend mappings
- cache_stats, cache_versions, cache_read, cache_clear_all: Optional cache tools
- webfetch://cache/... resources: Cached content by URL and version

The tools module follows a router -> service pattern:
- router.py: MCP tool definitions and registration
- service.py: Request validation, rendering and pagination around the orchestrator
"""

from webfetch_mcp.tools.router import (
    cache_clear_all,
    cache_read,
    cache_stats,
    cache_versions,
    register_cache_resources,
    register_cache_tools,
    register_scraping_tools,
    scrape,
    strategy_config_list,
)
from webfetch_mcp.tools.service import (
    list_cached_versions,
    list_strategy_config,
    read_cached_page,
    read_cached_resource,
    scrape_page,
)

__all__ = [
    # MCP tool functions
    "scrape",
    "strategy_config_list",
    "cache_stats",
    "cache_versions",
    "cache_read",
    "cache_clear_all",
    # Registration functions
    "register_scraping_tools",
    "register_cache_tools",
    "register_cache_resources",
    # Service functions
    "scrape_page",
    "list_strategy_config",
    "list_cached_versions",
    "read_cached_page",
    "read_cached_resource",
]
