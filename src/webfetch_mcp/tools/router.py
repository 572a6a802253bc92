"""MCP tool definitions for web scraping."""

from __future__ import annotations

from typing import Any

from mcp.server.fastmcp import FastMCP

from webfetch_mcp.cache_manager import get_resource_cache
from webfetch_mcp.models.scrape import CachedVersionItem, ScrapeResponse, StrategyConfigItem
from webfetch_mcp.tools.service import (
    DEFAULT_MAX_CHARS,
    list_cached_versions,
    list_strategy_config,
    read_cached_page,
    read_cached_resource,
    scrape_page,
)

CACHE_LATEST_URI = "webfetch://cache/latest/{url}"
CACHE_VERSION_URI = "webfetch://cache/{sequence}/{url}"


async def scrape(
    url: str,
    format: str = "markdown",
    timeout: int | None = None,
    strategy: str | None = None,
    force_refresh: bool = False,
    max_chars: int = DEFAULT_MAX_CHARS,
    start_index: int = 0,
    css_selector: str | None = None,
) -> ScrapeResponse:
    """Scrape a single webpage, falling back across scraping backends.

    Backends are tried one at a time: native fetch first, then a managed
    scraping service, then a residential proxy service (speed mode skips
    native). The backend that works for a kind of URL is remembered, and
    retrieved content is cached so repeat requests avoid re-fetching.

    Args:
        url: The URL to scrape (must be http:// or https://)
        format: Output format: markdown, html or text (default: markdown)
        timeout: Per-backend timeout in milliseconds (default: server setting)
        strategy: Force a backend to try first: native, managed or proxy
        force_refresh: Ignore cached content and fetch again (default: False)
        max_chars: Maximum characters to return (default: 100000)
        start_index: Character index to start from, for reading long pages in parts
        css_selector: Optional CSS selector to keep only matching elements
                     (e.g., "article", "main .content")

    Returns:
        ScrapeResponse with the content page, its source backend and diagnostics
    """
    return await scrape_page(
        url,
        output_format=format,
        timeout=timeout,
        strategy=strategy,
        force_refresh=force_refresh,
        max_chars=max_chars,
        start_index=start_index,
        css_selector=css_selector,
    )


async def strategy_config_list() -> list[StrategyConfigItem]:
    """List the URL prefixes with a known working scraping backend.

    Returns:
        Entries ordered longest prefix first
    """
    return list_strategy_config()


async def cache_stats() -> dict[str, Any]:
    """Get resource cache statistics.

    Returns:
        Dictionary with cache statistics including size, URL count and hit rate
    """
    return get_resource_cache().get_stats()


async def cache_versions(url: str) -> list[CachedVersionItem]:
    """List the cached versions of a URL.

    Args:
        url: The exact URL that was scraped

    Returns:
        Cached versions, newest first
    """
    return list_cached_versions(url)


async def cache_read(
    url: str,
    start_index: int = 0,
    max_chars: int = DEFAULT_MAX_CHARS,
    sequence: int | None = None,
) -> dict[str, object]:
    """Read raw cached content for a URL without fetching it.

    Args:
        url: The exact URL that was scraped
        start_index: Character index to start from (default: 0)
        max_chars: Maximum characters to return (default: 100000)
        sequence: Cached version to read (default: newest)

    Returns:
        Dictionary with the content page, or status not_found
    """
    return read_cached_page(url, start_index, max_chars, sequence)


async def cache_clear_all() -> dict[str, Any]:
    """Clear all entries from the resource cache.

    WARNING: This will remove all cached content.

    Returns:
        Dictionary with operation status
    """
    removed = get_resource_cache().clear()
    return {
        "status": "success",
        "urls_removed": removed,
    }


def register_scraping_tools(mcp: FastMCP) -> None:
    """Register core scraping tools on the MCP server.

    Args:
        mcp: FastMCP server instance to register tools on
    """
    mcp.tool()(scrape)
    mcp.tool()(strategy_config_list)


def register_cache_tools(mcp: FastMCP) -> None:
    """Register optional cache management tools on the MCP server.

    Args:
        mcp: FastMCP server instance to register tools on
    """
    mcp.tool()(cache_stats)
    mcp.tool()(cache_versions)
    mcp.tool()(cache_read)
    mcp.tool()(cache_clear_all)


def cached_resource_latest(url: str) -> str:
    """Newest cached content for a percent-encoded URL."""
    return read_cached_resource(url)


def cached_resource_version(sequence: str, url: str) -> str:
    """A specific cached version of a percent-encoded URL."""
    return read_cached_resource(url, sequence)


def register_cache_resources(mcp: FastMCP) -> None:
    """Expose cached content as MCP resources.

    The URL part of each resource URI must be percent-encoded, for example
    ``webfetch://cache/2/https%3A%2F%2Fexample.com%2F``.

    Args:
        mcp: FastMCP server instance to register resources on
    """
    # latest first so it wins over the sequence template
    mcp.resource(CACHE_LATEST_URI, name="cached_page_latest")(cached_resource_latest)
    mcp.resource(CACHE_VERSION_URI, name="cached_page_version")(cached_resource_version)
