"""Scraper providers for the different scraping backends."""

from webfetch_mcp.providers.base import Backends, BackendResult, ScraperProvider
from webfetch_mcp.providers.managed_provider import ManagedProvider
from webfetch_mcp.providers.native_provider import NativeProvider
from webfetch_mcp.providers.proxy_provider import ProxyProvider

__all__ = [
    "Backends",
    "BackendResult",
    "ScraperProvider",
    "ManagedProvider",
    "NativeProvider",
    "ProxyProvider",
]
