"""Backend, config store and orchestrator initialization for the server."""

from __future__ import annotations

import logging

from webfetch_mcp.cache_manager import get_resource_cache
from webfetch_mcp.config import STRATEGY_CONFIG_FILENAME, Settings, get_settings, resolve_data_dir
from webfetch_mcp.providers import Backends, ManagedProvider, NativeProvider, ProxyProvider
from webfetch_mcp.strategies.config_store import FilesystemStrategyConfigStore, StrategyConfigStore
from webfetch_mcp.strategies.orchestrator import RetrievalOrchestrator

# Configure logging
logger = logging.getLogger(__name__)


def build_backends(settings: Settings) -> Backends:
    """Build the backend lookup table from settings.

    The native backend is always available; the managed and proxy backends
    are configured only when their API keys are set.

    Args:
        settings: Server settings

    Returns:
        Backends with unconfigured slots left as None
    """
    managed = None
    if settings.firecrawl_api_key:
        managed = ManagedProvider(
            api_key=settings.firecrawl_api_key,
            api_url=settings.firecrawl_api_url,
        )

    proxy = None
    if settings.scrapeops_api_key:
        proxy = ProxyProvider(
            api_key=settings.scrapeops_api_key,
            render_js=settings.scrapeops_render_js,
            country=settings.scrapeops_country,
        )

    backends = Backends(
        native=NativeProvider(timeout_ms=settings.default_timeout_ms),
        managed=managed,
        proxy=proxy,
    )
    logger.info(
        f"Scraping backends available: {', '.join(s.value for s in backends.available())} "
        f"(fallback mode: {settings.fallback_mode.value})"
    )
    return backends


def build_strategy_config_store(settings: Settings) -> StrategyConfigStore:
    """Create the filesystem strategy config store at the configured path."""
    path = settings.strategy_config_path
    if path is None:
        path = resolve_data_dir(settings.data_dir) / STRATEGY_CONFIG_FILENAME
    return FilesystemStrategyConfigStore(path)


# Global instances, built once on first use
_backends: Backends | None = None
_config_store: StrategyConfigStore | None = None
_orchestrator: RetrievalOrchestrator | None = None


def get_backends() -> Backends:
    """Get or build the global backend lookup table."""
    global _backends

    if _backends is None:
        _backends = build_backends(get_settings())

    return _backends


def get_strategy_config_store() -> StrategyConfigStore:
    """Get or create the global strategy config store."""
    global _config_store

    if _config_store is None:
        _config_store = build_strategy_config_store(get_settings())

    return _config_store


def get_orchestrator() -> RetrievalOrchestrator:
    """Get or create the global retrieval orchestrator."""
    global _orchestrator

    if _orchestrator is None:
        _orchestrator = RetrievalOrchestrator(
            backends=get_backends(),
            config_store=get_strategy_config_store(),
            cache=get_resource_cache(),
            config=get_settings().orchestrator_config,
        )

    return _orchestrator
