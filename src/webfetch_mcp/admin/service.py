"""Admin service layer for stats, config and cache management."""

from __future__ import annotations

import logging
from typing import Any

from webfetch_mcp.cache_manager import get_resource_cache
from webfetch_mcp.config import get_settings
from webfetch_mcp.core.providers import get_backends, get_strategy_config_store
from webfetch_mcp.metrics import get_metrics

# Configure logging
logger = logging.getLogger(__name__)


def get_stats() -> dict[str, Any]:
    """Get server statistics and metrics.

    Returns:
        Dictionary with server stats including cache, strategy and request metrics
    """
    stats = get_metrics().to_dict()

    try:
        stats["cache"] = get_resource_cache().get_stats()
    except Exception as e:
        logger.error(f"Cache stats unavailable: {e}")
        stats["cache"] = {"error": "Cache stats unavailable"}

    try:
        stats["strategy_config_entries"] = len(get_strategy_config_store().load_config())
    except Exception as e:
        logger.warning(f"Strategy config unavailable: {e}")
        stats["strategy_config_entries"] = None

    return stats


def get_current_config() -> dict[str, Any]:
    """Get the configuration the server was started with.

    Returns:
        Dictionary with settings (secrets omitted) and available backends
    """
    return {
        "config": get_settings().to_public_dict(),
        "backends_available": [s.value for s in get_backends().available()],
        "note": "Configuration is read from the environment at startup",
    }


def get_strategy_entries() -> list[dict[str, str]]:
    """Get the strategy config entries as JSON-serializable dictionaries."""
    return [
        {
            "prefix": entry.prefix,
            "strategy": entry.strategy.value,
            "notes": entry.notes,
            "created_at": entry.created_at.isoformat(),
        }
        for entry in get_strategy_config_store().load_config()
    ]


def clear_cache() -> dict[str, Any]:
    """Clear all resource cache entries.

    Returns:
        Dictionary with status and message
    """
    removed = get_resource_cache().clear()
    return {
        "status": "success",
        "message": f"Cache cleared successfully ({removed} URLs removed)",
    }
