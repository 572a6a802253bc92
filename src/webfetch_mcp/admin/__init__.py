"""Admin API functionality for configuration and monitoring.

This module provides administrative endpoints for:
- Health checks and server status
- Read-only configuration inspection
- Learned strategy configuration
- Cache management operations
- Statistics and metrics gathering

The admin module follows a router -> service pattern:
- router.py: HTTP endpoint handlers
- service.py: Business logic for config, stats, strategies and cache operations
"""

from webfetch_mcp.admin.router import (
    api_cache_clear,
    api_config_get,
    api_stats,
    api_strategies,
    health_check,
)
from webfetch_mcp.admin.service import (
    clear_cache,
    get_current_config,
    get_stats,
    get_strategy_entries,
)

__all__ = [
    # Router functions
    "api_cache_clear",
    "api_config_get",
    "api_stats",
    "api_strategies",
    "health_check",
    # Service functions
    "clear_cache",
    "get_current_config",
    "get_stats",
    "get_strategy_entries",
]
