"""Core infrastructure and shared instances.

This module provides the single source of truth for the objects built once
at startup and shared by the tool and admin layers:
- The backend lookup table (one adapter slot per strategy)
- The strategy config store
- The retrieval orchestrator
"""

from webfetch_mcp.core.providers import (
    build_backends,
    build_strategy_config_store,
    get_backends,
    get_orchestrator,
    get_strategy_config_store,
)

__all__ = [
    "build_backends",
    "build_strategy_config_store",
    "get_backends",
    "get_orchestrator",
    "get_strategy_config_store",
]
