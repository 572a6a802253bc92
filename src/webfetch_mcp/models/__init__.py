"""Data models for retrieval operations and tool responses.

This module defines the data structures used throughout the server:
- Retrieval types shared by the orchestrator, config store and cache
  (RetrievalRequest, RetrievalResult, Diagnostics, StrategyConfigEntry,
  CachedResource)
- Pydantic response models for the MCP tool interface (ScrapeResponse,
  StrategyConfigItem, CachedVersionItem)
"""

from webfetch_mcp.models.retrieval import (
    CachedResource,
    ContentPage,
    Diagnostics,
    FallbackMode,
    OutputFormat,
    RetrievalRequest,
    RetrievalResult,
    StrategyConfigEntry,
    StrategyName,
)
from webfetch_mcp.models.scrape import (
    CachedVersionItem,
    ScrapeResponse,
    StrategyConfigItem,
)

__all__ = [
    # Retrieval types
    "CachedResource",
    "ContentPage",
    "Diagnostics",
    "FallbackMode",
    "OutputFormat",
    "RetrievalRequest",
    "RetrievalResult",
    "StrategyConfigEntry",
    "StrategyName",
    # Response models
    "CachedVersionItem",
    "ScrapeResponse",
    "StrategyConfigItem",
]
