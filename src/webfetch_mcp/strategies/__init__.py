"""Strategy resolution, learning and fallback orchestration.

- patterns.py: derives reusable URL prefixes from concrete URLs
- config_store.py: persisted prefix -> strategy mapping with longest-prefix lookup
- orchestrator.py: strategy resolution, sequential fallback, learning and caching
"""

from webfetch_mcp.strategies.config_store import (
    FilesystemStrategyConfigStore,
    MemoryStrategyConfigStore,
    StrategyConfigStore,
)
from webfetch_mcp.strategies.orchestrator import (
    RetrievalOrchestrator,
    fallback_sequence,
    first_success,
    scrape_universal,
    scrape_with_single_strategy,
    scrape_with_strategy,
)
from webfetch_mcp.strategies.patterns import derive_prefix, strip_scheme

__all__ = [
    "FilesystemStrategyConfigStore",
    "MemoryStrategyConfigStore",
    "StrategyConfigStore",
    "RetrievalOrchestrator",
    "fallback_sequence",
    "first_success",
    "scrape_universal",
    "scrape_with_single_strategy",
    "scrape_with_strategy",
    "derive_prefix",
    "strip_scheme",
]
