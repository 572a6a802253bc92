"""Base provider interface for scraping backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from webfetch_mcp.models.retrieval import StrategyName

TIMEOUT_MESSAGE = (
    "Request timed out. The server did not respond within the timeout period. "
    "Consider increasing the timeout parameter if this URL typically takes longer to load."
)


@dataclass
class BackendResult:
    """Result from a single backend attempt.

    ``content`` is backend specific: a string for the native and proxy
    backends, a ``{"markdown": ..., "html": ...}`` dict for the managed one.
    """

    success: bool
    content: Any = None
    error: str | None = None
    status_code: int | None = None
    content_type: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class ScraperProvider(ABC):
    """Abstract base class for scraper providers.

    Implementations report ordinary failures (timeouts, connection errors,
    non-2xx responses, blocked pages) as ``BackendResult(success=False)``
    instead of raising.
    """

    strategy: StrategyName

    @abstractmethod
    async def scrape(self, url: str, **kwargs: Any) -> BackendResult:
        """Scrape content from a URL.

        Args:
            url: The URL to scrape
            **kwargs: Additional options
                - timeout_ms: Request timeout in milliseconds
                - format: Requested output format

        Returns:
            BackendResult describing the attempt
        """
        pass


@dataclass(frozen=True)
class Backends:
    """Fixed lookup table of backend adapters, one slot per strategy.

    A slot holding ``None`` means the backend is not configured.
    """

    native: ScraperProvider | None = None
    managed: ScraperProvider | None = None
    proxy: ScraperProvider | None = None

    def get(self, strategy: StrategyName) -> ScraperProvider | None:
        return getattr(self, strategy.value)

    def available(self) -> list[StrategyName]:
        return [s for s in StrategyName if self.get(s) is not None]
