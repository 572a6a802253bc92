"""Core data types for retrieval, strategy learning and caching."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from webfetch_mcp.errors import UnknownStrategyError


class StrategyName(str, Enum):
    """A scraping backend."""

    NATIVE = "native"
    MANAGED = "managed"
    PROXY = "proxy"

    @property
    def label(self) -> str:
        """Human-readable backend name used in error messages."""
        return self.value.capitalize()

    @classmethod
    def parse(cls, value: StrategyName | str) -> StrategyName:
        """Convert a strategy name to a StrategyName.

        Args:
            value: Strategy name (case-insensitive) or StrategyName

        Returns:
            The matching StrategyName

        Raises:
            UnknownStrategyError: If the name is not a known strategy
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise UnknownStrategyError(str(value)) from None


class FallbackMode(str, Enum):
    """Ordering of the universal fallback sequence."""

    COST = "cost"
    SPEED = "speed"


class OutputFormat(str, Enum):
    """Output format requested by the caller."""

    MARKDOWN = "markdown"
    HTML = "html"
    TEXT = "text"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class RetrievalRequest:
    """A request to retrieve the content of a single URL."""

    url: str
    format: OutputFormat = OutputFormat.MARKDOWN
    timeout_ms: int | None = None
    explicit_strategy: StrategyName | str | None = None
    force_refresh: bool = False


@dataclass
class Diagnostics:
    """Per-request record of which backends were tried and how they fared."""

    strategies_attempted: list[StrategyName] = field(default_factory=list)
    strategy_errors: dict[StrategyName, str] = field(default_factory=dict)
    timing: dict[StrategyName, float] = field(default_factory=dict)

    def describe_errors(self) -> str:
        return "; ".join(
            f"{strategy.value}: {error}" for strategy, error in self.strategy_errors.items()
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "strategies_attempted": [s.value for s in self.strategies_attempted],
            "strategy_errors": {s.value: e for s, e in self.strategy_errors.items()},
            "timing_ms": {s.value: t for s, t in self.timing.items()},
        }


@dataclass
class RetrievalResult:
    """Outcome of a retrieval.

    ``content`` is ``None`` exactly when ``success`` is false. ``source`` is the
    strategy that produced the content, ``"none"`` when every attempted
    backend failed, or the rejected name for an unknown strategy.
    """

    success: bool
    content: str | None
    source: str
    error: str | None = None
    diagnostics: Diagnostics = field(default_factory=Diagnostics)
    from_cache: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class StrategyConfigEntry:
    """A learned or configured mapping from a URL prefix to a strategy."""

    prefix: str
    strategy: StrategyName
    notes: str = ""
    created_at: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class CachedResource:
    """One immutable version of previously retrieved content for a URL."""

    url: str
    content: str
    mime_type: str
    strategy_used: StrategyName
    scraped_at: datetime
    sequence: int


@dataclass(frozen=True)
class ContentPage:
    """A window of a larger piece of content."""

    text: str
    start_index: int
    total_chars: int
    next_index: int | None

    @property
    def truncated(self) -> bool:
        return self.next_index is not None
