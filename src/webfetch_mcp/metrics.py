"""Metrics tracking for the web fetch server."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from webfetch_mcp.models.retrieval import Diagnostics, StrategyName


@dataclass
class RetrievalMetrics:
    """Metrics for a single retrieval."""

    url: str
    timestamp: datetime
    success: bool
    source: str
    strategies_attempted: list[str] = field(default_factory=list)
    elapsed_ms: float | None = None
    from_cache: bool = False
    error: str | None = None


@dataclass
class StrategyCounters:
    """Attempt counters for one backend."""

    attempts: int = 0
    successes: int = 0
    failures: int = 0
    total_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "attempts": self.attempts,
            "successes": self.successes,
            "failures": self.failures,
            "average_ms": round(self.total_ms / self.attempts, 2) if self.attempts else 0.0,
        }


@dataclass
class ServerMetrics:
    """Global server metrics."""

    start_time: datetime = field(default_factory=datetime.now)
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    cache_hits: int = 0
    strategies: dict[StrategyName, StrategyCounters] = field(
        default_factory=lambda: {s: StrategyCounters() for s in StrategyName}
    )
    recent_requests: deque[RetrievalMetrics] = field(default_factory=lambda: deque(maxlen=50))
    recent_errors: deque[RetrievalMetrics] = field(default_factory=lambda: deque(maxlen=20))

    def record_retrieval(
        self,
        url: str,
        success: bool,
        source: str,
        diagnostics: Diagnostics | None = None,
        elapsed_ms: float | None = None,
        from_cache: bool = False,
        error: str | None = None,
    ) -> None:
        """Record a retrieval in the metrics.

        Args:
            url: The URL that was requested
            success: Whether content was retrieved
            source: Strategy that produced the content, or "none"
            diagnostics: Per-backend attempt record, if any backend was tried
            elapsed_ms: Total time taken in milliseconds
            from_cache: Whether the content was served from the cache
            error: Error message if failed
        """
        self.total_requests += 1

        if success:
            self.successful_requests += 1
        else:
            self.failed_requests += 1

        if from_cache:
            self.cache_hits += 1

        attempted: list[str] = []
        if diagnostics is not None:
            for strategy in diagnostics.strategies_attempted:
                counters = self.strategies[strategy]
                counters.attempts += 1
                counters.total_ms += diagnostics.timing.get(strategy, 0.0)
                if strategy in diagnostics.strategy_errors:
                    counters.failures += 1
                else:
                    counters.successes += 1
                attempted.append(strategy.value)

        metrics = RetrievalMetrics(
            url=url,
            timestamp=datetime.now(),
            success=success,
            source=source,
            strategies_attempted=attempted,
            elapsed_ms=elapsed_ms,
            from_cache=from_cache,
            error=error,
        )

        self.recent_requests.append(metrics)

        if not success:
            self.recent_errors.append(metrics)

    def get_uptime_seconds(self) -> float:
        """Get server uptime in seconds."""
        return (datetime.now() - self.start_time).total_seconds()

    def get_success_rate(self) -> float:
        """Get success rate as percentage."""
        if self.total_requests == 0:
            return 0.0
        return (self.successful_requests / self.total_requests) * 100

    def to_dict(self) -> dict[str, Any]:
        """Convert metrics to dictionary for JSON serialization."""
        uptime_seconds = self.get_uptime_seconds()

        return {
            "status": "healthy",
            "uptime": {
                "seconds": uptime_seconds,
                "formatted": self._format_uptime(uptime_seconds),
            },
            "start_time": self.start_time.isoformat(),
            "requests": {
                "total": self.total_requests,
                "successful": self.successful_requests,
                "failed": self.failed_requests,
                "cache_hits": self.cache_hits,
                "success_rate": round(self.get_success_rate(), 2),
            },
            "strategies": {s.value: c.to_dict() for s, c in self.strategies.items()},
            "recent_requests": [
                {
                    "url": r.url,
                    "timestamp": r.timestamp.isoformat(),
                    "success": r.success,
                    "source": r.source,
                    "strategies_attempted": r.strategies_attempted,
                    "elapsed_ms": r.elapsed_ms,
                    "from_cache": r.from_cache,
                    "error": r.error,
                }
                for r in list(self.recent_requests)[-10:][::-1]  # Last 10 requests, newest first
            ],
            "recent_errors": [
                {
                    "url": r.url,
                    "timestamp": r.timestamp.isoformat(),
                    "strategies_attempted": r.strategies_attempted,
                    "error": r.error,
                }
                for r in list(self.recent_errors)[-10:][::-1]  # Last 10 errors, newest first
            ],
        }

    @staticmethod
    def _format_uptime(seconds: float) -> str:
        """Format uptime in human-readable format."""
        if seconds < 60:
            return f"{int(seconds)}s"
        elif seconds < 3600:
            minutes = int(seconds / 60)
            secs = int(seconds % 60)
            return f"{minutes}m {secs}s"
        elif seconds < 86400:
            hours = int(seconds / 3600)
            minutes = int((seconds % 3600) / 60)
            return f"{hours}h {minutes}m"
        else:
            days = int(seconds / 86400)
            hours = int((seconds % 86400) / 3600)
            return f"{days}d {hours}h"


# Global metrics instance
_metrics = ServerMetrics()


def get_metrics() -> ServerMetrics:
    """Get the global metrics instance."""
    return _metrics


def record_retrieval(
    url: str,
    success: bool,
    source: str,
    diagnostics: Diagnostics | None = None,
    elapsed_ms: float | None = None,
    from_cache: bool = False,
    error: str | None = None,
) -> None:
    """Record a retrieval in the global metrics."""
    _metrics.record_retrieval(url, success, source, diagnostics, elapsed_ms, from_cache, error)
