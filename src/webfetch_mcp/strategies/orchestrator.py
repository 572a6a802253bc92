"""Retrieval orchestration across scraping backends.

A retrieval moves through these states::

    CacheCheck -> StrategyResolution -> Attempt(strategy) -> Success | NextFallback
               -> Learn -> Done

``CacheCheck`` is skipped when the request forces a refresh. Strategy
resolution tries an explicit strategy, else a learned one, then the
universal fallback sequence for the configured mode. Backends are attempted
one at a time and the first success ends the sequence. A success reached
through the universal fallback is remembered under a derived URL prefix so
later requests for the same kind of page go straight to the working backend.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

from webfetch_mcp.cache_manager import ResourceCache
from webfetch_mcp.config import DEFAULT_TIMEOUT_MS, OrchestratorConfig
from webfetch_mcp.errors import UnknownStrategyError
from webfetch_mcp.models.retrieval import (
    Diagnostics,
    FallbackMode,
    RetrievalRequest,
    RetrievalResult,
    StrategyConfigEntry,
    StrategyName,
)
from webfetch_mcp.providers.base import BackendResult, Backends
from webfetch_mcp.strategies.config_store import StrategyConfigStore
from webfetch_mcp.strategies.patterns import derive_prefix
from webfetch_mcp.utils import validate_url

# Configure logging
logger = logging.getLogger(__name__)

ALL_STRATEGIES_FAILED = "All strategies failed"
UNIVERSAL_FALLBACK_NOTE = "Auto-discovered via universal fallback"

FALLBACK_SEQUENCES: dict[FallbackMode, tuple[StrategyName, ...]] = {
    FallbackMode.COST: (StrategyName.NATIVE, StrategyName.MANAGED, StrategyName.PROXY),
    # Native is assumed too slow or unreliable for speed-sensitive callers
    FallbackMode.SPEED: (StrategyName.MANAGED, StrategyName.PROXY),
}

Attempt = Callable[[StrategyName], Awaitable["str | None"]]


def fallback_sequence(
    mode: FallbackMode = FallbackMode.COST,
    exclude: Iterable[StrategyName] = (),
) -> list[StrategyName]:
    """Ordered candidate strategies for the universal fallback.

    Args:
        mode: Fallback ordering mode
        exclude: Strategies already tried in this request

    Returns:
        Strategies to attempt, in order
    """
    skipped = set(exclude)
    return [s for s in FALLBACK_SEQUENCES[mode] if s not in skipped]


async def first_success(
    candidates: Iterable[StrategyName],
    attempt: Attempt,
) -> tuple[StrategyName, str] | None:
    """Attempt candidates in order until one yields content.

    Args:
        candidates: Strategies in the order they should be tried
        attempt: Coroutine function returning content, or None on failure

    Returns:
        The winning strategy and its content, or None if every candidate failed
    """
    for strategy in candidates:
        content = await attempt(strategy)
        if content is not None:
            return strategy, content
    return None


def extract_content(strategy: StrategyName, result: BackendResult) -> str | None:
    """Normalize a backend's content to a single string.

    The managed backend returns both markdown and HTML; HTML is preferred so
    every output format can be rendered from what gets cached.
    """
    content: Any = result.content
    if strategy is StrategyName.MANAGED and isinstance(content, dict):
        content = content.get("html") or content.get("markdown")

    if isinstance(content, bytes):
        content = content.decode("utf-8", errors="replace")
    if not isinstance(content, str) or not content:
        return None
    return content


def _failure_reason(strategy: StrategyName, result: BackendResult) -> str:
    if result.error:
        return result.error
    if result.success:
        return f"{strategy.label} returned no content"
    if result.status_code:
        return f"HTTP {result.status_code}"
    return "Request failed without error details"


async def _attempt_strategy(
    backends: Backends,
    strategy: StrategyName,
    request: RetrievalRequest,
    diagnostics: Diagnostics,
    default_timeout_ms: int = DEFAULT_TIMEOUT_MS,
    metadata: dict[str, Any] | None = None,
) -> str | None:
    """Run one backend attempt, recording its outcome in diagnostics.

    Never raises for backend failures. Cancellation is not caught.
    """
    provider = backends.get(strategy)
    if provider is None:
        diagnostics.strategy_errors[strategy] = f"{strategy.label} client not available"
        return None

    timeout_ms = request.timeout_ms or default_timeout_ms
    diagnostics.strategies_attempted.append(strategy)
    start = time.perf_counter()

    try:
        result = await asyncio.wait_for(
            provider.scrape(request.url, timeout_ms=timeout_ms, format=request.format.value),
            timeout=timeout_ms / 1000,
        )
    except asyncio.TimeoutError:
        diagnostics.strategy_errors[strategy] = f"Request timed out after {timeout_ms}ms"
        return None
    except Exception as e:
        diagnostics.strategy_errors[strategy] = f"{type(e).__name__}: {e}"
        return None
    finally:
        diagnostics.timing[strategy] = round((time.perf_counter() - start) * 1000, 2)

    content = extract_content(strategy, result) if result.success else None
    if content is None:
        diagnostics.strategy_errors[strategy] = _failure_reason(strategy, result)
        logger.debug(f"{strategy.value} failed for {request.url}: {diagnostics.strategy_errors[strategy]}")
        return None

    if metadata is not None:
        metadata["content_type"] = result.content_type
        if result.status_code is not None:
            metadata["status_code"] = result.status_code
    return content


def _unknown_strategy(name: str) -> RetrievalResult:
    return RetrievalResult(
        success=False,
        content=None,
        source=name,
        error=f"Unknown strategy: {name}",
    )


async def scrape_with_single_strategy(
    backends: Backends,
    strategy: StrategyName | str,
    request: RetrievalRequest,
    *,
    default_timeout_ms: int = DEFAULT_TIMEOUT_MS,
    diagnostics: Diagnostics | None = None,
) -> RetrievalResult:
    """Try exactly one strategy, with no fallback.

    Args:
        backends: Backend lookup table
        strategy: Strategy to use
        request: Retrieval request
        default_timeout_ms: Attempt timeout when the request sets none
        diagnostics: Diagnostics to record into (default: fresh)

    Returns:
        RetrievalResult for the single attempt. An unknown strategy name yields
        an error result with ``source`` set to that name.

    Raises:
        InvalidUrlError: If the request URL is not an absolute http(s) URL
    """
    validate_url(request.url)
    try:
        name = StrategyName.parse(strategy)
    except UnknownStrategyError:
        return _unknown_strategy(str(strategy))

    diagnostics = diagnostics if diagnostics is not None else Diagnostics()
    metadata: dict[str, Any] = {}
    content = await _attempt_strategy(
        backends, name, request, diagnostics, default_timeout_ms, metadata
    )

    if content is not None:
        return RetrievalResult(
            success=True,
            content=content,
            source=name.value,
            diagnostics=diagnostics,
            metadata=metadata,
        )

    return RetrievalResult(
        success=False,
        content=None,
        source=name.value,
        error=diagnostics.strategy_errors.get(name) or f"Strategy {name.value} failed",
        diagnostics=diagnostics,
    )


async def scrape_universal(
    backends: Backends,
    request: RetrievalRequest,
    *,
    mode: FallbackMode = FallbackMode.COST,
    exclude: Iterable[StrategyName] = (),
    default_timeout_ms: int = DEFAULT_TIMEOUT_MS,
    diagnostics: Diagnostics | None = None,
) -> RetrievalResult:
    """Run the universal fallback sequence, with no config lookup.

    Args:
        backends: Backend lookup table
        request: Retrieval request
        mode: Fallback ordering mode
        exclude: Strategies that already failed in this request
        default_timeout_ms: Attempt timeout when the request sets none
        diagnostics: Diagnostics to record into (default: fresh)

    Returns:
        The first successful result, or an aggregate failure with source "none"

    Raises:
        InvalidUrlError: If the request URL is not an absolute http(s) URL
    """
    validate_url(request.url)
    diagnostics = diagnostics if diagnostics is not None else Diagnostics()
    metadata: dict[str, Any] = {}

    async def attempt(strategy: StrategyName) -> str | None:
        return await _attempt_strategy(
            backends, strategy, request, diagnostics, default_timeout_ms, metadata
        )

    winner = await first_success(fallback_sequence(mode, exclude), attempt)
    if winner is not None:
        strategy, content = winner
        return RetrievalResult(
            success=True,
            content=content,
            source=strategy.value,
            diagnostics=diagnostics,
            metadata=metadata,
        )

    attempted = ", ".join(s.value for s in diagnostics.strategies_attempted) or "none"
    return RetrievalResult(
        success=False,
        content=None,
        source="none",
        error=(
            f"{ALL_STRATEGIES_FAILED}. Attempted: {attempted}. "
            f"Errors: {diagnostics.describe_errors()}"
        ),
        diagnostics=diagnostics,
    )


def _learn(config_store: StrategyConfigStore, url: str, strategy: StrategyName, notes: str) -> None:
    try:
        config_store.upsert_entry(
            StrategyConfigEntry(prefix=derive_prefix(url), strategy=strategy, notes=notes)
        )
    except Exception as e:
        # Learning is best effort; the retrieval already succeeded
        logger.warning(f"Failed to update strategy config for {url}: {e}")


async def scrape_with_strategy(
    backends: Backends,
    config_store: StrategyConfigStore,
    request: RetrievalRequest,
    explicit_strategy: StrategyName | str | None = None,
    *,
    mode: FallbackMode = FallbackMode.COST,
    default_timeout_ms: int = DEFAULT_TIMEOUT_MS,
) -> RetrievalResult:
    """Resolve a strategy for a URL and retrieve it, falling back on failure.

    Resolution order: the explicit strategy (argument, else
    ``request.explicit_strategy``), else the strategy configured for the URL,
    then the universal fallback without the strategy that just failed.

    A direct success of an explicit or configured strategy records nothing.
    A success through the universal fallback is learned under
    ``derive_prefix(url)``.

    Args:
        backends: Backend lookup table
        config_store: Strategy config store for lookup and learning
        request: Retrieval request
        explicit_strategy: Strategy requested by the caller
        mode: Fallback ordering mode
        default_timeout_ms: Attempt timeout when the request sets none

    Returns:
        RetrievalResult with diagnostics covering every attempt

    Raises:
        InvalidUrlError: If the request URL is not an absolute http(s) URL
    """
    validate_url(request.url)
    requested = explicit_strategy if explicit_strategy is not None else request.explicit_strategy
    diagnostics = Diagnostics()

    first: StrategyName | None = None
    if requested is not None:
        try:
            first = StrategyName.parse(requested)
        except UnknownStrategyError:
            return _unknown_strategy(str(requested))
        origin = "explicit"
    else:
        try:
            first = config_store.get_strategy_for_url(request.url)
        except Exception as e:
            logger.warning(f"Failed to load strategy config: {e}")
        origin = "configured"

    if first is not None:
        result = await scrape_with_single_strategy(
            backends,
            first,
            request,
            default_timeout_ms=default_timeout_ms,
            diagnostics=diagnostics,
        )
        if result.success:
            return result
        logger.debug(
            f"{origin.capitalize()} strategy '{first.value}' failed for {request.url}, "
            "falling back to universal approach"
        )

    result = await scrape_universal(
        backends,
        request,
        mode=mode,
        exclude=[first] if first is not None else (),
        default_timeout_ms=default_timeout_ms,
        diagnostics=diagnostics,
    )

    if result.success:
        winner = StrategyName(result.source)
        if first is None:
            notes = UNIVERSAL_FALLBACK_NOTE
        else:
            notes = f"Auto-discovered after {first.value} failed"
        _learn(config_store, request.url, winner, notes)

    return result


class RetrievalOrchestrator:
    """Runs the full retrieval state machine: cache, resolution, fallback, learning.

    The backend table, config store, cache and fallback mode are fixed at
    construction time.
    """

    def __init__(
        self,
        backends: Backends,
        config_store: StrategyConfigStore,
        cache: ResourceCache | None = None,
        config: OrchestratorConfig | None = None,
    ) -> None:
        self.backends = backends
        self.config_store = config_store
        self.cache = cache
        self.config = config or OrchestratorConfig()

    def _cached(self, request: RetrievalRequest) -> RetrievalResult | None:
        if self.cache is None or request.force_refresh:
            return None

        try:
            resource = self.cache.find_latest(request.url)
        except Exception as e:
            logger.error(f"Resource cache lookup failed for {request.url}: {e}")
            return None
        if resource is None:
            return None

        return RetrievalResult(
            success=True,
            content=resource.content,
            source=resource.strategy_used.value,
            from_cache=True,
            metadata={
                "content_type": resource.mime_type,
                "sequence": resource.sequence,
                "scraped_at": resource.scraped_at.isoformat(),
            },
        )

    def _store(self, request: RetrievalRequest, result: RetrievalResult) -> None:
        if self.cache is None or result.content is None:
            return

        try:
            sequence = self.cache.write(
                request.url,
                result.content,
                strategy_used=StrategyName(result.source),
                mime_type=result.metadata.get("content_type") or "text/html",
            )
        except Exception as e:
            logger.error(f"Failed to cache content for {request.url}: {e}")
            return
        result.metadata["sequence"] = sequence

    async def retrieve(self, request: RetrievalRequest) -> RetrievalResult:
        """Retrieve a URL, serving from cache unless a refresh is forced.

        Cache and strategy config writes complete before this returns.

        Raises:
            InvalidUrlError: If the request URL is not an absolute http(s) URL
        """
        request.url = validate_url(request.url)

        # An unknown strategy is an error even when the URL is cached
        if request.explicit_strategy is not None:
            try:
                StrategyName.parse(request.explicit_strategy)
            except UnknownStrategyError:
                return _unknown_strategy(str(request.explicit_strategy))

        cached = self._cached(request)
        if cached is not None:
            return cached

        result = await scrape_with_strategy(
            self.backends,
            self.config_store,
            request,
            mode=self.config.fallback_mode,
            default_timeout_ms=self.config.default_timeout_ms,
        )

        if result.success:
            self._store(request, result)
        return result
