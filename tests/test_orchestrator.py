"""Tests for strategy resolution, fallback and learning."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest
from conftest import StubProvider, fail, ok

from webfetch_mcp.cache_manager import ResourceCache
from webfetch_mcp.config import OrchestratorConfig
from webfetch_mcp.errors import InvalidUrlError
from webfetch_mcp.models.retrieval import (
    FallbackMode,
    RetrievalRequest,
    StrategyConfigEntry,
    StrategyName,
)
from webfetch_mcp.providers.base import Backends
from webfetch_mcp.strategies.config_store import MemoryStrategyConfigStore
from webfetch_mcp.strategies.orchestrator import (
    RetrievalOrchestrator,
    extract_content,
    fallback_sequence,
    first_success,
    scrape_universal,
    scrape_with_single_strategy,
    scrape_with_strategy,
)

NATIVE = StrategyName.NATIVE
MANAGED = StrategyName.MANAGED
PROXY = StrategyName.PROXY


def make_backends(native=None, managed=None, proxy=None) -> Backends:
    """Build Backends from outcomes, wrapping each in a StubProvider."""
    return Backends(
        native=StubProvider(NATIVE, native) if native is not None else None,
        managed=StubProvider(MANAGED, managed) if managed is not None else None,
        proxy=StubProvider(PROXY, proxy) if proxy is not None else None,
    )


class TestFallbackSequence:
    """Tests for fallback ordering and the first-success combinator."""

    def test_cost_mode_order(self) -> None:
        """Test that cost mode tries native first."""
        assert fallback_sequence(FallbackMode.COST) == [NATIVE, MANAGED, PROXY]

    def test_speed_mode_skips_native(self) -> None:
        """Test that speed mode never includes native."""
        assert fallback_sequence(FallbackMode.SPEED) == [MANAGED, PROXY]

    def test_exclusion(self) -> None:
        """Test that excluded strategies are dropped."""
        assert fallback_sequence(FallbackMode.COST, exclude=[MANAGED]) == [NATIVE, PROXY]

    @pytest.mark.asyncio
    async def test_first_success_short_circuits(self) -> None:
        """Test that candidates after the first success are not attempted."""
        tried: list[StrategyName] = []

        async def attempt(strategy: StrategyName) -> str | None:
            tried.append(strategy)
            return "content" if strategy is MANAGED else None

        winner = await first_success([NATIVE, MANAGED, PROXY], attempt)

        assert winner == (MANAGED, "content")
        assert tried == [NATIVE, MANAGED]

    @pytest.mark.asyncio
    async def test_first_success_none_when_all_fail(self) -> None:
        """Test that exhausting candidates returns None."""

        async def attempt(strategy: StrategyName) -> str | None:
            return None

        assert await first_success([NATIVE, PROXY], attempt) is None


class TestExtractContent:
    """Tests for extract_content function."""

    def test_managed_prefers_html(self) -> None:
        """Test that managed dict content yields its HTML."""
        result = ok({"markdown": "# Title", "html": "<h1>Title</h1>"})
        assert extract_content(MANAGED, result) == "<h1>Title</h1>"

    def test_managed_falls_back_to_markdown(self) -> None:
        """Test that markdown is used when HTML is missing."""
        result = ok({"markdown": "# Title", "html": None})
        assert extract_content(MANAGED, result) == "# Title"

    def test_bytes_decoded(self) -> None:
        """Test that byte content is decoded."""
        assert extract_content(NATIVE, ok(b"<p>hi</p>")) == "<p>hi</p>"

    def test_empty_content_is_none(self) -> None:
        """Test that empty content counts as no content."""
        assert extract_content(NATIVE, ok("")) is None


class TestScrapeWithSingleStrategy:
    """Tests for scrape_with_single_strategy function."""

    @pytest.mark.asyncio
    async def test_success(self) -> None:
        """Test a successful single attempt."""
        backends = make_backends(native=ok("X"))
        request = RetrievalRequest(url="https://example.com/")

        result = await scrape_with_single_strategy(backends, NATIVE, request)

        assert result.success
        assert result.content == "X"
        assert result.source == "native"
        assert result.diagnostics.strategies_attempted == [NATIVE]
        assert NATIVE in result.diagnostics.timing

    @pytest.mark.asyncio
    async def test_unavailable_adapter(self) -> None:
        """Test that a missing adapter is reported without raising."""
        result = await scrape_with_single_strategy(
            make_backends(), MANAGED, RetrievalRequest(url="https://example.com/")
        )

        assert not result.success
        assert result.content is None
        assert result.source == "managed"
        assert result.error == "Managed client not available"
        assert result.diagnostics.strategies_attempted == []

    @pytest.mark.asyncio
    async def test_unknown_strategy(self) -> None:
        """Test that unknown names are echoed back as the source."""
        backends = make_backends(native=ok())
        result = await scrape_with_single_strategy(
            backends, "teleport", RetrievalRequest(url="https://example.com/")
        )

        assert not result.success
        assert result.source == "teleport"
        assert result.error == "Unknown strategy: teleport"
        assert backends.native.calls == []

    @pytest.mark.asyncio
    async def test_backend_exception_captured(self) -> None:
        """Test that a raising backend becomes a failed result."""
        backends = make_backends(native=RuntimeError("boom"))
        result = await scrape_with_single_strategy(
            backends, NATIVE, RetrievalRequest(url="https://example.com/")
        )

        assert not result.success
        assert result.error == "RuntimeError: boom"

    @pytest.mark.asyncio
    async def test_success_without_content_is_failure(self) -> None:
        """Test that a success with empty content is treated as failure."""
        backends = make_backends(native=ok(""))
        result = await scrape_with_single_strategy(
            backends, NATIVE, RetrievalRequest(url="https://example.com/")
        )

        assert not result.success
        assert result.error == "Native returned no content"

    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        """Test that a slow backend is cut off at the request timeout."""

        async def slow(url: str):
            await asyncio.sleep(5)
            return ok()

        backends = make_backends(native=slow)
        request = RetrievalRequest(url="https://example.com/", timeout_ms=50)

        result = await scrape_with_single_strategy(backends, NATIVE, request)

        assert not result.success
        assert result.error == "Request timed out after 50ms"

    @pytest.mark.asyncio
    async def test_invalid_url_raises(self) -> None:
        """Test that malformed URLs are hard errors."""
        with pytest.raises(InvalidUrlError):
            await scrape_with_single_strategy(
                make_backends(native=ok()), NATIVE, RetrievalRequest(url="ftp://example.com")
            )


class TestScrapeUniversal:
    """Tests for scrape_universal function."""

    @pytest.mark.asyncio
    async def test_all_fail(self) -> None:
        """Test the aggregate failure when every backend fails."""
        backends = make_backends(native=fail(), managed=fail("quota"), proxy=fail("HTTP 500"))

        result = await scrape_universal(backends, RetrievalRequest(url="https://example.com/"))

        assert not result.success
        assert result.content is None
        assert result.source == "none"
        assert "All strategies failed" in result.error
        assert "native: HTTP 403" in result.error
        assert "managed: quota" in result.error
        assert result.diagnostics.strategies_attempted == [NATIVE, MANAGED, PROXY]

    @pytest.mark.asyncio
    async def test_native_success_short_circuits(self) -> None:
        """Test that a native success prevents other attempts."""
        backends = make_backends(native=ok("X"), managed=ok("Y"), proxy=ok("Z"))

        result = await scrape_universal(backends, RetrievalRequest(url="https://example.com/"))

        assert result.success
        assert result.content == "X"
        assert result.source == "native"
        assert backends.managed.calls == []
        assert backends.proxy.calls == []

    @pytest.mark.asyncio
    async def test_speed_mode_never_tries_native(self) -> None:
        """Test that speed mode skips native even when it would succeed."""
        backends = make_backends(native=ok("X"), managed=fail(), proxy=fail())

        result = await scrape_universal(
            backends, RetrievalRequest(url="https://example.com/"), mode=FallbackMode.SPEED
        )

        assert not result.success
        assert backends.native.calls == []

    @pytest.mark.asyncio
    async def test_unavailable_backends_skipped(self) -> None:
        """Test that unconfigured backends are recorded but not attempted."""
        backends = make_backends(native=fail(), proxy=ok("Z"))

        result = await scrape_universal(backends, RetrievalRequest(url="https://example.com/"))

        assert result.success
        assert result.source == "proxy"
        assert result.diagnostics.strategies_attempted == [NATIVE, PROXY]
        assert result.diagnostics.strategy_errors[MANAGED] == "Managed client not available"

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self) -> None:
        """Test that cancelling an attempt stops the sequence."""
        native = Mock()
        native.scrape = AsyncMock(side_effect=asyncio.CancelledError())
        managed = Mock()
        managed.scrape = AsyncMock(return_value=ok("Y"))
        backends = Backends(native=native, managed=managed)

        with pytest.raises(asyncio.CancelledError):
            await scrape_universal(backends, RetrievalRequest(url="https://example.com/"))

        managed.scrape.assert_not_called()


class TestScrapeWithStrategy:
    """Tests for scrape_with_strategy function."""

    @pytest.mark.asyncio
    async def test_learns_after_universal_success(
        self, config_store: MemoryStrategyConfigStore
    ) -> None:
        """Test that a fallback success is learned under the derived prefix."""
        backends = make_backends(native=fail(), managed=fail(), proxy=ok("Z"))
        request = RetrievalRequest(url="https://yelp.com/biz/dolly-sf")
        config_store.upsert_entry = Mock(wraps=config_store.upsert_entry)

        result = await scrape_with_strategy(backends, config_store, request)

        assert result.success
        assert result.source == "proxy"
        config_store.upsert_entry.assert_called_once()
        entry = config_store.upsert_entry.call_args[0][0]
        assert entry.prefix == "yelp.com/biz/"
        assert entry.strategy is PROXY
        assert entry.notes == "Auto-discovered via universal fallback"

    @pytest.mark.asyncio
    async def test_learning_round_trip(self, config_store: MemoryStrategyConfigStore) -> None:
        """Test that a learned prefix is used for a sibling URL."""
        backends = make_backends(native=fail(), managed=ok("Y"), proxy=ok("Z"))

        await scrape_with_strategy(
            backends, config_store, RetrievalRequest(url="https://example.com/blog/2024/a")
        )

        assert config_store.get_strategy_for_url("https://example.com/blog/2024/b") is MANAGED

        backends.native.calls.clear()
        result = await scrape_with_strategy(
            backends, config_store, RetrievalRequest(url="https://example.com/blog/2024/b")
        )
        assert result.source == "managed"
        assert backends.native.calls == []

    @pytest.mark.asyncio
    async def test_configured_success_does_not_learn(self) -> None:
        """Test that a configured strategy success writes nothing."""
        store = MemoryStrategyConfigStore(
            [StrategyConfigEntry(prefix="example.com", strategy=PROXY, notes="manual")]
        )
        store.upsert_entry = Mock()
        backends = make_backends(native=ok("X"), proxy=ok("Z"))

        result = await scrape_with_strategy(
            backends, store, RetrievalRequest(url="https://example.com/page")
        )

        assert result.source == "proxy"
        assert backends.native.calls == []
        store.upsert_entry.assert_not_called()

    @pytest.mark.asyncio
    async def test_explicit_success_does_not_learn(
        self, config_store: MemoryStrategyConfigStore
    ) -> None:
        """Test that an explicit strategy success writes nothing."""
        backends = make_backends(native=ok("X"), managed=ok("Y"))

        result = await scrape_with_strategy(
            backends, config_store, RetrievalRequest(url="https://example.com/"), "managed"
        )

        assert result.source == "managed"
        assert backends.native.calls == []
        assert config_store.load_config() == []

    @pytest.mark.asyncio
    async def test_explicit_failure_rescued_by_fallback(
        self, config_store: MemoryStrategyConfigStore
    ) -> None:
        """Test that a failed explicit strategy is not retried and the rescue is learned."""
        backends = make_backends(native=fail(), managed=fail("blocked"), proxy=ok("Z"))
        request = RetrievalRequest(url="https://example.com/x", explicit_strategy="managed")

        result = await scrape_with_strategy(backends, config_store, request)

        assert result.success
        assert result.source == "proxy"
        assert len(backends.managed.calls) == 1
        assert result.diagnostics.strategies_attempted == [MANAGED, NATIVE, PROXY]

        entries = config_store.load_config()
        assert len(entries) == 1
        assert entries[0].strategy is PROXY
        assert entries[0].notes == "Auto-discovered after managed failed"

    @pytest.mark.asyncio
    async def test_explicit_unavailable_without_fallback_success(
        self, config_store: MemoryStrategyConfigStore
    ) -> None:
        """Test an unavailable explicit backend when nothing else works."""
        backends = make_backends(native=fail())

        result = await scrape_with_strategy(
            backends, config_store, RetrievalRequest(url="https://example.com/"), "managed"
        )

        assert not result.success
        assert "Managed client not available" in result.error

    @pytest.mark.asyncio
    async def test_unknown_explicit_strategy(self, config_store: MemoryStrategyConfigStore) -> None:
        """Test that an unknown explicit name attempts nothing."""
        backends = make_backends(native=ok("X"))

        result = await scrape_with_strategy(
            backends, config_store, RetrievalRequest(url="https://example.com/"), "warp"
        )

        assert not result.success
        assert result.source == "warp"
        assert result.error == "Unknown strategy: warp"
        assert backends.native.calls == []
        assert config_store.load_config() == []

    @pytest.mark.asyncio
    async def test_config_lookup_failure_falls_back(self) -> None:
        """Test that a failing config store is treated as no configuration."""
        store = MemoryStrategyConfigStore()
        store.get_strategy_for_url = Mock(side_effect=OSError("disk gone"))
        backends = make_backends(native=ok("X"))

        result = await scrape_with_strategy(
            backends, store, RetrievalRequest(url="https://example.com/")
        )

        assert result.success
        assert result.source == "native"

    @pytest.mark.asyncio
    async def test_learning_failure_does_not_fail_retrieval(self) -> None:
        """Test that a failing config write keeps the successful result."""
        store = MemoryStrategyConfigStore()
        store.save_config = Mock(side_effect=OSError("read-only"))
        backends = make_backends(native=fail(), managed=ok("Y"))

        result = await scrape_with_strategy(
            backends, store, RetrievalRequest(url="https://example.com/")
        )

        assert result.success
        assert result.content == "Y"


class TestRetrievalOrchestrator:
    """Tests for RetrievalOrchestrator."""

    @pytest.mark.asyncio
    async def test_cache_idempotence(
        self, config_store: MemoryStrategyConfigStore, resource_cache: ResourceCache
    ) -> None:
        """Test that a cached URL is served without another backend call."""
        backends = make_backends(native=ok("<p>first</p>"))
        orchestrator = RetrievalOrchestrator(backends, config_store, resource_cache)

        first = await orchestrator.retrieve(RetrievalRequest(url="https://example.com/"))
        second = await orchestrator.retrieve(RetrievalRequest(url="https://example.com/"))

        assert first.content == second.content == "<p>first</p>"
        assert not first.from_cache
        assert second.from_cache
        assert second.source == "native"
        assert len(backends.native.calls) == 1

    @pytest.mark.asyncio
    async def test_forced_refresh_supersedes_cache(
        self, config_store: MemoryStrategyConfigStore, resource_cache: ResourceCache
    ) -> None:
        """Test that a forced refresh fetches again and replaces the cached content."""
        backends = make_backends(native=ok("<p>old</p>"))
        orchestrator = RetrievalOrchestrator(backends, config_store, resource_cache)
        await orchestrator.retrieve(RetrievalRequest(url="https://example.com/"))

        backends.native.outcome = ok("<p>new</p>")
        refreshed = await orchestrator.retrieve(
            RetrievalRequest(url="https://example.com/", force_refresh=True)
        )
        cached = await orchestrator.retrieve(RetrievalRequest(url="https://example.com/"))

        assert len(backends.native.calls) == 2
        assert refreshed.content == "<p>new</p>"
        assert not refreshed.from_cache
        assert refreshed.metadata["sequence"] == 2
        assert cached.content == "<p>new</p>"
        assert cached.from_cache

    @pytest.mark.asyncio
    async def test_unknown_strategy_rejected_for_cached_url(
        self, config_store: MemoryStrategyConfigStore, resource_cache: ResourceCache
    ) -> None:
        """Test that an unknown strategy is reported even when the URL is cached."""
        backends = make_backends(native=ok("X"))
        orchestrator = RetrievalOrchestrator(backends, config_store, resource_cache)
        await orchestrator.retrieve(RetrievalRequest(url="https://example.com/"))

        result = await orchestrator.retrieve(
            RetrievalRequest(url="https://example.com/", explicit_strategy="warp")
        )

        assert not result.success
        assert not result.from_cache
        assert result.source == "warp"
        assert result.error == "Unknown strategy: warp"
        assert len(backends.native.calls) == 1

    @pytest.mark.asyncio
    async def test_failures_not_cached(
        self, config_store: MemoryStrategyConfigStore, resource_cache: ResourceCache
    ) -> None:
        """Test that failed retrievals leave the cache untouched."""
        backends = make_backends(native=fail())
        orchestrator = RetrievalOrchestrator(backends, config_store, resource_cache)

        result = await orchestrator.retrieve(RetrievalRequest(url="https://example.com/"))

        assert not result.success
        assert resource_cache.find_latest("https://example.com/") is None

    @pytest.mark.asyncio
    async def test_speed_mode_from_config(self, config_store: MemoryStrategyConfigStore) -> None:
        """Test that the fallback mode comes from the orchestrator config."""
        backends = make_backends(native=ok("X"), managed=ok("Y"))
        orchestrator = RetrievalOrchestrator(
            backends, config_store, config=OrchestratorConfig(fallback_mode=FallbackMode.SPEED)
        )

        result = await orchestrator.retrieve(RetrievalRequest(url="https://example.com/"))

        assert result.source == "managed"
        assert backends.native.calls == []

    @pytest.mark.asyncio
    async def test_cache_lookup_failure_treated_as_miss(
        self, config_store: MemoryStrategyConfigStore
    ) -> None:
        """Test that a broken cache does not prevent retrieval."""
        cache = Mock()
        cache.find_latest.side_effect = OSError("corrupt")
        cache.write.return_value = 1
        backends = make_backends(native=ok("X"))
        orchestrator = RetrievalOrchestrator(backends, config_store, cache)

        result = await orchestrator.retrieve(RetrievalRequest(url="https://example.com/"))

        assert result.success
        assert result.content == "X"
        cache.write.assert_called_once()

    @pytest.mark.asyncio
    async def test_invalid_url_raises(self, config_store: MemoryStrategyConfigStore) -> None:
        """Test that malformed URLs are rejected before any attempt."""
        backends = make_backends(native=ok())
        orchestrator = RetrievalOrchestrator(backends, config_store)

        with pytest.raises(InvalidUrlError):
            await orchestrator.retrieve(RetrievalRequest(url="example.com/no-scheme"))
        assert backends.native.calls == []
