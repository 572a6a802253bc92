"""Business logic for the scrape, strategy config and cache tools."""

from __future__ import annotations

import time
from urllib.parse import unquote

from webfetch_mcp.cache_manager import ResourceCache, get_resource_cache
from webfetch_mcp.core.providers import get_orchestrator, get_strategy_config_store
from webfetch_mcp.metrics import record_retrieval
from webfetch_mcp.models.retrieval import OutputFormat, RetrievalRequest, StrategyConfigEntry
from webfetch_mcp.models.scrape import CachedVersionItem, ScrapeResponse, StrategyConfigItem
from webfetch_mcp.strategies.config_store import StrategyConfigStore
from webfetch_mcp.strategies.orchestrator import RetrievalOrchestrator
from webfetch_mcp.utils import paginate_content, render_content, validate_url

DEFAULT_MAX_CHARS = 100000


def _parse_format(value: str | OutputFormat) -> OutputFormat:
    try:
        return OutputFormat(value)
    except ValueError:
        allowed = ", ".join(f.value for f in OutputFormat)
        raise ValueError(f"Invalid format {value!r}: expected one of {allowed}") from None


async def scrape_page(
    url: str,
    output_format: str | OutputFormat = OutputFormat.MARKDOWN,
    timeout: int | None = None,
    strategy: str | None = None,
    force_refresh: bool = False,
    max_chars: int = DEFAULT_MAX_CHARS,
    start_index: int = 0,
    css_selector: str | None = None,
    orchestrator: RetrievalOrchestrator | None = None,
) -> ScrapeResponse:
    """Retrieve a URL through the orchestrator and render one page of it.

    Input errors (invalid URL, format, pagination or selector) are reported in
    the response rather than raised.

    Args:
        url: The URL to scrape
        output_format: markdown, html or text
        timeout: Per-backend timeout in milliseconds
        strategy: Optional explicit strategy (native, managed, proxy)
        force_refresh: Bypass the cache and fetch fresh content
        max_chars: Maximum characters to return
        start_index: Character index to start the returned page at
        css_selector: Optional CSS selector applied before rendering
        orchestrator: Orchestrator to use (default: the global one)

    Returns:
        ScrapeResponse with the rendered page and retrieval diagnostics
    """
    fmt_name = output_format.value if isinstance(output_format, OutputFormat) else str(output_format)

    try:
        fmt = _parse_format(output_format)
        request = RetrievalRequest(
            url=validate_url(url),
            format=fmt,
            timeout_ms=timeout,
            explicit_strategy=strategy or None,
            force_refresh=force_refresh,
        )
        if start_index < 0 or max_chars <= 0:
            raise ValueError("start_index must be >= 0 and max_chars must be > 0")
        if timeout is not None and timeout <= 0:
            raise ValueError("timeout must be > 0")
    except ValueError as e:
        return ScrapeResponse(
            url=url, success=False, format=fmt_name, source="none", error=f"{type(e).__name__}: {e}"
        )

    orchestrator = orchestrator or get_orchestrator()
    started = time.perf_counter()
    result = await orchestrator.retrieve(request)
    elapsed_ms = round((time.perf_counter() - started) * 1000, 2)

    record_retrieval(
        url=request.url,
        success=result.success,
        source=result.source,
        diagnostics=None if result.from_cache else result.diagnostics,
        elapsed_ms=elapsed_ms,
        from_cache=result.from_cache,
        error=result.error,
    )

    if not result.success or result.content is None:
        return ScrapeResponse(
            url=request.url,
            success=False,
            format=fmt.value,
            source=result.source,
            error=result.error,
            diagnostics=result.diagnostics.to_dict(),
        )

    try:
        rendered = render_content(result.content, fmt, css_selector)
    except ValueError as e:
        return ScrapeResponse(
            url=request.url,
            success=False,
            format=fmt.value,
            source=result.source,
            from_cache=result.from_cache,
            error=f"{type(e).__name__}: {e}",
            diagnostics=result.diagnostics.to_dict(),
        )

    page = paginate_content(rendered, start_index, max_chars)
    return ScrapeResponse(
        url=request.url,
        success=True,
        content=page.text,
        format=fmt.value,
        source=result.source,
        from_cache=result.from_cache,
        total_chars=page.total_chars,
        start_index=page.start_index,
        next_start_index=page.next_index,
        diagnostics=result.diagnostics.to_dict(),
    )


def _config_item(entry: StrategyConfigEntry) -> StrategyConfigItem:
    return StrategyConfigItem(
        prefix=entry.prefix,
        strategy=entry.strategy.value,
        notes=entry.notes,
        created_at=entry.created_at.isoformat(),
    )


def list_strategy_config(store: StrategyConfigStore | None = None) -> list[StrategyConfigItem]:
    """Return the configured and learned strategy entries, longest prefix first."""
    store = store or get_strategy_config_store()
    return [_config_item(entry) for entry in store.load_config()]


def list_cached_versions(url: str, cache: ResourceCache | None = None) -> list[CachedVersionItem]:
    """Return the cached versions of a URL, newest first."""
    cache = cache or get_resource_cache()
    return [
        CachedVersionItem(
            url=resource.url,
            sequence=resource.sequence,
            strategy_used=resource.strategy_used.value,
            mime_type=resource.mime_type,
            scraped_at=resource.scraped_at.isoformat(),
            size_chars=len(resource.content),
        )
        for resource in cache.find_all(url)
    ]


def read_cached_page(
    url: str,
    start_index: int = 0,
    max_chars: int = DEFAULT_MAX_CHARS,
    sequence: int | None = None,
    cache: ResourceCache | None = None,
) -> dict[str, object]:
    """Read one page of a cached version's raw content."""
    cache = cache or get_resource_cache()
    try:
        page = cache.read_page(url, start_index, max_chars, sequence)
    except ValueError as e:
        return {"status": "error", "url": url, "message": str(e)}
    if page is None:
        return {"status": "not_found", "url": url, "sequence": sequence}
    return {
        "status": "success",
        "url": url,
        "sequence": sequence,
        "content": page.text,
        "start_index": page.start_index,
        "total_chars": page.total_chars,
        "next_start_index": page.next_index,
    }


def read_cached_resource(
    url: str, sequence: str | int | None = None, cache: ResourceCache | None = None
) -> str:
    """Return the full raw content of a cached version.

    Args:
        url: Cached URL, optionally percent-encoded
        sequence: Version number, or None / "latest" for the newest version
        cache: Cache to read (default: the global one)

    Raises:
        ValueError: If the sequence is not a number or the version is not cached
    """
    cache = cache or get_resource_cache()
    url = unquote(url)
    if sequence is None or sequence == "latest":
        resource = cache.find_latest(url)
    else:
        try:
            version = int(sequence)
        except ValueError:
            raise ValueError(f"Invalid cache sequence {sequence!r}") from None
        resource = cache.find_version(url, version)
    if resource is None:
        raise ValueError(f"No cached content for {url} (version: {sequence or 'latest'})")
    return resource.content
