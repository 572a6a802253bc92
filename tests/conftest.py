"""Pytest configuration and fixtures for webfetch-mcp tests."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from webfetch_mcp.cache_manager import ResourceCache
from webfetch_mcp.models.retrieval import StrategyName
from webfetch_mcp.providers.base import BackendResult, ScraperProvider
from webfetch_mcp.strategies.config_store import MemoryStrategyConfigStore


class StubProvider(ScraperProvider):
    """Backend returning canned results and recording the URLs it was asked for.

    ``outcome`` may be a BackendResult, an exception to raise, or a coroutine
    function called with the URL.
    """

    def __init__(self, strategy: StrategyName, outcome: Any) -> None:
        self.strategy = strategy
        self.outcome = outcome
        self.calls: list[str] = []

    async def scrape(self, url: str, **kwargs: Any) -> BackendResult:
        self.calls.append(url)
        if isinstance(self.outcome, BaseException):
            raise self.outcome
        if callable(self.outcome):
            return await self.outcome(url)
        return self.outcome


def ok(content: Any = "<html><body><p>ok</p></body></html>") -> BackendResult:
    """Successful backend result."""
    return BackendResult(success=True, content=content, status_code=200, content_type="text/html")


def fail(error: str = "HTTP 403", status_code: int | None = 403) -> BackendResult:
    """Failed backend result."""
    return BackendResult(success=False, error=error, status_code=status_code)


@pytest.fixture
def config_store() -> MemoryStrategyConfigStore:
    """Empty in-memory strategy config store."""
    return MemoryStrategyConfigStore()


@pytest.fixture
def resource_cache(tmp_path: Path) -> ResourceCache:
    """Resource cache in a temporary directory."""
    cache = ResourceCache(cache_dir=tmp_path / "resources", max_versions=3)
    yield cache
    cache.close()


@pytest.fixture
def sample_html() -> str:
    """Sample HTML for testing."""
    return """
    <!DOCTYPE html>
    <html lang="en">
    <head>
        <meta charset="UTF-8">
        <meta name="description" content="A sample page for testing">
        <title>Test Page Title</title>
        <script>console.log('should be stripped');</script>
        <style>.test { color: red; }</style>
    </head>
    <body>
        <h1>Main Heading</h1>
        <p>This is a <strong>sample</strong> paragraph with <em>formatting</em>.</p>
        <h2>Subheading</h2>
        <ul>
            <li><a href="https://example.com">Example Link</a></li>
            <li><a href="/relative" title="Relative Link">Relative</a></li>
        </ul>
        <div>
            <p>Another paragraph with some text.</p>
        </div>
        <noscript>No JavaScript content</noscript>
    </body>
    </html>
    """


@pytest.fixture
def simple_html() -> str:
    """Simple HTML for basic testing."""
    return """
    <html>
    <head><title>Simple Page</title></head>
    <body>
        <h1>Hello World</h1>
        <p>This is a simple test.</p>
    </body>
    </html>
    """


@pytest.fixture
def html_with_structured_content() -> str:
    """HTML with navigation, an article and a footer."""
    return """
    <html>
    <head><title>Structured Page</title></head>
    <body>
        <nav>
            <a href="/home">Home</a>
            <a href="/about">About</a>
        </nav>
        <article class="main-content">
            <h1>Article Title</h1>
            <p>Article paragraph</p>
            <a href="/related">Related</a>
        </article>
        <footer><p>Footer content</p></footer>
    </body>
    </html>
    """
