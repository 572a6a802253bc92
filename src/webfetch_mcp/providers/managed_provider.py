"""Managed scraper provider using a Firecrawl-compatible scraping API."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import requests

from webfetch_mcp.models.retrieval import StrategyName
from webfetch_mcp.providers.base import TIMEOUT_MESSAGE, BackendResult, ScraperProvider

# Configure logging
logger = logging.getLogger(__name__)


class ManagedProvider(ScraperProvider):
    """Scrapes pages through a hosted scraping service that renders JavaScript."""

    strategy = StrategyName.MANAGED

    def __init__(
        self,
        api_key: str,
        api_url: str = "https://api.firecrawl.dev",
        timeout_ms: int = 60000,
        only_main_content: bool = False,
        session: requests.Session | None = None,
    ) -> None:
        """Initialize the managed provider.

        Args:
            api_key: API key for the scraping service
            api_url: Base URL of the scraping service
            timeout_ms: Default scrape timeout in milliseconds (default: 60000)
            only_main_content: Ask the service to drop navigation and footers
            session: Optional requests session to reuse
        """
        self.api_key = api_key
        self.api_url = api_url.rstrip("/")
        self.timeout_ms = timeout_ms
        self.only_main_content = only_main_content
        self.session = session or requests.Session()

    @property
    def endpoint(self) -> str:
        return f"{self.api_url}/v1/scrape"

    def _post(self, payload: dict[str, Any], timeout_ms: int) -> requests.Response:
        return self.session.post(
            self.endpoint,
            json=payload,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
            # Allow the service its own timeout plus network overhead
            timeout=timeout_ms / 1000 + 5,
        )

    async def scrape(self, url: str, **kwargs: Any) -> BackendResult:
        """Scrape a URL through the managed service.

        Args:
            url: The URL to scrape
            **kwargs: Additional options
                - timeout_ms: Scrape timeout in milliseconds

        Returns:
            BackendResult with ``{"markdown": ..., "html": ...}`` content
        """
        timeout_ms = kwargs.get("timeout_ms") or self.timeout_ms
        payload = {
            "url": url,
            "formats": ["html", "markdown"],
            "onlyMainContent": self.only_main_content,
            "timeout": timeout_ms,
        }

        try:
            loop = asyncio.get_event_loop()
            response = await loop.run_in_executor(None, lambda: self._post(payload, timeout_ms))
        except requests.Timeout:
            return BackendResult(success=False, error=TIMEOUT_MESSAGE)
        except requests.RequestException as e:
            return BackendResult(success=False, error=f"{type(e).__name__}: {e}")

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if not response.ok or not body.get("success"):
            error = body.get("error") or f"HTTP {response.status_code}"
            logger.debug(f"Managed scrape of {url} failed: {error}")
            return BackendResult(success=False, error=str(error), status_code=response.status_code)

        data = body.get("data") or {}
        page_metadata = data.get("metadata") or {}
        return BackendResult(
            success=True,
            content={"markdown": data.get("markdown"), "html": data.get("html")},
            status_code=page_metadata.get("statusCode", response.status_code),
            content_type="text/html",
            metadata={"page_metadata": page_metadata},
        )
