"""Residential proxy scraper provider using the ScrapeOps proxy API."""

from __future__ import annotations

import asyncio
import logging
from typing import Any
from urllib.parse import urlencode

import requests

from webfetch_mcp.models.retrieval import StrategyName
from webfetch_mcp.providers.base import TIMEOUT_MESSAGE, BackendResult, ScraperProvider

# Configure logging
logger = logging.getLogger(__name__)

SCRAPEOPS_PROXY_URL = "https://proxy.scrapeops.io/v1/"


class ProxyProvider(ScraperProvider):
    """Fetches pages through residential proxies for sites that block direct access."""

    strategy = StrategyName.PROXY

    def __init__(
        self,
        api_key: str,
        timeout_ms: int = 60000,
        render_js: bool = False,
        country: str = "",
        device: str = "desktop",
        session: requests.Session | None = None,
    ) -> None:
        """Initialize the proxy provider.

        Args:
            api_key: ScrapeOps API key
            timeout_ms: Default request timeout in milliseconds (default: 60000)
            render_js: Ask the proxy to render JavaScript (default: False)
            country: Optional two-letter country code for the exit IP
            device: Device profile, "desktop" or "mobile" (default: desktop)
            session: Optional requests session to reuse
        """
        self.api_key = api_key
        self.timeout_ms = timeout_ms
        self.render_js = render_js
        self.country = country
        self.device = device
        self.session = session or requests.Session()

        logger.info(
            f"ProxyProvider initialized (render_js={self.render_js}, "
            f"country={self.country or 'any'})"
        )

    def build_proxy_url(self, target_url: str) -> str:
        """Build ScrapeOps proxy URL with configured options.

        Args:
            target_url: The target URL to scrape

        Returns:
            ScrapeOps proxy URL with all configured parameters
        """
        params = {
            "api_key": self.api_key,
            "url": target_url,
            "residential": "true",
        }

        if self.render_js:
            params["render_js"] = "true"

        if self.country:
            params["country"] = self.country

        if self.device and self.device != "desktop":
            params["device"] = self.device

        return f"{SCRAPEOPS_PROXY_URL}?{urlencode(params)}"

    async def scrape(self, url: str, **kwargs: Any) -> BackendResult:
        """Fetch a URL through the proxy.

        Args:
            url: The URL to fetch
            **kwargs: Additional options
                - timeout_ms: Request timeout in milliseconds

        Returns:
            BackendResult with the page body as a string
        """
        timeout_ms = kwargs.get("timeout_ms") or self.timeout_ms
        request_url = self.build_proxy_url(url)
        logger.debug(f"Using ScrapeOps proxy for URL: {url}")

        try:
            loop = asyncio.get_event_loop()
            response = await loop.run_in_executor(
                None,
                lambda: self.session.get(request_url, timeout=timeout_ms / 1000),
            )
        except requests.Timeout:
            return BackendResult(success=False, error=TIMEOUT_MESSAGE)
        except requests.RequestException as e:
            return BackendResult(success=False, error=f"{type(e).__name__}: {e}")

        if not response.ok:
            return BackendResult(
                success=False,
                error=f"HTTP {response.status_code}",
                status_code=response.status_code,
            )

        return BackendResult(
            success=True,
            content=response.text,
            status_code=response.status_code,
            content_type=response.headers.get("Content-Type"),
            metadata={"render_js": self.render_js},
        )
