"""Native scraper provider: direct HTTP fetch using the requests library."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import requests

from webfetch_mcp.models.retrieval import StrategyName
from webfetch_mcp.providers.base import TIMEOUT_MESSAGE, BackendResult, ScraperProvider

# Configure logging
logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)


class NativeProvider(ScraperProvider):
    """Fetches pages directly, without any third-party scraping service."""

    strategy = StrategyName.NATIVE

    def __init__(
        self,
        timeout_ms: int = 30000,
        user_agent: str = DEFAULT_USER_AGENT,
        session: requests.Session | None = None,
    ) -> None:
        """Initialize the native provider.

        Args:
            timeout_ms: Default request timeout in milliseconds (default: 30000)
            user_agent: User agent string (default: Chrome 131 on macOS)
            session: Optional requests session to reuse
        """
        self.timeout_ms = timeout_ms
        self.user_agent = user_agent
        self.session = session or requests.Session()

    async def scrape(self, url: str, **kwargs: Any) -> BackendResult:
        """Fetch a URL directly.

        Args:
            url: The URL to fetch
            **kwargs: Additional options
                - timeout_ms: Request timeout in milliseconds
                - headers: Custom HTTP headers

        Returns:
            BackendResult with the response body as a string
        """
        timeout_ms = kwargs.get("timeout_ms") or self.timeout_ms
        headers = dict(kwargs.get("headers") or {})
        headers.setdefault("User-Agent", self.user_agent)

        try:
            # Run requests in thread pool to avoid blocking
            loop = asyncio.get_event_loop()
            response = await loop.run_in_executor(
                None,
                lambda: self.session.get(url, headers=headers, timeout=timeout_ms / 1000),
            )
        except requests.Timeout:
            return BackendResult(success=False, error=TIMEOUT_MESSAGE)
        except requests.RequestException as e:
            return BackendResult(success=False, error=f"{type(e).__name__}: {e}")

        content_type = response.headers.get("Content-Type")
        metadata = {
            "elapsed_ms": response.elapsed.total_seconds() * 1000,
            "encoding": response.encoding,
        }

        if not response.ok:
            logger.debug(f"Native fetch of {url} returned HTTP {response.status_code}")
            return BackendResult(
                success=False,
                error=f"HTTP {response.status_code}",
                status_code=response.status_code,
                content_type=content_type,
                metadata=metadata,
            )

        return BackendResult(
            success=True,
            content=response.text,
            status_code=response.status_code,
            content_type=content_type,
            metadata=metadata,
        )
