"""Utility functions for URL validation, HTML rendering and pagination."""

from __future__ import annotations

import re
from urllib.parse import urlsplit

from bs4 import BeautifulSoup
from markdownify import markdownify

from webfetch_mcp.errors import InvalidUrlError
from webfetch_mcp.models.retrieval import ContentPage, OutputFormat

_HTML_MARKER = re.compile(r"<\s*(!doctype|html|head|body|div|p|span|a|h[1-6]|table|ul|ol)\b", re.I)


def validate_url(url: str) -> str:
    """Check that a URL is an absolute http(s) URL.

    Args:
        url: The URL to validate

    Returns:
        The URL with surrounding whitespace removed

    Raises:
        InvalidUrlError: If the URL is empty, relative or not http(s)
    """
    if not isinstance(url, str) or not url.strip():
        raise InvalidUrlError("URL is required")

    url = url.strip()
    try:
        parsed = urlsplit(url)
    except ValueError as e:
        raise InvalidUrlError(f"Invalid URL {url!r}: {e}") from e

    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise InvalidUrlError(f"Invalid URL {url!r}: expected an absolute http(s) URL")

    return url


def looks_like_html(content: str) -> bool:
    """Heuristically decide whether content is HTML markup."""
    return bool(_HTML_MARKER.search(content[:4096]))


def html_to_markdown(html: str, strip_tags: list[str] | None = None) -> str:
    """Convert HTML to markdown format.

    Args:
        html: The HTML content to convert
        strip_tags: List of HTML tags to strip (e.g., ['script', 'style'])

    Returns:
        Markdown formatted text
    """
    soup = BeautifulSoup(html, "lxml")

    if strip_tags:
        for tag in strip_tags:
            for element in soup.find_all(tag):
                element.decompose()

    markdown = markdownify(str(soup), heading_style="ATX")
    return markdown.strip()


def html_to_text(html: str, strip_tags: list[str] | None = None) -> str:
    """Extract plain text from HTML.

    Args:
        html: The HTML content to process
        strip_tags: List of HTML tags to strip (default: script, style, meta, link, noscript)

    Returns:
        Plain text content
    """
    soup = BeautifulSoup(html, "lxml")

    default_strip_tags = ["script", "style", "meta", "link", "noscript"]
    tags_to_strip = strip_tags if strip_tags is not None else default_strip_tags

    for tag in tags_to_strip:
        for element in soup.find_all(tag):
            element.decompose()

    text = soup.get_text(separator="\n", strip=True)

    # Clean up multiple newlines
    lines = [line.strip() for line in text.split("\n") if line.strip()]
    return "\n".join(lines)


def filter_html_by_selector(html: str, css_selector: str) -> tuple[str, int]:
    """Filter HTML content using CSS selector.

    Args:
        html: The HTML content to filter
        css_selector: CSS selector to match elements
                     (e.g., "article", "main p", ".article-content")

    Returns:
        Tuple of (filtered HTML string, count of matched elements).
        Returns ("", 0) if no elements match.

    Raises:
        ValueError: If the CSS selector syntax is invalid
    """
    try:
        soup = BeautifulSoup(html, "lxml")
        elements = soup.select(css_selector)
    except Exception as e:
        raise ValueError(f"Invalid CSS selector '{css_selector}': {e}") from e

    if not elements:
        return "", 0

    return "\n".join(str(element) for element in elements), len(elements)


def render_content(
    content: str,
    output_format: OutputFormat,
    css_selector: str | None = None,
) -> str:
    """Render raw retrieved content in the requested output format.

    Non-HTML content (plain text, JSON, markdown from a backend) is passed
    through unchanged for every format.

    Args:
        content: Raw content as retrieved or cached
        output_format: Desired output format
        css_selector: Optional CSS selector applied before conversion

    Returns:
        Rendered content
    """
    if not looks_like_html(content):
        return content

    if css_selector:
        content, _ = filter_html_by_selector(content, css_selector)

    if output_format is OutputFormat.MARKDOWN:
        return html_to_markdown(content, strip_tags=["script", "style", "noscript"])
    if output_format is OutputFormat.TEXT:
        return html_to_text(content)
    return content


def paginate_content(content: str, start_index: int = 0, max_chars: int | None = None) -> ContentPage:
    """Return a window of content starting at start_index.

    Args:
        content: The full content
        start_index: Character index to start from (clamped to the content)
        max_chars: Maximum characters to return (None = no limit)

    Returns:
        ContentPage with the window and the index of the next window, if any
    """
    if start_index < 0:
        raise ValueError("start_index must be >= 0")
    if max_chars is not None and max_chars <= 0:
        raise ValueError("max_chars must be > 0")

    total = len(content)
    start = min(start_index, total)
    end = total if max_chars is None else min(start + max_chars, total)

    return ContentPage(
        text=content[start:end],
        start_index=start,
        total_chars=total,
        next_index=end if end < total else None,
    )
