"""URL prefix derivation for strategy learning.

A learned prefix should be specific enough to cover the same kind of page
(the next article in the same blog year) without needing an entry per URL.
Rules are tried in order and the first match wins:

1. Entity detail pages, ``/biz/<slug>`` -> ``host/biz/``
2. Threaded discussions, ``/r/<community>/comments/<id>/...`` ->
   ``host/r/<community>/comments/<id>/``
3. Dated content, ``/blog/<year>/...`` -> ``host/blog/<year>/``
4. Anything else -> ``host``
"""

from __future__ import annotations

import re
from urllib.parse import urlsplit

from webfetch_mcp.errors import InvalidUrlError

ENTITY_DETAIL_KEYWORDS = ("biz", "product", "products", "item", "dp", "listing")
DATED_SECTION_KEYWORDS = ("blog", "news", "articles", "posts")

_ENTITY_DETAIL = re.compile(
    r"^/(?:%s)/[^/]+" % "|".join(ENTITY_DETAIL_KEYWORDS), re.IGNORECASE
)
_THREAD = re.compile(r"^/r/[^/]+/comments/(?:[^/]+/)?")
_DATED = re.compile(r"^/(?:%s)/\d{4}/" % "|".join(DATED_SECTION_KEYWORDS), re.IGNORECASE)


def _host_key(url: str) -> tuple[str, str]:
    try:
        parsed = urlsplit(url)
        port = parsed.port
    except ValueError as e:
        raise InvalidUrlError(f"Invalid URL {url!r}: {e}") from e

    host = parsed.hostname
    if not parsed.scheme or not host:
        raise InvalidUrlError(f"Invalid URL {url!r}: expected an absolute URL")

    host = host.lower()
    if host.startswith("www."):
        host = host[4:]
    if port is not None:
        host = f"{host}:{port}"

    return host, parsed.path


def strip_scheme(url: str) -> str:
    """Reduce a URL to the key prefixes are matched against.

    The key is the lower-cased host (without a leading ``www.``, with any
    explicit port) followed by the path. Scheme, query and fragment are
    dropped.

    Raises:
        InvalidUrlError: If the URL is not absolute
    """
    host, path = _host_key(url)
    return host + path


def derive_prefix(url: str) -> str:
    """Generalize a URL into a reusable strategy prefix.

    The returned prefix is always a literal prefix of ``strip_scheme(url)``.

    Args:
        url: Absolute URL that was successfully retrieved

    Returns:
        Prefix key such as ``yelp.com/biz/`` or ``example.com``

    Raises:
        InvalidUrlError: If the URL is not absolute
    """
    host, path = _host_key(url)

    for pattern in (_ENTITY_DETAIL, _THREAD, _DATED):
        match = pattern.match(path)
        if match is None:
            continue
        if pattern is _ENTITY_DETAIL:
            # Keep only the fixed keyword segment
            keyword = path.split("/")[1]
            return f"{host}/{keyword}/"
        return host + match.group(0)

    return host


def prefix_matches(prefix: str, key: str) -> bool:
    """Check whether a prefix applies to a scheme-stripped URL key.

    Path prefixes (containing ``/``) match literally. A host-only prefix
    matches only the exact host, so ``example.com`` does not match
    ``example.com.evil.org``.
    """
    if not key.startswith(prefix):
        return False
    if "/" in prefix:
        return True
    return len(key) == len(prefix) or key[len(prefix)] == "/"
