"""HTML and URL utility functions for Quire.

Functions:
    escape_html: Escape special HTML characters in a string.
    join_root_url: Join a base URL with a path.
    relative_url: Prefix a site path with the configured baseurl.
    absolute_url: Turn a site path into a full URL.
    iter_local_links: Yield root-relative link targets found in HTML.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from urllib.parse import unquote, urlsplit

# URL attribute regex pattern for finding href and src attributes
_URL_ATTR_RE = re.compile(
    r'\b(?:href|src)=(?P<quote>["\'])(?P<url>[^"\']*)(?P=quote)', re.IGNORECASE
)

# URL prefixes that never point into the built site
_URL_SKIP_PREFIXES = (
    "http://",
    "https://",
    "//",
    "mailto:",
    "tel:",
    "#",
    "javascript:",
    "data:",
)


def escape_html(text: str) -> str:
    """Escape special HTML characters in a string.

    Examples:
        >>> escape_html('Tom & "Jerry"')
        'Tom &amp; &quot;Jerry&quot;'
    """
    return (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )


def join_root_url(root_url: str, path: str) -> str:
    """Safely join a root URL and a path, avoiding double slashes.

    Examples:
        >>> join_root_url('https://example.com/', 'about')
        'https://example.com/about'
    """
    if not root_url:
        return path
    base = root_url.rstrip("/")
    suffix = path if path.startswith("/") else f"/{path}"
    return f"{base}{suffix}"


def relative_url(path: str, baseurl: str) -> str:
    """Prefix a site path with ``baseurl``.

    External URLs and anchors are returned unchanged.

    Examples:
        >>> relative_url('/assets/css/style.css', '/blog')
        '/blog/assets/css/style.css'
    """
    if not path:
        return baseurl or "/"
    if path.startswith(_URL_SKIP_PREFIXES):
        return path
    if baseurl:
        return join_root_url(baseurl, path)
    return path if path.startswith("/") else f"/{path}"


def absolute_url(path: str, url: str, baseurl: str) -> str:
    """Turn a site path into an absolute URL using ``url`` and ``baseurl``.

    Examples:
        >>> absolute_url('/about/', 'https://example.com', '/blog')
        'https://example.com/blog/about/'
    """
    if path.startswith(("http://", "https://", "//")):
        return path
    return join_root_url(url, relative_url(path, baseurl))


def iter_local_links(html: str) -> Iterator[str]:
    """Yield root-relative link targets from ``href`` and ``src`` attributes.

    Query strings and fragments are dropped and percent-escapes decoded,
    so each yielded value is a path that can be looked up on disk.
    """
    for match in _URL_ATTR_RE.finditer(html):
        url = match.group("url").strip()
        if not url.startswith("/") or url.startswith(_URL_SKIP_PREFIXES):
            continue
        path = unquote(urlsplit(url).path)
        if path:
            yield path
