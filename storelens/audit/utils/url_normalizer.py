"""URL helpers shared by beacon partitioning, link discovery and input validation."""

from typing import Optional
from urllib.parse import urljoin, urlparse


class URLNormalizationError(Exception):
    """Raised when a URL cannot be interpreted as an absolute http(s) URL."""
    pass


def url_path(url: str) -> Optional[str]:
    """Return the path component of an absolute URL.

    An empty path is reported as ``/``, matching what a browser's URL parser
    gives for ``https://example.com``. The path is otherwise returned exactly
    as written, so ``/products/abc`` and ``/products/abc/`` stay distinct.

    Args:
        url: Absolute URL to inspect

    Returns:
        The path, or None if the URL is empty or has no scheme/host

    Example:
        >>> url_path("https://x.com")
        "/"
        >>> url_path("https://x.com/products/abc?variant=1")
        "/products/abc"
    """
    if not url:
        return None

    try:
        parsed = urlparse(url)
    except ValueError:
        return None

    if not parsed.scheme or not parsed.netloc:
        return None

    return parsed.path or "/"


def resolve_url(base_url: str, href: str) -> str:
    """Resolve a possibly relative link against the page it was found on."""
    return urljoin(base_url, href)


def validate_http_url(url: str) -> str:
    """Validate that a URL is an absolute http(s) URL.

    Args:
        url: URL supplied by a caller

    Returns:
        The URL stripped of surrounding whitespace

    Raises:
        URLNormalizationError: If the URL is empty, relative, or not http(s)
    """
    if not url or not url.strip():
        raise URLNormalizationError("URL is required")

    url = url.strip()
    try:
        parsed = urlparse(url)
    except ValueError as e:
        raise URLNormalizationError(f"Invalid URL: {e}")

    if parsed.scheme.lower() not in ("http", "https"):
        raise URLNormalizationError(f"Unsupported URL scheme: {parsed.scheme or '(none)'}")

    if not parsed.netloc:
        raise URLNormalizationError("URL must include a host")

    return url
