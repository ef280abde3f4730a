"""URL manipulation utilities."""

import re
from urllib.parse import urljoin, urlparse, urlunparse

_HOST_PREFIXES = ("www.", "m.")
_SLUG_PATTERNS = [
    re.compile(r"/novel/([^/.]+)"),
    re.compile(r"/book/([^/.]+)"),
    re.compile(r"/series/([^/.]+)"),
    re.compile(r"/([^/.]+)\.html?$"),
]
_TRAILING_NUMBER = re.compile(r"(\d+)(?=\D*$)")


def normalize_url(url: str) -> str:
    """Normalize a URL for deduplication.

    Drops the fragment, lowercases scheme and host, strips a leading
    ``www.``/``m.`` and removes trailing slashes (except for the root).
    """
    parsed = urlparse(url.strip())
    netloc = get_base_domain(url)
    path = parsed.path.rstrip("/") if parsed.path not in ("", "/") else "/"
    return urlunparse(parsed._replace(scheme=parsed.scheme.lower(), netloc=netloc, path=path, fragment=""))


def get_base_domain(url: str) -> str:
    """Extract the host from a URL without mobile/www prefixes."""
    host = urlparse(url).netloc.lower()
    for prefix in _HOST_PREFIXES:
        if host.startswith(prefix):
            host = host[len(prefix):]
    return host


def is_same_site(url1: str, url2: str) -> bool:
    """Check if two URLs are served by the same site."""
    return get_base_domain(url1) == get_base_domain(url2)


def make_absolute(base_url: str, href: str) -> str | None:
    """Resolve ``href`` against ``base_url``; None for non-navigational links."""
    href = href.strip()
    if not href or href.startswith(("#", "javascript:", "mailto:", "tel:")):
        return None
    absolute = urljoin(base_url, href)
    parsed = urlparse(absolute)
    if parsed.scheme not in ("http", "https"):
        return None
    return parsed._replace(fragment="").geturl()


def extract_slug(url: str) -> str | None:
    """Guess the work's slug from a listing URL (``/novel/<slug>/...``)."""
    path = urlparse(url).path
    for pattern in _SLUG_PATTERNS:
        match = pattern.search(path)
        if match:
            return match.group(1)
    return None


def trailing_number(url: str) -> tuple[str, int, str] | None:
    """Split a URL around the last run of digits in its path.

    Returns ``(prefix, number, suffix)`` so the URL can be rebuilt with a
    different identifier, or None when the path has no digits.
    """
    parsed = urlparse(url)
    match = _TRAILING_NUMBER.search(parsed.path)
    if not match:
        return None
    head = urlunparse(parsed._replace(path=parsed.path[: match.start()], query="", fragment=""))
    tail = parsed.path[match.end():]
    if parsed.query:
        tail += "?" + parsed.query
    return head, int(match.group(1)), tail
