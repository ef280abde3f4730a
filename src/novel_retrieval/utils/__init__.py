"""Utility functions and classes."""

from novel_retrieval.utils.rate_limiter import RateLimiter
from novel_retrieval.utils.ttl_store import TTLStore
from novel_retrieval.utils.url_utils import is_same_site, make_absolute, normalize_url

__all__ = [
    "RateLimiter",
    "TTLStore",
    "normalize_url",
    "is_same_site",
    "make_absolute",
]
