"""Page fetching with an optional rendering fallback."""

from novel_retrieval.fetcher.base import BaseFetcher, BlockDetector, FetchResult
from novel_retrieval.fetcher.fallback import FallbackFetcher
from novel_retrieval.fetcher.http_fetcher import HttpFetcher
from novel_retrieval.fetcher.identity import IdentityRotator
from novel_retrieval.fetcher.playwright_fetcher import PlaywrightFetcher

__all__ = [
    "BaseFetcher",
    "BlockDetector",
    "FallbackFetcher",
    "FetchResult",
    "HttpFetcher",
    "IdentityRotator",
    "PlaywrightFetcher",
]
