"""Lightweight HTTP fetcher."""

import logging

import httpx

from novel_retrieval.config import FetcherConfig
from novel_retrieval.fetcher.base import BaseFetcher, FetchResult
from novel_retrieval.fetcher.identity import IdentityRotator

logger = logging.getLogger(__name__)


class HttpFetcher(BaseFetcher):
    """Plain HTTP fetcher with identity rotation and bounded redirects."""

    name = "http"

    def __init__(
        self,
        config: FetcherConfig,
        identity: IdentityRotator | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(config)
        self.identity = identity or IdentityRotator(config.user_agents)
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self):
        """Initialize HTTP client."""
        self._client = httpx.AsyncClient(
            follow_redirects=True,
            max_redirects=self.config.max_redirects,
            timeout=self.config.timeout_ms / 1000,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Clean up HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def fetch(self, url: str, referer: str | None = None) -> FetchResult:
        """Fetch a page via HTTP."""
        if not self._client:
            raise RuntimeError("Fetcher not initialized. Use 'async with' context manager.")

        try:
            response = await self._client.get(url, headers=self.identity.headers(referer or url))

            retry_after: float | None = None
            if response.status_code == 429:
                retry_after = self._parse_retry_after(response.headers.get("retry-after"))

            return FetchResult(
                url=url,
                final_url=str(response.url),
                html=response.text,
                status_code=response.status_code,
                retry_after=retry_after,
                renderer=self.name,
            )

        except httpx.TimeoutException as e:
            logger.debug("Timed out fetching %s", url)
            return FetchResult(
                url=url,
                final_url=url,
                html="",
                status_code=0,
                error=f"timeout: {e}" if str(e) else "timeout",
                timed_out=True,
                renderer=self.name,
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.debug("HTTP error fetching %s: %s", url, e)
            return FetchResult(
                url=url,
                final_url=url,
                html="",
                status_code=0,
                error=str(e) or type(e).__name__,
                renderer=self.name,
            )
