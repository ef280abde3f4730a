"""Escalating fetcher: lightweight first, rendered when the result looks blocked."""

import asyncio
import logging
from collections.abc import Callable

from novel_retrieval.fetcher.base import BaseFetcher, FetchResult

logger = logging.getLogger(__name__)


class FallbackFetcher(BaseFetcher):
    """Try ``primary``; swap to ``fallback`` whenever ``is_blocked`` says so.

    The fallback is entered lazily on the first escalation so a job that
    never gets blocked never starts a browser. The fallback result is only
    preferred when it actually carries a body.
    """

    name = "fallback"

    def __init__(
        self,
        primary: BaseFetcher,
        fallback: BaseFetcher | None,
        is_blocked: Callable[[FetchResult], bool],
    ):
        super().__init__(primary.config)
        self.primary = primary
        self.fallback = fallback
        self.is_blocked = is_blocked
        self.escalations: int = 0
        self._fallback_entered = False
        self._fallback_failed = False
        self._enter_lock = asyncio.Lock()

    async def __aenter__(self):
        await self.primary.__aenter__()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        try:
            if self.fallback and self._fallback_entered:
                await self.fallback.__aexit__(exc_type, exc_val, exc_tb)
                self._fallback_entered = False
        finally:
            await self.primary.__aexit__(exc_type, exc_val, exc_tb)

    async def fetch(self, url: str, referer: str | None = None) -> FetchResult:
        result = await self.primary.fetch(url, referer)
        if not self.is_blocked(result) or not await self._ensure_fallback():
            return result

        assert self.fallback is not None
        self.escalations += 1
        logger.debug("Escalating %s to %s fetcher (status %s)", url, self.fallback.name, result.status_code)
        rendered = await self.fallback.fetch(url, referer)
        if rendered.html and not rendered.error:
            return rendered
        return result

    async def _ensure_fallback(self) -> bool:
        """Enter the fallback fetcher once; False if there is none or it broke."""
        if self.fallback is None or self._fallback_failed:
            return False
        if self._fallback_entered:
            return True
        async with self._enter_lock:
            if not self._fallback_entered and not self._fallback_failed:
                try:
                    await self.fallback.__aenter__()
                    self._fallback_entered = True
                except Exception:
                    logger.warning("Could not start %s fetcher, continuing without it", self.fallback.name, exc_info=True)
                    self._fallback_failed = True
        return self._fallback_entered
