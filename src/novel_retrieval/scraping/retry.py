"""Per-chapter retries and the second recovery pass."""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable

from novel_retrieval.config import RetryConfig
from novel_retrieval.errors import ChapterFailure, ExtractionEmpty, FetchBlocked, FetchTimeout
from novel_retrieval.extractor.main_content import ContentExtractor
from novel_retrieval.fetcher.base import BaseFetcher, FetchResult
from novel_retrieval.models import ChapterContent, ChapterRef, ChapterStatus, FailureReason
from novel_retrieval.scraping.scheduler import BatchScheduler, ResultCallback
from novel_retrieval.utils.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

_MAX_RETRY_AFTER = 60.0


def placeholder_body(ref: ChapterRef, reason: FailureReason | None, attempts: int) -> str:
    """Notice text that stands in for a chapter that could not be loaded."""
    why = reason.value.replace("_", " ") if reason else "unknown error"
    return (
        f"This chapter could not be loaded after {attempts} attempt(s) ({why}).\n\n"
        f"Read it online: {ref.url}"
    )


class RetryOrchestrator:
    """Fetch and extract one chapter, retrying with exponential backoff.

    Every attempt holds a rate limiter slot only while fetching. A 429
    slows the whole job down through the limiter; a success lets it speed
    back up.
    """

    def __init__(
        self,
        fetcher: BaseFetcher,
        extractor: ContentExtractor,
        limiter: RateLimiter,
        config: RetryConfig,
        is_blocked: Callable[[FetchResult], bool],
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: random.Random | None = None,
        referer: str | None = None,
    ):
        self.fetcher = fetcher
        self.extractor = extractor
        self.limiter = limiter
        self.config = config
        self.is_blocked = is_blocked
        self.referer = referer
        self._sleep = sleep
        self._rng = rng or random.Random()
        self.attempts_made: int = 0

    async def attempt(self, ref: ChapterRef) -> ChapterContent:
        """One fetch-and-extract try.

        Raises:
            FetchTimeout: the request timed out.
            FetchBlocked: non-success status, a challenge page with no usable
                text, or the fetcher itself raised.
            ExtractionEmpty: the page loaded but every strategy came up empty.
        """
        self.attempts_made += 1
        try:
            async with self.limiter.slot():
                result = await self.fetcher.fetch(ref.url, referer=self.referer)
        except Exception as e:
            # A fetcher bug costs this chapter an attempt, never the whole job
            logger.warning("Fetcher raised on %s: %s", ref.url, e, exc_info=logger.isEnabledFor(logging.DEBUG))
            raise FetchBlocked(ref.url, f"fetch error: {e}") from e

        if result.status_code == 429:
            self.limiter.back_off()
            logger.warning("Rate limited on %s, delay now %.2fs", ref.url, self.limiter.delay_seconds)
        if result.timed_out:
            raise FetchTimeout(ref.url, result.error or "")
        if not result.success:
            raise FetchBlocked(ref.url, result.error or f"HTTP {result.status_code}", retry_after=result.retry_after)

        extracted = self.extractor.extract(result.html, result.final_url)
        if extracted is None:
            if self.is_blocked(result):
                raise FetchBlocked(ref.url, "challenge page or truncated body")
            raise ExtractionEmpty(ref.url)

        self.limiter.ease_off()
        return ChapterContent(
            ref=ref,
            body=extracted.text,
            status=ChapterStatus.SUCCESS,
            extraction_method=extracted.extraction_method,
            heading=extracted.title,
        )

    def backoff_delay(self, attempt: int, retry_after: float | None = None) -> float:
        """Delay before the attempt after ``attempt`` (1-based)."""
        delay = self.config.base_delay * 2 ** (attempt - 1) + self._rng.uniform(0, self.config.jitter)
        delay = min(delay, self.config.max_delay)
        if retry_after is not None:
            delay = max(delay, min(retry_after, _MAX_RETRY_AFTER))
        return delay

    async def run_unit(
        self,
        ref: ChapterRef,
        budget: int,
        initial_delay: float = 0.0,
        prior_attempts: int = 0,
    ) -> ChapterContent:
        """Try ``ref`` up to ``budget`` times and return a terminal content.

        On exhaustion the content is a FAILED placeholder carrying the last
        attempt's failure reason. ``attempts`` counts ``prior_attempts`` too.
        """
        if initial_delay > 0:
            await self._sleep(initial_delay)

        last: ChapterFailure | None = None
        for attempt in range(1, budget + 1):
            try:
                content = await self.attempt(ref)
            except ChapterFailure as e:
                last = e
                logger.debug("Chapter %d attempt %d/%d failed: %s", ref.index, attempt, budget, e)
                if attempt < budget:
                    await self._sleep(self.backoff_delay(attempt, e.retry_after))
                continue
            content.attempts = prior_attempts + attempt
            return content

        reason = last.reason if last else None
        attempts = prior_attempts + budget
        return ChapterContent(
            ref=ref,
            body=placeholder_body(ref, reason, attempts),
            status=ChapterStatus.FAILED,
            attempts=attempts,
            failure_reason=reason,
        )

    def should_recover(self, failed_count: int, budget: int | None = None) -> bool:
        """Second pass runs when there are failures, but not too many."""
        budget = self.config.pass2_budget if budget is None else budget
        return 0 < failed_count <= self.config.sanity_ceiling and budget > 0

    async def recover(
        self,
        failed: list[ChapterContent],
        scheduler: BatchScheduler,
        on_result: ResultCallback | None = None,
        budget: int | None = None,
    ) -> list[ChapterContent] | None:
        """Second pass over the failed placeholders.

        Returns the new terminal contents in the order of ``failed``, or
        None when the pass is skipped because the failure count is above
        the sanity ceiling.
        """
        budget = self.config.pass2_budget if budget is None else budget
        if not self.should_recover(len(failed), budget):
            if len(failed) > self.config.sanity_ceiling:
                logger.warning(
                    "%d chapters failed, above the ceiling of %d; skipping the second pass",
                    len(failed),
                    self.config.sanity_ceiling,
                )
            return None

        prior = {content.ref.index: content.attempts for content in failed}
        logger.info("Second pass over %d failed chapter(s)", len(failed))

        async def unit(ref: ChapterRef) -> ChapterContent:
            delay = self._rng.uniform(self.config.second_pass_delay_min, self.config.second_pass_delay_max)
            return await self.run_unit(
                ref,
                budget,
                initial_delay=delay,
                prior_attempts=prior[ref.index],
            )

        return await scheduler.run([content.ref for content in failed], unit, on_result)
