"""Two-pass chapter scraping for one job."""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from novel_retrieval.models import ChapterContent, ChapterRef
from novel_retrieval.output.assembler import DocumentAssembler
from novel_retrieval.scraping.job import ScrapeJob
from novel_retrieval.scraping.retry import RetryOrchestrator
from novel_retrieval.scraping.scheduler import BatchScheduler

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], object]


class ChapterPipeline:
    """Pass one over every chapter, then a recovery pass over the failures.

    Progress ticks go to ``on_progress`` as ``(done, total)``; the second
    pass reports against the number of chapters it retries.
    """

    def __init__(
        self,
        retry: RetryOrchestrator,
        pause_seconds: float = 0.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.retry = retry
        self.pause_seconds = pause_seconds
        self._sleep = sleep

    async def run(
        self,
        job: ScrapeJob,
        on_progress: ProgressCallback | None = None,
    ) -> DocumentAssembler:
        """Scrape every chapter of ``job``; the assembler comes back complete.

        Raises:
            JobCancelled: the job was cancelled at a batch boundary.
        """
        assembler = DocumentAssembler(job.chapter_refs)
        scheduler = BatchScheduler(job, self.pause_seconds, self._sleep)
        pass1_budget, pass2_budget = job.retry_budgets

        done = 0
        total = job.requested

        def first_pass_result(content: ChapterContent) -> None:
            nonlocal done
            assembler.record(content)
            done += 1
            if on_progress is not None:
                on_progress(done, total)

        async def first_pass(ref: ChapterRef) -> ChapterContent:
            return await self.retry.run_unit(ref, pass1_budget)

        logger.info("Scraping %d chapter(s) in batches of %d", total, job.batch_size)
        await scheduler.run(job.chapter_refs, first_pass, first_pass_result)

        failed = assembler.failed()
        if not failed:
            return assembler

        logger.info("%d chapter(s) failed the first pass", len(failed))
        recovered = 0

        def second_pass_result(content: ChapterContent) -> None:
            nonlocal recovered
            assembler.recover(content)
            recovered += 1
            if on_progress is not None:
                on_progress(recovered, len(failed))

        results = await self.retry.recover(failed, scheduler, second_pass_result, budget=pass2_budget)
        if results is not None:
            still_failed = sum(1 for content in results if not content.succeeded)
            logger.info("Second pass recovered %d of %d chapter(s)", len(results) - still_failed, len(results))
        return assembler
