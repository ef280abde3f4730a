"""Fixed-size batch dispatch with a barrier between batches."""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from novel_retrieval.errors import JobCancelled
from novel_retrieval.models import ChapterContent, ChapterRef
from novel_retrieval.scraping.job import ScrapeJob

logger = logging.getLogger(__name__)

Worker = Callable[[ChapterRef], Awaitable[ChapterContent]]
ResultCallback = Callable[[ChapterContent], None]


class BatchScheduler:
    """Run a worker over refs in batches of ``job.batch_size``.

    Every unit of a batch runs concurrently; the next batch starts only
    after all of them finish. Each unit writes to its own slot, so the
    returned list follows the input order whatever the completion order.
    The job's cancellation flag is checked before each batch and after
    each barrier; a cancelled batch's results are dropped.
    """

    def __init__(
        self,
        job: ScrapeJob,
        pause_seconds: float = 0.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.job = job
        self.pause_seconds = pause_seconds
        self._sleep = sleep
        self.batches_dispatched: int = 0

    def batches(self, refs: list[ChapterRef]) -> list[list[ChapterRef]]:
        size = self.job.batch_size
        return [refs[i : i + size] for i in range(0, len(refs), size)]

    async def run(
        self,
        refs: list[ChapterRef],
        worker: Worker,
        on_result: ResultCallback | None = None,
    ) -> list[ChapterContent]:
        """Process ``refs`` and return one terminal content per ref, in order.

        Raises:
            JobCancelled: the job was cancelled at a batch boundary.
        """
        slots: list[ChapterContent | None] = [None] * len(refs)
        batches = self.batches(refs)

        async def unit(slot: int, ref: ChapterRef, staged: dict[int, ChapterContent]) -> None:
            content = await worker(ref)
            staged[slot] = content
            if on_result is not None and not self.job.cancelled:
                on_result(content)

        offset = 0
        for number, batch in enumerate(batches):
            if number and self.pause_seconds > 0:
                await self._sleep(self.pause_seconds)
            if self.job.cancelled:
                raise JobCancelled(number)

            self.batches_dispatched += 1
            logger.debug("Batch %d/%d: %d chapter(s)", number + 1, len(batches), len(batch))
            staged: dict[int, ChapterContent] = {}
            await asyncio.gather(*(unit(offset + i, ref, staged) for i, ref in enumerate(batch)))

            if self.job.cancelled:
                raise JobCancelled(number)
            for slot, content in staged.items():
                slots[slot] = content
            offset += len(batch)

        return [content for content in slots if content is not None]
