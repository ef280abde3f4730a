"""One scrape request and its cancellation flag."""

from dataclasses import dataclass, field

from novel_retrieval.config import AppConfig
from novel_retrieval.models import ChapterRef


@dataclass
class ScrapeJob:
    """Chapters to fetch for one listing, plus the knobs that bound the run.

    ``cancelled`` is only ever flipped to True. The scheduler reads it at
    batch boundaries; it never interrupts a batch that is already running.
    """

    source_url: str
    chapter_refs: list[ChapterRef]
    concurrency_limit: int = 5
    batch_size: int = 8
    retry_budgets: tuple[int, int] = (3, 10)
    cancelled: bool = field(default=False, init=False)

    def __post_init__(self):
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {self.batch_size}")
        for position, ref in enumerate(self.chapter_refs, start=1):
            if ref.index != position:
                raise ValueError(f"Chapter refs must be indexed 1..n in order; got index {ref.index} at {position}")

    @classmethod
    def from_config(cls, source_url: str, refs: list[ChapterRef], config: AppConfig) -> "ScrapeJob":
        return cls(
            source_url=source_url,
            chapter_refs=refs,
            concurrency_limit=config.rate_limit.max_concurrent,
            batch_size=config.rate_limit.batch_size,
            retry_budgets=(config.retry.pass1_budget, config.retry.pass2_budget),
        )

    @property
    def requested(self) -> int:
        return len(self.chapter_refs)

    def cancel(self) -> None:
        """Ask the job to stop at the next batch boundary."""
        self.cancelled = True
