"""Exception taxonomy for scrape jobs.

``DiscoveryEmpty`` and ``JobCancelled`` end a job and reach the caller.
``ChapterFailure`` subclasses are raised inside a single fetch/extract
attempt and are always caught by the retry orchestrator, which records
their ``reason`` on the chapter placeholder instead.
"""

from novel_retrieval.models import FailureReason


class NovelRetrievalError(Exception):
    """Base class for all novel-retrieval errors."""


class DiscoveryEmpty(NovelRetrievalError):
    """No chapter links were found by any discovery rule."""

    def __init__(self, source_url: str, rules_tried: list[str] | None = None):
        self.source_url = source_url
        self.rules_tried = rules_tried or []
        tried = ", ".join(self.rules_tried) or "none"
        super().__init__(f"No chapters found at {source_url} (rules tried: {tried})")


class ListingUnavailable(NovelRetrievalError):
    """The listing page itself could not be fetched."""

    def __init__(self, source_url: str, detail: str = ""):
        self.source_url = source_url
        self.detail = detail
        super().__init__(f"Could not fetch listing page {source_url}" + (f": {detail}" if detail else ""))


class JobCancelled(NovelRetrievalError):
    """The job's cancellation flag was observed at a batch boundary."""

    def __init__(self, completed_batches: int = 0):
        self.completed_batches = completed_batches
        super().__init__(f"Job cancelled after {completed_batches} batch(es)")


class ChapterFailure(NovelRetrievalError):
    """A single attempt at one chapter failed."""

    reason: FailureReason = FailureReason.EXTRACTION_EMPTY

    def __init__(self, url: str, detail: str = "", retry_after: float | None = None):
        self.url = url
        self.detail = detail
        self.retry_after = retry_after
        message = f"{self.reason.value}: {url}"
        if detail:
            message += f" ({detail})"
        super().__init__(message)


class FetchBlocked(ChapterFailure):
    """Non-success status or an anti-bot interstitial."""

    reason = FailureReason.BLOCKED


class FetchTimeout(ChapterFailure):
    """The request timed out."""

    reason = FailureReason.TIMEOUT


class ExtractionEmpty(ChapterFailure):
    """The extraction cascade produced nothing usable."""

    reason = FailureReason.EXTRACTION_EMPTY
