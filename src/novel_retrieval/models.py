"""Records shared by discovery, scraping and assembly."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ChapterStatus(str, Enum):
    """Lifecycle state of one chapter within a pass."""

    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class FailureReason(str, Enum):
    """Why a chapter ended up as a placeholder."""

    TIMEOUT = "timeout"
    BLOCKED = "blocked"
    EXTRACTION_EMPTY = "extraction_empty"


class ChapterRef(BaseModel):
    """A discovered chapter link with its stable 1-based position."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(ge=1)
    title: str
    url: str
    number: float = 0.0
    inferred: bool = False  # synthesized by extrapolation, not seen on a page


class ChapterContent(BaseModel):
    """The outcome of scraping one chapter."""

    ref: ChapterRef
    body: str = ""
    status: ChapterStatus = ChapterStatus.PENDING
    attempts: int = 0
    failure_reason: FailureReason | None = None
    extraction_method: str | None = None
    heading: str | None = None  # title found on the chapter page itself

    @property
    def is_terminal(self) -> bool:
        return self.status != ChapterStatus.PENDING

    @property
    def succeeded(self) -> bool:
        return self.status == ChapterStatus.SUCCESS

    @property
    def paragraphs(self) -> list[str]:
        return [p for p in self.body.split("\n\n") if p.strip()]


class FailedChapter(BaseModel):
    """One permanently failed chapter, as listed in the job summary."""

    index: int
    title: str
    url: str
    reason: FailureReason | None
    inferred: bool = False


class JobSummary(BaseModel):
    """Counts reported alongside the assembled document."""

    requested: int
    succeeded: int
    failed: int
    failed_details: list[FailedChapter] = Field(default_factory=list)

    @property
    def inferred_failures(self) -> int:
        """Failures on extrapolated refs, which are expected misses."""
        return sum(1 for f in self.failed_details if f.inferred)


class Document(BaseModel):
    """The ordered result of a scrape job, handed to packaging."""

    title: str
    author: str
    cover_url: str | None = None
    source_url: str | None = None
    chapters: list[ChapterContent]
    summary: JobSummary
