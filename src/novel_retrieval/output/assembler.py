"""Collect chapter outcomes into a document that keeps discovery order."""

from novel_retrieval.models import ChapterContent, ChapterRef, Document, FailedChapter, JobSummary


class DocumentAssembler:
    """Position-indexed slots, one per discovered chapter.

    Pass one fills every slot once. The second pass may replace a failed
    slot once more; nothing else is ever overwritten.
    """

    def __init__(self, refs: list[ChapterRef]):
        for position, ref in enumerate(refs, start=1):
            if ref.index != position:
                raise ValueError(f"Expected chapter index {position}, got {ref.index}")
        self.refs = list(refs)
        self._slots: list[ChapterContent | None] = [None] * len(refs)
        self._recovered: set[int] = set()

    def _slot(self, content: ChapterContent) -> int:
        if not content.is_terminal:
            raise ValueError(f"Chapter {content.ref.index} is still pending")
        slot = content.ref.index - 1
        if not 0 <= slot < len(self.refs) or self.refs[slot].url != content.ref.url:
            raise ValueError(f"Chapter {content.ref.index} ({content.ref.url}) is not part of this job")
        return slot

    def record(self, content: ChapterContent) -> None:
        """Store a first-pass outcome."""
        slot = self._slot(content)
        if self._slots[slot] is not None:
            raise ValueError(f"Chapter {content.ref.index} already has an outcome")
        self._slots[slot] = content

    def recover(self, content: ChapterContent) -> None:
        """Replace a failed placeholder with its second-pass outcome."""
        slot = self._slot(content)
        current = self._slots[slot]
        if current is None or current.succeeded or slot in self._recovered:
            raise ValueError(f"Chapter {content.ref.index} is not awaiting recovery")
        self._slots[slot] = content
        self._recovered.add(slot)

    @property
    def complete(self) -> bool:
        return all(content is not None for content in self._slots)

    def failed(self) -> list[ChapterContent]:
        return [content for content in self._slots if content is not None and not content.succeeded]

    def summary(self) -> JobSummary:
        failed = self.failed()
        return JobSummary(
            requested=len(self.refs),
            succeeded=sum(1 for content in self._slots if content is not None and content.succeeded),
            failed=len(failed),
            failed_details=[
                FailedChapter(
                    index=content.ref.index,
                    title=content.ref.title,
                    url=content.ref.url,
                    reason=content.failure_reason,
                    inferred=content.ref.inferred,
                )
                for content in failed
            ],
        )

    def build(
        self,
        title: str,
        author: str,
        cover_url: str | None = None,
        source_url: str | None = None,
    ) -> Document:
        """The finished document; every slot must hold an outcome."""
        if not self.complete:
            missing = [i for i, content in enumerate(self._slots, start=1) if content is None]
            raise ValueError(f"Cannot assemble: no outcome for chapter(s) {missing[:10]}")
        return Document(
            title=title,
            author=author,
            cover_url=cover_url,
            source_url=source_url,
            chapters=[content for content in self._slots if content is not None],
            summary=self.summary(),
        )
