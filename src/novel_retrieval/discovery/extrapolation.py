"""Sparse-sample extrapolation of chapter URLs.

Some sources only expose the first one or two chapter links but report a
total chapter count, and their chapter URLs end in an identifier that
grows linearly with the chapter number. From the samples we infer the
step and synthesize the rest. The result is a guess: synthesized refs are
marked ``inferred`` so their misses are not mistaken for real failures.
"""

import logging
import re

from bs4 import BeautifulSoup

from novel_retrieval.models import ChapterRef
from novel_retrieval.utils.url_utils import trailing_number

logger = logging.getLogger(__name__)

_LATEST_META = re.compile(r"chapter[_-]?(\d+)", re.I)
_TOTAL_TEXT_PATTERNS = [
    re.compile(r"latest\s+release\W{0,5}(?:\w+\s+){0,3}?chapter\s+(\d+)", re.I),
    re.compile(r"(\d[\d,]*)\s+chapters\b", re.I),
    re.compile(r"(\d[\d,]*)\s*chs\b", re.I),
]
_TOTAL_JSON = re.compile(r'"chapterCount"\s*:\s*"?(\d+)')


def detect_reported_total(soup: BeautifulSoup) -> int | None:
    """Read a source's advertised chapter count from the listing page."""
    meta = soup.find("meta", attrs={"property": "og:novel:lastest_chapter_url"}) or soup.find(
        "meta", attrs={"property": "og:novel:latest_chapter_url"}
    )
    if meta is not None:
        content = meta.get("content")
        if isinstance(content, str):
            match = _LATEST_META.search(content)
            if match:
                return int(match.group(1))

    for script in soup.find_all("script"):
        match = _TOTAL_JSON.search(script.get_text())
        if match:
            return int(match.group(1))

    text = soup.get_text(" ", strip=True)
    for pattern in _TOTAL_TEXT_PATTERNS:
        match = pattern.search(text)
        if match:
            return int(match.group(1).replace(",", ""))
    return None


def infer_increment(samples: list[ChapterRef], total: int) -> int | None:
    """Identifier step per chapter, or None when the samples don't allow one."""
    parts = [trailing_number(ref.url) for ref in samples]
    if any(p is None for p in parts):
        return None
    numbers = _sample_numbers(samples, total)

    if len(samples) == 1:
        _, ident, _ = parts[0]  # type: ignore[misc]
        return 1 if ident == numbers[0] else None

    (head1, id1, tail1), (head2, id2, tail2) = parts  # type: ignore[misc]
    if head1 != head2 or tail1 != tail2:
        return None
    chapter_gap = numbers[1] - numbers[0]
    if chapter_gap == 0 or (id2 - id1) % chapter_gap:
        return None
    increment = (id2 - id1) // chapter_gap
    return increment or None


def extrapolate_refs(samples: list[ChapterRef], total: int, increment: int | None = None) -> list[ChapterRef]:
    """Fill in chapters 1..``total`` around one or two observed samples.

    Observed samples keep their URLs and titles; every other chapter is a
    synthesized ref with ``inferred=True``. Identifiers that would not be
    positive are skipped. The returned refs are reindexed from 1. When
    extrapolation is not possible the samples come back unchanged.
    """
    samples = sorted(samples, key=lambda r: r.number)
    if not 1 <= len(samples) <= 2 or total <= len(samples):
        return samples

    step = increment if increment is not None else infer_increment(samples, total)
    anchor = trailing_number(samples[0].url)
    if not step or anchor is None:
        logger.debug("Cannot extrapolate from %d sample(s)", len(samples))
        return samples

    head, anchor_id, tail = anchor
    numbers = _sample_numbers(samples, total)
    observed = dict(zip(numbers, samples))

    refs: list[ChapterRef] = []
    for chapter in range(1, total + 1):
        if chapter in observed:
            refs.append(observed[chapter].model_copy(update={"number": float(chapter)}))
            continue
        ident = anchor_id + (chapter - numbers[0]) * step
        if ident <= 0:
            continue
        refs.append(
            ChapterRef(
                index=chapter,
                title=f"Chapter {chapter}",
                url=f"{head}{ident}{tail}",
                number=float(chapter),
                inferred=True,
            )
        )

    logger.info(
        "Extrapolated %d chapter URL(s) from %d sample(s) (step %d)",
        sum(r.inferred for r in refs),
        len(samples),
        step,
    )
    return [ref.model_copy(update={"index": i}) for i, ref in enumerate(refs, start=1)]


def _sample_numbers(samples: list[ChapterRef], total: int) -> list[int]:
    """Chapter numbers of the samples, falling back to their position.

    A number outside ``1..total`` usually came from a URL identifier rather
    than a real chapter number, so the sample's position is used instead.
    """
    return [
        int(ref.number) if 1 <= ref.number <= total else position
        for position, ref in enumerate(samples, start=1)
    ]
