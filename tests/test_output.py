"""Tests for Markdown rendering and file output."""

from datetime import datetime

import pytest

from conftest import chapter_url
from novel_retrieval.models import ChapterContent, ChapterRef, ChapterStatus, FailureReason
from novel_retrieval.output import DocumentAssembler, MarkdownFormatter, SingleFileOutput
from novel_retrieval.output.single_file import FAILED_LIST_NAME
from novel_retrieval.scraping import placeholder_body


def build_document(failed=(), inferred=(), headings=None):
    headings = headings or {}
    refs = [
        ChapterRef(
            index=i,
            title=f"Chapter {i}",
            url=chapter_url(i),
            number=i,
            inferred=i in inferred,
        )
        for i in range(1, 5)
    ]
    assembler = DocumentAssembler(refs)
    for ref in refs:
        if ref.index in failed:
            assembler.record(
                ChapterContent(
                    ref=ref,
                    body=placeholder_body(ref, FailureReason.BLOCKED, 13),
                    status=ChapterStatus.FAILED,
                    attempts=13,
                    failure_reason=FailureReason.BLOCKED,
                )
            )
        else:
            assembler.record(
                ChapterContent(
                    ref=ref,
                    body=f"First paragraph of {ref.index}.\n\nSecond paragraph of {ref.index}.",
                    status=ChapterStatus.SUCCESS,
                    attempts=1,
                    heading=headings.get(ref.index),
                )
            )
    return assembler.build(
        "Silent Sword",
        "A. Writer",
        cover_url="https://novels.example.com/cover.jpg",
        source_url="https://novels.example.com/novel/silent-sword/",
    )


class TestMarkdownFormatter:
    def test_header_and_toc(self):
        text = MarkdownFormatter().format_document(build_document(), extracted_at=datetime(2026, 1, 2, 3, 4, 5))

        assert text.startswith("# Silent Sword\n")
        assert "> Author: A. Writer" in text
        assert "> Cover: https://novels.example.com/cover.jpg" in text
        assert "> Extracted on: 2026-01-02T03:04:05" in text
        assert "> Chapters: 4 of 4\n" in text
        assert "## Table of Contents" in text
        assert "1. [Chapter 1](#chapter-1)" in text
        assert '<a id="chapter-4"></a>' in text

    def test_chapters_appear_in_order(self):
        text = MarkdownFormatter().format_document(build_document())
        positions = [text.index(f"## Chapter {i}\n") for i in range(1, 5)]
        assert positions == sorted(positions)
        assert "First paragraph of 3.\n\nSecond paragraph of 3." in text

    def test_failed_chapter_is_a_placeholder_blockquote(self):
        text = MarkdownFormatter().format_document(build_document(failed={2}))

        assert "> Chapters: 3 of 4 (1 could not be loaded)" in text
        assert "2. [Chapter 2](#chapter-2) *(missing)*" in text
        assert "> This chapter could not be loaded after 13 attempt(s) (blocked)." in text
        assert f"> Read it online: {chapter_url(2)}" in text

    def test_inferred_chapter_uses_page_heading(self):
        document = build_document(inferred={3, 4}, headings={3: "Chapter 3 - The Well-known Road"})
        formatter = MarkdownFormatter()

        text = formatter.format_document(document)

        assert "## Chapter 3 - The Well-known Road\n" in text
        assert "## Chapter 4\n" in text

    def test_toc_can_be_disabled(self):
        text = MarkdownFormatter(include_toc=False).format_document(build_document())
        assert "Table of Contents" not in text

    @pytest.mark.parametrize(
        "raw, cleaned",
        [
            ("# Not a heading", "\\# Not a heading"),
            ("- quoted dialogue", "\\- quoted dialogue"),
            ("zero\u200bwidth", "zerowidth"),
            ("a\n\n\n\nb", "a\n\nb"),
        ],
    )
    def test_clean_text(self, raw, cleaned):
        assert MarkdownFormatter._clean_text(raw) == cleaned


class TestSingleFileOutput:
    async def test_write_forces_markdown_suffix(self, tmp_path):
        output = SingleFileOutput(tmp_path / "books" / "silent-sword.txt")

        path = await output.write(build_document())

        assert path == tmp_path / "books" / "silent-sword.md"
        assert path.read_text(encoding="utf-8").startswith("# Silent Sword")

    async def test_failed_list(self, tmp_path):
        output = SingleFileOutput(tmp_path / "novel.md")
        document = build_document(failed={2, 4}, inferred={4})

        path = await output.write_failed_list(document.summary)

        assert path == tmp_path / FAILED_LIST_NAME
        lines = path.read_text(encoding="utf-8").splitlines()
        assert lines[0] == "# Failed chapters (2 of 4)"
        assert lines[2:] == [
            f"2\tblocked\t{chapter_url(2)}",
            f"4\tblocked\t{chapter_url(4)}\tinferred",
        ]

    async def test_no_failed_list_when_everything_loaded(self, tmp_path):
        output = SingleFileOutput(tmp_path / "novel.md")
        assert await output.write_failed_list(build_document().summary) is None
        assert not (tmp_path / FAILED_LIST_NAME).exists()
