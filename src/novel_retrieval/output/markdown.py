"""Render an assembled document as Markdown."""

import re
from datetime import datetime
from urllib.parse import urlparse

from novel_retrieval.models import ChapterContent, Document


class MarkdownFormatter:
    """Format a document as one Markdown text with a chapter per section."""

    def __init__(self, include_toc: bool = True):
        self.include_toc = include_toc

    def chapter_title(self, chapter: ChapterContent) -> str:
        """Link text for discovered refs, the page heading for inferred ones."""
        ref = chapter.ref
        if ref.inferred and chapter.heading:
            return " ".join(chapter.heading.split())
        return ref.title.strip() or f"Chapter {ref.index}"

    def format_document(self, document: Document, extracted_at: datetime | None = None) -> str:
        parts = []
        extracted_at = extracted_at or datetime.now()
        summary = document.summary

        parts.append(f"# {document.title or self._site_name(document.source_url)}")
        parts.append("")
        if document.author:
            parts.append(f"> Author: {document.author}")
        if document.source_url:
            parts.append(f"> Source: {document.source_url}")
        if document.cover_url:
            parts.append(f"> Cover: {document.cover_url}")
        parts.append(f"> Extracted on: {extracted_at.isoformat(timespec='seconds')}")
        chapters_line = f"> Chapters: {summary.succeeded} of {summary.requested}"
        if summary.failed:
            chapters_line += f" ({summary.failed} could not be loaded)"
        parts.append(chapters_line)
        parts.append("")

        if self.include_toc and len(document.chapters) > 1:
            parts.append("## Table of Contents")
            parts.append("")
            for chapter in document.chapters:
                marker = "" if chapter.succeeded else " *(missing)*"
                parts.append(
                    f"{chapter.ref.index}. [{self.chapter_title(chapter)}](#{self._anchor(chapter)}){marker}"
                )
            parts.append("")

        parts.append("---")
        parts.append("")

        for chapter in document.chapters:
            parts.append(f'<a id="{self._anchor(chapter)}"></a>')
            parts.append("")
            parts.append(f"## {self.chapter_title(chapter)}")
            parts.append("")
            if chapter.succeeded:
                parts.append(self._clean_text(chapter.body))
            else:
                parts.extend(f"> {line}" if line else ">" for line in chapter.body.split("\n"))
            parts.append("")
            parts.append("---")
            parts.append("")

        return "\n".join(parts)

    @staticmethod
    def _anchor(chapter: ChapterContent) -> str:
        return f"chapter-{chapter.ref.index}"

    @staticmethod
    def _clean_text(text: str) -> str:
        # Remove zero-width spaces, joiners, and BOM
        text = re.sub(r"[\u200B\u200C\u200D\uFEFF]", "", text)
        # Leading markdown markers in prose would turn lines into headings or lists
        text = re.sub(r"(?m)^(\s*)([#>]|[-*+] )", r"\1\\\2", text)
        text = re.sub(r"\n{3,}", "\n\n", text)
        return text.strip()

    @staticmethod
    def _site_name(url: str | None) -> str:
        if not url:
            return "Untitled"
        domain = urlparse(url).netloc.removeprefix("www.")
        return domain.split(".")[0].title() or "Untitled"
