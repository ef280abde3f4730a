"""Single file output writer."""

from datetime import datetime
from pathlib import Path

import aiofiles

from novel_retrieval.models import Document, JobSummary
from novel_retrieval.output.markdown import MarkdownFormatter

FAILED_LIST_NAME = ".failed-chapters.txt"


class SingleFileOutput:
    """Write a whole document to a single Markdown file."""

    def __init__(self, output_path: Path, include_toc: bool = True):
        self.output_path = Path(output_path)
        self.formatter = MarkdownFormatter(include_toc=include_toc)

    async def write(self, document: Document) -> Path:
        """Write the document and return the path written."""
        self.output_path.parent.mkdir(parents=True, exist_ok=True)

        # Ensure .md extension
        if self.output_path.suffix != ".md":
            self.output_path = self.output_path.with_suffix(".md")

        content = self.formatter.format_document(document)

        async with aiofiles.open(self.output_path, "w", encoding="utf-8") as f:
            await f.write(content)

        return self.output_path

    async def write_failed_list(self, summary: JobSummary) -> Path | None:
        """Record permanently failed chapters next to the output; None if there are none."""
        if not summary.failed_details:
            return None

        path = self.output_path.parent / FAILED_LIST_NAME
        path.parent.mkdir(parents=True, exist_ok=True)
        lines = [
            f"# Failed chapters ({summary.failed} of {summary.requested})",
            f"# Generated {datetime.now().isoformat(timespec='seconds')}",
        ]
        for failed in summary.failed_details:
            reason = failed.reason.value if failed.reason else "unknown"
            note = "\tinferred" if failed.inferred else ""
            lines.append(f"{failed.index}\t{reason}\t{failed.url}{note}")

        async with aiofiles.open(path, "w", encoding="utf-8") as f:
            await f.write("\n".join(lines) + "\n")
        return path
