"""Document assembly and output writers."""

from novel_retrieval.output.assembler import DocumentAssembler
from novel_retrieval.output.markdown import MarkdownFormatter
from novel_retrieval.output.single_file import SingleFileOutput

__all__ = ["DocumentAssembler", "MarkdownFormatter", "SingleFileOutput"]
