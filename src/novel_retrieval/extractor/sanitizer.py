"""Strategy-independent cleanup of chapter markup and text."""

import re
from collections.abc import Iterable

from bs4 import BeautifulSoup, Tag

from novel_retrieval.config import ExtractorConfig

# Phrases removed from inside otherwise good paragraphs
_INLINE_BOILERPLATE = [
    re.compile(r"use\s+arrow\s+keys\s*\(or\s+a\s*/\s*d\)\s*to\s+prev/next\s+chapter", re.I),
    re.compile(r"use\s+arrow\s+keys.{0,60}?chapter", re.I),
    re.compile(r"←[^→]{0,80}→"),
    re.compile(r"previous\s+chapter\s*[|/·•]\s*(?:table\s+of\s+contents\s*[|/·•]\s*)?next\s+chapter", re.I),
]
_WHITESPACE = re.compile(r"\s+")
_BLOCK_TAGS = ["p", "div", "li", "h1", "h2", "h3", "h4", "h5", "h6", "blockquote", "section"]

# Navigation prompts are short; longer paragraphs are story text even when
# they open like a prompt.
_MAX_BOILERPLATE_LENGTH = 150


class Sanitizer:
    """Strip page chrome and boilerplate, normalize paragraphs.

    Holds only compiled configuration, so one instance can be shared by
    every extraction strategy without coupling them.
    """

    def __init__(self, config: ExtractorConfig):
        self.config = config
        self._boilerplate = [re.compile(p, re.I) for p in config.boilerplate_patterns]

    def parse(self, html: str) -> BeautifulSoup:
        """Parse ``html`` and drop script/style/navigation/ad elements."""
        soup = BeautifulSoup(html, "lxml")
        self.clean_soup(soup)
        return soup

    def clean_soup(self, soup: BeautifulSoup | Tag) -> None:
        for selector in self.config.remove_selectors:
            for elem in soup.select(selector):
                elem.decompose()

    def strip_inline_boilerplate(self, text: str) -> str:
        for pattern in _INLINE_BOILERPLATE:
            text = pattern.sub(" ", text)
        return text

    def is_boilerplate(self, paragraph: str) -> bool:
        if len(paragraph) > _MAX_BOILERPLATE_LENGTH:
            return False
        return any(p.search(paragraph) for p in self._boilerplate)

    def clean_paragraphs(self, paragraphs: Iterable[str]) -> list[str]:
        """Normalize whitespace, strip boilerplate, drop short paragraphs."""
        cleaned = []
        for paragraph in paragraphs:
            text = _WHITESPACE.sub(" ", self.strip_inline_boilerplate(paragraph)).strip()
            if len(text) < self.config.min_paragraph_length:
                continue
            if self.is_boilerplate(text):
                continue
            cleaned.append(text)
        return cleaned


def text_lines(node: Tag) -> list[str]:
    """Split a node's text into lines at ``<br>`` and block boundaries.

    Mutates ``node``; callers pass a freshly parsed tree.
    """
    for br in node.find_all("br"):
        br.replace_with("\n")
    for block in node.find_all(_BLOCK_TAGS):
        block.append("\n")
    return [line.strip() for line in node.get_text().split("\n") if line.strip()]


def paragraph_texts(node: Tag) -> list[str]:
    return [p.get_text(" ", strip=True) for p in node.find_all("p")]
