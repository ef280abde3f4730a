"""Chapter text extraction strategies and their registry.

Every strategy is a pure function of the page HTML: it parses its own
tree, returns normalized text (paragraphs separated by blank lines) or
None, and shares nothing mutable with the others. Supporting a new kind
of source means registering another strategy, not editing the cascade.
"""

import re
from abc import ABC, abstractmethod

import trafilatura
from bs4 import BeautifulSoup
from readability import Document  # type: ignore[import-untyped]

from novel_retrieval.config import ExtractorConfig
from novel_retrieval.extractor.sanitizer import Sanitizer, paragraph_texts, text_lines

_NAV_LINE = re.compile(r"^(previous|next|chapter|menu|home)\b", re.I)
_NOISE_LINE = re.compile(r"advertisement|subscribe|login", re.I)


class ExtractionStrategy(ABC):
    """Turn one fetched page into chapter text, or None."""

    name: str = ""

    def __init__(self, config: ExtractorConfig, sanitizer: Sanitizer | None = None):
        self.config = config
        self.sanitizer = sanitizer or Sanitizer(config)

    @abstractmethod
    def extract(self, html: str) -> str | None:
        ...

    def _join(self, paragraphs: list[str]) -> str | None:
        cleaned = self.sanitizer.clean_paragraphs(paragraphs)
        return "\n\n".join(cleaned) if cleaned else None


class StrategyRegistry:
    """Registry of named extraction strategies."""

    _strategies: dict[str, type[ExtractionStrategy]] = {}

    @classmethod
    def register(cls, strategy: type[ExtractionStrategy]) -> type[ExtractionStrategy]:
        """Register a strategy class under its ``name`` (usable as a decorator)."""
        cls._strategies[strategy.name] = strategy
        return strategy

    @classmethod
    def get(cls, name: str) -> type[ExtractionStrategy] | None:
        return cls._strategies.get(name)

    @classmethod
    def names(cls) -> list[str]:
        return list(cls._strategies)

    @classmethod
    def build(cls, config: ExtractorConfig, sanitizer: Sanitizer | None = None) -> list[ExtractionStrategy]:
        """Instantiate the configured strategies in priority order."""
        sanitizer = sanitizer or Sanitizer(config)
        strategies = []
        for name in config.strategies:
            strategy_cls = cls._strategies.get(name)
            if strategy_cls is None:
                raise ValueError(f"Unknown extraction strategy: {name}")
            strategies.append(strategy_cls(config, sanitizer))
        return strategies


@StrategyRegistry.register
class SelectorStrategy(ExtractionStrategy):
    """Pick the largest known chapter container and read its paragraphs."""

    name = "selector"

    def extract(self, html: str) -> str | None:
        soup = self.sanitizer.parse(html)

        best = None
        best_length = 0
        for selector in self.config.content_selectors:
            node = soup.select_one(selector)
            if node is None:
                continue
            length = len(node.get_text(strip=True))
            if length > best_length and length > self.config.min_selector_text:
                best, best_length = node, length

        if best is None:
            return None

        paragraphs = paragraph_texts(best)
        # Many sources separate lines with <br> instead of <p>
        if len(paragraphs) < 3:
            paragraphs = text_lines(best)
        return self._join(paragraphs)


@StrategyRegistry.register
class ParagraphDensityStrategy(ExtractionStrategy):
    """Score block elements by paragraph count times text length."""

    name = "paragraph-density"

    def extract(self, html: str) -> str | None:
        soup = self.sanitizer.parse(html)

        best = None
        max_score = 0
        for elem in soup.find_all(["div", "article", "section", "main"]):
            text_length = len(elem.get_text(strip=True))
            if text_length <= self.config.min_density_text:
                continue
            score = len(elem.find_all("p")) * text_length
            if score > max_score:
                best, max_score = elem, score

        if best is None:
            return None
        return self._join(paragraph_texts(best))


@StrategyRegistry.register
class ReadabilityStrategy(ExtractionStrategy):
    """Delegate to readability-lxml's article scoring."""

    name = "readability"

    def extract(self, html: str) -> str | None:
        summary = Document(html).summary()
        if not summary:
            return None
        soup = BeautifulSoup(summary, "lxml")
        self.sanitizer.clean_soup(soup)
        paragraphs = paragraph_texts(soup)
        if len(paragraphs) < 3:
            paragraphs = text_lines(soup)
        return self._join(paragraphs)


@StrategyRegistry.register
class TrafilaturaStrategy(ExtractionStrategy):
    """Delegate to trafilatura's main-text extraction."""

    name = "trafilatura"

    def extract(self, html: str) -> str | None:
        text = trafilatura.extract(
            html,
            output_format="txt",
            include_comments=False,
            include_tables=False,
            include_images=False,
            include_links=False,
            deduplicate=True,
        )
        if not text:
            return None
        return self._join(text.split("\n"))


@StrategyRegistry.register
class BruteForceStrategy(ExtractionStrategy):
    """Keep every long line of body text that does not look like chrome."""

    name = "brute-force"

    def extract(self, html: str) -> str | None:
        soup = self.sanitizer.parse(html)
        body = soup.body or soup

        lines = [
            line
            for line in text_lines(body)
            if len(line) > self.config.min_brute_force_line
            and not _NAV_LINE.match(line)
            and not _NOISE_LINE.search(line)
        ]
        if len(lines) < self.config.min_brute_force_lines:
            return None
        return self._join(lines)
