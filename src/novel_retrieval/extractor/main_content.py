"""Chapter content extraction cascade."""

import logging
import re

from bs4 import BeautifulSoup
from pydantic import BaseModel

from novel_retrieval.config import ExtractorConfig
from novel_retrieval.extractor.sanitizer import Sanitizer
from novel_retrieval.extractor.strategies import ExtractionStrategy, StrategyRegistry

logger = logging.getLogger(__name__)

_TITLE_SELECTORS = [".chapter-title", "h1.chapter-title", ".chr-title", "h1", "h2.title"]
# " | Site Name" or " - Site Name" after a <title>; hyphenated words keep their dash
_TITLE_SUFFIX = re.compile(r"\s+[|\u2013\u2014-]\s+(?:(?!\s[|\u2013\u2014-]\s).)+$")


class ExtractedContent(BaseModel):
    """Extracted chapter text."""

    text: str
    title: str | None = None
    extraction_method: str | None = None


class ContentExtractor:
    """Run extraction strategies in priority order until one is usable."""

    def __init__(self, config: ExtractorConfig, strategies: list[ExtractionStrategy] | None = None):
        self.config = config
        self.sanitizer = Sanitizer(config)
        self.strategies = strategies if strategies is not None else StrategyRegistry.build(config, self.sanitizer)
        self._sentinels = [s.lower() for s in config.unavailable_sentinels]

    def extract(self, html: str, url: str | None = None) -> ExtractedContent | None:
        """Extract chapter text from HTML; None when the cascade is exhausted."""
        if not html or not html.strip():
            return None

        for strategy in self.strategies:
            try:
                text = strategy.extract(html)
            except Exception:
                logger.debug("Strategy %s raised on %s", strategy.name, url, exc_info=True)
                continue

            if not self.is_usable(text):
                logger.debug("Strategy %s gave nothing usable for %s", strategy.name, url)
                continue

            assert text is not None
            return ExtractedContent(
                text=text,
                title=self.extract_title(html),
                extraction_method=strategy.name,
            )

        return None

    def is_usable(self, text: str | None) -> bool:
        """Long enough and not one of the known "unavailable" placeholders."""
        if not text or len(text) < self.config.min_content_length:
            return False
        lowered = text.lower()
        return not any(sentinel in lowered for sentinel in self._sentinels)

    @staticmethod
    def extract_title(html: str) -> str | None:
        """Best-effort chapter heading from the page."""
        soup = BeautifulSoup(html, "lxml")
        for selector in _TITLE_SELECTORS:
            node = soup.select_one(selector)
            if node:
                title = node.get_text(" ", strip=True)
                if title:
                    return title
        if soup.title and soup.title.string:
            return _TITLE_SUFFIX.sub("", soup.title.string.strip()) or None
        return None
