"""Base classes for chapter discovery rules."""

import re
from abc import ABC, abstractmethod
from collections.abc import Iterator
from dataclasses import dataclass
from urllib.parse import urlparse

from bs4 import BeautifulSoup, Tag
from pydantic import BaseModel

from novel_retrieval.config import DiscoveryConfig
from novel_retrieval.utils.url_utils import is_same_site, make_absolute, normalize_url

URL_CHAPTER_PATTERN = re.compile(r"chapter[-_/]?(\d+(?:\.\d+)?)", re.I)
NUMERIC_URL_PATTERNS = [
    URL_CHAPTER_PATTERN,
    re.compile(r"-chapter-", re.I),
    re.compile(r"/\d+\.html?$", re.I),
]
TEXT_CHAPTER_PATTERNS = [
    re.compile(r"chapter\s*(\d+(?:\.\d+)?)", re.I),
    re.compile(r"\bch\.?\s*(\d+(?:\.\d+)?)", re.I),
    re.compile(r"episode\s*(\d+)", re.I),
    re.compile(r"\bep\.?\s*(\d+)", re.I),
    re.compile(r"^(\d+)\s+\w"),  # "1 Crimson", "2 Situation"
    re.compile(r"^\s*(\d+)\s*$"),
]
_TRAILING_PATH_NUMBER = re.compile(r"(\d+)(?:\.html?)?/?$", re.I)


class LinkCandidate(BaseModel):
    """A link a rule believes points at a chapter."""

    url: str
    title: str = ""
    number: float | None = None


@dataclass
class ListingPage:
    """A parsed page that may enumerate chapters."""

    url: str
    soup: BeautifulSoup

    def iter_links(self, root: BeautifulSoup | Tag | None = None) -> Iterator[tuple[str, str]]:
        """Yield ``(absolute_url, link_text)`` for on-site links under ``root``.

        Links back to the listing page itself are skipped.
        """
        root = root if root is not None else self.soup
        anchors = [root] if isinstance(root, Tag) and root.name == "a" else root.find_all("a", href=True)
        own = normalize_url(self.url)
        for a in anchors:
            href = a.get("href")
            if not isinstance(href, str):
                continue
            url = make_absolute(self.url, href)
            if url is None or not is_same_site(url, self.url):
                continue
            if normalize_url(url) == own:
                continue
            yield url, a.get_text(" ", strip=True)


def text_chapter_number(text: str) -> float | None:
    for pattern in TEXT_CHAPTER_PATTERNS:
        match = pattern.search(text)
        if match:
            return float(match.group(1))
    return None


def parse_chapter_number(url: str, text: str = "") -> float | None:
    """Infer a chapter number from the URL or link text.

    Tries ``chapter-N`` in the URL, then the link-text patterns, then a
    trailing number in the URL path.
    """
    path = urlparse(url).path
    match = URL_CHAPTER_PATTERN.search(path)
    if match:
        return float(match.group(1))
    number = text_chapter_number(text) if text else None
    if number is not None:
        return number
    match = _TRAILING_PATH_NUMBER.search(path)
    if match:
        return float(match.group(1))
    return None


def looks_like_chapter_url(url: str) -> bool:
    path = urlparse(url).path
    return any(p.search(path) for p in NUMERIC_URL_PATTERNS)


class DiscoveryRule(ABC):
    """One heuristic for finding chapter links on a listing page."""

    name: str = ""

    def __init__(self, config: DiscoveryConfig):
        self.config = config

    @abstractmethod
    async def find(self, page: ListingPage) -> list[LinkCandidate]:
        """Return candidate chapter links in page order."""
        ...

    @staticmethod
    def candidate(url: str, text: str) -> LinkCandidate:
        return LinkCandidate(url=url, title=text, number=parse_chapter_number(url, text))
