"""Chapter discovery rules, in their default priority order."""

import logging
from urllib.parse import urlparse

from bs4 import BeautifulSoup

from novel_retrieval.config import DiscoveryConfig
from novel_retrieval.discovery.base import (
    DiscoveryRule,
    LinkCandidate,
    ListingPage,
    looks_like_chapter_url,
    text_chapter_number,
)
from novel_retrieval.fetcher.base import BaseFetcher
from novel_retrieval.utils.rate_limiter import RateLimiter
from novel_retrieval.utils.ttl_store import TTLStore
from novel_retrieval.utils.url_utils import extract_slug, normalize_url

logger = logging.getLogger(__name__)

_FULL_LIST_TEXT = ("all chapters", "chapter list", "table of contents", "view all")


class ContainerSelectorRule(DiscoveryRule):
    """Links inside well-known chapter list containers."""

    name = "container-selector"

    async def find(self, page: ListingPage) -> list[LinkCandidate]:
        found = []
        for selector in self.config.container_selectors:
            for container in page.soup.select(selector):
                for url, text in page.iter_links(container):
                    if looks_like_chapter_url(url) or text_chapter_number(text) is not None:
                        found.append(self.candidate(url, text))
        return found


class AnchorTextRule(DiscoveryRule):
    """Any link whose text reads like "Chapter 12", "Ep. 3" or "12 Title"."""

    name = "anchor-text"

    async def find(self, page: ListingPage) -> list[LinkCandidate]:
        return [
            self.candidate(url, text)
            for url, text in page.iter_links()
            if text and text_chapter_number(text) is not None
        ]


class NumericUrlRule(DiscoveryRule):
    """Any link whose URL carries a chapter-like numeric pattern."""

    name = "numeric-url"

    async def find(self, page: ListingPage) -> list[LinkCandidate]:
        return [self.candidate(url, text) for url, text in page.iter_links() if looks_like_chapter_url(url)]


class SubListingRule(DiscoveryRule):
    """Fetch likely full chapter-list pages and run the page rules on them.

    Candidate pages come from the work's slug (``/novel-chapters/<slug>.html``
    and friends) plus any "All chapters" link on the listing page. Fetched
    pages go into ``cache`` when the caller provides one.
    """

    name = "sub-listing"

    def __init__(
        self,
        config: DiscoveryConfig,
        page_rules: list[DiscoveryRule],
        fetcher: BaseFetcher | None = None,
        cache: TTLStore[str] | None = None,
        limiter: RateLimiter | None = None,
    ):
        super().__init__(config)
        self.page_rules = page_rules
        self.fetcher = fetcher
        self.cache = cache
        self.limiter = limiter

    async def find(self, page: ListingPage) -> list[LinkCandidate]:
        if self.fetcher is None:
            return []

        found: list[LinkCandidate] = []
        seen: set[str] = set()
        for url in self.candidate_urls(page):
            html = await self._load(url, referer=page.url)
            if not html:
                continue
            sub_page = ListingPage(url=url, soup=BeautifulSoup(html, "lxml"))
            for rule in self.page_rules:
                for candidate in await rule.find(sub_page):
                    key = normalize_url(candidate.url)
                    if key not in seen:
                        seen.add(key)
                        found.append(candidate)
            if len(found) >= self.config.min_chapters:
                break
        return found

    def candidate_urls(self, page: ListingPage) -> list[str]:
        """Sub-listing URLs worth fetching, most specific first."""
        urls: list[str] = []
        for url, text in page.iter_links():
            if any(marker in text.lower() for marker in _FULL_LIST_TEXT):
                urls.append(url)

        slug = extract_slug(page.url)
        if slug:
            parsed = urlparse(page.url)
            origin = f"{parsed.scheme}://{parsed.netloc}"
            urls.extend(origin + path.format(slug=slug) for path in self.config.sub_listing_paths)

        own = normalize_url(page.url)
        unique: list[str] = []
        seen = {own}
        for url in urls:
            key = normalize_url(url)
            if key not in seen:
                seen.add(key)
                unique.append(url)
        return unique

    async def _load(self, url: str, referer: str) -> str | None:
        if self.cache is not None:
            cached = self.cache.get(url)
            if cached is not None:
                return cached

        assert self.fetcher is not None
        if self.limiter is not None:
            async with self.limiter.slot():
                result = await self.fetcher.fetch(url, referer=referer)
        else:
            result = await self.fetcher.fetch(url, referer=referer)

        if result.status_code != 200 or not result.html:
            logger.debug("Sub-listing %s gave status %s (%s)", url, result.status_code, result.error or "no error")
            return None
        if self.cache is not None:
            self.cache.set(url, result.html)
        return result.html


def default_rules(
    config: DiscoveryConfig,
    fetcher: BaseFetcher | None = None,
    cache: TTLStore[str] | None = None,
    limiter: RateLimiter | None = None,
) -> list[DiscoveryRule]:
    """The built-in rules in priority order; the sub-listing rule reuses the others."""
    page_rules: list[DiscoveryRule] = [
        ContainerSelectorRule(config),
        AnchorTextRule(config),
        NumericUrlRule(config),
    ]
    return [*page_rules, SubListingRule(config, page_rules, fetcher, cache, limiter)]
