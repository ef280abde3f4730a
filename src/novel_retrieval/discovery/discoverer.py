"""Turn a listing page into an ordered, deduplicated chapter list."""

import logging

from bs4 import BeautifulSoup

from novel_retrieval.config import MAX_CHAPTER_LIMIT, DiscoveryConfig
from novel_retrieval.discovery.base import DiscoveryRule, LinkCandidate, ListingPage
from novel_retrieval.discovery.extrapolation import detect_reported_total, extrapolate_refs
from novel_retrieval.discovery.rules import default_rules
from novel_retrieval.errors import DiscoveryEmpty
from novel_retrieval.fetcher.base import BaseFetcher
from novel_retrieval.models import ChapterRef
from novel_retrieval.utils.rate_limiter import RateLimiter
from novel_retrieval.utils.ttl_store import TTLStore
from novel_retrieval.utils.url_utils import normalize_url

logger = logging.getLogger(__name__)


class ChapterDiscoverer:
    """Run discovery rules in priority order and merge what they find."""

    def __init__(
        self,
        config: DiscoveryConfig,
        rules: list[DiscoveryRule] | None = None,
        fetcher: BaseFetcher | None = None,
        listing_cache: TTLStore[str] | None = None,
        limiter: RateLimiter | None = None,
    ):
        self.config = config
        self.rules = rules if rules is not None else default_rules(config, fetcher, listing_cache, limiter)

    def register_rule(self, rule: DiscoveryRule, position: int | None = None) -> None:
        """Add a rule; by default it runs after the existing ones."""
        if position is None:
            self.rules.append(rule)
        else:
            self.rules.insert(position, rule)

    async def discover(
        self,
        listing: str | BeautifulSoup,
        source_url: str,
        limit: int | None = None,
        reported_total: int | None = None,
    ) -> list[ChapterRef]:
        """Discover chapters on ``listing``, sorted by chapter number.

        Raises:
            ValueError: ``limit`` is outside 1..200.
            DiscoveryEmpty: no rule found a single chapter link.
        """
        limit = limit if limit is not None else self.config.max_chapters
        if not 1 <= limit <= MAX_CHAPTER_LIMIT:
            raise ValueError(f"Chapter limit must be between 1 and {MAX_CHAPTER_LIMIT}, got {limit}")

        soup = listing if isinstance(listing, BeautifulSoup) else BeautifulSoup(listing, "lxml")
        page = ListingPage(url=source_url, soup=soup)

        merged: dict[str, LinkCandidate] = {}
        tried: list[str] = []
        for rule in self.rules:
            tried.append(rule.name)
            candidates = await rule.find(page)
            for candidate in candidates:
                merged.setdefault(normalize_url(candidate.url), candidate)
            logger.debug("Rule %s found %d link(s), %d unique so far", rule.name, len(candidates), len(merged))
            if len(merged) >= self.config.min_chapters:
                break

        if not merged:
            raise DiscoveryEmpty(source_url, tried)

        refs = self._order(list(merged.values()))

        total = reported_total or self.config.reported_total or detect_reported_total(soup)
        if total and len(refs) <= 2 and total > len(refs):
            refs = extrapolate_refs(refs, total)

        refs = refs[:limit]
        logger.info("Discovered %d chapter(s) at %s, keeping %d", len(merged), source_url, len(refs))
        return [ref.model_copy(update={"index": i}) for i, ref in enumerate(refs, start=1)]

    @staticmethod
    def _order(candidates: list[LinkCandidate]) -> list[ChapterRef]:
        """Sort by parsed chapter number, ties broken by discovery order."""
        numbered = [
            (c.number if c.number is not None else float(position), position, c)
            for position, c in enumerate(candidates, start=1)
        ]
        numbered.sort(key=lambda item: (item[0], item[1]))
        return [
            ChapterRef(
                index=i,
                title=c.title or f"Chapter {number:g}",
                url=c.url,
                number=number,
            )
            for i, (number, _, c) in enumerate(numbered, start=1)
        ]
