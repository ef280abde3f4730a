"""Tests for chapter discovery."""

import pytest
from bs4 import BeautifulSoup

from conftest import BASE, LISTING_URL, FakeFetcher, listing_html, ok
from novel_retrieval.config import DiscoveryConfig
from novel_retrieval.discovery import (
    AnchorTextRule,
    ChapterDiscoverer,
    ContainerSelectorRule,
    DiscoveryRule,
    LinkCandidate,
    ListingPage,
    SubListingRule,
    parse_chapter_number,
)
from novel_retrieval.errors import DiscoveryEmpty
from novel_retrieval.utils.ttl_store import TTLStore


class TestParseChapterNumber:
    def test_chapter_in_url(self):
        assert parse_chapter_number(f"{BASE}/novel/x/chapter-12") == 12.0

    def test_decimal_chapter(self):
        assert parse_chapter_number(f"{BASE}/novel/x/chapter-12.5") == 12.5

    def test_link_text(self):
        assert parse_chapter_number(f"{BASE}/read/abc", "Ch. 7 - Dawn") == 7.0

    def test_leading_number_in_text(self):
        assert parse_chapter_number(f"{BASE}/read/abc", "3 Crimson Sky") == 3.0

    def test_trailing_path_number(self):
        assert parse_chapter_number(f"{BASE}/book/x/1042.html") == 1042.0

    def test_no_number(self):
        assert parse_chapter_number(f"{BASE}/about", "About us") is None


class TestChapterDiscoverer:
    async def test_sorts_by_number_and_indexes_from_one(self):
        html = listing_html([3, 1, 2, 10, 5])
        refs = await ChapterDiscoverer(DiscoveryConfig()).discover(html, LISTING_URL)

        assert [ref.number for ref in refs] == [1, 2, 3, 5, 10]
        assert [ref.index for ref in refs] == [1, 2, 3, 4, 5]
        assert refs[0].url == f"{BASE}/novel/silent-sword/chapter-1"
        assert refs[0].title == "Chapter 1"

    async def test_duplicates_collapse_to_first_occurrence(self):
        html = f"""
        <ul class="chapter-list">
          <li><a href="/novel/silent-sword/chapter-1">Chapter 1</a></li>
          <li><a href="/novel/silent-sword/chapter-1/">Chapter 1 (again)</a></li>
          <li><a href="/novel/silent-sword/chapter-1#top">Chapter 1 top</a></li>
          <li><a href="https://www.novels.example.com/novel/silent-sword/chapter-2">Chapter 2</a></li>
        </ul>
        """
        refs = await ChapterDiscoverer(DiscoveryConfig(min_chapters=1)).discover(html, LISTING_URL)

        assert len(refs) == 2
        assert refs[0].title == "Chapter 1"
        assert refs[1].number == 2

    async def test_unnumbered_links_sort_by_position(self):
        class FixedRule(DiscoveryRule):
            name = "fixed"

            async def find(self, page: ListingPage) -> list[LinkCandidate]:
                return [LinkCandidate(url=f"{BASE}/s/{slug}", title=slug) for slug in ("intro", "oath", "storm")]

        config = DiscoveryConfig(min_chapters=1)
        refs = await ChapterDiscoverer(config, rules=[FixedRule(config)]).discover("<p></p>", LISTING_URL)

        assert [ref.title for ref in refs] == ["intro", "oath", "storm"]
        assert [ref.number for ref in refs] == [1.0, 2.0, 3.0]

    async def test_is_idempotent(self):
        html = listing_html([4, 2, 8, 6, 1, 9])
        discoverer = ChapterDiscoverer(DiscoveryConfig())

        first = await discoverer.discover(html, LISTING_URL)
        second = await discoverer.discover(html, LISTING_URL)

        assert first == second

    async def test_accepts_parsed_soup(self):
        soup = BeautifulSoup(listing_html(range(1, 6)), "lxml")
        refs = await ChapterDiscoverer(DiscoveryConfig()).discover(soup, LISTING_URL)
        assert len(refs) == 5

    async def test_limit_truncates_after_sorting(self):
        html = listing_html(range(30, 0, -1))
        refs = await ChapterDiscoverer(DiscoveryConfig()).discover(html, LISTING_URL, limit=10)

        assert len(refs) == 10
        assert refs[-1].number == 10

    @pytest.mark.parametrize("limit", [0, 201])
    async def test_limit_out_of_range(self, limit):
        with pytest.raises(ValueError):
            await ChapterDiscoverer(DiscoveryConfig()).discover(listing_html([1]), LISTING_URL, limit=limit)

    async def test_empty_listing_raises(self):
        html = "<html><body><p>This novel has been removed.</p><a href='/about'>About</a></body></html>"
        with pytest.raises(DiscoveryEmpty) as excinfo:
            await ChapterDiscoverer(DiscoveryConfig()).discover(html, LISTING_URL)

        assert excinfo.value.source_url == LISTING_URL
        assert "container-selector" in excinfo.value.rules_tried

    async def test_off_site_links_are_ignored(self):
        html = """
        <ul class="chapter-list">
          <li><a href="https://elsewhere.example.org/chapter-1">Chapter 1</a></li>
        </ul>
        """
        with pytest.raises(DiscoveryEmpty):
            await ChapterDiscoverer(DiscoveryConfig()).discover(html, LISTING_URL)

    async def test_anchor_text_rule_finds_links_outside_containers(self):
        html = "".join(f'<p><a href="/read/{n * 7}">Episode {n}</a></p>' for n in range(1, 6))
        refs = await ChapterDiscoverer(DiscoveryConfig()).discover(html, LISTING_URL)

        assert [ref.number for ref in refs] == [1, 2, 3, 4, 5]

    async def test_stops_once_enough_chapters_found(self):
        calls = []

        class RecordingRule(DiscoveryRule):
            name = "recording"

            async def find(self, page: ListingPage) -> list[LinkCandidate]:
                calls.append(page.url)
                return []

        config = DiscoveryConfig(min_chapters=3)
        discoverer = ChapterDiscoverer(config, rules=[ContainerSelectorRule(config)])
        discoverer.register_rule(RecordingRule(config))

        await discoverer.discover(listing_html([1, 2, 3]), LISTING_URL)
        assert calls == []

    async def test_registered_rule_runs_when_earlier_rules_fall_short(self):
        class FixedRule(DiscoveryRule):
            name = "fixed"

            async def find(self, page: ListingPage) -> list[LinkCandidate]:
                return [self.candidate(f"{BASE}/s/special-{n}", f"Chapter {n}") for n in (1, 2)]

        config = DiscoveryConfig()
        discoverer = ChapterDiscoverer(config, rules=[AnchorTextRule(config)])
        discoverer.register_rule(FixedRule(config), position=0)

        refs = await discoverer.discover("<p>nothing here</p>", LISTING_URL)
        assert [ref.url for ref in refs] == [f"{BASE}/s/special-1", f"{BASE}/s/special-2"]


class TestSubListingRule:
    async def test_finds_full_list_and_caches_it(self):
        sub_url = f"{BASE}/novel-chapters/silent-sword.html"
        fetcher = FakeFetcher({sub_url: ok(sub_url, listing_html(range(1, 8)))})
        cache = TTLStore[str](60)
        config = DiscoveryConfig()
        listing = "<html><body><h1>Silent Sword</h1><p>Synopsis only.</p></body></html>"

        discoverer = ChapterDiscoverer(config, fetcher=fetcher, listing_cache=cache)
        refs = await discoverer.discover(listing, LISTING_URL)

        assert len(refs) == 7
        assert sub_url in cache

        again = await ChapterDiscoverer(config, fetcher=fetcher, listing_cache=cache).discover(listing, LISTING_URL)
        assert again == refs
        assert fetcher.calls[sub_url] == 1
        assert sum(fetcher.calls.values()) == 1

    async def test_candidate_urls_prefer_all_chapters_links(self):
        html = '<a href="/novel/silent-sword/full-index">View all chapters</a>'
        page = ListingPage(url=LISTING_URL, soup=BeautifulSoup(html, "lxml"))
        rule = SubListingRule(DiscoveryConfig(), page_rules=[])

        urls = rule.candidate_urls(page)

        assert urls[0] == f"{BASE}/novel/silent-sword/full-index"
        assert f"{BASE}/novel-chapters/silent-sword.html" in urls
        # The listing page itself is never fetched again
        assert LISTING_URL not in urls

    async def test_without_fetcher_finds_nothing(self):
        page = ListingPage(url=LISTING_URL, soup=BeautifulSoup("<p></p>", "lxml"))
        rule = SubListingRule(DiscoveryConfig(), page_rules=[])
        assert await rule.find(page) == []
