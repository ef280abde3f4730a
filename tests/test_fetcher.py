"""Tests for the HTTP fetcher, block detection and fallback escalation."""

import random

import httpx
import pytest

from conftest import FakeFetcher, chapter_html, ok, status
from novel_retrieval.config import DEFAULT_USER_AGENTS, FetcherConfig
from novel_retrieval.fetcher import BlockDetector, FallbackFetcher, FetchResult, HttpFetcher, IdentityRotator

URL = "https://novels.example.com/novel/silent-sword/chapter-1"


def config(**kwargs) -> FetcherConfig:
    return FetcherConfig(use_js=False, **kwargs)


class TestHttpFetcher:
    async def test_fetch_success(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(request.headers)
            return httpx.Response(200, text="<html>chapter</html>")

        async with HttpFetcher(config(), transport=httpx.MockTransport(handler)) as fetcher:
            result = await fetcher.fetch(URL, referer="https://novels.example.com/novel/silent-sword/")

        assert result.success
        assert result.html == "<html>chapter</html>"
        assert result.renderer == "http"
        assert seen["referer"] == "https://novels.example.com/novel/silent-sword/"
        assert seen["user-agent"] in DEFAULT_USER_AGENTS

    async def test_redirects_are_followed(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("chapter-1"):
                return httpx.Response(301, headers={"location": URL + "-moved"})
            return httpx.Response(200, text="moved")

        async with HttpFetcher(config(), transport=httpx.MockTransport(handler)) as fetcher:
            result = await fetcher.fetch(URL)

        assert result.final_url == URL + "-moved"
        assert result.html == "moved"

    async def test_too_many_redirects_is_an_error_value(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(302, headers={"location": str(request.url) + "x"})

        async with HttpFetcher(config(max_redirects=2), transport=httpx.MockTransport(handler)) as fetcher:
            result = await fetcher.fetch(URL)

        assert not result.success
        assert result.error
        assert not result.timed_out

    async def test_timeout(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        async with HttpFetcher(config(), transport=httpx.MockTransport(handler)) as fetcher:
            result = await fetcher.fetch(URL)

        assert result.timed_out
        assert result.status_code == 0

    async def test_rate_limited_reads_retry_after(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(429, headers={"retry-after": "7"}, text="slow down")

        async with HttpFetcher(config(), transport=httpx.MockTransport(handler)) as fetcher:
            result = await fetcher.fetch(URL)

        assert result.status_code == 429
        assert result.retry_after == 7.0
        assert not result.success

    async def test_fetch_outside_context_raises(self):
        with pytest.raises(RuntimeError):
            await HttpFetcher(config()).fetch(URL)


class TestIdentityRotator:
    def test_mobile_agent_drops_desktop_hints(self):
        mobile = [ua for ua in DEFAULT_USER_AGENTS if "iPhone" in ua]
        headers = IdentityRotator(mobile).headers()
        assert "Sec-Fetch-User" not in headers
        assert "Referer" not in headers
        assert headers["Sec-Fetch-Site"] == "none"

    def test_desktop_agent_with_referer(self):
        desktop = [DEFAULT_USER_AGENTS[0]]
        headers = IdentityRotator(desktop).headers("https://novels.example.com/")
        assert headers["Sec-Fetch-User"] == "?1"
        assert headers["Referer"] == "https://novels.example.com/"

    def test_rotation_is_seedable(self):
        a = IdentityRotator(rng=random.Random(7))
        b = IdentityRotator(rng=random.Random(7))
        assert [a.user_agent() for _ in range(5)] == [b.user_agent() for _ in range(5)]


class TestBlockDetector:
    def test_challenge_signature(self):
        detector = BlockDetector(min_body_length=0, signatures=["Just a moment..."])
        assert detector(ok(URL, "<title>Just a moment...</title>"))

    def test_short_body(self):
        detector = BlockDetector(min_body_length=5000)
        assert detector(ok(URL, "<html>tiny</html>"))

    def test_error_status(self):
        assert BlockDetector(min_body_length=0)(status(URL, 403, "<html>forbidden</html>"))

    def test_real_page_passes(self):
        detector = BlockDetector.from_config(FetcherConfig(min_body_length=100))
        assert not detector(ok(URL, chapter_html(1)))


class TestFallbackFetcher:
    async def test_uses_primary_when_not_blocked(self):
        primary = FakeFetcher({URL: ok(URL, chapter_html(1))})
        fallback = FakeFetcher({URL: ok(URL, "rendered")})
        chain = FallbackFetcher(primary, fallback, BlockDetector(min_body_length=100))

        async with chain:
            result = await chain.fetch(URL)

        assert result.html == chapter_html(1)
        assert chain.escalations == 0
        assert fallback.entered == 0

    async def test_escalates_when_blocked(self):
        primary = FakeFetcher({URL: status(URL, 403, "<title>Just a moment...</title>")})
        rendered = FetchResult(url=URL, final_url=URL, html=chapter_html(1), status_code=200, renderer="rendered")
        fallback = FakeFetcher({URL: rendered})
        chain = FallbackFetcher(primary, fallback, BlockDetector(min_body_length=100))

        async with chain:
            result = await chain.fetch(URL)
            again = await chain.fetch(URL)

        assert result.renderer == "rendered"
        assert again.renderer == "rendered"
        assert chain.escalations == 2
        assert fallback.entered == 1
        assert fallback.exited == 1
        assert primary.exited == 1

    async def test_keeps_primary_result_when_fallback_fails(self):
        blocked = status(URL, 403, "forbidden")
        primary = FakeFetcher({URL: blocked})
        fallback = FakeFetcher({URL: FetchResult(url=URL, final_url=URL, html="", status_code=0, error="boom")})
        chain = FallbackFetcher(primary, fallback, BlockDetector(min_body_length=100))

        async with chain:
            result = await chain.fetch(URL)

        assert result == blocked

    async def test_fallback_that_cannot_start_is_disabled(self):
        class BrokenFetcher(FakeFetcher):
            async def __aenter__(self):
                raise OSError("no browser installed")

        primary = FakeFetcher({URL: status(URL, 503)})
        fallback = BrokenFetcher()
        chain = FallbackFetcher(primary, fallback, BlockDetector(min_body_length=100))

        async with chain:
            first = await chain.fetch(URL)
            second = await chain.fetch(URL)

        assert first.status_code == second.status_code == 503
        assert chain.escalations == 0
        assert sum(fallback.calls.values()) == 0
