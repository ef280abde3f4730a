"""Shared fixtures: canned pages and a scriptable in-memory fetcher."""

import asyncio
import random
from collections import Counter

import pytest

from novel_retrieval.config import AppConfig, ExtractorConfig, FetcherConfig, RetryConfig
from novel_retrieval.fetcher.base import BaseFetcher, FetchResult

BASE = "https://novels.example.com"
LISTING_URL = f"{BASE}/novel/silent-sword/"


def chapter_html(number: int, paragraphs: int = 6, heading: str | None = None) -> str:
    body = "\n".join(
        f"<p>Paragraph {i} of part {number}: the wanderer crossed the frozen river and kept walking north.</p>"
        for i in range(1, paragraphs + 1)
    )
    heading = heading or f"Chapter {number}: The Crossing"
    return f"""
    <html><head><title>{heading} | Example Novels</title></head>
    <body>
      <nav><a href="/">Home</a> <a href="/novel/silent-sword/">Index</a></nav>
      <h1 class="chapter-title">{heading}</h1>
      <div id="chapter-content">{body}</div>
      <footer>Copyright Example Novels</footer>
    </body></html>
    """


def listing_html(numbers, container: str = "chapter-list", prefix: str = "/novel/silent-sword/chapter-") -> str:
    items = "\n".join(f'<li><a href="{prefix}{n}">Chapter {n}</a></li>' for n in numbers)
    return f"""
    <html><head><title>Silent Sword</title></head>
    <body>
      <h1>Silent Sword</h1>
      <ul class="{container}">{items}</ul>
    </body></html>
    """


def chapter_url(number: int) -> str:
    return f"{BASE}/novel/silent-sword/chapter-{number}"


def ok(url: str, html: str) -> FetchResult:
    return FetchResult(url=url, final_url=url, html=html, status_code=200)


def status(url: str, code: int, html: str = "", retry_after: float | None = None) -> FetchResult:
    return FetchResult(url=url, final_url=url, html=html, status_code=code, retry_after=retry_after)


def timeout(url: str) -> FetchResult:
    return FetchResult(url=url, final_url=url, html="", status_code=0, error="timeout", timed_out=True)


class FakeFetcher(BaseFetcher):
    """Serve canned results by URL.

    A route maps a URL to a FetchResult, a list of FetchResults (served in
    order, the last one repeating) or a callable taking the call count.
    Unknown URLs get a 404.
    """

    name = "fake"

    def __init__(self, routes=None, delays=None, config: FetcherConfig | None = None):
        super().__init__(config or FetcherConfig(use_js=False))
        self.routes = dict(routes or {})
        self.delays = delays or {}
        self.calls: Counter[str] = Counter()
        self.referers: list[str | None] = []
        self.entered = 0
        self.exited = 0

    async def __aenter__(self):
        self.entered += 1
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.exited += 1

    async def fetch(self, url: str, referer: str | None = None) -> FetchResult:
        self.calls[url] += 1
        self.referers.append(referer)
        delay = self.delays.get(url)
        if delay:
            await asyncio.sleep(delay)
        route = self.routes.get(url)
        if route is None:
            return status(url, 404)
        if callable(route):
            return route(self.calls[url])
        if isinstance(route, list):
            return route[min(self.calls[url], len(route)) - 1]
        return route


class SleepRecorder:
    """Stand-in for asyncio.sleep that records delays without waiting."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        await asyncio.sleep(0)


@pytest.fixture
def sleep():
    return SleepRecorder()


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def extractor_config():
    return ExtractorConfig()


@pytest.fixture
def fast_retry_config():
    return RetryConfig(
        pass1_budget=3,
        pass2_budget=10,
        base_delay=0.0,
        max_delay=0.0,
        jitter=0.0,
        second_pass_delay_min=0.0,
        second_pass_delay_max=0.0,
    )


@pytest.fixture
def app_config(tmp_path):
    return AppConfig.model_validate(
        {
            "listing_url": LISTING_URL,
            "title": "Silent Sword",
            "author": "A. Writer",
            "fetcher": {"use_js": False},
            "retry": {
                "base_delay": 0.0,
                "max_delay": 0.0,
                "jitter": 0.0,
                "second_pass_delay_min": 0.0,
                "second_pass_delay_max": 0.0,
            },
            "rate_limit": {"batch_size": 4, "max_concurrent": 4, "delay_seconds": 0.0, "batch_pause_seconds": 0.0},
            "progress": {"interval_seconds": 0.0},
            "output": {"path": str(tmp_path / "out" / "novel.md")},
        }
    )
