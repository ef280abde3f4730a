"""Main orchestrator that coordinates the scraping pipeline."""

import logging
import time
from collections import Counter
from pathlib import Path
from urllib.parse import urlparse

from rich.console import Console

from novel_retrieval.config import AppConfig
from novel_retrieval.discovery import ChapterDiscoverer
from novel_retrieval.errors import ListingUnavailable
from novel_retrieval.extractor import ContentExtractor
from novel_retrieval.fetcher import BaseFetcher, BlockDetector, FallbackFetcher, HttpFetcher, PlaywrightFetcher
from novel_retrieval.fetcher.base import FetchResult
from novel_retrieval.models import Document, FailureReason
from novel_retrieval.output.single_file import SingleFileOutput
from novel_retrieval.progress import ProgressReporter, ProgressStatus
from novel_retrieval.scraping import ChapterPipeline, RetryOrchestrator, ScrapeJob
from novel_retrieval.utils.rate_limiter import RateLimiter
from novel_retrieval.utils.ttl_store import TTLStore

logger = logging.getLogger(__name__)


_FAILURE_SUGGESTIONS: dict[FailureReason, str] = {
    FailureReason.TIMEOUT: "Try --delay 2.0 or a smaller --batch-size",
    FailureReason.BLOCKED: "The site is challenging requests; try --js and reduce --max-concurrent",
    FailureReason.EXTRACTION_EMPTY: "The chapter layout was not recognised; rerun with --verbose to debug",
}


class Orchestrator:
    """Coordinates discovery, scraping, assembly and output for one listing URL."""

    def __init__(
        self,
        config: AppConfig,
        console: Console | None = None,
        fetcher: BaseFetcher | None = None,
        listing_cache: TTLStore[str] | None = None,
        write_output: bool = True,
    ):
        self.config = config
        self.console = console or Console()
        self.listing_cache = listing_cache if listing_cache is not None else TTLStore[str](
            config.discovery.listing_cache_ttl_seconds
        )
        self.write_output = write_output
        self._fetcher = fetcher
        self.rate_limiter: RateLimiter | None = None
        self.job: ScrapeJob | None = None
        self.output_path: Path | None = None
        self.failed_list_path: Path | None = None
        self._cancel_requested = False
        self._timings: dict[str, float] = {}

    def cancel(self) -> None:
        """Stop at the next batch boundary."""
        self._cancel_requested = True
        if self.job is not None:
            self.job.cancel()

    async def run(self) -> Document:
        """Execute the full pipeline.

        Raises:
            ListingUnavailable: the listing page could not be fetched.
            DiscoveryEmpty: the listing page had no chapter links.
            JobCancelled: ``cancel()`` was called while scraping.
        """
        started = time.monotonic()
        # One limiter per run, shared by discovery requests and chapter fetches
        self.rate_limiter = RateLimiter(
            self.config.rate_limit.delay_seconds,
            self.config.rate_limit.max_concurrent,
        )
        fetcher = self._fetcher or self._create_fetcher()
        extractor = ContentExtractor(self.config.extractor)
        listing_url = self.config.listing_url

        async with fetcher:
            self.console.print(f"[blue]Discovering chapters from {listing_url}...[/blue]")
            discovery_start = time.monotonic()
            listing = await self._fetch_listing(fetcher)
            discoverer = ChapterDiscoverer(
                self.config.discovery,
                fetcher=fetcher,
                listing_cache=self.listing_cache,
                limiter=self.rate_limiter,
            )
            refs = await discoverer.discover(listing.html, listing.final_url)
            self._timings["discovery"] = time.monotonic() - discovery_start

            inferred = sum(1 for ref in refs if ref.inferred)
            found = f"[green]Found {len(refs)} chapters to scrape[/green]"
            if inferred:
                found += f" [dim]({inferred} inferred from the URL pattern)[/dim]"
            self.console.print(found)

            self.job = ScrapeJob.from_config(listing.final_url, refs, self.config)
            if self._cancel_requested:
                self.job.cancel()

            retry = RetryOrchestrator(
                fetcher,
                extractor,
                self.rate_limiter,
                self.config.retry,
                BlockDetector.from_config(self.config.fetcher),
                referer=listing.final_url,
            )
            pipeline = ChapterPipeline(retry, self.config.rate_limit.batch_pause_seconds)
            reporter = ProgressReporter(
                self._print_progress,
                self.config.progress.interval_seconds,
                self.config.progress.bar_width,
            )

            scrape_start = time.monotonic()
            assembler = await pipeline.run(self.job, reporter)
            self._timings["scrape"] = time.monotonic() - scrape_start
            escalations = fetcher.escalations if isinstance(fetcher, FallbackFetcher) else 0

        document = assembler.build(
            title=self.config.title or self._default_title(listing_url),
            author=self.config.author or "Unknown",
            cover_url=self.config.cover_url,
            source_url=listing.final_url,
        )

        if self.write_output:
            writer = SingleFileOutput(self.config.output.path, include_toc=self.config.output.include_toc)
            output_start = time.monotonic()
            self.output_path = await writer.write(document)
            if self.config.output.write_failed_list:
                self.failed_list_path = await writer.write_failed_list(document.summary)
            self._timings["output"] = time.monotonic() - output_start
            size = self.output_path.stat().st_size
            self.console.print(
                f"[green]Written to {self.output_path}"
                f" ({_format_size(size)}, {len(document.chapters)} chapters)[/green]"
            )

        self._timings["total"] = time.monotonic() - started
        self._print_summary(document, retry.attempts_made, escalations)
        return document

    async def _fetch_listing(self, fetcher: BaseFetcher) -> FetchResult:
        assert self.rate_limiter is not None
        async with self.rate_limiter.slot():
            result = await fetcher.fetch(self.config.listing_url)
        if not result.success or not result.html:
            raise ListingUnavailable(self.config.listing_url, result.error or f"HTTP {result.status_code}")
        return result

    def _create_fetcher(self) -> BaseFetcher:
        """HTTP first; escalate to the browser when the page looks blocked."""
        http = HttpFetcher(self.config.fetcher)
        if not self.config.fetcher.use_js:
            return http
        return FallbackFetcher(
            http,
            PlaywrightFetcher(self.config.fetcher),
            BlockDetector.from_config(self.config.fetcher),
        )

    def _print_progress(self, status: ProgressStatus) -> None:
        self.console.print(f"  [cyan]Scraping[/cyan] {status.render()}")

    @staticmethod
    def _default_title(url: str) -> str:
        path = urlparse(url).path.strip("/").split("/")
        slug = path[-1] if path and path[-1] else urlparse(url).netloc
        slug = slug.removesuffix(".html")
        return slug.replace("-", " ").replace("_", " ").title()

    def _print_summary(self, document: Document, attempts: int, escalations: int) -> None:
        """Print a post-run summary report."""
        summary = document.summary
        self.console.print()
        self.console.print("[bold]Scrape complete[/bold]")
        self.console.print()

        self.console.print(f"  Chapters requested: {summary.requested}")
        self.console.print(f"  Chapters scraped:   [green]{summary.succeeded}[/green]")
        if summary.failed:
            self.console.print(f"  Failed:             [red]{summary.failed}[/red]")
        self.console.print()

        self.console.print("[bold]Timing[/bold]")
        self.console.print(f"  Total:     {self._timings.get('total', 0.0):.1f}s")
        for phase in ("discovery", "scrape", "output"):
            if phase in self._timings:
                self.console.print(f"  {phase.title() + ':':<10s} {self._timings[phase]:.1f}s")
        total_time = self._timings.get("total", 0.0)
        if total_time > 0 and summary.succeeded:
            self.console.print()
            self.console.print(f"  [bold]Throughput: {summary.succeeded / total_time:.2f} chapters/sec[/bold]")

        method_counts: Counter[str] = Counter(
            c.extraction_method for c in document.chapters if c.succeeded and c.extraction_method
        )
        if method_counts:
            self.console.print()
            self.console.print("[bold]Extraction methods[/bold]")
            for method, count in method_counts.most_common():
                self.console.print(f"  {method:<18s} {count}")

        retried = [c for c in document.chapters if c.attempts > 1]
        if retried or escalations:
            self.console.print()
            self.console.print("[bold]Retries[/bold]")
            self.console.print(f"  Fetch attempts:     {attempts}")
            if retried:
                most = max(retried, key=lambda c: c.attempts)
                self.console.print(f"  Chapters retried:   {len(retried)}")
                self.console.print(f"  Most retried:       chapter {most.ref.index} ({most.attempts} attempts)")
            if escalations:
                self.console.print(f"  Rendered fallbacks: {escalations}")

        limiter = self.rate_limiter
        if limiter is not None and limiter.backoff_count > 0:
            self.console.print()
            self.console.print("[bold]Rate limiting[/bold]")
            self.console.print(f"  429 backoffs:    {limiter.backoff_count}")
            self.console.print(f"  Peak delay:      {limiter.peak_delay:.1f}s")
            self.console.print(
                f"  Final delay:     {limiter.delay_seconds:.1f}s (configured {limiter.original_delay:.1f}s)"
            )

        if summary.failed_details:
            self.console.print()
            reasons: Counter[FailureReason] = Counter(f.reason for f in summary.failed_details if f.reason)
            self.console.print("[bold red]Failures[/bold red]")
            for reason, count in reasons.most_common():
                self.console.print(f"  {reason.value:<18s} {count}")
            if reasons:
                suggestion = _FAILURE_SUGGESTIONS.get(reasons.most_common(1)[0][0])
                if suggestion:
                    self.console.print(f"  [dim]Suggestion: {suggestion}[/dim]")
            if summary.inferred_failures:
                self.console.print(
                    f"  [dim]{summary.inferred_failures} of these were inferred URLs"
                    " that may not exist on the site[/dim]"
                )
            self.console.print()
            for failed in summary.failed_details[:10]:
                self.console.print(f"  [red]Chapter {failed.index}[/red]: {failed.title} ({_truncate_url(failed.url, 50)})")
            if len(summary.failed_details) > 10:
                self.console.print(f"  [dim]... and {len(summary.failed_details) - 10} more[/dim]")
            if self.failed_list_path:
                self.console.print(f"[yellow]Failed chapters: {self.failed_list_path}[/yellow]")


def _format_size(size_bytes: int) -> str:
    """Format a byte size as a human-readable string."""
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    else:
        return f"{size_bytes / (1024 * 1024):.1f} MB"


def _truncate_url(url: str, max_len: int) -> str:
    """Truncate a URL for display, keeping the path visible."""
    path = urlparse(url).path
    if len(path) > max_len:
        return "..." + path[-(max_len - 3):]
    return path or url[:max_len]
