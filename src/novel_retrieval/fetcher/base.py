"""Base class for page fetchers."""

from abc import ABC, abstractmethod
from email.utils import parsedate_to_datetime

from pydantic import BaseModel

from novel_retrieval.config import FetcherConfig


class FetchResult(BaseModel):
    """Result of fetching a page."""

    url: str
    final_url: str  # After redirects
    html: str
    status_code: int
    error: str | None = None
    timed_out: bool = False
    retry_after: float | None = None
    renderer: str = "http"

    @property
    def success(self) -> bool:
        return 200 <= self.status_code < 400 and not self.error


class BlockDetector:
    """Decide whether a fetch result looks like it was blocked.

    A result counts as blocked when the request failed, the status is not a
    success, the body carries an interstitial-challenge signature, or the
    body is implausibly small for a chapter page.
    """

    def __init__(self, min_body_length: int = 5000, signatures: list[str] | None = None):
        self.min_body_length = min_body_length
        self.signatures = [s.lower() for s in (signatures or [])]

    @classmethod
    def from_config(cls, config: FetcherConfig) -> "BlockDetector":
        return cls(config.min_body_length, config.block_signatures)

    def __call__(self, result: FetchResult) -> bool:
        if not result.success:
            return True
        if self.has_signature(result.html):
            return True
        return len(result.html) < self.min_body_length

    def has_signature(self, html: str) -> bool:
        if not self.signatures:
            return False
        lowered = html.lower()
        return any(sig in lowered for sig in self.signatures)


class BaseFetcher(ABC):
    """Abstract base class for page fetchers.

    ``fetch`` never raises for transport problems; those come back as a
    ``FetchResult`` with ``error`` set (and ``timed_out`` for timeouts).
    """

    name = "base"

    def __init__(self, config: FetcherConfig):
        self.config = config

    @abstractmethod
    async def fetch(self, url: str, referer: str | None = None) -> FetchResult:
        """Fetch a page and return its HTML content."""
        pass

    @staticmethod
    def _parse_retry_after(header_value: str | None) -> float | None:
        """Parse a Retry-After header value into seconds.

        Supports both delta-seconds (e.g. "120") and HTTP-date formats.
        Returns None if the header is missing or unparseable.
        """
        if not header_value:
            return None
        try:
            return max(0.0, float(header_value))
        except ValueError:
            pass
        try:
            from datetime import datetime, timezone

            dt = parsedate_to_datetime(header_value)
            delta = (dt - datetime.now(timezone.utc)).total_seconds()
            return max(0.0, delta)
        except (TypeError, ValueError):
            return None

    @abstractmethod
    async def __aenter__(self):
        """Async context manager entry."""
        pass

    @abstractmethod
    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        pass
