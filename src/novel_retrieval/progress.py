"""Throttled progress reporting."""

import math
import time
from collections.abc import Callable

from pydantic import BaseModel

FILLED = "■"
EMPTY = "□"


def format_eta(seconds: float | None) -> str:
    if seconds is None:
        return "calculating..."
    if seconds < 5:
        return "almost done"
    if seconds < 60:
        return f"~{int(seconds)}s"
    minutes, secs = divmod(int(seconds), 60)
    return f"~{minutes}m {secs}s"


class ProgressStatus(BaseModel):
    """One emitted progress snapshot."""

    current: int
    total: int
    percent: int
    bar: str
    elapsed_seconds: float
    eta_seconds: float | None = None

    @property
    def eta(self) -> str:
        if self.current >= self.total:
            return "done"
        return format_eta(self.eta_seconds)

    def render(self) -> str:
        return f"[{self.bar}] {self.percent}% ({self.current}/{self.total}) ETA: {self.eta}"


class ProgressReporter:
    """Turn per-chapter ticks into at most one status per interval.

    Ticks arriving inside the interval are dropped, except the terminal
    tick (``current == total``) which always produces a status. A tick
    with a different ``total`` starts a new phase with its own clock.
    """

    def __init__(
        self,
        callback: Callable[[ProgressStatus], None] | None = None,
        interval_seconds: float = 2.0,
        bar_width: int = 15,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.callback = callback
        self.interval_seconds = interval_seconds
        self.bar_width = bar_width
        self._clock = clock
        self._started: float | None = None
        self._total: int | None = None
        self._last_emit: float | None = None
        self.ticks: int = 0
        self.emitted: int = 0

    def __call__(self, current: int, total: int) -> ProgressStatus | None:
        return self.report(current, total)

    def report(self, current: int, total: int) -> ProgressStatus | None:
        """Record a tick; return the status if one was emitted."""
        now = self._clock()
        if self._started is None or total != self._total:
            self._started = now
            self._total = total
            self._last_emit = None
        self.ticks += 1

        terminal = current >= total
        if not terminal and self._last_emit is not None and now - self._last_emit < self.interval_seconds:
            return None

        status = self.status(current, total, now - self._started)
        self._last_emit = now
        self.emitted += 1
        if self.callback is not None:
            self.callback(status)
        return status

    def status(self, current: int, total: int, elapsed: float) -> ProgressStatus:
        ratio = min(current / total, 1.0) if total > 0 else 1.0
        percent = math.floor(ratio * 100)
        filled = math.floor(ratio * self.bar_width)
        eta = None
        if current > 0:
            eta = elapsed / current * max(total - current, 0)
        return ProgressStatus(
            current=current,
            total=total,
            percent=percent,
            bar=FILLED * filled + EMPTY * (self.bar_width - filled),
            elapsed_seconds=elapsed,
            eta_seconds=eta,
        )
