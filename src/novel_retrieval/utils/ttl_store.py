"""Keyed store with explicit time-to-live eviction."""

import time
from collections.abc import Callable
from typing import Generic, TypeVar

V = TypeVar("V")


class TTLStore(Generic[V]):
    """A small dict whose entries expire ``ttl_seconds`` after being set.

    Owned by the caller and passed into the components that need it, so
    nothing in the pipeline keeps process-global lookup state. Expired
    entries are dropped lazily on access and by :meth:`evict_expired`.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._items: dict[str, tuple[float, V]] = {}

    def set(self, key: str, value: V) -> None:
        self._items[key] = (self._clock() + self.ttl_seconds, value)

    def get(self, key: str) -> V | None:
        entry = self._items.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._items[key]
            return None
        return value

    def evict_expired(self) -> int:
        """Drop every expired entry and return how many were removed."""
        now = self._clock()
        expired = [k for k, (expires_at, _) in self._items.items() if now >= expires_at]
        for key in expired:
            del self._items[key]
        return len(expired)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        return len(self._items)
