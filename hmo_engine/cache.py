"""
Expiring in-process cache for external lookups.

Keys are typed, hashable values (frozen dataclasses) rather than ad-hoc
strings. Empty results are only cached when the caller confirms the source
has no data; a transient empty (timeout, 5xx) is never remembered.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Generic, Hashable, Optional, TypeVar

from hmo_engine.address import normalise_uk_postcode


K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


@dataclass(frozen=True)
class GeocodeKey:
    """Fingerprint of a geocoding request."""

    postcode: str

    @classmethod
    def for_postcode(cls, postcode: str) -> "GeocodeKey":
        return cls(postcode=normalise_uk_postcode(postcode))


@dataclass(frozen=True)
class CacheHit(Generic[V]):
    """A cached value; value may be None for a confirmed-empty entry."""

    value: Optional[V]
    stored_at: float
    expires_at: float

    @property
    def confirmed_empty(self) -> bool:
        return _is_empty(self.value)


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    try:
        return len(value) == 0
    except TypeError:
        return False


class TTLCache(Generic[K, V]):
    """
    Thread-safe TTL cache.

    Args:
        ttl_seconds: Lifetime of entries holding data
        empty_ttl_seconds: Lifetime of confirmed-empty entries
        clock: Monotonic time source, injectable for tests
    """

    def __init__(
        self,
        ttl_seconds: float,
        empty_ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        if empty_ttl_seconds is not None and empty_ttl_seconds < 0:
            raise ValueError("empty_ttl_seconds cannot be negative")
        self.ttl_seconds = ttl_seconds
        self.empty_ttl_seconds = ttl_seconds if empty_ttl_seconds is None else empty_ttl_seconds
        self._clock = clock
        self._entries: dict[K, CacheHit[V]] = {}
        self._lock = threading.Lock()

    def get(self, key: K) -> Optional[CacheHit[V]]:
        """Live entry for a key, or None on a miss. Expired entries are evicted."""
        now = self._clock()
        with self._lock:
            hit = self._entries.get(key)
            if hit is None:
                return None
            if hit.expires_at <= now:
                del self._entries[key]
                return None
            return hit

    def put(self, key: K, value: Optional[V], confirmed_empty: bool = False) -> bool:
        """
        Store a value.

        An empty value is stored only with confirmed_empty=True, under
        empty_ttl_seconds.

        Returns:
            True if the value was cached
        """
        empty = _is_empty(value)
        if empty and not confirmed_empty:
            return False
        ttl = self.empty_ttl_seconds if empty else self.ttl_seconds
        if ttl <= 0:
            return False

        now = self._clock()
        with self._lock:
            self._entries[key] = CacheHit(value=value, stored_at=now, expires_at=now + ttl)
        return True

    def invalidate(self, key: K) -> bool:
        """Drop one entry. Returns True if it existed."""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        now = self._clock()
        with self._lock:
            return sum(1 for hit in self._entries.values() if hit.expires_at > now)

    def __contains__(self, key: object) -> bool:
        return self.get(key) is not None  # type: ignore[arg-type]
