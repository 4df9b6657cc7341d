"""
Tests for the TTL cache used by external lookups.

Verifies:
- Entries expire after their TTL
- Empty values are only cached when confirmed
- Confirmed-empty entries use the shorter TTL
"""

import pytest
from pathlib import Path
import sys

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from hmo_engine.cache import GeocodeKey, TTLCache


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return TTLCache(ttl_seconds=900, empty_ttl_seconds=300, clock=clock)


class TestTTLCache:

    def test_put_then_get(self, cache):
        assert cache.put("E8 1EJ", (51.5, -0.05))

        hit = cache.get("E8 1EJ")
        assert hit.value == (51.5, -0.05)
        assert not hit.confirmed_empty

    def test_miss(self, cache):
        assert cache.get("N1 1AA") is None

    def test_expiry_evicts(self, cache, clock):
        cache.put("E8 1EJ", (51.5, -0.05))

        clock.advance(899)
        assert cache.get("E8 1EJ") is not None

        clock.advance(1)
        assert cache.get("E8 1EJ") is None
        assert len(cache) == 0

    @pytest.mark.parametrize("empty", [None, [], {}, ""])
    def test_unconfirmed_empty_not_cached(self, cache, empty):
        assert not cache.put("E8 1EJ", empty)
        assert cache.get("E8 1EJ") is None

    def test_confirmed_empty_uses_short_ttl(self, cache, clock):
        assert cache.put("ZZ9 9ZZ", None, confirmed_empty=True)

        hit = cache.get("ZZ9 9ZZ")
        assert hit is not None
        assert hit.confirmed_empty
        assert hit.value is None

        clock.advance(300)
        assert cache.get("ZZ9 9ZZ") is None

    def test_zero_empty_ttl_disables_empty_caching(self, clock):
        cache = TTLCache(ttl_seconds=900, empty_ttl_seconds=0, clock=clock)

        assert not cache.put("ZZ9 9ZZ", None, confirmed_empty=True)

    def test_invalidate_and_clear(self, cache):
        cache.put("a", 1)
        cache.put("b", 2)

        assert cache.invalidate("a")
        assert not cache.invalidate("a")
        assert "b" in cache
        assert len(cache) == 1

        cache.clear()
        assert len(cache) == 0

    def test_invalid_ttls(self):
        with pytest.raises(ValueError):
            TTLCache(ttl_seconds=0)
        with pytest.raises(ValueError):
            TTLCache(ttl_seconds=60, empty_ttl_seconds=-1)


class TestGeocodeKey:

    def test_postcode_spacing_and_case_normalised(self):
        assert GeocodeKey.for_postcode("e81ej") == GeocodeKey.for_postcode("E8 1EJ")

    def test_keys_are_hashable(self, cache):
        cache.put(GeocodeKey.for_postcode("E8 1EJ"), (51.5, -0.05))

        assert GeocodeKey("E8 1EJ") in cache
