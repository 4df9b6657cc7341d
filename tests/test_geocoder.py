"""
Tests for the postcodes.io geocoder.

Verifies:
- Successful lookups are cached
- 404 is cached as a confirmed empty
- Transient failures are not cached
- Invalid postcodes never reach the network
"""

import pytest
import requests
from pathlib import Path
import sys

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from hmo_engine.cache import GeocodeKey, TTLCache
from sources.geocoder import Coordinates, PostcodesIoGeocoder


# =============================================================================
# Test Fixtures
# =============================================================================

class StubResponse:
    def __init__(self, status_code=200, payload=None, bad_json=False):
        self.status_code = status_code
        self._payload = payload
        self._bad_json = bad_json

    def json(self):
        if self._bad_json:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")


class StubSession:
    """Stands in for requests.Session; replays queued responses."""

    def __init__(self, *responses):
        self.headers = {}
        self.calls = []
        self._responses = list(responses)

    def get(self, url, timeout=None):
        self.calls.append((url, timeout))
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def found(latitude=51.5465, longitude=-0.0553):
    return StubResponse(200, {"status": 200, "result": {"latitude": latitude, "longitude": longitude}})


def make_geocoder(session):
    return PostcodesIoGeocoder(
        base_url="https://geo.test/",
        timeout=3,
        cache=TTLCache(ttl_seconds=900, empty_ttl_seconds=300),
        session=session,
    )


# =============================================================================
# Test: Lookups
# =============================================================================

class TestGeocode:

    def test_success_returns_coordinates(self):
        session = StubSession(found())
        geocoder = make_geocoder(session)

        result = geocoder.geocode("21 Elm Road", "e8 1ej")

        assert result == Coordinates(latitude=51.5465, longitude=-0.0553)
        assert session.calls == [("https://geo.test/postcodes/E8%201EJ", 3)]
        assert session.headers["Accept"] == "application/json"

    def test_success_is_cached(self):
        session = StubSession(found())
        geocoder = make_geocoder(session)

        geocoder.geocode("21 Elm Road", "E8 1EJ")
        again = geocoder.geocode("Flat 2, 21 Elm Road", "E81EJ")

        assert again.latitude == 51.5465
        assert len(session.calls) == 1

    def test_not_found_cached_as_empty(self):
        session = StubSession(StubResponse(404, {"status": 404, "error": "Postcode not found"}))
        geocoder = make_geocoder(session)

        assert geocoder.geocode("1 Nowhere", "ZZ9 9ZZ") is None
        assert geocoder.geocode("1 Nowhere", "ZZ9 9ZZ") is None

        assert len(session.calls) == 1
        assert geocoder.cache.get(GeocodeKey.for_postcode("ZZ9 9ZZ")).confirmed_empty

    def test_missing_location_cached_as_empty(self):
        session = StubSession(StubResponse(200, {"status": 200, "result": {"latitude": None, "longitude": None}}))
        geocoder = make_geocoder(session)

        assert geocoder.geocode("1 Old Street", "EC1V 9NR") is None
        assert GeocodeKey.for_postcode("EC1V 9NR") in geocoder.cache

    @pytest.mark.parametrize(
        "failure",
        [
            requests.ConnectionError("connection refused"),
            requests.Timeout("read timed out"),
            StubResponse(503),
            StubResponse(200, bad_json=True),
        ],
    )
    def test_transient_failure_not_cached(self, failure):
        session = StubSession(failure, found())
        geocoder = make_geocoder(session)

        assert geocoder.geocode("21 Elm Road", "E8 1EJ") is None
        assert len(geocoder.cache) == 0

        # Retried on the next call
        assert geocoder.geocode("21 Elm Road", "E8 1EJ") is not None
        assert len(session.calls) == 2

    @pytest.mark.parametrize("postcode", [None, "", "NOT A POSTCODE", "E8"])
    def test_invalid_postcode_skips_network(self, postcode):
        session = StubSession()
        geocoder = make_geocoder(session)

        assert geocoder.geocode("21 Elm Road", postcode) is None
        assert session.calls == []
