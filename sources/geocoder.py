"""
Postcode geocoder.

Resolves a UK postcode to coordinates through the postcodes.io API. Used by
the resolution pipeline only when an incoming record has no coordinates.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

import requests

from hmo_engine.address import normalise_uk_postcode, validate_uk_postcode
from hmo_engine.cache import GeocodeKey, TTLCache
from hmo_engine.models import valid_coordinates


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration
# =============================================================================

BASE_URL = "https://api.postcodes.io"
USER_AGENT = "HmoDealEngine/1.0"
REQUEST_TIMEOUT_SECONDS = 10
CACHE_TTL_SECONDS = 15 * 60
EMPTY_CACHE_TTL_SECONDS = 5 * 60


@dataclass(frozen=True)
class Coordinates:
    latitude: float
    longitude: float


class Geocoder(ABC):
    """Abstract base class for geocoding collaborators."""

    @abstractmethod
    def geocode(self, address: str, postcode: Optional[str]) -> Optional[Coordinates]:
        """
        Resolve an address and postcode to coordinates.

        Returns:
            Coordinates, or None if the location could not be resolved.
        """
        pass


class PostcodesIoGeocoder(Geocoder):
    """
    Postcode-level geocoder backed by postcodes.io.

    - 200 with a result: coordinates, cached for ttl_seconds
    - 404: confirmed unknown postcode, cached as empty for empty_ttl_seconds
    - network errors, 5xx, malformed JSON: logged, returns None, not cached
    """

    def __init__(
        self,
        base_url: str = BASE_URL,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        cache: Optional[TTLCache[GeocodeKey, Coordinates]] = None,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.cache = cache if cache is not None else TTLCache(CACHE_TTL_SECONDS, EMPTY_CACHE_TTL_SECONDS)
        self._session = session or requests.Session()
        self._session.headers.update({
            "User-Agent": USER_AGENT,
            "Accept": "application/json",
        })

    def geocode(self, address: str, postcode: Optional[str]) -> Optional[Coordinates]:
        if not postcode or not validate_uk_postcode(postcode):
            logger.debug("Cannot geocode %r: no valid postcode (%r)", address, postcode)
            return None

        key = GeocodeKey.for_postcode(postcode)
        hit = self.cache.get(key)
        if hit is not None:
            return hit.value

        url = f"{self.base_url}/postcodes/{quote(normalise_uk_postcode(postcode))}"
        try:
            response = self._session.get(url, timeout=self.timeout)
            if response.status_code == 404:
                logger.info("Postcode %s not found by geocoder", key.postcode)
                self.cache.put(key, None, confirmed_empty=True)
                return None
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as e:
            logger.warning("Geocoding %s failed: %s", key.postcode, e)
            return None
        except ValueError as e:
            logger.warning("Geocoder returned malformed JSON for %s: %s", key.postcode, e)
            return None

        result = (payload.get("result") if isinstance(payload, dict) else None) or {}
        latitude = result.get("latitude")
        longitude = result.get("longitude")
        if not valid_coordinates(latitude, longitude):
            # Terminated postcodes come back without a location
            logger.info("Geocoder has no location for %s", key.postcode)
            self.cache.put(key, None, confirmed_empty=True)
            return None

        coordinates = Coordinates(latitude=float(latitude), longitude=float(longitude))
        self.cache.put(key, coordinates)
        return coordinates
