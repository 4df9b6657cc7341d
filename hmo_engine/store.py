"""
Property Store - Canonical Property Storage

The store is a collaborator: the core reads candidates from it and saves
merged properties back. InMemoryPropertyStore is the in-process
implementation used by the pipeline, the API and the tests.
"""

from __future__ import annotations

import copy
import logging
import threading
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Optional

from hmo_engine.address import postcode_district, postcode_outcode
from hmo_engine.models import CanonicalProperty


logger = logging.getLogger(__name__)


class PropertyStore(ABC):
    """Abstract canonical property store."""

    @abstractmethod
    def get(self, property_id: str) -> Optional[CanonicalProperty]:
        """Property by internal id, or None."""
        ...

    @abstractmethod
    def save(self, prop: CanonicalProperty) -> None:
        """Insert or replace a property."""
        ...

    @abstractmethod
    def find_by_source_id(self, source: str, external_id: str) -> Optional[CanonicalProperty]:
        """Property previously enriched by a source under its own identifier."""
        ...

    @abstractmethod
    def candidates_near(self, postcode: Optional[str]) -> list[CanonicalProperty]:
        """
        Properties sharing the postcode's outcode or district.

        Returned in insertion order so selector ties resolve first-seen.
        """
        ...

    @abstractmethod
    def all(self) -> list[CanonicalProperty]:
        ...


# =============================================================================
# In-Memory Store
# =============================================================================


class InMemoryPropertyStore(PropertyStore):
    """
    Thread-safe in-memory store indexed by outcode, district and source id.

    Properties are copied on the way in and out, so callers never hold a
    reference to stored state.
    """

    def __init__(self) -> None:
        self._properties: dict[str, CanonicalProperty] = {}
        self._by_outcode: dict[str, list[str]] = defaultdict(list)
        self._by_district: dict[str, list[str]] = defaultdict(list)
        self._by_source_id: dict[tuple[str, str], str] = {}
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._properties)

    # =========================================================================
    # CRUD Operations
    # =========================================================================

    def get(self, property_id: str) -> Optional[CanonicalProperty]:
        with self._lock:
            prop = self._properties.get(property_id)
            return copy.deepcopy(prop) if prop else None

    def save(self, prop: CanonicalProperty) -> None:
        with self._lock:
            previous = self._properties.get(prop.property_id)
            if previous is not None:
                self._unindex(previous)
            stored = copy.deepcopy(prop)
            self._properties[prop.property_id] = stored
            self._index(stored)
        logger.debug("Saved property %s", prop.property_id)

    def find_by_source_id(self, source: str, external_id: str) -> Optional[CanonicalProperty]:
        with self._lock:
            property_id = self._by_source_id.get((source, external_id))
            return self.get(property_id) if property_id else None

    def candidates_near(self, postcode: Optional[str]) -> list[CanonicalProperty]:
        outcode = postcode_outcode(postcode)
        if not outcode:
            return []
        district = postcode_district(outcode)

        with self._lock:
            ids = set(self._by_outcode.get(outcode, ()))
            if district:
                ids.update(self._by_district.get(district, ()))
            # First-saved order; replacing a property keeps its position
            return [
                copy.deepcopy(prop)
                for property_id, prop in self._properties.items()
                if property_id in ids
            ]

    def all(self) -> list[CanonicalProperty]:
        with self._lock:
            return [copy.deepcopy(p) for p in self._properties.values()]

    # =========================================================================
    # Indexes
    # =========================================================================

    def _index(self, prop: CanonicalProperty) -> None:
        outcode = prop.outcode
        if outcode:
            self._by_outcode[outcode].append(prop.property_id)
        if prop.district:
            self._by_district[prop.district].append(prop.property_id)
        for source, external_id in prop.source_ids.items():
            self._by_source_id[(source, external_id)] = prop.property_id

    def _unindex(self, prop: CanonicalProperty) -> None:
        if prop.outcode and prop.property_id in self._by_outcode.get(prop.outcode, []):
            self._by_outcode[prop.outcode].remove(prop.property_id)
        if prop.district and prop.property_id in self._by_district.get(prop.district, []):
            self._by_district[prop.district].remove(prop.property_id)
        for source, external_id in prop.source_ids.items():
            if self._by_source_id.get((source, external_id)) == prop.property_id:
                del self._by_source_id[(source, external_id)]
