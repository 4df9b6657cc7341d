"""
Source Registry - Data Source Registration

Every external provider whose records are folded into canonical properties
is registered here with whether its records may create new properties or
only enrich existing ones.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Final, Optional


class SourceCategory(Enum):
    """Kind of record a source supplies."""

    LISTINGS = "listings"
    LICENCE_REGISTER = "licence_register"
    TITLE = "title"
    PRICE_PAID = "price_paid"
    BROADBAND = "broadband"
    PROPERTY_DATA = "property_data"
    COMPANY_REGISTER = "company_register"


_SOURCE_ID_RE: Final = re.compile(r"^[a-z0-9_]+$")


@dataclass(frozen=True)
class SourceRegistration:
    """
    Immutable source registration record.

    Only sources that can create properties may add a new canonical
    property when nothing matches; the rest only enrich.
    """

    # === Identity ===
    source_id: str
    source_name: str
    source_category: SourceCategory

    # === Merge Behaviour ===
    # False for enrichment-only sources (title, broadband, company data)
    can_create: bool

    # === Operational ===
    requires_authentication: bool
    active: bool

    # === Audit ===
    registered_date: date

    def __post_init__(self) -> None:
        """Validate registration constraints."""
        if not self.source_id:
            raise ValueError("source_id is required")
        if not self.source_name:
            raise ValueError("source_name is required")
        if not _SOURCE_ID_RE.match(self.source_id):
            raise ValueError(
                f"source_id must be lowercase alphanumeric with underscores: {self.source_id}"
            )


# =============================================================================
# Source Registry
# =============================================================================

_SOURCE_REGISTRY: dict[str, SourceRegistration] = {}


def register_source(registration: SourceRegistration) -> None:
    """
    Register a new data source.

    Raises:
        ValueError: If source_id is already registered
    """
    if registration.source_id in _SOURCE_REGISTRY:
        raise ValueError(f"Source already registered: {registration.source_id}")
    _SOURCE_REGISTRY[registration.source_id] = registration


def get_source(source_id: str) -> Optional[SourceRegistration]:
    """Get a registered source by ID, or None."""
    return _SOURCE_REGISTRY.get(source_id)


def get_active_sources() -> list[SourceRegistration]:
    """Get all active registered sources."""
    return [s for s in _SOURCE_REGISTRY.values() if s.active]


def get_sources_by_category(category: SourceCategory) -> list[SourceRegistration]:
    """Get all registered sources in a category."""
    return [s for s in _SOURCE_REGISTRY.values() if s.source_category == category]


# Read-only view for inspection
SOURCE_REGISTRY: Final = _SOURCE_REGISTRY


# =============================================================================
# Default Registrations
# =============================================================================

_REGISTERED = date(2024, 4, 1)

register_source(
    SourceRegistration(
        source_id="zoopla",
        source_name="Zoopla Listings",
        source_category=SourceCategory.LISTINGS,
        can_create=True,
        requires_authentication=True,
        active=True,
        registered_date=_REGISTERED,
    )
)

register_source(
    SourceRegistration(
        source_id="propertydata",
        source_name="PropertyData National HMO Register",
        source_category=SourceCategory.LICENCE_REGISTER,
        can_create=True,
        requires_authentication=True,
        active=True,
        registered_date=_REGISTERED,
    )
)

register_source(
    SourceRegistration(
        source_id="searchland",
        source_name="Searchland Title Ownership",
        source_category=SourceCategory.TITLE,
        can_create=False,
        requires_authentication=True,
        active=True,
        registered_date=_REGISTERED,
    )
)

register_source(
    SourceRegistration(
        source_id="land_registry",
        source_name="HM Land Registry Price Paid",
        source_category=SourceCategory.PRICE_PAID,
        can_create=False,
        requires_authentication=False,
        active=True,
        registered_date=_REGISTERED,
    )
)

register_source(
    SourceRegistration(
        source_id="ofcom",
        source_name="Ofcom Connected Nations Broadband",
        source_category=SourceCategory.BROADBAND,
        can_create=False,
        requires_authentication=True,
        active=True,
        registered_date=_REGISTERED,
    )
)

register_source(
    SourceRegistration(
        source_id="streetdata",
        source_name="Street Data Property Characteristics",
        source_category=SourceCategory.PROPERTY_DATA,
        can_create=False,
        requires_authentication=True,
        active=True,
        registered_date=_REGISTERED,
    )
)

register_source(
    SourceRegistration(
        source_id="companies_house",
        source_name="Companies House",
        source_category=SourceCategory.COMPANY_REGISTER,
        can_create=False,
        requires_authentication=True,
        active=True,
        registered_date=_REGISTERED,
    )
)
