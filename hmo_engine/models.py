"""
Data models for the HMO deal engine.

CanonicalProperty is the durable record that every external source folds
into. ExternalRecord is the ephemeral, per-response shape produced by the
source field extractors.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Final, Optional

from hmo_engine.address import NormalisedAddress, normalise_address


class ListingType(Enum):
    """Whether a listing is offered to rent or to buy."""

    RENT = "rent"
    PURCHASE = "purchase"

    @classmethod
    def from_string(cls, value: str) -> Optional["ListingType"]:
        """Convert string to ListingType, case-insensitive."""
        normalised = value.lower().strip()
        aliases = {"sale": "purchase", "buy": "purchase", "let": "rent", "rental": "rent"}
        normalised = aliases.get(normalised, normalised)
        for member in cls:
            if member.value == normalised:
                return member
        return None


class LicenceStatus(Enum):
    """HMO licence state as published by the council register."""

    ACTIVE = "active"
    EXPIRED = "expired"
    PENDING = "pending"
    NONE = "none"

    @classmethod
    def from_string(cls, value: str) -> Optional["LicenceStatus"]:
        """Convert string to LicenceStatus, case-insensitive."""
        normalised = value.lower().strip()
        aliases = {
            "granted": "active",
            "licensed": "active",
            "current": "active",
            "lapsed": "expired",
            "applied": "pending",
            "application received": "pending",
            "under consideration": "pending",
        }
        normalised = aliases.get(normalised, normalised)
        for member in cls:
            if member.value == normalised:
                return member
        return None


class OwnerType(Enum):
    """Registered proprietor category."""

    INDIVIDUAL = "individual"
    COMPANY = "company"
    TRUST = "trust"
    GOVERNMENT = "government"
    UNKNOWN = "unknown"

    @classmethod
    def from_string(cls, value: str) -> Optional["OwnerType"]:
        """Convert string to OwnerType, case-insensitive."""
        normalised = value.lower().strip()
        for member in cls:
            if member.value == normalised:
                return member
        return None


class Tenure(Enum):
    """
    Property tenure type.

    Shared ownership is not modelled; "share of freehold" maps to freehold.
    """

    FREEHOLD = "freehold"
    LEASEHOLD = "leasehold"

    @classmethod
    def from_string(cls, value: str) -> Optional["Tenure"]:
        """Convert string to Tenure, case-insensitive."""
        normalised = value.lower().strip()
        aliases = {
            "f": "freehold",
            "share of freehold": "freehold",
            "share freehold": "freehold",
            "l": "leasehold",
            "long leasehold": "leasehold",
        }
        normalised = aliases.get(normalised, normalised)
        for member in cls:
            if member.value == normalised:
                return member
        return None


EPC_RATINGS: Final[tuple[str, ...]] = ("A", "B", "C", "D", "E", "F", "G")


# Fields the reconciliation merger may write. Anything else on an incoming
# field set is retained per source in CanonicalProperty.source_fields.
IDENTITY_FIELDS: Final[tuple[str, ...]] = (
    "address",
    "postcode",
    "city",
    "latitude",
    "longitude",
    "bedrooms",
)

LISTING_FIELDS: Final[tuple[str, ...]] = (
    "listing_type",
    "price_pcm",
    "purchase_price",
    "estimated_value",
    "last_sale_price",
    "last_sale_date",
    "tenure",
)

LICENCE_FIELDS: Final[tuple[str, ...]] = (
    "licence_id",
    "licence_status",
    "licence_start_date",
    "licence_end_date",
    "max_occupants",
)

# The licence holder and the title owner are independent field groups.
LICENCE_HOLDER_FIELDS: Final[tuple[str, ...]] = (
    "licence_holder_name",
    "licence_holder_email",
    "licence_holder_phone",
    "licence_holder_address",
)

OWNER_FIELDS: Final[tuple[str, ...]] = (
    "owner_name",
    "owner_type",
    "owner_address",
    "owner_contact_email",
    "owner_contact_phone",
    "company_name",
    "company_number",
    "company_status",
    "title_number",
)

COMPLIANCE_FIELDS: Final[tuple[str, ...]] = (
    "epc_rating",
    "article_4_area",
    "conservation_area",
    "listed_building_grade",
)

SPACE_FIELDS: Final[tuple[str, ...]] = (
    "gross_internal_area_sqm",
    "bathrooms",
    "lettable_rooms",
)

CONNECTIVITY_FIELDS: Final[tuple[str, ...]] = (
    "broadband_max_down",
    "has_fiber",
)

MERGEABLE_FIELDS: Final[tuple[str, ...]] = (
    IDENTITY_FIELDS
    + LISTING_FIELDS
    + LICENCE_FIELDS
    + LICENCE_HOLDER_FIELDS
    + OWNER_FIELDS
    + COMPLIANCE_FIELDS
    + SPACE_FIELDS
    + CONNECTIVITY_FIELDS
)


@dataclass
class CanonicalProperty:
    """
    The durable property entity.

    Invariants:
        - property_id is internal and never derived from a source identifier
        - every populated mergeable field has a provenance entry naming the
          source that last wrote it
        - enriched_at records the last reconciliation pass per source,
          whether or not that pass changed anything
    """

    # === IDENTITY ===
    property_id: str
    address: str
    latitude: float
    longitude: float
    bedrooms: int
    postcode: str = ""
    city: Optional[str] = None

    # === LISTING ECONOMICS ===
    listing_type: Optional[ListingType] = None
    price_pcm: Optional[int] = None
    purchase_price: Optional[int] = None
    estimated_value: Optional[int] = None
    last_sale_price: Optional[int] = None
    last_sale_date: Optional[date] = None
    tenure: Optional[Tenure] = None

    # === LICENCE ===
    licence_id: Optional[str] = None
    licence_status: Optional[LicenceStatus] = None
    licence_start_date: Optional[date] = None
    licence_end_date: Optional[date] = None
    max_occupants: Optional[int] = None

    # === LICENCE HOLDER (separate from title owner) ===
    licence_holder_name: Optional[str] = None
    licence_holder_email: Optional[str] = None
    licence_holder_phone: Optional[str] = None
    licence_holder_address: Optional[str] = None

    # === TITLE OWNER ===
    owner_name: Optional[str] = None
    owner_type: Optional[OwnerType] = None
    owner_address: Optional[str] = None
    owner_contact_email: Optional[str] = None
    owner_contact_phone: Optional[str] = None
    company_name: Optional[str] = None
    company_number: Optional[str] = None
    company_status: Optional[str] = None
    title_number: Optional[str] = None

    # Set only when one source asserts holder and owner are the same party
    licence_holder_is_owner: Optional[bool] = None

    # === COMPLIANCE ===
    epc_rating: Optional[str] = None
    article_4_area: Optional[bool] = None
    conservation_area: Optional[bool] = None
    listed_building_grade: Optional[str] = None

    # === SPACE ===
    gross_internal_area_sqm: Optional[float] = None
    bathrooms: Optional[int] = None
    lettable_rooms: Optional[int] = None

    # === CONNECTIVITY ===
    broadband_max_down: Optional[float] = None
    has_fiber: Optional[bool] = None

    # === PROVENANCE ===
    provenance: dict[str, str] = field(default_factory=dict)
    enriched_at: dict[str, datetime] = field(default_factory=dict)
    source_ids: dict[str, str] = field(default_factory=dict)
    source_fields: dict[str, dict[str, Any]] = field(default_factory=dict)

    # === AUDIT ===
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def source_of(self, field_name: str) -> Optional[str]:
        """Name of the source that last wrote a field."""
        return self.provenance.get(field_name)

    def enriched_at_for(self, source: str) -> Optional[datetime]:
        """When a source last ran a reconciliation pass for this property."""
        return self.enriched_at.get(source)

    @property
    def normalised_address(self) -> NormalisedAddress:
        return normalise_address(self.address, self.postcode)

    @property
    def outcode(self) -> str:
        return self.normalised_address.outcode

    @property
    def district(self) -> str:
        return self.normalised_address.district

    @property
    def is_licensed(self) -> bool:
        return self.licence_status == LicenceStatus.ACTIVE

    @property
    def has_owner_info(self) -> bool:
        return bool(self.owner_name or self.company_name or self.company_number)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        out: dict[str, Any] = {"property_id": self.property_id}
        for name in MERGEABLE_FIELDS + ("licence_holder_is_owner",):
            value = getattr(self, name)
            if isinstance(value, Enum):
                value = value.value
            elif isinstance(value, (date, datetime)):
                value = value.isoformat()
            out[name] = value
        out["provenance"] = dict(self.provenance)
        out["enriched_at"] = {k: v.isoformat() for k, v in self.enriched_at.items()}
        out["source_ids"] = dict(self.source_ids)
        out["created_at"] = self.created_at.isoformat() if self.created_at else None
        out["updated_at"] = self.updated_at.isoformat() if self.updated_at else None
        return out


@dataclass
class ExternalRecord:
    """
    One listing, licence, title or price record from a single source.

    Created per API response and discarded once folded into a canonical
    property or rejected. `fields` holds the values in canonical field names;
    `raw` keeps the untouched payload for audit.
    """

    source: str
    address: str = ""
    postcode: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    bedrooms: Optional[int] = None
    source_listing_id: Optional[str] = None
    tenure: Optional[Tenure] = None
    fields: dict[str, Any] = field(default_factory=dict)
    raw: dict[str, Any] = field(default_factory=dict)

    @property
    def normalised_address(self) -> NormalisedAddress:
        return normalise_address(self.address, self.postcode)

    @property
    def has_coordinates(self) -> bool:
        return valid_coordinates(self.latitude, self.longitude)

    def field_set(self) -> dict[str, Any]:
        """
        Full incoming field set for the reconciliation merger.

        Identity attributes are folded in alongside the source-specific
        fields; explicit entries in `fields` win.
        """
        merged: dict[str, Any] = {
            "address": self.address,
            "postcode": self.postcode,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "bedrooms": self.bedrooms,
            "tenure": self.tenure,
        }
        if self.source_listing_id:
            merged["external_id"] = self.source_listing_id
        merged.update(self.fields)
        return merged


def valid_coordinates(latitude: Optional[float], longitude: Optional[float]) -> bool:
    """True when both coordinates are present, in range, and not a 0,0 placeholder."""
    if latitude is None or longitude is None:
        return False
    try:
        lat = float(latitude)
        lng = float(longitude)
    except (TypeError, ValueError):
        return False
    # Listing feeds emit 0 for coordinates they could not parse
    if lat == 0 or lng == 0:
        return False
    return -90 <= lat <= 90 and -180 <= lng <= 180
