"""
Source Field Extractors

One extractor per provider payload shape. Each turns a raw JSON-shaped
record into an ExternalRecord carrying canonical field names, so matching
and reconciliation never see provider-specific keys.

Extractors never raise on messy data: unparseable values become None and
are left out of the field set.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Any, Final, Optional

from hmo_engine.address import normalise_uk_postcode
from hmo_engine.ingestion.registry import SourceRegistration, get_source
from hmo_engine.models import (
    EPC_RATINGS,
    ExternalRecord,
    LicenceStatus,
    ListingType,
    OwnerType,
    Tenure,
    valid_coordinates,
)


logger = logging.getLogger(__name__)


# =============================================================================
# Value Mapping
# =============================================================================

# Land Registry estate type codes
ESTATE_TYPE_MAP: Final[dict[str, Tenure]] = {
    "f": Tenure.FREEHOLD,
    "freehold": Tenure.FREEHOLD,
    "l": Tenure.LEASEHOLD,
    "leasehold": Tenure.LEASEHOLD,
}

# Land Registry property type codes
PROPERTY_TYPE_CODES: Final[dict[str, str]] = {
    "D": "detached",
    "S": "semi-detached",
    "T": "terraced",
    "F": "flat",
    "O": "other",
}

COMPANY_STATUS_MAP: Final[dict[str, str]] = {
    "active": "active",
    "dissolved": "dissolved",
    "liquidation": "liquidation",
    "receivership": "receivership",
    "administration": "administration",
    "voluntary-arrangement": "voluntary-arrangement",
    "converted-closed": "converted-closed",
    "insolvency-proceedings": "insolvency",
    "registered": "active",
    "removed": "dissolved",
}


# =============================================================================
# Field Extractor Interface
# =============================================================================


class FieldExtractor(ABC):
    """
    Abstract interface for per-source field extraction.

    Subclasses must implement:
    - source_id: registered source identifier
    - extract: raw payload -> ExternalRecord

    Shared parse helpers degrade to None instead of raising.
    """

    source_id: str = ""

    @property
    def source_registration(self) -> Optional[SourceRegistration]:
        return get_source(self.source_id)

    @abstractmethod
    def extract(self, raw: dict[str, Any]) -> ExternalRecord:
        """Map one raw record to canonical field names."""
        ...

    # =========================================================================
    # Parse Helpers
    # =========================================================================

    @staticmethod
    def first(raw: dict[str, Any], *keys: str) -> Any:
        """First non-empty value among several alternative keys."""
        for key in keys:
            value = raw.get(key)
            if value is not None and value != "":
                return value
        return None

    @staticmethod
    def as_mapping(value: Any) -> dict[str, Any]:
        """Nested object, or an empty dict when the payload holds anything else."""
        return value if isinstance(value, dict) else {}

    @staticmethod
    def parse_int(value: Any) -> Optional[int]:
        if value is None or isinstance(value, bool):
            return None
        try:
            number = int(float(value))
        except (TypeError, ValueError):
            return None
        return number if number >= 0 else None

    @staticmethod
    def parse_float(value: Any) -> Optional[float]:
        if value is None or isinstance(value, bool):
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            return None

    @staticmethod
    def parse_str(value: Any) -> Optional[str]:
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    @staticmethod
    def parse_postcode(value: Any) -> str:
        return normalise_uk_postcode(str(value)) if value else ""

    @staticmethod
    def parse_date(value: Any) -> Optional[date]:
        if not value:
            return None
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        try:
            return date.fromisoformat(str(value).strip()[:10])
        except ValueError:
            return None

    @staticmethod
    def parse_epc(value: Any) -> Optional[str]:
        rating = str(value).upper().strip() if value else ""
        return rating if rating in EPC_RATINGS else None

    @staticmethod
    def parse_tenure(value: Any) -> Optional[Tenure]:
        if not value:
            return None
        return ESTATE_TYPE_MAP.get(str(value).lower().strip()) or Tenure.from_string(str(value))

    def parse_coordinates(self, raw: dict[str, Any]) -> tuple[Optional[float], Optional[float]]:
        """Coordinates pair, or (None, None) when missing, zero or out of range."""
        latitude = self.parse_float(self.first(raw, "latitude", "lat"))
        longitude = self.parse_float(self.first(raw, "longitude", "lng", "lon"))
        if not valid_coordinates(latitude, longitude):
            return None, None
        return latitude, longitude

    def record(self, raw: dict[str, Any], **kwargs: Any) -> ExternalRecord:
        """Build an ExternalRecord, dropping empty canonical fields."""
        fields = {k: v for k, v in kwargs.pop("fields", {}).items() if v is not None and v != ""}
        return ExternalRecord(source=self.source_id, raw=raw, fields=fields, **kwargs)


# =============================================================================
# Listing Extractors
# =============================================================================


class ZooplaExtractor(FieldExtractor):
    """Zoopla property listings (rent and sale)."""

    source_id = "zoopla"

    def extract(self, raw: dict[str, Any]) -> ExternalRecord:
        address = self.parse_str(raw.get("displayable_address")) or ""
        number = self.parse_str(raw.get("property_number"))
        if number and not address.lower().startswith(number.lower()):
            address = f"{number} {address}"

        outcode = self.parse_str(raw.get("outcode")) or ""
        incode = self.parse_str(raw.get("incode")) or ""
        postcode = self.parse_postcode(f"{outcode}{incode}" if outcode else raw.get("postcode"))

        status = self.parse_str(raw.get("listing_status"))
        listing_type = ListingType.from_string(status) if status else None
        price = self.parse_int(raw.get("price"))
        rental = self.as_mapping(raw.get("rental_prices"))

        price_pcm = None
        purchase_price = None
        if listing_type == ListingType.RENT:
            price_pcm = self.parse_int(rental.get("per_month")) or price
        elif listing_type == ListingType.PURCHASE:
            purchase_price = price

        latitude, longitude = self.parse_coordinates(raw)
        listing_id = self.parse_str(raw.get("listing_id"))

        return self.record(
            raw,
            address=address,
            postcode=postcode,
            latitude=latitude,
            longitude=longitude,
            bedrooms=self.parse_int(raw.get("num_bedrooms")),
            source_listing_id=listing_id,
            fields={
                "city": self.parse_str(self.first(raw, "post_town", "county")),
                "listing_type": listing_type,
                "price_pcm": price_pcm,
                "purchase_price": purchase_price,
                "bathrooms": self.parse_int(raw.get("num_bathrooms")),
                "last_sale_price": self.parse_int(raw.get("last_sale_price")),
                "last_sale_date": self.parse_date(raw.get("last_sale_date")),
                "agent_name": self.parse_str(raw.get("agent_name")),
                "details_url": self.parse_str(raw.get("details_url")),
            },
        )


class PropertyDataHmoExtractor(FieldExtractor):
    """PropertyData national HMO register entries."""

    source_id = "propertydata"

    def extract(self, raw: dict[str, Any]) -> ExternalRecord:
        status = self.parse_str(self.first(raw, "licence_status", "status"))
        licence_status = LicenceStatus.from_string(status) if status else None
        if status and licence_status is None:
            logger.debug("Unmapped licence status from %s: %r", self.source_id, status)
        licence_id = self.parse_str(self.first(raw, "licence_reference", "licence_number"))
        latitude, longitude = self.parse_coordinates(raw)

        return self.record(
            raw,
            address=self.parse_str(self.first(raw, "property_address", "address")) or "",
            postcode=self.parse_postcode(raw.get("postcode")),
            latitude=latitude,
            longitude=longitude,
            bedrooms=self.parse_int(self.first(raw, "number_of_bedrooms", "bedrooms")),
            source_listing_id=licence_id,
            fields={
                "city": self.parse_str(raw.get("local_authority")),
                "listing_type": ListingType.RENT,
                "licence_id": licence_id,
                "licence_status": licence_status,
                "licence_start_date": self.parse_date(
                    self.first(raw, "licence_issue_date", "licence_start")
                ),
                "licence_end_date": self.parse_date(
                    self.first(raw, "licence_expiry_date", "licence_end")
                ),
                "max_occupants": self.parse_int(
                    self.first(raw, "max_occupants", "maximum_occupancy")
                ),
                "licence_holder_name": self.parse_str(raw.get("licence_holder")),
                "uprn": self.parse_str(raw.get("uprn")),
            },
        )


# =============================================================================
# Enrichment Extractors
# =============================================================================


class SearchlandTitleExtractor(FieldExtractor):
    """Searchland title register ownership."""

    source_id = "searchland"

    @staticmethod
    def infer_owner_type(owner: dict[str, Any]) -> OwnerType:
        name = str(owner.get("name") or "").lower()
        kind = str(owner.get("type") or "").lower()
        if owner.get("company_number") or kind == "company":
            return OwnerType.COMPANY
        if kind == "trust":
            return OwnerType.TRUST
        if kind == "government" or "council" in name:
            return OwnerType.GOVERNMENT
        if name:
            return OwnerType.INDIVIDUAL
        return OwnerType.UNKNOWN

    @staticmethod
    def format_address(address: Any) -> Optional[str]:
        if not address:
            return None
        if isinstance(address, str):
            return address.strip() or None
        if isinstance(address, dict):
            parts = [
                address.get(key)
                for key in ("line1", "line2", "line3", "city", "county", "postcode")
            ]
            return ", ".join(str(p) for p in parts if p) or None
        return None

    def extract(self, raw: dict[str, Any]) -> ExternalRecord:
        title = raw.get("title") if isinstance(raw.get("title"), dict) else raw
        owner = title.get("proprietor") or title.get("owner")
        # Some titles list the proprietor by name only
        owner = {"name": owner} if isinstance(owner, str) else self.as_mapping(owner)
        owner_type = self.infer_owner_type(owner)
        title_number = self.parse_str(title.get("title_number"))

        fields: dict[str, Any] = {
            "title_number": title_number,
            "owner_name": self.parse_str(owner.get("name") or owner.get("company_name")),
            "owner_type": owner_type,
            "owner_address": self.format_address(owner.get("address")),
            "owner_contact_email": self.parse_str(owner.get("email")),
            "owner_contact_phone": self.parse_str(owner.get("phone")),
        }
        if owner_type == OwnerType.COMPANY and owner.get("company_number"):
            fields["company_name"] = self.parse_str(owner.get("company_name") or owner.get("name"))
            fields["company_number"] = self.parse_str(owner.get("company_number"))

        return self.record(
            raw,
            address=self.parse_str(self.first(raw, "address", "property_address")) or "",
            postcode=self.parse_postcode(self.first(raw, "postcode") or title.get("postcode")),
            source_listing_id=title_number,
            tenure=self.parse_tenure(title.get("tenure")),
            fields=fields,
        )


class LandRegistryExtractor(FieldExtractor):
    """HM Land Registry price paid transactions."""

    source_id = "land_registry"

    def extract(self, raw: dict[str, Any]) -> ExternalRecord:
        saon = self.parse_str(raw.get("saon"))
        paon = self.parse_str(raw.get("paon"))
        street = self.parse_str(raw.get("street"))
        town = self.parse_str(raw.get("town"))

        first_line = " ".join(p for p in (paon, street) if p)
        parts = [p for p in (saon, first_line, town) if p]
        property_type = self.parse_str(raw.get("propertyType"))

        return self.record(
            raw,
            address=", ".join(parts),
            postcode=self.parse_postcode(raw.get("postcode")),
            source_listing_id=self.parse_str(raw.get("transactionId")),
            tenure=self.parse_tenure(raw.get("estateType")),
            fields={
                "city": town.title() if town else None,
                "last_sale_price": self.parse_int(self.first(raw, "amount", "pricePaid")),
                "last_sale_date": self.parse_date(self.first(raw, "date", "transactionDate")),
                "property_type": PROPERTY_TYPE_CODES.get(property_type[:1].upper())
                if property_type
                else None,
                "new_build": raw.get("newBuild") in (True, "true"),
            },
        )


class OfcomBroadbandExtractor(FieldExtractor):
    """Ofcom Connected Nations availability for one address."""

    source_id = "ofcom"

    def extract(self, raw: dict[str, Any]) -> ExternalRecord:
        availability = raw.get("Availability")
        entry = self.as_mapping(availability[0]) if isinstance(availability, list) and availability else raw

        ultrafast = self.parse_float(entry.get("MaxUfbbPredictedDown"))
        return self.record(
            raw,
            address=self.parse_str(entry.get("AddressShortDescription")) or "",
            postcode=self.parse_postcode(self.first(entry, "PostCode", "postcode")),
            source_listing_id=self.parse_str(entry.get("UPRN")),
            fields={
                "broadband_max_down": self.parse_float(entry.get("MaxPredictedDown")),
                "has_fiber": ultrafast > 0 if ultrafast is not None else None,
                "broadband_superfast_down": self.parse_float(entry.get("MaxSfbbPredictedDown")),
                "broadband_max_up": self.parse_float(entry.get("MaxPredictedUp")),
            },
        )


class StreetDataExtractor(FieldExtractor):
    """Street Data property characteristics and valuation."""

    source_id = "streetdata"

    def extract(self, raw: dict[str, Any]) -> ExternalRecord:
        return self.record(
            raw,
            address=self.parse_str(raw.get("address")) or "",
            postcode=self.parse_postcode(raw.get("postcode")),
            bedrooms=self.parse_int(raw.get("bedrooms")),
            source_listing_id=self.parse_str(raw.get("uprn")),
            fields={
                "gross_internal_area_sqm": self.parse_float(raw.get("internal_area_sqm")),
                "estimated_value": self.parse_int(
                    self.first(raw, "estimated_value", "average_price", "estimate")
                ),
                "epc_rating": self.parse_epc(raw.get("epc_rating")),
                "year_built": self.parse_int(raw.get("year_built")),
                "rental_estimate": self.parse_int(
                    self.first(raw, "rental_estimate", "average_rent")
                ),
            },
        )


class CompaniesHouseExtractor(FieldExtractor):
    """Companies House company profile."""

    source_id = "companies_house"

    def extract(self, raw: dict[str, Any]) -> ExternalRecord:
        status = self.parse_str(raw.get("company_status"))
        if status:
            status = COMPANY_STATUS_MAP.get(status.lower(), status.lower())
        company_number = self.parse_str(raw.get("company_number"))
        return self.record(
            raw,
            source_listing_id=company_number,
            fields={
                "company_name": self.parse_str(raw.get("company_name")),
                "company_number": company_number,
                "company_status": status,
                "incorporation_date": self.parse_date(raw.get("date_of_creation")),
            },
        )


# =============================================================================
# Lookup
# =============================================================================

_EXTRACTORS: Final[dict[str, FieldExtractor]] = {
    extractor.source_id: extractor
    for extractor in (
        ZooplaExtractor(),
        PropertyDataHmoExtractor(),
        SearchlandTitleExtractor(),
        LandRegistryExtractor(),
        OfcomBroadbandExtractor(),
        StreetDataExtractor(),
        CompaniesHouseExtractor(),
    )
}


def get_extractor(source_id: str) -> FieldExtractor:
    """
    Extractor for a registered source.

    Raises:
        KeyError: If no extractor exists for source_id
    """
    try:
        return _EXTRACTORS[source_id]
    except KeyError:
        raise KeyError(f"No field extractor for source: {source_id}") from None


def extract_record(source_id: str, raw: dict[str, Any]) -> ExternalRecord:
    """Extract one raw payload from a named source."""
    return get_extractor(source_id).extract(raw)
