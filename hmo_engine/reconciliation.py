"""
Reconciliation Merger

Folds one source's field set into a canonical property.

Merge rules, field by field:
- an incoming value that is null or empty is ignored; absence never
  overwrites presence
- any other incoming value is written and its provenance set to the source
- the licence holder and the title owner are separate field groups and are
  only linked when a single source asserts both at once
- enriched_at[source] is stamped on every pass, changed or not

Creating a new property requires an address, valid non-zero coordinates and
a bedroom count; anything less raises CreationRejected.
"""

from __future__ import annotations

import copy
import logging
import uuid
from datetime import date, datetime, timezone
from typing import Any, Callable, Final, Mapping, Optional

from hmo_engine.address import normalise_uk_postcode
from hmo_engine.models import (
    EPC_RATINGS,
    CanonicalProperty,
    LicenceStatus,
    ListingType,
    MERGEABLE_FIELDS,
    OwnerType,
    Tenure,
    valid_coordinates,
)


logger = logging.getLogger(__name__)


# =============================================================================
# Exceptions
# =============================================================================


class CreationRejected(ValueError):
    """Raised when a new property would lack mandatory identity fields."""

    def __init__(self, reasons: list[str]):
        self.reasons = reasons
        super().__init__(f"Creation rejected: {'; '.join(reasons)}")


# =============================================================================
# Field Coercion
# =============================================================================

# Key on an incoming field set that carries the source's own identifier
EXTERNAL_ID_KEY: Final[str] = "external_id"

# Key asserting the licence holder and title owner are the same party
HOLDER_IS_OWNER_KEY: Final[str] = "licence_holder_is_owner"

INT_FIELDS: Final[frozenset[str]] = frozenset(
    {
        "bedrooms",
        "price_pcm",
        "purchase_price",
        "estimated_value",
        "last_sale_price",
        "max_occupants",
        "bathrooms",
        "lettable_rooms",
    }
)

FLOAT_FIELDS: Final[frozenset[str]] = frozenset(
    {"gross_internal_area_sqm", "broadband_max_down"}
)

BOOL_FIELDS: Final[frozenset[str]] = frozenset(
    {"article_4_area", "conservation_area", "has_fiber"}
)

DATE_FIELDS: Final[frozenset[str]] = frozenset(
    {"last_sale_date", "licence_start_date", "licence_end_date"}
)

ENUM_FIELDS: Final[dict[str, Any]] = {
    "listing_type": ListingType,
    "licence_status": LicenceStatus,
    "owner_type": OwnerType,
    "tenure": Tenure,
}

_TRUE_STRINGS: Final = frozenset({"true", "yes", "y", "1"})
_FALSE_STRINGS: Final = frozenset({"false", "no", "n", "0"})


def is_absent(value: Any) -> bool:
    """Null, blank string, or empty container."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict, set, frozenset)):
        return len(value) == 0
    return False


def _to_int(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError("boolean is not a count")
    number = int(float(value)) if isinstance(value, str) else int(value)
    if number < 0:
        raise ValueError("cannot be negative")
    return number


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).lower().strip()
    if text in _TRUE_STRINGS:
        return True
    if text in _FALSE_STRINGS:
        return False
    raise ValueError(f"not a boolean: {value!r}")


def _to_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip()[:10])


def _to_epc(value: Any) -> str:
    rating = str(value).upper().strip()
    if rating not in EPC_RATINGS:
        raise ValueError(f"not an EPC band: {value!r}")
    return rating


def _enum_coercer(enum_cls: Any) -> Callable[[Any], Any]:
    def coerce(value: Any) -> Any:
        if isinstance(value, enum_cls):
            return value
        member = enum_cls.from_string(str(value))
        if member is None:
            raise ValueError(f"unknown {enum_cls.__name__}: {value!r}")
        return member

    return coerce


def coerce_field(name: str, value: Any) -> Any:
    """
    Convert an incoming value to the canonical field type.

    Raises:
        ValueError: If the value cannot be represented
    """
    if name in INT_FIELDS:
        return _to_int(value)
    if name in FLOAT_FIELDS:
        return float(value)
    if name in BOOL_FIELDS:
        return _to_bool(value)
    if name in DATE_FIELDS:
        return _to_date(value)
    if name in ENUM_FIELDS:
        return _enum_coercer(ENUM_FIELDS[name])(value)
    if name == "epc_rating":
        return _to_epc(value)
    if name == "postcode":
        return normalise_uk_postcode(str(value))
    return str(value).strip()


# =============================================================================
# Merge
# =============================================================================


def _creation_failures(incoming: Mapping[str, Any]) -> list[str]:
    reasons = []
    address = incoming.get("address")
    if is_absent(address):
        reasons.append("address is required")
    if not valid_coordinates(incoming.get("latitude"), incoming.get("longitude")):
        reasons.append("valid non-zero coordinates are required")
    bedrooms = incoming.get("bedrooms")
    if is_absent(bedrooms):
        reasons.append("bedrooms is required")
    else:
        try:
            _to_int(bedrooms)
        except (TypeError, ValueError):
            reasons.append(f"bedrooms is not a valid count: {bedrooms!r}")
    return reasons


def _create(incoming: Mapping[str, Any], source: str, now: datetime) -> CanonicalProperty:
    reasons = _creation_failures(incoming)
    if reasons:
        raise CreationRejected(reasons)

    return CanonicalProperty(
        property_id=str(uuid.uuid4()),
        address=str(incoming["address"]).strip(),
        latitude=float(incoming["latitude"]),
        longitude=float(incoming["longitude"]),
        bedrooms=_to_int(incoming["bedrooms"]),
        provenance={"address": source, "latitude": source, "longitude": source, "bedrooms": source},
        created_at=now,
        updated_at=now,
    )


def _write(prop: CanonicalProperty, name: str, value: Any, source: str) -> bool:
    """Set a field and its provenance. Returns True when the stored value changed."""
    changed = getattr(prop, name) != value
    setattr(prop, name, value)
    prop.provenance[name] = source
    return changed


def _merge_coordinates(
    prop: CanonicalProperty, incoming: Mapping[str, Any], source: str
) -> list[str]:
    latitude = incoming.get("latitude")
    longitude = incoming.get("longitude")
    if is_absent(latitude) and is_absent(longitude):
        return []
    if not valid_coordinates(latitude, longitude):
        logger.debug(
            "Ignoring invalid coordinates from %s for %s: %r, %r",
            source,
            prop.property_id,
            latitude,
            longitude,
        )
        return []
    changed = []
    if _write(prop, "latitude", float(latitude), source):
        changed.append("latitude")
    if _write(prop, "longitude", float(longitude), source):
        changed.append("longitude")
    return changed


def _merge_holder_link(
    prop: CanonicalProperty, incoming: Mapping[str, Any], source: str
) -> list[str]:
    asserted = incoming.get(HOLDER_IS_OWNER_KEY)
    if is_absent(asserted):
        return []
    if is_absent(incoming.get("licence_holder_name")) or is_absent(incoming.get("owner_name")):
        logger.debug(
            "Ignoring holder/owner link from %s for %s: both names must be supplied together",
            source,
            prop.property_id,
        )
        return []
    try:
        value = _to_bool(asserted)
    except ValueError:
        logger.warning("Ignoring malformed %s from %s: %r", HOLDER_IS_OWNER_KEY, source, asserted)
        return []
    return [HOLDER_IS_OWNER_KEY] if _write(prop, HOLDER_IS_OWNER_KEY, value, source) else []


def reconcile(
    existing: Optional[CanonicalProperty],
    incoming: Mapping[str, Any],
    source: str,
    now: Optional[datetime] = None,
) -> CanonicalProperty:
    """
    Fold one source's field set into a canonical property.

    The input property is never mutated; a new instance is returned.

    Args:
        existing: Property to update, or None to create a new one
        incoming: Field set in canonical field names. 'external_id' is recorded
            as the source's identifier; unknown keys are kept per source.
        source: Source name, e.g. "zoopla" or "searchland"
        now: Timestamp for enriched_at/updated_at (defaults to UTC now)

    Returns:
        The updated or newly created CanonicalProperty

    Raises:
        CreationRejected: If existing is None and mandatory identity fields
            are missing or invalid
        ValueError: If source is empty
    """
    if not source:
        raise ValueError("source is required")
    now = now or datetime.now(timezone.utc)

    if existing is None:
        prop = _create(incoming, source, now)
        logger.info("Created property %s from %s", prop.property_id, source)
    else:
        prop = copy.deepcopy(existing)

    changed = _merge_coordinates(prop, incoming, source)

    for name, value in incoming.items():
        if name in ("latitude", "longitude", HOLDER_IS_OWNER_KEY):
            continue
        if is_absent(value):
            continue

        if name == EXTERNAL_ID_KEY:
            external_id = str(value).strip()
            if prop.source_ids.get(source) != external_id:
                prop.source_ids[source] = external_id
                changed.append(EXTERNAL_ID_KEY)
            continue

        if name not in MERGEABLE_FIELDS:
            prop.source_fields.setdefault(source, {})[name] = value
            continue

        try:
            coerced = coerce_field(name, value)
        except (TypeError, ValueError) as e:
            logger.warning(
                "Skipping malformed %s from %s for %s: %r (%s)",
                name,
                source,
                prop.property_id,
                value,
                e,
            )
            continue
        if is_absent(coerced):
            continue

        if _write(prop, name, coerced, source):
            changed.append(name)

    changed.extend(_merge_holder_link(prop, incoming, source))

    prop.enriched_at[source] = now
    if changed and existing is not None:
        prop.updated_at = now
        logger.debug("Reconciled %s from %s: %s", prop.property_id, source, ", ".join(changed))
    elif existing is not None:
        logger.debug("Reconciled %s from %s: no field changes", prop.property_id, source)

    return prop


def changed_fields(before: Optional[CanonicalProperty], after: CanonicalProperty) -> list[str]:
    """Mergeable fields whose values differ between two versions of a property."""
    if before is None:
        return [name for name in MERGEABLE_FIELDS if getattr(after, name) is not None]
    return [
        name
        for name in MERGEABLE_FIELDS + (HOLDER_IS_OWNER_KEY,)
        if getattr(before, name) != getattr(after, name)
    ]
