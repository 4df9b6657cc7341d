"""
Tests for the reconciliation merger.

Verifies:
- Absent incoming values never overwrite present ones
- Every written field is stamped with the writing source
- enriched_at is stamped on every pass, changed or not
- Licence holder and title owner are only linked on explicit assertion
- New properties need an address, valid coordinates and bedrooms
"""

import pytest
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
import sys

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from hmo_engine.models import LicenceStatus, ListingType, OwnerType
from hmo_engine.reconciliation import (
    CreationRejected,
    changed_fields,
    coerce_field,
    is_absent,
    reconcile,
)


# =============================================================================
# Test Fixtures
# =============================================================================

@pytest.fixture
def now():
    """Fixed timestamp for deterministic tests."""
    return datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def listing_fields():
    """A Zoopla rental listing in canonical field names."""
    return {
        "address": "21 Elm Road, London",
        "postcode": "e8 1ej",
        "city": "London",
        "latitude": 51.5465,
        "longitude": -0.0553,
        "bedrooms": 5,
        "listing_type": "rent",
        "price_pcm": 3200,
        "epc_rating": "c",
        "external_id": "ZPL-1001",
    }


@pytest.fixture
def existing(listing_fields, now):
    """Canonical property created from the listing."""
    return reconcile(None, listing_fields, "zoopla", now=now)


# =============================================================================
# Test: Creation
# =============================================================================

class TestCreation:
    """Creating a canonical property from a first record."""

    def test_creates_with_internal_id(self, existing):
        assert existing.property_id
        assert existing.property_id != "ZPL-1001"
        assert existing.source_ids == {"zoopla": "ZPL-1001"}

    def test_fields_coerced_and_stamped(self, existing, now):
        assert existing.postcode == "E8 1EJ"
        assert existing.listing_type == ListingType.RENT
        assert existing.epc_rating == "C"
        assert existing.provenance["address"] == "zoopla"
        assert existing.provenance["price_pcm"] == "zoopla"
        assert existing.created_at == now
        assert existing.enriched_at["zoopla"] == now

    def test_missing_address_and_coordinates_rejected(self):
        with pytest.raises(CreationRejected) as exc_info:
            reconcile(None, {"address": "", "bedrooms": 3}, "zoopla")

        reasons = exc_info.value.reasons
        assert "address is required" in reasons
        assert "valid non-zero coordinates are required" in reasons

    def test_zero_coordinates_rejected(self, listing_fields):
        listing_fields.update(latitude=0, longitude=0)

        with pytest.raises(CreationRejected) as exc_info:
            reconcile(None, listing_fields, "zoopla")

        assert exc_info.value.reasons == ["valid non-zero coordinates are required"]

    def test_out_of_range_coordinates_rejected(self, listing_fields):
        listing_fields.update(latitude=151.5, longitude=-0.05)

        with pytest.raises(CreationRejected):
            reconcile(None, listing_fields, "zoopla")

    def test_missing_bedrooms_rejected(self, listing_fields):
        del listing_fields["bedrooms"]

        with pytest.raises(CreationRejected) as exc_info:
            reconcile(None, listing_fields, "zoopla")

        assert exc_info.value.reasons == ["bedrooms is required"]

    def test_unparseable_bedrooms_rejected(self, listing_fields):
        listing_fields["bedrooms"] = "three"

        with pytest.raises(CreationRejected) as exc_info:
            reconcile(None, listing_fields, "zoopla")

        assert exc_info.value.reasons == ["bedrooms is not a valid count: 'three'"]

    def test_creation_rejected_is_value_error(self):
        error = CreationRejected(["address is required", "bedrooms is required"])

        assert isinstance(error, ValueError)
        assert str(error) == "Creation rejected: address is required; bedrooms is required"

    def test_source_is_required(self, listing_fields):
        with pytest.raises(ValueError):
            reconcile(None, listing_fields, "")


# =============================================================================
# Test: Non-destructive Merge
# =============================================================================

class TestNonDestructive:
    """Absence is not information."""

    @pytest.mark.parametrize("empty", [None, "", "   "])
    def test_absent_values_never_overwrite(self, existing, empty):
        updated = reconcile(
            existing,
            {"price_pcm": empty, "epc_rating": empty, "address": empty, "latitude": empty},
            "propertydata",
        )

        assert updated.price_pcm == existing.price_pcm
        assert updated.epc_rating == existing.epc_rating
        assert updated.address == existing.address
        assert updated.latitude == existing.latitude
        assert updated.provenance["price_pcm"] == "zoopla"

    def test_present_value_overwrites_and_restamps(self, existing):
        updated = reconcile(existing, {"price_pcm": 3400}, "propertydata")

        assert updated.price_pcm == 3400
        assert updated.provenance["price_pcm"] == "propertydata"

    def test_input_property_not_mutated(self, existing):
        before = existing.price_pcm
        reconcile(existing, {"price_pcm": 9999, "owner_name": "X"}, "searchland")

        assert existing.price_pcm == before
        assert existing.owner_name is None
        assert "searchland" not in existing.enriched_at

    def test_invalid_coordinates_ignored_on_update(self, existing):
        updated = reconcile(existing, {"latitude": 0, "longitude": 0}, "propertydata")

        assert updated.latitude == existing.latitude
        assert updated.longitude == existing.longitude

    def test_half_coordinate_pair_ignored(self, existing):
        updated = reconcile(existing, {"latitude": 51.6}, "propertydata")

        assert updated.latitude == existing.latitude

    def test_valid_coordinates_replace_pair(self, existing):
        updated = reconcile(existing, {"latitude": 51.55, "longitude": -0.06}, "propertydata")

        assert (updated.latitude, updated.longitude) == (51.55, -0.06)
        assert updated.provenance["latitude"] == "propertydata"

    def test_malformed_value_skipped(self, existing):
        updated = reconcile(existing, {"epc_rating": "Z", "bathrooms": 2}, "streetdata")

        assert updated.epc_rating == "C"
        assert updated.bathrooms == 2


# =============================================================================
# Test: Provenance and Enrichment Timestamps
# =============================================================================

class TestProvenance:

    def test_owner_name_provenance(self, existing):
        updated = reconcile(existing, {"owner_name": "X"}, "searchland")

        assert updated.owner_name == "X"
        assert updated.source_of("owner_name") == "searchland"

    def test_enriched_at_stamped_without_changes(self, existing, now):
        later = now + timedelta(days=7)
        updated = reconcile(existing, {"price_pcm": None}, "zoopla", now=later)

        assert updated.enriched_at_for("zoopla") == later
        assert updated.updated_at == existing.updated_at

    def test_enriched_at_per_source(self, existing, now):
        later = now + timedelta(hours=1)
        updated = reconcile(existing, {}, "ofcom", now=later)

        assert updated.enriched_at["zoopla"] == now
        assert updated.enriched_at["ofcom"] == later

    def test_updated_at_moves_on_change(self, existing, now):
        later = now + timedelta(days=1)
        updated = reconcile(existing, {"bathrooms": 2}, "streetdata", now=later)

        assert updated.updated_at == later

    def test_external_id_recorded_per_source(self, existing):
        updated = reconcile(existing, {"external_id": "HMO/2024/0042"}, "propertydata")

        assert updated.source_ids == {"zoopla": "ZPL-1001", "propertydata": "HMO/2024/0042"}

    def test_unknown_fields_kept_per_source(self, existing):
        updated = reconcile(existing, {"agent_name": "Foxtons"}, "zoopla")

        assert updated.source_fields["zoopla"] == {"agent_name": "Foxtons"}

    def test_repeat_pass_is_idempotent(self, existing, now):
        fields = {"owner_name": "X", "owner_type": "company", "title_number": "EGL123"}
        once = reconcile(existing, fields, "searchland", now=now)
        twice = reconcile(once, fields, "searchland", now=now)

        assert twice.to_dict() == once.to_dict()
        assert changed_fields(once, twice) == []


# =============================================================================
# Test: Licence Holder vs Title Owner
# =============================================================================

class TestHolderOwnerSeparation:
    """Independent field groups, linked only on explicit assertion."""

    def test_matching_names_not_linked(self, existing):
        licensed = reconcile(existing, {"licence_holder_name": "Jane Smith"}, "propertydata")
        owned = reconcile(licensed, {"owner_name": "Jane Smith"}, "searchland")

        assert owned.licence_holder_name == "Jane Smith"
        assert owned.owner_name == "Jane Smith"
        assert owned.licence_holder_is_owner is None
        assert owned.provenance["licence_holder_name"] == "propertydata"
        assert owned.provenance["owner_name"] == "searchland"

    def test_explicit_assertion_links(self, existing):
        updated = reconcile(
            existing,
            {
                "licence_holder_name": "Elm Lettings Ltd",
                "owner_name": "Elm Lettings Ltd",
                "licence_holder_is_owner": True,
            },
            "propertydata",
        )

        assert updated.licence_holder_is_owner is True
        assert updated.provenance["licence_holder_is_owner"] == "propertydata"

    def test_assertion_without_both_names_ignored(self, existing):
        updated = reconcile(
            existing,
            {"owner_name": "Elm Lettings Ltd", "licence_holder_is_owner": True},
            "searchland",
        )

        assert updated.licence_holder_is_owner is None

    def test_owner_update_leaves_holder_alone(self, existing):
        licensed = reconcile(existing, {"licence_holder_name": "Jane Smith"}, "propertydata")
        owned = reconcile(licensed, {"owner_name": "Acme Ltd"}, "searchland")

        assert owned.licence_holder_name == "Jane Smith"


# =============================================================================
# Test: Field Coercion
# =============================================================================

class TestCoercion:

    def test_typed_values(self):
        assert coerce_field("bedrooms", "4") == 4
        assert coerce_field("licence_status", "Granted") == LicenceStatus.ACTIVE
        assert coerce_field("owner_type", "company") == OwnerType.COMPANY
        assert coerce_field("article_4_area", "yes") is True
        assert coerce_field("licence_end_date", "2026-03-31T00:00:00Z") == date(2026, 3, 31)
        assert coerce_field("gross_internal_area_sqm", "112.5") == 112.5

    @pytest.mark.parametrize(
        "name,value",
        [
            ("bedrooms", -1),
            ("bedrooms", True),
            ("licence_status", "revoked"),
            ("article_4_area", "maybe"),
            ("epc_rating", "H"),
        ],
    )
    def test_invalid_values_raise(self, name, value):
        with pytest.raises(ValueError):
            coerce_field(name, value)

    def test_is_absent(self):
        assert is_absent(None)
        assert is_absent(" ")
        assert is_absent([])
        assert not is_absent(0)
        assert not is_absent(False)
