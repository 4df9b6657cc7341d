"""
Tests for the resolution pipeline.

Verifies:
- Listing creates, licence register merges, title enriches
- Enrichment-only sources never create properties
- Geocoding fills coordinates for new properties only
- Direct source-id matches and the merge threshold
- Batch summaries and evaluation
- Concurrent ingests into one postcode district never duplicate a property
"""

import pytest
import threading
import time
from datetime import datetime, timezone
from pathlib import Path
import sys

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from hmo_engine.matching import MatchConfidence, MatchPolicy
from hmo_engine.models import ExternalRecord, LicenceStatus, OwnerType
from hmo_engine.pipeline import IngestAction, KeyedLocks, ResolutionPipeline
from hmo_engine.scoring import HmoClassification
from hmo_engine.store import InMemoryPropertyStore
from sources.geocoder import Coordinates, Geocoder


NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


# =============================================================================
# Test Fixtures
# =============================================================================

class StubGeocoder(Geocoder):
    def __init__(self, coordinates=None):
        self.coordinates = coordinates
        self.calls = []

    def geocode(self, address, postcode):
        self.calls.append((address, postcode))
        return self.coordinates


@pytest.fixture
def store():
    return InMemoryPropertyStore()


@pytest.fixture
def pipeline(store):
    return ResolutionPipeline(store, clock=lambda: NOW)


@pytest.fixture
def zoopla_listing():
    return {
        "listing_id": "ZPL-1001",
        "listing_status": "rent",
        "displayable_address": "21 Elm Road, London",
        "postcode": "E8 1EJ",
        "post_town": "London",
        "latitude": 51.5465,
        "longitude": -0.0553,
        "num_bedrooms": 5,
        "price": 3200,
    }


@pytest.fixture
def licence_entry():
    return {
        "property_address": "21 Elm Road, London",
        "postcode": "E8 1EJ",
        "number_of_bedrooms": 5,
        "licence_reference": "HMO/2024/0042",
        "licence_status": "Granted",
        "licence_holder": "Jane Smith",
    }


@pytest.fixture
def title_entry():
    return {
        "address": "21 Elm Road, London",
        "postcode": "E8 1EJ",
        "title": {
            "title_number": "EGL123456",
            "tenure": "Freehold",
            "proprietor": {"name": "Elm Lettings Ltd", "company_number": "01234567"},
        },
    }


# =============================================================================
# Test: Ingestion
# =============================================================================

class TestIngest:

    def test_listing_creates_property(self, pipeline, store, zoopla_listing):
        outcome = pipeline.ingest_raw("zoopla", zoopla_listing)

        assert outcome.action == IngestAction.CREATED
        assert outcome.confidence is None
        assert len(store) == 1
        assert outcome.property.price_pcm == 3200
        assert outcome.property.enriched_at["zoopla"] == NOW
        assert outcome.evaluation.deal_score.classification is not None

    def test_licence_register_merges(self, pipeline, store, zoopla_listing, licence_entry):
        created = pipeline.ingest_raw("zoopla", zoopla_listing)

        outcome = pipeline.ingest_raw("propertydata", licence_entry)

        assert outcome.action == IngestAction.UPDATED
        assert outcome.confidence == MatchConfidence.EXACT
        assert outcome.property.property_id == created.property.property_id
        assert outcome.property.licence_status == LicenceStatus.ACTIVE
        assert outcome.property.source_of("licence_status") == "propertydata"
        assert outcome.property.source_of("price_pcm") == "zoopla"
        assert len(store) == 1

    def test_title_enriches_owner_only(self, pipeline, zoopla_listing, licence_entry, title_entry):
        pipeline.ingest_raw("zoopla", zoopla_listing)
        pipeline.ingest_raw("propertydata", licence_entry)

        outcome = pipeline.ingest_raw("searchland", title_entry)

        prop = outcome.property
        assert outcome.action == IngestAction.UPDATED
        assert prop.owner_name == "Elm Lettings Ltd"
        assert prop.owner_type == OwnerType.COMPANY
        assert prop.licence_holder_name == "Jane Smith"
        assert prop.licence_holder_is_owner is None
        assert prop.source_ids["searchland"] == "EGL123456"

    def test_enrichment_source_cannot_create(self, pipeline, store, title_entry):
        outcome = pipeline.ingest_raw("searchland", title_entry)

        assert outcome.action == IngestAction.REJECTED
        assert outcome.reasons == ["no matching property"]
        assert outcome.property is None
        assert len(store) == 0

    def test_direct_source_id_match(self, pipeline, store, zoopla_listing):
        created = pipeline.ingest_raw("zoopla", zoopla_listing)
        zoopla_listing.update(displayable_address="Flat A, Elm Rd", price=3300)

        outcome = pipeline.ingest_raw("zoopla", zoopla_listing)

        assert outcome.action == IngestAction.UPDATED
        assert outcome.confidence == MatchConfidence.EXACT
        assert outcome.property.property_id == created.property.property_id
        assert outcome.property.price_pcm == 3300

    def test_different_outcode_creates_new(self, pipeline, store, zoopla_listing):
        pipeline.ingest_raw("zoopla", zoopla_listing)
        zoopla_listing.update(listing_id="ZPL-2002", postcode="N1 1AA", latitude=51.538, longitude=-0.099)

        outcome = pipeline.ingest_raw("zoopla", zoopla_listing)

        assert outcome.action == IngestAction.CREATED
        assert len(store) == 2

    def test_below_merge_threshold_creates_new(self, store, zoopla_listing):
        pipeline = ResolutionPipeline(
            store, match_policy=MatchPolicy(min_merge_confidence=MatchConfidence.HIGH)
        )
        pipeline.ingest_raw("zoopla", zoopla_listing)
        zoopla_listing.update(listing_id="ZPL-1003", displayable_address="23 Elm Road, London")

        outcome = pipeline.ingest_raw("zoopla", zoopla_listing)

        assert outcome.action == IngestAction.CREATED
        assert outcome.confidence == MatchConfidence.MEDIUM
        assert len(store) == 2

    def test_unknown_source_raises(self, pipeline):
        with pytest.raises(KeyError):
            pipeline.ingest_raw("rightmove", {})


# =============================================================================
# Test: Creation Gate and Geocoding
# =============================================================================

class TestCreation:

    def test_missing_coordinates_rejected_without_geocoder(self, pipeline, store, zoopla_listing):
        del zoopla_listing["latitude"]
        del zoopla_listing["longitude"]

        outcome = pipeline.ingest_raw("zoopla", zoopla_listing)

        assert outcome.action == IngestAction.REJECTED
        assert outcome.reasons == ["valid non-zero coordinates are required"]
        assert len(store) == 0

    def test_geocoder_fills_coordinates(self, store, zoopla_listing):
        geocoder = StubGeocoder(Coordinates(latitude=51.5465, longitude=-0.0553))
        pipeline = ResolutionPipeline(store, geocoder=geocoder)
        zoopla_listing.update(latitude=0, longitude=0)

        outcome = pipeline.ingest_raw("zoopla", zoopla_listing)

        assert outcome.action == IngestAction.CREATED
        assert (outcome.property.latitude, outcome.property.longitude) == (51.5465, -0.0553)
        assert geocoder.calls == [("21 Elm Road, London", "E8 1EJ")]

    def test_geocoder_not_called_when_coordinates_known(self, store, zoopla_listing):
        geocoder = StubGeocoder()
        pipeline = ResolutionPipeline(store, geocoder=geocoder)

        pipeline.ingest_raw("zoopla", zoopla_listing)

        assert geocoder.calls == []

    def test_geocoder_miss_rejects(self, store, zoopla_listing):
        pipeline = ResolutionPipeline(store, geocoder=StubGeocoder(None))
        del zoopla_listing["latitude"]

        outcome = pipeline.ingest_raw("zoopla", zoopla_listing)

        assert outcome.action == IngestAction.REJECTED

    def test_missing_bedrooms_rejected(self, pipeline, zoopla_listing):
        del zoopla_listing["num_bedrooms"]

        outcome = pipeline.ingest_raw("zoopla", zoopla_listing)

        assert outcome.action == IngestAction.REJECTED
        assert outcome.reasons == ["bedrooms is required"]
        assert outcome.message.startswith("Creation rejected")


# =============================================================================
# Test: Enrichment by Id
# =============================================================================

class TestEnrich:

    def test_enrich_known_property(self, pipeline, store, zoopla_listing):
        created = pipeline.ingest_raw("zoopla", zoopla_listing)

        prop = pipeline.enrich(created.property.property_id, {"has_fiber": True}, "ofcom")

        assert prop.has_fiber is True
        assert prop.enriched_at["ofcom"] == NOW
        assert store.get(prop.property_id).has_fiber is True

    def test_enrich_without_changes_still_stamps(self, pipeline, zoopla_listing):
        created = pipeline.ingest_raw("zoopla", zoopla_listing)

        prop = pipeline.enrich(created.property.property_id, {"has_fiber": None}, "ofcom")

        assert prop.enriched_at["ofcom"] == NOW
        assert prop.has_fiber is None

    def test_enrich_unknown_property(self, pipeline):
        with pytest.raises(KeyError):
            pipeline.enrich("missing", {"has_fiber": True}, "ofcom")


# =============================================================================
# Test: Batches and Evaluation
# =============================================================================

class TestBatchAndEvaluation:

    def test_batch_summary(self, pipeline, zoopla_listing):
        duplicate = dict(zoopla_listing)
        no_beds = dict(zoopla_listing, listing_id="ZPL-9", displayable_address="9 Oak Road")
        del no_beds["num_bedrooms"]

        summary = pipeline.ingest_batch([zoopla_listing, duplicate, no_beds], "zoopla")

        assert (summary.total, summary.created, summary.updated, summary.rejected) == (3, 1, 1, 1)
        assert summary.errors == ["Creation rejected: bedrooms is required"]
        assert summary.to_dict()["source"] == "zoopla"

    def test_batch_accepts_extracted_records(self, pipeline):
        record = ExternalRecord(
            source="zoopla",
            address="3 Mill Lane",
            postcode="M1 1AA",
            latitude=53.4808,
            longitude=-2.2426,
            bedrooms=3,
        )

        summary = pipeline.ingest_batch([record], "zoopla")

        assert summary.created == 1

    def test_evaluate_sets_classification(self, pipeline, zoopla_listing):
        created = pipeline.ingest_raw("zoopla", zoopla_listing)

        evaluation = pipeline.evaluate(created.property)

        assert isinstance(evaluation.deal_score.classification, HmoClassification)
        data = evaluation.to_dict()
        assert data["property_id"] == created.property.property_id
        assert data["ta_suitability"]["verdict"] in ("suitable", "partial", "not_suitable")

    def test_evaluate_all_best_first(self, pipeline, zoopla_listing):
        pipeline.ingest_raw("zoopla", zoopla_listing)
        pipeline.ingest_raw(
            "zoopla",
            dict(
                zoopla_listing,
                listing_id="ZPL-2002",
                postcode="M1 1AA",
                post_town="Manchester",
                latitude=53.4808,
                longitude=-2.2426,
                num_bedrooms=3,
                epc_rating="G",
            ),
        )

        scores = [e.deal_score.score for e in pipeline.evaluate_all()]

        assert scores == sorted(scores, reverse=True)
        assert len(scores) == 2


# =============================================================================
# Test: Concurrency
# =============================================================================

class SlowStore(InMemoryPropertyStore):
    """Candidate search that leaves room for another ingest to run alongside."""

    def candidates_near(self, postcode):
        found = super().candidates_near(postcode)
        time.sleep(0.05)
        return found


class TestConcurrency:

    def test_concurrent_ingests_in_one_district_create_once(self, zoopla_listing):
        store = SlowStore()
        pipeline = ResolutionPipeline(store, clock=lambda: NOW)
        payloads = [
            zoopla_listing,
            dict(zoopla_listing, listing_id="ZPL-1101", postcode="E11 2AB", latitude=51.568, longitude=0.008),
        ]
        start = threading.Barrier(len(payloads))
        outcomes = []

        def run(payload):
            start.wait()
            outcomes.append(pipeline.ingest_raw("zoopla", payload))

        threads = [threading.Thread(target=run, args=(p,)) for p in payloads]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(store) == 1
        assert sorted(o.action.value for o in outcomes) == ["created", "updated"]

    def test_idle_locks_are_dropped(self):
        locks = KeyedLocks()

        with locks.hold("area:E"):
            with locks.hold("area:E"):
                assert len(locks) == 1
            with locks.hold("property:p1"):
                assert len(locks) == 2

        assert len(locks) == 0
