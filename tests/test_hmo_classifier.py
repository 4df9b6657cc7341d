"""
Tests for HMO facts and classification.

Verifies:
- Occupancy and floor area estimates
- Exclusion and needs-work reasons
- Decision table: not relevant, ready_to_go, value_add, not_suitable
"""

import pytest
from dataclasses import replace
from pathlib import Path
import sys

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from hmo_engine.models import CanonicalProperty, LicenceStatus
from hmo_engine.scoring import (
    ComplianceComplexity,
    FloorAreaBand,
    HmoClassification,
    HmoPolicy,
    YieldBand,
    classify_hmo,
    compute_deal_score,
    derive_hmo_facts,
)


# =============================================================================
# Test Fixtures
# =============================================================================

@pytest.fixture
def hmo_property():
    """Eight-room licensed HMO in Hackney."""
    return CanonicalProperty(
        property_id="prop-hmo-1",
        address="21 Elm Road",
        postcode="E8 1EJ",
        city="London",
        latitude=51.5465,
        longitude=-0.0553,
        bedrooms=5,
        bathrooms=2,
        gross_internal_area_sqm=140.0,
        purchase_price=600000,
        epc_rating="C",
        licence_status=LicenceStatus.ACTIVE,
        article_4_area=False,
        conservation_area=False,
    )


def classify(prop, policy=None):
    score = compute_deal_score(prop)
    if policy is None:
        return classify_hmo(prop, score), score
    return classify_hmo(prop, score, policy), score


# =============================================================================
# Test: HMO Facts
# =============================================================================

class TestHmoFacts:

    def test_large_home_replanned_into_more_rooms(self, hmo_property):
        facts = derive_hmo_facts(hmo_property)

        assert facts.lettable_rooms == 8
        assert facts.potential_occupants == 8
        assert facts.requires_mandatory_licensing
        assert facts.meets_space_standards
        assert facts.bathroom_ratio_compliant is True
        assert facts.estimated_monthly_rent == 6800
        assert facts.estimated_yield_percent == 13.6
        assert facts.yield_band == YieldBand.HIGH
        assert facts.compliance_complexity == ComplianceComplexity.LOW
        assert not facts.area_is_estimated

    def test_room_cap(self, hmo_property):
        facts = derive_hmo_facts(replace(hmo_property, bedrooms=4, gross_internal_area_sqm=200.0))

        assert facts.lettable_rooms == 8

    def test_declared_lettable_rooms_win(self, hmo_property):
        facts = derive_hmo_facts(replace(hmo_property, lettable_rooms=6))

        assert facts.lettable_rooms == 6
        assert facts.requires_mandatory_licensing

    def test_floor_area_estimated_from_rooms(self, hmo_property):
        prop = replace(hmo_property, bedrooms=3, bathrooms=None, gross_internal_area_sqm=None)

        facts = derive_hmo_facts(prop)

        # 3 x 12 + 1 x 5 + 36
        assert facts.gross_internal_area_sqm == 77.0
        assert facts.area_is_estimated
        assert facts.bathroom_ratio_compliant is None

    @pytest.mark.parametrize(
        "area,band",
        [
            (77.0, FloorAreaBand.UNDER_90),
            (100.0, FloorAreaBand.FROM_90_TO_120),
            (120.0, FloorAreaBand.FROM_90_TO_120),
            (140.0, FloorAreaBand.OVER_120),
        ],
    )
    def test_floor_area_bands(self, hmo_property, area, band):
        facts = derive_hmo_facts(replace(hmo_property, gross_internal_area_sqm=area))

        assert facts.floor_area_band == band

    def test_too_few_bathrooms(self, hmo_property):
        facts = derive_hmo_facts(replace(hmo_property, bathrooms=1))

        assert facts.bathroom_ratio_compliant is False
        assert "Too few bathrooms for occupancy" in facts.needs_work_reasons

    def test_small_home_excluded(self, hmo_property):
        prop = replace(hmo_property, bedrooms=2, bathrooms=1, gross_internal_area_sqm=None)

        facts = derive_hmo_facts(prop)

        assert not facts.is_hmo_relevant
        assert facts.exclusion_reasons == (
            "Cannot accommodate minimum 3 residents",
            "Floor area too small for viable HMO use",
        )

    def test_planning_constraints_raise_complexity(self, hmo_property):
        prop = replace(
            hmo_property, article_4_area=True, conservation_area=True, epc_rating="G"
        )

        assert derive_hmo_facts(prop).compliance_complexity == ComplianceComplexity.HIGH


# =============================================================================
# Test: Classification
# =============================================================================

class TestClassification:

    def test_ready_to_go(self, hmo_property):
        classification, score = classify(hmo_property)

        assert score.score == 98.0
        assert classification == HmoClassification.READY_TO_GO

    def test_pending_licence_is_value_add(self, hmo_property):
        classification, score = classify(replace(hmo_property, licence_status=LicenceStatus.PENDING))

        assert score.score == 96.0
        assert classification == HmoClassification.VALUE_ADD

    def test_article_4_is_value_add(self, hmo_property):
        classification, _ = classify(replace(hmo_property, article_4_area=True))

        assert classification == HmoClassification.VALUE_ADD

    def test_low_score_not_suitable(self, hmo_property):
        prop = replace(
            hmo_property,
            purchase_price=3000000,
            epc_rating="G",
            article_4_area=True,
            conservation_area=True,
            listed_building_grade="II",
            licence_status=LicenceStatus.EXPIRED,
        )

        classification, score = classify(prop)

        assert score.sub_scores["yield"] == 27.2
        assert score.sub_scores["compliance"] == 0.0
        assert score.score == 31.88
        assert classification == HmoClassification.NOT_SUITABLE

    def test_not_relevant_overrides_score(self, hmo_property):
        prop = replace(hmo_property, bedrooms=2, bathrooms=1, gross_internal_area_sqm=None)

        classification, _ = classify(prop)

        assert classification == HmoClassification.NOT_SUITABLE

    def test_mid_score_without_work_is_value_add(self):
        prop = CanonicalProperty(
            property_id="prop-bare-1",
            address="3 Mill Lane",
            latitude=53.4808,
            longitude=-2.2426,
            bedrooms=3,
        )

        classification, score = classify(prop)

        assert score.score == 50.0
        assert not score.facts.needs_work
        assert classification == HmoClassification.VALUE_ADD

        lenient, _ = classify(prop, HmoPolicy(high_threshold=50.0))
        assert lenient == HmoClassification.READY_TO_GO

    def test_thresholds_must_be_ordered(self):
        with pytest.raises(ValueError):
            HmoPolicy(high_threshold=30.0, lower_threshold=40.0)

    def test_from_string(self):
        assert HmoClassification.from_string("ready-to-go") == HmoClassification.READY_TO_GO
        assert HmoClassification.from_string("Value Add") == HmoClassification.VALUE_ADD
        assert HmoClassification.from_string("maybe") is None
