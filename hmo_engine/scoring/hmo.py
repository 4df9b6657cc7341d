"""
HMO facts and classification.

derive_hmo_facts turns a canonical property into the occupancy, space,
licensing and yield facts that the deal score and the classifier share.
classify_hmo is a decision table over those facts and the deal score.
"""

from __future__ import annotations

import logging
import math
from typing import Optional

from hmo_engine.models import CanonicalProperty, LicenceStatus
from hmo_engine.scoring.models import (
    ComplianceComplexity,
    DealScoreResult,
    FloorAreaBand,
    HmoClassification,
    HmoFacts,
    YieldBand,
)
from hmo_engine.scoring.policy import (
    DEFAULT_DEAL_POLICY,
    DEFAULT_HMO_POLICY,
    DealScoringPolicy,
    HmoPolicy,
)


logger = logging.getLogger(__name__)

# EPC bands where a retrofit is the main compliance risk
_EPC_HIGH_RETROFIT = frozenset({"F", "G"})
_EPC_MEDIUM_RETROFIT = frozenset({"E"})


def price_basis(prop: CanonicalProperty) -> tuple[Optional[int], Optional[str]]:
    """Price to measure yield against: purchase price, estimate, then last sale."""
    for name in ("purchase_price", "estimated_value", "last_sale_price"):
        value = getattr(prop, name)
        if value:
            return value, name
    return None, None


def estimate_gross_internal_area(
    prop: CanonicalProperty, policy: HmoPolicy = DEFAULT_HMO_POLICY
) -> tuple[float, bool]:
    """
    Gross internal area in m2, and whether it was estimated.

    Without a published figure: bedrooms x 12 + bathrooms x 5 + 36 for
    kitchen, living room and hallway.
    """
    if prop.gross_internal_area_sqm:
        return float(prop.gross_internal_area_sqm), False
    bathrooms = prop.bathrooms if prop.bathrooms is not None else policy.assumed_bathrooms
    area = (
        prop.bedrooms * policy.sqm_per_bedroom
        + bathrooms * policy.sqm_per_bathroom
        + policy.common_area_sqm
    )
    return float(area), True


def estimate_lettable_rooms(bedrooms: int, area: float, policy: HmoPolicy = DEFAULT_HMO_POLICY) -> int:
    """Existing bedrooms, or more for large homes up to the room cap."""
    rooms = bedrooms
    if area >= policy.large_home_sqm:
        potential = math.floor(area / policy.sqm_per_lettable_room)
        rooms = max(rooms, min(potential, policy.max_lettable_rooms))
    return rooms


def floor_area_band(area: float, policy: HmoPolicy = DEFAULT_HMO_POLICY) -> Optional[FloorAreaBand]:
    if not area:
        return None
    if area < policy.floor_band_small_below:
        return FloorAreaBand.UNDER_90
    if area <= policy.floor_band_large_above:
        return FloorAreaBand.FROM_90_TO_120
    return FloorAreaBand.OVER_120


def yield_band(yield_percent: Optional[float], policy: HmoPolicy = DEFAULT_HMO_POLICY) -> Optional[YieldBand]:
    if yield_percent is None:
        return None
    if yield_percent >= policy.yield_band_high:
        return YieldBand.HIGH
    if yield_percent >= policy.yield_band_medium:
        return YieldBand.MEDIUM
    return YieldBand.LOW


def _compliance_complexity(
    prop: CanonicalProperty,
    meets_space_standards: bool,
    bathroom_ratio_compliant: Optional[bool],
) -> ComplianceComplexity:
    points = 0
    if not meets_space_standards:
        points += 2
    if bathroom_ratio_compliant is False:
        points += 1
    if prop.conservation_area:
        points += 2
    if prop.article_4_area:
        points += 2
    if prop.listed_building_grade:
        points += 2
    if prop.epc_rating in _EPC_HIGH_RETROFIT:
        points += 2
    elif prop.epc_rating in _EPC_MEDIUM_RETROFIT or prop.epc_rating is None:
        points += 1

    if points >= 4:
        return ComplianceComplexity.HIGH
    if points >= 2:
        return ComplianceComplexity.MEDIUM
    return ComplianceComplexity.LOW


def needs_work_reasons(
    prop: CanonicalProperty,
    requires_mandatory_licensing: bool,
    meets_space_standards: bool,
    bathroom_ratio_compliant: Optional[bool],
) -> list[str]:
    """Structural, licensing or planning work standing between the property and HMO use."""
    reasons = []

    if prop.licence_status == LicenceStatus.EXPIRED:
        reasons.append("HMO licence expired")
    elif prop.licence_status == LicenceStatus.PENDING:
        reasons.append("HMO licence application pending")
    elif requires_mandatory_licensing and prop.licence_status != LicenceStatus.ACTIVE:
        reasons.append("Mandatory HMO licence not held")

    if not meets_space_standards:
        reasons.append("Rooms below minimum space standard")
    if bathroom_ratio_compliant is False:
        reasons.append("Too few bathrooms for occupancy")
    if prop.article_4_area:
        reasons.append("Article 4 direction: planning permission required")
    if prop.listed_building_grade:
        reasons.append(f"Listed building (grade {prop.listed_building_grade}): works restricted")

    return reasons


def derive_hmo_facts(
    prop: CanonicalProperty,
    policy: HmoPolicy = DEFAULT_HMO_POLICY,
    scoring: DealScoringPolicy = DEFAULT_DEAL_POLICY,
) -> HmoFacts:
    """
    Derive HMO occupancy, space, licensing and yield facts for a property.

    Args:
        prop: Canonical property
        policy: Occupancy and space thresholds
        scoring: Supplies the regional rent-per-room table

    Returns:
        HmoFacts
    """
    area, estimated = estimate_gross_internal_area(prop, policy)
    rooms = estimate_lettable_rooms(prop.bedrooms, area, policy)
    if prop.lettable_rooms is not None:
        rooms = prop.lettable_rooms
    occupants = rooms

    exclusions = []
    if occupants < policy.min_occupants:
        exclusions.append(f"Cannot accommodate minimum {policy.min_occupants} residents")
    if area < policy.min_viable_sqm:
        exclusions.append("Floor area too small for viable HMO use")

    requires_licensing = occupants >= policy.mandatory_licensing_occupants
    meets_space = bool(rooms) and area / rooms >= policy.min_room_sqm

    bathroom_ok: Optional[bool] = None
    if prop.bathrooms is not None:
        bathroom_ok = prop.bathrooms >= math.ceil(occupants / policy.bathroom_ratio)

    rent_per_room = scoring.rent_per_room_for(prop.city)
    monthly_rent = rent_per_room * rooms
    price, _ = price_basis(prop)
    yield_percent = round(monthly_rent * 12 / price * 100, 2) if price else None

    return HmoFacts(
        gross_internal_area_sqm=round(area, 1),
        area_is_estimated=estimated,
        lettable_rooms=rooms,
        potential_occupants=occupants,
        is_hmo_relevant=not exclusions,
        requires_mandatory_licensing=requires_licensing,
        meets_space_standards=meets_space,
        bathroom_ratio_compliant=bathroom_ok,
        floor_area_band=floor_area_band(area, policy),
        rent_per_room=rent_per_room,
        estimated_monthly_rent=monthly_rent,
        estimated_yield_percent=yield_percent,
        yield_band=yield_band(yield_percent, policy),
        compliance_complexity=_compliance_complexity(prop, meets_space, bathroom_ok),
        exclusion_reasons=tuple(exclusions),
        needs_work_reasons=tuple(
            needs_work_reasons(prop, requires_licensing, meets_space, bathroom_ok)
        ),
    )


def classify_hmo(
    prop: CanonicalProperty,
    score: DealScoreResult,
    policy: HmoPolicy = DEFAULT_HMO_POLICY,
) -> HmoClassification:
    """
    Tag a scored property for HMO investment.

    1. Not HMO-relevant -> not_suitable
    2. No work needed and score >= high threshold -> ready_to_go
    3. Score >= lower threshold -> value_add
    4. Otherwise -> not_suitable
    """
    facts = score.facts
    if not facts.is_hmo_relevant:
        classification = HmoClassification.NOT_SUITABLE
    elif not facts.needs_work and score.score >= policy.high_threshold:
        classification = HmoClassification.READY_TO_GO
    elif score.score >= policy.lower_threshold:
        classification = HmoClassification.VALUE_ADD
    else:
        classification = HmoClassification.NOT_SUITABLE

    logger.debug(
        "Classified %s as %s (score %.1f, work: %s)",
        prop.property_id,
        classification.value,
        score.score,
        ", ".join(facts.needs_work_reasons) or "none",
    )
    return classification
