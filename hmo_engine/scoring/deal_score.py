"""
Deal scoring logic.
"""

from __future__ import annotations

import logging
from typing import Optional

from hmo_engine.models import CanonicalProperty, LicenceStatus
from hmo_engine.scoring.hmo import derive_hmo_facts, price_basis
from hmo_engine.scoring.models import DealScoreResult, HmoFacts
from hmo_engine.scoring.policy import (
    DEFAULT_DEAL_POLICY,
    DEFAULT_HMO_POLICY,
    DealScoringPolicy,
    HmoPolicy,
)


logger = logging.getLogger(__name__)


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


class DealScorer:
    """
    Calculates the deal score for a canonical property.

    Scoring methodology (default weights):
    - Yield Score (40%): Gross rental yield against purchase price
    - EPC Score (20%): Retrofit cost risk by EPC band
    - Compliance Score (20%): Planning and licensing burden
    - Location Score (20%): Floor area per occupant against space standards

    A factor whose inputs are missing scores the policy default instead of
    failing the whole computation.
    """

    def __init__(
        self,
        policy: DealScoringPolicy = DEFAULT_DEAL_POLICY,
        hmo_policy: HmoPolicy = DEFAULT_HMO_POLICY,
    ):
        self.policy = policy
        self.hmo_policy = hmo_policy

    def score(self, prop: CanonicalProperty) -> DealScoreResult:
        """
        Score a single property.

        Args:
            prop: Canonical property with at least an address and bedroom count

        Returns:
            DealScoreResult with per-factor breakdown
        """
        facts = derive_hmo_facts(prop, self.hmo_policy, self.policy)
        defaults: list[str] = []

        yield_score, gross, annual_rent, basis = self._calculate_yield_score(prop, facts)
        if yield_score is None:
            defaults.append("yield")
        epc_score = self._calculate_epc_score(prop)
        if epc_score is None:
            defaults.append("epc")
        compliance_score = self._calculate_compliance_score(prop, facts)
        if compliance_score is None:
            defaults.append("compliance")
        location_score = self._calculate_location_score(prop, facts)
        if location_score is None:
            defaults.append("location")

        fallback = self.policy.default_subscore
        sub_scores = {
            "yield": round(fallback if yield_score is None else yield_score, 1),
            "epc": round(fallback if epc_score is None else epc_score, 1),
            "compliance": round(fallback if compliance_score is None else compliance_score, 1),
            "location": round(fallback if location_score is None else location_score, 1),
        }

        # Calculate weighted contributions
        weights = self.policy.weights
        breakdown = {name: round(sub_scores[name] * weights[name], 2) for name in sub_scores}
        total = round(_clamp(sum(breakdown.values())), 2)

        net = None
        if gross is not None:
            net = round(gross * (1 - self.policy.operating_cost_ratio), 2)

        result = DealScoreResult(
            score=total,
            breakdown=breakdown,
            sub_scores=sub_scores,
            facts=facts,
            defaults_applied=defaults,
            gross_yield_percent=gross,
            net_yield_percent=net,
            annual_rent=annual_rent,
            price_basis=basis,
            notes=self._generate_notes(prop, facts, gross),
        )
        logger.debug(
            "Deal score for %s: %.2f %s (defaults: %s)",
            prop.property_id,
            total,
            breakdown,
            ", ".join(defaults) or "none",
        )
        return result

    def score_batch(self, props: list[CanonicalProperty]) -> list[tuple[CanonicalProperty, DealScoreResult]]:
        """Score multiple properties, best first."""
        scored = [(prop, self.score(prop)) for prop in props]
        return sorted(scored, key=lambda pair: pair[1].score, reverse=True)

    def _calculate_yield_score(
        self, prop: CanonicalProperty, facts: HmoFacts
    ) -> tuple[Optional[float], Optional[float], Optional[int], Optional[str]]:
        """
        Calculate yield score (0-100) from gross yield.

        Passing rent (price_pcm) is used when known, else the HMO rent
        estimate. Score rises linearly to the target score at the target
        yield, then more slowly to 100 at the ceiling, and stays there.

        Returns:
            (score or None, gross yield %, annual rent, price basis field)
        """
        price, basis = price_basis(prop)
        if prop.price_pcm:
            annual_rent = prop.price_pcm * 12
        else:
            annual_rent = facts.estimated_monthly_rent * 12

        if not price or not annual_rent:
            return None, None, annual_rent or None, basis

        gross = round(annual_rent / price * 100, 2)
        target = self.policy.yield_target_percent
        ceiling = self.policy.yield_ceiling_percent
        at_target = self.policy.yield_score_at_target

        if gross >= ceiling:
            score = 100.0
        elif gross >= target:
            score = at_target + (gross - target) / (ceiling - target) * (100 - at_target)
        else:
            score = gross / target * at_target
        return _clamp(score), gross, annual_rent, basis

    def _calculate_epc_score(self, prop: CanonicalProperty) -> Optional[float]:
        """EPC score (0-100); None when the rating is unknown."""
        if not prop.epc_rating:
            return None
        score = self.policy.epc_scores.get(prop.epc_rating.upper())
        return None if score is None else _clamp(score)

    def _calculate_compliance_score(
        self, prop: CanonicalProperty, facts: HmoFacts
    ) -> Optional[float]:
        """
        Compliance score (0-100): 100 less planning and licensing penalties.

        None when neither planning nor licence facts are known.
        """
        known = (
            prop.article_4_area,
            prop.conservation_area,
            prop.listed_building_grade,
            prop.licence_status,
        )
        if all(value is None for value in known):
            return None

        policy = self.policy
        score = 100.0
        if prop.article_4_area:
            score -= policy.article_4_penalty
        if prop.conservation_area:
            score -= policy.conservation_area_penalty
        if prop.listed_building_grade:
            score -= policy.listed_building_penalty
        if prop.licence_status == LicenceStatus.PENDING:
            score -= policy.licence_pending_penalty
        elif prop.licence_status == LicenceStatus.EXPIRED:
            score -= policy.licence_expired_penalty
        elif prop.licence_status == LicenceStatus.NONE and facts.requires_mandatory_licensing:
            score -= policy.unlicensed_mandatory_penalty
        return _clamp(score)

    def _calculate_location_score(
        self, prop: CanonicalProperty, facts: HmoFacts
    ) -> Optional[float]:
        """
        Location score (0-100) from floor area per lettable room.

        At or above the comfortable size = 100, at the legal minimum = 50,
        below it falls towards 0. None without a published floor area.
        """
        if facts.area_is_estimated or not facts.lettable_rooms:
            return None

        per_room = facts.gross_internal_area_sqm / facts.lettable_rooms
        minimum = self.hmo_policy.min_room_sqm
        comfortable = self.policy.comfortable_sqm_per_room

        if per_room >= comfortable:
            return 100.0
        if per_room >= minimum:
            return 50 + (per_room - minimum) / (comfortable - minimum) * 50
        return _clamp(per_room / minimum * 50)

    def _generate_notes(
        self,
        prop: CanonicalProperty,
        facts: HmoFacts,
        gross_yield: Optional[float],
    ) -> list[str]:
        """Generate analysis notes for the property."""
        notes = []

        if gross_yield is not None:
            if gross_yield >= self.policy.yield_ceiling_percent:
                notes.append(f"Gross yield {gross_yield:.1f}% at or above ceiling - verify rent and price")
            elif gross_yield >= self.policy.yield_target_percent:
                notes.append(f"Strong gross yield: {gross_yield:.1f}%")

        if prop.epc_rating in ("F", "G"):
            notes.append(f"EPC {prop.epc_rating} - retrofit required before letting")

        if facts.requires_mandatory_licensing:
            notes.append(f"{facts.potential_occupants} occupants - mandatory HMO licensing applies")

        if prop.article_4_area:
            notes.append("Article 4 area - planning permission needed for HMO use")

        return notes


def compute_deal_score(
    prop: CanonicalProperty,
    policy: DealScoringPolicy = DEFAULT_DEAL_POLICY,
    hmo_policy: HmoPolicy = DEFAULT_HMO_POLICY,
) -> DealScoreResult:
    """Deal score (0-100) with breakdown for a canonical property."""
    return DealScorer(policy, hmo_policy).score(prop)
