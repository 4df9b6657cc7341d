"""
Temporary Accommodation (TA) suitability.

Five boolean criteria, one point each:

1. is_rental          - listed to rent, not to buy
2. has_active_licence - HMO licence status is active
3. has_adequate_epc   - EPC within the adequate bands (A-D)
4. has_min_bedrooms   - at least the policy minimum bedrooms
5. within_lha_budget  - rent no more than the LHA monthly rate x tolerance;
                        fails when no rate is known for the location

5 = suitable, 3-4 = partial, 0-2 = not suitable.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from hmo_engine.lha_rates import get_lha_monthly_rate
from hmo_engine.models import CanonicalProperty, LicenceStatus, ListingType
from hmo_engine.scoring.models import TA_CRITERIA_LABELS, TASuitabilityResult, TAVerdict
from hmo_engine.scoring.policy import DEFAULT_TA_POLICY, TAPolicy


logger = logging.getLogger(__name__)

# (city, bedrooms, postcode) -> monthly rate or None
LhaLookup = Callable[[Optional[str], int, Optional[str]], Optional[float]]

CRITERIA_COUNT = len(TA_CRITERIA_LABELS)
PARTIAL_MIN_SCORE = 3


def _verdict(score: int) -> TAVerdict:
    if score == CRITERIA_COUNT:
        return TAVerdict.SUITABLE
    if score >= PARTIAL_MIN_SCORE:
        return TAVerdict.PARTIAL
    return TAVerdict.NOT_SUITABLE


def _reason(criteria: dict[str, bool], score: int) -> str:
    if score == CRITERIA_COUNT:
        return "Meets all TA placement criteria"
    failed = ", ".join(TA_CRITERIA_LABELS[name] for name, ok in criteria.items() if not ok)
    return f"Meets {score}/{CRITERIA_COUNT} criteria; failed: {failed}"


def assess_ta_suitability(
    prop: CanonicalProperty,
    lha_lookup: LhaLookup = get_lha_monthly_rate,
    policy: TAPolicy = DEFAULT_TA_POLICY,
) -> TASuitabilityResult:
    """
    Assess a property for temporary accommodation placement.

    Args:
        prop: Canonical property
        lha_lookup: LHA monthly rate lookup
        policy: Bedroom minimum, LHA tolerance and adequate EPC bands

    Returns:
        TASuitabilityResult
    """
    lha_monthly = lha_lookup(prop.city, prop.bedrooms, prop.postcode or None)

    within_budget = False
    if lha_monthly is not None and prop.price_pcm is not None and prop.price_pcm > 0:
        within_budget = prop.price_pcm <= lha_monthly * policy.lha_tolerance

    criteria = {
        "is_rental": prop.listing_type == ListingType.RENT,
        "has_active_licence": prop.licence_status == LicenceStatus.ACTIVE,
        "has_adequate_epc": (prop.epc_rating or "").upper() in policy.adequate_epc_bands,
        "has_min_bedrooms": prop.bedrooms is not None and prop.bedrooms >= policy.min_bedrooms,
        "within_lha_budget": within_budget,
    }
    score = sum(1 for passed in criteria.values() if passed)

    result = TASuitabilityResult(
        criteria=criteria,
        score=score,
        verdict=_verdict(score),
        lha_monthly_rate=lha_monthly,
        reason=_reason(criteria, score),
    )
    logger.debug("TA assessment for %s: %s (%d/5)", prop.property_id, result.verdict.value, score)
    return result
