"""
Confidence Matcher

Decides how confidently a candidate record describes a target property.
Rules are evaluated top to bottom and the first that fires wins:

1. Outcodes differ AND districts differ -> none
2. Same outcode:
   - street number + street name -> exact
   - street number + same bedrooms -> high
   - street name + same bedrooms -> medium
   - street name alone -> low
3. Same outcode (nothing above fired) or same district:
   bedrooms within tolerance -> nearby
4. Otherwise -> none

An empty postcode on either side fails every postcode-based tier.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Final, Optional

from hmo_engine.address import NormalisedAddress, normalise_address
from hmo_engine.matching.models import Addressable, MatchConfidence


logger = logging.getLogger(__name__)


# Bedroom spread allowed for the "nearby" tier
NEARBY_BEDROOM_TOLERANCE: Final[int] = 2


@dataclass(frozen=True)
class MatchPolicy:
    """Tunable matching parameters."""

    nearby_bedroom_tolerance: int = NEARBY_BEDROOM_TOLERANCE
    # Weakest tier that the pipeline will merge into an existing property
    min_merge_confidence: MatchConfidence = MatchConfidence.NEARBY

    def __post_init__(self) -> None:
        if self.nearby_bedroom_tolerance < 0:
            raise ValueError("nearby_bedroom_tolerance cannot be negative")
        if self.min_merge_confidence is MatchConfidence.NONE:
            raise ValueError("min_merge_confidence cannot be 'none'")


DEFAULT_MATCH_POLICY: Final = MatchPolicy()


def street_numbers_match(a: NormalisedAddress, b: NormalisedAddress) -> bool:
    """Both street numbers present and equal, ignoring case."""
    return bool(a.street_number and b.street_number) and (
        a.street_number.lower() == b.street_number.lower()
    )


def street_names_match(a: NormalisedAddress, b: NormalisedAddress) -> bool:
    """Both street names present and one contains the other."""
    if not (a.street_name and b.street_name):
        return False
    name_a = a.street_name.lower()
    name_b = b.street_name.lower()
    return name_a in name_b or name_b in name_a


def bedrooms_equal(a: Optional[int], b: Optional[int]) -> bool:
    return a is not None and b is not None and a == b


def bedrooms_within(a: Optional[int], b: Optional[int], tolerance: int) -> bool:
    return a is not None and b is not None and abs(a - b) <= tolerance


def confidence_between(
    target: NormalisedAddress,
    target_bedrooms: Optional[int],
    candidate: NormalisedAddress,
    candidate_bedrooms: Optional[int],
    policy: MatchPolicy = DEFAULT_MATCH_POLICY,
) -> MatchConfidence:
    """
    Confidence tier for two already-normalised addresses.

    Args:
        target: Normalised address of the property being matched
        target_bedrooms: Target bedroom count, if known
        candidate: Normalised address of the candidate record
        candidate_bedrooms: Candidate bedroom count, if known
        policy: Matching parameters

    Returns:
        MatchConfidence tier
    """
    if not (target.outcode and candidate.outcode):
        return MatchConfidence.NONE

    same_outcode = target.outcode == candidate.outcode
    same_district = bool(target.district) and target.district == candidate.district

    if not same_outcode and not same_district:
        return MatchConfidence.NONE

    if same_outcode:
        number_match = street_numbers_match(target, candidate)
        name_match = street_names_match(target, candidate)
        beds_match = bedrooms_equal(target_bedrooms, candidate_bedrooms)

        if number_match and name_match:
            return MatchConfidence.EXACT
        if number_match and beds_match:
            return MatchConfidence.HIGH
        if name_match and beds_match:
            return MatchConfidence.MEDIUM
        if name_match:
            return MatchConfidence.LOW

    if bedrooms_within(target_bedrooms, candidate_bedrooms, policy.nearby_bedroom_tolerance):
        return MatchConfidence.NEARBY

    return MatchConfidence.NONE


def match_confidence(
    target: Addressable,
    candidate: Addressable,
    policy: MatchPolicy = DEFAULT_MATCH_POLICY,
) -> MatchConfidence:
    """
    Confidence that `candidate` describes the same property as `target`.

    Accepts any object with address, postcode and bedrooms attributes:
    CanonicalProperty, ExternalRecord or MatchSubject.
    """
    confidence = confidence_between(
        normalise_address(target.address, target.postcode),
        target.bedrooms,
        normalise_address(candidate.address, candidate.postcode),
        candidate.bedrooms,
        policy,
    )
    logger.debug(
        "Match %r (%s) vs %r (%s): %s",
        target.address,
        target.postcode,
        candidate.address,
        candidate.postcode,
        confidence.value,
    )
    return confidence
