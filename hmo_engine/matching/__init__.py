"""
Property identity matching.

Confidence tiers for a target/candidate pair and best-candidate selection.
"""

from hmo_engine.matching.confidence import (
    DEFAULT_MATCH_POLICY,
    NEARBY_BEDROOM_TOLERANCE,
    MatchPolicy,
    confidence_between,
    match_confidence,
)
from hmo_engine.matching.models import (
    MatchCandidate,
    MatchConfidence,
    MatchSubject,
)
from hmo_engine.matching.selector import rank_candidates, select_best_candidate

__all__ = [
    "DEFAULT_MATCH_POLICY",
    "NEARBY_BEDROOM_TOLERANCE",
    "MatchCandidate",
    "MatchConfidence",
    "MatchPolicy",
    "MatchSubject",
    "confidence_between",
    "match_confidence",
    "rank_candidates",
    "select_best_candidate",
]
