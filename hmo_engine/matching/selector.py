"""
Best-Candidate Selector

Ranks the candidates for one target and picks a winner:

1. Confidence tier, exact first
2. Freehold before leasehold, only when a tenure flag is present
3. Input order (first seen wins)

A candidate scored 'none' is never selected.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Iterable, Optional, TypeVar

from hmo_engine.matching.confidence import DEFAULT_MATCH_POLICY, MatchPolicy, match_confidence
from hmo_engine.matching.models import Addressable, MatchCandidate


logger = logging.getLogger(__name__)

T = TypeVar("T")


def _tenure_rank(candidate: MatchCandidate) -> int:
    # Candidates without a tenure flag sort alongside leasehold, so listings
    # (which never carry one) fall through to input order.
    return 0 if candidate.is_freehold else 1


def rank_candidates(
    target: Addressable,
    candidates: Iterable[MatchCandidate[T]],
    policy: MatchPolicy = DEFAULT_MATCH_POLICY,
) -> list[MatchCandidate[T]]:
    """
    Score and order candidates, best first.

    Candidates arriving without a confidence are scored against the target
    into a copy; the caller's candidates are left untouched.
    Candidates scored 'none' are dropped. The sort is stable, so equal
    candidates keep their input order.

    Args:
        target: The property being matched
        candidates: Candidate wrappers, in the order they were seen
        policy: Matching parameters

    Returns:
        Usable candidates, best first
    """
    scored: list[MatchCandidate[T]] = []
    for candidate in candidates:
        if candidate.confidence is None:
            candidate = replace(candidate, confidence=match_confidence(target, candidate.item, policy))
        if candidate.confidence.is_match:
            scored.append(candidate)

    return sorted(scored, key=lambda c: (c.confidence.rank, _tenure_rank(c)))


def select_best_candidate(
    target: Addressable,
    candidates: Iterable[MatchCandidate[T]],
    policy: MatchPolicy = DEFAULT_MATCH_POLICY,
) -> Optional[MatchCandidate[T]]:
    """
    Pick the single best candidate for a target, or None.

    None means "no match": the caller either creates a new property or
    leaves the record unmatched.
    """
    candidates = list(candidates)
    ranked = rank_candidates(target, candidates, policy)
    if not ranked:
        logger.debug("No usable candidate for %r among %d", target.address, len(candidates))
        return None

    best = ranked[0]
    logger.debug(
        "Selected candidate for %r: %s (freehold=%s) from %d usable of %d",
        target.address,
        best.confidence.value,
        best.is_freehold,
        len(ranked),
        len(candidates),
    )
    return best
