"""
Resolution Pipeline - Match, Merge and Score

Runs one external record through the engine:

1. Direct match on the source's own identifier
2. Otherwise fuzzy match against stored properties near the same postcode
3. Merge into the matched property, or create a new one
4. Re-score the resulting property (deal score, HMO tag, TA verdict)

Ingests into the same postcode district and merges into the same property
are serialised with per-key locks; the core merge and scoring functions
stay pure.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import Counter
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Iterable, Iterator, Mapping, Optional, Union

from hmo_engine.ingestion import extract_record, get_source
from hmo_engine.lha_rates import get_lha_monthly_rate
from hmo_engine.matching import (
    DEFAULT_MATCH_POLICY,
    MatchCandidate,
    MatchConfidence,
    MatchPolicy,
    select_best_candidate,
)
from hmo_engine.models import CanonicalProperty, ExternalRecord
from hmo_engine.reconciliation import CreationRejected, reconcile
from hmo_engine.scoring import (
    DEFAULT_DEAL_POLICY,
    DEFAULT_HMO_POLICY,
    DEFAULT_TA_POLICY,
    DealScoreResult,
    DealScoringPolicy,
    HmoPolicy,
    LhaLookup,
    TAPolicy,
    TASuitabilityResult,
    assess_ta_suitability,
    classify_hmo,
    compute_deal_score,
)
from hmo_engine.store import PropertyStore
from sources.geocoder import Geocoder


logger = logging.getLogger(__name__)


# =============================================================================
# Results
# =============================================================================


class IngestAction(Enum):
    CREATED = "created"
    UPDATED = "updated"
    REJECTED = "rejected"


@dataclass
class PropertyEvaluation:
    """Deal score (with HMO tag) and TA verdict for one property."""

    property: CanonicalProperty
    deal_score: DealScoreResult
    ta: TASuitabilityResult

    def to_dict(self) -> dict[str, Any]:
        return {
            "property_id": self.property.property_id,
            "deal_score": self.deal_score.to_dict(),
            "ta_suitability": self.ta.to_dict(),
        }


@dataclass
class IngestOutcome:
    """What happened to one incoming record."""

    action: IngestAction
    source: str
    property: Optional[CanonicalProperty] = None
    confidence: Optional[MatchConfidence] = None
    evaluation: Optional[PropertyEvaluation] = None
    message: str = ""
    reasons: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action.value,
            "source": self.source,
            "property": self.property.to_dict() if self.property else None,
            "confidence": self.confidence.value if self.confidence else None,
            "evaluation": self.evaluation.to_dict() if self.evaluation else None,
            "message": self.message,
            "reasons": list(self.reasons),
        }


@dataclass
class IngestionSummary:
    """Counts for one batch from one source."""

    source: str
    total: int = 0
    created: int = 0
    updated: int = 0
    rejected: int = 0
    errors: list[str] = field(default_factory=list)
    duration_ms: int = 0
    outcomes: list[IngestOutcome] = field(default_factory=list)

    def record(self, outcome: IngestOutcome) -> None:
        self.total += 1
        self.outcomes.append(outcome)
        if outcome.action == IngestAction.CREATED:
            self.created += 1
        elif outcome.action == IngestAction.UPDATED:
            self.updated += 1
        else:
            self.rejected += 1
            self.errors.append(outcome.message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "total": self.total,
            "created": self.created,
            "updated": self.updated,
            "rejected": self.rejected,
            "errors": list(self.errors),
            "duration_ms": self.duration_ms,
        }


# =============================================================================
# Locking
# =============================================================================


class KeyedLocks:
    """
    One re-entrant lock per key, created on first use.

    A lock is dropped once no thread holds or waits on it, so the map only
    holds keys in use.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}
        self._users: Counter[str] = Counter()

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(key, threading.RLock())
            self._users[key] += 1
        try:
            with lock:
                yield
        finally:
            with self._guard:
                self._users[key] -= 1
                if not self._users[key]:
                    del self._users[key]
                    del self._locks[key]


# =============================================================================
# Pipeline
# =============================================================================


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ResolutionPipeline:
    """
    Identity resolution and scoring over a property store.

    Args:
        store: Canonical property store
        geocoder: Used only when a new property would lack coordinates
        lha_lookup: LHA monthly rate lookup for TA assessment
        match_policy: Matching parameters and the weakest tier that merges
        deal_policy: Deal score weights and thresholds
        hmo_policy: HMO occupancy and classification thresholds
        ta_policy: TA placement rules
        clock: UTC time source for enrichment timestamps
    """

    def __init__(
        self,
        store: PropertyStore,
        geocoder: Optional[Geocoder] = None,
        lha_lookup: LhaLookup = get_lha_monthly_rate,
        match_policy: MatchPolicy = DEFAULT_MATCH_POLICY,
        deal_policy: DealScoringPolicy = DEFAULT_DEAL_POLICY,
        hmo_policy: HmoPolicy = DEFAULT_HMO_POLICY,
        ta_policy: TAPolicy = DEFAULT_TA_POLICY,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.geocoder = geocoder
        self.lha_lookup = lha_lookup
        self.match_policy = match_policy
        self.deal_policy = deal_policy
        self.hmo_policy = hmo_policy
        self.ta_policy = ta_policy
        self._clock = clock
        self._locks = KeyedLocks()

    # =========================================================================
    # Matching
    # =========================================================================

    def find_match(
        self, record: ExternalRecord
    ) -> tuple[Optional[CanonicalProperty], Optional[MatchConfidence]]:
        """
        Stored property this record describes, with the match confidence.

        A record whose source id was seen before matches directly. Otherwise
        the best fuzzy candidate is used if it reaches the merge threshold.
        """
        if record.source_listing_id:
            known = self.store.find_by_source_id(record.source, record.source_listing_id)
            if known is not None:
                return known, MatchConfidence.EXACT

        candidates = [
            MatchCandidate(item=prop, tenure=prop.tenure)
            for prop in self.store.candidates_near(record.postcode)
        ]
        best = select_best_candidate(record, candidates, self.match_policy)
        if best is None:
            return None, None
        if best.confidence < self.match_policy.min_merge_confidence:
            logger.debug(
                "Best match for %r is %s, below merge threshold %s",
                record.address,
                best.confidence.value,
                self.match_policy.min_merge_confidence.value,
            )
            return None, best.confidence
        return best.item, best.confidence

    # =========================================================================
    # Ingestion
    # =========================================================================

    def ingest(self, record: ExternalRecord) -> IngestOutcome:
        """
        Match, merge and re-score one external record.

        Returns:
            IngestOutcome; creation rejections are reported as 'rejected'
            rather than raised.
        """
        normalised = record.normalised_address
        # Candidates are searched across the whole district
        with self._locks.hold(f"area:{normalised.district or normalised.outcode}"):
            match, confidence = self.find_match(record)
            if match is not None:
                prop = self._merge(match.property_id, record.field_set(), record.source)
                logger.info(
                    "Updated property %s from %s (%s match)",
                    prop.property_id,
                    record.source,
                    confidence.value if confidence else "direct",
                )
                return IngestOutcome(
                    action=IngestAction.UPDATED,
                    source=record.source,
                    property=prop,
                    confidence=confidence,
                    evaluation=self.evaluate(prop),
                    message=f"Merged into {prop.property_id}",
                )
            return self._create(record, confidence)

    def ingest_raw(self, source: str, raw: dict[str, Any]) -> IngestOutcome:
        """
        Extract a raw provider payload and ingest it.

        Raises:
            KeyError: If no extractor exists for the source
        """
        return self.ingest(extract_record(source, raw))

    def ingest_batch(
        self,
        records: Iterable[Union[ExternalRecord, dict[str, Any]]],
        source: str,
    ) -> IngestionSummary:
        """
        Ingest many records from one source.

        Raw dictionaries are extracted with the source's field extractor.
        """
        started = time.perf_counter()
        summary = IngestionSummary(source=source)

        for item in records:
            record = item if isinstance(item, ExternalRecord) else extract_record(source, item)
            summary.record(self.ingest(record))

        summary.duration_ms = int((time.perf_counter() - started) * 1000)
        logger.info(
            "Ingested %d %s records: %d created, %d updated, %d rejected in %dms",
            summary.total,
            source,
            summary.created,
            summary.updated,
            summary.rejected,
            summary.duration_ms,
        )
        return summary

    def enrich(self, property_id: str, fields: Mapping[str, Any], source: str) -> CanonicalProperty:
        """
        Merge a field set into a known property by id.

        enriched_at[source] is stamped even when nothing changes.

        Raises:
            KeyError: If the property is not in the store
        """
        prop = self._merge(property_id, fields, source)
        logger.info("Enriched property %s from %s", property_id, source)
        return prop

    def _merge(self, property_id: str, fields: Mapping[str, Any], source: str) -> CanonicalProperty:
        with self._locks.hold(f"property:{property_id}"):
            current = self.store.get(property_id)
            if current is None:
                raise KeyError(f"Unknown property: {property_id}")
            merged = reconcile(current, fields, source, now=self._clock())
            self.store.save(merged)
            return merged

    def _create(
        self, record: ExternalRecord, near_confidence: Optional[MatchConfidence]
    ) -> IngestOutcome:
        registration = get_source(record.source)
        if registration is not None and not registration.can_create:
            message = f"{registration.source_name} records only enrich existing properties"
            logger.warning("Enrichment skipped for %s record %r: no match", record.source, record.address)
            return IngestOutcome(
                action=IngestAction.REJECTED,
                source=record.source,
                confidence=near_confidence,
                message=message,
                reasons=["no matching property"],
            )

        fields = record.field_set()
        if not record.has_coordinates and self.geocoder is not None:
            coordinates = self.geocoder.geocode(record.address, record.postcode)
            if coordinates is not None:
                fields["latitude"] = coordinates.latitude
                fields["longitude"] = coordinates.longitude

        try:
            prop = reconcile(None, fields, record.source, now=self._clock())
        except CreationRejected as e:
            logger.warning(
                "Enrichment skipped for %s record %r: %s",
                record.source,
                record.address,
                "; ".join(e.reasons),
            )
            return IngestOutcome(
                action=IngestAction.REJECTED,
                source=record.source,
                confidence=near_confidence,
                message=str(e),
                reasons=list(e.reasons),
            )

        self.store.save(prop)
        return IngestOutcome(
            action=IngestAction.CREATED,
            source=record.source,
            property=prop,
            confidence=near_confidence,
            evaluation=self.evaluate(prop),
            message=f"Created {prop.property_id}",
        )

    # =========================================================================
    # Scoring
    # =========================================================================

    def evaluate(self, prop: CanonicalProperty) -> PropertyEvaluation:
        """Deal score with HMO classification, and TA suitability."""
        deal = compute_deal_score(prop, self.deal_policy, self.hmo_policy)
        deal.classification = classify_hmo(prop, deal, self.hmo_policy)
        ta = assess_ta_suitability(prop, self.lha_lookup, self.ta_policy)
        return PropertyEvaluation(property=prop, deal_score=deal, ta=ta)

    def evaluate_all(self) -> list[PropertyEvaluation]:
        """Evaluate every stored property, best deal first."""
        evaluations = [self.evaluate(prop) for prop in self.store.all()]
        return sorted(evaluations, key=lambda e: e.deal_score.score, reverse=True)
