"""
HMO Deal Engine - Property Identity Resolution and Investment Scoring

Records about the same building arrive from listings, licence registers,
title and price-paid data. The engine:

1. Normalises addresses and postcodes
2. Matches incoming records to known properties by confidence tier
3. Merges them into one canonical property with field provenance
4. Scores the result (deal score, HMO classification, TA suitability)
"""

from .address import NormalisedAddress, normalise_address, normalise_uk_postcode, validate_uk_postcode
from .models import (
    CanonicalProperty,
    ExternalRecord,
    LicenceStatus,
    ListingType,
    OwnerType,
    Tenure,
)

# Matching
from .matching import (
    MatchCandidate,
    MatchConfidence,
    MatchPolicy,
    match_confidence,
    select_best_candidate,
)

# Reconciliation
from .reconciliation import CreationRejected, reconcile

# Scoring
from .scoring import (
    DealScoreResult,
    HmoClassification,
    TASuitabilityResult,
    TAVerdict,
    assess_ta_suitability,
    classify_hmo,
    compute_deal_score,
)
from .lha_rates import get_lha_monthly_rate

# Pipeline
from .store import InMemoryPropertyStore, PropertyStore
from .pipeline import IngestOutcome, IngestionSummary, PropertyEvaluation, ResolutionPipeline

__all__ = [
    # Address
    "NormalisedAddress",
    "normalise_address",
    "normalise_uk_postcode",
    "validate_uk_postcode",
    # Models
    "CanonicalProperty",
    "ExternalRecord",
    "LicenceStatus",
    "ListingType",
    "OwnerType",
    "Tenure",
    # Matching
    "MatchCandidate",
    "MatchConfidence",
    "MatchPolicy",
    "match_confidence",
    "select_best_candidate",
    # Reconciliation
    "CreationRejected",
    "reconcile",
    # Scoring
    "DealScoreResult",
    "HmoClassification",
    "TASuitabilityResult",
    "TAVerdict",
    "assess_ta_suitability",
    "classify_hmo",
    "compute_deal_score",
    "get_lha_monthly_rate",
    # Pipeline
    "InMemoryPropertyStore",
    "PropertyStore",
    "IngestOutcome",
    "IngestionSummary",
    "PropertyEvaluation",
    "ResolutionPipeline",
]
