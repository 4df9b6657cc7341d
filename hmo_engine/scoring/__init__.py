"""
Investment scoring: deal score, HMO classification and TA suitability.
"""

from hmo_engine.scoring.deal_score import DealScorer, compute_deal_score
from hmo_engine.scoring.hmo import classify_hmo, derive_hmo_facts, needs_work_reasons
from hmo_engine.scoring.models import (
    ComplianceComplexity,
    DealScoreResult,
    FloorAreaBand,
    HmoClassification,
    HmoFacts,
    TA_CRITERIA_LABELS,
    TASuitabilityResult,
    TAVerdict,
    YieldBand,
)
from hmo_engine.scoring.policy import (
    DEFAULT_DEAL_POLICY,
    DEFAULT_HMO_POLICY,
    DEFAULT_TA_POLICY,
    DealScoringPolicy,
    HmoPolicy,
    TAPolicy,
)
from hmo_engine.scoring.ta_suitability import LhaLookup, assess_ta_suitability

__all__ = [
    "ComplianceComplexity",
    "DEFAULT_DEAL_POLICY",
    "DEFAULT_HMO_POLICY",
    "DEFAULT_TA_POLICY",
    "DealScoreResult",
    "DealScorer",
    "DealScoringPolicy",
    "FloorAreaBand",
    "HmoClassification",
    "HmoFacts",
    "HmoPolicy",
    "LhaLookup",
    "TA_CRITERIA_LABELS",
    "TAPolicy",
    "TASuitabilityResult",
    "TAVerdict",
    "YieldBand",
    "assess_ta_suitability",
    "classify_hmo",
    "compute_deal_score",
    "derive_hmo_facts",
    "needs_work_reasons",
]
