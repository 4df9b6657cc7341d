"""
Result types for deal scoring, HMO classification and TA assessment.

All of these are derived from a canonical property on demand and are never
the source of truth.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class HmoClassification(Enum):
    """HMO investment tag."""

    READY_TO_GO = "ready_to_go"
    VALUE_ADD = "value_add"
    NOT_SUITABLE = "not_suitable"

    @classmethod
    def from_string(cls, value: str) -> Optional["HmoClassification"]:
        normalised = value.lower().strip().replace("-", "_").replace(" ", "_")
        for member in cls:
            if member.value == normalised:
                return member
        return None


class ComplianceComplexity(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class YieldBand(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class FloorAreaBand(Enum):
    UNDER_90 = "under_90"
    FROM_90_TO_120 = "90_120"
    OVER_120 = "120_plus"


@dataclass(frozen=True)
class HmoFacts:
    """
    Facts about a property's shared-housing potential.

    Computed once per scoring pass; the classifier reads only these and
    the deal score.
    """

    gross_internal_area_sqm: float
    area_is_estimated: bool
    lettable_rooms: int
    potential_occupants: int
    is_hmo_relevant: bool
    requires_mandatory_licensing: bool
    meets_space_standards: bool
    # None when the bathroom count is unknown
    bathroom_ratio_compliant: Optional[bool]
    floor_area_band: Optional[FloorAreaBand]
    rent_per_room: int
    estimated_monthly_rent: int
    estimated_yield_percent: Optional[float]
    yield_band: Optional[YieldBand]
    compliance_complexity: ComplianceComplexity
    exclusion_reasons: tuple[str, ...] = ()
    needs_work_reasons: tuple[str, ...] = ()

    @property
    def needs_work(self) -> bool:
        return bool(self.needs_work_reasons)

    def to_dict(self) -> dict[str, Any]:
        return {
            "gross_internal_area_sqm": self.gross_internal_area_sqm,
            "area_is_estimated": self.area_is_estimated,
            "lettable_rooms": self.lettable_rooms,
            "potential_occupants": self.potential_occupants,
            "is_hmo_relevant": self.is_hmo_relevant,
            "requires_mandatory_licensing": self.requires_mandatory_licensing,
            "meets_space_standards": self.meets_space_standards,
            "bathroom_ratio_compliant": self.bathroom_ratio_compliant,
            "floor_area_band": self.floor_area_band.value if self.floor_area_band else None,
            "rent_per_room": self.rent_per_room,
            "estimated_monthly_rent": self.estimated_monthly_rent,
            "estimated_yield_percent": self.estimated_yield_percent,
            "yield_band": self.yield_band.value if self.yield_band else None,
            "compliance_complexity": self.compliance_complexity.value,
            "exclusion_reasons": list(self.exclusion_reasons),
            "needs_work_reasons": list(self.needs_work_reasons),
        }


@dataclass
class DealScoreResult:
    """
    Deal score and its explanation.

    breakdown maps each factor to its weighted contribution; the
    contributions sum to score. sub_scores holds the unweighted 0-100
    values. classification stays None until the HMO classifier runs.
    """

    score: float
    breakdown: dict[str, float]
    sub_scores: dict[str, float]
    facts: HmoFacts
    defaults_applied: list[str] = field(default_factory=list)
    gross_yield_percent: Optional[float] = None
    net_yield_percent: Optional[float] = None
    annual_rent: Optional[int] = None
    price_basis: Optional[str] = None
    classification: Optional[HmoClassification] = None
    notes: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "breakdown": dict(self.breakdown),
            "sub_scores": dict(self.sub_scores),
            "defaults_applied": list(self.defaults_applied),
            "gross_yield_percent": self.gross_yield_percent,
            "net_yield_percent": self.net_yield_percent,
            "annual_rent": self.annual_rent,
            "price_basis": self.price_basis,
            "classification": self.classification.value if self.classification else None,
            "notes": list(self.notes),
            "facts": self.facts.to_dict(),
        }


class TAVerdict(Enum):
    """Temporary accommodation suitability."""

    SUITABLE = "suitable"
    PARTIAL = "partial"
    NOT_SUITABLE = "not_suitable"


# Criterion keys in checklist order, with the labels used in reasons
TA_CRITERIA_LABELS: dict[str, str] = {
    "is_rental": "available to rent",
    "has_active_licence": "active HMO licence",
    "has_adequate_epc": "adequate EPC rating",
    "has_min_bedrooms": "minimum bedrooms",
    "within_lha_budget": "within LHA budget",
}


@dataclass(frozen=True)
class TASuitabilityResult:
    """Five-criterion TA checklist with score, verdict and reason."""

    criteria: dict[str, bool]
    score: int
    verdict: TAVerdict
    lha_monthly_rate: Optional[float]
    reason: str

    @property
    def failed_criteria(self) -> list[str]:
        return [name for name, passed in self.criteria.items() if not passed]

    def to_dict(self) -> dict[str, Any]:
        return {
            "criteria": dict(self.criteria),
            "score": self.score,
            "verdict": self.verdict.value,
            "lha_monthly_rate": self.lha_monthly_rate,
            "reason": self.reason,
        }
