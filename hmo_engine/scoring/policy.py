"""
Scoring policy.

Every threshold, weight and band used by deal scoring, HMO classification
and TA assessment lives here as named configuration. The scoring functions
take a policy argument and never embed these numbers.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Final, Optional


# =============================================================================
# Deal Score Defaults
# =============================================================================

WEIGHT_YIELD: Final[float] = 0.40
WEIGHT_EPC: Final[float] = 0.20
WEIGHT_COMPLIANCE: Final[float] = 0.20
WEIGHT_LOCATION: Final[float] = 0.20

# Gross yield (%) that earns the "target" sub-score, and the point above
# which further yield earns nothing
YIELD_TARGET_PERCENT: Final[float] = 8.0
YIELD_CEILING_PERCENT: Final[float] = 12.0

# Flat operating cost share used for the reported net yield
OPERATING_COST_RATIO: Final[float] = 0.30

# Sub-score for a factor whose inputs are missing
DEFAULT_SUBSCORE: Final[float] = 50.0

DEFAULT_EPC_SCORES: Final[dict[str, float]] = {
    "A": 100.0,
    "B": 95.0,
    "C": 90.0,
    "D": 60.0,
    "E": 45.0,
    "F": 15.0,
    "G": 5.0,
}

# Average monthly rent per HMO room (GBP)
DEFAULT_RENT_PER_ROOM: Final[dict[str, int]] = {
    "London": 850,
    "Greater London": 850,
    "Manchester": 550,
    "Birmingham": 500,
    "Leeds": 480,
    "Liverpool": 450,
    "Bristol": 600,
    "Sheffield": 450,
    "Newcastle": 420,
    "Nottingham": 480,
    "Leicester": 460,
    "Coventry": 480,
    "Brighton": 650,
    "Southampton": 520,
    "Portsmouth": 500,
    "Oxford": 700,
    "Cambridge": 720,
    "Reading": 620,
    "Cardiff": 480,
    "Edinburgh": 580,
    "Glasgow": 500,
}
FALLBACK_RENT_PER_ROOM: Final[int] = 500


@dataclass(frozen=True)
class DealScoringPolicy:
    """Weights and thresholds for the deal score."""

    # === Weights (must sum to 1.0) ===
    weight_yield: float = WEIGHT_YIELD
    weight_epc: float = WEIGHT_EPC
    weight_compliance: float = WEIGHT_COMPLIANCE
    weight_location: float = WEIGHT_LOCATION

    # === Yield ===
    yield_target_percent: float = YIELD_TARGET_PERCENT
    yield_ceiling_percent: float = YIELD_CEILING_PERCENT
    yield_score_at_target: float = 80.0
    operating_cost_ratio: float = OPERATING_COST_RATIO
    rent_per_room: dict[str, int] = field(default_factory=lambda: dict(DEFAULT_RENT_PER_ROOM))
    fallback_rent_per_room: int = FALLBACK_RENT_PER_ROOM

    # === EPC ===
    epc_scores: dict[str, float] = field(default_factory=lambda: dict(DEFAULT_EPC_SCORES))

    # === Compliance penalties (points off 100) ===
    article_4_penalty: float = 40.0
    conservation_area_penalty: float = 15.0
    listed_building_penalty: float = 25.0
    licence_pending_penalty: float = 10.0
    licence_expired_penalty: float = 20.0
    unlicensed_mandatory_penalty: float = 15.0

    # === Location / floor area (m2 per lettable room) ===
    comfortable_sqm_per_room: float = 15.0

    # === Unknown inputs ===
    default_subscore: float = DEFAULT_SUBSCORE

    def __post_init__(self) -> None:
        weights = self.weights
        if any(w < 0 for w in weights.values()):
            raise ValueError("weights cannot be negative")
        if not math.isclose(sum(weights.values()), 1.0, abs_tol=1e-9):
            raise ValueError(f"weights must sum to 1.0, got {sum(weights.values()):.4f}")
        if not 0 < self.yield_target_percent < self.yield_ceiling_percent:
            raise ValueError("yield target must be positive and below the ceiling")
        if not 0 <= self.yield_score_at_target <= 100:
            raise ValueError("yield_score_at_target must be within 0-100")
        if not 0 <= self.operating_cost_ratio < 1:
            raise ValueError("operating_cost_ratio must be within [0, 1)")
        if not 0 <= self.default_subscore <= 100:
            raise ValueError("default_subscore must be within 0-100")
        if self.comfortable_sqm_per_room <= 0:
            raise ValueError("comfortable_sqm_per_room must be positive")

    @property
    def weights(self) -> dict[str, float]:
        return {
            "yield": self.weight_yield,
            "epc": self.weight_epc,
            "compliance": self.weight_compliance,
            "location": self.weight_location,
        }

    def rent_per_room_for(self, city: Optional[str]) -> int:
        """Regional rent per room: exact city, then containment, then fallback."""
        if not city:
            return self.fallback_rent_per_room
        name = city.strip().lower()
        for region, rent in self.rent_per_room.items():
            if region.lower() == name:
                return rent
        for region, rent in self.rent_per_room.items():
            if region.lower() in name:
                return rent
        return self.fallback_rent_per_room


# =============================================================================
# HMO Policy
# =============================================================================

# UK HMO space standard for a single adult bedroom (m2)
SINGLE_ROOM_MIN_SQM: Final[float] = 6.51


@dataclass(frozen=True)
class HmoPolicy:
    """Occupancy, space and classification thresholds for HMO use."""

    min_occupants: int = 3
    mandatory_licensing_occupants: int = 5
    high_threshold: float = 70.0
    lower_threshold: float = 40.0
    min_room_sqm: float = SINGLE_ROOM_MIN_SQM
    # Tenants per bathroom
    bathroom_ratio: int = 5

    # Floor area estimate when none is published
    sqm_per_bedroom: float = 12.0
    sqm_per_bathroom: float = 5.0
    common_area_sqm: float = 36.0
    assumed_bathrooms: int = 1

    # Large homes may be re-planned into more rooms
    large_home_sqm: float = 120.0
    sqm_per_lettable_room: float = 15.0
    max_lettable_rooms: int = 8
    min_viable_sqm: float = 70.0

    # Floor area bands (m2)
    floor_band_small_below: float = 90.0
    floor_band_large_above: float = 120.0

    # Yield bands (%)
    yield_band_high: float = 8.0
    yield_band_medium: float = 5.0

    def __post_init__(self) -> None:
        if self.min_occupants < 1:
            raise ValueError("min_occupants must be at least 1")
        if self.mandatory_licensing_occupants < self.min_occupants:
            raise ValueError("mandatory_licensing_occupants cannot be below min_occupants")
        if not 0 <= self.lower_threshold <= self.high_threshold <= 100:
            raise ValueError("thresholds must satisfy 0 <= lower <= high <= 100")
        if self.min_room_sqm <= 0 or self.sqm_per_lettable_room <= 0:
            raise ValueError("room sizes must be positive")
        if self.bathroom_ratio < 1:
            raise ValueError("bathroom_ratio must be at least 1")
        if self.yield_band_medium > self.yield_band_high:
            raise ValueError("yield_band_medium cannot exceed yield_band_high")


# =============================================================================
# TA Policy
# =============================================================================

ADEQUATE_EPC_BANDS: Final[tuple[str, ...]] = ("A", "B", "C", "D")


@dataclass(frozen=True)
class TAPolicy:
    """Temporary accommodation placement rules."""

    min_bedrooms: int = 3
    # Rent may exceed the LHA cap by up to this factor
    lha_tolerance: float = 1.10
    adequate_epc_bands: tuple[str, ...] = ADEQUATE_EPC_BANDS

    def __post_init__(self) -> None:
        if self.min_bedrooms < 0:
            raise ValueError("min_bedrooms cannot be negative")
        if self.lha_tolerance < 1.0:
            raise ValueError("lha_tolerance cannot be below 1.0")
        if not self.adequate_epc_bands:
            raise ValueError("adequate_epc_bands cannot be empty")


DEFAULT_DEAL_POLICY: Final = DealScoringPolicy()
DEFAULT_HMO_POLICY: Final = HmoPolicy()
DEFAULT_TA_POLICY: Final = TAPolicy()
