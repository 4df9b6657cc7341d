"""
Data models for property identity matching.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Optional, Protocol, TypeVar

from hmo_engine.address import NormalisedAddress, normalise_address
from hmo_engine.models import Tenure


class MatchConfidence(Enum):
    """
    Discrete match confidence, totally ordered.

    exact > high > medium > low > nearby > none. NONE means the candidate
    must not be used.
    """

    EXACT = "exact"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    NEARBY = "nearby"
    NONE = "none"

    @property
    def rank(self) -> int:
        """0 for EXACT up to 5 for NONE; lower sorts first."""
        return _RANK[self]

    @property
    def is_match(self) -> bool:
        return self is not MatchConfidence.NONE

    def __ge__(self, other: "MatchConfidence") -> bool:
        if not isinstance(other, MatchConfidence):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: "MatchConfidence") -> bool:
        if not isinstance(other, MatchConfidence):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: "MatchConfidence") -> bool:
        if not isinstance(other, MatchConfidence):
            return NotImplemented
        return self.rank >= other.rank

    def __lt__(self, other: "MatchConfidence") -> bool:
        if not isinstance(other, MatchConfidence):
            return NotImplemented
        return self.rank > other.rank

    @classmethod
    def from_string(cls, value: str) -> Optional["MatchConfidence"]:
        normalised = value.lower().strip()
        for member in cls:
            if member.value == normalised:
                return member
        return None


_RANK = {
    MatchConfidence.EXACT: 0,
    MatchConfidence.HIGH: 1,
    MatchConfidence.MEDIUM: 2,
    MatchConfidence.LOW: 3,
    MatchConfidence.NEARBY: 4,
    MatchConfidence.NONE: 5,
}


class Addressable(Protocol):
    """Anything carrying an address, postcode and bedroom count."""

    address: str
    postcode: str
    bedrooms: Optional[int]


@dataclass(frozen=True)
class MatchSubject:
    """
    Plain matching input: one side of a comparison.

    CanonicalProperty and ExternalRecord can be matched directly; this type
    exists for callers (HTTP, CLI) holding bare values.
    """

    address: str
    postcode: str = ""
    bedrooms: Optional[int] = None
    tenure: Optional[Tenure] = None

    @property
    def normalised_address(self) -> NormalisedAddress:
        return normalise_address(self.address, self.postcode)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MatchSubject":
        bedrooms = data.get("bedrooms")
        tenure = data.get("tenure")
        if isinstance(tenure, str):
            tenure = Tenure.from_string(tenure)
        return cls(
            address=str(data.get("address") or ""),
            postcode=str(data.get("postcode") or ""),
            bedrooms=int(bedrooms) if bedrooms is not None else None,
            tenure=tenure,
        )


T = TypeVar("T")


@dataclass
class MatchCandidate(Generic[T]):
    """
    A candidate for one target, with its confidence once scored.

    `item` is whatever the caller is matching (a canonical property, an
    external record, a plain subject); tenure drives the freehold tie-break.
    """

    item: T
    confidence: Optional[MatchConfidence] = None
    tenure: Optional[Tenure] = None

    @property
    def is_freehold(self) -> bool:
        return self.tenure == Tenure.FREEHOLD
