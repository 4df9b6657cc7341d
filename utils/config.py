"""
Configuration management.
"""

import os
from dataclasses import dataclass, field

from hmo_engine.matching import MatchConfidence, MatchPolicy
from hmo_engine.scoring import DealScoringPolicy, TAPolicy


def _env_float(name: str, default: str) -> float:
    return float(os.getenv(name, default))


@dataclass
class Config:
    """
    Application configuration.

    Loads from environment variables with sensible defaults.
    """

    # Server
    host: str = field(default_factory=lambda: os.getenv("HOST", "127.0.0.1"))
    port: int = field(default_factory=lambda: int(os.getenv("PORT", "8000")))
    debug: bool = field(default_factory=lambda: os.getenv("DEBUG", "false").lower() == "true")
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper())

    # Geocoding
    geocoder_base_url: str = field(
        default_factory=lambda: os.getenv("GEOCODER_BASE_URL", "https://api.postcodes.io")
    )
    request_timeout: int = field(default_factory=lambda: int(os.getenv("REQUEST_TIMEOUT", "10")))
    geocode_cache_ttl: int = field(
        default_factory=lambda: int(os.getenv("GEOCODE_CACHE_TTL", "900"))
    )
    geocode_empty_ttl: int = field(
        default_factory=lambda: int(os.getenv("GEOCODE_EMPTY_TTL", "300"))
    )

    # Deal scoring weights
    deal_weight_yield: float = field(default_factory=lambda: _env_float("DEAL_WEIGHT_YIELD", "0.40"))
    deal_weight_epc: float = field(default_factory=lambda: _env_float("DEAL_WEIGHT_EPC", "0.20"))
    deal_weight_compliance: float = field(
        default_factory=lambda: _env_float("DEAL_WEIGHT_COMPLIANCE", "0.20")
    )
    deal_weight_location: float = field(
        default_factory=lambda: _env_float("DEAL_WEIGHT_LOCATION", "0.20")
    )

    # TA placement
    ta_min_bedrooms: int = field(default_factory=lambda: int(os.getenv("TA_MIN_BEDROOMS", "3")))
    lha_tolerance: float = field(default_factory=lambda: _env_float("LHA_TOLERANCE", "1.10"))

    # Matching
    min_merge_confidence: str = field(
        default_factory=lambda: os.getenv("MIN_MERGE_CONFIDENCE", "nearby")
    )

    @classmethod
    def load(cls) -> "Config":
        """Load configuration from environment."""
        return cls()

    def deal_scoring_policy(self) -> DealScoringPolicy:
        """
        Deal scoring policy with the configured weights.

        Raises:
            ValueError: If the weights do not sum to 1.0
        """
        return DealScoringPolicy(
            weight_yield=self.deal_weight_yield,
            weight_epc=self.deal_weight_epc,
            weight_compliance=self.deal_weight_compliance,
            weight_location=self.deal_weight_location,
        )

    def ta_policy(self) -> TAPolicy:
        return TAPolicy(min_bedrooms=self.ta_min_bedrooms, lha_tolerance=self.lha_tolerance)

    def match_policy(self) -> MatchPolicy:
        confidence = MatchConfidence.from_string(self.min_merge_confidence)
        if confidence is None:
            raise ValueError(f"Unknown match confidence: {self.min_merge_confidence}")
        return MatchPolicy(min_merge_confidence=confidence)

    def to_dict(self) -> dict:
        """Convert config to dictionary."""
        return {
            "host": self.host,
            "port": self.port,
            "debug": self.debug,
            "log_level": self.log_level,
            "geocoder_base_url": self.geocoder_base_url,
            "request_timeout": self.request_timeout,
            "geocode_cache_ttl": self.geocode_cache_ttl,
            "geocode_empty_ttl": self.geocode_empty_ttl,
            "deal_weight_yield": self.deal_weight_yield,
            "deal_weight_epc": self.deal_weight_epc,
            "deal_weight_compliance": self.deal_weight_compliance,
            "deal_weight_location": self.deal_weight_location,
            "ta_min_bedrooms": self.ta_min_bedrooms,
            "lha_tolerance": self.lha_tolerance,
            "min_merge_confidence": self.min_merge_confidence,
        }
