"""
Local Housing Allowance (LHA) rates.

Weekly caps published by the Valuation Office Agency per Broad Rental Market
Area (BRMA) and bedroom count, 2024-25 publication. Updated annually in April.

Source: https://www.gov.uk/government/publications/local-housing-allowance-lha-rates-applicable-from-april-2024
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date
from typing import Final, Optional

from hmo_engine.address import postcode_district, postcode_outcode


RATES_EFFECTIVE_DATE: Final[date] = date(2024, 4, 1)

WEEKS_PER_YEAR: Final[int] = 52
MONTHS_PER_YEAR: Final[int] = 12


@dataclass(frozen=True)
class LhaRate:
    """Weekly LHA rates for one BRMA, in GBP."""

    brma: str
    shared: float  # Room only
    one_bed: float
    two_bed: float
    three_bed: float
    four_bed: float  # 4+ bedrooms

    def __post_init__(self) -> None:
        tiers = (self.shared, self.one_bed, self.two_bed, self.three_bed, self.four_bed)
        if any(rate <= 0 for rate in tiers):
            raise ValueError(f"{self.brma}: rates must be positive")

    def for_bedrooms(self, bedrooms: int) -> float:
        """Weekly rate for a bedroom count; 0 or fewer is the shared rate."""
        if bedrooms <= 0:
            return self.shared
        if bedrooms == 1:
            return self.one_bed
        if bedrooms == 2:
            return self.two_bed
        if bedrooms == 3:
            return self.three_bed
        return self.four_bed


# =============================================================================
# City and Postcode Mapping
# =============================================================================

# Primary BRMA per city. London is refined by postcode district.
CITY_TO_BRMA: Final[dict[str, str]] = {
    # England
    "London": "Inner South East London",
    "Manchester": "Greater Manchester South",
    "Birmingham": "Birmingham",
    "Leeds": "Leeds",
    "Liverpool": "Liverpool",
    "Newcastle": "Tyneside",
    "Sheffield": "Sheffield",
    "Bristol": "Bristol",
    "Nottingham": "Nottingham",
    "Leicester": "Leicester",
    "Coventry": "Coventry",
    "Bradford": "Bradford",
    "Southampton": "Southampton",
    "Portsmouth": "Portsmouth",
    "Plymouth": "Plymouth",
    "Reading": "Reading",
    "Oxford": "Oxford",
    "Cambridge": "Cambridge",
    "Brighton": "Brighton and Hove",
    "York": "York",
    # Scotland
    "Edinburgh": "Lothian",
    "Glasgow": "Glasgow",
    "Aberdeen": "Aberdeen and Shire",
    "Dundee": "Dundee and Angus",
    # Wales
    "Cardiff": "Cardiff",
    "Swansea": "Swansea",
    "Newport": "Newport (Gwent)",
    # Northern Ireland
    "Belfast": "Belfast",
    "Derry": "North West (NI)",
    "Lisburn": "Belfast",
    "Newry": "South (NI)",
}

# London postcode district (leading letters of the outcode) to BRMA
LONDON_POSTCODE_TO_BRMA: Final[dict[str, str]] = {
    "EC": "Central London",
    "WC": "Central London",
    "W": "Inner West London",
    "SW": "Inner South West London",
    "SE": "Inner South East London",
    "E": "Inner East London",
    "N": "Inner North London",
    "NW": "Inner North London",
    # Outer London
    "HA": "Outer North London",
    "UB": "Outer West London",
    "TW": "Outer South West London",
    "KT": "Outer South West London",
    "CR": "Outer South London",
    "BR": "Outer South East London",
    "DA": "Outer South East London",
    "RM": "Outer North East London",
    "IG": "Outer North East London",
    "EN": "Outer North London",
}


# =============================================================================
# Rate Table
# =============================================================================

_RATES: Final[tuple[LhaRate, ...]] = (
    # London
    LhaRate("Central London", 176.34, 332.25, 412.33, 492.44, 632.56),
    LhaRate("Inner West London", 156.00, 295.89, 369.86, 449.97, 575.34),
    LhaRate("Inner South West London", 136.93, 265.78, 330.00, 400.00, 517.81),
    LhaRate("Inner South East London", 117.19, 230.14, 290.96, 350.00, 449.59),
    LhaRate("Inner East London", 117.19, 241.64, 310.96, 370.00, 460.27),
    LhaRate("Inner North London", 131.23, 260.27, 330.00, 400.00, 517.81),
    LhaRate("Outer North London", 103.56, 195.62, 253.15, 310.96, 391.23),
    LhaRate("Outer West London", 103.56, 207.12, 265.78, 330.00, 412.33),
    LhaRate("Outer South West London", 109.32, 218.63, 275.34, 340.00, 424.66),
    LhaRate("Outer South London", 103.56, 195.62, 253.15, 310.96, 391.23),
    LhaRate("Outer South East London", 97.81, 184.11, 241.64, 295.89, 369.86),
    LhaRate("Outer North East London", 97.81, 184.11, 241.64, 295.89, 369.86),
    # English cities
    LhaRate("Greater Manchester South", 80.55, 103.56, 138.08, 155.34, 195.62),
    LhaRate("Birmingham", 74.79, 103.56, 132.33, 149.59, 195.62),
    LhaRate("Leeds", 74.79, 97.81, 126.58, 149.59, 184.11),
    LhaRate("Liverpool", 69.04, 86.30, 109.32, 126.58, 161.10),
    LhaRate("Tyneside", 69.04, 92.05, 115.07, 132.33, 172.60),
    LhaRate("Sheffield", 69.04, 92.05, 115.07, 132.33, 166.85),
    LhaRate("Bristol", 92.05, 143.84, 184.11, 218.63, 276.16),
    LhaRate("Nottingham", 69.04, 92.05, 120.82, 138.08, 172.60),
    LhaRate("Leicester", 69.04, 92.05, 120.82, 138.08, 172.60),
    LhaRate("Coventry", 69.04, 97.81, 126.58, 143.84, 178.36),
    LhaRate("Bradford", 63.29, 80.55, 103.56, 120.82, 149.59),
    LhaRate("Southampton", 86.30, 126.58, 161.10, 195.62, 253.15),
    LhaRate("Portsmouth", 80.55, 120.82, 155.34, 184.11, 241.64),
    LhaRate("Plymouth", 69.04, 97.81, 126.58, 149.59, 184.11),
    LhaRate("Reading", 103.56, 161.10, 207.12, 253.15, 310.96),
    LhaRate("Oxford", 103.56, 155.34, 195.62, 241.64, 299.18),
    LhaRate("Cambridge", 97.81, 149.59, 184.11, 218.63, 276.16),
    LhaRate("Brighton and Hove", 103.56, 172.60, 218.63, 265.78, 330.00),
    LhaRate("York", 74.79, 103.56, 132.33, 155.34, 195.62),
    # Scotland
    LhaRate("Lothian", 91.15, 138.08, 172.60, 207.12, 276.16),
    LhaRate("Glasgow", 74.79, 97.81, 120.82, 143.84, 184.11),
    LhaRate("Aberdeen and Shire", 80.55, 109.32, 138.08, 161.10, 207.12),
    LhaRate("Dundee and Angus", 63.29, 86.30, 103.56, 120.82, 155.34),
    # Wales
    LhaRate("Cardiff", 74.79, 103.56, 132.33, 155.34, 195.62),
    LhaRate("Swansea", 63.29, 80.55, 103.56, 120.82, 155.34),
    LhaRate("Newport (Gwent)", 63.29, 86.30, 109.32, 126.58, 161.10),
    # Northern Ireland
    LhaRate("Belfast", 63.29, 86.30, 103.56, 120.82, 155.34),
    LhaRate("North West (NI)", 57.53, 74.79, 92.05, 103.56, 132.33),
    LhaRate("South (NI)", 57.53, 74.79, 92.05, 109.32, 138.08),
)

LHA_RATES: Final[dict[str, LhaRate]] = {rate.brma: rate for rate in _RATES}


# =============================================================================
# Lookup
# =============================================================================


def _london_brma(postcode: Optional[str]) -> Optional[str]:
    district = postcode_district(postcode_outcode(postcode))
    return LONDON_POSTCODE_TO_BRMA.get(district)


def brma_for(city: Optional[str], postcode: Optional[str] = None) -> Optional[str]:
    """
    Resolve the BRMA for a city, refining London by postcode district.

    Lookup order: exact city name (case-insensitive), then the first mapped
    city contained in the given name. Returns None when nothing matches.
    """
    if not city:
        return None
    name = city.strip().lower()

    if name == "london" and postcode:
        london = _london_brma(postcode)
        if london:
            return london

    for key, brma in CITY_TO_BRMA.items():
        if key.lower() == name:
            return brma

    for key, brma in CITY_TO_BRMA.items():
        if key.lower() in name:
            return brma

    return None


def get_lha_weekly_rate(
    city: Optional[str], bedrooms: int, postcode: Optional[str] = None
) -> Optional[float]:
    """Weekly LHA rate for a location and bedroom count, or None if unmapped."""
    brma = brma_for(city, postcode)
    if brma is None:
        return None
    return LHA_RATES[brma].for_bedrooms(bedrooms)


def get_lha_monthly_rate(
    city: Optional[str], bedrooms: int, postcode: Optional[str] = None
) -> Optional[int]:
    """
    Monthly LHA rate: weekly x 52 / 12, rounded half up to whole pounds.

    Matches the (city, bedrooms, postcode) -> rate | None lookup contract
    the TA suitability assessor consumes.
    """
    weekly = get_lha_weekly_rate(city, bedrooms, postcode)
    if weekly is None:
        return None
    return int(math.floor(weekly * WEEKS_PER_YEAR / MONTHS_PER_YEAR + 0.5))
