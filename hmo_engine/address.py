"""
Address and postcode normalisation.

Turns free-text addresses and UK postcodes into comparable tokens. Pure
functions; malformed input degrades to empty derived fields and never raises.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Final, Optional


# Road-type words stripped from the end of a two-word street name
ROAD_SUFFIXES: Final[frozenset[str]] = frozenset(
    {
        "road",
        "street",
        "avenue",
        "lane",
        "drive",
        "close",
        "way",
        "place",
        "court",
        "gardens",
        "terrace",
        "crescent",
        "grove",
        "square",
        "mews",
        "hill",
        "rise",
        "row",
        "walk",
        "park",
    }
)

# Tokens that introduce a sub-unit number rather than the street number
UNIT_PREFIXES: Final[frozenset[str]] = frozenset({"flat", "apartment", "unit"})

# UK postcode validation regex
# Matches formats: AA9A 9AA, A9A 9AA, A9 9AA, A99 9AA, AA9 9AA, AA99 9AA
UK_POSTCODE_REGEX: Final = re.compile(
    r"^([A-Z]{1,2}[0-9][A-Z0-9]?\s?[0-9][A-Z]{2})$", re.IGNORECASE
)

_STREET_NUMBER_RE: Final = re.compile(r"^\d+[a-z]?$")
_COMMA_RE: Final = re.compile(r",")
_DROPPED_CHARS_RE: Final = re.compile(r"[.']")
_WHITESPACE_RE: Final = re.compile(r"\s+")
_INCODE_RE: Final = re.compile(r"\d[A-Z]{2}$")
_DISTRICT_RE: Final = re.compile(r"^[A-Z]+")


@dataclass(frozen=True)
class NormalisedAddress:
    """
    Comparable tokens derived from an address and postcode.

    Derived on demand and never stored as the source of truth; the same
    address and postcode always produce the same value.
    """

    street_number: str
    street_name: str
    normalised_full: str
    outcode: str
    district: str

    @property
    def has_postcode(self) -> bool:
        return bool(self.outcode)


def validate_uk_postcode(postcode: str) -> bool:
    """Validate UK postcode format."""
    if not postcode:
        return False
    normalised = " ".join(postcode.upper().split())
    return bool(UK_POSTCODE_REGEX.match(normalised))


def normalise_uk_postcode(postcode: Optional[str]) -> str:
    """
    Normalise UK postcode to standard format.

    Ensures single space between outward and inward codes. Partial postcodes
    (outcode only) are returned uppercased without a space.
    """
    if not postcode:
        return ""
    clean = re.sub(r"[^A-Z0-9]", "", postcode.upper())
    if len(clean) >= 5 and _INCODE_RE.search(clean):
        return f"{clean[:-3]} {clean[-3:]}"
    return clean


def postcode_outcode(postcode: Optional[str]) -> str:
    """
    Outward code of a postcode, e.g. 'E8' from 'E8 1EJ'.

    Whitespace is removed and the trailing digit + two letters (the incode)
    stripped; a bare outcode is returned as-is.
    """
    if not postcode:
        return ""
    clean = re.sub(r"[^A-Z0-9]", "", postcode.upper())
    return _INCODE_RE.sub("", clean) if len(clean) >= 5 else clean


def postcode_district(outcode: str) -> str:
    """Leading letter run of an outcode, e.g. 'E' from 'E8', 'SW' from 'SW1A'."""
    match = _DISTRICT_RE.match(outcode or "")
    return match.group(0) if match else ""


def clean_address_text(address: Optional[str]) -> str:
    """Lowercase, strip periods and apostrophes, split on commas, collapse whitespace."""
    if not address:
        return ""
    text = _DROPPED_CHARS_RE.sub("", str(address).lower())
    text = _COMMA_RE.sub(" ", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def _street_number_index(tokens: list[str]) -> Optional[int]:
    """Index of the street number token, skipping 'flat N' style unit numbers."""
    for i, token in enumerate(tokens):
        if not _STREET_NUMBER_RE.match(token):
            continue
        # Only a number directly after the prefix is the unit number
        if i > 0 and tokens[i - 1] in UNIT_PREFIXES:
            continue
        return i
    return None


def _street_name(tokens: list[str]) -> str:
    """Up to two tokens after the street number, road-type suffix removed."""
    words = tokens[:2]
    if len(words) == 2 and words[1] in ROAD_SUFFIXES:
        words = words[:1]
    return " ".join(words)


def normalise_address(address: Optional[str], postcode: Optional[str] = None) -> NormalisedAddress:
    """
    Normalise a free-text address and optional postcode.

    Args:
        address: Free-text address, e.g. "Flat 3, 21 Elm Road, London"
        postcode: Optional UK postcode (full, partial, or malformed)

    Returns:
        NormalisedAddress; unparseable parts are empty strings.
    """
    full = clean_address_text(address)
    tokens = full.split()

    street_number = ""
    street_name = ""
    idx = _street_number_index(tokens)
    if idx is not None:
        street_number = tokens[idx]
        street_name = _street_name(tokens[idx + 1:])

    outcode = postcode_outcode(postcode)

    return NormalisedAddress(
        street_number=street_number,
        street_name=street_name,
        normalised_full=full,
        outcode=outcode,
        district=postcode_district(outcode),
    )
