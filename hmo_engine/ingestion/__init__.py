"""
HMO Deal Engine - Ingestion Layer

Source registration and per-source field extraction. Every provider payload
is mapped to an ExternalRecord in canonical field names before matching.
"""

from hmo_engine.ingestion.registry import (
    SourceCategory,
    SourceRegistration,
    SOURCE_REGISTRY,
    get_active_sources,
    get_source,
    get_sources_by_category,
    register_source,
)
from hmo_engine.ingestion.extractors import (
    CompaniesHouseExtractor,
    FieldExtractor,
    LandRegistryExtractor,
    OfcomBroadbandExtractor,
    PropertyDataHmoExtractor,
    SearchlandTitleExtractor,
    StreetDataExtractor,
    ZooplaExtractor,
    extract_record,
    get_extractor,
)

__all__ = [
    # Source registration
    "SourceCategory",
    "SourceRegistration",
    "SOURCE_REGISTRY",
    "get_active_sources",
    "get_source",
    "get_sources_by_category",
    "register_source",
    # Field extraction
    "FieldExtractor",
    "ZooplaExtractor",
    "PropertyDataHmoExtractor",
    "SearchlandTitleExtractor",
    "LandRegistryExtractor",
    "OfcomBroadbandExtractor",
    "StreetDataExtractor",
    "CompaniesHouseExtractor",
    "extract_record",
    "get_extractor",
]
