"""
FastAPI application for the HMO deal engine.

Exposes address normalisation, candidate matching, record ingestion and
property scoring over JSON. Properties live in the process's in-memory store.

Production deployment configuration via environment variables.
"""

import logging
import os
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from hmo_engine.address import normalise_address
from hmo_engine.cache import TTLCache
from hmo_engine.matching import MatchCandidate, MatchSubject, match_confidence, rank_candidates
from hmo_engine.pipeline import IngestAction, ResolutionPipeline
from hmo_engine.reconciliation import CreationRejected, reconcile
from hmo_engine.store import InMemoryPropertyStore
from sources.geocoder import PostcodesIoGeocoder
from utils.config import Config


logger = logging.getLogger(__name__)

# =============================================================================
# Environment Configuration
# =============================================================================

# Production mode detection
IS_PRODUCTION = os.getenv("RAILWAY_ENVIRONMENT") is not None or os.getenv("PRODUCTION", "").lower() == "true"

# CORS configuration - locked down for production
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "").split(",") if os.getenv("ALLOWED_ORIGINS") else []
if not ALLOWED_ORIGINS and not IS_PRODUCTION:
    # Development fallback only
    ALLOWED_ORIGINS = ["http://localhost:8000", "http://127.0.0.1:8000"]

VERSION = "0.1.0"


# =============================================================================
# API Request/Response Models
# =============================================================================

class AddressInput(BaseModel):
    """One side of an address comparison."""
    address: str
    postcode: str = ""
    bedrooms: Optional[int] = None
    tenure: Optional[str] = None

    def to_subject(self) -> MatchSubject:
        return MatchSubject.from_dict(self.model_dump())


class NormaliseRequest(BaseModel):
    address: str
    postcode: Optional[str] = None


class MatchRequest(BaseModel):
    """Target and candidates, in the order they were seen."""
    target: AddressInput
    candidates: List[AddressInput]


class IngestRequest(BaseModel):
    """A raw provider payload for a registered source."""
    source: str
    payload: Dict[str, Any]


class IngestBatchRequest(BaseModel):
    source: str
    payloads: List[Dict[str, Any]]


class EnrichRequest(BaseModel):
    """Canonical field values from one source for a known property."""
    source: str
    fields: Dict[str, Any]


class EvaluateRequest(BaseModel):
    """Canonical field set scored without touching the store."""
    source: str = "api"
    fields: Dict[str, Any]


def build_pipeline(config: Config) -> ResolutionPipeline:
    """Pipeline wired from configuration, with a caching postcode geocoder."""
    geocoder = PostcodesIoGeocoder(
        base_url=config.geocoder_base_url,
        timeout=config.request_timeout,
        cache=TTLCache(config.geocode_cache_ttl, config.geocode_empty_ttl),
    )
    return ResolutionPipeline(
        store=InMemoryPropertyStore(),
        geocoder=geocoder,
        match_policy=config.match_policy(),
        deal_policy=config.deal_scoring_policy(),
        ta_policy=config.ta_policy(),
    )


def create_app(pipeline: Optional[ResolutionPipeline] = None, config: Optional[Config] = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    config = config or Config.load()
    pipeline = pipeline or build_pipeline(config)

    app = FastAPI(
        title="HMO Deal Engine",
        description="Property identity resolution and HMO investment scoring",
        version=VERSION,
        # Production settings: disable docs/redoc for private deployment
        docs_url=None if IS_PRODUCTION else "/docs",
        redoc_url=None if IS_PRODUCTION else "/redoc",
        openapi_url=None if IS_PRODUCTION else "/openapi.json",
        debug=config.debug and not IS_PRODUCTION,
    )
    app.state.pipeline = pipeline

    # Healthchecks first: no dependencies, no IO
    @app.get("/", include_in_schema=False)
    def root():
        return {"status": "ok"}

    @app.get("/health", include_in_schema=False)
    def health():
        return {"status": "healthy"}

    if ALLOWED_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=ALLOWED_ORIGINS,
            allow_credentials=True,
            allow_methods=["GET", "POST"],
            allow_headers=["*"],
        )

    # =========================================================================
    # Matching
    # =========================================================================

    @app.post("/api/address/normalise")
    def normalise(request_data: NormaliseRequest):
        """Normalised street number, street name and postcode areas."""
        normalised = normalise_address(request_data.address, request_data.postcode)
        return {
            "street_number": normalised.street_number,
            "street_name": normalised.street_name,
            "normalised_full": normalised.normalised_full,
            "outcode": normalised.outcode,
            "district": normalised.district,
        }

    @app.post("/api/match")
    def match(request_data: MatchRequest):
        """
        Rank candidates against the target, best first.

        Candidates scored 'none' are omitted; `best` is null when nothing
        matches.
        """
        target = request_data.target.to_subject()
        subjects = [c.to_subject() for c in request_data.candidates]
        candidates = [
            MatchCandidate(
                item=index,
                confidence=match_confidence(target, subject, pipeline.match_policy),
                tenure=subject.tenure,
            )
            for index, subject in enumerate(subjects)
        ]
        ranked = [
            {"index": c.item, "confidence": c.confidence.value}
            for c in rank_candidates(target, candidates, pipeline.match_policy)
        ]
        return {"best": ranked[0] if ranked else None, "ranked": ranked}

    # =========================================================================
    # Properties
    # =========================================================================

    @app.post("/api/properties/ingest")
    def ingest(request_data: IngestRequest):
        """
        Match, merge and score one provider payload.

        Returns 422 with the rejection reasons when no property could be
        matched or created.
        """
        try:
            outcome = pipeline.ingest_raw(request_data.source, request_data.payload)
        except KeyError as e:
            raise HTTPException(status_code=404, detail=str(e.args[0]))

        if outcome.action == IngestAction.REJECTED:
            return JSONResponse(
                status_code=422,
                content={
                    "action": outcome.action.value,
                    "message": outcome.message,
                    "reasons": outcome.reasons,
                },
            )
        return outcome.to_dict()

    @app.post("/api/properties/ingest-batch")
    def ingest_batch(request_data: IngestBatchRequest):
        """Ingest many payloads from one source and return the counts."""
        try:
            summary = pipeline.ingest_batch(request_data.payloads, request_data.source)
        except KeyError as e:
            raise HTTPException(status_code=404, detail=str(e.args[0]))
        return summary.to_dict()

    @app.post("/api/properties/evaluate")
    def evaluate_fields(request_data: EvaluateRequest):
        """
        Score a field set as if it were a new property.

        Nothing is stored. Returns 422 with the reasons when the fields
        could not form a property.
        """
        try:
            prop = reconcile(None, request_data.fields, request_data.source)
        except CreationRejected as e:
            return JSONResponse(
                status_code=422,
                content={"message": str(e), "reasons": e.reasons},
            )
        return {"property": prop.to_dict(), **pipeline.evaluate(prop).to_dict()}

    @app.get("/api/properties")
    def list_properties():
        """Stored properties with their evaluations, best deal first."""
        return [
            {"property": e.property.to_dict(), **e.to_dict()}
            for e in pipeline.evaluate_all()
        ]

    @app.get("/api/properties/{property_id}")
    def get_property(property_id: str):
        prop = pipeline.store.get(property_id)
        if prop is None:
            raise HTTPException(status_code=404, detail=f"Unknown property: {property_id}")
        return prop.to_dict()

    @app.post("/api/properties/{property_id}/enrich")
    def enrich(property_id: str, request_data: EnrichRequest):
        """Merge canonical field values from one source into a known property."""
        try:
            prop = pipeline.enrich(property_id, request_data.fields, request_data.source)
        except KeyError:
            raise HTTPException(status_code=404, detail=f"Unknown property: {property_id}")
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return prop.to_dict()

    @app.get("/api/properties/{property_id}/evaluation")
    def evaluate(property_id: str):
        """Deal score, HMO classification and TA suitability."""
        prop = pipeline.store.get(property_id)
        if prop is None:
            raise HTTPException(status_code=404, detail=f"Unknown property: {property_id}")
        return pipeline.evaluate(prop).to_dict()

    @app.get("/api/health")
    def api_health():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "version": VERSION,
            "environment": "production" if IS_PRODUCTION else "development",
            "properties": len(pipeline.store.all()),
        }

    return app


# Create app instance for uvicorn
app = create_app()
