from fastapi import FastAPI, HTTPException, Depends, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError, DisconnectionError
from sqlalchemy.orm import Session
from typing import Dict
import logging

from nearbite.config.settings import load_places_settings
from nearbite.database import get_db
from nearbite.models.schemas import (
    CrowdBatchRequest,
    CrowdRecordCreate,
    CrowdRecordResponse,
    CrowdStatistics,
    GeocodeResponse,
    PhotoUrlResponse,
    ProviderStatusResponse,
    ProviderSwitchRequest,
)
from nearbite.services.crowd_service import CrowdDataError, CrowdLevelCache
from nearbite.services.places_service import PlacesService
from nearbite.services.providers import PlacesRegistry

app = FastAPI(
    title="Nearbite",
    description="Nearby restaurant discovery: places providers and live crowd levels",
    version="1.0.0"
)

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

crowd_cache = CrowdLevelCache()


@app.on_event("startup")
async def startup_event():
    """Build the places registry; backend loads start in the background."""
    registry = PlacesRegistry(load_places_settings())
    app.state.registry = registry
    app.state.places = PlacesService(registry)
    logger.info(f"Places registry ready, active provider: {registry.get_active_provider_type().value}")


@app.exception_handler(OperationalError)
@app.exception_handler(DisconnectionError)
async def database_exception_handler(request: Request, exc: Exception):
    """Handle database connection errors gracefully"""
    logger.error(f"Database error: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=503,
        content={
            "detail": "Database connection error. Please try again in a moment.",
            "error_type": type(exc).__name__
        }
    )


@app.exception_handler(CrowdDataError)
async def crowd_data_exception_handler(request: Request, exc: CrowdDataError):
    logger.error(f"Crowd data error: {str(exc)}")
    return JSONResponse(
        status_code=500,
        content={"detail": str(exc), "error_type": type(exc).__name__}
    )


def get_places(request: Request) -> PlacesService:
    return request.app.state.places


def _provider_status(places: PlacesService) -> ProviderStatusResponse:
    return ProviderStatusResponse(
        provider_type=places.provider_type.value,
        is_loaded=places.is_loaded,
        error=str(places.error) if places.error else None,
    )


# =============================================================================
# Places providers
# =============================================================================

@app.get("/api/places/provider", response_model=ProviderStatusResponse)
async def get_active_provider(places: PlacesService = Depends(get_places)):
    return _provider_status(places)


@app.put("/api/places/provider", response_model=ProviderStatusResponse)
async def switch_provider(request: ProviderSwitchRequest, places: PlacesService = Depends(get_places)):
    places.switch_provider(request.provider_type)
    return _provider_status(places)


@app.get("/api/places/providers")
async def list_providers(request: Request) -> Dict[str, Dict]:
    """Load state of every registered provider"""
    return request.app.state.registry.status_report()


@app.get("/api/places/geocode", response_model=GeocodeResponse)
async def geocode(address: str = Query(..., min_length=1), places: PlacesService = Depends(get_places)):
    location = await places.geocode_address(address)
    if location is None:
        raise HTTPException(status_code=404, detail=f"Could not geocode address: {address}")
    return GeocodeResponse(address=address, lat=location.lat, lng=location.lng)


@app.get("/api/places/photo-url", response_model=PhotoUrlResponse)
async def photo_url(
    reference: str = "",
    max_width: int = Query(400, ge=1, le=1600),
    places: PlacesService = Depends(get_places),
):
    return PhotoUrlResponse(url=places.get_photo_url(reference, max_width))


# =============================================================================
# Crowd levels
# =============================================================================

@app.get("/api/crowd/stats", response_model=CrowdStatistics)
async def crowd_statistics(db: Session = Depends(get_db)):
    return crowd_cache.statistics(db)


@app.delete("/api/crowd/expired")
async def sweep_expired_crowd_data(db: Session = Depends(get_db)):
    """Delete expired crowd rows. Meant to be called by an external scheduler."""
    return {"deleted": crowd_cache.sweep_expired(db)}


@app.post("/api/crowd/batch", response_model=Dict[str, CrowdRecordResponse])
async def get_crowd_batch(request: CrowdBatchRequest, db: Session = Depends(get_db)):
    rows = crowd_cache.get_batch(db, request.restaurant_ids)
    return {restaurant_id: CrowdRecordResponse.model_validate(row) for restaurant_id, row in rows.items()}


@app.post("/api/crowd", response_model=CrowdRecordResponse, status_code=201)
async def store_crowd_data(record: CrowdRecordCreate, db: Session = Depends(get_db)):
    return CrowdRecordResponse.model_validate(crowd_cache.store(db, record))


@app.get("/api/crowd/{restaurant_id}")
async def get_crowd_data(restaurant_id: str, db: Session = Depends(get_db)):
    row = crowd_cache.get_latest(db, restaurant_id)
    if row is None:
        raise HTTPException(status_code=404, detail=f"No crowd data for restaurant {restaurant_id}")
    return {
        "data": CrowdRecordResponse.model_validate(row),
        "source": "stale_cache" if crowd_cache.is_expired(row) else "cache",
    }
