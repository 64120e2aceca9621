"""
Routes module - Ingestion, location and reporting routes
All routes are mounted under /api
"""

from fastapi import APIRouter, Depends, File, Query, UploadFile
from typing import Optional
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session
import logging

from delivery_recon.controllers import AnalyticsController, LocationController, UploadController
from delivery_recon.core.database import get_db

logger = logging.getLogger(__name__)

router = APIRouter()

upload_controller = UploadController()
location_controller = LocationController()
analytics_controller = AnalyticsController()


class ClientCreateRequest(BaseModel):
    name: str = Field(..., description="Client (restaurant brand) name", examples=["Capriotti's"])


class ConfirmMatchRequest(BaseModel):
    client_id: int = Field(..., description="Client id")
    raw_location_name: str = Field(..., description="Store name exactly as it appears in the platform export")
    platform: str = Field(..., description="ubereats, doordash or grubhub", examples=["doordash"])
    target_location_id: int = Field(..., description="Canonical location to bind the name to")


class MergeLocationsRequest(BaseModel):
    client_id: int = Field(..., description="Client id")
    source_location_id: int = Field(..., description="Location to merge away (deleted afterwards)")
    target_location_id: int = Field(..., description="Location that receives the transactions")


# ============================================================================
# HEALTH CHECK ROUTES
# ============================================================================

@router.get(
    "/health",
    tags=["Health Check"],
    summary="Health check",
    description="Check the health status of the service and its database connection",
)
async def health_check(db: Session = Depends(get_db)):
    return await analytics_controller.health(db)


# ============================================================================
# CLIENT ROUTES
# ============================================================================

@router.post(
    "/clients",
    tags=["Clients"],
    summary="Create client",
    description="Create a client. Its Unmapped Locations bucket is created with it.",
)
async def create_client(request: ClientCreateRequest, db: Session = Depends(get_db)):
    return await location_controller.create_client(db, request.name)


@router.get("/clients", tags=["Clients"], summary="List clients")
async def list_clients(db: Session = Depends(get_db)):
    return await location_controller.list_clients(db)


# ============================================================================
# INGESTION ROUTES
# ============================================================================

@router.post(
    "/upload/{platform}",
    tags=["Ingestion"],
    summary="Ingest a platform export",
    description="Normalize, resolve and upsert one Uber Eats, DoorDash or Grubhub export file for a client. "
                "Re-uploading the same file is idempotent.",
    response_description="Ingestion result with row counts, rejections and resolution statistics"
)
async def upload_platform_file(
    platform: str,
    client_id: int = Query(..., description="Client the file belongs to", example=1),
    file: UploadFile = File(..., description="CSV or Excel export"),
    db: Session = Depends(get_db)
):
    """
    **Example:**
    ```bash
    curl -X POST 'http://localhost:8010/api/upload/doordash?client_id=1' -F 'file=@doordash_week.csv'
    ```
    """
    return await upload_controller.upload_platform_file(db, platform, client_id, file)


@router.delete(
    "/transactions/{platform}",
    tags=["Ingestion"],
    summary="Delete a week of transactions",
    description="Replace-week pre-step: deletes a client's platform rows dated within [week_start, week_end]. "
                "Never run implicitly by an upload.",
)
async def delete_week(
    platform: str,
    client_id: int = Query(..., description="Client id"),
    week_start: str = Query(..., description="First date (YYYY-MM-DD)", example="2025-10-06"),
    week_end: str = Query(..., description="Last date (YYYY-MM-DD)", example="2025-10-12"),
    db: Session = Depends(get_db)
):
    return await upload_controller.delete_week(db, platform, client_id, week_start, week_end)


# ============================================================================
# LOCATION ROUTES
# ============================================================================

@router.post(
    "/locations/import",
    tags=["Locations"],
    summary="Import master location list",
    description="Create or update canonical locations from a CSV/Excel master list. "
                "Returns created, updated and skipped counts.",
)
async def import_master_list(
    client_id: int = Query(..., description="Client id"),
    file: UploadFile = File(..., description="Master location list"),
    db: Session = Depends(get_db)
):
    return await location_controller.import_master_list(db, client_id, file)


@router.get("/locations", tags=["Locations"], summary="List a client's locations")
async def list_locations(
    client_id: int = Query(..., description="Client id"),
    db: Session = Depends(get_db)
):
    return await location_controller.list_locations(db, client_id)


@router.get(
    "/locations/duplicates",
    tags=["Locations"],
    summary="Find duplicate locations",
    description="Groups of locations whose canonical names normalize to the same string",
)
async def find_duplicates(
    client_id: int = Query(..., description="Client id"),
    db: Session = Depends(get_db)
):
    return await location_controller.get_duplicates(db, client_id)


@router.post(
    "/locations/merge",
    tags=["Locations"],
    summary="Merge two locations",
    description="Move every transaction from the source location to the target, then delete the source.",
)
async def merge_locations(request: MergeLocationsRequest, db: Session = Depends(get_db)):
    return await location_controller.merge_locations(
        db, request.client_id, request.source_location_id, request.target_location_id
    )


@router.get(
    "/locations/suggestions",
    tags=["Locations"],
    summary="Location match suggestions",
    description="Raw platform store names not bound to a verified location, with the best candidate "
                "location and a confidence score. Read-only.",
)
async def get_suggestions(
    client_id: int = Query(..., description="Client id"),
    platform: Optional[str] = Query(None, description="Restrict to one platform"),
    min_confidence: Optional[float] = Query(None, ge=0.0, le=1.0, description="Drop weaker suggestions"),
    db: Session = Depends(get_db)
):
    return await location_controller.get_suggestions(db, client_id, platform, min_confidence)


@router.post(
    "/locations/confirm-match",
    tags=["Locations"],
    summary="Confirm a location match",
    description="Bind a raw platform store name to a location, mark the location verified and "
                "re-point existing transactions of that name.",
)
async def confirm_match(request: ConfirmMatchRequest, db: Session = Depends(get_db)):
    return await location_controller.confirm_match(
        db, request.client_id, request.raw_location_name, request.platform, request.target_location_id
    )


# ============================================================================
# REPORTING ROUTES
# ============================================================================

@router.get(
    "/metrics/locations",
    tags=["Reporting"],
    summary="Consolidated location metrics",
    description="Sales, orders, AOV, marketing spend, ROAS and payout per location across platforms. "
                "Ratios with a zero denominator are null.",
)
async def location_metrics(
    client_id: Optional[int] = Query(None, description="Client id"),
    location_id: Optional[int] = Query(None, description="Location id"),
    platform: Optional[str] = Query(None, description="Restrict to one platform"),
    week_start: Optional[str] = Query(None, description="First week (any date in it)", example="2025-10-06"),
    week_end: Optional[str] = Query(None, description="Last week (any date in it)", example="2025-10-12"),
    group_by_week: bool = Query(False, description="One row per (location, week)"),
    db: Session = Depends(get_db)
):
    return await analytics_controller.location_metrics(
        db, client_id, location_id, platform, week_start, week_end, group_by_week
    )


@router.get("/metrics/weeks", tags=["Reporting"], summary="Weeks with data, newest first")
async def available_weeks(
    client_id: Optional[int] = Query(None, description="Client id"),
    db: Session = Depends(get_db)
):
    return await analytics_controller.available_weeks(db, client_id)


@router.get(
    "/data-quality",
    tags=["Reporting"],
    summary="Data quality report",
    description="Advisory anomaly flags over recent weekly location metrics",
)
async def data_quality(
    client_id: Optional[int] = Query(None, description="Client id"),
    lookback_weeks: Optional[int] = Query(None, ge=1, description="Number of recent weeks to analyze"),
    db: Session = Depends(get_db)
):
    return await analytics_controller.data_quality(db, client_id, lookback_weeks)
