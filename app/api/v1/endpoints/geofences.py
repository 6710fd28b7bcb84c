"""
Geofence Endpoints - Admin store and position checks
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.services.geo import GeoPoint
from app.services.geofence_index import LocationTracker
from app.services.geofence_service import GeofenceService
from app.schemas import (
    Geofence,
    GeofenceCreate,
    GeofenceUpdate,
    PositionRequest,
    GeofenceCheckResponse,
    TrackResponse,
    DataResponse,
    PaginationResponse
)
from app.api.deps import get_geofence_service, get_location_tracker, require_admin, require_auth

router = APIRouter()


@router.get(
    "/",
    response_model=PaginationResponse[Geofence],
    status_code=status.HTTP_200_OK
)
async def list_geofences(
    search: str = Query("", description="Search geofences by name"),
    active: Optional[bool] = Query(None, description="Filter by active flag"),
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(100, ge=1, le=1000, description="Maximum records to return"),
    db: Session = Depends(get_db),
    geofence_service: GeofenceService = Depends(get_geofence_service),
    current_user: dict = Depends(require_admin)
):
    """
    Get list of geofences with pagination and search

    **Authorization:**
    - Requires admin role level
    """
    fences = geofence_service.list_geofences(db, search=search, active=active, skip=skip, limit=limit)
    total = geofence_service.count_geofences(db, search=search, active=active)

    return PaginationResponse(
        success=True,
        message="Geofences retrieved successfully",
        data=fences,
        total=total,
        page=skip // limit + 1,
        size=limit,
        pages=(total + limit - 1) // limit
    )


@router.post(
    "/check",
    response_model=DataResponse[GeofenceCheckResponse],
    status_code=status.HTTP_200_OK
)
async def check_position(
    position: PositionRequest,
    db: Session = Depends(get_db),
    geofence_service: GeofenceService = Depends(get_geofence_service),
    current_user: dict = Depends(require_auth)
):
    """
    Check whether a position is inside any active geofence, and which fence is nearest
    """
    result = geofence_service.check_position(db, GeoPoint(position.lat, position.lng), position.accuracy_m)

    return DataResponse(
        success=True,
        message="Position checked",
        data=result
    )


@router.post(
    "/track",
    response_model=DataResponse[TrackResponse],
    status_code=status.HTTP_200_OK
)
async def track_position(
    position: PositionRequest,
    db: Session = Depends(get_db),
    tracker: LocationTracker = Depends(get_location_tracker),
    current_user: dict = Depends(require_auth)
):
    """
    Report the caller's position; emits GeofenceEntered/GeofenceLeft on transitions
    """
    tracker.index.ensure_fresh(db)
    result = tracker.track(current_user["user_id"], GeoPoint(position.lat, position.lng), position.accuracy_m)

    return DataResponse(
        success=True,
        message="Position tracked",
        data=TrackResponse(within=result.within, geofence_id=result.geofence_id, transition=result.transition)
    )


@router.get(
    "/{gf_id}",
    response_model=DataResponse[Geofence],
    status_code=status.HTTP_200_OK
)
async def get_geofence(
    gf_id: int,
    db: Session = Depends(get_db),
    geofence_service: GeofenceService = Depends(get_geofence_service),
    current_user: dict = Depends(require_admin)
):
    """
    Get single geofence by ID

    **Authorization:**
    - Requires admin role level
    """
    return DataResponse(
        success=True,
        message="Geofence retrieved successfully",
        data=geofence_service.get_geofence(db, gf_id)
    )


@router.post(
    "/",
    response_model=DataResponse[Geofence],
    status_code=status.HTTP_201_CREATED
)
async def create_geofence(
    geofence: GeofenceCreate,
    db: Session = Depends(get_db),
    geofence_service: GeofenceService = Depends(get_geofence_service),
    current_user: dict = Depends(require_admin)
):
    """
    Create new geofence

    **Validation:**
    - gf_center_lat in [-90, 90], gf_center_lng in [-180, 180]
    - gf_radius_m > 0
    """
    return DataResponse(
        success=True,
        message="Geofence created successfully",
        data=geofence_service.create_geofence(db, geofence)
    )


@router.put(
    "/{gf_id}",
    response_model=DataResponse[Geofence],
    status_code=status.HTTP_200_OK
)
async def update_geofence(
    gf_id: int,
    geofence: GeofenceUpdate,
    db: Session = Depends(get_db),
    geofence_service: GeofenceService = Depends(get_geofence_service),
    current_user: dict = Depends(require_admin)
):
    """
    Update existing geofence

    **Note:**
    - There is no delete; set gf_active=false to retire a geofence
    """
    return DataResponse(
        success=True,
        message="Geofence updated successfully",
        data=geofence_service.update_geofence(db, gf_id, geofence)
    )
