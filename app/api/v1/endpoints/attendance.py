"""
Attendance Endpoints - Check-in, check-out and session history
"""
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.services.attendance_service import AttendanceService
from app.services.geo import GeoPoint
from app.schemas import (
    AttendanceSession,
    AttendanceEvent,
    CheckInRequest,
    ForceCloseRequest,
    DataResponse,
    PaginationResponse
)
from app.api.deps import get_attendance_service, require_admin, require_auth

router = APIRouter()


@router.post(
    "/check-in",
    response_model=DataResponse[AttendanceSession],
    status_code=status.HTTP_200_OK
)
async def check_in(
    request: CheckInRequest,
    db: Session = Depends(get_db),
    attendance_service: AttendanceService = Depends(get_attendance_service),
    current_user: dict = Depends(require_auth)
):
    """
    Open an attendance session for the caller

    **Process:**
    1. Reject if the caller already has an active session
    2. Geofence admission (strict: reject, soft: record and flag)
    3. Create session and check-in event
    4. Run location spoofing heuristics

    **Errors:**
    - 409: already_active
    - 422: outside_geofence
    """
    session = attendance_service.check_in(
        db,
        current_user["user_id"],
        GeoPoint(request.lat, request.lng),
        request.accuracy_m,
        device_id=request.device_id
    ).unwrap()

    return DataResponse(
        success=True,
        message=f"Checked in {session.as_checkin_at.strftime('%H:%M')}",
        data=AttendanceSession.model_validate(session)
    )


@router.post(
    "/check-out",
    response_model=DataResponse[AttendanceSession],
    status_code=status.HTTP_200_OK
)
async def check_out(
    db: Session = Depends(get_db),
    attendance_service: AttendanceService = Depends(get_attendance_service),
    current_user: dict = Depends(require_auth)
):
    """
    Complete the caller's active session

    **Errors:**
    - 404: no_active_session
    """
    session = attendance_service.check_out(db, current_user["user_id"]).unwrap()

    return DataResponse(
        success=True,
        message=f"Checked out, {session.as_total_hours:.2f}h worked",
        data=AttendanceSession.model_validate(session)
    )


@router.get(
    "/sessions/me/active",
    response_model=DataResponse[AttendanceSession],
    status_code=status.HTTP_200_OK
)
async def get_my_active_session(
    db: Session = Depends(get_db),
    attendance_service: AttendanceService = Depends(get_attendance_service),
    current_user: dict = Depends(require_auth)
):
    """
    Get the caller's active session, or null data if not checked in
    """
    session = attendance_service.active_session(db, current_user["user_id"])

    return DataResponse(
        success=True,
        message="Active session retrieved" if session else "No active session",
        data=AttendanceSession.model_validate(session) if session else None
    )


@router.get(
    "/sessions",
    response_model=PaginationResponse[AttendanceSession],
    status_code=status.HTTP_200_OK
)
async def get_sessions_admin(
    employee_id: Optional[int] = Query(None, description="Filter by employee ID"),
    date_from: Optional[date] = Query(None, description="Start date (YYYY-MM-DD)"),
    date_to: Optional[date] = Query(None, description="End date (YYYY-MM-DD)"),
    status: Optional[str] = Query(None, pattern="^(active|completed|incomplete)$", description="Filter by status"),
    limit: int = Query(100, ge=1, le=1000, description="Maximum records to return"),
    offset: int = Query(0, ge=0, description="Number of records to skip"),
    sort: str = Query("desc", pattern="^(asc|desc)$", description="Sort order by check-in time"),
    db: Session = Depends(get_db),
    attendance_service: AttendanceService = Depends(get_attendance_service),
    current_user: dict = Depends(require_admin)
):
    """
    Get attendance sessions (Admin only)

    **Query Parameters:**
    - employee_id: Filter by specific employee
    - date_from/date_to: Date range filter (YYYY-MM-DD)
    - status: active, completed or incomplete
    - limit: Max records (1-1000, default 100)
    - offset: Skip records (default 0)
    - sort: asc or desc (default desc)
    """
    sessions = attendance_service.get_sessions_admin(
        db, employee_id, date_from, date_to, status, offset, limit, sort
    )
    total = attendance_service.count_sessions_admin(db, employee_id, date_from, date_to, status)

    return PaginationResponse(
        success=True,
        message="Sessions retrieved successfully",
        data=[AttendanceSession.model_validate(s) for s in sessions],
        total=total,
        page=offset // limit + 1,
        size=limit,
        pages=(total + limit - 1) // limit
    )


@router.post(
    "/sessions/{employee_id}/force-close",
    response_model=DataResponse[AttendanceSession],
    status_code=status.HTTP_200_OK
)
async def force_close_session(
    employee_id: int,
    request: Optional[ForceCloseRequest] = None,
    db: Session = Depends(get_db),
    attendance_service: AttendanceService = Depends(get_attendance_service),
    current_user: dict = Depends(require_admin)
):
    """
    Close an employee's active session as incomplete (Admin only)
    """
    reason = request.reason if request else None
    session = attendance_service.force_close(db, employee_id, reason).unwrap()

    return DataResponse(
        success=True,
        message="Session force-closed",
        data=AttendanceSession.model_validate(session)
    )


@router.get(
    "/sessions/{session_id}/events",
    response_model=DataResponse[List[AttendanceEvent]],
    status_code=status.HTTP_200_OK
)
async def get_session_events(
    session_id: int,
    db: Session = Depends(get_db),
    attendance_service: AttendanceService = Depends(get_attendance_service),
    current_user: dict = Depends(require_admin)
):
    """
    Check-in, check-out and force-close events of one session, oldest first (Admin only)
    """
    events = attendance_service.session_events(db, session_id)

    return DataResponse(
        success=True,
        message="Session events retrieved",
        data=[AttendanceEvent.model_validate(e) for e in events]
    )
