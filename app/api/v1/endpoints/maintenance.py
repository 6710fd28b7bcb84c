"""
Maintenance Endpoints - Scheduled housekeeping
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from pydantic import BaseModel

from app.db.session import get_db
from app.services.cleanup_service import CleanupService
from app.schemas import AutoCloseResult, DataResponse
from app.api.deps import get_cleanup_service, require_admin

router = APIRouter()


class MaintenanceResult(BaseModel):
    """Maintenance pass result"""
    closed_sessions: int
    expired_verifications: int
    fraud_alerts: int


@router.post(
    "/auto-close-sessions",
    response_model=DataResponse[AutoCloseResult],
    status_code=status.HTTP_200_OK
)
async def auto_close_sessions(
    max_hours: Optional[int] = Query(None, ge=1, le=72, description="Close sessions open longer than this (default AUTO_CHECKOUT_MAX_HOURS)"),
    db: Session = Depends(get_db),
    cleanup_service: CleanupService = Depends(get_cleanup_service),
    current_user: dict = Depends(require_admin)
):
    """
    Close stale active sessions as incomplete

    **Authorization:**
    - Requires admin role level

    **Use case:**
    - Employees who never checked out; should be run daily via a scheduled job
    """
    closed = cleanup_service.auto_close_sessions(db, max_hours)

    return DataResponse(
        success=True,
        message="Auto-close completed",
        data=AutoCloseResult(
            closed_count=closed,
            message=f"Closed {closed} stale session(s)"
        )
    )


@router.post(
    "/run",
    response_model=DataResponse[MaintenanceResult],
    status_code=status.HTTP_200_OK
)
async def run_maintenance(
    db: Session = Depends(get_db),
    cleanup_service: CleanupService = Depends(get_cleanup_service),
    current_user: dict = Depends(require_admin)
):
    """
    Full maintenance pass: auto-close, verification expiry, fraud pattern evaluation
    """
    report = cleanup_service.run_all(db)

    return DataResponse(
        success=True,
        message="Maintenance completed",
        data=MaintenanceResult(
            closed_sessions=report.closed_sessions,
            expired_verifications=report.expired_verifications,
            fraud_alerts=report.fraud_alerts
        )
    )
