"""
Verification Endpoints - Random identity re-checks
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.services.verification_service import VerificationService
from app.schemas import (
    VerificationSession,
    TriggerRequest,
    TriggerRejection,
    TriggerResponse,
    RespondRequest,
    VerificationOutcome,
    SweepResult,
    VerificationStats,
    DataResponse,
    PaginationResponse
)
from app.api.deps import get_verification_service, require_admin, require_auth

router = APIRouter()


@router.post(
    "/trigger",
    response_model=DataResponse[TriggerResponse],
    status_code=status.HTTP_200_OK
)
async def trigger_verification(
    request: TriggerRequest,
    db: Session = Depends(get_db),
    verification_service: VerificationService = Depends(get_verification_service),
    current_user: dict = Depends(require_admin)
):
    """
    Trigger verification for the given employees, or all active employees (Admin only)

    **Errors:**
    - 409: session_already_pending (every requested employee already pending)
    - 404: not_found (unknown employee)
    """
    outcome = verification_service.trigger(
        db, request.employee_ids, request.timeout_minutes, triggered_by=current_user["user_id"]
    ).unwrap()

    return DataResponse(
        success=True,
        message=(f"Verification triggered for {len(outcome.sessions)} employee(s). "
                 f"Timeout set to {request.timeout_minutes} minutes."),
        data=TriggerResponse(
            session_ids=outcome.session_ids,
            sessions=[VerificationSession.model_validate(s) for s in outcome.sessions],
            rejected=[
                TriggerRejection(employee_id=employee_id, code=rejection.value, message=detail)
                for employee_id, rejection, detail in outcome.rejected
            ]
        )
    )


@router.post(
    "/{session_id}/respond",
    response_model=DataResponse[VerificationOutcome],
    status_code=status.HTTP_200_OK
)
def respond_verification(
    session_id: int,
    request: RespondRequest,
    db: Session = Depends(get_db),
    verification_service: VerificationService = Depends(get_verification_service),
    current_user: dict = Depends(require_auth)
):
    """
    Answer a pending verification with a captured sample

    Runs in the threadpool because the biometric scorer call may block.

    **Errors:**
    - 404: not_found
    - 403: not_yours
    - 409: already_resolved (including responses after expiry)
    """
    outcome = verification_service.respond(db, session_id, current_user["user_id"], request.sample).unwrap()

    return DataResponse(
        success=True,
        message=f"Verification {outcome.status}",
        data=outcome
    )


@router.get(
    "/sweep",
    response_model=DataResponse[SweepResult],
    status_code=status.HTTP_200_OK
)
async def sweep_verifications(
    db: Session = Depends(get_db),
    verification_service: VerificationService = Depends(get_verification_service),
    current_user: dict = Depends(require_admin)
):
    """
    Expire every pending verification past its deadline (Admin only)
    """
    expired = verification_service.sweep_expired(db)

    return DataResponse(
        success=True,
        message=f"{expired} verification session(s) expired",
        data=SweepResult(expired_count=expired)
    )


@router.get(
    "/me/pending",
    response_model=DataResponse[List[VerificationSession]],
    status_code=status.HTTP_200_OK
)
async def get_my_pending(
    db: Session = Depends(get_db),
    verification_service: VerificationService = Depends(get_verification_service),
    current_user: dict = Depends(require_auth)
):
    """
    Pending verifications the caller still has time to answer
    """
    sessions = verification_service.pending_for(db, current_user["user_id"])

    return DataResponse(
        success=True,
        message="Pending verifications retrieved",
        data=[VerificationSession.model_validate(s) for s in sessions]
    )


@router.get(
    "/stats",
    response_model=DataResponse[VerificationStats],
    status_code=status.HTTP_200_OK
)
async def get_stats(
    db: Session = Depends(get_db),
    verification_service: VerificationService = Depends(get_verification_service),
    current_user: dict = Depends(require_admin)
):
    """
    Session counts by status (Admin only)
    """
    return DataResponse(
        success=True,
        message="Verification statistics retrieved",
        data=VerificationStats(**verification_service.stats(db))
    )


@router.get(
    "/sessions",
    response_model=PaginationResponse[VerificationSession],
    status_code=status.HTTP_200_OK
)
async def list_sessions(
    employee_id: Optional[int] = Query(None, description="Filter by employee ID"),
    status: Optional[str] = Query(None, pattern="^(pending|verified|failed|expired)$", description="Filter by status"),
    limit: int = Query(50, ge=1, le=500, description="Maximum records to return"),
    offset: int = Query(0, ge=0, description="Number of records to skip"),
    db: Session = Depends(get_db),
    verification_service: VerificationService = Depends(get_verification_service),
    current_user: dict = Depends(require_admin)
):
    """
    Verification sessions, newest first (Admin only)
    """
    sessions = verification_service.list_sessions(db, employee_id, status, offset, limit)
    total = verification_service.count_sessions(db, employee_id, status)

    return PaginationResponse(
        success=True,
        message="Verification sessions retrieved",
        data=[VerificationSession.model_validate(s) for s in sessions],
        total=total,
        page=offset // limit + 1,
        size=limit,
        pages=(total + limit - 1) // limit
    )
