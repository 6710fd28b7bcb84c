"""
Fraud Endpoints - Heuristic evaluation and alert review
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.services.fraud_service import FraudHeuristicsService
from app.schemas import FraudAlert, DataResponse, PaginationResponse
from app.api.deps import get_fraud_service, require_admin

router = APIRouter()


@router.post(
    "/evaluate/{employee_id}",
    response_model=DataResponse[List[FraudAlert]],
    status_code=status.HTTP_200_OK
)
async def evaluate_employee(
    employee_id: int,
    db: Session = Depends(get_db),
    fraud_service: FraudHeuristicsService = Depends(get_fraud_service),
    current_user: dict = Depends(require_admin)
):
    """
    Run the time-pattern and device-sharing rules over the employee's recent history (Admin only)
    """
    alerts = fraud_service.evaluate_employee(db, employee_id)

    return DataResponse(
        success=True,
        message=f"{len(alerts)} fraud alert(s) raised",
        data=[FraudAlert.model_validate(a) for a in alerts]
    )


@router.get(
    "/alerts",
    response_model=PaginationResponse[FraudAlert],
    status_code=status.HTTP_200_OK
)
async def list_alerts(
    employee_id: Optional[int] = Query(None, description="Filter by employee ID"),
    alert_type: Optional[str] = Query(
        None,
        pattern="^(location_spoofing|time_manipulation|device_sharing|pattern_anomaly)$",
        description="Filter by alert type"
    ),
    severity: Optional[str] = Query(None, pattern="^(low|medium|high|critical)$", description="Filter by severity"),
    resolved: Optional[bool] = Query(None, description="Filter by resolved flag"),
    limit: int = Query(100, ge=1, le=1000, description="Maximum records to return"),
    offset: int = Query(0, ge=0, description="Number of records to skip"),
    db: Session = Depends(get_db),
    fraud_service: FraudHeuristicsService = Depends(get_fraud_service),
    current_user: dict = Depends(require_admin)
):
    """
    Fraud alerts, newest first (Admin only)
    """
    alerts = fraud_service.list_alerts(db, employee_id, alert_type, severity, resolved, offset, limit)
    total = fraud_service.count_alerts(db, employee_id, alert_type, severity, resolved)

    return PaginationResponse(
        success=True,
        message="Fraud alerts retrieved",
        data=[FraudAlert.model_validate(a) for a in alerts],
        total=total,
        page=offset // limit + 1,
        size=limit,
        pages=(total + limit - 1) // limit
    )


@router.post(
    "/alerts/{alert_id}/resolve",
    response_model=DataResponse[FraudAlert],
    status_code=status.HTTP_200_OK
)
async def resolve_alert(
    alert_id: int,
    db: Session = Depends(get_db),
    fraud_service: FraudHeuristicsService = Depends(get_fraud_service),
    current_user: dict = Depends(require_admin)
):
    """
    Mark an alert as resolved (Admin only). Alerts are never deleted.

    **Errors:**
    - 404: not_found
    - 409: already_resolved
    """
    alert = fraud_service.resolve_alert(db, alert_id, current_user["user_id"]).unwrap()

    return DataResponse(
        success=True,
        message="Fraud alert resolved",
        data=FraudAlert.model_validate(alert)
    )
