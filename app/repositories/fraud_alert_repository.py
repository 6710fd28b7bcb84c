"""
Fraud Alert Repository - Append-only store of fraud findings
"""
from typing import List
from datetime import datetime
from sqlalchemy import update
from sqlalchemy.orm import Session

from atams.db import BaseRepository
from app.models.fraud_alert import FraudAlert


class FraudAlertRepository(BaseRepository[FraudAlert]):
    def __init__(self):
        super().__init__(FraudAlert)

    def add(self, db: Session, alert_data: dict) -> FraudAlert:
        db_alert = FraudAlert(**alert_data)
        db.add(db_alert)
        db.flush()
        return db_alert

    def get_unresolved(self, db: Session, employee_id: int, alert_type: str) -> List[FraudAlert]:
        return db.query(FraudAlert).filter(
            FraudAlert.fa_employee_id == employee_id,
            FraudAlert.fa_type == alert_type,
            FraudAlert.fa_resolved.is_(False)
        ).all()

    def mark_resolved(self, db: Session, alert_id: int, resolved_by: int, resolved_at: datetime) -> bool:
        """Set the resolved flag once. Returns False if it was already set."""
        result = db.execute(
            update(FraudAlert)
            .where(FraudAlert.fa_id == alert_id, FraudAlert.fa_resolved.is_(False))
            .values(fa_resolved=True, fa_resolved_by=resolved_by, fa_resolved_at=resolved_at)
            .execution_options(synchronize_session=False)
        )
        db.commit()
        return result.rowcount == 1

    def _filtered(
        self,
        db: Session,
        employee_id: int = None,
        alert_type: str = None,
        severity: str = None,
        resolved: bool = None
    ):
        query = db.query(FraudAlert)
        if employee_id:
            query = query.filter(FraudAlert.fa_employee_id == employee_id)
        if alert_type:
            query = query.filter(FraudAlert.fa_type == alert_type)
        if severity:
            query = query.filter(FraudAlert.fa_severity == severity)
        if resolved is not None:
            query = query.filter(FraudAlert.fa_resolved.is_(resolved))
        return query

    def get_alerts_with_filters(
        self,
        db: Session,
        employee_id: int = None,
        alert_type: str = None,
        severity: str = None,
        resolved: bool = None,
        skip: int = 0,
        limit: int = 100
    ) -> List[FraudAlert]:
        return self._filtered(db, employee_id, alert_type, severity, resolved).order_by(
            FraudAlert.fa_created_at.desc(), FraudAlert.fa_id.desc()
        ).offset(skip).limit(limit).all()

    def count_alerts_with_filters(
        self,
        db: Session,
        employee_id: int = None,
        alert_type: str = None,
        severity: str = None,
        resolved: bool = None
    ) -> int:
        return self._filtered(db, employee_id, alert_type, severity, resolved).count()
