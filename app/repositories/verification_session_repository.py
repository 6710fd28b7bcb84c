"""
Verification Session Repository - Data access layer for verification sessions
"""
from typing import Dict, List, Optional
from datetime import datetime
from sqlalchemy import func, update
from sqlalchemy.orm import Session

from atams.db import BaseRepository
from app.models.verification_session import VerificationSession


class VerificationSessionRepository(BaseRepository[VerificationSession]):
    def __init__(self):
        super().__init__(VerificationSession)

    def get_pending_for_employee(self, db: Session, employee_id: int) -> List[VerificationSession]:
        return db.query(VerificationSession).filter(
            VerificationSession.vs_employee_id == employee_id,
            VerificationSession.vs_status == "pending"
        ).order_by(VerificationSession.vs_triggered_at.desc()).all()

    def get_expired_pending_ids(self, db: Session, now: datetime) -> List[int]:
        rows = db.query(VerificationSession.vs_id).filter(
            VerificationSession.vs_status == "pending",
            VerificationSession.vs_expires_at < now
        ).order_by(VerificationSession.vs_id).all()
        return [row.vs_id for row in rows]

    def compare_and_set_status(self, db: Session, session_id: int, expected: str, values: dict) -> bool:
        """
        Atomically move a session out of `expected`.

        Returns:
            bool: True if this call performed the transition, False if another
                writer changed the status first
        """
        result = db.execute(
            update(VerificationSession)
            .where(
                VerificationSession.vs_id == session_id,
                VerificationSession.vs_status == expected
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        db.commit()
        return result.rowcount == 1

    def refreshed(self, db: Session, session_id: int) -> Optional[VerificationSession]:
        obj = self.get(db, session_id)
        if obj is not None:
            db.refresh(obj)
        return obj

    def count_by_status(self, db: Session) -> Dict[str, int]:
        rows = db.query(
            VerificationSession.vs_status, func.count(VerificationSession.vs_id)
        ).group_by(VerificationSession.vs_status).all()
        return {status: count for status, count in rows}

    def _filtered(self, db: Session, employee_id: int = None, status: str = None):
        query = db.query(VerificationSession)
        if employee_id:
            query = query.filter(VerificationSession.vs_employee_id == employee_id)
        if status:
            query = query.filter(VerificationSession.vs_status == status)
        return query

    def get_sessions_with_filters(
        self,
        db: Session,
        employee_id: int = None,
        status: str = None,
        skip: int = 0,
        limit: int = 50
    ) -> List[VerificationSession]:
        return self._filtered(db, employee_id, status).order_by(
            VerificationSession.vs_triggered_at.desc(), VerificationSession.vs_id.desc()
        ).offset(skip).limit(limit).all()

    def count_sessions_with_filters(self, db: Session, employee_id: int = None, status: str = None) -> int:
        return self._filtered(db, employee_id, status).count()
