"""
Attendance Session Repository - Data access layer for attendance sessions
"""
from typing import List
from datetime import datetime, date, timedelta
from sqlalchemy.orm import Session

from atams.db import BaseRepository
from app.models.attendance_session import AttendanceSession


class AttendanceSessionRepository(BaseRepository[AttendanceSession]):
    def __init__(self):
        super().__init__(AttendanceSession)

    def add(self, db: Session, session_data: dict) -> AttendanceSession:
        """Stage a new session in the current transaction without committing"""
        db_session = AttendanceSession(**session_data)
        db.add(db_session)
        db.flush()
        return db_session

    def get_active_sessions(self, db: Session, employee_id: int) -> List[AttendanceSession]:
        """Get every active session for an employee, newest first. More than one is an invariant violation."""
        return db.query(AttendanceSession).filter(
            AttendanceSession.as_employee_id == employee_id,
            AttendanceSession.as_status == "active"
        ).order_by(AttendanceSession.as_checkin_at.desc(), AttendanceSession.as_id.desc()).all()

    def get_recent_sessions(
        self,
        db: Session,
        employee_id: int,
        since: datetime,
        limit: int = 10,
        status: str = None
    ) -> List[AttendanceSession]:
        """Get an employee's newest sessions checked in at or after `since`, optionally of one status"""
        query = db.query(AttendanceSession).filter(
            AttendanceSession.as_employee_id == employee_id,
            AttendanceSession.as_checkin_at >= since
        )
        if status:
            query = query.filter(AttendanceSession.as_status == status)
        return query.order_by(AttendanceSession.as_checkin_at.desc(), AttendanceSession.as_id.desc()).limit(limit).all()

    def get_employee_ids_since(self, db: Session, since: datetime) -> List[int]:
        rows = db.query(AttendanceSession.as_employee_id).filter(
            AttendanceSession.as_checkin_at >= since
        ).distinct().order_by(AttendanceSession.as_employee_id).all()
        return [row.as_employee_id for row in rows]

    def _filtered(
        self,
        db: Session,
        employee_id: int = None,
        date_from: date = None,
        date_to: date = None,
        status: str = None
    ):
        query = db.query(AttendanceSession)

        if employee_id:
            query = query.filter(AttendanceSession.as_employee_id == employee_id)
        if date_from:
            query = query.filter(AttendanceSession.as_checkin_at >= datetime.combine(date_from, datetime.min.time()))
        if date_to:
            query = query.filter(
                AttendanceSession.as_checkin_at < datetime.combine(date_to + timedelta(days=1), datetime.min.time())
            )
        if status:
            query = query.filter(AttendanceSession.as_status == status)
        return query

    def get_sessions_with_filters(
        self,
        db: Session,
        employee_id: int = None,
        date_from: date = None,
        date_to: date = None,
        status: str = None,
        skip: int = 0,
        limit: int = 100,
        sort: str = "desc"
    ) -> List[AttendanceSession]:
        """Get sessions with various filters using ORM"""
        query = self._filtered(db, employee_id, date_from, date_to, status)

        # Sorting
        if sort.lower() == "asc":
            query = query.order_by(AttendanceSession.as_checkin_at.asc())
        else:
            query = query.order_by(AttendanceSession.as_checkin_at.desc())

        return query.offset(skip).limit(limit).all()

    def count_sessions_with_filters(
        self,
        db: Session,
        employee_id: int = None,
        date_from: date = None,
        date_to: date = None,
        status: str = None
    ) -> int:
        return self._filtered(db, employee_id, date_from, date_to, status).count()

    def get_stale_active_sessions(self, db: Session, cutoff_time: datetime) -> List[AttendanceSession]:
        """Get all active sessions checked in before the cutoff, for auto-close"""
        return db.query(AttendanceSession).filter(
            AttendanceSession.as_status == "active",
            AttendanceSession.as_checkin_at < cutoff_time
        ).order_by(AttendanceSession.as_checkin_at.asc()).all()
