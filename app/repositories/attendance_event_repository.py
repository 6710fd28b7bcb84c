"""
Attendance Event Repository - Data access layer for attendance events
"""
from typing import List, Optional
from sqlalchemy.orm import Session

from atams.db import BaseRepository
from app.models.attendance_event import AttendanceEvent


class AttendanceEventRepository(BaseRepository[AttendanceEvent]):
    def __init__(self):
        super().__init__(AttendanceEvent)

    def add(self, db: Session, event_data: dict) -> AttendanceEvent:
        """Stage an event in the current transaction without committing"""
        db_event = AttendanceEvent(**event_data)
        db.add(db_event)
        db.flush()
        return db_event

    def get_last_checkin_event(self, db: Session, employee_id: int) -> Optional[AttendanceEvent]:
        """Most recent located check-in of an employee"""
        return db.query(AttendanceEvent).filter(
            AttendanceEvent.ae_employee_id == employee_id,
            AttendanceEvent.ae_event_type == "checkin",
            AttendanceEvent.ae_lat.isnot(None),
            AttendanceEvent.ae_lng.isnot(None)
        ).order_by(AttendanceEvent.ae_occurred_at.desc(), AttendanceEvent.ae_id.desc()).first()

    def get_session_events(self, db: Session, session_id: int) -> List[AttendanceEvent]:
        return db.query(AttendanceEvent).filter(
            AttendanceEvent.ae_session_id == session_id
        ).order_by(AttendanceEvent.ae_occurred_at.asc(), AttendanceEvent.ae_id.asc()).all()
