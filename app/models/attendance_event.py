"""
Attendance Event Model - Audit trail for all attendance actions
"""
from sqlalchemy import Column, String, DateTime, Float, ForeignKey
from sqlalchemy.sql import func

from atams.db import Base
from app.db.session import BigIntegerType


class AttendanceEvent(Base):
    """Attendance Event model - Table: attendance_events"""
    __tablename__ = "attendance_events"

    ae_id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    ae_session_id = Column(BigIntegerType, ForeignKey("attendance_sessions.as_id"), nullable=False, index=True)
    ae_employee_id = Column(BigIntegerType, nullable=False, index=True)
    ae_event_type = Column(String(16), nullable=False)  # 'checkin', 'checkout' or 'force_close'
    ae_occurred_at = Column(DateTime, nullable=False, index=True)
    ae_lat = Column(Float, nullable=True)
    ae_lng = Column(Float, nullable=True)
    ae_accuracy_m = Column(Float, nullable=True)
    ae_nearest_geofence_id = Column(BigIntegerType, nullable=True)
    ae_nearest_distance_m = Column(Float, nullable=True)
    ae_speed_kmh = Column(Float, nullable=True)  # since the employee's previous check-in
    ae_device_id = Column(String(255), nullable=True)
    ae_created_at = Column(DateTime, server_default=func.now(), nullable=False)
