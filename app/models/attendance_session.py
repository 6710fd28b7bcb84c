"""
Attendance Session Model - Check-in to Check-out sessions
"""
from sqlalchemy import Boolean, Column, String, DateTime, Float, ForeignKey, Index, text
from sqlalchemy.sql import func

from atams.db import Base
from app.db.session import BigIntegerType


class AttendanceSession(Base):
    """Attendance Session model - Table: attendance_sessions"""
    __tablename__ = "attendance_sessions"
    __table_args__ = (
        # At most one active session per employee
        Index(
            "uq_attendance_sessions_one_active",
            "as_employee_id",
            unique=True,
            sqlite_where=text("as_status = 'active'"),
            postgresql_where=text("as_status = 'active'"),
        ),
    )

    as_id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    as_employee_id = Column(BigIntegerType, nullable=False, index=True)  # References employees(em_id)
    as_checkin_at = Column(DateTime, nullable=False, index=True)
    as_checkout_at = Column(DateTime, nullable=True)
    as_checkin_lat = Column(Float, nullable=False)
    as_checkin_lng = Column(Float, nullable=False)
    as_checkin_accuracy_m = Column(Float, nullable=False)
    as_geofence_id = Column(BigIntegerType, ForeignKey("geofences.gf_id"), nullable=True)
    as_status = Column(String(16), nullable=False, default="active")  # 'active', 'completed', 'incomplete'
    as_total_hours = Column(Float, nullable=True)
    as_outside_geofence = Column(Boolean, nullable=False, default=False)  # admitted under soft policy
    as_clock_skew = Column(Boolean, nullable=False, default=False)  # checkout not after checkin
    as_close_reason = Column(String(255), nullable=True)
    as_created_at = Column(DateTime, server_default=func.now(), nullable=False)
    as_updated_at = Column(DateTime, onupdate=func.now(), nullable=True)
