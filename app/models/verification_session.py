"""
Verification Session Model - Time-boxed identity re-checks
"""
from sqlalchemy import Column, String, DateTime, Float, Index, text
from sqlalchemy.sql import func

from atams.db import Base
from app.db.session import BigIntegerType


class VerificationSession(Base):
    """Verification Session model - Table: verification_sessions"""
    __tablename__ = "verification_sessions"
    __table_args__ = (
        # At most one pending verification per employee
        Index(
            "uq_verification_sessions_one_pending",
            "vs_employee_id",
            unique=True,
            sqlite_where=text("vs_status = 'pending'"),
            postgresql_where=text("vs_status = 'pending'"),
        ),
    )

    vs_id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    vs_employee_id = Column(BigIntegerType, nullable=False, index=True)
    vs_triggered_by = Column(BigIntegerType, nullable=True)  # admin id, NULL for the scheduler
    vs_triggered_at = Column(DateTime, nullable=False)
    vs_expires_at = Column(DateTime, nullable=False, index=True)
    vs_status = Column(String(16), nullable=False, default="pending", index=True)  # 'pending', 'verified', 'failed', 'expired'
    vs_face_match_score = Column(Float, nullable=True)
    vs_response_time_seconds = Column(Float, nullable=True)
    vs_resolved_at = Column(DateTime, nullable=True)
    vs_failure_reason = Column(String(255), nullable=True)
    vs_created_at = Column(DateTime, server_default=func.now(), nullable=False)
