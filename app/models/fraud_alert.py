"""
Fraud Alert Model - Append-only output of the fraud heuristics
"""
from sqlalchemy import Boolean, Column, String, DateTime, JSON, Text
from sqlalchemy.sql import func

from atams.db import Base
from app.db.session import BigIntegerType


class FraudAlert(Base):
    """Fraud Alert model - Table: fraud_alerts"""
    __tablename__ = "fraud_alerts"

    fa_id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    fa_employee_id = Column(BigIntegerType, nullable=False, index=True)
    fa_type = Column(String(32), nullable=False)  # 'location_spoofing', 'time_manipulation', 'device_sharing', 'pattern_anomaly'
    fa_severity = Column(String(16), nullable=False)  # 'low', 'medium', 'high', 'critical'
    fa_description = Column(Text, nullable=False)
    fa_evidence = Column(JSON, nullable=False, default=dict)
    fa_created_at = Column(DateTime, nullable=False, index=True)
    fa_resolved = Column(Boolean, nullable=False, default=False)
    fa_resolved_by = Column(BigIntegerType, nullable=True)
    fa_resolved_at = Column(DateTime, nullable=True)
