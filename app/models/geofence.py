"""
Geofence Model - Authorized circular work locations
"""
from sqlalchemy import Boolean, Column, String, DateTime, Float
from sqlalchemy.sql import func

from atams.db import Base
from app.db.session import BigIntegerType


class Geofence(Base):
    """Geofence model - Table: geofences"""
    __tablename__ = "geofences"

    gf_id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    gf_name = Column(String(255), nullable=False)
    gf_center_lat = Column(Float, nullable=False)
    gf_center_lng = Column(Float, nullable=False)
    gf_radius_m = Column(Float, nullable=False)
    gf_active = Column(Boolean, nullable=False, default=True)
    gf_created_at = Column(DateTime, server_default=func.now(), nullable=False)
    gf_updated_at = Column(DateTime, onupdate=func.now(), nullable=True)
