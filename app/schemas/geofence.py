"""
Geofence Schemas for request/response validation
"""
from typing import Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field


class GeofenceBase(BaseModel):
    gf_name: str = Field(..., min_length=1, max_length=255)
    gf_center_lat: float = Field(..., ge=-90, le=90)
    gf_center_lng: float = Field(..., ge=-180, le=180)
    gf_radius_m: float = Field(..., gt=0)
    gf_active: bool = True


class GeofenceCreate(GeofenceBase):
    pass


class GeofenceUpdate(BaseModel):
    gf_name: Optional[str] = Field(None, min_length=1, max_length=255)
    gf_center_lat: Optional[float] = Field(None, ge=-90, le=90)
    gf_center_lng: Optional[float] = Field(None, ge=-180, le=180)
    gf_radius_m: Optional[float] = Field(None, gt=0)
    gf_active: Optional[bool] = None


class Geofence(GeofenceBase):
    model_config = ConfigDict(from_attributes=True)

    gf_id: int
    gf_created_at: Optional[datetime] = None
    gf_updated_at: Optional[datetime] = None


class PositionRequest(BaseModel):
    """A reported device position"""
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    accuracy_m: float = Field(0.0, ge=0)


class GeofenceCheckResponse(BaseModel):
    within: bool
    geofence: Optional[Geofence] = None
    nearest: Optional[Geofence] = None
    nearest_distance_m: Optional[float] = None


class TrackResponse(BaseModel):
    within: bool
    geofence_id: Optional[int] = None
    transition: Optional[str] = None  # 'entered', 'left' or None
