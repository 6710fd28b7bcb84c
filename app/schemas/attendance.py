"""
Attendance Schemas for sessions and events
"""
from typing import Optional, Literal
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field


class AttendanceSession(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    as_id: int
    as_employee_id: int
    as_checkin_at: datetime
    as_checkout_at: Optional[datetime] = None
    as_checkin_lat: float
    as_checkin_lng: float
    as_checkin_accuracy_m: float
    as_geofence_id: Optional[int] = None
    as_status: Literal["active", "completed", "incomplete"] = "active"
    as_total_hours: Optional[float] = None
    as_outside_geofence: bool = False
    as_clock_skew: bool = False
    as_close_reason: Optional[str] = None


class AttendanceEvent(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    ae_id: int
    ae_session_id: int
    ae_employee_id: int
    ae_event_type: Literal["checkin", "checkout", "force_close"]
    ae_occurred_at: datetime
    ae_lat: Optional[float] = None
    ae_lng: Optional[float] = None
    ae_accuracy_m: Optional[float] = None
    ae_nearest_geofence_id: Optional[int] = None
    ae_nearest_distance_m: Optional[float] = None
    ae_speed_kmh: Optional[float] = None
    ae_device_id: Optional[str] = None


# Request/Response schemas for API endpoints
class CheckInRequest(BaseModel):
    """Request schema for check-in endpoint"""
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    accuracy_m: float = Field(..., ge=0)
    device_id: Optional[str] = Field(None, max_length=255)


class ForceCloseRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=255)


class AutoCloseResult(BaseModel):
    closed_count: int
    message: str
