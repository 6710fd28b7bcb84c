from .geofence import (
    Geofence,
    GeofenceCreate,
    GeofenceUpdate,
    PositionRequest,
    GeofenceCheckResponse,
    TrackResponse
)
from .attendance import (
    AttendanceSession,
    AttendanceEvent,
    CheckInRequest,
    ForceCloseRequest,
    AutoCloseResult
)
from .verification import (
    VerificationSession,
    TriggerRequest,
    TriggerRejection,
    TriggerResponse,
    RespondRequest,
    VerificationOutcome,
    SweepResult,
    VerificationStats
)
from .fraud import FraudAlert, FraudAlertCreate
from atams.schemas import DataResponse, PaginationResponse

__all__ = [
    # Geofence schemas
    "Geofence",
    "GeofenceCreate",
    "GeofenceUpdate",
    "PositionRequest",
    "GeofenceCheckResponse",
    "TrackResponse",
    # Attendance schemas
    "AttendanceSession",
    "AttendanceEvent",
    "CheckInRequest",
    "ForceCloseRequest",
    "AutoCloseResult",
    # Verification schemas
    "VerificationSession",
    "TriggerRequest",
    "TriggerRejection",
    "TriggerResponse",
    "RespondRequest",
    "VerificationOutcome",
    "SweepResult",
    "VerificationStats",
    # Fraud schemas
    "FraudAlert",
    "FraudAlertCreate",
    # Common schemas
    "DataResponse",
    "PaginationResponse"
]
