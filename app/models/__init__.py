from .employee import Employee
from .geofence import Geofence
from .attendance_session import AttendanceSession
from .attendance_event import AttendanceEvent
from .verification_session import VerificationSession
from .fraud_alert import FraudAlert

__all__ = [
    "Employee",
    "Geofence",
    "AttendanceSession",
    "AttendanceEvent",
    "VerificationSession",
    "FraudAlert"
]
