from .employee_repository import EmployeeRepository
from .geofence_repository import GeofenceRepository
from .attendance_session_repository import AttendanceSessionRepository
from .attendance_event_repository import AttendanceEventRepository
from .verification_session_repository import VerificationSessionRepository
from .fraud_alert_repository import FraudAlertRepository

__all__ = [
    "EmployeeRepository",
    "GeofenceRepository",
    "AttendanceSessionRepository",
    "AttendanceEventRepository",
    "VerificationSessionRepository",
    "FraudAlertRepository"
]
