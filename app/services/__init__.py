from .geofence_index import GeofenceIndex, LocationTracker
from .geofence_service import GeofenceService
from .jwt_service import JwtService
from .fraud_service import FraudHeuristicsService
from .attendance_service import AttendanceService
from .verification_service import VerificationService, VerificationSweeper
from .cleanup_service import CleanupService

__all__ = [
    "GeofenceIndex",
    "LocationTracker",
    "GeofenceService",
    "JwtService",
    "FraudHeuristicsService",
    "AttendanceService",
    "VerificationService",
    "VerificationSweeper",
    "CleanupService"
]
