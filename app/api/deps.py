"""
Request dependencies: caller identity and the process-wide service instances
"""
from functools import lru_cache
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.config import settings
from atams.exceptions import ForbiddenException, UnauthorizedException
from app.services.attendance_service import AttendanceService
from app.services.biometric_service import build_scorer
from app.services.cleanup_service import CleanupService
from app.services.fraud_service import FraudHeuristicsService
from app.services.geofence_index import GeofenceIndex, LocationTracker
from app.services.geofence_service import GeofenceService
from app.services.jwt_service import JwtService
from app.services.verification_service import VerificationService

bearer_scheme = HTTPBearer(auto_error=False)


@lru_cache
def get_jwt_service() -> JwtService:
    return JwtService(settings)


@lru_cache
def get_geofence_index() -> GeofenceIndex:
    return GeofenceIndex(refresh_seconds=settings.GEOFENCE_REFRESH_SECONDS)


@lru_cache
def get_location_tracker() -> LocationTracker:
    return LocationTracker(get_geofence_index())


@lru_cache
def get_geofence_service() -> GeofenceService:
    return GeofenceService(get_geofence_index())


@lru_cache
def get_fraud_service() -> FraudHeuristicsService:
    return FraudHeuristicsService(settings)


@lru_cache
def get_attendance_service() -> AttendanceService:
    return AttendanceService(get_geofence_index(), get_fraud_service(), settings)


@lru_cache
def get_verification_service() -> VerificationService:
    return VerificationService(build_scorer(settings), settings)


@lru_cache
def get_cleanup_service() -> CleanupService:
    return CleanupService(get_attendance_service(), get_verification_service(), get_fraud_service())


def require_auth(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    jwt_service: JwtService = Depends(get_jwt_service),
) -> dict:
    """Resolve the caller from the bearer token: {user_id, role_level}"""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise UnauthorizedException("Missing bearer token")
    return jwt_service.verify_token(credentials.credentials)


def require_min_role_level(min_level: int):
    def checker(current_user: dict = Depends(require_auth)) -> dict:
        if current_user["role_level"] < min_level:
            raise ForbiddenException("Insufficient role level")
        return current_user
    return checker


require_admin = require_min_role_level(settings.ADMIN_ROLE_LEVEL)
