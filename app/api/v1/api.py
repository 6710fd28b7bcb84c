from fastapi import APIRouter
from app.api.v1.endpoints import geofences, attendance, verification, fraud, maintenance

api_router = APIRouter()

# Register routes
api_router.include_router(geofences.router, prefix="/geofences", tags=["Geofences"])
api_router.include_router(attendance.router, prefix="/attendance", tags=["Attendance"])
api_router.include_router(verification.router, prefix="/verification", tags=["Verification"])
api_router.include_router(fraud.router, prefix="/fraud", tags=["Fraud"])
api_router.include_router(maintenance.router, prefix="/maintenance", tags=["Maintenance"])
