"""
Verification Schemas for random identity re-checks
"""
from typing import List, Optional, Literal
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field

from app.core.config import settings


class VerificationSession(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    vs_id: int
    vs_employee_id: int
    vs_triggered_by: Optional[int] = None
    vs_triggered_at: datetime
    vs_expires_at: datetime
    vs_status: Literal["pending", "verified", "failed", "expired"]
    vs_face_match_score: Optional[float] = None
    vs_response_time_seconds: Optional[float] = None
    vs_resolved_at: Optional[datetime] = None
    vs_failure_reason: Optional[str] = None


class TriggerRequest(BaseModel):
    """Omit employee_ids to trigger every active employee"""
    employee_ids: Optional[List[int]] = None
    timeout_minutes: int = Field(settings.VERIFICATION_DEFAULT_TIMEOUT_MINUTES, ge=1, le=30)


class TriggerRejection(BaseModel):
    employee_id: int
    code: str
    message: str


class TriggerResponse(BaseModel):
    session_ids: List[int]
    sessions: List[VerificationSession]
    rejected: List[TriggerRejection] = []


class RespondRequest(BaseModel):
    """Captured biometric sample, opaque to the engine (e.g. base64 image)"""
    sample: str = Field(..., min_length=1)


class VerificationOutcome(BaseModel):
    session_id: int
    status: Literal["verified", "failed"]
    face_match_score: Optional[float] = None
    response_time_seconds: float
    reason: Optional[str] = None


class SweepResult(BaseModel):
    expired_count: int


class VerificationStats(BaseModel):
    pending: int = 0
    verified: int = 0
    failed: int = 0
    expired: int = 0
