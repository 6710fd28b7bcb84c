"""
Fraud Alert Schemas
"""
from typing import Any, Dict, Optional, Literal
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field

AlertType = Literal["location_spoofing", "time_manipulation", "device_sharing", "pattern_anomaly"]
Severity = Literal["low", "medium", "high", "critical"]


class FraudAlertCreate(BaseModel):
    """A rule finding, not yet persisted"""
    fa_employee_id: int
    fa_type: AlertType
    fa_severity: Severity
    fa_description: str
    fa_evidence: Dict[str, Any] = Field(default_factory=dict)


class FraudAlert(FraudAlertCreate):
    model_config = ConfigDict(from_attributes=True)

    fa_id: int
    fa_created_at: datetime
    fa_resolved: bool = False
    fa_resolved_by: Optional[int] = None
    fa_resolved_at: Optional[datetime] = None
