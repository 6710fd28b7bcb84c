"""
Cleanup Service - Scheduled maintenance over attendance and verification state
"""
import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from app.services.attendance_service import AttendanceService
from app.services.fraud_service import FraudHeuristicsService
from app.services.verification_service import VerificationService

logger = logging.getLogger(__name__)


@dataclass
class MaintenanceReport:
    closed_sessions: int
    expired_verifications: int
    fraud_alerts: int


class CleanupService:
    def __init__(
        self,
        attendance_service: AttendanceService,
        verification_service: VerificationService,
        fraud_service: FraudHeuristicsService,
    ) -> None:
        self.attendance_service = attendance_service
        self.verification_service = verification_service
        self.fraud_service = fraud_service

    def auto_close_sessions(self, db: Session, max_hours: int = None) -> int:
        """Close active sessions left open longer than max_hours as incomplete"""
        return self.attendance_service.close_stale_sessions(db, max_hours)

    def run_all(self, db: Session, max_hours: int = None) -> MaintenanceReport:
        """
        One maintenance pass: auto-close stale sessions, expire overdue
        verifications, then re-run the fraud pattern rules
        """
        report = MaintenanceReport(
            closed_sessions=self.auto_close_sessions(db, max_hours),
            expired_verifications=self.verification_service.sweep_expired(db),
            fraud_alerts=len(self.fraud_service.evaluate_all(db)),
        )
        logger.info("Maintenance pass finished: %s", report)
        return report
