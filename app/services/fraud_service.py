"""
Fraud Heuristics Service - Rule-based detection over attendance history

The three rules are pure functions of the history they are given, so they can
be exercised with hand-built sessions. The service around them loads a bounded
window of recent history, persists findings as FraudAlert rows and emits
FraudAlertRaised. It never modifies attendance or verification state.
"""
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.clock import Clock, utc_now
from app.core.config import Settings, settings as default_settings
from app.core.events import EventDispatcher, FraudAlertRaised, dispatcher
from atams.exceptions import ServiceUnavailableException
from app.core.result import Rejection, Result
from app.models.attendance_session import AttendanceSession
from app.models.fraud_alert import FraudAlert
from app.repositories.attendance_session_repository import AttendanceSessionRepository
from app.repositories.fraud_alert_repository import FraudAlertRepository
from app.schemas.fraud import FraudAlertCreate
from app.services.geo import GeoPoint, distance_meters, speed_kmh

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckInSnapshot:
    """The facts about a check-in the spoofing rule needs"""
    employee_id: int
    point: GeoPoint
    accuracy_m: float
    at: datetime


class FraudHeuristicsService:
    def __init__(
        self,
        config: Settings = default_settings,
        events: EventDispatcher = dispatcher,
        clock: Clock = utc_now,
    ) -> None:
        self.max_speed_kmh = config.FRAUD_MAX_SPEED_KMH
        self.max_accuracy_m = config.FRAUD_MAX_ACCURACY_M
        self.duplicate_ratio = config.FRAUD_DUPLICATE_RATIO
        self.min_sample = config.FRAUD_MIN_SAMPLE
        self.window_sessions = config.FRAUD_WINDOW_SESSIONS
        self.window_days = config.FRAUD_WINDOW_DAYS
        self.events = events
        self.clock = clock
        self.alert_repo = FraudAlertRepository()
        self.session_repo = AttendanceSessionRepository()

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    def evaluate_spoofing(
        self,
        previous: Optional[CheckInSnapshot],
        current: CheckInSnapshot
    ) -> List[FraudAlertCreate]:
        """
        Impossible travel since the previous check-in, and coarse GPS fixes.

        The two checks are independent; both may fire for one check-in.
        A non-positive interval with any distance travelled counts as
        infinite speed.
        """
        findings = []

        if previous is not None:
            distance_m = distance_meters(previous.point, current.point)
            elapsed = (current.at - previous.at).total_seconds()
            if elapsed > 0:
                speed = speed_kmh(previous.point, current.point, elapsed)
            else:
                speed = math.inf if distance_m > 0 else 0.0

            if speed > self.max_speed_kmh:
                speed_text = "instantaneous" if math.isinf(speed) else f"{speed:.0f} km/h"
                findings.append(FraudAlertCreate(
                    fa_employee_id=current.employee_id,
                    fa_type="location_spoofing",
                    fa_severity="high",
                    fa_description=f"Impossible travel speed detected: {speed_text}",
                    fa_evidence={
                        "previous": {"lat": previous.point.lat, "lng": previous.point.lng,
                                     "at": previous.at.isoformat()},
                        "current": {"lat": current.point.lat, "lng": current.point.lng,
                                    "at": current.at.isoformat()},
                        "distance_m": round(distance_m, 1),
                        "elapsed_seconds": elapsed,
                        "speed_kmh": None if math.isinf(speed) else round(speed, 1),
                        "threshold_kmh": self.max_speed_kmh,
                    },
                ))

        if current.accuracy_m > self.max_accuracy_m:
            findings.append(FraudAlertCreate(
                fa_employee_id=current.employee_id,
                fa_type="location_spoofing",
                fa_severity="medium",
                fa_description=f"Poor GPS accuracy: {current.accuracy_m:.0f}m (possible spoofing)",
                fa_evidence={
                    "accuracy_m": current.accuracy_m,
                    "threshold_m": self.max_accuracy_m,
                    "lat": current.point.lat,
                    "lng": current.point.lng,
                    "at": current.at.isoformat(),
                },
            ))

        return findings

    def evaluate_time_pattern(self, sessions: Sequence[AttendanceSession]) -> Optional[FraudAlertCreate]:
        """Too many exact-duplicate check-in timestamps among recent completed sessions"""
        completed = sorted(
            (s for s in sessions if s.as_status == "completed"),
            key=lambda s: s.as_checkin_at,
            reverse=True,
        )[:self.window_sessions]

        sample_size = len(completed)
        if sample_size < self.min_sample:
            return None

        check_in_times = [s.as_checkin_at for s in completed]
        distinct = len(set(check_in_times))
        ratio = (sample_size - distinct) / sample_size
        if ratio < self.duplicate_ratio:
            return None

        repeated = sorted({t for t in check_in_times if check_in_times.count(t) > 1})
        return FraudAlertCreate(
            fa_employee_id=completed[0].as_employee_id,
            fa_type="time_manipulation",
            fa_severity="high",
            fa_description="Suspicious pattern: Too many identical check-in times",
            fa_evidence={
                "sample_size": sample_size,
                "distinct_check_in_times": distinct,
                "duplicate_ratio": round(ratio, 3),
                "threshold_ratio": self.duplicate_ratio,
                "repeated_times": [t.isoformat() for t in repeated],
                "session_ids": [s.as_id for s in completed],
            },
        )

    def evaluate_device_sharing(self, sessions: Sequence[AttendanceSession]) -> Optional[FraudAlertCreate]:
        """More than one simultaneously active session for one employee"""
        active = [s for s in sessions if s.as_status == "active"]
        if len(active) <= 1:
            return None

        return FraudAlertCreate(
            fa_employee_id=active[0].as_employee_id,
            fa_type="device_sharing",
            fa_severity="medium",
            fa_description=f"Multiple active sessions detected: {len(active)}",
            fa_evidence={
                "active_sessions": len(active),
                "session_ids": [s.as_id for s in active],
                "check_in_times": [s.as_checkin_at.isoformat() for s in active],
            },
        )

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _already_open(self, db: Session, finding: FraudAlertCreate) -> bool:
        session_ids = finding.fa_evidence.get("session_ids")
        if not session_ids:
            return False
        return any(
            (alert.fa_evidence or {}).get("session_ids") == session_ids
            for alert in self.alert_repo.get_unresolved(db, finding.fa_employee_id, finding.fa_type)
        )

    def record(self, db: Session, findings: Sequence[FraudAlertCreate]) -> List[FraudAlert]:
        """
        Persist findings as alerts and emit FraudAlertRaised for each

        A finding whose evidence names the same sessions as an unresolved
        alert of the same type for the same employee is dropped.

        Raises:
            ServiceUnavailableException: If the alerts could not be written
        """
        if not findings:
            return []

        now = self.clock()
        try:
            fresh = [finding for finding in findings if not self._already_open(db, finding)]
            if not fresh:
                return []
            alerts = [
                self.alert_repo.add(db, {**finding.model_dump(), "fa_created_at": now})
                for finding in fresh
            ]
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Failed to persist %d fraud alert(s): %s", len(findings), e)
            raise ServiceUnavailableException("Fraud alerts could not be recorded")

        if len(alerts) < len(findings):
            logger.debug("Dropped %d finding(s) already covered by open alerts", len(findings) - len(alerts))

        for alert in alerts:
            log = logger.critical if alert.fa_severity == "critical" else logger.warning
            log("Fraud alert %s [%s/%s] for employee %s: %s", alert.fa_id, alert.fa_type,
                alert.fa_severity, alert.fa_employee_id, alert.fa_description)
            self.events.emit(FraudAlertRaised(
                occurred_at=now,
                alert_id=alert.fa_id,
                employee_id=alert.fa_employee_id,
                alert_type=alert.fa_type,
                severity=alert.fa_severity,
                description=alert.fa_description,
            ))
        return alerts

    def screen_check_in(
        self,
        db: Session,
        current: CheckInSnapshot,
        previous: Optional[CheckInSnapshot],
        extra: Sequence[FraudAlertCreate] = ()
    ) -> List[FraudAlert]:
        """Admission-time screening; the check-in itself is already committed"""
        findings = self.evaluate_spoofing(previous, current) + list(extra)
        try:
            return self.record(db, findings)
        except ServiceUnavailableException:
            # The check-in stands; the findings are in the log above
            return []

    def report_invariant_violation(self, db: Session, employee_id: int, sessions: Sequence[AttendanceSession]) -> None:
        """Surface an observed breach of the one-active-session rule"""
        logger.critical(
            "Invariant violation: employee %s has %d active sessions (%s)",
            employee_id, len(sessions), [s.as_id for s in sessions],
        )
        finding = self.evaluate_device_sharing(sessions)
        if finding is not None:
            try:
                self.record(db, [finding])
            except ServiceUnavailableException:
                logger.warning("Device sharing alert for employee %s was not stored", employee_id)

    def history_window(self, db: Session, employee_id: int) -> List[AttendanceSession]:
        """Newest completed sessions inside the window, plus every active session"""
        since = self.clock() - timedelta(days=self.window_days)
        completed = self.session_repo.get_recent_sessions(
            db, employee_id, since, limit=self.window_sessions, status="completed"
        )
        return completed + self.session_repo.get_active_sessions(db, employee_id)

    def evaluate_employee(self, db: Session, employee_id: int) -> List[FraudAlert]:
        """Run the history rules over the employee's recent window and persist what fires"""
        sessions = self.history_window(db, employee_id)
        findings = [
            finding for finding in (
                self.evaluate_time_pattern(sessions),
                self.evaluate_device_sharing(sessions),
            )
            if finding is not None
        ]
        return self.record(db, findings)

    def evaluate_all(self, db: Session) -> List[FraudAlert]:
        """Evaluate every employee with history inside the window. One failure does not stop the rest."""
        since = self.clock() - timedelta(days=self.window_days)
        alerts = []
        for employee_id in self.session_repo.get_employee_ids_since(db, since):
            try:
                alerts.extend(self.evaluate_employee(db, employee_id))
            except ServiceUnavailableException:
                logger.warning("Skipping fraud evaluation for employee %s after storage failure", employee_id)
        return alerts

    # ------------------------------------------------------------------
    # Operator access
    # ------------------------------------------------------------------

    def list_alerts(
        self,
        db: Session,
        employee_id: int = None,
        alert_type: str = None,
        severity: str = None,
        resolved: bool = None,
        skip: int = 0,
        limit: int = 100
    ) -> List[FraudAlert]:
        return self.alert_repo.get_alerts_with_filters(
            db, employee_id, alert_type, severity, resolved, skip, limit
        )

    def count_alerts(
        self,
        db: Session,
        employee_id: int = None,
        alert_type: str = None,
        severity: str = None,
        resolved: bool = None
    ) -> int:
        return self.alert_repo.count_alerts_with_filters(db, employee_id, alert_type, severity, resolved)

    def resolve_alert(self, db: Session, alert_id: int, resolved_by: int) -> Result[FraudAlert]:
        if self.alert_repo.get(db, alert_id) is None:
            return Result.fail(Rejection.NOT_FOUND, "Fraud alert not found")
        if not self.alert_repo.mark_resolved(db, alert_id, resolved_by, self.clock()):
            return Result.fail(Rejection.ALREADY_RESOLVED, "Fraud alert already resolved")

        alert = self.alert_repo.get(db, alert_id)
        db.refresh(alert)
        logger.info("Fraud alert %s resolved by %s", alert_id, resolved_by)
        return Result.success(alert)
