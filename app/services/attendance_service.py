"""
Attendance Service - Check-in/check-out state machine per employee

States per employee: no active session, or exactly one active session.
Transitions for one employee are serialised by an in-process lock; the partial
unique index on attendance_sessions is the guard across processes.
"""
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.clock import Clock, utc_now
from app.core.config import Settings, settings as default_settings
from atams.exceptions import NotFoundException, ServiceUnavailableException
from app.core.locks import KeyedLocks
from app.core.result import Rejection, Result
from app.models.attendance_event import AttendanceEvent
from app.models.attendance_session import AttendanceSession
from app.repositories.attendance_event_repository import AttendanceEventRepository
from app.repositories.attendance_session_repository import AttendanceSessionRepository
from app.schemas.fraud import FraudAlertCreate
from app.services.fraud_service import CheckInSnapshot, FraudHeuristicsService
from app.services.geo import GeoPoint, speed_kmh
from app.services.geofence_index import GeofenceIndex, NoActiveGeofencesError

logger = logging.getLogger(__name__)


class AttendanceService:
    def __init__(
        self,
        geofence_index: GeofenceIndex,
        fraud_service: FraudHeuristicsService,
        config: Settings = default_settings,
        clock: Clock = utc_now,
    ) -> None:
        self.geofence_index = geofence_index
        self.fraud_service = fraud_service
        self.admission_policy = config.GEOFENCE_ADMISSION_POLICY
        self.auto_checkout_max_hours = config.AUTO_CHECKOUT_MAX_HOURS
        self.auto_checkout_reason = config.AUTO_CHECKOUT_REASON
        self.clock = clock
        self.session_repo = AttendanceSessionRepository()
        self.event_repo = AttendanceEventRepository()
        self._locks = KeyedLocks()

    def _current_active(self, db: Session, employee_id: int) -> Optional[AttendanceSession]:
        """Newest active session; more than one is reported, not corrected"""
        active = self.session_repo.get_active_sessions(db, employee_id)
        if len(active) > 1:
            self.fraud_service.report_invariant_violation(db, employee_id, active)
        return active[0] if active else None

    def active_session(self, db: Session, employee_id: int) -> Optional[AttendanceSession]:
        return self._current_active(db, employee_id)

    @staticmethod
    def _snapshot(event: AttendanceEvent) -> CheckInSnapshot:
        return CheckInSnapshot(
            employee_id=event.ae_employee_id,
            point=GeoPoint(event.ae_lat, event.ae_lng),
            accuracy_m=event.ae_accuracy_m or 0.0,
            at=event.ae_occurred_at,
        )

    @staticmethod
    def _hours_between(start: datetime, end: datetime) -> float:
        return round((end - start).total_seconds() / 3600, 2)

    def check_in(
        self,
        db: Session,
        employee_id: int,
        point: GeoPoint,
        accuracy_m: float,
        timestamp: datetime = None,
        device_id: str = None
    ) -> Result[AttendanceSession]:
        """
        Open an attendance session after geofence admission

        Returns:
            Result: the new active session, or ALREADY_ACTIVE / OUTSIDE_GEOFENCE

        Raises:
            ServiceUnavailableException: If the session could not be written
        """
        timestamp = timestamp or self.clock()
        extra_findings = []

        with self._locks.hold(employee_id):
            if self._current_active(db, employee_id) is not None:
                return Result.fail(Rejection.ALREADY_ACTIVE, "Already checked in")

            self.geofence_index.ensure_fresh(db)
            within, fence = self.geofence_index.is_within_any(point, accuracy_m)
            try:
                nearest, nearest_distance = self.geofence_index.nearest(point)
            except NoActiveGeofencesError:
                nearest, nearest_distance = None, None

            if not within:
                if self.admission_policy == "strict":
                    if nearest is None:
                        detail = "Out of geofence (no active geofences configured)"
                    else:
                        detail = (f"Out of geofence (nearest: {nearest.name}, "
                                  f"distance: {nearest_distance:.0f}m, allowed: {nearest.radius_m:.0f}m)")
                    return Result.fail(Rejection.OUTSIDE_GEOFENCE, detail)

                extra_findings.append(FraudAlertCreate(
                    fa_employee_id=employee_id,
                    fa_type="pattern_anomaly",
                    fa_severity="low",
                    fa_description="Check-in recorded outside every geofence (soft admission)",
                    fa_evidence={
                        "lat": point.lat,
                        "lng": point.lng,
                        "accuracy_m": accuracy_m,
                        "nearest_geofence_id": nearest.id if nearest else None,
                        "nearest_distance_m": round(nearest_distance, 1) if nearest else None,
                    },
                ))

            previous_event = self.event_repo.get_last_checkin_event(db, employee_id)
            previous = self._snapshot(previous_event) if previous_event else None
            speed = None
            if previous is not None:
                elapsed = (timestamp - previous.at).total_seconds()
                if elapsed > 0:
                    speed = round(speed_kmh(previous.point, point, elapsed), 1)

            try:
                session = self.session_repo.add(db, {
                    "as_employee_id": employee_id,
                    "as_checkin_at": timestamp,
                    "as_checkin_lat": point.lat,
                    "as_checkin_lng": point.lng,
                    "as_checkin_accuracy_m": accuracy_m,
                    "as_geofence_id": fence.id if fence else None,
                    "as_status": "active",
                    "as_outside_geofence": not within,
                })
                self.event_repo.add(db, {
                    "ae_session_id": session.as_id,
                    "ae_employee_id": employee_id,
                    "ae_event_type": "checkin",
                    "ae_occurred_at": timestamp,
                    "ae_lat": point.lat,
                    "ae_lng": point.lng,
                    "ae_accuracy_m": accuracy_m,
                    "ae_nearest_geofence_id": nearest.id if nearest else None,
                    "ae_nearest_distance_m": round(nearest_distance, 1) if nearest else None,
                    "ae_speed_kmh": speed,
                    "ae_device_id": device_id,
                })
                db.commit()
            except IntegrityError:
                # Another writer opened a session between our read and insert
                db.rollback()
                return Result.fail(Rejection.ALREADY_ACTIVE, "Already checked in")
            except SQLAlchemyError as e:
                db.rollback()
                logger.error("Check-in for employee %s could not be stored: %s", employee_id, e)
                raise ServiceUnavailableException("Check-in could not be recorded")

        logger.info(
            "Employee %s checked in (session %s, geofence %s%s)",
            employee_id, session.as_id, fence.id if fence else None,
            ", outside geofence" if not within else "",
        )

        current = CheckInSnapshot(employee_id, point, accuracy_m, timestamp)
        self.fraud_service.screen_check_in(db, current, previous, extra_findings)
        return Result.success(session)

    def _close(
        self,
        db: Session,
        session: AttendanceSession,
        timestamp: datetime,
        status: str,
        event_type: str,
        reason: str = None
    ) -> AttendanceSession:
        total_hours = self._hours_between(session.as_checkin_at, timestamp)
        clock_skew = timestamp <= session.as_checkin_at
        if clock_skew:
            total_hours = 0.0

        try:
            session.as_checkout_at = timestamp
            session.as_status = status
            session.as_total_hours = total_hours
            session.as_clock_skew = clock_skew
            session.as_close_reason = reason
            self.event_repo.add(db, {
                "ae_session_id": session.as_id,
                "ae_employee_id": session.as_employee_id,
                "ae_event_type": event_type,
                "ae_occurred_at": timestamp,
            })
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Closing session %s could not be stored: %s", session.as_id, e)
            raise ServiceUnavailableException("Check-out could not be recorded")

        if clock_skew:
            logger.warning(
                "Clock skew on session %s: checkout %s is not after checkin %s; total hours clamped to 0",
                session.as_id, timestamp, session.as_checkin_at,
            )
            try:
                self.fraud_service.record(db, [FraudAlertCreate(
                    fa_employee_id=session.as_employee_id,
                    fa_type="time_manipulation",
                    fa_severity="low",
                    fa_description="Check-out time is not after check-in time",
                    fa_evidence={
                        "session_id": session.as_id,
                        "check_in_time": session.as_checkin_at.isoformat(),
                        "check_out_time": timestamp.isoformat(),
                    },
                )])
            except ServiceUnavailableException:
                logger.warning("Clock skew alert for session %s was not stored", session.as_id)
        return session

    def check_out(self, db: Session, employee_id: int, timestamp: datetime = None) -> Result[AttendanceSession]:
        """Complete the employee's active session and compute worked hours"""
        timestamp = timestamp or self.clock()

        with self._locks.hold(employee_id):
            active = self._current_active(db, employee_id)
            if active is None:
                return Result.fail(Rejection.NO_ACTIVE_SESSION, "No active check-in found")
            session = self._close(db, active, timestamp, "completed", "checkout")

        logger.info("Employee %s checked out (session %s, %.2fh)", employee_id, session.as_id, session.as_total_hours)
        return Result.success(session)

    def force_close(
        self,
        db: Session,
        employee_id: int,
        reason: str = None,
        timestamp: datetime = None
    ) -> Result[AttendanceSession]:
        """Operator or timeout close: the session ends as incomplete"""
        timestamp = timestamp or self.clock()
        reason = reason or "force-closed by operator"

        with self._locks.hold(employee_id):
            active = self._current_active(db, employee_id)
            if active is None:
                return Result.fail(Rejection.NO_ACTIVE_SESSION, "No active check-in found")
            session = self._close(db, active, timestamp, "incomplete", "force_close", reason)

        logger.info("Session %s of employee %s force-closed: %s", session.as_id, employee_id, reason)
        return Result.success(session)

    def close_stale_sessions(self, db: Session, max_hours: int = None) -> int:
        """Force-close every active session older than max_hours. Returns the number closed."""
        max_hours = max_hours or self.auto_checkout_max_hours
        now = self.clock()
        cutoff = now - timedelta(hours=max_hours)

        closed = 0
        for stale in self.session_repo.get_stale_active_sessions(db, cutoff):
            with self._locks.hold(stale.as_employee_id):
                db.refresh(stale)
                if stale.as_status != "active":
                    continue
                self._close(db, stale, now, "incomplete", "force_close", self.auto_checkout_reason)
                closed += 1

        if closed:
            logger.info("Auto-closed %d stale attendance session(s) older than %dh", closed, max_hours)
        return closed

    def get_sessions_admin(
        self,
        db: Session,
        employee_id: int = None,
        date_from=None,
        date_to=None,
        status: str = None,
        skip: int = 0,
        limit: int = 100,
        sort: str = "desc"
    ) -> List[AttendanceSession]:
        """Get attendance sessions for admin (with filters)"""
        return self.session_repo.get_sessions_with_filters(
            db, employee_id, date_from, date_to, status, skip, limit, sort
        )

    def count_sessions_admin(
        self,
        db: Session,
        employee_id: int = None,
        date_from=None,
        date_to=None,
        status: str = None
    ) -> int:
        """Count attendance sessions for admin (with filters)"""
        return self.session_repo.count_sessions_with_filters(db, employee_id, date_from, date_to, status)

    def session_events(self, db: Session, session_id: int) -> List[AttendanceEvent]:
        """Event trail of one session; raises NotFoundException for an unknown session"""
        if self.session_repo.get(db, session_id) is None:
            raise NotFoundException("Attendance session not found")
        return self.event_repo.get_session_events(db, session_id)
