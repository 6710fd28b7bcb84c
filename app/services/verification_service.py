"""
Verification Service - Time-boxed random identity re-checks

Lifecycle per session: pending -> verified | failed | expired. Resolution is a
compare-and-swap on vs_status, so a response and the expiry sweep racing on
the same session produce exactly one terminal write.
"""
import logging
import math
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Iterable, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.clock import Clock, utc_now
from app.core.config import Settings, settings as default_settings
from app.core.events import EventDispatcher, VerificationResolved, VerificationTriggered, dispatcher
from atams.exceptions import ServiceUnavailableException
from app.core.locks import KeyedLocks
from app.core.result import Rejection, Result
from app.models.verification_session import VerificationSession
from app.repositories.attendance_session_repository import AttendanceSessionRepository
from app.repositories.employee_repository import EmployeeRepository
from app.repositories.verification_session_repository import VerificationSessionRepository
from app.schemas.verification import VerificationOutcome
from app.services.biometric_service import BiometricScorer

logger = logging.getLogger(__name__)

MAX_TIMEOUT_MINUTES = 30


@dataclass
class TriggerOutcome:
    sessions: List[VerificationSession] = field(default_factory=list)
    rejected: List[Tuple[int, Rejection, str]] = field(default_factory=list)

    @property
    def session_ids(self) -> List[int]:
        return [s.vs_id for s in self.sessions]


class VerificationService:
    def __init__(
        self,
        scorer: BiometricScorer,
        config: Settings = default_settings,
        events: EventDispatcher = dispatcher,
        clock: Clock = utc_now,
    ) -> None:
        self.scorer = scorer
        self.match_threshold = config.VERIFICATION_MATCH_THRESHOLD
        self.pending_policy = config.VERIFICATION_PENDING_POLICY
        self.require_active_session = config.VERIFICATION_REQUIRE_ACTIVE_SESSION
        self.events = events
        self.clock = clock
        self.repo = VerificationSessionRepository()
        self.employee_repo = EmployeeRepository()
        self.attendance_repo = AttendanceSessionRepository()
        self._locks = KeyedLocks()

    # ------------------------------------------------------------------
    # Trigger
    # ------------------------------------------------------------------

    def trigger(
        self,
        db: Session,
        employee_ids: Optional[Iterable[int]],
        timeout_minutes: int,
        triggered_by: int = None
    ) -> Result[TriggerOutcome]:
        """
        Open one pending verification per employee

        Args:
            employee_ids: Target employees; None means every active employee
            timeout_minutes: Response window, 1 to 30 minutes
            triggered_by: Admin id, None for the scheduler

        Returns:
            Result: sessions created plus per-employee rejections. When explicit
                targets were given and none of them could be triggered, the
                first rejection is returned as the failure.
        """
        if not 1 <= timeout_minutes <= MAX_TIMEOUT_MINUTES:
            raise ValueError(f"timeout_minutes must be between 1 and {MAX_TIMEOUT_MINUTES}")

        if employee_ids is None:
            targets = self.employee_repo.get_active_ids(db)
            explicit = False
        else:
            targets = list(dict.fromkeys(employee_ids))
            explicit = True

        outcome = TriggerOutcome()
        for employee_id in targets:
            rejection = self._eligibility(db, employee_id, explicit)
            if rejection is not None:
                outcome.rejected.append((employee_id, *rejection))
                continue

            with self._locks.hold(employee_id):
                rejection = self._clear_pending(db, employee_id)
                if rejection is not None:
                    outcome.rejected.append((employee_id, *rejection))
                    continue
                created = self._create(db, employee_id, timeout_minutes, triggered_by)
                if created.ok:
                    outcome.sessions.append(created.value)
                else:
                    outcome.rejected.append((employee_id, created.rejection, created.detail))

        logger.info(
            "Verification triggered by %s for %d employee(s), %d rejected, timeout %d min",
            triggered_by, len(outcome.sessions), len(outcome.rejected), timeout_minutes,
        )

        if explicit and outcome.rejected and not outcome.sessions:
            _, rejection, detail = outcome.rejected[0]
            return Result.fail(rejection, detail)
        return Result.success(outcome)

    def _eligibility(self, db: Session, employee_id: int, explicit: bool) -> Optional[Tuple[Rejection, str]]:
        if explicit:
            employee = self.employee_repo.get(db, employee_id)
            if employee is None:
                return Rejection.NOT_FOUND, f"Employee {employee_id} not found"
            if employee.em_status != "active":
                return Rejection.NOT_ELIGIBLE, f"Employee {employee_id} is {employee.em_status}"
        if self.require_active_session and not self.attendance_repo.get_active_sessions(db, employee_id):
            return Rejection.NOT_ELIGIBLE, f"Employee {employee_id} is not checked in"
        return None

    def _clear_pending(self, db: Session, employee_id: int) -> Optional[Tuple[Rejection, str]]:
        """Make room for a new session according to the pending policy"""
        now = self.clock()
        for pending in self.repo.get_pending_for_employee(db, employee_id):
            if pending.vs_expires_at < now:
                self._expire(db, pending, now, "no response before deadline")
            elif self.pending_policy == "supersede":
                self._expire(db, pending, now, "superseded")
            else:
                return (Rejection.SESSION_ALREADY_PENDING,
                        f"Employee {employee_id} already has pending verification {pending.vs_id}")
        return None

    def _create(
        self, db: Session, employee_id: int, timeout_minutes: int, triggered_by: int
    ) -> Result[VerificationSession]:
        now = self.clock()
        try:
            session = self.repo.create(db, {
                "vs_employee_id": employee_id,
                "vs_triggered_by": triggered_by,
                "vs_triggered_at": now,
                "vs_expires_at": now + timedelta(minutes=timeout_minutes),
                "vs_status": "pending",
            })
        except IntegrityError:
            # Another writer opened a pending session between our read and insert
            db.rollback()
            return Result.fail(Rejection.SESSION_ALREADY_PENDING,
                               f"Employee {employee_id} already has a pending verification")
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Verification for employee %s could not be stored: %s", employee_id, e)
            raise ServiceUnavailableException("Verification could not be triggered")

        self.events.emit(VerificationTriggered(
            occurred_at=now,
            session_id=session.vs_id,
            employee_id=employee_id,
            expires_at=session.vs_expires_at,
            triggered_by=triggered_by,
        ))
        return Result.success(session)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def _transition(self, db: Session, session: VerificationSession, values: dict) -> bool:
        try:
            return self.repo.compare_and_set_status(db, session.vs_id, "pending", values)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Verification %s transition could not be stored: %s", session.vs_id, e)
            raise ServiceUnavailableException("Verification could not be updated")

    def _emit_resolved(self, session: VerificationSession) -> None:
        self.events.emit(VerificationResolved(
            occurred_at=session.vs_resolved_at,
            session_id=session.vs_id,
            employee_id=session.vs_employee_id,
            status=session.vs_status,
            face_match_score=session.vs_face_match_score,
            reason=session.vs_failure_reason,
        ))

    def _expire(self, db: Session, session: VerificationSession, now: datetime, reason: str) -> bool:
        won = self._transition(db, session, {
            "vs_status": "expired",
            "vs_resolved_at": now,
            "vs_failure_reason": reason,
        })
        if won:
            session = self.repo.refreshed(db, session.vs_id)
            logger.info("Verification %s of employee %s expired: %s", session.vs_id, session.vs_employee_id, reason)
            self._emit_resolved(session)
        return won

    def _score(self, employee_id: int, sample: str) -> Tuple[Optional[float], Optional[str]]:
        """Call the scorer; any failure is a failed outcome, never an exception"""
        try:
            score = float(self.scorer.score(employee_id, sample))
        except Exception as e:
            logger.warning("Biometric scorer failed for employee %s: %s", employee_id, e)
            return None, "scorer unavailable"

        if not math.isfinite(score) or not 0.0 <= score <= 100.0:
            logger.warning("Biometric scorer returned out-of-range score %r for employee %s", score, employee_id)
            return None, "invalid score"
        return score, None

    def respond(self, db: Session, session_id: int, employee_id: int, sample: str) -> Result[VerificationOutcome]:
        """
        Resolve a pending verification with the employee's captured sample

        Returns:
            Result: the outcome, or NOT_FOUND / NOT_YOURS / ALREADY_RESOLVED.
                A response after expires_at is rejected even if the sweep has
                not reached the session yet.
        """
        now = self.clock()
        session = self.repo.refreshed(db, session_id)
        if session is None:
            return Result.fail(Rejection.NOT_FOUND, "Verification session not found")
        if session.vs_employee_id != employee_id:
            return Result.fail(Rejection.NOT_YOURS, "Verification session belongs to another employee")
        if session.vs_status != "pending":
            return Result.fail(Rejection.ALREADY_RESOLVED, f"Verification already {session.vs_status}")
        if session.vs_expires_at < now:
            self._expire(db, session, now, "no response before deadline")
            return Result.fail(Rejection.ALREADY_RESOLVED, "Verification expired")

        score, reason = self._score(employee_id, sample)
        status = "verified" if score is not None and score >= self.match_threshold else "failed"
        if status == "failed" and reason is None:
            reason = "face match below threshold"
        response_time = round((now - session.vs_triggered_at).total_seconds(), 3)

        won = self._transition(db, session, {
            "vs_status": status,
            "vs_face_match_score": score,
            "vs_response_time_seconds": response_time,
            "vs_resolved_at": now,
            "vs_failure_reason": reason,
        })
        if not won:
            return Result.fail(Rejection.ALREADY_RESOLVED, "Verification already resolved")

        session = self.repo.refreshed(db, session_id)
        logger.info("Verification %s of employee %s %s (score %s)", session_id, employee_id, status, score)
        self._emit_resolved(session)
        return Result.success(VerificationOutcome(
            session_id=session_id,
            status=status,
            face_match_score=score,
            response_time_seconds=response_time,
            reason=reason,
        ))

    def sweep_expired(self, db: Session) -> int:
        """Expire every pending session past its deadline. Returns the number this call expired."""
        now = self.clock()
        expired = 0
        for session_id in self.repo.get_expired_pending_ids(db, now):
            session = self.repo.refreshed(db, session_id)
            if self._expire(db, session, now, "no response before deadline"):
                expired += 1

        if expired:
            logger.info("Expiry sweep closed %d verification session(s)", expired)
        return expired

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def pending_for(self, db: Session, employee_id: int) -> List[VerificationSession]:
        now = self.clock()
        return [s for s in self.repo.get_pending_for_employee(db, employee_id) if s.vs_expires_at >= now]

    def stats(self, db: Session) -> dict:
        counts = {"pending": 0, "verified": 0, "failed": 0, "expired": 0}
        counts.update(self.repo.count_by_status(db))
        return counts

    def list_sessions(
        self,
        db: Session,
        employee_id: int = None,
        status: str = None,
        skip: int = 0,
        limit: int = 50
    ) -> List[VerificationSession]:
        return self.repo.get_sessions_with_filters(db, employee_id, status, skip, limit)

    def count_sessions(self, db: Session, employee_id: int = None, status: str = None) -> int:
        return self.repo.count_sessions_with_filters(db, employee_id, status)


class VerificationSweeper:
    """Background thread running the expiry sweep on a fixed interval"""

    def __init__(
        self,
        service: VerificationService,
        session_factory: Callable[[], Session],
        interval_seconds: float = 30,
    ) -> None:
        self.service = service
        self.session_factory = session_factory
        self.interval_seconds = interval_seconds
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def run_once(self) -> int:
        db = self.session_factory()
        try:
            return self.service.sweep_expired(db)
        finally:
            db.close()

    def _run(self) -> None:
        while not self._stop.wait(self.interval_seconds):
            try:
                self.run_once()
            except Exception:
                logger.exception("Verification expiry sweep failed")

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="verification-sweeper", daemon=True)
        self._thread.start()
        logger.info("Verification sweeper started (every %ss)", self.interval_seconds)

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Verification sweeper stopped")
