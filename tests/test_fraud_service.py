import logging
from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from app.core.events import FraudAlertRaised
from atams.exceptions import ServiceUnavailableException
from app.core.result import Rejection
from app.models import AttendanceSession, FraudAlert
from app.schemas.fraud import FraudAlertCreate
from app.services.fraud_service import CheckInSnapshot
from tests.conftest import FENCE_CENTER, north_of

T0 = datetime(2026, 3, 2, 8, 0, 0)


def snapshot(point, at, accuracy_m=10.0, employee_id=1):
    return CheckInSnapshot(employee_id=employee_id, point=point, accuracy_m=accuracy_m, at=at)


def completed_sessions(check_in_times, employee_id=1):
    return [
        AttendanceSession(
            as_id=i + 1,
            as_employee_id=employee_id,
            as_checkin_at=t,
            as_checkout_at=t + timedelta(hours=8),
            as_status="completed",
        )
        for i, t in enumerate(check_in_times)
    ]


def daily_at(hour_minute_pairs):
    return [T0.replace(hour=h, minute=m) - timedelta(days=i) for i, (h, m) in enumerate(hour_minute_pairs)]


class TestSpoofing:
    def test_plausible_travel_passes(self, fraud_service):
        previous = snapshot(FENCE_CENTER, T0)
        current = snapshot(north_of(FENCE_CENTER, 1000.0), T0 + timedelta(seconds=10))
        assert fraud_service.evaluate_spoofing(previous, current) == []

    def test_impossible_travel_is_high(self, fraud_service):
        previous = snapshot(FENCE_CENTER, T0)
        current = snapshot(north_of(FENCE_CENTER, 1000.0), T0 + timedelta(seconds=2))

        findings = fraud_service.evaluate_spoofing(previous, current)

        assert len(findings) == 1
        assert (findings[0].fa_type, findings[0].fa_severity) == ("location_spoofing", "high")
        assert findings[0].fa_evidence["speed_kmh"] == pytest.approx(1800.0, abs=0.1)

    def test_zero_interval_with_movement_is_impossible(self, fraud_service):
        previous = snapshot(FENCE_CENTER, T0)
        current = snapshot(north_of(FENCE_CENTER, 5.0), T0)

        findings = fraud_service.evaluate_spoofing(previous, current)

        assert findings[0].fa_severity == "high"
        assert findings[0].fa_evidence["speed_kmh"] is None
        assert "instantaneous" in findings[0].fa_description

    def test_zero_interval_without_movement_passes(self, fraud_service):
        assert fraud_service.evaluate_spoofing(snapshot(FENCE_CENTER, T0), snapshot(FENCE_CENTER, T0)) == []

    def test_poor_accuracy_is_medium(self, fraud_service):
        findings = fraud_service.evaluate_spoofing(None, snapshot(FENCE_CENTER, T0, accuracy_m=1500.0))
        assert [(f.fa_type, f.fa_severity) for f in findings] == [("location_spoofing", "medium")]

    def test_accuracy_at_threshold_passes(self, fraud_service):
        assert fraud_service.evaluate_spoofing(None, snapshot(FENCE_CENTER, T0, accuracy_m=1000.0)) == []

    def test_both_checks_can_fire(self, fraud_service):
        previous = snapshot(FENCE_CENTER, T0)
        current = snapshot(north_of(FENCE_CENTER, 1000.0), T0 + timedelta(seconds=1), accuracy_m=2000.0)
        severities = sorted(f.fa_severity for f in fraud_service.evaluate_spoofing(previous, current))
        assert severities == ["high", "medium"]


class TestTimePattern:
    def test_four_identical_times_in_ten_fires(self, fraud_service):
        times = [T0] * 4 + [T0 - timedelta(days=d) for d in range(1, 7)]

        finding = fraud_service.evaluate_time_pattern(completed_sessions(times))

        assert finding is not None
        assert (finding.fa_type, finding.fa_severity) == ("time_manipulation", "high")
        assert finding.fa_evidence["distinct_check_in_times"] == 7
        assert finding.fa_evidence["duplicate_ratio"] == 0.3

    def test_two_identical_times_in_ten_passes(self, fraud_service):
        times = daily_at([(8, 40 + i) for i in range(10)])
        times[1] = times[0]
        assert fraud_service.evaluate_time_pattern(completed_sessions(times)) is None

    def test_small_sample_is_ignored(self, fraud_service):
        times = [T0] * 4
        assert fraud_service.evaluate_time_pattern(completed_sessions(times)) is None

    def test_only_completed_sessions_count(self, fraud_service):
        sessions = completed_sessions([T0] * 6)
        for s in sessions:
            s.as_status = "incomplete"
        assert fraud_service.evaluate_time_pattern(sessions) is None

    def test_window_caps_sample(self, fraud_service):
        recent = daily_at([(8, 30 + i) for i in range(10)])
        old = [T0 - timedelta(days=20)] * 10
        assert fraud_service.evaluate_time_pattern(completed_sessions(recent + old)) is None


class TestDeviceSharing:
    def test_single_active_session_passes(self, fraud_service):
        sessions = completed_sessions([T0])
        sessions[0].as_status = "active"
        assert fraud_service.evaluate_device_sharing(sessions) is None

    def test_two_active_sessions_is_medium(self, fraud_service):
        sessions = completed_sessions([T0, T0 + timedelta(minutes=5)])
        for s in sessions:
            s.as_status = "active"

        finding = fraud_service.evaluate_device_sharing(sessions)

        assert (finding.fa_type, finding.fa_severity) == ("device_sharing", "medium")
        assert finding.fa_evidence["active_sessions"] == 2


def test_record_persists_and_emits(db, fraud_service, events, clock):
    finding = FraudAlertCreate(fa_employee_id=1, fa_type="pattern_anomaly", fa_severity="low",
                               fa_description="test", fa_evidence={"k": 1})

    alerts = fraud_service.record(db, [finding])

    stored = db.query(FraudAlert).one()
    assert stored.fa_id == alerts[0].fa_id
    assert stored.fa_created_at == clock()
    assert stored.fa_resolved is False
    assert [e.alert_id for e in events.of_type(FraudAlertRaised)] == [stored.fa_id]


def test_record_storage_failure_raises(db, fraud_service, monkeypatch, events):
    def broken_commit():
        raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db, "commit", broken_commit)
    finding = FraudAlertCreate(fa_employee_id=1, fa_type="pattern_anomaly", fa_severity="low", fa_description="x")

    with pytest.raises(ServiceUnavailableException):
        fraud_service.record(db, [finding])
    assert events.emitted == []


def test_screen_check_in_contains_storage_failure(db, fraud_service, monkeypatch):
    def broken_commit():
        raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db, "commit", broken_commit)
    current = snapshot(FENCE_CENTER, T0, accuracy_m=5000.0)
    assert fraud_service.screen_check_in(db, current, None) == []


def test_evaluate_employee_reads_history_window(db, fraud_service, clock):
    times = [clock() - timedelta(days=d) for d in range(1, 7)]
    times[1] = times[2] = times[0]
    for s in completed_sessions(times, employee_id=5):
        s.as_id = None
        s.as_checkin_lat = s.as_checkin_lng = s.as_checkin_accuracy_m = 0.0
        db.add(s)
    db.commit()

    alerts = fraud_service.evaluate_employee(db, 5)

    assert [a.fa_type for a in alerts] == ["time_manipulation"]
    assert fraud_service.evaluate_employee(db, 6) == []


def test_evaluate_all_continues_past_failures(db, fraud_service, clock, monkeypatch):
    for employee_id in (1, 2):
        db.add(AttendanceSession(as_employee_id=employee_id, as_checkin_at=clock() - timedelta(days=1),
                                 as_checkin_lat=0.0, as_checkin_lng=0.0, as_checkin_accuracy_m=0.0,
                                 as_status="completed"))
    db.commit()
    seen = []

    def flaky(db, employee_id):
        seen.append(employee_id)
        if employee_id == 1:
            raise ServiceUnavailableException("down")
        return []

    monkeypatch.setattr(fraud_service, "evaluate_employee", flaky)

    assert fraud_service.evaluate_all(db) == []
    assert sorted(seen) == [1, 2]


def test_resolve_alert(db, fraud_service):
    finding = FraudAlertCreate(fa_employee_id=1, fa_type="device_sharing", fa_severity="medium", fa_description="x")
    alert = fraud_service.record(db, [finding])[0]

    resolved = fraud_service.resolve_alert(db, alert.fa_id, resolved_by=99)
    assert resolved.ok
    assert resolved.value.fa_resolved is True
    assert resolved.value.fa_resolved_by == 99

    assert fraud_service.resolve_alert(db, alert.fa_id, 99).rejection is Rejection.ALREADY_RESOLVED
    assert fraud_service.resolve_alert(db, 12345, 99).rejection is Rejection.NOT_FOUND
    assert fraud_service.count_alerts(db, resolved=True) == 1


def add_completed(db, employee_id, check_in_times):
    for s in completed_sessions(check_in_times, employee_id=employee_id):
        s.as_id = None
        s.as_checkin_lat = s.as_checkin_lng = s.as_checkin_accuracy_m = 0.0
        db.add(s)
    db.commit()


def test_repeated_passes_raise_one_alert(db, fraud_service, clock, events):
    times = [clock() - timedelta(days=d) for d in range(1, 7)]
    times[1] = times[2] = times[0]
    add_completed(db, 5, times)

    assert len(fraud_service.evaluate_employee(db, 5)) == 1
    assert fraud_service.evaluate_employee(db, 5) == []
    assert fraud_service.evaluate_all(db) == []

    assert db.query(FraudAlert).count() == 1
    assert len(events.of_type(FraudAlertRaised)) == 1


def test_changed_window_raises_new_alert(db, fraud_service, clock):
    times = [clock() - timedelta(days=d) for d in range(1, 7)]
    times[1] = times[2] = times[0]
    add_completed(db, 5, times)
    fraud_service.evaluate_employee(db, 5)

    add_completed(db, 5, [times[0]])

    assert [a.fa_type for a in fraud_service.evaluate_employee(db, 5)] == ["time_manipulation"]
    assert db.query(FraudAlert).count() == 2


def test_resolved_alert_does_not_suppress(db, fraud_service):
    sessions = completed_sessions([T0, T0 + timedelta(minutes=5)])
    for s in sessions:
        s.as_status = "active"
    finding = fraud_service.evaluate_device_sharing(sessions)

    first = fraud_service.record(db, [finding])[0]
    assert fraud_service.record(db, [finding]) == []

    fraud_service.resolve_alert(db, first.fa_id, resolved_by=99)
    assert len(fraud_service.record(db, [finding])) == 1


def test_history_window_keeps_completed_behind_other_sessions(db, fraud_service, clock):
    times = [clock() - timedelta(days=d) for d in range(10, 16)]
    times[1] = times[2] = times[0]
    add_completed(db, 5, times)
    for h in range(10):
        db.add(AttendanceSession(as_employee_id=5, as_checkin_at=clock() - timedelta(days=1, hours=h),
                                 as_checkin_lat=0.0, as_checkin_lng=0.0, as_checkin_accuracy_m=0.0,
                                 as_status="incomplete"))
    db.add(AttendanceSession(as_employee_id=5, as_checkin_at=clock() - timedelta(minutes=5),
                             as_checkin_lat=0.0, as_checkin_lng=0.0, as_checkin_accuracy_m=0.0,
                             as_status="active"))
    db.commit()

    window = fraud_service.history_window(db, 5)

    assert sorted(s.as_status for s in window) == ["active"] + ["completed"] * 6
    assert [a.fa_type for a in fraud_service.evaluate_employee(db, 5)] == ["time_manipulation"]


def test_unstored_device_sharing_alert_is_logged(db, fraud_service, monkeypatch, caplog):
    def unavailable(db, findings):
        raise ServiceUnavailableException("down")

    monkeypatch.setattr(fraud_service, "record", unavailable)
    sessions = completed_sessions([T0, T0 + timedelta(minutes=5)], employee_id=7)
    for s in sessions:
        s.as_status = "active"

    with caplog.at_level(logging.WARNING, logger="app.services.fraud_service"):
        fraud_service.report_invariant_violation(db, 7, sessions)

    assert "Device sharing alert for employee 7 was not stored" in caplog.text
