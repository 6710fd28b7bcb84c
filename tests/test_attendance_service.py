import logging
from datetime import timedelta

import pytest
from atams.exceptions import ServiceUnavailableException
from sqlalchemy.exc import IntegrityError

from app.core.events import FraudAlertRaised
from app.core.result import Rejection
from app.models import AttendanceEvent, AttendanceSession, FraudAlert
from app.services.attendance_service import AttendanceService
from tests.conftest import FENCE_CENTER, north_of

INSIDE = north_of(FENCE_CENTER, 50.0)
OUTSIDE = north_of(FENCE_CENTER, 400.0)


def test_check_in_then_check_out_round_trip(db, attendance_service, clock, fence):
    opened = attendance_service.check_in(db, 1, INSIDE, 12.0)
    assert opened.ok
    session = opened.value
    assert session.as_status == "active"
    assert session.as_geofence_id == fence.gf_id
    assert session.as_outside_geofence is False

    clock.advance(hours=8, minutes=30)
    closed = attendance_service.check_out(db, 1)

    assert closed.ok
    assert closed.value.as_id == session.as_id
    assert closed.value.as_status == "completed"
    assert closed.value.as_total_hours == 8.5
    assert attendance_service.active_session(db, 1) is None

    event_types = [e.ae_event_type for e in db.query(AttendanceEvent).order_by(AttendanceEvent.ae_id)]
    assert event_types == ["checkin", "checkout"]


def test_total_hours_rounded_to_two_decimals(db, attendance_service, clock, fence):
    attendance_service.check_in(db, 1, INSIDE, 5.0)
    clock.advance(minutes=20)
    closed = attendance_service.check_out(db, 1)
    assert closed.value.as_total_hours == 0.33


def test_second_check_in_is_rejected(db, attendance_service, clock, fence):
    first = attendance_service.check_in(db, 1, INSIDE, 5.0)
    clock.advance(minutes=1)
    second = attendance_service.check_in(db, 1, INSIDE, 5.0)

    assert not second.ok
    assert second.rejection is Rejection.ALREADY_ACTIVE
    active = db.query(AttendanceSession).filter_by(as_status="active").all()
    assert [s.as_id for s in active] == [first.value.as_id]


def test_check_out_without_session(db, attendance_service, fence):
    result = attendance_service.check_out(db, 1)
    assert result.rejection is Rejection.NO_ACTIVE_SESSION


def test_strict_policy_rejects_outside(db, attendance_service, fence):
    result = attendance_service.check_in(db, 1, OUTSIDE, 5.0)

    assert result.rejection is Rejection.OUTSIDE_GEOFENCE
    assert "Head Office" in result.detail
    assert "400m" in result.detail
    assert db.query(AttendanceSession).count() == 0


def test_strict_policy_with_no_fences(db, fraud_service, config, clock):
    from app.services.geofence_index import GeofenceIndex

    service = AttendanceService(GeofenceIndex(), fraud_service, config, clock=clock)
    result = service.check_in(db, 1, INSIDE, 5.0)
    assert result.rejection is Rejection.OUTSIDE_GEOFENCE
    assert "no active geofences" in result.detail


def test_soft_policy_admits_and_flags(db, geofence_index, fraud_service, config, clock, events):
    soft = config.model_copy(update={"GEOFENCE_ADMISSION_POLICY": "soft"})
    service = AttendanceService(geofence_index, fraud_service, soft, clock=clock)

    result = service.check_in(db, 1, OUTSIDE, 5.0)

    assert result.ok
    assert result.value.as_outside_geofence is True
    assert result.value.as_geofence_id is None
    alert = db.query(FraudAlert).one()
    assert (alert.fa_type, alert.fa_severity) == ("pattern_anomaly", "low")
    assert alert.fa_evidence["nearest_distance_m"] == pytest.approx(400.0, abs=0.1)
    assert len(events.of_type(FraudAlertRaised)) == 1


def test_check_in_records_nearest_and_speed(db, attendance_service, clock, fence):
    attendance_service.check_in(db, 1, INSIDE, 5.0)
    clock.advance(hours=1)
    attendance_service.check_out(db, 1)
    clock.advance(hours=1)
    attendance_service.check_in(db, 1, FENCE_CENTER, 5.0)

    latest = db.query(AttendanceEvent).filter_by(ae_event_type="checkin").order_by(AttendanceEvent.ae_id.desc()).first()
    assert latest.ae_nearest_geofence_id == fence.gf_id
    assert latest.ae_nearest_distance_m == 0.0
    # 50m in two hours
    assert latest.ae_speed_kmh == pytest.approx(0.0, abs=0.1)


def test_impossible_travel_between_check_ins(db, geofence_index, fraud_service, config, clock, events):
    from app.services.geofence_index import IndexedGeofence

    p0 = FENCE_CENTER
    p1 = north_of(FENCE_CENTER, 1000.0)
    geofence_index.replace([IndexedGeofence(1, "Campus", north_of(FENCE_CENTER, 500.0), 2000.0)])
    service = AttendanceService(geofence_index, fraud_service, config, clock=clock)

    service.check_in(db, 1, p0, 5.0)
    clock.advance(seconds=1)
    service.check_out(db, 1)
    clock.advance(seconds=1)
    service.check_in(db, 1, p1, 5.0)

    alert = db.query(FraudAlert).one()
    assert alert.fa_type == "location_spoofing"
    assert alert.fa_severity == "high"
    assert alert.fa_evidence["speed_kmh"] == pytest.approx(1800.0, abs=0.1)


def test_clock_skew_clamps_hours_and_flags(db, attendance_service, clock, fence):
    opened = attendance_service.check_in(db, 1, INSIDE, 5.0)
    earlier = opened.value.as_checkin_at - timedelta(minutes=10)

    closed = attendance_service.check_out(db, 1, timestamp=earlier)

    assert closed.ok
    assert closed.value.as_total_hours == 0.0
    assert closed.value.as_clock_skew is True
    alert = db.query(FraudAlert).one()
    assert (alert.fa_type, alert.fa_severity) == ("time_manipulation", "low")


def test_force_close_marks_incomplete(db, attendance_service, clock, fence):
    attendance_service.check_in(db, 1, INSIDE, 5.0)
    clock.advance(hours=3)

    result = attendance_service.force_close(db, 1, reason="left without checkout")

    assert result.value.as_status == "incomplete"
    assert result.value.as_total_hours == 3.0
    assert result.value.as_close_reason == "left without checkout"
    assert attendance_service.force_close(db, 1).rejection is Rejection.NO_ACTIVE_SESSION


def test_close_stale_sessions_only_touches_old_ones(db, attendance_service, clock, fence, config):
    attendance_service.check_in(db, 1, INSIDE, 5.0)
    clock.advance(hours=10)
    attendance_service.check_in(db, 2, INSIDE, 5.0)
    clock.advance(hours=7)

    closed = attendance_service.close_stale_sessions(db)

    assert closed == 1
    old = db.query(AttendanceSession).filter_by(as_employee_id=1).one()
    assert old.as_status == "incomplete"
    assert old.as_close_reason == config.AUTO_CHECKOUT_REASON
    assert attendance_service.active_session(db, 2) is not None
    assert attendance_service.close_stale_sessions(db) == 0


def test_database_refuses_second_active_row(db, clock):
    def active_row():
        return AttendanceSession(as_employee_id=9, as_checkin_at=clock(), as_checkin_lat=0.0,
                                 as_checkin_lng=0.0, as_checkin_accuracy_m=0.0, as_status="active")

    db.add(active_row())
    db.commit()
    db.add(active_row())
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


def test_observed_double_active_is_reported(db, attendance_service, clock, monkeypatch, fence):
    doubles = [
        AttendanceSession(as_id=11, as_employee_id=1, as_checkin_at=clock(), as_status="active"),
        AttendanceSession(as_id=12, as_employee_id=1, as_checkin_at=clock(), as_status="active"),
    ]
    monkeypatch.setattr(attendance_service.session_repo, "get_active_sessions", lambda db, employee_id: doubles)

    result = attendance_service.check_in(db, 1, INSIDE, 5.0)

    assert result.rejection is Rejection.ALREADY_ACTIVE
    alert = db.query(FraudAlert).one()
    assert alert.fa_type == "device_sharing"
    assert alert.fa_evidence["session_ids"] == [11, 12]


def test_admin_listing_filters_by_status(db, attendance_service, clock, fence):
    attendance_service.check_in(db, 1, INSIDE, 5.0)
    clock.advance(hours=1)
    attendance_service.check_out(db, 1)
    attendance_service.check_in(db, 2, INSIDE, 5.0)

    completed = attendance_service.get_sessions_admin(db, status="completed")
    assert [s.as_employee_id for s in completed] == [1]
    assert attendance_service.count_sessions_admin(db) == 2


def test_repeated_reads_report_double_active_once(db, attendance_service, clock, monkeypatch, fence):
    doubles = [
        AttendanceSession(as_id=11, as_employee_id=1, as_checkin_at=clock(), as_status="active"),
        AttendanceSession(as_id=12, as_employee_id=1, as_checkin_at=clock(), as_status="active"),
    ]
    monkeypatch.setattr(attendance_service.session_repo, "get_active_sessions", lambda db, employee_id: doubles)

    assert attendance_service.active_session(db, 1).as_id == 11
    assert attendance_service.active_session(db, 1).as_id == 11
    attendance_service.check_in(db, 1, INSIDE, 5.0)

    assert db.query(FraudAlert).count() == 1


def test_unstored_clock_skew_alert_is_logged(db, attendance_service, fraud_service, monkeypatch, caplog, fence):
    opened = attendance_service.check_in(db, 1, INSIDE, 5.0)

    def unavailable(db, findings):
        raise ServiceUnavailableException("down")

    monkeypatch.setattr(fraud_service, "record", unavailable)
    with caplog.at_level(logging.WARNING, logger="app.services.attendance_service"):
        closed = attendance_service.check_out(db, 1, timestamp=opened.value.as_checkin_at - timedelta(minutes=1))

    assert closed.ok
    assert closed.value.as_clock_skew is True
    assert f"Clock skew alert for session {opened.value.as_id} was not stored" in caplog.text
