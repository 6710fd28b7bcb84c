import math
from datetime import datetime, timedelta

import pytest
from atams.db import Base
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app import models  # noqa: F401
from app.api import deps
from app.core.config import Settings
from app.core.events import EventDispatcher
from app.db.session import get_db
from app.main import create_app
from app.models import Employee, Geofence
from app.services.attendance_service import AttendanceService
from app.services.cleanup_service import CleanupService
from app.services.fraud_service import FraudHeuristicsService
from app.services.geo import EARTH_RADIUS_M, GeoPoint
from app.services.geofence_index import GeofenceIndex, LocationTracker
from app.services.geofence_service import GeofenceService
from app.services.jwt_service import JwtService
from app.services.verification_service import VerificationService

FENCE_CENTER = GeoPoint(40.0, -74.0)
METERS_PER_DEGREE_LAT = EARTH_RADIUS_M * math.pi / 180


def north_of(point: GeoPoint, meters: float) -> GeoPoint:
    """Point `meters` due north of `point` (exact along a meridian)"""
    return GeoPoint(point.lat + meters / METERS_PER_DEGREE_LAT, point.lng)


class FakeClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class StubScorer:
    def __init__(self, score=95.0) -> None:
        self.result = score
        self.calls = []

    def score(self, employee_id, sample):
        self.calls.append((employee_id, sample))
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


class RecordingDispatcher(EventDispatcher):
    def __init__(self) -> None:
        super().__init__()
        self.emitted = []
        self.subscribe(self.emitted.append)

    def of_type(self, event_type):
        return [e for e in self.emitted if isinstance(e, event_type)]


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 2, 8, 0, 0))


@pytest.fixture
def config():
    return Settings(
        _env_file=None,
        IDENTITY_JWT_SECRET="test-secret",
        GEOFENCE_ADMISSION_POLICY="strict",
        VERIFICATION_PENDING_POLICY="reject",
        VERIFICATION_SWEEP_ENABLED=False,
        LOGGING_ENABLED=False,
    )


@pytest.fixture
def events():
    return RecordingDispatcher()


@pytest.fixture
def scorer():
    return StubScorer()


@pytest.fixture
def fence(db):
    obj = Geofence(gf_name="Head Office", gf_center_lat=FENCE_CENTER.lat,
                   gf_center_lng=FENCE_CENTER.lng, gf_radius_m=200.0, gf_active=True)
    db.add(obj)
    db.commit()
    return obj


@pytest.fixture
def employees(db):
    rows = [
        Employee(em_id=1, em_status="active"),
        Employee(em_id=2, em_status="active"),
        Employee(em_id=3, em_status="suspended"),
    ]
    db.add_all(rows)
    db.commit()
    return rows


@pytest.fixture
def geofence_index(db, fence):
    index = GeofenceIndex(refresh_seconds=60)
    index.load_now(db)
    return index


@pytest.fixture
def fraud_service(config, events, clock):
    return FraudHeuristicsService(config, events=events, clock=clock)


@pytest.fixture
def attendance_service(geofence_index, fraud_service, config, clock):
    return AttendanceService(geofence_index, fraud_service, config, clock=clock)


@pytest.fixture
def verification_service(scorer, config, events, clock):
    return VerificationService(scorer, config, events=events, clock=clock)


@pytest.fixture
def jwt_service(config):
    return JwtService(config)


@pytest.fixture
def client(db, config, events, clock, geofence_index, fraud_service, attendance_service,
           verification_service, jwt_service):
    app = create_app()

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[deps.get_jwt_service] = lambda: jwt_service
    app.dependency_overrides[deps.get_geofence_index] = lambda: geofence_index
    app.dependency_overrides[deps.get_geofence_service] = lambda: GeofenceService(geofence_index)
    app.dependency_overrides[deps.get_location_tracker] = lambda: LocationTracker(geofence_index, events, clock)
    app.dependency_overrides[deps.get_fraud_service] = lambda: fraud_service
    app.dependency_overrides[deps.get_attendance_service] = lambda: attendance_service
    app.dependency_overrides[deps.get_verification_service] = lambda: verification_service
    app.dependency_overrides[deps.get_cleanup_service] = lambda: CleanupService(
        attendance_service, verification_service, fraud_service
    )
    return TestClient(app)


@pytest.fixture
def employee_headers(jwt_service):
    return {"Authorization": f"Bearer {jwt_service.issue_token(1, role_level=1)}"}


@pytest.fixture
def admin_headers(jwt_service):
    return {"Authorization": f"Bearer {jwt_service.issue_token(99, role_level=50)}"}
