"""
Geofence Index - In-memory snapshot of active geofences

The active set is small and admin-curated, so lookups are a linear scan over
a snapshot that is reloaded from the geofence store when it goes stale or is
invalidated after an admin write.
"""
import logging
import threading
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from app.core.events import EventDispatcher, GeofenceEntered, GeofenceLeft, dispatcher
from app.core.clock import Clock, utc_now
from app.repositories.geofence_repository import GeofenceRepository
from app.services.geo import GeoPoint, distance_meters

logger = logging.getLogger(__name__)


class NoActiveGeofencesError(LookupError):
    pass


@dataclass(frozen=True)
class IndexedGeofence:
    id: int
    name: str
    center: GeoPoint
    radius_m: float


class GeofenceIndex:
    def __init__(self, refresh_seconds: int = 60, repo: GeofenceRepository = None) -> None:
        self.refresh_seconds = refresh_seconds
        self.repo = repo or GeofenceRepository()
        self._lock = threading.Lock()
        self._fences: List[IndexedGeofence] = []
        self._last_load = 0.0
        self._stale = True

    def load_now(self, db: Session) -> None:
        fences = [
            IndexedGeofence(
                id=g.gf_id,
                name=g.gf_name,
                center=GeoPoint(g.gf_center_lat, g.gf_center_lng),
                radius_m=g.gf_radius_m,
            )
            for g in self.repo.get_active(db)
        ]
        with self._lock:
            self._fences = fences
            self._last_load = time.monotonic()
            self._stale = False
        logger.debug("Geofence index loaded with %d active fences", len(fences))

    def ensure_fresh(self, db: Session) -> None:
        with self._lock:
            stale = self._stale or time.monotonic() - self._last_load > self.refresh_seconds
        if stale:
            self.load_now(db)

    def invalidate(self) -> None:
        with self._lock:
            self._stale = True

    def replace(self, fences: List[IndexedGeofence]) -> None:
        """Install a snapshot directly, bypassing the store"""
        with self._lock:
            self._fences = list(fences)
            self._last_load = time.monotonic()
            self._stale = False

    def snapshot(self) -> List[IndexedGeofence]:
        with self._lock:
            return list(self._fences)

    def is_within_any(self, point: GeoPoint, accuracy_m: float = 0.0) -> Tuple[bool, Optional[IndexedGeofence]]:
        """
        Check whether point lies inside any active geofence

        The boundary is inclusive. When fences overlap, the fence with the
        largest margin (radius - distance) wins. accuracy_m does not widen
        the fence; coarse fixes are judged by the spoofing heuristics.
        """
        best: Optional[IndexedGeofence] = None
        best_margin = None
        for fence in self.snapshot():
            margin = fence.radius_m - distance_meters(point, fence.center)
            if margin >= 0 and (best_margin is None or margin > best_margin):
                best, best_margin = fence, margin

        if best is None:
            logger.debug("Point %s (accuracy %.0fm) is outside every geofence", point, accuracy_m)
        return best is not None, best

    def nearest(self, point: GeoPoint) -> Tuple[IndexedGeofence, float]:
        fences = self.snapshot()
        if not fences:
            raise NoActiveGeofencesError("No active geofences configured")

        nearest = fences[0]
        min_distance = distance_meters(point, nearest.center)
        for fence in fences[1:]:
            distance = distance_meters(point, fence.center)
            if distance < min_distance:
                nearest, min_distance = fence, distance
        return nearest, min_distance


@dataclass(frozen=True)
class TrackResult:
    within: bool
    geofence_id: Optional[int]
    transition: Optional[str]


class LocationTracker:
    """Remembers which fence each employee was last seen in and emits entry/exit events"""

    def __init__(self, index: GeofenceIndex, events: EventDispatcher = dispatcher, clock: Clock = utc_now) -> None:
        self.index = index
        self.events = events
        self.clock = clock
        self._lock = threading.Lock()
        self._last_fence: Dict[int, Optional[int]] = {}

    def track(self, employee_id: int, point: GeoPoint, accuracy_m: float = 0.0) -> TrackResult:
        within, fence = self.index.is_within_any(point, accuracy_m)
        current_id = fence.id if fence else None
        now = self.clock()

        with self._lock:
            previous_id = self._last_fence.get(employee_id)
            self._last_fence[employee_id] = current_id

        if previous_id == current_id:
            return TrackResult(within, current_id, None)

        transition = None
        if previous_id is not None:
            self.events.emit(GeofenceLeft(occurred_at=now, employee_id=employee_id, geofence_id=previous_id))
            transition = "left"
        if fence is not None:
            self.events.emit(GeofenceEntered(
                occurred_at=now,
                employee_id=employee_id,
                geofence_id=fence.id,
                distance_m=round(distance_meters(point, fence.center), 1),
            ))
            transition = "entered"
        return TrackResult(within, current_id, transition)
