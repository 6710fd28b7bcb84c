"""
Geofence Service - Admin store for authorized locations
"""
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from atams.exceptions import NotFoundException
from app.repositories.geofence_repository import GeofenceRepository
from app.schemas.geofence import Geofence, GeofenceCheckResponse, GeofenceCreate, GeofenceUpdate
from app.services.geo import GeoPoint
from app.services.geofence_index import GeofenceIndex, NoActiveGeofencesError

logger = logging.getLogger(__name__)


class GeofenceService:
    def __init__(self, index: GeofenceIndex) -> None:
        self.repo = GeofenceRepository()
        self.index = index

    def list_geofences(
        self,
        db: Session,
        search: str = "",
        active: Optional[bool] = None,
        skip: int = 0,
        limit: int = 100
    ) -> List[Geofence]:
        fences = self.repo.get_geofences_with_search(db, search=search, active=active, skip=skip, limit=limit)
        return [Geofence.model_validate(g) for g in fences]

    def count_geofences(self, db: Session, search: str = "", active: Optional[bool] = None) -> int:
        return self.repo.count_geofences_with_search(db, search=search, active=active)

    def get_geofence(self, db: Session, gf_id: int) -> Geofence:
        fence = self.repo.get(db, gf_id)
        if not fence:
            raise NotFoundException("Geofence not found")
        return Geofence.model_validate(fence)

    def create_geofence(self, db: Session, payload: GeofenceCreate) -> Geofence:
        obj = self.repo.create(db, payload.model_dump())
        self.index.invalidate()
        logger.info("Geofence %s '%s' created (radius %.0fm)", obj.gf_id, obj.gf_name, obj.gf_radius_m)
        return Geofence.model_validate(obj)

    def update_geofence(self, db: Session, gf_id: int, payload: GeofenceUpdate) -> Geofence:
        """Geofences are never deleted; set gf_active=false to retire one"""
        obj = self.repo.get(db, gf_id)
        if not obj:
            raise NotFoundException("Geofence not found")
        obj = self.repo.update(db, obj, payload.model_dump(exclude_unset=True))
        self.index.invalidate()
        logger.info("Geofence %s updated", gf_id)
        return Geofence.model_validate(obj)

    def _to_schema(self, db: Session, fence_id: int) -> Geofence:
        return Geofence.model_validate(self.repo.get(db, fence_id))

    def check_position(self, db: Session, point: GeoPoint, accuracy_m: float = 0.0) -> GeofenceCheckResponse:
        self.index.ensure_fresh(db)
        within, fence = self.index.is_within_any(point, accuracy_m)
        try:
            nearest, distance = self.index.nearest(point)
        except NoActiveGeofencesError:
            return GeofenceCheckResponse(within=False)

        return GeofenceCheckResponse(
            within=within,
            geofence=self._to_schema(db, fence.id) if fence else None,
            nearest=self._to_schema(db, nearest.id),
            nearest_distance_m=round(distance, 1),
        )
