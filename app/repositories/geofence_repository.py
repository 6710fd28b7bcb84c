"""
Geofence Repository - Data access layer for geofences
"""
from typing import List
from sqlalchemy.orm import Session

from atams.db import BaseRepository
from app.models.geofence import Geofence


class GeofenceRepository(BaseRepository[Geofence]):
    def __init__(self):
        super().__init__(Geofence)

    def get_active(self, db: Session) -> List[Geofence]:
        """Get every active geofence using ORM"""
        return db.query(Geofence).filter(Geofence.gf_active.is_(True)).order_by(Geofence.gf_id).all()

    def get_geofences_with_search(
        self,
        db: Session,
        search: str = "",
        active: bool = None,
        skip: int = 0,
        limit: int = 100
    ) -> List[Geofence]:
        """Get geofences with optional name search using ORM"""
        query = db.query(Geofence)

        if search:
            query = query.filter(Geofence.gf_name.ilike(f"%{search}%"))
        if active is not None:
            query = query.filter(Geofence.gf_active.is_(active))

        return query.order_by(Geofence.gf_id).offset(skip).limit(limit).all()

    def count_geofences_with_search(self, db: Session, search: str = "", active: bool = None) -> int:
        """Count geofences with optional name search using ORM"""
        query = db.query(Geofence)

        if search:
            query = query.filter(Geofence.gf_name.ilike(f"%{search}%"))
        if active is not None:
            query = query.filter(Geofence.gf_active.is_(active))

        return query.count()
