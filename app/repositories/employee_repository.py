"""
Employee Repository - Read-only access to the HR employee projection
"""
from typing import List
from sqlalchemy.orm import Session

from atams.db import BaseRepository
from app.models.employee import Employee


class EmployeeRepository(BaseRepository[Employee]):
    def __init__(self):
        super().__init__(Employee)

    def get_active_ids(self, db: Session) -> List[int]:
        rows = db.query(Employee.em_id).filter(Employee.em_status == "active").order_by(Employee.em_id).all()
        return [row.em_id for row in rows]
