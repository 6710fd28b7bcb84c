"""
Employee Model - Read-only projection of the HR employee record
"""
from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func

from atams.db import Base
from app.db.session import BigIntegerType


class Employee(Base):
    """Employee model - Table: employees (owned by the HR module, only id and status are read)"""
    __tablename__ = "employees"

    em_id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    em_status = Column(String(16), nullable=False, default="active")  # 'active', 'inactive', 'suspended'
    em_created_at = Column(DateTime, server_default=func.now(), nullable=False)
    em_updated_at = Column(DateTime, onupdate=func.now(), nullable=True)
