"""
Principals - users of the organisation hierarchy.

The task core only reads these rows; account management lives elsewhere.
"""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime
import enum

from ..database import Base


class UserRole(str, enum.Enum):
    """Organisation tiers"""
    DIRECTOR = "DIRECTOR"
    HOD = "HOD"
    EMPLOYEE = "EMPLOYEE"


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(150), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    role = Column(String(20), nullable=False, default=UserRole.EMPLOYEE.value)
    department = Column(String(100), nullable=True, index=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<User {self.email} ({self.role})>"
