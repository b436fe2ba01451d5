"""
Authenticated identity handed to the task core for every operation.
"""
from dataclasses import dataclass
from typing import Optional

from ..models.user import User, UserRole


@dataclass(frozen=True)
class Identity:
    id: str
    role: UserRole
    department: Optional[str]
    is_active: bool = True
    name: str = ""

    @classmethod
    def from_user(cls, user: User) -> "Identity":
        return cls(
            id=user.id,
            role=UserRole(user.role),
            department=user.department,
            is_active=bool(user.is_active),
            name=user.name or "",
        )

    @property
    def is_director(self) -> bool:
        return self.role == UserRole.DIRECTOR

    @property
    def is_hod(self) -> bool:
        return self.role == UserRole.HOD

    @property
    def is_employee(self) -> bool:
        return self.role == UserRole.EMPLOYEE
