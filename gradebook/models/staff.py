"""Staff directory model."""

import enum

from sqlalchemy import Boolean, Enum, String
from sqlalchemy.orm import Mapped, mapped_column

from gradebook.core.database import Base
from gradebook.models.base import SchoolScopedMixin, TimestampMixin


class StaffRole(str, enum.Enum):
    """Roles that can enter or review marks."""

    SUBJECT_TEACHER = "subject_teacher"
    CLASS_TEACHER = "class_teacher"
    ADMIN = "admin"

    @property
    def is_teacher(self) -> bool:
        return self in (StaffRole.SUBJECT_TEACHER, StaffRole.CLASS_TEACHER)


class StaffMember(Base, TimestampMixin, SchoolScopedMixin):
    """Staff identity mirrored from the platform's identity service."""

    __tablename__ = "staff_members"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[StaffRole] = mapped_column(Enum(StaffRole), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    @property
    def is_admin(self) -> bool:
        return self.role == StaffRole.ADMIN

    def __repr__(self) -> str:
        return f"<StaffMember(id={self.id}, school={self.school_id}, role={self.role})>"
