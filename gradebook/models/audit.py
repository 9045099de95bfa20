"""Audit log and audit outbox models."""

import enum
from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from gradebook.core.database import Base
from gradebook.models.base import IDMixin, utcnow


class AuditAction(str, enum.Enum):
    """Audit action tags."""

    # Exam lifecycle
    UNLOCK_EXAM = "unlock_exam"
    LOCK_EXAM = "lock_exam"

    # Privileged marks edits
    EDIT_MARKS_UNLOCKED_EXAM = "edit_marks_unlocked_exam"
    EDIT_MARKS_COMPLETED_EXAM = "edit_marks_completed_exam"
    DELETE_MARKS_UNLOCKED_EXAM = "delete_marks_unlocked_exam"
    DELETE_MARKS_COMPLETED_EXAM = "delete_marks_completed_exam"

    # Academic calendar
    CREATE = "CREATE"
    DELETE = "DELETE"
    BULK_DELETE = "BULK_DELETE"
    SET_CURRENT = "SET_CURRENT"


class AuditLog(Base, IDMixin):
    """Append-only audit log model."""

    __tablename__ = "audit_logs"

    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
        index=True,
    )
    school_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)

    # Actor
    actor_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    actor_name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Action details
    action: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    entity_type: Mapped[str] = mapped_column(String(100), nullable=False)
    entity_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    details: Mapped[str | None] = mapped_column(Text, nullable=True)
    origin: Mapped[str] = mapped_column(String(50), nullable=False, default="system")

    # Outbox event this entry was delivered from
    outbox_event_id: Mapped[int | None] = mapped_column(Integer, nullable=True, unique=True)

    def __repr__(self) -> str:
        return f"<AuditLog(id={self.id}, action={self.action})>"


class AuditOutboxEvent(Base, IDMixin):
    """Audit event staged in the same transaction as the change it describes."""

    __tablename__ = "audit_outbox"

    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    school_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    actor_id: Mapped[str] = mapped_column(String(64), nullable=False)
    actor_name: Mapped[str] = mapped_column(String(255), nullable=False)
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(100), nullable=False)
    entity_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    details: Mapped[str | None] = mapped_column(Text, nullable=True)
    origin: Mapped[str] = mapped_column(String(50), nullable=False, default="system")

    # Delivery state
    delivered_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        index=True,
    )
    attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    @property
    def is_pending(self) -> bool:
        return self.delivered_at is None

    def __repr__(self) -> str:
        return f"<AuditOutboxEvent(id={self.id}, action={self.action}, pending={self.is_pending})>"
