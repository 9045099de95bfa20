"""Exam and exam subject models."""

import enum
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    DECIMAL,
    Boolean,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gradebook.core.database import Base
from gradebook.models.base import IDMixin, IDType, JSONType, SchoolScopedMixin, TimestampMixin


class ExamType(str, enum.Enum):
    """Kinds of exam a school can run."""

    MID_TERM = "mid_term"
    END_OF_TERM = "end_of_term"
    MOCK = "mock"
    QUIZ = "quiz"
    ASSESSMENT = "assessment"
    FINAL = "final"


class ExamStatus(str, enum.Enum):
    """Exam lifecycle states, in forward order."""

    DRAFT = "draft"
    SCHEDULED = "scheduled"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    PUBLISHED = "published"

    @property
    def rank(self) -> int:
        return list(ExamStatus).index(self)

    @property
    def is_closed(self) -> bool:
        """Completed and published exams are subject to the lock gate."""
        return self in (ExamStatus.COMPLETED, ExamStatus.PUBLISHED)


class Department(str, enum.Enum):
    """School departments an exam may be scoped to."""

    CRECHE = "creche"
    KINDERGARTEN = "kindergarten"
    PRIMARY = "primary"
    JUNIOR_HIGH = "junior_high"


class Exam(Base, IDMixin, TimestampMixin, SchoolScopedMixin):
    """Exam definition and lifecycle state."""

    __tablename__ = "exams"

    exam_code: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    exam_name: Mapped[str] = mapped_column(String(255), nullable=False)
    exam_type: Mapped[ExamType] = mapped_column(Enum(ExamType), nullable=False)

    # Scheduling
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    academic_year_id: Mapped[int | None] = mapped_column(IDType, nullable=True, index=True)
    term_id: Mapped[int | None] = mapped_column(IDType, nullable=True, index=True)
    department: Mapped[Department | None] = mapped_column(Enum(Department), nullable=True)
    target_classes: Mapped[list[str] | None] = mapped_column(JSONType, nullable=True)
    instructions: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Scoring contract
    total_marks: Mapped[Decimal] = mapped_column(DECIMAL(10, 2), nullable=False)
    weightage: Mapped[Decimal] = mapped_column(DECIMAL(6, 2), nullable=False)

    # Lifecycle
    status: Mapped[ExamStatus] = mapped_column(
        Enum(ExamStatus),
        default=ExamStatus.DRAFT,
        nullable=False,
        index=True,
    )
    unlocked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    unlocked_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    unlocked_by_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    unlocked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    unlock_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_by: Mapped[str] = mapped_column(String(64), nullable=False)

    # Relationships
    subjects: Mapped[list["ExamSubject"]] = relationship(
        "ExamSubject",
        back_populates="exam",
        cascade="all, delete-orphan",
        order_by="ExamSubject.id",
        lazy="selectin",
    )

    @property
    def is_locked(self) -> bool:
        return self.status.is_closed and not self.unlocked

    def subject(self, subject_id: str) -> "ExamSubject | None":
        for item in self.subjects:
            if item.subject_id == subject_id:
                return item
        return None

    def __repr__(self) -> str:
        return f"<Exam(id={self.id}, code={self.exam_code}, status={self.status})>"


class ExamSubject(Base, IDMixin):
    """Per-subject maximum score for an exam."""

    __tablename__ = "exam_subjects"

    exam_id: Mapped[int] = mapped_column(
        IDType,
        ForeignKey("exams.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    subject_id: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    max_marks: Mapped[Decimal] = mapped_column(DECIMAL(10, 2), nullable=False)

    exam: Mapped[Exam] = relationship("Exam", back_populates="subjects")

    __table_args__ = (
        UniqueConstraint("exam_id", "subject_id", name="uq_exam_subject"),
    )

    def __repr__(self) -> str:
        return f"<ExamSubject(exam_id={self.exam_id}, subject={self.subject_id})>"
