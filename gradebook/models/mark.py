"""Student mark (marks ledger) model."""

import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    DECIMAL,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from gradebook.core.database import Base
from gradebook.models.base import IDMixin, IDType, SchoolScopedMixin, TimestampMixin
from gradebook.models.staff import StaffRole


class SubmissionStatus(str, enum.Enum):
    """Review workflow stage of a mark row."""

    DRAFT = "draft"
    SUBMITTED_TO_CLASS_TEACHER = "submitted_to_class_teacher"
    VERIFIED_BY_CLASS_TEACHER = "verified_by_class_teacher"
    VERIFIED_BY_ADMIN = "verified_by_admin"


class StudentMark(Base, IDMixin, TimestampMixin, SchoolScopedMixin):
    """One score row per exam x student x subject."""

    __tablename__ = "student_marks"

    exam_id: Mapped[int] = mapped_column(
        IDType,
        ForeignKey("exams.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    exam_code: Mapped[str] = mapped_column(String(20), nullable=False)
    exam_name: Mapped[str] = mapped_column(String(255), nullable=False)
    student_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    student_name: Mapped[str] = mapped_column(String(255), nullable=False)
    class_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    class_name: Mapped[str] = mapped_column(String(100), nullable=False)
    subject_id: Mapped[str] = mapped_column(String(64), nullable=False)
    subject_name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Raw inputs
    class_score: Mapped[Decimal] = mapped_column(DECIMAL(10, 2), nullable=False)
    exam_score: Mapped[Decimal] = mapped_column(DECIMAL(10, 2), nullable=False)
    max_marks: Mapped[Decimal] = mapped_column(DECIMAL(10, 2), nullable=False)
    is_absent: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Derived
    total_score: Mapped[Decimal] = mapped_column(DECIMAL(10, 2), nullable=False)
    percentage: Mapped[Decimal] = mapped_column(DECIMAL(7, 2), nullable=False)
    grade: Mapped[str] = mapped_column(String(10), nullable=False)
    grade_number: Mapped[int] = mapped_column(Integer, nullable=False)
    remarks: Mapped[str] = mapped_column(String(100), nullable=False)
    position: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Provenance
    entered_by: Mapped[str] = mapped_column(String(64), nullable=False)
    entered_by_role: Mapped[StaffRole] = mapped_column(Enum(StaffRole), nullable=False)
    entered_by_name: Mapped[str] = mapped_column(String(255), nullable=False)
    entry_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Review state
    submission_status: Mapped[SubmissionStatus] = mapped_column(
        Enum(SubmissionStatus),
        default=SubmissionStatus.DRAFT,
        nullable=False,
    )
    verified_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("exam_id", "student_id", "subject_id", name="uq_mark_exam_student_subject"),
    )

    def __repr__(self) -> str:
        return (
            f"<StudentMark(exam_id={self.exam_id}, student={self.student_id}, "
            f"subject={self.subject_id})>"
        )
