"""Academic year, term and current-calendar pointer models."""

import enum
from datetime import date

from sqlalchemy import Date, Enum, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from gradebook.core.database import Base
from gradebook.models.base import IDMixin, IDType, SchoolScopedMixin, TimestampMixin


class CalendarStatus(str, enum.Enum):
    """Status of an academic year or term."""

    UPCOMING = "upcoming"
    ACTIVE = "active"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class AcademicYear(Base, IDMixin, TimestampMixin, SchoolScopedMixin):
    """Academic year model."""

    __tablename__ = "academic_years"

    year_code: Mapped[str] = mapped_column(String(20), nullable=False)
    year_name: Mapped[str] = mapped_column(String(100), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[CalendarStatus] = mapped_column(
        Enum(CalendarStatus),
        default=CalendarStatus.UPCOMING,
        nullable=False,
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str] = mapped_column(String(64), nullable=False)

    def __repr__(self) -> str:
        return f"<AcademicYear(id={self.id}, name={self.year_name})>"


class Term(Base, IDMixin, TimestampMixin, SchoolScopedMixin):
    """Term within an academic year."""

    __tablename__ = "terms"

    academic_year_id: Mapped[int] = mapped_column(
        IDType,
        ForeignKey("academic_years.id"),
        nullable=False,
        index=True,
    )
    term_code: Mapped[str] = mapped_column(String(20), nullable=False)
    term_name: Mapped[str] = mapped_column(String(100), nullable=False)
    term_number: Mapped[int] = mapped_column(Integer, nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[CalendarStatus] = mapped_column(
        Enum(CalendarStatus),
        default=CalendarStatus.UPCOMING,
        nullable=False,
    )
    created_by: Mapped[str] = mapped_column(String(64), nullable=False)

    def __repr__(self) -> str:
        return f"<Term(id={self.id}, name={self.term_name})>"


class SchoolCalendar(Base, IDMixin, TimestampMixin, SchoolScopedMixin):
    """Per-school pointer to the current academic year and term."""

    __tablename__ = "school_calendars"

    current_year_id: Mapped[int | None] = mapped_column(
        IDType,
        ForeignKey("academic_years.id", ondelete="SET NULL"),
        nullable=True,
    )
    current_term_id: Mapped[int | None] = mapped_column(
        IDType,
        ForeignKey("terms.id", ondelete="SET NULL"),
        nullable=True,
    )

    __table_args__ = (
        UniqueConstraint("school_id", name="uq_school_calendar_school"),
    )

    def __repr__(self) -> str:
        return f"<SchoolCalendar(school={self.school_id}, year={self.current_year_id})>"
