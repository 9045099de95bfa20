"""Academic year and term management."""

import logging
import random
from datetime import date, datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from gradebook.core.exceptions import AppException, DependentDataExistsError, NotFoundError
from gradebook.models.academic import AcademicYear, CalendarStatus, SchoolCalendar, Term
from gradebook.models.audit import AuditAction
from gradebook.schemas.academic import (
    AcademicYearCreate,
    AcademicYearResponse,
    CurrentCalendarResponse,
    TermCreate,
    TermResponse,
)
from gradebook.schemas.common import BulkItemResult, BulkOperationResponse
from gradebook.services.audit import AuditEmitter
from gradebook.services.directory import StaffDirectory

logger = logging.getLogger(__name__)


def generate_year_code() -> str:
    return f"AY{random.randint(100_000, 999_999)}"


def generate_term_code() -> str:
    return f"TRM{random.randint(100_000, 999_999)}"


def initial_status(start_date: date, end_date: date, set_as_current: bool) -> CalendarStatus:
    """Status of a new year or term from its dates."""
    today = date.today()
    if set_as_current or start_date <= today <= end_date:
        return CalendarStatus.ACTIVE
    if today > end_date:
        return CalendarStatus.COMPLETED
    return CalendarStatus.UPCOMING


class AcademicCalendarService:
    """Academic years, terms and the school's current-calendar pointer.

    Which year and term are current is held in one ``SchoolCalendar`` row per
    school, so switching is a single write and at most one of each can be
    current.
    """

    def __init__(self, db: Session):
        self.db = db
        self.directory = StaffDirectory(db)
        self.audit = AuditEmitter(db)

    # ==========================================
    # Lookups
    # ==========================================

    def get_year(self, year_id: int, school_id: str) -> AcademicYear:
        result = self.db.execute(
            select(AcademicYear).where(
                AcademicYear.id == year_id,
                AcademicYear.school_id == school_id,
            )
        )
        year = result.scalar_one_or_none()
        if not year:
            raise NotFoundError("Academic year", str(year_id))
        return year

    def get_term(self, term_id: int, school_id: str) -> Term:
        result = self.db.execute(
            select(Term).where(Term.id == term_id, Term.school_id == school_id)
        )
        term = result.scalar_one_or_none()
        if not term:
            raise NotFoundError("Term", str(term_id))
        return term

    def _calendar(self, school_id: str) -> SchoolCalendar:
        """The school's pointer row, created on first use."""
        result = self.db.execute(
            select(SchoolCalendar).where(SchoolCalendar.school_id == school_id)
        )
        calendar = result.scalar_one_or_none()
        if calendar is None:
            calendar = SchoolCalendar(school_id=school_id)
            self.db.add(calendar)
            self.db.flush()
        return calendar

    def list_years(self, school_id: str) -> list[AcademicYearResponse]:
        result = self.db.execute(
            select(AcademicYear)
            .where(AcademicYear.school_id == school_id)
            .order_by(AcademicYear.start_date.desc())
        )
        return [AcademicYearResponse.model_validate(y) for y in result.scalars().all()]

    def list_terms(self, school_id: str, academic_year_id: int | None = None) -> list[TermResponse]:
        query = select(Term).where(Term.school_id == school_id)
        if academic_year_id is not None:
            query = query.where(Term.academic_year_id == academic_year_id)
        result = self.db.execute(query.order_by(Term.start_date, Term.term_number))
        return [TermResponse.model_validate(t) for t in result.scalars().all()]

    def get_current(self, school_id: str) -> CurrentCalendarResponse:
        """Current academic year and term for the school."""
        result = self.db.execute(
            select(SchoolCalendar).where(SchoolCalendar.school_id == school_id)
        )
        calendar = result.scalar_one_or_none()
        response = CurrentCalendarResponse(school_id=school_id)
        if calendar is None:
            return response
        if calendar.current_year_id is not None:
            year = self.db.get(AcademicYear, calendar.current_year_id)
            if year:
                response.current_year = AcademicYearResponse.model_validate(year)
        if calendar.current_term_id is not None:
            term = self.db.get(Term, calendar.current_term_id)
            if term:
                response.current_term = TermResponse.model_validate(term)
        return response

    # ==========================================
    # Creation
    # ==========================================

    def create_year(
        self,
        school_id: str,
        request: AcademicYearCreate,
        creator_id: str,
    ) -> AcademicYearResponse:
        admin = self.directory.require_admin(creator_id, school_id)

        year = AcademicYear(
            school_id=school_id,
            year_code=generate_year_code(),
            year_name=request.year_name,
            start_date=request.start_date,
            end_date=request.end_date,
            status=initial_status(request.start_date, request.end_date, request.set_as_current),
            description=request.description,
            created_by=creator_id,
        )
        self.db.add(year)
        self.db.flush()

        if request.set_as_current:
            self._calendar(school_id).current_year_id = year.id
            self.db.flush()

        self.audit.stage(
            action=AuditAction.CREATE,
            entity_type="academic_year",
            entity_id=year.id,
            actor_id=admin.id,
            actor_name=admin.name,
            details=f"Created academic year: {year.year_name}",
            school_id=school_id,
        )

        self.db.refresh(year)
        logger.info(f"Academic year {year.year_code} created for school {school_id}")
        return AcademicYearResponse.model_validate(year)

    def create_term(
        self,
        school_id: str,
        request: TermCreate,
        creator_id: str,
    ) -> TermResponse:
        admin = self.directory.require_admin(creator_id, school_id)
        year = self.get_year(request.academic_year_id, school_id)

        term = Term(
            school_id=school_id,
            academic_year_id=year.id,
            term_code=generate_term_code(),
            term_name=request.term_name,
            term_number=request.term_number,
            start_date=request.start_date,
            end_date=request.end_date,
            status=initial_status(request.start_date, request.end_date, request.set_as_current),
            created_by=creator_id,
        )
        self.db.add(term)
        self.db.flush()

        if request.set_as_current:
            self._calendar(school_id).current_term_id = term.id
            self.db.flush()

        self.audit.stage(
            action=AuditAction.CREATE,
            entity_type="term",
            entity_id=term.id,
            actor_id=admin.id,
            actor_name=admin.name,
            details=f"Created term: {term.term_name} for {year.year_name}",
            school_id=school_id,
        )

        self.db.refresh(term)
        logger.info(f"Term {term.term_code} created in year {year.year_code}")
        return TermResponse.model_validate(term)

    # ==========================================
    # Current pointer
    # ==========================================

    def set_current_year(self, school_id: str, year_id: int, caller_id: str) -> CurrentCalendarResponse:
        """Point the school at ``year_id``; the previous year is implicitly no longer current."""
        admin = self.directory.require_admin(caller_id, school_id)
        year = self.get_year(year_id, school_id)

        year.status = CalendarStatus.ACTIVE
        year.updated_at = datetime.now(timezone.utc)
        self._calendar(school_id).current_year_id = year.id
        self.db.flush()

        self.audit.stage(
            action=AuditAction.SET_CURRENT,
            entity_type="academic_year",
            entity_id=year.id,
            actor_id=admin.id,
            actor_name=admin.name,
            details=f"Set as current academic year: {year.year_name}",
            school_id=school_id,
        )
        logger.info(f"School {school_id} current year set to {year.year_code}")
        return self.get_current(school_id)

    def set_current_term(self, school_id: str, term_id: int, caller_id: str) -> CurrentCalendarResponse:
        admin = self.directory.require_admin(caller_id, school_id)
        term = self.get_term(term_id, school_id)

        term.status = CalendarStatus.ACTIVE
        term.updated_at = datetime.now(timezone.utc)
        self._calendar(school_id).current_term_id = term.id
        self.db.flush()

        self.audit.stage(
            action=AuditAction.SET_CURRENT,
            entity_type="term",
            entity_id=term.id,
            actor_id=admin.id,
            actor_name=admin.name,
            details=f"Set as current term: {term.term_name}",
            school_id=school_id,
        )
        logger.info(f"School {school_id} current term set to {term.term_code}")
        return self.get_current(school_id)

    # ==========================================
    # Deletion
    # ==========================================

    def _clear_pointer(self, school_id: str, *, year_id: int | None = None, term_id: int | None = None) -> None:
        result = self.db.execute(
            select(SchoolCalendar).where(SchoolCalendar.school_id == school_id)
        )
        calendar = result.scalar_one_or_none()
        if calendar is None:
            return
        if year_id is not None and calendar.current_year_id == year_id:
            calendar.current_year_id = None
        if term_id is not None and calendar.current_term_id == term_id:
            calendar.current_term_id = None
        self.db.flush()

    def _delete_year(
        self,
        school_id: str,
        year_id: int,
        caller_id: str,
        caller_name: str,
        action: AuditAction,
    ) -> None:
        year = self.get_year(year_id, school_id)

        term_count = self.db.execute(
            select(func.count()).select_from(Term).where(Term.academic_year_id == year.id)
        ).scalar() or 0
        if term_count:
            raise DependentDataExistsError(
                f"Cannot delete academic year {year.year_name} with associated terms. Delete terms first.",
                details={"academic_year_id": year.id, "terms": term_count},
            )

        self._clear_pointer(school_id, year_id=year.id)
        self.db.delete(year)
        self.db.flush()

        prefix = "Bulk deleted" if action == AuditAction.BULK_DELETE else "Deleted"
        self.audit.stage(
            action=action,
            entity_type="academic_year",
            entity_id=year_id,
            actor_id=caller_id,
            actor_name=caller_name,
            details=f"{prefix} academic year: {year.year_name}",
            school_id=school_id,
        )

    def delete_year(self, school_id: str, year_id: int, caller_id: str) -> None:
        """Delete an academic year that has no terms."""
        admin = self.directory.require_admin(caller_id, school_id)
        self._delete_year(school_id, year_id, admin.id, admin.name, AuditAction.DELETE)
        logger.info(f"Academic year {year_id} deleted by {caller_id}")

    def bulk_delete_years(
        self,
        school_id: str,
        year_ids: list[int],
        caller_id: str,
    ) -> BulkOperationResponse:
        """Delete several years; each one succeeds or fails on its own."""
        admin = self.directory.require_admin(caller_id, school_id)

        results: list[BulkItemResult] = []
        for year_id in year_ids:
            try:
                with self.db.begin_nested():
                    self._delete_year(school_id, year_id, admin.id, admin.name, AuditAction.BULK_DELETE)
                results.append(BulkItemResult(id=str(year_id), success=True))
            except AppException as e:
                results.append(BulkItemResult(id=str(year_id), success=False, error=e.message))

        response = BulkOperationResponse.from_results(results)
        logger.info(
            f"Bulk delete of academic years by {caller_id}: "
            f"{response.successful} deleted, {response.failed} failed"
        )
        return response

    def delete_term(self, school_id: str, term_id: int, caller_id: str) -> None:
        """Delete a term, clearing the current-term pointer if it pointed here."""
        admin = self.directory.require_admin(caller_id, school_id)
        term = self.get_term(term_id, school_id)

        self._clear_pointer(school_id, term_id=term.id)
        self.db.delete(term)
        self.db.flush()

        self.audit.stage(
            action=AuditAction.DELETE,
            entity_type="term",
            entity_id=term_id,
            actor_id=admin.id,
            actor_name=admin.name,
            details=f"Deleted term: {term.term_name}",
            school_id=school_id,
        )
        logger.info(f"Term {term_id} deleted by {caller_id}")
