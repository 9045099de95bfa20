"""Academic calendar endpoints."""

from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from gradebook.core.database import get_db
from gradebook.core.dependencies import AdminStaff, CurrentStaff
from gradebook.core.scheduler import queue_audit_relay
from gradebook.schemas.academic import (
    AcademicYearCreate,
    AcademicYearResponse,
    CurrentCalendarResponse,
    TermCreate,
    TermResponse,
    YearIdsRequest,
)
from gradebook.schemas.common import BulkOperationResponse, MessageResponse
from gradebook.services.academic import AcademicCalendarService

router = APIRouter()


@router.get("/current", response_model=CurrentCalendarResponse)
def get_current_calendar(
    staff: CurrentStaff,
    db: Annotated[Session, Depends(get_db)],
):
    """The school's current academic year and term."""
    service = AcademicCalendarService(db)
    return service.get_current(staff.school_id)


# ==========================================
# Academic years
# ==========================================

@router.get("/years", response_model=list[AcademicYearResponse])
def list_years(
    staff: CurrentStaff,
    db: Annotated[Session, Depends(get_db)],
):
    service = AcademicCalendarService(db)
    return service.list_years(staff.school_id)


@router.post("/years", response_model=AcademicYearResponse)
def create_year(
    request: AcademicYearCreate,
    staff: AdminStaff,
    db: Annotated[Session, Depends(get_db)],
    background_tasks: BackgroundTasks,
):
    service = AcademicCalendarService(db)
    year = service.create_year(staff.school_id, request, staff.id)
    queue_audit_relay(background_tasks)
    return year


@router.post("/years/{year_id}/set-current", response_model=CurrentCalendarResponse)
def set_current_year(
    year_id: int,
    staff: AdminStaff,
    db: Annotated[Session, Depends(get_db)],
    background_tasks: BackgroundTasks,
):
    service = AcademicCalendarService(db)
    current = service.set_current_year(staff.school_id, year_id, staff.id)
    queue_audit_relay(background_tasks)
    return current


@router.delete("/years/{year_id}", response_model=MessageResponse)
def delete_year(
    year_id: int,
    staff: AdminStaff,
    db: Annotated[Session, Depends(get_db)],
    background_tasks: BackgroundTasks,
):
    """Delete an academic year. Fails while the year still has terms."""
    service = AcademicCalendarService(db)
    service.delete_year(staff.school_id, year_id, staff.id)
    queue_audit_relay(background_tasks)
    return MessageResponse(message="Academic year deleted successfully")


@router.post("/years/bulk-delete", response_model=BulkOperationResponse)
def bulk_delete_years(
    request: YearIdsRequest,
    staff: AdminStaff,
    db: Annotated[Session, Depends(get_db)],
    background_tasks: BackgroundTasks,
):
    service = AcademicCalendarService(db)
    result = service.bulk_delete_years(staff.school_id, request.ids, staff.id)
    queue_audit_relay(background_tasks)
    return result


# ==========================================
# Terms
# ==========================================

@router.get("/terms", response_model=list[TermResponse])
def list_terms(
    staff: CurrentStaff,
    db: Annotated[Session, Depends(get_db)],
    academic_year_id: int | None = None,
):
    service = AcademicCalendarService(db)
    return service.list_terms(staff.school_id, academic_year_id)


@router.post("/terms", response_model=TermResponse)
def create_term(
    request: TermCreate,
    staff: AdminStaff,
    db: Annotated[Session, Depends(get_db)],
    background_tasks: BackgroundTasks,
):
    service = AcademicCalendarService(db)
    term = service.create_term(staff.school_id, request, staff.id)
    queue_audit_relay(background_tasks)
    return term


@router.post("/terms/{term_id}/set-current", response_model=CurrentCalendarResponse)
def set_current_term(
    term_id: int,
    staff: AdminStaff,
    db: Annotated[Session, Depends(get_db)],
    background_tasks: BackgroundTasks,
):
    service = AcademicCalendarService(db)
    current = service.set_current_term(staff.school_id, term_id, staff.id)
    queue_audit_relay(background_tasks)
    return current


@router.delete("/terms/{term_id}", response_model=MessageResponse)
def delete_term(
    term_id: int,
    staff: AdminStaff,
    db: Annotated[Session, Depends(get_db)],
    background_tasks: BackgroundTasks,
):
    service = AcademicCalendarService(db)
    service.delete_term(staff.school_id, term_id, staff.id)
    queue_audit_relay(background_tasks)
    return MessageResponse(message="Term deleted successfully")
