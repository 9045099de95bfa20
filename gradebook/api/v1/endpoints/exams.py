"""Exam lifecycle endpoints."""

from io import BytesIO
from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from gradebook.core.database import get_db
from gradebook.core.dependencies import AdminStaff, CurrentStaff
from gradebook.core.scheduler import queue_audit_relay
from gradebook.models.exam import Department, ExamStatus, ExamType
from gradebook.schemas.common import MessageResponse, PaginatedResponse
from gradebook.schemas.exam import (
    ExamCreate,
    ExamFilter,
    ExamResponse,
    ExamUnlockRequest,
    ExamUpdate,
)
from gradebook.services.exam import ExamService
from gradebook.services.export import MarksExportService
from gradebook.services.ranking import RankingService

router = APIRouter()


@router.post("", response_model=ExamResponse)
def create_exam(
    request: ExamCreate,
    staff: AdminStaff,
    db: Annotated[Session, Depends(get_db)],
):
    """
    Create an exam in draft state.
    Subjects may be sent as a list or as the legacy JSON string.
    """
    service = ExamService(db)
    return service.create_exam(staff.school_id, request, staff.id)


@router.get("", response_model=PaginatedResponse[ExamResponse])
def list_exams(
    staff: CurrentStaff,
    db: Annotated[Session, Depends(get_db)],
    status: ExamStatus | None = None,
    exam_type: ExamType | None = None,
    academic_year_id: int | None = None,
    term_id: int | None = None,
    department: Department | None = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=500),
):
    """List the caller's school exams with filtering and pagination."""
    service = ExamService(db)
    filters = ExamFilter(
        status=status,
        exam_type=exam_type,
        academic_year_id=academic_year_id,
        term_id=term_id,
        department=department,
    )
    exams, total = service.list_exams(
        staff.school_id,
        filters=filters,
        page=page,
        page_size=page_size,
    )

    return PaginatedResponse(
        items=exams,
        total=total,
        page=page,
        page_size=page_size,
        total_pages=(total + page_size - 1) // page_size,
    )


@router.get("/{exam_id}", response_model=ExamResponse)
def get_exam(
    exam_id: int,
    staff: CurrentStaff,
    db: Annotated[Session, Depends(get_db)],
):
    service = ExamService(db)
    return service.get_exam(exam_id, staff.school_id)


@router.patch("/{exam_id}", response_model=ExamResponse)
def update_exam(
    exam_id: int,
    request: ExamUpdate,
    staff: AdminStaff,
    db: Annotated[Session, Depends(get_db)],
    admin_override: bool = False,
):
    """
    Partially update an exam.
    Published exams need `admin_override=true` unless unlocked.
    """
    service = ExamService(db)
    return service.update_exam(exam_id, request, staff.id, admin_override=admin_override)


@router.post("/{exam_id}/publish", response_model=ExamResponse)
def publish_exam(
    exam_id: int,
    staff: AdminStaff,
    db: Annotated[Session, Depends(get_db)],
):
    service = ExamService(db)
    return service.publish_exam(exam_id, staff.id)


@router.post("/{exam_id}/unlock", response_model=ExamResponse)
def unlock_exam(
    exam_id: int,
    request: ExamUnlockRequest,
    staff: AdminStaff,
    db: Annotated[Session, Depends(get_db)],
    background_tasks: BackgroundTasks,
):
    """Reopen a completed or published exam for corrections. Audited."""
    service = ExamService(db)
    exam = service.unlock_exam(exam_id, staff.id, request.reason)
    queue_audit_relay(background_tasks)
    return exam


@router.post("/{exam_id}/lock", response_model=ExamResponse)
def lock_exam(
    exam_id: int,
    staff: AdminStaff,
    db: Annotated[Session, Depends(get_db)],
    background_tasks: BackgroundTasks,
):
    """Close an unlocked exam again. Audited."""
    service = ExamService(db)
    exam = service.lock_exam(exam_id, staff.id)
    queue_audit_relay(background_tasks)
    return exam


@router.delete("/{exam_id}", response_model=MessageResponse)
def delete_exam(
    exam_id: int,
    staff: AdminStaff,
    db: Annotated[Session, Depends(get_db)],
):
    """Delete an exam together with all of its marks."""
    service = ExamService(db)
    removed = service.delete_exam(exam_id, staff.id)
    return MessageResponse(message=f"Exam deleted with {removed} marks")


@router.post("/{exam_id}/rank", response_model=dict[str, int])
def rank_exam(
    exam_id: int,
    staff: CurrentStaff,
    db: Annotated[Session, Depends(get_db)],
):
    """Recompute subject positions. Returns the number of ranked rows per subject."""
    ExamService(db).get_exam(exam_id, staff.school_id)
    return RankingService(db).rank_exam(exam_id)


@router.get("/{exam_id}/export")
def export_exam_marks(
    exam_id: int,
    staff: CurrentStaff,
    db: Annotated[Session, Depends(get_db)],
):
    """Download the exam's marks sheet as an Excel file."""
    service = MarksExportService(db)
    content = service.export_exam_marks(exam_id, staff.school_id)

    return StreamingResponse(
        BytesIO(content),
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f"attachment; filename=exam_{exam_id}_marks.xlsx"},
    )
