"""Marks ledger endpoints."""

from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from gradebook.core.database import get_db
from gradebook.core.dependencies import CurrentStaff, actor_ref
from gradebook.core.scheduler import queue_audit_relay
from gradebook.schemas.common import BulkOperationResponse, MessageResponse
from gradebook.schemas.mark import (
    BulkMarkEntryBody,
    BulkMarkEntryRequest,
    MarkEntryBody,
    MarkEntryRequest,
    MarkIdsRequest,
    MarkResponse,
    ReviewResult,
    StudentGradeSummary,
)
from gradebook.services.marks import MarksService

router = APIRouter()


@router.post("", response_model=MarkResponse)
def enter_mark(
    body: MarkEntryBody,
    staff: CurrentStaff,
    db: Annotated[Session, Depends(get_db)],
    background_tasks: BackgroundTasks,
    admin_override: bool = False,
):
    """
    Create or update the mark for one student and subject.
    Marks of completed/published exams can only be changed by an admin,
    either after unlocking or with `admin_override=true`.
    """
    service = MarksService(db)
    request = MarkEntryRequest(**body.model_dump(), entered_by=actor_ref(staff))
    mark = service.enter_mark(request, admin_override=admin_override)
    queue_audit_relay(background_tasks)
    return mark


@router.post("/quick-entry", response_model=BulkOperationResponse)
def quick_enter_marks(
    body: BulkMarkEntryBody,
    staff: CurrentStaff,
    db: Annotated[Session, Depends(get_db)],
    background_tasks: BackgroundTasks,
    admin_override: bool = False,
):
    """Enter one subject's marks for a class; results are reported per student."""
    service = MarksService(db)
    request = BulkMarkEntryRequest(**body.model_dump(), entered_by=actor_ref(staff))
    result = service.quick_enter_marks(request, admin_override=admin_override)
    queue_audit_relay(background_tasks)
    return result


@router.delete("/{mark_id}", response_model=MessageResponse)
def delete_mark(
    mark_id: int,
    staff: CurrentStaff,
    db: Annotated[Session, Depends(get_db)],
    background_tasks: BackgroundTasks,
    admin_override: bool = False,
):
    service = MarksService(db)
    service.delete_mark(mark_id, actor_ref(staff), admin_override=admin_override)
    queue_audit_relay(background_tasks)
    return MessageResponse(message="Mark deleted successfully")


@router.post("/bulk-delete", response_model=BulkOperationResponse)
def bulk_delete_marks(
    request: MarkIdsRequest,
    staff: CurrentStaff,
    db: Annotated[Session, Depends(get_db)],
    background_tasks: BackgroundTasks,
    admin_override: bool = False,
):
    service = MarksService(db)
    result = service.bulk_delete_marks(request.mark_ids, actor_ref(staff), admin_override=admin_override)
    queue_audit_relay(background_tasks)
    return result


@router.post("/submit", response_model=ReviewResult)
def submit_to_class_teacher(
    request: MarkIdsRequest,
    staff: CurrentStaff,
    db: Annotated[Session, Depends(get_db)],
):
    """Submit marks for class-teacher review."""
    service = MarksService(db)
    return service.submit_to_class_teacher(request.mark_ids, school_id=staff.school_id)


@router.post("/verify", response_model=ReviewResult)
def verify_marks(
    request: MarkIdsRequest,
    staff: CurrentStaff,
    db: Annotated[Session, Depends(get_db)],
):
    """Verify marks as the calling class teacher or admin."""
    service = MarksService(db)
    return service.verify_marks(
        request.mark_ids,
        verified_by=staff.id,
        role=staff.role,
        school_id=staff.school_id,
    )


@router.get("/exam/{exam_id}", response_model=list[MarkResponse])
def get_exam_marks(
    exam_id: int,
    staff: CurrentStaff,
    db: Annotated[Session, Depends(get_db)],
    class_id: str | None = None,
    subject_id: str | None = None,
    student_id: str | None = None,
):
    """Marks of an exam, narrowed by class, class and subject, or student."""
    service = MarksService(db)
    if student_id:
        return service.get_student_exam_marks(staff.school_id, exam_id, student_id)
    if class_id and subject_id:
        return service.get_class_subject_marks(staff.school_id, exam_id, class_id, subject_id)
    if class_id:
        return service.get_class_marks(staff.school_id, exam_id, class_id)
    return service.get_exam_marks(staff.school_id, exam_id)


@router.get("/student/{student_id}", response_model=list[MarkResponse])
def get_student_all_marks(
    student_id: str,
    staff: CurrentStaff,
    db: Annotated[Session, Depends(get_db)],
):
    service = MarksService(db)
    return service.get_student_all_marks(staff.school_id, student_id)


@router.get("/class/{class_id}/summary", response_model=list[StudentGradeSummary])
def get_class_grade_summary(
    class_id: str,
    staff: CurrentStaff,
    db: Annotated[Session, Depends(get_db)],
    exam_id: int | None = None,
):
    """Per-student totals for a class, ranked by average."""
    service = MarksService(db)
    return service.get_class_grade_summary(staff.school_id, class_id, exam_id)
