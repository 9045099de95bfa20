"""Exam lifecycle service."""

import logging
import random
from datetime import datetime, timezone

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from gradebook.core.exceptions import (
    InvalidInputError,
    InvalidTransitionError,
    LockedExamError,
    NotFoundError,
)
from gradebook.models.audit import AuditAction
from gradebook.models.exam import Exam, ExamStatus, ExamSubject
from gradebook.models.mark import StudentMark
from gradebook.models.staff import StaffMember
from gradebook.schemas.exam import (
    ExamCreate,
    ExamFilter,
    ExamResponse,
    ExamSubjectSpec,
    ExamUpdate,
)
from gradebook.services.audit import AuditEmitter
from gradebook.services.directory import StaffDirectory

logger = logging.getLogger(__name__)


def generate_exam_code() -> str:
    """Human-readable exam code: EXM followed by eight digits."""
    return f"EXM{random.randint(0, 99_999_999):08d}"


class ExamService:
    """Exam lifecycle manager.

    Status moves forward only:
    draft -> scheduled -> ongoing -> completed -> published.
    ``unlocked`` is an overlay on completed/published exams that reopens
    marks for correction without changing the status.
    """

    def __init__(self, db: Session):
        self.db = db
        self.directory = StaffDirectory(db)
        self.audit = AuditEmitter(db)

    def _build_subjects(self, subjects: list[ExamSubjectSpec]) -> list[ExamSubject]:
        return [
            ExamSubject(
                subject_id=item.subject_id,
                name=item.name,
                max_marks=item.max_marks,
            )
            for item in subjects
        ]

    def get_exam(self, exam_id: int, school_id: str | None = None) -> Exam:
        """Get exam by ID, optionally scoped to a school."""
        query = select(Exam).where(Exam.id == exam_id)
        if school_id is not None:
            query = query.where(Exam.school_id == school_id)
        exam = self.db.execute(query).scalar_one_or_none()
        if not exam:
            raise NotFoundError("Exam", str(exam_id))
        return exam

    def _get_owned_exam(self, exam_id: int, caller_id: str) -> tuple[Exam, StaffMember]:
        """Load the exam and check the caller administers its school."""
        exam = self.get_exam(exam_id)
        caller = self.directory.require_admin(caller_id, exam.school_id)
        return exam, caller

    def create_exam(
        self,
        school_id: str,
        request: ExamCreate,
        creator_id: str,
    ) -> ExamResponse:
        """Create an exam in draft state."""
        self.directory.require_admin(creator_id, school_id)

        exam = Exam(
            school_id=school_id,
            exam_code=generate_exam_code(),
            exam_name=request.exam_name,
            exam_type=request.exam_type,
            academic_year_id=request.academic_year_id,
            term_id=request.term_id,
            start_date=request.start_date,
            end_date=request.end_date,
            department=request.department,
            target_classes=request.target_classes,
            total_marks=request.total_marks,
            weightage=request.weightage,
            instructions=request.instructions,
            status=ExamStatus.DRAFT,
            unlocked=False,
            created_by=creator_id,
            subjects=self._build_subjects(request.subjects),
        )
        self.db.add(exam)
        self.db.flush()
        self.db.refresh(exam)

        logger.info(f"Exam {exam.exam_code} created for school {school_id} by {creator_id}")
        return ExamResponse.model_validate(exam)

    def list_exams(
        self,
        school_id: str,
        filters: ExamFilter | None = None,
        page: int = 1,
        page_size: int = 50,
    ) -> tuple[list[ExamResponse], int]:
        """List a school's exams with filtering."""
        query = select(Exam).where(Exam.school_id == school_id)

        if filters:
            if filters.status:
                query = query.where(Exam.status == filters.status)
            if filters.exam_type:
                query = query.where(Exam.exam_type == filters.exam_type)
            if filters.academic_year_id:
                query = query.where(Exam.academic_year_id == filters.academic_year_id)
            if filters.term_id:
                query = query.where(Exam.term_id == filters.term_id)
            if filters.department:
                query = query.where(Exam.department == filters.department)

        count_result = self.db.execute(
            select(func.count()).select_from(query.subquery())
        )
        total = count_result.scalar() or 0

        query = (
            query
            .order_by(Exam.start_date.desc(), Exam.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        result = self.db.execute(query)
        return [ExamResponse.model_validate(e) for e in result.scalars().all()], total

    def update_exam(
        self,
        exam_id: int,
        request: ExamUpdate,
        caller_id: str,
        admin_override: bool = False,
    ) -> ExamResponse:
        """Partially update an exam.

        A published exam that is not unlocked can only be edited with
        ``admin_override``; status may only move forward.
        """
        exam, _ = self._get_owned_exam(exam_id, caller_id)

        # Callers are resolved as admins above, so the override is admin-tier
        if exam.status == ExamStatus.PUBLISHED and not exam.unlocked and not admin_override:
            raise LockedExamError(exam.status.value, exam.id)

        update_data = request.model_dump(exclude_unset=True, exclude={"subjects"})

        new_status = update_data.get("status")
        if new_status is not None and new_status.rank < exam.status.rank:
            raise InvalidTransitionError(
                f"Cannot move exam from {exam.status.value} back to {new_status.value}",
                current_status=exam.status.value,
            )

        start = update_data.get("start_date", exam.start_date)
        end = update_data.get("end_date", exam.end_date)
        if end < start:
            raise InvalidInputError("end_date must not be before start_date")

        for field, value in update_data.items():
            setattr(exam, field, value)

        if "subjects" in request.model_fields_set and request.subjects is not None:
            exam.subjects.clear()
            self.db.flush()
            exam.subjects.extend(self._build_subjects(request.subjects))

        exam.updated_at = datetime.now(timezone.utc)
        self.db.flush()
        self.db.refresh(exam)

        logger.info(f"Exam {exam.exam_code} updated by {caller_id}: {sorted(request.model_fields_set)}")
        return ExamResponse.model_validate(exam)

    def publish_exam(self, exam_id: int, caller_id: str) -> ExamResponse:
        """Move the exam to published."""
        exam, _ = self._get_owned_exam(exam_id, caller_id)

        exam.status = ExamStatus.PUBLISHED
        exam.updated_at = datetime.now(timezone.utc)
        self.db.flush()

        logger.info(f"Exam {exam.exam_code} published by {caller_id}")
        return ExamResponse.model_validate(exam)

    def unlock_exam(self, exam_id: int, caller_id: str, reason: str) -> ExamResponse:
        """Reopen a completed or published exam for corrections."""
        exam, caller = self._get_owned_exam(exam_id, caller_id)

        if not exam.status.is_closed:
            raise InvalidTransitionError(
                "Only completed or published exams can be unlocked",
                current_status=exam.status.value,
            )

        now = datetime.now(timezone.utc)
        exam.unlocked = True
        exam.unlocked_by = caller.id
        exam.unlocked_by_name = caller.name
        exam.unlocked_at = now
        exam.unlock_reason = reason
        exam.updated_at = now
        self.db.flush()

        self.audit.stage(
            action=AuditAction.UNLOCK_EXAM,
            entity_type="exams",
            entity_id=exam.id,
            actor_id=caller.id,
            actor_name=caller.name,
            details=f'Unlocked exam "{exam.exam_name}" for corrections. Reason: {reason}',
            school_id=exam.school_id,
        )

        logger.info(f"Exam {exam.exam_code} unlocked by {caller_id}")
        return ExamResponse.model_validate(exam)

    def lock_exam(self, exam_id: int, caller_id: str) -> ExamResponse:
        """Close an unlocked exam again; the status is unchanged."""
        exam, caller = self._get_owned_exam(exam_id, caller_id)

        if not exam.status.is_closed:
            raise InvalidTransitionError(
                "Only completed or published exams can be locked",
                current_status=exam.status.value,
            )

        exam.unlocked = False
        exam.updated_at = datetime.now(timezone.utc)
        self.db.flush()

        self.audit.stage(
            action=AuditAction.LOCK_EXAM,
            entity_type="exams",
            entity_id=exam.id,
            actor_id=caller.id,
            actor_name=caller.name,
            details=f'Locked exam "{exam.exam_name}" after corrections',
            school_id=exam.school_id,
        )

        logger.info(f"Exam {exam.exam_code} locked by {caller_id}")
        return ExamResponse.model_validate(exam)

    def delete_exam(self, exam_id: int, caller_id: str) -> int:
        """Delete the exam and all of its marks. Returns the number of marks removed."""
        exam, _ = self._get_owned_exam(exam_id, caller_id)

        result = self.db.execute(
            delete(StudentMark).where(StudentMark.exam_id == exam.id)
        )
        removed = result.rowcount or 0

        self.db.delete(exam)
        self.db.flush()

        logger.info(f"Exam {exam.exam_code} deleted by {caller_id} with {removed} marks")
        return removed
