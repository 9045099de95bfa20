"""Marks ledger service."""

import logging
from collections import defaultdict
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from gradebook.core.exceptions import AppException, InvalidInputError, NotFoundError
from gradebook.models.exam import Exam
from gradebook.models.mark import StudentMark, SubmissionStatus
from gradebook.models.staff import StaffRole
from gradebook.schemas.common import BulkItemResult, BulkOperationResponse
from gradebook.schemas.mark import (
    ActorRef,
    BulkMarkEntryRequest,
    MarkEntryRequest,
    MarkResponse,
    ReviewResult,
    StudentGradeSummary,
)
from gradebook.services.audit import AuditEmitter
from gradebook.services.capabilities import MarkOperation, resolve_mark_capabilities
from gradebook.services.directory import StaffDirectory
from gradebook.services.grading import HUNDRED, compute_percentage, grade, quantize

logger = logging.getLogger(__name__)

_VERIFIED_STATUS = {
    StaffRole.CLASS_TEACHER: SubmissionStatus.VERIFIED_BY_CLASS_TEACHER,
    StaffRole.ADMIN: SubmissionStatus.VERIFIED_BY_ADMIN,
}


class MarksService:
    """Marks ledger: one row per exam x student x subject.

    Writes upsert on that natural key. Whether a write or delete is allowed
    depends on the caller's role and the exam's lifecycle state, see
    ``gradebook.services.capabilities``.
    """

    def __init__(self, db: Session):
        self.db = db
        self.directory = StaffDirectory(db)
        self.audit = AuditEmitter(db)

    # ==========================================
    # Lookups
    # ==========================================

    def _get_exam(self, exam_id: int) -> Exam:
        result = self.db.execute(select(Exam).where(Exam.id == exam_id))
        exam = result.scalar_one_or_none()
        if not exam:
            raise NotFoundError("Exam", str(exam_id))
        return exam

    def get_mark(self, mark_id: int, school_id: str | None = None) -> StudentMark:
        """Get mark row by ID."""
        query = select(StudentMark).where(StudentMark.id == mark_id)
        if school_id is not None:
            query = query.where(StudentMark.school_id == school_id)
        mark = self.db.execute(query).scalar_one_or_none()
        if not mark:
            raise NotFoundError("Mark", str(mark_id))
        return mark

    def _get_existing_mark(self, exam_id: int, student_id: str, subject_id: str) -> StudentMark | None:
        result = self.db.execute(
            select(StudentMark).where(
                StudentMark.exam_id == exam_id,
                StudentMark.student_id == student_id,
                StudentMark.subject_id == subject_id,
            )
        )
        return result.scalar_one_or_none()

    def _resolve_subject(
        self,
        exam: Exam,
        subject_id: str,
        subject_name: str | None,
        max_marks: Decimal | None,
    ) -> tuple[str, Decimal]:
        """Subject label and max marks, defaulting to the exam's definition."""
        definition = exam.subject(subject_id)
        if max_marks is None and definition is not None:
            max_marks = definition.max_marks
        if max_marks is None or max_marks <= 0:
            raise InvalidInputError(
                f"max_marks must be greater than zero for subject {subject_id}",
                details={"subject_id": subject_id},
            )
        name = subject_name or (definition.name if definition else subject_id)
        return name, max_marks

    # ==========================================
    # Entry
    # ==========================================

    def _write_mark(
        self,
        exam: Exam,
        *,
        student_id: str,
        student_name: str,
        class_id: str,
        class_name: str,
        subject_id: str,
        subject_name: str,
        class_score: Decimal,
        exam_score: Decimal,
        max_marks: Decimal,
        is_absent: bool,
        entered_by: ActorRef,
        entry_reason: str | None,
    ) -> StudentMark:
        """Compute derived fields and upsert the row."""
        total_score = class_score + exam_score
        if total_score > max_marks:
            raise InvalidInputError(
                f"Total score ({total_score}) exceeds max marks ({max_marks})",
                details={"student_id": student_id, "subject_id": subject_id},
            )
        percentage = compute_percentage(total_score, max_marks)
        grade_info = grade(percentage)

        values = {
            "class_score": class_score,
            "exam_score": exam_score,
            "total_score": total_score,
            "max_marks": max_marks,
            "percentage": percentage,
            "grade": grade_info.grade,
            "grade_number": grade_info.grade_number,
            "remarks": grade_info.remark,
            "is_absent": is_absent,
            "entered_by": entered_by.id,
            "entered_by_role": entered_by.role,
            "entered_by_name": entered_by.name,
            "entry_reason": entry_reason,
        }

        mark = self._get_existing_mark(exam.id, student_id, subject_id)
        if mark:
            for field, value in values.items():
                setattr(mark, field, value)
            mark.updated_at = datetime.now(timezone.utc)
        else:
            mark = StudentMark(
                school_id=exam.school_id,
                exam_id=exam.id,
                exam_code=exam.exam_code,
                exam_name=exam.exam_name,
                student_id=student_id,
                student_name=student_name,
                class_id=class_id,
                class_name=class_name,
                subject_id=subject_id,
                subject_name=subject_name,
                submission_status=SubmissionStatus.DRAFT,
                **values,
            )
            self.db.add(mark)
        self.db.flush()
        return mark

    def enter_mark(
        self,
        request: MarkEntryRequest,
        admin_override: bool = False,
    ) -> MarkResponse:
        """Create or update the mark for (exam, student, subject)."""
        exam = self._get_exam(request.exam_id)
        actor = request.entered_by
        self.directory.require_role(actor.id, exam.school_id, actor.role)

        capabilities = resolve_mark_capabilities(actor.role, exam, MarkOperation.EDIT)
        audit_action = capabilities.enforce(admin_override)

        subject_name, max_marks = self._resolve_subject(
            exam, request.subject_id, request.subject_name, request.max_marks
        )

        mark = self._write_mark(
            exam,
            student_id=request.student_id,
            student_name=request.student_name,
            class_id=request.class_id,
            class_name=request.class_name,
            subject_id=request.subject_id,
            subject_name=subject_name,
            class_score=request.class_score,
            exam_score=request.exam_score,
            max_marks=max_marks,
            is_absent=request.is_absent,
            entered_by=actor,
            entry_reason=request.entry_reason,
        )

        if audit_action:
            self.audit.stage(
                action=audit_action,
                entity_type="studentMarks",
                entity_id=mark.id,
                actor_id=actor.id,
                actor_name=actor.name,
                details=(
                    f"Admin edited marks for {mark.student_name} in {mark.subject_name} "
                    f"({exam.exam_name}). Reason: {request.entry_reason or 'Not provided'}"
                ),
                school_id=exam.school_id,
            )

        return MarkResponse.model_validate(mark)

    def quick_enter_marks(
        self,
        request: BulkMarkEntryRequest,
        admin_override: bool = False,
    ) -> BulkOperationResponse:
        """Enter one subject's marks for many students.

        The lock gate is checked once for the batch; each student is then
        written in its own savepoint and reported individually.
        """
        exam = self._get_exam(request.exam_id)
        actor = request.entered_by
        self.directory.require_role(actor.id, exam.school_id, actor.role)

        capabilities = resolve_mark_capabilities(actor.role, exam, MarkOperation.EDIT)
        audit_action = capabilities.enforce(admin_override)

        subject_name, max_marks = self._resolve_subject(
            exam, request.subject_id, request.subject_name, request.max_marks
        )

        results: list[BulkItemResult] = []
        for item in request.marks:
            try:
                with self.db.begin_nested():
                    mark = self._write_mark(
                        exam,
                        student_id=item.student_id,
                        student_name=item.student_name,
                        class_id=request.class_id,
                        class_name=request.class_name,
                        subject_id=request.subject_id,
                        subject_name=subject_name,
                        class_score=item.class_score,
                        exam_score=item.exam_score,
                        max_marks=max_marks,
                        is_absent=item.is_absent,
                        entered_by=actor,
                        entry_reason=request.entry_reason,
                    )
                    if audit_action:
                        self.audit.stage(
                            action=audit_action,
                            entity_type="studentMarks",
                            entity_id=mark.id,
                            actor_id=actor.id,
                            actor_name=actor.name,
                            details=(
                                f"Admin edited marks for {item.student_name} in {subject_name} "
                                f"({exam.exam_name}). Reason: {request.entry_reason or 'Not provided'}"
                            ),
                            school_id=exam.school_id,
                        )
                results.append(BulkItemResult(id=item.student_id, success=True))
            except AppException as e:
                results.append(BulkItemResult(id=item.student_id, success=False, error=e.message))

        response = BulkOperationResponse.from_results(results)
        logger.info(
            f"Quick entry for exam {exam.exam_code} subject {request.subject_id}: "
            f"{response.successful}/{response.total} saved"
        )
        return response

    # ==========================================
    # Deletion
    # ==========================================

    def delete_mark(
        self,
        mark_id: int,
        caller: ActorRef,
        admin_override: bool = False,
    ) -> None:
        """Delete a mark row, subject to the same lock gate as entry."""
        mark = self.get_mark(mark_id)
        exam = self._get_exam(mark.exam_id)
        self.directory.require_role(caller.id, exam.school_id, caller.role)

        capabilities = resolve_mark_capabilities(caller.role, exam, MarkOperation.DELETE)
        audit_action = capabilities.enforce(admin_override)

        details = (
            f"Deleted marks for {mark.student_name} in {mark.subject_name} ({exam.exam_name})"
        )
        self.db.delete(mark)
        self.db.flush()

        if audit_action:
            self.audit.stage(
                action=audit_action,
                entity_type="studentMarks",
                entity_id=mark_id,
                actor_id=caller.id,
                actor_name=caller.name,
                details=details,
                school_id=exam.school_id,
            )
        logger.info(f"Mark {mark_id} deleted by {caller.id}")

    def bulk_delete_marks(
        self,
        mark_ids: list[int],
        caller: ActorRef,
        admin_override: bool = False,
    ) -> BulkOperationResponse:
        """Delete many marks; each is attempted independently."""
        results: list[BulkItemResult] = []
        for mark_id in mark_ids:
            try:
                with self.db.begin_nested():
                    self.delete_mark(mark_id, caller, admin_override)
                results.append(BulkItemResult(id=str(mark_id), success=True))
            except AppException as e:
                results.append(BulkItemResult(id=str(mark_id), success=False, error=e.message))
        return BulkOperationResponse.from_results(results)

    # ==========================================
    # Review workflow
    # ==========================================

    def _load_marks(
        self,
        mark_ids: list[int],
        school_id: str | None = None,
    ) -> tuple[list[StudentMark], list[int]]:
        query = select(StudentMark).where(StudentMark.id.in_(mark_ids))
        if school_id is not None:
            query = query.where(StudentMark.school_id == school_id)
        result = self.db.execute(query)
        marks = list(result.scalars().all())
        found = {m.id for m in marks}
        return marks, [mark_id for mark_id in mark_ids if mark_id not in found]

    def submit_to_class_teacher(
        self,
        mark_ids: list[int],
        school_id: str | None = None,
    ) -> ReviewResult:
        """Mark rows as submitted for class-teacher review. Scores are untouched."""
        marks, missing = self._load_marks(mark_ids, school_id)
        now = datetime.now(timezone.utc)
        for mark in marks:
            mark.submission_status = SubmissionStatus.SUBMITTED_TO_CLASS_TEACHER
            mark.updated_at = now
        self.db.flush()
        return ReviewResult(updated=len(marks), missing=missing)

    def verify_marks(
        self,
        mark_ids: list[int],
        verified_by: str,
        role: StaffRole,
        school_id: str | None = None,
    ) -> ReviewResult:
        """Record class-teacher or admin verification. Scores are untouched."""
        status = _VERIFIED_STATUS.get(role)
        if status is None:
            raise InvalidInputError(
                "Only a class teacher or an admin can verify marks",
                details={"role": role.value},
            )
        marks, missing = self._load_marks(mark_ids, school_id)
        now = datetime.now(timezone.utc)
        for mark in marks:
            mark.submission_status = status
            mark.verified_by = verified_by
            mark.verified_at = now
            mark.updated_at = now
        self.db.flush()
        return ReviewResult(updated=len(marks), missing=missing)

    # ==========================================
    # Queries
    # ==========================================

    def _marks_for_exam(self, school_id: str, exam_id: int, *criteria) -> list[StudentMark]:
        result = self.db.execute(
            select(StudentMark)
            .where(
                StudentMark.school_id == school_id,
                StudentMark.exam_id == exam_id,
                *criteria,
            )
            .order_by(StudentMark.id)
        )
        return list(result.scalars().all())

    def get_exam_marks(self, school_id: str, exam_id: int) -> list[StudentMark]:
        return self._marks_for_exam(school_id, exam_id)

    def get_student_exam_marks(self, school_id: str, exam_id: int, student_id: str) -> list[StudentMark]:
        return self._marks_for_exam(school_id, exam_id, StudentMark.student_id == student_id)

    def get_class_marks(self, school_id: str, exam_id: int, class_id: str) -> list[StudentMark]:
        return self._marks_for_exam(school_id, exam_id, StudentMark.class_id == class_id)

    def get_class_subject_marks(
        self, school_id: str, exam_id: int, class_id: str, subject_id: str
    ) -> list[StudentMark]:
        return self._marks_for_exam(
            school_id,
            exam_id,
            StudentMark.class_id == class_id,
            StudentMark.subject_id == subject_id,
        )

    def get_student_all_marks(self, school_id: str, student_id: str) -> list[StudentMark]:
        """All of a student's marks, newest first."""
        result = self.db.execute(
            select(StudentMark)
            .where(
                StudentMark.school_id == school_id,
                StudentMark.student_id == student_id,
            )
            .order_by(StudentMark.created_at.desc(), StudentMark.id.desc())
        )
        return list(result.scalars().all())

    def get_class_grade_summary(
        self,
        school_id: str,
        class_id: str,
        exam_id: int | None = None,
    ) -> list[StudentGradeSummary]:
        """Per-student totals for a class, ranked by average.

        Positions here are a read-only projection and are not persisted.
        """
        query = select(StudentMark).where(
            StudentMark.school_id == school_id,
            StudentMark.class_id == class_id,
        )
        if exam_id is not None:
            query = query.where(StudentMark.exam_id == exam_id)
        marks = self.db.execute(query.order_by(StudentMark.id)).scalars().all()

        totals: dict[str, dict] = defaultdict(
            lambda: {"name": "", "total": Decimal("0"), "max": Decimal("0"), "count": 0}
        )
        for mark in marks:
            entry = totals[mark.student_id]
            entry["name"] = mark.student_name
            entry["total"] += mark.total_score
            entry["max"] += mark.max_marks
            entry["count"] += 1

        summaries = [
            {
                "student_id": student_id,
                "student_name": entry["name"],
                "total_score": entry["total"],
                "max_score": entry["max"],
                "average": quantize(entry["total"] / entry["max"] * HUNDRED) if entry["max"] > 0 else Decimal("0"),
                "subject_count": entry["count"],
            }
            for student_id, entry in totals.items()
        ]
        summaries.sort(key=lambda s: s["average"], reverse=True)

        return [
            StudentGradeSummary(position=index + 1, **summary)
            for index, summary in enumerate(summaries)
        ]
