import re
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from gradebook.core.exceptions import (
    InvalidInputError,
    InvalidTransitionError,
    LockedExamError,
    NotFoundError,
    UnauthorizedError,
)
from gradebook.models.audit import AuditAction, AuditLog, AuditOutboxEvent
from gradebook.models.exam import ExamStatus, ExamSubject
from gradebook.models.mark import StudentMark
from gradebook.schemas.exam import ExamFilter, ExamUpdate
from gradebook.services.audit import AuditEmitter
from gradebook.services.exam import ExamService
from tests.factories import OTHER_SCHOOL, SCHOOL, enter, exam_definition


def complete(db, exam_id):
    return ExamService(db).update_exam(exam_id, ExamUpdate(status=ExamStatus.COMPLETED), "admin-1")


def test_create_exam_starts_as_locked_draft(exam):
    assert exam.status == ExamStatus.DRAFT
    assert exam.unlocked is False
    assert exam.school_id == SCHOOL
    assert re.fullmatch(r"EXM\d{8}", exam.exam_code)
    assert [(s.subject_id, s.max_marks) for s in exam.subjects] == [
        ("math", Decimal("100")),
        ("eng", Decimal("50")),
    ]


@pytest.mark.parametrize("creator_id", ["teacher-1", "admin-2", "nobody"])
def test_create_exam_requires_admin_of_school(db, creator_id):
    with pytest.raises(UnauthorizedError):
        ExamService(db).create_exam(SCHOOL, exam_definition(), creator_id)


def test_list_exams_is_scoped_and_filtered(db, exam):
    service = ExamService(db)
    service.create_exam(OTHER_SCHOOL, exam_definition(exam_name="Elsewhere"), "admin-2")
    service.create_exam(SCHOOL, exam_definition(exam_name="Quiz"), "admin-1")
    complete(db, exam.id)

    items, total = service.list_exams(SCHOOL)
    assert total == 2
    assert {e.exam_name for e in items} == {"End of Term 1", "Quiz"}

    items, total = service.list_exams(SCHOOL, ExamFilter(status=ExamStatus.COMPLETED))
    assert total == 1
    assert items[0].id == exam.id


def test_get_exam_scoped_to_school(db, exam):
    service = ExamService(db)
    assert service.get_exam(exam.id, SCHOOL).id == exam.id
    with pytest.raises(NotFoundError):
        service.get_exam(exam.id, OTHER_SCHOOL)


def test_update_merges_partial_fields(db, exam):
    updated = ExamService(db).update_exam(
        exam.id,
        ExamUpdate(exam_name="Mid Term", status=ExamStatus.SCHEDULED),
        "admin-1",
    )
    assert updated.exam_name == "Mid Term"
    assert updated.status == ExamStatus.SCHEDULED
    assert updated.weightage == Decimal("100")


def test_update_replaces_subject_rows(db, exam):
    updated = ExamService(db).update_exam(
        exam.id,
        ExamUpdate(subjects='[{"subjectId": "sci", "name": "Science", "maxMarks": 80}]'),
        "admin-1",
    )
    assert [s.subject_id for s in updated.subjects] == ["sci"]
    count = db.execute(
        select(func.count()).select_from(ExamSubject).where(ExamSubject.exam_id == exam.id)
    ).scalar()
    assert count == 1


@pytest.mark.parametrize("field", ["exam_name", "start_date", "status", "subjects", "weightage"])
def test_update_rejects_null_for_required_fields(db, exam, field):
    with pytest.raises(InvalidInputError) as exc_info:
        ExamService(db).update_exam(exam.id, ExamUpdate(**{field: None}), "admin-1")
    assert exc_info.value.details["fields"] == [field]


def test_update_can_clear_instructions(db, exam):
    service = ExamService(db)
    service.update_exam(exam.id, ExamUpdate(instructions="No phones"), "admin-1")

    updated = service.update_exam(exam.id, ExamUpdate(instructions=None), "admin-1")

    assert updated.instructions is None
    assert updated.exam_name == "End of Term 1"


def test_update_by_other_school_admin_is_unauthorized(db, exam):
    with pytest.raises(UnauthorizedError):
        ExamService(db).update_exam(exam.id, ExamUpdate(exam_name="Hijack"), "admin-2")


def test_update_missing_exam_is_not_found(db):
    with pytest.raises(NotFoundError):
        ExamService(db).update_exam(999, ExamUpdate(exam_name="Ghost"), "admin-1")


def test_status_cannot_move_backwards(db, exam):
    complete(db, exam.id)
    with pytest.raises(InvalidTransitionError):
        ExamService(db).update_exam(exam.id, ExamUpdate(status=ExamStatus.ONGOING), "admin-1")


def test_published_exam_update_needs_override(db, exam):
    service = ExamService(db)
    service.publish_exam(exam.id, "admin-1")

    with pytest.raises(LockedExamError):
        service.update_exam(exam.id, ExamUpdate(instructions="Bring calculators"), "admin-1")

    updated = service.update_exam(
        exam.id, ExamUpdate(instructions="Bring calculators"), "admin-1", admin_override=True
    )
    assert updated.instructions == "Bring calculators"


def test_publish_sets_status(db, exam):
    assert ExamService(db).publish_exam(exam.id, "admin-1").status == ExamStatus.PUBLISHED


@pytest.mark.parametrize("status", [ExamStatus.DRAFT, ExamStatus.SCHEDULED, ExamStatus.ONGOING])
def test_unlock_rejected_before_completion(db, exam, status):
    service = ExamService(db)
    if status != ExamStatus.DRAFT:
        service.update_exam(exam.id, ExamUpdate(status=status), "admin-1")

    with pytest.raises(InvalidTransitionError):
        service.unlock_exam(exam.id, "admin-1", "Fix typo")
    assert service.get_exam(exam.id).unlocked is False


def test_unlock_completed_exam_records_one_audit(db, exam):
    complete(db, exam.id)
    unlocked = ExamService(db).unlock_exam(exam.id, "admin-1", "Wrong scores for JHS 1")

    assert unlocked.unlocked is True
    assert unlocked.status == ExamStatus.COMPLETED
    assert unlocked.unlocked_by == "admin-1"
    assert unlocked.unlocked_by_name == "Ama Admin"
    assert unlocked.unlock_reason == "Wrong scores for JHS 1"
    assert unlocked.unlocked_at is not None

    AuditEmitter(db).dispatch_pending()
    logs = db.execute(select(AuditLog)).scalars().all()
    assert len(logs) == 1
    assert logs[0].action == AuditAction.UNLOCK_EXAM.value
    assert logs[0].entity_type == "exams"
    assert logs[0].entity_id == str(exam.id)
    assert "Wrong scores for JHS 1" in logs[0].details


def test_unlock_requires_admin(db, exam):
    complete(db, exam.id)
    with pytest.raises(UnauthorizedError):
        ExamService(db).unlock_exam(exam.id, "teacher-1", "Please")


def test_lock_keeps_status_and_is_audited(db, exam):
    service = ExamService(db)
    service.publish_exam(exam.id, "admin-1")
    service.unlock_exam(exam.id, "admin-1", "Corrections")

    locked = service.lock_exam(exam.id, "admin-1")
    assert locked.unlocked is False
    assert locked.status == ExamStatus.PUBLISHED

    actions = db.execute(select(AuditOutboxEvent.action).order_by(AuditOutboxEvent.id)).scalars().all()
    assert actions == [AuditAction.UNLOCK_EXAM.value, AuditAction.LOCK_EXAM.value]


def test_lock_rejected_on_open_exam(db, exam):
    with pytest.raises(InvalidTransitionError):
        ExamService(db).lock_exam(exam.id, "admin-1")


def test_delete_exam_removes_marks_and_subjects(db, exam, admin):
    enter(db, exam.id, admin, student_id="stu-1")
    enter(db, exam.id, admin, student_id="stu-2")
    enter(db, exam.id, admin, student_id="stu-1", subject_id="eng", class_score=Decimal("10"), exam_score=Decimal("20"))

    service = ExamService(db)
    removed = service.delete_exam(exam.id, "admin-1")

    assert removed == 3
    assert db.execute(select(func.count()).select_from(StudentMark)).scalar() == 0
    assert db.execute(select(func.count()).select_from(ExamSubject)).scalar() == 0
    with pytest.raises(NotFoundError):
        service.get_exam(exam.id)


def test_delete_exam_checks_tenant(db, exam):
    with pytest.raises(UnauthorizedError):
        ExamService(db).delete_exam(exam.id, "admin-2")
