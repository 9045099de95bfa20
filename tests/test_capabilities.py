from types import SimpleNamespace

import pytest

from gradebook.core.exceptions import LockedExamError, TeacherEditForbiddenError
from gradebook.models.audit import AuditAction
from gradebook.models.exam import ExamStatus
from gradebook.models.staff import StaffRole
from gradebook.services.capabilities import Denial, MarkOperation, resolve_mark_capabilities


def make_exam(status, unlocked=False):
    return SimpleNamespace(status=status, unlocked=unlocked)


@pytest.mark.parametrize("status", [ExamStatus.DRAFT, ExamStatus.SCHEDULED, ExamStatus.ONGOING])
@pytest.mark.parametrize("role", list(StaffRole))
def test_open_exams_are_writable_without_audit(status, role):
    caps = resolve_mark_capabilities(role, make_exam(status))
    assert caps.can_write
    assert caps.enforce() is None


@pytest.mark.parametrize("status", [ExamStatus.COMPLETED, ExamStatus.PUBLISHED])
@pytest.mark.parametrize("role", [StaffRole.SUBJECT_TEACHER, StaffRole.CLASS_TEACHER])
@pytest.mark.parametrize("unlocked", [False, True])
def test_teachers_never_write_closed_exams(status, role, unlocked):
    caps = resolve_mark_capabilities(role, make_exam(status, unlocked))
    assert caps.denial == Denial.TEACHER_FORBIDDEN
    assert not caps.allows(admin_override=True)
    with pytest.raises(TeacherEditForbiddenError):
        caps.enforce(admin_override=True)


def test_admin_needs_override_on_locked_exam():
    caps = resolve_mark_capabilities(StaffRole.ADMIN, make_exam(ExamStatus.PUBLISHED))
    assert caps.requires_override
    with pytest.raises(LockedExamError):
        caps.enforce()
    assert caps.enforce(admin_override=True) == AuditAction.EDIT_MARKS_COMPLETED_EXAM


def test_admin_on_unlocked_exam_is_audited():
    caps = resolve_mark_capabilities(StaffRole.ADMIN, make_exam(ExamStatus.COMPLETED, unlocked=True))
    assert caps.can_write
    assert caps.enforce() == AuditAction.EDIT_MARKS_UNLOCKED_EXAM


def test_delete_operation_uses_delete_audit_tags():
    locked = resolve_mark_capabilities(StaffRole.ADMIN, make_exam(ExamStatus.COMPLETED), MarkOperation.DELETE)
    unlocked = resolve_mark_capabilities(
        StaffRole.ADMIN, make_exam(ExamStatus.COMPLETED, unlocked=True), MarkOperation.DELETE
    )
    assert locked.enforce(admin_override=True) == AuditAction.DELETE_MARKS_COMPLETED_EXAM
    assert unlocked.enforce() == AuditAction.DELETE_MARKS_UNLOCKED_EXAM
