"""Resolve what a role may do to an exam's marks in its current state.

Every mark write and delete consults one ``MarkCapabilities`` value instead of
re-deriving role logic inline.
"""

from dataclasses import dataclass
from enum import Enum

from gradebook.core.exceptions import LockedExamError, TeacherEditForbiddenError
from gradebook.models.audit import AuditAction
from gradebook.models.exam import Exam
from gradebook.models.staff import StaffRole


class MarkOperation(str, Enum):
    EDIT = "edit"
    DELETE = "delete"


class Denial(str, Enum):
    TEACHER_FORBIDDEN = "teacher_forbidden"
    LOCKED = "locked"


_AUDIT_ACTIONS = {
    (MarkOperation.EDIT, True): AuditAction.EDIT_MARKS_UNLOCKED_EXAM,
    (MarkOperation.EDIT, False): AuditAction.EDIT_MARKS_COMPLETED_EXAM,
    (MarkOperation.DELETE, True): AuditAction.DELETE_MARKS_UNLOCKED_EXAM,
    (MarkOperation.DELETE, False): AuditAction.DELETE_MARKS_COMPLETED_EXAM,
}


@dataclass(frozen=True)
class MarkCapabilities:
    """Normalized permission set for one role against one exam."""

    exam_status: str
    can_write: bool
    requires_override: bool = False
    denial: Denial | None = None
    audit_action: AuditAction | None = None

    def allows(self, admin_override: bool = False) -> bool:
        if self.can_write:
            return True
        return self.requires_override and admin_override

    def enforce(self, admin_override: bool = False) -> AuditAction | None:
        """Raise the matching gate error, or return the audit tag to record."""
        if self.allows(admin_override):
            return self.audit_action
        if self.denial == Denial.TEACHER_FORBIDDEN:
            raise TeacherEditForbiddenError(self.exam_status)
        raise LockedExamError(self.exam_status)


def resolve_mark_capabilities(
    role: StaffRole,
    exam: Exam,
    operation: MarkOperation = MarkOperation.EDIT,
) -> MarkCapabilities:
    """Work out the mark permissions of ``role`` on ``exam``."""
    status = exam.status.value
    if not exam.status.is_closed:
        return MarkCapabilities(exam_status=status, can_write=True)

    if role.is_teacher:
        return MarkCapabilities(
            exam_status=status,
            can_write=False,
            denial=Denial.TEACHER_FORBIDDEN,
        )

    audit_action = _AUDIT_ACTIONS[(operation, bool(exam.unlocked))]
    if exam.unlocked:
        return MarkCapabilities(exam_status=status, can_write=True, audit_action=audit_action)
    return MarkCapabilities(
        exam_status=status,
        can_write=False,
        requires_override=True,
        denial=Denial.LOCKED,
        audit_action=audit_action,
    )
