"""Database models package."""

from gradebook.models.academic import AcademicYear, CalendarStatus, SchoolCalendar, Term
from gradebook.models.audit import AuditAction, AuditLog, AuditOutboxEvent
from gradebook.models.exam import Department, Exam, ExamStatus, ExamSubject, ExamType
from gradebook.models.mark import StudentMark, SubmissionStatus
from gradebook.models.staff import StaffMember, StaffRole

__all__ = [
    # Staff
    "StaffMember",
    "StaffRole",
    # Exam
    "Exam",
    "ExamSubject",
    "ExamStatus",
    "ExamType",
    "Department",
    # Marks
    "StudentMark",
    "SubmissionStatus",
    # Audit
    "AuditLog",
    "AuditAction",
    "AuditOutboxEvent",
    # Academic calendar
    "AcademicYear",
    "Term",
    "SchoolCalendar",
    "CalendarStatus",
]
