"""Builders shared by the test modules."""

from datetime import date
from decimal import Decimal

from gradebook.core.security import create_access_token
from gradebook.models.exam import ExamType
from gradebook.schemas.exam import ExamCreate
from gradebook.schemas.mark import MarkEntryRequest
from gradebook.services.marks import MarksService

SCHOOL = "school-a"
OTHER_SCHOOL = "school-b"


def exam_definition(**overrides) -> ExamCreate:
    data = {
        "exam_name": "End of Term 1",
        "exam_type": ExamType.END_OF_TERM,
        "start_date": date(2026, 3, 2),
        "end_date": date(2026, 3, 13),
        "subjects": [
            {"subject_id": "math", "name": "Mathematics", "max_marks": 100},
            {"subject_id": "eng", "name": "English", "max_marks": 50},
        ],
        "total_marks": 150,
        "weightage": 100,
    }
    data.update(overrides)
    return ExamCreate(**data)


def mark_request(exam_id, actor, student_id="stu-1", subject_id="math", **overrides) -> MarkEntryRequest:
    data = {
        "exam_id": exam_id,
        "student_id": student_id,
        "student_name": f"Student {student_id}",
        "class_id": "jhs-1",
        "class_name": "JHS 1",
        "subject_id": subject_id,
        "class_score": Decimal("20"),
        "exam_score": Decimal("50"),
        "entered_by": actor,
    }
    data.update(overrides)
    return MarkEntryRequest(**data)


def enter(db, exam_id, actor, admin_override=False, **kwargs):
    """Enter one mark through the ledger."""
    return MarksService(db).enter_mark(mark_request(exam_id, actor, **kwargs), admin_override=admin_override)


def auth_headers(staff_id: str, school_id: str = SCHOOL) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(staff_id, school_id)}"}
