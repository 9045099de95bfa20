"""Marks ledger schemas."""

from datetime import datetime
from decimal import Decimal

from pydantic import Field

from gradebook.models.mark import SubmissionStatus
from gradebook.models.staff import StaffRole
from gradebook.schemas.common import BaseSchema


class ActorRef(BaseSchema):
    """Who is entering, reviewing or deleting marks."""

    id: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., min_length=1, max_length=255)
    role: StaffRole


# ==========================================
# Entry
# ==========================================

class MarkEntryBody(BaseSchema):
    """Single mark entry for one exam x student x subject."""

    exam_id: int
    student_id: str = Field(..., min_length=1, max_length=64)
    student_name: str = Field(..., min_length=1, max_length=255)
    class_id: str = Field(..., min_length=1, max_length=64)
    class_name: str = Field(..., min_length=1, max_length=100)
    subject_id: str = Field(..., min_length=1, max_length=64)
    subject_name: str | None = Field(None, max_length=255)
    class_score: Decimal = Field(Decimal("0"), ge=0)
    exam_score: Decimal = Field(Decimal("0"), ge=0)
    max_marks: Decimal | None = Field(
        None,
        description="Defaults to the exam's max marks for the subject",
    )
    is_absent: bool = False
    entry_reason: str | None = None


class MarkEntryRequest(MarkEntryBody):
    """Mark entry attributed to the staff member making it."""

    entered_by: ActorRef


class BulkMarkItem(BaseSchema):
    """One student's scores inside a quick-entry batch."""

    student_id: str = Field(..., min_length=1, max_length=64)
    student_name: str = Field(..., min_length=1, max_length=255)
    class_score: Decimal = Field(Decimal("0"), ge=0)
    exam_score: Decimal = Field(Decimal("0"), ge=0)
    is_absent: bool = False


class BulkMarkEntryBody(BaseSchema):
    """Quick entry of one subject's marks for a whole class."""

    exam_id: int
    class_id: str = Field(..., min_length=1, max_length=64)
    class_name: str = Field(..., min_length=1, max_length=100)
    subject_id: str = Field(..., min_length=1, max_length=64)
    subject_name: str | None = Field(None, max_length=255)
    max_marks: Decimal | None = None
    entry_reason: str | None = None
    marks: list[BulkMarkItem] = Field(..., min_length=1)


class BulkMarkEntryRequest(BulkMarkEntryBody):
    entered_by: ActorRef


class MarkResponse(BaseSchema):
    """Mark row response schema."""

    id: int
    school_id: str
    exam_id: int
    exam_code: str
    exam_name: str
    student_id: str
    student_name: str
    class_id: str
    class_name: str
    subject_id: str
    subject_name: str
    class_score: Decimal
    exam_score: Decimal
    max_marks: Decimal
    is_absent: bool
    total_score: Decimal
    percentage: Decimal
    grade: str
    grade_number: int
    remarks: str
    position: int | None
    entered_by: str
    entered_by_role: StaffRole
    entered_by_name: str
    entry_reason: str | None
    submission_status: SubmissionStatus
    verified_by: str | None
    verified_at: datetime | None
    created_at: datetime
    updated_at: datetime


# ==========================================
# Review workflow
# ==========================================

class MarkIdsRequest(BaseSchema):
    """A batch of mark ids."""

    mark_ids: list[int] = Field(..., min_length=1)


class ReviewResult(BaseSchema):
    """Outcome of a review status transition."""

    updated: int
    missing: list[int] = []


# ==========================================
# Grade book
# ==========================================

class StudentGradeSummary(BaseSchema):
    """A student's aggregate across subjects, ranked within the class."""

    student_id: str
    student_name: str
    total_score: Decimal
    max_score: Decimal
    average: Decimal
    subject_count: int
    position: int
