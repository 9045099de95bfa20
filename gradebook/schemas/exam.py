"""Exam schemas."""

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from pydantic import AliasChoices, Field, field_validator, model_validator

from gradebook.core.exceptions import InvalidInputError
from gradebook.models.exam import Department, ExamStatus, ExamType
from gradebook.schemas.common import BaseSchema


# ==========================================
# Subject definitions
# ==========================================

class ExamSubjectSpec(BaseSchema):
    """Maximum achievable score for one subject of an exam."""

    subject_id: str = Field(
        ...,
        min_length=1,
        max_length=64,
        validation_alias=AliasChoices("subject_id", "subjectId"),
    )
    name: str = Field(..., min_length=1, max_length=255)
    max_marks: Decimal = Field(
        ...,
        gt=0,
        validation_alias=AliasChoices("max_marks", "maxMarks"),
    )


def parse_subjects(value: Any) -> list[dict[str, Any]] | list[ExamSubjectSpec]:
    """Accept a subject list or the legacy serialized JSON blob.

    Only the outer shape is checked here; each record is then validated as an
    ``ExamSubjectSpec``.
    """
    if isinstance(value, (str, bytes)):
        try:
            value = json.loads(value)
        except json.JSONDecodeError as exc:
            raise InvalidInputError(
                "Malformed subjects list",
                details={"error": str(exc)},
            )
    if not isinstance(value, list):
        raise InvalidInputError("Subjects must be a list of {subjectId, name, maxMarks} records")
    for item in value:
        if not isinstance(item, (dict, ExamSubjectSpec)):
            raise InvalidInputError("Each subject must be a {subjectId, name, maxMarks} record")
    return value


def ensure_unique_subjects(subjects: list[ExamSubjectSpec]) -> list[ExamSubjectSpec]:
    seen: set[str] = set()
    for item in subjects:
        if item.subject_id in seen:
            raise InvalidInputError(
                f"Subject {item.subject_id} is listed more than once",
                details={"subject_id": item.subject_id},
            )
        seen.add(item.subject_id)
    return subjects


# ==========================================
# Exam CRUD
# ==========================================

class ExamCreate(BaseSchema):
    """Exam creation schema."""

    exam_name: str = Field(..., min_length=1, max_length=255)
    exam_type: ExamType
    academic_year_id: int | None = None
    term_id: int | None = None
    start_date: date
    end_date: date
    department: Department | None = None
    target_classes: list[str] | None = None
    subjects: list[ExamSubjectSpec] = Field(default_factory=list)
    total_marks: Decimal = Field(..., ge=0)
    weightage: Decimal = Field(..., ge=0)
    instructions: str | None = None

    @field_validator("subjects", mode="before")
    @classmethod
    def parse_subject_blob(cls, v: Any) -> Any:
        return parse_subjects(v)

    @field_validator("subjects")
    @classmethod
    def validate_unique_subjects(cls, v: list[ExamSubjectSpec]) -> list[ExamSubjectSpec]:
        return ensure_unique_subjects(v)

    @model_validator(mode="after")
    def validate_dates(self) -> "ExamCreate":
        if self.end_date < self.start_date:
            raise InvalidInputError("end_date must not be before start_date")
        return self


class ExamUpdate(BaseSchema):
    """Partial exam update schema."""

    exam_name: str | None = Field(None, min_length=1, max_length=255)
    exam_type: ExamType | None = None
    start_date: date | None = None
    end_date: date | None = None
    subjects: list[ExamSubjectSpec] | None = None
    total_marks: Decimal | None = Field(None, ge=0)
    weightage: Decimal | None = Field(None, ge=0)
    instructions: str | None = None
    status: ExamStatus | None = None

    @field_validator("subjects", mode="before")
    @classmethod
    def parse_subject_blob(cls, v: Any) -> Any:
        if v is None:
            return v
        return parse_subjects(v)

    @field_validator("subjects")
    @classmethod
    def validate_unique_subjects(
        cls, v: list[ExamSubjectSpec] | None
    ) -> list[ExamSubjectSpec] | None:
        if v is None:
            return v
        return ensure_unique_subjects(v)

    @model_validator(mode="after")
    def reject_null_required_fields(self) -> "ExamUpdate":
        # Omitted fields stay unchanged; only instructions may be cleared
        cleared = sorted(
            name
            for name in self.model_fields_set
            if name != "instructions" and getattr(self, name) is None
        )
        if cleared:
            raise InvalidInputError(
                f"Fields cannot be set to null: {', '.join(cleared)}",
                details={"fields": cleared},
            )
        return self


class ExamResponse(BaseSchema):
    """Exam response schema."""

    id: int
    school_id: str
    exam_code: str
    exam_name: str
    exam_type: ExamType
    academic_year_id: int | None
    term_id: int | None
    start_date: date
    end_date: date
    department: Department | None
    target_classes: list[str] | None
    subjects: list[ExamSubjectSpec]
    total_marks: Decimal
    weightage: Decimal
    instructions: str | None
    status: ExamStatus
    unlocked: bool
    unlocked_by: str | None
    unlocked_by_name: str | None
    unlocked_at: datetime | None
    unlock_reason: str | None
    created_by: str
    created_at: datetime
    updated_at: datetime


class ExamFilter(BaseSchema):
    """Exam filtering options."""

    status: ExamStatus | None = None
    exam_type: ExamType | None = None
    academic_year_id: int | None = None
    term_id: int | None = None
    department: Department | None = None


# ==========================================
# Lock / unlock
# ==========================================

class ExamUnlockRequest(BaseSchema):
    """Reason supplied when reopening a closed exam."""

    reason: str = Field(..., min_length=1)
