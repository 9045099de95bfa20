"""Academic calendar schemas."""

from datetime import date, datetime

from pydantic import Field, model_validator

from gradebook.core.exceptions import InvalidInputError
from gradebook.models.academic import CalendarStatus
from gradebook.schemas.common import BaseSchema


class AcademicYearCreate(BaseSchema):
    year_name: str = Field(..., min_length=1, max_length=100)
    start_date: date
    end_date: date
    description: str | None = None
    set_as_current: bool = False

    @model_validator(mode="after")
    def validate_dates(self) -> "AcademicYearCreate":
        if self.end_date < self.start_date:
            raise InvalidInputError("end_date must not be before start_date")
        return self


class AcademicYearResponse(BaseSchema):
    id: int
    school_id: str
    year_code: str
    year_name: str
    start_date: date
    end_date: date
    status: CalendarStatus
    description: str | None
    created_by: str
    created_at: datetime
    updated_at: datetime


class TermCreate(BaseSchema):
    academic_year_id: int
    term_name: str = Field(..., min_length=1, max_length=100)
    term_number: int = Field(..., ge=1, le=3)
    start_date: date
    end_date: date
    set_as_current: bool = False

    @model_validator(mode="after")
    def validate_dates(self) -> "TermCreate":
        if self.end_date < self.start_date:
            raise InvalidInputError("end_date must not be before start_date")
        return self


class TermResponse(BaseSchema):
    id: int
    school_id: str
    academic_year_id: int
    term_code: str
    term_name: str
    term_number: int
    start_date: date
    end_date: date
    status: CalendarStatus
    created_by: str
    created_at: datetime
    updated_at: datetime


class CurrentCalendarResponse(BaseSchema):
    """The school's current year and term, if set."""

    school_id: str
    current_year: AcademicYearResponse | None = None
    current_term: TermResponse | None = None


class YearIdsRequest(BaseSchema):
    """A batch of academic year ids."""

    ids: list[int] = Field(..., min_length=1)
