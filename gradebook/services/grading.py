"""Grading engine: percentage to grade band."""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from gradebook.core.exceptions import InvalidInputError

# Pass mark used by analytics, as a percentage
PASS_THRESHOLD = Decimal("40")

HUNDRED = Decimal("100")
TWO_PLACES = Decimal("0.01")


@dataclass(frozen=True)
class GradeResult:
    grade: str
    grade_number: int
    remark: str


# (lower bound inclusive, grade number, remark), evaluated top-down
GRADE_BANDS: tuple[tuple[Decimal, int, str], ...] = (
    (Decimal("80"), 1, "Excellent"),
    (Decimal("70"), 2, "Very Good"),
    (Decimal("65"), 3, "Good"),
    (Decimal("60"), 4, "High Average"),
    (Decimal("55"), 5, "Average"),
    (Decimal("50"), 6, "Low Average"),
    (Decimal("45"), 7, "Pass"),
    (Decimal("40"), 8, "Pass"),
)
FAIL_GRADE = GradeResult(grade="9", grade_number=9, remark="Fail")


def grade(percentage: Decimal | float | int) -> GradeResult:
    """Map a percentage to its grade band; first matching band wins."""
    value = Decimal(str(percentage))
    for lower_bound, number, remark in GRADE_BANDS:
        if value >= lower_bound:
            return GradeResult(grade=str(number), grade_number=number, remark=remark)
    return FAIL_GRADE


def quantize(value: Decimal) -> Decimal:
    """Round to two decimal places, half up."""
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def compute_percentage(total: Decimal, max_marks: Decimal) -> Decimal:
    """Percentage of ``max_marks`` achieved, rounded to two places.

    Raises InvalidInputError when ``max_marks`` is zero or negative.
    """
    if max_marks is None or max_marks <= 0:
        raise InvalidInputError(
            "max_marks must be greater than zero",
            details={"max_marks": str(max_marks)},
        )
    return quantize(total / max_marks * HUNDRED)


def is_pass(percentage: Decimal) -> bool:
    return percentage >= PASS_THRESHOLD
