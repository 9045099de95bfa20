from decimal import Decimal

import pytest

from gradebook.core.exceptions import InvalidInputError
from gradebook.services.grading import compute_percentage, grade, is_pass


@pytest.mark.parametrize(
    "percentage, number, remark",
    [
        ("100", 1, "Excellent"),
        ("80", 1, "Excellent"),
        ("79.99", 2, "Very Good"),
        ("70", 2, "Very Good"),
        ("69.99", 3, "Good"),
        ("65", 3, "Good"),
        ("60", 4, "High Average"),
        ("55", 5, "Average"),
        ("50", 6, "Low Average"),
        ("45", 7, "Pass"),
        ("40", 8, "Pass"),
        ("39.99", 9, "Fail"),
        ("0", 9, "Fail"),
    ],
)
def test_grade_band_boundaries(percentage, number, remark):
    result = grade(Decimal(percentage))
    assert result.grade_number == number
    assert result.grade == str(number)
    assert result.remark == remark


def test_grade_accepts_floats_and_ints():
    assert grade(85).grade_number == 1
    assert grade(44.5).grade_number == 8


def test_compute_percentage_rounds_half_up():
    assert compute_percentage(Decimal("2"), Decimal("3")) == Decimal("66.67")
    assert compute_percentage(Decimal("1"), Decimal("8")) == Decimal("12.50")
    assert compute_percentage(Decimal("0.005"), Decimal("1")) == Decimal("0.50")


@pytest.mark.parametrize("max_marks", [Decimal("0"), Decimal("-10"), None])
def test_compute_percentage_rejects_non_positive_max(max_marks):
    with pytest.raises(InvalidInputError):
        compute_percentage(Decimal("10"), max_marks)


def test_pass_threshold_is_inclusive():
    assert is_pass(Decimal("40"))
    assert not is_pass(Decimal("39.99"))
