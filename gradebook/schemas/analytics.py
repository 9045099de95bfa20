"""Exam analytics schemas."""

from datetime import date
from decimal import Decimal

from gradebook.schemas.common import BaseSchema


class OverallStats(BaseSchema):
    total_students: int
    total_marks_entered: int
    average_percentage: Decimal
    passed_count: int
    failed_count: int
    absent_count: int
    pass_rate: Decimal


class GradeBucket(BaseSchema):
    grade: int
    count: int


class SubjectStats(BaseSchema):
    subject_id: str
    subject_name: str
    total_score: Decimal
    max_score: Decimal
    student_count: int
    average_percentage: Decimal
    highest_score: Decimal
    lowest_score: Decimal
    pass_count: int
    fail_count: int


class ClassStats(BaseSchema):
    class_id: str
    class_name: str
    student_count: int
    total_percentage: Decimal
    average_percentage: Decimal
    pass_count: int
    fail_count: int
    absent_count: int
    top_score: Decimal


class TopStudent(BaseSchema):
    student_id: str
    student_name: str
    class_name: str
    total_score: Decimal
    total_max_marks: Decimal
    percentage: Decimal
    subject_count: int


class ExamAnalytics(BaseSchema):
    """Rollups derived from one exam's marks snapshot."""

    exam_id: int
    exam_name: str
    exam_code: str
    overall: OverallStats
    grade_distribution: list[GradeBucket]
    subject_stats: list[SubjectStats]
    class_stats: list[ClassStats]
    top_students: list[TopStudent]
    top_classes: list[ClassStats]


class ExamSummaryRow(BaseSchema):
    """One completed exam in the school-wide overview."""

    exam_id: int
    exam_name: str
    exam_code: str
    total_students: int
    average_percentage: Decimal
    pass_rate: Decimal
    completion_date: date


# ==========================================
# Marks ledger rollups
# ==========================================

class ClassCoverage(BaseSchema):
    class_id: str
    class_name: str
    student_count: int


class ExamMarksStats(BaseSchema):
    """How far mark entry has got for an exam."""

    exam_id: int
    total_marks_entries: int
    unique_students: int
    classes_covered: list[ClassCoverage]


class StudentExamTrend(BaseSchema):
    """A student's totals in one exam."""

    exam_id: int
    exam_name: str
    exam_code: str
    exam_date: date
    subject_count: int
    total_score: Decimal
    max_score: Decimal
    average: Decimal


class PerformanceBuckets(BaseSchema):
    excellent: int = 0
    very_good: int = 0
    good: int = 0
    average: int = 0
    below_average: int = 0
    poor: int = 0


class ClassPerformanceDistribution(BaseSchema):
    """Spread of per-student averages within a class."""

    class_id: str
    distribution: PerformanceBuckets
    total_students: int
    class_average: Decimal
    highest_score: Decimal
    lowest_score: Decimal


class SubjectPerformance(BaseSchema):
    subject_id: str
    subject_name: str
    total_score: Decimal
    max_score: Decimal
    student_count: int
    average: Decimal
    highest: Decimal
    lowest: Decimal
    pass_rate: Decimal
