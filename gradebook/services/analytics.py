"""Exam analytics computed from the marks ledger."""

import logging
from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from gradebook.core.config import settings
from gradebook.core.exceptions import NotFoundError
from gradebook.models.exam import Exam, ExamStatus
from gradebook.models.mark import StudentMark
from gradebook.schemas.analytics import (
    ClassCoverage,
    ClassPerformanceDistribution,
    ClassStats,
    ExamAnalytics,
    ExamMarksStats,
    ExamSummaryRow,
    GradeBucket,
    OverallStats,
    PerformanceBuckets,
    StudentExamTrend,
    SubjectPerformance,
    SubjectStats,
    TopStudent,
)
from gradebook.services.grading import HUNDRED, PASS_THRESHOLD, is_pass, quantize

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def _ratio(numerator: Decimal, denominator: Decimal) -> Decimal:
    """numerator / denominator as a percentage, 0 when the denominator is 0."""
    if not denominator:
        return ZERO
    return quantize(Decimal(numerator) / Decimal(denominator) * HUNDRED)


def _mean(values: list[Decimal]) -> Decimal:
    if not values:
        return ZERO
    return quantize(sum(values, ZERO) / len(values))


@dataclass
class _SubjectAccumulator:
    subject_name: str
    max_score: Decimal
    total_score: Decimal = ZERO
    total_max: Decimal = ZERO
    student_count: int = 0
    highest: Decimal | None = None
    lowest: Decimal | None = None
    pass_count: int = 0
    fail_count: int = 0


@dataclass
class _ClassAccumulator:
    class_name: str
    students: set[str] = field(default_factory=set)
    percentages: list[Decimal] = field(default_factory=list)
    pass_count: int = 0
    fail_count: int = 0
    absent_count: int = 0
    top_score: Decimal = ZERO


@dataclass
class _StudentAccumulator:
    student_name: str
    class_name: str
    total_score: Decimal = ZERO
    total_max: Decimal = ZERO
    subject_count: int = 0


class AnalyticsService:
    """Read-only rollups over one exam's marks.

    Nothing is cached; each call recomputes from the current rows. The pass
    threshold is 40% everywhere, and absentees never count towards pass/fail
    or averages.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_exam(self, exam_id: int, school_id: str | None = None) -> Exam:
        query = select(Exam).where(Exam.id == exam_id)
        if school_id is not None:
            query = query.where(Exam.school_id == school_id)
        exam = self.db.execute(query).scalar_one_or_none()
        if not exam:
            raise NotFoundError("Exam", str(exam_id))
        return exam

    def _exam_marks(self, exam_id: int) -> list[StudentMark]:
        result = self.db.execute(
            select(StudentMark)
            .where(StudentMark.exam_id == exam_id)
            .order_by(StudentMark.id)
        )
        return list(result.scalars().all())

    def get_exam_analytics(
        self,
        exam_id: int,
        school_id: str | None = None,
    ) -> ExamAnalytics | None:
        """Full analytics for an exam, or None when no marks were entered."""
        exam = self.get_exam(exam_id, school_id)
        marks = self._exam_marks(exam_id)
        if not marks:
            return None

        present = [m for m in marks if not m.is_absent]
        passed = [m for m in present if is_pass(m.percentage)]
        failed_count = len(present) - len(passed)
        absent_count = len(marks) - len(present)

        overall = OverallStats(
            total_students=len({m.student_id for m in marks}),
            total_marks_entered=len(marks),
            average_percentage=_mean([m.percentage for m in present]),
            passed_count=len(passed),
            failed_count=failed_count,
            absent_count=absent_count,
            pass_rate=_ratio(Decimal(len(passed)), Decimal(len(passed) + failed_count)),
        )

        class_stats = self._class_stats(marks)
        return ExamAnalytics(
            exam_id=exam.id,
            exam_name=exam.exam_name,
            exam_code=exam.exam_code,
            overall=overall,
            grade_distribution=self._grade_distribution(present),
            subject_stats=self._subject_stats(present),
            class_stats=class_stats,
            top_students=self._top_students(present, settings.TOP_STUDENTS_LIMIT),
            top_classes=class_stats[: settings.TOP_CLASSES_LIMIT],
        )

    def _grade_distribution(self, present: list[StudentMark]) -> list[GradeBucket]:
        counts: dict[int, int] = {}
        for mark in present:
            counts[mark.grade_number] = counts.get(mark.grade_number, 0) + 1
        return [GradeBucket(grade=g, count=counts[g]) for g in sorted(counts)]

    def _subject_stats(self, present: list[StudentMark]) -> list[SubjectStats]:
        """Per-subject figures over non-absent rows.

        The average is pooled: sum of totals over sum of each row's max marks.
        """
        subjects: dict[str, _SubjectAccumulator] = {}
        for mark in present:
            acc = subjects.get(mark.subject_id)
            if acc is None:
                acc = subjects[mark.subject_id] = _SubjectAccumulator(
                    subject_name=mark.subject_name,
                    max_score=mark.max_marks,
                )
            acc.total_score += mark.total_score
            acc.total_max += mark.max_marks
            acc.student_count += 1
            acc.highest = mark.total_score if acc.highest is None else max(acc.highest, mark.total_score)
            acc.lowest = mark.total_score if acc.lowest is None else min(acc.lowest, mark.total_score)
            if is_pass(mark.percentage):
                acc.pass_count += 1
            else:
                acc.fail_count += 1

        stats = [
            SubjectStats(
                subject_id=subject_id,
                subject_name=acc.subject_name,
                total_score=acc.total_score,
                max_score=acc.max_score,
                student_count=acc.student_count,
                average_percentage=_ratio(acc.total_score, acc.total_max),
                highest_score=acc.highest or ZERO,
                lowest_score=acc.lowest or ZERO,
                pass_count=acc.pass_count,
                fail_count=acc.fail_count,
            )
            for subject_id, acc in subjects.items()
        ]
        stats.sort(key=lambda s: s.average_percentage, reverse=True)
        return stats

    def _class_stats(self, marks: list[StudentMark]) -> list[ClassStats]:
        classes: dict[str, _ClassAccumulator] = {}
        for mark in marks:
            acc = classes.get(mark.class_id)
            if acc is None:
                acc = classes[mark.class_id] = _ClassAccumulator(class_name=mark.class_name)
            acc.students.add(mark.student_id)
            if mark.is_absent:
                acc.absent_count += 1
                continue
            acc.percentages.append(mark.percentage)
            acc.top_score = max(acc.top_score, mark.total_score)
            if is_pass(mark.percentage):
                acc.pass_count += 1
            else:
                acc.fail_count += 1

        stats = [
            ClassStats(
                class_id=class_id,
                class_name=acc.class_name,
                student_count=len(acc.students),
                total_percentage=sum(acc.percentages, ZERO),
                average_percentage=_mean(acc.percentages),
                pass_count=acc.pass_count,
                fail_count=acc.fail_count,
                absent_count=acc.absent_count,
                top_score=acc.top_score,
            )
            for class_id, acc in classes.items()
        ]
        stats.sort(key=lambda s: s.average_percentage, reverse=True)
        return stats

    def _top_students(self, present: list[StudentMark], limit: int) -> list[TopStudent]:
        students: dict[str, _StudentAccumulator] = {}
        for mark in present:
            acc = students.get(mark.student_id)
            if acc is None:
                acc = students[mark.student_id] = _StudentAccumulator(
                    student_name=mark.student_name,
                    class_name=mark.class_name,
                )
            acc.total_score += mark.total_score
            acc.total_max += mark.max_marks
            acc.subject_count += 1

        ranked = [
            TopStudent(
                student_id=student_id,
                student_name=acc.student_name,
                class_name=acc.class_name,
                total_score=acc.total_score,
                total_max_marks=acc.total_max,
                percentage=_ratio(acc.total_score, acc.total_max),
                subject_count=acc.subject_count,
            )
            for student_id, acc in students.items()
        ]
        ranked.sort(key=lambda s: s.percentage, reverse=True)
        return ranked[:limit]

    def get_school_exams_analytics(self, school_id: str) -> list[ExamSummaryRow]:
        """One summary row per closed exam that has marks, most recent first."""
        exams = self.db.execute(
            select(Exam).where(
                Exam.school_id == school_id,
                Exam.status.in_([ExamStatus.COMPLETED, ExamStatus.PUBLISHED]),
            )
        ).scalars().all()

        rows = []
        for exam in exams:
            marks = self._exam_marks(exam.id)
            if not marks:
                continue
            present = [m for m in marks if not m.is_absent]
            passed = sum(1 for m in present if is_pass(m.percentage))
            rows.append(
                ExamSummaryRow(
                    exam_id=exam.id,
                    exam_name=exam.exam_name,
                    exam_code=exam.exam_code,
                    total_students=len({m.student_id for m in marks}),
                    average_percentage=_mean([m.percentage for m in present]),
                    pass_rate=_ratio(Decimal(passed), Decimal(len(present))),
                    completion_date=exam.end_date,
                )
            )

        rows.sort(key=lambda r: r.completion_date, reverse=True)
        logger.debug(f"School {school_id} exam overview: {len(rows)} exams")
        return rows

    # ==========================================
    # Marks ledger rollups
    # ==========================================

    def get_exam_marks_stats(self, exam_id: int, school_id: str | None = None) -> ExamMarksStats:
        """Entry progress for an exam: rows entered and students per class."""
        exam = self.get_exam(exam_id, school_id)
        marks = self._exam_marks(exam.id)

        classes: dict[str, tuple[str, set[str]]] = {}
        for mark in marks:
            _, students = classes.setdefault(mark.class_id, (mark.class_name, set()))
            students.add(mark.student_id)

        return ExamMarksStats(
            exam_id=exam.id,
            total_marks_entries=len(marks),
            unique_students=len({m.student_id for m in marks}),
            classes_covered=[
                ClassCoverage(class_id=class_id, class_name=class_name, student_count=len(students))
                for class_id, (class_name, students) in classes.items()
            ],
        )

    def get_student_performance_trends(self, school_id: str, student_id: str) -> list[StudentExamTrend]:
        """One row per exam the student has marks in, oldest exam first."""
        result = self.db.execute(
            select(StudentMark, Exam.start_date)
            .join(Exam, Exam.id == StudentMark.exam_id)
            .where(
                StudentMark.school_id == school_id,
                StudentMark.student_id == student_id,
            )
            .order_by(Exam.start_date, StudentMark.exam_id, StudentMark.id)
        )

        trends: dict[int, dict] = {}
        for mark, exam_date in result.all():
            entry = trends.setdefault(
                mark.exam_id,
                {
                    "exam_id": mark.exam_id,
                    "exam_name": mark.exam_name,
                    "exam_code": mark.exam_code,
                    "exam_date": exam_date,
                    "subject_count": 0,
                    "total_score": ZERO,
                    "max_score": ZERO,
                },
            )
            entry["subject_count"] += 1
            if not mark.is_absent:
                entry["total_score"] += mark.total_score
                entry["max_score"] += mark.max_marks

        return [
            StudentExamTrend(average=_ratio(entry["total_score"], entry["max_score"]), **entry)
            for entry in trends.values()
        ]

    def _class_marks(self, school_id: str, class_id: str, exam_id: int | None) -> list[StudentMark]:
        query = select(StudentMark).where(
            StudentMark.school_id == school_id,
            StudentMark.class_id == class_id,
            StudentMark.is_absent.is_(False),
        )
        if exam_id is not None:
            query = query.where(StudentMark.exam_id == exam_id)
        return list(self.db.execute(query.order_by(StudentMark.id)).scalars().all())

    def get_class_performance_distribution(
        self,
        school_id: str,
        class_id: str,
        exam_id: int | None = None,
    ) -> ClassPerformanceDistribution:
        """Bucket each student's mean percentage across their subjects."""
        percentages: dict[str, list[Decimal]] = {}
        for mark in self._class_marks(school_id, class_id, exam_id):
            percentages.setdefault(mark.student_id, []).append(mark.percentage)

        averages = [_mean(values) for values in percentages.values()]
        buckets = PerformanceBuckets()
        for value in averages:
            if value >= 80:
                buckets.excellent += 1
            elif value >= 70:
                buckets.very_good += 1
            elif value >= 60:
                buckets.good += 1
            elif value >= 50:
                buckets.average += 1
            elif value >= PASS_THRESHOLD:
                buckets.below_average += 1
            else:
                buckets.poor += 1

        return ClassPerformanceDistribution(
            class_id=class_id,
            distribution=buckets,
            total_students=len(averages),
            class_average=_mean(averages),
            highest_score=max(averages, default=ZERO),
            lowest_score=min(averages, default=ZERO),
        )

    def get_subject_performance(
        self,
        school_id: str,
        class_id: str,
        exam_id: int | None = None,
    ) -> list[SubjectPerformance]:
        """Per-subject comparison for one class, best average first."""
        subjects: dict[str, dict] = {}
        for mark in self._class_marks(school_id, class_id, exam_id):
            entry = subjects.setdefault(
                mark.subject_id,
                {
                    "subject_name": mark.subject_name,
                    "total_score": ZERO,
                    "max_score": ZERO,
                    "percentages": [],
                },
            )
            entry["total_score"] += mark.total_score
            entry["max_score"] += mark.max_marks
            entry["percentages"].append(mark.percentage)

        rows = []
        for subject_id, entry in subjects.items():
            values = entry["percentages"]
            passed = sum(1 for p in values if is_pass(p))
            rows.append(
                SubjectPerformance(
                    subject_id=subject_id,
                    subject_name=entry["subject_name"],
                    total_score=entry["total_score"],
                    max_score=entry["max_score"],
                    student_count=len(values),
                    average=_ratio(entry["total_score"], entry["max_score"]),
                    highest=max(values),
                    lowest=min(values),
                    pass_rate=_ratio(Decimal(passed), Decimal(len(values))),
                )
            )
        rows.sort(key=lambda r: r.average, reverse=True)
        return rows
