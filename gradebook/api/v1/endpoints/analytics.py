"""Exam analytics endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from gradebook.core.database import get_db
from gradebook.core.dependencies import CurrentStaff
from gradebook.schemas.analytics import (
    ClassPerformanceDistribution,
    ExamAnalytics,
    ExamMarksStats,
    ExamSummaryRow,
    StudentExamTrend,
    SubjectPerformance,
)
from gradebook.services.analytics import AnalyticsService

router = APIRouter()


@router.get("/exams", response_model=list[ExamSummaryRow])
def get_school_exams_analytics(
    staff: CurrentStaff,
    db: Annotated[Session, Depends(get_db)],
):
    """Overview of the school's closed exams, most recent first."""
    service = AnalyticsService(db)
    return service.get_school_exams_analytics(staff.school_id)


@router.get("/exams/{exam_id}", response_model=ExamAnalytics | None)
def get_exam_analytics(
    exam_id: int,
    staff: CurrentStaff,
    db: Annotated[Session, Depends(get_db)],
):
    """
    Full analytics for one exam.
    Returns null when no marks have been entered yet.
    """
    service = AnalyticsService(db)
    return service.get_exam_analytics(exam_id, staff.school_id)


@router.get("/exams/{exam_id}/marks-stats", response_model=ExamMarksStats)
def get_exam_marks_stats(
    exam_id: int,
    staff: CurrentStaff,
    db: Annotated[Session, Depends(get_db)],
):
    """Mark entry progress: entries, students and classes covered."""
    service = AnalyticsService(db)
    return service.get_exam_marks_stats(exam_id, staff.school_id)


@router.get("/students/{student_id}/trends", response_model=list[StudentExamTrend])
def get_student_performance_trends(
    student_id: str,
    staff: CurrentStaff,
    db: Annotated[Session, Depends(get_db)],
):
    """A student's per-exam totals, oldest exam first."""
    service = AnalyticsService(db)
    return service.get_student_performance_trends(staff.school_id, student_id)


@router.get("/classes/{class_id}/distribution", response_model=ClassPerformanceDistribution)
def get_class_performance_distribution(
    class_id: str,
    staff: CurrentStaff,
    db: Annotated[Session, Depends(get_db)],
    exam_id: int | None = None,
):
    service = AnalyticsService(db)
    return service.get_class_performance_distribution(staff.school_id, class_id, exam_id)


@router.get("/classes/{class_id}/subjects", response_model=list[SubjectPerformance])
def get_subject_performance(
    class_id: str,
    staff: CurrentStaff,
    db: Annotated[Session, Depends(get_db)],
    exam_id: int | None = None,
):
    """Subject comparison for a class, best average first."""
    service = AnalyticsService(db)
    return service.get_subject_performance(staff.school_id, class_id, exam_id)
