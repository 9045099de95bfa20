"""Excel export of an exam's marks sheet."""

import logging
from io import BytesIO

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from sqlalchemy import select
from sqlalchemy.orm import Session

from gradebook.models.mark import StudentMark
from gradebook.services.analytics import AnalyticsService

logger = logging.getLogger(__name__)

MARK_HEADERS = [
    "Student ID",
    "Student Name",
    "Class",
    "Subject",
    "Class Score",
    "Exam Score",
    "Total",
    "Max Marks",
    "Percentage",
    "Grade",
    "Remarks",
    "Position",
    "Status",
]

SUMMARY_HEADERS = [
    "Subject",
    "Students",
    "Average %",
    "Highest",
    "Lowest",
    "Passed",
    "Failed",
]


class MarksExportService:
    """Builds the downloadable marks sheet for an exam."""

    def __init__(self, db: Session):
        self.db = db
        self.analytics = AnalyticsService(db)

    def export_exam_marks(self, exam_id: int, school_id: str | None = None) -> bytes:
        """Workbook with one row per mark and a per-subject summary sheet."""
        exam = self.analytics.get_exam(exam_id, school_id)
        marks = self.db.execute(
            select(StudentMark)
            .where(StudentMark.exam_id == exam.id)
            .order_by(StudentMark.class_name, StudentMark.subject_name, StudentMark.student_name)
        ).scalars().all()

        wb = Workbook()
        ws = wb.active
        ws.title = "Marks"

        # Styles
        title_font = Font(bold=True, size=14)
        header_font = Font(bold=True, color="FFFFFF")
        header_fill = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
        absent_fill = PatternFill(start_color="FCE4D6", end_color="FCE4D6", fill_type="solid")
        thin_border = Border(
            left=Side(style='thin'),
            right=Side(style='thin'),
            top=Side(style='thin'),
            bottom=Side(style='thin')
        )
        center_align = Alignment(horizontal='center', vertical='center')

        # Title row
        last_col = get_column_letter(len(MARK_HEADERS))
        ws.merge_cells(f"A1:{last_col}1")
        title_cell = ws.cell(row=1, column=1, value=f"{exam.exam_name} ({exam.exam_code})")
        title_cell.font = title_font
        title_cell.alignment = center_align
        title_cell.fill = PatternFill(start_color="B4C6E7", end_color="B4C6E7", fill_type="solid")

        self._write_headers(ws, MARK_HEADERS, header_font, header_fill, thin_border, center_align)

        for row_idx, mark in enumerate(marks, start=3):
            row = [
                mark.student_id,
                mark.student_name,
                mark.class_name,
                mark.subject_name,
                float(mark.class_score),
                float(mark.exam_score),
                float(mark.total_score),
                float(mark.max_marks),
                float(mark.percentage),
                "ABS" if mark.is_absent else mark.grade,
                "Absent" if mark.is_absent else mark.remarks,
                mark.position,
                mark.submission_status.value,
            ]
            for col_idx, value in enumerate(row, start=1):
                cell = ws.cell(row=row_idx, column=col_idx, value=value)
                cell.border = thin_border
                if mark.is_absent:
                    cell.fill = absent_fill

        for col_idx, header in enumerate(MARK_HEADERS, start=1):
            ws.column_dimensions[get_column_letter(col_idx)].width = max(12, len(header) + 4)
        ws.column_dimensions['B'].width = 25
        ws.freeze_panes = "A3"

        # Subject summary sheet
        summary_ws = wb.create_sheet("Summary")
        summary_ws.merge_cells(f"A1:{get_column_letter(len(SUMMARY_HEADERS))}1")
        summary_title = summary_ws.cell(row=1, column=1, value=f"{exam.exam_name} - Subject Summary")
        summary_title.font = title_font
        summary_title.alignment = center_align
        self._write_headers(summary_ws, SUMMARY_HEADERS, header_font, header_fill, thin_border, center_align)

        analytics = self.analytics.get_exam_analytics(exam.id)
        subject_stats = analytics.subject_stats if analytics else []
        for row_idx, stats in enumerate(subject_stats, start=3):
            row = [
                stats.subject_name,
                stats.student_count,
                float(stats.average_percentage),
                float(stats.highest_score),
                float(stats.lowest_score),
                stats.pass_count,
                stats.fail_count,
            ]
            for col_idx, value in enumerate(row, start=1):
                summary_ws.cell(row=row_idx, column=col_idx, value=value).border = thin_border

        summary_ws.column_dimensions['A'].width = 25
        for col_idx in range(2, len(SUMMARY_HEADERS) + 1):
            summary_ws.column_dimensions[get_column_letter(col_idx)].width = 12

        output = BytesIO()
        wb.save(output)
        output.seek(0)

        logger.info(f"Exported {len(marks)} marks for exam {exam.exam_code}")
        return output.getvalue()

    @staticmethod
    def _write_headers(ws, headers, font, fill, border, alignment) -> None:
        for col_idx, header in enumerate(headers, start=1):
            cell = ws.cell(row=2, column=col_idx, value=header)
            cell.font = font
            cell.fill = fill
            cell.border = border
            cell.alignment = alignment
