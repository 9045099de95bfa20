"""Per-subject position ranking."""

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from gradebook.core.exceptions import NotFoundError
from gradebook.models.exam import Exam
from gradebook.models.mark import StudentMark

logger = logging.getLogger(__name__)


class RankingService:
    """Assigns subject positions within an exam.

    Positions are ordinal: equal totals get consecutive positions in entry
    order rather than a shared one. Absent students are not ranked. Rankings
    reflect the marks present when the pass runs, so re-run after new entries.
    """

    def __init__(self, db: Session):
        self.db = db

    def _get_exam(self, exam_id: int) -> Exam:
        exam = self.db.execute(select(Exam).where(Exam.id == exam_id)).scalar_one_or_none()
        if not exam:
            raise NotFoundError("Exam", str(exam_id))
        return exam

    def rank_subject(self, exam_id: int, subject_id: str) -> list[StudentMark]:
        """Persist positions for one subject of an exam and return the ranked rows."""
        self._get_exam(exam_id)

        result = self.db.execute(
            select(StudentMark)
            .where(
                StudentMark.exam_id == exam_id,
                StudentMark.subject_id == subject_id,
            )
            .order_by(StudentMark.id)
        )
        marks = list(result.scalars().all())

        now = datetime.now(timezone.utc)
        present = [m for m in marks if not m.is_absent]
        # sorted() is stable, so ties keep entry order
        ranked = sorted(present, key=lambda m: m.total_score, reverse=True)
        for index, mark in enumerate(ranked):
            mark.position = index + 1
            mark.updated_at = now
        for mark in marks:
            if mark.is_absent and mark.position is not None:
                mark.position = None
                mark.updated_at = now
        self.db.flush()

        logger.info(f"Ranked {len(ranked)} marks for exam {exam_id} subject {subject_id}")
        return ranked

    def rank_exam(self, exam_id: int) -> dict[str, int]:
        """Rank every subject that has marks. Returns ranked-row counts per subject."""
        self._get_exam(exam_id)
        result = self.db.execute(
            select(StudentMark.subject_id)
            .where(StudentMark.exam_id == exam_id)
            .distinct()
            .order_by(StudentMark.subject_id)
        )
        return {
            subject_id: len(self.rank_subject(exam_id, subject_id))
            for subject_id in result.scalars().all()
        }
