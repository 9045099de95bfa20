"""Initial gradebook schema.

Revision ID: 0001_initial_gradebook_schema
Revises:
Create Date: 2026-10-17

Creates the exam lifecycle, marks ledger, audit outbox/log, staff directory
and academic calendar tables.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '0001_initial_gradebook_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


# Enum columns store member names
examtype = sa.Enum('MID_TERM', 'END_OF_TERM', 'MOCK', 'QUIZ', 'ASSESSMENT', 'FINAL', name='examtype')
examstatus = sa.Enum('DRAFT', 'SCHEDULED', 'ONGOING', 'COMPLETED', 'PUBLISHED', name='examstatus')
department = sa.Enum('CRECHE', 'KINDERGARTEN', 'PRIMARY', 'JUNIOR_HIGH', name='department')
staffrole = sa.Enum('SUBJECT_TEACHER', 'CLASS_TEACHER', 'ADMIN', name='staffrole')
submissionstatus = sa.Enum(
    'DRAFT', 'SUBMITTED_TO_CLASS_TEACHER', 'VERIFIED_BY_CLASS_TEACHER', 'VERIFIED_BY_ADMIN',
    name='submissionstatus',
)
calendarstatus = sa.Enum('UPCOMING', 'ACTIVE', 'COMPLETED', 'ARCHIVED', name='calendarstatus')


def timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
    ]


def upgrade() -> None:
    op.create_table(
        'staff_members',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('school_id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('role', staffrole, nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_staff_members_school_id', 'staff_members', ['school_id'])

    op.create_table(
        'academic_years',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('school_id', sa.String(length=64), nullable=False),
        sa.Column('year_code', sa.String(length=20), nullable=False),
        sa.Column('year_name', sa.String(length=100), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('status', calendarstatus, nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_by', sa.String(length=64), nullable=False),
        *timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_academic_years_school_id', 'academic_years', ['school_id'])

    op.create_table(
        'terms',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('school_id', sa.String(length=64), nullable=False),
        sa.Column('academic_year_id', sa.BigInteger(), nullable=False),
        sa.Column('term_code', sa.String(length=20), nullable=False),
        sa.Column('term_name', sa.String(length=100), nullable=False),
        sa.Column('term_number', sa.Integer(), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('status', calendarstatus, nullable=False),
        sa.Column('created_by', sa.String(length=64), nullable=False),
        *timestamps(),
        sa.ForeignKeyConstraint(['academic_year_id'], ['academic_years.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_terms_school_id', 'terms', ['school_id'])
    op.create_index('ix_terms_academic_year_id', 'terms', ['academic_year_id'])

    op.create_table(
        'school_calendars',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('school_id', sa.String(length=64), nullable=False),
        sa.Column('current_year_id', sa.BigInteger(), nullable=True),
        sa.Column('current_term_id', sa.BigInteger(), nullable=True),
        *timestamps(),
        sa.ForeignKeyConstraint(['current_year_id'], ['academic_years.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['current_term_id'], ['terms.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('school_id', name='uq_school_calendar_school'),
    )
    op.create_index('ix_school_calendars_school_id', 'school_calendars', ['school_id'])

    op.create_table(
        'exams',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('school_id', sa.String(length=64), nullable=False),
        sa.Column('exam_code', sa.String(length=20), nullable=False),
        sa.Column('exam_name', sa.String(length=255), nullable=False),
        sa.Column('exam_type', examtype, nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('academic_year_id', sa.BigInteger(), nullable=True),
        sa.Column('term_id', sa.BigInteger(), nullable=True),
        sa.Column('department', department, nullable=True),
        sa.Column('target_classes', sa.JSON().with_variant(postgresql.JSONB(), 'postgresql'), nullable=True),
        sa.Column('instructions', sa.Text(), nullable=True),
        sa.Column('total_marks', sa.DECIMAL(10, 2), nullable=False),
        sa.Column('weightage', sa.DECIMAL(6, 2), nullable=False),
        sa.Column('status', examstatus, nullable=False),
        sa.Column('unlocked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('unlocked_by', sa.String(length=64), nullable=True),
        sa.Column('unlocked_by_name', sa.String(length=255), nullable=True),
        sa.Column('unlocked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('unlock_reason', sa.Text(), nullable=True),
        sa.Column('created_by', sa.String(length=64), nullable=False),
        *timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_exams_school_id', 'exams', ['school_id'])
    op.create_index('ix_exams_exam_code', 'exams', ['exam_code'])
    op.create_index('ix_exams_academic_year_id', 'exams', ['academic_year_id'])
    op.create_index('ix_exams_term_id', 'exams', ['term_id'])
    op.create_index('ix_exams_status', 'exams', ['status'])

    op.create_table(
        'exam_subjects',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('exam_id', sa.BigInteger(), nullable=False),
        sa.Column('subject_id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('max_marks', sa.DECIMAL(10, 2), nullable=False),
        sa.ForeignKeyConstraint(['exam_id'], ['exams.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('exam_id', 'subject_id', name='uq_exam_subject'),
    )
    op.create_index('ix_exam_subjects_exam_id', 'exam_subjects', ['exam_id'])

    op.create_table(
        'student_marks',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('school_id', sa.String(length=64), nullable=False),
        sa.Column('exam_id', sa.BigInteger(), nullable=False),
        sa.Column('exam_code', sa.String(length=20), nullable=False),
        sa.Column('exam_name', sa.String(length=255), nullable=False),
        sa.Column('student_id', sa.String(length=64), nullable=False),
        sa.Column('student_name', sa.String(length=255), nullable=False),
        sa.Column('class_id', sa.String(length=64), nullable=False),
        sa.Column('class_name', sa.String(length=100), nullable=False),
        sa.Column('subject_id', sa.String(length=64), nullable=False),
        sa.Column('subject_name', sa.String(length=255), nullable=False),
        sa.Column('class_score', sa.DECIMAL(10, 2), nullable=False),
        sa.Column('exam_score', sa.DECIMAL(10, 2), nullable=False),
        sa.Column('max_marks', sa.DECIMAL(10, 2), nullable=False),
        sa.Column('is_absent', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('total_score', sa.DECIMAL(10, 2), nullable=False),
        sa.Column('percentage', sa.DECIMAL(7, 2), nullable=False),
        sa.Column('grade', sa.String(length=10), nullable=False),
        sa.Column('grade_number', sa.Integer(), nullable=False),
        sa.Column('remarks', sa.String(length=100), nullable=False),
        sa.Column('position', sa.Integer(), nullable=True),
        sa.Column('entered_by', sa.String(length=64), nullable=False),
        sa.Column('entered_by_role', staffrole, nullable=False),
        sa.Column('entered_by_name', sa.String(length=255), nullable=False),
        sa.Column('entry_reason', sa.Text(), nullable=True),
        sa.Column('submission_status', submissionstatus, nullable=False),
        sa.Column('verified_by', sa.String(length=64), nullable=True),
        sa.Column('verified_at', sa.DateTime(timezone=True), nullable=True),
        *timestamps(),
        sa.ForeignKeyConstraint(['exam_id'], ['exams.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('exam_id', 'student_id', 'subject_id', name='uq_mark_exam_student_subject'),
    )
    op.create_index('ix_student_marks_school_id', 'student_marks', ['school_id'])
    op.create_index('ix_student_marks_exam_id', 'student_marks', ['exam_id'])
    op.create_index('ix_student_marks_student_id', 'student_marks', ['student_id'])
    op.create_index('ix_student_marks_class_id', 'student_marks', ['class_id'])

    op.create_table(
        'audit_outbox',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
        sa.Column('school_id', sa.String(length=64), nullable=True),
        sa.Column('actor_id', sa.String(length=64), nullable=False),
        sa.Column('actor_name', sa.String(length=255), nullable=False),
        sa.Column('action', sa.String(length=100), nullable=False),
        sa.Column('entity_type', sa.String(length=100), nullable=False),
        sa.Column('entity_id', sa.String(length=100), nullable=True),
        sa.Column('details', sa.Text(), nullable=True),
        sa.Column('origin', sa.String(length=50), nullable=False),
        sa.Column('delivered_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_audit_outbox_delivered_at', 'audit_outbox', ['delivered_at'])

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('school_id', sa.String(length=64), nullable=True),
        sa.Column('actor_id', sa.String(length=64), nullable=False),
        sa.Column('actor_name', sa.String(length=255), nullable=False),
        sa.Column('action', sa.String(length=100), nullable=False),
        sa.Column('entity_type', sa.String(length=100), nullable=False),
        sa.Column('entity_id', sa.String(length=100), nullable=True),
        sa.Column('details', sa.Text(), nullable=True),
        sa.Column('origin', sa.String(length=50), nullable=False),
        sa.Column('outbox_event_id', sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('outbox_event_id'),
    )
    op.create_index('ix_audit_logs_timestamp', 'audit_logs', ['timestamp'])
    op.create_index('ix_audit_logs_school_id', 'audit_logs', ['school_id'])
    op.create_index('ix_audit_logs_actor_id', 'audit_logs', ['actor_id'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])


def downgrade() -> None:
    op.drop_table('audit_logs')
    op.drop_table('audit_outbox')
    op.drop_table('student_marks')
    op.drop_table('exam_subjects')
    op.drop_table('exams')
    op.drop_table('school_calendars')
    op.drop_table('terms')
    op.drop_table('academic_years')
    op.drop_table('staff_members')

    bind = op.get_bind()
    for enum_type in (calendarstatus, submissionstatus, staffrole, department, examstatus, examtype):
        enum_type.drop(bind, checkfirst=True)
