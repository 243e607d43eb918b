"""create college, exam and grade card tables

Revision ID: 3c5e7a9b1d20
Revises:
Create Date: 2026-10-18 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3c5e7a9b1d20'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'colleges',
        sa.Column('college_id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('code'),
    )

    op.create_table(
        'users',
        sa.Column('user_id', sa.Integer(), primary_key=True),
        sa.Column('college_id_fk', sa.Integer(), nullable=True),
        sa.Column('username', sa.String(length=128), nullable=False),
        sa.Column('password_hash', sa.String(length=256), nullable=True),
        sa.Column('role', sa.String(length=32), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.ForeignKeyConstraint(['college_id_fk'], ['colleges.college_id']),
        sa.UniqueConstraint('username'),
    )

    op.create_table(
        'semesters',
        sa.Column('semester_id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('numerical', sa.Integer(), nullable=False),
    )

    op.create_table(
        'batches',
        sa.Column('batch_id', sa.Integer(), primary_key=True),
        sa.Column('college_id_fk', sa.Integer(), nullable=False),
        sa.Column('term_id_fk', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['college_id_fk'], ['colleges.college_id']),
        sa.ForeignKeyConstraint(['term_id_fk'], ['semesters.semester_id']),
    )

    op.create_table(
        'subjects',
        sa.Column('subject_id', sa.Integer(), primary_key=True),
        sa.Column('college_id_fk', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('code', sa.String(length=64), nullable=True),
        sa.ForeignKeyConstraint(['college_id_fk'], ['colleges.college_id']),
    )

    op.create_table(
        'batch_subjects',
        sa.Column('batch_subject_id', sa.Integer(), primary_key=True),
        sa.Column('batch_id_fk', sa.Integer(), nullable=False),
        sa.Column('subject_id_fk', sa.Integer(), nullable=False),
        sa.Column('class_type', sa.String(length=16), nullable=False),
        sa.Column('credit_score', sa.Float(), nullable=False),
        sa.ForeignKeyConstraint(['batch_id_fk'], ['batches.batch_id']),
        sa.ForeignKeyConstraint(['subject_id_fk'], ['subjects.subject_id']),
        sa.UniqueConstraint('batch_id_fk', 'subject_id_fk', name='uq_batch_subject'),
    )

    op.create_table(
        'students',
        sa.Column('student_id', sa.Integer(), primary_key=True),
        sa.Column('college_id_fk', sa.Integer(), nullable=False),
        sa.Column('user_id_fk', sa.Integer(), nullable=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('enrollment_no', sa.String(length=32), nullable=True),
        sa.ForeignKeyConstraint(['college_id_fk'], ['colleges.college_id']),
        sa.ForeignKeyConstraint(['user_id_fk'], ['users.user_id']),
        sa.UniqueConstraint('enrollment_no'),
    )

    op.create_table(
        'student_batches',
        sa.Column('student_batch_id', sa.Integer(), primary_key=True),
        sa.Column('student_id_fk', sa.Integer(), nullable=False),
        sa.Column('batch_id_fk', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['student_id_fk'], ['students.student_id']),
        sa.ForeignKeyConstraint(['batch_id_fk'], ['batches.batch_id']),
        sa.UniqueConstraint('student_id_fk', 'batch_id_fk', name='uq_student_batch'),
    )

    op.create_table(
        'exam_types',
        sa.Column('exam_type_id', sa.Integer(), primary_key=True),
        sa.Column('college_id_fk', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('total_marks', sa.Float(), nullable=False),
        sa.Column('passing_marks', sa.Float(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['college_id_fk'], ['colleges.college_id']),
        sa.UniqueConstraint('college_id_fk', 'name', name='uq_exam_type_college_name'),
    )

    op.create_table(
        'exam_marks',
        sa.Column('exam_mark_id', sa.Integer(), primary_key=True),
        sa.Column('exam_type_id_fk', sa.Integer(), nullable=False),
        sa.Column('student_id_fk', sa.Integer(), nullable=False),
        sa.Column('batch_subject_id_fk', sa.Integer(), nullable=False),
        sa.Column('achieved_marks', sa.Float(), nullable=False),
        sa.Column('was_absent', sa.Boolean(), nullable=True),
        sa.Column('debarred', sa.Boolean(), nullable=True),
        sa.Column('malpractice', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['exam_type_id_fk'], ['exam_types.exam_type_id']),
        sa.ForeignKeyConstraint(['student_id_fk'], ['students.student_id']),
        sa.ForeignKeyConstraint(['batch_subject_id_fk'], ['batch_subjects.batch_subject_id']),
        sa.UniqueConstraint(
            'exam_type_id_fk',
            'student_id_fk',
            'batch_subject_id_fk',
            name='uq_exam_mark_entry',
        ),
    )

    op.create_table(
        'student_grade_cards',
        sa.Column('grade_card_id', sa.Integer(), primary_key=True),
        sa.Column('student_id_fk', sa.Integer(), nullable=False),
        sa.Column('batch_id_fk', sa.Integer(), nullable=False),
        sa.Column('semester_id_fk', sa.Integer(), nullable=False),
        sa.Column('card_no', sa.String(length=32), nullable=True),
        sa.Column('total_graded_credit', sa.Float(), nullable=True),
        sa.Column('total_quality_point', sa.Float(), nullable=True),
        sa.Column('gpa', sa.Float(), nullable=True),
        sa.Column('cgpa', sa.Float(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['student_id_fk'], ['students.student_id']),
        sa.ForeignKeyConstraint(['batch_id_fk'], ['batches.batch_id']),
        sa.ForeignKeyConstraint(['semester_id_fk'], ['semesters.semester_id']),
        sa.UniqueConstraint(
            'student_id_fk',
            'batch_id_fk',
            'semester_id_fk',
            name='uq_grade_card_student_term',
        ),
        sa.UniqueConstraint('batch_id_fk', 'semester_id_fk', 'card_no', name='uq_grade_card_no'),
    )

    op.create_table(
        'subject_grade_details',
        sa.Column('subject_grade_id', sa.Integer(), primary_key=True),
        sa.Column('student_grade_card_id_fk', sa.Integer(), nullable=False),
        sa.Column('batch_subject_id_fk', sa.Integer(), nullable=False),
        sa.Column('credit', sa.Float(), nullable=True),
        sa.Column('internal_marks', sa.Float(), nullable=True),
        sa.Column('external_marks', sa.Float(), nullable=True),
        sa.Column('grade', sa.String(length=2), nullable=True),
        sa.Column('grade_point', sa.Integer(), nullable=True),
        sa.Column('quality_point', sa.Float(), nullable=True),
        sa.ForeignKeyConstraint(['student_grade_card_id_fk'], ['student_grade_cards.grade_card_id']),
        sa.ForeignKeyConstraint(['batch_subject_id_fk'], ['batch_subjects.batch_subject_id']),
        sa.UniqueConstraint(
            'student_grade_card_id_fk',
            'batch_subject_id_fk',
            name='uq_subject_grade_card_subject',
        ),
    )


def downgrade():
    op.drop_table('subject_grade_details')
    op.drop_table('student_grade_cards')
    op.drop_table('exam_marks')
    op.drop_table('exam_types')
    op.drop_table('student_batches')
    op.drop_table('students')
    op.drop_table('batch_subjects')
    op.drop_table('subjects')
    op.drop_table('batches')
    op.drop_table('semesters')
    op.drop_table('users')
    op.drop_table('colleges')
