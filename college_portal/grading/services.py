import logging
from flask import current_app
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from .. import db
from ..models import (
    Batch, BatchSubject, ExamType, ExamMark, Student, StudentBatch,
    StudentGradeCard, SubjectGradeDetail,
)
from .errors import NotFoundError, GradeValidationError
from .scale import get_grade_point, scale_external, average

logger = logging.getLogger(__name__)


def _lock_batch(batch_id, college_id):
    """
    Row-locks the batch for the rest of the transaction so two recalculations
    of the same batch run one after the other. Dialects without row locks
    (SQLite) ignore FOR UPDATE.
    """
    return db.session.execute(
        select(Batch)
        .filter_by(batch_id=batch_id, college_id_fk=college_id)
        .with_for_update()
    ).scalars().first()


def _subject_label(batch_subject):
    subject = batch_subject.subject
    return f"{subject.name} ({subject.code})"


def resolve_semester_exam_type(college_id, exam_type_id=None):
    """
    Picks the exam type whose marks feed the external component.
    An explicit id wins; otherwise the most recently created exam type of the
    college whose name contains the configured keyword.
    """
    if exam_type_id is not None:
        return db.session.execute(
            select(ExamType).filter_by(exam_type_id=exam_type_id, college_id_fk=college_id)
        ).scalars().first()

    keyword = current_app.config.get("GRADECARD_SEMESTER_EXAM_KEYWORD", "semester")
    return db.session.execute(
        select(ExamType)
        .filter(
            ExamType.college_id_fk == college_id,
            ExamType.name.ilike(f"%{keyword}%"),
        )
        .order_by(ExamType.created_at.desc(), ExamType.exam_type_id.desc())
    ).scalars().first()


def calculate_external_marks(batch_id, college_id, exam_type_id=None):
    """
    Derives external marks for every student and subject of a batch from the
    semester exam scores and writes them onto the grade card subject rows.

    All rows are validated first. If anything is missing (exam type, marks,
    grade card, internal marks) a GradeValidationError with every message is
    raised and nothing is written.

    Returns the number of subject rows updated.
    """
    batch = _lock_batch(batch_id, college_id)

    batch_subjects = []
    if batch:
        batch_subjects = db.session.execute(
            select(BatchSubject)
            .filter_by(batch_id_fk=batch.batch_id)
            .options(selectinload(BatchSubject.subject))
            .order_by(BatchSubject.batch_subject_id)
        ).scalars().all()

    if not batch_subjects:
        db.session.rollback()
        raise NotFoundError("No batch subjects found for the batch.")

    term = batch.term
    scale = current_app.config.get("GRADECARD_EXTERNAL_SCALE", 70)
    exam_type = resolve_semester_exam_type(college_id, exam_type_id)

    batch_students = db.session.execute(
        select(Student)
        .join(StudentBatch, StudentBatch.student_id_fk == Student.student_id)
        .filter(StudentBatch.batch_id_fk == batch.batch_id)
        .order_by(Student.student_id)
    ).scalars().all()

    # Grade cards of this batch for the batch's term, keyed by student
    cards = db.session.execute(
        select(StudentGradeCard).filter_by(batch_id_fk=batch.batch_id, semester_id_fk=batch.term_id_fk)
    ).scalars().all()
    card_map = {c.student_id_fk: c for c in cards}

    details = []
    if cards:
        details = db.session.execute(
            select(SubjectGradeDetail).filter(
                SubjectGradeDetail.student_grade_card_id_fk.in_([c.grade_card_id for c in cards])
            )
        ).scalars().all()
    detail_map = {(d.student_grade_card_id_fk, d.batch_subject_id_fk): d for d in details}

    errors = []
    updates = []

    for batch_subject in batch_subjects:
        label = _subject_label(batch_subject)

        if not exam_type:
            errors.append(f"No semester exam found for batchSubject {label}")
            continue

        marks = db.session.execute(
            select(ExamMark)
            .filter_by(batch_subject_id_fk=batch_subject.batch_subject_id, exam_type_id_fk=exam_type.exam_type_id)
            .options(selectinload(ExamMark.student))
            .order_by(ExamMark.exam_mark_id)
        ).scalars().all()

        students_with_marks = {m.student_id_fk for m in marks}
        for student in batch_students:
            if student.student_id not in students_with_marks:
                errors.append(
                    f"Missing semester exam marks for student {student.name} with ER No. {student.enrollment_no} in {label}"
                )

        for mark in marks:
            student = mark.student
            try:
                external = scale_external(mark.achieved_marks, exam_type.total_marks, scale)
            except ValueError:
                errors.append(f"Exam type {exam_type.name} has no total marks set")
                break

            card = card_map.get(mark.student_id_fk)
            if not card:
                errors.append(
                    f"Grade card not found for student {student.name} - {student.enrollment_no} for {term.name}, {label}"
                )
                continue

            detail = detail_map.get((card.grade_card_id, batch_subject.batch_subject_id))
            if not detail or detail.internal_marks is None:
                errors.append(
                    f"Internal mark missing for student {student.name} - {student.enrollment_no} for Batch Subject {label}"
                )
                continue

            updates.append((detail, external))

    if errors:
        db.session.rollback()
        logger.warning("External marks for batch %s rejected with %d error(s)", batch_id, len(errors))
        raise GradeValidationError(errors)

    try:
        for detail, external in updates:
            detail.external_marks = external
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        raise

    logger.info("External marks updated for batch %s: %d subject rows", batch_id, len(updates))
    return len(updates)


def _grade_card(card, errors):
    """
    Computes subject grades and card totals for one grade card without
    touching the ORM objects. Missing marks are appended to errors.
    """
    student = card.student
    total_graded_credit = 0
    total_quality_point = 0
    subject_results = []

    for detail in card.subject_grades:
        batch_subject = detail.batch_subject
        subject = batch_subject.subject

        if detail.internal_marks is None or detail.external_marks is None:
            errors.append(
                f"Missing internal or external marks for student {student.name}-{student.enrollment_no} "
                f"in subject {subject.name}-{subject.code}"
            )
            continue

        total = detail.internal_marks + detail.external_marks
        grade, point = get_grade_point(total, batch_subject.class_type)
        credit = detail.credit or 0
        quality_point = credit * point

        total_graded_credit += credit
        total_quality_point += quality_point
        subject_results.append((detail, grade, point, quality_point))

    result = {
        "card": card,
        "subjects": subject_results,
        "total_graded_credit": total_graded_credit,
        "total_quality_point": total_quality_point,
        "gpa": average(total_quality_point, total_graded_credit),
        "cgpa": None,
    }

    semester_number = card.semester.numerical if card.semester else None
    if semester_number and semester_number > 1:
        result["cgpa"] = cumulative_gpa(card, semester_number, total_graded_credit, total_quality_point)

    return result


def cumulative_gpa(card, semester_number, graded_credit, quality_point):
    """
    CGPA over this card plus every earlier-semester card of the same student
    that already carries totals. Earlier cards are read as stored; this does
    not revisit later semesters when an earlier one changes.
    """
    past_cards = [
        gc for gc in card.student.grade_cards
        if gc.grade_card_id != card.grade_card_id
        and gc.semester is not None
        and gc.semester.numerical
        and gc.semester.numerical < semester_number
        and gc.total_graded_credit is not None
        and gc.total_quality_point is not None
    ]
    past_credits = sum(gc.total_graded_credit for gc in past_cards)
    past_quality = sum(gc.total_quality_point for gc in past_cards)
    return average(quality_point + past_quality, graded_credit + past_credits)


def generate_grade_details(batch_id, college_id):
    """
    Grades every subject row of every grade card in the batch and rolls the
    card totals, GPA and (from semester 2 on) CGPA.

    Validation runs across the whole batch before anything is written; any
    missing internal/external pair raises GradeValidationError and no row
    is changed.

    Returns the number of grade cards updated.
    """
    _lock_batch(batch_id, college_id)

    cards = db.session.execute(
        select(StudentGradeCard)
        .join(Student, StudentGradeCard.student_id_fk == Student.student_id)
        .filter(
            StudentGradeCard.batch_id_fk == batch_id,
            Student.college_id_fk == college_id,
        )
        .options(
            selectinload(StudentGradeCard.subject_grades)
            .selectinload(SubjectGradeDetail.batch_subject)
            .selectinload(BatchSubject.subject),
            selectinload(StudentGradeCard.student)
            .selectinload(Student.grade_cards)
            .selectinload(StudentGradeCard.semester),
            selectinload(StudentGradeCard.semester),
        )
        .order_by(StudentGradeCard.grade_card_id)
    ).scalars().all()

    if not cards:
        db.session.rollback()
        raise NotFoundError("No student grade cards found for this batch.")

    errors = []
    results = [_grade_card(card, errors) for card in cards]

    if errors:
        db.session.rollback()
        logger.warning("Grade calculation for batch %s rejected with %d error(s)", batch_id, len(errors))
        raise GradeValidationError(errors)

    try:
        for res in results:
            card = res["card"]
            card.total_graded_credit = res["total_graded_credit"]
            card.total_quality_point = res["total_quality_point"]
            card.gpa = res["gpa"]
            if res["cgpa"] is not None:
                card.cgpa = res["cgpa"]
            for detail, grade, point, quality_point in res["subjects"]:
                detail.grade = grade
                detail.grade_point = point
                detail.quality_point = quality_point
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        raise

    logger.info("Grades calculated for batch %s: %d grade cards", batch_id, len(results))
    return len(results)
