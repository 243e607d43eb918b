import logging
from flask import current_app
from openpyxl import load_workbook
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from .. import db
from ..models import Student, StudentGradeCard, SubjectGradeDetail
from .errors import InternalImportError

logger = logging.getLogger(__name__)

# Worksheet layout: A Sr No | B Name | C Enrollment No | D Internal Marks
ENROLLMENT_COL = 2
INTERNAL_COL = 3


def _cell(row, idx):
    return row[idx] if len(row) > idx else None


def _parse_marks(raw):
    try:
        return float(raw)
    except (TypeError, ValueError):
        return 0.0


def read_internal_rows(stream, max_marks=30):
    """
    Reads (enrollment_no, internal_marks) rows from the first worksheet.
    Returns (rows, errors, missing_students).
    """
    wb = load_workbook(stream, read_only=True, data_only=True)
    ws = wb.worksheets[0]

    rows = []
    errors = []
    missing_students = []

    for row_no, row in enumerate(ws.iter_rows(min_row=2, values_only=True), start=2):
        if not row or all(v is None for v in row):
            continue
        enrollment_no = str(_cell(row, ENROLLMENT_COL) or "").strip()
        internal_marks = _parse_marks(_cell(row, INTERNAL_COL))

        if not enrollment_no:
            missing_students.append({"row": row_no, "error": "Missing enrollment number"})
            continue

        if internal_marks < 0:
            errors.append({"row": row_no, "enrollmentNo": enrollment_no, "error": "Internal marks must be a positive number"})
            continue
        if internal_marks > max_marks:
            errors.append({"row": row_no, "enrollmentNo": enrollment_no, "error": f"Internal marks cannot exceed {max_marks}"})
            continue

        rows.append({"row": row_no, "enrollmentNo": enrollment_no, "internalMarks": internal_marks})

    wb.close()
    return rows, errors, missing_students


def generate_card_number(batch_id, semester, enrollment_no, issued):
    """
    Next free grade card number GC{yy}{branch}{sem}{counter}: year and branch
    come from the enrollment number, counter is the lowest unused 3-digit
    value among this batch/semester's cards and those issued in this run.
    """
    if not enrollment_no:
        raise ValueError("Enrollment number is required.")

    year = enrollment_no[1:3]
    branch_code = enrollment_no[5:7]

    existing = db.session.execute(
        select(StudentGradeCard.card_no).filter_by(batch_id_fk=batch_id, semester_id_fk=semester.semester_id)
    ).scalars().all()
    taken = set(existing) | issued

    counter = 1
    while True:
        card_no = f"GC{year}{branch_code}{semester.numerical}{counter:03d}"
        if card_no not in taken:
            issued.add(card_no)
            return card_no
        counter += 1


def import_internal_marks(stream, batch_subject):
    """
    Creates SubjectGradeDetail rows with internal marks for one batch subject,
    creating grade cards where a student has none for the batch term yet.

    Any bad row, unknown student, or existing detail rejects the whole file
    with InternalImportError. Returns the number of rows imported.
    """
    batch = batch_subject.batch
    semester = batch.term
    max_marks = current_app.config.get("GRADECARD_INTERNAL_MAX", 30)

    rows, errors, missing_students = read_internal_rows(stream, max_marks)
    existing_records = []

    enrollments = [r["enrollmentNo"] for r in rows]
    students = []
    if enrollments:
        students = db.session.execute(
            select(Student).filter(
                Student.enrollment_no.in_(enrollments),
                Student.college_id_fk == batch.college_id_fk,
            )
        ).scalars().all()
    student_map = {s.enrollment_no: s for s in students}

    seen = set()
    for row in rows:
        if row["enrollmentNo"] in seen:
            existing_records.append({
                "row": row["row"],
                "enrollmentNo": row["enrollmentNo"],
                "message": "Enrollment number appears more than once in the file.",
            })
            continue
        seen.add(row["enrollmentNo"])

        student = student_map.get(row["enrollmentNo"])
        if not student:
            missing_students.append({"enrollmentNo": row["enrollmentNo"], "error": "Student not found in the system"})
            continue
        existing = db.session.execute(
            select(SubjectGradeDetail)
            .join(StudentGradeCard, SubjectGradeDetail.student_grade_card_id_fk == StudentGradeCard.grade_card_id)
            .filter(
                StudentGradeCard.student_id_fk == student.student_id,
                SubjectGradeDetail.batch_subject_id_fk == batch_subject.batch_subject_id,
            )
        ).scalars().first()
        if existing:
            existing_records.append({
                "enrollmentNo": row["enrollmentNo"],
                "message": "Internal marks already exist for this student.",
            })

    if errors or missing_students or existing_records:
        logger.warning(
            "Internal marks import for batch subject %s rejected (%d errors, %d missing, %d existing)",
            batch_subject.batch_subject_id, len(errors), len(missing_students), len(existing_records),
        )
        raise InternalImportError(errors, missing_students, existing_records)

    issued = set()
    try:
        for row in rows:
            student = student_map[row["enrollmentNo"]]
            card = db.session.execute(
                select(StudentGradeCard).filter_by(
                    student_id_fk=student.student_id,
                    batch_id_fk=batch.batch_id,
                    semester_id_fk=semester.semester_id,
                )
            ).scalars().first()

            if not card:
                card = StudentGradeCard(
                    student_id_fk=student.student_id,
                    batch_id_fk=batch.batch_id,
                    semester_id_fk=semester.semester_id,
                    card_no=generate_card_number(batch.batch_id, semester, student.enrollment_no, issued),
                )
                db.session.add(card)
                db.session.flush()

            db.session.add(SubjectGradeDetail(
                student_grade_card_id_fk=card.grade_card_id,
                batch_subject_id_fk=batch_subject.batch_subject_id,
                internal_marks=row["internalMarks"],
                credit=batch_subject.credit_score,
            ))
        db.session.commit()
    except (SQLAlchemyError, ValueError):
        db.session.rollback()
        raise

    logger.info("Imported %d internal marks for batch subject %s", len(rows), batch_subject.batch_subject_id)
    return len(rows)
