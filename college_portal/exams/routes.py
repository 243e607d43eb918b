from flask import request, current_app
from flask_login import current_user
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from . import exams_bp
from .. import db, cache
from ..models import Batch, BatchSubject, ExamMark, ExamType, Student
from ..api_utils import api_success, api_error
from ..decorators import college_required, role_required


def _exam_type_dict(et):
    return {
        "id": et.exam_type_id,
        "examName": et.name,
        "totalMarks": et.total_marks,
        "passingMarks": et.passing_marks,
        "status": et.is_active,
        "collegeId": et.college_id_fk,
        "createdAt": et.created_at.isoformat() if et.created_at else None,
    }


def _exam_mark_dict(m):
    return {
        "id": m.exam_mark_id,
        "examTypeId": m.exam_type_id_fk,
        "studentId": m.student_id_fk,
        "batchSubjectId": m.batch_subject_id_fk,
        "achievedMarks": m.achieved_marks,
        "wasAbsent": m.was_absent,
        "debarred": m.debarred,
        "malpractice": m.malpractice,
    }


def _is_number(value):
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@cache.memoize(timeout=300)
def _college_exam_types(college_id):
    rows = db.session.execute(
        select(ExamType)
        .filter_by(college_id_fk=college_id)
        .order_by(ExamType.created_at.desc(), ExamType.exam_type_id.desc())
    ).scalars().all()
    return [_exam_type_dict(et) for et in rows]


# --- EXAM TYPES ---

@exams_bp.route("/exam-types", methods=["POST"])
@college_required
@role_required("COLLEGE_SUPER_ADMIN")
def create_exam_type():
    data = request.get_json(silent=True) or {}
    details = {}

    name = data.get("examName")
    if not isinstance(name, str) or not name.strip():
        details["examName"] = "Exam name is required"
    total = data.get("totalMarks")
    if not _is_number(total) or total <= 0:
        details["totalMarks"] = "Total marks must be a positive number"
    passing = data.get("passingMarks")
    if passing is not None:
        if not _is_number(passing):
            details["passingMarks"] = "Passing marks must be a number"
        elif _is_number(total) and passing >= total:
            details["passingMarks"] = "Passing marks must be less than total marks"
    status = data.get("status", True)
    if not isinstance(status, bool):
        details["status"] = "Status must be true or false"

    if details:
        return api_error("Validation failed", 400, details=details)

    college_id = current_user.college_id_fk
    name = name.strip()
    existing = db.session.execute(
        select(ExamType).filter_by(college_id_fk=college_id, name=name)
    ).scalars().first()
    if existing:
        return api_error("An exam type with this name already exists for the college", 409)

    exam_type = ExamType(
        college_id_fk=college_id,
        name=name,
        total_marks=total,
        passing_marks=passing,
        is_active=status,
    )
    db.session.add(exam_type)
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception("Error creating exam type: %s", e)
        return api_error("Internal Server Error", 500)

    cache.delete_memoized(_college_exam_types, college_id)
    return api_success(_exam_type_dict(exam_type), 201)


@exams_bp.route("/exam-types", methods=["GET"])
@college_required
def list_exam_types():
    exam_types = _college_exam_types(current_user.college_id_fk)
    if not exam_types:
        return api_success({"message": "No exam types found"})
    return api_success(exam_types)


# --- EXAM MARKS ---

@exams_bp.route("/exam-marks", methods=["POST"])
@college_required
@role_required("COLLEGE_SUPER_ADMIN", "TEACHER")
def create_exam_mark():
    data = request.get_json(silent=True) or {}
    details = {}

    ids = {}
    for field in ("examTypeId", "studentId", "batchSubjectId"):
        try:
            ids[field] = int(data.get(field))
        except (TypeError, ValueError):
            details[field] = f"{field} is required"

    achieved = data.get("achievedMarks")
    if not _is_number(achieved) or achieved < 0:
        details["achievedMarks"] = "Achieved marks must be a non-negative number"

    flags = {}
    for field in ("wasAbsent", "debarred", "malpractice"):
        value = data.get(field, False)
        if not isinstance(value, bool):
            details[field] = f"{field} must be true or false"
        flags[field] = value

    if "achievedMarks" not in details and flags["wasAbsent"] is True and achieved != 0:
        details["achievedMarks"] = "If the student was absent, achieved marks must be 0."

    if details:
        return api_error("Validation failed", 400, details=details)

    college_id = current_user.college_id_fk
    student = db.session.execute(
        select(Student).filter_by(student_id=ids["studentId"], college_id_fk=college_id)
    ).scalars().first()
    if not student:
        return api_error("Student not found", 404)

    batch_subject = db.session.execute(
        select(BatchSubject)
        .join(Batch, BatchSubject.batch_id_fk == Batch.batch_id)
        .filter(BatchSubject.batch_subject_id == ids["batchSubjectId"], Batch.college_id_fk == college_id)
    ).scalars().first()
    if not batch_subject:
        return api_error("Batch subject not found", 404)

    exam_type = db.session.execute(
        select(ExamType).filter_by(exam_type_id=ids["examTypeId"], college_id_fk=college_id)
    ).scalars().first()
    if not exam_type:
        return api_error("Exam type not found", 404)

    if achieved > exam_type.total_marks:
        return api_error(
            f"Achieved marks should not exceed the total marks of {exam_type.total_marks:g} in exam Type {exam_type.name}",
            400,
        )

    existing = db.session.execute(
        select(ExamMark).filter_by(
            exam_type_id_fk=exam_type.exam_type_id,
            student_id_fk=student.student_id,
            batch_subject_id_fk=batch_subject.batch_subject_id,
        )
    ).scalars().first()
    if existing:
        return api_error(
            "Exam mark entry already exists for this exam, student, and batch subject combination", 409
        )

    mark = ExamMark(
        exam_type_id_fk=exam_type.exam_type_id,
        student_id_fk=student.student_id,
        batch_subject_id_fk=batch_subject.batch_subject_id,
        achieved_marks=achieved,
        was_absent=flags["wasAbsent"],
        debarred=flags["debarred"],
        malpractice=flags["malpractice"],
    )
    db.session.add(mark)
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception("Error creating exam mark: %s", e)
        return api_error("Internal Server Error", 500)

    return api_success(_exam_mark_dict(mark), 201)


@exams_bp.route("/exam-marks", methods=["GET"])
@college_required
def list_exam_marks():
    try:
        batch_subject_id = int(request.args.get("batchSubjectId"))
    except (TypeError, ValueError):
        return api_error("batchSubjectId is required", 400)

    batch_subject = db.session.get(BatchSubject, batch_subject_id)
    if not batch_subject or batch_subject.batch.college_id_fk != current_user.college_id_fk:
        return api_error("BatchSubject does not belong to the user's college", 403)

    marks = db.session.execute(
        select(ExamMark)
        .filter_by(batch_subject_id_fk=batch_subject_id)
        .order_by(ExamMark.created_at.desc(), ExamMark.exam_mark_id.desc())
    ).scalars().all()

    if not marks:
        return api_success({"message": "No exam marks found for the specified batchSubjectId"})
    return api_success([_exam_mark_dict(m) for m in marks])
