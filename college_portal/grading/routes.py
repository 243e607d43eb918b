import io
from flask import request, current_app, jsonify, send_file
from flask_login import current_user
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from . import grading_bp
from .. import db
from ..models import Batch, BatchSubject, Student, StudentGradeCard, SubjectGradeDetail
from ..api_utils import api_success, api_error
from ..decorators import college_required, role_required
from .errors import NotFoundError, GradeValidationError, InternalImportError
from .importer import import_internal_marks
from .pdf import render_grade_card, grade_card_filename
from .services import calculate_external_marks, generate_grade_details


def _parse_id(raw):
    if raw is None or isinstance(raw, bool):
        return None
    try:
        return int(str(raw).strip())
    except (TypeError, ValueError):
        return None


def _server_error(message, e):
    current_app.logger.exception("%s: %s", message, e)
    return api_error(message, 500, details=str(e))


def _subject_grade_dict(detail):
    bs = detail.batch_subject
    return {
        "id": detail.subject_grade_id,
        "batchSubjectId": detail.batch_subject_id_fk,
        "credit": detail.credit,
        "internalMarks": detail.internal_marks,
        "externalMarks": detail.external_marks,
        "grade": detail.grade,
        "gradePoint": detail.grade_point,
        "qualityPoint": detail.quality_point,
        "batchSubject": {
            "id": bs.batch_subject_id,
            "classType": bs.class_type,
            "creditScore": bs.credit_score,
            "subject": {"id": bs.subject.subject_id, "name": bs.subject.name, "code": bs.subject.code},
        },
    }


def _grade_card_dict(card):
    return {
        "id": card.grade_card_id,
        "cardNo": card.card_no,
        "totalGradedCredit": card.total_graded_credit,
        "totalQualityPoint": card.total_quality_point,
        "gpa": card.gpa,
        "cgpa": card.cgpa,
        "student": {
            "id": card.student.student_id,
            "name": card.student.name,
            "enrollmentNo": card.student.enrollment_no,
        },
        "semester": {
            "id": card.semester.semester_id,
            "name": card.semester.name,
            "numerical": card.semester.numerical,
        },
        "batch": {"id": card.batch.batch_id, "name": card.batch.name},
        "subjectGrades": [_subject_grade_dict(d) for d in card.subject_grades],
    }


def _college_grade_card(grade_card_id):
    return db.session.execute(
        select(StudentGradeCard)
        .join(Student, StudentGradeCard.student_id_fk == Student.student_id)
        .filter(
            StudentGradeCard.grade_card_id == grade_card_id,
            Student.college_id_fk == current_user.college_id_fk,
        )
    ).scalars().first()


# --- BATCH GRADE PIPELINE ---

@grading_bp.route("/grade-card/calculate-external", methods=["POST"])
@college_required
def calculate_external():
    data = request.get_json(silent=True) or {}
    batch_id = _parse_id(data.get("batchId"))
    if batch_id is None:
        return api_error("Batch ID is required", 400)

    exam_type_id = None
    if data.get("examTypeId") is not None:
        exam_type_id = _parse_id(data.get("examTypeId"))
        if exam_type_id is None:
            return api_error("Invalid exam type ID", 400)

    try:
        count = calculate_external_marks(batch_id, current_user.college_id_fk, exam_type_id)
    except NotFoundError as e:
        return api_error(str(e), 404)
    except GradeValidationError as e:
        return jsonify({"message": "Errors occurred during external marks calculation.", "errors": e.errors}), 400
    except Exception as e:
        db.session.rollback()
        return _server_error("Failed to calculate external marks.", e)

    return api_success({"message": "External marks updated successfully.", "updated": count})


@grading_bp.route("/grade-card/generate-grade-details", methods=["POST"])
@college_required
def generate_details():
    data = request.get_json(silent=True) or {}
    batch_id = _parse_id(data.get("batchId"))
    if batch_id is None:
        return api_error("Batch ID is required", 400)

    try:
        count = generate_grade_details(batch_id, current_user.college_id_fk)
    except NotFoundError as e:
        return api_error(str(e), 404)
    except GradeValidationError as e:
        return jsonify({"errors": e.errors}), 400
    except Exception as e:
        db.session.rollback()
        return _server_error("Failed to calculate grade details", e)

    return api_success({"message": "Grade calculations and updates successful.", "updated": count})


@grading_bp.route("/grade-card/import-internal", methods=["POST"])
@college_required
def import_internal():
    upload = request.files.get("file")
    if not upload or not upload.filename:
        return api_error("No file uploaded", 400)

    batch_subject_id = _parse_id(request.form.get("batchSubjectId"))
    if batch_subject_id is None:
        return api_error("Batch Subject ID is required", 400)

    batch_subject = db.session.execute(
        select(BatchSubject)
        .join(Batch, BatchSubject.batch_id_fk == Batch.batch_id)
        .filter(
            BatchSubject.batch_subject_id == batch_subject_id,
            Batch.college_id_fk == current_user.college_id_fk,
        )
    ).scalars().first()
    if not batch_subject:
        return api_error("Invalid batch subject ID.", 400)

    try:
        count = import_internal_marks(upload.stream, batch_subject)
    except InternalImportError as e:
        return jsonify(e.to_dict()), 400
    except Exception as e:
        db.session.rollback()
        return _server_error("An unexpected error occurred while importing internal marks.", e)

    return api_success({"message": f"Successfully imported {count} records.", "successCount": count}, 201)


# --- GRADE CARD RECORDS ---

@grading_bp.route("/grade-card", methods=["GET"])
@college_required
def list_student_grade_cards():
    student_id = _parse_id(request.args.get("studentId"))
    if student_id is None:
        return api_error("studentId is required", 400)

    cards = db.session.execute(
        select(StudentGradeCard)
        .join(Student, StudentGradeCard.student_id_fk == Student.student_id)
        .filter(
            StudentGradeCard.student_id_fk == student_id,
            Student.college_id_fk == current_user.college_id_fk,
        )
        .options(
            selectinload(StudentGradeCard.subject_grades)
            .selectinload(SubjectGradeDetail.batch_subject)
            .selectinload(BatchSubject.subject),
        )
        .order_by(StudentGradeCard.created_at.desc(), StudentGradeCard.grade_card_id.desc())
    ).scalars().all()

    if not cards:
        return api_error("No grade cards found for this student", 404)

    data = []
    for card in cards:
        data.append({
            "id": card.grade_card_id,
            "name": card.student.name,
            "rollNo": card.student.enrollment_no or "",
            "gradeCardNo": card.card_no,
            "semester": card.semester.name,
            "subjects": [
                {
                    "name": d.batch_subject.subject.name,
                    "credit": d.credit,
                    "grade": d.grade or "",
                    "gradePoint": d.grade_point or 0,
                    "qualityPoint": d.quality_point or 0,
                    "internalMarks": d.internal_marks or 0,
                    "externalMarks": d.external_marks or 0,
                    "classType": d.batch_subject.class_type,
                }
                for d in card.subject_grades
            ],
            "totalGradedCredits": card.total_graded_credit or 0,
            "totalQualityPoints": card.total_quality_point or 0,
            "gpa": card.gpa or 0,
            "cgpa": card.cgpa or 0,
        })
    return api_success(data)


@grading_bp.route("/grade-card/<int:grade_card_id>", methods=["GET"])
@college_required
def get_grade_card(grade_card_id):
    card = _college_grade_card(grade_card_id)
    if not card:
        return api_error("Grade card not found", 404)
    return api_success(_grade_card_dict(card))


@grading_bp.route("/grade-card/<int:grade_card_id>/pdf", methods=["GET"])
@college_required
def download_grade_card(grade_card_id):
    card = _college_grade_card(grade_card_id)
    if not card:
        return api_error("Grade card not found", 404)

    try:
        pdf_data = render_grade_card(card)
    except Exception as e:
        return _server_error("An unexpected error occurred while generating the PDF.", e)

    return send_file(
        io.BytesIO(pdf_data),
        mimetype="application/pdf",
        as_attachment=True,
        download_name=grade_card_filename(card),
    )


@grading_bp.route("/grade-card/<int:grade_card_id>", methods=["DELETE"])
@college_required
@role_required("COLLEGE_SUPER_ADMIN")
def delete_grade_card(grade_card_id):
    card = _college_grade_card(grade_card_id)
    if not card:
        return api_error("StudentGradeCard not found or does not belong to the user's college", 404)

    try:
        # subject grade rows go with the card (delete-orphan cascade)
        db.session.delete(card)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        return _server_error("Internal Server Error", e)

    return api_success({"message": "StudentGradeCard and its subject grades deleted successfully"})


# --- SUBJECT GRADE DETAILS ---

def _college_subject_grade(subject_grade_id):
    return db.session.execute(
        select(SubjectGradeDetail)
        .join(StudentGradeCard, SubjectGradeDetail.student_grade_card_id_fk == StudentGradeCard.grade_card_id)
        .join(Student, StudentGradeCard.student_id_fk == Student.student_id)
        .filter(
            SubjectGradeDetail.subject_grade_id == subject_grade_id,
            Student.college_id_fk == current_user.college_id_fk,
        )
    ).scalars().first()


def _validate_marks(data, field, label, ceiling, details):
    if field not in data or data[field] is None:
        return None
    value = data[field]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        details[field] = f"{label} marks must be a number"
        return None
    if value < 0:
        details[field] = f"{label} marks cannot be negative"
    elif value > ceiling:
        details[field] = f"{label} marks should not exceed {ceiling}"
    return value


@grading_bp.route("/subject-grade-detail/<int:subject_grade_id>", methods=["PUT"])
@college_required
@role_required("COLLEGE_SUPER_ADMIN")
def update_subject_grade(subject_grade_id):
    data = request.get_json(silent=True) or {}
    details = {}
    internal = _validate_marks(data, "internalMarks", "Internal", current_app.config.get("GRADECARD_INTERNAL_MAX", 30), details)
    external = _validate_marks(data, "externalMarks", "External", current_app.config.get("GRADECARD_EXTERNAL_SCALE", 70), details)
    if details:
        return api_error("Validation failed", 400, details=details)

    detail = _college_subject_grade(subject_grade_id)
    if not detail:
        return api_error("SubjectGradeDetail not found or does not belong to the user's college", 404)

    if internal is not None:
        detail.internal_marks = internal
    if external is not None:
        detail.external_marks = external

    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        return _server_error("Internal Server Error", e)

    return api_success({
        "id": detail.subject_grade_id,
        "studentGradeCardId": detail.student_grade_card_id_fk,
        "batchSubjectId": detail.batch_subject_id_fk,
        "credit": detail.credit,
        "internalMarks": detail.internal_marks,
        "externalMarks": detail.external_marks,
        "grade": detail.grade,
        "gradePoint": detail.grade_point,
        "qualityPoint": detail.quality_point,
    })


@grading_bp.route("/subject-grade-detail/<int:subject_grade_id>", methods=["DELETE"])
@college_required
@role_required("COLLEGE_SUPER_ADMIN", "TEACHER")
def delete_subject_grade(subject_grade_id):
    detail = _college_subject_grade(subject_grade_id)
    if not detail:
        return api_error("SubjectGradeDetail not found or does not belong to the user's college", 404)

    card = detail.student_grade_card
    last_subject = len(card.subject_grades) == 1

    try:
        if last_subject:
            db.session.delete(card)
        else:
            db.session.delete(detail)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        return _server_error("Internal Server Error", e)

    if last_subject:
        return api_success({"message": "SubjectGradeDetail and StudentGradeCard deleted successfully"})
    return api_success({"message": "SubjectGradeDetail deleted successfully"})
