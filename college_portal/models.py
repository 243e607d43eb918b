from datetime import datetime, timezone
from . import db

def utc_now():
    return datetime.now(timezone.utc)

from flask_login import UserMixin

# ==========================================
# ORGANIZATION / TENANT MODELS
# ==========================================

class College(db.Model):
    __tablename__ = "colleges"
    college_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    code = db.Column(db.String(32), unique=True)
    created_at = db.Column(db.DateTime, default=utc_now)


class User(UserMixin, db.Model):
    __tablename__ = "users"
    user_id = db.Column(db.Integer, primary_key=True)
    college_id_fk = db.Column(db.Integer, db.ForeignKey("colleges.college_id"))
    username = db.Column(db.String(128), unique=True, nullable=False)
    password_hash = db.Column(db.String(256))
    role = db.Column(db.String(32), default="STUDENT")  # COLLEGE_SUPER_ADMIN, HOD, TEACHER, STUDENT
    is_active = db.Column(db.Boolean, default=True)

    def get_id(self):
        return str(self.user_id)


# ==========================================
# ACADEMICS
# ==========================================

class Semester(db.Model):
    __tablename__ = "semesters"
    semester_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False)  # e.g. "Semester 3"
    numerical = db.Column(db.Integer, nullable=False)


class Batch(db.Model):
    __tablename__ = "batches"
    batch_id = db.Column(db.Integer, primary_key=True)
    college_id_fk = db.Column(db.Integer, db.ForeignKey("colleges.college_id"), nullable=False)
    term_id_fk = db.Column(db.Integer, db.ForeignKey("semesters.semester_id"), nullable=False)
    name = db.Column(db.String(128), nullable=False)
    created_at = db.Column(db.DateTime, default=utc_now)

    term = db.relationship("Semester")
    batch_subjects = db.relationship("BatchSubject", backref="batch", lazy=True)


class Subject(db.Model):
    __tablename__ = "subjects"
    subject_id = db.Column(db.Integer, primary_key=True)
    college_id_fk = db.Column(db.Integer, db.ForeignKey("colleges.college_id"), nullable=False)
    name = db.Column(db.String(128), nullable=False)
    code = db.Column(db.String(64))


class BatchSubject(db.Model):
    __tablename__ = "batch_subjects"
    batch_subject_id = db.Column(db.Integer, primary_key=True)
    batch_id_fk = db.Column(db.Integer, db.ForeignKey("batches.batch_id"), nullable=False)
    subject_id_fk = db.Column(db.Integer, db.ForeignKey("subjects.subject_id"), nullable=False)
    class_type = db.Column(db.String(16), nullable=False, default="THEORY")  # THEORY, PRACTICAL, BOTH
    credit_score = db.Column(db.Float, nullable=False, default=0)

    subject = db.relationship("Subject")

    __table_args__ = (
        db.UniqueConstraint("batch_id_fk", "subject_id_fk", name="uq_batch_subject"),
    )


class Student(db.Model):
    __tablename__ = "students"
    student_id = db.Column(db.Integer, primary_key=True)
    college_id_fk = db.Column(db.Integer, db.ForeignKey("colleges.college_id"), nullable=False)
    user_id_fk = db.Column(db.Integer, db.ForeignKey("users.user_id"))
    name = db.Column(db.String(128), nullable=False)
    enrollment_no = db.Column(db.String(32), unique=True)

    grade_cards = db.relationship("StudentGradeCard", backref="student", lazy=True)


class StudentBatch(db.Model):
    __tablename__ = "student_batches"
    student_batch_id = db.Column(db.Integer, primary_key=True)
    student_id_fk = db.Column(db.Integer, db.ForeignKey("students.student_id"), nullable=False)
    batch_id_fk = db.Column(db.Integer, db.ForeignKey("batches.batch_id"), nullable=False)

    student = db.relationship("Student")

    __table_args__ = (
        db.UniqueConstraint("student_id_fk", "batch_id_fk", name="uq_student_batch"),
    )


# ==========================================
# EXAMS & GRADE CARDS
# ==========================================

class ExamType(db.Model):
    __tablename__ = "exam_types"
    exam_type_id = db.Column(db.Integer, primary_key=True)
    college_id_fk = db.Column(db.Integer, db.ForeignKey("colleges.college_id"), nullable=False)
    name = db.Column(db.String(128), nullable=False)  # e.g. "Semester Exam"
    total_marks = db.Column(db.Float, nullable=False)
    passing_marks = db.Column(db.Float)
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=utc_now)

    __table_args__ = (
        db.UniqueConstraint("college_id_fk", "name", name="uq_exam_type_college_name"),
    )


class ExamMark(db.Model):
    __tablename__ = "exam_marks"
    exam_mark_id = db.Column(db.Integer, primary_key=True)
    exam_type_id_fk = db.Column(db.Integer, db.ForeignKey("exam_types.exam_type_id"), nullable=False)
    student_id_fk = db.Column(db.Integer, db.ForeignKey("students.student_id"), nullable=False)
    batch_subject_id_fk = db.Column(db.Integer, db.ForeignKey("batch_subjects.batch_subject_id"), nullable=False)
    achieved_marks = db.Column(db.Float, nullable=False, default=0)
    was_absent = db.Column(db.Boolean, default=False)
    debarred = db.Column(db.Boolean, default=False)
    malpractice = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime, default=utc_now)

    student = db.relationship("Student")
    exam_type = db.relationship("ExamType")

    __table_args__ = (
        db.UniqueConstraint("exam_type_id_fk", "student_id_fk", "batch_subject_id_fk", name="uq_exam_mark_entry"),
    )


class StudentGradeCard(db.Model):
    __tablename__ = "student_grade_cards"
    grade_card_id = db.Column(db.Integer, primary_key=True)
    student_id_fk = db.Column(db.Integer, db.ForeignKey("students.student_id"), nullable=False)
    batch_id_fk = db.Column(db.Integer, db.ForeignKey("batches.batch_id"), nullable=False)
    semester_id_fk = db.Column(db.Integer, db.ForeignKey("semesters.semester_id"), nullable=False)
    card_no = db.Column(db.String(32))
    total_graded_credit = db.Column(db.Float)
    total_quality_point = db.Column(db.Float)
    gpa = db.Column(db.Float)
    cgpa = db.Column(db.Float)
    created_at = db.Column(db.DateTime, default=utc_now)

    semester = db.relationship("Semester")
    batch = db.relationship("Batch")
    subject_grades = db.relationship(
        "SubjectGradeDetail", backref="student_grade_card", lazy=True, cascade="all, delete-orphan"
    )

    __table_args__ = (
        db.UniqueConstraint("student_id_fk", "batch_id_fk", "semester_id_fk", name="uq_grade_card_student_term"),
        db.UniqueConstraint("batch_id_fk", "semester_id_fk", "card_no", name="uq_grade_card_no"),
    )


class SubjectGradeDetail(db.Model):
    __tablename__ = "subject_grade_details"
    subject_grade_id = db.Column(db.Integer, primary_key=True)
    student_grade_card_id_fk = db.Column(db.Integer, db.ForeignKey("student_grade_cards.grade_card_id"), nullable=False)
    batch_subject_id_fk = db.Column(db.Integer, db.ForeignKey("batch_subjects.batch_subject_id"), nullable=False)
    credit = db.Column(db.Float)
    internal_marks = db.Column(db.Float)
    external_marks = db.Column(db.Float)
    grade = db.Column(db.String(2))
    grade_point = db.Column(db.Integer)
    quality_point = db.Column(db.Float)

    batch_subject = db.relationship("BatchSubject")

    __table_args__ = (
        db.UniqueConstraint("student_grade_card_id_fk", "batch_subject_id_fk", name="uq_subject_grade_card_subject"),
    )
