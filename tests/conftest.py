import itertools
from types import SimpleNamespace

import pytest
from werkzeug.security import generate_password_hash

from college_portal import create_app, db
from college_portal.models import (
    Batch, BatchSubject, College, ExamMark, ExamType, Semester, Student, StudentBatch,
    StudentGradeCard, Subject, SubjectGradeDetail, User,
)

PASSWORD = "secret"

# Tables are shared for the whole session, so every seeded row gets a fresh suffix.
_seq = itertools.count(1)


@pytest.fixture(scope="session")
def app(tmp_path_factory):
    db_path = tmp_path_factory.mktemp("data") / "test.db"
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path.as_posix()}",
        "RATELIMIT_ENABLED": True,
        "CACHE_TYPE": "SimpleCache",
    })
    return app


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def login(app):
    def do_login(username, password=PASSWORD):
        client = app.test_client()
        # first request hands out the per-session rate limit key
        client.get("/")
        resp = client.post("/login", json={"username": username, "password": password})
        assert resp.status_code == 200, resp.get_json()
        return client
    return do_login


@pytest.fixture()
def scenario(app):
    """
    Seeds one college with an admin, a teacher, a batch for the given
    semester, its subjects and enrolled students. Returns plain ids so
    tests can open their own app contexts.
    """
    def build(semester_no=1, subjects=(("THEORY", 4.0),), students=2, exam_name="Semester Exam", exam_total=100):
        n = next(_seq)
        with app.app_context():
            college = College(name=f"College {n}", code=f"COL{n}")
            db.session.add(college)
            db.session.flush()

            admin = User(
                username=f"admin{n}", password_hash=generate_password_hash(PASSWORD),
                role="COLLEGE_SUPER_ADMIN", college_id_fk=college.college_id,
            )
            teacher = User(
                username=f"teacher{n}", password_hash=generate_password_hash(PASSWORD),
                role="TEACHER", college_id_fk=college.college_id,
            )
            semester = Semester(name=f"Semester {semester_no}", numerical=semester_no)
            db.session.add_all([admin, teacher, semester])
            db.session.flush()

            batch = Batch(college_id_fk=college.college_id, term_id_fk=semester.semester_id, name=f"Batch {n}")
            db.session.add(batch)
            db.session.flush()

            batch_subjects = []
            for i, (class_type, credit) in enumerate(subjects, start=1):
                subject = Subject(college_id_fk=college.college_id, name=f"Subject {n}-{i}", code=f"S{n}{i:02d}")
                db.session.add(subject)
                db.session.flush()
                bs = BatchSubject(
                    batch_id_fk=batch.batch_id, subject_id_fk=subject.subject_id,
                    class_type=class_type, credit_score=credit,
                )
                db.session.add(bs)
                batch_subjects.append(bs)

            student_rows = []
            for i in range(students):
                s = Student(
                    college_id_fk=college.college_id,
                    name=f"Student {n}-{i + 1}",
                    enrollment_no=f"U23CS07{next(_seq):04d}",
                )
                db.session.add(s)
                db.session.flush()
                db.session.add(StudentBatch(student_id_fk=s.student_id, batch_id_fk=batch.batch_id))
                student_rows.append(s)

            exam_type = None
            if exam_name:
                exam_type = ExamType(college_id_fk=college.college_id, name=exam_name, total_marks=exam_total)
                db.session.add(exam_type)

            db.session.commit()

            return SimpleNamespace(
                college_id=college.college_id,
                admin=admin.username,
                teacher=teacher.username,
                semester_id=semester.semester_id,
                batch_id=batch.batch_id,
                batch_subject_ids=[bs.batch_subject_id for bs in batch_subjects],
                student_ids=[s.student_id for s in student_rows],
                enrollments=[s.enrollment_no for s in student_rows],
                exam_type_id=exam_type.exam_type_id if exam_type else None,
            )
    return build


@pytest.fixture()
def add_grade_card(app):
    """rows: {batch_subject_id: (internal, external, credit)}"""
    def add(student_id, batch_id, semester_id, rows, card_no=None, **totals):
        with app.app_context():
            card = StudentGradeCard(
                student_id_fk=student_id, batch_id_fk=batch_id, semester_id_fk=semester_id,
                card_no=card_no, **totals,
            )
            db.session.add(card)
            db.session.flush()
            detail_ids = {}
            for bs_id, (internal, external, credit) in rows.items():
                d = SubjectGradeDetail(
                    student_grade_card_id_fk=card.grade_card_id, batch_subject_id_fk=bs_id,
                    internal_marks=internal, external_marks=external, credit=credit,
                )
                db.session.add(d)
                db.session.flush()
                detail_ids[bs_id] = d.subject_grade_id
            db.session.commit()
            return card.grade_card_id, detail_ids
    return add


@pytest.fixture()
def add_exam_mark(app):
    def add(exam_type_id, student_id, batch_subject_id, achieved, **flags):
        with app.app_context():
            m = ExamMark(
                exam_type_id_fk=exam_type_id, student_id_fk=student_id,
                batch_subject_id_fk=batch_subject_id, achieved_marks=achieved, **flags,
            )
            db.session.add(m)
            db.session.commit()
            return m.exam_mark_id
    return add
