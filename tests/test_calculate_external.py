from college_portal import db
from college_portal.models import ExamType, SubjectGradeDetail

URL = "/grade-card/calculate-external"


def _externals(app, detail_ids):
    with app.app_context():
        return [db.session.get(SubjectGradeDetail, d).external_marks for d in detail_ids]


def _seed_cards(sc, add_grade_card, internal=20):
    detail_ids = []
    for sid in sc.student_ids:
        _, rows = add_grade_card(sid, sc.batch_id, sc.semester_id, {
            bs: (internal, None, 4.0) for bs in sc.batch_subject_ids
        })
        detail_ids.extend(rows.values())
    return detail_ids


def test_calculate_external_scales_semester_marks(app, scenario, login, add_grade_card, add_exam_mark):
    sc = scenario()
    bs = sc.batch_subject_ids[0]
    details = _seed_cards(sc, add_grade_card)
    add_exam_mark(sc.exam_type_id, sc.student_ids[0], bs, 70)
    add_exam_mark(sc.exam_type_id, sc.student_ids[1], bs, 35)

    client = login(sc.admin)
    resp = client.post(URL, json={"batchId": sc.batch_id})

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["message"] == "External marks updated successfully."
    assert body["updated"] == 2
    assert _externals(app, details) == [49, 25]


def test_calculate_external_accepts_string_batch_id_and_any_role(app, scenario, login, add_grade_card, add_exam_mark):
    sc = scenario(students=1)
    details = _seed_cards(sc, add_grade_card)
    add_exam_mark(sc.exam_type_id, sc.student_ids[0], sc.batch_subject_ids[0], 100)

    client = login(sc.teacher)
    resp = client.post(URL, json={"batchId": str(sc.batch_id)})

    assert resp.status_code == 200
    assert _externals(app, details) == [70]


def test_missing_internal_mark_rejects_whole_batch(app, scenario, login, add_grade_card, add_exam_mark):
    sc = scenario()
    bs = sc.batch_subject_ids[0]
    _, ok_rows = add_grade_card(sc.student_ids[0], sc.batch_id, sc.semester_id, {bs: (20, None, 4.0)})
    add_grade_card(sc.student_ids[1], sc.batch_id, sc.semester_id, {bs: (None, None, 4.0)})
    add_exam_mark(sc.exam_type_id, sc.student_ids[0], bs, 70)
    add_exam_mark(sc.exam_type_id, sc.student_ids[1], bs, 70)

    client = login(sc.admin)
    resp = client.post(URL, json={"batchId": sc.batch_id})

    assert resp.status_code == 400
    body = resp.get_json()
    assert body["message"] == "Errors occurred during external marks calculation."
    assert len(body["errors"]) == 1
    assert body["errors"][0].startswith("Internal mark missing for student Student")
    assert sc.enrollments[1] in body["errors"][0]
    # the valid student was not written either
    assert _externals(app, ok_rows.values()) == [None]


def test_missing_exam_mark_is_reported(app, scenario, login, add_grade_card, add_exam_mark):
    sc = scenario()
    bs = sc.batch_subject_ids[0]
    details = _seed_cards(sc, add_grade_card)
    add_exam_mark(sc.exam_type_id, sc.student_ids[0], bs, 70)

    client = login(sc.admin)
    resp = client.post(URL, json={"batchId": sc.batch_id})

    assert resp.status_code == 400
    errors = resp.get_json()["errors"]
    assert len(errors) == 1
    assert errors[0].startswith("Missing semester exam marks for student")
    assert f"with ER No. {sc.enrollments[1]}" in errors[0]
    assert _externals(app, details) == [None, None]


def test_missing_grade_card_is_reported(app, scenario, login, add_grade_card, add_exam_mark):
    sc = scenario()
    bs = sc.batch_subject_ids[0]
    add_grade_card(sc.student_ids[0], sc.batch_id, sc.semester_id, {bs: (20, None, 4.0)})
    add_exam_mark(sc.exam_type_id, sc.student_ids[0], bs, 70)
    add_exam_mark(sc.exam_type_id, sc.student_ids[1], bs, 70)

    client = login(sc.admin)
    resp = client.post(URL, json={"batchId": sc.batch_id})

    assert resp.status_code == 400
    errors = resp.get_json()["errors"]
    assert len(errors) == 1
    assert errors[0].startswith("Grade card not found for student")
    assert "Semester 1" in errors[0]


def test_no_semester_exam_type(scenario, login, add_grade_card):
    sc = scenario(exam_name="Midterm Test")
    _seed_cards(sc, add_grade_card)

    client = login(sc.admin)
    resp = client.post(URL, json={"batchId": sc.batch_id})

    assert resp.status_code == 400
    errors = resp.get_json()["errors"]
    assert len(errors) == 1
    assert errors[0].startswith("No semester exam found for batchSubject Subject")


def test_latest_semester_exam_is_used(app, scenario, login, add_grade_card, add_exam_mark):
    sc = scenario(students=1)
    bs = sc.batch_subject_ids[0]
    details = _seed_cards(sc, add_grade_card)
    with app.app_context():
        newer = ExamType(college_id_fk=sc.college_id, name="Final SEMESTER Exam", total_marks=50)
        db.session.add(newer)
        db.session.commit()
        newer_id = newer.exam_type_id
    add_exam_mark(newer_id, sc.student_ids[0], bs, 25)

    client = login(sc.admin)
    resp = client.post(URL, json={"batchId": sc.batch_id})

    assert resp.status_code == 200
    assert _externals(app, details) == [35]


def test_explicit_exam_type_overrides_name_lookup(app, scenario, login, add_grade_card, add_exam_mark):
    sc = scenario(students=1)
    bs = sc.batch_subject_ids[0]
    details = _seed_cards(sc, add_grade_card)
    with app.app_context():
        board = ExamType(college_id_fk=sc.college_id, name="Board Exam", total_marks=80)
        db.session.add(board)
        db.session.commit()
        board_id = board.exam_type_id
    add_exam_mark(board_id, sc.student_ids[0], bs, 40)

    client = login(sc.admin)
    resp = client.post(URL, json={"batchId": sc.batch_id, "examTypeId": board_id})

    assert resp.status_code == 200
    assert _externals(app, details) == [35]


def test_no_batch_subjects(scenario, login):
    sc = scenario(subjects=())
    client = login(sc.admin)
    resp = client.post(URL, json={"batchId": sc.batch_id})
    assert resp.status_code == 404
    assert resp.get_json()["error"] == "No batch subjects found for the batch."


def test_other_college_batch_is_not_found(scenario, login, add_grade_card, add_exam_mark):
    mine = scenario()
    theirs = scenario(students=1)
    _seed_cards(theirs, add_grade_card)
    add_exam_mark(theirs.exam_type_id, theirs.student_ids[0], theirs.batch_subject_ids[0], 60)

    client = login(mine.admin)
    resp = client.post(URL, json={"batchId": theirs.batch_id})
    assert resp.status_code == 404


def test_batch_id_required(scenario, login):
    sc = scenario()
    client = login(sc.admin)
    resp = client.post(URL, json={})
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Batch ID is required"

    resp = client.post(URL, json={"batchId": "abc"})
    assert resp.status_code == 400


def test_requires_login(client):
    resp = client.post(URL, json={"batchId": 1})
    assert resp.status_code == 401
