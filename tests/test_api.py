"""HTTP-level tests. Database state is checked with a fresh session after the requests."""

import json
from decimal import Decimal

from sqlalchemy import func, select

from gradebook.core.config import settings
from gradebook.core.database import SessionLocal
from gradebook.models.audit import AuditLog
from gradebook.models.mark import StudentMark
from tests.factories import auth_headers

API = settings.API_V1_PREFIX

LEGACY_SUBJECTS = json.dumps([
    {"subjectId": "math", "name": "Mathematics", "maxMarks": 100},
    {"subjectId": "eng", "name": "English", "maxMarks": 50},
])


def exam_payload(**overrides):
    data = {
        "exam_name": "Mid Term",
        "exam_type": "mid_term",
        "start_date": "2026-03-02",
        "end_date": "2026-03-06",
        "subjects": LEGACY_SUBJECTS,
        "total_marks": 150,
        "weightage": 50,
    }
    data.update(overrides)
    return data


def mark_payload(exam_id, **overrides):
    data = {
        "exam_id": exam_id,
        "student_id": "stu-1",
        "student_name": "Adjoa Mensah",
        "class_id": "jhs-1",
        "class_name": "JHS 1",
        "subject_id": "math",
        "class_score": 25,
        "exam_score": 55,
    }
    data.update(overrides)
    return data


def create_exam(client) -> int:
    response = client.post(f"{API}/exams", json=exam_payload(), headers=auth_headers("admin-1"))
    assert response.status_code == 200
    return response.json()["id"]


def complete_exam(client, exam_id):
    response = client.patch(
        f"{API}/exams/{exam_id}",
        json={"status": "completed"},
        headers=auth_headers("admin-1"),
    )
    assert response.status_code == 200


def count(model) -> int:
    with SessionLocal() as session:
        return session.execute(select(func.count()).select_from(model)).scalar()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["audit_relay"] == "disabled"


def test_request_id_is_echoed(client):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


def test_missing_authorization_header(client):
    response = client.get(f"{API}/exams")
    assert response.status_code == 422
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


def test_bad_token(client):
    response = client.get(f"{API}/exams", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401
    assert response.json()["error"]["code"] == "AUTH_FAILED"


def test_unknown_staff_in_token(client):
    response = client.get(f"{API}/exams", headers=auth_headers("ghost"))
    assert response.status_code == 401


def test_admin_creates_exam_from_legacy_subjects(client):
    response = client.post(f"{API}/exams", json=exam_payload(), headers=auth_headers("admin-1"))

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "draft"
    assert body["school_id"] == "school-a"
    assert [s["subject_id"] for s in body["subjects"]] == ["math", "eng"]


def test_teacher_cannot_create_exam(client):
    response = client.post(f"{API}/exams", json=exam_payload(), headers=auth_headers("teacher-1"))
    assert response.status_code == 403
    assert response.json()["error"]["code"] == "UNAUTHORIZED"


def test_malformed_subjects_blob(client):
    response = client.post(
        f"{API}/exams",
        json=exam_payload(subjects="[not json"),
        headers=auth_headers("admin-1"),
    )
    assert response.status_code == 422
    assert response.json()["error"]["code"] == "INVALID_INPUT"


def test_exams_are_listed_per_school(client):
    exam_id = create_exam(client)

    own = client.get(f"{API}/exams", headers=auth_headers("teacher-1")).json()
    other = client.get(f"{API}/exams", headers=auth_headers("admin-2", "school-b")).json()

    assert [e["id"] for e in own["items"]] == [exam_id]
    assert own["total_pages"] == 1
    assert other["total"] == 0
    response = client.get(f"{API}/exams/{exam_id}", headers=auth_headers("admin-2", "school-b"))
    assert response.status_code == 404


def test_status_cannot_move_backwards(client):
    exam_id = create_exam(client)
    complete_exam(client, exam_id)

    response = client.patch(
        f"{API}/exams/{exam_id}",
        json={"status": "ongoing"},
        headers=auth_headers("admin-1"),
    )
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "INVALID_TRANSITION"


def test_null_for_required_exam_field_is_invalid(client):
    exam_id = create_exam(client)

    for body in ({"status": None}, {"start_date": None}, {"exam_name": None}):
        response = client.patch(f"{API}/exams/{exam_id}", json=body, headers=auth_headers("admin-1"))
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "INVALID_INPUT"

    exam = client.get(f"{API}/exams/{exam_id}", headers=auth_headers("admin-1")).json()
    assert exam["status"] == "draft"
    assert exam["exam_name"] == "Mid Term"


def test_mark_entry_lock_gate(client):
    exam_id = create_exam(client)

    response = client.post(f"{API}/marks", json=mark_payload(exam_id), headers=auth_headers("teacher-1"))
    assert response.status_code == 200
    body = response.json()
    assert body["percentage"] == "80.00"
    assert body["grade"] == "1"
    assert body["entered_by"] == "teacher-1"

    complete_exam(client, exam_id)

    response = client.post(f"{API}/marks", json=mark_payload(exam_id), headers=auth_headers("teacher-1"))
    assert response.status_code == 403
    assert response.json()["error"]["code"] == "TEACHER_EDIT_FORBIDDEN"

    response = client.post(f"{API}/marks", json=mark_payload(exam_id), headers=auth_headers("admin-1"))
    assert response.status_code == 423
    assert response.json()["error"]["code"] == "EXAM_LOCKED"

    response = client.post(
        f"{API}/marks",
        params={"admin_override": "true"},
        json=mark_payload(exam_id, exam_score=60, entry_reason="Recount"),
        headers=auth_headers("admin-1"),
    )
    assert response.status_code == 200
    assert Decimal(response.json()["total_score"]) == Decimal("85")
    assert count(StudentMark) == 1


def test_mark_over_max_is_invalid(client):
    exam_id = create_exam(client)
    response = client.post(
        f"{API}/marks",
        json=mark_payload(exam_id, subject_id="eng", class_score=30, exam_score=30),
        headers=auth_headers("teacher-1"),
    )
    assert response.status_code == 422
    assert response.json()["error"]["code"] == "INVALID_INPUT"
    assert count(StudentMark) == 0


def test_audit_trail_over_http(client):
    exam_id = create_exam(client)
    complete_exam(client, exam_id)
    response = client.post(
        f"{API}/exams/{exam_id}/unlock",
        json={"reason": "Moderation changes"},
        headers=auth_headers("admin-1"),
    )
    assert response.status_code == 200
    assert response.json()["unlocked"] is True

    assert count(AuditLog) == 0
    response = client.post(f"{API}/audit-logs/dispatch", headers=auth_headers("admin-1"))
    assert response.json() == {"delivered": 1, "failed": 0}

    logs = client.get(f"{API}/audit-logs", headers=auth_headers("admin-1")).json()
    assert logs["total"] == 1
    assert logs["items"][0]["action"] == "unlock_exam"

    response = client.get(f"{API}/audit-logs", headers=auth_headers("teacher-1"))
    assert response.status_code == 403


def test_verify_uses_the_callers_role(client):
    exam_id = create_exam(client)
    mark_id = client.post(
        f"{API}/marks", json=mark_payload(exam_id), headers=auth_headers("teacher-1")
    ).json()["id"]

    response = client.post(f"{API}/marks/verify", json={"mark_ids": [mark_id]}, headers=auth_headers("teacher-1"))
    assert response.status_code == 422

    response = client.post(f"{API}/marks/verify", json={"mark_ids": [mark_id]}, headers=auth_headers("ct-1"))
    assert response.json() == {"updated": 1, "missing": []}

    marks = client.get(f"{API}/marks/exam/{exam_id}", headers=auth_headers("ct-1")).json()
    assert marks[0]["submission_status"] == "verified_by_class_teacher"
    assert marks[0]["verified_by"] == "ct-1"


def test_export_and_analytics(client):
    exam_id = create_exam(client)
    client.post(f"{API}/marks", json=mark_payload(exam_id), headers=auth_headers("teacher-1"))
    client.post(
        f"{API}/marks",
        json=mark_payload(exam_id, student_id="stu-2", student_name="Kwame Asante", class_score=5, exam_score=10),
        headers=auth_headers("teacher-1"),
    )

    response = client.get(f"{API}/exams/{exam_id}/export", headers=auth_headers("teacher-1"))
    assert response.status_code == 200
    assert response.headers["content-type"].startswith(
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    )
    assert f"exam_{exam_id}_marks.xlsx" in response.headers["content-disposition"]
    assert response.content[:2] == b"PK"

    analytics = client.get(f"{API}/analytics/exams/{exam_id}", headers=auth_headers("teacher-1")).json()
    assert analytics["overall"]["passed_count"] == 1
    assert analytics["overall"]["pass_rate"] == "50.00"

    ranks = client.post(f"{API}/exams/{exam_id}/rank", headers=auth_headers("teacher-1")).json()
    assert ranks == {"math": 2}


def test_marks_ledger_rollups_over_http(client):
    exam_id = create_exam(client)
    client.post(f"{API}/marks", json=mark_payload(exam_id), headers=auth_headers("teacher-1"))
    client.post(
        f"{API}/marks",
        json=mark_payload(exam_id, student_id="stu-2", student_name="Kwame Asante", class_score=5, exam_score=10),
        headers=auth_headers("teacher-1"),
    )
    headers = auth_headers("teacher-1")

    stats = client.get(f"{API}/analytics/exams/{exam_id}/marks-stats", headers=headers).json()
    assert stats["total_marks_entries"] == 2
    assert stats["classes_covered"] == [{"class_id": "jhs-1", "class_name": "JHS 1", "student_count": 2}]

    subjects = client.get(
        f"{API}/analytics/classes/jhs-1/subjects", params={"exam_id": exam_id}, headers=headers
    ).json()
    assert [s["subject_id"] for s in subjects] == ["math"]
    assert Decimal(subjects[0]["average"]) == Decimal("47.50")
    assert Decimal(subjects[0]["pass_rate"]) == Decimal("50.00")

    distribution = client.get(f"{API}/analytics/classes/jhs-1/distribution", headers=headers).json()
    assert distribution["distribution"]["excellent"] == 1
    assert distribution["distribution"]["poor"] == 1

    trends = client.get(f"{API}/analytics/students/stu-1/trends", headers=headers).json()
    assert [(t["exam_id"], Decimal(t["average"])) for t in trends] == [(exam_id, Decimal("80.00"))]

    response = client.get(
        f"{API}/analytics/exams/{exam_id}/marks-stats", headers=auth_headers("admin-2", "school-b")
    )
    assert response.status_code == 404


def test_analytics_for_exam_without_marks_is_null(client):
    exam_id = create_exam(client)
    response = client.get(f"{API}/analytics/exams/{exam_id}", headers=auth_headers("admin-1"))
    assert response.status_code == 200
    assert response.json() is None


def test_delete_exam_over_http(client):
    exam_id = create_exam(client)
    client.post(f"{API}/marks", json=mark_payload(exam_id), headers=auth_headers("teacher-1"))

    response = client.delete(f"{API}/exams/{exam_id}", headers=auth_headers("admin-1"))

    assert response.json() == {"message": "Exam deleted with 1 marks"}
    assert count(StudentMark) == 0


def test_academic_calendar_over_http(client):
    headers = auth_headers("admin-1")
    year = client.post(
        f"{API}/academic/years",
        json={"year_name": "2030/2031", "start_date": "2030-09-01", "end_date": "2031-07-31"},
        headers=headers,
    ).json()
    client.post(
        f"{API}/academic/terms",
        json={
            "academic_year_id": year["id"],
            "term_name": "Term 1",
            "term_number": 1,
            "start_date": "2030-09-01",
            "end_date": "2030-12-15",
        },
        headers=headers,
    )

    response = client.post(f"{API}/academic/years/{year['id']}/set-current", headers=headers)
    assert response.json()["current_year"]["id"] == year["id"]

    response = client.delete(f"{API}/academic/years/{year['id']}", headers=headers)
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "DEPENDENT_DATA_EXISTS"
