"""
End-to-end tests through the HTTP API
"""
import os

from exam_integrity.core.config import settings
from exam_integrity.models.proctoring import ProctorSession

from conftest import ADMIN_ID, CORRECT_TEXT, COURSE_ID, OTHER_STUDENT_ID, auth_headers

BASE = f"/api/v1/exams/course/{COURSE_ID}"


def start_session(client, headers):
    response = client.post(f"{BASE}/proctor/start", json={"client_info": {"fingerprint": "abc", "screen": "1920x1080"}},
                           headers=headers)
    assert response.status_code == 200, response.text
    return response.json()["session_id"]


def correct_answers(paper):
    return {str(q["id"]): q["options"].index(CORRECT_TEXT[q["id"]]) for q in paper["questions"]}


class TestAuth:
    def test_missing_token(self, client, course_exam):
        assert client.get(BASE).status_code == 401

    def test_bad_token(self, client, course_exam):
        response = client.get(BASE, headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    def test_admin_cannot_take_exams(self, client, course_exam, admin_headers):
        assert client.get(BASE, headers=admin_headers).status_code == 403

    def test_student_cannot_use_admin_routes(self, client, student_headers):
        assert client.get("/api/v1/admin/proctor/sessions", headers=student_headers).status_code == 403


class TestStudentFlow:
    def test_exam_info_hides_questions(self, client, course_exam, student_headers):
        response = client.get(BASE, headers=student_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["title"] == "Final exam"
        assert data["question_count"] == 3
        assert data["passing_score"] == 70
        assert "questions" not in data

    def test_unconfigured_exam(self, client, student_headers):
        response = client.get("/api/v1/exams/subject/5", headers=student_headers)
        assert response.status_code == 404
        assert response.json()["error"] == "Exam not configured for this subject"

    def test_unknown_target_type(self, client, student_headers):
        assert client.get("/api/v1/exams/module/5", headers=student_headers).status_code == 404

    def test_eligibility(self, client, course_exam, student_headers):
        response = client.get(f"{BASE}/eligibility", headers=student_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["eligible"] is True
        assert data["rules"] == {"result_release_days": 3, "retake_gap_days": 3, "passing_score": 70}

    def test_full_attempt(self, client, course_exam, student_headers, sent_notices):
        session_id = start_session(client, student_headers)

        active = client.get(f"{BASE}/proctor/active", headers=student_headers).json()["active"]
        assert active["session_id"] == session_id
        assert active["warning_count"] == 0

        response = client.get(f"{BASE}/proctor/paper", params={"session_id": session_id}, headers=student_headers)
        assert response.status_code == 200
        body = response.json()
        paper = body["paper"]
        assert len(body["paper_hash"]) == 64
        assert paper["question_count"] == 3
        for q in paper["questions"]:
            assert "correct_index" not in q

        response = client.post(f"{BASE}/proctor/event", json={"session_id": session_id, "type": "tab_hidden"},
                               headers=student_headers)
        assert response.json() == {"ok": True, "event_type": "TAB_HIDDEN", "is_violation": True}

        response = client.post(f"{BASE}/attempt",
                               json={"answers": correct_answers(paper), "proctor_session_id": session_id},
                               headers=student_headers)
        assert response.status_code == 200, response.text
        attempt = response.json()
        assert attempt["attempt_no"] == 1
        assert attempt["score_percent"] == 100
        assert attempt["passed"] is True
        assert attempt["result_visible"] is False
        assert len(sent_notices) == 1
        assert sent_notices[0].notify_email == "student@example.com"

        assert client.get(f"{BASE}/proctor/active", headers=student_headers).json()["active"] is None

        result = client.get(f"{BASE}/result", headers=student_headers).json()
        assert result["status"] == "PENDING"
        assert result["score_percent"] is None

        response = client.post(f"{BASE}/proctor/event", json={"session_id": session_id, "type": "COPY_ATTEMPT"},
                               headers=student_headers)
        assert response.status_code == 409

        response = client.post(f"{BASE}/attempt", json={"answers": {}, "proctor_session_id": session_id},
                               headers=student_headers)
        assert response.status_code == 409

        response = client.post(f"{BASE}/proctor/start", headers=student_headers)
        assert response.status_code == 403
        assert response.json()["code"] == "ALREADY_PASSED"

    def test_unanswered_questions_do_not_void_the_submission(self, client, course_exam, student_headers):
        session_id = start_session(client, student_headers)
        paper = client.get(f"{BASE}/proctor/paper", params={"session_id": session_id},
                           headers=student_headers).json()["paper"]
        answers = correct_answers(paper)
        _, second, third = [str(q["id"]) for q in paper["questions"]]
        answers[second] = None
        answers[third] = "0"

        response = client.post(f"{BASE}/attempt", json={"answers": answers, "proctor_session_id": session_id},
                               headers=student_headers)
        assert response.status_code == 200, response.text
        assert response.json()["score_percent"] == 33
        assert response.json()["passed"] is False

    def test_cooldown_is_429(self, client, course_exam, student_headers):
        session_id = start_session(client, student_headers)
        client.post(f"{BASE}/attempt", json={"answers": {}, "proctor_session_id": session_id}, headers=student_headers)

        response = client.post(f"{BASE}/proctor/start", headers=student_headers)
        assert response.status_code == 429
        data = response.json()
        assert data["code"] == "COOLDOWN_ACTIVE"
        assert data["next_allowed_at"] is not None
        assert "Retake cooldown active" in data["error"]

    def test_not_enrolled(self, client, course_exam):
        headers = auth_headers(OTHER_STUDENT_ID, "student")
        response = client.post(f"{BASE}/proctor/start", headers=headers)
        assert response.status_code == 403
        assert response.json()["code"] == "NOT_ENROLLED"

    def test_submit_without_session_when_proctoring_required(self, client, course_exam, student_headers):
        response = client.post(f"{BASE}/attempt", json={"answers": {"1": 1}}, headers=student_headers)
        assert response.status_code == 400

    def test_other_students_session(self, client, course_exam, student_headers, oracle):
        session_id = start_session(client, student_headers)
        oracle.enroll(OTHER_STUDENT_ID)
        headers = auth_headers(OTHER_STUDENT_ID, "student")
        response = client.get(f"{BASE}/proctor/paper", params={"session_id": session_id}, headers=headers)
        assert response.status_code == 404

    def test_tampered_paper_is_opaque_500(self, client, course_exam, student_headers, db_session):
        session_id = start_session(client, student_headers)
        session = db_session.query(ProctorSession).filter(ProctorSession.id == session_id).one()
        session.paper_hash = "0" * 64
        db_session.commit()

        response = client.get(f"{BASE}/proctor/paper", params={"session_id": session_id}, headers=student_headers)
        assert response.status_code == 500
        assert "hash" not in response.text.lower()


class TestSnapshots:
    def test_upload(self, client, course_exam, student_headers, upload_dir):
        session_id = start_session(client, student_headers)
        response = client.post(
            f"{BASE}/proctor/snapshot",
            data={"session_id": str(session_id), "snapshot_type": "screen"},
            files={"file": ("shot.png", b"\x89PNG fake image", "image/png")},
            headers=student_headers,
        )
        assert response.status_code == 200, response.text
        assert response.json()["ok"] is True

        stored = os.listdir(upload_dir / "proctor" / str(session_id))
        assert len(stored) == 1
        assert stored[0].endswith(".png")

    def test_missing_file(self, client, course_exam, student_headers):
        session_id = start_session(client, student_headers)
        response = client.post(f"{BASE}/proctor/snapshot", data={"session_id": str(session_id)},
                               headers=student_headers)
        assert response.status_code == 400

    def test_too_large(self, client, course_exam, student_headers, monkeypatch):
        monkeypatch.setattr(settings, "proctor_snapshot_max_bytes", 10)
        session_id = start_session(client, student_headers)
        response = client.post(
            f"{BASE}/proctor/snapshot",
            data={"session_id": str(session_id)},
            files={"file": ("cam.jpg", b"x" * 4096, "image/jpeg")},
            headers=student_headers,
        )
        assert response.status_code == 413

    def test_upload_at_the_size_limit(self, client, course_exam, student_headers, monkeypatch):
        monkeypatch.setattr(settings, "proctor_snapshot_max_bytes", 10)
        session_id = start_session(client, student_headers)
        response = client.post(
            f"{BASE}/proctor/snapshot",
            data={"session_id": str(session_id)},
            files={"file": ("cam.jpg", b"x" * 10, "image/jpeg")},
            headers=student_headers,
        )
        assert response.status_code == 200, response.text

    def test_ended_session(self, client, course_exam, student_headers, upload_dir):
        old_id = start_session(client, student_headers)
        start_session(client, student_headers)
        response = client.post(
            f"{BASE}/proctor/snapshot",
            data={"session_id": str(old_id)},
            files={"file": ("cam.jpg", b"jpeg", "image/jpeg")},
            headers=student_headers,
        )
        assert response.status_code == 409
        assert not (upload_dir / "proctor" / str(old_id)).exists()


class TestAdmin:
    def test_list_and_detail(self, client, course_exam, student_headers, admin_headers):
        session_id = start_session(client, student_headers)
        client.post(f"{BASE}/proctor/event", json={"session_id": session_id, "type": "HEARTBEAT"}, headers=student_headers)
        client.post(f"{BASE}/proctor/event", json={"session_id": session_id, "type": "NAV_AWAY"}, headers=student_headers)
        client.post(f"{BASE}/attempt", json={"answers": {}, "proctor_session_id": session_id}, headers=student_headers)

        sessions = client.get("/api/v1/admin/proctor/sessions", headers=admin_headers).json()
        assert len(sessions) == 1
        assert sessions[0]["id"] == session_id
        assert sessions[0]["status"] == "SUBMITTED"
        assert sessions[0]["attempt_id"] is not None
        assert sessions[0]["suspicious_score"] == 5

        filtered = client.get("/api/v1/admin/proctor/sessions", params={"status": "ACTIVE"}, headers=admin_headers)
        assert filtered.json() == []
        by_user = client.get("/api/v1/admin/proctor/sessions", params={"q": "1"}, headers=admin_headers)
        assert len(by_user.json()) == 1

        detail = client.get(f"/api/v1/admin/proctor/sessions/{session_id}", headers=admin_headers).json()
        assert [e["event_type"] for e in detail["events"]] == ["HEARTBEAT", "NAV_AWAY"]
        assert detail["attempt"]["score_percent"] == 0
        assert detail["session"]["client_info"]["screen"] == "1920x1080"

    def test_review(self, client, course_exam, student_headers, admin_headers):
        session_id = start_session(client, student_headers)
        url = f"/api/v1/admin/proctor/sessions/{session_id}/review"

        response = client.post(url, json={"review_status": "flagged", "notes": "Left the tab twice"},
                               headers=admin_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["review_status"] == "FLAGGED"
        assert data["reviewed_by"] == ADMIN_ID

        response = client.post(url, json={"review_status": "SUSPICIOUS"}, headers=admin_headers)
        assert response.status_code == 400

        assert client.post("/api/v1/admin/proctor/sessions/999/review", json={"review_status": "CLEARED"},
                           headers=admin_headers).status_code == 404

    def test_end_session(self, client, course_exam, student_headers, admin_headers):
        session_id = start_session(client, student_headers)
        url = f"/api/v1/admin/proctor/sessions/{session_id}/end"

        response = client.post(url, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["end_reason"] == "ADMIN_CLOSED"
        assert client.post(url, headers=admin_headers).status_code == 409

    def test_results(self, client, course_exam, student_headers, admin_headers):
        session_id = start_session(client, student_headers)
        client.post(f"{BASE}/attempt", json={"answers": {}, "proctor_session_id": session_id}, headers=student_headers)

        results = client.get("/api/v1/admin/results", params={"target_type": "COURSE"}, headers=admin_headers).json()
        assert len(results) == 1
        assert results[0]["proctor_session_id"] == session_id

    def test_upsert_exam(self, client, admin_headers, db_session):
        payload = {
            "title": "Algebra quiz",
            "course_id": COURSE_ID,
            "duration_minutes": 15,
            "questions": [{"id": "a1", "text": "1+1", "options": ["1", "2"], "correctIndex": 1}],
        }
        response = client.put("/api/v1/admin/exams/subject/7", json=payload, headers=admin_headers)
        assert response.status_code == 200, response.text
        data = response.json()
        assert data["target_type"] == "SUBJECT"
        assert data["course_id"] == COURSE_ID
        assert data["questions"][0]["correct_index"] == 1

        bad = dict(payload, questions=[{"id": 1, "text": "?", "options": ["a"], "correctIndex": 3}])
        assert client.put("/api/v1/admin/exams/subject/7", json=bad, headers=admin_headers).status_code == 400

        assert client.put("/api/v1/admin/exams/subject/7", json=dict(payload, title=" x "),
                          headers=admin_headers).status_code == 422


class TestHealth:
    def test_health(self, client):
        response = client.get("/api/v1/health")
        assert response.status_code == 200
        data = response.json()
        assert data["services"]["database"]["status"] == "healthy"
        assert "X-Process-Time" in response.headers
