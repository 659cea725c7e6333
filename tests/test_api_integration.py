"""Integration tests for API endpoints."""
from app.db.models import User
from app.services.dates import utc_today
from app.constants import COOKIE_NAME
from tests.factories import add_student, make_questions


def put_todays_assignment(admin_client, day_number=1):
    body = {"day_number": day_number}
    for tier, fields in make_questions("API").items():
        body[f"{tier}_question"] = fields
    response = admin_client.put(f"/api/assignments/{utc_today().isoformat()}", json=body)
    assert response.status_code == 200
    return response.json()


class TestHealthEndpoints:

    def test_health(self, test_client):
        response = test_client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_readiness(self, test_client):
        assert test_client.get("/readiness").json()["status"] == "ready"


class TestRegistration:

    def test_register_sets_session_cookie(self, test_client):
        response = test_client.post(
            "/api/users/register",
            json={"email": "New.Student@Example.com", "name": "New Student", "course": "BCA"}
        )

        assert response.status_code == 201
        data = response.json()
        assert data["email"] == "new.student@example.com"
        assert data["is_admin"] is False
        assert COOKIE_NAME in response.cookies

        me = test_client.get("/api/users/me")
        assert me.status_code == 200
        assert me.json()["uid"] == data["uid"]

    def test_duplicate_email_conflicts(self, test_client, student):
        response = test_client.post("/api/users/register", json={"email": student.email})

        assert response.status_code == 409

    def test_closed_registration_forbidden(self, test_client, client_for, admin):
        client_for(admin.id).post("/api/admin/registration/toggle", json={"enabled": False})

        response = test_client.post("/api/users/register", json={"email": "late@example.com"})

        assert response.status_code == 403
        assert test_client.get("/api/users/registration-status").json()["allowed"] is False

    def test_invalid_email_rejected(self, test_client):
        response = test_client.post("/api/users/register", json={"email": "not-an-email"})

        assert response.status_code == 422

    def test_update_profile(self, client_for, student):
        response = client_for(student.id).patch("/api/users/me", json={"section": "B"})

        assert response.status_code == 200
        assert response.json()["section"] == "B"
        assert response.json()["name"] == "Test Student"


class TestAccessControl:

    def test_missing_session(self, test_client):
        response = test_client.get("/api/schedule/streak")

        assert response.status_code == 401

    def test_unknown_session(self, client_for):
        assert client_for("ndc_missing").get("/api/users/me").status_code == 401

    def test_student_cannot_use_admin_routes(self, client_for, student):
        client = client_for(student.id)

        assert client.get("/api/admin/users").status_code == 403
        assert client.get("/api/assignments").status_code == 403
        assert client.get("/api/qa/statistics").status_code == 403

    def test_banned_student(self, client_for, student, admin):
        response = client_for(admin.id).post(
            f"/api/admin/users/{student.id}/ban",
            json={"is_banned": True, "reason": "Plagiarism"}
        )
        assert response.status_code == 200

        blocked = client_for(student.id).get("/api/users/me")
        assert blocked.status_code == 403
        assert "Plagiarism" in blocked.json()["detail"]

    def test_admin_cannot_ban_self(self, client_for, admin):
        response = client_for(admin.id).post(f"/api/admin/users/{admin.id}/ban", json={"is_banned": True})

        assert response.status_code == 400


class TestSubmissionFlow:

    def test_submit_review_and_streak(self, test_db, client_for, student, admin):
        admin_client = client_for(admin.id)
        student_client = client_for(student.id)
        put_todays_assignment(admin_client)

        assert student_client.get("/api/schedule/can-submit").json()["can_submit"] is True

        submitted = student_client.post(
            "/api/submissions",
            json={"difficulty": "easy", "code_text": "print('hello')"}
        )
        assert submitted.status_code == 201
        submission = submitted.json()
        assert submission["status"] == "pending"
        assert submission["question_title"] == "API easy"

        duplicate = student_client.post(
            "/api/submissions",
            json={"difficulty": "easy", "code_text": "print('again')"}
        )
        assert duplicate.status_code == 409

        reviewed = admin_client.post(
            f"/api/submissions/{submission['id']}/review",
            json={"status": "approved", "admin_feedback": "Nice"}
        )
        assert reviewed.status_code == 200
        assert reviewed.json()["reviewed_by"] == "Admin User"

        streak = student_client.get("/api/schedule/streak").json()
        assert streak["current_streak"] == 1
        assert streak["stored_streak"] == 1

        can_submit = student_client.get("/api/schedule/can-submit").json()
        assert can_submit == {**can_submit, "can_submit": False, "reason": "already_completed"}

        notifications = student_client.get("/api/notifications").json()
        assert notifications["unread"] == 1
        assert notifications["notifications"][0]["type"] == "approval"

        me = student_client.get("/api/users/me").json()
        assert me["approved"]["easy"] == 1
        assert me["calendar"][utc_today().isoformat()] == "completed"

        test_db.expire_all()
        assert test_db.query(User).filter(User.id == student.id).one().streak_count == 1

    def test_no_assignment_reason(self, client_for, student):
        response = client_for(student.id).post(
            "/api/submissions",
            json={"difficulty": "easy", "code_text": "x = 1"}
        )

        assert response.status_code == 400
        assert response.json()["detail"]["reason"] == "no_assignment_scheduled"

    def test_code_or_link_required(self, client_for, student):
        response = client_for(student.id).post("/api/submissions", json={"difficulty": "easy"})

        assert response.status_code == 400

    def test_other_students_submission_hidden(self, client_for, student, admin, test_db):
        put_todays_assignment(client_for(admin.id))
        submitted = client_for(student.id).post(
            "/api/submissions",
            json={"difficulty": "medium", "github_file_link": "https://github.com/me/repo/blob/main/a.py"}
        ).json()
        other = add_student(test_db, "other@example.com")

        assert client_for(other.id).get(f"/api/submissions/{submitted['id']}").status_code == 404
        assert client_for(admin.id).get(f"/api/submissions/{submitted['id']}").status_code == 200

    def test_notifications_are_private(self, client_for, student, admin, test_db):
        put_todays_assignment(client_for(admin.id))
        submitted = client_for(student.id).post(
            "/api/submissions",
            json={"difficulty": "hard", "code_text": "pass"}
        ).json()
        client_for(admin.id).post(
            f"/api/submissions/{submitted['id']}/review",
            json={"status": "rejected", "admin_feedback": "Incomplete"}
        )
        notification_id = client_for(student.id).get("/api/notifications").json()["notifications"][0]["id"]
        other = add_student(test_db, "other@example.com")

        assert client_for(other.id).post(f"/api/notifications/{notification_id}/read").status_code == 404
        assert client_for(student.id).post("/api/notifications/read-all").json() == {"updated": 1}
    def test_choice_answer_route(self, client_for, student, admin):
        put_todays_assignment(client_for(admin.id))
        student_client = client_for(student.id)

        answered = student_client.post(
            "/api/submissions/answer",
            json={"question_id": "poll-1", "answer": "merge sort"}
        )
        assert answered.status_code == 201
        assert answered.json()["difficulty"] == "choice"
        assert answered.json()["question_title"] == "poll-1"

        again = student_client.post(
            "/api/submissions/answer",
            json={"question_id": "poll-1", "answer": "quick sort"}
        )
        assert again.status_code == 409


class TestMaintenanceMode:

    def test_students_get_503_admins_pass(self, test_client, client_for, student, admin):
        admin_client = client_for(admin.id)
        saved = admin_client.put("/api/admin/maintenance", json={"enabled": True, "message": "Back soon"})
        assert saved.status_code == 200

        blocked = client_for(student.id).get("/api/users/me")
        assert blocked.status_code == 503
        assert blocked.json()["detail"] == "Back soon"

        assert admin_client.get("/api/users/me").status_code == 200
        assert test_client.get("/health").status_code == 200

        admin_client.put("/api/admin/maintenance", json={"enabled": False})
        assert client_for(student.id).get("/api/users/me").status_code == 200
    def test_window_with_mixed_offsets(self, client_for, admin):
        response = client_for(admin.id).put(
            "/api/admin/maintenance",
            json={"enabled": True, "starts_at": "2025-03-12T10:00:00Z", "ends_at": "2025-03-12T11:00:00"}
        )

        assert response.status_code == 200
        assert response.json()["starts_at"] == "2025-03-12T10:00:00"

    def test_window_offset_converted_to_utc(self, client_for, admin):
        response = client_for(admin.id).put(
            "/api/admin/maintenance",
            json={
                "enabled": True,
                "starts_at": "2025-03-12T10:00:00+05:30",
                "ends_at": "2025-03-12T12:00:00+05:30"
            }
        )

        assert response.status_code == 200
        assert response.json()["starts_at"] == "2025-03-12T04:30:00"
        assert response.json()["ends_at"] == "2025-03-12T06:30:00"
        assert response.json()["is_active"] is False


class TestQuestionFlow:

    def test_ask_answer_and_feedback(self, client_for, student, admin):
        student_client = client_for(student.id)
        admin_client = client_for(admin.id)

        asked = student_client.post(
            "/api/qa/questions",
            json={"question_text": "The calendar shows an error for yesterday", "category": "platform"}
        )
        assert asked.status_code == 201
        question = asked.json()
        assert question["priority"] == "high"

        assert admin_client.get("/api/qa/unread-count").json()["unread"] == 1

        answered = admin_client.post(
            f"/api/qa/questions/{question['id']}/answer",
            json={"response": "Fixed, please refresh."}
        )
        assert answered.status_code == 200
        assert answered.json()["status"] == "answered"

        feedback = student_client.post(
            f"/api/qa/questions/{question['id']}/feedback",
            json={"rating": 4}
        )
        assert feedback.status_code == 200
        assert feedback.json()["satisfaction_rating"] == 4

        titles = [n["title"] for n in student_client.get("/api/notifications").json()["notifications"]]
        assert "Your Question Has Been Answered" in titles

    def test_rating_out_of_range(self, client_for, student):
        client = client_for(student.id)
        question = client.post("/api/qa/questions", json={"question_text": "Hello"}).json()

        response = client.post(f"/api/qa/questions/{question['id']}/feedback", json={"rating": 9})

        assert response.status_code == 422
