import pytest
from fastapi.testclient import TestClient

from answer_eval.api.deps import get_ocr_coordinator, get_submission_manager
from answer_eval.db.session import get_db
from answer_eval.main import app


@pytest.fixture
def client(db_session, manager, coordinator):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_submission_manager] = lambda: manager
    app.dependency_overrides[get_ocr_coordinator] = lambda: coordinator
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _as(user):
    return {"X-User-Id": str(user.id)}


def _submit(client, user, question, **body):
    body.setdefault("text_answer", "my typed answer")
    return client.post(f"/api/v1/questions/{question.id}/answers", json=body, headers=_as(user))


def test_health(client):
    assert client.get("/api/v1/health/live").json() == {"status": "ok"}
    assert client.get("/api/v1/health/db").json() == {"status": "ok"}


def test_requires_user_header(client, auto_question):
    response = client.post(f"/api/v1/questions/{auto_question.id}/answers", json={"text_answer": "x"})
    assert response.status_code == 401
    assert response.json()["success"] is False


def test_submit_and_read_back(client, student, auto_question):
    response = _submit(client, student, auto_question, images=[{"image_url": "http://img/1.jpg"}])
    assert response.status_code == 201
    body = response.json()
    assert body["attempt_number"] == 1
    assert body["remaining_attempts"] == 4
    assert body["is_final_attempt"] is False
    assert body["images"][0]["ocr"]["processing_status"] == "completed"
    assert body["evaluation"]["source"] == "gemini"

    latest = client.get(f"/api/v1/questions/{auto_question.id}/answers/latest", headers=_as(student))
    assert latest.json()["id"] == body["id"]

    attempt = client.get(f"/api/v1/questions/{auto_question.id}/answers/1", headers=_as(student))
    assert attempt.status_code == 200


def test_error_mapping(client, student, auto_question):
    missing = client.get(f"/api/v1/questions/{auto_question.id}/answers/latest", headers=_as(student))
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "NOT_FOUND"

    empty = _submit(client, student, auto_question, text_answer="  ")
    assert empty.status_code == 400
    assert empty.json()["error"]["code"] == "VALIDATION_ERROR"

    for _ in range(5):
        assert _submit(client, student, auto_question).status_code == 201
    sixth = _submit(client, student, auto_question)
    assert sixth.status_code == 400
    assert sixth.json() == {
        "success": False,
        "message": "Maximum 5 attempts allowed per question",
        "error": {"code": "SUBMISSION_LIMIT_EXCEEDED"},
    }


def test_creation_failure_is_409(client, student, auto_question, monkeypatch):
    from answer_eval.services import submission_service

    _submit(client, student, auto_question)
    monkeypatch.setattr(submission_service, "count_submissions", lambda db, **kwargs: 0)

    response = _submit(client, student, auto_question)
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "CREATION_FAILED"
    assert "try again" in response.json()["message"]


def test_review_flow_over_http(client, student, evaluator, foreign_evaluator, manual_question):
    sub = _submit(client, student, manual_question).json()
    assert sub["review_status"] == "review_requested"

    queue = client.get("/api/v1/reviews/pending", headers=_as(evaluator)).json()
    assert len(queue) == 1
    request_id = queue[0]["id"]
    assert client.get("/api/v1/reviews/pending", headers=_as(foreign_evaluator)).json() == []

    denied = client.post(f"/api/v1/reviews/{request_id}/accept", headers=_as(foreign_evaluator))
    assert denied.status_code == 403

    assert client.post(f"/api/v1/reviews/{request_id}/accept", headers=_as(evaluator)).status_code == 200
    again = client.post(f"/api/v1/reviews/{request_id}/accept", headers=_as(evaluator))
    assert again.status_code == 409
    assert again.json()["error"]["code"] == "INVALID_STATE"

    done = client.post(
        f"/api/v1/reviews/{request_id}/submit",
        json={"score": 78, "remarks": "Solid", "strengths": ["clarity"]},
        headers=_as(evaluator),
    )
    assert done.status_code == 200
    assert done.json()["request_status"] == "completed"

    answer = client.get(f"/api/v1/questions/{manual_question.id}/answers/latest", headers=_as(student)).json()
    assert answer["review_status"] == "review_completed"
    assert answer["evaluation"]["expert_review"]["score"] == 78


def test_students_cannot_use_evaluator_routes(client, student):
    response = client.get("/api/v1/reviews/pending", headers=_as(student))
    assert response.status_code == 403
    assert response.json()["error"]["code"] == "ACCESS_DENIED"


def test_feedback_one_shot_over_http(client, student, auto_question):
    sub = _submit(client, student, auto_question).json()
    url = f"/api/v1/submissions/{sub['id']}/feedback"

    first = client.post(url, json={"message": "Fair marking"}, headers=_as(student))
    assert first.status_code == 200
    assert first.json()["evaluation"]["feedback_status"] is False

    second = client.post(url, json={"message": "Again"}, headers=_as(student))
    assert second.status_code == 409
    assert second.json()["error"]["code"] == "ALREADY_SUBMITTED"


def test_admin_override_and_listing(client, student, admin, auto_question):
    sub = _submit(client, student, auto_question).json()

    response = client.put(
        f"/api/v1/submissions/{sub['id']}/evaluation",
        json={"score": 9},
        headers=_as(admin),
    )
    assert response.status_code == 200
    assert response.json()["evaluation"]["score"] == 9

    forbidden = client.put(
        f"/api/v1/submissions/{sub['id']}/evaluation", json={"score": 1}, headers=_as(student)
    )
    assert forbidden.status_code == 403

    listed = client.get("/api/v1/evaluations", params={"min_score": 8}, headers=_as(admin)).json()
    assert [s["id"] for s in listed] == [sub["id"]]


def test_ocr_stats(client, student, admin, auto_question):
    _submit(client, student, auto_question, images=[{"image_url": "http://img/1.jpg"}])
    stats = client.get("/api/v1/ocr/stats", headers=_as(admin)).json()
    assert stats["images"] == {"completed": 1}


def test_null_max_score_is_a_validation_error(client, student, admin, auto_question):
    sub = _submit(client, student, auto_question).json()

    response = client.put(
        f"/api/v1/submissions/{sub['id']}/evaluation",
        json={"max_score": None},
        headers=_as(admin),
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"
