from answer_eval.schemas.submission import AnswerImageIn
from answer_eval.services.evaluation_service import EvaluationEngine
from answer_eval.services.ocr_service import OcrCoordinator
from answer_eval.workers import tasks


def test_ocr_submission_task(db_session, manager, coordinator, ocr_provider, student, auto_question, monkeypatch):
    sub = manager.submit(
        db_session,
        user=student,
        question_id=auto_question.id,
        images=[AnswerImageIn(image_url="u1"), AnswerImageIn(image_url="u2")],
    )
    ocr_provider.calls.clear()
    monkeypatch.setattr(tasks, "SessionLocal", lambda: db_session)
    monkeypatch.setattr(OcrCoordinator, "from_settings", classmethod(lambda cls, s: coordinator))

    result = tasks.ocr_submission_task(sub.id)

    assert result == {
        "status": "success",
        "submission_id": sub.id,
        "total_images": 2,
        "processed_successfully": 2,
        "failed": 0,
    }
    assert ocr_provider.calls == ["u1", "u2"]


def test_ocr_sweep_task(db_session, coordinator, monkeypatch):
    monkeypatch.setattr(tasks, "SessionLocal", lambda: db_session)
    monkeypatch.setattr(OcrCoordinator, "from_settings", classmethod(lambda cls, s: coordinator))

    result = tasks.ocr_sweep_task()

    assert result["status"] == "success"
    assert result["total_submissions"] == 0


def test_reevaluate_task_reports_missing_submission(db_session, coordinator, engine, monkeypatch):
    monkeypatch.setattr(tasks, "SessionLocal", lambda: db_session)
    monkeypatch.setattr(OcrCoordinator, "from_settings", classmethod(lambda cls, s: coordinator))
    monkeypatch.setattr(EvaluationEngine, "from_settings", classmethod(lambda cls, s: engine))

    result = tasks.reevaluate_task(12345)

    assert result["status"] == "error"
    assert result["submission_id"] == 12345
    assert "not found" in result["error"]
