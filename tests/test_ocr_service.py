import pytest

from answer_eval.core.exceptions import NotFoundError, ProviderUnavailableError
from answer_eval.models.submission import AnswerImage, Submission
from answer_eval.services.ocr_service import (
    OcrCoordinator,
    get_ocr_stats,
    list_pending_ocr_submissions,
    recompute_aggregate_status,
)


@pytest.mark.parametrize(
    "statuses, expected",
    [
        ([], "completed"),
        (["completed", "completed"], "completed"),
        (["completed", "failed"], "failed"),
        (["failed", "failed"], "failed"),
        (["pending", "pending"], "pending"),
        (["completed", "pending"], "processing"),
        (["failed", "processing"], "processing"),
        (["failed", "pending"], "processing"),
    ],
)
def test_recompute_aggregate_status(statuses, expected):
    assert recompute_aggregate_status(statuses) == expected


def _make_submission(db, user, question, urls, attempt_number=1):
    submission = Submission(
        user_id=user.id,
        question_id=question.id,
        client_id=user.client_id,
        attempt_number=attempt_number,
        ocr_processing_status="pending",
        review_status="none",
        images=[
            AnswerImage(image_index=i, image_url=url, processing_status="pending")
            for i, url in enumerate(urls)
        ],
    )
    db.add(submission)
    db.commit()
    db.refresh(submission)
    return submission


class TestProcessImage:
    def test_success_writes_text_and_aggregate(self, db_session, coordinator, ocr_provider, student, auto_question):
        ocr_provider.responses["u1"] = {"text": "first page", "confidence": 0.8}
        sub = _make_submission(db_session, student, auto_question, ["u1"])

        result = coordinator.process_image(db_session, sub.id, 0)

        db_session.refresh(sub)
        image = sub.images[0]
        assert result["success"] is True
        assert image.processing_status == "completed"
        assert image.extracted_text == "first page"
        assert image.confidence == pytest.approx(0.8)
        assert image.processed_at is not None
        assert sub.ocr_processing_status == "completed"

    def test_failure_is_recorded_not_raised(self, db_session, coordinator, ocr_provider, student, auto_question):
        ocr_provider.responses["bad"] = ProviderUnavailableError("quota exceeded")
        sub = _make_submission(db_session, student, auto_question, ["bad"])

        result = coordinator.process_image(db_session, sub.id, 0)

        db_session.refresh(sub)
        assert result["success"] is False
        assert sub.images[0].processing_status == "failed"
        assert "quota exceeded" in sub.images[0].error_message
        assert sub.images[0].extracted_text == ""
        assert sub.ocr_processing_status == "failed"

    def test_unknown_submission_or_index(self, db_session, coordinator, student, auto_question):
        sub = _make_submission(db_session, student, auto_question, ["u1"])
        with pytest.raises(NotFoundError):
            coordinator.process_image(db_session, 9999, 0)
        with pytest.raises(NotFoundError):
            coordinator.process_image(db_session, sub.id, 5)


class TestProcessAllImages:
    def test_one_failure_does_not_stop_the_rest(self, db_session, coordinator, ocr_provider, sleep_recorder, student, auto_question):
        ocr_provider.responses["u2"] = ProviderUnavailableError("timeout")
        sub = _make_submission(db_session, student, auto_question, ["u1", "u2", "u3"])

        summary = coordinator.process_all_images(db_session, sub.id)

        db_session.refresh(sub)
        assert ocr_provider.calls == ["u1", "u2", "u3"]
        assert summary["total_images"] == 3
        assert summary["processed_successfully"] == 2
        assert summary["failed"] == 1
        assert [img.processing_status for img in sub.images] == ["completed", "failed", "completed"]
        assert sub.ocr_processing_status == "failed"
        # no pause after the last image
        assert sleep_recorder.calls == [1.0, 1.0]

    def test_explicit_delay_override(self, db_session, coordinator, sleep_recorder, student, auto_question):
        sub = _make_submission(db_session, student, auto_question, ["u1", "u2"])
        coordinator.process_all_images(db_session, sub.id, delay_ms=0)
        assert sleep_recorder.calls == []


class TestProcessPending:
    def test_sweeps_unfinished_submissions(self, db_session, coordinator, ocr_provider, sleep_recorder, student, auto_question):
        first = _make_submission(db_session, student, auto_question, ["a"], attempt_number=1)
        second = _make_submission(db_session, student, auto_question, ["b"], attempt_number=2)
        done = _make_submission(db_session, student, auto_question, [], attempt_number=3)
        done.ocr_processing_status = "completed"
        db_session.commit()

        assert [s.id for s in list_pending_ocr_submissions(db_session)] == [first.id, second.id]

        summary = coordinator.process_pending(db_session)

        assert summary["total_submissions"] == 2
        assert summary["processed_submissions"] == 2
        assert summary["total_images_processed"] == 2
        assert ocr_provider.calls == ["a", "b"]
        # one batch pause between the two submissions, none between single images
        assert sleep_recorder.calls == [2.0]
        assert list_pending_ocr_submissions(db_session) == []

    def test_stats(self, db_session, coordinator, ocr_provider, student, auto_question):
        ocr_provider.responses["bad"] = ProviderUnavailableError("down")
        sub = _make_submission(db_session, student, auto_question, ["ok", "bad"])
        _make_submission(db_session, student, auto_question, ["later"], attempt_number=2)
        coordinator.process_all_images(db_session, sub.id)

        stats = get_ocr_stats(db_session)

        assert stats["submissions"] == {"failed": 1, "pending": 1}
        assert stats["images"] == {"completed": 1, "failed": 1, "pending": 1}


class CrashingExtractor:
    def extract(self, image, **options):
        raise RuntimeError("extractor crashed")


class TestUnexpectedErrors:
    def test_image_is_marked_failed_not_left_processing(self, db_session, sleep_recorder, student, auto_question):
        coordinator = OcrCoordinator(CrashingExtractor(), sleep=sleep_recorder)
        sub = _make_submission(db_session, student, auto_question, ["u1"])

        result = coordinator.process_image(db_session, sub.id, 0)

        db_session.refresh(sub)
        assert result["success"] is False
        assert result["error"] == "extractor crashed"
        assert sub.images[0].processing_status == "failed"
        assert sub.images[0].error_message == "extractor crashed"
        assert sub.images[0].processed_at is not None
        assert sub.ocr_processing_status == "failed"

    def test_failed_status_write_is_only_logged(self, db_session, sleep_recorder, student, auto_question, monkeypatch, caplog):
        coordinator = OcrCoordinator(CrashingExtractor(), sleep=sleep_recorder)
        sub = _make_submission(db_session, student, auto_question, ["u1"])
        real_commit = db_session.commit
        commits = []

        def flaky_commit():
            commits.append(1)
            # the 'processing' write goes through, the failure write does not
            if len(commits) > 1:
                raise RuntimeError("database went away")
            real_commit()

        monkeypatch.setattr(db_session, "commit", flaky_commit)

        with caplog.at_level("ERROR", logger="answer_eval.services.ocr_service"):
            result = coordinator.process_image(db_session, sub.id, 0)

        assert result["success"] is False
        assert len(commits) == 2
        assert "Could not record failed OCR status" in caplog.text
