# answer_eval/services/submission_service.py
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from answer_eval.core.config import Settings
from answer_eval.core.exceptions import (
    CreationFailedError,
    InvalidInputError,
    NotFoundError,
    SubmissionLimitExceededError,
)
from answer_eval.models.question import Question
from answer_eval.models.submission import AnswerImage, Evaluation, Submission
from answer_eval.models.user import User
from answer_eval.schemas.evaluation import EvaluationFilter, EvaluationPatch
from answer_eval.schemas.submission import AnswerImageIn
from answer_eval.services.evaluation_service import EvaluationEngine, EvaluationResult
from answer_eval.services.ocr_service import OcrCoordinator

logger = logging.getLogger(__name__)


def count_submissions(db: Session, *, user_id: int, question_id: int) -> int:
    return (
        db.query(func.count(Submission.id))
        .filter(Submission.user_id == user_id, Submission.question_id == question_id)
        .scalar()
    )


def get_question(db: Session, question_id: int) -> Question:
    question: Optional[Question] = db.get(Question, question_id)
    if question is None:
        raise NotFoundError(f"question {question_id} not found")
    return question


def get_submission(db: Session, submission_id: int) -> Submission:
    submission: Optional[Submission] = db.get(Submission, submission_id)
    if submission is None:
        raise NotFoundError(f"submission {submission_id} not found")
    return submission


def collect_answer_texts(submission: Submission) -> List[str]:
    """Per-image extracted text in image order, then the typed answer if any."""
    texts = [img.extracted_text or "" for img in submission.images]
    if submission.text_answer and submission.text_answer.strip():
        texts.append(submission.text_answer.strip())
    return texts


def apply_evaluation_result(submission: Submission, result: EvaluationResult) -> Evaluation:
    """
    Overwrite the scored part of the evaluation. Expert review and the
    student's one-shot feedback state survive.
    """
    evaluation = submission.evaluation
    if evaluation is None:
        evaluation = Evaluation(feedback_status=True)
        submission.evaluation = evaluation

    evaluation.score = result.score
    evaluation.max_score = result.max_score
    evaluation.feedback = result.feedback
    evaluation.breakdown = result.breakdown
    evaluation.source = result.source
    evaluation.evaluated_at = datetime.now(timezone.utc)
    return evaluation


class SubmissionManager:
    def __init__(
        self,
        ocr: OcrCoordinator,
        engine: EvaluationEngine,
        *,
        max_attempts: int = 5,
        create_retries: int = 3,
        max_images: int = 10,
    ):
        self.ocr = ocr
        self.engine = engine
        self.max_attempts = max_attempts
        self.create_retries = create_retries
        self.max_images = max_images

    @classmethod
    def from_settings(
        cls, settings: Settings, *, ocr: OcrCoordinator, engine: EvaluationEngine
    ) -> "SubmissionManager":
        return cls(
            ocr,
            engine,
            max_attempts=settings.MAX_ATTEMPTS_PER_QUESTION,
            create_retries=settings.SUBMISSION_CREATE_RETRIES,
            max_images=settings.MAX_IMAGES_PER_SUBMISSION,
        )

    def submit(
        self,
        db: Session,
        *,
        user: User,
        question_id: int,
        images: Sequence[AnswerImageIn],
        text_answer: Optional[str] = None,
    ) -> Submission:
        """
        Create the next attempt and run the OCR/evaluation pipeline on it.

        The submission is returned even when OCR or scoring fails; those
        failures show up as statuses on the record.
        """
        if not images and not (text_answer and text_answer.strip()):
            raise InvalidInputError("Either images or text answer must be provided")
        if len(images) > self.max_images:
            raise InvalidInputError(f"At most {self.max_images} images are allowed")

        question = get_question(db, question_id)
        submission = self._create_attempt(
            db, user=user, question=question, images=images, text_answer=text_answer
        )
        logger.info(
            f"Created submission {submission.id} (attempt {submission.attempt_number}) "
            f"for user {user.id} on question {question.id}"
        )

        try:
            self._run_pipeline(db, submission, question)
        except Exception:
            logger.exception(f"Pipeline failed for submission {submission.id}")
            db.rollback()

        db.refresh(submission)
        return submission

    def _create_attempt(
        self,
        db: Session,
        *,
        user: User,
        question: Question,
        images: Sequence[AnswerImageIn],
        text_answer: Optional[str],
    ) -> Submission:
        # the unique (user, question, attempt) index decides; the count is
        # re-read on every try
        for attempt in range(1, self.create_retries + 1):
            attempt_number = count_submissions(db, user_id=user.id, question_id=question.id) + 1
            if attempt_number > self.max_attempts:
                raise SubmissionLimitExceededError(
                    f"Maximum {self.max_attempts} attempts allowed per question"
                )

            submission = Submission(
                user_id=user.id,
                question_id=question.id,
                client_id=user.client_id,
                attempt_number=attempt_number,
                text_answer=text_answer.strip() if text_answer else None,
                ocr_processing_status="pending" if images else "completed",
                review_status="none",
                images=[
                    AnswerImage(
                        image_index=index,
                        image_url=img.image_url,
                        original_name=img.original_name,
                        processing_status="pending",
                    )
                    for index, img in enumerate(images)
                ],
            )
            db.add(submission)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                logger.warning(
                    f"Attempt number {attempt_number} already taken for user {user.id} "
                    f"on question {question.id} (try {attempt}/{self.create_retries})"
                )
                continue
            db.refresh(submission)
            return submission

        raise CreationFailedError(
            "Unable to create submission after multiple attempts. Please try again in a moment."
        )

    def _run_pipeline(self, db: Session, submission: Submission, question: Question) -> None:
        if submission.images:
            self.ocr.process_all_images(db, submission.id)
            db.refresh(submission)

        if question.evaluation_mode == "auto":
            result = self.engine.evaluate(question, collect_answer_texts(submission))
            apply_evaluation_result(submission, result)
            db.commit()
        else:
            # imported here: review_service imports this module
            from answer_eval.services.review_service import open_review_request

            open_review_request(db, submission=submission, notes="manual evaluation mode")

    def reevaluate(self, db: Session, submission_id: int) -> Submission:
        """Score the already extracted text again; OCR is not re-run."""
        submission = get_submission(db, submission_id)
        question = get_question(db, submission.question_id)
        result = self.engine.evaluate(question, collect_answer_texts(submission))
        apply_evaluation_result(submission, result)
        db.commit()
        db.refresh(submission)
        logger.info(f"Re-evaluated submission {submission_id} using {result.source}")
        return submission


def get_latest_submission(db: Session, *, user_id: int, question_id: int) -> Submission:
    submission = (
        db.query(Submission)
        .filter(Submission.user_id == user_id, Submission.question_id == question_id)
        .order_by(Submission.attempt_number.desc())
        .first()
    )
    if submission is None:
        raise NotFoundError(f"no submission for question {question_id}")
    return submission


def get_submission_by_attempt(
    db: Session, *, user_id: int, question_id: int, attempt_number: int
) -> Submission:
    if attempt_number < 1:
        raise InvalidInputError("attempt number must be at least 1")
    submission = (
        db.query(Submission)
        .filter(
            Submission.user_id == user_id,
            Submission.question_id == question_id,
            Submission.attempt_number == attempt_number,
        )
        .first()
    )
    if submission is None:
        raise NotFoundError(f"attempt {attempt_number} not found for question {question_id}")
    return submission


def list_attempts(db: Session, *, user_id: int, question_id: int) -> List[Submission]:
    return (
        db.query(Submission)
        .filter(Submission.user_id == user_id, Submission.question_id == question_id)
        .order_by(Submission.attempt_number.asc())
        .all()
    )


def list_evaluations(db: Session, *, filters: EvaluationFilter) -> List[Submission]:
    """Submissions that carry an evaluation, newest first."""
    query = db.query(Submission).join(Evaluation, Evaluation.submission_id == Submission.id)
    query = _apply_filter(query, filters)
    if filters.min_score is not None:
        query = query.filter(Evaluation.score >= filters.min_score)
    if filters.max_score is not None:
        query = query.filter(Evaluation.score <= filters.max_score)
    return (
        query.order_by(Submission.submitted_at.desc(), Submission.id.desc())
        .offset(filters.skip)
        .limit(filters.limit)
        .all()
    )


def _apply_filter(query, filters: EvaluationFilter):
    if filters.user_id is not None:
        query = query.filter(Submission.user_id == filters.user_id)
    if filters.question_id is not None:
        query = query.filter(Submission.question_id == filters.question_id)
    if filters.client_id is not None:
        query = query.filter(Submission.client_id == filters.client_id)
    if filters.submission_ids:
        query = query.filter(Submission.id.in_(filters.submission_ids))
    return query


def remaining_attempts(submission: Submission, max_attempts: int) -> int:
    return max(0, max_attempts - submission.attempt_number)


def _apply_patch(submission: Submission, patch: EvaluationPatch) -> None:
    # feedback_status, user_feedback and expert_review are not patchable
    data = patch.model_dump(exclude_unset=True)
    for field_name in ("score", "max_score"):
        if field_name in data and data[field_name] is None:
            raise InvalidInputError(f"{field_name} cannot be null")

    evaluation = submission.evaluation
    if evaluation is None:
        if patch.max_score is None:
            raise InvalidInputError(
                f"submission {submission.id} has no evaluation; max_score is required"
            )
        evaluation = Evaluation(feedback_status=True, max_score=patch.max_score)
        submission.evaluation = evaluation

    max_score = data.get("max_score", evaluation.max_score)
    score = data.get("score", evaluation.score)
    if max_score is not None and max_score <= 0:
        raise InvalidInputError("max_score must be positive")
    if score is not None and not 0 <= score <= max_score:
        raise InvalidInputError(f"score must be between 0 and {max_score:g}")

    for field_name, value in data.items():
        setattr(evaluation, field_name, value)
    evaluation.source = "admin"
    evaluation.evaluated_at = datetime.now(timezone.utc)


def admin_override_evaluation(
    db: Session, submission_id: int, *, patch: EvaluationPatch
) -> Submission:
    submission = get_submission(db, submission_id)
    try:
        _apply_patch(submission, patch)
    except InvalidInputError:
        db.rollback()
        raise
    db.commit()
    db.refresh(submission)
    logger.info(f"Admin updated evaluation of submission {submission_id}")
    return submission


def bulk_override_evaluation(
    db: Session, *, filters: EvaluationFilter, patch: EvaluationPatch
) -> Dict[str, Any]:
    """Patch every matching submission; all rows are validated before any commit."""
    if not any(
        v is not None and v != []
        for v in (filters.user_id, filters.question_id, filters.client_id, filters.submission_ids)
    ):
        raise InvalidInputError("bulk update needs at least one filter")

    submissions = _apply_filter(db.query(Submission), filters).all()
    try:
        for submission in submissions:
            _apply_patch(submission, patch)
    except InvalidInputError:
        db.rollback()
        raise
    db.commit()
    logger.info(f"Admin bulk-updated {len(submissions)} evaluations")
    return {"matched": len(submissions), "updated": len(submissions)}
