"""
Review Service
Human escalation of a submission: request -> (assign) -> accept -> (start) ->
submit, plus cancellation and the student's one-shot feedback on an evaluation.

    pending --assign--> assigned
    pending|assigned --accept--> accepted --start--> in_progress
    accepted|in_progress --submit--> completed
    pending|assigned --cancel--> cancelled
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.orm import Session

from answer_eval.core.exceptions import (
    AccessDeniedError,
    AlreadySubmittedError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
)
from answer_eval.models.review_request import ReviewRequest
from answer_eval.models.submission import Evaluation, Submission
from answer_eval.models.user import User
from answer_eval.schemas.review import ReviewSubmit
from answer_eval.services.submission_service import get_question, get_submission

logger = logging.getLogger(__name__)

ACCEPTABLE = ("pending", "assigned")
SUBMITTABLE = ("accepted", "in_progress")
CANCELLABLE = ("pending", "assigned")
ACTIVE = ("pending", "assigned", "accepted", "in_progress", "completed")
PRIORITIES = ("low", "medium", "high")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def resolve_client_id(db: Session, user_id: int) -> str:
    """Tenant of a user, as known to the identity side."""
    user: Optional[User] = db.get(User, user_id)
    if user is None:
        raise NotFoundError(f"user {user_id} not found")
    return user.client_id


def get_review_request(db: Session, request_id: int) -> ReviewRequest:
    request: Optional[ReviewRequest] = db.get(ReviewRequest, request_id)
    if request is None:
        raise NotFoundError(f"review request {request_id} not found")
    return request


def _check_tenant(db: Session, request: ReviewRequest, evaluator_id: int) -> None:
    if resolve_client_id(db, evaluator_id) != request.client_id:
        raise AccessDeniedError("Evaluator does not belong to this client")


def _active_request_for(db: Session, submission_id: int) -> Optional[ReviewRequest]:
    return (
        db.query(ReviewRequest)
        .filter(
            ReviewRequest.answer_id == submission_id,
            ReviewRequest.request_status.in_(ACTIVE),
        )
        .first()
    )


def open_review_request(
    db: Session,
    *,
    submission: Submission,
    notes: Optional[str] = None,
    priority: str = "medium",
) -> ReviewRequest:
    """Queue a submission for expert review, without ownership checks."""
    if priority not in PRIORITIES:
        raise InvalidInputError(f"priority must be one of {', '.join(PRIORITIES)}")
    if _active_request_for(db, submission.id) is not None:
        raise InvalidStateError("Review request already exists for this answer")

    request = ReviewRequest(
        user_id=submission.user_id,
        question_id=submission.question_id,
        answer_id=submission.id,
        client_id=submission.client_id,
        request_status="pending",
        priority=priority,
        notes=notes,
        requested_at=_now(),
    )
    db.add(request)
    submission.review_status = "review_requested"
    db.commit()
    db.refresh(request)
    logger.info(f"Opened review request {request.id} for submission {submission.id}")
    return request


def request_review(
    db: Session,
    submission_id: int,
    *,
    requester_id: int,
    notes: Optional[str] = None,
    priority: str = "medium",
) -> ReviewRequest:
    """Student asks for an expert to look at an evaluated answer."""
    submission = get_submission(db, submission_id)
    if submission.user_id != requester_id:
        raise AccessDeniedError("This answer does not belong to you")
    if submission.evaluation is None or submission.evaluation.score is None:
        raise InvalidStateError("Review can only be requested for evaluated answers")
    return open_review_request(db, submission=submission, notes=notes, priority=priority)


def assign_review_request(db: Session, request_id: int, *, evaluator_id: int) -> ReviewRequest:
    request = get_review_request(db, request_id)
    _check_tenant(db, request, evaluator_id)
    if request.request_status != "pending":
        raise InvalidStateError(
            f"Request cannot be assigned in status {request.request_status}"
        )

    request.request_status = "assigned"
    request.assigned_evaluator = evaluator_id
    request.assigned_at = _now()
    db.commit()
    db.refresh(request)
    return request


def accept_review_request(db: Session, request_id: int, *, evaluator_id: int) -> ReviewRequest:
    request = get_review_request(db, request_id)
    _check_tenant(db, request, evaluator_id)
    if request.request_status not in ACCEPTABLE:
        raise InvalidStateError(
            f"Request is not available for acceptance (status {request.request_status})"
        )
    if request.assigned_evaluator is not None and request.assigned_evaluator != evaluator_id:
        raise AccessDeniedError("Request is assigned to another evaluator")

    submission = get_submission(db, request.answer_id)

    request.request_status = "accepted"
    request.assigned_evaluator = evaluator_id
    request.assigned_at = _now()
    submission.review_status = "review_accepted"
    db.commit()
    db.refresh(request)
    logger.info(f"Evaluator {evaluator_id} accepted review request {request_id}")
    return request


def _check_assignee(request: ReviewRequest, evaluator_id: Optional[int]) -> None:
    if evaluator_id is not None and request.assigned_evaluator != evaluator_id:
        raise AccessDeniedError("Only the accepting evaluator can work on this request")


def start_review(db: Session, request_id: int, *, evaluator_id: int) -> ReviewRequest:
    request = get_review_request(db, request_id)
    if request.request_status != "accepted":
        raise InvalidStateError(f"Request cannot be started in status {request.request_status}")
    _check_assignee(request, evaluator_id)

    request.request_status = "in_progress"
    request.started_at = _now()
    db.commit()
    db.refresh(request)
    return request


def submit_review(
    db: Session,
    request_id: int,
    *,
    review_in: ReviewSubmit,
    evaluator_id: Optional[int] = None,
) -> ReviewRequest:
    """
    Complete a review and merge it into the submission.

    The review data is copied into evaluation.expert_review; for answers that
    never had an AI score an evaluation shell is created to hold it.
    """
    if not 0 <= review_in.score <= 100:
        raise InvalidInputError("score must be between 0 and 100")
    remarks = (review_in.remarks or "").strip()
    if not remarks:
        raise InvalidInputError("remarks are required")

    request = get_review_request(db, request_id)
    if request.request_status not in SUBMITTABLE:
        raise InvalidStateError(
            f"Review cannot be submitted in status {request.request_status}"
        )
    _check_assignee(request, evaluator_id)

    submission = get_submission(db, request.answer_id)
    reviewed_at = _now()
    review_data = {
        "score": review_in.score,
        "remarks": remarks,
        "strengths": list(review_in.strengths),
        "improvements": list(review_in.improvements),
        "suggestions": list(review_in.suggestions),
        "reviewed_at": reviewed_at.isoformat(),
    }

    request.request_status = "completed"
    request.completed_at = reviewed_at
    request.review_data = review_data

    evaluation = submission.evaluation
    if evaluation is None:
        question = get_question(db, submission.question_id)
        evaluation = Evaluation(
            score=None,
            max_score=float(question.max_marks),
            source="expert",
            feedback_status=True,
        )
        submission.evaluation = evaluation
    evaluation.expert_review = dict(review_data)
    submission.review_status = "review_completed"

    db.commit()
    db.refresh(request)
    logger.info(f"Review request {request_id} completed with score {review_in.score}")
    return request


def cancel_review_request(db: Session, request_id: int, *, requester_id: int) -> ReviewRequest:
    request = get_review_request(db, request_id)
    if request.user_id != requester_id:
        raise AccessDeniedError("Access denied")
    if request.request_status not in CANCELLABLE:
        raise InvalidStateError(f"Cannot cancel request in status {request.request_status}")

    submission = get_submission(db, request.answer_id)
    request.request_status = "cancelled"
    submission.review_status = "none"
    db.commit()
    db.refresh(request)
    return request


def list_pending_review_requests(
    db: Session,
    *,
    client_id: str,
    priority: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[ReviewRequest]:
    """Evaluator queue for one tenant."""
    query = db.query(ReviewRequest).filter(
        ReviewRequest.client_id == client_id,
        ReviewRequest.request_status.in_(("pending", "assigned", "accepted")),
    )
    if priority:
        query = query.filter(ReviewRequest.priority == priority)
    return (
        query.order_by(ReviewRequest.requested_at.desc(), ReviewRequest.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )


def list_review_requests_for_user(
    db: Session,
    *,
    user_id: int,
    status: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[ReviewRequest]:
    query = db.query(ReviewRequest).filter(ReviewRequest.user_id == user_id)
    if status:
        query = query.filter(ReviewRequest.request_status == status)
    return (
        query.order_by(ReviewRequest.requested_at.desc(), ReviewRequest.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )


def get_review_request_for_user(db: Session, request_id: int, *, requester_id: int) -> ReviewRequest:
    request = get_review_request(db, request_id)
    if request.user_id != requester_id:
        raise AccessDeniedError("Access denied")
    return request


def submit_student_feedback(
    db: Session,
    submission_id: int,
    *,
    requester_id: int,
    message: str,
) -> Submission:
    """One-shot: the first call stores the message, the second fails."""
    submission = get_submission(db, submission_id)
    if submission.user_id != requester_id:
        raise AccessDeniedError("This answer does not belong to you")

    text = (message or "").strip()
    if not text:
        raise InvalidInputError("Feedback message is required")

    evaluation = submission.evaluation
    if evaluation is None or not (evaluation.feedback or evaluation.expert_review):
        raise InvalidStateError("Feedback can only be given on an evaluated answer")
    if not evaluation.feedback_status:
        raise AlreadySubmittedError("Feedback has already been submitted for this answer")

    evaluation.user_feedback = {"message": text, "submitted_at": _now().isoformat()}
    evaluation.feedback_status = False
    db.commit()
    db.refresh(submission)
    return submission
