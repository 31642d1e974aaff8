# answer_eval/api/v1/endpoints/submissions.py
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from answer_eval.api.deps import (
    get_current_admin,
    get_current_user,
    get_submission_manager,
)
from answer_eval.core.config import settings
from answer_eval.core.exceptions import AccessDeniedError
from answer_eval.db.session import get_db
from answer_eval.models.user import User
from answer_eval.schemas.evaluation import (
    BulkEvaluationUpdate,
    EvaluationFilter,
    EvaluationPatch,
    StudentFeedbackCreate,
)
from answer_eval.schemas.review import ReviewRequestCreate, ReviewRequestPublic
from answer_eval.schemas.submission import SubmissionCreate, SubmissionPublic
from answer_eval.services import review_service, submission_service
from answer_eval.services.submission_service import SubmissionManager
from answer_eval.workers.queue import enqueue_reevaluation

router = APIRouter(tags=["submissions"])


def _public(sub) -> SubmissionPublic:
    return SubmissionPublic.from_model(sub, max_attempts=settings.MAX_ATTEMPTS_PER_QUESTION)


@router.post(
    "/questions/{question_id}/answers",
    response_model=SubmissionPublic,
    status_code=status.HTTP_201_CREATED,
)
def submit_answer(
    question_id: int,
    obj_in: SubmissionCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    manager: SubmissionManager = Depends(get_submission_manager),
):
    """
    Create the next attempt, run OCR and (in auto mode) AI evaluation.
    """
    sub = manager.submit(
        db,
        user=current_user,
        question_id=question_id,
        images=obj_in.images,
        text_answer=obj_in.text_answer,
    )
    return _public(sub)


@router.get("/questions/{question_id}/answers/latest", response_model=SubmissionPublic)
def get_latest_answer(
    question_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    sub = submission_service.get_latest_submission(
        db, user_id=current_user.id, question_id=question_id
    )
    return _public(sub)


@router.get("/questions/{question_id}/answers", response_model=List[SubmissionPublic])
def list_my_attempts(
    question_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    subs = submission_service.list_attempts(db, user_id=current_user.id, question_id=question_id)
    return [_public(sub) for sub in subs]


@router.get(
    "/questions/{question_id}/answers/{attempt_number}", response_model=SubmissionPublic
)
def get_attempt(
    question_id: int,
    attempt_number: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    sub = submission_service.get_submission_by_attempt(
        db, user_id=current_user.id, question_id=question_id, attempt_number=attempt_number
    )
    return _public(sub)


@router.get("/evaluations", response_model=List[SubmissionPublic])
def list_evaluations(
    question_id: int | None = None,
    user_id: int | None = None,
    min_score: float | None = None,
    max_score: float | None = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    filters = EvaluationFilter(
        question_id=question_id,
        user_id=user_id,
        min_score=min_score,
        max_score=max_score,
        skip=skip,
        limit=limit,
    )
    # students only ever see their own evaluations
    if current_user.role == "student":
        filters.user_id = current_user.id
    filters.client_id = current_user.client_id
    subs = submission_service.list_evaluations(db, filters=filters)
    return [_public(sub) for sub in subs]


@router.post("/submissions/{submission_id}/feedback", response_model=SubmissionPublic)
def submit_feedback(
    submission_id: int,
    obj_in: StudentFeedbackCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    sub = review_service.submit_student_feedback(
        db, submission_id, requester_id=current_user.id, message=obj_in.message
    )
    return _public(sub)


@router.post(
    "/submissions/{submission_id}/review-request",
    response_model=ReviewRequestPublic,
    status_code=status.HTTP_201_CREATED,
)
def request_review(
    submission_id: int,
    obj_in: ReviewRequestCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return review_service.request_review(
        db,
        submission_id,
        requester_id=current_user.id,
        notes=obj_in.notes,
        priority=obj_in.priority,
    )


@router.post("/submissions/{submission_id}/reevaluate")
def reevaluate(
    submission_id: int,
    background: bool = False,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
    manager: SubmissionManager = Depends(get_submission_manager),
):
    _ensure_same_client(db, submission_id, current_admin)
    if background:
        return {"job_id": enqueue_reevaluation(submission_id), "status": "queued"}
    return _public(manager.reevaluate(db, submission_id))


@router.put("/submissions/{submission_id}/evaluation", response_model=SubmissionPublic)
def admin_update_evaluation(
    submission_id: int,
    patch: EvaluationPatch,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
):
    _ensure_same_client(db, submission_id, current_admin)
    sub = submission_service.admin_override_evaluation(db, submission_id, patch=patch)
    return _public(sub)


@router.put("/evaluations/bulk")
def admin_bulk_update_evaluations(
    obj_in: BulkEvaluationUpdate,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
):
    obj_in.filters.client_id = current_admin.client_id
    return submission_service.bulk_override_evaluation(
        db, filters=obj_in.filters, patch=obj_in.patch
    )


def _ensure_same_client(db: Session, submission_id: int, user: User) -> None:
    sub = submission_service.get_submission(db, submission_id)
    if sub.client_id != user.client_id:
        raise AccessDeniedError("Not allowed to manage this submission")
