# answer_eval/api/v1/endpoints/reviews.py
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from answer_eval.api.deps import get_current_evaluator, get_current_user
from answer_eval.db.session import get_db
from answer_eval.models.user import User
from answer_eval.schemas.review import ReviewRequestPublic, ReviewSubmit
from answer_eval.services import review_service

router = APIRouter(prefix="/reviews", tags=["reviews"])


@router.get("/pending", response_model=List[ReviewRequestPublic])
def list_pending_reviews(
    priority: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    current_evaluator: User = Depends(get_current_evaluator),
):
    """
    Review queue of the evaluator's own client.
    """
    return review_service.list_pending_review_requests(
        db,
        client_id=current_evaluator.client_id,
        priority=priority,
        skip=skip,
        limit=limit,
    )


@router.get("/mine", response_model=List[ReviewRequestPublic])
def list_my_review_requests(
    status: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return review_service.list_review_requests_for_user(
        db, user_id=current_user.id, status=status, skip=skip, limit=limit
    )


@router.get("/{request_id}", response_model=ReviewRequestPublic)
def get_my_review_request(
    request_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return review_service.get_review_request_for_user(
        db, request_id, requester_id=current_user.id
    )


@router.post("/{request_id}/assign", response_model=ReviewRequestPublic)
def assign_review(
    request_id: int,
    db: Session = Depends(get_db),
    current_evaluator: User = Depends(get_current_evaluator),
):
    return review_service.assign_review_request(
        db, request_id, evaluator_id=current_evaluator.id
    )


@router.post("/{request_id}/accept", response_model=ReviewRequestPublic)
def accept_review(
    request_id: int,
    db: Session = Depends(get_db),
    current_evaluator: User = Depends(get_current_evaluator),
):
    return review_service.accept_review_request(
        db, request_id, evaluator_id=current_evaluator.id
    )


@router.post("/{request_id}/start", response_model=ReviewRequestPublic)
def start_review(
    request_id: int,
    db: Session = Depends(get_db),
    current_evaluator: User = Depends(get_current_evaluator),
):
    return review_service.start_review(db, request_id, evaluator_id=current_evaluator.id)


@router.post("/{request_id}/submit", response_model=ReviewRequestPublic)
def submit_review(
    request_id: int,
    review_in: ReviewSubmit,
    db: Session = Depends(get_db),
    current_evaluator: User = Depends(get_current_evaluator),
):
    """
    Complete the review; the result is merged into the answer's evaluation.
    """
    return review_service.submit_review(
        db, request_id, review_in=review_in, evaluator_id=current_evaluator.id
    )


@router.delete("/{request_id}", response_model=ReviewRequestPublic)
def cancel_review(
    request_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return review_service.cancel_review_request(db, request_id, requester_id=current_user.id)
