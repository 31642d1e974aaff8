# answer_eval/schemas/review.py
from datetime import datetime

from pydantic import BaseModel


class ReviewRequestCreate(BaseModel):
    notes: str | None = None
    priority: str = "medium"


class ReviewSubmit(BaseModel):
    """Bounds and non-empty remarks are checked by the review service."""
    score: float
    remarks: str
    strengths: list[str] = []
    improvements: list[str] = []
    suggestions: list[str] = []


class ReviewRequestPublic(BaseModel):
    id: int
    user_id: int
    question_id: int
    answer_id: int
    client_id: str
    request_status: str
    assigned_evaluator: int | None = None
    priority: str
    notes: str | None = None
    requested_at: datetime | None = None
    assigned_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    review_data: dict | None = None

    model_config = {"from_attributes": True}
