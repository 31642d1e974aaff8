# answer_eval/schemas/evaluation.py
from datetime import datetime

from pydantic import BaseModel, Field


class EvaluationPublic(BaseModel):
    score: float | None = None
    max_score: float
    feedback: str | None = None
    breakdown: dict | None = None
    source: str
    evaluated_at: datetime | None = None
    expert_review: dict | None = None
    feedback_status: bool
    user_feedback: dict | None = None

    model_config = {"from_attributes": True}


class EvaluationPatch(BaseModel):
    """Admin write; feedback state and expert review are not part of it."""
    score: float | None = None
    max_score: float | None = None
    feedback: str | None = None
    breakdown: dict | None = None


class EvaluationFilter(BaseModel):
    user_id: int | None = None
    question_id: int | None = None
    client_id: str | None = None
    submission_ids: list[int] | None = None
    min_score: float | None = None
    max_score: float | None = None
    skip: int = Field(default=0, ge=0)
    limit: int = Field(default=100, ge=1, le=500)


class BulkEvaluationUpdate(BaseModel):
    filters: EvaluationFilter
    patch: EvaluationPatch


class StudentFeedbackCreate(BaseModel):
    message: str
