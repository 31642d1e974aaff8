# answer_eval/schemas/submission.py
from datetime import datetime

from pydantic import BaseModel, Field

from answer_eval.schemas.evaluation import EvaluationPublic


class AnswerImageIn(BaseModel):
    """An already uploaded image; storage and URL issuance happen upstream."""
    image_url: str = Field(min_length=1)
    original_name: str | None = None


class SubmissionCreate(BaseModel):
    images: list[AnswerImageIn] = []
    text_answer: str | None = None


class OcrDataPublic(BaseModel):
    extracted_text: str | None = None
    confidence: float | None = None
    processing_status: str
    error_message: str | None = None
    processed_at: datetime | None = None
    metadata: dict | None = Field(default=None, validation_alias="ocr_metadata")

    model_config = {"from_attributes": True}


class AnswerImagePublic(BaseModel):
    image_index: int
    image_url: str
    original_name: str | None = None
    ocr: OcrDataPublic

    @classmethod
    def from_model(cls, image) -> "AnswerImagePublic":
        return cls(
            image_index=image.image_index,
            image_url=image.image_url,
            original_name=image.original_name,
            ocr=OcrDataPublic.model_validate(image),
        )


class SubmissionPublic(BaseModel):
    id: int
    user_id: int
    question_id: int
    attempt_number: int
    remaining_attempts: int
    is_final_attempt: bool
    text_answer: str | None = None
    images: list[AnswerImagePublic]
    ocr_processing_status: str
    review_status: str
    evaluation: EvaluationPublic | None = None
    submitted_at: datetime | None = None

    @classmethod
    def from_model(cls, sub, *, max_attempts: int) -> "SubmissionPublic":
        remaining = max(0, max_attempts - sub.attempt_number)
        return cls(
            id=sub.id,
            user_id=sub.user_id,
            question_id=sub.question_id,
            attempt_number=sub.attempt_number,
            remaining_attempts=remaining,
            is_final_attempt=remaining == 0,
            text_answer=sub.text_answer,
            images=[AnswerImagePublic.from_model(img) for img in sub.images],
            ocr_processing_status=sub.ocr_processing_status,
            review_status=sub.review_status,
            evaluation=(
                EvaluationPublic.model_validate(sub.evaluation) if sub.evaluation else None
            ),
            submitted_at=sub.submitted_at,
        )
