# answer_eval/models/submission.py
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from answer_eval.db.base import Base


class Submission(Base):
    """One learner attempt at a question (a.k.a. UserAnswer)."""

    __tablename__ = "submissions"
    __table_args__ = (
        # arbiter for concurrent submits racing to the same attempt number
        UniqueConstraint(
            "user_id", "question_id", "attempt_number", name="uq_submission_attempt"
        ),
    )

    id = Column(Integer, primary_key=True, index=True)

    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    question_id = Column(Integer, ForeignKey("questions.id"), nullable=False, index=True)
    client_id = Column(String(64), nullable=False, index=True)
    attempt_number = Column(Integer, nullable=False)

    text_answer = Column(Text, nullable=True)

    # pending / processing / completed / failed
    ocr_processing_status = Column(String(20), nullable=False, default="pending", index=True)
    # none / review_requested / review_accepted / review_completed
    review_status = Column(String(20), nullable=False, default="none")

    submitted_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    images = relationship(
        "AnswerImage",
        back_populates="submission",
        order_by="AnswerImage.image_index",
        cascade="all, delete-orphan",
    )
    evaluation = relationship(
        "Evaluation",
        back_populates="submission",
        uselist=False,
        cascade="all, delete-orphan",
    )


class AnswerImage(Base):
    __tablename__ = "answer_images"

    id = Column(Integer, primary_key=True, index=True)
    submission_id = Column(Integer, ForeignKey("submissions.id"), nullable=False, index=True)
    image_index = Column(Integer, nullable=False)

    image_url = Column(Text, nullable=False)
    original_name = Column(String(255), nullable=True)

    # OCR sub-state: pending -> processing -> completed | failed
    processing_status = Column(String(20), nullable=False, default="pending")
    extracted_text = Column(Text, nullable=True)
    confidence = Column(Float, nullable=True)
    error_message = Column(Text, nullable=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    ocr_metadata = Column(JSON, nullable=True)

    submission = relationship("Submission", back_populates="images")


class Evaluation(Base):
    __tablename__ = "evaluations"

    id = Column(Integer, primary_key=True, index=True)
    submission_id = Column(
        Integer, ForeignKey("submissions.id"), nullable=False, unique=True, index=True
    )

    # score is empty for manual-mode answers until an expert reviews them
    score = Column(Float, nullable=True)
    max_score = Column(Float, nullable=False)
    feedback = Column(Text, nullable=True)
    breakdown = Column(JSON, nullable=True)
    # gemini / openai / mock / expert / admin
    source = Column(String(20), nullable=False)
    evaluated_at = Column(DateTime(timezone=True), nullable=True)

    # copied from the completed ReviewRequest.review_data
    expert_review = Column(JSON, nullable=True)

    # True means the student has not given feedback yet
    feedback_status = Column(Boolean, nullable=False, default=True)
    user_feedback = Column(JSON, nullable=True)

    submission = relationship("Submission", back_populates="evaluation")
