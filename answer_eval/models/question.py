# answer_eval/models/question.py
from sqlalchemy import Column, Integer, String, Text, DateTime
from sqlalchemy.sql import func
from answer_eval.db.base import Base


class Question(Base):
    """Read-only to this service; owned by the content-management side."""

    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, index=True)

    question_text = Column(Text, nullable=False)
    max_marks = Column(Integer, nullable=False, default=10)
    word_limit = Column(Integer, nullable=True)
    estimated_time = Column(Integer, nullable=True)  # minutes
    difficulty = Column(String(20), nullable=True)
    language_mode = Column(String(20), nullable=True)

    # 'auto' -> AI scored, 'manual' -> expert review
    evaluation_mode = Column(String(10), nullable=False, default="auto")
    evaluation_type = Column(String(50), nullable=True)
    # replaces the default evaluation framework in the prompt when set
    evaluation_guideline = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
