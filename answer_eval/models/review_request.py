# answer_eval/models/review_request.py
from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.sql import func
from answer_eval.db.base import Base


class ReviewRequest(Base):
    __tablename__ = "review_requests"

    id = Column(Integer, primary_key=True, index=True)

    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    question_id = Column(Integer, ForeignKey("questions.id"), nullable=False, index=True)
    # non-owning back-reference to the reviewed submission
    answer_id = Column(Integer, ForeignKey("submissions.id"), nullable=False, index=True)
    client_id = Column(String(64), nullable=False, index=True)

    # pending / assigned / accepted / in_progress / completed / cancelled
    request_status = Column(String(20), nullable=False, default="pending", index=True)
    assigned_evaluator = Column(Integer, ForeignKey("users.id"), nullable=True)
    priority = Column(String(10), nullable=False, default="medium")
    notes = Column(Text, nullable=True)

    requested_at = Column(DateTime(timezone=True), server_default=func.now())
    assigned_at = Column(DateTime(timezone=True), nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    # set iff request_status == 'completed'
    review_data = Column(JSON, nullable=True)
