# answer_eval/api/deps.py
from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from answer_eval.core.config import settings
from answer_eval.db.session import get_db
from answer_eval.models.user import User
from answer_eval.services.evaluation_service import EvaluationEngine
from answer_eval.services.ocr_service import OcrCoordinator
from answer_eval.services.submission_service import SubmissionManager


def get_current_user(
    x_user_id: int | None = Header(default=None),
    db: Session = Depends(get_db),
) -> User:
    # the gateway authenticates and forwards the user id
    if x_user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    user = db.get(User, x_user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown user")
    return user


def get_current_evaluator(current_user: User = Depends(get_current_user)) -> User:
    if current_user.role not in ("evaluator", "admin"):
        raise HTTPException(status_code=403, detail="Evaluator access required")
    return current_user


def get_current_admin(current_user: User = Depends(get_current_user)) -> User:
    if current_user.role != "admin":
        raise HTTPException(status_code=403, detail="Admin access required")
    return current_user


def get_ocr_coordinator() -> OcrCoordinator:
    return OcrCoordinator.from_settings(settings)


def get_evaluation_engine() -> EvaluationEngine:
    return EvaluationEngine.from_settings(settings)


def get_submission_manager(
    ocr: OcrCoordinator = Depends(get_ocr_coordinator),
    engine: EvaluationEngine = Depends(get_evaluation_engine),
) -> SubmissionManager:
    return SubmissionManager.from_settings(settings, ocr=ocr, engine=engine)
