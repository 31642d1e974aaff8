# answer_eval/api/v1/endpoints/ocr.py
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from answer_eval.api.deps import get_current_admin, get_current_evaluator, get_ocr_coordinator
from answer_eval.core.exceptions import AccessDeniedError
from answer_eval.db.session import get_db
from answer_eval.models.user import User
from answer_eval.services import ocr_service, submission_service
from answer_eval.services.ocr_service import OcrCoordinator
from answer_eval.workers.queue import enqueue_ocr_for_submission, enqueue_ocr_sweep

router = APIRouter(tags=["ocr"])


def _ensure_same_client(db: Session, submission_id: int, user: User) -> None:
    sub = submission_service.get_submission(db, submission_id)
    if sub.client_id != user.client_id:
        raise AccessDeniedError("Not allowed to manage this submission")


@router.post("/submissions/{submission_id}/ocr")
def process_submission_images(
    submission_id: int,
    background: bool = False,
    db: Session = Depends(get_db),
    current_evaluator: User = Depends(get_current_evaluator),
    coordinator: OcrCoordinator = Depends(get_ocr_coordinator),
):
    """
    Re-run OCR for every image of a submission, in index order, or queue it
    for a worker with ?background=true.
    """
    _ensure_same_client(db, submission_id, current_evaluator)
    if background:
        return {"job_id": enqueue_ocr_for_submission(submission_id), "status": "queued"}
    return coordinator.process_all_images(db, submission_id)


@router.post("/submissions/{submission_id}/images/{image_index}/ocr")
def process_single_image(
    submission_id: int,
    image_index: int,
    db: Session = Depends(get_db),
    current_evaluator: User = Depends(get_current_evaluator),
    coordinator: OcrCoordinator = Depends(get_ocr_coordinator),
):
    _ensure_same_client(db, submission_id, current_evaluator)
    return coordinator.process_image(db, submission_id, image_index)


@router.post("/ocr/pending", status_code=status.HTTP_202_ACCEPTED)
def sweep_pending_ocr(current_admin: User = Depends(get_current_admin)):
    """
    Queue the maintenance sweep; an RQ worker on the 'ocr' queue runs it.
    """
    job_id = enqueue_ocr_sweep()
    return {"job_id": job_id, "status": "queued"}


@router.get("/ocr/stats")
def ocr_stats(
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin),
):
    return ocr_service.get_ocr_stats(db)
