"""
OCR Service
Drives the TextExtractor across the images of one submission, and across every
submission whose OCR is not finished, writing each image's OCR sub-state back.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from answer_eval.core.config import Settings
from answer_eval.core.exceptions import NotFoundError
from answer_eval.models.submission import AnswerImage, Submission
from answer_eval.services.ocr_client import ImageRef, MistralOcrProvider, TextExtractor

logger = logging.getLogger(__name__)

PENDING = "pending"
PROCESSING = "processing"
COMPLETED = "completed"
FAILED = "failed"


def recompute_aggregate_status(statuses: Iterable[str]) -> str:
    """
    Derive a submission's ocr_processing_status from its image statuses.

    - completed: every image completed (also true for no images)
    - failed: at least one failed and none pending/processing
    - pending: nothing has started yet
    - processing: anything else
    """
    statuses = list(statuses)
    if all(s == COMPLETED for s in statuses):
        return COMPLETED
    in_flight = any(s in (PENDING, PROCESSING) for s in statuses)
    if FAILED in statuses and not in_flight:
        return FAILED
    if all(s == PENDING for s in statuses):
        return PENDING
    return PROCESSING


def _get_submission(db: Session, submission_id: int) -> Submission:
    submission: Optional[Submission] = db.get(Submission, submission_id)
    if submission is None:
        raise NotFoundError(f"submission {submission_id} not found")
    return submission


def _refresh_aggregate(submission: Submission) -> None:
    submission.ocr_processing_status = recompute_aggregate_status(
        img.processing_status for img in submission.images
    )


class OcrCoordinator:
    def __init__(
        self,
        extractor: TextExtractor,
        *,
        image_delay_ms: int = 1000,
        batch_delay_ms: int = 2000,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.extractor = extractor
        self.image_delay_ms = image_delay_ms
        self.batch_delay_ms = batch_delay_ms
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: Settings) -> "OcrCoordinator":
        return cls(
            TextExtractor(MistralOcrProvider.from_settings(settings)),
            image_delay_ms=settings.OCR_IMAGE_DELAY_MS,
            batch_delay_ms=settings.OCR_BATCH_DELAY_MS,
        )

    def _pause(self, delay_ms: int) -> None:
        if delay_ms > 0:
            self._sleep(delay_ms / 1000.0)

    def process_image(self, db: Session, submission_id: int, image_index: int) -> Dict[str, Any]:
        """
        OCR a single image of a submission.

        Raises NotFoundError for an unknown submission or image index. Anything
        that goes wrong after the image was flipped to 'processing' is turned
        into a best-effort 'failed' write and a failure result.
        """
        submission = _get_submission(db, submission_id)
        if image_index < 0 or image_index >= len(submission.images):
            raise NotFoundError(
                f"image {image_index} not found on submission {submission_id}"
            )

        image: AnswerImage = submission.images[image_index]
        image.processing_status = PROCESSING
        image.error_message = None
        _refresh_aggregate(submission)
        db.commit()

        try:
            result = self.extractor.extract(ImageRef(url=image.image_url))

            image.processed_at = datetime.now(timezone.utc)
            image.ocr_metadata = {
                "processing_time_ms": result.metadata.get("processing_time_ms", 0),
                "boxes": result.metadata.get("boxes", []),
            }
            if result.success:
                image.extracted_text = result.extracted_text
                image.confidence = result.confidence
                image.processing_status = COMPLETED
                image.error_message = None
            else:
                image.extracted_text = ""
                image.confidence = None
                image.processing_status = FAILED
                image.error_message = result.error

            _refresh_aggregate(submission)
            db.commit()

            return {
                "success": result.success,
                "submission_id": submission_id,
                "image_index": image_index,
                "extracted_text": image.extracted_text,
                "processing_status": image.processing_status,
                "overall_ocr_status": submission.ocr_processing_status,
                "error": result.error,
            }

        except Exception as e:
            logger.error(
                f"Error processing image {image_index} of submission {submission_id}: {e}",
                exc_info=True,
            )
            self._mark_failed(db, submission_id, image_index, str(e))
            return {
                "success": False,
                "submission_id": submission_id,
                "image_index": image_index,
                "error": str(e),
            }

    def _mark_failed(self, db: Session, submission_id: int, image_index: int, message: str) -> None:
        # best effort: logged, never retried
        try:
            db.rollback()
            submission = db.get(Submission, submission_id)
            if submission is None or image_index >= len(submission.images):
                return
            image = submission.images[image_index]
            image.processing_status = FAILED
            image.error_message = message
            image.processed_at = datetime.now(timezone.utc)
            _refresh_aggregate(submission)
            db.commit()
        except Exception:
            logger.exception(
                f"Could not record failed OCR status for image {image_index} "
                f"of submission {submission_id}"
            )
            db.rollback()

    def process_all_images(
        self,
        db: Session,
        submission_id: int,
        *,
        delay_ms: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Process every image in index order; one failure never stops the rest."""
        delay_ms = self.image_delay_ms if delay_ms is None else delay_ms
        submission = _get_submission(db, submission_id)
        total = len(submission.images)

        if total == 0:
            return {
                "success": True,
                "submission_id": submission_id,
                "total_images": 0,
                "processed_successfully": 0,
                "failed": 0,
                "results": [],
            }

        results: List[Dict[str, Any]] = []
        for index in range(total):
            logger.info(f"Processing image {index + 1}/{total} for submission {submission_id}")
            results.append(self.process_image(db, submission_id, index))
            if index < total - 1:
                self._pause(delay_ms)

        succeeded = sum(1 for r in results if r["success"])
        return {
            "success": True,
            "submission_id": submission_id,
            "total_images": total,
            "processed_successfully": succeeded,
            "failed": total - succeeded,
            "results": results,
        }

    def process_pending(
        self,
        db: Session,
        *,
        image_delay_ms: Optional[int] = None,
        batch_delay_ms: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Maintenance sweep over every submission whose OCR is not completed."""
        batch_delay_ms = self.batch_delay_ms if batch_delay_ms is None else batch_delay_ms
        pending_ids = [s.id for s in list_pending_ocr_submissions(db)]
        logger.info(f"Found {len(pending_ids)} submissions with pending OCR")

        results: List[Dict[str, Any]] = []
        for position, submission_id in enumerate(pending_ids):
            logger.info(
                f"Processing submission {position + 1}/{len(pending_ids)}: {submission_id}"
            )
            try:
                results.append(
                    self.process_all_images(db, submission_id, delay_ms=image_delay_ms)
                )
            except NotFoundError as e:
                # removed between the query and this iteration
                logger.warning(str(e))
                results.append(
                    {"success": False, "submission_id": submission_id, "error": str(e)}
                )
            if position < len(pending_ids) - 1:
                self._pause(batch_delay_ms)

        processed = sum(1 for r in results if r["success"])
        images_done = sum(r.get("processed_successfully", 0) for r in results)
        logger.info(
            f"OCR sweep completed. {processed}/{len(pending_ids)} submissions processed"
        )
        return {
            "success": True,
            "processed_submissions": processed,
            "total_submissions": len(pending_ids),
            "total_images_processed": images_done,
            "results": results,
        }


def list_pending_ocr_submissions(db: Session) -> List[Submission]:
    return (
        db.query(Submission)
        .filter(Submission.ocr_processing_status != COMPLETED)
        .order_by(Submission.submitted_at.asc(), Submission.id.asc())
        .all()
    )


def get_ocr_stats(db: Session) -> Dict[str, Any]:
    submission_rows = (
        db.query(Submission.ocr_processing_status, func.count(Submission.id))
        .group_by(Submission.ocr_processing_status)
        .all()
    )
    image_rows = (
        db.query(AnswerImage.processing_status, func.count(AnswerImage.id))
        .group_by(AnswerImage.processing_status)
        .all()
    )
    return {
        "submissions": {status: count for status, count in submission_rows},
        "images": {status: count for status, count in image_rows},
    }
