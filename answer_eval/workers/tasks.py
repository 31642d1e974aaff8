"""
Background Tasks
Executed by RQ workers: the OCR maintenance sweep, OCR of a single submission,
and re-scoring of an already extracted answer.
"""

import logging

from answer_eval.core.config import settings
from answer_eval.core.exceptions import AnswerEvalError
from answer_eval.db.session import SessionLocal
from answer_eval.services.evaluation_service import EvaluationEngine
from answer_eval.services.ocr_service import OcrCoordinator
from answer_eval.services.submission_service import SubmissionManager

logger = logging.getLogger(__name__)


def ocr_sweep_task() -> dict:
    """
    Run OCR for every submission whose OCR has not completed.

    Returns the sweep summary, or an error dict if the sweep itself broke.
    """
    db = SessionLocal()
    try:
        logger.info("Starting OCR sweep task")
        summary = OcrCoordinator.from_settings(settings).process_pending(db)
        return {
            "status": "success",
            "processed_submissions": summary["processed_submissions"],
            "total_submissions": summary["total_submissions"],
            "total_images_processed": summary["total_images_processed"],
        }
    except Exception as e:
        logger.error(f"Unexpected error during OCR sweep: {e}", exc_info=True)
        return {"status": "error", "error": str(e), "message": "OCR sweep failed"}
    finally:
        db.close()


def ocr_submission_task(submission_id: int) -> dict:
    db = SessionLocal()
    try:
        logger.info(f"Starting OCR task for submission {submission_id}")
        summary = OcrCoordinator.from_settings(settings).process_all_images(db, submission_id)
        logger.info(
            f"Completed OCR task for submission {submission_id}: "
            f"{summary['processed_successfully']}/{summary['total_images']} images"
        )
        return {
            "status": "success",
            "submission_id": submission_id,
            "total_images": summary["total_images"],
            "processed_successfully": summary["processed_successfully"],
            "failed": summary["failed"],
        }
    except AnswerEvalError as e:
        logger.error(f"OCR failed for submission {submission_id}: {e}")
        return {"status": "error", "submission_id": submission_id, "error": e.message}
    except Exception as e:
        logger.error(
            f"Unexpected error during OCR task for submission {submission_id}: {e}",
            exc_info=True,
        )
        return {"status": "error", "submission_id": submission_id, "error": str(e)}
    finally:
        db.close()


def reevaluate_task(submission_id: int) -> dict:
    db = SessionLocal()
    try:
        manager = SubmissionManager.from_settings(
            settings,
            ocr=OcrCoordinator.from_settings(settings),
            engine=EvaluationEngine.from_settings(settings),
        )
        submission = manager.reevaluate(db, submission_id)
        evaluation = submission.evaluation
        return {
            "status": "success",
            "submission_id": submission.id,
            "score": evaluation.score,
            "max_score": evaluation.max_score,
            "source": evaluation.source,
        }
    except AnswerEvalError as e:
        logger.error(f"Re-evaluation failed for submission {submission_id}: {e}")
        return {"status": "error", "submission_id": submission_id, "error": e.message}
    except Exception as e:
        logger.error(
            f"Unexpected error while re-evaluating submission {submission_id}: {e}",
            exc_info=True,
        )
        return {"status": "error", "submission_id": submission_id, "error": str(e)}
    finally:
        db.close()
