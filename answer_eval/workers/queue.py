# answer_eval/workers/queue.py

from typing import Any, Callable

from redis import Redis
from rq import Queue

from answer_eval.core.config import settings

_DEFAULT_QUEUE_NAME = "default"
OCR_QUEUE_NAME = "ocr"
EVALUATION_QUEUE_NAME = "evaluation"

_redis_conn: Redis | None = None


def get_redis_connection() -> Redis:
    global _redis_conn
    if _redis_conn is None:
        _redis_conn = Redis.from_url(settings.REDIS_URL)
    return _redis_conn


def get_queue(name: str = _DEFAULT_QUEUE_NAME) -> Queue:
    return Queue(name, connection=get_redis_connection())


def enqueue_job(
    func: Callable[..., Any],
    *args: Any,
    queue_name: str = _DEFAULT_QUEUE_NAME,
    **kwargs: Any,
) -> str:
    q = get_queue(queue_name)
    job = q.enqueue(func, *args, **kwargs)
    return job.id


def enqueue_ocr_sweep() -> str:
    from answer_eval.workers.tasks import ocr_sweep_task

    return enqueue_job(ocr_sweep_task, queue_name=OCR_QUEUE_NAME)


def enqueue_ocr_for_submission(submission_id: int) -> str:
    from answer_eval.workers.tasks import ocr_submission_task

    return enqueue_job(ocr_submission_task, submission_id, queue_name=OCR_QUEUE_NAME)


def enqueue_reevaluation(submission_id: int) -> str:
    from answer_eval.workers.tasks import reevaluate_task

    return enqueue_job(reevaluate_task, submission_id, queue_name=EVALUATION_QUEUE_NAME)
