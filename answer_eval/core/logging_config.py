# answer_eval/core/logging_config.py
import logging

from answer_eval.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(level: str | None = None) -> None:
    """Configure root logging once for the API process and RQ workers."""
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    # the provider SDKs log every request through httpx
    logging.getLogger("httpx").setLevel(logging.WARNING)
