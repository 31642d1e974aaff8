# answer_eval/main.py
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from answer_eval import models  # noqa
from answer_eval.api.v1.api import api_router
from answer_eval.core.config import settings
from answer_eval.core.exceptions import AnswerEvalError, ErrorKind
from answer_eval.core.logging_config import setup_logging
from answer_eval.db.base import Base
from answer_eval.db.session import engine

logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.VALIDATION: 400,
    ErrorKind.SUBMISSION_LIMIT_EXCEEDED: 400,
    ErrorKind.CREATION_FAILED: 409,
    ErrorKind.ACCESS_DENIED: 403,
    ErrorKind.INVALID_STATE: 409,
    ErrorKind.ALREADY_SUBMITTED: 409,
    ErrorKind.PROVIDER_UNAVAILABLE: 500,
}

setup_logging()

app = FastAPI(title=settings.PROJECT_NAME)

origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_body(message: str, code: str) -> dict:
    return {"success": False, "message": message, "error": {"code": code}}


@app.exception_handler(AnswerEvalError)
async def answer_eval_error_handler(request: Request, exc: AnswerEvalError):
    status_code = STATUS_BY_KIND.get(exc.kind, 500)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=status_code, content=_error_body(exc.message, exc.kind.value))


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    code = {401: "UNAUTHORIZED", 403: ErrorKind.ACCESS_DENIED.value, 404: ErrorKind.NOT_FOUND.value}
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(str(exc.detail), code.get(exc.status_code, "HTTP_ERROR")),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    message = first.get("msg", "Invalid request")
    return JSONResponse(status_code=400, content=_error_body(message, ErrorKind.VALIDATION.value))


@app.on_event("startup")
def on_startup():
    Base.metadata.create_all(bind=engine)


app.include_router(api_router, prefix="/api/v1")
