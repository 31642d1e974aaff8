# answer_eval/core/exceptions.py
from enum import Enum


class ErrorKind(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    VALIDATION = "VALIDATION_ERROR"
    SUBMISSION_LIMIT_EXCEEDED = "SUBMISSION_LIMIT_EXCEEDED"
    CREATION_FAILED = "CREATION_FAILED"
    ACCESS_DENIED = "ACCESS_DENIED"
    INVALID_STATE = "INVALID_STATE"
    ALREADY_SUBMITTED = "ALREADY_SUBMITTED"
    PROVIDER_UNAVAILABLE = "PROVIDER_UNAVAILABLE"


class AnswerEvalError(Exception):
    kind: ErrorKind

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(AnswerEvalError):
    kind = ErrorKind.NOT_FOUND


class InvalidInputError(AnswerEvalError):
    kind = ErrorKind.VALIDATION


class SubmissionLimitExceededError(AnswerEvalError):
    kind = ErrorKind.SUBMISSION_LIMIT_EXCEEDED


class CreationFailedError(AnswerEvalError):
    kind = ErrorKind.CREATION_FAILED


class AccessDeniedError(AnswerEvalError):
    kind = ErrorKind.ACCESS_DENIED


class InvalidStateError(AnswerEvalError):
    kind = ErrorKind.INVALID_STATE


class AlreadySubmittedError(AnswerEvalError):
    kind = ErrorKind.ALREADY_SUBMITTED


class ProviderUnavailableError(AnswerEvalError):
    """Raised by provider clients only; never escapes the OCR/evaluation layer."""

    kind = ErrorKind.PROVIDER_UNAVAILABLE
