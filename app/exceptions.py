"""
Domain errors raised by the exam services

Each error carries an HTTP status, a machine-readable code and optional
extra fields; app.main renders them as JSON so clients can react (for
example by routing the user to their incomplete trainings).
"""
from typing import Any, Dict, Optional


class ExamEngineError(Exception):
    """Base class for expected, user-facing outcomes"""

    status_code = 400
    code = "exam_error"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.extra = extra or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.code,
            "message": self.message,
            "status_code": self.status_code,
            **self.extra
        }


class NotFoundError(ExamEngineError):
    status_code = 404
    code = "not_found"


class ForbiddenError(ExamEngineError):
    status_code = 403
    code = "forbidden"


class PreconditionFailedError(ExamEngineError):
    status_code = 412
    code = "precondition_failed"


class ConflictError(ExamEngineError):
    status_code = 409
    code = "conflict"


class ValidationError(ExamEngineError):
    status_code = 400
    code = "validation_error"
