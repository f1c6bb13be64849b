"""Domain exceptions and their JSON rendering.

Every error body has the same shape so clients can handle it generically:

    {"detail": "...", "code": "...", "errors": [{"field": "...", "reason": "..."}]}
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

logger = logging.getLogger(__name__)


@dataclass
class FieldError:
    field: str
    reason: str


class WorkOrderError(Exception):
    """Base application exception."""

    status_code = 500
    code = "APP_ERROR"

    def __init__(self, message: str, errors: list[FieldError] | None = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or []

    def to_dict(self) -> dict:
        return {
            "detail": self.message,
            "code": self.code,
            "errors": [asdict(e) for e in self.errors],
        }


class ValidationFailed(WorkOrderError):
    status_code = 400
    code = "VALIDATION_ERROR"

    def __init__(self, message: str = "Validation failed", errors: list[FieldError] | None = None):
        super().__init__(message, errors)

    @classmethod
    def from_pydantic(cls, exc: PydanticValidationError) -> "ValidationFailed":
        errors = [
            FieldError(
                field=".".join(str(p) for p in err["loc"]) or "__root__",
                reason=err["msg"],
            )
            for err in exc.errors()
        ]
        return cls("Validation failed", errors)


class InvalidStatusTransition(ValidationFailed):
    code = "INVALID_STATUS_TRANSITION"

    def __init__(self, message: str, allowed_statuses: list[str]):
        allowed = ", ".join(allowed_statuses) or "none (terminal status)"
        super().__init__(
            message,
            [FieldError("work_order_status", f"Allowed transitions: {allowed}")],
        )
        self.allowed_statuses = allowed_statuses

    def to_dict(self) -> dict:
        body = super().to_dict()
        body["allowed_statuses"] = self.allowed_statuses
        return body


class NotFoundError(WorkOrderError):
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(WorkOrderError):
    status_code = 409
    code = "CONFLICT"


class StoreUnavailable(WorkOrderError):
    status_code = 503
    code = "STORE_UNAVAILABLE"


class ImportFileError(WorkOrderError):
    """The uploaded file could not be read as a tabular import."""

    status_code = 422
    code = "IMPORT_FILE_ERROR"


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(WorkOrderError)
    async def handle_work_order_error(request: Request, exc: WorkOrderError):
        if exc.status_code >= 500:
            logger.error("%s on %s: %s", exc.code, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())
