"""Error taxonomy shared by the services and its mapping onto HTTP responses."""
from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class FaultTrackerError(Exception):
    """Base class for errors the API boundary knows how to render."""

    status_code = 500
    kind = "internal_error"

    def __init__(self, detail: str, *, errors: Optional[list[Any]] = None) -> None:
        super().__init__(detail)
        self.detail = detail
        self.errors = errors


class ValidationError(FaultTrackerError):
    status_code = 400
    kind = "validation_error"


class AuthError(FaultTrackerError):
    status_code = 401
    kind = "auth_error"


class AccessDeniedError(FaultTrackerError):
    status_code = 403
    kind = "access_denied"


class NotFoundError(FaultTrackerError):
    status_code = 404
    kind = "not_found"


class ConflictError(FaultTrackerError):
    status_code = 409
    kind = "conflict"


class ImageProcessingError(FaultTrackerError):
    status_code = 422
    kind = "image_processing_error"


class RateLimitedError(FaultTrackerError):
    status_code = 429
    kind = "rate_limited"


class InternalError(FaultTrackerError):
    pass


def render_error(exc: FaultTrackerError) -> JSONResponse:
    content: dict[str, Any] = {"error": exc.kind, "detail": exc.detail}
    if exc.errors is not None:
        content["errors"] = jsonable_encoder(exc.errors)
    headers = {"WWW-Authenticate": "Basic"} if isinstance(exc, AuthError) else None
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


def fault_tracker_error_handler(_: Request, exc: FaultTrackerError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Request failed: %s", exc.detail)
    return render_error(exc)


def _renderable(error: dict[str, Any]) -> dict[str, Any]:
    """Drop the offending input when it cannot be echoed back as JSON."""

    try:
        jsonable_encoder(error)
    except (UnicodeDecodeError, TypeError, ValueError):
        return {key: value for key, value in error.items() if key not in ("input", "ctx")}
    return error


def request_validation_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    return render_error(ValidationError("Invalid request", errors=[_renderable(error) for error in exc.errors()]))


def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("Unexpected database error on %s %s", request.method, request.url.path, exc_info=exc)
    return render_error(InternalError("Unexpected storage failure"))


def register_error_handlers(app: FastAPI) -> None:
    """Attach the error taxonomy handlers to an app."""

    app.add_exception_handler(FaultTrackerError, fault_tracker_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, request_validation_handler)  # type: ignore[arg-type]
    app.add_exception_handler(SQLAlchemyError, database_error_handler)  # type: ignore[arg-type]
