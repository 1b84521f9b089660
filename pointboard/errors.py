"""Domain errors raised by services and their HTTP translation."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class PointboardError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500
    default_detail = "Internal server error"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class AuthenticationError(PointboardError):
    status_code = 401
    default_detail = "Authentication required"


class AuthorizationError(PointboardError):
    status_code = 403
    default_detail = "Admin access required"


class ValidationError(PointboardError):
    status_code = 400
    default_detail = "Invalid request data"


class NotFoundError(PointboardError):
    status_code = 404
    default_detail = "Not found"


class InvalidStateError(PointboardError):
    status_code = 400
    default_detail = "Task cannot transition from its current status"


class RateLimitedError(PointboardError):
    status_code = 429
    default_detail = "Too many attempts. Try again later."

    def __init__(self, detail: str | None = None, retry_after: int = 0):
        super().__init__(detail)
        self.retry_after = max(0, int(retry_after))


async def _pointboard_error_handler(request: Request, exc: PointboardError) -> JSONResponse:
    headers = {}
    if isinstance(exc, RateLimitedError) and exc.retry_after:
        headers["Retry-After"] = str(exc.retry_after)
    return JSONResponse({"detail": exc.detail}, status_code=exc.status_code, headers=headers)


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.debug("Rejected request body on %s: %s", request.url.path, exc.errors())
    return JSONResponse({"detail": ValidationError.default_detail}, status_code=400)


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse({"detail": PointboardError.default_detail}, status_code=500)


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PointboardError, _pointboard_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
