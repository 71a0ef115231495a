"""
Error types and the FastAPI handlers that turn them into the JSON envelope

    {"error": {"code", "message", "request_id"}, "detail": message}

Every error response also carries the request id in ``x-request-id``.
Store failures inside the usage ledger are not errors here: the ledger
degrades instead of raising.
"""

import logging
from typing import Optional
from uuid import uuid4

from fastapi import HTTPException
from fastapi.responses import JSONResponse
from starlette.requests import Request

from mockupgen.core.logging import LOGGER_NAME, get_request_id

logger = logging.getLogger(LOGGER_NAME)


class AppError(Exception):
    code = "app_error"
    status_code = 500

    def __init__(self, message: str, *, code: Optional[str] = None, status_code: Optional[int] = None, request_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.code
        self.status_code = status_code or self.status_code
        self.request_id = request_id


class ValidationError(AppError, ValueError):
    code = "validation_error"
    status_code = 400


class InvalidRequestError(ValidationError):
    """Caller error: bad amount, missing feature key. Never reaches the ledger."""
    code = "invalid_request"


class UnauthorizedError(AppError):
    code = "unauthorized"
    status_code = 401


class QuotaExceededError(AppError):
    """The plan's monthly cap for a feature would be exceeded."""
    code = "quota_exceeded"
    status_code = 403


class ConfigurationError(AppError):
    """Invalid plan catalog, detected at construction."""
    code = "configuration_error"
    status_code = 500


def _request_id_for(request: Request) -> str:
    return getattr(request.state, "request_id", None) or get_request_id() or str(uuid4())


def _envelope(status_code: int, code: str, message: str, request_id: str) -> JSONResponse:
    response = JSONResponse(
        status_code=status_code,
        content={
            "error": {"code": code, "message": message, "request_id": request_id},
            "detail": message,
        },
    )
    response.headers["x-request-id"] = request_id
    return response


async def app_error_handler(request: Request, exc: AppError):
    rid = exc.request_id or _request_id_for(request)
    logger.log(
        logging.ERROR if exc.status_code >= 500 else logging.WARNING,
        "app.error",
        extra={
            "request_id": rid,
            "error_code": exc.code,
            "error_message": exc.message,
            "status": exc.status_code,
            "user_id": getattr(request.state, "user_id", None),
        },
    )
    return _envelope(exc.status_code, exc.code, exc.message, rid)


async def http_error_handler(request: Request, exc: HTTPException):
    rid = _request_id_for(request)
    code = "not_found" if exc.status_code == 404 else "http_error"
    logger.warning("http.error", extra={"request_id": rid, "error_code": code, "status": exc.status_code})
    return _envelope(exc.status_code, code, exc.detail or "HTTP error", rid)


async def unhandled_exception_handler(request: Request, exc: Exception):
    rid = _request_id_for(request)
    logger.error("unhandled.exception", exc_info=True, extra={"request_id": rid, "error_code": "internal_error"})
    return _envelope(500, "internal_error", "Unexpected error", rid)
