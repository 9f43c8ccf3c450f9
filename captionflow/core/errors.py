"""Error taxonomy and normalized handlers.

Every error leaves the API as ``{"error": <message>, "code": <code>, "request_id": <rid>}``.
Upstream provider detail is logged, never echoed to the client.
"""

import logging
import builtins
from typing import Any, Optional
from uuid import uuid4

from starlette.exceptions import HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.requests import Request

from captionflow.core.logging import get_request_id


class AppError(Exception):
    code = "app_error"
    status_code = 500

    def __init__(self, message: str, *, code: Optional[str] = None, status_code: Optional[int] = None, request_id: Optional[str] = None, details: Any = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.request_id = request_id
        self.details = details


class ValidationError(AppError, ValueError):
    code = "validation_error"
    status_code = 400


class UnauthorizedError(AppError):
    code = "unauthorized"
    status_code = 401


class NotFoundError(AppError, ValueError):
    code = "not_found"
    status_code = 404


class PermissionError(AppError, builtins.PermissionError):
    code = "forbidden"
    status_code = 403


class TierRequiredError(PermissionError):
    """Raised when the caller's subscription tier does not include a feature."""
    code = "upgrade_required"
    status_code = 403


class QuotaExceededError(AppError):
    """Raised when a free-tier user has used up today's generations."""
    code = "quota_exceeded"
    status_code = 403


class ConflictError(AppError):
    code = "conflict"
    status_code = 409


class GenerationFailedError(AppError):
    """Single taxonomy value for every completion-provider failure."""
    code = "generation_failed"
    status_code = 500

    def __init__(self, message: str = "Caption generation failed. Please try again.", **kwargs):
        super().__init__(message, **kwargs)


class WebhookError(AppError):
    code = "invalid_webhook"
    status_code = 400


def _extract_request_id(request: Request, fallback: Optional[str] = None) -> str:
    return (
        getattr(request.state, "request_id", None)
        or get_request_id()
        or fallback
        or str(uuid4())
    )


def _record_error(request: Request, code: str) -> None:
    request.state.error_code = code


def _error_payload(code: str, message: str, request_id: str, details: Any = None) -> dict:
    payload = {"error": message, "code": code, "request_id": request_id}
    if details is not None:
        payload["details"] = details
    return payload


async def app_error_handler(request: Request, exc: AppError):
    rid = exc.request_id or _extract_request_id(request)
    _record_error(request, exc.code)
    payload = _error_payload(exc.code, exc.message, rid, exc.details)
    logger = logging.getLogger("captionflow")
    log_level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    logger.log(
        log_level,
        "app.error",
        extra={"request_id": rid, "error_code": exc.code, "error_message": exc.message, "status": exc.status_code},
    )
    response = JSONResponse(status_code=exc.status_code, content=payload)
    response.headers["x-request-id"] = rid
    return response


async def http_error_handler(request: Request, exc: HTTPException):
    rid = _extract_request_id(request)
    if exc.status_code == 404:
        code = "not_found"
    elif exc.status_code == 401:
        code = "unauthorized"
    else:
        code = "http_error"
    _record_error(request, code)
    message = exc.detail if isinstance(exc.detail, str) and exc.detail else "HTTP error"
    payload = _error_payload(code, message, rid)
    logger = logging.getLogger("captionflow")
    logger.warning("http.error", extra={"request_id": rid, "error_code": code, "status": exc.status_code})
    response = JSONResponse(status_code=exc.status_code, content=payload, headers=getattr(exc, "headers", None))
    response.headers["x-request-id"] = rid
    return response


def _field_errors(exc: RequestValidationError) -> list[dict]:
    return [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
            "message": err.get("msg", "Invalid value"),
        }
        for err in exc.errors()
    ]


async def request_validation_handler(request: Request, exc: RequestValidationError):
    rid = _extract_request_id(request)
    details = _field_errors(exc)
    _record_error(request, "validation_error")
    logger = logging.getLogger("captionflow")
    logger.warning("validation.error", extra={"request_id": rid, "error_code": "validation_error", "status": 400})
    response = JSONResponse(
        status_code=400,
        content=_error_payload("validation_error", "Invalid request data", rid, details),
    )
    response.headers["x-request-id"] = rid
    return response


async def unhandled_exception_handler(request: Request, exc: Exception):
    rid = _extract_request_id(request)
    logger = logging.getLogger("captionflow")
    _record_error(request, "internal_error")
    logger.error("unhandled.exception", exc_info=exc, extra={"request_id": rid, "error_code": "internal_error"})
    payload = _error_payload("internal_error", "Internal server error", rid)
    response = JSONResponse(status_code=500, content=payload)
    response.headers["x-request-id"] = rid
    return response
