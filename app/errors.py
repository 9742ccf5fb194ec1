from __future__ import annotations

import logging

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class SigningError(Exception):
    """Base class for business-rule failures surfaced to API callers."""

    status_code = 500
    code = "signing_error"
    default_message = "Request failed"

    def __init__(self, message: str | None = None, *, reason: str | None = None):
        self.message = message or self.default_message
        self.reason = reason
        super().__init__(self.message)


class ValidationError(SigningError):
    status_code = 400
    code = "validation_error"
    default_message = "Missing or invalid parameters"


class NotFoundError(SigningError):
    status_code = 404
    code = "not_found"
    default_message = "Not found"


class ExpiredError(SigningError):
    status_code = 410
    code = "link_expired"
    default_message = "Link has expired"


class AlreadyUsedError(SigningError):
    status_code = 410
    code = "link_already_used"
    default_message = "Link has already been used"


class InvalidCodeError(SigningError):
    status_code = 401
    code = "invalid_otp"
    default_message = "Invalid OTP code"


class ConflictError(SigningError):
    status_code = 409
    code = "conflict"
    default_message = "Contract already signed for this link"


class UnauthorizedError(SigningError):
    status_code = 401
    code = "unauthorized"
    default_message = "Unauthorized"


class StorageError(SigningError):
    status_code = 500
    code = "storage_error"
    default_message = "Internal server error"


class AuditWriteError(Exception):
    """Raised inside the audit store when an entry cannot be persisted.

    Never propagates past ``audit_events.append``.
    """


def _error_payload(code: str, message: str, details: object, request_id: str | None):
    payload = {"error": message, "code": code, "requestId": request_id}
    if details is not None:
        payload["details"] = details
    return payload


def _request_id(request: Request) -> str:
    rid = getattr(request.state, "request_id", None)
    return str(rid) if rid else "unknown"


def _sanitize_input(value):
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, UploadFile):
        return value.filename or "upload"
    if isinstance(value, dict):
        return {key: _sanitize_input(val) for key, val in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_sanitize_input(item) for item in value]
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)


def register_error_handlers(app) -> None:
    @app.exception_handler(SigningError)
    async def signing_error_handler(request: Request, exc: SigningError):
        if exc.status_code >= 500:
            logger.error(
                "%s on %s %s: %s",
                exc.code,
                request.method,
                request.url.path,
                exc.reason or exc.message,
            )
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_payload(exc.code, exc.message, None, _request_id(request)),
        )

    async def _handle_http_exception(request: Request, status_code: int, detail: object):
        code = f"http_{status_code}"
        message = "Request failed"
        details = None
        if isinstance(detail, dict):
            code = detail.get("code", code)
            message = detail.get("message", message)
            details = detail.get("details")
        elif isinstance(detail, str):
            message = detail
        else:
            details = detail
        return JSONResponse(
            status_code=status_code,
            content=_error_payload(code, message, details, _request_id(request)),
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return await _handle_http_exception(request, exc.status_code, exc.detail)

    @app.exception_handler(StarletteHTTPException)
    async def starlette_http_exception_handler(request: Request, exc: StarletteHTTPException):
        detail = exc.detail if getattr(exc, "detail", None) is not None else "Request failed"
        return await _handle_http_exception(request, exc.status_code, detail)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = []
        for error in exc.errors():
            error_copy = dict(error)
            if "input" in error_copy:
                error_copy["input"] = _sanitize_input(error_copy.get("input"))
            error_copy.pop("ctx", None)
            errors.append(error_copy)
        return JSONResponse(
            status_code=422,
            content=_error_payload(
                "validation_error", "Validation error", errors, _request_id(request)
            ),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception(
            "Unhandled exception on %s %s",
            request.method,
            request.url.path,
            extra={"request_id": _request_id(request)},
        )
        return JSONResponse(
            status_code=500,
            content=_error_payload(
                "internal_error", "Internal server error", None, _request_id(request)
            ),
        )
