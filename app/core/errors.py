# app/core/errors.py
from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

log = logging.getLogger("app.errors")


# -----------------------------
# Application error taxonomy
# -----------------------------
class AppError(Exception):
    """Base for errors that map to a stable HTTP status + error code."""

    status_code: int = 500
    code: str = "INTERNAL_SERVER_ERROR"
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, details: Any = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "success": False,
            "message": self.message,
            "code": self.code,
        }
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationError(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"
    default_message = "Validation failed"


class AuthenticationError(AppError):
    status_code = 401
    code = "AUTHENTICATION_ERROR"
    default_message = "Authentication failed"


class AuthorizationError(AppError):
    status_code = 403
    code = "AUTHORIZATION_ERROR"
    default_message = "Insufficient permissions"


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND_ERROR"

    def __init__(self, resource: str = "Resource", details: Any = None):
        super().__init__(f"{resource} not found", details)


class InternalError(AppError):
    """Unexpected failure; message is generic, the cause is only logged."""


# -----------------------------
# Trace / request id helpers
# -----------------------------
def _ensure_trace_id(request: Request) -> str:
    """
    Return a stable trace_id for this request.
    Prefer a value already set on request.state, then common headers,
    and finally generate a new one (and store it on request.state).
    """
    val = getattr(getattr(request, "state", object()), "trace_id", None)
    if val:
        return str(val)

    for h in ("x-request-id", "x-correlation-id", "x-trace-id"):
        v = request.headers.get(h)
        if v:
            request.state.trace_id = v
            return v

    new_id = uuid.uuid4().hex
    request.state.trace_id = new_id
    return new_id


def _payload(
    *,
    message: str,
    code: str,
    trace_id: str,
    details: Optional[Any] = None,
) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "success": False,
        "message": message,
        "code": code,
        "trace_id": trace_id,
    }
    if details is not None:
        body["details"] = details
    return body


# -----------------------------
# Install / register handlers
# -----------------------------
def register_exception_handlers(app: FastAPI) -> None:
    """
    Registers consistent JSON error handlers.
    Also ensures X-Request-ID header is present on error responses.
    """

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        trace_id = _ensure_trace_id(request)
        level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
        log.log(
            level,
            "%s %s %s -> %s | trace_id=%s | message=%s",
            exc.code,
            request.method,
            request.url.path,
            exc.status_code,
            trace_id,
            exc.message,
        )
        return JSONResponse(
            status_code=exc.status_code,
            headers={"X-Request-ID": trace_id},
            content=_payload(
                message=exc.message,
                code=exc.code,
                trace_id=trace_id,
                details=exc.details,
            ),
        )

    @app.exception_handler(HTTPException)
    async def http_exc_handler(request: Request, exc: HTTPException):
        trace_id = _ensure_trace_id(request)
        status_code = int(exc.status_code)
        # detail can be str, dict, or other; keep a safe message
        message = exc.detail if isinstance(exc.detail, str) else "HTTP error"
        details = exc.detail if isinstance(exc.detail, dict) else None

        headers = dict(exc.headers or {})
        headers["X-Request-ID"] = trace_id

        level = logging.ERROR if status_code >= 500 else logging.WARNING
        log.log(
            level,
            "HTTPException %s %s -> %s | trace_id=%s | detail=%r",
            request.method,
            request.url.path,
            status_code,
            trace_id,
            exc.detail,
        )

        return JSONResponse(
            status_code=status_code,
            headers=headers,
            content=_payload(
                message=message,
                code=f"HTTP_{status_code}",
                trace_id=trace_id,
                details=details,
            ),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exc_handler(request: Request, exc: RequestValidationError):
        trace_id = _ensure_trace_id(request)
        # ctx may hold raw exception objects; stringify for JSON
        errors = [
            {k: (str(v) if k == "ctx" else v) for k, v in err.items()}
            for err in exc.errors()
        ]
        log.warning(
            "ValidationError %s %s -> 422 | trace_id=%s | errors=%s",
            request.method,
            request.url.path,
            trace_id,
            errors,
        )
        return JSONResponse(
            status_code=422,
            headers={"X-Request-ID": trace_id},
            content=_payload(
                message="Validation failed.",
                code=ValidationError.code,
                trace_id=trace_id,
                details=errors,
            ),
        )

    @app.exception_handler(Exception)
    async def unhandled_exc_handler(request: Request, exc: Exception):
        trace_id = _ensure_trace_id(request)
        # Full traceback to server logs; generic message to client
        log.exception(
            "Unhandled exception %s %s -> 500 | trace_id=%s",
            request.method,
            request.url.path,
            trace_id,
        )
        return JSONResponse(
            status_code=500,
            headers={"X-Request-ID": trace_id},
            content=_payload(
                message="Internal server error.",
                code=InternalError.code,
                trace_id=trace_id,
            ),
        )
