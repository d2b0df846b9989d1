# app/middleware/request_logging.py
from __future__ import annotations

import logging
import time
import uuid
from typing import Iterable, Tuple

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("app.request")


DEFAULT_IGNORED_PREFIXES: Tuple[str, ...] = (
    "/api/healthz",
    "/api/readyz",
    "/docs",
    "/redoc",
    "/openapi.json",
    "/favicon.ico",
)


def _client_ip(request: Request) -> str:
    xff = request.headers.get("x-forwarded-for")
    if xff:
        return xff.split(",")[0].strip()
    client = request.client
    return client.host if client else "unknown"


def _caller(request: Request) -> Tuple[str, str]:
    """(user_id, organization_id) set by get_current_user, '-' when anonymous."""
    state = request.state
    return (
        str(getattr(state, "user_id", "-")),
        str(getattr(state, "organization_id", "-")),
    )


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    One log line per request with trace_id, caller and duration.
    Adds X-Request-ID to every response; health and docs paths are not logged.
    """

    def __init__(self, app, ignored_prefixes: Iterable[str] = DEFAULT_IGNORED_PREFIXES):
        super().__init__(app)
        self.ignored_prefixes = tuple(ignored_prefixes)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        method = request.method.upper()

        trace_id = (
            getattr(request.state, "trace_id", None)
            or request.headers.get("x-request-id")
            or uuid.uuid4().hex
        )
        request.state.trace_id = trace_id

        skip = method == "OPTIONS" or any(path.startswith(p) for p in self.ignored_prefixes)

        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            if not skip:
                user_id, org_id = _caller(request)
                logger.exception(
                    "request CRASH %s %s user=%s org=%s ip=%s dur_ms=%s trace_id=%s",
                    method,
                    path,
                    user_id,
                    org_id,
                    _client_ip(request),
                    int((time.perf_counter() - start) * 1000),
                    trace_id,
                )
            raise

        response.headers["X-Request-ID"] = trace_id
        if skip:
            return response

        duration_ms = int((time.perf_counter() - start) * 1000)
        status = getattr(response, "status_code", 0)
        user_id, org_id = _caller(request)

        if status >= 500:
            level = logging.ERROR
        elif status >= 400:
            level = logging.WARNING
        else:
            level = logging.INFO

        logger.log(
            level,
            "request %s %s -> %s user=%s org=%s ip=%s ua=%r dur_ms=%s trace_id=%s",
            method,
            path,
            status,
            user_id,
            org_id,
            _client_ip(request),
            request.headers.get("user-agent", "-"),
            duration_ms,
            trace_id,
        )
        return response
