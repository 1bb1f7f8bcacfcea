from __future__ import annotations

import logging
import time

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp
from fastapi import HTTPException

from .errors import (
    MSG_RENDER_FAILED,
    STATUS_FORBIDDEN,
    STATUS_NOT_FOUND,
    STATUS_SERVICE_UNAVAILABLE,
    AdmissionRejected,
    LedgerUnavailable,
    NotFoundError,
    RenderFailure,
)


class RequestTimingLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware that measures request processing time and logs concise request/response info.

    Adds an 'X-Process-Time-Ms' header on responses to aid in quick diagnostics.
    """

    def __init__(self, app: ASGIApp) -> None:
        super().__init__(app)
        self.logger = logging.getLogger("request")

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint):
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = int((time.perf_counter() - start) * 1000)
        response.headers["X-Process-Time-Ms"] = str(duration_ms)

        client_ip = request.client.host if request.client else "?"
        path = request.url.path
        self.logger.info(
            "method=%s path=%s status=%s duration_ms=%s ip=%s",
            request.method,
            path,
            response.status_code,
            duration_ms,
            client_ip,
        )
        return response


def _error_payload(request: Request, status_code: int, message: str, **extra) -> JSONResponse:
    payload = {
        "ok": False,
        "error": {
            "status": status_code,
            "message": message,
            "path": request.url.path,
            **extra,
        },
    }
    return JSONResponse(status_code=status_code, content=payload)


def add_exception_handlers(app: FastAPI) -> None:
    """Register consistent error payload shapes for HTTP, domain and generic exceptions."""

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return _error_payload(request, exc.status_code, exc.detail if isinstance(exc.detail, str) else "")

    @app.exception_handler(AdmissionRejected)
    async def admission_rejected_handler(request: Request, exc: AdmissionRejected):
        return _error_payload(request, STATUS_FORBIDDEN, exc.message, admission=exc.status)

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return _error_payload(request, STATUS_NOT_FOUND, exc.message)

    @app.exception_handler(LedgerUnavailable)
    async def ledger_unavailable_handler(request: Request, exc: LedgerUnavailable):
        logging.getLogger("error").error("Ledger unavailable on %s: %s", request.url.path, exc)
        return _error_payload(request, STATUS_SERVICE_UNAVAILABLE, "Service temporarily unavailable. Please try again later.")

    @app.exception_handler(RenderFailure)
    async def render_failure_handler(request: Request, exc: RenderFailure):
        return _error_payload(request, STATUS_SERVICE_UNAVAILABLE, MSG_RENDER_FAILED)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        # Do not leak internals; keep it simple.
        logging.getLogger("error").exception("Unhandled exception: %s", exc)
        return _error_payload(request, 500, "Internal server error")
