"""
Audit log middleware: one structured entry per request/response.

Each entry carries:
  - request_id (UUID, also returned in the X-Request-ID header)
  - method, path, status_code, duration_ms
  - workspace_id (from the query string) and user_id (set by IdentityMiddleware)
  - client_ip, user_agent
"""

import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from glance.core.logging import get_logger

logger = get_logger(__name__)

SKIP_PATHS = {"/health", "/health/live", "/health/ready", "/docs", "/redoc", "/openapi.json"}


class AuditLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        structlog.contextvars.bind_contextvars(request_id=request_id)

        start_time = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars("request_id")
        duration_ms = round((time.perf_counter() - start_time) * 1000, 2)

        response.headers["X-Request-ID"] = request_id

        if request.url.path in SKIP_PATHS:
            return response

        log_fn = logger.warning if response.status_code >= 400 else logger.info
        log_fn(
            "http.request",
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=duration_ms,
            workspace_id=request.query_params.get("workspace_id"),
            user_id=getattr(request.state, "user_id", None),
            client_ip=request.client.host if request.client else None,
            user_agent=request.headers.get("user-agent"),
        )

        return response
