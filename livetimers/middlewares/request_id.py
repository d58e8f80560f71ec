from __future__ import annotations

import logging
import time
from contextvars import ContextVar
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

request_id_ctx_var: ContextVar[str | None] = ContextVar("request_id", default=None)
principal_ctx_var: ContextVar[str | None] = ContextVar("principal", default=None)
logger = logging.getLogger("livetimers.request")

# Polled endpoints that would otherwise flood the access log.
QUIET_PATHS = frozenset({"/health", "/metrics"})


def access_record(request: Request, response: Response, elapsed_ms: float, principal: str | None) -> dict:
    record = {
        "request_id": request.state.request_id,
        "method": request.method,
        "path": request.url.path,
        "status": response.status_code,
        "duration_ms": round(elapsed_ms, 2),
    }
    if principal:
        record["principal"] = principal
    return record


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Correlation id and access log for HTTP requests (not WebSockets)."""

    def __init__(self, app, header_name: str = "X-Request-ID") -> None:  # type: ignore[override]
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request.state.request_id = request.headers.get(self.header_name) or uuid4().hex
        id_token = request_id_ctx_var.set(request.state.request_id)
        principal_token = principal_ctx_var.set(None)
        started = time.perf_counter()
        try:
            response = await call_next(request)
            principal = principal_ctx_var.get() or getattr(request.state, "principal", None)
        finally:
            request_id_ctx_var.reset(id_token)
            principal_ctx_var.reset(principal_token)

        elapsed_ms = (time.perf_counter() - started) * 1000
        response.headers[self.header_name] = request.state.request_id
        response.headers.setdefault("X-Response-Time", f"{elapsed_ms:.2f}ms")
        if request.url.path not in QUIET_PATHS:
            logger.info(
                "request.completed",
                extra={"extra_data": access_record(request, response, elapsed_ms, principal)},
            )
        return response
