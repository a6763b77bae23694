"""Request ID middleware for correlating log lines per HTTP request.

Reads X-Request-ID (or generates one), binds it into structlog's context
variables so every log line emitted while handling the request carries it,
and echoes it on the response.
"""

from __future__ import annotations

import uuid
from contextvars import ContextVar

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

_request_id_ctx_var: ContextVar[str | None] = ContextVar("request_id", default=None)

REQUEST_ID_HEADER = "X-Request-ID"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Attach a request ID to the log context and the response."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or generate_request_id()

        token = _request_id_ctx_var.set(request_id)
        request.state.request_id = request_id
        structlog.contextvars.bind_contextvars(request_id=request_id)
        try:
            response: Response = await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars("request_id")
            _request_id_ctx_var.reset(token)

        response.headers[REQUEST_ID_HEADER] = request_id
        return response


def generate_request_id() -> str:
    """UUID4 in hex format."""
    return uuid.uuid4().hex


def get_request_id() -> str | None:
    """Request ID of the request being handled, if any."""
    return _request_id_ctx_var.get()
