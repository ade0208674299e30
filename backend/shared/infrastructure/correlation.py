"""
Request Correlation Middleware.

Tags every request (and every log line emitted while serving it) with a
correlation id. Provider webhooks already carry an ``x-request-id``; reusing
it lets a delivery be traced from the provider's dashboard to our logs.
"""

import uuid
from contextvars import ContextVar
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

# Context variable for request ID (task-local)
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def get_request_id() -> str:
    """Get the current request ID."""
    return request_id_var.get()


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    - Uses X-Correlation-ID, then X-Request-ID, when present
    - Otherwise generates a new UUID
    - Sets the ID in context for logging
    - Returns the ID in the X-Correlation-ID response header
    """

    HEADER_NAME = "X-Correlation-ID"
    FALLBACK_HEADER = "X-Request-ID"

    async def dispatch(
        self,
        request: Request,
        call_next: Callable,
    ) -> Response:
        request_id = (
            request.headers.get(self.HEADER_NAME)
            or request.headers.get(self.FALLBACK_HEADER)
            or str(uuid.uuid4())
        )

        token = request_id_var.set(request_id)
        try:
            request.state.request_id = request_id
            response = await call_next(request)
            response.headers[self.HEADER_NAME] = request_id
            return response
        finally:
            request_id_var.reset(token)


class CorrelationIdFilter:
    """
    Logging filter that adds request_id to log records.

    Usage:
        handler = logging.StreamHandler()
        handler.addFilter(CorrelationIdFilter())
    """

    def filter(self, record) -> bool:
        record.request_id = request_id_var.get() or "-"
        return True
