"""Request context middleware for observability."""

import uuid
from collections.abc import Awaitable, Callable

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from toolgate.observability.logging import get_logger
from toolgate.observability.tracing import current_trace_id

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Binds request_id (and trace_id when tracing) to every log line of a request."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())

        trace_id = current_trace_id()

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)
        if trace_id:
            structlog.contextvars.bind_contextvars(trace_id=trace_id)
        request.state.request_id = request_id

        logger.debug("request_started", method=request.method, path=request.url.path)
        response = await call_next(request)
        logger.debug(
            "request_completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
        )

        response.headers[REQUEST_ID_HEADER] = request_id
        if trace_id:
            response.headers["X-Trace-ID"] = trace_id
        return response


def bind_user(user_id: str) -> None:
    """Attach the authenticated caller to the rest of the request's logs."""
    structlog.contextvars.bind_contextvars(user_id=user_id)
