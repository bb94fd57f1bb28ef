"""Middleware for request processing and observability."""

from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from src.services.logging_service import bind_request_context


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Middleware to add correlation ID to every request.

    - Uses the X-Correlation-Id header if present, otherwise a new UUID4
    - Stores it in request.state.correlation_id
    - Binds it, with the visitor's partnership and user ids, to the
      structlog context
    - Echoes it in the X-Correlation-Id response header
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        correlation_id = request.headers.get("X-Correlation-Id", str(uuid4()))
        request.state.correlation_id = correlation_id

        bind_request_context(
            correlation_id,
            partnership_id=request.headers.get("X-Partnership-Id"),
            user_id=request.headers.get("X-User-Id"),
        )

        response = await call_next(request)
        response.headers["X-Correlation-Id"] = correlation_id
        return response
