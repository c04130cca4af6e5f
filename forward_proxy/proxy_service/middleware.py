"""Middleware for per-request context."""

import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from forward_proxy.proxy_service.tracking import generate_request_id
from forward_proxy.shared.logging import get_logger

logger = get_logger(__name__)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assigns a correlation id and start time to every request."""

    async def dispatch(self, request: Request, call_next):
        """Attach request id and start time to request state."""
        request.state.request_id = generate_request_id()
        request.state.started_at = time.monotonic()

        logger.debug(f"Assigned request id {request.state.request_id} to {request.method} {request.url.path}")

        response = await call_next(request)
        return response
