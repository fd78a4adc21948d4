"""Security and observability middleware for the API service."""

import logging
import time
import uuid
from collections import defaultdict

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from app.constants import RATE_LIMITED_AUTH_PATHS
from app.exception_handlers import error_response
from app.logging.context import request_id_var

logger = logging.getLogger(__name__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to every response."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["X-XSS-Protection"] = "0"
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Simple in-memory sliding-window rate limiter.

    Keyed by client IP; applies only to the credential endpoints
    (login and token refresh).
    """

    def __init__(
        self,
        app: ASGIApp,
        auth_limit: int = 10,
        window_seconds: int = 60,
        paths: tuple[str, ...] = RATE_LIMITED_AUTH_PATHS,
    ) -> None:
        super().__init__(app)
        self.auth_limit = auth_limit
        self.window = window_seconds
        self.paths = paths
        self._hits: dict[str, list[float]] = defaultdict(list)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.method != "POST" or request.url.path not in self.paths:
            return await call_next(request)

        key = f"{request.url.path}:{self._client_ip(request)}"
        now = time.monotonic()
        self._prune(key, now)

        if len(self._hits[key]) >= self.auth_limit:
            logger.warning("Rate limit exceeded for %s", key)
            return error_response(
                request,
                429,
                "Rate limit exceeded. Try again later.",
                headers={"Retry-After": str(self.window)},
            )

        self._hits[key].append(now)
        return await call_next(request)

    def _prune(self, key: str, now: float) -> None:
        cutoff = now - self.window
        self._hits[key] = [t for t in self._hits[key] if t > cutoff]

    @staticmethod
    def _client_ip(request: Request) -> str:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
        return request.client.host if request.client else "unknown"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Assign a unique request ID to every request.

    Sets ``request.state.request_id``, binds it to the logging context and
    adds an ``X-Request-ID`` response header so log entries can be correlated
    with responses and error envelopes.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        request.state.request_id = request_id
        token = request_id_var.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        response.headers["X-Request-ID"] = request_id
        return response
