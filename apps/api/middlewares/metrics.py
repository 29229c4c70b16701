"""Metrics middleware for API."""

import time
from collections.abc import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.routing import Match

from core.metrics import api_request_duration


def _route_template(request: Request) -> str:
    """Path template ("/sessions/{session_id}/messages") to keep label cardinality bounded."""
    for route in request.app.router.routes:
        match, _ = route.matches(request.scope)
        if match == Match.FULL:
            return getattr(route, "path", request.url.path)
    return "unmatched"


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware to collect API request metrics."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request and collect metrics."""
        start_time = time.perf_counter()

        response = await call_next(request)

        api_request_duration.labels(
            method=request.method, endpoint=_route_template(request), status=response.status_code
        ).observe(time.perf_counter() - start_time)

        return response
