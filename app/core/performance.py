"""
HTTP performance metrics.
"""

import time
from typing import Callable

from fastapi import Request

from app.core.metrics import (
    http_request_duration_seconds,
    http_requests_in_progress,
    http_requests_total,
)


def endpoint_label(request: Request) -> str:
    """
    Route template for the request (``/api/v1/organizations/{organization_id}``).

    Falls back to the raw path for unmatched requests so ids never become
    label values on matched routes.
    """
    route = request.scope.get("route")
    return getattr(route, "path", request.url.path)


async def track_http_metrics(request: Request, call_next: Callable):
    """
    Middleware to track HTTP metrics.

    Records:
    - Request count by endpoint and status
    - Request duration histogram
    - Requests in progress gauge
    """
    method = request.method
    in_progress = http_requests_in_progress.labels(method=method, endpoint=request.url.path)
    in_progress.inc()

    start_time = time.time()
    status_code = 500

    try:
        response = await call_next(request)
        status_code = response.status_code
        return response

    finally:
        duration = time.time() - start_time
        endpoint = endpoint_label(request)

        http_request_duration_seconds.labels(method=method, endpoint=endpoint).observe(duration)
        http_requests_total.labels(
            method=method,
            endpoint=endpoint,
            status_code=status_code,
        ).inc()
        in_progress.dec()
