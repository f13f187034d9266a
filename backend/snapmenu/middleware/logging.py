"""
SnapMenu Backend — Request Logging Middleware
===============================================

What:  One access log line per HTTP request, with status and duration.
Who:   Applied to every request via Starlette middleware.
When:  After RequestIDMiddleware (uses the request ID for correlation).

What we log vs what we DON'T log:
    ✅ Log: method, path, status, duration, client IP, request ID
    ❌ Don't log: query strings, request bodies, uploaded images

    The query string is deliberately absent. A share link carries the whole
    menu in `?m=`, so logging it would copy every shared menu into the logs.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from snapmenu.middleware.request_id import request_id_var

logger = logging.getLogger("snapmenu.access")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs method, path, status and duration for each request.

    Level follows the status: 5xx → ERROR, 4xx → WARNING, otherwise INFO.
    GET /health is skipped; probes would drown out real traffic.

    Typical durations:
        - GET /api/menu, POST /api/share: a few ms (pure computation)
        - POST /api/share/qr: 10-50ms (QR rendering)
        - POST /api/extract: seconds (Gemini call dominates)
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        start_time = time.perf_counter()

        client_ip = getattr(request.client, "host", "unknown") if request.client else "unknown"
        method = request.method
        path = request.url.path
        rid = request_id_var.get("")

        if path == "/health":
            return await call_next(request)

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000

        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] from %s",
            method,
            path,
            status,
            duration_ms,
            rid,
            client_ip,
            extra={
                "request_id": rid,
                "method": method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
            },
        )

        return response
