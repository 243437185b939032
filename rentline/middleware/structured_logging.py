# rentline/middleware/structured_logging.py
from __future__ import annotations

import logging
import time
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from ..config import settings

log = logging.getLogger("rentline.request")


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """
    Access log: one line per request with method, path, status and latency.

    Runs inside RequestIDMiddleware, so the formatter picks up the request id.
    Only the dev header identity is logged; bearer tokens never are.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        started = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            log.info(
                "http_request",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": status_code,
                    "latency_ms": int((time.perf_counter() - started) * 1000),
                    "user_id": request.headers.get(settings.dev_header_user_id),
                },
            )
