# rentline/middleware/request_id.py
from __future__ import annotations

import re
import uuid
from contextvars import ContextVar
from typing import Callable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"

_current: ContextVar[Optional[str]] = ContextVar("rentline_request_id", default=None)

# caller ids land in log lines and error bodies; only short tokens are reused
_SAFE_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


def get_request_id() -> Optional[str]:
    return _current.get()


def pick_request_id(incoming: Optional[str]) -> str:
    if incoming and _SAFE_ID.match(incoming):
        return incoming
    return uuid.uuid4().hex


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Tags each request with an id for logs and error bodies, and echoes it back."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        rid = pick_request_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = rid
        token = _current.set(rid)
        try:
            response = await call_next(request)
        finally:
            _current.reset(token)
        response.headers[REQUEST_ID_HEADER] = rid
        return response
