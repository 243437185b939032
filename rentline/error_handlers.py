# rentline/error_handlers.py
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .domain.errors import RentlineError
from .middleware.request_id import get_request_id

log = logging.getLogger(__name__)


def error_body(code: str, detail: str, **extra) -> dict:
    body = {"success": False, "error": code, "detail": detail}
    if extra:
        body["context"] = extra
    rid = get_request_id()
    if rid:
        body["request_id"] = rid
    return body


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(RentlineError)
    async def rentline_error(request: Request, exc: RentlineError):
        level = logging.WARNING if exc.status_code >= 500 else logging.INFO
        log.log(level, "%s %s -> %s: %s", request.method, request.url.path, exc.code, exc.detail)
        return JSONResponse(status_code=exc.status_code, content=error_body(exc.code, exc.detail, **exc.extra))

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        log.exception("unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content=error_body("server_error", "Internal server error"))
