# rentline/domain/errors.py
from __future__ import annotations

from typing import Any, Optional


class RentlineError(Exception):
    """
    Base for every failure the API translates into a JSON error body.

    status_code/code are class-level so handlers never need isinstance chains.
    """

    status_code: int = 500
    code: str = "error"

    def __init__(self, detail: str = "", *, extra: Optional[dict[str, Any]] = None) -> None:
        super().__init__(detail or self.code)
        self.detail = detail or self.code
        self.extra = dict(extra or {})


class Unauthenticated(RentlineError):
    status_code = 401
    code = "unauthenticated"


class PermissionDenied(RentlineError):
    status_code = 403
    code = "permission_denied"


class NotFound(RentlineError):
    status_code = 404
    code = "not_found"


class ValidationError(RentlineError):
    status_code = 422
    code = "validation_error"


class LimitExceeded(RentlineError):
    status_code = 402
    code = "plan_limit_exceeded"


class UpstreamFailure(RentlineError):
    status_code = 502
    code = "upstream_failure"
