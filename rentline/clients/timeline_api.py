# rentline/clients/timeline_api.py
from __future__ import annotations

from datetime import date
from typing import Any, Optional

import httpx

from ..config import settings
from ..domain.errors import (
    LimitExceeded,
    NotFound,
    PermissionDenied,
    RentlineError,
    Unauthenticated,
    UpstreamFailure,
    ValidationError,
)

_STATUS_ERRORS: dict[int, type[RentlineError]] = {
    400: ValidationError,
    401: Unauthenticated,
    402: LimitExceeded,
    403: PermissionDenied,
    404: NotFound,
    422: ValidationError,
}


def unwrap(data: Any) -> Any:
    """Routes answer either a bare payload or {status, data}; callers only want the payload."""
    if isinstance(data, dict) and "data" in data and ("status" in data or len(data) == 1):
        return data["data"]
    return data


def _detail(r: httpx.Response) -> str:
    try:
        body = r.json()
    except ValueError:
        return (r.text or r.reason_phrase or "").strip()[:500]
    if isinstance(body, dict):
        d = body.get("detail") or body.get("error") or body.get("message")
        if isinstance(d, list):
            # FastAPI request-validation errors
            return "; ".join(str(x.get("msg", x)) if isinstance(x, dict) else str(x) for x in d)
        if d:
            return str(d)
    return str(body)[:500]


def error_for(r: httpx.Response) -> RentlineError:
    exc_type = _STATUS_ERRORS.get(r.status_code)
    if exc_type is None:
        return UpstreamFailure(f"HTTP {r.status_code}: {_detail(r)}", extra={"status_code": r.status_code})
    return exc_type(_detail(r), extra={"status_code": r.status_code})


class TimelineApiClient:
    """
    Thin synchronous client for the timeline/agreement routes.

    Forwards the caller's bearer token. Every failure comes back as one of the
    domain errors: HTTP statuses map by code, transport problems become
    UpstreamFailure.
    """

    def __init__(
        self,
        token: Optional[str] = None,
        *,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base = (base_url or settings.api_base_url).rstrip("/")
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._http = httpx.Client(
            base_url=self.base,
            headers=headers,
            timeout=timeout or settings.api_timeout_seconds,
            transport=transport,
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "TimelineApiClient":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    # -----------------------------
    # plumbing
    # -----------------------------
    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            r = self._http.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise UpstreamFailure(f"{method} {path} failed: {e}") from e
        if r.status_code >= 400:
            raise error_for(r)
        if r.status_code == 204 or not r.content:
            return None
        try:
            return unwrap(r.json())
        except ValueError as e:
            raise UpstreamFailure(f"{method} {path} returned non-JSON body") from e

    def _list(self, method: str, path: str, **kwargs: Any) -> list[dict[str, Any]]:
        data = self._request(method, path, **kwargs)
        if data is None:
            return []
        if not isinstance(data, list):
            raise UpstreamFailure(f"{method} {path} expected a list, got {type(data).__name__}")
        return data

    # -----------------------------
    # timeline
    # -----------------------------
    def property_events(self, property_id: str) -> list[dict[str, Any]]:
        return self._list("GET", f"/timeline/properties/{property_id}/events")

    def upcoming(
        self, days: Optional[int] = None, *, today: Optional[date] = None, tz: Optional[str] = None
    ) -> list[dict[str, Any]]:
        params: dict[str, Any] = {}
        if days is not None:
            params["days"] = int(days)
        if today is not None:
            params["today"] = today.isoformat()
        if tz:
            params["tz"] = tz
        return self._list("GET", "/timeline/upcoming", params=params)

    def create_event(self, payload: dict[str, Any]) -> dict[str, Any]:
        return self._request("POST", "/timeline/events", json=payload)

    def update_event(self, event_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        return self._request("PUT", f"/timeline/events/{event_id}", json=changes)

    def delete_event(self, event_id: str) -> None:
        self._request("DELETE", f"/timeline/events/{event_id}")

    def set_event_completed(self, event_id: str, completed: bool) -> dict[str, Any]:
        return self.update_event(event_id, {"is_completed": bool(completed)})

    # -----------------------------
    # agreements
    # -----------------------------
    def get_agreement(self, agreement_id: str) -> dict[str, Any]:
        return self._request("GET", f"/agreements/{agreement_id}")

    def agreement_task(
        self,
        agreement_id: str,
        item_index: int,
        action: str,
        *,
        user_id: Optional[str] = None,
        notification_days_before: Optional[int] = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {"agreementId": agreement_id, "itemIndex": int(item_index), "action": action}
        if user_id is not None:
            body["userId"] = user_id
        if notification_days_before is not None:
            body["notificationDaysBefore"] = int(notification_days_before)
        return self._request("PUT", f"/agreements/{agreement_id}/tasks", json=body)

    # -----------------------------
    # usage
    # -----------------------------
    def check_limits(self, feature: str) -> dict[str, Any]:
        return self._request("GET", "/usage/check-limits", params={"feature": feature})
