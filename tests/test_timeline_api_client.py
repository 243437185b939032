# tests/test_timeline_api_client.py
from __future__ import annotations

import json

import httpx
import pytest

from rentline.clients.optimistic import COMMITTED, REVERTED, OptimisticUpdate, toggle_check_item
from rentline.clients.timeline_api import TimelineApiClient, unwrap
from rentline.domain.errors import LimitExceeded, NotFound, PermissionDenied, UpstreamFailure, ValidationError


def _client(handler, token: str | None = "tok-123") -> TimelineApiClient:
    return TimelineApiClient(token, base_url="http://test/api", transport=httpx.MockTransport(handler))


def test_unwrap_handles_both_shapes():
    assert unwrap({"status": "success", "data": [1, 2]}) == [1, 2]
    assert unwrap({"data": {"id": "x"}}) == {"id": "x"}
    assert unwrap([1, 2]) == [1, 2]
    assert unwrap({"id": "x", "data": "kept", "title": "t"}) == {"id": "x", "data": "kept", "title": "t"}


def test_requests_carry_bearer_and_paths():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.path.endswith("/upcoming"):
            return httpx.Response(200, json={"status": "success", "days": 7, "data": [{"id": "e1"}], "groups": []})
        return httpx.Response(200, json=[{"id": "e2"}])

    with _client(handler) as api:
        assert api.upcoming(7, tz="Europe/London") == [{"id": "e1"}]
        assert api.property_events("p1") == [{"id": "e2"}]

    assert seen[0].headers["Authorization"] == "Bearer tok-123"
    assert seen[0].url.path == "/api/timeline/upcoming"
    assert seen[0].url.params["days"] == "7"
    assert seen[0].url.params["tz"] == "Europe/London"
    assert seen[1].url.path == "/api/timeline/properties/p1/events"


def test_agreement_task_sends_camel_case_body():
    bodies: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"id": "a1", "check_items": []})

    with _client(handler) as api:
        api.agreement_task("a1", 2, "assign", user_id="bob", notification_days_before=3)

    assert bodies == [
        {"agreementId": "a1", "itemIndex": 2, "action": "assign", "userId": "bob", "notificationDaysBefore": 3}
    ]


@pytest.mark.parametrize(
    "status,exc",
    [(402, LimitExceeded), (403, PermissionDenied), (404, NotFound), (422, ValidationError), (503, UpstreamFailure)],
)
def test_status_codes_map_to_domain_errors(status, exc):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, json={"success": False, "error": "x", "detail": "nope"})

    with _client(handler) as api:
        with pytest.raises(exc) as ei:
            api.get_agreement("a1")
    assert ei.value.extra["status_code"] == status


def test_transport_errors_become_upstream_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with _client(handler, token=None) as api:
        with pytest.raises(UpstreamFailure):
            api.check_limits("properties")


def test_non_json_body_is_upstream_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>proxy</html>")

    with _client(handler) as api:
        with pytest.raises(UpstreamFailure):
            api.get_agreement("a1")


def _agreement(checked: bool = False) -> dict:
    return {"id": "a1", "title": "Move-in", "check_items": [{"text": "Keys", "checked": checked}]}


def test_toggle_check_item_takes_server_value():
    def handler(request: httpx.Request) -> httpx.Response:
        # server decides; here it reports the item still open
        return httpx.Response(200, json={**_agreement(False), "updated_at": "2026-03-10T00:00:00"})

    local = _agreement(False)
    with _client(handler) as api:
        toggle_check_item(api, local, 0)
    assert local["check_items"][0]["checked"] is False
    assert local["updated_at"] == "2026-03-10T00:00:00"


def test_toggle_check_item_reverts_and_refetches_on_failure():
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.method)
        if request.method == "PUT":
            return httpx.Response(403, json={"detail": "You can only update tasks assigned to you"})
        return httpx.Response(200, json={**_agreement(False), "title": "Move-in (fresh)"})

    local = _agreement(False)
    with _client(handler) as api:
        with pytest.raises(PermissionDenied):
            toggle_check_item(api, local, 0)

    assert calls == ["PUT", "GET"]
    assert local["check_items"][0]["checked"] is False
    assert local["title"] == "Move-in (fresh)"


def test_optimistic_update_runs_once():
    state = {"v": 1}

    def apply():
        old = state["v"]
        state["v"] = 2
        return old

    op = OptimisticUpdate(apply=apply, remote=lambda: "ok", revert=lambda old: state.update(v=old))
    assert op.run() == "ok"
    assert op.status == COMMITTED and state["v"] == 2
    with pytest.raises(RuntimeError):
        op.run()

    def fail():
        raise NotFound("gone")

    state["v"] = 5

    op = OptimisticUpdate(apply=apply, remote=fail, revert=lambda old: state.update(v=old))
    with pytest.raises(NotFound):
        op.run()
    assert op.status == REVERTED
    assert state["v"] == 5
