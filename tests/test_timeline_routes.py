# tests/test_timeline_routes.py
from __future__ import annotations

from datetime import date

from fastapi.testclient import TestClient

from rentline.main import create_app

TODAY = date(2026, 3, 10)


def _headers(uid: str) -> dict[str, str]:
    return {"X-User-Id": uid, "X-User-Email": f"{uid}@demo.local"}


def _mk_property(client: TestClient, uid: str, name: str = "Maple House") -> str:
    r = client.post("/api/properties", headers=_headers(uid), json={"name": name})
    assert r.status_code == 201, r.text
    return r.json()["id"]


def _mk_event(client: TestClient, uid: str, pid: str, **kw) -> dict:
    body = {"property_id": pid, "title": "Gas safety check", "start_date": "2026-03-12T09:00:00Z"}
    body.update(kw)
    r = client.post("/api/timeline/events", headers=_headers(uid), json=body)
    assert r.status_code == 201, r.text
    return r.json()


def test_event_round_trip_keeps_fields():
    client = TestClient(create_app())
    pid = _mk_property(client, "alice")

    created = _mk_event(
        client,
        "alice",
        pid,
        description="Annual certificate",
        event_type="inspection",
        recurrence_type="yearly",
        notification_days_before=7,
        metadata={"contractor": "HeatCo"},
    )
    assert created["event_type"] == "inspection"
    assert created["supports_completion"] is True
    assert created["property_name"] == "Maple House"

    r = client.get(f"/api/timeline/properties/{pid}/events", headers=_headers("alice"))
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "success"
    [got] = body["data"]

    for k in ("id", "title", "description", "event_type", "recurrence_type", "notification_days_before", "metadata"):
        assert got[k] == created[k]
    assert got["start_date"].startswith("2026-03-12T09:00:00")
    assert got["is_completed"] is False
    assert got["assigned_to"] is None


def test_legacy_other_type_is_stored_as_custom():
    client = TestClient(create_app())
    pid = _mk_property(client, "alice")
    ev = _mk_event(client, "alice", pid, event_type="other")
    assert ev["event_type"] == "custom"


def test_agreement_types_cannot_be_created_by_hand():
    client = TestClient(create_app())
    pid = _mk_property(client, "alice")
    r = client.post(
        "/api/timeline/events",
        headers=_headers("alice"),
        json={"property_id": pid, "title": "x", "start_date": "2026-03-12T00:00:00", "event_type": "agreement"},
    )
    assert r.status_code == 422
    assert r.json()["error"] == "validation_error"


def test_upcoming_feed_groups_and_labels():
    client = TestClient(create_app())
    pid = _mk_property(client, "alice")
    _mk_event(client, "alice", pid, title="today", start_date="2026-03-10T18:00:00")
    _mk_event(client, "alice", pid, title="tomorrow", start_date="2026-03-11T00:30:00")
    _mk_event(client, "alice", pid, title="later", start_date="2026-04-20T09:00:00")
    _mk_event(client, "alice", pid, title="late", start_date="2026-03-01T09:00:00")

    r = client.get(f"/api/timeline/upcoming?days=30&today={TODAY.isoformat()}", headers=_headers("alice"))
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["days"] == 30
    assert [e["title"] for e in body["data"]] == ["late", "today", "tomorrow"]
    assert [e["label"] for e in body["data"]] == ["Overdue", "Today", "Tomorrow"]
    assert [g["day"] for g in body["groups"]] == ["2026-03-01", "2026-03-10", "2026-03-11"]


def test_listing_route_pages_and_searches():
    client = TestClient(create_app())
    pid = _mk_property(client, "alice", name="Oak Flat")
    for i in range(5):
        _mk_event(client, "alice", pid, title=f"Visit {i}", start_date=f"2026-03-{11 + i}T09:00:00")

    r = client.get(
        f"/api/timeline/all?visible_count=2&today={TODAY.isoformat()}",
        headers=_headers("alice"),
    )
    body = r.json()
    assert body["total"] == 5 and len(body["data"]) == 2 and body["has_more"] is True

    r = client.get(f"/api/timeline/all?q=oak&today={TODAY.isoformat()}", headers=_headers("alice"))
    assert r.json()["total"] == 5

    r = client.get(f"/api/timeline/all?status_tab=past&today={TODAY.isoformat()}", headers=_headers("alice"))
    assert r.json()["total"] == 0


def test_only_creator_edits_but_assignee_completes():
    client = TestClient(create_app())
    pid = _mk_property(client, "alice")
    client.get("/api/properties", headers=_headers("bob"))  # provisions bob
    r = client.post(f"/api/properties/{pid}/users", headers=_headers("alice"), json={"userId": "bob"})
    assert r.status_code == 201, r.text

    ev = _mk_event(client, "alice", pid)

    r = client.put(f"/api/timeline/events/{ev['id']}", headers=_headers("bob"), json={"title": "mine now"})
    assert r.status_code == 403
    assert r.json()["error"] == "permission_denied"

    r = client.post(f"/api/timeline/events/{ev['id']}/assign", headers=_headers("bob"), json={"userId": "bob"})
    assert r.status_code == 200, r.text
    assert r.json()["assigned_to"] == "bob"

    r = client.post(f"/api/timeline/events/{ev['id']}/toggle-complete", headers=_headers("bob"))
    assert r.status_code == 200
    done = r.json()
    assert done["is_completed"] is True
    assert done["metadata"]["completed_by"] == "bob"

    r = client.put(f"/api/timeline/events/{ev['id']}", headers=_headers("bob"), json={"is_completed": False})
    assert r.status_code == 200
    assert r.json()["is_completed"] is False


def test_non_creator_cannot_take_over_an_assignment():
    client = TestClient(create_app())
    pid = _mk_property(client, "alice")
    for uid in ("bob", "carol"):
        client.get("/api/properties", headers=_headers(uid))
        client.post(f"/api/properties/{pid}/users", headers=_headers("alice"), json={"userId": uid})

    ev = _mk_event(client, "alice", pid)
    r = client.post(f"/api/timeline/events/{ev['id']}/assign", headers=_headers("alice"), json={"userId": "carol"})
    assert r.status_code == 200

    r = client.post(f"/api/timeline/events/{ev['id']}/assign", headers=_headers("bob"), json={"userId": "bob"})
    assert r.status_code == 403

    r = client.post(f"/api/timeline/events/{ev['id']}/toggle-complete", headers=_headers("bob"))
    assert r.status_code == 403

    r = client.post(f"/api/timeline/events/{ev['id']}/assign", headers=_headers("alice"), json={"userId": "ghost"})
    assert r.status_code == 422


def test_delete_and_hidden_events():
    client = TestClient(create_app())
    pid = _mk_property(client, "alice")
    ev = _mk_event(client, "alice", pid)

    r = client.delete(f"/api/timeline/events/{ev['id']}", headers=_headers("mallory"))
    assert r.status_code == 404

    r = client.delete(f"/api/timeline/events/{ev['id']}", headers=_headers("alice"))
    assert r.status_code == 200 and r.json() == {"ok": True}

    r = client.get(f"/api/timeline/properties/{pid}/events", headers=_headers("alice"))
    assert r.json()["data"] == []


def test_missing_identity_is_401_with_error_body():
    client = TestClient(create_app())
    r = client.get("/api/timeline/upcoming")
    assert r.status_code == 401
    body = r.json()
    assert body["success"] is False
    assert body["error"] == "unauthenticated"
    assert body["request_id"]


def test_calendar_export_lists_visible_events():
    client = TestClient(create_app())
    pid = _mk_property(client, "alice")
    ev = _mk_event(client, "alice", pid, notification_days_before=2)

    r = client.get("/api/timeline/calendar.ics", headers=_headers("alice"))
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/calendar")
    assert f"UID:{ev['id']}@rentline" in r.text
    assert "TRIGGER:-P2D" in r.text


def test_unknown_type_filter_is_422():
    client = TestClient(create_app())
    pid = _mk_property(client, "alice")
    _mk_event(client, "alice", pid, event_type="custom")

    r = client.get("/api/timeline/all?event_type=bogus", headers=_headers("alice"))
    assert r.status_code == 422
    assert r.json()["error"] == "validation_error"

    r = client.get(f"/api/timeline/all?event_type=custom&today={TODAY.isoformat()}", headers=_headers("alice"))
    assert r.json()["total"] == 1


def test_labels_follow_the_client_time_zone():
    client = TestClient(create_app())
    pid = _mk_property(client, "alice")
    # 21:00 in Chicago is 02:00 UTC on the 21st
    _mk_event(client, "alice", pid, title="evening", start_date="2026-10-20T21:00:00-05:00")

    r = client.get(
        "/api/timeline/upcoming?today=2026-10-20&tz=America/Chicago",
        headers=_headers("alice"),
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert [e["label"] for e in body["data"]] == ["Today"]
    assert [g["day"] for g in body["groups"]] == ["2026-10-20"]

    # read as UTC the same instant is already the next day
    r = client.get("/api/timeline/upcoming?today=2026-10-20", headers=_headers("alice"))
    assert [e["label"] for e in r.json()["data"]] == ["Tomorrow"]


def test_unknown_time_zone_is_422():
    client = TestClient(create_app())
    r = client.get("/api/timeline/upcoming?tz=Mars/Olympus", headers=_headers("alice"))
    assert r.status_code == 422
    assert r.json()["error"] == "validation_error"


def test_past_agreement_marker_does_not_stay_overdue():
    client = TestClient(create_app())
    pid = _mk_property(client, "alice")
    r = client.post(
        "/api/agreements",
        headers=_headers("alice"),
        json={"propertyId": pid, "title": "Tenancy renewal", "dueDate": "2026-01-05T09:00:00"},
    )
    assert r.status_code == 201, r.text

    r = client.get("/api/timeline/upcoming?today=2027-06-01", headers=_headers("alice"))
    assert r.json()["data"] == []

    r = client.get("/api/timeline/upcoming?today=2026-01-01", headers=_headers("alice"))
    assert [e["event_type"] for e in r.json()["data"]] == ["agreement"]
