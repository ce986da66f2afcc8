import pytest
from fastapi.testclient import TestClient

from noteminder.app import create_app
from noteminder.models import DEFAULT_GROUP_ID
from noteminder.scheduler import ReminderScheduler
from tests.conftest import local_ms


@pytest.fixture
def scheduler(store):
    return ReminderScheduler(store, notifier=lambda title, body: None)


@pytest.fixture
def client(store, scheduler):
    parser = lambda text: {"content": text.upper(), "location": "HQ"}
    return TestClient(create_app(store=store, scheduler=scheduler, parser=parser))


def test_group_lifecycle(client):
    r = client.post("/api/groups", json={"name": "Work"})
    assert r.status_code == 201
    gid = r.json()["id"]

    r = client.patch(f"/api/groups/{gid}", json={"name": "Office"})
    assert r.json()["name"] == "Office"

    assert [g["name"] for g in client.get("/api/groups").json()] == ["My Notebook 1", "Office"]
    assert client.delete(f"/api/groups/{gid}").json() == {"ok": True}
    assert client.delete(f"/api/groups/{DEFAULT_GROUP_ID}").status_code == 409
    assert client.delete("/api/groups/nope").status_code == 404


def test_create_edit_delete_note(client):
    r = client.post(f"/api/groups/{DEFAULT_GROUP_ID}/notes", json={"content": "write tests", "importance": "High"})
    assert r.status_code == 201
    note = r.json()
    assert note["status"] == "TODO"
    assert note["isPinned"] is False

    r = client.patch(f"/api/notes/{note['id']}", json={"status": "DONE", "isReminderOn": True})
    assert r.json()["status"] == "DONE"
    assert r.json()["isReminderOn"] is True

    assert client.delete(f"/api/notes/{note['id']}").status_code == 200
    assert client.get(f"/api/notes/{note['id']}").status_code == 404
    assert client.post("/api/groups/nope/notes", json={}).status_code == 404


def test_sorted_and_today_view(client, clock):
    today = local_ms(2026, 10, 19, 9, 0)
    client.post(f"/api/groups/{DEFAULT_GROUP_ID}/notes", json={"content": "low", "importance": "Low", "startTime": today})
    client.post(f"/api/groups/{DEFAULT_GROUP_ID}/notes", json={"content": "high", "importance": "High", "startTime": today})
    client.post(
        f"/api/groups/{DEFAULT_GROUP_ID}/notes",
        json={"content": "later", "importance": "High", "startTime": local_ms(2026, 10, 30, 9, 0)},
    )

    r = client.get(f"/api/groups/{DEFAULT_GROUP_ID}/notes", params={"sort": "importance", "direction": "desc", "today": True})
    assert [n["content"] for n in r.json()] == ["high", "low"]


def test_pin_endpoints(client):
    nid = client.post(f"/api/groups/{DEFAULT_GROUP_ID}/notes", json={}).json()["id"]
    r = client.post(f"/api/notes/{nid}/pin", json={"x": 400, "y": 300})
    assert r.json()["position"] == {"x": 260, "y": 280}
    # pinning again keeps the spot
    r = client.post(f"/api/notes/{nid}/pin")
    assert r.json()["position"] == {"x": 260, "y": 280}
    assert client.post(f"/api/notes/{nid}/unpin").json()["isPinned"] is False
    assert client.post(f"/api/notes/{nid}/toggle-pin").json()["isPinned"] is True
    assert client.post("/api/notes/missing/pin").status_code == 404


def test_pin_all_uses_view_order(client):
    ids = [client.post(f"/api/groups/{DEFAULT_GROUP_ID}/notes", json={"content": str(i)}).json()["id"] for i in range(3)]
    r = client.post(f"/api/groups/{DEFAULT_GROUP_ID}/pin-all", params={"width": 700})
    pinned = r.json()
    # newest note first in the group view
    assert [n["id"] for n in pinned] == list(reversed(ids))
    z = [n["zIndex"] for n in pinned]
    assert z == sorted(z)
    assert client.post(f"/api/groups/{DEFAULT_GROUP_ID}/pin-all").json() == []


def test_report_endpoint(client):
    client.post(
        f"/api/groups/{DEFAULT_GROUP_ID}/notes",
        json={"content": "Deploy", "startTime": local_ms(2026, 10, 19, 20, 0), "endTime": local_ms(2026, 10, 20, 10, 0)},
    )
    r = client.get(f"/api/groups/{DEFAULT_GROUP_ID}/report", params={"hours": "09:00-21:00"})
    assert r.json()["lines"] == ["Deploy；10/19-10/20， 2h"]
    assert client.get(f"/api/groups/{DEFAULT_GROUP_ID}/report", params={"hours": "bad"}).status_code == 400


def test_report_placeholder(client):
    assert client.get(f"/api/groups/{DEFAULT_GROUP_ID}/report").json()["text"] == "No events this week"


def test_alert_flow(client, scheduler, clock):
    nid = client.post(
        f"/api/groups/{DEFAULT_GROUP_ID}/notes",
        json={"content": "stand up", "isReminderOn": True, "reminderTime": clock.now},
    ).json()["id"]
    assert client.get("/api/alert").json()["state"] == "IDLE"

    scheduler.tick()
    r = client.get("/api/alert").json()
    assert r["state"] == "ALERTING"
    assert r["noteId"] == nid

    r = client.post("/api/alert/snooze", params={"minutes": 15}).json()
    assert r["state"] == "IDLE"
    assert client.get(f"/api/notes/{nid}").json()["reminderTime"] == clock.now + 15 * 60_000

    clock.advance(15 * 60_000)
    scheduler.tick()
    r = client.post("/api/alert/dismiss").json()
    assert r["state"] == "IDLE"
    assert r["noteId"] == nid
    assert client.get(f"/api/notes/{nid}").json()["isReminderOn"] is False


def test_parse_endpoint(client, store):
    nid = client.post(f"/api/groups/{DEFAULT_GROUP_ID}/notes", json={}).json()["id"]
    r = client.post(f"/api/notes/{nid}/parse", json={"text": "meet bob"})
    assert r.json()["content"] == "MEET BOB"
    assert r.json()["location"] == "HQ"


def test_parse_without_parser(store, scheduler):
    client = TestClient(create_app(store=store, scheduler=scheduler))
    nid = store.create_note(content="x").id
    assert client.post(f"/api/notes/{nid}/parse", json={"text": "hi"}).status_code == 503


def test_clear_reports_idle(client, scheduler, clock):
    client.post(
        f"/api/groups/{DEFAULT_GROUP_ID}/notes",
        json={"content": "tea", "isReminderOn": True, "reminderTime": clock.now},
    )
    scheduler.tick()
    assert client.post("/api/alert/clear").json()["state"] == "IDLE"
    assert client.post("/api/alert/snooze").json() == {
        "state": "IDLE", "noteId": None, "content": None, "reminderTime": None, "armedAt": None,
    }


@pytest.mark.parametrize("field", ["content", "createdAt", "status", "importance", "isReminderOn"])
def test_edit_rejects_null_for_required_fields(client, field):
    nid = client.post(f"/api/groups/{DEFAULT_GROUP_ID}/notes", json={"content": "keep me"}).json()["id"]
    assert client.patch(f"/api/notes/{nid}", json={field: None}).status_code == 422
    assert client.get(f"/api/notes/{nid}").json()["content"] == "keep me"


def test_edit_can_clear_optional_fields(client):
    nid = client.post(f"/api/groups/{DEFAULT_GROUP_ID}/notes", json={"location": "HQ"}).json()["id"]
    r = client.patch(f"/api/notes/{nid}", json={"location": None, "endTime": None})
    assert r.status_code == 200
    assert r.json()["location"] is None
    assert r.json()["endTime"] is None
