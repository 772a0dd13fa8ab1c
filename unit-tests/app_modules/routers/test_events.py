# Test the event routes of the API

import pytest
import sys
import os
from fastapi.testclient import TestClient

sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))
import unit_test_utils
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', '..', 'app'))
from app import app

@pytest.fixture(autouse=True)
def repo():
    repo = unit_test_utils.use_memory_repository()
    yield repo
    unit_test_utils.reset_overrides()

@pytest.fixture
def client():
    return TestClient(app)

@pytest.fixture
def headers(client):
    headers = unit_test_utils.signup_and_login(client)
    client.cookies.clear()
    return headers

def create_event(client, headers, **fields):
    payload = {"title": "Meeting", "start_at": "2024-06-03T09:00:00", "end_at": "2024-06-03T10:00:00"}
    payload.update(fields)
    return client.post("/events/", json=payload, headers=headers)

def test_event_crud(client, headers):
    """Create, read, update and delete one event."""
    response = create_event(client, headers, memo="Room 4")
    assert response.status_code == 201
    event = response.json()
    assert event["title"] == "Meeting"
    assert event["tag_id"] == "t1"
    assert event["memo"] == "Room 4"
    event_id = event["id"]

    response = client.get(f"/events/{event_id}", headers=headers)
    assert response.status_code == 200
    assert response.json()["start_at"] == "2024-06-03T09:00:00"

    response = client.patch(f"/events/{event_id}", json={"title": "Planning", "tag_id": "t2"}, headers=headers)
    assert response.status_code == 200
    assert response.json()["title"] == "Planning"
    assert response.json()["tag_id"] == "t2"
    assert response.json()["memo"] == "Room 4"

    response = client.delete(f"/events/{event_id}", headers=headers)
    assert response.status_code == 200
    assert "deleted successfully" in response.json()["message"]

    response = client.get(f"/events/{event_id}", headers=headers)
    assert response.status_code == 404
    assert response.json()["detail"] == "event not found"

def test_create_requires_fields(client, headers):
    response = client.post("/events/", json={"title": "No dates"}, headers=headers)
    assert response.status_code == 400
    assert response.json()["detail"] == "title, start_at, end_at are required"

    response = create_event(client, headers, start_at="next tuesday")
    assert response.status_code == 400

def test_aware_times_are_stored_as_utc(client, headers):
    response = create_event(client, headers, start_at="2024-06-03T09:00:00+09:00", end_at="2024-06-03T10:00:00+09:00")
    assert response.status_code == 201
    assert response.json()["start_at"] == "2024-06-03T00:00:00"

def test_update_rejects_empty_title(client, headers):
    event_id = create_event(client, headers).json()["id"]
    response = client.patch(f"/events/{event_id}", json={"title": "   "}, headers=headers)
    assert response.status_code == 400

def test_other_users_event_is_forbidden(client, headers):
    event_id = create_event(client, headers).json()["id"]
    other = unit_test_utils.signup_and_login(client, email="other@example.com")
    client.cookies.clear()

    assert client.get(f"/events/{event_id}", headers=other).status_code == 403
    assert client.patch(f"/events/{event_id}", json={"title": "Mine"}, headers=other).status_code == 403
    response = client.delete(f"/events/{event_id}", headers=other)
    assert response.status_code == 403
    assert response.json()["detail"] == "no permission"

def test_list_events_in_window(client, headers):
    create_event(client, headers, title="June", start_at="2024-06-03T09:00:00", end_at="2024-06-03T10:00:00")
    create_event(client, headers, title="July", start_at="2024-07-03T09:00:00", end_at="2024-07-03T10:00:00")
    create_event(client, headers, title="Long", start_at="2024-05-28T09:00:00", end_at="2024-06-02T10:00:00")

    response = client.get("/events/", headers=headers)
    assert [e["title"] for e in response.json()] == ["Long", "June", "July"]

    response = client.get("/events/", params={"from": "2024-06-01T00:00:00", "to": "2024-06-30T23:59:59"}, headers=headers)
    assert response.status_code == 200
    assert [e["title"] for e in response.json()] == ["Long", "June"]

def test_list_events_expands_recurring(client, headers):
    create_event(client, headers, title="Gym", rrule="FREQ=WEEKLY;COUNT=10",
                 start_at="2024-06-04T18:00:00", end_at="2024-06-04T19:00:00")
    response = client.get("/events/", params={"from": "2024-06-01T00:00:00", "to": "2024-06-20T00:00:00"}, headers=headers)
    assert response.status_code == 200
    assert [e["start_at"] for e in response.json()] == [
        "2024-06-04T18:00:00",
        "2024-06-11T18:00:00",
        "2024-06-18T18:00:00",
    ]

@pytest.mark.parametrize("params", [
    {"from": "2024-06-01T00:00:00"},
    {"from": "2024-06-30T00:00:00", "to": "2024-06-01T00:00:00"},
    {"from": "soon", "to": "2024-06-01T00:00:00"},
])
def test_list_events_bad_window(client, headers, params):
    response = client.get("/events/", params=params, headers=headers)
    assert response.status_code == 400

def test_storage_failure_is_a_500(client, headers, repo):
    def broken(*args, **kwargs):
        raise RuntimeError("connection lost")
    repo.list_events = broken
    response = client.get("/events/", headers=headers)
    assert response.status_code == 500
    assert "connection lost" in response.json()["detail"]

def test_events_require_login(client):
    assert client.get("/events/").status_code == 401
