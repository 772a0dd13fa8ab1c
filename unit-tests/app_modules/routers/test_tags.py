# Test the tag routes of the API

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
    return unit_test_utils.signup_and_login(client)

def test_list_includes_defaults_and_holiday(client, headers):
    response = client.get("/tags/", headers=headers)
    assert response.status_code == 200
    assert [t["id"] for t in response.json()] == ["t1", "t2", "t3", "holiday"]

def test_tag_lifecycle(client, headers):
    response = client.post("/tags/", json={"name": " Gym ", "color": "#aabbcc"}, headers=headers)
    assert response.status_code == 201
    tag = response.json()
    assert tag["name"] == "Gym"
    assert len(tag["id"]) == 32

    response = client.put(f"/tags/{tag['id']}", json={"color": "#000000"}, headers=headers)
    assert response.status_code == 200
    assert response.json() == {"id": tag["id"], "name": "Gym", "color": "#000000"}

    response = client.delete(f"/tags/{tag['id']}", headers=headers)
    assert response.status_code == 200
    assert tag["id"] not in [t["id"] for t in client.get("/tags/", headers=headers).json()]

def test_create_with_own_id_and_conflict(client, headers):
    response = client.post("/tags/", json={"id": "t9", "name": "Sport", "color": "#123456"}, headers=headers)
    assert response.status_code == 201
    assert response.json()["id"] == "t9"

    response = client.post("/tags/", json={"id": "t1", "name": "Work again", "color": "#123456"}, headers=headers)
    assert response.status_code == 409

@pytest.mark.parametrize("payload", [
    {"name": "Gym", "color": "blue"},
    {"name": "Gym", "color": "#12345"},
    {"name": "   ", "color": "#123456"},
])
def test_create_validation(client, headers, payload):
    response = client.post("/tags/", json=payload, headers=headers)
    assert response.status_code == 422

def test_holiday_tag_is_read_only(client, headers):
    assert client.put("/tags/holiday", json={"name": "Days off"}, headers=headers).status_code == 400
    assert client.delete("/tags/holiday", headers=headers).status_code == 400
    response = client.post("/tags/", json={"id": "holiday", "name": "Mine", "color": "#123456"}, headers=headers)
    assert response.status_code == 400

def test_unknown_tag(client, headers):
    assert client.put("/tags/nope", json={"name": "X"}, headers=headers).status_code == 404
    assert client.delete("/tags/nope", headers=headers).status_code == 404

def test_update_rejects_blank_name(client, headers):
    response = client.put("/tags/t1", json={"name": "  "}, headers=headers)
    assert response.status_code == 400
