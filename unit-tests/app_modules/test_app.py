# Test the main app file of the API

import pytest
import sys
import os
from fastapi.testclient import TestClient
from unittest.mock import patch
sys.path.append(os.path.join(os.path.dirname(__file__), '..'))
import unit_test_utils
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', 'app'))
import app

@pytest.fixture(autouse=True)
def repo():
    repo = unit_test_utils.use_memory_repository()
    yield repo
    unit_test_utils.reset_overrides()

def test_app_initialization():
    assert app.app.title == "Diary-API"

def test_routers_included():
    routes = [route.path for route in app.app.routes]
    for path in ("/auth/login", "/events/", "/tags/", "/calendar/layout", "/health", "/db-check"):
        assert path in routes

def test_health_endpoint():
    client = TestClient(app.app)
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}

def test_db_check(repo):
    client = TestClient(app.app)
    response = client.get("/db-check")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "db": "connected"}

    repo.ping_error = RuntimeError("gone away")
    response = client.get("/db-check")
    assert response.status_code == 500
    assert "gone away" in response.json()["detail"]

@patch("app.db_setup.setup_database")
def test_database_setup_runs_on_startup(mock_setup):
    with TestClient(app.app):
        mock_setup.assert_called_once()

def test_no_database_work_without_startup():
    # plain requests never open a MySQL connection
    with patch("database.mysql.connector.connect") as connect:
        TestClient(app.app).get("/health")
    connect.assert_not_called()
