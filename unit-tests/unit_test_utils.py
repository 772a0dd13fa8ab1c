# Shared utility functions for unit tests

import sys
import os
import datetime
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'app'))
import repository
from app import app

class InMemoryRepository:
    """Dict backed stand-in for MySQLRepository, same row shapes"""

    def __init__(self):
        self.users = {}
        self.calendars = {}
        self.events = {}
        self.tags = {}
        self.sessions = {}
        self._ids = {"users": 0, "calendars": 0, "events": 0}
        self.ping_error = None

    def _next_id(self, table):
        self._ids[table] += 1
        return self._ids[table]

    def ping(self):
        if self.ping_error:
            raise self.ping_error
        return True

    # Users and sessions

    def create_user(self, email, password_hash, name, default_tags):
        user_id = self._next_id("users")
        self.users[user_id] = {
            "id": user_id,
            "email": email,
            "password_hash": password_hash,
            "name": name,
            "utc_offset_minutes": None,
            "created_at": datetime.datetime(2024, 6, 1, 12, 0, 0),
        }
        calendar_id = self._next_id("calendars")
        self.calendars[calendar_id] = {"id": calendar_id, "type": "personal", "name": "My Calendar", "owner_id": user_id}
        for tag in default_tags:
            self.tags[(user_id, tag["id"])] = dict(tag)
        return self.get_user(user_id)

    def get_user(self, user_id):
        user = self.users.get(user_id)
        if not user:
            return None
        return {k: v for k, v in user.items() if k != "password_hash"}

    def get_user_by_email(self, email):
        for user in self.users.values():
            if user["email"] == email:
                return dict(user)
        return None

    def update_user(self, user_id, fields):
        for name in ("name", "utc_offset_minutes"):
            if name in fields:
                self.users[user_id][name] = fields[name]
        return self.get_user(user_id)

    def create_session(self, user_id, token_hash, expires_at):
        self.sessions[token_hash] = {"user_id": user_id, "expires_at": expires_at}

    def get_session_user(self, token_hash, now):
        session = self.sessions.get(token_hash)
        if not session or session["expires_at"] <= now:
            return None
        return self.get_user(session["user_id"])

    def delete_session(self, token_hash):
        self.sessions.pop(token_hash, None)

    # Calendars and events

    def get_personal_calendar_id(self, user_id):
        for calendar in self.calendars.values():
            if calendar["owner_id"] == user_id and calendar["type"] == "personal":
                return calendar["id"]
        return None

    def create_event(self, fields):
        event_id = self._next_id("events")
        self.events[event_id] = {
            "id": event_id,
            "calendar_id": fields["calendar_id"],
            "title": fields["title"],
            "start_at": fields["start_at"],
            "end_at": fields["end_at"],
            "memo": fields.get("memo"),
            "tag_id": fields.get("tag_id") or "t1",
            "rrule": fields.get("rrule"),
            "created_by": fields["created_by"],
            "created_at": datetime.datetime(2024, 6, 1, 12, 0, 0),
        }
        return self.get_event(event_id)

    def get_event(self, event_id):
        event = self.events.get(event_id)
        return dict(event) if event else None

    def list_events(self, calendar_id, start=None, end=None):
        rows = []
        for event in self.events.values():
            if event["calendar_id"] != calendar_id:
                continue
            if start is not None and end is not None:
                if event["rrule"]:
                    if event["start_at"] > end:
                        continue
                elif event["start_at"] > end or event["end_at"] < start:
                    continue
            rows.append(dict(event))
        rows.sort(key=lambda e: (e["start_at"], e["id"]))
        return rows

    def update_event(self, event_id, fields):
        for name in ("title", "start_at", "end_at", "memo", "tag_id", "rrule"):
            if name in fields:
                self.events[event_id][name] = fields[name]
        return self.get_event(event_id)

    def delete_event(self, event_id):
        self.events.pop(event_id, None)

    # Tags

    def list_tags(self, user_id):
        return [dict(tag) for (owner, _), tag in self.tags.items() if owner == user_id]

    def get_tag(self, user_id, tag_id):
        tag = self.tags.get((user_id, tag_id))
        return dict(tag) if tag else None

    def create_tag(self, user_id, tag):
        self.tags[(user_id, tag["id"])] = dict(tag)
        return self.get_tag(user_id, tag["id"])

    def update_tag(self, user_id, tag_id, fields):
        for name in ("name", "color"):
            if name in fields:
                self.tags[(user_id, tag_id)][name] = fields[name]
        return self.get_tag(user_id, tag_id)

    def delete_tag(self, user_id, tag_id):
        self.tags.pop((user_id, tag_id), None)

def use_memory_repository():
    """Route every request of the app to a fresh in-memory repository"""
    repo = InMemoryRepository()
    app.dependency_overrides[repository.get_repository] = lambda: repo
    return repo

def reset_overrides():
    app.dependency_overrides.clear()

def signup_and_login(client, email="user@example.com", password="secret123", name="Test User"):
    """Create a user through the API and return the Bearer headers of a fresh session"""
    response = client.post("/auth/signup", json={"email": email, "password": password, "name": name})
    assert response.status_code == 201, response.text
    response = client.post("/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}
