# HTTP client for the diary API, implements the controller's EventRepository

import os
import logging
import datetime
import requests
from dateutil import parser
from typing import List, Optional
from controller import Tag
from layout import CommittedEvent, ProvisionalEvent

# --- Environment Variables ---
DIARY_API_BASE = os.getenv("DIARY_API_BASE", "http://localhost:8000")
DIARY_API_TOKEN = os.getenv("DIARY_API_TOKEN")
REQUEST_TIMEOUT = 10

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Non-2xx answer or connection failure, status_code is None for the latter."""

    def __init__(self, status_code: Optional[int], detail: str):
        super().__init__(f"{status_code}: {detail}" if status_code else detail)
        self.status_code = status_code
        self.detail = detail


def login(email, password, base_url=None):
    """Log in and return the session token"""
    base_url = (base_url or DIARY_API_BASE).rstrip("/")
    try:
        response = requests.post(
            f"{base_url}/auth/login",
            json={"email": email, "password": password},
            headers={"accept": "application/json"},
            timeout=REQUEST_TIMEOUT,
        )
    except requests.exceptions.RequestException as e:
        logger.error(f"Request exception during login: {e}")
        raise ApiError(None, f"Connection Error: {e}")
    if response.status_code >= 400:
        raise ApiError(response.status_code, _error_detail(response))
    return response.json()["access_token"]


def _error_detail(response):
    try:
        return response.json().get("detail", response.text)
    except ValueError:
        return response.text


def _base_event_id(event_id):
    # recurring occurrences carry "<id>@<date>", the series id is stored server side
    return str(event_id).split("@", 1)[0]


class ApiEventRepository:
    """
    Event and tag storage backed by the diary HTTP API.

    Args:
        base_url (str): API root, defaults to DIARY_API_BASE.
        token (str): Session token sent as Bearer, defaults to DIARY_API_TOKEN.
        session: Optional requests.Session to reuse connections.
        utc_offset_minutes (int): Local offset of the user, read from /auth/me when not given.

    Dates and naive datetimes passed in are local to the user. They are sent
    with the user's offset attached, and stored UTC times coming back are
    shifted into local time, so days line up with the server's layout.
    """

    def __init__(self, base_url=None, token=None, session=None, utc_offset_minutes=None):
        self.base_url = (base_url or DIARY_API_BASE).rstrip("/")
        self.token = token or DIARY_API_TOKEN
        self.session = session or requests.Session()
        self._utc_offset_minutes = utc_offset_minutes

    def _request(self, method, endpoint, **kwargs):
        headers = kwargs.pop("headers", {})
        headers["accept"] = "application/json"
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        url = f"{self.base_url}{endpoint}"
        try:
            response = self.session.request(method, url, headers=headers, timeout=REQUEST_TIMEOUT, **kwargs)
        except requests.exceptions.RequestException as e:
            logger.error(f"Request exception calling {method} {endpoint}: {e}")
            raise ApiError(None, f"Connection Error: {e}")

        if response.status_code >= 400:
            detail = _error_detail(response)
            logger.error(f"HTTP error calling {method} {endpoint}: {response.status_code} - {detail}")
            raise ApiError(response.status_code, detail)

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    @property
    def utc_offset_minutes(self) -> int:
        if self._utc_offset_minutes is None:
            me = self._request("get", "/auth/me") or {}
            self._utc_offset_minutes = me.get("utc_offset_minutes") or 0
        return self._utc_offset_minutes

    def _to_wire(self, value, end_of_day=False):
        """Local date, datetime or ISO string as an ISO string carrying the user's offset"""
        if isinstance(value, datetime.datetime):
            dt = value
        elif isinstance(value, datetime.date):
            dt = datetime.datetime.combine(value, datetime.time(23, 59, 59) if end_of_day else datetime.time.min)
        else:
            dt = parser.isoparse(str(value))
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=datetime.timezone(datetime.timedelta(minutes=self.utc_offset_minutes)))
        return dt.isoformat()

    def _from_wire(self, value):
        """Stored UTC time as a naive datetime in the user's local time"""
        dt = parser.isoparse(value)
        if dt.tzinfo is not None:
            dt = dt.astimezone(datetime.timezone.utc).replace(tzinfo=None)
        return dt + datetime.timedelta(minutes=self.utc_offset_minutes)

    def _to_event(self, row, event_id):
        return CommittedEvent(
            id=event_id,
            title=row["title"],
            start=self._from_wire(row["start_at"]),
            end=self._from_wire(row["end_at"]),
            tag_id=row.get("tag_id"),
        )

    # Events

    def list_events(self, start, end) -> List[CommittedEvent]:
        params = {"from": self._to_wire(start), "to": self._to_wire(end, end_of_day=True)}
        rows = self._request("get", "/events/", params=params)
        events = []
        for row in rows or []:
            event_id = row["id"]
            if row.get("rrule"):
                event_id = f"{row['id']}@{row['start_at'][:10]}"
            events.append(self._to_event(row, event_id))
        return events

    def save_event(self, event) -> CommittedEvent:
        """Create a provisional event or update a committed one"""
        payload = {
            "title": event.title,
            "start_at": self._to_wire(event.start),
            "end_at": self._to_wire(event.end, end_of_day=True),
            "tag_id": event.tag_id,
        }
        if isinstance(event, ProvisionalEvent):
            row = self._request("post", "/events/", json=payload)
        else:
            row = self._request("patch", f"/events/{_base_event_id(event.id)}", json=payload)
        return self._to_event(row, row["id"])

    def delete_event(self, event_id):
        self._request("delete", f"/events/{_base_event_id(event_id)}")

    # Tags

    def list_tags(self) -> List[Tag]:
        return [Tag(id=t["id"], name=t["name"], color=t["color"]) for t in self._request("get", "/tags/") or []]

    def save_tag(self, tag: Tag) -> Tag:
        """Update the tag when it exists, create it otherwise"""
        payload = {"name": tag.name, "color": tag.color}
        row = None
        if tag.id:
            try:
                row = self._request("put", f"/tags/{tag.id}", json=payload)
            except ApiError as e:
                if e.status_code != 404:
                    raise
        if row is None:
            row = self._request("post", "/tags/", json=dict(payload, id=tag.id or None))
        return Tag(id=row["id"], name=row["name"], color=row["color"])

    def delete_tag(self, tag_id):
        self._request("delete", f"/tags/{tag_id}")
