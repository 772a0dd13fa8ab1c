# Utility functions for the diary api

import hashlib
import hmac
import secrets
import logging
import os
from dateutil import parser
import json
from typing import Optional, List, Dict, Any
from fastapi import Depends, HTTPException, Header, Cookie
import datetime
import icalendar
import recurring_ical_events
import repository

logger = logging.getLogger(__name__)

TOKEN_COOKIE_NAME = "access_token"
TOKEN_TTL_DAYS = int(os.getenv("DIARY_TOKEN_TTL_DAYS", "7"))
COOKIE_SECURE = os.getenv("DIARY_COOKIE_SECURE", "false").lower() in ("1", "true", "yes")
PASSWORD_ITERATIONS = 260000
MIN_PASSWORD_LENGTH = 6

def utc_now():
    """Current UTC time as a naive datetime, the way it is stored in the database"""
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)

def generate_token():
    """Generate a random session token"""
    return secrets.token_urlsafe(32)

def hash_token(token):
    """Hash a session token using SHA-256"""
    return hashlib.sha256(token.encode()).hexdigest()

def hash_password(password, salt=None):
    """
    Hash a password with salted PBKDF2-SHA256

    Returns:
        str: 'pbkdf2_sha256$<iterations>$<salt>$<hex digest>'
    """
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), PASSWORD_ITERATIONS).hex()
    return f"pbkdf2_sha256${PASSWORD_ITERATIONS}${salt}${digest}"

def verify_password(password, stored_hash):
    """Check a password against a hash produced by hash_password"""
    try:
        algorithm, iterations, salt, digest = stored_hash.split("$")
    except (AttributeError, ValueError):
        logger.warning("Stored password hash has an unexpected format")
        return False
    if algorithm != "pbkdf2_sha256":
        return False
    candidate = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), int(iterations)).hex()
    return hmac.compare_digest(candidate, digest)

def get_current_user(
    authorization: Optional[str] = Header(None),
    access_token: Optional[str] = Cookie(None),
    repo=Depends(repository.get_repository),
):
    """
    Resolve the logged in user from a Bearer token or the access_token cookie.

    Returns:
        dict: The user row of the session owner.

    Raises:
        HTTPException: 401 if no token is sent or the session is unknown or expired.
    """
    token = get_request_token(authorization, access_token)
    if not token:
        raise HTTPException(status_code=401, detail="missing token")

    user = repo.get_session_user(hash_token(token), utc_now())
    if not user:
        raise HTTPException(status_code=401, detail="invalid token")
    return user

def get_request_token(authorization: Optional[str] = None, access_token: Optional[str] = None):
    """Return the raw token of a request, header first, or None"""
    if authorization and authorization.startswith("Bearer "):
        token = authorization[len("Bearer "):].strip()
        if token:
            return token
    return access_token or None

def validate_time_format(time_str):
    """
    Validate time format (ISO 8601) and return as datetime object

    Args:
        time_str: Time string to validate

    Returns:
        datetime: Parsed datetime object if valid, None otherwise
    """
    try:
        return parser.isoparse(time_str)
    except (ValueError, TypeError):
        logger.error(f"Invalid time format: {time_str}")
        return None

def to_storage_dt(value):
    """Convert an aware datetime to naive UTC, naive datetimes are kept as they are"""
    if value.tzinfo is not None:
        return value.astimezone(datetime.timezone.utc).replace(tzinfo=None)
    return value

def parse_event_time(time_str, field):
    """Parse an ISO 8601 event time for storage, raise 400 if it is invalid"""
    parsed = validate_time_format(time_str)
    if parsed is None:
        raise HTTPException(status_code=400, detail=f"Invalid {field} time format: {time_str}")
    return to_storage_dt(parsed)

# RRULE Query Helpers

def _normalize_dt(val):
    """
    Normalize input to a standard naive datetime object.
    Args:
        val: Input value (datetime, date, ISO 8601 string)
    Returns:
        datetime.datetime: Normalized datetime object
    """
    if isinstance(val, datetime.datetime):
        return to_storage_dt(val)
    if isinstance(val, datetime.date):
        return datetime.datetime.combine(val, datetime.time.min)
    if isinstance(val, str):
        dt = validate_time_format(val)
        if dt is None:
            raise HTTPException(status_code=400, detail=f"Invalid time format: {val}")
        return to_storage_dt(dt)
    raise HTTPException(status_code=400, detail="Invalid time argument type")


def _event_to_ical_component(ev: Dict[str, Any]) -> Optional[icalendar.Event]:
    """
    Convert a stored event row to an iCalendar Event component.

    Args:
        ev (Dict[str, Any]): Event row with 'start_at', 'end_at', 'rrule', etc.
    Returns:
        Optional[icalendar.Event]: iCalendar Event component or None if the event is invalid.
    """
    rrule = ev.get("rrule")
    if not rrule:
        return None
    start = ev.get("start_at")
    end = ev.get("end_at")
    if isinstance(start, str):
        start = validate_time_format(start)
    if isinstance(end, str):
        end = validate_time_format(end)
    if start is None:
        logger.warning(f"Skipping event without valid start_at: {ev}")
        return None
    if end is None:
        end = start
    ical_ev = icalendar.Event()
    ical_ev.add("uid", f"diary-{ev.get('calendar_id', '')}-{ev.get('id', '')}")
    if ev.get("title"):
        ical_ev.add("summary", ev.get("title"))
    if ev.get("memo"):
        ical_ev.add("description", ev.get("memo"))
    ical_ev.add("dtstart", start)
    ical_ev.add("dtend", end)
    ical_ev.add("rrule", icalendar.prop.vRecur.from_ical(str(rrule)))
    # Carry the row so occurrences can be turned back into events
    ical_ev.add("X-DIARY-ROW", json.dumps({
        "id": ev.get("id"),
        "calendar_id": ev.get("calendar_id"),
        "tag_id": ev.get("tag_id"),
        "rrule": str(rrule),
        "created_by": ev.get("created_by"),
    }))
    return ical_ev


def _build_ical_from_events(events: List[Dict[str, Any]]) -> icalendar.Calendar:
    """
    Builds an iCalendar Calendar from stored event rows, skipping rows that cannot be converted.
    """
    cal = icalendar.Calendar()
    cal.add("prodid", "-//diary//calendar//EN")
    cal.add("version", "2.0")
    for ev in events:
        try:
            comp = _event_to_ical_component(ev)
            if comp is not None:
                cal.add_component(comp)
        except Exception as ex:
            logger.warning(f"Skipping event {ev.get('id')} due to RRULE or data error: {ex}")
            continue
    return cal


def _occurrence_to_event_dict(comp) -> Dict[str, Any]:
    """
    Converts an expanded iCalendar occurrence back into an event row.
    """
    occ_start = comp.get("DTSTART").dt
    occ_end = comp.get("DTEND").dt if comp.get("DTEND") else occ_start
    row = json.loads(str(comp.get("X-DIARY-ROW")))
    return {
        "id": row.get("id"),
        "calendar_id": row.get("calendar_id"),
        "title": str(comp.get("SUMMARY")) if comp.get("SUMMARY") else "",
        "memo": str(comp.get("DESCRIPTION")) if comp.get("DESCRIPTION") else None,
        "start_at": occ_start,
        "end_at": occ_end,
        "tag_id": row.get("tag_id") or "t1",
        "rrule": row.get("rrule"),
        "created_by": row.get("created_by"),
        "created_at": None,
    }

def handle_rrule_query(events_with_rrule, start_date, end_date):
    """
    Expand recurring events into concrete occurrences inside a time window.

    Args:
        events_with_rrule (List[Dict[str, Any]]): Event rows containing an 'rrule'.
        start_date (str|datetime): Start of window (ISO 8601 string or datetime).
        end_date (str|datetime): End of window (ISO 8601 string or datetime).

    Returns:
        List[Dict[str, Any]]: Occurrences as event rows within the time frame.
    """
    if not events_with_rrule:
        return []

    start_dt = _normalize_dt(start_date)
    end_dt = _normalize_dt(end_date)
    if start_dt >= end_dt:
        raise HTTPException(status_code=400, detail="'from' must be before 'to'")

    try:
        cal = _build_ical_from_events(events_with_rrule)
        cal_bytes = cal.to_ical()
        a_calendar = icalendar.Calendar.from_ical(cal_bytes)
        occurrences = recurring_ical_events.of(a_calendar, skip_bad_series=True).between(start_dt, end_dt)
    except HTTPException:
        raise
    except Exception as ex:
        logger.error(f"Error expanding rrules: {ex}")
        raise HTTPException(status_code=500, detail="Failed to expand recurring events")

    results = []
    for comp in occurrences:
        try:
            results.append(_occurrence_to_event_dict(comp))
        except Exception as ex:
            logger.warning(f"Failed to read occurrence: {ex}")
            continue

    results.sort(key=lambda x: (x.get("start_at") or datetime.datetime.min, x.get("id") or 0))
    return results

def expand_events(rows, start_date=None, end_date=None):
    """
    Split stored rows into one-off events and recurring series, expand the series
    inside the window and return everything ordered by start.

    Without a window the recurring rows are returned unexpanded.
    """
    single = [row for row in rows if not row.get("rrule")]
    recurring = [row for row in rows if row.get("rrule")]
    if start_date is not None and end_date is not None:
        recurring = handle_rrule_query(recurring, start_date, end_date)
    results = single + recurring
    results.sort(key=lambda x: (x.get("start_at") or datetime.datetime.min, x.get("id") or 0))
    return results

def occurrence_key(event):
    """Layout identity of an event row, recurring occurrences get one per start day"""
    if event.get("rrule"):
        return f"{event['id']}@{event['start_at'].date().isoformat()}"
    return str(event["id"])
