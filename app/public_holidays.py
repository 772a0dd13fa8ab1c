# Public holiday lookup, shown as single-day events under the holiday tag

import os
import logging
import datetime
import requests
from typing import Dict, List, Tuple
from layout import CommittedEvent

logger = logging.getLogger(__name__)

HOLIDAY_API_BASE = os.getenv("HOLIDAY_API_BASE", "https://date.nager.at/api/v3").rstrip("/")
HOLIDAY_COUNTRY = os.getenv("HOLIDAY_COUNTRY", "KR")
REQUEST_TIMEOUT = 10

HOLIDAY_TAG = {"id": "holiday", "name": "Holiday", "color": "#e53935"}

_cache: Dict[Tuple[int, str], List[dict]] = {}

def fetch_public_holidays(year, country=None):
    """
    Fetch the public holidays of a year from the Nager.Date API.

    Args:
        year (int): Calendar year.
        country (str): ISO 3166-1 alpha-2 country code, defaults to HOLIDAY_COUNTRY.

    Returns:
        list: Holiday dicts with 'date', 'localName' and 'name', empty on any failure.
    """
    country = (country or HOLIDAY_COUNTRY).upper()
    key = (year, country)
    if key in _cache:
        return _cache[key]

    url = f"{HOLIDAY_API_BASE}/PublicHolidays/{year}/{country}"
    try:
        response = requests.get(url, headers={"accept": "application/json"}, timeout=REQUEST_TIMEOUT)
        response.raise_for_status()
        holidays = response.json()
    except (requests.exceptions.RequestException, ValueError) as e:
        logger.warning(f"Could not fetch public holidays for {country} {year}: {e}")
        return []

    if not isinstance(holidays, list):
        logger.warning(f"Unexpected holiday payload for {country} {year}")
        return []

    _cache[key] = holidays
    return holidays

def ensure_holiday_tag(tags, factory=dict):
    """
    Append the built-in holiday tag unless the list already has it.

    Args:
        tags (list): Tag dicts or objects with an 'id' attribute.
        factory (callable): Builds the appended tag from the HOLIDAY_TAG fields.
    """
    tags = list(tags)
    if any((tag["id"] if isinstance(tag, dict) else tag.id) == HOLIDAY_TAG["id"] for tag in tags):
        return tags
    return tags + [factory(**HOLIDAY_TAG)]

def holiday_events(year, country=None):
    """
    Public holidays of a year as committed single-day layout events.

    Some dates carry more than one holiday; the second and later ones on a
    date get a "-<n>" suffix so every id stays unique.
    """
    events = []
    per_day: Dict[datetime.date, int] = {}
    for holiday in fetch_public_holidays(year, country):
        try:
            day = datetime.date.fromisoformat(holiday["date"])
        except (KeyError, TypeError, ValueError):
            logger.warning(f"Skipping holiday without a valid date: {holiday}")
            continue
        per_day[day] = per_day.get(day, 0) + 1
        event_id = f"holiday-{day.isoformat()}"
        if per_day[day] > 1:
            event_id = f"{event_id}-{per_day[day]}"
        events.append(CommittedEvent(
            id=event_id,
            title=holiday.get("localName") or holiday.get("name") or "Holiday",
            start=day,
            end=day,
            tag_id=HOLIDAY_TAG["id"],
        ))
    return events


def clear_cache():
    _cache.clear()
