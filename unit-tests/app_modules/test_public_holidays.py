# Test the public holiday lookup

import pytest
import sys
import os
import datetime
import requests
from unittest.mock import patch, MagicMock
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', 'app'))
import public_holidays
from layout import CommittedEvent, GridWindow, compute_month_layout
from controller import Tag, HOLIDAY_TAG

@pytest.fixture(autouse=True)
def empty_cache():
    public_holidays.clear_cache()
    yield
    public_holidays.clear_cache()

def mock_response(payload):
    response = MagicMock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response

PAYLOAD = [
    {"date": "2024-01-01", "localName": "새해", "name": "New Year's Day"},
    {"date": "2024-06-06", "localName": "", "name": "Memorial Day"},
    {"localName": "Broken"},
]

@patch("public_holidays.requests.get")
def test_fetch_calls_api_once_per_year(mock_get):
    mock_get.return_value = mock_response(PAYLOAD)
    assert public_holidays.fetch_public_holidays(2024, "kr") == PAYLOAD
    assert public_holidays.fetch_public_holidays(2024, "KR") == PAYLOAD
    mock_get.assert_called_once()
    assert mock_get.call_args[0][0].endswith("/PublicHolidays/2024/KR")

@patch("public_holidays.requests.get")
def test_fetch_failure_returns_empty(mock_get):
    mock_get.side_effect = requests.exceptions.ConnectionError("offline")
    assert public_holidays.fetch_public_holidays(2024) == []

    # failures are not cached
    mock_get.side_effect = None
    mock_get.return_value = mock_response(PAYLOAD)
    assert public_holidays.fetch_public_holidays(2024) == PAYLOAD

@patch("public_holidays.requests.get")
def test_fetch_http_error(mock_get):
    response = mock_response(None)
    response.raise_for_status.side_effect = requests.exceptions.HTTPError("404")
    mock_get.return_value = response
    assert public_holidays.fetch_public_holidays(1800) == []

@patch("public_holidays.requests.get")
def test_fetch_unexpected_payload(mock_get):
    mock_get.return_value = mock_response({"error": "nope"})
    assert public_holidays.fetch_public_holidays(2024) == []

@patch("public_holidays.requests.get")
def test_holiday_events(mock_get):
    mock_get.return_value = mock_response(PAYLOAD)
    events = public_holidays.holiday_events(2024)
    assert events == [
        CommittedEvent("holiday-2024-01-01", "새해", datetime.date(2024, 1, 1), datetime.date(2024, 1, 1), "holiday"),
        CommittedEvent("holiday-2024-06-06", "Memorial Day", datetime.date(2024, 6, 6), datetime.date(2024, 6, 6), "holiday"),
    ]

@patch("public_holidays.requests.get")
def test_holidays_on_the_same_date_get_their_own_lanes(mock_get):
    mock_get.return_value = mock_response([
        {"date": "2025-05-05", "localName": "어린이날"},
        {"date": "2025-05-05", "localName": "부처님 오신 날"},
        {"date": "2025-05-06", "localName": "대체공휴일"},
    ])
    events = public_holidays.holiday_events(2025)
    assert [e.id for e in events] == ["holiday-2025-05-05", "holiday-2025-05-05-2", "holiday-2025-05-06"]

    layout = compute_month_layout(events, GridWindow.for_month(2025, 5), lane_cap=3)
    lanes = {s.event_id: s.lane for s in layout.segments}
    assert lanes["holiday-2025-05-05"] != lanes["holiday-2025-05-05-2"]
    assert layout.total_lane_count[1] == 2

def test_holiday_tag_is_shared():
    assert HOLIDAY_TAG == Tag(**public_holidays.HOLIDAY_TAG)

    assert public_holidays.ensure_holiday_tag([{"id": "t1"}]) == [{"id": "t1"}, public_holidays.HOLIDAY_TAG]
    tags = [Tag("t1", "Work", "#3b82f6")]
    assert public_holidays.ensure_holiday_tag(tags, factory=Tag) == tags + [HOLIDAY_TAG]
    assert public_holidays.ensure_holiday_tag(tags + [HOLIDAY_TAG], factory=Tag) == tags + [HOLIDAY_TAG]
