# Month layout route, turns the stored events of a month into lanes and "+N more" lists

import calendar
import datetime
import logging
import os
from fastapi import APIRouter, HTTPException, Depends, Query
from typing import Optional, List
import repository
import utils
import schemas
import public_holidays
from layout import CommittedEvent, ProvisionalEvent, GridWindow, LayoutPreconditionError, compute_month_layout

logger = logging.getLogger(__name__)
router = APIRouter()

DEFAULT_LANE_CAP = int(os.getenv("DIARY_LANE_CAP", "3"))
UNTITLED = "(untitled)"

def _utc_range(window, offset):
    """UTC bounds of the grid window, raises OverflowError at the edges of the date range"""
    return (
        datetime.datetime.combine(window.first_day, datetime.time.min) - offset,
        datetime.datetime.combine(window.last_day, datetime.time.max) - offset,
    )

def _window_events(repo, user, range_start, range_end, offset):
    """Stored events overlapping the UTC range, shifted into the user's local time"""
    calendar_id = repo.get_personal_calendar_id(user["id"])
    if not calendar_id:
        raise HTTPException(status_code=404, detail="personal calendar not found")

    rows = repo.list_events(calendar_id, range_start, range_end)
    events = []
    for row in utils.expand_events(rows, range_start, range_end):
        events.append(CommittedEvent(
            id=utils.occurrence_key(row),
            title=row["title"],
            start=utils.to_storage_dt(row["start_at"]) + offset,
            end=utils.to_storage_dt(row["end_at"]) + offset,
            tag_id=row.get("tag_id"),
        ))
    return events

@router.get("/layout", response_model=schemas.MonthLayoutResponse)
async def month_layout(
    year: int = Query(..., ge=1, le=9999),
    month: int = Query(..., ge=1, le=12),
    lane_cap: int = Query(DEFAULT_LANE_CAP, ge=1),
    week_start: int = Query(calendar.SUNDAY, ge=0, le=6),
    tags: Optional[List[str]] = Query(None),
    include_holidays: bool = False,
    draft_start: Optional[str] = None,
    draft_end: Optional[str] = None,
    draft_title: Optional[str] = None,
    draft_tag_id: Optional[str] = None,
    user=Depends(utils.get_current_user),
    repo=Depends(repository.get_repository),
):
    """Lay out the month grid of the logged in user, optionally with a draft event on top"""
    try:
        window = GridWindow.for_month(year, month, week_start)
        offset = datetime.timedelta(minutes=user.get("utc_offset_minutes") or 0)
        range_start, range_end = _utc_range(window, offset)
    except (LayoutPreconditionError, ValueError, OverflowError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid grid window: {e}")

    try:
        events = _window_events(repo, user, range_start, range_end, offset)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to load events for layout: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to load events for layout: {str(e)}")

    if include_holidays:
        for holiday_year in sorted({window.first_day.year, window.last_day.year}):
            events.extend(public_holidays.holiday_events(holiday_year))

    if tags is not None:
        selected = set(tags)
        events = [ev for ev in events if ev.tag_id in selected]

    if draft_start or draft_end:
        if not (draft_start and draft_end):
            raise HTTPException(status_code=400, detail="draft_start and draft_end must be given together")
        events.append(ProvisionalEvent(
            title=(draft_title or "").strip() or UNTITLED,
            start=draft_start,
            end=draft_end,
            tag_id=draft_tag_id,
        ))

    try:
        result = compute_month_layout(events, window, lane_cap)
    except LayoutPreconditionError as e:
        raise HTTPException(status_code=400, detail=str(e))

    committed = {ev.id: ev for ev in events if isinstance(ev, CommittedEvent)}
    draft = next((ev for ev in events if isinstance(ev, ProvisionalEvent)), None)
    segments = []
    for seg in result.segments:
        source = draft if seg.provisional else committed[seg.event_id]
        segments.append({
            "event_id": str(seg.event_id),
            "title": source.title,
            "tag_id": source.tag_id,
            "week_index": seg.week_index,
            "start_column": seg.start_column,
            "span": seg.span,
            "lane": seg.lane,
            "provisional": seg.provisional,
        })

    logger.info(f"Laid out {len(segments)} segments for user {user['id']} in {year}-{month:02d}")
    return {
        "year": year,
        "month": month,
        "week_start": week_start,
        "lane_cap": lane_cap,
        "days": window.days,
        "segments": segments,
        "overflow": {
            week: {column: [str(event_id) for event_id in ids] for column, ids in columns.items()}
            for week, columns in result.overflow.items()
        },
        "lane_used_count": result.lane_used_count,
        "total_lane_count": result.total_lane_count,
    }
