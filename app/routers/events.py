# Event routes of the API, events live in the personal calendar of their creator

import logging
from fastapi import APIRouter, HTTPException, Depends, Query
from typing import Optional, List
import repository
import utils
import schemas

logger = logging.getLogger(__name__)
router = APIRouter()

def _personal_calendar_id(repo, user_id):
    calendar_id = repo.get_personal_calendar_id(user_id)
    if not calendar_id:
        raise HTTPException(status_code=404, detail="personal calendar not found")
    return calendar_id

def _owned_event(repo, user_id, event_id):
    """Fetch an event and check that the caller created it"""
    event = repo.get_event(event_id)
    if not event:
        raise HTTPException(status_code=404, detail="event not found")
    if event["created_by"] != user_id:
        raise HTTPException(status_code=403, detail="no permission")
    return event

@router.post("/", response_model=schemas.Event, status_code=201)
async def create_event(
    event: schemas.EventCreate,
    user=Depends(utils.get_current_user),
    repo=Depends(repository.get_repository),
):
    """Create a new event in the personal calendar"""
    if not event.title or not event.start_at or not event.end_at:
        raise HTTPException(status_code=400, detail="title, start_at, end_at are required")

    start_at = utils.parse_event_time(event.start_at, "start")
    end_at = utils.parse_event_time(event.end_at, "end")

    try:
        calendar_id = _personal_calendar_id(repo, user["id"])
        created = repo.create_event({
            "calendar_id": calendar_id,
            "title": event.title,
            "start_at": start_at,
            "end_at": end_at,
            "memo": event.memo or None,
            "tag_id": event.tag_id or "t1",
            "rrule": event.rrule or None,
            "created_by": user["id"],
        })
        logger.info(f"Created event '{event.title}' for user {user['id']} with ID {created['id']}")
        return created
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to create event: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to create event: {str(e)}")

@router.get("/", response_model=List[schemas.Event])
async def list_events(
    from_: Optional[str] = Query(None, alias="from"),
    to: Optional[str] = None,
    user=Depends(utils.get_current_user),
    repo=Depends(repository.get_repository),
):
    """List events of the personal calendar, recurring ones expanded when a window is given"""
    start_dt = end_dt = None
    if from_ or to:
        if not (from_ and to):
            raise HTTPException(status_code=400, detail="Both 'from' and 'to' are required for a time window")
        start_dt = utils.parse_event_time(from_, "from")
        end_dt = utils.parse_event_time(to, "to")
        if start_dt >= end_dt:
            raise HTTPException(status_code=400, detail="'from' must be before 'to'")

    try:
        calendar_id = _personal_calendar_id(repo, user["id"])
        rows = repo.list_events(calendar_id, start_dt, end_dt)
        results = utils.expand_events(rows, start_dt, end_dt)
        logger.info(f"Found {len(results)} events for user {user['id']}")
        return results
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to list events: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to list events: {str(e)}")

@router.get("/{event_id}", response_model=schemas.Event)
async def get_event(
    event_id: int,
    user=Depends(utils.get_current_user),
    repo=Depends(repository.get_repository),
):
    """Get a single event"""
    try:
        return _owned_event(repo, user["id"], event_id)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to retrieve event {event_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to retrieve event {event_id}: {str(e)}")

@router.patch("/{event_id}", response_model=schemas.Event)
async def update_event(
    event_id: int,
    event: schemas.EventUpdate,
    user=Depends(utils.get_current_user),
    repo=Depends(repository.get_repository),
):
    """Update the given fields of an event"""
    fields = event.model_dump(exclude_unset=True, exclude_none=True)
    if "start_at" in fields:
        fields["start_at"] = utils.parse_event_time(fields["start_at"], "start")
    if "end_at" in fields:
        fields["end_at"] = utils.parse_event_time(fields["end_at"], "end")
    if "title" in fields and not fields["title"].strip():
        raise HTTPException(status_code=400, detail="title must not be empty")

    try:
        _owned_event(repo, user["id"], event_id)
        updated = repo.update_event(event_id, fields)
        logger.info(f"Updated event with ID {event_id}")
        return updated
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to update event: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to update event: {str(e)}")

@router.delete("/{event_id}", response_model=schemas.MessageResponse)
async def delete_event(
    event_id: int,
    user=Depends(utils.get_current_user),
    repo=Depends(repository.get_repository),
):
    """Delete an event"""
    try:
        _owned_event(repo, user["id"], event_id)
        repo.delete_event(event_id)
        logger.info(f"Deleted event with ID {event_id}")
        return {"message": f"Event with ID {event_id} deleted successfully"}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to delete event: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to delete event: {str(e)}")
