# Tag routes, tags colour the events of a user

import logging
import uuid
from fastapi import APIRouter, HTTPException, Depends
from typing import List
import repository
import utils
import schemas
from public_holidays import HOLIDAY_TAG, ensure_holiday_tag

logger = logging.getLogger(__name__)
router = APIRouter()

DEFAULT_TAGS = [
    {"id": "t1", "name": "Work", "color": "#3b82f6"},
    {"id": "t2", "name": "Personal", "color": "#22c55e"},
    {"id": "t3", "name": "Urgent", "color": "#ef4444"},
]

def _reject_holiday_tag(tag_id):
    if tag_id == HOLIDAY_TAG["id"]:
        raise HTTPException(status_code=400, detail="The holiday tag cannot be changed")

@router.get("/", response_model=List[schemas.Tag])
async def list_tags(
    user=Depends(utils.get_current_user),
    repo=Depends(repository.get_repository),
):
    """List the tags of the logged in user, the holiday tag is always included"""
    try:
        return ensure_holiday_tag(repo.list_tags(user["id"]))
    except Exception as e:
        logger.error(f"Failed to list tags: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to list tags: {e}")

@router.post("/", response_model=schemas.Tag, status_code=201)
async def create_tag(
    tag: schemas.TagCreate,
    user=Depends(utils.get_current_user),
    repo=Depends(repository.get_repository),
):
    """Create a tag, the id is generated unless the client brings its own"""
    tag_id = tag.id or uuid.uuid4().hex
    _reject_holiday_tag(tag_id)

    try:
        if repo.get_tag(user["id"], tag_id):
            raise HTTPException(status_code=409, detail=f"Tag '{tag_id}' already exists")
        created = repo.create_tag(user["id"], {"id": tag_id, "name": tag.name, "color": tag.color})
        logger.info(f"Created tag '{tag.name}' for user {user['id']} with ID {tag_id}")
        return created
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to create tag: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to create tag: {e}")

@router.put("/{tag_id}", response_model=schemas.Tag)
async def update_tag(
    tag_id: str,
    tag: schemas.TagUpdate,
    user=Depends(utils.get_current_user),
    repo=Depends(repository.get_repository),
):
    """Rename or recolour a tag"""
    _reject_holiday_tag(tag_id)

    fields = tag.model_dump(exclude_unset=True, exclude_none=True)
    if "name" in fields:
        fields["name"] = fields["name"].strip()
        if not fields["name"]:
            raise HTTPException(status_code=400, detail="Tag name must not be empty")

    try:
        if not repo.get_tag(user["id"], tag_id):
            raise HTTPException(status_code=404, detail="Tag not found")
        updated = repo.update_tag(user["id"], tag_id, fields)
        logger.info(f"Updated tag {tag_id} of user {user['id']}")
        return updated
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to update tag: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to update tag: {e}")

@router.delete("/{tag_id}", response_model=schemas.MessageResponse)
async def delete_tag(
    tag_id: str,
    user=Depends(utils.get_current_user),
    repo=Depends(repository.get_repository),
):
    """Delete a tag, events keep their tag id"""
    _reject_holiday_tag(tag_id)

    try:
        if not repo.get_tag(user["id"], tag_id):
            raise HTTPException(status_code=404, detail="Tag not found")
        repo.delete_tag(user["id"], tag_id)
        logger.info(f"Deleted tag {tag_id} of user {user['id']}")
        return {"message": f"Tag '{tag_id}' deleted successfully"}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to delete tag: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to delete tag: {e}")
