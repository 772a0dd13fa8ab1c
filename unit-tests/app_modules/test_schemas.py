# Test the request and response models

import pytest
import sys
import os
from pydantic import ValidationError
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', 'app'))
from schemas import *

def test_tag_create_strips_name():
    tag = TagCreate(name="  Gym ", color="#A1b2C3")
    assert tag.name == "Gym"
    assert tag.id is None

@pytest.mark.parametrize("color", ["red", "#fff", "#1234567", "123456"])
def test_tag_color_must_be_hex(color):
    with pytest.raises(ValidationError):
        TagCreate(name="Gym", color=color)
    with pytest.raises(ValidationError):
        TagUpdate(color=color)

def test_tag_update_is_partial():
    assert TagUpdate(name="New").model_dump(exclude_unset=True) == {"name": "New"}

def test_user_update_offset_range():
    assert UserUpdate(utc_offset_minutes=-600).utc_offset_minutes == -600
    with pytest.raises(ValidationError):
        UserUpdate(utc_offset_minutes=900)

def test_event_create_defaults():
    event = EventCreate(title="Meeting")
    assert event.tag_id == "t1"
    assert event.start_at is None

def test_login_response():
    response = LoginResponse(user={"id": 1, "email": "a@example.com"}, access_token="abc")
    assert response.token_type == "bearer"
    assert response.user.name is None
