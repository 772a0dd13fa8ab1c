from pydantic import BaseModel, field_validator
from typing import Optional, List, Dict
from datetime import datetime, date
import re

HEX_COLOR = re.compile(r"^#[0-9a-fA-F]{6}$")


class User(BaseModel):
    id: int
    email: str
    name: Optional[str] = None
    utc_offset_minutes: Optional[int] = None
    created_at: Optional[datetime] = None


class SignupRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    name: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class LoginResponse(BaseModel):
    user: User
    access_token: str
    token_type: str = "bearer"


class UserUpdate(BaseModel):
    name: Optional[str] = None
    utc_offset_minutes: Optional[int] = None

    @field_validator("utc_offset_minutes")
    @classmethod
    def offset_in_range(cls, value):
        if value is not None and not -14 * 60 <= value <= 14 * 60:
            raise ValueError("utc_offset_minutes must be between -840 and 840")
        return value


class Event(BaseModel):
    id: int
    calendar_id: int
    title: str
    start_at: datetime
    end_at: datetime
    memo: Optional[str] = None
    tag_id: str = "t1"
    rrule: Optional[str] = None
    created_by: int
    created_at: Optional[datetime] = None


class EventCreate(BaseModel):
    # Required fields are checked in the route to answer with 400
    title: Optional[str] = None
    start_at: Optional[str] = None
    end_at: Optional[str] = None
    memo: Optional[str] = None
    tag_id: Optional[str] = "t1"
    rrule: Optional[str] = None


class EventUpdate(BaseModel):
    title: Optional[str] = None
    start_at: Optional[str] = None
    end_at: Optional[str] = None
    memo: Optional[str] = None
    tag_id: Optional[str] = None
    rrule: Optional[str] = None


class Tag(BaseModel):
    id: str
    name: str
    color: str


class TagCreate(BaseModel):
    id: Optional[str] = None
    name: str
    color: str

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value):
        if not value.strip():
            raise ValueError("name must not be empty")
        return value.strip()

    @field_validator("color")
    @classmethod
    def color_is_hex(cls, value):
        if not HEX_COLOR.match(value):
            raise ValueError("color must look like #rrggbb")
        return value


class TagUpdate(BaseModel):
    name: Optional[str] = None
    color: Optional[str] = None

    @field_validator("color")
    @classmethod
    def color_is_hex(cls, value):
        if value is not None and not HEX_COLOR.match(value):
            raise ValueError("color must look like #rrggbb")
        return value


class LayoutSegment(BaseModel):
    event_id: str
    title: str
    tag_id: Optional[str] = None
    week_index: int
    start_column: int
    span: int
    lane: int
    provisional: bool = False


class MonthLayoutResponse(BaseModel):
    year: int
    month: int
    week_start: int
    lane_cap: int
    days: List[date]
    segments: List[LayoutSegment]
    overflow: Dict[int, Dict[int, List[str]]]
    lane_used_count: Dict[int, int]
    total_lane_count: Dict[int, int]


class MessageResponse(BaseModel):
    message: str
