# Interaction controller for the month view
#
# Holds the stateful side of the calendar page: the visible month, the tag
# filter, the event list and the drag/popover state machines. Layout itself
# is delegated to the pure engine in layout.py on every call.

import calendar
import datetime
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, List, Optional, Protocol

import public_holidays
from layout import (
    CommittedEvent,
    DEFAULT_LANE_CAP,
    DAYS_PER_WEEK,
    GridWindow,
    MonthLayout,
    ProvisionalEvent,
    compute_month_layout,
    to_day,
)

logger = logging.getLogger(__name__)

UNTITLED = "(untitled)"


@dataclass(frozen=True)
class Tag:
    id: str
    name: str
    color: str


HOLIDAY_TAG = Tag(**public_holidays.HOLIDAY_TAG)


@dataclass(frozen=True)
class DateRange:
    start: datetime.date
    end: datetime.date

    def __contains__(self, day):
        return self.start <= day <= self.end


class EventRepository(Protocol):
    """Storage the controller reads from and writes to."""

    def list_events(self, start: datetime.date, end: datetime.date) -> List[CommittedEvent]: ...

    def save_event(self, event) -> CommittedEvent: ...

    def delete_event(self, event_id: Any) -> None: ...

    def list_tags(self) -> List[Tag]: ...

    def save_tag(self, tag: Tag) -> Tag: ...

    def delete_tag(self, tag_id: str) -> None: ...


def ensure_holiday_tag(tags):
    return public_holidays.ensure_holiday_tag(tags, factory=Tag)


# Messages sent to the controller by the view

@dataclass(frozen=True)
class PointerDown:
    day: datetime.date


@dataclass(frozen=True)
class PointerEnter:
    day: datetime.date


@dataclass(frozen=True)
class PointerUp:
    pass


@dataclass(frozen=True)
class OpenDetail:
    event_id: Any


@dataclass(frozen=True)
class OpenMore:
    day: datetime.date


@dataclass(frozen=True)
class Dismiss:
    pass


@dataclass(frozen=True)
class NavigateMonth:
    delta: int


# State machines

class DragState(str, Enum):
    IDLE = "idle"
    DRAGGING = "dragging"


class DragSelection:
    """Range selection by dragging over day cells."""

    def __init__(self):
        self.state = DragState.IDLE
        self.anchor: Optional[datetime.date] = None
        self.range: Optional[DateRange] = None

    @property
    def dragging(self):
        return self.state is DragState.DRAGGING

    def press(self, day):
        self.state = DragState.DRAGGING
        self.anchor = to_day(day)
        self.range = DateRange(self.anchor, self.anchor)
        return self.range

    def hover(self, day):
        if not self.dragging:
            return None
        day = to_day(day)
        self.range = DateRange(min(self.anchor, day), max(self.anchor, day))
        return self.range

    def release(self):
        """Finish the drag. Returns the selected range, or None when no drag was running."""
        if not self.dragging:
            return None
        self.state = DragState.IDLE
        return self.range

    def select(self, start, end):
        self.range = DateRange(start, end)

    def clear(self):
        self.state = DragState.IDLE
        self.anchor = None
        self.range = None


class CreatePopover:
    """Form for a new event. While open and valid it yields a provisional draft."""

    def __init__(self):
        self.close()

    def show(self, selection: DateRange, tag_id: Optional[str]):
        self.is_open = True
        self.title = ""
        self.start = selection.start
        self.end = selection.end
        self.tag_id = tag_id

    def close(self):
        self.is_open = False
        self.title = ""
        self.start = None
        self.end = None
        self.tag_id = None

    @property
    def date_invalid(self):
        if not self.is_open or self.start is None or self.end is None:
            return False
        return self.start > self.end

    def draft(self) -> Optional[ProvisionalEvent]:
        if not self.is_open or self.start is None or self.end is None:
            return None
        if self.date_invalid or not self.tag_id:
            return None
        return ProvisionalEvent(
            title=self.title.strip() or UNTITLED,
            start=self.start,
            end=self.end,
            tag_id=self.tag_id,
        )


class DetailPopover:
    """Shows one committed event and edits it."""

    def __init__(self):
        self.close()

    def show(self, event: CommittedEvent):
        self.is_open = True
        self.event = event
        self.editing = False
        self.title = event.title
        self.start = to_day(event.start)
        self.end = to_day(event.end)
        self.tag_id = event.tag_id

    def close(self):
        self.is_open = False
        self.event: Optional[CommittedEvent] = None
        self.editing = False
        self.title = ""
        self.start = None
        self.end = None
        self.tag_id = None

    def begin_edit(self):
        if self.is_open:
            self.editing = True

    @property
    def date_invalid(self):
        if not self.editing or self.start is None or self.end is None:
            return False
        return self.start > self.end

    def edited_event(self) -> Optional[CommittedEvent]:
        if not self.is_open or not self.editing or self.date_invalid:
            return None
        return replace(
            self.event,
            title=self.title.strip() or UNTITLED,
            start=self.start,
            end=self.end,
            tag_id=self.tag_id or self.event.tag_id,
        )


class MorePopover:
    """Lists the events hidden behind a "+N more" cell."""

    def __init__(self):
        self.close()

    def show(self, day, items):
        self.is_open = True
        self.day = day
        self.items = list(items)

    def close(self):
        self.is_open = False
        self.day = None
        self.items: List[CommittedEvent] = []


class CalendarController:
    """
    Stateful month view controller.

    Args:
        repository: EventRepository used to load and persist events and tags.
        year, month: Initially visible month.
        holiday_provider: Optional callable year -> list of CommittedEvent.
        lane_cap: Visible lanes per week.
        week_start: Python weekday the grid weeks start on.
    """

    def __init__(
        self,
        repository: EventRepository,
        year: int,
        month: int,
        holiday_provider: Optional[Callable[[int], List[CommittedEvent]]] = None,
        lane_cap: int = DEFAULT_LANE_CAP,
        week_start: int = calendar.SUNDAY,
    ):
        self.repository = repository
        self.year = year
        self.month = month
        self.holiday_provider = holiday_provider
        self.lane_cap = lane_cap
        self.week_start = week_start

        self.tags: List[Tag] = [HOLIDAY_TAG]
        self.selected_tag_ids: List[str] = [HOLIDAY_TAG.id]
        self.events: List[CommittedEvent] = []
        self.holiday_events: List[CommittedEvent] = []

        self.selection = DragSelection()
        self.create = CreatePopover()
        self.detail = DetailPopover()
        self.more = MorePopover()

    @property
    def window(self) -> GridWindow:
        return GridWindow.for_month(self.year, self.month, self.week_start)

    # Loading

    def load_tags(self):
        try:
            tags = self.repository.list_tags()
        except Exception as e:
            logger.error(f"Failed to load tags: {e}")
            return self.tags
        self.tags = ensure_holiday_tag(tags)
        self.selected_tag_ids = [tag.id for tag in self.tags]
        return self.tags

    def reload(self):
        """Fetch the events of the visible grid window; on failure the list is emptied."""
        window = self.window
        try:
            self.events = list(self.repository.list_events(window.first_day, window.last_day))
        except Exception as e:
            logger.error(f"Failed to load events for {self.year}-{self.month:02d}: {e}")
            self.events = []

        self.holiday_events = []
        if self.holiday_provider is not None:
            for year in sorted({window.first_day.year, window.last_day.year}):
                try:
                    self.holiday_events.extend(self.holiday_provider(year))
                except Exception as e:
                    logger.warning(f"Failed to load holidays for {year}: {e}")
        return self.events

    # Navigation

    def go_to(self, year, month):
        self.year, self.month = year, month
        self._close_popovers()
        self.selection.clear()
        return self.reload()

    def prev_month(self):
        return self._shift_month(-1)

    def next_month(self):
        return self._shift_month(1)

    def _shift_month(self, delta):
        index = self.year * 12 + (self.month - 1) + delta
        return self.go_to(index // 12, index % 12 + 1)

    # Tags

    def toggle_tag(self, tag_id):
        if tag_id in self.selected_tag_ids:
            self.selected_tag_ids = [t for t in self.selected_tag_ids if t != tag_id]
        else:
            self.selected_tag_ids = self.selected_tag_ids + [tag_id]

    def add_tag(self, tag: Tag):
        saved = self.repository.save_tag(tag)
        self.tags = ensure_holiday_tag(self.tags + [saved])
        if saved.id not in self.selected_tag_ids:
            self.selected_tag_ids = self.selected_tag_ids + [saved.id]
        return saved

    def update_tag(self, tag: Tag):
        if tag.id == HOLIDAY_TAG.id:
            raise ValueError("The holiday tag cannot be changed")
        saved = self.repository.save_tag(tag)
        self.tags = ensure_holiday_tag([saved if t.id == saved.id else t for t in self.tags])
        return saved

    def delete_tag(self, tag_id):
        if tag_id == HOLIDAY_TAG.id:
            raise ValueError("The holiday tag cannot be deleted")
        self.repository.delete_tag(tag_id)
        self.selected_tag_ids = [t for t in self.selected_tag_ids if t != tag_id]
        self.tags = ensure_holiday_tag([t for t in self.tags if t.id != tag_id])

    # Layout

    def visible_events(self) -> List[CommittedEvent]:
        selected = set(self.selected_tag_ids)
        return [ev for ev in self.events + self.holiday_events if ev.tag_id in selected]

    def layout(self) -> MonthLayout:
        events = list(self.visible_events())
        draft = self.create.draft()
        if draft is not None:
            events.append(draft)
        return compute_month_layout(events, self.window, self.lane_cap)

    def hidden_events(self, day) -> List[CommittedEvent]:
        """Events behind the "+N more" of a day cell"""
        window = self.window
        index = window.day_index(to_day(day))
        if not 0 <= index < len(window.days):
            return []
        ids = self.layout().overflow[index // DAYS_PER_WEEK][index % DAYS_PER_WEEK]
        by_id = {ev.id: ev for ev in self.visible_events()}
        return [by_id[event_id] for event_id in ids]

    # Messages

    def dispatch(self, message):
        """Apply a view message and return what the view should react to, if anything."""
        if isinstance(message, PointerDown):
            self._close_popovers()
            return self.selection.press(message.day)
        if isinstance(message, PointerEnter):
            return self.selection.hover(message.day)
        if isinstance(message, PointerUp):
            selected = self.selection.release()
            if selected is not None:
                self.create.show(selected, self.tags[0].id if self.tags else None)
            return selected
        if isinstance(message, OpenDetail):
            event = next((ev for ev in self.visible_events() if ev.id == message.event_id), None)
            if event is None:
                logger.warning(f"Detail requested for unknown event {message.event_id!r}")
                return None
            self._close_popovers()
            self.detail.show(event)
            return event
        if isinstance(message, OpenMore):
            items = self.hidden_events(message.day)
            self._close_popovers()
            self.more.show(to_day(message.day), items)
            return items
        if isinstance(message, Dismiss):
            self._close_popovers()
            return None
        if isinstance(message, NavigateMonth):
            return self._shift_month(message.delta)
        raise TypeError(f"Unknown message {type(message).__name__}")

    def _close_popovers(self):
        self.create.close()
        self.detail.close()
        self.more.close()

    # Create / edit / delete

    def edit_create(self, title=None, start=None, end=None, tag_id=None):
        """Change the new-event form; valid date changes also move the selection."""
        if not self.create.is_open:
            return None
        if title is not None:
            self.create.title = title
        if start is not None:
            self.create.start = to_day(start)
        if end is not None:
            self.create.end = to_day(end)
        if tag_id is not None:
            self.create.tag_id = tag_id
        if not self.create.date_invalid:
            self.selection.select(self.create.start, self.create.end)
        return self.create.draft()

    def submit_create(self) -> Optional[CommittedEvent]:
        draft = self.create.draft()
        if draft is None or not self.tags:
            return None
        saved = self.repository.save_event(draft)
        logger.info(f"Created event {saved.id!r}")
        self.create.close()
        self.reload()
        return saved

    def edit_detail(self, title=None, start=None, end=None, tag_id=None):
        if not self.detail.editing:
            return None
        if title is not None:
            self.detail.title = title
        if start is not None:
            self.detail.start = to_day(start)
        if end is not None:
            self.detail.end = to_day(end)
        if tag_id is not None:
            self.detail.tag_id = tag_id
        return self.detail.edited_event()

    def submit_edit(self) -> Optional[CommittedEvent]:
        edited = self.detail.edited_event()
        if edited is None:
            return None
        saved = self.repository.save_event(edited)
        logger.info(f"Updated event {saved.id!r}")
        self.detail.show(saved)
        self.reload()
        return saved

    def delete_detail(self):
        if not self.detail.is_open:
            return False
        event_id = self.detail.event.id
        self.repository.delete_event(event_id)
        logger.info(f"Deleted event {event_id!r}")
        self.detail.close()
        self.reload()
        return True
