# Month layout engine: places multi-day events into lanes on a 6-week grid

import calendar
import datetime
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from dateutil import parser

logger = logging.getLogger(__name__)

GRID_DAYS = 42
GRID_WEEKS = 6
DAYS_PER_WEEK = 7
DEFAULT_LANE_CAP = 3
PROVISIONAL_ID = "draft"


class LayoutPreconditionError(ValueError):
    """Raised when the caller hands the engine a malformed event or window."""


@dataclass(frozen=True)
class CommittedEvent:
    id: Any
    title: str
    start: Any
    end: Any
    tag_id: Optional[str] = None


@dataclass(frozen=True)
class ProvisionalEvent:
    """A draft event being created. Shown, but never blocks a committed event."""
    title: str
    start: Any
    end: Any
    tag_id: Optional[str] = None
    id: Any = PROVISIONAL_ID


LayoutEvent = Union[CommittedEvent, ProvisionalEvent]


@dataclass(frozen=True)
class GridWindow:
    first_day: datetime.date
    week_start: int = calendar.SUNDAY

    def __post_init__(self):
        if not isinstance(self.first_day, datetime.date) or isinstance(self.first_day, datetime.datetime):
            raise LayoutPreconditionError(f"Grid window needs a date as first day, got {self.first_day!r}")
        if self.week_start not in range(7):
            raise LayoutPreconditionError(f"Invalid week start {self.week_start!r}")
        if self.first_day.weekday() != self.week_start:
            raise LayoutPreconditionError(
                f"Grid window must start on weekday {self.week_start}, {self.first_day} is a {self.first_day.strftime('%A')}"
            )

    @classmethod
    def for_month(cls, year: int, month: int, week_start: int = calendar.SUNDAY) -> "GridWindow":
        """Window whose first week contains the first day of the given month."""
        first_of_month = datetime.date(year, month, 1)
        offset = (first_of_month.weekday() - week_start) % DAYS_PER_WEEK
        return cls(first_of_month - datetime.timedelta(days=offset), week_start)

    @property
    def last_day(self) -> datetime.date:
        return self.first_day + datetime.timedelta(days=GRID_DAYS - 1)

    @property
    def days(self) -> List[datetime.date]:
        return [self.first_day + datetime.timedelta(days=i) for i in range(GRID_DAYS)]

    def day_index(self, day: datetime.date) -> int:
        return (day - self.first_day).days


@dataclass(frozen=True)
class WeekSegment:
    event_id: Any
    week_index: int
    start_column: int
    span: int

    @property
    def end_column(self) -> int:
        return self.start_column + self.span - 1

    @property
    def mask(self) -> int:
        return ((1 << self.span) - 1) << self.start_column


@dataclass(frozen=True)
class PlacedSegment:
    event_id: Any
    week_index: int
    start_column: int
    span: int
    lane: int
    provisional: bool = False

    @property
    def end_column(self) -> int:
        return self.start_column + self.span - 1


@dataclass
class MonthLayout:
    window: GridWindow
    lane_cap: int
    segments: List[PlacedSegment]
    overflow: Dict[int, Dict[int, List[Any]]]
    lane_used_count: Dict[int, int]
    total_lane_count: Dict[int, int]
    lanes: Dict[Any, int] = field(default_factory=dict)

    def more_count(self, week_index: int, column: int) -> int:
        return len(self.overflow[week_index][column])

    def segments_for_week(self, week_index: int) -> List[PlacedSegment]:
        return [s for s in self.segments if s.week_index == week_index]


@dataclass
class _EventPack:
    event: LayoutEvent
    start: datetime.date
    start_index: int
    end_index: int
    segments: List[WeekSegment]

    @property
    def duration(self) -> int:
        return self.end_index - self.start_index + 1


def to_day(value, event_id=None) -> datetime.date:
    """
    Truncate a date, datetime or ISO 8601 string to a calendar day.

    Raises:
        LayoutPreconditionError: If the value is missing or cannot be parsed.
    """
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    if isinstance(value, str) and value:
        try:
            return parser.isoparse(value).date()
        except ValueError:
            pass
    raise LayoutPreconditionError(f"Event {event_id!r} has a missing or unparseable date: {value!r}")


def normalize_event(event: LayoutEvent) -> Tuple[datetime.date, datetime.date]:
    if not isinstance(event, (CommittedEvent, ProvisionalEvent)):
        raise LayoutPreconditionError(f"Unsupported event type {type(event).__name__}")
    start = to_day(event.start, event.id)
    end = to_day(event.end, event.id)
    return min(start, end), max(start, end)


def clip_event(event: LayoutEvent, window: GridWindow) -> Optional[Tuple[datetime.date, datetime.date]]:
    """Clip an event to the window. None means it lies entirely outside."""
    start, end = normalize_event(event)
    clipped_start = max(start, window.first_day)
    clipped_end = min(end, window.last_day)
    if clipped_start > clipped_end:
        return None
    return clipped_start, clipped_end


def segment_event(event_id, start: datetime.date, end: datetime.date, window: GridWindow) -> List[WeekSegment]:
    """Split a clipped range into one segment per week it touches."""
    start_index = window.day_index(start)
    end_index = window.day_index(end)
    segments = []
    for week in range(start_index // DAYS_PER_WEEK, end_index // DAYS_PER_WEEK + 1):
        week_first = week * DAYS_PER_WEEK
        seg_start = max(start_index, week_first)
        seg_end = min(end_index, week_first + DAYS_PER_WEEK - 1)
        segments.append(WeekSegment(event_id, week, seg_start - week_first, seg_end - seg_start + 1))
    return segments


def _pack(event: LayoutEvent, window: GridWindow) -> Optional[_EventPack]:
    clipped = clip_event(event, window)
    if clipped is None:
        return None
    start, _ = normalize_event(event)
    return _EventPack(
        event=event,
        start=start,
        start_index=window.day_index(clipped[0]),
        end_index=window.day_index(clipped[1]),
        segments=segment_event(event.id, clipped[0], clipped[1], window),
    )


def _assignment_order(pack: _EventPack):
    return (pack.start_index, -pack.duration, pack.start, str(pack.event.id))


def _fits(occupancy: List[List[int]], lane: int, pack: _EventPack) -> bool:
    if lane >= len(occupancy):
        return True
    return all(occupancy[lane][s.week_index] & s.mask == 0 for s in pack.segments)


def _commit(occupancy: List[List[int]], lane: int, pack: _EventPack):
    while len(occupancy) <= lane:
        occupancy.append([0] * GRID_WEEKS)
    for s in pack.segments:
        occupancy[lane][s.week_index] |= s.mask


def assign_lanes(packs: Iterable[_EventPack], lane_cap: int) -> Tuple[List[PlacedSegment], Dict[Any, int], List[_EventPack]]:
    """
    First-fit lane assignment.

    Committed events are placed in a deterministic order and write their
    segments into the per-lane occupancy masks. Provisional events are placed
    afterwards against the committed occupancy only, within the lane cap.

    Returns:
        tuple: (placed segments, lane per committed event id, committed packs in assignment order)
    """
    packs = list(packs)
    committed = sorted((p for p in packs if isinstance(p.event, CommittedEvent)), key=_assignment_order)
    provisional = [p for p in packs if isinstance(p.event, ProvisionalEvent)]

    occupancy: List[List[int]] = []
    lanes: Dict[Any, int] = {}
    placed: List[PlacedSegment] = []

    for pack in committed:
        lane = lanes.get(pack.event.id)
        if lane is None:
            lane = 0
            while not _fits(occupancy, lane, pack):
                lane += 1
            lanes[pack.event.id] = lane
        else:
            logger.warning(f"Event {pack.event.id!r} appears more than once, reusing lane {lane}")
        _commit(occupancy, lane, pack)
        placed.extend(
            PlacedSegment(s.event_id, s.week_index, s.start_column, s.span, lane) for s in pack.segments
        )

    for pack in provisional:
        lane = next((l for l in range(lane_cap) if _fits(occupancy, l, pack)), 0)
        placed.extend(
            PlacedSegment(s.event_id, s.week_index, s.start_column, s.span, lane, provisional=True)
            for s in pack.segments
        )

    return placed, lanes, committed


def compute_overflow(placed: List[PlacedSegment], starts: Dict[Any, datetime.date], lane_cap: int):
    """
    Build the per-cell "+N more" lists and per-week lane counts.

    Args:
        placed: Segments in assignment order.
        starts: Normalized start day per committed event id, used for ordering.
        lane_cap: Number of visible lanes.

    Returns:
        tuple: (overflow, lane_used_count, total_lane_count)
    """
    overflow = {w: {c: [] for c in range(DAYS_PER_WEEK)} for w in range(GRID_WEEKS)}
    total_lane_count = {w: 0 for w in range(GRID_WEEKS)}

    for seg in placed:
        total_lane_count[seg.week_index] = max(total_lane_count[seg.week_index], seg.lane + 1)
        if seg.provisional or seg.lane < lane_cap:
            continue
        for column in range(seg.start_column, seg.end_column + 1):
            cell = overflow[seg.week_index][column]
            if seg.event_id not in cell:
                cell.append(seg.event_id)

    for columns in overflow.values():
        for cell in columns.values():
            # stable: same-day events keep assignment order
            cell.sort(key=lambda event_id: starts[event_id])

    lane_used_count = {w: min(count, lane_cap) for w, count in total_lane_count.items()}
    return overflow, lane_used_count, total_lane_count


def compute_month_layout(events: Iterable[LayoutEvent], window: GridWindow, lane_cap: int = DEFAULT_LANE_CAP) -> MonthLayout:
    """
    Lay out events on the 42-day grid window.

    Every call recomputes from scratch; nothing is shared between calls.

    Raises:
        LayoutPreconditionError: On malformed events or an invalid lane cap.
    """
    if not isinstance(lane_cap, int) or lane_cap < 1:
        raise LayoutPreconditionError(f"Lane cap must be a positive integer, got {lane_cap!r}")

    packs = []
    for event in events:
        pack = _pack(event, window)
        if pack is not None:
            packs.append(pack)

    placed, lanes, committed = assign_lanes(packs, lane_cap)
    starts = {}
    for pack in committed:
        starts.setdefault(pack.event.id, pack.start)
    overflow, lane_used_count, total_lane_count = compute_overflow(placed, starts, lane_cap)

    return MonthLayout(
        window=window,
        lane_cap=lane_cap,
        segments=placed,
        overflow=overflow,
        lane_used_count=lane_used_count,
        total_lane_count=total_lane_count,
        lanes=lanes,
    )
