# backend/wellness/domain/scheduling.py
"""
Pure time-slot helpers: slot generation from business hours and weekly
availability checks. No I/O; every function here is deterministic.

Times are 24-hour "HH:MM" strings throughout, matching what is stored on
bookings and availability slots.
"""

from datetime import date
import re
from typing import Any, Iterable, Iterator, Mapping, NamedTuple, Optional, Tuple

from ..core.exceptions import ValidationException

HHMM_REGEX = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")
MINUTES_PER_DAY = 24 * 60
WEEKDAY_NAMES = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)


class TimeSlot(NamedTuple):
    start_time: str
    end_time: str


def parse_hhmm(value: str, field_name: str = "time") -> int:
    """Return minutes since midnight for an HH:MM string."""
    if not isinstance(value, str):
        raise ValidationException(
            f"{field_name} must be a string in HH:MM format",
            details={"field": field_name},
        )
    match = HHMM_REGEX.fullmatch(value.strip())
    if not match:
        raise ValidationException(
            f"{field_name} must be in HH:MM format (24-hour)",
            details={"field": field_name, "value": value},
        )
    return int(match.group(1)) * 60 + int(match.group(2))


def format_hhmm(minutes: int) -> str:
    if minutes < 0 or minutes >= MINUTES_PER_DAY:
        raise ValidationException(
            "Time falls outside a single day", details={"minutes": minutes}
        )
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def add_minutes(value: str, minutes: int, field_name: str = "time") -> str:
    return format_hhmm(parse_hhmm(value, field_name) + minutes)


def ranges_overlap(start_a: int, end_a: int, start_b: int, end_b: int) -> bool:
    """Half-open interval intersection; touching edges do not overlap."""
    return start_a < end_b and start_b < end_a


def generate_slots(
    open_time: str,
    close_time: str,
    duration_minutes: int,
    break_minutes: int = 15,
) -> Iterator[TimeSlot]:
    """
    Generate candidate appointment slots between business open and close.

    Each slot lasts exactly duration_minutes and consecutive slots are
    separated by exactly break_minutes. No slot ends after close_time.
    When duration plus break does not fit in the open window, nothing is
    generated.

    Inputs are validated eagerly; the returned iterator is single-use.

    Raises:
        ValidationException: On malformed times, non-positive duration or
            negative break
    """
    open_minutes = parse_hhmm(open_time, "open_time")
    close_minutes = parse_hhmm(close_time, "close_time")
    if not isinstance(duration_minutes, int) or duration_minutes <= 0:
        raise ValidationException(
            "Service duration must be a positive number of minutes",
            details={"duration_minutes": duration_minutes},
        )
    if not isinstance(break_minutes, int) or break_minutes < 0:
        raise ValidationException(
            "Break duration cannot be negative", details={"break_minutes": break_minutes}
        )
    return _iter_slots(open_minutes, close_minutes, duration_minutes, break_minutes)


def _iter_slots(
    open_minutes: int, close_minutes: int, duration: int, gap: int
) -> Iterator[TimeSlot]:
    if duration + gap > close_minutes - open_minutes:
        return
    current = open_minutes
    while current + duration <= close_minutes:
        yield TimeSlot(format_hhmm(current), format_hhmm(current + duration))
        current += duration + gap


def _window_bounds(window: Any) -> Tuple[str, str]:
    if isinstance(window, Mapping):
        start = window.get("start_time", window.get("startTime"))
        end = window.get("end_time", window.get("endTime"))
    else:
        start, end = window
    return start, end


def windows_for_date(
    weekly_availability: Optional[Mapping[str, Iterable[Any]]], on_date: date
) -> list[Tuple[int, int]]:
    """Return the (start, end) minute windows declared for the date's weekday."""
    if not weekly_availability:
        return []
    weekday = WEEKDAY_NAMES[on_date.weekday()]
    windows: list[Tuple[int, int]] = []
    for day_name, day_windows in weekly_availability.items():
        if str(day_name).strip().lower() != weekday:
            continue
        for window in day_windows or ():
            start, end = _window_bounds(window)
            windows.append((parse_hhmm(start, "window start"), parse_hhmm(end, "window end")))
    return windows


def is_slot_available(
    slot: TimeSlot,
    weekly_availability: Optional[Mapping[str, Iterable[Any]]],
    on_date: date,
) -> bool:
    """
    True iff the slot lies entirely inside one window declared for the
    weekday of on_date.

    A slot whose end is not after its start (for example one that would
    wrap past midnight) is never available.
    """
    start = parse_hhmm(slot.start_time, "start_time")
    end = parse_hhmm(slot.end_time, "end_time")
    if end <= start:
        return False
    return any(
        window_start <= start and end <= window_end
        for window_start, window_end in windows_for_date(weekly_availability, on_date)
    )
