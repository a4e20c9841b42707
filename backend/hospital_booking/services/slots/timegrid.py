# backend/hospital_booking/services/slots/timegrid.py
"""
Time grid: pure time-of-day helpers and micro-slot generation.

Times travel through the system as 12-hour display strings ("9:05 AM"),
which is also how reservations store their slot. Internally everything
is minutes since midnight.

No I/O, no state: every function here is safe to call repeatedly.
"""

import re
from dataclasses import dataclass
from typing import NamedTuple

MINUTES_PER_DAY = 24 * 60

_TIME_RE = re.compile(
    r"^\s*(?P<hour>\d{1,2})(?:\s*:\s*(?P<minute>\d{2}))?\s*(?P<meridiem>[AaPp]\.?[Mm]\.?)?\s*$"
)


class InvalidTimeFormat(ValueError):
    """Raised when a time-of-day string cannot be parsed."""


class TimeOfDay(NamedTuple):
    hour: int  # 0-23
    minute: int

    @property
    def minutes(self) -> int:
        return self.hour * 60 + self.minute

    @classmethod
    def from_minutes(cls, total: int) -> "TimeOfDay":
        total %= MINUTES_PER_DAY
        return cls(total // 60, total % 60)


@dataclass(frozen=True)
class MicroSlot:
    """Smallest bookable unit. Never persisted, always derived."""
    start: TimeOfDay
    end: TimeOfDay

    @property
    def start_time(self) -> str:
        return format_time_of_day(self.start)

    @property
    def end_time(self) -> str:
        return format_time_of_day(self.end)

    @property
    def label(self) -> str:
        return f"{self.start_time} - {self.end_time}"


def parse_time_of_day(value: str) -> TimeOfDay:
    """
    Parse a time-of-day string into 24-hour (hour, minute).

    Accepts "9:00 AM", "09:00 am", "9:00AM", "9AM", "9 PM" and
    24-hour "13:30". A bare number without meridiem is rejected.

    Raises:
        InvalidTimeFormat: value is empty or not a recognizable time.
    """
    if not isinstance(value, str):
        raise InvalidTimeFormat(f"Expected a time string, got {value!r}")

    match = _TIME_RE.match(value)
    if not match:
        raise InvalidTimeFormat(f"Unrecognized time: {value!r}")

    hour = int(match.group("hour"))
    minute = int(match.group("minute") or 0)
    meridiem = match.group("meridiem")

    if minute > 59:
        raise InvalidTimeFormat(f"Minute out of range: {value!r}")

    if meridiem:
        if not 1 <= hour <= 12:
            raise InvalidTimeFormat(f"Hour out of range for 12-hour clock: {value!r}")
        is_pm = meridiem[0].upper() == "P"
        if is_pm and hour < 12:
            hour += 12
        elif not is_pm and hour == 12:
            hour = 0
    else:
        if match.group("minute") is None:
            raise InvalidTimeFormat(f"Missing minutes or AM/PM: {value!r}")
        if hour > 23:
            raise InvalidTimeFormat(f"Hour out of range: {value!r}")

    return TimeOfDay(hour, minute)


def format_time_of_day(value: TimeOfDay) -> str:
    """Format as "H:MM AM/PM" (noon = 12 PM, midnight = 12 AM)."""
    hour, minute = value
    suffix = "PM" if hour >= 12 else "AM"
    display_hour = hour % 12 or 12
    return f"{display_hour}:{minute:02d} {suffix}"


def hour_label(hour: int) -> str:
    """Display label for a clock-hour bucket: 9 → "9:00 AM - 10:00 AM"."""
    start = TimeOfDay(hour % 24, 0)
    end = TimeOfDay((hour + 1) % 24, 0)
    return f"{format_time_of_day(start)} - {format_time_of_day(end)}"


def generate_micro_slots(
    start: TimeOfDay | str,
    end: TimeOfDay | str,
    break_start: TimeOfDay | str | None = None,
    break_end: TimeOfDay | str | None = None,
    duration: int = 5,
) -> list[MicroSlot]:
    """
    Tile [start, end) with `duration`-minute slots, skipping the break.

    When the pointer lands inside the break, or the next slot would
    straddle it, generation jumps straight to break end. Generation stops
    once a slot would end after `end`.

    Returns:
        Slots in ascending order. Empty for zero-length or inverted windows
        and for a break covering the whole window.
    """
    if duration <= 0:
        raise ValueError(f"duration must be positive, got {duration}")

    start_min = _to_minutes(start)
    end_min = _to_minutes(end)

    break_start_min = _to_minutes(break_start) if break_start is not None else None
    break_end_min = _to_minutes(break_end) if break_end is not None else None
    has_break = (
        break_start_min is not None
        and break_end_min is not None
        and break_start_min < break_end_min
    )

    slots: list[MicroSlot] = []
    current = start_min

    while current < end_min:
        if has_break and break_start_min <= current < break_end_min:
            current = break_end_min
            continue

        slot_end = current + duration
        if slot_end > end_min:
            break

        if has_break and slot_end > break_start_min and current < break_end_min:
            current = break_end_min
            continue

        slots.append(MicroSlot(TimeOfDay.from_minutes(current), TimeOfDay.from_minutes(slot_end)))
        current = slot_end

    return slots


def _to_minutes(value: TimeOfDay | str) -> int:
    if isinstance(value, str):
        value = parse_time_of_day(value)
    return value.minutes
