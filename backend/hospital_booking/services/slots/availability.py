# backend/hospital_booking/services/slots/availability.py
"""
Availability resolution: which working window applies to a doctor on a date.

Availability entries live on the doctor's per-hospital record in one of two
shapes, because old records were never migrated:

  Structured: {"days": ["Monday", ...], "startTime": "9:00 AM",
               "endTime": "1:00 PM", "breakStart": "12:00 PM", "breakEnd": "12:30 PM"}
  Legacy:     {"day": "Monday", "slots": ["9AM-1PM"]}

Both are normalized to WorkingWindow before any slot math runs.

Resolution order:
✓ approved leave covering the date → Unavailable(on_leave)
✓ structured entry listing the weekday
✓ legacy entry for the weekday (first range only, no break)
✗ nothing matched → Unavailable(no_schedule)
"""

import json
import logging
import re
from dataclasses import dataclass
from datetime import date

from sqlalchemy.orm import Session

from .timegrid import (
    InvalidTimeFormat,
    MicroSlot,
    TimeOfDay,
    generate_micro_slots,
    parse_time_of_day,
)

logger = logging.getLogger(__name__)

WEEKDAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]

REASON_ON_LEAVE = "on_leave"
REASON_NO_SCHEDULE = "no_schedule"
REASON_NOT_ASSIGNED = "not_assigned"

_LEGACY_TIME_RE = re.compile(r"(\d+)\s*(AM|PM)", re.IGNORECASE)


@dataclass(frozen=True)
class WorkingWindow:
    """A doctor's working hours on a set of weekdays at one hospital."""
    days: frozenset[str]
    start: TimeOfDay
    end: TimeOfDay
    break_start: TimeOfDay | None = None
    break_end: TimeOfDay | None = None

    def __post_init__(self):
        if self.start.minutes >= self.end.minutes:
            raise ValueError(f"Window start {self.start} must be before end {self.end}")
        if (self.break_start is None) != (self.break_end is None):
            raise ValueError("Break needs both start and end")
        if self.break_start is not None and not (
            self.start.minutes <= self.break_start.minutes
            < self.break_end.minutes <= self.end.minutes
        ):
            raise ValueError(
                f"Break {self.break_start}-{self.break_end} outside window {self.start}-{self.end}"
            )

    @property
    def has_break(self) -> bool:
        return self.break_start is not None

    def micro_slots(self, duration: int = 5) -> list[MicroSlot]:
        return generate_micro_slots(
            self.start, self.end, self.break_start, self.break_end, duration
        )


@dataclass(frozen=True)
class Unavailable:
    """Doctor cannot be booked on the date; `reason` tells callers why."""
    reason: str
    message: str


# ── Entry parsing (structured / legacy → WorkingWindow) ─────────────────


def load_availability(raw: str | list | None) -> list[dict]:
    """Decode the JSON availability column. Bad JSON → no entries."""
    if raw is None:
        return []
    if isinstance(raw, list):
        return raw
    try:
        entries = json.loads(raw) if raw else []
    except json.JSONDecodeError:
        logger.warning("Availability column is not valid JSON, ignoring")
        return []
    return entries if isinstance(entries, list) else []


def is_structured_entry(entry: dict) -> bool:
    return isinstance(entry.get("days"), list)


def is_legacy_entry(entry: dict) -> bool:
    return isinstance(entry.get("day"), str) and bool(entry.get("slots"))


def parse_structured_entry(entry: dict) -> WorkingWindow | None:
    """
    Normalize a structured entry. None if its times are unusable.

    A malformed break is dropped; the window itself is kept.
    """
    try:
        start = parse_time_of_day(entry.get("startTime"))
        end = parse_time_of_day(entry.get("endTime"))
    except InvalidTimeFormat as e:
        logger.warning(f"Skipping availability entry {entry!r}: {e}")
        return None

    days = frozenset(d for d in entry["days"] if isinstance(d, str))
    break_start, break_end = _parse_break(entry.get("breakStart"), entry.get("breakEnd"))

    try:
        return WorkingWindow(days, start, end, break_start, break_end)
    except ValueError as e:
        if break_start is None:
            logger.warning(f"Skipping availability entry {entry!r}: {e}")
            return None

    try:
        window = WorkingWindow(days, start, end)
    except ValueError as e:
        logger.warning(f"Skipping availability entry {entry!r}: {e}")
        return None

    logger.warning(f"Dropping invalid break in availability entry {entry!r}")
    return window


def parse_legacy_entry(entry: dict) -> WorkingWindow | None:
    """
    Normalize a legacy entry from its first compact range ("9AM-1PM").

    Legacy records carry no break.
    """
    range_str = entry["slots"][0]
    if not isinstance(range_str, str) or "-" not in range_str:
        logger.warning(f"Skipping legacy availability entry {entry!r}: bad range")
        return None

    start_str, end_str = range_str.split("-", 1)

    try:
        start = parse_time_of_day(format_legacy_time(start_str))
        end = parse_time_of_day(format_legacy_time(end_str))
        return WorkingWindow(frozenset([entry["day"]]), start, end)
    except (InvalidTimeFormat, ValueError) as e:
        logger.warning(f"Skipping legacy availability entry {entry!r}: {e}")
        return None


def format_legacy_time(value: str) -> str:
    """Turn "9AM" into "9:00 AM". Anything else is returned stripped."""
    value = value.strip()
    match = _LEGACY_TIME_RE.fullmatch(value)
    if match:
        return f"{match.group(1)}:00 {match.group(2).upper()}"
    return value


def _parse_break(
    break_start: str | None,
    break_end: str | None,
) -> tuple[TimeOfDay | None, TimeOfDay | None]:
    if not break_start or not break_end:
        return None, None
    try:
        bs = parse_time_of_day(break_start)
        be = parse_time_of_day(break_end)
    except InvalidTimeFormat:
        return None, None
    if bs == be:
        # zero-length break is a no-op
        return None, None
    return bs, be


# ── Resolution ───────────────────────────────────────────────────────────


def weekday_name(target_date: date) -> str:
    """English weekday name, independent of locale."""
    return WEEKDAYS[target_date.weekday()]


def resolve_working_window(
    entries: list[dict],
    target_date: date,
    on_leave: bool = False,
) -> WorkingWindow | Unavailable:
    """
    Resolve the effective working window for target_date.

    Leave always wins; then structured entries; then legacy entries.
    """
    day_name = weekday_name(target_date)

    if on_leave:
        return Unavailable(REASON_ON_LEAVE, "Doctor is on leave")

    for entry in entries:
        if isinstance(entry, dict) and is_structured_entry(entry) and day_name in entry["days"]:
            window = parse_structured_entry(entry)
            if window is not None:
                return window

    for entry in entries:
        if isinstance(entry, dict) and is_legacy_entry(entry) and entry["day"] == day_name:
            window = parse_legacy_entry(entry)
            if window is not None:
                return window

    return Unavailable(REASON_NO_SCHEDULE, f"Doctor is not available on {day_name}")


def resolve_for_doctor(
    db: Session,
    doctor_hospital,
    doctor_user_id: int,
    target_date: date,
) -> WorkingWindow | Unavailable:
    """Resolve using the stored per-hospital record and the leave table."""
    if doctor_hospital is None:
        return Unavailable(REASON_NOT_ASSIGNED, "Doctor not available at this hospital")

    leave = find_approved_leave(db, doctor_user_id, target_date)
    entries = load_availability(doctor_hospital.availability)
    return resolve_working_window(entries, target_date, on_leave=leave is not None)


# ── Database helpers ─────────────────────────────────────────────────────


def find_approved_leave(db: Session, doctor_user_id: int, target_date: date):
    """Get an approved leave of the doctor covering target_date, if any."""
    from ...models.generated import Leaves
    from sqlalchemy import func

    date_str = target_date.isoformat()

    return (
        db.query(Leaves)
        .filter(
            Leaves.doctor_user_id == doctor_user_id,
            Leaves.status == "approved",
            func.date(Leaves.start_date) <= date_str,
            func.date(Leaves.end_date) >= date_str,
        )
        .first()
    )
