# backend/hospital_booking/services/slots/calculator.py
"""
Slot allocation on top of a resolved working window.

Produces:
  - hourly occupancy view (HourBlock per clock hour) for patients/staff
  - the concrete micro-slot behind a booking request

Requests come in two shapes:
  "9:05 AM - 9:10 AM"   exact micro-slot (legacy clients)
  "9:00 AM - 10:00 AM"  hour block → earliest untaken micro-slot in that hour

Contains:
✓ micro-slot generation (via window)
✓ existing reservations (non-cancelled start times)
✓ hourly capacity cap

Does NOT contain:
✗ leave / weekday resolution (availability.py)
✗ the authoritative double-booking guard (done against storage on insert)
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Iterable

from ..errors import HourFull, InvalidSlotFormat, NoSlotsInHour
from .availability import WorkingWindow
from .timegrid import InvalidTimeFormat, MicroSlot, hour_label, parse_time_of_day

logger = logging.getLogger(__name__)

CANCELLED = "cancelled"
LABEL_SEPARATOR = " - "


@dataclass(frozen=True)
class HourBlock:
    """Patient-facing aggregate of the micro-slots starting in one clock hour."""
    hour: int
    time_slot: str
    total_capacity: int
    booked_count: int

    @property
    def is_full(self) -> bool:
        return self.booked_count >= self.total_capacity

    @property
    def available_count(self) -> int:
        return max(0, self.total_capacity - self.booked_count)

    def as_dict(self) -> dict:
        return {
            "timeSlot": self.time_slot,
            "totalCapacity": self.total_capacity,
            "bookedCount": self.booked_count,
            "isFull": self.is_full,
            "availableCount": self.available_count,
        }


def build_hourly_view(
    window: WorkingWindow,
    reservations: Iterable,
    hourly_limit: int = 12,
    duration: int = 5,
) -> list[HourBlock]:
    """
    Group the window's micro-slots by start hour and count occupancy.

    Capacity per hour = min(micro-slots in hour, hourly_limit).
    """
    booked = booked_start_times(reservations)

    slots_by_hour: dict[int, list[MicroSlot]] = defaultdict(list)
    for slot in window.micro_slots(duration):
        slots_by_hour[slot.start.hour].append(slot)

    blocks = []
    for hour in sorted(slots_by_hour):
        slots = slots_by_hour[hour]
        blocks.append(HourBlock(
            hour=hour,
            time_slot=hour_label(hour),
            total_capacity=min(len(slots), hourly_limit),
            booked_count=sum(1 for s in slots if s.start_time in booked),
        ))

    return blocks


def resolve_booking_request(
    window: WorkingWindow,
    reservations: Iterable,
    requested_label: str | None,
    hourly_limit: int = 12,
    duration: int = 5,
) -> MicroSlot:
    """
    Map a requested label onto one concrete micro-slot.

    An exact micro-slot match is returned even if already taken; the
    caller re-verifies against storage. An hour block yields the earliest
    untaken micro-slot of that hour.

    Raises:
        InvalidSlotFormat: label has no " - " separator or a bad start time.
        NoSlotsInHour: the window has no micro-slot starting in that hour.
        HourFull: every micro-slot (or the hourly cap) in the hour is taken.
    """
    if not requested_label or LABEL_SEPARATOR not in requested_label:
        raise InvalidSlotFormat()

    req_start, req_end = (part.strip() for part in requested_label.split(LABEL_SEPARATOR, 1))
    slots = window.micro_slots(duration)

    for slot in slots:
        if slot.start_time == req_start and slot.end_time == req_end:
            return slot

    try:
        requested = parse_time_of_day(req_start)
    except InvalidTimeFormat:
        raise InvalidSlotFormat() from None

    in_hour = [s for s in slots if s.start.hour == requested.hour]
    if not in_hour:
        raise NoSlotsInHour()

    booked = booked_start_times(reservations)
    booked_in_hour = sum(1 for s in in_hour if s.start_time in booked)
    if booked_in_hour >= min(len(in_hour), hourly_limit):
        raise HourFull()

    for slot in in_hour:
        if slot.start_time not in booked:
            return slot

    raise HourFull()


def booked_start_times(reservations: Iterable) -> set[str]:
    """Start times held by non-cancelled reservations."""
    return {r.start_time for r in reservations if r.status != CANCELLED}


def booked_count_by_hour(reservations: Iterable) -> dict[int, int]:
    """Non-cancelled reservations per 24h start hour (staff view)."""
    counts: dict[int, int] = defaultdict(int)
    for r in reservations:
        if r.status == CANCELLED:
            continue
        try:
            counts[parse_time_of_day(r.start_time).hour] += 1
        except InvalidTimeFormat:
            logger.warning(f"Reservation {getattr(r, 'id', '?')} has bad start_time {r.start_time!r}")
    return dict(counts)
