# backend/hospital_booking/services/slots/__init__.py
"""
Slot engine.

Level 1: Working window of a doctor for a date (availability.py)
Level 2: Micro-slots and hourly occupancy on that window (calculator.py)
"""

from .config import BookingConfig, get_booking_config
from .timegrid import (
    InvalidTimeFormat,
    MicroSlot,
    TimeOfDay,
    format_time_of_day,
    generate_micro_slots,
    parse_time_of_day,
)
from .availability import (
    Unavailable,
    WorkingWindow,
    resolve_for_doctor,
    resolve_working_window,
)
from .calculator import (
    HourBlock,
    booked_count_by_hour,
    build_hourly_view,
    resolve_booking_request,
)

__all__ = [
    "BookingConfig",
    "get_booking_config",
    "InvalidTimeFormat",
    "MicroSlot",
    "TimeOfDay",
    "format_time_of_day",
    "generate_micro_slots",
    "parse_time_of_day",
    "Unavailable",
    "WorkingWindow",
    "resolve_for_doctor",
    "resolve_working_window",
    "HourBlock",
    "booked_count_by_hour",
    "build_hourly_view",
    "resolve_booking_request",
]
