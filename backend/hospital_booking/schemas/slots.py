# backend/hospital_booking/schemas/slots.py
"""
Pydantic schemas for availability and day statistics.
"""

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

_camel = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
    from_attributes=True,
)


class HourBlockRead(BaseModel):
    """Capacity summary of one clock hour."""
    time_slot: str = Field(description='"9:00 AM - 10:00 AM"')
    total_capacity: int
    booked_count: int
    is_full: bool
    available_count: int

    model_config = _camel


class AvailabilityResponse(BaseModel):
    slots: list[HourBlockRead]
    # staff only: {hour24: count}
    booked_count_by_hour: Optional[dict[int, int]] = None
    message: Optional[str] = None
    is_leave: bool = False

    model_config = _camel


class HourlyStatAppointment(BaseModel):
    id: int
    patient_id: int
    doctor_name: str
    time_slot: str
    reason: Optional[str] = None
    urgency: str
    status: str

    model_config = _camel


class HourlyStat(BaseModel):
    hour: int
    count: int = 0
    appointments: list[HourlyStatAppointment] = []

    model_config = _camel
