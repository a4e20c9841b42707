# backend/hospital_booking/schemas/bookings.py

import json
from datetime import date
from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator
from pydantic.alias_generators import to_camel

# Wire format is camelCase ("doctorId", "timeSlot"); Python side stays snake_case.
_camel = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
    from_attributes=True,
)


class PatientDetails(BaseModel):
    """Manual override of patient data entered at booking time."""
    name: Optional[str] = None
    age: Optional[str] = None
    gender: Optional[str] = None
    duration: Optional[str] = None

    model_config = _camel


class BookingCreate(BaseModel):
    doctor_id: int
    hospital_id: Optional[int] = None
    date: date
    time_slot: str = Field(description='"9:00 AM - 10:00 AM" or an exact "9:05 AM - 9:10 AM"')

    symptoms: list[str] = []
    reason: Optional[str] = None
    type: Literal["online", "offline"] = "offline"
    urgency: Optional[str] = None
    patient_details: Optional[PatientDetails] = None

    model_config = _camel

    @field_validator("symptoms", mode="before")
    @classmethod
    def split_symptoms(cls, v):
        """Accept a single comma-separated string as well as a list."""
        if v is None:
            return []
        if isinstance(v, str):
            return [s.strip() for s in v.split(",") if s.strip()]
        return v


class StatusUpdate(BaseModel):
    status: str
    reason: Optional[str] = None

    model_config = _camel


class AppointmentRead(BaseModel):
    id: int

    patient_id: int
    doctor_id: int
    hospital_id: int

    date: date
    start_time: str
    end_time: str

    status: str
    type: str
    urgency: str
    mrn: Optional[str] = None
    symptoms: list[str] = []
    reason: Optional[str] = None
    cancel_reason: Optional[str] = None
    patient_details: Optional[PatientDetails] = None

    created_at: str
    updated_at: str

    model_config = _camel

    @field_validator("symptoms", mode="before")
    @classmethod
    def decode_symptoms(cls, v):
        if v is None or v == "":
            return []
        if isinstance(v, str):
            return json.loads(v)
        return v

    @field_validator("patient_details", mode="before")
    @classmethod
    def decode_patient_details(cls, v):
        if v is None or v == "":
            return None
        if isinstance(v, str):
            return json.loads(v)
        return v

    @computed_field(alias="timeSlot")
    @property
    def time_slot(self) -> str:
        return f"{self.start_time} - {self.end_time}"


class BookingResponse(BaseModel):
    message: str
    appointment: AppointmentRead

    model_config = _camel


class StartNextResponse(BaseModel):
    message: str
    appointment: Optional[AppointmentRead] = None

    model_config = _camel
