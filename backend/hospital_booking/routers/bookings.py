# backend/hospital_booking/routers/bookings.py
"""
Booking API endpoints.

POST /bookings/book          - book a micro-slot (exact or hour block)
GET  /bookings/availability  - hourly capacity of a doctor for a day
PUT  /bookings/status/{id}   - confirm / reject / cancel / complete / start
POST /bookings/start-next    - doctor moves on to the next confirmed patient
GET  /bookings/              - appointments visible to the caller
GET  /bookings/stats         - hospital day statistics (staff)
"""

from datetime import date
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..identity import Caller, get_caller
from ..schemas.bookings import (
    AppointmentRead,
    BookingCreate,
    BookingResponse,
    StartNextResponse,
    StatusUpdate,
)
from ..schemas.slots import AvailabilityResponse, HourlyStat
from ..services import reservations
from ..services.errors import BookingError

router = APIRouter(prefix="/bookings", tags=["bookings"])


def _http_error(e: BookingError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.detail)


@router.post("/book", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
def book_appointment(
    data: BookingCreate,
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    try:
        appointment = reservations.book_appointment(
            db, caller.id, data, patient_name=caller.name
        )
    except BookingError as e:
        raise _http_error(e) from None

    return BookingResponse(
        message="Appointment request sent",
        appointment=AppointmentRead.model_validate(appointment),
    )


@router.get(
    "/availability",
    response_model=AvailabilityResponse,
    response_model_exclude_none=True,
)
def check_availability(
    doctor_id: int = Query(..., alias="doctorId"),
    hospital_id: int = Query(..., alias="hospitalId"),
    target_date: date = Query(..., alias="date"),
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    """Hourly blocks; per-hour booked counts only for staff."""
    try:
        result = reservations.get_availability(
            db,
            doctor_id,
            hospital_id,
            target_date,
            include_counts=caller.role in reservations.STAFF_ROLES,
        )
    except BookingError as e:
        raise _http_error(e) from None

    return AvailabilityResponse(**result)


@router.put("/status/{id}", response_model=BookingResponse)
def update_appointment_status(
    id: int,
    data: StatusUpdate,
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    try:
        appointment = reservations.update_status(
            db,
            id,
            data.status,
            reason=data.reason,
            actor_id=caller.id,
            actor_role=caller.role,
        )
    except BookingError as e:
        raise _http_error(e) from None

    return BookingResponse(
        message=f"Appointment {data.status}",
        appointment=AppointmentRead.model_validate(appointment),
    )


@router.post("/start-next", response_model=StartNextResponse)
def start_next_appointment(
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    if caller.role != "doctor":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Doctors only")

    try:
        appointment = reservations.start_next(db, caller.id)
    except BookingError as e:
        raise _http_error(e) from None

    if appointment is None:
        return StartNextResponse(message="No more confirmed appointments for today")

    return StartNextResponse(
        message="Next appointment started",
        appointment=AppointmentRead.model_validate(appointment),
    )


@router.get("/", response_model=list[AppointmentRead])
def list_appointments(
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    return reservations.list_appointments(db, caller.id, caller.role)


@router.get("/stats", response_model=list[HourlyStat])
def get_hospital_stats(
    hospital_id: int = Query(..., alias="hospitalId"),
    target_date: date = Query(..., alias="date"),
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    if caller.role not in reservations.STAFF_ROLES:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Staff only")
    return reservations.hospital_day_stats(db, hospital_id, target_date)
