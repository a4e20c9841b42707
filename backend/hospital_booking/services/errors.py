# backend/hospital_booking/services/errors.py
"""
Booking domain errors.

Each error carries the HTTP status the router answers with and a
human-readable detail the client can show as-is.
"""


class BookingError(Exception):
    status_code = 400
    detail = "Booking failed"

    def __init__(self, detail: str | None = None):
        if detail is not None:
            self.detail = detail
        super().__init__(self.detail)


# ── Input validation ─────────────────────────────────────────────────────

class InvalidSlotFormat(BookingError):
    detail = "Invalid time slot format"


class HospitalRequired(BookingError):
    detail = "Hospital ID is required and doctor has no assigned hospital."


class InvalidStatus(BookingError):
    detail = "Invalid status"


# ── Not found ────────────────────────────────────────────────────────────

class DoctorNotFound(BookingError):
    status_code = 404
    detail = "Doctor not found"


class HospitalNotFound(BookingError):
    status_code = 404
    detail = "Hospital not found"


class ReservationNotFound(BookingError):
    status_code = 404
    detail = "Appointment not found"


# ── Business rules ───────────────────────────────────────────────────────

class SelfBookingNotAllowed(BookingError):
    detail = "You cannot book an appointment with yourself."


class DoctorNotAtHospital(BookingError):
    detail = "Doctor not available at this hospital"


class DoctorUnavailable(BookingError):
    """`reason` is one of on_leave / no_schedule."""

    def __init__(self, reason: str, detail: str | None = None):
        self.reason = reason
        super().__init__(detail)


class InvalidTransition(BookingError):
    detail = "Cancelled appointments cannot change status"


class NoSlotsInHour(BookingError):
    detail = "Invalid time slot or no slots available in this hour."


class HourFull(BookingError):
    detail = "Selected time block is full, please choose another slot."


class SlotAlreadyBooked(BookingError):
    status_code = 409
    detail = "Time slot already booked"
