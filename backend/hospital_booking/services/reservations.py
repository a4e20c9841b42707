# backend/hospital_booking/services/reservations.py
"""
Reservation service: booking, status transitions and read views.

Booking steps (each a hard stop on failure):
1. Doctor exists
2. Patient is not the doctor
3. Hospital resolved (explicit, else the doctor's first one) and exists
4. Doctor works at the hospital on that date (leave / schedule)
5. Requested label → concrete micro-slot
6. Slot is still free (re-query; the partial unique index decides races)
7. MRN resolved for (patient, hospital)
8. Reservation stored as pending
9. Doctor and hospital helpdesk notified
"""

import json
import logging
from datetime import date, datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..models.generated import (
    Appointments,
    DoctorProfiles,
    Helpdesks,
    Hospitals,
    Users,
)
from ..schemas.bookings import BookingCreate
from . import notifications
from .errors import (
    DoctorNotAtHospital,
    DoctorNotFound,
    DoctorUnavailable,
    HospitalNotFound,
    HospitalRequired,
    InvalidStatus,
    InvalidTransition,
    ReservationNotFound,
    SelfBookingNotAllowed,
    SlotAlreadyBooked,
)
from .events import emit_broadcast, emit_event, room
from .patient_records import patient_lock, resolve_mrn
from .slots import (
    BookingConfig,
    Unavailable,
    booked_count_by_hour,
    build_hourly_view,
    get_booking_config,
    resolve_booking_request,
    resolve_for_doctor,
)
from .slots.availability import REASON_ON_LEAVE
from .slots.timegrid import InvalidTimeFormat, parse_time_of_day

logger = logging.getLogger(__name__)

PENDING = "pending"
CONFIRMED = "confirmed"
IN_PROGRESS = "in-progress"
COMPLETED = "completed"
CANCELLED = "cancelled"

# "rejected" is accepted on input and stored as cancelled
STATUS_UPDATES = {CONFIRMED, COMPLETED, IN_PROGRESS, CANCELLED, "rejected"}

STAFF_ROLES = ("helpdesk", "admin")


# ── Booking ──────────────────────────────────────────────────────────────


def book_appointment(
    db: Session,
    patient_id: int,
    data: BookingCreate,
    patient_name: str | None = None,
    config: BookingConfig | None = None,
) -> Appointments:
    """Book a pending appointment for patient_id. Raises BookingError subclasses."""
    config = config or get_booking_config()

    # Step 1-2: Doctor
    doctor = db.get(DoctorProfiles, data.doctor_id)
    if not doctor:
        raise DoctorNotFound()

    if doctor.user_id == patient_id:
        raise SelfBookingNotAllowed()

    # Step 3: Hospital (explicit, else doctor's first)
    hospital_id = data.hospital_id
    if not hospital_id and doctor.hospitals:
        hospital_id = doctor.hospitals[0].hospital_id
    if not hospital_id:
        raise HospitalRequired()

    hospital = db.get(Hospitals, hospital_id)
    if not hospital:
        raise HospitalNotFound()

    doctor_hospital = _doctor_hospital(doctor, hospital.id)
    if doctor_hospital is None:
        raise DoctorNotAtHospital()

    # Step 4: Working window
    window = resolve_for_doctor(db, doctor_hospital, doctor.user_id, data.date)
    if isinstance(window, Unavailable):
        raise DoctorUnavailable(window.reason, window.message)

    # Step 5: Concrete micro-slot
    date_str = data.date.isoformat()
    existing = _live_appointments(db, doctor.id, hospital.id, date_str)
    slot = resolve_booking_request(
        window,
        existing,
        data.time_slot,
        hourly_limit=config.hourly_limit,
        duration=config.slot_duration_minutes,
    )

    with patient_lock(patient_id):
        # Step 6: Authoritative check
        if _find_live_slot(db, doctor.id, hospital.id, date_str, slot.start_time):
            raise SlotAlreadyBooked()

        # Step 7-8: MRN + reservation, one transaction
        mrn = resolve_mrn(db, patient_id, hospital)

        appointment = Appointments(
            patient_id=patient_id,
            doctor_id=doctor.id,
            hospital_id=hospital.id,
            date=date_str,
            start_time=slot.start_time,
            end_time=slot.end_time,
            status=PENDING,
            type=data.type,
            urgency=data.urgency or "non-urgent",
            symptoms=json.dumps(data.symptoms),
            reason=data.reason,
            mrn=mrn,
            patient_details=(
                data.patient_details.model_dump_json(exclude_none=True)
                if data.patient_details else None
            ),
        )
        db.add(appointment)

        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            if _find_live_slot(db, doctor.id, hospital.id, date_str, slot.start_time):
                logger.info(
                    f"Slot race lost: doctor={doctor.id} hospital={hospital.id} "
                    f"date={date_str} start={slot.start_time}"
                )
                raise SlotAlreadyBooked() from None
            raise

    db.refresh(appointment)

    logger.info(
        f"Appointment booked: id={appointment.id}, patient={patient_id}, "
        f"doctor={doctor.id}, hospital={hospital.id}, "
        f"slot={date_str} {slot.start_time} - {slot.end_time}"
    )

    # Step 9: Side effects, never fail the booking
    try:
        _notify_booking(db, appointment, doctor, hospital, patient_name or "a patient")
    except Exception:
        logger.exception(f"Booking notifications failed for appointment {appointment.id}")

    return appointment


def _notify_booking(
    db: Session,
    appointment: Appointments,
    doctor: DoctorProfiles,
    hospital: Hospitals,
    patient_name: str,
) -> None:
    message = (
        f"New appointment request from {patient_name} for {appointment.date} "
        f"at {appointment.start_time} - {appointment.end_time}"
    )
    payload = {
        "appointmentId": appointment.id,
        "message": message,
    }

    notifications.create_notification(
        db,
        recipient_role="doctor",
        recipient_id=doctor.user_id,
        sender_id=appointment.patient_id,
        type=notifications.APPOINTMENT_REQUEST,
        message=message,
        related_id=appointment.id,
    )
    emit_event(room("doctor", doctor.user_id), notifications.APPOINTMENT_REQUEST, payload)

    helpdesks = db.query(Helpdesks).filter(Helpdesks.hospital_id == hospital.id).all()
    for helpdesk in helpdesks:
        notifications.create_notification(
            db,
            recipient_role="helpdesk",
            recipient_id=helpdesk.id,
            sender_id=appointment.patient_id,
            type=notifications.APPOINTMENT_REQUEST,
            message=message,
            related_id=appointment.id,
        )
    emit_event(room("helpdesk", hospital.id), notifications.APPOINTMENT_REQUEST, payload)


# ── Availability ─────────────────────────────────────────────────────────


def get_availability(
    db: Session,
    doctor_id: int,
    hospital_id: int,
    target_date: date,
    include_counts: bool = False,
    config: BookingConfig | None = None,
) -> dict:
    """
    Hourly availability of a doctor at a hospital.

    Returns:
        Dict for AvailabilityResponse. Empty slots when the doctor is on
        leave, not assigned, or does not work that weekday.
    """
    config = config or get_booking_config()

    doctor = db.get(DoctorProfiles, doctor_id)
    if not doctor:
        raise DoctorNotFound()

    window = resolve_for_doctor(
        db, _doctor_hospital(doctor, hospital_id), doctor.user_id, target_date
    )
    if isinstance(window, Unavailable):
        return {
            "slots": [],
            "message": window.message,
            "is_leave": window.reason == REASON_ON_LEAVE,
        }

    existing = _live_appointments(db, doctor.id, hospital_id, target_date.isoformat())
    blocks = build_hourly_view(
        window,
        existing,
        hourly_limit=config.hourly_limit,
        duration=config.slot_duration_minutes,
    )

    result = {"slots": [b.as_dict() for b in blocks]}
    if include_counts:
        result["booked_count_by_hour"] = booked_count_by_hour(existing)
    return result


# ── Status transitions ───────────────────────────────────────────────────


def update_status(
    db: Session,
    appointment_id: int,
    status: str,
    reason: str | None = None,
    actor_id: int | None = None,
    actor_role: str | None = None,
) -> Appointments:
    """
    Move an appointment to confirmed / completed / in-progress / cancelled.

    "rejected" is stored as cancelled. Notifications go out only after
    the change is committed.
    """
    if status not in STATUS_UPDATES:
        raise InvalidStatus()

    new_status = CANCELLED if status in ("rejected", CANCELLED) else status

    appointment = db.get(Appointments, appointment_id)
    if not appointment:
        raise ReservationNotFound()

    # cancelled is terminal; its slot may already belong to someone else
    if appointment.status == CANCELLED:
        raise InvalidTransition()

    appointment.status = new_status
    if new_status == CANCELLED:
        appointment.cancel_reason = reason

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info(f"Status change of appointment {appointment_id} collides with a live slot")
        raise SlotAlreadyBooked() from None
    db.refresh(appointment)

    logger.info(f"Appointment {appointment.id} → {new_status} (by {actor_role}={actor_id})")

    try:
        _notify_status_change(db, appointment, new_status, reason, actor_id, actor_role)
    except Exception:
        logger.exception(f"Status notifications failed for appointment {appointment.id}")

    return appointment


def _notify_status_change(
    db: Session,
    appointment: Appointments,
    new_status: str,
    reason: str | None,
    actor_id: int | None,
    actor_role: str | None,
) -> None:
    slot = f"{appointment.start_time} - {appointment.end_time}"
    when = f"{_display_date(appointment.date)} at {slot}"

    if new_status == CONFIRMED:
        notif_type = notifications.APPOINTMENT_CONFIRMED
        message = f"Your appointment on {when} has been confirmed."
    elif new_status == COMPLETED:
        notif_type = notifications.APPOINTMENT_COMPLETED
        message = f"Your appointment on {when} is completed."
    elif new_status == IN_PROGRESS:
        notif_type = notifications.SYSTEM_ALERT
        message = f"Your appointment on {when} is now in progress."
    else:
        notif_type = notifications.APPOINTMENT_CANCELLED
        message = f"Your appointment on {when} was cancelled."
        if reason:
            message += f" Reason: {reason}"

    # Patient
    notifications.create_notification(
        db,
        recipient_role="patient",
        recipient_id=appointment.patient_id,
        sender_id=actor_id,
        type=notif_type,
        message=message,
        related_id=appointment.id,
    )
    event_payload = {
        "appointmentId": appointment.id,
        "status": new_status,
        "message": message,
    }
    if new_status == CANCELLED:
        event_payload["reason"] = reason
    emit_event(room("patient", appointment.patient_id), notif_type, event_payload)

    # Doctor, unless the patient did it
    doctor = appointment.doctor
    patient = db.get(Users, appointment.patient_id)
    if actor_role != "patient" and doctor is not None:
        patient_name = patient.name if patient else "Patient"
        notifications.create_notification(
            db,
            recipient_role="doctor",
            recipient_id=doctor.user_id,
            sender_id=actor_id,
            type=notifications.SYSTEM_ALERT,
            message=f"Appointment for {patient_name} on {when} is {new_status}",
            related_id=appointment.id,
        )
        emit_event(room("doctor", doctor.user_id), "appointment:update", {
            "appointmentId": appointment.id,
            "status": new_status,
        })

    _broadcast_status(appointment, new_status)


def _broadcast_status(appointment: Appointments, new_status: str) -> None:
    doctor_user = appointment.doctor.user if appointment.doctor else None
    emit_broadcast("appointment_status_changed", {
        "appointmentId": appointment.id,
        "status": new_status,
        "doctorName": doctor_user.name if doctor_user else "Doctor",
        "hospitalId": appointment.hospital_id,
    })


def start_next(
    db: Session,
    doctor_user_id: int,
    today: date | None = None,
) -> Appointments | None:
    """
    Complete the doctor's in-progress appointments and start the next one.

    The next one is today's earliest confirmed appointment. None when
    there is nothing left to start.
    """
    today = today or date.today()

    doctor = db.query(DoctorProfiles).filter(DoctorProfiles.user_id == doctor_user_id).first()
    if not doctor:
        raise DoctorNotFound("Doctor profile not found")

    finished = (
        db.query(Appointments)
        .filter(Appointments.doctor_id == doctor.id, Appointments.status == IN_PROGRESS)
        .all()
    )
    for appointment in finished:
        appointment.status = COMPLETED

    confirmed_today = (
        db.query(Appointments)
        .filter(
            Appointments.doctor_id == doctor.id,
            Appointments.status == CONFIRMED,
            Appointments.date == today.isoformat(),
        )
        .all()
    )
    next_appointment = min(confirmed_today, key=_start_sort_key, default=None)
    if next_appointment is not None:
        next_appointment.status = IN_PROGRESS

    db.commit()

    for appointment in finished:
        _safe_broadcast(appointment, COMPLETED)
    if next_appointment is not None:
        db.refresh(next_appointment)
        _safe_broadcast(next_appointment, IN_PROGRESS)
        logger.info(f"Doctor {doctor.id} started appointment {next_appointment.id}")

    return next_appointment


def _safe_broadcast(appointment: Appointments, new_status: str) -> None:
    try:
        _broadcast_status(appointment, new_status)
    except Exception:
        logger.exception(f"Status broadcast failed for appointment {appointment.id}")


# ── Read views ───────────────────────────────────────────────────────────


def list_appointments(
    db: Session,
    caller_id: int,
    caller_role: str,
    today: date | None = None,
) -> list[Appointments]:
    """
    Appointments visible to the caller.

    patient → own; doctor → own from today; helpdesk → own hospital;
    admin → all. Sorted by date, then start time of day.
    """
    today = today or date.today()
    query = db.query(Appointments)

    if caller_role == "patient":
        query = query.filter(Appointments.patient_id == caller_id)
    elif caller_role == "doctor":
        doctor = db.query(DoctorProfiles).filter(DoctorProfiles.user_id == caller_id).first()
        if not doctor:
            return []
        query = query.filter(
            Appointments.doctor_id == doctor.id,
            Appointments.date >= today.isoformat(),
        )
    elif caller_role == "helpdesk":
        helpdesk = db.get(Helpdesks, caller_id)
        if not helpdesk or not helpdesk.hospital_id:
            return []
        query = query.filter(Appointments.hospital_id == helpdesk.hospital_id)
    elif caller_role != "admin":
        return []

    return sorted(query.all(), key=lambda a: (a.date, _start_sort_key(a)))


def hospital_day_stats(db: Session, hospital_id: int, target_date: date) -> list[dict]:
    """24 hourly buckets of non-cancelled appointments at a hospital."""
    appointments = (
        db.query(Appointments)
        .filter(
            Appointments.hospital_id == hospital_id,
            Appointments.date == target_date.isoformat(),
            Appointments.status != CANCELLED,
        )
        .all()
    )

    stats = [{"hour": hour, "count": 0, "appointments": []} for hour in range(24)]

    for appointment in appointments:
        try:
            hour = parse_time_of_day(appointment.start_time).hour
        except InvalidTimeFormat:
            continue

        doctor_user = appointment.doctor.user if appointment.doctor else None
        bucket = stats[hour]
        bucket["count"] += 1
        bucket["appointments"].append({
            "id": appointment.id,
            "patient_id": appointment.patient_id,
            "doctor_name": doctor_user.name if doctor_user else "Unknown Doctor",
            "time_slot": f"{appointment.start_time} - {appointment.end_time}",
            "reason": appointment.reason,
            "urgency": appointment.urgency,
            "status": appointment.status,
        })

    return stats


# ── Helpers ──────────────────────────────────────────────────────────────


def _doctor_hospital(doctor: DoctorProfiles, hospital_id: int | None):
    if hospital_id is None:
        return None
    for record in doctor.hospitals:
        if record.hospital_id == hospital_id:
            return record
    return None


def _start_sort_key(appointment: Appointments) -> int:
    try:
        return parse_time_of_day(appointment.start_time).minutes
    except InvalidTimeFormat:
        return 24 * 60


def _display_date(date_str: str) -> str:
    """Format a stored YYYY-MM-DD date like "Wed Oct 21 2026"."""
    try:
        return datetime.strptime(date_str, "%Y-%m-%d").strftime("%a %b %d %Y")
    except ValueError:
        return date_str


# ── Database helpers ─────────────────────────────────────────────────────


def _live_appointments(
    db: Session,
    doctor_id: int,
    hospital_id: int,
    date_str: str,
) -> list[Appointments]:
    """Non-cancelled appointments of a doctor at a hospital on a date."""
    return (
        db.query(Appointments)
        .filter(
            Appointments.doctor_id == doctor_id,
            Appointments.hospital_id == hospital_id,
            Appointments.date == date_str,
            Appointments.status != CANCELLED,
        )
        .all()
    )


def _find_live_slot(
    db: Session,
    doctor_id: int,
    hospital_id: int,
    date_str: str,
    start_time: str,
) -> Appointments | None:
    return (
        db.query(Appointments)
        .filter(
            Appointments.doctor_id == doctor_id,
            Appointments.hospital_id == hospital_id,
            Appointments.date == date_str,
            Appointments.start_time == start_time,
            Appointments.status != CANCELLED,
        )
        .first()
    )
