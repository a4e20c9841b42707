"""
Pending appointment expiry.

Periodically purges appointments left in `pending` longer than the
timeout: nobody confirmed them, so the micro-slot is given back. Each
purged appointment is hard-deleted and its patient told that the doctor
is not available.

Runs as an asyncio task in the application lifespan.
Uses synchronous DB (via asyncio.to_thread).
"""

import asyncio
import logging
from datetime import datetime, timedelta

from sqlalchemy.orm import Session, sessionmaker

from ..models.generated import TIMESTAMP_FORMAT, Appointments
from . import notifications
from .events import emit_event, room
from .slots import BookingConfig, get_booking_config

logger = logging.getLogger(__name__)

EXPIRED_MESSAGE = "Doctor is not available"


class ExpiryReaper:
    """
    Owns the purge loop and the session factory it works with.

    start() once at boot, stop() on shutdown; run_once() performs a
    single synchronous cycle and is what the loop schedules.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        config: BookingConfig | None = None,
    ):
        self.session_factory = session_factory
        self.config = config or get_booking_config()
        self._task: asyncio.Task | None = None

    @property
    def timeout(self) -> timedelta:
        return timedelta(seconds=self.config.pending_timeout_seconds)

    # ── Lifecycle ────────────────────────────────────────────────────────

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._loop(), name="expiry_reaper")
        return self._task

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _loop(self) -> None:
        logger.info("expiry_reaper loop started")

        try:
            while True:
                try:
                    await asyncio.to_thread(self.run_once)
                except asyncio.CancelledError:
                    logger.info("expiry_reaper loop cancelled")
                    raise
                except Exception:
                    logger.exception("expiry_reaper loop error")

                await asyncio.sleep(self.config.reaper_interval_seconds)
        except asyncio.CancelledError:
            pass

    # ── One cycle ────────────────────────────────────────────────────────

    def run_once(self, now: datetime | None = None) -> int:
        """Purge expired pending appointments. Returns how many were purged."""
        now = now or datetime.now()
        cutoff = (now - self.timeout).strftime(TIMESTAMP_FORMAT)

        db = self.session_factory()
        try:
            expired = (
                db.query(Appointments)
                .filter(
                    Appointments.status == "pending",
                    Appointments.created_at < cutoff,
                )
                .all()
            )

            if expired:
                logger.info(f"Found {len(expired)} expired pending appointments")

            # snapshot before the first commit expires the loaded rows
            targets = [
                (a.id, a.patient_id, a.doctor.user_id if a.doctor else None)
                for a in expired
            ]

            purged = 0
            for appointment_id, patient_id, doctor_user_id in targets:
                try:
                    if self._purge_one(db, appointment_id, patient_id, doctor_user_id):
                        purged += 1
                except Exception:
                    db.rollback()
                    logger.exception(f"Error purging appointment {appointment_id}")
            return purged
        finally:
            db.close()

    def _purge_one(
        self,
        db: Session,
        appointment_id: int,
        patient_id: int,
        doctor_user_id: int | None,
    ) -> bool:
        """Delete one appointment, then notify its patient."""
        # Guarded delete: a staff action may have confirmed it meanwhile.
        deleted = (
            db.query(Appointments)
            .filter(Appointments.id == appointment_id, Appointments.status == "pending")
            .delete(synchronize_session=False)
        )
        db.commit()
        if not deleted:
            return False

        logger.info(f"Expired pending appointment {appointment_id} purged")

        notifications.create_notification(
            db,
            recipient_role="patient",
            recipient_id=patient_id,
            sender_id=doctor_user_id,
            type=notifications.APPOINTMENT_CANCELLED,
            message=EXPIRED_MESSAGE,
            related_id=appointment_id,
        )
        emit_event(room("patient", patient_id), notifications.APPOINTMENT_CANCELLED, {
            "appointmentId": appointment_id,
            "message": EXPIRED_MESSAGE,
        })
        return True
