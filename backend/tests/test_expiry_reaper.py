"""Tests for the pending appointment expiry reaper."""

import asyncio
from datetime import datetime, timedelta
from unittest.mock import patch

import pytest

from hospital_booking.models.generated import TIMESTAMP_FORMAT, Appointments, Notifications
from hospital_booking.services import expiry_reaper as reaper_module
from hospital_booking.services.expiry_reaper import EXPIRED_MESSAGE, ExpiryReaper
from hospital_booking.services.slots import BookingConfig

from conftest import WEDNESDAY, pushed_events

NOW = datetime(2026, 10, 18, 10, 0, 0)


def add_pending(db, patient, doctor, hospital, start_time, age, status="pending"):
    appointment = Appointments(
        patient_id=patient.id,
        doctor_id=doctor.id,
        hospital_id=hospital.id,
        date=WEDNESDAY.isoformat(),
        start_time=start_time,
        end_time=start_time,
        status=status,
        created_at=(NOW - age).strftime(TIMESTAMP_FORMAT),
    )
    db.add(appointment)
    db.commit()
    return appointment.id


@pytest.fixture
def reaper(session_factory, booking_config):
    return ExpiryReaper(session_factory, booking_config)


class TestRunOnce:
    """Tests for a single reaper cycle."""

    def test_purges_only_expired(self, reaper, db_session, patient, doctor, hospital, mock_redis):
        """A 3-minute-old pending booking goes; a 30-second-old one stays."""
        old_id = add_pending(db_session, patient, doctor, hospital, "9:00 AM", timedelta(minutes=3))
        fresh_id = add_pending(db_session, patient, doctor, hospital, "9:05 AM", timedelta(seconds=30))

        assert reaper.run_once(now=NOW) == 1

        db_session.expire_all()
        assert db_session.get(Appointments, old_id) is None
        assert db_session.get(Appointments, fresh_id) is not None

        notes = db_session.query(Notifications).all()
        assert len(notes) == 1
        assert notes[0].recipient_role == "patient"
        assert notes[0].recipient_id == patient.id
        assert notes[0].sender_id == doctor.user_id
        assert notes[0].type == "appointment_cancelled"
        assert notes[0].message == EXPIRED_MESSAGE
        assert notes[0].related_id == old_id

        events = pushed_events(mock_redis)
        assert len(events) == 1
        assert events[0]["room"] == f"patient_{patient.id}"
        assert events[0]["appointmentId"] == old_id

    def test_leaves_other_statuses(self, reaper, db_session, patient, doctor, hospital):
        confirmed_id = add_pending(
            db_session, patient, doctor, hospital, "9:00 AM", timedelta(hours=1), status="confirmed"
        )

        assert reaper.run_once(now=NOW) == 0

        db_session.expire_all()
        assert db_session.get(Appointments, confirmed_id).status == "confirmed"

    def test_frees_the_slot(self, reaper, db_session, patient, doctor, hospital):
        add_pending(db_session, patient, doctor, hospital, "9:00 AM", timedelta(minutes=5))

        reaper.run_once(now=NOW)

        # Same slot may be taken again.
        add_pending(db_session, patient, doctor, hospital, "9:00 AM", timedelta(0))
        assert db_session.query(Appointments).count() == 1

    def test_honours_configured_timeout(self, session_factory, db_session, patient, doctor, hospital):
        reaper = ExpiryReaper(session_factory, BookingConfig(pending_timeout_seconds=600))
        add_pending(db_session, patient, doctor, hospital, "9:00 AM", timedelta(minutes=5))

        assert reaper.run_once(now=NOW) == 0

    def test_row_failure_does_not_stop_cycle(self, reaper, db_session, patient, doctor, hospital):
        first_id = add_pending(db_session, patient, doctor, hospital, "9:00 AM", timedelta(minutes=3))
        second_id = add_pending(db_session, patient, doctor, hospital, "9:05 AM", timedelta(minutes=3))

        real_purge = reaper._purge_one

        def fail_first(db, appointment_id, *args):
            if appointment_id == first_id:
                raise RuntimeError("boom")
            return real_purge(db, appointment_id, *args)

        with patch.object(reaper, "_purge_one", side_effect=fail_first):
            assert reaper.run_once(now=NOW) == 1

        db_session.expire_all()
        assert db_session.get(Appointments, first_id) is not None
        assert db_session.get(Appointments, second_id) is None

    def test_notification_failure_still_purges(self, reaper, db_session, patient, doctor, hospital):
        appointment_id = add_pending(db_session, patient, doctor, hospital, "9:00 AM", timedelta(minutes=3))

        with patch.object(reaper_module.notifications, "create_notification", return_value=None):
            assert reaper.run_once(now=NOW) == 1

        db_session.expire_all()
        assert db_session.get(Appointments, appointment_id) is None

    def test_nothing_to_do(self, reaper):
        assert reaper.run_once(now=NOW) == 0


class TestLifecycle:
    """Tests for the reaper loop."""

    def test_start_and_stop(self, session_factory):
        config = BookingConfig(reaper_interval_seconds=3600)
        reaper = ExpiryReaper(session_factory, config)

        async def scenario():
            with patch.object(reaper, "run_once", return_value=0) as run_once:
                task = reaper.start()
                assert reaper.start() is task
                await asyncio.sleep(0.05)
                await reaper.stop()
            return task, run_once

        task, run_once = asyncio.run(scenario())

        assert task.done()
        run_once.assert_called_once()

    def test_loop_survives_cycle_error(self, session_factory):
        config = BookingConfig(reaper_interval_seconds=0)
        reaper = ExpiryReaper(session_factory, config)
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("db down")
            return 0

        async def scenario():
            with patch.object(reaper, "run_once", side_effect=flaky):
                reaper.start()
                for _ in range(100):
                    if len(calls) >= 2:
                        break
                    await asyncio.sleep(0.01)
                await reaper.stop()

        asyncio.run(scenario())

        assert len(calls) >= 2

    def test_stop_without_start(self, session_factory):
        reaper = ExpiryReaper(session_factory, BookingConfig())

        asyncio.run(reaper.stop())
