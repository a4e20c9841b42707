"""Shared fixtures: in-memory database, mocked Redis, seed data."""

import json
import os

# Settings are read at import time.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")
os.environ.setdefault("REAPER_ENABLED", "false")

from datetime import date
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from hospital_booking.models import Base
from hospital_booking.models.generated import (
    DoctorHospitals,
    DoctorProfiles,
    Helpdesks,
    Hospitals,
    Leaves,
    PatientProfiles,
    Users,
)
from hospital_booking.services.slots import BookingConfig

# 2026-10-21 is a Wednesday, 2026-10-19 a Monday.
WEDNESDAY = date(2026, 10, 21)
MONDAY = date(2026, 10, 19)

MORNING_SHIFT = {
    "days": ["Monday", "Wednesday"],
    "startTime": "9:00 AM",
    "endTime": "1:00 PM",
    "breakStart": "12:00 PM",
    "breakEnd": "12:30 PM",
}


@pytest.fixture
def engine():
    """Single-connection in-memory SQLite shared across sessions."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def enable_sqlite_fk(dbapi_connection, _):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def booking_config():
    return BookingConfig()


@pytest.fixture(autouse=True)
def mock_redis():
    """Redis is never reached from tests; events and locks go to a mock."""
    redis = MagicMock()
    with (
        patch("hospital_booking.services.events.redis_client", redis),
        patch("hospital_booking.services.patient_records.redis_client", redis),
    ):
        yield redis


@pytest.fixture(autouse=True)
def booking_config_defaults():
    """Keep services on default policy whatever the environment says."""
    with patch(
        "hospital_booking.services.reservations.get_booking_config",
        return_value=BookingConfig(),
    ):
        yield


def pushed_events(redis) -> list[dict]:
    """Decode every event pushed to Redis, in order."""
    return [json.loads(c.args[1]) for c in redis.rpush.call_args_list]


# ── Seed data ────────────────────────────────────────────────────────────


@pytest.fixture
def hospital(db_session):
    hospital = Hospitals(name="City General Hospital", address="1 Main St")
    db_session.add(hospital)
    db_session.commit()
    return hospital


@pytest.fixture
def other_hospital(db_session):
    hospital = Hospitals(name="Lakeside Clinic")
    db_session.add(hospital)
    db_session.commit()
    return hospital


def make_doctor(db, hospitals, availability=None, name="Dr. House"):
    """Doctor user + profile attached to hospitals in the given order."""
    user = Users(name=name, role="doctor")
    db.add(user)
    db.flush()

    doctor = DoctorProfiles(user_id=user.id)
    db.add(doctor)
    db.flush()

    for position, hospital in enumerate(hospitals):
        db.add(DoctorHospitals(
            doctor_id=doctor.id,
            hospital_id=hospital.id,
            position=position,
            availability=json.dumps(availability if availability is not None else [MORNING_SHIFT]),
        ))
    db.commit()
    return doctor


def make_patient(db, name="Jane Doe", with_profile=True):
    user = Users(name=name, role="patient")
    db.add(user)
    db.flush()
    if with_profile:
        db.add(PatientProfiles(user_id=user.id, gender="female"))
    db.commit()
    return user


@pytest.fixture
def doctor(db_session, hospital):
    return make_doctor(db_session, [hospital])


@pytest.fixture
def patient(db_session):
    return make_patient(db_session)


@pytest.fixture
def helpdesk(db_session, hospital):
    helpdesk = Helpdesks(name="Front Desk", email="desk@citygeneral.test", hospital_id=hospital.id)
    db_session.add(helpdesk)
    db_session.commit()
    return helpdesk


def add_leave(db, doctor_user_id, start, end, status="approved"):
    leave = Leaves(
        doctor_user_id=doctor_user_id,
        start_date=start.isoformat(),
        end_date=end.isoformat(),
        reason="Conference",
        status=status,
    )
    db.add(leave)
    db.commit()
    return leave
