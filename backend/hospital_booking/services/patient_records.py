# backend/hospital_booking/services/patient_records.py
"""
Per-hospital patient records (MRN).

MRN = hospital name initials + random 3-digit number + current year,
e.g. "CGH4172026". Generated on the first visit to a hospital, reused after.
"""

import logging
import random
from contextlib import contextmanager
from datetime import datetime

from redis.exceptions import RedisError
from sqlalchemy.orm import Session

from ..models.generated import (
    TIMESTAMP_FORMAT,
    PatientHospitalRecords,
    PatientProfiles,
)
from ..redis_client import redis_client

logger = logging.getLogger(__name__)

LOCK_TIMEOUT = 10  # seconds the lock may be held
LOCK_WAIT = 5  # seconds to wait for a concurrent booking of the same patient


def generate_mrn(hospital_name: str, now: datetime | None = None) -> str:
    now = now or datetime.now()
    initials = "".join(word[0] for word in hospital_name.split()).upper()
    return f"{initials}{random.randint(100, 999)}{now.year}"


def resolve_mrn(
    db: Session,
    patient_id: int,
    hospital,
    now: datetime | None = None,
) -> str | None:
    """
    Get or mint the patient's MRN at hospital and stamp the visit.

    Changes are added to the session, not committed. Returns None when
    the patient has no profile.
    """
    now = now or datetime.now()

    profile = db.query(PatientProfiles).filter(PatientProfiles.user_id == patient_id).first()
    if not profile:
        return None

    record = (
        db.query(PatientHospitalRecords)
        .filter(
            PatientHospitalRecords.patient_profile_id == profile.id,
            PatientHospitalRecords.hospital_id == hospital.id,
        )
        .first()
    )

    if record:
        record.last_visit = now.strftime(TIMESTAMP_FORMAT)
        return record.mrn

    mrn = generate_mrn(hospital.name, now)
    db.add(PatientHospitalRecords(
        patient_profile_id=profile.id,
        hospital_id=hospital.id,
        mrn=mrn,
        last_visit=now.strftime(TIMESTAMP_FORMAT),
    ))
    logger.info(f"New MRN {mrn} for patient={patient_id} at hospital={hospital.id}")
    return mrn


@contextmanager
def patient_lock(patient_id: int):
    """
    Serialize record writes of one patient across workers.

    Without Redis the block runs unlocked; the unique
    (patient_profile_id, hospital_id) constraint still holds.
    """
    lock = redis_client.lock(
        f"lock:patient:{patient_id}",
        timeout=LOCK_TIMEOUT,
        blocking_timeout=LOCK_WAIT,
    )
    try:
        acquired = lock.acquire()
    except RedisError as e:
        logger.warning(f"Patient lock unavailable for patient={patient_id}: {e}")
        acquired = False
    else:
        if not acquired:
            logger.warning(
                f"Patient lock busy for patient={patient_id} after {LOCK_WAIT}s, running unlocked"
            )

    try:
        yield
    finally:
        if acquired:
            try:
                lock.release()
            except RedisError as e:
                logger.warning(f"Failed to release patient lock for patient={patient_id}: {e}")
