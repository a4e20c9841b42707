from datetime import datetime

from sqlalchemy import Column, ForeignKey, Index, Integer, Text, UniqueConstraint, text

from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()
metadata = Base.metadata

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def now_str() -> str:
    return datetime.now().strftime(TIMESTAMP_FORMAT)


class Users(Base):
    __tablename__ = 'users'

    name = Column(Text, nullable=False)
    role = Column(Text, nullable=False, server_default=text("'patient'"))
    id = Column(Integer, primary_key=True)
    email = Column(Text, unique=True)
    mobile = Column(Text)
    created_at = Column(Text, server_default=text('CURRENT_TIMESTAMP'))

    doctor_profile = relationship('DoctorProfiles', back_populates='user', uselist=False)
    patient_profile = relationship('PatientProfiles', back_populates='user', uselist=False)
    leaves = relationship('Leaves', back_populates='doctor')


class Hospitals(Base):
    __tablename__ = 'hospitals'

    name = Column(Text, nullable=False)
    id = Column(Integer, primary_key=True)
    address = Column(Text)
    phone = Column(Text)

    doctors = relationship('DoctorHospitals', back_populates='hospital')
    helpdesks = relationship('Helpdesks', back_populates='hospital')
    appointments = relationship('Appointments', back_populates='hospital')


class DoctorProfiles(Base):
    __tablename__ = 'doctor_profiles'

    user_id = Column(ForeignKey('users.id', ondelete='CASCADE'), nullable=False, unique=True)
    id = Column(Integer, primary_key=True)
    bio = Column(Text)
    created_at = Column(Text, server_default=text('CURRENT_TIMESTAMP'))

    user = relationship('Users', back_populates='doctor_profile')
    hospitals = relationship(
        'DoctorHospitals',
        back_populates='doctor',
        order_by='DoctorHospitals.position',
    )
    appointments = relationship('Appointments', back_populates='doctor')


class DoctorHospitals(Base):
    """
    Per-hospital doctor metadata.

    `availability` is a JSON list whose entries are either structured
    ({"days": [...], "startTime", "endTime", "breakStart", "breakEnd"})
    or legacy ({"day": "Monday", "slots": ["9AM-1PM"]}).
    """
    __tablename__ = 'doctor_hospitals'
    __table_args__ = (
        UniqueConstraint('doctor_id', 'hospital_id'),
    )

    doctor_id = Column(ForeignKey('doctor_profiles.id', ondelete='CASCADE'), nullable=False)
    hospital_id = Column(ForeignKey('hospitals.id', ondelete='CASCADE'), nullable=False)
    availability = Column(Text, nullable=False, server_default=text("'[]'"))
    position = Column(Integer, nullable=False, server_default=text('0'))
    status = Column(Text, nullable=False, server_default=text("'active'"))
    id = Column(Integer, primary_key=True)
    consultation_fee = Column(Integer)

    doctor = relationship('DoctorProfiles', back_populates='hospitals')
    hospital = relationship('Hospitals', back_populates='doctors')


class Helpdesks(Base):
    __tablename__ = 'helpdesks'

    name = Column(Text, nullable=False)
    email = Column(Text, nullable=False, unique=True)
    status = Column(Text, nullable=False, server_default=text("'active'"))
    id = Column(Integer, primary_key=True)
    hospital_id = Column(ForeignKey('hospitals.id', ondelete='SET NULL'))

    hospital = relationship('Hospitals', back_populates='helpdesks')


class PatientProfiles(Base):
    __tablename__ = 'patient_profiles'

    user_id = Column(ForeignKey('users.id', ondelete='CASCADE'), nullable=False, unique=True)
    id = Column(Integer, primary_key=True)
    dob = Column(Text)
    gender = Column(Text)
    contact_number = Column(Text)

    user = relationship('Users', back_populates='patient_profile')
    hospital_records = relationship('PatientHospitalRecords', back_populates='patient_profile')


class PatientHospitalRecords(Base):
    __tablename__ = 'patient_hospital_records'
    __table_args__ = (
        UniqueConstraint('patient_profile_id', 'hospital_id'),
    )

    patient_profile_id = Column(ForeignKey('patient_profiles.id', ondelete='CASCADE'), nullable=False)
    hospital_id = Column(ForeignKey('hospitals.id', ondelete='CASCADE'), nullable=False)
    mrn = Column(Text, nullable=False)
    id = Column(Integer, primary_key=True)
    last_visit = Column(Text)

    patient_profile = relationship('PatientProfiles', back_populates='hospital_records')


class Leaves(Base):
    __tablename__ = 'leaves'

    doctor_user_id = Column(ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    start_date = Column(Text, nullable=False)
    end_date = Column(Text, nullable=False)
    reason = Column(Text, nullable=False)
    status = Column(Text, nullable=False, server_default=text("'pending'"))
    id = Column(Integer, primary_key=True)
    created_at = Column(Text, server_default=text('CURRENT_TIMESTAMP'))

    doctor = relationship('Users', back_populates='leaves')


class Appointments(Base):
    __tablename__ = 'appointments'
    __table_args__ = (
        # At most one live reservation per micro-slot.
        Index(
            'uq_appointments_live_slot',
            'doctor_id', 'hospital_id', 'date', 'start_time',
            unique=True,
            sqlite_where=text("status != 'cancelled'"),
            postgresql_where=text("status != 'cancelled'"),
        ),
        Index('ix_appointments_status_created', 'status', 'created_at'),
    )

    patient_id = Column(ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    doctor_id = Column(ForeignKey('doctor_profiles.id', ondelete='CASCADE'), nullable=False)
    hospital_id = Column(ForeignKey('hospitals.id', ondelete='CASCADE'), nullable=False)
    date = Column(Text, nullable=False)  # YYYY-MM-DD
    start_time = Column(Text, nullable=False)  # "9:05 AM"
    end_time = Column(Text, nullable=False)
    status = Column(Text, nullable=False, server_default=text("'pending'"))
    type = Column(Text, nullable=False, server_default=text("'offline'"))
    urgency = Column(Text, nullable=False, server_default=text("'non-urgent'"))
    created_at = Column(Text, nullable=False, default=now_str)
    updated_at = Column(Text, nullable=False, default=now_str, onupdate=now_str)
    id = Column(Integer, primary_key=True)
    symptoms = Column(Text)  # JSON list
    reason = Column(Text)
    mrn = Column(Text)
    patient_details = Column(Text)  # JSON object
    cancel_reason = Column(Text)

    patient = relationship('Users')
    doctor = relationship('DoctorProfiles', back_populates='appointments')
    hospital = relationship('Hospitals', back_populates='appointments')


class Notifications(Base):
    __tablename__ = 'notifications'

    recipient_role = Column(Text, nullable=False)
    recipient_id = Column(Integer, nullable=False)
    type = Column(Text, nullable=False)
    message = Column(Text, nullable=False)
    is_read = Column(Integer, nullable=False, server_default=text('0'))
    id = Column(Integer, primary_key=True)
    sender_id = Column(Integer)
    related_id = Column(Integer)  # appointment id, may outlive a purged row
    created_at = Column(Text, server_default=text('CURRENT_TIMESTAMP'))
