# backend/hospital_booking/identity.py
"""
Caller identity.

Authentication happens upstream: the gateway verifies the caller and
forwards only the normalized identity in headers. This module just reads
them back.
"""

from dataclasses import dataclass
from fastapi import Header, HTTPException, status

ROLES = ("patient", "doctor", "helpdesk", "admin")


@dataclass(frozen=True)
class Caller:
    id: int
    role: str
    name: str | None = None


def get_caller(
    x_user_id: int | None = Header(None),
    x_user_role: str | None = Header(None),
    x_user_name: str | None = Header(None),
) -> Caller:
    if x_user_id is None or not x_user_role:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing caller identity")
    if x_user_role not in ROLES:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unknown role")
    return Caller(id=x_user_id, role=x_user_role, name=x_user_name)
