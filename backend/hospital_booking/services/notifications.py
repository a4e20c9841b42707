# backend/hospital_booking/services/notifications.py
"""
Persisted notifications.

A notification row is the durable counterpart of a real-time event.
Both are side effects of an already committed change, so failures here
are logged and swallowed: they never undo or fail a booking.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models.generated import Notifications

logger = logging.getLogger(__name__)

APPOINTMENT_REQUEST = "appointment_request"
APPOINTMENT_CONFIRMED = "appointment_confirmed"
APPOINTMENT_CANCELLED = "appointment_cancelled"
APPOINTMENT_COMPLETED = "appointment_completed"
SYSTEM_ALERT = "system_alert"


def create_notification(
    db: Session,
    *,
    recipient_role: str,
    recipient_id: int,
    type: str,
    message: str,
    sender_id: int | None = None,
    related_id: int | None = None,
) -> Notifications | None:
    """Store one notification in its own commit. Returns None on failure."""
    notification = Notifications(
        recipient_role=recipient_role,
        recipient_id=recipient_id,
        sender_id=sender_id,
        type=type,
        message=message,
        related_id=related_id,
    )
    try:
        db.add(notification)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception(
            f"Failed to store {type} notification for {recipient_role}={recipient_id}"
        )
        return None
    return notification
