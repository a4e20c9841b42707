# backend/hospital_booking/services/slots/config.py
"""
Booking configuration for slots calculation.
"""

from dataclasses import dataclass
from functools import lru_cache


@dataclass(frozen=True)
class BookingConfig:
    """
    Configuration for the slot-allocation engine.

    Attributes:
        slot_duration_minutes: Length of one bookable micro-slot
        hourly_limit: Max appointments shown as capacity for one clock hour
        pending_timeout_seconds: Age after which an unconfirmed booking is purged
        reaper_interval_seconds: Pause between two expiry reaper cycles
    """
    slot_duration_minutes: int = 5
    hourly_limit: int = 12
    pending_timeout_seconds: int = 120
    reaper_interval_seconds: int = 60

    def __post_init__(self):
        """Validate configuration."""
        if self.slot_duration_minutes <= 0 or 60 % self.slot_duration_minutes:
            raise ValueError(
                f"slot_duration_minutes must divide an hour, got {self.slot_duration_minutes}"
            )
        if self.hourly_limit <= 0:
            raise ValueError(f"hourly_limit must be positive, got {self.hourly_limit}")
        if self.pending_timeout_seconds <= 0:
            raise ValueError(
                f"pending_timeout_seconds must be positive, got {self.pending_timeout_seconds}"
            )

    @property
    def slots_per_hour(self) -> int:
        """
        Raw number of micro-slots in a full hour.

        - 5 min → 12
        - 10 min → 6
        """
        return 60 // self.slot_duration_minutes


@lru_cache
def get_booking_config() -> BookingConfig:
    """Get booking configuration (singleton), built from application settings."""
    from ...config import settings

    return BookingConfig(
        slot_duration_minutes=settings.slot_duration_minutes,
        hourly_limit=settings.hourly_limit,
        pending_timeout_seconds=settings.pending_timeout_seconds,
        reaper_interval_seconds=settings.reaper_interval_seconds,
    )
