"""
Service layer helpers that orchestrate stores and domain logic.
"""

from .availability import (
    AvailabilityService,
    BlockStore,
    BookingStore,
    DayAvailability,
    ScheduleStore,
)
from .booking import BookingRequest, BookingService, SalonRepository

__all__ = [
    "AvailabilityService",
    "BlockStore",
    "BookingRequest",
    "BookingService",
    "BookingStore",
    "DayAvailability",
    "SalonRepository",
    "ScheduleStore",
]
