"""
Domain layer - Pure business logic without external dependencies.
"""

from .models import (
    Appointment,
    AppointmentStatus,
    OccupiedInterval,
    Slot,
    TimeOffBlock,
    WorkingHourBlock,
    intervals_overlap,
)
from .slot_calculator import SlotCalculator, iter_available_slots

__all__ = [
    "Appointment",
    "AppointmentStatus",
    "OccupiedInterval",
    "Slot",
    "SlotCalculator",
    "TimeOffBlock",
    "WorkingHourBlock",
    "intervals_overlap",
    "iter_available_slots",
]
