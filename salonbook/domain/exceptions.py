"""
Domain-specific exception hierarchy for the salon booking application.
"""

from __future__ import annotations

from typing import Sequence

from pendulum import DateTime


class SalonBookError(Exception):
    """Base class for all application-level errors."""


class SlotUnavailableError(SalonBookError):
    """Raised when a booking overlaps an appointment that still occupies time."""

    def __init__(
        self,
        professional_id: str,
        start: DateTime,
        end: DateTime,
        conflicting_ids: Sequence[str] = (),
    ) -> None:
        self.professional_id = professional_id
        self.start = start
        self.end = end
        self.conflicting_ids = list(conflicting_ids)
        super().__init__(
            f"El horario ya no está disponible "
            f"({start.format('DD/MM/YYYY HH:mm')} - {end.format('HH:mm')}). "
            f"Elegí otro horario."
        )


class BookingValidationError(SalonBookError):
    """Raised when booking input is rejected before touching the store."""


class NotFoundError(SalonBookError):
    """Raised when a referenced service, professional, client or appointment does not exist."""


class StoreError(SalonBookError):
    """Raised when the salon data cannot be loaded or saved."""
