"""
Application services for finding bookable appointment slots.

The service fetches a professional's schedule, appointments and time-off
blocks through small store protocols and delegates the slot computation
to the domain-level ``SlotCalculator``. Any store implementation (the
bundled JSON store, a database adapter, a test stub) can be plugged in.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, Dict, List, Optional, Protocol, Sequence

import pendulum
from pendulum import DateTime

from ..domain.models import (
    Appointment,
    OccupiedInterval,
    Slot,
    TimeOffBlock,
    WorkingHourBlock,
    day_of_week,
    start_of_day,
)
from ..domain.slot_calculator import SlotCalculator

logger = logging.getLogger(__name__)

Clock = Callable[[], DateTime]


class ScheduleStore(Protocol):
    """Weekly working hours per professional."""

    def get_working_hours(self, professional_id: str, day_of_week: int) -> List[WorkingHourBlock]:
        """Return the active blocks of a professional on a weekday (0=Sunday)."""


class BookingStore(Protocol):
    """Appointments per professional."""

    def get_appointments(
        self,
        professional_id: str,
        start: DateTime,
        end: DateTime,
    ) -> List[Appointment]:
        """Return pending/confirmed appointments starting within ``[start, end)``."""

    def find_conflicting_appointments(
        self,
        professional_id: str,
        start: DateTime,
        end: DateTime,
        exclude_id: Optional[str] = None,
    ) -> List[Appointment]:
        """Return pending/confirmed appointments overlapping ``[start, end)``."""


class BlockStore(Protocol):
    """Ad hoc time-off blocks per professional."""

    def get_blocks(self, professional_id: str, start: DateTime, end: DateTime) -> List[TimeOffBlock]:
        """Return time-off blocks starting within ``[start, end)``."""


@dataclass
class DayAvailability:
    """Slots per professional for one day, plus professionals that could not be computed."""
    day: DateTime
    slots: Dict[str, List[Slot]] = field(default_factory=dict)
    failed: List[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.slots


class AvailabilityService:
    """
    Orchestrates store lookups and slot calculation.

    The read-time result is advisory; ``BookingService`` re-checks for
    conflicts when an appointment is written.
    """

    def __init__(
        self,
        schedule_store: ScheduleStore,
        booking_store: BookingStore,
        block_store: BlockStore,
        slot_calculator: SlotCalculator,
        timezone: str,
        clock: Optional[Clock] = None,
        advance_days: int = 7,
    ) -> None:
        self._schedule_store = schedule_store
        self._booking_store = booking_store
        self._block_store = block_store
        self._slot_calculator = slot_calculator
        self._timezone = timezone
        self._clock = clock or (lambda: pendulum.now(timezone))
        self._advance_days = advance_days

    @property
    def timezone(self) -> str:
        return self._timezone

    def now(self) -> DateTime:
        return self._clock()

    def occupied_intervals(self, professional_id: str, day: date | datetime) -> List[OccupiedInterval]:
        """
        Collect everything that blocks a professional's agenda on a day.

        Appointments are filtered through ``Appointment.occupies_time`` even
        if the store already did so, keeping the rule in one place.
        """
        day_start = start_of_day(day, self._timezone)
        day_end = day_start.add(days=1)

        appointments = self._booking_store.get_appointments(professional_id, day_start, day_end)
        blocks = self._block_store.get_blocks(professional_id, day_start, day_end)

        intervals = [a.to_occupied_interval() for a in appointments if a.occupies_time]
        intervals.extend(b.to_occupied_interval() for b in blocks)
        return intervals

    def find_slots(
        self,
        *,
        professional_id: str,
        day: date | datetime,
        service_duration_minutes: int,
        now: Optional[DateTime] = None,
    ) -> List[Slot]:
        """
        Retrieve a professional's data for a day and compute free slots.

        Returns an empty list when the professional does not work that day.
        """
        day_start = start_of_day(day, self._timezone)
        now = now if now is not None else self.now()

        working_blocks = self._schedule_store.get_working_hours(
            professional_id,
            day_of_week(day_start),
        )
        if not working_blocks:
            logger.debug("Professional %s does not work on %s", professional_id, day_start.to_date_string())
            return []

        occupied = self.occupied_intervals(professional_id, day_start)

        slots = self._slot_calculator.find_slots_for_blocks(
            day=day_start,
            working_blocks=working_blocks,
            occupied=occupied,
            service_duration_minutes=service_duration_minutes,
            now=now,
        )
        logger.debug(
            "Professional %s on %s: %d block(s), %d occupied interval(s), %d slot(s)",
            professional_id,
            day_start.to_date_string(),
            len(working_blocks),
            len(occupied),
            len(slots),
        )
        return slots

    def find_slots_by_professional(
        self,
        *,
        professional_ids: Sequence[str],
        day: date | datetime,
        service_duration_minutes: int,
        now: Optional[DateTime] = None,
    ) -> DayAvailability:
        """
        Compute a day's slots for several professionals.

        A failure for one professional is logged and recorded in
        ``DayAvailability.failed``; the others are still computed.
        Professionals without free slots are left out of ``slots``.
        """
        day_start = start_of_day(day, self._timezone)
        now = now if now is not None else self.now()
        result = DayAvailability(day=day_start)

        for professional_id in professional_ids:
            try:
                slots = self.find_slots(
                    professional_id=professional_id,
                    day=day_start,
                    service_duration_minutes=service_duration_minutes,
                    now=now,
                )
            except Exception:
                logger.exception(
                    "Could not compute availability for professional %s on %s",
                    professional_id,
                    day_start.to_date_string(),
                )
                result.failed.append(professional_id)
                continue

            if slots:
                result.slots[professional_id] = slots

        return result

    def booking_dates(self, today: Optional[date | datetime] = None) -> List[DateTime]:
        """Return the calendar days offered for online booking, starting today."""
        first_day = start_of_day(today if today is not None else self.now(), self._timezone)
        return [first_day.add(days=offset) for offset in range(self._advance_days)]
