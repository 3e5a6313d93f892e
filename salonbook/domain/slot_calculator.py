"""
Slot engine: which start times can a service still be booked at.

Pure functions over working hours and occupied intervals. Nothing here
touches a store or reads the clock; the current instant is an argument.
"""

from typing import Iterable, Iterator, List, Optional, Sequence

from pendulum import DateTime

from .models import OccupiedInterval, Slot, WorkingHourBlock

DEFAULT_STEP_MINUTES = 30


def has_conflict(
    start: DateTime,
    end: DateTime,
    occupied: Iterable[OccupiedInterval],
) -> bool:
    """Check whether ``[start, end)`` overlaps any occupied interval."""
    return any(interval.overlaps(start, end) for interval in occupied)


def iter_available_slots(
    day: DateTime,
    working_hours: Optional[WorkingHourBlock],
    occupied: Sequence[OccupiedInterval],
    service_duration_minutes: int,
    now: DateTime,
    step_minutes: int = DEFAULT_STEP_MINUTES,
) -> Iterator[Slot]:
    """
    Lazily yield the free slots of one working-hour block on one day.

    Candidates start at the opening time and advance by ``step_minutes``;
    each candidate lasts ``service_duration_minutes``. A candidate is
    yielded when it ends by closing time, overlaps no occupied interval
    and does not start before ``now``.

    Malformed input (no working hours, a block that closes before it
    opens, a non-positive duration or step) yields nothing.
    """
    if working_hours is None:
        return
    if service_duration_minutes <= 0 or step_minutes <= 0:
        return

    day_start, day_end = working_hours.window_for(day)
    cursor = day_start

    while cursor.add(minutes=service_duration_minutes) <= day_end:
        candidate_end = cursor.add(minutes=service_duration_minutes)

        if cursor >= now and not has_conflict(cursor, candidate_end, occupied):
            yield Slot(start=cursor, end=candidate_end)

        cursor = cursor.add(minutes=step_minutes)


class SlotCalculator:
    """
    Calculates bookable slots for a single working-hour block.

    Algorithm:
    1. Anchor the block's opening and closing times on the requested day
    2. Walk candidate start times from opening, one step at a time
    3. Drop candidates that overlap an appointment or time-off block
    4. Drop candidates that start before the current instant
    5. Return the survivors in start order

    Split shifts are handled by calling once per block; see
    ``find_slots_for_blocks``.
    """

    def __init__(self, step_minutes: int = DEFAULT_STEP_MINUTES):
        self.step_minutes = step_minutes

    def find_available_slots(
        self,
        day: DateTime,
        working_hours: Optional[WorkingHourBlock],
        occupied: Sequence[OccupiedInterval],
        service_duration_minutes: int,
        now: DateTime,
    ) -> List[Slot]:
        """
        Find all free slots inside one working-hour block.

        Args:
            day: Calendar day to anchor the block's times of day on
            working_hours: The block, or None when the professional is off
            occupied: Appointments and time-off blocks, in any order
            service_duration_minutes: Length of every slot
            now: Current instant; slots starting earlier are excluded

        Returns:
            List of Slot objects in ascending start order
        """
        occupied = list(occupied)
        return list(
            iter_available_slots(
                day=day,
                working_hours=working_hours,
                occupied=occupied,
                service_duration_minutes=service_duration_minutes,
                now=now,
                step_minutes=self.step_minutes,
            )
        )

    def find_slots_for_blocks(
        self,
        day: DateTime,
        working_blocks: Sequence[WorkingHourBlock],
        occupied: Sequence[OccupiedInterval],
        service_duration_minutes: int,
        now: DateTime,
    ) -> List[Slot]:
        """
        Concatenate the free slots of several blocks on the same day.

        Blocks are processed in opening-time order so the combined list is
        ascending. Blocks are assumed not to overlap each other; slots are
        not deduplicated across blocks.
        """
        occupied = list(occupied)
        slots: List[Slot] = []

        for block in sorted(working_blocks, key=lambda b: b.start_time):
            slots.extend(
                self.find_available_slots(
                    day=day,
                    working_hours=block,
                    occupied=occupied,
                    service_duration_minutes=service_duration_minutes,
                    now=now,
                )
            )

        return slots
