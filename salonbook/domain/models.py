"""
Domain models for salon schedules, appointments and bookable slots.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from enum import Enum
from typing import Optional, Tuple

import pendulum
from pendulum import DateTime


# 0=Sunday, 6=Saturday (same numbering as the weekly schedule rows)
WEEKDAY_NAMES = {
    0: "Domingo",
    1: "Lunes",
    2: "Martes",
    3: "Miércoles",
    4: "Jueves",
    5: "Viernes",
    6: "Sábado",
}


class AppointmentStatus(str, Enum):
    """Lifecycle states of an appointment."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"

    @property
    def occupies_time(self) -> bool:
        """
        Whether an appointment in this status blocks the professional's agenda.

        This is the single rule shared by availability (read time) and
        booking conflict checks (write time).
        """
        return self in OCCUPYING_STATUSES

    @property
    def label(self) -> str:
        return STATUS_LABELS[self]


OCCUPYING_STATUSES = frozenset({AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED})

STATUS_LABELS = {
    AppointmentStatus.PENDING: "Pendiente",
    AppointmentStatus.CONFIRMED: "Confirmada",
    AppointmentStatus.COMPLETED: "Completada",
    AppointmentStatus.CANCELLED: "Cancelada",
    AppointmentStatus.NO_SHOW: "No asistió",
}


class PaymentMethod(str, Enum):
    """How the client pays; decides which list price is captured."""
    CASH = "cash"
    MERCADOPAGO = "mercadopago"
    TRANSFER = "transfer"


class BookingOrigin(str, Enum):
    """Where an appointment was created."""
    ONLINE = "online"
    MANUAL = "manual"


def parse_time_of_day(value: str | time) -> time:
    """
    Parse an ``HH:MM`` (or ``HH:MM:SS``) string into a time object.

    Raises:
        ValueError: If the value is not a valid time of day
    """
    if isinstance(value, time):
        return value

    parts = value.strip().split(":")
    if len(parts) not in (2, 3):
        raise ValueError(f"Invalid time of day: '{value}' (expected HH:MM)")

    try:
        numbers = [int(part) for part in parts]
    except ValueError as exc:
        raise ValueError(f"Invalid time of day: '{value}' (expected HH:MM)") from exc

    return time(*numbers)


def day_of_week(day: DateTime) -> int:
    """Return the weekday of a date with 0=Sunday and 6=Saturday."""
    return day.isoweekday() % 7


def at_time_of_day(day: DateTime, value: time) -> DateTime:
    """Anchor a time of day onto the calendar day of ``day``."""
    return day.set(
        hour=value.hour,
        minute=value.minute,
        second=value.second,
        microsecond=0,
    )


def intervals_overlap(
    start_a: DateTime,
    end_a: DateTime,
    start_b: DateTime,
    end_b: DateTime,
) -> bool:
    """
    Half-open overlap test for ``[start_a, end_a)`` and ``[start_b, end_b)``.

    Touching endpoints do not overlap: a slot ending exactly when an
    appointment starts is free.
    """
    return start_a < end_b and end_a > start_b


def format_price(amount: float | None) -> str:
    """Format an amount in Argentine pesos, e.g. ``$ 12.500,00``."""
    if amount is None:
        return "-"
    formatted = f"{amount:,.2f}".replace(",", "_").replace(".", ",").replace("_", ".")
    return f"$ {formatted}"


@dataclass(frozen=True)
class OccupiedInterval:
    """
    A stretch of time a slot must not overlap.

    Built from appointments that occupy time and from time-off blocks.
    Upstream rows with ``end <= start`` are carried as-is; they never
    overlap anything.
    """
    start: DateTime
    end: DateTime
    source: str = "appointment"
    reference_id: Optional[str] = None

    def overlaps(self, start: DateTime, end: DateTime) -> bool:
        return intervals_overlap(start, end, self.start, self.end)


@dataclass
class WorkingHourBlock:
    """
    One contiguous working window of a professional on a weekday.

    A professional may have several blocks on the same weekday (split shifts).
    """
    professional_id: str
    day_of_week: int  # 0=Sunday, 6=Saturday
    start_time: time
    end_time: time
    active: bool = True
    id: Optional[str] = None

    def __post_init__(self):
        if not 0 <= self.day_of_week <= 6:
            raise ValueError(f"day_of_week must be between 0 and 6, got {self.day_of_week}")
        self.start_time = parse_time_of_day(self.start_time)
        self.end_time = parse_time_of_day(self.end_time)

    def window_for(self, day: DateTime) -> Tuple[DateTime, DateTime]:
        """
        Get the absolute start and end of this block on a calendar day.

        The pair is returned unvalidated: an inverted block simply yields
        a window with no room for any slot.
        """
        return at_time_of_day(day, self.start_time), at_time_of_day(day, self.end_time)

    def __str__(self) -> str:
        return (
            f"{WEEKDAY_NAMES[self.day_of_week]} "
            f"{self.start_time.strftime('%H:%M')}-{self.end_time.strftime('%H:%M')}"
        )


@dataclass(frozen=True)
class Slot:
    """
    A bookable interval of exactly the requested service duration.
    """
    start: DateTime
    end: DateTime

    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() / 60)

    def format_time(self) -> str:
        return self.start.format("HH:mm")

    def format_display(self) -> str:
        """
        Format the slot for display.
        Format: Lunes, 25/11/2024 | 10:00 – 11:00 hs (60 min)
        """
        weekday = WEEKDAY_NAMES[day_of_week(self.start)]
        date_str = self.start.format("DD/MM/YYYY")
        time_str = f"{self.start.format('HH:mm')} – {self.end.format('HH:mm')} hs"
        return f"{weekday}, {date_str} | {time_str} ({self.duration_minutes()} min)"


@dataclass
class Professional:
    """A staff member who can be booked."""
    id: str
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    color: str = "#9ca3af"
    active: bool = True


@dataclass
class Service:
    """A service from the catalog with its current list prices."""
    id: str
    name: str
    duration_minutes: int
    cash_price: float
    card_price: float
    description: Optional[str] = None
    active: bool = True

    def price_for(self, payment_method: PaymentMethod) -> float:
        """Return the list price that applies to a payment method."""
        if payment_method == PaymentMethod.MERCADOPAGO:
            return self.card_price
        return self.cash_price


@dataclass
class Client:
    """A salon client, identified for online bookings by phone."""
    id: str
    name: str
    phone: str
    email: Optional[str] = None
    notes: Optional[str] = None


@dataclass
class Appointment:
    """A booked appointment with its price captured at booking time."""
    id: str
    professional_id: str
    service_id: str
    client_id: Optional[str]
    start: DateTime
    end: DateTime
    status: AppointmentStatus = AppointmentStatus.PENDING
    price_charged: Optional[float] = None
    payment_method: PaymentMethod = PaymentMethod.CASH
    origin: BookingOrigin = BookingOrigin.MANUAL
    notes: Optional[str] = None
    created_at: Optional[DateTime] = None

    @property
    def occupies_time(self) -> bool:
        return self.status.occupies_time

    def to_occupied_interval(self) -> OccupiedInterval:
        return OccupiedInterval(
            start=self.start,
            end=self.end,
            source="appointment",
            reference_id=self.id,
        )


@dataclass
class TimeOffBlock:
    """An ad hoc period when a professional cannot be booked."""
    id: str
    professional_id: str
    start: DateTime
    end: DateTime
    reason: Optional[str] = None

    def to_occupied_interval(self) -> OccupiedInterval:
        return OccupiedInterval(
            start=self.start,
            end=self.end,
            source="block",
            reference_id=self.id,
        )


def to_instant(value: datetime, timezone: str) -> DateTime:
    """Convert a datetime to a pendulum instant in the salon timezone; naive values are salon-local."""
    if value.tzinfo is None:
        return pendulum.instance(value, tz=timezone)
    return pendulum.instance(value).in_timezone(timezone)


def start_of_day(day: date | datetime, timezone: str) -> DateTime:
    """
    Midnight of a calendar day in the salon timezone.

    Plain dates and naive datetimes are read as salon-local; aware
    datetimes are converted to the salon timezone first.
    """
    if not isinstance(day, datetime):
        return pendulum.datetime(day.year, day.month, day.day, tz=timezone)

    if day.tzinfo is None:
        return pendulum.instance(day, tz=timezone).start_of("day")

    return pendulum.instance(day).in_timezone(timezone).start_of("day")
