"""
JSON-file backed salon store.

Holds professionals, services, clients, weekly working hours,
appointments and time-off blocks in a single JSON document and
implements every store protocol the services need.
"""

from __future__ import annotations

import json
import logging
import os
import threading
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

import pendulum
from pendulum import DateTime

from ..domain.exceptions import NotFoundError, StoreError
from ..domain.models import (
    Appointment,
    AppointmentStatus,
    BookingOrigin,
    Client,
    PaymentMethod,
    Professional,
    Service,
    TimeOffBlock,
    WorkingHourBlock,
    intervals_overlap,
)

logger = logging.getLogger(__name__)


class JsonSalonStore:
    """
    Salon data kept in memory and written back to a JSON file.

    Writes are grouped with ``transaction()``: a re-entrant lock is held
    for the whole block and the file is saved once when the outermost
    block exits cleanly. Without a path the store is purely in memory.

    File format (all keys optional):
    {
        "professionals": [{"id": "...", "name": "...", "active": true}],
        "services": [{"id": "...", "name": "...", "duration_minutes": 45,
                      "cash_price": 12000, "card_price": 13000}],
        "clients": [{"id": "...", "name": "...", "phone": "..."}],
        "working_hours": [{"professional_id": "...", "day_of_week": 1,
                           "start": "09:00", "end": "13:00", "active": true}],
        "appointments": [{"id": "...", "professional_id": "...", "service_id": "...",
                          "client_id": "...", "start": "2024-11-25T10:00:00-03:00",
                          "end": "2024-11-25T10:45:00-03:00", "status": "pending"}],
        "blocks": [{"id": "...", "professional_id": "...", "start": "...",
                    "end": "...", "reason": "..."}]
    }
    """

    def __init__(self, path: Optional[Path] = None, timezone: str = "America/Argentina/Buenos_Aires"):
        """
        Initialize the store.

        Args:
            path: JSON data file; loaded if it exists, created on first save
            timezone: Salon timezone for naive timestamps in the file
        """
        self.path = path
        self.timezone = timezone
        self._lock = threading.RLock()
        self._depth = 0
        self._dirty = False

        self._clear()

        if self.path is not None and self.path.exists():
            self._load()

    @classmethod
    def from_dict(cls, data: Dict[str, Any], timezone: str = "America/Argentina/Buenos_Aires") -> "JsonSalonStore":
        """Build an in-memory store from already parsed data."""
        store = cls(path=None, timezone=timezone)
        store._populate(data)
        return store

    # Loading and saving

    def _clear(self) -> None:
        self.professionals: Dict[str, Professional] = {}
        self.services: Dict[str, Service] = {}
        self.clients: Dict[str, Client] = {}
        self.working_hours: List[WorkingHourBlock] = []
        self.appointments: Dict[str, Appointment] = {}
        self.blocks: Dict[str, TimeOffBlock] = {}

    def _load(self) -> None:
        """Load salon data from the JSON file."""
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise StoreError(f"Could not read salon data from {self.path}: {exc}") from exc

        if not isinstance(data, dict):
            raise StoreError(f"Salon data in {self.path} must be a JSON object")

        self._populate(data)
        logger.debug(
            "Loaded %d professional(s), %d service(s), %d appointment(s) from %s",
            len(self.professionals),
            len(self.services),
            len(self.appointments),
            self.path,
        )

    def _populate(self, data: Dict[str, Any]) -> None:
        try:
            for row in data.get("professionals", []):
                professional = Professional(**row)
                self.professionals[professional.id] = professional

            for row in data.get("services", []):
                service = Service(**row)
                self.services[service.id] = service

            for row in data.get("clients", []):
                client = Client(**row)
                self.clients[client.id] = client

            for row in data.get("working_hours", []):
                self.working_hours.append(
                    WorkingHourBlock(
                        professional_id=row["professional_id"],
                        day_of_week=int(row["day_of_week"]),
                        start_time=row["start"],
                        end_time=row["end"],
                        active=row.get("active", True),
                        id=row.get("id"),
                    )
                )

            for row in data.get("appointments", []):
                appointment = self._appointment_from_row(row)
                self.appointments[appointment.id] = appointment

            for row in data.get("blocks", []):
                block = TimeOffBlock(
                    id=row["id"],
                    professional_id=row["professional_id"],
                    start=self._parse_datetime(row["start"]),
                    end=self._parse_datetime(row["end"]),
                    reason=row.get("reason"),
                )
                self.blocks[block.id] = block

        except (KeyError, TypeError, ValueError) as exc:
            raise StoreError(f"Invalid salon data: {exc}") from exc

    def _appointment_from_row(self, row: Dict[str, Any]) -> Appointment:
        created_at = row.get("created_at")
        return Appointment(
            id=row["id"],
            professional_id=row["professional_id"],
            service_id=row["service_id"],
            client_id=row.get("client_id"),
            start=self._parse_datetime(row["start"]),
            end=self._parse_datetime(row["end"]),
            status=AppointmentStatus(row.get("status", AppointmentStatus.PENDING.value)),
            price_charged=row.get("price_charged"),
            payment_method=PaymentMethod(row.get("payment_method", PaymentMethod.CASH.value)),
            origin=BookingOrigin(row.get("origin", BookingOrigin.MANUAL.value)),
            notes=row.get("notes"),
            created_at=self._parse_datetime(created_at) if created_at else None,
        )

    def _parse_datetime(self, value: str) -> DateTime:
        """Parse an ISO 8601 timestamp into the salon timezone."""
        parsed = pendulum.parse(value, tz=self.timezone)
        if not isinstance(parsed, DateTime):
            raise ValueError(f"Could not parse datetime: {value}")
        return parsed.in_timezone(self.timezone)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the store to the JSON file layout."""
        return {
            "professionals": [vars(p).copy() for p in self.professionals.values()],
            "services": [vars(s).copy() for s in self.services.values()],
            "clients": [vars(c).copy() for c in self.clients.values()],
            "working_hours": [
                {
                    "id": block.id,
                    "professional_id": block.professional_id,
                    "day_of_week": block.day_of_week,
                    "start": block.start_time.strftime("%H:%M"),
                    "end": block.end_time.strftime("%H:%M"),
                    "active": block.active,
                }
                for block in self.working_hours
            ],
            "appointments": [
                {
                    "id": a.id,
                    "professional_id": a.professional_id,
                    "service_id": a.service_id,
                    "client_id": a.client_id,
                    "start": a.start.to_iso8601_string(),
                    "end": a.end.to_iso8601_string(),
                    "status": a.status.value,
                    "price_charged": a.price_charged,
                    "payment_method": a.payment_method.value,
                    "origin": a.origin.value,
                    "notes": a.notes,
                    "created_at": a.created_at.to_iso8601_string() if a.created_at else None,
                }
                for a in self.appointments.values()
            ],
            "blocks": [
                {
                    "id": b.id,
                    "professional_id": b.professional_id,
                    "start": b.start.to_iso8601_string(),
                    "end": b.end.to_iso8601_string(),
                    "reason": b.reason,
                }
                for b in self.blocks.values()
            ],
        }

    def save(self) -> None:
        """Write the data file atomically; no-op for in-memory stores."""
        if self.path is None:
            return

        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(self.to_dict(), f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as exc:
            raise StoreError(f"Could not save salon data to {self.path}: {exc}") from exc

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """
        Hold the store lock for a group of writes.

        The outermost block saves once when it exits cleanly. If the block
        raises, or the save fails, the in-memory data is restored to what it
        was when the outermost block was entered.
        """
        with self._lock:
            outermost = self._depth == 0
            snapshot = self.to_dict() if outermost else None
            self._depth += 1
            try:
                yield
                if outermost and self._dirty:
                    self.save()
            except Exception:
                if outermost:
                    self._clear()
                    self._populate(snapshot)
                    logger.debug("Rolled back uncommitted changes to %s", self.path or "in-memory store")
                raise
            finally:
                self._depth -= 1
                if outermost:
                    self._dirty = False

    # Catalog

    def list_professionals(self, active_only: bool = True) -> List[Professional]:
        professionals = [p for p in self.professionals.values() if p.active or not active_only]
        return sorted(professionals, key=lambda p: p.name.lower())

    def list_services(self, active_only: bool = True) -> List[Service]:
        services = [s for s in self.services.values() if s.active or not active_only]
        return sorted(services, key=lambda s: s.name.lower())

    def get_professional(self, professional_id: str) -> Professional:
        try:
            return self.professionals[professional_id]
        except KeyError:
            raise NotFoundError(f"Profesional no encontrado: {professional_id}") from None

    def get_service(self, service_id: str) -> Service:
        try:
            return self.services[service_id]
        except KeyError:
            raise NotFoundError(f"Servicio no encontrado: {service_id}") from None

    # Clients

    def get_client(self, client_id: str) -> Client:
        try:
            return self.clients[client_id]
        except KeyError:
            raise NotFoundError(f"Cliente no encontrado: {client_id}") from None

    def find_client_by_phone(self, phone: str) -> Optional[Client]:
        phone = phone.strip()
        for client in self.clients.values():
            if client.phone.strip() == phone:
                return client
        return None

    def create_client(self, name: str, phone: str) -> Client:
        client = Client(id=str(uuid.uuid4()), name=name, phone=phone)
        with self.transaction():
            self.clients[client.id] = client
            self._dirty = True
        return client

    # Schedule

    def get_working_hours(self, professional_id: str, day_of_week: int) -> List[WorkingHourBlock]:
        return [
            block for block in self.working_hours
            if block.professional_id == professional_id
            and block.day_of_week == day_of_week
            and block.active
        ]

    # Appointments

    def get_appointments(
        self,
        professional_id: str,
        start: DateTime,
        end: DateTime,
    ) -> List[Appointment]:
        """Appointments that occupy time and start within ``[start, end)``."""
        appointments = [
            a for a in self.appointments.values()
            if a.professional_id == professional_id
            and a.occupies_time
            and start <= a.start < end
        ]
        return sorted(appointments, key=lambda a: a.start)

    def find_conflicting_appointments(
        self,
        professional_id: str,
        start: DateTime,
        end: DateTime,
        exclude_id: Optional[str] = None,
    ) -> List[Appointment]:
        """Appointments that occupy time and overlap ``[start, end)``."""
        return [
            a for a in self.appointments.values()
            if a.professional_id == professional_id
            and a.id != exclude_id
            and a.occupies_time
            and intervals_overlap(start, end, a.start, a.end)
        ]

    def get_appointment(self, appointment_id: str) -> Appointment:
        try:
            return self.appointments[appointment_id]
        except KeyError:
            raise NotFoundError(f"Cita no encontrada: {appointment_id}") from None

    def add_appointment(self, appointment: Appointment) -> Appointment:
        with self.transaction():
            if appointment.id in self.appointments:
                raise StoreError(f"Duplicate appointment id: {appointment.id}")
            self.appointments[appointment.id] = appointment
            self._dirty = True
        return appointment

    def update_appointment(self, appointment: Appointment) -> Appointment:
        with self.transaction():
            if appointment.id not in self.appointments:
                raise NotFoundError(f"Cita no encontrada: {appointment.id}")
            self.appointments[appointment.id] = appointment
            self._dirty = True
        return appointment

    # Time-off blocks

    def get_blocks(self, professional_id: str, start: DateTime, end: DateTime) -> List[TimeOffBlock]:
        """Time-off blocks starting within ``[start, end)``."""
        blocks = [
            b for b in self.blocks.values()
            if b.professional_id == professional_id and start <= b.start < end
        ]
        return sorted(blocks, key=lambda b: b.start)

    def add_block(
        self,
        professional_id: str,
        start: DateTime,
        end: DateTime,
        reason: Optional[str] = None,
    ) -> TimeOffBlock:
        """
        Block part of a professional's day.

        Raises:
            NotFoundError: If the professional does not exist
            ValueError: If the block does not end after it starts on the same day
        """
        self.get_professional(professional_id)
        if end <= start:
            raise ValueError("La hora de fin debe ser posterior a la de inicio")
        if start.in_timezone(self.timezone).date() != end.in_timezone(self.timezone).date():
            raise ValueError("Un bloqueo debe empezar y terminar el mismo día")

        block = TimeOffBlock(
            id=str(uuid.uuid4()),
            professional_id=professional_id,
            start=start,
            end=end,
            reason=reason or None,
        )
        with self.transaction():
            self.blocks[block.id] = block
            self._dirty = True
        return block

    def remove_block(self, block_id: str) -> None:
        with self.transaction():
            if self.blocks.pop(block_id, None) is None:
                raise NotFoundError(f"Bloqueo no encontrado: {block_id}")
            self._dirty = True
