"""
Booking creation and changes, with the write-time conflict check.

Availability shown to a customer may be stale by the time they submit,
so every write re-runs the overlap test against the live store inside
the store's transaction. That check is the authoritative one.
"""

from __future__ import annotations

import dataclasses
import logging
import uuid
from datetime import datetime
from typing import ContextManager, List, Optional, Protocol

from pendulum import DateTime
from pydantic import BaseModel, ValidationError, field_validator

from ..domain.exceptions import BookingValidationError, SlotUnavailableError
from ..domain.models import (
    Appointment,
    AppointmentStatus,
    BookingOrigin,
    Client,
    PaymentMethod,
    Professional,
    Service,
    to_instant,
)
from .availability import BookingStore, Clock

logger = logging.getLogger(__name__)


class SalonRepository(BookingStore, Protocol):
    """Everything the booking flow reads and writes."""

    def get_service(self, service_id: str) -> Service:
        """Return a service or raise NotFoundError."""

    def get_professional(self, professional_id: str) -> Professional:
        """Return a professional or raise NotFoundError."""

    def get_client(self, client_id: str) -> Client:
        """Return a client or raise NotFoundError."""

    def find_client_by_phone(self, phone: str) -> Optional[Client]:
        """Return the client registered with a phone number, if any."""

    def create_client(self, name: str, phone: str) -> Client:
        """Register a new client."""

    def get_appointment(self, appointment_id: str) -> Appointment:
        """Return an appointment or raise NotFoundError."""

    def add_appointment(self, appointment: Appointment) -> Appointment:
        """Persist a new appointment."""

    def update_appointment(self, appointment: Appointment) -> Appointment:
        """Persist changes to an existing appointment."""

    def transaction(self) -> ContextManager[None]:
        """Group a conflict check and the write that depends on it."""


class BookingRequest(BaseModel):
    """An online booking as submitted by a customer."""
    client_name: str
    client_phone: str
    service_id: str
    professional_id: str
    start: datetime
    end: Optional[datetime] = None

    @field_validator("client_name", "client_phone", "service_id", "professional_id")
    @classmethod
    def strip_text(cls, value: str) -> str:
        return value.strip()


class BookingService:
    """
    Creates and modifies appointments.

    Online bookings are created as pending with the service's cash price
    captured at booking time; later price changes do not affect them.
    """

    def __init__(
        self,
        repository: SalonRepository,
        timezone: str,
        clock: Clock,
        min_name_length: int = 2,
        min_phone_length: int = 8,
    ) -> None:
        self._repository = repository
        self._timezone = timezone
        self._clock = clock
        self._min_name_length = min_name_length
        self._min_phone_length = min_phone_length

    @staticmethod
    def parse_request(data: dict) -> BookingRequest:
        """
        Build a BookingRequest from raw input.

        Raises:
            BookingValidationError: If fields are missing or malformed
        """
        try:
            return BookingRequest(**data)
        except ValidationError as exc:
            raise BookingValidationError(f"Datos inválidos: {exc}") from exc

    def create_booking(self, request: BookingRequest) -> Appointment:
        """
        Book an appointment from the online flow.

        Args:
            request: Customer-submitted booking

        Returns:
            The stored appointment (status pending, origin online)

        Raises:
            BookingValidationError: If contact data or the end time is invalid
            NotFoundError: If the service or professional does not exist
            SlotUnavailableError: If the time was taken in the meantime
        """
        self._validate_contact(request.client_name, request.client_phone)

        service = self._active_service(request.service_id)
        professional = self._active_professional(request.professional_id)

        start = to_instant(request.start, self._timezone)
        end = start.add(minutes=service.duration_minutes)

        # The end is always derived; a submitted end is only checked.
        if request.end is not None and to_instant(request.end, self._timezone) != end:
            raise BookingValidationError(
                f"La hora de fin no coincide con la duración del servicio "
                f"({service.duration_minutes} min)"
            )

        with self._repository.transaction():
            self._ensure_free(professional.id, start, end)

            client = self._repository.find_client_by_phone(request.client_phone)
            if client is None:
                client = self._repository.create_client(request.client_name, request.client_phone)
                logger.info("Registered client %s (%s)", client.id, client.phone)

            appointment = self._repository.add_appointment(
                Appointment(
                    id=str(uuid.uuid4()),
                    professional_id=professional.id,
                    service_id=service.id,
                    client_id=client.id,
                    start=start,
                    end=end,
                    status=AppointmentStatus.PENDING,
                    price_charged=service.price_for(PaymentMethod.CASH),
                    payment_method=PaymentMethod.CASH,
                    origin=BookingOrigin.ONLINE,
                    created_at=self._clock(),
                )
            )

        logger.info(
            "Online booking %s: %s with %s at %s",
            appointment.id,
            service.name,
            professional.name,
            start.to_iso8601_string(),
        )
        return appointment

    def create_manual_appointment(
        self,
        *,
        client_id: str,
        professional_id: str,
        service_id: str,
        start: datetime,
        payment_method: PaymentMethod = PaymentMethod.CASH,
        notes: Optional[str] = None,
    ) -> Appointment:
        """
        Book an appointment from the staff agenda.

        The captured price follows the payment method.

        Raises:
            NotFoundError: If the client, service or professional does not exist
            SlotUnavailableError: If the professional is already booked then
        """
        client = self._repository.get_client(client_id)
        service = self._active_service(service_id)
        professional = self._active_professional(professional_id)

        start_at = to_instant(start, self._timezone)
        end_at = start_at.add(minutes=service.duration_minutes)

        with self._repository.transaction():
            self._ensure_free(professional.id, start_at, end_at)
            appointment = self._repository.add_appointment(
                Appointment(
                    id=str(uuid.uuid4()),
                    professional_id=professional.id,
                    service_id=service.id,
                    client_id=client.id,
                    start=start_at,
                    end=end_at,
                    status=AppointmentStatus.PENDING,
                    price_charged=service.price_for(payment_method),
                    payment_method=payment_method,
                    origin=BookingOrigin.MANUAL,
                    notes=notes or None,
                    created_at=self._clock(),
                )
            )

        logger.info("Manual appointment %s for client %s", appointment.id, client.id)
        return appointment

    def reschedule(
        self,
        appointment_id: str,
        *,
        start: Optional[datetime] = None,
        professional_id: Optional[str] = None,
        service_id: Optional[str] = None,
        payment_method: Optional[PaymentMethod] = None,
        notes: Optional[str] = None,
    ) -> Appointment:
        """
        Move or edit an existing appointment.

        The end is recomputed from the (possibly new) service and the
        conflict check ignores the appointment being edited. The price is
        captured again only when the service or payment method changes.

        Raises:
            NotFoundError: If any referenced record does not exist
            SlotUnavailableError: If the new time overlaps another appointment
        """
        with self._repository.transaction():
            appointment = self._repository.get_appointment(appointment_id)

            new_service_id = service_id or appointment.service_id
            new_method = payment_method or appointment.payment_method
            service = (
                self._active_service(new_service_id)
                if new_service_id != appointment.service_id
                else self._repository.get_service(new_service_id)
            )
            professional = (
                self._active_professional(professional_id)
                if professional_id and professional_id != appointment.professional_id
                else self._repository.get_professional(appointment.professional_id)
            )

            start_at = to_instant(start, self._timezone) if start is not None else appointment.start
            end_at = start_at.add(minutes=service.duration_minutes)

            self._ensure_free(professional.id, start_at, end_at, exclude_id=appointment.id)

            price_charged = appointment.price_charged
            if new_service_id != appointment.service_id or new_method != appointment.payment_method:
                price_charged = service.price_for(new_method)

            updated = self._repository.update_appointment(
                dataclasses.replace(
                    appointment,
                    professional_id=professional.id,
                    service_id=service.id,
                    payment_method=new_method,
                    price_charged=price_charged,
                    start=start_at,
                    end=end_at,
                    notes=(notes or None) if notes is not None else appointment.notes,
                )
            )

        logger.info("Appointment %s moved to %s", updated.id, start_at.to_iso8601_string())
        return updated

    def set_status(self, appointment_id: str, status: AppointmentStatus) -> Appointment:
        """
        Change an appointment's status.

        Cancelled, completed and no-show appointments stop occupying time.
        """
        with self._repository.transaction():
            appointment = self._repository.get_appointment(appointment_id)
            previous = appointment.status
            updated = self._repository.update_appointment(dataclasses.replace(appointment, status=status))

        logger.info("Appointment %s: %s -> %s", appointment_id, previous.value, status.value)
        return updated

    def find_conflicts(
        self,
        professional_id: str,
        start: DateTime,
        end: DateTime,
        exclude_id: Optional[str] = None,
    ) -> List[Appointment]:
        """Return the appointments that would clash with ``[start, end)``."""
        candidates = self._repository.find_conflicting_appointments(
            professional_id,
            start,
            end,
            exclude_id=exclude_id,
        )
        return [a for a in candidates if a.occupies_time and a.id != exclude_id]

    def _ensure_free(
        self,
        professional_id: str,
        start: DateTime,
        end: DateTime,
        exclude_id: Optional[str] = None,
    ) -> None:
        conflicts = self.find_conflicts(professional_id, start, end, exclude_id=exclude_id)
        if conflicts:
            logger.warning(
                "Rejected booking for %s at %s: overlaps %s",
                professional_id,
                start.to_iso8601_string(),
                ", ".join(a.id for a in conflicts),
            )
            raise SlotUnavailableError(
                professional_id=professional_id,
                start=start,
                end=end,
                conflicting_ids=[a.id for a in conflicts],
            )

    def _validate_contact(self, name: str, phone: str) -> None:
        if len(name) < self._min_name_length:
            raise BookingValidationError(
                f"Nombre requerido (mínimo {self._min_name_length} caracteres)"
            )
        if len(phone) < self._min_phone_length:
            raise BookingValidationError(
                f"Teléfono inválido (mínimo {self._min_phone_length} caracteres)"
            )

    def _active_service(self, service_id: str) -> Service:
        service = self._repository.get_service(service_id)
        if not service.active:
            raise BookingValidationError(f"El servicio '{service.name}' no está disponible")
        if service.duration_minutes <= 0:
            raise BookingValidationError(f"El servicio '{service.name}' no tiene una duración válida")
        return service

    def _active_professional(self, professional_id: str) -> Professional:
        professional = self._repository.get_professional(professional_id)
        if not professional.active:
            raise BookingValidationError(f"{professional.name} no está tomando turnos")
        return professional
