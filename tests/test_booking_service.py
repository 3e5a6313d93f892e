"""
Tests for the booking flow and its write-time conflict check.
"""

import json

import pendulum
import pytest

from salonbook.adapters.json_store import JsonSalonStore
from salonbook.domain.exceptions import (
    BookingValidationError,
    NotFoundError,
    SlotUnavailableError,
    StoreError,
)
from salonbook.domain.models import AppointmentStatus, BookingOrigin, PaymentMethod
from salonbook.domain.slot_calculator import SlotCalculator
from salonbook.services.availability import AvailabilityService
from salonbook.services.booking import BookingRequest, BookingService

TZ = "America/Argentina/Buenos_Aires"
NOW = pendulum.datetime(2024, 11, 25, 8, 0, tz=TZ)


def at(hhmm: str):
    return pendulum.parse(f"2024-11-25 {hhmm}", tz=TZ)


@pytest.fixture
def store(salon_data):
    return JsonSalonStore.from_dict(salon_data, timezone=TZ)


@pytest.fixture
def booking(store):
    return BookingService(repository=store, timezone=TZ, clock=lambda: NOW)


def _request(**overrides) -> BookingRequest:
    data = {
        "client_name": "Marta Ruiz",
        "client_phone": "1166667777",
        "service_id": "corte",
        "professional_id": "ana",
        "start": "2024-11-25T11:00:00-03:00",
    }
    data.update(overrides)
    return BookingService.parse_request(data)


class TestCreateBooking:
    """Online bookings."""

    def test_creates_pending_online_appointment(self, booking, store):
        appointment = booking.create_booking(_request())

        assert appointment.status == AppointmentStatus.PENDING
        assert appointment.origin == BookingOrigin.ONLINE
        assert appointment.start == at("11:00")
        assert appointment.end == at("11:45")
        assert appointment.price_charged == 12000
        assert appointment.created_at == NOW
        assert store.get_appointment(appointment.id) is appointment

    def test_new_client_is_registered_by_phone(self, booking, store):
        appointment = booking.create_booking(_request())

        client = store.get_client(appointment.client_id)
        assert client.name == "Marta Ruiz"
        assert client.phone == "1166667777"

    def test_existing_client_is_reused(self, booking, store):
        appointment = booking.create_booking(_request(client_name="Lu", client_phone=" 1144443333 "))

        assert appointment.client_id == "c-001"
        assert len(store.clients) == 1

    def test_naive_start_is_salon_local(self, booking):
        appointment = booking.create_booking(_request(start="2024-11-25T11:00:00"))

        assert appointment.start == at("11:00")

    def test_conflict_is_rejected(self, booking):
        with pytest.raises(SlotUnavailableError) as exc_info:
            booking.create_booking(_request(start="2024-11-25T10:30:00-03:00"))

        assert exc_info.value.conflicting_ids == ["a-001"]
        assert exc_info.value.professional_id == "ana"
        assert "ya no está disponible" in str(exc_info.value)

    def test_touching_previous_appointment_is_accepted(self, booking):
        appointment = booking.create_booking(_request(start="2024-11-25T10:45:00-03:00"))

        assert appointment.start == at("10:45")

    def test_cancelled_appointment_does_not_block(self, booking):
        # a-002 (cancelled) sits at 11:00-11:45
        appointment = booking.create_booking(_request(start="2024-11-25T11:15:00-03:00"))

        assert appointment.start == at("11:15")

    def test_conflicts_are_scoped_to_the_professional(self, booking):
        appointment = booking.create_booking(
            _request(professional_id="bruno", start="2024-11-25T10:00:00-03:00")
        )

        assert appointment.professional_id == "bruno"

    def test_second_booking_for_same_slot_fails(self, booking):
        booking.create_booking(_request())

        with pytest.raises(SlotUnavailableError):
            booking.create_booking(_request(client_phone="1199998888"))

    def test_end_is_derived_from_service(self, booking):
        appointment = booking.create_booking(_request(end="2024-11-25T11:45:00-03:00"))

        assert appointment.end == at("11:45")

    def test_mismatching_end_is_rejected(self, booking):
        with pytest.raises(BookingValidationError, match="duración"):
            booking.create_booking(_request(end="2024-11-25T13:00:00-03:00"))

    @pytest.mark.parametrize(
        "overrides",
        [
            {"client_name": "M"},
            {"client_phone": "1234567"},
            {"client_phone": "   1234   "},
        ],
    )
    def test_contact_minimum_lengths(self, booking, overrides):
        with pytest.raises(BookingValidationError):
            booking.create_booking(_request(**overrides))

    def test_unknown_service(self, booking):
        with pytest.raises(NotFoundError):
            booking.create_booking(_request(service_id="nope"))

    def test_inactive_service_or_professional(self, booking):
        with pytest.raises(BookingValidationError):
            booking.create_booking(_request(service_id="alisado"))
        with pytest.raises(BookingValidationError):
            booking.create_booking(_request(professional_id="carla"))

    def test_malformed_request(self):
        with pytest.raises(BookingValidationError, match="Datos inválidos"):
            BookingService.parse_request({"client_name": "Marta", "start": "not a date"})

    def test_price_is_a_snapshot(self, booking, store):
        appointment = booking.create_booking(_request())

        store.get_service("corte").cash_price = 15000

        assert store.get_appointment(appointment.id).price_charged == 12000

    def test_booking_is_saved_to_disk(self, salon_data, tmp_path):
        path = tmp_path / "salon.json"
        path.write_text(json.dumps(salon_data), encoding="utf-8")
        store = JsonSalonStore(path=path, timezone=TZ)
        service = BookingService(repository=store, timezone=TZ, clock=lambda: NOW)

        appointment = service.create_booking(_request())

        reloaded = JsonSalonStore(path=path, timezone=TZ)
        stored = reloaded.get_appointment(appointment.id)
        assert stored.start == at("11:00")
        assert stored.origin == BookingOrigin.ONLINE
        assert reloaded.find_client_by_phone("1166667777") is not None


class TestManualAppointments:
    """Appointments created from the staff agenda."""

    def test_price_follows_payment_method(self, booking):
        appointment = booking.create_manual_appointment(
            client_id="c-001",
            professional_id="bruno",
            service_id="color",
            start=at("15:00"),
            payment_method=PaymentMethod.MERCADOPAGO,
            notes="Trae su propio tono",
        )

        assert appointment.price_charged == 42000
        assert appointment.origin == BookingOrigin.MANUAL
        assert appointment.end == at("17:00")
        assert appointment.notes == "Trae su propio tono"

    def test_unknown_client(self, booking):
        with pytest.raises(NotFoundError):
            booking.create_manual_appointment(
                client_id="nobody",
                professional_id="bruno",
                service_id="corte",
                start=at("15:00"),
            )

    def test_same_conflict_rule(self, booking):
        with pytest.raises(SlotUnavailableError):
            booking.create_manual_appointment(
                client_id="c-001",
                professional_id="ana",
                service_id="corte",
                start=at("09:30"),
            )


class TestReschedule:
    """Moving and editing appointments."""

    def test_overlapping_its_own_old_time_is_allowed(self, booking):
        moved = booking.reschedule("a-001", start=at("10:15"))

        assert moved.start == at("10:15")
        assert moved.end == at("11:00")
        assert moved.price_charged == 12000

    def test_moving_onto_another_appointment_fails(self, booking):
        other = booking.create_booking(_request(start="2024-11-25T12:00:00-03:00"))

        with pytest.raises(SlotUnavailableError) as exc_info:
            booking.reschedule("a-001", start=at("11:30"))

        assert exc_info.value.conflicting_ids == [other.id]

    def test_changing_service_recomputes_end_and_price(self, booking):
        moved = booking.reschedule("a-001", service_id="color", payment_method=PaymentMethod.MERCADOPAGO)

        assert moved.end == at("12:00")
        assert moved.price_charged == 42000

    def test_moving_to_another_professional(self, booking):
        moved = booking.reschedule("a-001", professional_id="bruno")

        assert moved.professional_id == "bruno"

    def test_unknown_appointment(self, booking):
        with pytest.raises(NotFoundError):
            booking.reschedule("missing", start=at("12:00"))


class TestSetStatus:
    """Status changes free or keep the agenda."""

    def test_cancelling_frees_the_time(self, booking):
        booking.set_status("a-001", AppointmentStatus.CANCELLED)

        appointment = booking.create_booking(_request(start="2024-11-25T10:00:00-03:00"))

        assert appointment.start == at("10:00")

    def test_confirming_keeps_it_occupied(self, booking):
        booking.set_status("a-001", AppointmentStatus.CONFIRMED)

        assert booking.find_conflicts("ana", at("10:00"), at("10:30"))


class TestFailedWrites:
    """A write that cannot be saved leaves the agenda as it was."""

    @pytest.fixture
    def failing_save(self, store, monkeypatch):
        def save():
            raise StoreError("disk full")

        monkeypatch.setattr(store, "save", save)

    def test_unsaved_booking_does_not_hold_the_slot(self, booking, store, failing_save):
        with pytest.raises(StoreError):
            booking.create_booking(_request(professional_id="bruno"))

        assert len(store.appointments) == 2
        assert store.find_client_by_phone("1166667777") is None
        assert booking.find_conflicts("bruno", at("11:00"), at("11:45")) == []

    def test_unsaved_reschedule_keeps_the_old_time(self, booking, store, failing_save):
        with pytest.raises(StoreError):
            booking.reschedule("a-001", start=at("12:00"))

        assert store.get_appointment("a-001").start == at("10:00")
        assert booking.find_conflicts("ana", at("10:00"), at("10:30"))
        assert booking.find_conflicts("ana", at("12:00"), at("12:30")) == []

    def test_unsaved_cancellation_keeps_the_status(self, booking, store, failing_save):
        with pytest.raises(StoreError):
            booking.set_status("a-001", AppointmentStatus.CANCELLED)

        assert store.get_appointment("a-001").status == AppointmentStatus.CONFIRMED


class TestReadAndWritePathsAgree:
    """Slots offered by availability can be booked, then disappear."""

    def test_offered_slot_is_bookable_once(self, store, booking):
        availability = AvailabilityService(
            schedule_store=store,
            booking_store=store,
            block_store=store,
            slot_calculator=SlotCalculator(step_minutes=30),
            timezone=TZ,
            clock=lambda: NOW,
        )
        before = availability.find_slots(professional_id="ana", day=NOW, service_duration_minutes=45)
        chosen = before[0]

        booking.create_booking(_request(start=chosen.start.to_iso8601_string()))
        after = availability.find_slots(professional_id="ana", day=NOW, service_duration_minutes=45)

        assert chosen in before
        assert chosen not in after
        for slot in after:
            assert not booking.find_conflicts("ana", slot.start, slot.end)
