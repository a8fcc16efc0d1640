"""Unit tests for the Booking aggregate and its transition table."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from apps.bookings.domain.entities import (
    SOFT_DELETE_REASON,
    TRANSITIONS,
    Booking,
    BookingStatus,
)
from apps.bookings.domain.events import (
    BookingCompleted,
    BookingCreated,
    BookingDeleted,
    BookingStatusChanged,
    BookingUpdated,
)
from shared.domain.exceptions import DomainValidationError, IllegalStateError, InvalidTransitionError
from shared.domain.value_objects import Money

START = datetime(2026, 5, 4, 9, 0, tzinfo=timezone.utc)


def make_booking(**overrides) -> Booking:
    values = {
        "pet_id": 1,
        "sitter_id": 2,
        "service_offering_id": 3,
        "booked_by_id": 4,
        "account_id": 5,
        "start_time": START,
        "duration_minutes": 60,
        "price": Money(Decimal("50.00")),
        "service_name": "Paseo",
    }
    values.update(overrides)
    booking = Booking.create(**values)
    booking.clear_events()
    return booking


def test_create_derives_end_time_from_duration() -> None:
    booking = Booking.create(
        pet_id=1,
        sitter_id=2,
        service_offering_id=3,
        booked_by_id=4,
        account_id=5,
        start_time=START,
        duration_minutes=90,
        price=Money(Decimal("25.00")),
    )

    assert booking.status == BookingStatus.PENDING
    assert booking.end_time - booking.start_time == timedelta(minutes=90)
    assert [type(event) for event in booking.events] == [BookingCreated]


def test_full_lifecycle_stamps_actual_times() -> None:
    booking = make_booking()
    started = START + timedelta(minutes=2)
    finished = START + timedelta(minutes=58)

    booking.transition_to(BookingStatus.CONFIRMED, changed_by_id=2)
    booking.transition_to(BookingStatus.IN_PROGRESS, changed_by_id=2, now=started)
    booking.transition_to(BookingStatus.COMPLETED, changed_by_id=2, now=finished)

    assert booking.status == BookingStatus.COMPLETED
    assert booking.actual_start_time == started
    assert booking.actual_end_time == finished
    completed = [event for event in booking.events if isinstance(event, BookingCompleted)]
    assert len(completed) == 1
    assert completed[0].total_price == Decimal("50.00")


@pytest.mark.parametrize("source", list(BookingStatus))
@pytest.mark.parametrize("target", list(BookingStatus))
def test_only_listed_transitions_succeed(source: BookingStatus, target: BookingStatus) -> None:
    booking = make_booking()
    booking.status = source

    if target in TRANSITIONS[source]:
        booking.transition_to(target, reason="motivo")
        assert booking.status == target
    else:
        with pytest.raises(InvalidTransitionError):
            booking.transition_to(target, reason="motivo")
        assert booking.status == source
        assert booking.events == []


def test_cancel_requires_reason() -> None:
    booking = make_booking()

    with pytest.raises(DomainValidationError, match="motivo de cancelación"):
        booking.transition_to(BookingStatus.CANCELLED, reason="   ")

    assert booking.status == BookingStatus.PENDING


def test_cancel_records_reason_and_event() -> None:
    booking = make_booking()

    booking.transition_to(BookingStatus.CANCELLED, reason="Viaje", changed_by_id=4)

    assert booking.cancellation_reason == "Viaje"
    (event,) = booking.events
    assert isinstance(event, BookingStatusChanged)
    assert (event.old_status, event.new_status, event.changed_by_id) == ("pending", "cancelled", 4)


def test_reschedule_keeps_duration() -> None:
    booking = make_booking()
    new_start = START + timedelta(days=1)

    rescheduled = booking.update_details(start_time=new_start, notes="Traer correa")

    assert rescheduled is True
    assert booking.end_time == new_start + timedelta(minutes=60)
    assert booking.notes == "Traer correa"
    assert isinstance(booking.events[-1], BookingUpdated)


def test_terminal_booking_cannot_be_edited() -> None:
    booking = make_booking()
    booking.status = BookingStatus.COMPLETED

    with pytest.raises(IllegalStateError):
        booking.update_details(notes="tarde")


def test_soft_delete_forces_cancelled() -> None:
    booking = make_booking()
    booking.status = BookingStatus.COMPLETED

    booking.mark_deleted(soft=True)

    assert booking.status == BookingStatus.CANCELLED
    assert booking.cancellation_reason == SOFT_DELETE_REASON
    (event,) = booking.events
    assert isinstance(event, BookingDeleted)
    assert event.soft is True
    assert event.old_status == "completed"


def test_uninvoiced_completed_booking_cannot_be_deleted() -> None:
    booking = make_booking()
    booking.status = BookingStatus.COMPLETED

    with pytest.raises(IllegalStateError):
        booking.mark_deleted(soft=True, invoiced=False)

    assert booking.status == BookingStatus.COMPLETED
    assert booking.events == []


def test_in_progress_booking_cannot_be_deleted() -> None:
    booking = make_booking()
    booking.status = BookingStatus.IN_PROGRESS

    with pytest.raises(IllegalStateError):
        booking.mark_deleted(soft=False)


def test_should_soft_delete_old_or_completed() -> None:
    now = START
    booking = make_booking()
    booking.created_at = now - timedelta(days=31)
    assert booking.should_soft_delete(now=now, retention_days=30)

    fresh = make_booking()
    fresh.created_at = now - timedelta(days=1)
    assert not fresh.should_soft_delete(now=now, retention_days=30)

    fresh.status = BookingStatus.COMPLETED
    assert fresh.should_soft_delete(now=now, retention_days=30)
