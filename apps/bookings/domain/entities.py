"""
Booking Domain Entities

Core business entities for the booking domain:
- BookingStatus: FSM states for the booking lifecycle
- TRANSITIONS: the single table of allowed status moves
- Booking: Main aggregate representing a pet-care appointment
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from uuid import UUID, uuid4

from shared.domain.base import Aggregate, utcnow
from shared.domain.exceptions import DomainValidationError, IllegalStateError, InvalidTransitionError
from shared.domain.value_objects import Money, TimeSlot

SOFT_DELETE_REASON = 'Eliminada por usuario'


class BookingStatus(Enum):
    """
    Booking Status Finite State Machine

    State transitions:
    - PENDING -> CONFIRMED (sitter accepted)
    - PENDING -> CANCELLED
    - CONFIRMED -> IN_PROGRESS (service started)
    - CONFIRMED -> CANCELLED
    - IN_PROGRESS -> COMPLETED (service delivered, invoice follows)
    - IN_PROGRESS -> CANCELLED
    """
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    IN_PROGRESS = 'in_progress'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'

    @property
    def slug(self) -> str:
        """Form used in notification template keys (booking-status-in-progress)"""
        return self.value.replace('_', '-')


TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.IN_PROGRESS, BookingStatus.CANCELLED}),
    BookingStatus.IN_PROGRESS: frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED}),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
}

# Statuses that occupy the sitter's schedule
ACTIVE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS})

TERMINAL_STATUSES = frozenset(status for status, targets in TRANSITIONS.items() if not targets)


@dataclass(kw_only=True, eq=False)
class Booking(Aggregate):
    """
    Booking Aggregate Root

    A client's appointment of a sitter's service offering for one pet.

    Key invariants:
    - slot.end = slot.start + offering duration (TimeSlot enforces start < end)
    - total_price is a snapshot of the offering price and never negative
    - status only moves along TRANSITIONS; force_cancel is the one system override
    """

    pet_id: int
    sitter_id: int
    service_offering_id: int
    booked_by_id: int
    account_id: int

    slot: TimeSlot
    total_price: Money
    service_name: str = ''

    status: BookingStatus = BookingStatus.PENDING
    notes: str = ''
    cancellation_reason: str = ''
    actual_start_time: datetime | None = None
    actual_end_time: datetime | None = None

    @classmethod
    def create(
        cls,
        *,
        pet_id: int,
        sitter_id: int,
        service_offering_id: int,
        booked_by_id: int,
        account_id: int,
        start_time: datetime,
        duration_minutes: int,
        price: Money,
        service_name: str = '',
        notes: str = '',
    ) -> 'Booking':
        """
        Build a new PENDING booking

        Events: BookingCreated
        """
        from apps.bookings.domain.events import BookingCreated

        booking = cls(
            id=uuid4(),
            pet_id=pet_id,
            sitter_id=sitter_id,
            service_offering_id=service_offering_id,
            booked_by_id=booked_by_id,
            account_id=account_id,
            slot=TimeSlot.from_duration(start_time, duration_minutes),
            total_price=price.quantized(),
            service_name=service_name,
            notes=notes or '',
        )
        booking.add_event(BookingCreated(
            aggregate_id=booking.id,
            booking_id=booking.id,
            sitter_id=sitter_id,
            booked_by_id=booked_by_id,
            pet_id=pet_id,
            service_name=service_name,
            start_time=booking.start_time,
            end_time=booking.end_time,
            total_price=booking.total_price.amount,
        ))
        return booking

    @property
    def start_time(self) -> datetime:
        return self.slot.start

    @property
    def end_time(self) -> datetime:
        return self.slot.end

    @property
    def short_id(self) -> str:
        return self.id.hex[:8].upper()

    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def can_transition_to(self, target: BookingStatus) -> bool:
        return target in TRANSITIONS[self.status]

    def transition_to(
        self,
        target: BookingStatus,
        *,
        reason: str = '',
        changed_by_id: int | None = None,
        now: datetime | None = None,
    ):
        """
        Move to ``target`` if TRANSITIONS allows it

        Stamps actual_start_time on IN_PROGRESS and actual_end_time on
        COMPLETED. Nothing changes when the guard rejects the move.

        Events: BookingStatusChanged, plus BookingCompleted on COMPLETED
        """
        if not self.can_transition_to(target):
            raise InvalidTransitionError(
                f"Transición no válida de {self.status.name} a {target.name}"
            )

        reason = (reason or '').strip()
        if target == BookingStatus.CANCELLED and not reason:
            raise DomainValidationError("El motivo de cancelación es obligatorio")

        from apps.bookings.domain.events import BookingCompleted, BookingStatusChanged

        now = now or utcnow()
        old_status = self.status
        self.status = target

        if target == BookingStatus.IN_PROGRESS:
            self.actual_start_time = now
        elif target == BookingStatus.COMPLETED:
            self.actual_end_time = now
        elif target == BookingStatus.CANCELLED:
            self.cancellation_reason = reason

        self.touch(now)

        self.add_event(BookingStatusChanged(
            aggregate_id=self.id,
            booking_id=self.id,
            sitter_id=self.sitter_id,
            booked_by_id=self.booked_by_id,
            old_status=old_status.value,
            new_status=target.value,
            changed_by_id=changed_by_id,
            reason=reason,
        ))

        if target == BookingStatus.COMPLETED:
            self.add_event(BookingCompleted(
                aggregate_id=self.id,
                booking_id=self.id,
                account_id=self.account_id,
                total_price=self.total_price.amount,
            ))

    def update_details(
        self,
        *,
        start_time: datetime | None = None,
        duration_minutes: int | None = None,
        notes: str | None = None,
        now: datetime | None = None,
    ) -> bool:
        """
        Change start time and/or notes on a non-terminal booking

        A new start time keeps the offering duration. Returns True when
        the booking was rescheduled.

        Events: BookingUpdated
        """
        if self.is_terminal():
            raise IllegalStateError(
                f"No se puede modificar una reserva en estado {self.status.name}"
            )

        from apps.bookings.domain.events import BookingUpdated

        rescheduled = False
        if start_time is not None and start_time != self.start_time:
            if duration_minutes is not None:
                self.slot = TimeSlot.from_duration(start_time, duration_minutes)
            else:
                self.slot = self.slot.shifted_to(start_time)
            rescheduled = True

        if notes is not None:
            self.notes = notes

        self.touch(now)
        self.add_event(BookingUpdated(
            aggregate_id=self.id,
            booking_id=self.id,
            sitter_id=self.sitter_id,
            booked_by_id=self.booked_by_id,
            start_time=self.start_time,
            end_time=self.end_time,
            rescheduled=rescheduled,
        ))
        return rescheduled

    def should_soft_delete(self, *, now: datetime, retention_days: int) -> bool:
        """Completed or older bookings are kept (forced to CANCELLED) instead of removed"""
        if self.status == BookingStatus.COMPLETED:
            return True
        return self.created_at < now - timedelta(days=retention_days)

    def mark_deleted(self, *, soft: bool, now: datetime | None = None, invoiced: bool = True):
        """
        Record a user delete

        IN_PROGRESS bookings cannot be deleted, nor COMPLETED paid bookings
        that are still waiting for their invoice. A soft delete forces the
        status to CANCELLED regardless of the transition table.

        Events: BookingDeleted
        """
        if self.status == BookingStatus.IN_PROGRESS:
            raise IllegalStateError("No se puede eliminar una reserva en curso")
        if self.status == BookingStatus.COMPLETED and self.total_price.amount > 0 and not invoiced:
            raise IllegalStateError("No se puede eliminar una reserva completada pendiente de facturación")

        from apps.bookings.domain.events import BookingDeleted

        old_status = self.status
        if soft:
            self.status = BookingStatus.CANCELLED
            self.cancellation_reason = SOFT_DELETE_REASON
            self.touch(now)

        self.add_event(BookingDeleted(
            aggregate_id=self.id,
            booking_id=self.id,
            sitter_id=self.sitter_id,
            booked_by_id=self.booked_by_id,
            old_status=old_status.value,
            soft=soft,
        ))

    def __str__(self):
        return f"Booking {self.short_id}: {self.slot} ({self.status.value})"
