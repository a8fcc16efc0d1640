"""
Booking Command Handlers

These are the use cases for the booking domain.
They orchestrate domain operations within transactions.

Commands:
- CreateBookingCommand: Create a new PENDING booking
- TransitionBookingCommand: Move a booking along the lifecycle table
- UpdateBookingCommand: Reschedule and/or edit notes
- DeleteBookingCommand: Remove a booking (soft or physical)
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID
import logging

from django.conf import settings

from shared.application.uow import DjangoUnitOfWork
from shared.domain.base import utcnow
from shared.domain.exceptions import (
    AuthorizationError,
    DomainValidationError,
    EntityNotFoundError,
    IllegalStateError,
    ScheduleConflictError,
)
from shared.domain.value_objects import Money, Requester
from apps.bookings.domain.entities import Booking, BookingStatus
from apps.bookings.domain.references import ReferenceData
from apps.bookings.services import CONFLICT_MESSAGE, ConflictChecker

logger = logging.getLogger(__name__)


# ===== Commands =====

@dataclass
class CreateBookingCommand:
    """
    Command to create a new booking

    ``requester`` is whoever is authenticated on the request; the booking
    is recorded as booked by them.
    """
    pet_id: int
    sitter_id: int
    service_offering_id: int
    start_time: datetime
    requester: Requester
    notes: str = ''


@dataclass
class TransitionBookingCommand:
    booking_id: UUID
    target_status: BookingStatus
    requester: Requester
    reason: str = ''


@dataclass
class UpdateBookingCommand:
    """Only the fields that are not None are changed"""
    booking_id: UUID
    requester: Requester
    start_time: datetime | None = None
    notes: str | None = None


@dataclass
class DeleteBookingCommand:
    booking_id: UUID
    requester: Requester


# ===== Helpers =====

def lead_time_message(minutes: int) -> str:
    if minutes % 60 == 0:
        hours = minutes // 60
        unit = 'hora' if hours == 1 else 'horas'
        return f"La reserva debe programarse con al menos {hours} {unit} de anticipación"
    return f"La reserva debe programarse con al menos {minutes} minutos de anticipación"


def ensure_lead_time(start_time: datetime, now: datetime):
    lead_minutes = settings.BOOKING_LEAD_TIME_MINUTES
    if start_time < now + timedelta(minutes=lead_minutes):
        raise DomainValidationError(lead_time_message(lead_minutes))


def load_booking(booking_repo, booking_id: UUID) -> Booking:
    booking = booking_repo.get_by_id(booking_id)
    if booking is None:
        raise EntityNotFoundError(f"Reserva no encontrada: {booking_id}")
    return booking


def ensure_can_manage(booking: Booking, requester: Requester, reference_data: ReferenceData):
    """Admins, the booking's sitter and members of the pet's account may act on a booking"""
    if requester.is_admin or requester.user_id == booking.sitter_id:
        return
    if reference_data.is_account_member(booking.account_id, requester.user_id):
        return
    raise AuthorizationError("No tiene permiso para gestionar esta reserva")


# ===== Command Handlers =====

class CreateBookingHandler:
    """
    Handler for CreateBooking command

    Validation is fail-fast, each rule with its own error:
    1. Lead time
    2. Pet, sitter and offering exist
    3. Requester belongs to the pet's account
    4. Sitter is an active sitter
    5. Offering belongs to the sitter and is active
    6. No overlap with the sitter's active bookings (under the sitter row lock)
    7. Requester is under the pending bookings cap
    """

    def __init__(self, booking_repo, reference_data: ReferenceData, conflict_checker: ConflictChecker):
        self.booking_repo = booking_repo
        self.reference_data = reference_data
        self.conflict_checker = conflict_checker

    def handle(self, command: CreateBookingCommand) -> Booking:
        logger.info(
            f"Creating booking for pet {command.pet_id} with sitter {command.sitter_id}, "
            f"offering {command.service_offering_id}, start {command.start_time.isoformat()}"
        )

        ensure_lead_time(command.start_time, utcnow())

        pet = self.reference_data.get_pet(command.pet_id)
        if pet is None:
            raise EntityNotFoundError(f"Mascota no encontrada: {command.pet_id}")
        sitter = self.reference_data.get_sitter(command.sitter_id)
        if sitter is None:
            raise EntityNotFoundError(f"Cuidador no encontrado: {command.sitter_id}")
        offering = self.reference_data.get_offering(command.service_offering_id)
        if offering is None:
            raise EntityNotFoundError(f"Servicio no encontrado: {command.service_offering_id}")

        requester = command.requester
        if not requester.is_admin and not self.reference_data.is_account_member(pet.account_id, requester.user_id):
            raise AuthorizationError("No tiene permiso para reservar para esta mascota")

        if not sitter.is_sitter or not sitter.is_active:
            raise DomainValidationError("El usuario seleccionado no es un cuidador activo")

        if offering.sitter_id != sitter.id:
            raise DomainValidationError("El servicio no pertenece al cuidador seleccionado")
        if not offering.is_active:
            raise DomainValidationError("El servicio seleccionado no está activo")

        booking = Booking.create(
            pet_id=pet.id,
            sitter_id=sitter.id,
            service_offering_id=offering.id,
            booked_by_id=requester.user_id,
            account_id=pet.account_id,
            start_time=command.start_time,
            duration_minutes=offering.duration_minutes,
            price=Money(offering.price),
            service_name=offering.name,
            notes=command.notes,
        )

        with DjangoUnitOfWork() as uow:
            # Serialises concurrent creations for this sitter until commit
            self.conflict_checker.lock_sitter(sitter.id)

            if self.conflict_checker.has_conflict(sitter.id, booking.start_time, booking.end_time):
                logger.warning(f"Schedule conflict for sitter {sitter.id} at {booking.slot}")
                raise ScheduleConflictError(CONFLICT_MESSAGE)

            max_pending = settings.BOOKING_MAX_PENDING_PER_USER
            if self.booking_repo.count_pending_for(requester.user_id) >= max_pending:
                logger.warning(f"User {requester.user_id} reached the pending bookings cap ({max_pending})")
                raise IllegalStateError("Ha alcanzado el límite máximo de reservas pendientes")

            self.booking_repo.add(booking)
            uow.collect_events(booking)

        logger.info(f"Booking created successfully: {booking.short_id} (ID: {booking.id})")

        return booking


class TransitionBookingHandler:
    """Handler for status changes, guarded by the lifecycle table"""

    def __init__(self, booking_repo, reference_data: ReferenceData):
        self.booking_repo = booking_repo
        self.reference_data = reference_data

    def handle(self, command: TransitionBookingCommand) -> Booking:
        logger.info(f"Transitioning booking {command.booking_id} to {command.target_status.value}")

        with DjangoUnitOfWork() as uow:
            booking = load_booking(self.booking_repo, command.booking_id)
            ensure_can_manage(booking, command.requester, self.reference_data)

            old_status = booking.status
            booking.transition_to(
                command.target_status,
                reason=command.reason,
                changed_by_id=command.requester.user_id,
            )

            self.booking_repo.save(booking)
            uow.collect_events(booking)

        logger.info(
            f"Booking {booking.short_id} moved {old_status.value} -> {booking.status.value}"
        )

        return booking


class UpdateBookingHandler:
    """
    Handler for booking edits

    A new start time keeps the offering duration and goes through the
    same lead time and conflict checks as a new booking.
    """

    def __init__(self, booking_repo, reference_data: ReferenceData, conflict_checker: ConflictChecker):
        self.booking_repo = booking_repo
        self.reference_data = reference_data
        self.conflict_checker = conflict_checker

    def handle(self, command: UpdateBookingCommand) -> Booking:
        if command.start_time is None and command.notes is None:
            raise DomainValidationError("No se proporcionaron cambios para la reserva")

        logger.info(f"Updating booking {command.booking_id}")

        with DjangoUnitOfWork() as uow:
            booking = load_booking(self.booking_repo, command.booking_id)
            ensure_can_manage(booking, command.requester, self.reference_data)

            if booking.is_terminal():
                raise IllegalStateError(
                    f"No se puede modificar una reserva en estado {booking.status.name}"
                )

            duration_minutes = None
            moving = command.start_time is not None and command.start_time != booking.start_time
            if moving:
                ensure_lead_time(command.start_time, utcnow())
                offering = self.reference_data.get_offering(booking.service_offering_id)
                if offering is not None:
                    duration_minutes = offering.duration_minutes

            booking.update_details(
                start_time=command.start_time,
                duration_minutes=duration_minutes,
                notes=command.notes,
            )

            if moving:
                self.conflict_checker.lock_sitter(booking.sitter_id)
                if self.conflict_checker.has_conflict(
                    booking.sitter_id,
                    booking.start_time,
                    booking.end_time,
                    exclude_booking_id=booking.id,
                ):
                    logger.warning(f"Schedule conflict moving booking {booking.id} to {booking.slot}")
                    raise ScheduleConflictError(CONFLICT_MESSAGE)

            self.booking_repo.save(booking)
            uow.collect_events(booking)

        logger.info(f"Booking {booking.short_id} updated")

        return booking


class DeleteBookingHandler:
    """
    Handler for booking deletion

    Completed bookings, and bookings older than the retention window, are
    kept and forced to CANCELLED. Everything else is removed. A completed
    booking is only deleted once it has been invoiced.
    """

    def __init__(self, booking_repo, reference_data: ReferenceData):
        self.booking_repo = booking_repo
        self.reference_data = reference_data

    def handle(self, command: DeleteBookingCommand) -> bool:
        """Returns True when the booking was soft-deleted"""
        logger.info(f"Deleting booking {command.booking_id}")

        now = utcnow()
        with DjangoUnitOfWork() as uow:
            booking = load_booking(self.booking_repo, command.booking_id)
            ensure_can_manage(booking, command.requester, self.reference_data)

            soft = booking.should_soft_delete(
                now=now,
                retention_days=settings.BOOKING_SOFT_DELETE_AFTER_DAYS,
            )
            # The cancellation notice is queued before the write and only goes out on commit
            booking.mark_deleted(
                soft=soft,
                now=now,
                invoiced=booking.status != BookingStatus.COMPLETED or self.reference_data.has_invoice(booking.id),
            )
            uow.collect_events(booking)

            if soft:
                self.booking_repo.save(booking)
            else:
                self.booking_repo.delete(booking)

        logger.info(f"Booking {command.booking_id} {'soft-deleted' if soft else 'deleted'}")

        return soft
