"""
Booking repository

Maps the Booking aggregate to the ``bookings.Booking`` table. Updates and
deletes are conditional on the version the aggregate was loaded with.
"""

from __future__ import annotations

import logging
from uuid import UUID

from django.db.models import F  # type: ignore

from apps.bookings.domain.entities import Booking, BookingStatus
from apps.bookings.models import Booking as BookingModel
from shared.domain.exceptions import ConcurrentModificationError
from shared.domain.value_objects import Money, TimeSlot

logger = logging.getLogger(__name__)

STALE_BOOKING_MESSAGE = "La reserva fue modificada por otra operación. Recargue e intente de nuevo."


class DjangoBookingRepository:

    def get_by_id(self, booking_id: UUID) -> Booking | None:
        row = (
            BookingModel.objects.select_related("service_offering")
            .filter(pk=booking_id)
            .first()
        )
        return self._to_domain(row) if row else None

    def add(self, booking: Booking) -> None:
        BookingModel.objects.create(
            id=booking.id,
            version=booking.version,
            created_at=booking.created_at,
            **self._fields(booking),
        )
        logger.debug(f"Inserted booking {booking.id}")

    def save(self, booking: Booking) -> None:
        updated = BookingModel.objects.filter(pk=booking.id, version=booking.version).update(
            version=F("version") + 1,
            **self._fields(booking),
        )
        if updated == 0:
            logger.warning(f"Stale write rejected for booking {booking.id} (version {booking.version})")
            raise ConcurrentModificationError(STALE_BOOKING_MESSAGE)
        booking.version += 1

    def delete(self, booking: Booking) -> None:
        deleted, _ = BookingModel.objects.filter(pk=booking.id, version=booking.version).delete()
        if deleted == 0:
            raise ConcurrentModificationError(STALE_BOOKING_MESSAGE)

    def count_pending_for(self, user_id: int) -> int:
        return BookingModel.objects.filter(
            booked_by_id=user_id,
            status=BookingModel.Status.PENDING,
        ).count()

    @staticmethod
    def _fields(booking: Booking) -> dict:
        return {
            "pet_id": booking.pet_id,
            "sitter_id": booking.sitter_id,
            "service_offering_id": booking.service_offering_id,
            "booked_by_id": booking.booked_by_id,
            "account_id": booking.account_id,
            "start_time": booking.start_time,
            "end_time": booking.end_time,
            "total_price": booking.total_price.amount,
            "status": booking.status.value,
            "notes": booking.notes,
            "cancellation_reason": booking.cancellation_reason,
            "actual_start_time": booking.actual_start_time,
            "actual_end_time": booking.actual_end_time,
            "updated_at": booking.updated_at,
        }

    @staticmethod
    def _to_domain(row: BookingModel) -> Booking:
        return Booking(
            id=row.id,
            version=row.version,
            created_at=row.created_at,
            updated_at=row.updated_at,
            pet_id=row.pet_id,
            sitter_id=row.sitter_id,
            service_offering_id=row.service_offering_id,
            booked_by_id=row.booked_by_id,
            account_id=row.account_id,
            slot=TimeSlot(row.start_time, row.end_time),
            total_price=Money(row.total_price),
            service_name=row.service_offering.name,
            status=BookingStatus(row.status),
            notes=row.notes,
            cancellation_reason=row.cancellation_reason,
            actual_start_time=row.actual_start_time,
            actual_end_time=row.actual_end_time,
        )
