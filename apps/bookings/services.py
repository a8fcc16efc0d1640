"""Domain services for booking workflows."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable
from uuid import UUID

from django.contrib.auth import get_user_model  # type: ignore
from django.db import transaction  # type: ignore
from django.db.models import Q  # type: ignore
from django.db.utils import NotSupportedError  # type: ignore

from .domain.entities import ACTIVE_STATUSES

logger = logging.getLogger(__name__)

CONFLICT_MESSAGE = "El cuidador no tiene disponibilidad en el horario solicitado"


def _lock_queryset_if_possible(queryset):
    """Apply select_for_update when inside transaction.atomic()."""

    if not transaction.get_connection().in_atomic_block:
        return queryset

    try:
        return queryset.select_for_update()
    except NotSupportedError:
        return queryset


class ConflictChecker:
    """Schedule conflict detection for sitters.

    A window conflicts with an active (pending, confirmed or in progress)
    booking of the same sitter when ``start < window_end`` and
    ``end > window_start``. Windows are half-open, so back-to-back bookings
    never conflict.

    Callers creating or moving a booking must call ``lock_sitter`` first,
    in the same transaction: the row lock on the sitter serialises
    check-then-insert for that sitter.
    """

    blocking_statuses: Iterable[str] = tuple(status.value for status in ACTIVE_STATUSES)

    def lock_sitter(self, sitter_id: int) -> None:
        User = get_user_model()
        list(_lock_queryset_if_possible(User.objects.filter(pk=sitter_id)).values_list("pk", flat=True))

    def has_conflict(
        self,
        sitter_id: int,
        window_start: datetime,
        window_end: datetime,
        *,
        exclude_booking_id: UUID | None = None,
    ) -> bool:
        from .models import Booking  # Local import to prevent circular dependency

        overlapping_filter = Q(start_time__lt=window_end) & Q(end_time__gt=window_start)

        bookings_qs = Booking.objects.filter(
            sitter_id=sitter_id,
            status__in=self.blocking_statuses,
        ).filter(overlapping_filter)

        if exclude_booking_id is not None:
            bookings_qs = bookings_qs.exclude(pk=exclude_booking_id)

        conflict = bookings_qs.exists()
        if conflict:
            logger.info(
                f"Sitter {sitter_id} is busy between {window_start.isoformat()} and {window_end.isoformat()}"
            )
        return conflict
