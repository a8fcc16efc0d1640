"""
Booking Event Handlers

Run after commit through the message bus and turn booking events into
notifications. Each handler only enqueues work; delivery happens in
Celery tasks.
"""

import logging

from apps.bookings.domain.entities import SOFT_DELETE_REASON, BookingStatus
from apps.bookings.domain.events import (
    BookingCreated,
    BookingDeleted,
    BookingStatusChanged,
    BookingUpdated,
)
from apps.notifications.services import notification_dispatcher

logger = logging.getLogger(__name__)


def _booking_ref(booking_id) -> str:
    return booking_id.hex[:8].upper()


def _fmt(moment) -> str:
    return moment.strftime('%d/%m/%Y %H:%M')


def notify_booking_created(event: BookingCreated):
    variables = {
        'booking_id': str(event.booking_id),
        'booking_ref': _booking_ref(event.booking_id),
        'service_name': event.service_name,
        'start_time': _fmt(event.start_time),
        'end_time': _fmt(event.end_time),
        'total_price': f"{event.total_price:.2f}",
    }
    notification_dispatcher.send(event.booked_by_id, 'new-booking-client', variables)
    notification_dispatcher.send(event.sitter_id, 'new-booking-sitter', variables)


def notify_status_changed(event: BookingStatusChanged):
    status = BookingStatus(event.new_status)
    variables = {
        'booking_id': str(event.booking_id),
        'booking_ref': _booking_ref(event.booking_id),
        'old_status': event.old_status,
        'status': event.new_status,
        'reason': event.reason,
    }
    notification_dispatcher.send(event.booked_by_id, f'booking-status-{status.slug}', variables)
    if status == BookingStatus.CANCELLED and event.changed_by_id != event.sitter_id:
        notification_dispatcher.send(event.sitter_id, 'booking-status-cancelled', variables)


def notify_booking_updated(event: BookingUpdated):
    variables = {
        'booking_id': str(event.booking_id),
        'booking_ref': _booking_ref(event.booking_id),
        'start_time': _fmt(event.start_time),
        'end_time': _fmt(event.end_time),
        'rescheduled': event.rescheduled,
    }
    notification_dispatcher.send(event.sitter_id, 'booking-updated', variables)


def notify_booking_deleted(event: BookingDeleted):
    """Every delete notifies both parties, whatever the previous status was"""
    variables = {
        'booking_id': str(event.booking_id),
        'booking_ref': _booking_ref(event.booking_id),
        'old_status': event.old_status,
        'status': BookingStatus.CANCELLED.value,
        'reason': SOFT_DELETE_REASON,
    }
    notification_dispatcher.send(event.booked_by_id, 'booking-status-cancelled', variables)
    notification_dispatcher.send(event.sitter_id, 'booking-status-cancelled', variables)


def register_handlers(bus):
    bus.register_event_handler(BookingCreated, notify_booking_created)
    bus.register_event_handler(BookingStatusChanged, notify_status_changed)
    bus.register_event_handler(BookingUpdated, notify_booking_updated)
    bus.register_event_handler(BookingDeleted, notify_booking_deleted)
