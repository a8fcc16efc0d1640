"""
Invoicing Orchestrator

Reacts to booking and invoice events after their transaction commits:

- BookingCreated   -> platform fee ledger entry (pre-calculated)
- BookingCompleted -> invoice generation
- InvoiceGenerated -> fee ledger, document, email with the document, in-app notice
- InvoiceSent      -> document, email with the document, in-app notice
- InvoiceCancelled -> document, cancellation notice
- InvoiceUpdated   -> document and notice, for significant changes only

Every side effect is its own Celery task. Enqueue failures are logged and
never affect the invoice or the other side effects.
"""

from __future__ import annotations

import logging
from uuid import UUID

from apps.bookings.domain.events import BookingCompleted, BookingCreated
from apps.bookings.infrastructure.repositories import DjangoBookingRepository
from apps.finances.application.command_handlers import GenerateInvoiceCommand, GenerateInvoiceHandler
from apps.finances.domain.entities import Invoice, InvoiceStatus
from apps.finances.domain.events import (
    InvoiceCancelled,
    InvoiceGenerated,
    InvoiceSent,
    InvoiceUpdated,
)
from apps.finances.domain.fees import fee_calculator
from apps.finances.infrastructure.repositories import DjangoInvoiceRepository
from apps.notifications.services import NotificationDispatcher, notification_dispatcher
from shared.domain.exceptions import DomainError, DuplicateInvoiceError

logger = logging.getLogger(__name__)


def _enqueue(task, *args) -> bool:
    try:
        task.delay(*args)
    except Exception as e:
        logger.error(f"Could not enqueue {task.name}{args}: {e}", exc_info=True)
        return False
    return True


class InvoicingOrchestrator:

    def __init__(self, dispatcher: NotificationDispatcher | None = None):
        self.dispatcher = dispatcher or notification_dispatcher

    # ----- booking events -----

    def on_booking_created(self, event: BookingCreated):
        from apps.finances.tasks import record_platform_fee

        if event.total_price <= 0:
            return
        _enqueue(record_platform_fee, str(event.booking_id), str(event.total_price))

    def on_booking_completed(self, event: BookingCompleted):
        self.generate_for_booking(event.booking_id)

    def generate_for_booking(self, booking_id: UUID) -> Invoice | None:
        """
        Invoice a completed booking on behalf of the system.

        Returns None when no invoice was created; the reconciliation sweep
        picks the booking up again later.
        """
        handler = GenerateInvoiceHandler(
            invoice_repo=DjangoInvoiceRepository(),
            booking_repo=DjangoBookingRepository(),
            fee_calculator=fee_calculator,
        )
        try:
            return handler.handle(GenerateInvoiceCommand(booking_id=booking_id))
        except DuplicateInvoiceError:
            logger.info(f"Booking {booking_id} is already invoiced")
        except DomainError as e:
            logger.warning(f"Booking {booking_id} not invoiced: {e.message}")
        except Exception as e:
            logger.error(f"Invoice generation failed for booking {booking_id}: {e}", exc_info=True)
        return None

    # ----- invoice events -----

    def on_invoice_generated(self, event: InvoiceGenerated):
        from apps.finances.tasks import record_invoice_fee, render_invoice_document, send_invoice_email

        _enqueue(record_invoice_fee, str(event.invoice_id))
        _enqueue(render_invoice_document, str(event.invoice_id))
        if event.status == InvoiceStatus.SENT.value:
            _enqueue(send_invoice_email, str(event.invoice_id))

        self._notify(event.invoice_id, "invoice-generated")

    def on_invoice_sent(self, event: InvoiceSent):
        from apps.finances.tasks import render_invoice_document, send_invoice_email

        _enqueue(render_invoice_document, str(event.invoice_id))
        _enqueue(send_invoice_email, str(event.invoice_id))
        self._notify(event.invoice_id, "invoice-sent")

    def on_invoice_cancelled(self, event: InvoiceCancelled):
        from apps.finances.tasks import render_invoice_document

        _enqueue(render_invoice_document, str(event.invoice_id))
        self._notify(event.invoice_id, "invoice-cancelled", reason=event.reason)

    def on_invoice_updated(self, event: InvoiceUpdated):
        from apps.finances.tasks import record_invoice_fee, render_invoice_document

        if not event.significant:
            logger.debug(f"Invoice {event.invoice_number} updated without significant changes")
            return
        if event.amounts_changed:
            _enqueue(record_invoice_fee, str(event.invoice_id))
        _enqueue(render_invoice_document, str(event.invoice_id))
        self._notify(event.invoice_id, "invoice-updated")

    def _notify(self, invoice_id: UUID, template_key: str, **extra):
        from apps.finances.models import Invoice as InvoiceModel

        invoice = InvoiceModel.objects.select_related("account").filter(pk=invoice_id).first()
        if invoice is None:
            logger.warning(f"Notification {template_key} skipped: invoice {invoice_id} not found")
            return
        variables = {
            "invoice_id": str(invoice.id),
            "invoice_number": invoice.invoice_number,
            "total_amount": f"{invoice.total_amount:.2f} {invoice.currency}",
            "due_date": invoice.due_date.strftime("%d/%m/%Y"),
            "status": invoice.status,
            **extra,
        }
        self.dispatcher.send(invoice.account.owner_id, template_key, variables)


invoicing_orchestrator = InvoicingOrchestrator()


def register_handlers(bus, orchestrator: InvoicingOrchestrator | None = None):
    orchestrator = orchestrator or invoicing_orchestrator
    bus.register_event_handler(BookingCreated, orchestrator.on_booking_created)
    bus.register_event_handler(BookingCompleted, orchestrator.on_booking_completed)
    bus.register_event_handler(InvoiceGenerated, orchestrator.on_invoice_generated)
    bus.register_event_handler(InvoiceSent, orchestrator.on_invoice_sent)
    bus.register_event_handler(InvoiceCancelled, orchestrator.on_invoice_cancelled)
    bus.register_event_handler(InvoiceUpdated, orchestrator.on_invoice_updated)
