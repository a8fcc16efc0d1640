"""Celery tasks for the billing domain."""

from __future__ import annotations

import logging
from decimal import Decimal

from celery import shared_task  # type: ignore
from django.conf import settings  # type: ignore
from django.core.files.base import ContentFile  # type: ignore
from django.utils import timezone  # type: ignore

from shared.application.uow import DjangoUnitOfWork
from shared.domain.exceptions import DomainError

from .domain.fees import fee_calculator
from .infrastructure.repositories import DjangoInvoiceRepository, DjangoPlatformFeeRepository
from .models import Invoice
from .rendering import InvoiceDocument, document_renderer

logger = logging.getLogger(__name__)

RETRY_POLICY = {
    "autoretry_for": (Exception,),
    "retry_backoff": True,
    "max_retries": settings.SIDE_EFFECT_MAX_RETRIES,
}


def _load_invoice(invoice_id: str) -> Invoice:
    return Invoice.objects.select_related("account").prefetch_related("items").get(pk=invoice_id)


@shared_task(name="finances.record_platform_fee", **RETRY_POLICY)
def record_platform_fee(booking_id: str, base_amount: str) -> dict[str, str]:
    """Store the platform fee ledger entry for a booking, once."""
    percentage = settings.PLATFORM_FEE_PERCENTAGE
    breakdown = fee_calculator.compute(Decimal(base_amount), percentage)
    created = DjangoPlatformFeeRepository().record(
        booking_id,
        base_amount=Decimal(base_amount),
        fee_percentage=percentage,
        fee_amount=breakdown.fee_amount,
        net_amount=breakdown.net_amount,
    )
    if created:
        logger.info(f"Platform fee {breakdown.fee_amount} recorded for booking {booking_id}")
    else:
        logger.debug(f"Platform fee for booking {booking_id} already recorded")
    return {"booking_id": booking_id, "fee_amount": str(breakdown.fee_amount), "created": str(created)}


@shared_task(name="finances.record_invoice_fee", **RETRY_POLICY)
def record_invoice_fee(invoice_id: str) -> dict[str, str]:
    """Align the booking's fee ledger entry with the amounts billed on the invoice."""
    invoice = Invoice.objects.get(pk=invoice_id)
    created = DjangoPlatformFeeRepository().record(
        invoice.booking_id,
        base_amount=invoice.subtotal,
        fee_percentage=settings.PLATFORM_FEE_PERCENTAGE,
        fee_amount=invoice.platform_fee,
        net_amount=invoice.subtotal - invoice.platform_fee,
        replace=True,
    )
    logger.info(
        f"Platform fee {invoice.platform_fee} of invoice {invoice.invoice_number} "
        f"recorded for booking {invoice.booking_id}"
    )
    return {"booking_id": str(invoice.booking_id), "fee_amount": str(invoice.platform_fee), "created": str(created)}


@shared_task(name="finances.render_invoice_document", **RETRY_POLICY)
def render_invoice_document(invoice_id: str) -> dict[str, str]:
    """Render the invoice PDF and keep the latest copy on the invoice."""
    invoice = _load_invoice(invoice_id)
    document = InvoiceDocument.from_model(invoice)
    content = document_renderer.render(document)

    invoice.document.save(document.filename, ContentFile(content), save=False)
    # Only the file column is written; domain fields and version stay untouched
    Invoice.objects.filter(pk=invoice.pk).update(document=invoice.document.name)

    logger.info(f"Rendered {document.filename} for invoice {invoice_id}")
    return {"invoice_id": invoice_id, "document": invoice.document.name}


@shared_task(bind=True, name="finances.send_invoice_email", **RETRY_POLICY)
def send_invoice_email(self, invoice_id: str) -> dict[str, bool]:
    """Email the invoice PDF to the account owner (invoice-notification); retried on backend failure."""
    from apps.notifications.services import deliver

    invoice = _load_invoice(invoice_id)
    document = InvoiceDocument.from_model(invoice)
    content = document_renderer.render(document)

    variables = {
        "invoice_id": str(invoice.id),
        "invoice_number": invoice.invoice_number,
        "total_amount": f"{invoice.total_amount:.2f} {invoice.currency}",
        "due_date": invoice.due_date.strftime("%d/%m/%Y"),
    }
    return deliver(
        invoice.account.owner_id,
        "invoice-notification",
        variables,
        attachments=[(document.filename, content, "application/pdf")],
        delivery_key=self.request.id or "",
        raise_on_failure=True,
    )


# ============================================================================
# PERIODIC TASKS (Celery Beat)
# ============================================================================

@shared_task(name="finances.mark_overdue_invoices")
def mark_overdue_invoices() -> dict[str, int]:
    """
    Store OVERDUE on sent or partially paid invoices past their due date.

    Returns:
        dict: {"overdue": number of invoices marked}
    """
    now = timezone.now()
    repo = DjangoInvoiceRepository()
    marked = 0

    for invoice_id in list(repo.overdue_candidates(now)):
        try:
            with DjangoUnitOfWork() as uow:
                invoice = repo.get_by_id(invoice_id)
                if invoice is None or not invoice.mark_overdue(now):
                    continue
                repo.save(invoice)
                uow.collect_events(invoice)
            marked += 1
        except DomainError as e:
            logger.warning(f"Invoice {invoice_id} not marked overdue: {e}")
        except Exception as e:
            logger.error(f"Error marking invoice {invoice_id} overdue: {e}", exc_info=True)

    if marked:
        logger.info(f"Marked {marked} invoices as overdue")
    return {"overdue": marked}


@shared_task(name="finances.invoice_completed_bookings")
def invoice_completed_bookings() -> dict[str, int]:
    """
    Invoice completed bookings that still have no invoice.

    Recovers from a generation that failed after the booking was completed.

    Returns:
        dict: {"invoiced": invoices created, "failed": bookings still pending}
    """
    from apps.bookings.models import Booking

    from .application.orchestrator import invoicing_orchestrator

    booking_ids = list(
        Booking.objects.filter(
            status=Booking.Status.COMPLETED,
            invoice__isnull=True,
            total_price__gt=0,
        ).values_list("id", flat=True)
    )

    invoiced = failed = 0
    for booking_id in booking_ids:
        if invoicing_orchestrator.generate_for_booking(booking_id) is not None:
            invoiced += 1
        else:
            failed += 1

    if booking_ids:
        logger.info(f"Reconciliation: {invoiced} invoiced, {failed} still without invoice")
    return {"invoiced": invoiced, "failed": failed}
