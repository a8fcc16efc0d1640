"""
Invoice Command Handlers

Commands:
- GenerateInvoiceCommand: Invoice a completed booking
- SendInvoiceCommand: DRAFT -> SENT
- CancelInvoiceCommand: Cancel with a mandatory reason
- UpdateInvoiceCommand: Partial update of due date, notes and amounts
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List
from uuid import UUID
import logging

from django.conf import settings

from shared.application.uow import DjangoUnitOfWork
from shared.domain.base import utcnow
from shared.domain.exceptions import (
    AuthorizationError,
    DuplicateInvoiceError,
    EntityNotFoundError,
    IllegalStateError,
)
from shared.domain.value_objects import Money, Requester
from apps.bookings.domain.entities import Booking, BookingStatus
from apps.finances.domain.entities import AUTO_GENERATED_NOTE, Invoice, InvoiceItem, InvoicePatch
from apps.finances.domain.fees import FeeCalculator
from apps.finances.infrastructure.repositories import duplicate_invoice_message

logger = logging.getLogger(__name__)

DEFAULT_SERVICE_NAME = 'Servicio de Cuidado'


# ===== Commands =====

@dataclass
class ItemInput:
    description: str
    quantity: int
    unit_price: Decimal


@dataclass
class GenerateInvoiceCommand:
    """
    Command to invoice a completed booking

    ``requester`` is None when the system generates the invoice on
    completion. ``send=False`` keeps a manually generated invoice in DRAFT.
    """
    booking_id: UUID
    requester: Requester | None = None
    notes: str | None = None
    items: List[ItemInput] = field(default_factory=list)
    send: bool = True


@dataclass
class SendInvoiceCommand:
    invoice_id: UUID
    requester: Requester


@dataclass
class CancelInvoiceCommand:
    invoice_id: UUID
    reason: str
    requester: Requester


@dataclass
class UpdateInvoiceCommand:
    invoice_id: UUID
    patch: InvoicePatch
    requester: Requester


# ===== Helpers =====

def load_invoice(invoice_repo, invoice_id: UUID) -> Invoice:
    invoice = invoice_repo.get_by_id(invoice_id)
    if invoice is None:
        raise EntityNotFoundError(f"Factura no encontrada: {invoice_id}")
    return invoice


def ensure_can_bill(requester: Requester | None, sitter_id: int):
    """Invoices are managed by admins and by the sitter who delivered the service"""
    if requester is None or requester.is_admin or requester.user_id == sitter_id:
        return
    raise AuthorizationError("No tiene permiso para gestionar esta factura")


# ===== Command Handlers =====

class GenerateInvoiceHandler:
    """
    Handler for invoice generation

    1. Booking exists
    2. Booking is COMPLETED and not invoiced yet
    3. Booking price is positive
    4. Number, dates, items, subtotal, fee and total are computed
    5. Invoice and items are stored in one transaction
    """

    def __init__(self, invoice_repo, booking_repo, fee_calculator: FeeCalculator):
        self.invoice_repo = invoice_repo
        self.booking_repo = booking_repo
        self.fee_calculator = fee_calculator

    def handle(self, command: GenerateInvoiceCommand) -> Invoice:
        logger.info(f"Generating invoice for booking {command.booking_id}")

        with DjangoUnitOfWork() as uow:
            booking = self.booking_repo.get_by_id(command.booking_id)
            if booking is None:
                raise EntityNotFoundError(f"Reserva no encontrada: {command.booking_id}")

            ensure_can_bill(command.requester, booking.sitter_id)

            if booking.status != BookingStatus.COMPLETED:
                raise IllegalStateError(
                    f"Solo se pueden facturar reservas completadas (estado actual: {booking.status.name})"
                )
            if self.invoice_repo.exists_for_booking(booking.id):
                logger.warning(f"Booking {booking.id} already has an invoice")
                raise DuplicateInvoiceError(duplicate_invoice_message(booking.id))
            if not booking.total_price.is_positive():
                raise IllegalStateError("El precio de la reserva debe ser mayor que cero para facturar")

            items = self._build_items(command, booking)
            subtotal = sum((item.line_total for item in items), Money.zero(booking.total_price.currency))
            fee = self.fee_calculator.compute(subtotal.amount, settings.PLATFORM_FEE_PERCENTAGE)

            issue_date = utcnow()
            notes = command.notes
            if notes is None:
                notes = AUTO_GENERATED_NOTE if command.requester is None else ''

            invoice = Invoice.generate(
                account_id=booking.account_id,
                booking_id=booking.id,
                sitter_id=booking.sitter_id,
                invoice_number=self.invoice_repo.next_invoice_number(
                    settings.INVOICE_NUMBER_PREFIX, issue_date.year,
                ),
                items=items,
                platform_fee=Money(fee.fee_amount, subtotal.currency),
                due_days=settings.INVOICE_DUE_DAYS,
                notes=notes,
                send=command.send,
                issue_date=issue_date,
            )

            self.invoice_repo.add(invoice)
            uow.collect_events(invoice)

        logger.info(
            f"Invoice {invoice.invoice_number} generated for booking {booking.short_id}: "
            f"{invoice.subtotal} + {invoice.platform_fee} = {invoice.total_amount} ({invoice.status.value})"
        )

        return invoice

    def _build_items(self, command: GenerateInvoiceCommand, booking: Booking) -> List[InvoiceItem]:
        currency = booking.total_price.currency
        if command.items:
            return [
                InvoiceItem(
                    description=item.description,
                    quantity=item.quantity,
                    unit_price=Money(item.unit_price, currency),
                )
                for item in command.items
            ]
        name = booking.service_name or DEFAULT_SERVICE_NAME
        return [InvoiceItem(
            description=f"{name} - Reserva #{booking.short_id}",
            quantity=1,
            unit_price=booking.total_price,
        )]


class SendInvoiceHandler:

    def __init__(self, invoice_repo):
        self.invoice_repo = invoice_repo

    def handle(self, command: SendInvoiceCommand) -> Invoice:
        with DjangoUnitOfWork() as uow:
            invoice = load_invoice(self.invoice_repo, command.invoice_id)
            ensure_can_bill(command.requester, invoice.sitter_id)

            invoice.send()

            self.invoice_repo.save(invoice)
            uow.collect_events(invoice)

        logger.info(f"Invoice {invoice.invoice_number} sent")
        return invoice


class CancelInvoiceHandler:

    def __init__(self, invoice_repo):
        self.invoice_repo = invoice_repo

    def handle(self, command: CancelInvoiceCommand) -> Invoice:
        with DjangoUnitOfWork() as uow:
            invoice = load_invoice(self.invoice_repo, command.invoice_id)
            ensure_can_bill(command.requester, invoice.sitter_id)

            invoice.cancel(command.reason)

            self.invoice_repo.save(invoice)
            uow.collect_events(invoice)

        logger.info(f"Invoice {invoice.invoice_number} cancelled: {command.reason}")
        return invoice


class UpdateInvoiceHandler:
    """
    Handler for partial invoice updates

    The aggregate enforces the amount rules; this handler only adds the
    "who may touch this invoice at all" check.
    """

    def __init__(self, invoice_repo):
        self.invoice_repo = invoice_repo

    def handle(self, command: UpdateInvoiceCommand) -> Invoice:
        with DjangoUnitOfWork() as uow:
            invoice = load_invoice(self.invoice_repo, command.invoice_id)
            ensure_can_bill(command.requester, invoice.sitter_id)

            significant = invoice.apply_update(command.patch, is_admin=command.requester.is_admin)

            self.invoice_repo.save(invoice)
            uow.collect_events(invoice)

        logger.info(
            f"Invoice {invoice.invoice_number} updated"
            f"{' (amounts or due date changed)' if significant else ''}"
        )
        return invoice
