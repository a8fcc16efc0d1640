"""
Invoice repository

Maps the Invoice aggregate, with its items, to the ``finances`` tables.
Items are written once with their invoice; later saves only touch the
invoice row and are conditional on the loaded version.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterator
from uuid import UUID

from django.db import IntegrityError, transaction  # type: ignore
from django.db.models import F  # type: ignore

from apps.finances.domain.entities import Invoice, InvoiceItem, InvoiceStatus
from apps.finances.models import Invoice as InvoiceModel
from apps.finances.models import InvoiceItem as InvoiceItemModel
from apps.finances.models import InvoiceNumberSequence, PlatformFee
from shared.domain.exceptions import ConcurrentModificationError, DuplicateInvoiceError
from shared.domain.value_objects import Money

logger = logging.getLogger(__name__)

STALE_INVOICE_MESSAGE = "La factura fue modificada por otra operación. Recargue e intente de nuevo."


def duplicate_invoice_message(booking_id: UUID) -> str:
    return f"Ya existe una factura para la reserva #{booking_id.hex[:8].upper()}"


class DjangoInvoiceRepository:

    def get_by_id(self, invoice_id: UUID) -> Invoice | None:
        row = (
            InvoiceModel.objects.select_related("booking")
            .prefetch_related("items")
            .filter(pk=invoice_id)
            .first()
        )
        return self._to_domain(row) if row else None

    def exists_for_booking(self, booking_id: UUID) -> bool:
        return InvoiceModel.objects.filter(booking_id=booking_id).exists()

    def next_invoice_number(self, prefix: str, year: int) -> str:
        return f"{prefix}-{year}-{InvoiceNumberSequence.next_value(year):06d}"

    def add(self, invoice: Invoice) -> None:
        try:
            with transaction.atomic():
                row = InvoiceModel.objects.create(
                    id=invoice.id,
                    version=invoice.version,
                    account_id=invoice.account_id,
                    booking_id=invoice.booking_id,
                    invoice_number=invoice.invoice_number,
                    issue_date=invoice.issue_date,
                    currency=invoice.total_amount.currency,
                    created_at=invoice.created_at,
                    **self._fields(invoice),
                )
                InvoiceItemModel.objects.bulk_create([
                    InvoiceItemModel(
                        id=item.id,
                        invoice=row,
                        description=item.description,
                        quantity=item.quantity,
                        unit_price=item.unit_price.amount,
                        line_total=item.line_total.amount,
                        position=position,
                    )
                    for position, item in enumerate(invoice.items)
                ])
        except IntegrityError:
            # Lost the race against another generation for the same booking
            if self.exists_for_booking(invoice.booking_id):
                raise DuplicateInvoiceError(duplicate_invoice_message(invoice.booking_id)) from None
            raise
        logger.debug(f"Inserted invoice {invoice.invoice_number} with {len(invoice.items)} items")

    def save(self, invoice: Invoice) -> None:
        updated = InvoiceModel.objects.filter(pk=invoice.id, version=invoice.version).update(
            version=F("version") + 1,
            **self._fields(invoice),
        )
        if updated == 0:
            logger.warning(f"Stale write rejected for invoice {invoice.id} (version {invoice.version})")
            raise ConcurrentModificationError(STALE_INVOICE_MESSAGE)
        invoice.version += 1

    def overdue_candidates(self, now: datetime) -> Iterator[UUID]:
        return InvoiceModel.objects.filter(
            status__in=[InvoiceModel.Status.SENT, InvoiceModel.Status.PARTIALLY_PAID],
            due_date__lt=now,
        ).values_list("id", flat=True).iterator()

    @staticmethod
    def _fields(invoice: Invoice) -> dict:
        return {
            "due_date": invoice.due_date,
            "subtotal": invoice.subtotal.amount,
            "platform_fee": invoice.platform_fee.amount,
            "total_amount": invoice.total_amount.amount,
            "status": invoice.status.value,
            "notes": invoice.notes,
            "updated_at": invoice.updated_at,
        }

    @staticmethod
    def _to_domain(row: InvoiceModel) -> Invoice:
        currency = row.currency
        return Invoice(
            id=row.id,
            version=row.version,
            created_at=row.created_at,
            updated_at=row.updated_at,
            account_id=row.account_id,
            booking_id=row.booking_id,
            sitter_id=row.booking.sitter_id,
            invoice_number=row.invoice_number,
            issue_date=row.issue_date,
            due_date=row.due_date,
            subtotal=Money(row.subtotal, currency),
            platform_fee=Money(row.platform_fee, currency),
            total_amount=Money(row.total_amount, currency),
            items=[
                InvoiceItem(
                    id=item.id,
                    description=item.description,
                    quantity=item.quantity,
                    unit_price=Money(item.unit_price, currency),
                )
                for item in row.items.all()
            ],
            status=InvoiceStatus(row.status),
            notes=row.notes,
        )


class DjangoPlatformFeeRepository:

    def exists_for_booking(self, booking_id: UUID) -> bool:
        return PlatformFee.objects.filter(booking_id=booking_id).exists()

    def record(
        self, booking_id: UUID, base_amount, fee_percentage, fee_amount, net_amount, *, replace=False
    ) -> bool:
        """
        Store the ledger entry for a booking; returns True when a row was created

        A pre-calculated entry is kept as is unless `replace` is set, which is
        how the amounts billed on the invoice overwrite it.
        """
        lookup = PlatformFee.objects.update_or_create if replace else PlatformFee.objects.get_or_create
        _, created = lookup(
            booking_id=booking_id,
            defaults={
                "base_amount": base_amount,
                "fee_percentage": fee_percentage,
                "fee_amount": fee_amount,
                "net_amount": net_amount,
            },
        )
        return created
