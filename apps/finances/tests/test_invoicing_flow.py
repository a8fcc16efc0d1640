"""End-to-end: a booking goes through its lifecycle and gets invoiced."""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
from unittest import mock

from django.core import mail
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from apps.bookings.infrastructure.repositories import DjangoBookingRepository
from apps.bookings.models import Booking
from apps.finances import tasks
from apps.finances.application.command_handlers import (
    GenerateInvoiceCommand,
    GenerateInvoiceHandler,
)
from apps.finances.domain.entities import AUTO_GENERATED_NOTE
from apps.finances.domain.fees import fee_calculator
from apps.finances.infrastructure.repositories import DjangoInvoiceRepository
from apps.finances.models import Invoice, PlatformFee
from apps.notifications.models import Notification
from apps.pets.models import Pet
from apps.sitters.models import ServiceOffering
from apps.users.models import Account, CustomUser
from shared.domain.exceptions import DuplicateInvoiceError


class InvoicingFlowTests(APITestCase):
    """Completion of a booking produces exactly one invoice and its side effects."""

    def setUp(self) -> None:
        self.owner = CustomUser.objects.create_user(
            email="cliente@example.com",
            password="ClientePass123",
        )
        self.sitter = CustomUser.objects.create_user(
            email="cuidador@example.com",
            password="CuidadorPass123",
            role=CustomUser.RoleChoices.SITTER,
        )
        self.account = Account.objects.create(
            account_number="ACC-0100",
            account_name="Familia Pérez",
            owner=self.owner,
        )
        self.pet = Pet.objects.create(account=self.account, name="Toby")
        self.offering = ServiceOffering.objects.create(
            sitter=self.sitter,
            name="Paseo de una hora",
            service_type=ServiceOffering.ServiceType.WALKING,
            price=Decimal("50.00"),
            duration_minutes=60,
        )
        self.start = timezone.now() + timedelta(days=1)

    def _book(self) -> str:
        self.client.force_authenticate(self.owner)
        response = self.client.post(
            reverse("booking-list"),
            {
                "pet": self.pet.id,
                "sitter": self.sitter.id,
                "service_offering": self.offering.id,
                "start_time": self.start.isoformat(),
            },
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        return response.data["id"]

    def _complete(self, booking_id: str) -> None:
        self.client.force_authenticate(self.sitter)
        url = reverse("booking-status", args=[booking_id])
        for new_status in ("confirmed", "in_progress", "completed"):
            response = self.client.post(url, {"status": new_status}, format="json")
            self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)

    def test_completed_booking_is_invoiced(self) -> None:
        with self.captureOnCommitCallbacks(execute=True):
            booking_id = self._book()
            self._complete(booking_id)

        invoice = Invoice.objects.get(booking_id=booking_id)
        self.assertEqual(invoice.status, Invoice.Status.SENT)
        self.assertEqual(invoice.account, self.account)
        self.assertEqual(invoice.subtotal, Decimal("50.00"))
        self.assertEqual(invoice.platform_fee, Decimal("5.00"))
        self.assertEqual(invoice.total_amount, Decimal("55.00"))
        self.assertEqual(invoice.due_date - invoice.issue_date, timedelta(days=15))
        self.assertEqual(invoice.notes, AUTO_GENERATED_NOTE)
        self.assertRegex(invoice.invoice_number, rf"^INV-{invoice.issue_date.year}-\d{{6}}$")

        (item,) = invoice.items.all()
        booking_ref = Booking.objects.get(pk=booking_id).short_id
        self.assertEqual(item.description, f"Paseo de una hora - Reserva #{booking_ref}")
        self.assertEqual(item.line_total, Decimal("50.00"))

        fee = PlatformFee.objects.get(booking_id=booking_id)
        self.assertEqual((fee.fee_amount, fee.net_amount), (Decimal("5.00"), Decimal("45.00")))

        self.assertTrue(invoice.document.name.startswith("invoices/"))
        with invoice.document.open("rb") as pdf:
            self.assertTrue(pdf.read().startswith(b"%PDF"))

        invoice_mail = [m for m in mail.outbox if m.subject == f"Factura {invoice.invoice_number}"]
        self.assertEqual(len(invoice_mail), 1)
        self.assertEqual(invoice_mail[0].to, ["cliente@example.com"])
        filename, content, mimetype = invoice_mail[0].attachments[0]
        self.assertEqual(filename, f"{invoice.invoice_number}.pdf")
        self.assertEqual(mimetype, "application/pdf")

        self.assertTrue(
            Notification.objects.filter(recipient=self.owner, template_key="invoice-generated").exists()
        )
        self.assertTrue(
            Notification.objects.filter(recipient=self.owner, template_key="booking-status-completed").exists()
        )

    def test_second_generation_is_rejected(self) -> None:
        with self.captureOnCommitCallbacks(execute=True):
            booking_id = self._book()
            self._complete(booking_id)

        handler = GenerateInvoiceHandler(DjangoInvoiceRepository(), DjangoBookingRepository(), fee_calculator)
        with self.assertRaises(DuplicateInvoiceError):
            handler.handle(GenerateInvoiceCommand(booking_id=Booking.objects.get(pk=booking_id).id))

        self.assertEqual(Invoice.objects.filter(booking_id=booking_id).count(), 1)

    def test_rendering_failure_does_not_touch_invoice_or_email(self) -> None:
        with mock.patch.object(tasks.render_invoice_document, "delay", side_effect=RuntimeError("broker down")):
            with self.captureOnCommitCallbacks(execute=True):
                booking_id = self._book()
                self._complete(booking_id)

        invoice = Invoice.objects.get(booking_id=booking_id)
        self.assertEqual(invoice.status, Invoice.Status.SENT)
        self.assertFalse(invoice.document)
        self.assertTrue(any(m.subject == f"Factura {invoice.invoice_number}" for m in mail.outbox))

    def test_failed_generation_is_recovered_by_reconciliation(self) -> None:
        with mock.patch.object(GenerateInvoiceHandler, "handle", side_effect=RuntimeError("db hiccup")):
            with self.captureOnCommitCallbacks(execute=True):
                booking_id = self._book()
                self._complete(booking_id)

        self.assertEqual(Booking.objects.get(pk=booking_id).status, Booking.Status.COMPLETED)
        self.assertFalse(Invoice.objects.filter(booking_id=booking_id).exists())

        with self.captureOnCommitCallbacks(execute=True):
            result = tasks.invoice_completed_bookings()

        self.assertEqual(result, {"invoiced": 1, "failed": 0})
        self.assertEqual(Invoice.objects.get(booking_id=booking_id).total_amount, Decimal("55.00"))

    def test_free_booking_is_not_invoiced(self) -> None:
        self.offering.price = Decimal("0.00")
        self.offering.save(update_fields=["price"])

        with self.captureOnCommitCallbacks(execute=True):
            booking_id = self._book()
            self._complete(booking_id)

        self.assertFalse(Invoice.objects.filter(booking_id=booking_id).exists())
        self.assertEqual(tasks.invoice_completed_bookings(), {"invoiced": 0, "failed": 0})

    def test_overdue_sweep(self) -> None:
        with self.captureOnCommitCallbacks(execute=True):
            booking_id = self._book()
            self._complete(booking_id)
        now = timezone.now()
        Invoice.objects.filter(booking_id=booking_id).update(
            issue_date=now - timedelta(days=16),
            due_date=now - timedelta(days=1),
        )

        self.assertEqual(tasks.mark_overdue_invoices(), {"overdue": 1})
        self.assertEqual(Invoice.objects.get(booking_id=booking_id).status, Invoice.Status.OVERDUE)
        self.assertEqual(tasks.mark_overdue_invoices(), {"overdue": 0})
