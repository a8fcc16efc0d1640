"""Billing models for Petcare: invoices, their items, platform fees and payments."""

from __future__ import annotations

import uuid
from decimal import Decimal

from django.db import models, transaction  # type: ignore
from django.utils import timezone  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


class Invoice(models.Model):
    """Factura emitida a una cuenta por una reserva completada."""

    class Status(models.TextChoices):
        DRAFT = "draft", _("Borrador")
        SENT = "sent", _("Enviada")
        PAID = "paid", _("Pagada")
        PARTIALLY_PAID = "partially_paid", _("Pagada parcialmente")
        OVERDUE = "overdue", _("Vencida")
        CANCELLED = "cancelled", _("Cancelada")
        REFUNDED = "refunded", _("Reembolsada")

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    account = models.ForeignKey(
        "users.Account",
        on_delete=models.PROTECT,
        related_name="invoices",
    )
    booking = models.OneToOneField(
        "bookings.Booking",
        on_delete=models.PROTECT,
        related_name="invoice",
    )
    invoice_number = models.CharField(max_length=32, unique=True)
    issue_date = models.DateTimeField()
    due_date = models.DateTimeField()
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    platform_fee = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    currency = models.CharField(max_length=3, default="USD")
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.DRAFT)
    notes = models.TextField(blank=True)
    document = models.FileField(
        upload_to="invoices/%Y/%m/",
        blank=True,
        help_text=_("Última versión renderizada del PDF."),
    )
    version = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        verbose_name = _("Factura")
        verbose_name_plural = _("Facturas")
        ordering = ["-issue_date"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(due_date__gte=models.F("issue_date")),
                name="invoice_due_after_issue",
            ),
        ]
        indexes = [
            models.Index(fields=["account", "status"]),
            models.Index(fields=["status", "due_date"]),
        ]

    def __str__(self) -> str:
        return f"{self.invoice_number} ({self.get_status_display()})"


class InvoiceItem(models.Model):
    """Línea de una factura. Se guarda siempre junto con su factura."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name="items")
    description = models.CharField(max_length=255)
    quantity = models.PositiveSmallIntegerField()
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    line_total = models.DecimalField(max_digits=12, decimal_places=2)
    position = models.PositiveSmallIntegerField(default=0)

    class Meta:
        verbose_name = _("Ítem de factura")
        verbose_name_plural = _("Ítems de factura")
        ordering = ["position"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gte=1) & models.Q(quantity__lte=999),
                name="invoice_item_quantity_range",
            ),
            models.CheckConstraint(
                condition=models.Q(unit_price__gt=0),
                name="invoice_item_unit_price_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.description} x{self.quantity}"


class PlatformFee(models.Model):
    """Registro de auditoría de la comisión de la plataforma para una reserva."""

    booking = models.OneToOneField(
        "bookings.Booking",
        on_delete=models.CASCADE,
        related_name="platform_fee",
    )
    base_amount = models.DecimalField(max_digits=12, decimal_places=2)
    fee_percentage = models.DecimalField(max_digits=5, decimal_places=2)
    fee_amount = models.DecimalField(max_digits=12, decimal_places=2)
    net_amount = models.DecimalField(max_digits=12, decimal_places=2)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _("Comisión de plataforma")
        verbose_name_plural = _("Comisiones de plataforma")
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"Fee {self.fee_amount} on booking {self.booking_id}"


class Payment(models.Model):
    """Pago registrado contra una factura."""

    class Status(models.TextChoices):
        PENDING = "pending", _("Pendiente")
        PROCESSING = "processing", _("En proceso")
        COMPLETED = "completed", _("Completado")
        FAILED = "failed", _("Fallido")
        CANCELLED = "cancelled", _("Cancelado")
        REFUNDED = "refunded", _("Reembolsado")
        DISPUTED = "disputed", _("En disputa")

    invoice = models.ForeignKey(Invoice, on_delete=models.PROTECT, related_name="payments")
    amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    transaction_id = models.CharField(max_length=100, blank=True)
    failure_reason = models.CharField(max_length=255, blank=True)
    processed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _("Pago")
        verbose_name_plural = _("Pagos")
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"Payment {self.amount} for {self.invoice_id} ({self.get_status_display()})"


class InvoiceNumberSequence(models.Model):
    """Contador anual de números de factura."""

    year = models.PositiveIntegerField(unique=True)
    last_value = models.PositiveIntegerField(default=0)

    class Meta:
        verbose_name = _("Secuencia de facturas")
        verbose_name_plural = _("Secuencias de facturas")

    def __str__(self) -> str:
        return f"{self.year}: {self.last_value}"

    @classmethod
    def next_value(cls, year: int) -> int:
        """Reserve the next number for ``year``; the row stays locked until commit."""
        with transaction.atomic():
            cls.objects.get_or_create(year=year)
            sequence = cls.objects.select_for_update().get(year=year)
            sequence.last_value += 1
            sequence.save(update_fields=["last_value"])
            return sequence.last_value
