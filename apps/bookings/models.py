"""Booking persistence models for Petcare."""

from __future__ import annotations

import uuid
from decimal import Decimal

from django.conf import settings  # type: ignore
from django.db import models  # type: ignore
from django.utils import timezone  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


class Booking(models.Model):
    """Reserva de un servicio de cuidado para una mascota."""

    class Status(models.TextChoices):
        PENDING = "pending", _("Pendiente")
        CONFIRMED = "confirmed", _("Confirmada")
        IN_PROGRESS = "in_progress", _("En curso")
        COMPLETED = "completed", _("Completada")
        CANCELLED = "cancelled", _("Cancelada")

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    pet = models.ForeignKey(
        "pets.Pet",
        on_delete=models.PROTECT,
        related_name="bookings",
    )
    sitter = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="sitter_bookings",
    )
    service_offering = models.ForeignKey(
        "sitters.ServiceOffering",
        on_delete=models.PROTECT,
        related_name="bookings",
    )
    booked_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="bookings",
    )
    account = models.ForeignKey(
        "users.Account",
        on_delete=models.PROTECT,
        related_name="bookings",
        help_text=_("Cuenta de la mascota a la que se factura la reserva."),
    )
    start_time = models.DateTimeField()
    end_time = models.DateTimeField()
    total_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text=_("Precio del servicio fijado al crear la reserva."),
    )
    status = models.CharField(
        max_length=32,
        choices=Status.choices,
        default=Status.PENDING,
    )
    notes = models.TextField(blank=True)
    cancellation_reason = models.CharField(max_length=500, blank=True)
    actual_start_time = models.DateTimeField(null=True, blank=True)
    actual_end_time = models.DateTimeField(null=True, blank=True)
    version = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        verbose_name = _("Reserva")
        verbose_name_plural = _("Reservas")
        ordering = ["-start_time"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(end_time__gt=models.F("start_time")),
                name="booking_valid_window",
            ),
            models.CheckConstraint(
                condition=models.Q(total_price__gte=0),
                name="booking_price_non_negative",
            ),
        ]
        indexes = [
            models.Index(fields=["sitter", "start_time", "end_time"]),
            models.Index(fields=["booked_by", "status"]),
            models.Index(fields=["status"]),
        ]

    def __str__(self) -> str:
        return f"Reserva #{str(self.id)[:8].upper()} ({self.get_status_display()})"

    @property
    def short_id(self) -> str:
        return self.id.hex[:8].upper()
