"""Serializers for the booking domain.

Input serializers only check shapes; the business rules live in the
command handlers.
"""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

from .models import Booking


class BookingCreateSerializer(serializers.Serializer):
    """Datos para crear una reserva."""

    pet = serializers.IntegerField(min_value=1)
    sitter = serializers.IntegerField(min_value=1)
    service_offering = serializers.IntegerField(min_value=1)
    start_time = serializers.DateTimeField()
    notes = serializers.CharField(required=False, allow_blank=True, default="", max_length=2000)


class BookingUpdateSerializer(serializers.Serializer):
    """Cambios parciales: horario de inicio y/o notas."""

    start_time = serializers.DateTimeField(required=False)
    notes = serializers.CharField(required=False, allow_blank=True, max_length=2000)


class BookingStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Booking.Status.choices)
    reason = serializers.CharField(required=False, allow_blank=True, default="", max_length=500)


class BookingSerializer(serializers.ModelSerializer):
    """Detalle de una reserva."""

    pet_name = serializers.ReadOnlyField(source="pet.name")
    sitter_name = serializers.ReadOnlyField(source="sitter.display_name")
    service_name = serializers.ReadOnlyField(source="service_offering.name")

    class Meta:
        model = Booking
        fields = [
            "id",
            "pet",
            "pet_name",
            "sitter",
            "sitter_name",
            "service_offering",
            "service_name",
            "booked_by",
            "account",
            "start_time",
            "end_time",
            "total_price",
            "status",
            "notes",
            "cancellation_reason",
            "actual_start_time",
            "actual_end_time",
            "version",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields
