"""Serializers for the finance domain (invoices)."""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

from .domain.entities import MAX_ITEM_QUANTITY
from .models import Invoice, InvoiceItem


class InvoiceItemInputSerializer(serializers.Serializer):
    description = serializers.CharField(max_length=255)
    quantity = serializers.IntegerField(min_value=1, max_value=MAX_ITEM_QUANTITY)
    unit_price = serializers.DecimalField(max_digits=12, decimal_places=2)


class InvoiceGenerateSerializer(serializers.Serializer):
    """Generación manual de una factura para una reserva completada."""

    booking = serializers.UUIDField()
    items = InvoiceItemInputSerializer(many=True, required=False, default=list)
    notes = serializers.CharField(required=False, allow_blank=True, max_length=2000)
    send = serializers.BooleanField(required=False, default=True)


class InvoiceUpdateSerializer(serializers.Serializer):
    due_date = serializers.DateTimeField(required=False)
    notes = serializers.CharField(required=False, allow_blank=True, max_length=2000)
    subtotal = serializers.DecimalField(max_digits=12, decimal_places=2, required=False)
    platform_fee = serializers.DecimalField(max_digits=12, decimal_places=2, required=False)
    total_amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False)


class InvoiceCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=500)


class InvoiceItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = InvoiceItem
        fields = ["id", "description", "quantity", "unit_price", "line_total"]
        read_only_fields = fields


class InvoiceSerializer(serializers.ModelSerializer):
    """Detalle de una factura con sus ítems."""

    items = InvoiceItemSerializer(many=True, read_only=True)
    account_name = serializers.ReadOnlyField(source="account.account_name")
    has_document = serializers.SerializerMethodField()

    class Meta:
        model = Invoice
        fields = [
            "id",
            "invoice_number",
            "account",
            "account_name",
            "booking",
            "issue_date",
            "due_date",
            "subtotal",
            "platform_fee",
            "total_amount",
            "currency",
            "status",
            "notes",
            "items",
            "has_document",
            "version",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_has_document(self, obj: Invoice) -> bool:
        return bool(obj.document)
