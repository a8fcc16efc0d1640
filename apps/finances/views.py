"""API views for invoices.

Invoices are normally generated by the system when a booking is
completed. Sitters and admins may also generate one manually, send a
draft, cancel or correct it. Account members can only read their
invoices and download the PDF.
"""

from __future__ import annotations

import logging
from uuid import UUID

from django.db.models import Q  # type: ignore
from django.http import Http404, HttpResponse  # type: ignore
from rest_framework import permissions, status, viewsets  # type: ignore
from rest_framework.decorators import action  # type: ignore
from rest_framework.response import Response  # type: ignore

from apps.bookings.infrastructure.repositories import DjangoBookingRepository
from shared.api.requester import requester_from_request

from .application.command_handlers import (
    CancelInvoiceCommand,
    CancelInvoiceHandler,
    GenerateInvoiceCommand,
    GenerateInvoiceHandler,
    ItemInput,
    SendInvoiceCommand,
    SendInvoiceHandler,
    UpdateInvoiceCommand,
    UpdateInvoiceHandler,
)
from .domain.entities import InvoicePatch
from .domain.fees import fee_calculator
from .infrastructure.repositories import DjangoInvoiceRepository
from .models import Invoice
from .rendering import InvoiceDocument, document_renderer
from .serializers import (
    InvoiceCancelSerializer,
    InvoiceGenerateSerializer,
    InvoiceSerializer,
    InvoiceUpdateSerializer,
)

logger = logging.getLogger(__name__)


def _invoice_id(pk) -> UUID:  # type: ignore
    try:
        return UUID(str(pk))
    except ValueError:
        raise Http404("Factura no encontrada") from None


class InvoiceViewSet(viewsets.ModelViewSet):
    """Viewset para consultar y gestionar facturas."""

    queryset = Invoice.objects.select_related("account", "booking").prefetch_related("items").all()
    serializer_class = InvoiceSerializer
    permission_classes = [permissions.IsAuthenticated]
    filterset_fields = ["status", "account"]
    http_method_names = ["get", "post", "patch", "head", "options"]

    def get_queryset(self):  # type: ignore
        user = self.request.user
        qs = super().get_queryset()
        if requester_from_request(self.request).is_admin:
            return qs
        return qs.filter(
            Q(booking__sitter=user) | Q(account__owner=user) | Q(account__memberships__user=user)
        ).distinct()

    def _respond(self, invoice_id: UUID, http_status: int = status.HTTP_200_OK) -> Response:
        invoice = Invoice.objects.select_related("account", "booking").prefetch_related("items").get(pk=invoice_id)
        serializer = InvoiceSerializer(invoice, context=self.get_serializer_context())
        return Response(serializer.data, status=http_status)

    def create(self, request, *args, **kwargs):  # type: ignore
        serializer = InvoiceGenerateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        handler = GenerateInvoiceHandler(DjangoInvoiceRepository(), DjangoBookingRepository(), fee_calculator)
        invoice = handler.handle(GenerateInvoiceCommand(
            booking_id=data["booking"],
            requester=requester_from_request(request),
            notes=data.get("notes"),
            items=[ItemInput(**item) for item in data.get("items", [])],
            send=data.get("send", True),
        ))
        return self._respond(invoice.id, status.HTTP_201_CREATED)

    def partial_update(self, request, pk=None, *args, **kwargs):  # type: ignore
        serializer = InvoiceUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        handler = UpdateInvoiceHandler(DjangoInvoiceRepository())
        invoice = handler.handle(UpdateInvoiceCommand(
            invoice_id=_invoice_id(pk),
            patch=InvoicePatch(**serializer.validated_data),
            requester=requester_from_request(request),
        ))
        return self._respond(invoice.id)

    @action(detail=True, methods=["post"])
    def send(self, request, pk=None):  # type: ignore
        handler = SendInvoiceHandler(DjangoInvoiceRepository())
        invoice = handler.handle(SendInvoiceCommand(
            invoice_id=_invoice_id(pk),
            requester=requester_from_request(request),
        ))
        return self._respond(invoice.id)

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):  # type: ignore
        serializer = InvoiceCancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        handler = CancelInvoiceHandler(DjangoInvoiceRepository())
        invoice = handler.handle(CancelInvoiceCommand(
            invoice_id=_invoice_id(pk),
            reason=serializer.validated_data["reason"],
            requester=requester_from_request(request),
        ))
        return self._respond(invoice.id)

    @action(detail=True, methods=["get"])
    def pdf(self, request, pk=None):  # type: ignore
        invoice = self.get_object()
        document = InvoiceDocument.from_model(invoice)
        content = document_renderer.render(document)
        logger.info(f"Invoice {invoice.invoice_number} downloaded by user {request.user.pk}")

        response = HttpResponse(content, content_type="application/pdf")
        response["Content-Disposition"] = f'attachment; filename="{document.filename}"'
        return response
