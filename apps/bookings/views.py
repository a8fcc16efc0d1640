"""API views for the booking domain."""

from __future__ import annotations

from uuid import UUID

from django.db.models import Q  # type: ignore
from django.http import Http404  # type: ignore
from rest_framework import permissions, status, viewsets  # type: ignore
from rest_framework.decorators import action  # type: ignore
from rest_framework.response import Response  # type: ignore

from shared.api.requester import requester_from_request

from .application.command_handlers import (
    CreateBookingCommand,
    CreateBookingHandler,
    DeleteBookingCommand,
    DeleteBookingHandler,
    TransitionBookingCommand,
    TransitionBookingHandler,
    UpdateBookingCommand,
    UpdateBookingHandler,
)
from .domain.entities import BookingStatus
from .infrastructure.reference_data import DjangoReferenceData
from .infrastructure.repositories import DjangoBookingRepository
from .models import Booking
from .serializers import (
    BookingCreateSerializer,
    BookingSerializer,
    BookingStatusSerializer,
    BookingUpdateSerializer,
)
from .services import ConflictChecker


def _booking_id(pk) -> UUID:  # type: ignore
    try:
        return UUID(str(pk))
    except ValueError:
        raise Http404("Reserva no encontrada") from None


class BookingViewSet(viewsets.ModelViewSet):
    """Viewset para crear y gestionar reservas.

    Listing is scoped by role: sitters see the bookings assigned to them,
    clients the ones they made or that belong to their accounts, admins
    everything.
    """

    queryset = Booking.objects.select_related("pet", "sitter", "service_offering", "booked_by", "account").all()
    serializer_class = BookingSerializer
    permission_classes = [permissions.IsAuthenticated]
    filterset_fields = ["status"]
    http_method_names = ["get", "post", "patch", "delete", "head", "options"]

    def get_queryset(self):  # type: ignore
        user = self.request.user
        qs = super().get_queryset()
        requester = requester_from_request(self.request)
        if requester.is_admin:
            return qs
        if hasattr(user, "is_sitter") and user.is_sitter():
            return qs.filter(sitter=user)
        return qs.filter(
            Q(booked_by=user) | Q(account__owner=user) | Q(account__memberships__user=user)
        ).distinct()

    def _reference_data(self) -> DjangoReferenceData:
        return DjangoReferenceData()

    def _respond(self, booking_id: UUID, http_status: int = status.HTTP_200_OK) -> Response:
        booking = Booking.objects.select_related(
            "pet", "sitter", "service_offering", "booked_by", "account"
        ).get(pk=booking_id)
        serializer = BookingSerializer(booking, context=self.get_serializer_context())
        return Response(serializer.data, status=http_status)

    def create(self, request, *args, **kwargs):  # type: ignore
        serializer = BookingCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        handler = CreateBookingHandler(DjangoBookingRepository(), self._reference_data(), ConflictChecker())
        booking = handler.handle(CreateBookingCommand(
            pet_id=data["pet"],
            sitter_id=data["sitter"],
            service_offering_id=data["service_offering"],
            start_time=data["start_time"],
            notes=data.get("notes", ""),
            requester=requester_from_request(request),
        ))
        return self._respond(booking.id, status.HTTP_201_CREATED)

    def partial_update(self, request, pk=None, *args, **kwargs):  # type: ignore
        serializer = BookingUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        handler = UpdateBookingHandler(DjangoBookingRepository(), self._reference_data(), ConflictChecker())
        booking = handler.handle(UpdateBookingCommand(
            booking_id=_booking_id(pk),
            start_time=data.get("start_time"),
            notes=data.get("notes"),
            requester=requester_from_request(request),
        ))
        return self._respond(booking.id)

    def destroy(self, request, pk=None, *args, **kwargs):  # type: ignore
        handler = DeleteBookingHandler(DjangoBookingRepository(), self._reference_data())
        handler.handle(DeleteBookingCommand(
            booking_id=_booking_id(pk),
            requester=requester_from_request(request),
        ))
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["post"], url_path="status", url_name="status")
    def change_status(self, request, pk=None):  # type: ignore
        serializer = BookingStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        handler = TransitionBookingHandler(DjangoBookingRepository(), self._reference_data())
        booking = handler.handle(TransitionBookingCommand(
            booking_id=_booking_id(pk),
            target_status=BookingStatus(serializer.validated_data["status"]),
            reason=serializer.validated_data.get("reason", ""),
            requester=requester_from_request(request),
        ))
        return self._respond(booking.id)
