"""Integration tests for booking API endpoints."""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
from unittest import mock

from django.core import mail
from django.test import override_settings
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from apps.bookings.domain.entities import BookingStatus
from apps.bookings.infrastructure.repositories import DjangoBookingRepository
from apps.bookings.models import Booking
from apps.finances.models import PlatformFee
from apps.notifications.models import Notification
from apps.pets.models import Pet
from apps.sitters.models import ServiceOffering
from apps.users.models import Account, AccountMember, CustomUser
from shared.domain.exceptions import ConcurrentModificationError


class BookingAPITests(APITestCase):
    """Covers creación, conflictos, transiciones y eliminación de reservas."""

    def setUp(self) -> None:
        self.client_user = CustomUser.objects.create_user(
            email="cliente@example.com",
            phone="+34600000001",
            password="ClientePass123",
            role=CustomUser.RoleChoices.CLIENT,
        )
        self.sitter = CustomUser.objects.create_user(
            email="cuidador@example.com",
            phone="+34600000002",
            password="CuidadorPass123",
            role=CustomUser.RoleChoices.SITTER,
        )
        self.stranger = CustomUser.objects.create_user(
            email="otro@example.com",
            phone="+34600000003",
            password="OtroPass123",
        )
        self.account = Account.objects.create(
            account_number="ACC-0001",
            account_name="Familia García",
            owner=self.client_user,
        )
        self.pet = Pet.objects.create(account=self.account, name="Luna", species=Pet.Species.DOG)
        self.offering = ServiceOffering.objects.create(
            sitter=self.sitter,
            name="Paseo de una hora",
            service_type=ServiceOffering.ServiceType.WALKING,
            price=Decimal("50.00"),
            duration_minutes=60,
        )
        self.start = (timezone.now() + timedelta(days=2)).replace(minute=0, second=0, microsecond=0)
        self.client.force_authenticate(self.client_user)
        self.list_url = reverse("booking-list")

    def _payload(self, start=None, **overrides) -> dict:
        payload = {
            "pet": self.pet.id,
            "sitter": self.sitter.id,
            "service_offering": self.offering.id,
            "start_time": (start or self.start).isoformat(),
            "notes": "Le gusta el parque",
        }
        payload.update(overrides)
        return payload

    def _create(self, start=None, **overrides):
        return self.client.post(self.list_url, self._payload(start, **overrides), format="json")

    def _change_status(self, booking_id, new_status: str, reason: str = ""):
        url = reverse("booking-status", args=[booking_id])
        return self.client.post(url, {"status": new_status, "reason": reason}, format="json")

    def test_client_can_create_booking(self) -> None:
        with self.captureOnCommitCallbacks(execute=True):
            response = self._create()

        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        booking = Booking.objects.get(pk=response.data["id"])
        self.assertEqual(booking.status, Booking.Status.PENDING)
        self.assertEqual(booking.end_time - booking.start_time, timedelta(minutes=60))
        self.assertEqual(booking.total_price, Decimal("50.00"))
        self.assertEqual(booking.booked_by, self.client_user)
        self.assertEqual(booking.account, self.account)
        self.assertEqual(response.data["service_name"], "Paseo de una hora")

        fee = PlatformFee.objects.get(booking=booking)
        self.assertEqual(fee.fee_amount, Decimal("5.00"))
        self.assertEqual(fee.net_amount, Decimal("45.00"))

        templates = set(Notification.objects.values_list("recipient__email", "template_key"))
        self.assertIn(("cliente@example.com", "new-booking-client"), templates)
        self.assertIn(("cuidador@example.com", "new-booking-sitter"), templates)
        self.assertEqual(len(mail.outbox), 2)

    def test_lead_time_is_enforced(self) -> None:
        response = self._create(start=timezone.now() + timedelta(minutes=30))

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, response.data)
        self.assertEqual(response.data["code"], "validation_error")
        self.assertIn("1 hora de anticipación", response.data["detail"])
        self.assertFalse(Booking.objects.exists())

    def test_prevent_double_booking_on_overlap(self) -> None:
        first = self._create()
        self.assertEqual(first.status_code, status.HTTP_201_CREATED, first.data)

        conflict = self._create(start=self.start + timedelta(minutes=30))

        self.assertEqual(conflict.status_code, status.HTTP_409_CONFLICT, conflict.data)
        self.assertEqual(conflict.data["code"], "schedule_conflict")
        self.assertEqual(Booking.objects.count(), 1)

    def test_back_to_back_bookings_are_allowed(self) -> None:
        first = self._create()
        second = self._create(start=self.start + timedelta(minutes=60))

        self.assertEqual(first.status_code, status.HTTP_201_CREATED, first.data)
        self.assertEqual(second.status_code, status.HTTP_201_CREATED, second.data)
        self.assertEqual(Booking.objects.count(), 2)

    def test_cancelled_booking_frees_the_slot(self) -> None:
        first = self._create()
        self.client.force_authenticate(self.sitter)
        self._change_status(first.data["id"], "cancelled", "Enfermo")

        self.client.force_authenticate(self.client_user)
        again = self._create()

        self.assertEqual(again.status_code, status.HTTP_201_CREATED, again.data)

    def test_non_member_cannot_book_for_pet(self) -> None:
        self.client.force_authenticate(self.stranger)

        response = self._create()

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN, response.data)
        self.assertFalse(Booking.objects.exists())

    def test_account_member_can_book_for_pet(self) -> None:
        AccountMember.objects.create(account=self.account, user=self.stranger)
        self.client.force_authenticate(self.stranger)

        response = self._create()

        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)

    def test_unknown_pet_returns_not_found(self) -> None:
        response = self._create(pet=999999)

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND, response.data)
        self.assertEqual(response.data["code"], "not_found")

    def test_offering_must_belong_to_sitter(self) -> None:
        other_sitter = CustomUser.objects.create_user(
            email="cuidador2@example.com",
            password="Cuidador2Pass123",
            role=CustomUser.RoleChoices.SITTER,
        )
        foreign = ServiceOffering.objects.create(
            sitter=other_sitter,
            name="Guardería",
            service_type=ServiceOffering.ServiceType.DAYCARE,
            price=Decimal("30.00"),
            duration_minutes=120,
        )

        response = self._create(service_offering=foreign.id)

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, response.data)
        self.assertEqual(response.data["detail"], "El servicio no pertenece al cuidador seleccionado")

    def test_inactive_offering_is_rejected(self) -> None:
        self.offering.is_active = False
        self.offering.save(update_fields=["is_active"])

        response = self._create()

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, response.data)
        self.assertEqual(response.data["detail"], "El servicio seleccionado no está activo")

    def test_sitter_role_is_required(self) -> None:
        response = self._create(sitter=self.stranger.id)

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, response.data)
        self.assertEqual(response.data["detail"], "El usuario seleccionado no es un cuidador activo")

    @override_settings(BOOKING_MAX_PENDING_PER_USER=1)
    def test_pending_bookings_cap(self) -> None:
        first = self._create()
        self.assertEqual(first.status_code, status.HTTP_201_CREATED, first.data)

        second = self._create(start=self.start + timedelta(days=1))

        self.assertEqual(second.status_code, status.HTTP_409_CONFLICT, second.data)
        self.assertEqual(second.data["detail"], "Ha alcanzado el límite máximo de reservas pendientes")

    def test_sitter_moves_booking_through_lifecycle(self) -> None:
        booking_id = self._create().data["id"]
        self.client.force_authenticate(self.sitter)

        for new_status in ("confirmed", "in_progress"):
            response = self._change_status(booking_id, new_status)
            self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
            self.assertEqual(response.data["status"], new_status)

        booking = Booking.objects.get(pk=booking_id)
        self.assertIsNotNone(booking.actual_start_time)
        self.assertEqual(booking.version, 2)

    def test_stale_copy_cannot_overwrite_newer_booking(self) -> None:
        booking_id = Booking.objects.get(pk=self._create().data["id"]).id
        repo = DjangoBookingRepository()
        fresh, stale = repo.get_by_id(booking_id), repo.get_by_id(booking_id)

        fresh.transition_to(BookingStatus.CONFIRMED, changed_by_id=self.sitter.id)
        repo.save(fresh)
        stale.transition_to(BookingStatus.CANCELLED, reason="Imprevisto", changed_by_id=self.client_user.id)

        with self.assertRaises(ConcurrentModificationError):
            repo.save(stale)
        booking = Booking.objects.get(pk=booking_id)
        self.assertEqual((booking.status, booking.version), (Booking.Status.CONFIRMED, 1))

    def test_stale_status_change_returns_conflict(self) -> None:
        booking_id = self._create().data["id"]
        stale = DjangoBookingRepository().get_by_id(Booking.objects.get(pk=booking_id).id)
        self.client.force_authenticate(self.sitter)
        self.assertEqual(self._change_status(booking_id, "confirmed").status_code, status.HTTP_200_OK)

        with mock.patch.object(DjangoBookingRepository, "get_by_id", return_value=stale):
            response = self._change_status(booking_id, "cancelled", reason="Imprevisto")

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT, response.data)
        self.assertEqual(response.data["code"], "concurrent_modification")
        self.assertEqual(Booking.objects.get(pk=booking_id).status, Booking.Status.CONFIRMED)

    def test_invalid_transition_is_rejected(self) -> None:
        booking_id = self._create().data["id"]
        self.client.force_authenticate(self.sitter)

        response = self._change_status(booking_id, "completed")

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT, response.data)
        self.assertEqual(response.data["code"], "invalid_transition")
        self.assertEqual(Booking.objects.get(pk=booking_id).status, Booking.Status.PENDING)

    def test_cancel_requires_reason(self) -> None:
        booking_id = self._create().data["id"]

        response = self._change_status(booking_id, "cancelled")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, response.data)
        self.assertEqual(Booking.objects.get(pk=booking_id).status, Booking.Status.PENDING)

    def test_stranger_cannot_change_status(self) -> None:
        booking_id = self._create().data["id"]
        self.client.force_authenticate(self.stranger)

        response = self._change_status(booking_id, "confirmed")

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN, response.data)

    def test_client_cancellation_notifies_sitter(self) -> None:
        booking_id = self._create().data["id"]

        with self.captureOnCommitCallbacks(execute=True):
            response = self._change_status(booking_id, "cancelled", "Cambio de planes")

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(response.data["cancellation_reason"], "Cambio de planes")
        notice = Notification.objects.get(recipient=self.sitter, template_key="booking-status-cancelled")
        self.assertIn("Cambio de planes", notice.message)

    def test_reschedule_keeps_duration(self) -> None:
        booking_id = self._create().data["id"]
        new_start = self.start + timedelta(days=1, hours=3)
        url = reverse("booking-detail", args=[booking_id])

        response = self.client.patch(url, {"start_time": new_start.isoformat()}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        booking = Booking.objects.get(pk=booking_id)
        self.assertEqual(booking.start_time, new_start)
        self.assertEqual(booking.end_time, new_start + timedelta(minutes=60))

    def test_reschedule_into_conflict_is_rejected(self) -> None:
        first_id = self._create().data["id"]
        later = self.start + timedelta(hours=3)
        second_id = self._create(start=later).data["id"]
        url = reverse("booking-detail", args=[second_id])

        response = self.client.patch(url, {"start_time": self.start.isoformat()}, format="json")

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT, response.data)
        self.assertEqual(Booking.objects.get(pk=second_id).start_time, later)
        self.assertTrue(Booking.objects.filter(pk=first_id).exists())

    def test_empty_update_is_rejected(self) -> None:
        booking_id = self._create().data["id"]

        response = self.client.patch(reverse("booking-detail", args=[booking_id]), {}, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, response.data)

    def test_recent_booking_is_deleted(self) -> None:
        booking_id = self._create().data["id"]

        response = self.client.delete(reverse("booking-detail", args=[booking_id]))

        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Booking.objects.filter(pk=booking_id).exists())

    def test_old_booking_is_soft_deleted(self) -> None:
        booking_id = self._create().data["id"]
        Booking.objects.filter(pk=booking_id).update(created_at=timezone.now() - timedelta(days=31))

        response = self.client.delete(reverse("booking-detail", args=[booking_id]))

        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        booking = Booking.objects.get(pk=booking_id)
        self.assertEqual(booking.status, Booking.Status.CANCELLED)
        self.assertEqual(booking.cancellation_reason, "Eliminada por usuario")

    def test_in_progress_booking_cannot_be_deleted(self) -> None:
        booking_id = self._create().data["id"]
        self.client.force_authenticate(self.sitter)
        self._change_status(booking_id, "confirmed")
        self._change_status(booking_id, "in_progress")

        response = self.client.delete(reverse("booking-detail", args=[booking_id]))

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT, response.data)
        self.assertTrue(Booking.objects.filter(pk=booking_id).exists())

    def test_deleting_cancelled_booking_still_notifies(self) -> None:
        booking_id = self._create().data["id"]
        self._change_status(booking_id, "cancelled", reason="Cambio de planes")

        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.delete(reverse("booking-detail", args=[booking_id]))

        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        notified = set(
            Notification.objects.filter(template_key="booking-status-cancelled")
            .values_list("recipient__email", flat=True)
        )
        self.assertEqual(notified, {"cliente@example.com", "cuidador@example.com"})

    def test_completed_booking_waiting_for_invoice_cannot_be_deleted(self) -> None:
        booking_id = self._create().data["id"]
        Booking.objects.filter(pk=booking_id).update(status=Booking.Status.COMPLETED)

        response = self.client.delete(reverse("booking-detail", args=[booking_id]))

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT, response.data)
        self.assertEqual(Booking.objects.get(pk=booking_id).status, Booking.Status.COMPLETED)

    def test_listing_is_scoped_by_role(self) -> None:
        self._create()

        own = self.client.get(self.list_url)
        self.client.force_authenticate(self.sitter)
        assigned = self.client.get(self.list_url)
        self.client.force_authenticate(self.stranger)
        unrelated = self.client.get(self.list_url)

        self.assertEqual(len(own.data), 1)
        self.assertEqual(len(assigned.data), 1)
        self.assertEqual(len(unrelated.data), 0)
