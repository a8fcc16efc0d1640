"""Django-backed reference data lookups for the booking use cases."""

from __future__ import annotations

from uuid import UUID

from django.contrib.auth import get_user_model  # type: ignore

from apps.bookings.domain.references import OfferingRef, PetRef, ReferenceData, SitterRef
from apps.finances.models import Invoice
from apps.pets.models import Pet
from apps.sitters.models import ServiceOffering
from apps.users.models import Account, AccountMember


class DjangoReferenceData(ReferenceData):

    def get_pet(self, pet_id: int) -> PetRef | None:
        pet = Pet.objects.filter(pk=pet_id).only("id", "name", "account_id").first()
        if pet is None:
            return None
        return PetRef(id=pet.id, name=pet.name, account_id=pet.account_id)

    def get_sitter(self, sitter_id: int) -> SitterRef | None:
        user = get_user_model().objects.filter(pk=sitter_id).first()
        if user is None:
            return None
        return SitterRef(
            id=user.id,
            email=user.email,
            display_name=user.display_name,
            is_sitter=user.is_sitter(),
            is_active=user.is_active,
        )

    def get_offering(self, offering_id: int) -> OfferingRef | None:
        offering = ServiceOffering.objects.filter(pk=offering_id).first()
        if offering is None:
            return None
        return OfferingRef(
            id=offering.id,
            sitter_id=offering.sitter_id,
            name=offering.name,
            price=offering.price,
            duration_minutes=offering.duration_minutes,
            is_active=offering.is_active,
        )

    def is_account_member(self, account_id: int, user_id: int) -> bool:
        if Account.objects.filter(pk=account_id, owner_id=user_id).exists():
            return True
        return AccountMember.objects.filter(account_id=account_id, user_id=user_id).exists()

    def has_invoice(self, booking_id: UUID) -> bool:
        return Invoice.objects.filter(booking_id=booking_id).exists()
