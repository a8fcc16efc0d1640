"""
Reference data seen from the booking domain

Pets, sitters and service offerings are owned by other apps. The booking
use cases only read them through ReferenceData, as frozen snapshots.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID


@dataclass(frozen=True)
class PetRef:
    id: int
    name: str
    account_id: int


@dataclass(frozen=True)
class SitterRef:
    id: int
    email: str
    display_name: str
    is_sitter: bool
    is_active: bool


@dataclass(frozen=True)
class OfferingRef:
    id: int
    sitter_id: int
    name: str
    price: Decimal
    duration_minutes: int
    is_active: bool


class ReferenceData(ABC):
    """Read-only lookups; every getter returns None when the row does not exist"""

    @abstractmethod
    def get_pet(self, pet_id: int) -> PetRef | None: ...

    @abstractmethod
    def get_sitter(self, sitter_id: int) -> SitterRef | None: ...

    @abstractmethod
    def get_offering(self, offering_id: int) -> OfferingRef | None: ...

    @abstractmethod
    def is_account_member(self, account_id: int, user_id: int) -> bool: ...

    @abstractmethod
    def has_invoice(self, booking_id: UUID) -> bool: ...