"""
Booking Domain Events

Events that represent things that have happened in the booking domain.
They are published after the transaction that produced them commits.
Payloads carry plain ids and values so handlers never need the booking
row (which may already be gone after a physical delete).
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from shared.domain.base import DomainEvent


@dataclass
class BookingCreated(DomainEvent):
    """
    Event: A new booking was created (PENDING)

    Triggers:
    - Pre-calculate the platform fee ledger entry
    - Notify the client (new-booking-client)
    - Notify the sitter (new-booking-sitter)
    """
    booking_id: UUID
    sitter_id: int
    booked_by_id: int
    pet_id: int
    service_name: str
    start_time: datetime
    end_time: datetime
    total_price: Decimal


@dataclass
class BookingStatusChanged(DomainEvent):
    """
    Event: Booking moved along the lifecycle table

    Triggers:
    - booking-status-<status> notification to the client
    """
    booking_id: UUID
    sitter_id: int
    booked_by_id: int
    old_status: str
    new_status: str
    changed_by_id: int | None
    reason: str = ''


@dataclass
class BookingCompleted(DomainEvent):
    """
    Event: Service delivered (IN_PROGRESS -> COMPLETED)

    Triggers:
    - Invoice generation for the pet's account
    """
    booking_id: UUID
    account_id: int
    total_price: Decimal


@dataclass
class BookingUpdated(DomainEvent):
    """
    Event: Start time and/or notes changed

    Triggers:
    - booking-updated notification to the sitter
    """
    booking_id: UUID
    sitter_id: int
    booked_by_id: int
    start_time: datetime
    end_time: datetime
    rescheduled: bool


@dataclass
class BookingDeleted(DomainEvent):
    """
    Event: Booking removed by a user

    ``soft`` is True when the row was kept and forced to CANCELLED.

    Triggers:
    - booking-status-cancelled notification to client and sitter
    """
    booking_id: UUID
    sitter_id: int
    booked_by_id: int
    old_status: str
    soft: bool
