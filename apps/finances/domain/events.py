"""
Invoice Domain Events

Published after the invoice transaction commits. The InvoicingOrchestrator
turns them into independent Celery tasks.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from shared.domain.base import DomainEvent


@dataclass
class InvoiceGenerated(DomainEvent):
    """
    Event: Invoice created for a completed booking

    Triggers:
    - Platform fee ledger entry with the billed amounts
    - Document rendering
    - invoice-notification email with the document (when SENT)
    - invoice-generated in-app notification
    """
    invoice_id: UUID
    booking_id: UUID
    account_id: int
    invoice_number: str
    status: str
    subtotal: Decimal
    platform_fee: Decimal
    total_amount: Decimal
    due_date: datetime


@dataclass
class InvoiceSent(DomainEvent):
    """
    Event: DRAFT invoice sent

    Triggers:
    - Document rendering
    - invoice-notification email with the document
    - invoice-sent in-app notification
    """
    invoice_id: UUID
    account_id: int
    invoice_number: str


@dataclass
class InvoiceCancelled(DomainEvent):
    """
    Event: Invoice cancelled

    Triggers:
    - invoice-cancelled notification
    """
    invoice_id: UUID
    account_id: int
    invoice_number: str
    reason: str


@dataclass
class InvoiceUpdated(DomainEvent):
    """
    Event: Invoice fields changed

    Triggers (significant changes only):
    - Platform fee ledger realignment (amount changes)
    - Document re-rendering
    - invoice-updated notification
    """
    invoice_id: UUID
    account_id: int
    invoice_number: str
    significant: bool
    amounts_changed: bool = False


@dataclass
class InvoiceOverdue(DomainEvent):
    """Event: Outstanding invoice passed its due date"""
    invoice_id: UUID
    account_id: int
    invoice_number: str
