"""
Invoice Domain Entities

- InvoiceStatus: FSM states for the invoice lifecycle
- INVOICE_TRANSITIONS: the single table of allowed status moves
- InvoiceItem: line of an invoice, owned by it
- Invoice: aggregate root billing one completed booking to an account
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import List
from uuid import UUID, uuid4

from shared.domain.base import Aggregate, utcnow
from shared.domain.exceptions import (
    AuthorizationError,
    DomainValidationError,
    IllegalStateError,
    InvalidTransitionError,
)
from shared.domain.value_objects import Money

AUTO_GENERATED_NOTE = 'Factura generada automáticamente al completar reserva'
CANCELLED_NOTE_PREFIX = 'CANCELADA: '
MAX_ITEM_QUANTITY = 999


class InvoiceStatus(Enum):
    """
    Invoice Status Finite State Machine

    - DRAFT -> SENT, CANCELLED
    - SENT -> PAID, PARTIALLY_PAID, OVERDUE, CANCELLED
    - PARTIALLY_PAID -> PAID, OVERDUE, CANCELLED
    - OVERDUE -> PAID, PARTIALLY_PAID
    - PAID, CANCELLED, REFUNDED are terminal
    """
    DRAFT = 'draft'
    SENT = 'sent'
    PAID = 'paid'
    PARTIALLY_PAID = 'partially_paid'
    OVERDUE = 'overdue'
    CANCELLED = 'cancelled'
    REFUNDED = 'refunded'


INVOICE_TRANSITIONS: dict[InvoiceStatus, frozenset[InvoiceStatus]] = {
    InvoiceStatus.DRAFT: frozenset({InvoiceStatus.SENT, InvoiceStatus.CANCELLED}),
    InvoiceStatus.SENT: frozenset({
        InvoiceStatus.PAID,
        InvoiceStatus.PARTIALLY_PAID,
        InvoiceStatus.OVERDUE,
        InvoiceStatus.CANCELLED,
    }),
    InvoiceStatus.PARTIALLY_PAID: frozenset({
        InvoiceStatus.PAID,
        InvoiceStatus.OVERDUE,
        InvoiceStatus.CANCELLED,
    }),
    InvoiceStatus.OVERDUE: frozenset({InvoiceStatus.PAID, InvoiceStatus.PARTIALLY_PAID}),
    InvoiceStatus.PAID: frozenset(),
    InvoiceStatus.CANCELLED: frozenset(),
    InvoiceStatus.REFUNDED: frozenset(),
}

TERMINAL_STATUSES = frozenset({InvoiceStatus.PAID, InvoiceStatus.CANCELLED, InvoiceStatus.REFUNDED})

# Statuses in which an unpaid balance can fall past its due date
OUTSTANDING_STATUSES = frozenset({InvoiceStatus.SENT, InvoiceStatus.PARTIALLY_PAID, InvoiceStatus.OVERDUE})


@dataclass(frozen=True)
class InvoiceItem:
    """Line item; line_total is always derived, never supplied"""
    description: str
    quantity: int
    unit_price: Money
    id: UUID = field(default_factory=uuid4)

    def __post_init__(self):
        if not self.description or not self.description.strip():
            raise DomainValidationError("La descripción del ítem es obligatoria")
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise DomainValidationError("La cantidad debe ser un número entero")
        if not 1 <= self.quantity <= MAX_ITEM_QUANTITY:
            raise DomainValidationError(f"La cantidad debe estar entre 1 y {MAX_ITEM_QUANTITY}")
        if not self.unit_price.is_positive():
            raise DomainValidationError("El precio unitario debe ser mayor que cero")

    @property
    def line_total(self) -> Money:
        return (self.unit_price * self.quantity).quantized()


@dataclass(frozen=True)
class InvoicePatch:
    """Requested changes; None means "leave as is" """
    due_date: datetime | None = None
    notes: str | None = None
    subtotal: Decimal | None = None
    platform_fee: Decimal | None = None
    total_amount: Decimal | None = None

    def is_empty(self) -> bool:
        return all(value is None for value in (
            self.due_date, self.notes, self.subtotal, self.platform_fee, self.total_amount,
        ))

    def touches_amounts(self) -> bool:
        return any(value is not None for value in (self.subtotal, self.platform_fee, self.total_amount))


@dataclass(kw_only=True, eq=False)
class Invoice(Aggregate):
    """
    Invoice Aggregate Root

    Key invariants:
    - subtotal + platform_fee == total_amount, exactly, after every change
    - due_date = issue_date + due days at creation
    - one invoice per booking (also enforced by a unique constraint)
    - items belong to this invoice only and are saved with it
    """

    account_id: int
    booking_id: UUID
    sitter_id: int
    invoice_number: str
    issue_date: datetime
    due_date: datetime
    subtotal: Money
    platform_fee: Money
    total_amount: Money
    items: List[InvoiceItem] = field(default_factory=list)
    status: InvoiceStatus = InvoiceStatus.DRAFT
    notes: str = ''

    @classmethod
    def generate(
        cls,
        *,
        account_id: int,
        booking_id: UUID,
        sitter_id: int,
        invoice_number: str,
        items: List[InvoiceItem],
        platform_fee: Money,
        due_days: int,
        notes: str = '',
        send: bool = True,
        issue_date: datetime | None = None,
    ) -> 'Invoice':
        """
        Build a new invoice from its items and the fee on their subtotal

        Events: InvoiceGenerated
        """
        if not items:
            raise DomainValidationError("La factura debe tener al menos un ítem")

        from apps.finances.domain.events import InvoiceGenerated

        issue_date = issue_date or utcnow()
        subtotal = sum((item.line_total for item in items), Money.zero(items[0].unit_price.currency))
        invoice = cls(
            id=uuid4(),
            account_id=account_id,
            booking_id=booking_id,
            sitter_id=sitter_id,
            invoice_number=invoice_number,
            issue_date=issue_date,
            due_date=issue_date + timedelta(days=due_days),
            subtotal=subtotal,
            platform_fee=platform_fee,
            total_amount=subtotal + platform_fee,
            items=list(items),
            status=InvoiceStatus.SENT if send else InvoiceStatus.DRAFT,
            notes=notes or '',
            created_at=issue_date,
            updated_at=issue_date,
        )
        invoice.add_event(InvoiceGenerated(
            aggregate_id=invoice.id,
            invoice_id=invoice.id,
            booking_id=booking_id,
            account_id=account_id,
            invoice_number=invoice_number,
            status=invoice.status.value,
            subtotal=invoice.subtotal.amount,
            platform_fee=invoice.platform_fee.amount,
            total_amount=invoice.total_amount.amount,
            due_date=invoice.due_date,
        ))
        return invoice

    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def is_overdue(self, now: datetime | None = None) -> bool:
        if self.status == InvoiceStatus.OVERDUE:
            return True
        return self.status in OUTSTANDING_STATUSES and (now or utcnow()) > self.due_date

    def can_be_sent(self) -> bool:
        return self.status == InvoiceStatus.DRAFT

    def _move_to(self, target: InvoiceStatus):
        if target not in INVOICE_TRANSITIONS[self.status]:
            raise InvalidTransitionError(
                f"Transición no válida de {self.status.name} a {target.name}"
            )
        self.status = target

    def send(self, now: datetime | None = None):
        """
        DRAFT -> SENT

        Events: InvoiceSent
        """
        if not self.can_be_sent():
            raise InvalidTransitionError(
                f"Solo se pueden enviar facturas en estado DRAFT (estado actual: {self.status.name})"
            )

        from apps.finances.domain.events import InvoiceSent

        self._move_to(InvoiceStatus.SENT)
        self.touch(now)
        self.add_event(InvoiceSent(
            aggregate_id=self.id,
            invoice_id=self.id,
            account_id=self.account_id,
            invoice_number=self.invoice_number,
        ))

    def cancel(self, reason: str, now: datetime | None = None):
        """
        DRAFT, SENT or PARTIALLY_PAID -> CANCELLED

        The reason is appended to the notes; amounts are left untouched.

        Events: InvoiceCancelled
        """
        reason = (reason or '').strip()
        if not reason:
            raise DomainValidationError("El motivo de cancelación es obligatorio")

        from apps.finances.domain.events import InvoiceCancelled

        self._move_to(InvoiceStatus.CANCELLED)
        line = f"{CANCELLED_NOTE_PREFIX}{reason}"
        self.notes = f"{self.notes}\n{line}" if self.notes else line
        self.touch(now)
        self.add_event(InvoiceCancelled(
            aggregate_id=self.id,
            invoice_id=self.id,
            account_id=self.account_id,
            invoice_number=self.invoice_number,
            reason=reason,
        ))

    def mark_overdue(self, now: datetime | None = None) -> bool:
        """Store OVERDUE once an outstanding invoice is past due. Returns True if it changed"""
        now = now or utcnow()
        if self.status not in (InvoiceStatus.SENT, InvoiceStatus.PARTIALLY_PAID) or now <= self.due_date:
            return False

        from apps.finances.domain.events import InvoiceOverdue

        self._move_to(InvoiceStatus.OVERDUE)
        self.touch(now)
        self.add_event(InvoiceOverdue(
            aggregate_id=self.id,
            invoice_id=self.id,
            account_id=self.account_id,
            invoice_number=self.invoice_number,
        ))
        return True

    def apply_update(self, patch: InvoicePatch, *, is_admin: bool, now: datetime | None = None) -> bool:
        """
        Apply a partial update

        Amount changes are refused on terminal invoices and, once the invoice
        has left DRAFT, allowed to admins only. When total_amount is omitted
        it is recomputed. Returns True for a significant change (amounts or
        due date).

        Events: InvoiceUpdated
        """
        if patch.is_empty():
            raise DomainValidationError("Debe indicar al menos un campo para actualizar")

        if patch.touches_amounts():
            if self.is_terminal():
                raise IllegalStateError(
                    f"No se pueden modificar los montos de una factura en estado {self.status.name}"
                )
            if self.status != InvoiceStatus.DRAFT and not is_admin:
                raise AuthorizationError(
                    "Solo un administrador puede modificar los montos de una factura emitida"
                )

        if patch.due_date is not None:
            if self.is_terminal():
                raise IllegalStateError(
                    f"No se puede cambiar el vencimiento de una factura en estado {self.status.name}"
                )
            if patch.due_date < self.issue_date:
                raise DomainValidationError("La fecha de vencimiento no puede ser anterior a la de emisión")

        currency = self.total_amount.currency
        try:
            subtotal = Money(patch.subtotal, currency) if patch.subtotal is not None else self.subtotal
            platform_fee = Money(patch.platform_fee, currency) if patch.platform_fee is not None else self.platform_fee
            expected_total = subtotal + platform_fee
            total = Money(patch.total_amount, currency) if patch.total_amount is not None else expected_total
        except ValueError:
            raise DomainValidationError("Los montos de la factura no pueden ser negativos") from None

        if total.amount != expected_total.amount:
            raise DomainValidationError(
                "El subtotal más la comisión de plataforma debe ser igual al total"
            )

        from apps.finances.domain.events import InvoiceUpdated

        amounts_changed = (subtotal, platform_fee, total) != (self.subtotal, self.platform_fee, self.total_amount)
        due_changed = patch.due_date is not None and patch.due_date != self.due_date

        self.subtotal, self.platform_fee, self.total_amount = subtotal, platform_fee, total
        if patch.due_date is not None:
            self.due_date = patch.due_date
        if patch.notes is not None:
            self.notes = patch.notes
        self.touch(now)

        significant = amounts_changed or due_changed
        self.add_event(InvoiceUpdated(
            aggregate_id=self.id,
            invoice_id=self.id,
            account_id=self.account_id,
            invoice_number=self.invoice_number,
            significant=significant,
            amounts_changed=amounts_changed,
        ))
        return significant

    def __str__(self):
        return f"Invoice {self.invoice_number} ({self.status.value}) {self.total_amount}"
