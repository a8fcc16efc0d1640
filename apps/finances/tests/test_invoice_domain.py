"""Unit tests for the Invoice aggregate."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from apps.finances.domain.entities import (
    Invoice,
    InvoiceItem,
    InvoicePatch,
    InvoiceStatus,
)
from apps.finances.domain.events import InvoiceCancelled, InvoiceGenerated, InvoiceUpdated
from shared.domain.exceptions import (
    AuthorizationError,
    DomainValidationError,
    IllegalStateError,
    InvalidTransitionError,
)
from shared.domain.value_objects import Money

ISSUED = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


def usd(amount: str) -> Money:
    return Money(Decimal(amount))


def make_invoice(send: bool = False, **overrides) -> Invoice:
    values = {
        "account_id": 1,
        "booking_id": uuid4(),
        "sitter_id": 2,
        "invoice_number": "INV-2026-000001",
        "items": [InvoiceItem(description="Paseo - Reserva #ABCD1234", quantity=1, unit_price=usd("50.00"))],
        "platform_fee": usd("5.00"),
        "due_days": 15,
        "send": send,
        "issue_date": ISSUED,
    }
    values.update(overrides)
    invoice = Invoice.generate(**values)
    invoice.clear_events()
    return invoice


def test_generate_computes_totals_and_due_date() -> None:
    invoice = Invoice.generate(
        account_id=1,
        booking_id=uuid4(),
        sitter_id=2,
        invoice_number="INV-2026-000007",
        items=[
            InvoiceItem(description="Paseo", quantity=2, unit_price=usd("20.00")),
            InvoiceItem(description="Baño", quantity=1, unit_price=usd("10.00")),
        ],
        platform_fee=usd("5.00"),
        due_days=15,
        issue_date=ISSUED,
    )

    assert invoice.status == InvoiceStatus.SENT
    assert invoice.subtotal == usd("50.00")
    assert invoice.total_amount == usd("55.00")
    assert invoice.due_date == ISSUED + timedelta(days=15)
    (event,) = invoice.events
    assert isinstance(event, InvoiceGenerated)
    assert event.total_amount == Decimal("55.00")


def test_generate_requires_items() -> None:
    with pytest.raises(DomainValidationError):
        make_invoice(items=[])


@pytest.mark.parametrize("quantity", [0, 1000])
def test_item_quantity_bounds(quantity: int) -> None:
    with pytest.raises(DomainValidationError):
        InvoiceItem(description="Paseo", quantity=quantity, unit_price=usd("1.00"))


def test_item_unit_price_must_be_positive() -> None:
    with pytest.raises(DomainValidationError):
        InvoiceItem(description="Paseo", quantity=1, unit_price=usd("0.00"))


def test_send_only_from_draft() -> None:
    invoice = make_invoice(send=False)
    invoice.send()
    assert invoice.status == InvoiceStatus.SENT

    with pytest.raises(InvalidTransitionError):
        invoice.send()


def test_cancel_appends_reason_and_keeps_amounts() -> None:
    invoice = make_invoice(notes="Primera nota")

    invoice.cancel("duplicate")

    assert invoice.status == InvoiceStatus.CANCELLED
    assert invoice.notes == "Primera nota\nCANCELADA: duplicate"
    assert invoice.total_amount == usd("55.00")
    assert isinstance(invoice.events[-1], InvoiceCancelled)


def test_cancelled_invoice_cannot_be_cancelled_again() -> None:
    invoice = make_invoice()
    invoice.cancel("duplicate")

    with pytest.raises(InvalidTransitionError):
        invoice.cancel("otra vez")


def test_overdue_invoice_cannot_be_cancelled() -> None:
    invoice = make_invoice(send=True)
    assert invoice.mark_overdue(ISSUED + timedelta(days=16))

    with pytest.raises(InvalidTransitionError):
        invoice.cancel("tarde")


def test_mark_overdue_only_after_due_date() -> None:
    invoice = make_invoice(send=True)

    assert not invoice.mark_overdue(ISSUED + timedelta(days=15))
    assert invoice.mark_overdue(ISSUED + timedelta(days=15, seconds=1))
    assert invoice.status == InvoiceStatus.OVERDUE
    assert not make_invoice(send=False).mark_overdue(ISSUED + timedelta(days=60))


def test_update_recomputes_total_when_omitted() -> None:
    invoice = make_invoice()

    significant = invoice.apply_update(
        InvoicePatch(subtotal=Decimal("60.00"), platform_fee=Decimal("6.00")),
        is_admin=False,
    )

    assert significant is True
    assert invoice.total_amount == usd("66.00")
    assert isinstance(invoice.events[-1], InvoiceUpdated)


def test_update_rejects_inconsistent_total() -> None:
    invoice = make_invoice()

    with pytest.raises(DomainValidationError, match="debe ser igual al total"):
        invoice.apply_update(InvoicePatch(total_amount=Decimal("70.00")), is_admin=True)

    assert invoice.total_amount == usd("55.00")


def test_empty_patch_is_rejected() -> None:
    with pytest.raises(DomainValidationError):
        make_invoice().apply_update(InvoicePatch(), is_admin=True)


def test_sent_invoice_amounts_are_admin_only() -> None:
    invoice = make_invoice(send=True)

    with pytest.raises(AuthorizationError):
        invoice.apply_update(InvoicePatch(platform_fee=Decimal("4.00")), is_admin=False)

    invoice.apply_update(InvoicePatch(platform_fee=Decimal("4.00")), is_admin=True)
    assert invoice.total_amount == usd("54.00")


def test_terminal_invoice_amounts_are_frozen() -> None:
    invoice = make_invoice()
    invoice.cancel("duplicate")

    with pytest.raises(IllegalStateError):
        invoice.apply_update(InvoicePatch(subtotal=Decimal("1.00")), is_admin=True)


def test_notes_only_update_is_not_significant() -> None:
    invoice = make_invoice(send=True)

    significant = invoice.apply_update(InvoicePatch(notes="Pago por transferencia"), is_admin=False)

    assert significant is False
    assert invoice.notes == "Pago por transferencia"
