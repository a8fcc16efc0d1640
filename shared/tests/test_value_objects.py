"""Tests for the shared value objects."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from shared.domain.value_objects import Money, Requester, TimeSlot

T0 = datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc)


def test_money_rejects_negative_amount() -> None:
    with pytest.raises(ValueError):
        Money(Decimal("-0.01"))


def test_money_rejects_unknown_currency_format() -> None:
    with pytest.raises(ValueError):
        Money(Decimal("1.00"), "usd")


def test_money_arithmetic_keeps_currency() -> None:
    total = Money(Decimal("50.00")) + Money(Decimal("5.00"))
    assert total == Money(Decimal("55.00"), "USD")
    assert Money(Decimal("12.50")) * 3 == Money(Decimal("37.50"))


def test_money_cannot_mix_currencies() -> None:
    with pytest.raises(ValueError):
        Money(Decimal("1.00"), "USD") + Money(Decimal("1.00"), "EUR")


def test_money_quantized_rounds_half_up() -> None:
    assert Money(Decimal("0.005")).quantized().amount == Decimal("0.01")
    assert Money(Decimal("2.344")).quantized().amount == Decimal("2.34")


def test_time_slot_requires_start_before_end() -> None:
    with pytest.raises(ValueError):
        TimeSlot(T0, T0)


def test_time_slot_from_duration() -> None:
    slot = TimeSlot.from_duration(T0, 90)
    assert slot.end == T0 + timedelta(minutes=90)
    assert slot.minutes == 90


def test_back_to_back_slots_do_not_overlap() -> None:
    first = TimeSlot.from_duration(T0, 60)
    second = TimeSlot.from_duration(T0 + timedelta(minutes=60), 60)
    assert not first.overlaps_with(second)
    assert not second.overlaps_with(first)


def test_partially_covered_slots_overlap() -> None:
    first = TimeSlot.from_duration(T0, 60)
    second = TimeSlot.from_duration(T0 + timedelta(minutes=30), 60)
    assert first.overlaps_with(second)
    assert first.contains(T0)
    assert not first.contains(first.end)


def test_shifted_slot_keeps_duration() -> None:
    slot = TimeSlot.from_duration(T0, 45).shifted_to(T0 + timedelta(days=1))
    assert slot.start == T0 + timedelta(days=1)
    assert slot.minutes == 45


def test_requester_defaults_to_non_admin() -> None:
    assert Requester(user_id=7).is_admin is False
