"""Tests for the platform fee calculation."""

from __future__ import annotations

from decimal import Decimal

import pytest

from apps.finances.domain.fees import FeeBreakdown, FeeCalculator


@pytest.mark.parametrize(
    ("base", "pct", "fee", "net"),
    [
        ("100.00", "10", "10.00", "90.00"),
        ("50.00", "10.00", "5.00", "45.00"),
        ("0.05", "10", "0.01", "0.04"),
        ("0.04", "10", "0.00", "0.04"),
        ("33.33", "15", "5.00", "28.33"),
        ("0.00", "10", "0.00", "0.00"),
    ],
)
def test_compute(base: str, pct: str, fee: str, net: str) -> None:
    result = FeeCalculator().compute(Decimal(base), Decimal(pct))

    assert result == FeeBreakdown(fee_amount=Decimal(fee), net_amount=Decimal(net))
    assert result.fee_amount + result.net_amount == Decimal(base)


def test_negative_input_is_rejected() -> None:
    calculator = FeeCalculator()
    with pytest.raises(ValueError):
        calculator.compute(Decimal("-1.00"), Decimal("10"))
    with pytest.raises(ValueError):
        calculator.compute(Decimal("1.00"), Decimal("-10"))


def test_floats_are_rejected() -> None:
    with pytest.raises(TypeError):
        FeeCalculator().compute(100.0, Decimal("10"))  # type: ignore[arg-type]
