"""
Platform fee calculation

Pure Decimal arithmetic: fee = base * pct / 100 rounded half up to cents,
net = base - fee.

    >>> FeeCalculator().compute(Decimal("100.00"), Decimal("10"))
    FeeBreakdown(fee_amount=Decimal('10.00'), net_amount=Decimal('90.00'))
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from shared.domain.value_objects import CENT

HUNDRED = Decimal('100')


@dataclass(frozen=True)
class FeeBreakdown:
    fee_amount: Decimal
    net_amount: Decimal


class FeeCalculator:

    def compute(self, base_amount: Decimal, fee_percentage: Decimal) -> FeeBreakdown:
        if not isinstance(base_amount, Decimal) or not isinstance(fee_percentage, Decimal):
            raise TypeError("Fee calculation only accepts Decimal values")
        if base_amount < 0:
            raise ValueError("Base amount cannot be negative")
        if fee_percentage < 0:
            raise ValueError("Fee percentage cannot be negative")

        fee = (base_amount * fee_percentage / HUNDRED).quantize(CENT, rounding=ROUND_HALF_UP)
        return FeeBreakdown(fee_amount=fee, net_amount=base_amount - fee)


fee_calculator = FeeCalculator()
