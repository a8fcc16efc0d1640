"""
Common Value Objects

Value objects used across multiple domains:
- Money: Represents monetary amounts with currency
- TimeSlot: Represents a half-open window of time (start inclusive, end exclusive)
- Requester: The acting user passed into use cases
"""

import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

from shared.domain.base import ValueObject

CENT = Decimal('0.01')
_CURRENCY_RE = re.compile(r'^[A-Z]{3}$')


@dataclass(frozen=True)
class Money(ValueObject):
    """
    Money value object

    Represents a non-negative monetary amount with an ISO 4217 currency.
    Immutable and supports arithmetic operations.
    """
    amount: Decimal
    currency: str = 'USD'

    def __post_init__(self):
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, 'amount', Decimal(str(self.amount)))
        if self.amount < 0:
            raise ValueError("Amount cannot be negative")
        if not self.currency:
            raise ValueError("Currency is required")
        if not _CURRENCY_RE.match(self.currency):
            raise ValueError(f"Unsupported currency: {self.currency}")

    @classmethod
    def zero(cls, currency: str = 'USD') -> 'Money':
        return cls(Decimal('0.00'), currency)

    def quantized(self) -> 'Money':
        """Round to currency precision (half up)"""
        return Money(self.amount.quantize(CENT, rounding=ROUND_HALF_UP), self.currency)

    def is_positive(self) -> bool:
        return self.amount > 0

    def __add__(self, other: 'Money') -> 'Money':
        """Add two money objects"""
        if not isinstance(other, Money):
            raise TypeError("Can only add Money to Money")
        if self.currency != other.currency:
            raise ValueError(f"Cannot add different currencies: {self.currency} and {other.currency}")
        return Money(self.amount + other.amount, self.currency)

    def __sub__(self, other: 'Money') -> 'Money':
        """Subtract two money objects"""
        if not isinstance(other, Money):
            raise TypeError("Can only subtract Money from Money")
        if self.currency != other.currency:
            raise ValueError(f"Cannot subtract different currencies: {self.currency} and {other.currency}")
        return Money(self.amount - other.amount, self.currency)

    def __mul__(self, factor) -> 'Money':
        """Multiply money by an integer or decimal factor"""
        if isinstance(factor, bool) or not isinstance(factor, (int, Decimal)):
            raise TypeError("Can only multiply Money by int or Decimal")
        return Money(self.amount * Decimal(factor), self.currency)

    def __str__(self):
        return f"{self.amount:,.2f} {self.currency}"

    def __repr__(self):
        return f"Money({self.amount}, '{self.currency}')"


@dataclass(frozen=True)
class TimeSlot(ValueObject):
    """
    Time slot value object

    Represents the window from start (inclusive) to end (exclusive).
    Used for booking windows and schedule conflict checks.
    """
    start: datetime
    end: datetime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start ({self.start}) must be before end ({self.end})")

    @classmethod
    def from_duration(cls, start: datetime, minutes: int) -> 'TimeSlot':
        if minutes <= 0:
            raise ValueError("Duration must be a positive number of minutes")
        return cls(start, start + timedelta(minutes=minutes))

    def overlaps_with(self, other: 'TimeSlot') -> bool:
        """
        Check if this slot overlaps with another

        Note: end is exclusive, so back-to-back slots don't overlap.

        Examples:
            - 10:00-11:00 overlaps with 10:30-11:30 -> True
            - 10:00-11:00 overlaps with 11:00-12:00 -> False (adjacent)
        """
        if not isinstance(other, TimeSlot):
            raise TypeError("Can only check overlap with another TimeSlot")

        # Overlap formula: start1 < end2 AND end1 > start2
        return self.start < other.end and self.end > other.start

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment < self.end

    def shifted_to(self, new_start: datetime) -> 'TimeSlot':
        """Same duration, new start"""
        return TimeSlot(new_start, new_start + self.duration)

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def minutes(self) -> int:
        return int(self.duration.total_seconds() // 60)

    def __str__(self):
        return f"{self.start.strftime('%d.%m.%Y %H:%M')} - {self.end.strftime('%d.%m.%Y %H:%M')}"

    def __repr__(self):
        return f"TimeSlot({self.start.isoformat()}, {self.end.isoformat()})"


@dataclass(frozen=True)
class Requester(ValueObject):
    """
    The user a use case runs for

    Resolved once at the HTTP boundary and passed explicitly to every
    command, never read from ambient request state.
    """
    user_id: int
    is_admin: bool = False
