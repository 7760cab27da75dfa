"""
Common Value Objects

Value objects used across the booking and payment domains:
- Money: monetary amount with currency (VND by default)
- DateRange: a stay from check-in to check-out
- Address: postal address of a user or a room
- Actor: the authenticated caller of a state-changing operation
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from shared.domain.base import ValueObject


SUPPORTED_CURRENCIES = ('VND', 'USD')


@dataclass(frozen=True)
class Money(ValueObject):
    """
    Money value object

    Represents a non-negative monetary amount with currency.
    Immutable and supports arithmetic operations.
    """
    amount: Decimal
    currency: str = 'VND'

    def __post_init__(self):
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, 'amount', Decimal(str(self.amount)))
        if self.amount < 0:
            raise ValueError("Amount cannot be negative")
        if self.currency not in SUPPORTED_CURRENCIES:
            raise ValueError(f"Unsupported currency: {self.currency}")

    @classmethod
    def zero(cls, currency: str = 'VND') -> 'Money':
        return cls(Decimal('0'), currency)

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
        """Multiply money by a number"""
        if not isinstance(factor, (int, Decimal)):
            raise TypeError("Can only multiply Money by int or Decimal")
        return Money(self.amount * factor, self.currency)

    def format_vi(self) -> str:
        """Vietnamese grouping, e.g. ``3.000.000 VNĐ``."""
        grouped = f"{self.amount:,.0f}".replace(',', '.')
        suffix = 'VNĐ' if self.currency == 'VND' else self.currency
        return f"{grouped} {suffix}"

    def __str__(self):
        return f"{self.amount:,.0f} {self.currency}"

    def __repr__(self):
        return f"Money({self.amount}, '{self.currency}')"


@dataclass(frozen=True)
class DateRange(ValueObject):
    """
    Stay period from check_in to check_out.

    Overlap is tested with both ends inclusive, so a stay starting on the
    day another one ends is a conflict.
    """
    check_in: date
    check_out: date

    def __post_init__(self):
        if self.check_in >= self.check_out:
            raise ValueError(
                f"Check-out ({self.check_out}) must be after check-in ({self.check_in})"
            )

    def overlaps(self, other: 'DateRange') -> bool:
        if not isinstance(other, DateRange):
            raise TypeError("Can only check overlap with another DateRange")
        return self.check_in <= other.check_out and self.check_out >= other.check_in

    @property
    def days(self) -> int:
        return (self.check_out - self.check_in).days

    def __str__(self):
        return f"{self.check_in.isoformat()} - {self.check_out.isoformat()}"


@dataclass(frozen=True)
class Address(ValueObject):
    street: str = ''
    ward: str = ''
    district: str = ''
    city: str = ''

    @property
    def is_empty(self) -> bool:
        return not any((self.street, self.ward, self.district, self.city))

    def format(self) -> str:
        parts = (self.street, self.ward, self.district, self.city)
        return ', '.join(part.strip() for part in parts if part and part.strip())


class Role(str, Enum):
    TENANT = 'tenant'
    LANDLORD = 'landlord'
    ADMIN = 'admin'


@dataclass(frozen=True)
class Actor(ValueObject):
    """Who is performing an operation, taken from the authenticated request."""
    id: UUID
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN
