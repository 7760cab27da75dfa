"""
Booking Domain Entities

Plain records for the booking domain:
- Booking: a tenant's rental of a room for a number of months
- Pricing, DepositRecord, MonthlyInstallment, Cancellation: nested parts
- Room, UserContact: read-only snapshots of collaborator-owned records

State transitions and calculations are free functions in ``rules``.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import List, Optional
from uuid import UUID

from shared.domain.base import Entity
from shared.domain.value_objects import Address, DateRange, Money, Role


class BookingStatus(str, Enum):
    """
    Booking lifecycle

    pending -> confirmed -> deposit_paid -> active -> completed
    cancelled is reachable from pending, confirmed and deposit_paid;
    expired from pending and confirmed. Both are terminal.
    """
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    DEPOSIT_PAID = 'deposit_paid'
    ACTIVE = 'active'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'
    EXPIRED = 'expired'


class DepositStatus(str, Enum):
    PENDING = 'pending'
    PAID = 'paid'
    REFUNDED = 'refunded'


class InstallmentStatus(str, Enum):
    PENDING = 'pending'
    PAID = 'paid'
    OVERDUE = 'overdue'


class CancelledBy(str, Enum):
    TENANT = 'tenant'
    LANDLORD = 'landlord'
    ADMIN = 'admin'
    SYSTEM = 'system'


class CancellationRefundStatus(str, Enum):
    PENDING = 'pending'
    PROCESSED = 'processed'
    COMPLETED = 'completed'


class RoomStatus(str, Enum):
    ACTIVE = 'active'
    INACTIVE = 'inactive'
    PENDING = 'pending'


@dataclass(frozen=True)
class Pricing:
    monthly_rent: Money
    deposit: Money
    utilities: Money
    total_amount: Money


@dataclass
class DepositRecord:
    amount: Money
    status: DepositStatus = DepositStatus.PENDING
    paid_at: Optional[datetime] = None
    method: str = ''
    transaction_id: str = ''


@dataclass
class MonthlyInstallment:
    month: str  # YYYY-MM
    amount: Money
    due_date: date
    status: InstallmentStatus = InstallmentStatus.PENDING
    paid_at: Optional[datetime] = None
    method: str = ''
    transaction_id: str = ''


@dataclass
class Cancellation:
    cancelled_by: CancelledBy
    cancelled_at: datetime
    reason: str
    refund_amount: Optional[Money] = None
    refund_status: Optional[CancellationRefundStatus] = None


@dataclass
class BookingNotes:
    tenant: str = ''
    landlord: str = ''
    admin: str = ''


@dataclass(kw_only=True, eq=False)
class Booking(Entity):
    """
    A tenant's booking of a room.

    Never hard-deleted; cancelled and expired bookings stay for history.
    """
    room_id: UUID
    tenant_id: UUID
    landlord_id: UUID
    stay: DateRange
    duration_months: int
    occupants: int
    pricing: Pricing
    contract_number: str
    deposit: DepositRecord
    status: BookingStatus = BookingStatus.PENDING
    monthly: List[MonthlyInstallment] = field(default_factory=list)
    cancellation: Optional[Cancellation] = None
    notes: BookingNotes = field(default_factory=BookingNotes)


@dataclass(frozen=True)
class Room:
    id: UUID
    landlord_id: UUID
    title: str
    status: RoomStatus
    is_available: bool
    monthly_rent: Money
    deposit: Money
    utilities: Money
    address: Address = field(default_factory=Address)


@dataclass(frozen=True)
class UserContact:
    id: UUID
    role: Role
    full_name: str
    email: str = ''
    phone: str = ''
    address: Address = field(default_factory=Address)
