"""
Payment Domain Entities

- Payment: one money movement tied to a booking (deposit, rent, refund...)
- GatewayDetails / BankTransferDetails: method-specific sub-records
- Refund, Fees, PaymentMetadata: optional parts
- PaymentStats: aggregate figures for a filtered set of payments
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, Optional
from uuid import UUID

from shared.domain.base import Entity
from shared.domain.value_objects import Money


class PaymentType(str, Enum):
    DEPOSIT = 'deposit'
    MONTHLY_RENT = 'monthly_rent'
    UTILITIES = 'utilities'
    PENALTY = 'penalty'
    REFUND = 'refund'


class PaymentStatus(str, Enum):
    PENDING = 'pending'
    PROCESSING = 'processing'
    COMPLETED = 'completed'
    FAILED = 'failed'
    CANCELLED = 'cancelled'
    REFUNDED = 'refunded'


class PaymentMethod(str, Enum):
    VNPAY = 'vnpay'
    BANK_TRANSFER = 'bank_transfer'
    CASH = 'cash'
    OTHER = 'other'
    PENDING = 'pending'  # placeholder until the tenant picks a method


class RefundStatus(str, Enum):
    PENDING = 'pending'
    PROCESSING = 'processing'
    COMPLETED = 'completed'
    FAILED = 'failed'


@dataclass
class GatewayDetails:
    txn_ref: str = ''
    order_info: str = ''
    order_type: str = 'other'
    amount: Optional[int] = None  # minor units as sent to the gateway
    locale: str = 'vn'
    curr_code: str = 'VND'
    return_url: str = ''
    ip_addr: str = ''
    create_date: str = ''
    expire_date: str = ''
    response_code: str = ''
    transaction_no: str = ''
    bank_code: str = ''
    card_type: str = ''
    pay_date: str = ''
    raw_fields: Dict[str, str] = field(default_factory=dict)


@dataclass
class BankTransferDetails:
    bank_name: str = ''
    account_number: str = ''
    account_holder: str = ''
    transfer_note: str = ''
    transfer_date: Optional[datetime] = None
    receipt_image: str = ''


@dataclass
class Refund:
    amount: Money
    reason: str
    status: RefundStatus = RefundStatus.PENDING
    processed_at: Optional[datetime] = None
    refund_transaction_id: str = ''


@dataclass
class Fees:
    platform_fee: Decimal = Decimal('0')
    processing_fee: Decimal = Decimal('0')

    @property
    def total_fees(self) -> Decimal:
        return self.platform_fee + self.processing_fee


@dataclass
class PaymentMetadata:
    user_agent: str = ''
    ip_address: str = ''
    device_info: str = ''
    payment_source: str = ''


@dataclass(kw_only=True, eq=False)
class Payment(Entity):
    booking_id: UUID
    payer_id: UUID
    recipient_id: UUID
    type: PaymentType
    amount: Money
    transaction_id: str
    status: PaymentStatus = PaymentStatus.PENDING
    method: PaymentMethod = PaymentMethod.PENDING
    gateway: Optional[GatewayDetails] = None
    bank_transfer: Optional[BankTransferDetails] = None
    external_transaction_id: str = ''
    description: str = ''
    notes: str = ''
    initiated_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    failure_reason: str = ''
    refund: Optional[Refund] = None
    fees: Fees = field(default_factory=Fees)
    metadata: PaymentMetadata = field(default_factory=PaymentMetadata)
    # Reconstructed from booking state rather than recorded when it happened
    backfilled: bool = False


@dataclass(frozen=True)
class PaymentStats:
    total_amount: Decimal = Decimal('0')
    total_count: int = 0
    successful_amount: Decimal = Decimal('0')
    successful_count: int = 0
    pending_amount: Decimal = Decimal('0')
    pending_count: int = 0

    def to_dict(self) -> dict:
        return {
            'totalAmount': self.total_amount,
            'totalCount': self.total_count,
            'successfulAmount': self.successful_amount,
            'successfulCount': self.successful_count,
            'pendingAmount': self.pending_amount,
            'pendingCount': self.pending_count,
        }
