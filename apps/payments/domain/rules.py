"""Payment rules: identifiers, amounts and refundability."""

import secrets
import string
from datetime import datetime
from typing import FrozenSet

from shared.domain.value_objects import Money
from apps.bookings.domain.entities import Booking
from apps.payments.domain.entities import (
    Payment,
    PaymentStatus,
    PaymentType,
    RefundStatus,
)


BOOKING_CANCELLED_REASON = 'Đặt phòng bị hủy'

# Statuses a payment may be completed from. Failed is included so a late
# successful gateway result still lands.
COMPLETABLE_STATUSES: FrozenSet[PaymentStatus] = frozenset({
    PaymentStatus.PENDING,
    PaymentStatus.PROCESSING,
    PaymentStatus.FAILED,
})

FAILABLE_STATUSES: FrozenSet[PaymentStatus] = frozenset({
    PaymentStatus.PENDING,
    PaymentStatus.PROCESSING,
})

_BASE36 = string.digits + string.ascii_uppercase


def generate_transaction_id(now: datetime) -> str:
    """``TXN`` + last 8 digits of the epoch milliseconds + 6 base-36 chars."""
    millis = str(int(now.timestamp() * 1000))
    suffix = ''.join(secrets.choice(_BASE36) for _ in range(6))
    return f"TXN{millis[-8:]}{suffix}"


def amount_for_type(booking: Booking, payment_type: PaymentType) -> Money:
    pricing = booking.pricing
    if payment_type == PaymentType.DEPOSIT:
        return pricing.deposit
    if payment_type == PaymentType.MONTHLY_RENT:
        return pricing.monthly_rent
    if payment_type == PaymentType.UTILITIES:
        return pricing.utilities
    return Money.zero(pricing.deposit.currency)


def can_be_refunded(payment: Payment) -> bool:
    if payment.status != PaymentStatus.COMPLETED:
        return False
    return payment.refund is None or payment.refund.status == RefundStatus.PENDING
