"""
Payment Domain Events
"""

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from shared.domain.base import DomainEvent


@dataclass(kw_only=True)
class PaymentCompleted(DomainEvent):
    """
    Money was received for a booking (gateway or manual confirmation).

    Triggers:
    - Notify payer (and the recipient for gateway payments)
    - Payment confirmation email to both for gateway payments

    ``source`` is ``gateway`` or ``manual``.
    """
    payment_id: UUID
    booking_id: UUID
    payer_id: UUID
    recipient_id: UUID
    payment_type: str
    amount: Decimal
    currency: str
    transaction_id: str
    method: str
    source: str = 'gateway'
