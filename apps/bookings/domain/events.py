"""
Booking Domain Events

Published after the booking transaction commits; handlers in
``apps.notifications.handlers`` turn them into notifications and emails.
"""

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from shared.domain.base import DomainEvent


@dataclass(kw_only=True)
class BookingCreated(DomainEvent):
    """
    A tenant requested a room.

    Triggers:
    - Notify tenant and landlord
    - Booking confirmation email to tenant, request email to landlord
    """
    booking_id: UUID
    room_id: UUID
    tenant_id: UUID
    landlord_id: UUID
    contract_number: str


@dataclass(kw_only=True)
class BookingStatusChanged(DomainEvent):
    """
    A tenant, landlord, admin or the scheduler moved the booking.

    Gateway-driven deposits do not emit this; the payment event carries
    their notifications.
    """
    booking_id: UUID
    room_id: UUID
    tenant_id: UUID
    landlord_id: UUID
    previous_status: str
    status: str
    changed_by: str
    reason: Optional[str] = None
