"""Django ORM implementations of the booking repositories."""

from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable, List, Optional
from uuid import UUID

from django.contrib.auth import get_user_model  # type: ignore
from django.db import NotSupportedError, transaction  # type: ignore
from django.db.models import Q  # type: ignore

from shared.domain.errors import NotFoundError
from shared.domain.value_objects import Address, DateRange, Money
from apps.bookings.domain.entities import (
    Booking,
    BookingNotes,
    BookingStatus,
    Cancellation,
    CancellationRefundStatus,
    CancelledBy,
    DepositRecord,
    DepositStatus,
    InstallmentStatus,
    MonthlyInstallment,
    Pricing,
    Room,
    RoomStatus,
    UserContact,
)
from apps.bookings.domain.repositories import BookingRepository, RoomRepository, UserDirectory
from apps.bookings.domain.rules import BLOCKING_STATUSES
from apps.bookings.models import Booking as BookingModel
from apps.rooms.models import Room as RoomModel
from apps.users.services import contact_for

logger = logging.getLogger(__name__)


def _lock_queryset_if_possible(queryset):
    """Apply select_for_update when inside transaction.atomic()."""

    if not transaction.get_connection().in_atomic_block:
        return queryset

    try:
        return queryset.select_for_update()
    except NotSupportedError:
        return queryset


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


# ===== Schedule JSON =====

def schedule_to_json(schedule: Iterable[MonthlyInstallment]) -> list[dict[str, Any]]:
    return [
        {
            'month': item.month,
            'amount': str(item.amount.amount),
            'dueDate': item.due_date.isoformat(),
            'status': item.status.value,
            'paidAt': _isoformat(item.paid_at),
            'paymentMethod': item.method,
            'transactionId': item.transaction_id,
        }
        for item in schedule
    ]


def schedule_from_json(data: Iterable[dict[str, Any]], currency: str) -> List[MonthlyInstallment]:
    return [
        MonthlyInstallment(
            month=item['month'],
            amount=Money(Decimal(item['amount']), currency),
            due_date=date.fromisoformat(item['dueDate']),
            status=InstallmentStatus(item.get('status', 'pending')),
            paid_at=_parse_datetime(item.get('paidAt')),
            method=item.get('paymentMethod', ''),
            transaction_id=item.get('transactionId', ''),
        )
        for item in data
    ]


# ===== Mapping =====

def booking_to_entity(row: BookingModel) -> Booking:
    currency = row.currency
    cancellation = None
    if row.cancelled_by:
        cancellation = Cancellation(
            cancelled_by=CancelledBy(row.cancelled_by),
            cancelled_at=row.cancelled_at,
            reason=row.cancellation_reason,
            refund_amount=Money(row.refund_amount, currency) if row.refund_amount is not None else None,
            refund_status=CancellationRefundStatus(row.refund_status) if row.refund_status else None,
        )
    return Booking(
        id=row.id,
        room_id=row.room_id,
        tenant_id=row.tenant_id,
        landlord_id=row.landlord_id,
        stay=DateRange(row.check_in, row.check_out),
        duration_months=row.duration_months,
        occupants=row.occupants,
        pricing=Pricing(
            monthly_rent=Money(row.monthly_rent, currency),
            deposit=Money(row.deposit, currency),
            utilities=Money(row.utilities, currency),
            total_amount=Money(row.total_amount, currency),
        ),
        contract_number=row.contract_number,
        deposit=DepositRecord(
            amount=Money(row.deposit_amount, currency),
            status=DepositStatus(row.deposit_status),
            paid_at=row.deposit_paid_at,
            method=row.deposit_method,
            transaction_id=row.deposit_transaction_id,
        ),
        status=BookingStatus(row.status),
        monthly=schedule_from_json(row.payment_schedule or [], currency),
        cancellation=cancellation,
        notes=BookingNotes(
            tenant=row.tenant_notes,
            landlord=row.landlord_notes,
            admin=row.admin_notes,
        ),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def booking_fields(booking: Booking) -> dict[str, Any]:
    """Column values for ``booking``, without the primary key."""
    cancellation = booking.cancellation
    return {
        'room_id': booking.room_id,
        'tenant_id': booking.tenant_id,
        'landlord_id': booking.landlord_id,
        'contract_number': booking.contract_number,
        'check_in': booking.stay.check_in,
        'check_out': booking.stay.check_out,
        'duration_months': booking.duration_months,
        'occupants': booking.occupants,
        'status': booking.status.value,
        'currency': booking.pricing.total_amount.currency,
        'monthly_rent': booking.pricing.monthly_rent.amount,
        'deposit': booking.pricing.deposit.amount,
        'utilities': booking.pricing.utilities.amount,
        'total_amount': booking.pricing.total_amount.amount,
        'deposit_status': booking.deposit.status.value,
        'deposit_amount': booking.deposit.amount.amount,
        'deposit_paid_at': booking.deposit.paid_at,
        'deposit_method': booking.deposit.method,
        'deposit_transaction_id': booking.deposit.transaction_id,
        'payment_schedule': schedule_to_json(booking.monthly),
        'cancelled_by': cancellation.cancelled_by.value if cancellation else '',
        'cancelled_at': cancellation.cancelled_at if cancellation else None,
        'cancellation_reason': cancellation.reason if cancellation else '',
        'refund_amount': cancellation.refund_amount.amount if cancellation and cancellation.refund_amount else None,
        'refund_status': cancellation.refund_status.value if cancellation and cancellation.refund_status else '',
        'tenant_notes': booking.notes.tenant,
        'landlord_notes': booking.notes.landlord,
        'admin_notes': booking.notes.admin,
        'created_at': booking.created_at,
        'updated_at': booking.updated_at,
    }


def room_to_entity(row: RoomModel) -> Room:
    return Room(
        id=row.id,
        landlord_id=row.landlord_id,
        title=row.title,
        status=RoomStatus(row.status),
        is_available=row.is_available,
        monthly_rent=Money(row.monthly_price),
        deposit=Money(row.deposit),
        utilities=Money(row.utilities),
        address=Address(
            street=row.street,
            ward=row.ward,
            district=row.district,
            city=row.city,
        ),
    )


# ===== Repositories =====

class DjangoBookingRepository(BookingRepository):

    def get(self, booking_id: UUID) -> Booking:
        try:
            return booking_to_entity(BookingModel.objects.get(pk=booking_id))
        except BookingModel.DoesNotExist:
            raise NotFoundError('Không tìm thấy booking', booking_id=str(booking_id))

    def add(self, booking: Booking) -> None:
        BookingModel.objects.create(id=booking.id, **booking_fields(booking))

    def save(self, booking: Booking, expected_status: BookingStatus) -> bool:
        updated = BookingModel.objects.filter(
            pk=booking.id,
            status=expected_status.value,
        ).update(**booking_fields(booking))
        if not updated:
            logger.warning(
                f"Conditional update of booking {booking.id} lost: expected {expected_status.value}"
            )
        return updated == 1

    def find_blocking(self, room_id: UUID, stay: DateRange) -> List[Booking]:
        # Serialize concurrent requests for the same room where the backend can
        _lock_queryset_if_possible(RoomModel.objects.filter(pk=room_id)).first()
        rows = BookingModel.objects.filter(
            room_id=room_id,
            status__in=[status.value for status in BLOCKING_STATUSES],
            check_in__lte=stay.check_out,
            check_out__gte=stay.check_in,
        )
        return [booking_to_entity(row) for row in rows]

    def list(
        self,
        party_id: Optional[UUID] = None,
        statuses: Optional[Iterable[BookingStatus]] = None,
        check_in_before: Optional[date] = None,
    ) -> List[Booking]:
        queryset = BookingModel.objects.all()
        if party_id is not None:
            queryset = queryset.filter(Q(tenant_id=party_id) | Q(landlord_id=party_id))
        if statuses is not None:
            queryset = queryset.filter(status__in=[status.value for status in statuses])
        if check_in_before is not None:
            queryset = queryset.filter(check_in__lt=check_in_before)
        return [booking_to_entity(row) for row in queryset]


class DjangoRoomRepository(RoomRepository):

    def get(self, room_id: UUID) -> Room:
        try:
            return room_to_entity(RoomModel.objects.get(pk=room_id))
        except RoomModel.DoesNotExist:
            raise NotFoundError('Không tìm thấy phòng', room_id=str(room_id))


class DjangoUserDirectory(UserDirectory):

    def get(self, user_id: UUID) -> UserContact:
        User = get_user_model()
        try:
            return contact_for(User.objects.get(pk=user_id))
        except User.DoesNotExist:
            raise NotFoundError('Không tìm thấy người dùng', user_id=str(user_id))
