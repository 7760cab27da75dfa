"""
Booking rules

Pure functions over Booking records: pricing, the monthly schedule, the
transition table and who may perform which transition.
"""

import calendar
import math
import secrets
from datetime import date, datetime
from typing import Dict, FrozenSet, List, Optional

from shared.domain.errors import AuthorizationError, StateConflictError
from shared.domain.value_objects import Actor, DateRange, Money, Role
from apps.bookings.domain.entities import (
    Booking,
    BookingStatus,
    CancelledBy,
    MonthlyInstallment,
    Pricing,
    Room,
)


DEFAULT_CANCELLATION_REASON = 'Không có lý do'

# Statuses that hold the room for their dates
BLOCKING_STATUSES: FrozenSet[BookingStatus] = frozenset({
    BookingStatus.PENDING,
    BookingStatus.CONFIRMED,
    BookingStatus.DEPOSIT_PAID,
    BookingStatus.ACTIVE,
})

CANCELLABLE_STATUSES: FrozenSet[BookingStatus] = frozenset({
    BookingStatus.PENDING,
    BookingStatus.CONFIRMED,
    BookingStatus.DEPOSIT_PAID,
})

EXPIRABLE_STATUSES: FrozenSet[BookingStatus] = frozenset({
    BookingStatus.PENDING,
    BookingStatus.CONFIRMED,
})

ALLOWED_TRANSITIONS: Dict[BookingStatus, FrozenSet[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({
        BookingStatus.CONFIRMED,
        BookingStatus.DEPOSIT_PAID,
        BookingStatus.CANCELLED,
        BookingStatus.EXPIRED,
    }),
    BookingStatus.CONFIRMED: frozenset({
        BookingStatus.DEPOSIT_PAID,
        BookingStatus.ACTIVE,
        BookingStatus.CANCELLED,
        BookingStatus.EXPIRED,
    }),
    BookingStatus.DEPOSIT_PAID: frozenset({
        BookingStatus.ACTIVE,
        BookingStatus.CANCELLED,
    }),
    BookingStatus.ACTIVE: frozenset({BookingStatus.COMPLETED}),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.EXPIRED: frozenset(),
}


# ===== Pricing =====

def compute_duration_months(stay: DateRange) -> int:
    """Months of rent for a stay, counting every started 30-day block."""
    return max(1, math.ceil(stay.days / 30))


def calculate_total_amount(
    monthly_rent: Money,
    utilities: Money,
    deposit: Money,
    duration_months: int,
) -> Money:
    return monthly_rent * duration_months + utilities * duration_months + deposit


def build_pricing(
    room: Room,
    duration_months: int,
    monthly_rent: Optional[Money] = None,
    deposit: Optional[Money] = None,
    utilities: Optional[Money] = None,
) -> Pricing:
    """Room prices unless the caller agreed on different ones."""
    rent = monthly_rent or room.monthly_rent
    dep = deposit or room.deposit
    util = utilities if utilities is not None else room.utilities
    return Pricing(
        monthly_rent=rent,
        deposit=dep,
        utilities=util,
        total_amount=calculate_total_amount(rent, util, dep, duration_months),
    )


def add_months(start: date, months: int) -> date:
    """Same day ``months`` later, clamped to the end of shorter months."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def generate_monthly_schedule(
    check_in: date,
    duration_months: int,
    monthly_rent: Money,
    utilities: Money,
) -> List[MonthlyInstallment]:
    amount = monthly_rent + utilities
    schedule = []
    for i in range(duration_months):
        due = add_months(check_in, i)
        schedule.append(MonthlyInstallment(
            month=f"{due.year}-{due.month:02d}",
            amount=amount,
            due_date=due,
        ))
    return schedule


def generate_contract_number(now: datetime) -> str:
    """Human-readable contract number, e.g. HD20250301-5F3A9C."""
    return f"HD{now:%Y%m%d}-{secrets.token_hex(3).upper()}"


# ===== Lifecycle =====

def blocks_room(booking: Booking) -> bool:
    return booking.status in BLOCKING_STATUSES


def can_be_cancelled(booking: Booking) -> bool:
    return booking.status in CANCELLABLE_STATUSES


def can_be_confirmed(booking: Booking) -> bool:
    return booking.status == BookingStatus.PENDING


def is_transition_allowed(current: BookingStatus, target: BookingStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def ensure_transition(booking: Booking, target: BookingStatus) -> None:
    """Raise StateConflictError unless ``booking`` may move to ``target``."""
    if booking.status == target:
        raise StateConflictError(
            f"Booking đã ở trạng thái {target.value}",
            booking_id=str(booking.id),
            status=booking.status.value,
        )
    if target == BookingStatus.CANCELLED and not can_be_cancelled(booking):
        raise StateConflictError(
            f"Booking không thể hủy. Trạng thái hiện tại: {booking.status.value}. "
            f"Chỉ có thể hủy booking ở trạng thái: pending, confirmed, deposit_paid",
            booking_id=str(booking.id),
            status=booking.status.value,
        )
    if target == BookingStatus.CONFIRMED and not can_be_confirmed(booking):
        raise StateConflictError(
            f"Chỉ có thể xác nhận booking đang ở trạng thái pending. "
            f"Trạng thái hiện tại: {booking.status.value}",
            booking_id=str(booking.id),
            status=booking.status.value,
        )
    if not is_transition_allowed(booking.status, target):
        raise StateConflictError(
            f"Không thể chuyển booking từ {booking.status.value} sang {target.value}",
            booking_id=str(booking.id),
            status=booking.status.value,
        )


# ===== Authorization =====

def is_party(booking: Booking, actor: Actor) -> bool:
    return actor.id in (booking.tenant_id, booking.landlord_id)


def authorize_view(booking: Booking, actor: Actor) -> None:
    if actor.is_admin or is_party(booking, actor):
        return
    raise AuthorizationError('Không có quyền xem booking này')


def authorize_status_change(booking: Booking, actor: Actor, target: BookingStatus) -> None:
    """
    Admins may set any status, landlords only on their own bookings.
    Tenants may only cancel their own bookings.
    """
    if actor.is_admin:
        return
    if actor.role == Role.LANDLORD and actor.id == booking.landlord_id:
        return
    if actor.role == Role.TENANT and actor.id == booking.tenant_id:
        if target == BookingStatus.CANCELLED:
            return
        raise AuthorizationError('Người thuê chỉ có thể hủy booking')
    raise AuthorizationError('Không có quyền cập nhật trạng thái booking này')


def authorize_confirmation(booking: Booking, actor: Actor) -> None:
    if actor.is_admin or (actor.role == Role.LANDLORD and actor.id == booking.landlord_id):
        return
    raise AuthorizationError('Không có quyền xác nhận booking này')


def cancelled_by_for(actor: Actor) -> CancelledBy:
    return {
        Role.ADMIN: CancelledBy.ADMIN,
        Role.LANDLORD: CancelledBy.LANDLORD,
        Role.TENANT: CancelledBy.TENANT,
    }[actor.role]
