"""Service-level tests for the booking state machine."""

from __future__ import annotations

import random
from datetime import date, timedelta
from decimal import Decimal

import pytest

from shared.domain.errors import (
    AuthorizationError,
    ConflictError,
    RoomUnavailableError,
    SelfBookingError,
    StateConflictError,
    ValidationError,
)
from shared.domain.value_objects import Actor, Money, Role
from shared.testing.fakes import make_room, make_user
from apps.bookings.application.state_machine import (
    EXPIRED_REASON,
    CreateBookingCommand,
    SetStatusCommand,
)
from apps.bookings.domain.entities import (
    BookingStatus,
    CancellationRefundStatus,
    CancelledBy,
    DepositStatus,
    RoomStatus,
)
from apps.bookings.domain.rules import BLOCKING_STATUSES
from apps.payments.domain.entities import PaymentMethod, PaymentStatus
from apps.payments.domain.rules import BOOKING_CANCELLED_REASON


def _command(harness, check_in=date(2025, 4, 1), check_out=date(2025, 7, 1), **kwargs) -> CreateBookingCommand:
    return CreateBookingCommand(
        room_id=kwargs.pop("room_id", harness.room.id),
        actor=kwargs.pop("actor", harness.tenant_actor),
        check_in=check_in,
        check_out=check_out,
        occupants=kwargs.pop("occupants", 2),
        duration_months=kwargs.pop("duration_months", 3),
        **kwargs,
    )


def _set_status(harness, booking, status, actor=None, **kwargs):
    return harness.state_machine.set_status(SetStatusCommand(
        booking_id=booking.id,
        status=status,
        actor=actor or harness.landlord_actor,
        **kwargs,
    ))


# ===== create =====

def test_create_prices_schedules_and_places_deposit(harness) -> None:
    booking = harness.state_machine.create(_command(harness))

    assert booking.status == BookingStatus.PENDING
    assert booking.landlord_id == harness.landlord.id
    assert booking.pricing.total_amount == Money(Decimal("12600000"))
    assert len(booking.monthly) == 3
    assert all(item.amount == Money(Decimal("3200000")) for item in booking.monthly)
    assert booking.contract_number.startswith("HD")

    deposit = harness.deposit_of(booking)
    assert deposit.status == PaymentStatus.PENDING
    assert deposit.method == PaymentMethod.PENDING
    assert deposit.amount == Money(Decimal("3000000"))
    assert deposit.payer_id == harness.tenant.id
    assert deposit.recipient_id == harness.landlord.id


def test_create_notifies_tenant_and_landlord(harness) -> None:
    harness.state_machine.create(_command(harness))

    recipients = {n["recipient_id"] for n in harness.sinks.notifications}
    assert recipients == {harness.tenant.id, harness.landlord.id}
    assert all(n["type"] == "booking_request" for n in harness.sinks.notifications)
    assert {e["template"] for e in harness.sinks.emails} == {
        "bookingConfirmation",
        "bookingNotificationToLandlord",
    }


def test_create_computes_duration_when_not_given(harness) -> None:
    booking = harness.state_machine.create(_command(
        harness, check_in=date(2025, 4, 1), check_out=date(2025, 5, 20), duration_months=None,
    ))

    assert booking.duration_months == 2
    assert len(booking.monthly) == 2


def test_create_rejects_overlapping_stay(harness, make_booking) -> None:
    make_booking(check_in=date(2025, 4, 1), check_out=date(2025, 5, 1))

    # Starting on the day the other stay ends still conflicts
    with pytest.raises(ConflictError):
        harness.state_machine.create(_command(harness, check_in=date(2025, 5, 1), check_out=date(2025, 6, 1)))

    booking = harness.state_machine.create(_command(harness, check_in=date(2025, 5, 2), check_out=date(2025, 6, 1)))
    assert booking.status == BookingStatus.PENDING


def test_cancelled_booking_frees_the_dates(harness, make_booking) -> None:
    first = make_booking()
    harness.state_machine.cancel(first.id, harness.tenant_actor)

    second = harness.state_machine.create(_command(harness))

    assert second.id != first.id


def test_create_rejects_unavailable_room(harness) -> None:
    inactive = harness.rooms.add(make_room(harness.landlord.id, status=RoomStatus.INACTIVE))
    taken = harness.rooms.add(make_room(harness.landlord.id, is_available=False))

    with pytest.raises(RoomUnavailableError):
        harness.state_machine.create(_command(harness, room_id=inactive.id))
    with pytest.raises(RoomUnavailableError):
        harness.state_machine.create(_command(harness, room_id=taken.id))


def test_create_rejects_booking_own_room(harness) -> None:
    own_room = harness.rooms.add(make_room(harness.tenant.id))

    with pytest.raises(SelfBookingError):
        harness.state_machine.create(_command(harness, room_id=own_room.id))


def test_only_tenants_create_bookings(harness) -> None:
    with pytest.raises(AuthorizationError):
        harness.state_machine.create(_command(harness, actor=harness.landlord_actor))


def test_create_validates_occupants_and_duration(harness) -> None:
    with pytest.raises(ValidationError):
        harness.state_machine.create(_command(harness, occupants=0))
    with pytest.raises(ValidationError):
        harness.state_machine.create(_command(harness, duration_months=0))
    with pytest.raises(ValidationError):
        harness.state_machine.create(_command(harness, check_in=date(2025, 5, 1), check_out=date(2025, 4, 1)))


def test_no_two_blocking_bookings_overlap(harness) -> None:
    rng = random.Random(20250301)
    tenants = [harness.users.add(make_user(Role.TENANT)) for _ in range(4)]
    origin = date(2025, 1, 1)

    for _ in range(60):
        check_in = origin + timedelta(days=rng.randint(0, 180))
        check_out = check_in + timedelta(days=rng.randint(1, 60))
        tenant = rng.choice(tenants)
        try:
            booking = harness.state_machine.create(_command(
                harness,
                check_in=check_in,
                check_out=check_out,
                duration_months=None,
                actor=Actor(id=tenant.id, role=Role.TENANT),
            ))
        except ConflictError:
            continue
        if rng.random() < 0.2:
            harness.state_machine.cancel(booking.id, harness.landlord_actor)

    blocking = [b for b in harness.bookings.list() if b.status in BLOCKING_STATUSES]
    assert blocking
    for i, first in enumerate(blocking):
        for second in blocking[i + 1:]:
            assert not first.stay.overlaps(second.stay)


# ===== confirm =====

def test_landlord_confirm_completes_pending_deposit(harness, make_booking) -> None:
    booking = make_booking()

    confirmed = harness.state_machine.confirm(booking.id, harness.landlord_actor)

    assert confirmed.status == BookingStatus.CONFIRMED
    assert confirmed.deposit.status == DepositStatus.PAID
    deposit = harness.deposit_of(booking)
    assert deposit.status == PaymentStatus.COMPLETED
    assert deposit.method == PaymentMethod.BANK_TRANSFER
    assert harness.bookings.get(booking.id).status == BookingStatus.CONFIRMED

    [notification] = harness.sinks.notified(harness.tenant.id)
    assert notification["type"] == "booking_confirmed"
    assert "được chủ trọ xác nhận" in notification["message"]
    assert [e["template"] for e in harness.sinks.emails] == ["bookingConfirmation"]


def test_confirm_twice_is_a_state_conflict(harness, make_booking) -> None:
    booking = make_booking()
    harness.state_machine.confirm(booking.id, harness.landlord_actor)
    harness.sinks.clear()

    with pytest.raises(StateConflictError):
        harness.state_machine.confirm(booking.id, harness.landlord_actor)
    assert harness.sinks.notifications == []


def test_confirm_requires_the_booking_landlord(harness, make_booking) -> None:
    booking = make_booking()
    other = harness.users.add(make_user(Role.LANDLORD))

    with pytest.raises(AuthorizationError):
        harness.state_machine.confirm(booking.id, harness.tenant_actor)
    with pytest.raises(AuthorizationError):
        harness.state_machine.confirm(booking.id, harness.actor(other))

    assert harness.state_machine.confirm(booking.id, harness.admin_actor).status == BookingStatus.CONFIRMED


def test_gateway_deposit_refused_after_manual_confirmation(harness, make_booking) -> None:
    booking = make_booking()
    harness.state_machine.confirm(booking.id, harness.landlord_actor)

    with pytest.raises(StateConflictError):
        harness.checkout.start_vnpay(booking.id, harness.tenant_actor)


# ===== set_status =====

def test_set_deposit_paid_completes_deposit_with_reference(harness, make_booking) -> None:
    booking = make_booking()

    updated = _set_status(
        harness, booking, BookingStatus.DEPOSIT_PAID,
        payment_method="cash", transaction_ref="FT25060", payment_source="landlord",
    )

    assert updated.status == BookingStatus.DEPOSIT_PAID
    assert updated.deposit.status == DepositStatus.PAID
    assert updated.deposit.transaction_id == "FT25060"
    deposit = harness.deposit_of(booking)
    assert deposit.status == PaymentStatus.COMPLETED
    assert deposit.method == PaymentMethod.CASH
    assert deposit.gateway.txn_ref == "FT25060"
    assert deposit.metadata.payment_source == "landlord"
    assert len(harness.payment_repo.rows) == 1

    [notification] = harness.sinks.notified(harness.tenant.id)
    assert notification["type"] == "payment_received"


def test_set_deposit_paid_twice_is_a_state_conflict(harness, make_booking) -> None:
    booking = make_booking()
    _set_status(harness, booking, BookingStatus.DEPOSIT_PAID)

    with pytest.raises(StateConflictError):
        _set_status(harness, booking, BookingStatus.DEPOSIT_PAID)


def test_set_status_rejects_unknown_payment_method(harness, make_booking) -> None:
    booking = make_booking()

    with pytest.raises(ValidationError):
        _set_status(harness, booking, BookingStatus.DEPOSIT_PAID, payment_method="bitcoin")
    assert harness.bookings.get(booking.id).status == BookingStatus.PENDING


def test_expired_cannot_be_set_by_hand(harness, make_booking) -> None:
    booking = make_booking()

    with pytest.raises(ValidationError):
        _set_status(harness, booking, BookingStatus.EXPIRED, actor=harness.admin_actor)


def test_tenant_may_only_cancel(harness, make_booking) -> None:
    booking = make_booking()

    with pytest.raises(AuthorizationError):
        _set_status(harness, booking, BookingStatus.CONFIRMED, actor=harness.tenant_actor)

    cancelled = _set_status(harness, booking, BookingStatus.CANCELLED, actor=harness.tenant_actor, reason="Đổi kế hoạch")
    assert cancelled.cancellation.cancelled_by == CancelledBy.TENANT
    assert cancelled.cancellation.reason == "Đổi kế hoạch"


def test_illegal_jump_is_a_state_conflict(harness, make_booking) -> None:
    booking = make_booking()

    with pytest.raises(StateConflictError):
        _set_status(harness, booking, BookingStatus.COMPLETED)


# ===== cancel =====

def test_tenant_cancel_fails_pending_payments_and_notifies_landlord(harness, make_booking) -> None:
    booking = make_booking()

    cancelled = harness.state_machine.cancel(booking.id, harness.tenant_actor)

    assert cancelled.status == BookingStatus.CANCELLED
    assert cancelled.cancellation.cancelled_by == CancelledBy.TENANT
    assert cancelled.cancellation.reason == "Không có lý do"
    assert cancelled.cancellation.refund_amount is None
    deposit = harness.deposit_of(booking)
    assert deposit.status == PaymentStatus.FAILED
    assert deposit.failure_reason == BOOKING_CANCELLED_REASON

    assert harness.sinks.notified(harness.tenant.id) == []
    [notification] = harness.sinks.notified(harness.landlord.id)
    assert notification["type"] == "booking_cancelled"
    assert "người thuê hủy" in notification["message"]


@pytest.mark.parametrize(
    "who, expected",
    [("landlord", CancelledBy.LANDLORD), ("admin", CancelledBy.ADMIN)],
)
def test_cancelled_by_follows_actor_role(harness, make_booking, who, expected) -> None:
    booking = make_booking()
    actor = getattr(harness, f"{who}_actor")

    cancelled = harness.state_machine.cancel(booking.id, actor, "Phòng cần sửa chữa")

    assert cancelled.cancellation.cancelled_by == expected
    [notification] = harness.sinks.notified(harness.tenant.id)
    assert notification["title"] == "Booking đã bị hủy"


def test_cancel_after_deposit_records_pending_refund(harness, make_booking) -> None:
    booking = make_booking()
    _set_status(harness, booking, BookingStatus.DEPOSIT_PAID)

    cancelled = harness.state_machine.cancel(booking.id, harness.landlord_actor)

    assert cancelled.cancellation.refund_amount == Money(Decimal("3000000"))
    assert cancelled.cancellation.refund_status == CancellationRefundStatus.PENDING
    assert harness.deposit_of(booking).status == PaymentStatus.COMPLETED


def test_cancel_completed_booking_is_a_state_conflict(harness, make_booking) -> None:
    booking = make_booking()
    _set_status(harness, booking, BookingStatus.DEPOSIT_PAID)
    _set_status(harness, booking, BookingStatus.ACTIVE)
    _set_status(harness, booking, BookingStatus.COMPLETED)

    with pytest.raises(StateConflictError):
        harness.state_machine.cancel(booking.id, harness.tenant_actor)


def test_strangers_cannot_cancel(harness, make_booking) -> None:
    booking = make_booking()
    stranger = harness.users.add(make_user(Role.TENANT))

    with pytest.raises(AuthorizationError):
        harness.state_machine.cancel(booking.id, harness.actor(stranger))
    with pytest.raises(AuthorizationError):
        harness.state_machine.get(booking.id, harness.actor(stranger))


# ===== expire_stale =====

def test_expire_stale_expires_unpaid_bookings_past_check_in(harness, make_booking) -> None:
    pending = make_booking(check_in=date(2025, 4, 1), check_out=date(2025, 5, 1), duration_months=1)
    confirmed = make_booking(check_in=date(2025, 5, 10), check_out=date(2025, 6, 10), duration_months=1)
    paid = make_booking(check_in=date(2025, 7, 1), check_out=date(2025, 8, 1), duration_months=1)
    future = make_booking(check_in=date(2025, 9, 1), check_out=date(2025, 10, 1), duration_months=1)
    harness.state_machine.confirm(confirmed.id, harness.landlord_actor)
    _set_status(harness, paid, BookingStatus.DEPOSIT_PAID)
    harness.sinks.clear()

    expired = harness.state_machine.expire_stale(date(2025, 9, 1))

    assert {b.id for b in expired} == {pending.id, confirmed.id}
    stored = harness.bookings.get(pending.id)
    assert stored.status == BookingStatus.EXPIRED
    assert stored.cancellation.cancelled_by == CancelledBy.SYSTEM
    assert stored.cancellation.reason == EXPIRED_REASON
    assert harness.deposit_of(pending).status == PaymentStatus.FAILED
    assert harness.bookings.get(paid.id).status == BookingStatus.DEPOSIT_PAID
    assert harness.bookings.get(future.id).status == BookingStatus.PENDING
    assert len(harness.sinks.notified(harness.tenant.id)) == 2


# ===== confirm_payment =====

def test_landlord_confirms_bank_transfer(harness, make_booking) -> None:
    booking = make_booking()
    transfer = harness.checkout.start_bank_transfer(
        booking.id,
        harness.tenant_actor,
        bank_name="Vietcombank",
        account_number="0123456789",
        account_holder="NGUYEN VAN AN",
    )
    assert transfer.method == PaymentMethod.BANK_TRANSFER
    assert transfer.id == harness.deposit_of(booking).id

    payment = harness.state_machine.confirm_payment(transfer.id, harness.landlord_actor)

    assert payment.status == PaymentStatus.COMPLETED
    stored = harness.bookings.get(booking.id)
    assert stored.status == BookingStatus.DEPOSIT_PAID
    assert stored.deposit.status == DepositStatus.PAID
    [notification] = harness.sinks.notified(harness.tenant.id)
    assert notification["title"] == "Thanh toán đã được xác nhận"
    assert harness.sinks.notified(harness.landlord.id) == []
    assert harness.sinks.emails == []

    with pytest.raises(StateConflictError):
        harness.state_machine.confirm_payment(transfer.id, harness.landlord_actor)


def test_confirm_payment_requires_recipient_or_admin(harness, make_booking) -> None:
    booking = make_booking()
    deposit = harness.deposit_of(booking)
    other = harness.users.add(make_user(Role.LANDLORD))

    with pytest.raises(AuthorizationError):
        harness.state_machine.confirm_payment(deposit.id, harness.actor(other))
    with pytest.raises(AuthorizationError):
        harness.state_machine.confirm_payment(deposit.id, harness.tenant_actor)

    payment = harness.state_machine.confirm_payment(deposit.id, harness.admin_actor)
    assert payment.method == PaymentMethod.BANK_TRANSFER
