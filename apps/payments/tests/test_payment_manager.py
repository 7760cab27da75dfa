"""Tests for payment records: reuse, transitions, refunds, backfill and stats."""

from __future__ import annotations

import re
from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest

from shared.domain.errors import AuthorizationError, InvalidStateError, StateConflictError, ValidationError
from shared.domain.value_objects import Money, Role
from shared.testing.fakes import FIXED_NOW, make_user
from apps.bookings.application.state_machine import SetStatusCommand
from apps.bookings.domain.entities import BookingStatus
from apps.payments.domain.entities import PaymentMethod, PaymentStatus, PaymentType, RefundStatus
from apps.payments.domain.repositories import PaymentQuery
from apps.payments.domain.rules import generate_transaction_id


def _deposit_paid(harness, booking, **kwargs):
    return harness.state_machine.set_status(SetStatusCommand(
        booking_id=booking.id,
        status=BookingStatus.DEPOSIT_PAID,
        actor=harness.landlord_actor,
        **kwargs,
    ))


def test_transaction_id_format() -> None:
    txn = generate_transaction_id(FIXED_NOW)

    assert re.fullmatch(r"TXN\d{8}[0-9A-Z]{6}", txn)
    assert txn[3:11] == str(int(FIXED_NOW.timestamp() * 1000))[-8:]


def test_create_placeholder_reuses_existing_deposit(harness, make_booking) -> None:
    booking = make_booking()
    placeholder = harness.deposit_of(booking)

    again = harness.payments.create_placeholder(booking, PaymentType.DEPOSIT)

    assert again.id == placeholder.id
    assert len(harness.payment_repo.rows) == 1


def test_gateway_checkout_reuses_the_deposit_record(harness, make_booking) -> None:
    booking = make_booking()
    placeholder = harness.deposit_of(booking)

    payment, _url = harness.checkout.start_vnpay(booking.id, harness.tenant_actor, bank_code="NCB")

    assert payment.id == placeholder.id
    assert payment.method == PaymentMethod.VNPAY
    assert payment.status == PaymentStatus.PENDING
    assert payment.gateway.txn_ref.startswith("BOOK")
    assert payment.gateway.amount == 300000000
    assert payment.gateway.bank_code == "NCB"
    assert payment.metadata.payment_source == "vnpay"
    assert len(harness.payment_repo.rows) == 1


def test_failed_deposit_can_be_restarted(harness, make_booking) -> None:
    booking = make_booking()
    first, _url = harness.checkout.start_vnpay(booking.id, harness.tenant_actor)
    harness.payments.mark_failed(first, "Giao dịch bị hủy.")

    second, _url = harness.checkout.start_vnpay(booking.id, harness.tenant_actor)

    assert second.id == first.id
    assert second.status == PaymentStatus.PENDING
    assert second.failure_reason == ""
    assert second.failed_at is None
    assert second.gateway.txn_ref != first.gateway.txn_ref


def test_checkout_rejects_wrong_deposit_amount(harness, make_booking) -> None:
    booking = make_booking()

    with pytest.raises(ValidationError):
        harness.checkout.start_vnpay(booking.id, harness.tenant_actor, amount=Decimal("100000"))

    payment, _url = harness.checkout.start_vnpay(booking.id, harness.tenant_actor, amount=Decimal("3000000"))
    assert payment.amount == Money(Decimal("3000000"))


def test_checkout_monthly_rent_creates_separate_record(harness, make_booking) -> None:
    booking = make_booking()

    payment, _url = harness.checkout.start_vnpay(
        booking.id, harness.tenant_actor, payment_type=PaymentType.MONTHLY_RENT
    )

    assert payment.type == PaymentType.MONTHLY_RENT
    assert payment.amount == Money(Decimal("3000000"))
    assert len(harness.payment_repo.rows) == 2


def test_only_the_tenant_pays(harness, make_booking) -> None:
    booking = make_booking()
    other = harness.users.add(make_user(Role.TENANT))

    with pytest.raises(AuthorizationError):
        harness.checkout.start_vnpay(booking.id, harness.landlord_actor)
    with pytest.raises(AuthorizationError):
        harness.checkout.start_bank_transfer(booking.id, harness.actor(other))


def test_cancelled_booking_cannot_be_paid(harness, make_booking) -> None:
    booking = make_booking()
    harness.state_machine.cancel(booking.id, harness.tenant_actor)

    with pytest.raises(StateConflictError):
        harness.checkout.start_vnpay(booking.id, harness.tenant_actor)


def test_mark_completed_happens_once(harness, make_booking) -> None:
    booking = make_booking()
    deposit = harness.deposit_of(booking)

    completed = harness.payments.mark_completed(deposit, method=PaymentMethod.CASH, external_ref="EXT-1")

    assert completed.status == PaymentStatus.COMPLETED
    assert completed.completed_at is not None
    assert completed.external_transaction_id == "EXT-1"
    assert harness.payments.mark_completed(completed) is None
    # A stale copy read before completion loses the race
    assert harness.payments.mark_completed(deposit) is None


def test_failed_payment_can_still_complete(harness, make_booking) -> None:
    booking = make_booking()
    failed = harness.payments.mark_failed(harness.deposit_of(booking), "timeout")

    completed = harness.payments.mark_completed(failed, method=PaymentMethod.VNPAY)

    assert completed.status == PaymentStatus.COMPLETED


def test_mark_failed_never_touches_completed_payment(harness, make_booking) -> None:
    booking = make_booking()
    deposit = harness.deposit_of(booking)
    harness.payments.mark_completed(deposit)

    assert harness.payments.mark_failed(harness.deposit_of(booking), "late failure") is None
    assert harness.payments.mark_failed(deposit, "stale failure") is None
    assert harness.deposit_of(booking).status == PaymentStatus.COMPLETED


def test_fail_pending_for_booking_skips_completed(harness, make_booking) -> None:
    booking = make_booking()
    harness.payments.mark_completed(harness.deposit_of(booking))
    rent, _url = harness.checkout.start_vnpay(
        booking.id, harness.tenant_actor, payment_type=PaymentType.MONTHLY_RENT
    )

    failed = harness.payments.fail_pending_for_booking(booking.id, "Đặt phòng bị hủy")

    assert [p.id for p in failed] == [rent.id]
    assert harness.deposit_of(booking).status == PaymentStatus.COMPLETED


# ===== Refunds =====

def test_refund_requires_completed_payment(harness, make_booking) -> None:
    booking = make_booking()
    deposit = harness.deposit_of(booking)

    with pytest.raises(InvalidStateError):
        harness.payments.request_refund(deposit.id, reason="Khách đổi ý")


def test_refund_amount_cannot_exceed_payment(harness, make_booking) -> None:
    booking = make_booking()
    completed = harness.payments.mark_completed(harness.deposit_of(booking))

    with pytest.raises(ValidationError):
        harness.payments.request_refund(completed.id, reason="x", amount=Decimal("3000001"))


def test_refund_is_opened_once(harness, make_booking) -> None:
    booking = make_booking()
    completed = harness.payments.mark_completed(harness.deposit_of(booking))

    refunded = harness.payments.request_refund(completed.id, reason="Phòng không đúng mô tả", amount=Decimal("1000000"))

    assert refunded.status == PaymentStatus.COMPLETED
    assert refunded.refund.status == RefundStatus.PROCESSING
    assert refunded.refund.amount == Money(Decimal("1000000"))
    assert refunded.refund.reason == "Phòng không đúng mô tả"
    with pytest.raises(InvalidStateError):
        harness.payments.request_refund(completed.id, reason="again")


def test_checkout_refund_is_admin_only(harness, make_booking) -> None:
    booking = make_booking()
    completed = harness.payments.mark_completed(harness.deposit_of(booking), method=PaymentMethod.BANK_TRANSFER)

    with pytest.raises(AuthorizationError):
        harness.checkout.request_refund(completed.id, harness.landlord_actor, reason="x")

    payment, refund_url = harness.checkout.request_refund(completed.id, harness.admin_actor, reason="x")
    assert payment.refund.amount == Money(Decimal("3000000"))
    assert refund_url is None


def test_vnpay_refund_returns_signed_url(harness, make_booking) -> None:
    booking = make_booking()
    payment, _url = harness.checkout.start_vnpay(booking.id, harness.tenant_actor)
    gateway = replace(payment.gateway, transaction_no="14123456", pay_date="20250301101500")
    harness.payments.mark_completed(payment, gateway=gateway)

    _payment, refund_url = harness.checkout.request_refund(payment.id, harness.admin_actor, reason="x")

    assert "vnp_Command=refund" in refund_url
    assert "vnp_TransactionNo=14123456" in refund_url
    assert "vnp_SecureHash=" in refund_url


# ===== Backfill =====

def test_backfill_creates_flagged_record_from_booking_deposit(harness, make_booking) -> None:
    booking = make_booking()
    paid = _deposit_paid(harness, booking, payment_method="cash", transaction_ref="FT1")
    harness.payment_repo.rows.clear()

    created = harness.payments.backfill_missing()

    [payment] = created
    assert payment.backfilled is True
    assert payment.status == PaymentStatus.COMPLETED
    assert payment.type == PaymentType.DEPOSIT
    assert payment.method == PaymentMethod.CASH
    assert payment.external_transaction_id == "FT1"
    assert payment.completed_at == paid.deposit.paid_at
    assert payment.amount == Money(Decimal("3000000"))
    assert harness.payments.backfill_missing() == []


def test_backfill_falls_back_to_booking_update_time(harness, make_booking) -> None:
    booking = make_booking()
    _deposit_paid(harness, booking)
    harness.payment_repo.rows.clear()
    stored = harness.bookings.rows[booking.id]
    harness.bookings.rows[booking.id] = replace(stored, deposit=replace(stored.deposit, paid_at=None))

    [payment] = harness.payments.backfill_missing()

    assert payment.completed_at == stored.updated_at


def test_backfill_is_scoped_to_party(harness, make_booking) -> None:
    booking = make_booking()
    _deposit_paid(harness, booking)
    harness.payment_repo.rows.clear()
    stranger = harness.users.add(make_user(Role.LANDLORD))

    assert harness.payments.backfill_missing(party_id=stranger.id) == []
    assert len(harness.payments.backfill_missing(party_id=harness.landlord.id)) == 1


# ===== Queries =====

def test_stats_and_listing(harness, make_booking) -> None:
    first = make_booking(check_in=date(2025, 4, 1), check_out=date(2025, 5, 1), duration_months=1)
    second = make_booking(check_in=date(2025, 6, 1), check_out=date(2025, 7, 1), duration_months=1)
    harness.payments.mark_completed(harness.deposit_of(second))

    stats = harness.payments.get_stats(PaymentQuery(party_id=harness.tenant.id))

    assert stats.total_amount == Decimal("6000000")
    assert stats.total_count == 2
    assert stats.successful_amount == Decimal("3000000")
    assert stats.successful_count == 1
    assert stats.pending_amount == Decimal("3000000")
    assert stats.pending_count == 1
    assert stats.to_dict()["successfulCount"] == 1

    completed = harness.payments.get_stats(PaymentQuery(status=PaymentStatus.COMPLETED))
    assert completed.total_count == 1

    listed = harness.payments.list(PaymentQuery(party_id=harness.landlord.id))
    assert [p.booking_id for p in listed] == [second.id, first.id]

    stranger = harness.users.add(make_user(Role.TENANT))
    assert harness.payments.get_stats(PaymentQuery(party_id=stranger.id)).total_count == 0
