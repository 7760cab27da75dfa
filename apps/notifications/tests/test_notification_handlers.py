"""Tests for the event handlers that notify tenants and landlords."""

from __future__ import annotations

from decimal import Decimal
from uuid import uuid4

from shared.application.message_bus import MessageBus
from apps.notifications.emails import render_email
from apps.bookings.application.state_machine import SetStatusCommand
from apps.bookings.domain.entities import BookingStatus
from apps.notifications.handlers import PAYMENT_RECEIVED, NotificationHandlers
from apps.payments.domain.events import PaymentCompleted


def _completed(harness, booking, source):
    deposit = harness.deposit_of(booking)
    return PaymentCompleted(
        aggregate_id=deposit.id,
        payment_id=deposit.id,
        booking_id=booking.id,
        payer_id=harness.tenant.id,
        recipient_id=harness.landlord.id,
        payment_type="deposit",
        amount=Decimal("3000000"),
        currency="VND",
        transaction_id=deposit.transaction_id,
        method="vnpay" if source == "gateway" else "bank_transfer",
        source=source,
    )


def test_gateway_payment_notifies_both_parties_and_emails(harness, make_booking) -> None:
    booking = make_booking()

    harness.bus.publish_events([_completed(harness, booking, "gateway")])

    titles = {n["recipient_id"]: n["title"] for n in harness.sinks.notifications}
    assert titles == {
        harness.tenant.id: "Thanh toán thành công",
        harness.landlord.id: "Nhận thanh toán",
    }
    assert all(n["type"] == PAYMENT_RECEIVED for n in harness.sinks.notifications)
    assert {e["address"] for e in harness.sinks.emails} == {harness.tenant.email, harness.landlord.email}
    email = harness.sinks.emails[0]
    assert email["data"]["paymentType"] == "Đặt cọc"
    assert email["data"]["paymentMethod"] == "VNPay"


def test_manual_payment_notifies_payer_only(harness, make_booking) -> None:
    booking = make_booking()

    harness.bus.publish_events([_completed(harness, booking, "manual")])

    [notification] = harness.sinks.notifications
    assert notification["recipient_id"] == harness.tenant.id
    assert notification["title"] == "Thanh toán đã được xác nhận"
    assert notification["data"]["bookingId"] == str(booking.id)
    assert harness.sinks.emails == []


def test_other_status_changes_get_a_generic_notification(harness, make_booking) -> None:
    booking = make_booking()
    for status in (BookingStatus.DEPOSIT_PAID, BookingStatus.ACTIVE):
        harness.state_machine.set_status(SetStatusCommand(
            booking_id=booking.id, status=status, actor=harness.landlord_actor,
        ))

    last = harness.sinks.notifications[-1]
    assert last["type"] == "system"
    assert "đang thuê" in last["message"]


def test_bus_contains_handler_errors() -> None:
    bus = MessageBus()
    seen = []

    def broken(event):
        raise RuntimeError("smtp down")

    bus.register_event_handler(PaymentCompleted, broken)
    bus.register_event_handler(PaymentCompleted, seen.append)
    event = PaymentCompleted(
        payment_id=uuid4(),
        booking_id=uuid4(),
        payer_id=uuid4(),
        recipient_id=uuid4(),
        payment_type="deposit",
        amount=Decimal("1"),
        currency="VND",
        transaction_id="TXN1",
        method="vnpay",
    )

    bus.publish_events([event])

    assert seen == [event]


def test_failing_sink_does_not_undo_the_booking(harness, make_booking) -> None:
    def broken_notify(*args, **kwargs):
        raise RuntimeError("notification store down")

    harness.bus = MessageBus()
    NotificationHandlers(
        harness.bookings, harness.rooms, harness.users, notify=broken_notify, email=harness.sinks.email,
    ).register(harness.bus)
    booking = make_booking()

    assert harness.bookings.get(booking.id).status.value == "pending"


def test_templates_render_the_queued_data(harness, make_booking) -> None:
    harness.sinks.clear()
    harness.state_machine.confirm(make_booking().id, harness.landlord_actor)
    [email] = harness.sinks.emails

    subject, html = render_email(email["template"], email["data"])

    assert subject == "Xác nhận đặt phòng - Phòng trọ Quận 1"
    assert "Nguyễn Văn An" in html
    assert "3.000.000 VNĐ" in html
