"""
Booking State Machine

Use cases that move a Booking through its lifecycle and keep its deposit
Payment in step:

- create: availability check, pricing, schedule, deposit placeholder
- confirm: landlord attests the booking (and any pending deposit)
- set_status: generic transition for admin/landlord/tenant screens
- cancel: cancellation by one of the parties
- expire_stale: scheduler sweep over bookings whose check-in passed
- confirm_payment: landlord/admin confirms a pending manual payment
- record_deposit_paid: advance the booking once its deposit completed

Every booking write is conditional on the status it was read with.
"""

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, List, Optional
from uuid import UUID

from shared.application.uow import AbstractUnitOfWork
from shared.domain.base import utcnow
from shared.domain.errors import (
    AuthorizationError,
    ConflictError,
    RoomUnavailableError,
    SelfBookingError,
    StateConflictError,
    ValidationError,
)
from shared.domain.value_objects import Actor, DateRange, Money, Role
from apps.bookings.domain.entities import (
    Booking,
    BookingNotes,
    BookingStatus,
    Cancellation,
    CancellationRefundStatus,
    CancelledBy,
    DepositRecord,
    DepositStatus,
    RoomStatus,
)
from apps.bookings.domain.events import BookingCreated, BookingStatusChanged
from apps.bookings.domain.repositories import BookingRepository, RoomRepository
from apps.bookings.domain import rules
from apps.payments.application.payment_manager import PaymentRecordManager
from apps.payments.domain.entities import Payment, PaymentMethod, PaymentStatus, PaymentType
from apps.payments.domain.events import PaymentCompleted
from apps.payments.domain.rules import BOOKING_CANCELLED_REASON

logger = logging.getLogger(__name__)

EXPIRED_REASON = 'Quá ngày nhận phòng nhưng booking chưa được xác nhận đặt cọc'


# ===== Commands =====

@dataclass
class CreateBookingCommand:
    """A tenant asks to rent a room; pricing fields override the room's prices."""
    room_id: UUID
    actor: Actor
    check_in: date
    check_out: date
    occupants: int
    duration_months: Optional[int] = None
    monthly_rent: Optional[Decimal] = None
    deposit: Optional[Decimal] = None
    utilities: Optional[Decimal] = None
    tenant_notes: str = ''


@dataclass
class SetStatusCommand:
    booking_id: UUID
    status: BookingStatus
    actor: Actor
    reason: str = ''
    payment_method: str = ''
    transaction_ref: str = ''
    payment_source: str = ''
    description: str = ''


def _money(value: Optional[Decimal]) -> Optional[Money]:
    return Money(value) if value is not None else None


class BookingStateMachine:

    def __init__(
        self,
        bookings: BookingRepository,
        rooms: RoomRepository,
        payments: PaymentRecordManager,
        uow_factory: Callable[[], AbstractUnitOfWork],
        clock: Callable[[], datetime] = utcnow,
    ):
        self._bookings = bookings
        self._rooms = rooms
        self._payments = payments
        self._uow_factory = uow_factory
        self._clock = clock

    # ===== Queries =====

    def get(self, booking_id: UUID, actor: Actor) -> Booking:
        booking = self._bookings.get(booking_id)
        rules.authorize_view(booking, actor)
        return booking

    # ===== Creation =====

    def create(self, command: CreateBookingCommand) -> Booking:
        actor = command.actor
        if actor.role != Role.TENANT:
            raise AuthorizationError('Chỉ người thuê mới có thể đặt phòng')
        try:
            stay = DateRange(command.check_in, command.check_out)
        except ValueError as exc:
            raise ValidationError('Ngày trả phòng phải sau ngày nhận phòng') from exc
        if command.occupants < 1:
            raise ValidationError('Số người ở phải lớn hơn 0')
        if command.duration_months is not None and command.duration_months < 1:
            raise ValidationError('Thời gian thuê phải ít nhất 1 tháng')

        room = self._rooms.get(command.room_id)
        if room.status != RoomStatus.ACTIVE or not room.is_available:
            raise RoomUnavailableError(room_id=str(room.id))
        if room.landlord_id == actor.id:
            raise SelfBookingError(room_id=str(room.id))

        logger.info(
            f"Creating booking for room {room.id}, tenant {actor.id}, stay {stay}"
        )

        with self._uow_factory() as uow:
            if self._bookings.find_blocking(room.id, stay):
                raise ConflictError(room_id=str(room.id), stay=str(stay))

            duration = command.duration_months or rules.compute_duration_months(stay)
            pricing = rules.build_pricing(
                room,
                duration,
                monthly_rent=_money(command.monthly_rent),
                deposit=_money(command.deposit),
                utilities=_money(command.utilities),
            )
            now = self._clock()
            booking = Booking(
                room_id=room.id,
                tenant_id=actor.id,
                landlord_id=room.landlord_id,
                stay=stay,
                duration_months=duration,
                occupants=command.occupants,
                pricing=pricing,
                contract_number=rules.generate_contract_number(now),
                deposit=DepositRecord(amount=pricing.deposit),
                monthly=rules.generate_monthly_schedule(
                    stay.check_in, duration, pricing.monthly_rent, pricing.utilities
                ),
                notes=BookingNotes(tenant=command.tenant_notes),
                created_at=now,
                updated_at=now,
            )
            self._bookings.add(booking)
            self._payments.create_placeholder(booking, PaymentType.DEPOSIT)
            uow.add_event(BookingCreated(
                aggregate_id=booking.id,
                booking_id=booking.id,
                room_id=booking.room_id,
                tenant_id=booking.tenant_id,
                landlord_id=booking.landlord_id,
                contract_number=booking.contract_number,
            ))

        logger.info(f"Booking {booking.contract_number} created with total {pricing.total_amount}")
        return booking

    # ===== Transitions =====

    def _transition(
        self,
        booking: Booking,
        target: BookingStatus,
        uow: AbstractUnitOfWork,
        *,
        changed_by: str,
        reason: Optional[str] = None,
        **changes,
    ) -> Booking:
        rules.ensure_transition(booking, target)
        previous = booking.status
        updated = replace(booking, status=target, updated_at=self._clock(), **changes)
        if not self._bookings.save(updated, expected_status=previous):
            raise StateConflictError(
                'Booking vừa được cập nhật, vui lòng tải lại',
                booking_id=str(booking.id),
            )
        uow.add_event(BookingStatusChanged(
            aggregate_id=booking.id,
            booking_id=booking.id,
            room_id=booking.room_id,
            tenant_id=booking.tenant_id,
            landlord_id=booking.landlord_id,
            previous_status=previous.value,
            status=target.value,
            changed_by=changed_by,
            reason=reason,
        ))
        logger.info(
            f"Booking {booking.contract_number}: {previous.value} -> {target.value} by {changed_by}"
        )
        return updated

    def _paid_deposit(self, payment: Payment, transaction_ref: str = '') -> DepositRecord:
        return DepositRecord(
            status=DepositStatus.PAID,
            amount=payment.amount,
            paid_at=payment.completed_at or self._clock(),
            method=payment.method.value,
            transaction_id=transaction_ref or payment.transaction_id,
        )

    def confirm(self, booking_id: UUID, actor: Actor) -> Booking:
        """
        Landlord (or admin) accepts a pending booking. A pending deposit is
        taken as received by bank transfer; the booking itself stays
        ``confirmed`` until someone moves it to ``deposit_paid``.
        """
        with self._uow_factory() as uow:
            booking = self._bookings.get(booking_id)
            rules.authorize_confirmation(booking, actor)
            rules.ensure_transition(booking, BookingStatus.CONFIRMED)

            changes = {}
            deposit = self._payments.deposit_for(booking.id)
            if deposit is not None and deposit.status == PaymentStatus.PENDING:
                completed = self._payments.mark_completed(deposit, method=PaymentMethod.BANK_TRANSFER)
                if completed is not None:
                    changes['deposit'] = self._paid_deposit(completed)

            return self._transition(
                booking,
                BookingStatus.CONFIRMED,
                uow,
                changed_by=actor.role.value,
                **changes,
            )

    def set_status(self, command: SetStatusCommand) -> Booking:
        target = command.status
        actor = command.actor
        if target == BookingStatus.EXPIRED:
            raise ValidationError('Trạng thái expired chỉ do hệ thống thiết lập')

        with self._uow_factory() as uow:
            booking = self._bookings.get(command.booking_id)
            rules.authorize_status_change(booking, actor, target)
            rules.ensure_transition(booking, target)

            if target == BookingStatus.CANCELLED:
                return self._cancel(booking, actor, command.reason, uow)

            changes = {}
            if target == BookingStatus.DEPOSIT_PAID:
                payment = self._payments.complete_deposit(
                    booking,
                    method=_payment_method(command.payment_method),
                    external_ref=command.transaction_ref,
                    payment_source=command.payment_source,
                    description=command.description
                    or f"Đặt cọc hợp đồng {booking.contract_number} - Xác nhận bởi chủ trọ",
                )
                changes['deposit'] = self._paid_deposit(payment, command.transaction_ref)

            return self._transition(
                booking,
                target,
                uow,
                changed_by=actor.role.value,
                reason=command.reason or None,
                **changes,
            )

    def cancel(self, booking_id: UUID, actor: Actor, reason: str = '') -> Booking:
        with self._uow_factory() as uow:
            booking = self._bookings.get(booking_id)
            rules.authorize_status_change(booking, actor, BookingStatus.CANCELLED)
            return self._cancel(booking, actor, reason, uow)

    def _cancel(self, booking: Booking, actor: Actor, reason: str, uow: AbstractUnitOfWork) -> Booking:
        rules.ensure_transition(booking, BookingStatus.CANCELLED)
        cancelled_by = rules.cancelled_by_for(actor)
        reason = reason or rules.DEFAULT_CANCELLATION_REASON
        cancellation = Cancellation(
            cancelled_by=cancelled_by,
            cancelled_at=self._clock(),
            reason=reason,
        )
        if booking.deposit.status == DepositStatus.PAID:
            cancellation.refund_amount = booking.deposit.amount
            cancellation.refund_status = CancellationRefundStatus.PENDING

        updated = self._transition(
            booking,
            BookingStatus.CANCELLED,
            uow,
            changed_by=cancelled_by.value,
            reason=reason,
            cancellation=cancellation,
        )
        self._payments.fail_pending_for_booking(booking.id, BOOKING_CANCELLED_REASON)
        return updated

    def expire_stale(self, today: date) -> List[Booking]:
        """Expire pending/confirmed bookings whose check-in date has passed."""
        expired = []
        candidates = self._bookings.list(
            statuses=rules.EXPIRABLE_STATUSES,
            check_in_before=today,
        )
        for booking in candidates:
            try:
                with self._uow_factory() as uow:
                    updated = self._transition(
                        booking,
                        BookingStatus.EXPIRED,
                        uow,
                        changed_by=CancelledBy.SYSTEM.value,
                        reason=EXPIRED_REASON,
                        cancellation=Cancellation(
                            cancelled_by=CancelledBy.SYSTEM,
                            cancelled_at=self._clock(),
                            reason=EXPIRED_REASON,
                        ),
                    )
                    self._payments.fail_pending_for_booking(booking.id, EXPIRED_REASON)
                expired.append(updated)
            except StateConflictError:
                logger.info(f"Booking {booking.id} changed during expiry sweep, skipped")
        if expired:
            logger.info(f"Expired {len(expired)} stale bookings")
        return expired

    # ===== Payment-driven =====

    def record_deposit_paid(self, payment: Payment) -> Optional[Booking]:
        """
        Advance the booking of a completed deposit to ``deposit_paid``.

        Bookings that can no longer take a deposit (cancelled, expired...)
        are left as they are and a warning is logged. Runs inside the
        caller's unit of work.
        """
        booking = self._bookings.get(payment.booking_id)
        deposit = self._paid_deposit(payment)

        if booking.status == BookingStatus.DEPOSIT_PAID:
            if booking.deposit.status != DepositStatus.PAID:
                updated = replace(booking, deposit=deposit, updated_at=self._clock())
                if not self._bookings.save(updated, expected_status=BookingStatus.DEPOSIT_PAID):
                    raise StateConflictError('Booking vừa được cập nhật', booking_id=str(booking.id))
                return updated
            return booking

        if not rules.is_transition_allowed(booking.status, BookingStatus.DEPOSIT_PAID):
            logger.warning(
                f"Deposit {payment.transaction_id} completed for booking {booking.id} "
                f"in status {booking.status.value}; booking left unchanged"
            )
            return None

        updated = replace(
            booking,
            status=BookingStatus.DEPOSIT_PAID,
            deposit=deposit,
            updated_at=self._clock(),
        )
        if not self._bookings.save(updated, expected_status=booking.status):
            raise StateConflictError('Booking vừa được cập nhật', booking_id=str(booking.id))
        logger.info(
            f"Booking {booking.contract_number}: {booking.status.value} -> deposit_paid "
            f"via payment {payment.transaction_id}"
        )
        return updated

    def confirm_payment(self, payment_id: UUID, actor: Actor) -> Payment:
        """Recipient (or admin) confirms a pending manual payment was received."""
        with self._uow_factory() as uow:
            payment = self._payments.get(payment_id)
            if not actor.is_admin and not (
                actor.role == Role.LANDLORD and actor.id == payment.recipient_id
            ):
                raise AuthorizationError('Không có quyền xác nhận thanh toán này')
            if payment.status != PaymentStatus.PENDING:
                raise StateConflictError(
                    'Thanh toán không ở trạng thái chờ xác nhận',
                    payment_id=str(payment.id),
                    status=payment.status.value,
                )
            method = payment.method
            if method == PaymentMethod.PENDING:
                method = PaymentMethod.BANK_TRANSFER
            completed = self._payments.mark_completed(payment, method=method)
            if completed is None:
                raise StateConflictError('Thanh toán vừa được xử lý', payment_id=str(payment.id))
            if completed.type == PaymentType.DEPOSIT:
                self.record_deposit_paid(completed)
            uow.add_event(payment_completed_event(completed, source='manual'))
            return completed


def _payment_method(value: str) -> PaymentMethod:
    if not value:
        return PaymentMethod.BANK_TRANSFER
    try:
        return PaymentMethod(value)
    except ValueError as exc:
        raise ValidationError(f"Phương thức thanh toán không hợp lệ: {value}") from exc


def payment_completed_event(payment: Payment, source: str) -> PaymentCompleted:
    return PaymentCompleted(
        aggregate_id=payment.id,
        payment_id=payment.id,
        booking_id=payment.booking_id,
        payer_id=payment.payer_id,
        recipient_id=payment.recipient_id,
        payment_type=payment.type.value,
        amount=payment.amount.amount,
        currency=payment.amount.currency,
        transaction_id=payment.transaction_id,
        method=payment.method.value,
        source=source,
    )
