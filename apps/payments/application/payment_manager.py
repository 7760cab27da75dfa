"""
Payment Record Manager

Creates, transitions and queries Payment records. Every status change is
a conditional write on the status the record was read with, so duplicate
callbacks and concurrent writers cannot apply the same transition twice.

The manager does not touch bookings; the booking state machine and the
callback reconciler call it and propagate the result themselves.
"""

import logging
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Callable, List, Optional
from uuid import UUID

from shared.domain.base import utcnow
from shared.domain.errors import InvalidStateError, StateConflictError, ValidationError
from shared.domain.value_objects import Money
from apps.bookings.domain.entities import Booking, BookingStatus
from apps.bookings.domain.repositories import BookingRepository
from apps.payments.domain.entities import (
    BankTransferDetails,
    GatewayDetails,
    Payment,
    PaymentMetadata,
    PaymentMethod,
    PaymentStats,
    PaymentStatus,
    PaymentType,
    Refund,
    RefundStatus,
)
from apps.payments.domain.repositories import PaymentQuery, PaymentRepository
from apps.payments.domain.rules import (
    COMPLETABLE_STATUSES,
    FAILABLE_STATUSES,
    amount_for_type,
    can_be_refunded,
    generate_transaction_id,
)

logger = logging.getLogger(__name__)

# A payment the tenant can still (re)start paying through a new channel
RESTARTABLE_STATUSES = frozenset({
    PaymentStatus.PENDING,
    PaymentStatus.PROCESSING,
    PaymentStatus.FAILED,
})


def _method_from(value: str, default: PaymentMethod = PaymentMethod.BANK_TRANSFER) -> PaymentMethod:
    try:
        return PaymentMethod(value)
    except ValueError:
        return default


def _amount_field(amount: Optional[Money]) -> dict:
    return {'amount': amount} if amount is not None else {}


class PaymentRecordManager:

    def __init__(
        self,
        payments: PaymentRepository,
        bookings: BookingRepository,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._payments = payments
        self._bookings = bookings
        self._clock = clock

    # ===== Queries =====

    def get(self, payment_id: UUID) -> Payment:
        return self._payments.get(payment_id)

    def find_by_txn_ref(self, txn_ref: str) -> Optional[Payment]:
        if not txn_ref:
            return None
        return self._payments.get_by_txn_ref(txn_ref)

    def list(self, query: PaymentQuery) -> List[Payment]:
        return self._payments.list(query)

    def get_stats(self, query: PaymentQuery) -> PaymentStats:
        return self._payments.stats(query)

    def deposit_for(self, booking_id: UUID) -> Optional[Payment]:
        """
        The record that represents the booking's deposit.

        Should more than one exist, the completed one wins, otherwise the
        oldest; the others are left untouched.
        """
        records = self._payments.find_for_booking(booking_id, PaymentType.DEPOSIT)
        if not records:
            return None
        if len(records) > 1:
            logger.warning(
                f"Booking {booking_id} has {len(records)} deposit payments, reusing one"
            )
        for record in records:
            if record.status == PaymentStatus.COMPLETED:
                return record
        return records[0]

    def _reusable_record(self, booking: Booking, payment_type: PaymentType) -> Optional[Payment]:
        if payment_type == PaymentType.DEPOSIT:
            return self.deposit_for(booking.id)
        pending = self._payments.find_for_booking(
            booking.id, payment_type, statuses=[PaymentStatus.PENDING]
        )
        return pending[0] if pending else None

    # ===== Creation =====

    def _new_payment(
        self,
        booking: Booking,
        payment_type: PaymentType,
        *,
        payer_id: Optional[UUID] = None,
        amount: Optional[Money] = None,
        **fields,
    ) -> Payment:
        now = self._clock()
        return Payment(
            booking_id=booking.id,
            payer_id=payer_id or booking.tenant_id,
            recipient_id=booking.landlord_id,
            type=payment_type,
            amount=amount or amount_for_type(booking, payment_type),
            transaction_id=generate_transaction_id(now),
            initiated_at=now,
            created_at=now,
            updated_at=now,
            **fields,
        )

    def create_placeholder(
        self,
        booking: Booking,
        payment_type: PaymentType = PaymentType.DEPOSIT,
    ) -> Payment:
        """Pending record with no method yet; reuses an existing one."""
        existing = self._reusable_record(booking, payment_type)
        if existing is not None:
            logger.info(
                f"Reusing {payment_type.value} payment {existing.transaction_id} for booking {booking.id}"
            )
            return existing

        payment = self._new_payment(
            booking,
            payment_type,
            description=f"Đặt cọc hợp đồng {booking.contract_number}"
            if payment_type == PaymentType.DEPOSIT else '',
        )
        self._payments.add(payment)
        logger.info(
            f"Created {payment_type.value} placeholder {payment.transaction_id} for booking {booking.id}"
        )
        return payment

    def _restart(self, booking: Booking, payment_type: PaymentType, payer_id: UUID, **fields) -> Payment:
        """Point the existing open record at a new channel, or create one."""
        existing = self._reusable_record(booking, payment_type)
        if existing is None:
            payment = self._new_payment(booking, payment_type, payer_id=payer_id, **fields)
            self._payments.add(payment)
            return payment

        if existing.status not in RESTARTABLE_STATUSES:
            raise StateConflictError(
                'Khoản thanh toán này đã được xử lý',
                payment_id=str(existing.id),
                status=existing.status.value,
            )
        now = self._clock()
        updated = replace(
            existing,
            status=PaymentStatus.PENDING,
            initiated_at=now,
            updated_at=now,
            failed_at=None,
            failure_reason='',
            **fields,
        )
        if not self._payments.save(updated, expected_statuses=[existing.status]):
            raise StateConflictError('Khoản thanh toán vừa được cập nhật, vui lòng thử lại')
        return updated

    def start_gateway_payment(
        self,
        booking: Booking,
        *,
        payer_id: UUID,
        gateway: GatewayDetails,
        payment_type: PaymentType = PaymentType.DEPOSIT,
        metadata: Optional[PaymentMetadata] = None,
        amount: Optional[Money] = None,
    ) -> Payment:
        if booking.status in (BookingStatus.CANCELLED, BookingStatus.EXPIRED, BookingStatus.COMPLETED):
            raise StateConflictError(f"Không thể thanh toán booking ở trạng thái {booking.status.value}")
        payment = self._restart(
            booking,
            payment_type,
            payer_id,
            method=PaymentMethod.VNPAY,
            gateway=gateway,
            description=gateway.order_info,
            metadata=metadata or PaymentMetadata(payment_source='vnpay'),
            **_amount_field(amount),
        )
        logger.info(f"Gateway payment {payment.transaction_id} started with txnRef {gateway.txn_ref}")
        return payment

    def start_bank_transfer(
        self,
        booking: Booking,
        *,
        payer_id: UUID,
        details: BankTransferDetails,
        payment_type: PaymentType = PaymentType.DEPOSIT,
        description: str = '',
        amount: Optional[Money] = None,
    ) -> Payment:
        if booking.status in (BookingStatus.CANCELLED, BookingStatus.EXPIRED, BookingStatus.COMPLETED):
            raise StateConflictError(f"Không thể thanh toán booking ở trạng thái {booking.status.value}")
        payment = self._restart(
            booking,
            payment_type,
            payer_id,
            method=PaymentMethod.BANK_TRANSFER,
            bank_transfer=details,
            description=description or details.transfer_note,
            **_amount_field(amount),
        )
        logger.info(f"Bank transfer {payment.transaction_id} recorded for booking {booking.id}")
        return payment

    def complete_deposit(
        self,
        booking: Booking,
        *,
        method: PaymentMethod = PaymentMethod.BANK_TRANSFER,
        external_ref: str = '',
        payment_source: str = '',
        description: str = '',
    ) -> Payment:
        """Find-or-create the deposit record and make sure it is completed."""
        existing = self.deposit_for(booking.id)
        gateway = None
        if external_ref:
            gateway = replace(existing.gateway) if existing and existing.gateway else GatewayDetails()
            gateway.txn_ref = external_ref
            gateway.order_info = gateway.order_info or description

        if existing is None:
            now = self._clock()
            payment = self._new_payment(
                booking,
                PaymentType.DEPOSIT,
                status=PaymentStatus.COMPLETED,
                method=method,
                description=description,
                gateway=gateway,
                processed_at=now,
                completed_at=now,
                metadata=PaymentMetadata(payment_source=payment_source),
            )
            self._payments.add(payment)
            logger.info(f"Created completed deposit {payment.transaction_id} for booking {booking.id}")
            return payment

        if existing.status == PaymentStatus.COMPLETED:
            return existing

        if payment_source:
            existing = replace(existing, metadata=replace(existing.metadata, payment_source=payment_source))
        if description and not existing.description:
            existing = replace(existing, description=description)
        completed = self.mark_completed(existing, method=method, gateway=gateway)
        if completed is None:
            # Someone else completed it in the meantime
            current = self._payments.get(existing.id)
            if current.status != PaymentStatus.COMPLETED:
                raise StateConflictError('Không thể xác nhận khoản đặt cọc', payment_id=str(existing.id))
            return current
        return completed

    # ===== Transitions =====

    def mark_completed(
        self,
        payment: Payment,
        *,
        external_ref: Optional[str] = None,
        method: Optional[PaymentMethod] = None,
        gateway: Optional[GatewayDetails] = None,
    ) -> Optional[Payment]:
        """
        Complete ``payment`` if it is still pending, processing or failed.

        Returns the updated record when this call performed the transition
        and None when the payment was already completed (or moved on).
        """
        if payment.status not in COMPLETABLE_STATUSES:
            return None
        now = self._clock()
        updated = replace(
            payment,
            status=PaymentStatus.COMPLETED,
            processed_at=now,
            completed_at=now,
            updated_at=now,
            external_transaction_id=external_ref or payment.external_transaction_id,
            method=method or payment.method,
            gateway=gateway or payment.gateway,
        )
        if self._payments.save(updated, expected_statuses=COMPLETABLE_STATUSES):
            logger.info(f"Payment {payment.transaction_id} completed ({updated.method.value})")
            return updated
        logger.warning(f"Payment {payment.transaction_id} was already finalized by another writer")
        return None

    def mark_failed(
        self,
        payment: Payment,
        reason: str,
        *,
        gateway: Optional[GatewayDetails] = None,
    ) -> Optional[Payment]:
        """Fail a pending or processing payment; completed payments are never failed."""
        if payment.status not in FAILABLE_STATUSES:
            return None
        now = self._clock()
        updated = replace(
            payment,
            status=PaymentStatus.FAILED,
            failed_at=now,
            updated_at=now,
            failure_reason=reason,
            gateway=gateway or payment.gateway,
        )
        if self._payments.save(updated, expected_statuses=FAILABLE_STATUSES):
            logger.info(f"Payment {payment.transaction_id} failed: {reason}")
            return updated
        logger.warning(f"Payment {payment.transaction_id} changed before it could be failed")
        return None

    def fail_pending_for_booking(self, booking_id: UUID, reason: str) -> List[Payment]:
        failed = []
        for payment in self._payments.find_for_booking(booking_id, statuses=[PaymentStatus.PENDING]):
            updated = self.mark_failed(payment, reason)
            if updated is not None:
                failed.append(updated)
        return failed

    def request_refund(
        self,
        payment_id: UUID,
        *,
        reason: str,
        amount: Optional[Decimal] = None,
    ) -> Payment:
        """Open a refund on a completed payment; the refund itself is processed offline."""
        payment = self._payments.get(payment_id)
        if not can_be_refunded(payment):
            raise InvalidStateError(
                'Khoản thanh toán không thể hoàn tiền',
                payment_id=str(payment.id),
                status=payment.status.value,
            )
        refund_amount = payment.amount if amount is None else Money(amount, payment.amount.currency)
        if refund_amount.amount > payment.amount.amount:
            raise ValidationError('Số tiền hoàn vượt quá số tiền đã thanh toán')

        now = self._clock()
        updated = replace(
            payment,
            refund=Refund(
                amount=refund_amount,
                reason=reason,
                status=RefundStatus.PROCESSING,
                processed_at=now,
            ),
            updated_at=now,
        )
        if not self._payments.save(updated, expected_statuses=[PaymentStatus.COMPLETED]):
            raise InvalidStateError('Khoản thanh toán vừa thay đổi trạng thái', payment_id=str(payment.id))
        logger.info(f"Refund of {refund_amount} requested for payment {payment.transaction_id}")
        return updated

    # ===== Repair =====

    def backfill_missing(self, party_id: Optional[UUID] = None) -> List[Payment]:
        """
        Create the completed deposit record for deposit_paid bookings that
        have none. Timestamps come from the booking's deposit record, then
        its last update, then now. Backfilled records are flagged.
        """
        created = []
        for booking in self._bookings.list(party_id=party_id, statuses=[BookingStatus.DEPOSIT_PAID]):
            if self._payments.find_for_booking(booking.id, PaymentType.DEPOSIT):
                continue
            paid_at = booking.deposit.paid_at or booking.updated_at or self._clock()
            payment = Payment(
                booking_id=booking.id,
                payer_id=booking.tenant_id,
                recipient_id=booking.landlord_id,
                type=PaymentType.DEPOSIT,
                amount=booking.deposit.amount or booking.pricing.deposit,
                transaction_id=generate_transaction_id(self._clock()),
                status=PaymentStatus.COMPLETED,
                method=_method_from(booking.deposit.method),
                external_transaction_id=booking.deposit.transaction_id,
                description=f"Đặt cọc hợp đồng {booking.contract_number} - Xác nhận bởi chủ trọ",
                initiated_at=booking.created_at,
                processed_at=paid_at,
                completed_at=paid_at,
                backfilled=True,
            )
            self._payments.add(payment)
            created.append(payment)
            logger.warning(
                f"Backfilled deposit payment {payment.transaction_id} for booking {booking.id}"
            )
        return created
