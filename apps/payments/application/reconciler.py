"""
Callback Reconciler

Applies VNPay results to the Payment and its Booking. The same result can
arrive twice (browser return and server IPN) and the IPN is retried by the
gateway, so ``apply_success`` is the single idempotent step both share.
"""

import logging
from dataclasses import replace
from typing import Callable, Dict, Mapping, Optional, Tuple
from urllib.parse import urlencode

from shared.application.uow import AbstractUnitOfWork
from shared.domain.errors import AuthorizationError, NotFoundError
from shared.domain.value_objects import Actor
from apps.bookings.application.state_machine import BookingStateMachine, payment_completed_event
from apps.bookings.domain.repositories import BookingRepository, RoomRepository, UserDirectory
from apps.payments.application.payment_manager import PaymentRecordManager
from apps.payments.domain.entities import GatewayDetails, Payment, PaymentMethod, PaymentStatus, PaymentType
from apps.payments.gateway import GatewayResult, VNPayGateway

logger = logging.getLogger(__name__)

IPN_SUCCESS = {'RspCode': '00', 'Message': 'Success'}
IPN_PAYMENT_NOT_FOUND = {'RspCode': '01', 'Message': 'Payment not found'}
IPN_INVALID_AMOUNT = {'RspCode': '04', 'Message': 'Invalid amount'}
IPN_INVALID_SIGNATURE = {'RspCode': '97', 'Message': 'Invalid signature'}
IPN_INTERNAL_ERROR = {'RspCode': '99', 'Message': 'Internal error'}

INVALID_AMOUNT_REASON = 'Số tiền thanh toán không khớp'


class CallbackReconciler:

    def __init__(
        self,
        gateway: VNPayGateway,
        payments: PaymentRecordManager,
        state_machine: BookingStateMachine,
        bookings: BookingRepository,
        rooms: RoomRepository,
        users: UserDirectory,
        uow_factory: Callable[[], AbstractUnitOfWork],
        client_url: str,
    ):
        self._gateway = gateway
        self._payments = payments
        self._state_machine = state_machine
        self._bookings = bookings
        self._rooms = rooms
        self._users = users
        self._uow_factory = uow_factory
        self._client_url = client_url.rstrip('/')

    # ===== Entry points =====

    def handle_return(self, params: Mapping[str, str]) -> str:
        """Browser redirect back from VNPay; always answers with a client URL."""
        try:
            result = self._gateway.parse_result(params)
        except Exception as e:
            logger.error(f"Unreadable VNPay return: {e}", exc_info=True)
            return self._failure_url('Invalid signature')
        if not result.is_valid:
            logger.warning(f"VNPay return with invalid signature for txnRef {result.txn_ref}")
            return self._failure_url('Invalid signature')

        try:
            payment = self._payments.find_by_txn_ref(result.txn_ref)
            if payment is None:
                logger.warning(f"VNPay return for unknown txnRef {result.txn_ref}")
                return self._failure_url('Payment not found')

            if not self._amount_matches(payment, result):
                self.apply_failure(payment, result, reason=INVALID_AMOUNT_REASON)
                return self._failure_url(INVALID_AMOUNT_REASON)

            if result.is_success:
                self.apply_success(payment, result)
                return self._success_url(payment, result.txn_ref)

            self.apply_failure(payment, result)
            return self._failure_url(result.message)
        except Exception as e:
            logger.error(f"Error processing VNPay return for {result.txn_ref}: {e}", exc_info=True)
            return self._failure_url('Payment processing error')

    def handle_ipn(self, params: Mapping[str, str]) -> Tuple[Dict[str, str], int]:
        """Server-to-server notification; returns the acknowledgement and HTTP status."""
        try:
            result = self._gateway.parse_result(params)
        except Exception as e:
            logger.error(f"Unreadable VNPay IPN: {e}", exc_info=True)
            return IPN_INTERNAL_ERROR, 500
        if not result.is_valid:
            logger.warning(f"VNPay IPN with invalid signature for txnRef {result.txn_ref}")
            return IPN_INVALID_SIGNATURE, 400

        try:
            payment = self._payments.find_by_txn_ref(result.txn_ref)
            if payment is None:
                logger.warning(f"VNPay IPN for unknown txnRef {result.txn_ref}")
                return IPN_PAYMENT_NOT_FOUND, 400

            if not self._amount_matches(payment, result):
                logger.warning(
                    f"VNPay IPN amount {result.amount} does not match payment "
                    f"{payment.transaction_id} ({payment.amount.amount})"
                )
                return IPN_INVALID_AMOUNT, 400

            if result.is_success:
                self.apply_success(payment, result)
            else:
                self.apply_failure(payment, result)
            return IPN_SUCCESS, 200
        except Exception as e:
            logger.error(f"Error processing VNPay IPN for {result.txn_ref}: {e}", exc_info=True)
            return IPN_INTERNAL_ERROR, 500

    # ===== Shared steps =====

    def apply_success(self, payment: Payment, result: GatewayResult) -> bool:
        """
        Complete ``payment`` from a successful gateway result.

        Returns False when the payment had already been completed, in which
        case nothing is written and no event fires.
        """
        if payment.status == PaymentStatus.COMPLETED:
            logger.info(f"Payment {payment.transaction_id} already completed, ignoring repeat result")
            return False

        with self._uow_factory() as uow:
            completed = self._payments.mark_completed(
                payment,
                external_ref=result.transaction_no,
                method=PaymentMethod.VNPAY,
                gateway=_merge_result(payment, result),
            )
            if completed is None:
                return False
            if completed.type == PaymentType.DEPOSIT:
                self._state_machine.record_deposit_paid(completed)
            uow.add_event(payment_completed_event(completed, source='gateway'))

        logger.info(
            f"VNPay payment {payment.transaction_id} completed, transactionNo {result.transaction_no}"
        )
        return True

    def apply_failure(
        self,
        payment: Payment,
        result: GatewayResult,
        reason: Optional[str] = None,
    ) -> Optional[Payment]:
        """Fail a pending/processing payment; anything else is left alone."""
        if payment.gateway and result.txn_ref and result.txn_ref != payment.gateway.txn_ref:
            # A newer checkout for this payment may still be paid
            logger.info(
                f"Ignoring failure code {result.response_code} for superseded txnRef "
                f"{result.txn_ref} of payment {payment.transaction_id}"
            )
            return None
        if payment.status not in (PaymentStatus.PENDING, PaymentStatus.PROCESSING):
            logger.info(
                f"Ignoring failure code {result.response_code} for payment "
                f"{payment.transaction_id} in status {payment.status.value}"
            )
            return None
        return self._payments.mark_failed(
            payment,
            reason or result.message,
            gateway=_merge_result(payment, result),
        )

    # ===== Landlord contact =====

    def landlord_contact(self, txn_ref: str, actor: Optional[Actor] = None) -> Dict[str, str]:
        """Phone and address the tenant is shown after paying."""
        payment = self._payments.find_by_txn_ref(txn_ref)
        if payment is None:
            raise NotFoundError('Không tìm thấy thanh toán', txn_ref=txn_ref)
        if actor is not None and not actor.is_admin and actor.id not in (payment.payer_id, payment.recipient_id):
            raise AuthorizationError('Không có quyền xem thông tin thanh toán này')
        return self._contact_for(payment)

    def _contact_for(self, payment: Payment) -> Dict[str, str]:
        landlord = self._users.get(payment.recipient_id)
        address = landlord.address.format()
        if not address:
            booking = self._bookings.get(payment.booking_id)
            address = self._rooms.get(booking.room_id).address.format()
        return {'phone': landlord.phone, 'address': address}

    # ===== Helpers =====

    def _amount_matches(self, payment: Payment, result: GatewayResult) -> bool:
        if result.amount is None:
            return False
        return result.amount == payment.amount.amount

    def _success_url(self, payment: Payment, txn_ref: str) -> str:
        try:
            contact = self._contact_for(payment)
        except NotFoundError:
            logger.warning(f"No landlord contact for payment {payment.transaction_id}")
            contact = {'phone': '', 'address': ''}
        query = urlencode({
            'txnRef': txn_ref,
            'landlordPhone': contact['phone'],
            'landlordAddress': contact['address'],
            'paymentId': str(payment.id),
        })
        return f"{self._client_url}/payment/success?{query}"

    def _failure_url(self, message: str) -> str:
        return f"{self._client_url}/payment/failed?{urlencode({'message': message})}"


def _merge_result(payment: Payment, result: GatewayResult) -> GatewayDetails:
    details = replace(payment.gateway) if payment.gateway else GatewayDetails(txn_ref=result.txn_ref)
    details.txn_ref = result.txn_ref or details.txn_ref
    details.response_code = result.response_code
    details.transaction_no = result.transaction_no
    details.bank_code = result.bank_code
    details.card_type = result.card_type
    details.pay_date = result.pay_date
    details.raw_fields = dict(result.raw_fields)
    return details
