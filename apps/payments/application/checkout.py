"""
Payment checkout

Starts payments on behalf of the tenant (VNPay redirect or a declared bank
transfer) and opens refunds. Completion is handled elsewhere: by the
callback reconciler for VNPay and by the landlord's manual confirmation
for transfers.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Callable, List, Optional, Tuple
from uuid import UUID

from shared.domain.base import utcnow
from shared.domain.errors import AuthorizationError, GatewayConfigurationError, ValidationError
from shared.domain.value_objects import Actor, Money, Role
from apps.bookings.domain.entities import Booking
from apps.bookings.domain.repositories import BookingRepository, RoomRepository
from apps.payments.application.payment_manager import PaymentRecordManager
from apps.payments.domain.entities import (
    BankTransferDetails,
    GatewayDetails,
    Payment,
    PaymentMetadata,
    PaymentMethod,
    PaymentType,
)
from apps.payments.domain.rules import amount_for_type
from apps.payments.gateway import (
    DATE_FORMAT,
    PAYMENT_TTL,
    SUPPORTED_BANKS,
    VNPayGateway,
    generate_txn_ref,
    to_minor_units,
)

logger = logging.getLogger(__name__)

PAYMENT_TYPE_LABELS = {
    PaymentType.DEPOSIT: 'đặt cọc',
    PaymentType.MONTHLY_RENT: 'tiền thuê tháng',
    PaymentType.UTILITIES: 'tiền điện nước',
    PaymentType.PENALTY: 'tiền phạt',
    PaymentType.REFUND: 'hoàn tiền',
}


class PaymentCheckout:

    def __init__(
        self,
        gateway: VNPayGateway,
        payments: PaymentRecordManager,
        bookings: BookingRepository,
        rooms: RoomRepository,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._gateway = gateway
        self._payments = payments
        self._bookings = bookings
        self._rooms = rooms
        self._clock = clock

    def _booking_for_payer(self, booking_id: UUID, actor: Actor) -> Booking:
        booking = self._bookings.get(booking_id)
        if actor.is_admin:
            return booking
        if actor.role == Role.TENANT and actor.id == booking.tenant_id:
            return booking
        raise AuthorizationError('Chỉ người thuê của booking mới có thể thanh toán')

    def _amount(self, booking: Booking, payment_type: PaymentType, requested: Optional[Decimal]) -> Money:
        """
        Deposit amounts come from the booking; other types take the
        requested amount, falling back to the booking's pricing.
        """
        expected = amount_for_type(booking, payment_type)
        if payment_type == PaymentType.DEPOSIT:
            if requested is not None and Decimal(requested) != expected.amount:
                raise ValidationError(
                    f"Số tiền đặt cọc phải là {expected.format_vi()}",
                    expected=str(expected.amount),
                )
            return expected
        amount = Money(requested, expected.currency) if requested is not None else expected
        if amount.amount <= 0:
            raise ValidationError('Số tiền thanh toán phải lớn hơn 0')
        return amount

    def start_vnpay(
        self,
        booking_id: UUID,
        actor: Actor,
        *,
        payment_type: PaymentType = PaymentType.DEPOSIT,
        amount: Optional[Decimal] = None,
        order_info: str = '',
        ip_addr: str = '127.0.0.1',
        bank_code: str = '',
        locale: str = 'vn',
        user_agent: str = '',
    ) -> Tuple[Payment, str]:
        """Create or reuse the Payment and return it with the signed VNPay URL."""
        if not self._gateway.is_configured:
            raise GatewayConfigurationError()

        booking = self._booking_for_payer(booking_id, actor)
        money = self._amount(booking, payment_type, amount)
        if not order_info:
            room = self._rooms.get(booking.room_id)
            order_info = f"Thanh toan dat coc phong {room.title}"

        created = self._gateway.local_now()
        txn_ref = generate_txn_ref('BOOK', self._clock())
        details = GatewayDetails(
            txn_ref=txn_ref,
            order_info=order_info,
            amount=to_minor_units(money.amount),
            locale=locale or 'vn',
            return_url=self._gateway.return_url,
            ip_addr=ip_addr,
            create_date=created.strftime(DATE_FORMAT),
            expire_date=(created + PAYMENT_TTL).strftime(DATE_FORMAT),
            bank_code=bank_code,
        )
        payment = self._payments.start_gateway_payment(
            booking,
            payer_id=actor.id,
            gateway=details,
            payment_type=payment_type,
            amount=money,
            metadata=PaymentMetadata(
                user_agent=user_agent,
                ip_address=ip_addr,
                payment_source='vnpay',
            ),
        )
        url = self._gateway.build_payment_url(
            amount=money.amount,
            order_info=order_info,
            txn_ref=txn_ref,
            ip_addr=ip_addr,
            bank_code=bank_code,
            locale=locale,
            created=created,
        )
        logger.info(
            f"VNPay checkout {txn_ref} for booking {booking.contract_number}, "
            f"{PAYMENT_TYPE_LABELS[payment_type]} {money}"
        )
        return payment, url

    def start_bank_transfer(
        self,
        booking_id: UUID,
        actor: Actor,
        *,
        payment_type: PaymentType = PaymentType.DEPOSIT,
        amount: Optional[Decimal] = None,
        bank_name: str = '',
        account_number: str = '',
        account_holder: str = '',
        transfer_note: str = '',
        receipt_image: str = '',
    ) -> Payment:
        """Record a transfer the tenant says they made; it waits for the landlord."""
        booking = self._booking_for_payer(booking_id, actor)
        money = self._amount(booking, payment_type, amount)
        details = BankTransferDetails(
            bank_name=bank_name,
            account_number=account_number,
            account_holder=account_holder,
            transfer_note=transfer_note,
            transfer_date=self._clock(),
            receipt_image=receipt_image,
        )
        return self._payments.start_bank_transfer(
            booking,
            payer_id=actor.id,
            details=details,
            payment_type=payment_type,
            amount=money,
            description=f"Chuyển khoản {PAYMENT_TYPE_LABELS[payment_type]} cho booking {booking.contract_number}",
        )

    def request_refund(
        self,
        payment_id: UUID,
        actor: Actor,
        *,
        reason: str,
        amount: Optional[Decimal] = None,
        ip_addr: str = '127.0.0.1',
    ) -> Tuple[Payment, Optional[str]]:
        """
        Open a refund. For VNPay payments the signed refund request URL is
        returned as well; other methods are refunded by hand.
        """
        if not actor.is_admin:
            raise AuthorizationError('Chỉ quản trị viên mới có thể hoàn tiền')
        payment = self._payments.request_refund(payment_id, reason=reason, amount=amount)

        refund_url = None
        gateway = payment.gateway
        if payment.method == PaymentMethod.VNPAY and gateway and gateway.transaction_no:
            if self._gateway.is_configured:
                refund_url = self._gateway.build_refund_url(
                    txn_ref=gateway.txn_ref,
                    amount=payment.refund.amount.amount,
                    transaction_no=gateway.transaction_no,
                    transaction_date=gateway.pay_date or gateway.create_date,
                    created_by=str(actor.id),
                    ip_addr=ip_addr,
                )
            else:
                logger.error(f"Refund for {payment.transaction_id} opened but VNPay is not configured")
        return payment, refund_url

    def supported_banks(self) -> List[dict]:
        return list(SUPPORTED_BANKS)
