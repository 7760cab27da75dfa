"""Django ORM implementation of the payment repository."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Iterable, List, Optional
from uuid import UUID

from django.db.models import Count, Q, Sum  # type: ignore

from shared.domain.errors import NotFoundError
from shared.domain.value_objects import Money
from apps.payments.domain.entities import (
    BankTransferDetails,
    Fees,
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
from apps.payments.models import Payment as PaymentModel
from apps.payments.models import PaymentTxnRef

logger = logging.getLogger(__name__)


def _gateway_to_entity(row: PaymentModel) -> Optional[GatewayDetails]:
    if not row.gateway_txn_ref:
        return None
    return GatewayDetails(
        txn_ref=row.gateway_txn_ref,
        order_info=row.gateway_order_info,
        order_type=row.gateway_order_type,
        amount=row.gateway_amount,
        locale=row.gateway_locale,
        curr_code=row.gateway_curr_code,
        return_url=row.gateway_return_url,
        ip_addr=row.gateway_ip_addr,
        create_date=row.gateway_create_date,
        expire_date=row.gateway_expire_date,
        response_code=row.gateway_response_code,
        transaction_no=row.gateway_transaction_no,
        bank_code=row.gateway_bank_code,
        card_type=row.gateway_card_type,
        pay_date=row.gateway_pay_date,
        raw_fields=dict(row.gateway_raw_fields or {}),
    )


def _bank_transfer_to_entity(row: PaymentModel) -> Optional[BankTransferDetails]:
    if not (row.bank_name or row.bank_account_number or row.bank_transfer_note):
        return None
    return BankTransferDetails(
        bank_name=row.bank_name,
        account_number=row.bank_account_number,
        account_holder=row.bank_account_holder,
        transfer_note=row.bank_transfer_note,
        transfer_date=row.bank_transfer_date,
        receipt_image=row.bank_receipt_image,
    )


def payment_to_entity(row: PaymentModel) -> Payment:
    currency = row.currency
    refund = None
    if row.refund_status:
        refund = Refund(
            amount=Money(row.refund_amount or Decimal('0'), currency),
            reason=row.refund_reason,
            status=RefundStatus(row.refund_status),
            processed_at=row.refund_processed_at,
            refund_transaction_id=row.refund_transaction_id,
        )
    metadata = row.metadata or {}
    return Payment(
        id=row.id,
        booking_id=row.booking_id,
        payer_id=row.payer_id,
        recipient_id=row.recipient_id,
        type=PaymentType(row.type),
        amount=Money(row.amount, currency),
        transaction_id=row.transaction_id,
        status=PaymentStatus(row.status),
        method=PaymentMethod(row.method),
        gateway=_gateway_to_entity(row),
        bank_transfer=_bank_transfer_to_entity(row),
        external_transaction_id=row.external_transaction_id,
        description=row.description,
        notes=row.notes,
        initiated_at=row.initiated_at,
        processed_at=row.processed_at,
        completed_at=row.completed_at,
        failed_at=row.failed_at,
        failure_reason=row.failure_reason,
        refund=refund,
        fees=Fees(platform_fee=row.platform_fee, processing_fee=row.processing_fee),
        metadata=PaymentMetadata(
            user_agent=metadata.get('userAgent', ''),
            ip_address=metadata.get('ipAddress', ''),
            device_info=metadata.get('deviceInfo', ''),
            payment_source=metadata.get('paymentSource', ''),
        ),
        backfilled=row.backfilled,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def payment_fields(payment: Payment) -> dict[str, Any]:
    """Column values for ``payment``, without the primary key."""
    gateway = payment.gateway or GatewayDetails()
    transfer = payment.bank_transfer or BankTransferDetails()
    refund = payment.refund
    return {
        'booking_id': payment.booking_id,
        'payer_id': payment.payer_id,
        'recipient_id': payment.recipient_id,
        'type': payment.type.value,
        'amount': payment.amount.amount,
        'currency': payment.amount.currency,
        'transaction_id': payment.transaction_id,
        'status': payment.status.value,
        'method': payment.method.value,
        'external_transaction_id': payment.external_transaction_id,
        'description': payment.description,
        'notes': payment.notes,
        'gateway_txn_ref': gateway.txn_ref,
        'gateway_order_info': gateway.order_info,
        'gateway_order_type': gateway.order_type if payment.gateway else '',
        'gateway_amount': gateway.amount,
        'gateway_locale': gateway.locale if payment.gateway else '',
        'gateway_curr_code': gateway.curr_code if payment.gateway else '',
        'gateway_return_url': gateway.return_url,
        'gateway_ip_addr': gateway.ip_addr,
        'gateway_create_date': gateway.create_date,
        'gateway_expire_date': gateway.expire_date,
        'gateway_response_code': gateway.response_code,
        'gateway_transaction_no': gateway.transaction_no,
        'gateway_bank_code': gateway.bank_code,
        'gateway_card_type': gateway.card_type,
        'gateway_pay_date': gateway.pay_date,
        'gateway_raw_fields': dict(gateway.raw_fields),
        'bank_name': transfer.bank_name,
        'bank_account_number': transfer.account_number,
        'bank_account_holder': transfer.account_holder,
        'bank_transfer_note': transfer.transfer_note,
        'bank_transfer_date': transfer.transfer_date,
        'bank_receipt_image': transfer.receipt_image,
        'initiated_at': payment.initiated_at,
        'processed_at': payment.processed_at,
        'completed_at': payment.completed_at,
        'failed_at': payment.failed_at,
        'failure_reason': payment.failure_reason,
        'refund_amount': refund.amount.amount if refund else None,
        'refund_reason': refund.reason if refund else '',
        'refund_status': refund.status.value if refund else '',
        'refund_processed_at': refund.processed_at if refund else None,
        'refund_transaction_id': refund.refund_transaction_id if refund else '',
        'platform_fee': payment.fees.platform_fee,
        'processing_fee': payment.fees.processing_fee,
        'metadata': {
            'userAgent': payment.metadata.user_agent,
            'ipAddress': payment.metadata.ip_address,
            'deviceInfo': payment.metadata.device_info,
            'paymentSource': payment.metadata.payment_source,
        },
        'backfilled': payment.backfilled,
        'created_at': payment.created_at,
        'updated_at': payment.updated_at,
    }


def filter_queryset(queryset, query: PaymentQuery):
    if query.party_id is not None:
        queryset = queryset.filter(Q(payer_id=query.party_id) | Q(recipient_id=query.party_id))
    if query.booking_id is not None:
        queryset = queryset.filter(booking_id=query.booking_id)
    if query.status is not None:
        queryset = queryset.filter(status=query.status.value)
    if query.type is not None:
        queryset = queryset.filter(type=query.type.value)
    return queryset


def _remember_txn_ref(payment: Payment) -> None:
    if payment.gateway and payment.gateway.txn_ref:
        PaymentTxnRef.objects.get_or_create(txn_ref=payment.gateway.txn_ref, defaults={'payment_id': payment.id})


class DjangoPaymentRepository(PaymentRepository):

    def get(self, payment_id: UUID) -> Payment:
        try:
            return payment_to_entity(PaymentModel.objects.get(pk=payment_id))
        except PaymentModel.DoesNotExist:
            raise NotFoundError('Không tìm thấy thanh toán', payment_id=str(payment_id))

    def get_by_txn_ref(self, txn_ref: str) -> Optional[Payment]:
        row = PaymentModel.objects.filter(gateway_txn_ref=txn_ref).order_by('-created_at').first()
        if row is None:
            issued = PaymentTxnRef.objects.select_related('payment').filter(txn_ref=txn_ref).first()
            row = issued.payment if issued else None
        return payment_to_entity(row) if row else None

    def find_for_booking(
        self,
        booking_id: UUID,
        payment_type: Optional[PaymentType] = None,
        statuses: Optional[Iterable[PaymentStatus]] = None,
    ) -> List[Payment]:
        queryset = PaymentModel.objects.filter(booking_id=booking_id)
        if payment_type is not None:
            queryset = queryset.filter(type=payment_type.value)
        if statuses is not None:
            queryset = queryset.filter(status__in=[status.value for status in statuses])
        return [payment_to_entity(row) for row in queryset.order_by('created_at')]

    def add(self, payment: Payment) -> None:
        PaymentModel.objects.create(id=payment.id, **payment_fields(payment))
        _remember_txn_ref(payment)

    def save(self, payment: Payment, expected_statuses: Iterable[PaymentStatus]) -> bool:
        expected = [status.value for status in expected_statuses]
        updated = PaymentModel.objects.filter(
            pk=payment.id,
            status__in=expected,
        ).update(**payment_fields(payment))
        if not updated:
            logger.warning(
                f"Conditional update of payment {payment.transaction_id} lost: expected one of {expected}"
            )
        else:
            _remember_txn_ref(payment)
        return updated == 1

    def list(self, query: PaymentQuery) -> List[Payment]:
        queryset = filter_queryset(PaymentModel.objects.all(), query)
        return [payment_to_entity(row) for row in queryset.order_by('-created_at')]

    def stats(self, query: PaymentQuery) -> PaymentStats:
        queryset = filter_queryset(PaymentModel.objects.all(), query)
        totals = queryset.aggregate(
            total_amount=Sum('amount'),
            total_count=Count('id'),
            successful_amount=Sum('amount', filter=Q(status=PaymentStatus.COMPLETED.value)),
            successful_count=Count('id', filter=Q(status=PaymentStatus.COMPLETED.value)),
            pending_amount=Sum('amount', filter=Q(status=PaymentStatus.PENDING.value)),
            pending_count=Count('id', filter=Q(status=PaymentStatus.PENDING.value)),
        )
        return PaymentStats(
            total_amount=totals['total_amount'] or Decimal('0'),
            total_count=totals['total_count'],
            successful_amount=totals['successful_amount'] or Decimal('0'),
            successful_count=totals['successful_count'],
            pending_amount=totals['pending_amount'] or Decimal('0'),
            pending_count=totals['pending_count'],
        )
