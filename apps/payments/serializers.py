"""Serializers for the payment domain."""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

from apps.users.serializers import UserShortSerializer
from .models import Payment


class PaymentSerializer(serializers.ModelSerializer):
    """Payment as returned by the API."""

    booking_id = serializers.ReadOnlyField(source="booking.id")
    contract_number = serializers.ReadOnlyField(source="booking.contract_number")
    payer = UserShortSerializer(read_only=True)
    recipient = UserShortSerializer(read_only=True)
    vnpay = serializers.SerializerMethodField()
    bank_transfer = serializers.SerializerMethodField()
    refund = serializers.SerializerMethodField()

    class Meta:
        model = Payment
        fields = [
            "id",
            "transaction_id",
            "booking_id",
            "contract_number",
            "payer",
            "recipient",
            "type",
            "amount",
            "currency",
            "status",
            "method",
            "external_transaction_id",
            "description",
            "vnpay",
            "bank_transfer",
            "refund",
            "initiated_at",
            "processed_at",
            "completed_at",
            "failed_at",
            "failure_reason",
            "backfilled",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_vnpay(self, obj: Payment) -> dict | None:
        if not obj.gateway_txn_ref:
            return None
        return {
            "txnRef": obj.gateway_txn_ref,
            "orderInfo": obj.gateway_order_info,
            "responseCode": obj.gateway_response_code,
            "transactionNo": obj.gateway_transaction_no,
            "bankCode": obj.gateway_bank_code,
            "cardType": obj.gateway_card_type,
            "payDate": obj.gateway_pay_date,
        }

    def get_bank_transfer(self, obj: Payment) -> dict | None:
        if not obj.bank_name and not obj.bank_transfer_note:
            return None
        return {
            "bankName": obj.bank_name,
            "accountNumber": obj.bank_account_number,
            "accountHolder": obj.bank_account_holder,
            "transferNote": obj.bank_transfer_note,
            "transferDate": obj.bank_transfer_date,
            "receiptImage": obj.bank_receipt_image,
        }

    def get_refund(self, obj: Payment) -> dict | None:
        if not obj.refund_status:
            return None
        return {
            "amount": obj.refund_amount,
            "reason": obj.refund_reason,
            "status": obj.refund_status,
            "processedAt": obj.refund_processed_at,
        }


class VNPayCreateSerializer(serializers.Serializer):
    booking_id = serializers.UUIDField()
    type = serializers.ChoiceField(choices=Payment.Type.choices, default=Payment.Type.DEPOSIT)
    amount = serializers.DecimalField(max_digits=14, decimal_places=0, min_value=1, required=False)
    order_info = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    bank_code = serializers.CharField(max_length=32, required=False, allow_blank=True, default="")
    locale = serializers.ChoiceField(choices=["vn", "en"], default="vn")


class BankTransferSerializer(serializers.Serializer):
    booking_id = serializers.UUIDField()
    type = serializers.ChoiceField(choices=Payment.Type.choices, default=Payment.Type.DEPOSIT)
    amount = serializers.DecimalField(max_digits=14, decimal_places=0, min_value=1, required=False)
    bank_name = serializers.CharField(max_length=255)
    account_number = serializers.CharField(max_length=64)
    account_holder = serializers.CharField(max_length=255)
    transfer_note = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    receipt_image = serializers.CharField(max_length=500, required=False, allow_blank=True, default="")


class RefundRequestSerializer(serializers.Serializer):
    reason = serializers.CharField()
    amount = serializers.DecimalField(max_digits=14, decimal_places=0, min_value=1, required=False)
