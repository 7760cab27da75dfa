"""Payment persistence model.

Gateway and bank-transfer sub-records are flattened into prefixed columns;
the raw gateway response and request metadata are kept as JSON. The
gateway order reference (``gateway_txn_ref``) is how return and IPN calls
find their payment.
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from django.conf import settings  # type: ignore
from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


class Payment(models.Model):
    """Khoản thanh toán gắn với một booking."""

    class Type(models.TextChoices):
        DEPOSIT = "deposit", _("Đặt cọc")
        MONTHLY_RENT = "monthly_rent", _("Tiền thuê tháng")
        UTILITIES = "utilities", _("Điện nước")
        PENALTY = "penalty", _("Tiền phạt")
        REFUND = "refund", _("Hoàn tiền")

    class Status(models.TextChoices):
        PENDING = "pending", _("Chờ thanh toán")
        PROCESSING = "processing", _("Đang xử lý")
        COMPLETED = "completed", _("Thành công")
        FAILED = "failed", _("Thất bại")
        CANCELLED = "cancelled", _("Đã hủy")
        REFUNDED = "refunded", _("Đã hoàn tiền")

    class Method(models.TextChoices):
        VNPAY = "vnpay", _("VNPay")
        BANK_TRANSFER = "bank_transfer", _("Chuyển khoản")
        CASH = "cash", _("Tiền mặt")
        OTHER = "other", _("Khác")
        PENDING = "pending", _("Chưa chọn")

    class RefundStatus(models.TextChoices):
        PENDING = "pending", _("Chờ hoàn tiền")
        PROCESSING = "processing", _("Đang hoàn tiền")
        COMPLETED = "completed", _("Đã hoàn tiền")
        FAILED = "failed", _("Hoàn tiền thất bại")

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    booking = models.ForeignKey(
        "bookings.Booking",
        on_delete=models.PROTECT,
        related_name="payments",
    )
    payer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="payments_made",
    )
    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="payments_received",
    )
    type = models.CharField(max_length=20, choices=Type.choices)
    amount = models.DecimalField(max_digits=14, decimal_places=0)
    currency = models.CharField(max_length=3, default="VND")
    transaction_id = models.CharField(max_length=64, unique=True, editable=False)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    method = models.CharField(max_length=20, choices=Method.choices, default=Method.PENDING)
    external_transaction_id = models.CharField(max_length=100, blank=True)
    description = models.TextField(blank=True)
    notes = models.TextField(blank=True)

    # VNPay
    gateway_txn_ref = models.CharField(max_length=100, blank=True, db_index=True)
    gateway_order_info = models.CharField(max_length=255, blank=True)
    gateway_order_type = models.CharField(max_length=50, blank=True)
    gateway_amount = models.BigIntegerField(null=True, blank=True)
    gateway_locale = models.CharField(max_length=5, blank=True)
    gateway_curr_code = models.CharField(max_length=3, blank=True)
    gateway_return_url = models.CharField(max_length=500, blank=True)
    gateway_ip_addr = models.CharField(max_length=64, blank=True)
    gateway_create_date = models.CharField(max_length=14, blank=True)
    gateway_expire_date = models.CharField(max_length=14, blank=True)
    gateway_response_code = models.CharField(max_length=4, blank=True)
    gateway_transaction_no = models.CharField(max_length=100, blank=True)
    gateway_bank_code = models.CharField(max_length=32, blank=True)
    gateway_card_type = models.CharField(max_length=32, blank=True)
    gateway_pay_date = models.CharField(max_length=14, blank=True)
    gateway_raw_fields = models.JSONField(default=dict, blank=True)

    # Bank transfer
    bank_name = models.CharField(max_length=255, blank=True)
    bank_account_number = models.CharField(max_length=64, blank=True)
    bank_account_holder = models.CharField(max_length=255, blank=True)
    bank_transfer_note = models.CharField(max_length=255, blank=True)
    bank_transfer_date = models.DateTimeField(null=True, blank=True)
    bank_receipt_image = models.CharField(max_length=500, blank=True)

    initiated_at = models.DateTimeField(null=True, blank=True)
    processed_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    failed_at = models.DateTimeField(null=True, blank=True)
    failure_reason = models.TextField(blank=True)

    refund_amount = models.DecimalField(max_digits=14, decimal_places=0, null=True, blank=True)
    refund_reason = models.TextField(blank=True)
    refund_status = models.CharField(max_length=20, choices=RefundStatus.choices, blank=True)
    refund_processed_at = models.DateTimeField(null=True, blank=True)
    refund_transaction_id = models.CharField(max_length=100, blank=True)

    platform_fee = models.DecimalField(max_digits=14, decimal_places=0, default=Decimal("0"))
    processing_fee = models.DecimalField(max_digits=14, decimal_places=0, default=Decimal("0"))

    metadata = models.JSONField(default=dict, blank=True)
    backfilled = models.BooleanField(
        default=False,
        help_text=_("Tạo lại từ trạng thái booking, không được ghi nhận khi thanh toán."),
    )

    created_at = models.DateTimeField()
    updated_at = models.DateTimeField()

    class Meta:
        verbose_name = _("Thanh toán")
        verbose_name_plural = _("Thanh toán")
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["booking", "type"], name="payment_booking_type_idx"),
            models.Index(fields=["payer", "status"], name="payment_payer_status_idx"),
            models.Index(fields=["recipient", "status"], name="payment_recipient_status_idx"),
        ]

    def __str__(self) -> str:
        return f"Payment {self.transaction_id} ({self.type}, {self.status})"


class PaymentTxnRef(models.Model):
    """Every VNPay order reference issued for a payment, current or superseded."""

    txn_ref = models.CharField(max_length=100, primary_key=True)
    payment = models.ForeignKey(Payment, on_delete=models.CASCADE, related_name="txn_refs")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _("Mã giao dịch VNPay")
        verbose_name_plural = _("Mã giao dịch VNPay")

    def __str__(self) -> str:
        return self.txn_ref
