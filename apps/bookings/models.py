"""Booking persistence model.

The domain record in ``apps.bookings.domain.entities`` is the source of
truth for behaviour; this model flattens its nested parts (pricing,
deposit, cancellation, notes) into columns and keeps the monthly schedule
as JSON. Status changes go through the repository's conditional update,
never through ``save()`` on a stale instance.
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from django.conf import settings  # type: ignore
from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


class Booking(models.Model):
    """Đặt phòng của người thuê."""

    class Status(models.TextChoices):
        PENDING = "pending", _("Chờ xác nhận")
        CONFIRMED = "confirmed", _("Đã xác nhận")
        DEPOSIT_PAID = "deposit_paid", _("Đã đặt cọc")
        ACTIVE = "active", _("Đang thuê")
        COMPLETED = "completed", _("Hoàn thành")
        CANCELLED = "cancelled", _("Đã hủy")
        EXPIRED = "expired", _("Hết hạn")

    class DepositStatus(models.TextChoices):
        PENDING = "pending", _("Chưa thanh toán")
        PAID = "paid", _("Đã thanh toán")
        REFUNDED = "refunded", _("Đã hoàn tiền")

    class CancelledBy(models.TextChoices):
        TENANT = "tenant", _("Người thuê")
        LANDLORD = "landlord", _("Chủ trọ")
        ADMIN = "admin", _("Quản trị viên")
        SYSTEM = "system", _("Hệ thống")

    class RefundStatus(models.TextChoices):
        PENDING = "pending", _("Chờ hoàn tiền")
        PROCESSED = "processed", _("Đang xử lý")
        COMPLETED = "completed", _("Đã hoàn tiền")

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    room = models.ForeignKey(
        "rooms.Room",
        on_delete=models.PROTECT,
        related_name="bookings",
    )
    tenant = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="tenant_bookings",
    )
    landlord = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="landlord_bookings",
    )
    contract_number = models.CharField(max_length=32, unique=True, editable=False)
    check_in = models.DateField()
    check_out = models.DateField()
    duration_months = models.PositiveSmallIntegerField(default=1)
    occupants = models.PositiveSmallIntegerField(default=1)
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
    )
    currency = models.CharField(max_length=3, default="VND")

    # Pricing fixed at booking time
    monthly_rent = models.DecimalField(max_digits=14, decimal_places=0)
    deposit = models.DecimalField(max_digits=14, decimal_places=0)
    utilities = models.DecimalField(max_digits=14, decimal_places=0, default=Decimal("0"))
    total_amount = models.DecimalField(max_digits=16, decimal_places=0)

    # Deposit payment status
    deposit_status = models.CharField(
        max_length=20,
        choices=DepositStatus.choices,
        default=DepositStatus.PENDING,
    )
    deposit_amount = models.DecimalField(max_digits=14, decimal_places=0, default=Decimal("0"))
    deposit_paid_at = models.DateTimeField(null=True, blank=True)
    deposit_method = models.CharField(max_length=20, blank=True)
    deposit_transaction_id = models.CharField(max_length=100, blank=True)

    payment_schedule = models.JSONField(
        default=list,
        blank=True,
        help_text=_("Lịch thanh toán tiền thuê hàng tháng."),
    )

    cancelled_by = models.CharField(max_length=20, choices=CancelledBy.choices, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancellation_reason = models.TextField(blank=True)
    refund_amount = models.DecimalField(max_digits=14, decimal_places=0, null=True, blank=True)
    refund_status = models.CharField(max_length=20, choices=RefundStatus.choices, blank=True)

    tenant_notes = models.TextField(blank=True)
    landlord_notes = models.TextField(blank=True)
    admin_notes = models.TextField(blank=True)

    created_at = models.DateTimeField()
    updated_at = models.DateTimeField()

    class Meta:
        verbose_name = _("Đặt phòng")
        verbose_name_plural = _("Đặt phòng")
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(check_out__gt=models.F("check_in")),
                name="booking_valid_dates",
            ),
        ]
        indexes = [
            models.Index(fields=["room", "status", "check_in", "check_out"], name="booking_room_window_idx"),
            models.Index(fields=["tenant", "status"], name="booking_tenant_status_idx"),
            models.Index(fields=["landlord", "status"], name="booking_landlord_status_idx"),
        ]

    def __str__(self) -> str:
        return f"Booking {self.contract_number} ({self.status})"
