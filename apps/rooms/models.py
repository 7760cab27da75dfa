"""Room model.

Only the parts bookings depend on live here: ownership, publication
status, availability and the prices a new booking is priced from.
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from django.conf import settings  # type: ignore
from django.core.validators import MinValueValidator  # type: ignore
from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


class Room(models.Model):
    """Phòng trọ cho thuê."""

    class Status(models.TextChoices):
        ACTIVE = "active", _("Đang hoạt động")
        INACTIVE = "inactive", _("Ngừng hoạt động")
        PENDING = "pending", _("Chờ duyệt")

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    landlord = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="rooms",
    )
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
    )
    is_available = models.BooleanField(default=True)
    monthly_price = models.DecimalField(
        max_digits=14,
        decimal_places=0,
        validators=[MinValueValidator(Decimal("0"))],
    )
    deposit = models.DecimalField(
        max_digits=14,
        decimal_places=0,
        default=Decimal("0"),
        validators=[MinValueValidator(Decimal("0"))],
    )
    utilities = models.DecimalField(
        max_digits=14,
        decimal_places=0,
        default=Decimal("0"),
        validators=[MinValueValidator(Decimal("0"))],
        help_text=_("Chi phí điện nước dự kiến mỗi tháng."),
    )
    street = models.CharField(max_length=255, blank=True)
    ward = models.CharField(max_length=100, blank=True)
    district = models.CharField(max_length=100, blank=True)
    city = models.CharField(max_length=100, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Phòng")
        verbose_name_plural = _("Phòng")
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["landlord", "status"], name="room_landlord_status_idx"),
            models.Index(fields=["status", "is_available"], name="room_status_available_idx"),
        ]

    def __str__(self) -> str:
        return self.title
