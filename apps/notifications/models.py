"""Notification model.

In-app notifications shown to tenants and landlords about their bookings
and payments. Created by the event handlers in
``apps.notifications.handlers`` after the booking or payment transaction
commits; recipients mark them as read.
"""

from __future__ import annotations

import uuid

from django.conf import settings  # type: ignore
from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


class Notification(models.Model):
    """A message sent to a user about some event."""

    class Type(models.TextChoices):
        BOOKING_REQUEST = 'booking_request', _('Yêu cầu đặt phòng')
        BOOKING_CONFIRMED = 'booking_confirmed', _('Đặt phòng được xác nhận')
        BOOKING_CANCELLED = 'booking_cancelled', _('Đặt phòng bị hủy')
        PAYMENT_RECEIVED = 'payment_received', _('Thanh toán')
        SYSTEM = 'system', _('Hệ thống')

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='notifications'
    )
    type = models.CharField(max_length=32, choices=Type.choices, default=Type.SYSTEM)
    title = models.CharField(max_length=255)
    message = models.TextField()
    data = models.JSONField(default=dict, blank=True)
    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['recipient', 'is_read'], name='notification_unread_idx'),
        ]

    def __str__(self) -> str:
        return f"Notification to {self.recipient_id}: {self.title}"
