"""Notification services: in-app notifications and email delivery.

Both channels are side effects of bookings and payments that have already
committed, so every function here logs its failures and returns False
instead of raising.
"""

from __future__ import annotations

import logging
from typing import Any, Optional
from uuid import UUID

from django.conf import settings  # type: ignore
from django.core.mail import send_mail  # type: ignore
from django.utils.html import strip_tags  # type: ignore

logger = logging.getLogger(__name__)


# ============================================================================
# EMAIL NOTIFICATIONS
# ============================================================================

def send_email_notification(
    recipient_email: str,
    subject: str,
    html_message: str,
) -> bool:
    """
    Send one HTML email with its plain-text alternative.

    Returns:
        bool: True if the message was handed to the mail backend
    """
    try:
        send_mail(
            subject=subject,
            message=strip_tags(html_message),
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[recipient_email],
            html_message=html_message,
            fail_silently=False,
        )
        logger.info(f"Email sent successfully to {recipient_email}: {subject}")
        return True

    except Exception as e:
        logger.error(f"Failed to send email to {recipient_email}: {e}", exc_info=True)
        return False


def queue_templated_email(address: str, template_name: str, template_data: dict[str, Any]) -> bool:
    """Queue a templated email on Celery; enqueue failures are logged."""
    if not address:
        logger.warning(f"No email address for {template_name}, skipped")
        return False

    from .tasks import send_templated_email  # local import to avoid circular

    try:
        send_templated_email.delay(address, template_name, template_data)
        return True
    except Exception as e:
        logger.error(f"Failed to queue {template_name} email to {address}: {e}", exc_info=True)
        return False


# ============================================================================
# IN-APP NOTIFICATIONS
# ============================================================================

def create_in_app_notification(
    recipient_id: UUID,
    type: str,
    title: str,
    message: str,
    data: Optional[dict[str, Any]] = None,
) -> bool:
    """Store a notification for ``recipient_id``."""
    from .models import Notification

    try:
        Notification.objects.create(
            recipient_id=recipient_id,
            type=type,
            title=title,
            message=message,
            data=data or {},
        )
        logger.info(f"In-app notification created for {recipient_id}: {title}")
        return True

    except Exception as e:
        logger.error(f"Failed to create in-app notification for {recipient_id}: {e}", exc_info=True)
        return False
