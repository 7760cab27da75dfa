"""Celery tasks for the booking domain."""

from __future__ import annotations

import logging

from celery import shared_task  # type: ignore
from django.utils import timezone  # type: ignore

from shared.application.bootstrap import build_services

logger = logging.getLogger(__name__)


# ============================================================================
# PERIODIC TASKS (Celery Beat)
# ============================================================================

@shared_task(name="bookings.expire_stale_bookings")
def expire_stale_bookings() -> dict[str, int]:
    """
    Expire pending and confirmed bookings whose check-in date has passed.

    Their pending payments are failed and tenants are notified. Runs hourly.

    Returns:
        dict: {"expired": number of bookings expired}
    """
    today = timezone.localdate()
    expired = build_services().state_machine.expire_stale(today)
    if expired:
        logger.info(f"Expired {len(expired)} bookings with check-in before {today}")
    return {"expired": len(expired)}
