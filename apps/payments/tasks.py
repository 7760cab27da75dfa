"""Celery tasks for payments."""

from __future__ import annotations

import logging

from celery import shared_task  # type: ignore

from shared.application.bootstrap import build_services

logger = logging.getLogger(__name__)


@shared_task(name="payments.backfill_deposit_payments")
def backfill_deposit_payments() -> dict[str, int]:
    """
    Create the missing deposit payment for every deposit_paid booking that
    has none. Runs nightly; the payment list also repairs on read.

    Returns:
        dict: {"backfilled": number of payments created}
    """
    created = build_services().payments.backfill_missing()
    if created:
        logger.info(f"Backfilled {len(created)} deposit payments")
    return {"backfilled": len(created)}
