"""Celery tasks for notifications."""

from __future__ import annotations

import logging

from celery import shared_task  # type: ignore

from .emails import render_email
from .services import send_email_notification

logger = logging.getLogger(__name__)


@shared_task(name="notifications.send_templated_email")
def send_templated_email(address: str, template_name: str, template_data: dict) -> dict[str, bool]:
    """Render ``template_name`` with ``template_data`` and send it to ``address``."""
    try:
        subject, html_message = render_email(template_name, template_data)
    except KeyError as e:
        logger.error(f"Cannot render email {template_name}: {e}", exc_info=True)
        return {"sent": False}

    return {"sent": send_email_notification(address, subject, html_message)}
