import os

from celery import Celery
from celery.schedules import crontab  # type: ignore

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings.dev")

app = Celery("phongtro")

app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()


# ============================================================================
# CELERY BEAT SCHEDULE (Periodic Tasks)
# ============================================================================

app.conf.beat_schedule = {
    # Bookings whose check-in date passed while still pending/confirmed
    "expire-stale-bookings": {
        "task": "bookings.expire_stale_bookings",
        "schedule": crontab(minute=5),
    },
    # Repair deposit_paid bookings that have no deposit payment row
    "backfill-deposit-payments": {
        "task": "payments.backfill_deposit_payments",
        "schedule": crontab(minute=30, hour=2),
    },
}

app.conf.timezone = "Asia/Ho_Chi_Minh"
