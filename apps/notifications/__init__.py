"""Notifications app package.

In-app notifications and templated emails sent after bookings and
payments commit. Email delivery runs on Celery.
"""
