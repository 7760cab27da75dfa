"""Bookings app package.

Rental requests for a room: the booking state machine, its pricing and
payment schedule, date-overlap checks and the hourly expiry job.
"""
