"""
Shared kernel

Records, value objects, the message bus and the unit of work used by the
bookings, payments and notifications contexts.
"""
