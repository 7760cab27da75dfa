"""Rooms app package: the rentable rooms landlords publish."""
