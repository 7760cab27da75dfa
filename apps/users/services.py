"""Bridges between the authenticated Django user and the domain."""

from __future__ import annotations

from shared.domain.value_objects import Actor, Address, Role
from apps.bookings.domain.entities import UserContact


def actor_for(user) -> Actor:
    """Actor for the request user; staff and superusers act as admins."""
    if user.is_superuser or user.is_staff:
        return Actor(id=user.id, role=Role.ADMIN)
    return Actor(id=user.id, role=Role(user.role))


def contact_for(user) -> UserContact:
    return UserContact(
        id=user.id,
        role=Role(user.role),
        full_name=user.full_name or user.email,
        email=user.email,
        phone=user.phone,
        address=Address(
            street=user.street,
            ward=user.ward,
            district=user.district,
            city=user.city,
        ),
    )
