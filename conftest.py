"""Project-wide pytest fixtures."""

from __future__ import annotations

from datetime import date

import pytest

from shared.application.bootstrap import build_services
from shared.testing.fakes import ServiceHarness
from apps.bookings.application.state_machine import CreateBookingCommand


@pytest.fixture(autouse=True)
def fresh_services():
    """Rebuild the cached service graph so settings overrides take effect."""
    build_services.cache_clear()
    yield
    build_services.cache_clear()


@pytest.fixture
def harness() -> ServiceHarness:
    return ServiceHarness()


@pytest.fixture
def make_booking(harness):
    """Create a booking on the harness room; notifications from creation are cleared."""

    def _make(check_in=date(2025, 4, 1), check_out=date(2025, 7, 1), room=None, **kwargs):
        command = CreateBookingCommand(
            room_id=(room or harness.room).id,
            actor=kwargs.pop("actor", harness.tenant_actor),
            check_in=check_in,
            check_out=check_out,
            occupants=kwargs.pop("occupants", 2),
            duration_months=kwargs.pop("duration_months", 3),
            **kwargs,
        )
        booking = harness.state_machine.create(command)
        harness.sinks.clear()
        return booking

    return _make
