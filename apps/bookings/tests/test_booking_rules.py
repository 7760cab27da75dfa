"""Tests for booking pricing, scheduling and the transition table."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

import pytest

from shared.domain.value_objects import Address, DateRange, Money
from apps.bookings.domain import rules
from apps.bookings.domain.entities import BookingStatus
from shared.testing.fakes import make_room


def test_total_amount_example() -> None:
    total = rules.calculate_total_amount(
        monthly_rent=Money(Decimal("3000000")),
        utilities=Money(Decimal("200000")),
        deposit=Money(Decimal("3000000")),
        duration_months=3,
    )

    assert total == Money(Decimal("12600000"))


def test_build_pricing_prefers_agreed_prices_over_room_prices() -> None:
    room = make_room(landlord_id=None)

    default = rules.build_pricing(room, 2)
    agreed = rules.build_pricing(room, 2, monthly_rent=Money(Decimal("2500000")), utilities=Money(Decimal("0")))

    assert default.total_amount == Money(Decimal("9400000"))
    assert agreed.monthly_rent == Money(Decimal("2500000"))
    assert agreed.utilities == Money(Decimal("0"))
    assert agreed.total_amount == Money(Decimal("8000000"))


def test_monthly_schedule_has_one_entry_per_month() -> None:
    schedule = rules.generate_monthly_schedule(
        date(2025, 4, 1), 3, Money(Decimal("3000000")), Money(Decimal("200000"))
    )

    assert [item.month for item in schedule] == ["2025-04", "2025-05", "2025-06"]
    assert [item.due_date for item in schedule] == [date(2025, 4, 1), date(2025, 5, 1), date(2025, 6, 1)]
    assert all(item.amount == Money(Decimal("3200000")) for item in schedule)
    assert all(item.status.value == "pending" for item in schedule)


@pytest.mark.parametrize(
    "start, months, expected",
    [
        (date(2025, 1, 31), 1, date(2025, 2, 28)),
        (date(2024, 1, 31), 1, date(2024, 2, 29)),
        (date(2025, 11, 30), 3, date(2026, 2, 28)),
        (date(2025, 5, 15), 12, date(2026, 5, 15)),
    ],
)
def test_add_months_clamps_to_month_end(start, months, expected) -> None:
    assert rules.add_months(start, months) == expected


def test_duration_counts_started_thirty_day_blocks() -> None:
    assert rules.compute_duration_months(DateRange(date(2025, 4, 1), date(2025, 4, 10))) == 1
    assert rules.compute_duration_months(DateRange(date(2025, 4, 1), date(2025, 5, 1))) == 1
    assert rules.compute_duration_months(DateRange(date(2025, 4, 1), date(2025, 5, 2))) == 2


def test_overlap_is_inclusive_at_both_ends() -> None:
    stay = DateRange(date(2025, 4, 1), date(2025, 5, 1))

    assert stay.overlaps(DateRange(date(2025, 5, 1), date(2025, 6, 1)))
    assert stay.overlaps(DateRange(date(2025, 3, 1), date(2025, 4, 1)))
    assert not stay.overlaps(DateRange(date(2025, 5, 2), date(2025, 6, 1)))


def test_date_range_rejects_reversed_dates() -> None:
    with pytest.raises(ValueError):
        DateRange(date(2025, 4, 1), date(2025, 4, 1))


@pytest.mark.parametrize(
    "current, target, allowed",
    [
        (BookingStatus.PENDING, BookingStatus.CONFIRMED, True),
        (BookingStatus.PENDING, BookingStatus.DEPOSIT_PAID, True),
        (BookingStatus.CONFIRMED, BookingStatus.DEPOSIT_PAID, True),
        (BookingStatus.DEPOSIT_PAID, BookingStatus.ACTIVE, True),
        (BookingStatus.ACTIVE, BookingStatus.COMPLETED, True),
        (BookingStatus.DEPOSIT_PAID, BookingStatus.EXPIRED, False),
        (BookingStatus.ACTIVE, BookingStatus.CANCELLED, False),
        (BookingStatus.COMPLETED, BookingStatus.CANCELLED, False),
        (BookingStatus.CANCELLED, BookingStatus.PENDING, False),
        (BookingStatus.EXPIRED, BookingStatus.CONFIRMED, False),
    ],
)
def test_transition_table(current, target, allowed) -> None:
    assert rules.is_transition_allowed(current, target) is allowed


def test_terminal_statuses_have_no_exits() -> None:
    for status in (BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.EXPIRED):
        assert rules.ALLOWED_TRANSITIONS[status] == frozenset()


def test_contract_number_format() -> None:
    number = rules.generate_contract_number(datetime(2025, 3, 1, 10, 0))

    assert number.startswith("HD20250301-")
    assert len(number) == len("HD20250301-") + 6


def test_address_format_skips_empty_parts() -> None:
    assert Address(street="12 Lê Lợi", city="TP.HCM").format() == "12 Lê Lợi, TP.HCM"
    assert Address().format() == ""
