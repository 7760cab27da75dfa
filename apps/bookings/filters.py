"""FilterSet definitions for booking listings."""

from __future__ import annotations

import django_filters  # type: ignore

from .models import Booking


class BookingFilterSet(django_filters.FilterSet):
    status = django_filters.MultipleChoiceFilter(choices=Booking.Status.choices)
    room = django_filters.UUIDFilter(field_name="room_id")
    check_in_from = django_filters.DateFilter(field_name="check_in", lookup_expr="gte")
    check_in_to = django_filters.DateFilter(field_name="check_in", lookup_expr="lte")
    contract_number = django_filters.CharFilter(field_name="contract_number", lookup_expr="icontains")

    class Meta:
        model = Booking
        fields = ["status", "room", "check_in_from", "check_in_to", "contract_number"]
