"""FilterSet definitions for payment listings."""

from __future__ import annotations

import django_filters  # type: ignore

from .models import Payment


class PaymentFilterSet(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(choices=Payment.Status.choices)
    type = django_filters.ChoiceFilter(choices=Payment.Type.choices)
    method = django_filters.ChoiceFilter(choices=Payment.Method.choices)
    booking = django_filters.UUIDFilter(field_name="booking_id")
    created_from = django_filters.DateFilter(field_name="created_at", lookup_expr="date__gte")
    created_to = django_filters.DateFilter(field_name="created_at", lookup_expr="date__lte")

    class Meta:
        model = Payment
        fields = ["status", "type", "method", "booking", "created_from", "created_to"]
