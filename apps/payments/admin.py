"""Admin registration for payments."""

from __future__ import annotations

from django.contrib import admin

from .models import Payment


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = (
        "transaction_id",
        "booking",
        "payer",
        "type",
        "amount",
        "status",
        "method",
        "backfilled",
        "created_at",
    )
    list_filter = ("status", "type", "method", "backfilled")
    search_fields = ("transaction_id", "gateway_txn_ref", "external_transaction_id", "payer__email")
    readonly_fields = (
        "transaction_id",
        "status",
        "gateway_txn_ref",
        "gateway_transaction_no",
        "gateway_response_code",
        "gateway_raw_fields",
        "completed_at",
        "failed_at",
        "created_at",
        "updated_at",
    )
