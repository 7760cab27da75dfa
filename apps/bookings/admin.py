"""Admin registration for bookings."""

from __future__ import annotations

from django.contrib import admin

from .models import Booking


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = (
        "contract_number",
        "room",
        "tenant",
        "status",
        "deposit_status",
        "check_in",
        "check_out",
        "total_amount",
        "created_at",
    )
    list_filter = ("status", "deposit_status", "check_in")
    search_fields = ("contract_number", "room__title", "tenant__email", "landlord__email")
    # Status changes must go through the API so payments stay in step
    readonly_fields = (
        "contract_number",
        "status",
        "deposit_status",
        "deposit_paid_at",
        "payment_schedule",
        "total_amount",
        "created_at",
        "updated_at",
    )
