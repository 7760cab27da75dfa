"""Admin registrations for rooms."""

from __future__ import annotations

from django.contrib import admin

from .models import Room


@admin.register(Room)
class RoomAdmin(admin.ModelAdmin):
    list_display = ("title", "landlord", "status", "is_available", "monthly_price", "deposit", "city")
    list_filter = ("status", "is_available", "city")
    search_fields = ("title", "landlord__email", "street", "district")
    readonly_fields = ("created_at", "updated_at")
