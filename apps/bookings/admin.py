"""Admin registrations for bookings."""

from __future__ import annotations

from django.contrib import admin

from .models import Booking


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = ("id", "pet", "sitter", "service_offering", "start_time", "status", "total_price")
    list_filter = ("status",)
    search_fields = ("id", "pet__name", "sitter__email", "booked_by__email")
    readonly_fields = ("version", "created_at", "updated_at", "actual_start_time", "actual_end_time")
    date_hierarchy = "start_time"
