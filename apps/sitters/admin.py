"""Admin registrations for service offerings."""

from __future__ import annotations

from django.contrib import admin

from .models import ServiceOffering


@admin.register(ServiceOffering)
class ServiceOfferingAdmin(admin.ModelAdmin):
    list_display = ("name", "sitter", "service_type", "price", "duration_minutes", "is_active")
    list_filter = ("service_type", "is_active")
    search_fields = ("name", "sitter__email")
