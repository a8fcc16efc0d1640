"""Admin registrations for pets."""

from __future__ import annotations

from django.contrib import admin

from .models import Pet


@admin.register(Pet)
class PetAdmin(admin.ModelAdmin):
    list_display = ("name", "species", "account", "is_active", "created_at")
    list_filter = ("species", "is_active")
    search_fields = ("name", "account__account_name", "account__account_number")
