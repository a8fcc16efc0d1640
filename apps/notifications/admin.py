"""Admin registrations for notifications."""

from __future__ import annotations

from django.contrib import admin

from .models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ("recipient", "template_key", "title", "is_read", "created_at")
    list_filter = ("template_key", "is_read")
    search_fields = ("recipient__email", "title")
    readonly_fields = ("created_at",)
