"""Admin registrations for invoices and the platform fee ledger."""

from __future__ import annotations

from django.contrib import admin

from .models import Invoice, InvoiceItem, InvoiceNumberSequence, Payment, PlatformFee


class InvoiceItemInline(admin.TabularInline):
    model = InvoiceItem
    extra = 0
    readonly_fields = ("description", "quantity", "unit_price", "line_total", "position")
    can_delete = False


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ("invoice_number", "account", "status", "total_amount", "issue_date", "due_date")
    list_filter = ("status",)
    search_fields = ("invoice_number", "account__account_number", "account__account_name")
    readonly_fields = ("invoice_number", "booking", "version", "created_at", "updated_at")
    inlines = [InvoiceItemInline]
    date_hierarchy = "issue_date"


@admin.register(PlatformFee)
class PlatformFeeAdmin(admin.ModelAdmin):
    list_display = ("booking", "base_amount", "fee_percentage", "fee_amount", "net_amount", "created_at")
    readonly_fields = ("booking", "base_amount", "fee_percentage", "fee_amount", "net_amount", "created_at")


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("invoice", "amount", "status", "transaction_id", "processed_at")
    list_filter = ("status",)


admin.site.register(InvoiceNumberSequence)
