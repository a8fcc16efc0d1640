"""Finances app package.

Invoices for completed bookings, the platform fee ledger and invoice
documents. Invoices are generated automatically when a booking is
completed; side effects (fee entry, PDF, emails) run as Celery tasks.
"""
