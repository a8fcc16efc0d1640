"""Notifications app package.

Delivers templated notifications by email and as in-app records. Callers
go through ``NotificationDispatcher``, which hands delivery to a Celery
task so a failing channel never affects the caller.
"""
