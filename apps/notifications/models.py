"""Notification model.

Every message delivered on the in-app channel leaves a record: the template
it was rendered from, the variables it was rendered with and the
rendered title and body. Recipients mark notifications as read.
"""

from __future__ import annotations

from django.conf import settings  # type: ignore
from django.db import models  # type: ignore


class Notification(models.Model):
    """A message sent to a user about some event."""

    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='notifications'
    )
    template_key = models.CharField(max_length=64)
    title = models.CharField(max_length=255)
    message = models.TextField()
    variables = models.JSONField(default=dict, blank=True)
    delivery_key = models.CharField(max_length=64, blank=True, default='')
    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['recipient', 'is_read']),
            models.Index(fields=['template_key']),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['recipient', 'delivery_key'],
                condition=~models.Q(delivery_key=''),
                name='unique_notification_delivery',
            ),
        ]

    def __str__(self) -> str:
        return f"Notification to {self.recipient_id}: {self.title}"
