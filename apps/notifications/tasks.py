"""Celery tasks for notification delivery."""

from __future__ import annotations

import logging
from typing import Any

from celery import shared_task  # type: ignore
from django.conf import settings  # type: ignore

from .services import deliver

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    name="notifications.deliver_notification",
    autoretry_for=(Exception,),
    retry_backoff=True,
    max_retries=settings.SIDE_EFFECT_MAX_RETRIES,
)
def deliver_notification(self, recipient_id: int, template_key: str, variables: dict[str, Any]) -> dict[str, bool]:
    """
    Render and deliver one notification.

    An email backend failure raises DeliveryError and the task is retried
    with backoff; the in-app copy is keyed by the task id so retries do not
    duplicate it. After the last attempt the failure is only logged by
    Celery. The operation that triggered it is never affected.
    """
    logger.info(
        f"Delivering {template_key} to user {recipient_id} "
        f"(attempt {self.request.retries + 1})"
    )
    return deliver(
        recipient_id,
        template_key,
        variables,
        delivery_key=self.request.id or "",
        raise_on_failure=True,
    )
