"""Notification services: templates, email and in-app delivery."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable

from django.conf import settings  # type: ignore
from django.contrib.auth import get_user_model  # type: ignore
from django.core.mail import EmailMultiAlternatives  # type: ignore
from django.utils.html import strip_tags  # type: ignore

logger = logging.getLogger(__name__)

EMAIL = "email"
IN_APP = "in_app"

Attachment = tuple[str, bytes, str]


class DeliveryError(Exception):
    """A channel could not deliver; raised only when the caller asks for it"""


# ============================================================================
# TEMPLATES
# ============================================================================

@dataclass(frozen=True)
class NotificationTemplate:
    key: str
    title: str
    body: str
    channels: tuple[str, ...] = (EMAIL, IN_APP)


class _Missing(dict):
    """format_map() helper: unknown placeholders are left as is"""

    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


TEMPLATES: dict[str, NotificationTemplate] = {
    template.key: template
    for template in (
        NotificationTemplate(
            "new-booking-client",
            "Reserva #{booking_ref} creada",
            "Su reserva de {service_name} para el {start_time} fue registrada y está pendiente de confirmación.",
        ),
        NotificationTemplate(
            "new-booking-sitter",
            "Nueva reserva #{booking_ref}",
            "Tiene una nueva solicitud de {service_name} para el {start_time}.",
        ),
        NotificationTemplate(
            "booking-status-confirmed",
            "Reserva #{booking_ref} confirmada",
            "El cuidador confirmó su reserva para el {start_time}.",
        ),
        NotificationTemplate(
            "booking-status-in-progress",
            "Reserva #{booking_ref} en curso",
            "El servicio de su reserva #{booking_ref} ha comenzado.",
        ),
        NotificationTemplate(
            "booking-status-completed",
            "Reserva #{booking_ref} completada",
            "El servicio de su reserva #{booking_ref} ha finalizado. Recibirá su factura en breve.",
        ),
        NotificationTemplate(
            "booking-status-cancelled",
            "Reserva #{booking_ref} cancelada",
            "La reserva #{booking_ref} fue cancelada. Motivo: {reason}",
        ),
        NotificationTemplate(
            "booking-updated",
            "Reserva #{booking_ref} modificada",
            "La reserva #{booking_ref} fue actualizada. Nuevo horario: {start_time} - {end_time}.",
        ),
        NotificationTemplate(
            "invoice-notification",
            "Factura {invoice_number}",
            "Adjuntamos la factura {invoice_number} por {total_amount}. Fecha de vencimiento: {due_date}.",
            channels=(EMAIL,),
        ),
        NotificationTemplate(
            "invoice-generated",
            "Nueva factura {invoice_number}",
            "Se generó la factura {invoice_number} por {total_amount}.",
            channels=(IN_APP,),
        ),
        NotificationTemplate(
            "invoice-sent",
            "Factura {invoice_number} enviada",
            "La factura {invoice_number} por {total_amount} fue enviada. Vence el {due_date}.",
            channels=(IN_APP,),
        ),
        NotificationTemplate(
            "invoice-updated",
            "Factura {invoice_number} actualizada",
            "La factura {invoice_number} fue actualizada. Total a pagar: {total_amount}.",
        ),
        NotificationTemplate(
            "invoice-cancelled",
            "Factura {invoice_number} cancelada",
            "La factura {invoice_number} fue cancelada. Motivo: {reason}",
        ),
    )
}


def get_template(template_key: str) -> NotificationTemplate:
    try:
        return TEMPLATES[template_key]
    except KeyError:
        raise ValueError(f"Unknown notification template: {template_key}") from None


def render_template(template_key: str, variables: dict[str, Any] | None = None) -> tuple[str, str]:
    """Returns (title, message) for the template filled with ``variables``"""
    template = get_template(template_key)
    values = _Missing({k: "" if v is None else v for k, v in (variables or {}).items()})
    return template.title.format_map(values), template.body.format_map(values)


# ============================================================================
# EMAIL NOTIFICATIONS
# ============================================================================

def send_email_notification(
    recipient_email: str,
    subject: str,
    message: str,
    *,
    html_message: str | None = None,
    attachments: Iterable[Attachment] = (),
) -> bool:
    """
    Send one email.

    Returns:
        bool: True if the message was handed to the email backend
    """
    try:
        text_message = strip_tags(html_message) if html_message else message

        email = EmailMultiAlternatives(
            subject=subject,
            body=text_message,
            from_email=settings.DEFAULT_FROM_EMAIL,
            to=[recipient_email],
        )
        if html_message:
            email.attach_alternative(html_message, "text/html")
        for filename, content, mimetype in attachments:
            email.attach(filename, content, mimetype)
        email.send(fail_silently=False)

        logger.info(f"Email sent successfully to {recipient_email}: {subject}")
        return True

    except Exception as e:
        logger.error(f"Failed to send email to {recipient_email}: {e}", exc_info=True)
        return False


# ============================================================================
# IN-APP NOTIFICATIONS
# ============================================================================

def create_in_app_notification(
    user,
    template_key: str,
    title: str,
    message: str,
    variables: dict[str, Any] | None = None,
    *,
    delivery_key: str = "",
):
    """
    Store the in-app copy. With a ``delivery_key`` the row is written once
    per key, so a retried delivery does not duplicate it.
    """
    from .models import Notification

    fields = {
        "template_key": template_key,
        "title": title,
        "message": message,
        "variables": variables or {},
    }
    if not delivery_key:
        notification = Notification.objects.create(recipient=user, **fields)
    else:
        notification, created = Notification.objects.get_or_create(
            recipient=user, delivery_key=delivery_key, defaults=fields
        )
        if not created:
            logger.debug(f"In-app notification {delivery_key} already stored for {user.email}")
            return notification
    logger.info(f"In-app notification created for {user.email}: {title}")
    return notification


# ============================================================================
# DELIVERY
# ============================================================================

def deliver(
    recipient_id: int,
    template_key: str,
    variables: dict[str, Any] | None = None,
    *,
    attachments: Iterable[Attachment] = (),
    delivery_key: str = "",
    raise_on_failure: bool = False,
) -> dict[str, bool]:
    """
    Render ``template_key`` and deliver it on the template's channels.

    Args:
        delivery_key: idempotency key for the in-app copy (the task id)
        raise_on_failure: raise DeliveryError when the email backend fails,
            so a Celery task can retry

    Returns:
        dict: delivery result per channel
    """
    template = get_template(template_key)
    user = get_user_model().objects.filter(pk=recipient_id).first()
    if user is None:
        logger.warning(f"Notification {template_key} dropped: recipient {recipient_id} no longer exists")
        return {}

    title, message = render_template(template_key, variables)
    results: dict[str, bool] = {}

    if IN_APP in template.channels:
        create_in_app_notification(user, template_key, title, message, variables, delivery_key=delivery_key)
        results[IN_APP] = True

    if EMAIL in template.channels:
        if user.email:
            results[EMAIL] = send_email_notification(
                recipient_email=user.email,
                subject=title,
                message=message,
                attachments=attachments,
            )
            if not results[EMAIL] and raise_on_failure:
                raise DeliveryError(f"Email {template_key} to user {recipient_id} failed")
        else:
            logger.warning(f"Email {template_key} skipped: user {recipient_id} has no address")
            results[EMAIL] = False

    return results


class NotificationDispatcher:
    """
    Fire-and-forget entry point used by the domain apps.

    ``send`` only enqueues the delivery task; rendering and delivery happen
    in the worker with their own retry policy. Errors never reach the caller.
    """

    def send(self, recipient_id: int | None, template_key: str, variables: dict[str, Any] | None = None) -> bool:
        if recipient_id is None:
            logger.warning(f"Notification {template_key} skipped: no recipient")
            return False

        get_template(template_key)

        from .tasks import deliver_notification

        try:
            deliver_notification.delay(recipient_id, template_key, variables or {})
        except Exception as e:
            logger.error(
                f"Could not enqueue notification {template_key} for user {recipient_id}: {e}",
                exc_info=True,
            )
            return False
        return True


notification_dispatcher = NotificationDispatcher()
