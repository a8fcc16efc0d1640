import os

from celery import Celery
from celery.schedules import crontab  # type: ignore

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings.dev")

app = Celery("petcare")

app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()


# ============================================================================
# CELERY BEAT SCHEDULE (Periodic Tasks)
# ============================================================================

app.conf.beat_schedule = {
    # Facturas vencidas - cada hora
    "mark-overdue-invoices": {
        "task": "finances.mark_overdue_invoices",
        "schedule": crontab(minute=5),
    },
    # Reservas completadas sin factura - cada 15 minutos
    "invoice-completed-bookings": {
        "task": "finances.invoice_completed_bookings",
        "schedule": 15 * 60.0,
        "options": {"expires": 14 * 60},
    },
}

app.conf.timezone = "UTC"
