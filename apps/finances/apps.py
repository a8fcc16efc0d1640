from django.apps import AppConfig  # type: ignore


class FinancesConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.finances"
    verbose_name = "Facturación"

    def ready(self) -> None:
        from shared.application.message_bus import message_bus

        from .application.orchestrator import register_handlers

        register_handlers(message_bus)
