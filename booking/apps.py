from django.apps import AppConfig


class BookingConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "booking"
    verbose_name = "Ski rental booking"

    def ready(self):
        from .services.notifications import Notifier

        self.notifier = Notifier.from_settings()
