from django.apps import AppConfig


class RegistrationsConfig(AppConfig):
    """Admission control and waitlists for events and sessions."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "registrations"
