"""Django app configuration for payment plans."""

from django.apps import AppConfig


class PlansConfig(AppConfig):
    """Configuration for the plans app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "plans"
    verbose_name = "Payment Plans"
