"""Core app configuration."""

from django.apps import AppConfig


class CoreConfig(AppConfig):
    """Configuration for the core application."""

    name = "apotekpos.core"
    verbose_name = "Apotek POS Core"
    default_auto_field = "django.db.models.BigAutoField"
