"""Reports app configuration."""
from django.apps import AppConfig


class ReportsConfig(AppConfig):
    """Reconciliation and revenue reports (no models)."""
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.reports'
    verbose_name = 'Reports'
