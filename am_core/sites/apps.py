# am_core/sites/apps.py
from django.apps import AppConfig


class SitesConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "am_core.sites"
    label = "am_sites"
