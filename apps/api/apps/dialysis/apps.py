from django.apps import AppConfig


class DialysisConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.dialysis'
    verbose_name = 'Dialysis Sessions'
