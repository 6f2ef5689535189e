import logging

from django.apps import AppConfig


class SplitsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "splits"
    verbose_name = "Receipt splits"

    def ready(self):
        """Called when Django is ready - log startup information"""
        from django.conf import settings
        logger = logging.getLogger('splits')
        logger.info(
            f"Settlement service started - DEBUG={settings.DEBUG}, "
            f"share code attempts={settings.SPLITS_SHARE_CODE_MAX_ATTEMPTS}"
        )
