import logging

from django.apps import AppConfig
from django.conf import settings

logger = logging.getLogger(__name__)


class JobsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "jobs"

    def ready(self):
        from .features import load_features

        self.features = load_features(getattr(settings, "FIELDOPS_FEATURES", None))
        logger.debug("Job features resolved: %s", self.features)
