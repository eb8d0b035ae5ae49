from django.apps import AppConfig


class AnchorlinkConfig(AppConfig):
    """Configuration for the anchorlink Django app."""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'anchorlink'
    verbose_name = 'Anchor link suggestions'
