from django.apps import AppConfig


class AirswitchConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "airswitch"

    def ready(self):
        from airswitch import signals  # noqa: F401
