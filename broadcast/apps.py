from django.apps import AppConfig


class BroadcastConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'broadcast'
    verbose_name = 'Emergency broadcast & displays'

    def ready(self):
        # One registry per process; views and consumers reach it via get_registry().
        from broadcast.services.alerts import build_registry

        self.registry = build_registry()
