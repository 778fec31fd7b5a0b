"""Django app configuration for library app."""

from typing import override

from django.apps import AppConfig


class LibraryConfig(AppConfig):
    """Configuration for library app."""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'server.apps.library'
    verbose_name = 'File Library'

    @override
    def ready(self) -> None:
        """Import signal handlers when app is ready."""
        from server.apps.library import signals  # noqa: F401
