"""Signal handlers for library app."""

import logging

from django.core.files.storage import default_storage
from django.db.models.signals import post_delete
from django.dispatch import receiver

from server.apps.library.models import File

logger = logging.getLogger(__name__)


@receiver(post_delete, sender=File)
def delete_blob_from_storage(
    sender: type[File],
    instance: File,
    **kwargs: object,
) -> None:
    """Delete the blob from storage when a File record is deleted.

    Covers user deletes, directory deletes, the pending upload sweep and
    admin deletes alike. The database is the source of truth: failures
    are logged and the orphaned blob is left to ``reconcile_storage``.

    Args:
        sender: The File model class.
        instance: The File instance being deleted.
        **kwargs: Additional signal arguments.
    """
    if not instance.storage_key:
        return

    logger.info(
        'Deleting blob from storage after DB delete: %s',
        instance.storage_key,
    )
    default_storage.discard(instance.storage_key)  # type: ignore[attr-defined]
