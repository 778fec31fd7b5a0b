"""Background cleanup: stale pending uploads and orphaned blobs."""

import datetime as dt
import itertools
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

from django.conf import settings
from django.core.files.storage import default_storage
from django.db import transaction
from django.utils import timezone

from server.apps.library.infrastructure.naming import STORAGE_KEY_PREFIX
from server.apps.library.models import File, FileStatus

if TYPE_CHECKING:
    from server.apps.library.infrastructure.storage import FileStorage

_DEFAULT_TIMEOUT_HOURS: Final = 24
_DEFAULT_BATCH_SIZE: Final = 1000
_RECONCILE_CHUNK_SIZE: Final = 500

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SweepResult:
    """Outcome of one pending upload sweep."""

    purged: int
    failed: int


def _get_storage() -> 'FileStorage':
    """Get the configured default storage backend.

    Returns:
        FileStorage instance with proper S3 configuration.
    """
    return default_storage  # type: ignore[return-value]


def get_pending_upload_timeout() -> dt.timedelta:
    """Age after which a pending upload is considered abandoned."""
    hours = getattr(
        settings,
        'LIBRARY_PENDING_UPLOAD_TIMEOUT_HOURS',
        _DEFAULT_TIMEOUT_HOURS,
    )
    return dt.timedelta(hours=hours)


def find_stale_uploads(
    timeout: dt.timedelta,
    batch_size: int,
) -> list[File]:
    """Find pending uploads older than the timeout, oldest first.

    Args:
        timeout: Minimum age of a pending record.
        batch_size: Max records to return.

    Returns:
        Stale pending File records.
    """
    cutoff = timezone.now() - timeout
    return list(
        File.objects.filter(
            status=FileStatus.PENDING,
            uploaded_at__lt=cutoff,
        ).order_by('uploaded_at')[:batch_size],
    )


def purge_stale_uploads(
    timeout: dt.timedelta | None = None,
    batch_size: int | None = None,
    dry_run: bool = False,
) -> SweepResult:
    """Delete pending uploads that were never confirmed.

    The sweep commits once. Each record is deleted in its own savepoint,
    so one failure never aborts the rest. Records deleted or confirmed
    since they were selected are skipped and count as purged, which
    makes re-running a partial sweep safe. Blobs are deleted best-effort
    by the ``post_delete`` signal.

    Args:
        timeout: Minimum age, defaults to the configured timeout.
        batch_size: Max records per sweep, defaults to the setting.
        dry_run: Only count what would be purged.

    Returns:
        SweepResult with purged and failed counts.
    """
    if timeout is None:
        timeout = get_pending_upload_timeout()
    if batch_size is None:
        batch_size = getattr(
            settings,
            'LIBRARY_REAPER_BATCH_SIZE',
            _DEFAULT_BATCH_SIZE,
        )

    stale_uploads = find_stale_uploads(timeout, batch_size)

    if dry_run:
        for file_record in stale_uploads:
            logger.info(
                'Would purge pending upload: %s (%s, uploaded %s)',
                file_record.pk,
                file_record.path,
                file_record.uploaded_at,
            )
        return SweepResult(purged=len(stale_uploads), failed=0)

    purged = 0
    failed = 0

    with transaction.atomic():
        for file_record in stale_uploads:
            try:
                with transaction.atomic():
                    File.objects.filter(
                        pk=file_record.pk,
                        status=FileStatus.PENDING,
                    ).delete()
            except Exception:
                logger.exception(
                    'Failed to purge pending upload: %s',
                    file_record.pk,
                )
                failed += 1
            else:
                purged += 1

    if purged or failed:
        logger.info(
            'Pending upload sweep finished: %d purged, %d failed',
            purged,
            failed,
        )
    return SweepResult(purged=purged, failed=failed)


def reconcile_orphaned_blobs(
    min_age: dt.timedelta | None = None,
    dry_run: bool = False,
) -> int:
    """Delete blobs that no file record references.

    Blobs younger than ``min_age`` are skipped so uploads and renames in
    flight are never touched.

    Args:
        min_age: Minimum blob age, defaults to the pending upload timeout.
        dry_run: Only count orphaned blobs.

    Returns:
        Number of orphaned blobs found (and deleted unless dry run).
    """
    if min_age is None:
        min_age = get_pending_upload_timeout()
    cutoff = timezone.now() - min_age

    storage = _get_storage()
    old_keys = (
        key
        for key, last_modified in storage.list_blobs(STORAGE_KEY_PREFIX)
        if last_modified <= cutoff
    )

    orphaned = 0
    for chunk in itertools.batched(old_keys, _RECONCILE_CHUNK_SIZE):
        referenced = set(
            File.objects.filter(
                storage_key__in=chunk,
            ).values_list('storage_key', flat=True),
        )
        for key in chunk:
            if key in referenced:
                continue
            orphaned += 1
            if dry_run:
                logger.info('Would delete orphaned blob: %s', key)
            else:
                storage.discard(key)

    logger.info(
        'Storage reconciliation finished: %d orphaned blobs%s',
        orphaned,
        ' (dry run)' if dry_run else '',
    )
    return orphaned
