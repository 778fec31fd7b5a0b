"""Tests for stale upload purging and blob reconciliation."""

import datetime as dt

import pytest
from django.utils import timezone

from server.apps.library.logic import cleanup_operations
from server.apps.library.logic.cleanup_operations import (
    find_stale_uploads,
    get_pending_upload_timeout,
    purge_stale_uploads,
    reconcile_orphaned_blobs,
)
from server.apps.library.models import File, FileStatus


def _age(file_record: File, hours: int) -> None:
    File.objects.filter(pk=file_record.pk).update(
        uploaded_at=timezone.now() - dt.timedelta(hours=hours),
    )


def _bucket_keys(mock_s3) -> set[str]:
    return {blob.key for blob in mock_s3.Bucket('project-files').objects.all()}


@pytest.fixture
def stale_upload(make_file, put_blob):
    """Create a pending upload older than the timeout with its blob.

    Returns:
        File instance.
    """
    file_record = make_file('stale.png', status=FileStatus.PENDING)
    put_blob(file_record.storage_key)
    _age(file_record, 25)
    return file_record


@pytest.mark.django_db
def test_default_timeout():
    """Test default abandonment age."""
    assert get_pending_upload_timeout() == dt.timedelta(hours=24)


@pytest.mark.django_db
def test_purge_removes_stale_record_and_blob(stale_upload, mock_s3):
    """Test stale pending records and blobs are deleted."""
    result = purge_stale_uploads()

    assert result.purged == 1
    assert result.failed == 0
    assert not File.objects.filter(pk=stale_upload.pk).exists()
    assert stale_upload.storage_key not in _bucket_keys(mock_s3)


@pytest.mark.django_db
def test_purge_keeps_recent_and_confirmed(make_file, mock_s3):
    """Test only old pending records are touched."""
    recent = make_file('recent.png', status=FileStatus.PENDING)
    _age(recent, 23)
    confirmed = make_file('confirmed.png')
    _age(confirmed, 100)

    result = purge_stale_uploads()

    assert result.purged == 0
    assert File.objects.filter(pk__in=[recent.pk, confirmed.pk]).count() == 2


@pytest.mark.django_db
def test_purge_does_not_touch_quota(stale_upload, quota, mock_s3):
    """Test pending uploads never counted, so purging releases nothing."""
    quota.used_bytes = 500
    quota.save()

    purge_stale_uploads()

    quota.refresh_from_db()
    assert quota.used_bytes == 500


@pytest.mark.django_db
def test_dry_run_deletes_nothing(stale_upload, mock_s3):
    """Test dry run only counts."""
    result = purge_stale_uploads(dry_run=True)

    assert result.purged == 1
    assert File.objects.filter(pk=stale_upload.pk).exists()
    assert stale_upload.storage_key in _bucket_keys(mock_s3)


@pytest.mark.django_db
def test_batch_size_takes_oldest_first(make_file, mock_s3):
    """Test the sweep is bounded and starts with the oldest."""
    older = make_file('older.png', status=FileStatus.PENDING)
    _age(older, 48)
    newer = make_file('newer.png', status=FileStatus.PENDING)
    _age(newer, 30)

    assert find_stale_uploads(get_pending_upload_timeout(), 10) == [
        older,
        newer,
    ]

    result = purge_stale_uploads(batch_size=1)

    assert result.purged == 1
    assert not File.objects.filter(pk=older.pk).exists()
    assert File.objects.filter(pk=newer.pk).exists()


@pytest.mark.django_db
def test_blob_failure_still_purges_record(stale_upload, mock_s3, monkeypatch):
    """Test storage errors don't keep the record around."""
    from django.core.files.storage import default_storage

    def _fail(**kwargs):
        raise RuntimeError('storage down')

    monkeypatch.setattr(
        default_storage.connection.meta.client,
        'delete_object',
        _fail,
    )

    result = purge_stale_uploads()

    assert result.purged == 1
    assert not File.objects.filter(pk=stale_upload.pk).exists()


@pytest.mark.django_db
def test_confirmed_since_selection_is_skipped(
    stale_upload,
    mock_s3,
    monkeypatch,
):
    """Test a record confirmed after selection survives the sweep."""
    selected = find_stale_uploads(get_pending_upload_timeout(), 10)
    monkeypatch.setattr(
        cleanup_operations,
        'find_stale_uploads',
        lambda timeout, batch_size: selected,
    )
    File.objects.filter(pk=stale_upload.pk).update(
        status=FileStatus.CONFIRMED,
    )

    result = purge_stale_uploads()

    assert result.failed == 0
    assert File.objects.filter(pk=stale_upload.pk).exists()


@pytest.mark.django_db
def test_reconcile_deletes_unreferenced(make_file, put_blob, mock_s3):
    """Test only blobs without a record are deleted."""
    kept = make_file('kept.png')
    put_blob(kept.storage_key)
    put_blob('projects/1/files/gone/orphan.png')
    put_blob('elsewhere/untouched.png')

    orphaned = reconcile_orphaned_blobs(min_age=dt.timedelta(0))

    assert orphaned == 1
    assert _bucket_keys(mock_s3) == {
        kept.storage_key,
        'elsewhere/untouched.png',
    }


@pytest.mark.django_db
def test_reconcile_skips_young_blobs(put_blob, mock_s3):
    """Test blobs newer than the minimum age are left alone."""
    put_blob('projects/1/files/new/upload.png')

    assert reconcile_orphaned_blobs() == 0
    assert _bucket_keys(mock_s3) == {'projects/1/files/new/upload.png'}


@pytest.mark.django_db
def test_reconcile_dry_run(put_blob, mock_s3):
    """Test dry run only counts orphaned blobs."""
    put_blob('projects/1/files/gone/orphan.png')

    assert reconcile_orphaned_blobs(min_age=dt.timedelta(0), dry_run=True) == 1
    assert _bucket_keys(mock_s3) == {'projects/1/files/gone/orphan.png'}
