"""Business logic for the two-phase upload lifecycle.

1. ``request_upload`` validates the upload, reserves a unique name, stores a
   pending record and returns a presigned URL.
2. The client PUTs the bytes straight to object storage.
3. ``confirm_upload`` verifies the blob exists, confirms the record and
   charges the project owner's quota.

Pending records that are never confirmed are purged by
``cleanup_pending_uploads``.
"""

import datetime as dt
import logging
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Final

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.files.storage import default_storage
from django.db import transaction
from django.utils import timezone

from server.apps.library.exceptions import FileStateError, StorageError
from server.apps.library.infrastructure.naming import (
    build_storage_key,
    normalize_tags,
    sanitize_file_name,
    validate_content_type,
    validate_tags,
)
from server.apps.library.logic.quota_operations import (
    check_quota,
    get_quota_owner,
    increment_usage,
)
from server.apps.library.logic.tag_operations import set_file_tags
from server.apps.library.logic.tree import (
    build_file_path,
    directory_path,
    resolve_unique_file_name,
)
from server.apps.library.models import BYTES_PER_MB, Directory, File, FileStatus
from server.apps.projects.logic.authorization import (
    ensure_can_modify_resources,
    require_project_access,
)
from server.apps.projects.models import Project

if TYPE_CHECKING:
    from server.apps.library.infrastructure.storage import FileStorage

# User type for Django's dynamic user model
_User = Any

MAX_FILE_SIZE_BYTES: Final = 50 * BYTES_PER_MB

_DEFAULT_UPLOAD_URL_EXPIRY: Final = 900

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class UploadTicket:
    """Everything a client needs to upload the bytes of a new file."""

    file_id: uuid.UUID
    upload_url: str
    expires_at: dt.datetime


def _get_storage() -> 'FileStorage':
    """Get the configured default storage backend.

    Returns:
        FileStorage instance with proper S3 configuration.
    """
    return default_storage  # type: ignore[return-value]


def validate_file_size(size_bytes: int) -> None:
    """Validate a declared upload size.

    Args:
        size_bytes: Declared size in bytes.

    Raises:
        ValidationError: If the size is not positive or exceeds 50 MB.
    """
    if size_bytes <= 0:
        raise ValidationError('File size must be greater than 0')
    if size_bytes > MAX_FILE_SIZE_BYTES:
        raise ValidationError(
            'File size exceeds maximum allowed size of '
            f'{MAX_FILE_SIZE_BYTES // BYTES_PER_MB}MB',
        )


def request_upload(  # noqa: WPS211
    user: _User,
    project: Project,
    file_name: str,
    content_type: str,
    size_bytes: int,
    tags: list[str] | None = None,
    directory_id: int | None = None,
) -> UploadTicket:
    """Reserve a file record and issue a presigned upload URL.

    The stored name is sanitized and made unique among confirmed files
    in the destination directory: ``image.jpg`` becomes ``image (1).jpg``
    when taken.

    Args:
        user: Acting user.
        project: Destination project.
        file_name: Client supplied file name.
        content_type: MIME type; must be an allowed image type.
        size_bytes: Declared size in bytes.
        tags: Optional tags for the file.
        directory_id: Destination directory, None for the project root.

    Returns:
        UploadTicket with the new file ID, URL and URL expiry.

    Raises:
        PermissionDenied: If the user cannot modify the project.
        ValidationError: If type, size, tags or the path length are
            invalid.
        ProjectMember.DoesNotExist: If the project has no owner.
        QuotaExceededError: If the owner's quota can't fit the file.
        Directory.DoesNotExist: If the directory is not in the project.
    """
    ensure_can_modify_resources(user, project)
    content_type = validate_content_type(content_type)
    validate_file_size(size_bytes)

    owner = get_quota_owner(project)
    check_quota(owner, size_bytes)

    if tags:
        validate_tags(tags)

    expiry = getattr(
        settings,
        'LIBRARY_UPLOAD_URL_EXPIRY_SECONDS',
        _DEFAULT_UPLOAD_URL_EXPIRY,
    )

    with transaction.atomic():
        if directory_id is not None:
            Directory.objects.get(pk=directory_id, project=project)

        folder_path = directory_path(project.pk, directory_id)
        unique_name = resolve_unique_file_name(
            project.pk,
            folder_path,
            sanitize_file_name(file_name),
        )

        file_id = uuid.uuid4()
        file_record = File.objects.create(
            id=file_id,
            project=project,
            directory_id=directory_id,
            uploaded_by=user,
            file_name=unique_name,
            path=build_file_path(folder_path, unique_name),
            content_type=content_type,
            size_bytes=size_bytes,
            status=FileStatus.PENDING,
            storage_key=build_storage_key(project.pk, file_id, unique_name),
        )
        if tags:
            set_file_tags(file_record, normalize_tags(tags))

        # Signing is local; a failure here rolls back the pending record
        upload_url = _get_storage().generate_upload_url(
            file_record.storage_key,
            content_type,
            size_bytes,
            expiry,
        )

    logger.info(
        'Upload requested: %s (%d bytes) as %s in project %d by user %s',
        file_record.path,
        size_bytes,
        file_record.pk,
        project.pk,
        user.pk,
    )

    return UploadTicket(
        file_id=file_record.pk,
        upload_url=upload_url,
        expires_at=timezone.now() + dt.timedelta(seconds=expiry),
    )


def confirm_upload(user: _User, file_id: object) -> File:
    """Confirm a pending upload once its blob exists in storage.

    If a confirmed file took the same path while this one was pending,
    the name is made unique again before confirming.

    Args:
        user: Acting user.
        file_id: Pending file to confirm.

    Returns:
        Confirmed File.

    Raises:
        File.DoesNotExist: If the file doesn't exist.
        PermissionDenied: If the user has no project access.
        FileStateError: If the file is not pending.
        StorageError: If the blob is missing or storage can't be queried.
    """
    file_record = File.objects.select_related('project').get(pk=file_id)
    project = file_record.project
    require_project_access(user, project)

    with transaction.atomic():
        file_record = File.objects.select_for_update().get(pk=file_id)

        if not file_record.is_pending:
            raise FileStateError('File upload has already been confirmed')

        if not _get_storage().blob_exists(file_record.storage_key):
            logger.warning(
                'Confirm failed, blob missing: %s (%s)',
                file_record.pk,
                file_record.storage_key,
            )
            raise StorageError(
                'File not found in storage. Upload may have failed.',
            )

        folder_path = directory_path(project.pk, file_record.directory_id)
        unique_name = resolve_unique_file_name(
            project.pk,
            folder_path,
            file_record.file_name,
            exclude_id=file_record.pk,
        )
        if unique_name != file_record.file_name:
            logger.info(
                'Path taken while pending, renaming %s: %s -> %s',
                file_record.pk,
                file_record.file_name,
                unique_name,
            )
            file_record.file_name = unique_name
            file_record.path = build_file_path(folder_path, unique_name)

        file_record.status = FileStatus.CONFIRMED
        file_record.save(
            update_fields=['status', 'file_name', 'path', 'modified_at'],
        )
        increment_usage(get_quota_owner(project), file_record.size_bytes)

    logger.info(
        'Upload confirmed: %s (%d bytes) by user %s',
        file_record.pk,
        file_record.size_bytes,
        user.pk,
    )
    return file_record
