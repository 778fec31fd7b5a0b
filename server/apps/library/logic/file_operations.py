"""Business logic for confirmed file operations."""

import datetime as dt
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Final

from django.conf import settings
from django.core.files.storage import default_storage
from django.db import transaction
from django.utils import timezone

from server.apps.library.exceptions import FileStateError, NameConflictError
from server.apps.library.infrastructure.naming import (
    build_storage_key,
    normalize_tags,
    sanitize_file_name,
    split_extension,
)
from server.apps.library.logic.quota_operations import (
    decrement_usage,
    get_quota_owner,
)
from server.apps.library.logic.tree import (
    build_file_path,
    confirmed_path_taken,
    directory_path,
)
from server.apps.library.models import Directory, File, FileStatus
from server.apps.projects.logic.authorization import (
    ensure_can_delete_resources,
    ensure_can_modify_resources,
    has_project_access,
    require_project_access,
)
from server.apps.projects.models import Project

if TYPE_CHECKING:
    from django.db.models import QuerySet

    from server.apps.library.infrastructure.storage import FileStorage

# User type for Django's dynamic user model
_User = Any

_DEFAULT_DOWNLOAD_URL_EXPIRY: Final = 900

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DownloadTicket:
    """Presigned URL for reading a file's bytes."""

    download_url: str
    expires_at: dt.datetime


def _get_storage() -> 'FileStorage':
    """Get the configured default storage backend.

    Returns:
        FileStorage instance with proper S3 configuration.
    """
    return default_storage  # type: ignore[return-value]


def _get_file(file_id: object) -> File:
    return File.objects.select_related('project').get(pk=file_id)


def _require_confirmed(file_record: File) -> None:
    if not file_record.is_confirmed:
        raise FileStateError('File upload has not been confirmed yet')


def delete_file(user: _User, file_id: object) -> bool:
    """Delete a file record and its blob.

    The blob is removed best-effort by the ``post_delete`` signal. Only
    confirmed files release quota.

    Args:
        user: Acting user.
        file_id: File to delete.

    Returns:
        True if deleted, False if the file was already gone.

    Raises:
        PermissionDenied: If the user is not the project owner.
    """
    try:
        file_record = _get_file(file_id)
    except File.DoesNotExist:
        logger.info('File already deleted: ID=%s', file_id)
        return False

    project = file_record.project
    ensure_can_delete_resources(user, project)

    with transaction.atomic():
        try:
            file_record = File.objects.select_for_update().get(pk=file_id)
        except File.DoesNotExist:
            logger.info('File deleted concurrently: ID=%s', file_id)
            return False

        was_confirmed = file_record.is_confirmed
        file_record.delete()

        if was_confirmed:
            decrement_usage(get_quota_owner(project), file_record.size_bytes)

    logger.info(
        'File deleted: ID=%s (%s, %d bytes) by user %s',
        file_id,
        file_record.path,
        file_record.size_bytes,
        user.pk,
    )
    return True


def rename_file(user: _User, file_id: object, new_name: str) -> File:
    """Rename a confirmed file.

    The original extension is kept whatever the new name says. The blob
    is copied to a key with the new name before the record is updated;
    the old key is deleted best-effort afterwards.

    Args:
        user: Acting user.
        file_id: File to rename.
        new_name: New file name; only its base name is used.

    Returns:
        Updated File (unchanged if the sanitized name is the same).

    Raises:
        File.DoesNotExist: If the file doesn't exist.
        PermissionDenied: If the user cannot modify the project.
        FileStateError: If the file is still pending.
        NameConflictError: If another file has the new path.
        ValidationError: If the new path is too long.
        Exception: If the storage copy fails.
    """
    file_record = _get_file(file_id)
    ensure_can_modify_resources(user, file_record.project)
    _require_confirmed(file_record)

    _, extension = split_extension(file_record.file_name)
    new_base_name, _ = split_extension((new_name or '').strip())
    final_name = sanitize_file_name(f'{new_base_name}{extension}')

    if final_name == file_record.file_name:
        return file_record

    storage = _get_storage()

    with transaction.atomic():
        file_record = File.objects.select_for_update().get(pk=file_id)
        folder_path = directory_path(
            file_record.project_id,
            file_record.directory_id,
        )
        new_path = build_file_path(folder_path, final_name)
        if confirmed_path_taken(
            file_record.project_id,
            new_path,
            exclude_id=file_record.pk,
        ):
            raise NameConflictError(
                f"A file named '{final_name}' already exists in this location",
            )

        old_key = file_record.storage_key
        new_key = build_storage_key(
            file_record.project_id,
            file_record.pk,
            final_name,
        )
        storage.copy_blob(old_key, new_key)

        try:
            file_record.file_name = final_name
            file_record.path = new_path
            file_record.storage_key = new_key
            file_record.save(
                update_fields=[
                    'file_name',
                    'path',
                    'storage_key',
                    'modified_at',
                ],
            )
        except Exception:
            logger.exception(
                'Database update failed, discarding copied blob: %s',
                new_key,
            )
            storage.discard(new_key)
            raise

    storage.discard(old_key)

    logger.info(
        'File renamed: %s -> %s (ID: %s) by user %s',
        old_key,
        new_key,
        file_record.pk,
        user.pk,
    )
    return file_record


def move_file(
    user: _User,
    file_id: object,
    directory_id: int | None = None,
) -> File:
    """Move a confirmed file to another directory of its project.

    Args:
        user: Acting user.
        file_id: File to move.
        directory_id: Destination directory, None for the project root.

    Returns:
        Updated File.

    Raises:
        File.DoesNotExist: If the file doesn't exist.
        Directory.DoesNotExist: If the directory is not in the project.
        PermissionDenied: If the user cannot modify the project.
        FileStateError: If the file is still pending.
        NameConflictError: If a file with the same name is there already.
        ValidationError: If the new path is too long.
    """
    file_record = _get_file(file_id)
    ensure_can_modify_resources(user, file_record.project)
    _require_confirmed(file_record)

    with transaction.atomic():
        # Serialize with directory deletes and moves
        Project.objects.select_for_update().get(pk=file_record.project_id)
        file_record = File.objects.select_for_update().get(pk=file_id)

        if directory_id is not None:
            Directory.objects.get(
                pk=directory_id,
                project_id=file_record.project_id,
            )

        if file_record.directory_id == directory_id:
            return file_record

        new_path = build_file_path(
            directory_path(file_record.project_id, directory_id),
            file_record.file_name,
        )
        if confirmed_path_taken(
            file_record.project_id,
            new_path,
            exclude_id=file_record.pk,
        ):
            raise NameConflictError(
                f"A file named '{file_record.file_name}' already exists "
                'in the destination',
            )

        old_path = file_record.path
        file_record.directory_id = directory_id
        file_record.path = new_path
        file_record.save(update_fields=['directory', 'path', 'modified_at'])

    logger.info(
        'File moved: %s -> %s (ID: %s) by user %s',
        old_path,
        new_path,
        file_record.pk,
        user.pk,
    )
    return file_record


def list_files(  # noqa: WPS211
    user: _User,
    project: Project,
    tags: list[str] | None = None,
    match_all: bool = False,
    scope_to_directory: bool = False,
    directory_id: int | None = None,
) -> list[File]:
    """List confirmed files of a project, newest first.

    Args:
        user: Acting user.
        project: Project to list.
        tags: Optional tag filter.
        match_all: Require every tag (AND) instead of any (OR).
        scope_to_directory: Only list files directly in ``directory_id``.
        directory_id: Directory for scoping, None for the project root.

    Returns:
        Files, empty if the user has no access.
    """
    if not has_project_access(user, project):
        return []

    files: QuerySet[File] = File.objects.filter(
        project=project,
        status=FileStatus.CONFIRMED,
    )

    if scope_to_directory:
        files = files.filter(directory_id=directory_id)

    tag_names = normalize_tags(tags or [])
    if tag_names and match_all:
        for tag_name in tag_names:
            files = files.filter(tags__name=tag_name)
    elif tag_names:
        files = files.filter(tags__name__in=tag_names).distinct()

    return list(
        files.select_related(
            'uploaded_by',
        ).prefetch_related('tags').order_by('-uploaded_at'),
    )


def get_file(user: _User, file_id: object) -> File | None:
    """Get a file of any status by ID.

    Returns:
        The File, or None if missing or the user has no access.
    """
    file_record = File.objects.select_related(
        'project',
        'uploaded_by',
    ).filter(pk=file_id).first()

    if file_record is None:
        return None
    if not has_project_access(user, file_record.project):
        return None
    return file_record


def get_file_by_path(
    user: _User,
    project: Project,
    path: str,
) -> File | None:
    """Get a confirmed file by its full path.

    Args:
        user: Acting user.
        project: Project to search.
        path: Full path such as ``Assets/Icons/logo.png``.

    Returns:
        The File, or None if missing or the user has no access.
    """
    if not has_project_access(user, project):
        return None

    return File.objects.filter(
        project=project,
        path=path.strip('/'),
        status=FileStatus.CONFIRMED,
    ).first()


def generate_download_url(user: _User, file_id: object) -> DownloadTicket:
    """Issue a presigned URL for reading a confirmed file.

    The URL makes browsers display the file inline under its name.

    Args:
        user: Acting user.
        file_id: File to download.

    Returns:
        DownloadTicket with the URL and its expiry.

    Raises:
        File.DoesNotExist: If the file doesn't exist.
        PermissionDenied: If the user has no project access.
        FileStateError: If the file is still pending.
    """
    file_record = _get_file(file_id)
    require_project_access(user, file_record.project)
    _require_confirmed(file_record)

    expiry = getattr(
        settings,
        'LIBRARY_DOWNLOAD_URL_EXPIRY_SECONDS',
        _DEFAULT_DOWNLOAD_URL_EXPIRY,
    )
    download_url = _get_storage().generate_download_url(
        file_record.storage_key,
        file_record.file_name,
        expiry,
    )

    logger.debug(
        'Download URL issued for file %s to user %s',
        file_record.pk,
        user.pk,
    )
    return DownloadTicket(
        download_url=download_url,
        expires_at=timezone.now() + dt.timedelta(seconds=expiry),
    )
