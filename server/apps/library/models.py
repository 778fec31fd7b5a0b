"""Database models for library app."""

import uuid
from typing import ClassVar, Final, final, override

from django.conf import settings
from django.db import models

from server.apps.projects.models import Project

# Constants for field max lengths
_NAME_MAX_LENGTH: Final = 255
_PATH_MAX_LENGTH: Final = 2048
_STORAGE_KEY_MAX_LENGTH: Final = 1024
_CONTENT_TYPE_MAX_LENGTH: Final = 255
_STATUS_MAX_LENGTH: Final = 16
_TAG_NAME_MAX_LENGTH: Final = 50

BYTES_PER_MB: Final = 1024 * 1024


class FileStatus(models.TextChoices):
    """Upload lifecycle state. Transitions only from pending to confirmed."""

    PENDING = 'pending', 'Pending'
    CONFIRMED = 'confirmed', 'Confirmed'


@final
class Directory(models.Model):
    """Named node in a project's file hierarchy.

    Directories form a parent-pointer tree stored as flat rows. A null
    parent means the directory sits at the project root. Sibling names
    are unique, including among root-level directories.
    """

    project = models.ForeignKey(
        Project,
        on_delete=models.CASCADE,
        related_name='directories',
        db_index=True,
    )

    # Deleting a directory deletes its whole subtree
    parent = models.ForeignKey(
        'self',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='children',
    )

    name = models.CharField(max_length=_NAME_MAX_LENGTH)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'Directory'  # type: ignore[mutable-override]
        verbose_name_plural = 'Directories'  # type: ignore[mutable-override]
        ordering: ClassVar[list[str]] = ['name']

        constraints: ClassVar[list[models.BaseConstraint]] = [
            models.UniqueConstraint(
                fields=['project', 'parent', 'name'],
                name='directories_sibling_name_unique',
            ),
            # NULL parents are distinct in SQL, root level needs its own rule
            models.UniqueConstraint(
                fields=['project', 'name'],
                condition=models.Q(parent__isnull=True),
                name='directories_root_name_unique',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.project_id}:{self.name}'


@final
class Tag(models.Model):
    """Normalized tag used to organize files within a project."""

    project = models.ForeignKey(
        Project,
        on_delete=models.CASCADE,
        related_name='tags',
        db_index=True,
    )

    name = models.CharField(max_length=_TAG_NAME_MAX_LENGTH)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'Tag'  # type: ignore[mutable-override]
        verbose_name_plural = 'Tags'  # type: ignore[mutable-override]
        ordering: ClassVar[list[str]] = ['name']

        constraints: ClassVar[list[models.BaseConstraint]] = [
            models.UniqueConstraint(
                fields=['project', 'name'],
                name='tags_project_name_unique',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.project_id}:{self.name}'


@final
class File(models.Model):
    """Metadata of a file stored in S3-compatible storage.

    The record never holds file bytes. Clients upload directly to storage
    with a presigned URL; the record starts as pending and is confirmed
    once the blob is verified to exist.

    ``path`` is the materialized location: the owning directory's full
    path joined with ``file_name`` (just ``file_name`` at the root).
    """

    # Generated before insert so the storage key can embed it
    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
    )

    project = models.ForeignKey(
        Project,
        on_delete=models.CASCADE,
        related_name='files',
        db_index=True,
    )

    # Null means project root. Directory deletion removes files explicitly.
    directory = models.ForeignKey(
        Directory,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='files',
    )

    uploaded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='uploaded_files',
    )

    file_name = models.CharField(max_length=_NAME_MAX_LENGTH)

    path = models.CharField(
        max_length=_PATH_MAX_LENGTH,
        help_text='Directory path joined with file name: folder/sub/file.png',
    )

    content_type = models.CharField(max_length=_CONTENT_TYPE_MAX_LENGTH)

    size_bytes = models.BigIntegerField(
        help_text='File size in bytes',
    )

    status = models.CharField(
        max_length=_STATUS_MAX_LENGTH,
        choices=FileStatus.choices,
        default=FileStatus.PENDING,
        db_index=True,
    )

    storage_key = models.CharField(
        max_length=_STORAGE_KEY_MAX_LENGTH,
        unique=True,
        help_text='Key in storage: projects/{project}/files/{file}/{name}',
    )

    uploaded_at = models.DateTimeField(auto_now_add=True)
    modified_at = models.DateTimeField(auto_now=True)

    tags = models.ManyToManyField(
        Tag,
        related_name='files',
        blank=True,
    )

    class Meta:
        """Model metadata."""

        verbose_name = 'File'  # type: ignore[mutable-override]
        verbose_name_plural = 'Files'  # type: ignore[mutable-override]
        ordering: ClassVar[list[str]] = ['-uploaded_at']

        indexes: ClassVar[list[models.Index]] = [
            # Optimize path collision checks
            models.Index(
                fields=['project', 'path'],
                name='files_project_path_idx',
            ),
            # Optimize stale pending upload sweeps
            models.Index(
                fields=['status', 'uploaded_at'],
                name='files_status_uploaded_idx',
            ),
        ]

        constraints: ClassVar[list[models.BaseConstraint]] = [
            # Two confirmed files can never share a path
            models.UniqueConstraint(
                fields=['project', 'path'],
                condition=models.Q(status='confirmed'),
                name='files_confirmed_path_unique',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.project_id}:{self.path}'

    @property
    def is_pending(self) -> bool:
        """Whether the upload has not been confirmed yet."""
        return self.status == FileStatus.PENDING

    @property
    def is_confirmed(self) -> bool:
        """Whether the upload has been confirmed."""
        return self.status == FileStatus.CONFIRMED

    def get_tag_names(self) -> list[str]:
        """Get tag names sorted alphabetically.

        Returns:
            List of tag names.
        """
        return sorted(tag.name for tag in self.tags.all())


# Default quota: 50 MB
_DEFAULT_QUOTA_MB: Final = 50


@final
class UserQuota(models.Model):
    """Storage quota for a user.

    Tracks the user's storage limit and current usage. Usage covers the
    confirmed files of every project the user owns; pending uploads do
    not count until confirmed.
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='quota',
        primary_key=True,
    )

    quota_mb = models.PositiveIntegerField(
        default=_DEFAULT_QUOTA_MB,
        help_text='Storage quota limit in megabytes',
    )

    used_bytes = models.BigIntegerField(
        default=0,
        help_text='Currently used storage in bytes',
    )

    class Meta:
        """Model metadata."""

        verbose_name = 'User Quota'  # type: ignore[mutable-override]
        verbose_name_plural = 'User Quotas'  # type: ignore[mutable-override]

        constraints: ClassVar[list[models.BaseConstraint]] = [
            models.CheckConstraint(
                condition=models.Q(used_bytes__gte=0),
                name='used_bytes_non_negative',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.user.username}: {self.used_bytes}/{self.quota_bytes}'

    @property
    def quota_bytes(self) -> int:
        """Quota limit converted to bytes."""
        return self.quota_mb * BYTES_PER_MB

    def has_space_for(self, size_bytes: int) -> bool:
        """Check if there's enough space for the given size.

        Args:
            size_bytes: Size to check in bytes.

        Returns:
            True if there's enough space, False otherwise.
        """
        return self.used_bytes + size_bytes <= self.quota_bytes

    def available_bytes(self) -> int:
        """Get available storage space.

        Returns:
            Available bytes (never negative).
        """
        available = self.quota_bytes - self.used_bytes
        return max(0, available)

    def used_percentage(self) -> float:
        """Get percentage of quota in use.

        Returns:
            Percentage, 0 when the quota is zero.
        """
        if self.quota_bytes == 0:
            return 0.0
        return self.used_bytes * 100 / self.quota_bytes
