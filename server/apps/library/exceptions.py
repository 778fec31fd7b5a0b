"""Exceptions for library app.

Validation failures use Django's ``ValidationError`` and authorization
failures use ``PermissionDenied``; missing records surface as the model's
``DoesNotExist``. The types below cover the remaining failure modes.
"""

from typing import TYPE_CHECKING, Final

from django.core.exceptions import ValidationError

if TYPE_CHECKING:
    from server.apps.library.models import Directory

_BYTES_PER_MB: Final = 1024 * 1024


class NameConflictError(Exception):
    """Raised when a name is already taken at the destination."""


class DirectoryConflictError(NameConflictError):
    """Raised when a moved directory collides with a same-named sibling.

    Carries both directories so the caller can offer a merge.
    """

    def __init__(
        self,
        source: 'Directory',
        conflicting: 'Directory',
    ) -> None:
        """Initialize DirectoryConflictError.

        Args:
            source: Directory being moved.
            conflicting: Existing directory with the same name.
        """
        self.source = source
        self.conflicting = conflicting
        super().__init__(
            f"A directory named '{source.name}' already exists "
            'in the destination',
        )


class DirectoryCycleError(ValidationError):
    """Raised when a directory would become its own ancestor."""


class QuotaExceededError(Exception):
    """Raised when upload would exceed the project owner's quota."""

    def __init__(
        self,
        available_bytes: int,
        required_bytes: int,
    ) -> None:
        """Initialize QuotaExceededError.

        Args:
            available_bytes: Bytes still free in the owner's quota.
            required_bytes: Bytes needed for the operation.
        """
        self.available_bytes = available_bytes
        self.required_bytes = required_bytes

        available_mb = available_bytes / _BYTES_PER_MB
        required_mb = required_bytes / _BYTES_PER_MB
        super().__init__(
            "Project owner's storage quota exceeded. "
            f'Available: {available_mb:.2f}MB, '
            f'Required: {required_mb:.2f}MB. '
            'Contact the project owner to free up space.',
        )


class StorageError(Exception):
    """Raised when the object storage gives an unusable answer."""


class FileStateError(Exception):
    """Raised when a file is not in the state an operation requires."""
