"""Name sanitization and validation rules for library objects."""

import re
from typing import Final

from django.core.exceptions import ValidationError

MAX_NAME_LENGTH: Final = 255
MAX_PATH_LENGTH: Final = 2048
MAX_TAGS_PER_FILE: Final = 20
MAX_TAG_LENGTH: Final = 50

_DEFAULT_FILE_NAME: Final = 'file'

# All file blobs live under this key prefix
STORAGE_KEY_PREFIX: Final = 'projects/'

# Letters, numbers, spaces, underscores, hyphens (and periods in files)
_INVALID_FILE_NAME_CHARS: Final = re.compile(r'[^a-zA-Z0-9 _\-.]')
_INVALID_EXTENSION_CHARS: Final = re.compile(r'[^a-zA-Z0-9 _\-]')
_DIRECTORY_NAME_PATTERN: Final = re.compile(r'[a-zA-Z0-9 _\-]+')
_TAG_PATTERN: Final = re.compile(r'[a-z0-9_\-]+')

ALLOWED_CONTENT_TYPES: Final = frozenset((
    'image/jpeg',
    'image/jpg',
    'image/png',
    'image/gif',
    'image/webp',
    'image/svg+xml',
))


def split_extension(file_name: str) -> tuple[str, str]:
    """Split a file name into base name and extension.

    The extension starts at the last period and keeps it, so
    ``archive.tar.gz`` gives ``('archive.tar', '.gz')`` and a dotfile
    such as ``.hidden`` is all extension.

    Args:
        file_name: File name without directories.

    Returns:
        Tuple of (base name, extension including the period or '').
    """
    stem, dot, extension = file_name.rpartition('.')
    if not dot or not extension:
        return file_name, ''
    return stem, f'.{extension}'


def sanitize_base_name(base_name: str) -> str:
    """Replace disallowed characters in a base name.

    Args:
        base_name: File name without extension.

    Returns:
        Sanitized base name, ``file`` when nothing usable is left.
    """
    sanitized = _INVALID_FILE_NAME_CHARS.sub('_', base_name).strip().strip('_')
    return sanitized or _DEFAULT_FILE_NAME


def sanitize_extension(extension: str) -> str:
    """Replace disallowed characters in an extension.

    Args:
        extension: Extension with or without the leading period.

    Returns:
        Sanitized extension with its period, or '' if nothing is left.
    """
    sanitized = _INVALID_EXTENSION_CHARS.sub(
        '_',
        extension.lstrip('.'),
    ).strip('_')
    if not sanitized:
        return ''
    return f'.{sanitized}'


def sanitize_file_name(file_name: str) -> str:
    """Sanitize a client supplied file name.

    Characters outside letters, numbers, spaces, underscores, hyphens and
    periods become underscores. The extension is sanitized separately and
    kept. Names longer than the column allows are cut from the base name.

    Args:
        file_name: Raw file name.

    Returns:
        Safe file name, never empty.
    """
    if not file_name or not file_name.strip():
        return _DEFAULT_FILE_NAME

    base_name, extension = split_extension(file_name.strip())
    base_name = sanitize_base_name(base_name)
    extension = sanitize_extension(extension)

    overflow = len(base_name) + len(extension) - MAX_NAME_LENGTH
    if overflow > 0:
        base_name = base_name[:-overflow].rstrip() or _DEFAULT_FILE_NAME
    return f'{base_name}{extension}'


def add_name_suffix(file_name: str, suffix: str) -> str:
    """Insert a suffix before the extension without exceeding the limit.

    The base name is shortened to make room: ``image.jpg`` with `` (1)``
    becomes ``image (1).jpg``.

    Args:
        file_name: Sanitized file name.
        suffix: Text to insert before the extension.

    Returns:
        Suffixed file name of at most ``MAX_NAME_LENGTH`` characters.
    """
    base_name, extension = split_extension(file_name)
    overflow = len(base_name) + len(suffix) + len(extension) - MAX_NAME_LENGTH
    if overflow > 0:
        base_name = base_name[:max(0, len(base_name) - overflow)].rstrip()
        extension = extension[:MAX_NAME_LENGTH - len(base_name) - len(suffix)]
    return f'{base_name}{suffix}{extension}'


def validate_path_length(path: str) -> None:
    """Validate that a materialized file path fits its column.

    Raises:
        ValidationError: If the path is longer than ``MAX_PATH_LENGTH``.
    """
    if len(path) > MAX_PATH_LENGTH:
        raise ValidationError(
            f'Path cannot exceed {MAX_PATH_LENGTH} characters: '
            f'{path[:50]}...',
        )


def validate_directory_name(name: str) -> str:
    """Validate a directory name.

    Args:
        name: Raw directory name.

    Returns:
        The name with surrounding whitespace removed.

    Raises:
        ValidationError: If the name is empty, too long or has
            characters other than letters, numbers, spaces,
            underscores and hyphens.
    """
    name = (name or '').strip()
    if not name:
        raise ValidationError('Directory name cannot be empty')
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(
            f'Directory name cannot exceed {MAX_NAME_LENGTH} characters',
        )
    if not _DIRECTORY_NAME_PATTERN.fullmatch(name):
        raise ValidationError(
            'Directory name can only contain letters, numbers, spaces, '
            'underscores, and hyphens',
        )
    return name


def validate_content_type(content_type: str) -> str:
    """Validate a content type against the allowed image types.

    Args:
        content_type: MIME type declared by the client.

    Returns:
        Lowercased content type.

    Raises:
        ValidationError: If the type is not allowed.
    """
    normalized = (content_type or '').strip().lower()
    if normalized not in ALLOWED_CONTENT_TYPES:
        raise ValidationError(
            f"Content type '{content_type}' is not allowed. Allowed types: "
            f'{", ".join(sorted(ALLOWED_CONTENT_TYPES))}',
        )
    return normalized


def validate_tags(tags: list[str]) -> None:
    """Validate tags before normalization.

    Blank entries are ignored. Length and charset are checked on the
    trimmed, lowercased tag.

    Args:
        tags: Raw tags.

    Raises:
        ValidationError: If there are too many tags, or a tag is too long
            or has characters other than lowercase letters, numbers,
            hyphens and underscores.
    """
    present = [tag for tag in tags if tag and tag.strip()]
    if len(present) > MAX_TAGS_PER_FILE:
        raise ValidationError(
            f'Maximum {MAX_TAGS_PER_FILE} tags allowed per file',
        )

    for tag in present:
        normalized = tag.strip().lower()
        if len(normalized) > MAX_TAG_LENGTH:
            raise ValidationError(
                f"Tag '{tag}' exceeds maximum length of "
                f'{MAX_TAG_LENGTH} characters',
            )
        if not _TAG_PATTERN.fullmatch(normalized):
            raise ValidationError(
                f"Tag '{tag}' contains invalid characters. Only lowercase "
                'letters, numbers, hyphens, and underscores are allowed',
            )


def normalize_tags(tags: list[str]) -> list[str]:
    """Trim, lowercase, drop empties and deduplicate tags.

    Args:
        tags: Raw tags.

    Returns:
        Normalized tags in first-seen order.
    """
    normalized = (tag.strip().lower() for tag in tags if tag)
    return list(dict.fromkeys(tag for tag in normalized if tag))


def build_storage_key(project_id: int, file_id: object, file_name: str) -> str:
    """Build the storage key of a file blob.

    Args:
        project_id: Owning project ID.
        file_id: File record ID.
        file_name: Sanitized file name.

    Returns:
        Key in the form ``projects/{project}/files/{file}/{name}``.
    """
    return f'{STORAGE_KEY_PREFIX}{project_id}/files/{file_id}/{file_name}'
