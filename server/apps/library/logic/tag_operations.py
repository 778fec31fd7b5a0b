"""Business logic for file tags."""

import logging
from typing import Any

from django.db import transaction

from server.apps.library.infrastructure.naming import (
    normalize_tags,
    validate_tags,
)
from server.apps.library.models import File, FileStatus, Tag
from server.apps.projects.logic.authorization import (
    ensure_can_modify_resources,
    has_project_access,
)
from server.apps.projects.models import Project

# User type for Django's dynamic user model
_User = Any

logger = logging.getLogger(__name__)


def set_file_tags(file_record: File, tag_names: list[str]) -> None:
    """Replace a file's tags with already normalized names.

    Missing project tags are created on the fly.

    Args:
        file_record: File to tag.
        tag_names: Normalized tag names.
    """
    tags = [
        Tag.objects.get_or_create(
            project_id=file_record.project_id,
            name=tag_name,
        )[0]
        for tag_name in tag_names
    ]
    file_record.tags.set(tags)


def update_tags(user: _User, file_id: object, tags: list[str]) -> File:
    """Validate, normalize and store a file's tags.

    Tags are trimmed, lowercased, deduplicated and blank ones dropped.

    Args:
        user: Acting user.
        file_id: File to update.
        tags: New tag list; replaces the current one.

    Returns:
        Updated File.

    Raises:
        File.DoesNotExist: If the file doesn't exist.
        PermissionDenied: If the user cannot modify the project.
        ValidationError: If the tags are invalid.
    """
    file_record = File.objects.select_related('project').get(pk=file_id)
    ensure_can_modify_resources(user, file_record.project)

    validate_tags(tags)
    normalized = normalize_tags(tags)

    with transaction.atomic():
        set_file_tags(file_record, normalized)
        file_record.save(update_fields=['modified_at'])

    logger.info(
        'Updated tags for file %s by user %s: %s',
        file_record.pk,
        user.pk,
        normalized,
    )
    return file_record


def get_project_tags(user: _User, project: Project) -> list[str]:
    """List distinct tags used by confirmed files of a project.

    Returns:
        Tag names sorted alphabetically, empty without access.
    """
    if not has_project_access(user, project):
        return []

    return list(
        Tag.objects.filter(
            project=project,
            files__status=FileStatus.CONFIRMED,
        ).values_list('name', flat=True).distinct().order_by('name'),
    )
