"""Business logic for storage quota operations.

Quotas belong to users. A project's uploads count against the quota of
the project's owner, across every project that user owns.
"""

import logging
from dataclasses import dataclass
from typing import Any

from django.db import transaction
from django.db.models import F, Sum  # noqa: WPS347

from server.apps.library.exceptions import QuotaExceededError
from server.apps.library.models import File, FileStatus, UserQuota
from server.apps.projects.models import Project, ProjectMember, ProjectRole

# User type for Django's dynamic user model
_User = Any

# Field name constant to avoid string literal over-use
_USED_BYTES_FIELD = 'used_bytes'  # noqa: WPS226

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class QuotaInfo:
    """Snapshot of a user's quota."""

    quota_mb: int
    used_bytes: int
    available_bytes: int
    used_percentage: float


def get_or_create_quota(user: _User) -> UserQuota:
    """Get or create quota for user (on-demand creation).

    Args:
        user: User to get quota for.

    Returns:
        UserQuota instance for the user.
    """
    quota, created = UserQuota.objects.get_or_create(user=user)
    if created:
        logger.info(
            'Created quota for user %s: %d bytes',
            user.username,
            quota.quota_bytes,
        )
    return quota


def get_quota_owner(project: Project) -> _User:
    """Get the user whose quota a project's files count against.

    Args:
        project: Project to resolve.

    Returns:
        The project's owner.

    Raises:
        ProjectMember.DoesNotExist: If the project has no owner.
    """
    membership = ProjectMember.objects.select_related('user').filter(
        project=project,
        role=ProjectRole.OWNER,
    ).order_by('joined_at', 'pk').first()

    if membership is None:
        logger.error('Project %s has no owner', project.pk)
        raise ProjectMember.DoesNotExist(
            f'Project {project.pk} has no owner',
        )
    return membership.user


def check_quota(user: _User, size_bytes: int) -> None:
    """Check if user has enough quota for an upload.

    Creates quota on-demand if it doesn't exist. Using exactly the
    remaining space is allowed.

    Args:
        user: User to check quota for.
        size_bytes: Size of the upload in bytes.

    Raises:
        QuotaExceededError: If upload would exceed quota.
    """
    quota = get_or_create_quota(user)

    if not quota.has_space_for(size_bytes):
        logger.warning(
            'Quota exceeded for user %s: need %d, have %d available',
            user.username,
            size_bytes,
            quota.available_bytes(),
        )
        raise QuotaExceededError(
            available_bytes=quota.available_bytes(),
            required_bytes=size_bytes,
        )


def increment_usage(user: _User, size_bytes: int) -> None:
    """Atomically increment user's storage usage.

    Args:
        user: User to increment usage for.
        size_bytes: Bytes to add to usage.
    """
    with transaction.atomic():
        updated = UserQuota.objects.filter(user=user).update(
            used_bytes=F(_USED_BYTES_FIELD) + size_bytes,
        )

        if updated == 0:
            # Quota doesn't exist yet, create it
            quota = get_or_create_quota(user)
            quota.used_bytes = size_bytes
            quota.save(update_fields=[_USED_BYTES_FIELD])

    logger.debug(
        'Incremented usage for user %s by %d bytes',
        user.username,
        size_bytes,
    )


def decrement_usage(user: _User, size_bytes: int) -> None:
    """Atomically decrement user's storage usage.

    Prevents negative values by clamping to 0.

    Args:
        user: User to decrement usage for.
        size_bytes: Bytes to subtract from usage.
    """
    with transaction.atomic():
        try:
            quota = UserQuota.objects.select_for_update().get(user=user)
        except UserQuota.DoesNotExist:
            # No quota exists, nothing to decrement
            logger.debug(
                'No quota exists for user %s, skipping decrement',
                user.username,
            )
            return

        new_usage = max(0, quota.used_bytes - size_bytes)
        quota.used_bytes = new_usage
        quota.save(update_fields=[_USED_BYTES_FIELD])

    logger.debug(
        'Decremented usage for user %s by %d bytes (new: %d)',
        user.username,
        size_bytes,
        new_usage,
    )


def recalculate_usage(user: _User) -> int:
    """Recalculate user's storage usage from confirmed files.

    Sums the confirmed files of every project the user owns. Useful for
    fixing drift after manual database edits.

    Args:
        user: User to recalculate usage for.

    Returns:
        New calculated usage in bytes.
    """
    owned_projects = ProjectMember.objects.filter(
        user=user,
        role=ProjectRole.OWNER,
    ).values('project_id')

    total = File.objects.filter(
        project_id__in=owned_projects,
        status=FileStatus.CONFIRMED,
    ).aggregate(
        total=Sum('size_bytes'),
    )['total'] or 0

    with transaction.atomic():
        quota = get_or_create_quota(user)
        old_usage = quota.used_bytes
        quota.used_bytes = total
        quota.save(update_fields=[_USED_BYTES_FIELD])

    logger.info(
        'Recalculated usage for user %s: %d -> %d bytes',
        user.username,
        old_usage,
        total,
    )

    return total


def get_quota(user: _User) -> QuotaInfo:
    """Get a user's quota and usage.

    Args:
        user: User to report on.

    Returns:
        QuotaInfo snapshot.
    """
    quota = get_or_create_quota(user)
    return QuotaInfo(
        quota_mb=quota.quota_mb,
        used_bytes=quota.used_bytes,
        available_bytes=quota.available_bytes(),
        used_percentage=quota.used_percentage(),
    )
