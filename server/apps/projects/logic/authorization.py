"""Project authorization: role lookup and permission predicates.

All file library operations call into this module before touching data.
Failures raise Django's ``PermissionDenied``.
"""

import logging
from collections.abc import Callable
from typing import Any

from django.core.exceptions import PermissionDenied

from server.apps.projects.models import Project, ProjectMember, ProjectRole

# User type for Django's dynamic user model
_User = Any

logger = logging.getLogger(__name__)


def get_project_role(
    user: _User,
    project: Project | None,
) -> ProjectRole | None:
    """Get the user's role in a project.

    Without a project, superusers are treated as owners so that
    system-wide operations can be authorized.

    Args:
        user: User to look up.
        project: Project to check, or None for system scope.

    Returns:
        The user's role, or None if the user has no access.
    """
    if project is None:
        return ProjectRole.OWNER if user.is_superuser else None

    role = ProjectMember.objects.filter(
        user=user,
        project=project,
    ).values_list('role', flat=True).first()

    if role is None:
        return None
    return ProjectRole(role)


def has_project_access(user: _User, project: Project) -> bool:
    """Check if user is a member of the project.

    Args:
        user: User to check.
        project: Project to check.

    Returns:
        True if the user has any role in the project.
    """
    return ProjectMember.objects.filter(user=user, project=project).exists()


def require_project_access(
    user: _User,
    project: Project | None,
    message: str | None = None,
) -> ProjectRole:
    """Require that the user has access to the project.

    Args:
        user: User to check.
        project: Project to check, or None for system scope.
        message: Optional custom error message.

    Returns:
        The user's role.

    Raises:
        PermissionDenied: If the user has no access.
    """
    role = get_project_role(user, project)
    if role is None:
        logger.warning(
            'Access denied for user %s to project %s',
            user.pk,
            project.pk if project else None,
        )
        raise PermissionDenied(
            message or 'User does not have access to this project',
        )
    return role


def can_modify_resources(role: ProjectRole) -> bool:
    """Both owners and collaborators can create and update resources."""
    return role in {ProjectRole.OWNER, ProjectRole.COLLABORATOR}


def can_delete_resources(role: ProjectRole) -> bool:
    """Only the owner can delete resources."""
    return role == ProjectRole.OWNER


def can_manage_project(role: ProjectRole) -> bool:
    """Only the owner can manage project settings and members."""
    return role == ProjectRole.OWNER


def require_permission(
    user: _User,
    project: Project | None,
    permission_check: Callable[[ProjectRole], bool],
    message: str,
) -> ProjectRole:
    """Require project access and a specific permission.

    Args:
        user: User to check.
        project: Project to check.
        permission_check: Predicate applied to the user's role.
        message: Error message when the predicate fails.

    Returns:
        The user's role.

    Raises:
        PermissionDenied: If the user has no access or lacks permission.
    """
    role = require_project_access(user, project)

    if not permission_check(role):
        logger.warning(
            'Permission denied for user %s (%s) in project %s: %s',
            user.pk,
            role,
            project.pk if project else None,
            message,
        )
        raise PermissionDenied(message)

    return role


def ensure_can_modify_resources(
    user: _User,
    project: Project | None,
) -> ProjectRole:
    """Ensure the user can create or modify resources in the project."""
    return require_permission(
        user,
        project,
        can_modify_resources,
        'User does not have permission to create or modify resources',
    )


def ensure_can_delete_resources(
    user: _User,
    project: Project | None,
) -> ProjectRole:
    """Ensure the user can delete resources in the project."""
    return require_permission(
        user,
        project,
        can_delete_resources,
        'Only the Owner can delete resources',
    )
