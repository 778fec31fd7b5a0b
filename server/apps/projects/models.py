"""Database models for projects and their members."""

from typing import ClassVar, Final, final, override

from django.conf import settings
from django.db import models

_PROJECT_NAME_MAX_LENGTH: Final = 255
_ROLE_MAX_LENGTH: Final = 32


class ProjectRole(models.TextChoices):
    """Role of a user within a project."""

    OWNER = 'owner', 'Owner'
    COLLABORATOR = 'collaborator', 'Collaborator'


@final
class Project(models.Model):
    """A project owning a file library.

    Storage used by a project's files counts against the quota of the
    project's owner.
    """

    name = models.CharField(max_length=_PROJECT_NAME_MAX_LENGTH)

    description = models.TextField(blank=True, default='')

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    members = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        through='ProjectMember',
        related_name='projects',
    )

    class Meta:
        """Model metadata."""

        verbose_name = 'Project'  # type: ignore[mutable-override]
        verbose_name_plural = 'Projects'  # type: ignore[mutable-override]
        ordering: ClassVar[list[str]] = ['name']

    @override
    def __str__(self) -> str:
        """String representation."""
        return self.name


@final
class ProjectMember(models.Model):
    """Membership of a user in a project with a role."""

    project = models.ForeignKey(
        Project,
        on_delete=models.CASCADE,
        related_name='memberships',
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='project_memberships',
    )

    role = models.CharField(
        max_length=_ROLE_MAX_LENGTH,
        choices=ProjectRole.choices,
        default=ProjectRole.COLLABORATOR,
    )

    joined_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'Project Member'  # type: ignore[mutable-override]
        verbose_name_plural = 'Project Members'  # type: ignore[mutable-override]

        constraints: ClassVar[list[models.BaseConstraint]] = [
            models.UniqueConstraint(
                fields=['project', 'user'],
                name='project_members_unique',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.user.username}@{self.project.name} ({self.role})'
