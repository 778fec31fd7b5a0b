"""Shared fixtures for projects app tests."""

import pytest
from django.contrib.auth import get_user_model

from server.apps.projects.models import Project, ProjectMember, ProjectRole

User = get_user_model()


@pytest.fixture
def owner(db):
    """Create the project owner.

    Returns:
        User instance for testing.
    """
    return User.objects.create_user(username='owner', password='testpass123')


@pytest.fixture
def member(db):
    """Create a collaborator.

    Returns:
        User instance for testing.
    """
    return User.objects.create_user(username='member', password='testpass123')


@pytest.fixture
def stranger(db):
    """Create a user with no membership.

    Returns:
        User instance for testing.
    """
    return User.objects.create_user(username='stranger', password='testpass123')


@pytest.fixture
def project(owner, member):
    """Create a project with an owner and a collaborator.

    Returns:
        Project instance.
    """
    project = Project.objects.create(name='Card Game')
    ProjectMember.objects.create(
        project=project,
        user=owner,
        role=ProjectRole.OWNER,
    )
    ProjectMember.objects.create(
        project=project,
        user=member,
        role=ProjectRole.COLLABORATOR,
    )
    return project
