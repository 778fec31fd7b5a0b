"""Shared fixtures for library app tests."""

import boto3
import pytest
from django.contrib.auth import get_user_model
from moto import mock_aws

from server.apps.library.infrastructure.naming import build_storage_key
from server.apps.library.logic.tree import directory_path, join_path
from server.apps.library.models import Directory, File, FileStatus, UserQuota
from server.apps.projects.models import Project, ProjectMember, ProjectRole

User = get_user_model()

BUCKET_NAME = 'project-files'


@pytest.fixture
def user(db):
    """Create the project owner.

    Returns:
        User instance for testing.
    """
    return User.objects.create_user(
        username='owner',
        password='testpass123',
        email='owner@example.com',
    )


@pytest.fixture
def collaborator(db):
    """Create a user with the collaborator role (see ``project``).

    Returns:
        User instance for testing.
    """
    return User.objects.create_user(
        username='collaborator',
        password='testpass123',
        email='collaborator@example.com',
    )


@pytest.fixture
def other_user(db):
    """Create a user outside the project for isolation tests.

    Returns:
        User instance for testing.
    """
    return User.objects.create_user(
        username='outsider',
        password='testpass123',
        email='outsider@example.com',
    )


@pytest.fixture
def project(user, collaborator):
    """Create a project owned by ``user`` with ``collaborator`` as member.

    Returns:
        Project instance.
    """
    project = Project.objects.create(name='Board Game')
    ProjectMember.objects.create(
        project=project,
        user=user,
        role=ProjectRole.OWNER,
    )
    ProjectMember.objects.create(
        project=project,
        user=collaborator,
        role=ProjectRole.COLLABORATOR,
    )
    return project


@pytest.fixture
def other_project(other_user):
    """Create a project owned by ``other_user``.

    Returns:
        Project instance.
    """
    project = Project.objects.create(name='Other Game')
    ProjectMember.objects.create(
        project=project,
        user=other_user,
        role=ProjectRole.OWNER,
    )
    return project


@pytest.fixture
def quota(user):
    """Create a 5 MB quota for the project owner.

    Returns:
        UserQuota instance.
    """
    return UserQuota.objects.create(user=user, quota_mb=5, used_bytes=0)


@pytest.fixture
def mock_s3():
    """Mock S3 service with project-files bucket.

    Yields:
        boto3 S3 resource with project-files bucket created.
    """
    with mock_aws():
        conn = boto3.resource('s3', region_name='us-east-1')
        conn.create_bucket(Bucket=BUCKET_NAME)
        yield conn


@pytest.fixture
def put_blob(mock_s3):
    """Store an object directly in the mocked bucket.

    Returns:
        Function taking a storage key and optional body.
    """
    def _put(key: str, body: bytes = b'image bytes') -> None:
        mock_s3.Object(BUCKET_NAME, key).put(Body=body)

    return _put


@pytest.fixture
def make_directory(project):
    """Create directories without going through the operations layer.

    Returns:
        Function taking a name and optional parent.
    """
    def _make(name: str, parent: Directory | None = None) -> Directory:
        return Directory.objects.create(
            project=parent.project if parent else project,
            parent=parent,
            name=name,
        )

    return _make


@pytest.fixture
def make_file(project, user):
    """Create file records without going through the upload lifecycle.

    Returns:
        Function taking a file name and optional directory, status, size.
    """
    def _make(
        file_name: str,
        directory: Directory | None = None,
        status: str = FileStatus.CONFIRMED,
        size_bytes: int = 1024,
    ) -> File:
        file_project = directory.project if directory else project
        file_record = File(
            project=file_project,
            directory=directory,
            uploaded_by=user,
            file_name=file_name,
            content_type='image/png',
            size_bytes=size_bytes,
            status=status,
        )
        file_record.path = join_path(
            directory_path(file_project.pk, directory.pk if directory else None),
            file_name,
        )
        file_record.storage_key = build_storage_key(
            file_project.pk,
            file_record.pk,
            file_name,
        )
        file_record.save()
        return file_record

    return _make
