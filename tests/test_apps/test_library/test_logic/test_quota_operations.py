"""Tests for quota operations business logic."""

import pytest

from server.apps.library.exceptions import QuotaExceededError
from server.apps.library.logic.quota_operations import (
    check_quota,
    decrement_usage,
    get_or_create_quota,
    get_quota,
    get_quota_owner,
    increment_usage,
    recalculate_usage,
)
from server.apps.library.models import (
    BYTES_PER_MB,
    Directory,
    FileStatus,
    UserQuota,
)
from server.apps.projects.models import Project, ProjectMember, ProjectRole


@pytest.mark.django_db
def test_get_or_create_quota_defaults_to_50_mb(user):
    """Test quota is created on demand with the default limit."""
    assert not UserQuota.objects.filter(user=user).exists()

    quota = get_or_create_quota(user)

    assert quota.quota_mb == 50
    assert quota.used_bytes == 0


@pytest.mark.django_db
def test_get_or_create_quota_returns_existing(quota, user):
    """Test existing quota is reused."""
    assert get_or_create_quota(user).pk == quota.pk


@pytest.mark.django_db
def test_get_quota_owner(project, user, collaborator):
    """Test the owner is resolved, not other members."""
    assert get_quota_owner(project) == user


@pytest.mark.django_db
def test_get_quota_owner_missing():
    """Test a project without owner is an error."""
    orphan = Project.objects.create(name='Orphan')

    with pytest.raises(ProjectMember.DoesNotExist):
        get_quota_owner(orphan)


@pytest.mark.django_db
def test_check_quota_at_exact_limit(quota, user):
    """Test using exactly the remaining space is allowed."""
    quota.used_bytes = 2 * BYTES_PER_MB
    quota.save()

    # Should not raise
    check_quota(user, 3 * BYTES_PER_MB)


@pytest.mark.django_db
def test_check_quota_exceeded(quota, user):
    """Test error carries available and required sizes."""
    quota.used_bytes = 2 * BYTES_PER_MB
    quota.save()

    with pytest.raises(QuotaExceededError) as exc_info:
        check_quota(user, 3 * BYTES_PER_MB + 1)

    assert exc_info.value.available_bytes == 3 * BYTES_PER_MB
    assert exc_info.value.required_bytes == 3 * BYTES_PER_MB + 1


@pytest.mark.django_db
def test_increment_usage(quota, user):
    """Test increment adds to usage."""
    increment_usage(user, 100)
    increment_usage(user, 50)

    quota.refresh_from_db()
    assert quota.used_bytes == 150


@pytest.mark.django_db
def test_increment_usage_creates_quota(user):
    """Test increment creates a missing quota."""
    increment_usage(user, 100)

    assert UserQuota.objects.get(user=user).used_bytes == 100


@pytest.mark.django_db
def test_decrement_usage_clamps_at_zero(quota, user):
    """Test usage never goes negative."""
    quota.used_bytes = 100
    quota.save()

    decrement_usage(user, 500)

    quota.refresh_from_db()
    assert quota.used_bytes == 0


@pytest.mark.django_db
def test_decrement_usage_without_quota(user):
    """Test decrement is a no-op without quota."""
    decrement_usage(user, 100)

    assert not UserQuota.objects.filter(user=user).exists()


@pytest.mark.django_db
def test_recalculate_usage(
    quota,
    user,
    make_file,
    other_project,
    other_user,
):
    """Test usage is rebuilt from confirmed files of owned projects."""
    make_file('a.png', size_bytes=1000)
    make_file('b.png', size_bytes=2000)
    make_file('c.png', size_bytes=4000, status=FileStatus.PENDING)
    # Membership without ownership doesn't count
    ProjectMember.objects.create(
        project=other_project,
        user=user,
        role=ProjectRole.COLLABORATOR,
    )
    foreign = Directory.objects.create(project=other_project, name='X')
    make_file('d.png', foreign, size_bytes=8000)
    quota.used_bytes = 99
    quota.save()

    assert recalculate_usage(user) == 3000

    quota.refresh_from_db()
    assert quota.used_bytes == 3000


@pytest.mark.django_db
def test_get_quota(quota, user):
    """Test snapshot values."""
    quota.used_bytes = BYTES_PER_MB
    quota.save()

    info = get_quota(user)

    assert info.quota_mb == 5
    assert info.used_bytes == BYTES_PER_MB
    assert info.available_bytes == 4 * BYTES_PER_MB
    assert info.used_percentage == pytest.approx(20.0)
