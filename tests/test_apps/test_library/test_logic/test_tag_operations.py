"""Tests for tag operations."""

import pytest
from django.core.exceptions import PermissionDenied, ValidationError

from server.apps.library.logic.tag_operations import (
    get_project_tags,
    set_file_tags,
    update_tags,
)
from server.apps.library.models import FileStatus, Tag


@pytest.mark.django_db
class TestUpdateTags:
    """Tests for update_tags."""

    def test_tags_are_normalized(self, collaborator, make_file):
        """Test trimming, lowercasing, dedup and blank removal."""
        file_record = make_file('a.png')

        updated = update_tags(
            collaborator,
            file_record.pk,
            [' Hero ', 'HERO', '', 'card-art'],
        )

        assert updated.get_tag_names() == ['card-art', 'hero']

    def test_tags_are_replaced(self, user, make_file):
        """Test the new list replaces the old one."""
        file_record = make_file('a.png')
        set_file_tags(file_record, ['old'])

        update_tags(user, file_record.pk, ['new'])

        assert file_record.get_tag_names() == ['new']
        # Unused tags stay in the project
        assert Tag.objects.filter(name='old').exists()

    def test_empty_list_clears(self, user, make_file):
        """Test an empty list removes all tags."""
        file_record = make_file('a.png')
        set_file_tags(file_record, ['hero'])

        update_tags(user, file_record.pk, [])

        assert file_record.get_tag_names() == []

    def test_invalid_tags_rejected(self, user, make_file):
        """Test invalid tags leave the file untouched."""
        file_record = make_file('a.png')
        set_file_tags(file_record, ['hero'])

        with pytest.raises(ValidationError):
            update_tags(user, file_record.pk, ['bad tag!'])

        assert file_record.get_tag_names() == ['hero']

    def test_outsider_denied(self, other_user, make_file):
        """Test non-members can't tag."""
        file_record = make_file('a.png')

        with pytest.raises(PermissionDenied):
            update_tags(other_user, file_record.pk, ['hero'])

    def test_tags_are_per_project(self, user, make_file, other_project):
        """Test the same name in two projects is two tags."""
        file_record = make_file('a.png')
        Tag.objects.create(project=other_project, name='hero')

        update_tags(user, file_record.pk, ['hero'])

        assert Tag.objects.filter(name='hero').count() == 2


@pytest.mark.django_db
def test_get_project_tags(user, project, make_file):
    """Test distinct sorted tags of confirmed files."""
    set_file_tags(make_file('a.png'), ['villain', 'hero'])
    set_file_tags(make_file('b.png'), ['hero'])
    set_file_tags(
        make_file('c.png', status=FileStatus.PENDING),
        ['draft'],
    )

    assert get_project_tags(user, project) == ['hero', 'villain']


@pytest.mark.django_db
def test_get_project_tags_outsider(other_user, project, make_file):
    """Test non-members see no tags."""
    set_file_tags(make_file('a.png'), ['hero'])

    assert get_project_tags(other_user, project) == []
