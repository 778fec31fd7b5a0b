"""Tests for name sanitization and validation rules."""

import pytest
from django.core.exceptions import ValidationError

from server.apps.library.infrastructure.naming import (
    MAX_NAME_LENGTH,
    MAX_PATH_LENGTH,
    add_name_suffix,
    build_storage_key,
    normalize_tags,
    sanitize_file_name,
    split_extension,
    validate_content_type,
    validate_directory_name,
    validate_path_length,
    validate_tags,
)


@pytest.mark.parametrize(('file_name', 'expected'), [
    ('image.jpg', ('image', '.jpg')),
    ('archive.tar.gz', ('archive.tar', '.gz')),
    ('README', ('README', '')),
    ('.hidden', ('', '.hidden')),
    ('trailing.', ('trailing.', '')),
])
def test_split_extension(file_name, expected):
    """Test base name and extension split on the last period."""
    assert split_extension(file_name) == expected


@pytest.mark.parametrize(('file_name', 'expected'), [
    ('hero card.png', 'hero card.png'),
    ('my@file#name.png', 'my_file_name.png'),
    ('@@@.jpg', 'file.jpg'),
    ('file.j@pg', 'file.j_pg'),
    ('file.@@@', 'file'),
    ('  spaced  .png', 'spaced.png'),
    ('../etc/passwd.png', '.._etc_passwd.png'),
    ('', 'file'),
    ('   ', 'file'),
    ('.png', 'file.png'),
])
def test_sanitize_file_name(file_name, expected):
    """Test characters outside the allowed set become underscores."""
    assert sanitize_file_name(file_name) == expected


def test_sanitize_file_name_truncates_base_name():
    """Test long names are cut from the base name, keeping the extension."""
    result = sanitize_file_name(f'{"a" * 300}.png')

    assert len(result) == MAX_NAME_LENGTH
    assert result.endswith('.png')


class TestValidateDirectoryName:
    """Tests for directory name validation."""

    def test_valid_name_is_trimmed(self):
        """Test surrounding whitespace is removed."""
        assert validate_directory_name('  Card Backs_v2-final ') == (
            'Card Backs_v2-final'
        )

    @pytest.mark.parametrize('name', ['', '   ', None])
    def test_empty_name_rejected(self, name):
        """Test empty names are rejected."""
        with pytest.raises(ValidationError, match='cannot be empty'):
            validate_directory_name(name)

    @pytest.mark.parametrize('name', ['a/b', 'dot.name', 'emoji✨', 'a\\b'])
    def test_invalid_characters_rejected(self, name):
        """Test names with disallowed characters are rejected."""
        with pytest.raises(ValidationError, match='can only contain'):
            validate_directory_name(name)

    def test_max_length_is_inclusive(self):
        """Test 255 characters pass and 256 fail."""
        assert validate_directory_name('a' * MAX_NAME_LENGTH)

        with pytest.raises(ValidationError, match='cannot exceed'):
            validate_directory_name('a' * (MAX_NAME_LENGTH + 1))


class TestValidateContentType:
    """Tests for content type allow-list."""

    @pytest.mark.parametrize('content_type', [
        'image/jpeg',
        'image/jpg',
        'image/png',
        'image/gif',
        'image/webp',
        'image/svg+xml',
    ])
    def test_allowed_types(self, content_type):
        """Test every allowed image type passes."""
        assert validate_content_type(content_type) == content_type

    def test_case_insensitive(self):
        """Test matching ignores case and normalizes to lowercase."""
        assert validate_content_type('Image/PNG') == 'image/png'

    @pytest.mark.parametrize('content_type', [
        'application/pdf',
        'text/plain',
        '',
    ])
    def test_rejected_types(self, content_type):
        """Test anything else is rejected."""
        with pytest.raises(ValidationError, match='not allowed'):
            validate_content_type(content_type)


class TestTags:
    """Tests for tag validation and normalization."""

    def test_normalize_trims_lowercases_deduplicates(self):
        """Test normalization of mixed input."""
        assert normalize_tags(['  CHARACTER  ', 'Hero', 'hero']) == [
            'character',
            'hero',
        ]

    def test_normalize_drops_empty(self):
        """Test blank tags are dropped."""
        assert normalize_tags(['', '   ', 'card']) == ['card']

    def test_twenty_tags_allowed(self):
        """Test the tag count limit is inclusive."""
        validate_tags([f'tag{index}' for index in range(20)])

    def test_twenty_one_tags_rejected(self):
        """Test more than 20 tags are rejected."""
        with pytest.raises(ValidationError, match='Maximum 20 tags'):
            validate_tags([f'tag{index}' for index in range(21)])

    def test_blank_tags_not_counted(self):
        """Test blank entries don't count against the limit."""
        validate_tags([f'tag{index}' for index in range(20)] + ['', '  '])

    def test_tag_length_boundary(self):
        """Test 50 characters pass and 51 fail."""
        validate_tags(['a' * 50])

        with pytest.raises(ValidationError, match='maximum length'):
            validate_tags(['a' * 51])

    def test_length_measured_after_trim(self):
        """Test surrounding whitespace doesn't count."""
        validate_tags([f'  {"a" * 50}  '])

    @pytest.mark.parametrize('tag', ['two words', 'semi;colon', 'ünï'])
    def test_invalid_characters_rejected(self, tag):
        """Test only lowercase letters, digits, hyphen and underscore."""
        with pytest.raises(ValidationError, match='invalid characters'):
            validate_tags([tag])

    def test_uppercase_accepted_before_normalization(self):
        """Test uppercase is fine since tags are lowercased."""
        validate_tags(['Hero-Card_1'])


def test_build_storage_key():
    """Test storage key layout."""
    assert build_storage_key(7, 'abc', 'logo.png') == (
        'projects/7/files/abc/logo.png'
    )


@pytest.mark.parametrize(('file_name', 'suffix', 'expected'), [
    ('image.jpg', ' (1)', 'image (1).jpg'),
    ('README', ' (2)', 'README (2)'),
    (f'{"a" * 251}.png', ' (1)', f'{"a" * 247} (1).png'),
    (f'{"a" * 255}', '_20240101120000', f'{"a" * 240}_20240101120000'),
])
def test_add_name_suffix(file_name, suffix, expected):
    """Test suffixes go before the extension and never overflow."""
    suffixed = add_name_suffix(file_name, suffix)

    assert suffixed == expected
    assert len(suffixed) <= MAX_NAME_LENGTH


def test_add_name_suffix_with_oversized_extension():
    """Test an extension alone near the limit is cut as a last resort."""
    suffixed = add_name_suffix(f'.{"p" * 254}', ' (1)')

    assert suffixed.startswith(' (1).ppp')
    assert len(suffixed) == MAX_NAME_LENGTH


def test_validate_path_length():
    """Test the path column limit is inclusive."""
    validate_path_length('a' * MAX_PATH_LENGTH)

    with pytest.raises(ValidationError, match='Path cannot exceed 2048'):
        validate_path_length('a' * (MAX_PATH_LENGTH + 1))
