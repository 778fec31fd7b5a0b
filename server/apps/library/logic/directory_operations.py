"""Business logic for the project directory tree.

Every mutation runs in one transaction that first locks the project row,
so concurrent tree changes within a project are applied one at a time and
file paths are never exposed half rewritten.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from django.db import transaction
from django.db.models import Sum
from django.utils import timezone

from server.apps.library.exceptions import (
    DirectoryConflictError,
    DirectoryCycleError,
    NameConflictError,
)
from server.apps.library.infrastructure.naming import (
    add_name_suffix,
    validate_directory_name,
)
from server.apps.library.logic.quota_operations import (
    decrement_usage,
    get_quota_owner,
)
from server.apps.library.logic.tree import (
    PATH_SEPARATOR,
    DirectoryArena,
    build_file_path,
    confirmed_path_taken,
    directory_path,
    join_path,
    resolve_unique_file_name,
    rewrite_file_paths,
)
from server.apps.library.models import Directory, File, FileStatus
from server.apps.projects.logic.authorization import (
    ensure_can_delete_resources,
    ensure_can_modify_resources,
    has_project_access,
)
from server.apps.projects.models import Project

# User type for Django's dynamic user model
_User = Any

# Suffix appended to colliding file names during a merge
_MERGE_TIMESTAMP_FORMAT = '%Y%m%d%H%M%S'

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DirectoryContents:
    """A directory with its direct children.

    ``directory`` is None for the project root.
    """

    directory: Directory | None
    path: str
    directories: list[Directory] = field(default_factory=list)
    files: list[File] = field(default_factory=list)


def _lock_project(project_id: int) -> Project:
    """Lock the project row for the rest of the transaction."""
    return Project.objects.select_for_update().get(pk=project_id)


def _get_directory(directory_id: int) -> Directory:
    return Directory.objects.select_related('project').get(pk=directory_id)


def _get_project_directory(project_id: int, directory_id: int) -> Directory:
    """Get a directory that must belong to the given project.

    Raises:
        Directory.DoesNotExist: If missing or in another project.
    """
    return Directory.objects.get(pk=directory_id, project_id=project_id)


def _find_sibling(
    project_id: int,
    parent_id: int | None,
    name: str,
    exclude_id: int | None = None,
) -> Directory | None:
    query = Directory.objects.filter(
        project_id=project_id,
        parent_id=parent_id,
        name=name,
    )
    if exclude_id is not None:
        query = query.exclude(pk=exclude_id)
    return query.first()


def create_directory(
    user: _User,
    project: Project,
    name: str,
    parent_id: int | None = None,
) -> Directory:
    """Create a directory.

    Args:
        user: Acting user.
        project: Project to create the directory in.
        name: Directory name.
        parent_id: Parent directory ID, None for the project root.

    Returns:
        Created Directory.

    Raises:
        PermissionDenied: If the user cannot modify the project.
        ValidationError: If the name is invalid.
        Directory.DoesNotExist: If the parent is not in the project.
        NameConflictError: If a sibling already has the name.
    """
    ensure_can_modify_resources(user, project)
    name = validate_directory_name(name)

    with transaction.atomic():
        _lock_project(project.pk)

        if parent_id is not None:
            _get_project_directory(project.pk, parent_id)

        if _find_sibling(project.pk, parent_id, name):
            raise NameConflictError(
                f"A directory named '{name}' already exists in this location",
            )

        directory = Directory.objects.create(
            project=project,
            parent_id=parent_id,
            name=name,
        )

    logger.info(
        'Directory created: %s (ID: %d) in project %d by user %s',
        name,
        directory.pk,
        project.pk,
        user.pk,
    )
    return directory


def rename_directory(
    user: _User,
    directory_id: int,
    new_name: str,
) -> Directory:
    """Rename a directory and rewrite the paths of files below it.

    Args:
        user: Acting user.
        directory_id: Directory to rename.
        new_name: New directory name.

    Returns:
        Updated Directory.

    Raises:
        Directory.DoesNotExist: If the directory doesn't exist.
        PermissionDenied: If the user cannot modify the project.
        ValidationError: If the name is invalid or a file path
            below would get too long.
        NameConflictError: If a sibling already has the name.
    """
    directory = _get_directory(directory_id)
    ensure_can_modify_resources(user, directory.project)
    new_name = validate_directory_name(new_name)

    with transaction.atomic():
        _lock_project(directory.project_id)
        directory.refresh_from_db()

        if directory.name == new_name:
            return directory

        if _find_sibling(
            directory.project_id,
            directory.parent_id,
            new_name,
            exclude_id=directory.pk,
        ):
            raise NameConflictError(
                f"A directory named '{new_name}' already exists "
                'in this location',
            )

        old_name = directory.name
        directory.name = new_name
        directory.save(update_fields=['name', 'updated_at'])
        rewritten = rewrite_file_paths(directory.project_id, directory.pk)

    logger.info(
        'Directory renamed: %s -> %s (ID: %d), %d file paths updated',
        old_name,
        new_name,
        directory.pk,
        rewritten,
    )
    return directory


def move_directory(
    user: _User,
    directory_id: int,
    new_parent_id: int | None = None,
    merge: bool = False,
) -> Directory:
    """Move a directory under a new parent.

    When the destination already has a directory with the same name the
    move fails with ``DirectoryConflictError``, unless ``merge`` is set.
    Merging moves the source's content into the existing directory and
    deletes the source.

    Args:
        user: Acting user.
        directory_id: Directory to move.
        new_parent_id: New parent ID, None for the project root.
        merge: Merge into a same-named directory at the destination.

    Returns:
        The moved directory, or the merge target when merged.

    Raises:
        Directory.DoesNotExist: If either directory doesn't exist.
        PermissionDenied: If the user cannot modify the project.
        DirectoryCycleError: If the destination is the directory itself
            or one of its descendants.
        DirectoryConflictError: If a same-named directory exists at the
            destination and ``merge`` is False.
        ValidationError: If a file path below would get too long.
    """
    directory = _get_directory(directory_id)
    ensure_can_modify_resources(user, directory.project)

    if new_parent_id == directory.pk:
        raise DirectoryCycleError('Cannot move a directory into itself')

    with transaction.atomic():
        _lock_project(directory.project_id)
        directory.refresh_from_db()

        if new_parent_id is not None:
            _get_project_directory(directory.project_id, new_parent_id)
            arena = DirectoryArena.load(directory.project_id)
            if arena.is_descendant(new_parent_id, directory.pk):
                raise DirectoryCycleError(
                    'Cannot move a directory into one of its subdirectories',
                )

        if directory.parent_id == new_parent_id:
            return directory

        conflicting = _find_sibling(
            directory.project_id,
            new_parent_id,
            directory.name,
            exclude_id=directory.pk,
        )
        if conflicting is not None:
            if not merge:
                raise DirectoryConflictError(directory, conflicting)
            _merge_directories(
                directory,
                conflicting,
                timezone.now().strftime(_MERGE_TIMESTAMP_FORMAT),
            )
            logger.info(
                'Directory merged: %d into %d by user %s',
                directory_id,
                conflicting.pk,
                user.pk,
            )
            conflicting.refresh_from_db()
            return conflicting

        directory.parent_id = new_parent_id
        directory.save(update_fields=['parent', 'updated_at'])
        rewritten = rewrite_file_paths(directory.project_id, directory.pk)

    logger.info(
        'Directory moved: %d under %s, %d file paths updated',
        directory.pk,
        new_parent_id,
        rewritten,
    )
    return directory


def _merge_directories(
    source: Directory,
    target: Directory,
    timestamp: str,
) -> None:
    """Merge the content of ``source`` into ``target`` and delete source.

    Subdirectories with a same-named counterpart in the target are merged
    recursively; the others are reparented. A nested merge can land
    content back in ``source`` when the target is one of its ancestors,
    so children are re-read until none are left and files are moved
    last. Confirmed files whose name is taken in the target get a
    timestamp suffix before their extension. Must run inside the
    caller's transaction.
    """
    while True:  # noqa: WPS457
        child = source.children.order_by('pk').first()
        if child is None:
            break
        counterpart = _find_sibling(target.project_id, target.pk, child.name)
        if counterpart is not None:
            _merge_directories(child, counterpart, timestamp)
        else:
            child.parent = target
            child.save(update_fields=['parent', 'updated_at'])
            rewrite_file_paths(target.project_id, child.pk)

    target_path = directory_path(target.project_id, target.pk)

    for file_record in File.objects.filter(directory=source):
        file_name = file_record.file_name
        if file_record.is_confirmed and confirmed_path_taken(
            target.project_id,
            join_path(target_path, file_name),
            exclude_id=file_record.pk,
        ):
            file_name = resolve_unique_file_name(
                target.project_id,
                target_path,
                add_name_suffix(file_name, f'_{timestamp}'),
                exclude_id=file_record.pk,
            )
            logger.info(
                'Merge renamed file %s: %s -> %s',
                file_record.pk,
                file_record.file_name,
                file_name,
            )

        file_record.directory = target
        file_record.file_name = file_name
        file_record.path = build_file_path(target_path, file_name)
        file_record.save(
            update_fields=['directory', 'file_name', 'path', 'modified_at'],
        )

    source.delete()


def delete_directory(user: _User, directory_id: int) -> bool:
    """Delete a directory, its descendants and every file they contain.

    File blobs are removed best-effort by the ``post_delete`` signal.
    Confirmed file sizes are released from the owner's quota.

    Args:
        user: Acting user.
        directory_id: Directory to delete.

    Returns:
        True if deleted, False if the directory was already gone.

    Raises:
        PermissionDenied: If the user is not the project owner.
    """
    try:
        directory = _get_directory(directory_id)
    except Directory.DoesNotExist:
        logger.info('Directory already deleted: ID=%d', directory_id)
        return False

    ensure_can_delete_resources(user, directory.project)

    with transaction.atomic():
        project = _lock_project(directory.project_id)
        arena = DirectoryArena.load(project.pk)
        if directory_id not in arena.nodes:
            return False

        subtree_ids = arena.subtree_ids(directory_id)
        files = File.objects.filter(directory_id__in=subtree_ids)
        released_bytes = files.filter(
            status=FileStatus.CONFIRMED,
        ).aggregate(total=Sum('size_bytes'))['total'] or 0

        deleted_files = files.count()
        files.delete()
        Directory.objects.filter(pk=directory_id).delete()

        if released_bytes:
            decrement_usage(get_quota_owner(project), released_bytes)

    logger.info(
        'Directory deleted: ID=%d with %d subdirectories by user %s '
        '(%d files, %d bytes released)',
        directory_id,
        len(subtree_ids) - 1,
        user.pk,
        deleted_files,
        released_bytes,
    )
    return True


def list_directories(user: _User, project: Project) -> list[Directory]:
    """List all directories of a project alphabetically.

    Returns:
        Directories, empty if the user has no access.
    """
    if not has_project_access(user, project):
        return []
    return list(Directory.objects.filter(project=project).order_by('name'))


def _build_contents(
    project: Project,
    directory: Directory | None,
) -> DirectoryContents:
    directory_id = directory.pk if directory else None
    return DirectoryContents(
        directory=directory,
        path=directory_path(project.pk, directory_id),
        directories=list(
            Directory.objects.filter(
                project=project,
                parent_id=directory_id,
            ).order_by('name'),
        ),
        files=list(
            File.objects.filter(
                project=project,
                directory_id=directory_id,
                status=FileStatus.CONFIRMED,
            ).prefetch_related('tags').order_by('-uploaded_at'),
        ),
    )


def get_directory_contents(
    user: _User,
    project: Project,
    directory_id: int,
) -> DirectoryContents | None:
    """Get a directory with its child directories and confirmed files.

    Args:
        user: Acting user.
        project: Project the directory belongs to.
        directory_id: Directory to read.

    Returns:
        Contents, or None if missing or the user has no access.
    """
    if not has_project_access(user, project):
        return None

    directory = Directory.objects.filter(
        pk=directory_id,
        project=project,
    ).first()
    if directory is None:
        return None
    return _build_contents(project, directory)


def get_root_contents(
    user: _User,
    project: Project,
) -> DirectoryContents | None:
    """Get the root-level directories and files of a project."""
    if not has_project_access(user, project):
        return None
    return _build_contents(project, None)


def get_directory_by_path(
    user: _User,
    project: Project,
    path: str,
) -> DirectoryContents | None:
    """Resolve a slash-separated path to a directory's contents.

    Args:
        user: Acting user.
        project: Project to search.
        path: Path such as ``Assets/Icons``; empty means the root.

    Returns:
        Contents, or None if any segment is missing or the user has no
        access.
    """
    if not has_project_access(user, project):
        return None

    segments = [
        segment.strip()
        for segment in (path or '').split(PATH_SEPARATOR)
        if segment.strip()
    ]

    directory: Directory | None = None
    for segment in segments:
        directory = _find_sibling(
            project.pk,
            directory.pk if directory else None,
            segment,
        )
        if directory is None:
            return None

    return _build_contents(project, directory)


def get_directory_path(
    user: _User,
    project: Project,
    directory_id: int,
) -> str | None:
    """Get the full path of a directory.

    Returns:
        Slash-joined path, or None if missing or the user has no access.
    """
    if not has_project_access(user, project):
        return None
    if not Directory.objects.filter(pk=directory_id, project=project).exists():
        return None
    return directory_path(project.pk, directory_id)
