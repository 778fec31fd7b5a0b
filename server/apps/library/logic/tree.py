"""Directory tree primitives: path materialization and ancestry walks.

Directories are stored as flat rows with parent pointers. The helpers here
load a project's rows into an in-memory arena keyed by ID and walk it with
visited sets, so corrupted (cyclic) data can never loop forever.
"""

import logging
from collections import deque
from dataclasses import dataclass
from typing import Final, Self

from server.apps.library.infrastructure.naming import (
    add_name_suffix,
    validate_path_length,
)
from server.apps.library.models import Directory, File, FileStatus

logger = logging.getLogger(__name__)

PATH_SEPARATOR: Final = '/'


def join_path(directory_path: str, name: str) -> str:
    """Join a directory path and a child name.

    Args:
        directory_path: Parent path, '' for the project root.
        name: Child name.

    Returns:
        Joined path.
    """
    if not directory_path:
        return name
    return f'{directory_path}{PATH_SEPARATOR}{name}'


def build_file_path(directory_path: str, file_name: str) -> str:
    """Join a file name onto its directory path and check the length.

    Raises:
        ValidationError: If the path would not fit the path column.
    """
    path = join_path(directory_path, file_name)
    validate_path_length(path)
    return path


@dataclass(frozen=True, slots=True)
class DirectoryNode:
    """Snapshot of one directory row."""

    id: int
    parent_id: int | None
    name: str


class DirectoryArena:
    """All directories of one project, keyed by ID."""

    def __init__(self, nodes: dict[int, DirectoryNode]) -> None:
        """Initialize arena from prepared nodes."""
        self.nodes = nodes
        self._children: dict[int | None, list[int]] = {}
        for node in nodes.values():
            self._children.setdefault(node.parent_id, []).append(node.id)

    @classmethod
    def load(cls, project_id: int) -> Self:
        """Load every directory of a project.

        Args:
            project_id: Project to load.

        Returns:
            Arena with the current rows.
        """
        rows = Directory.objects.filter(
            project_id=project_id,
        ).values_list('id', 'parent_id', 'name')
        return cls({
            dir_id: DirectoryNode(dir_id, parent_id, name)
            for dir_id, parent_id, name in rows
        })

    def path_of(self, directory_id: int | None) -> str:
        """Compute the full path of a directory.

        Walks parent pointers to the root, prepending names. A repeated
        or unknown ID stops the walk.

        Args:
            directory_id: Directory ID, None for the project root.

        Returns:
            Slash-joined path, '' for the root.
        """
        names: list[str] = []
        visited: set[int] = set()
        current = directory_id
        while current is not None and current not in visited:
            node = self.nodes.get(current)
            if node is None:
                break
            visited.add(current)
            names.append(node.name)
            current = node.parent_id

        if current is not None and current in visited:
            logger.error('Directory cycle detected at ID %s', current)

        return PATH_SEPARATOR.join(reversed(names))

    def is_descendant(self, candidate_id: int, ancestor_id: int) -> bool:
        """Check if a directory lies strictly below another one.

        Walks upward from ``candidate_id`` to the root.

        Args:
            candidate_id: Directory that may be a descendant.
            ancestor_id: Directory that may be an ancestor.

        Returns:
            True if ``ancestor_id`` is a proper ancestor of ``candidate_id``.
        """
        visited: set[int] = set()
        node = self.nodes.get(candidate_id)
        current = node.parent_id if node else None
        while current is not None and current not in visited:
            if current == ancestor_id:
                return True
            visited.add(current)
            parent = self.nodes.get(current)
            current = parent.parent_id if parent else None
        return False

    def subtree_ids(self, root_id: int) -> list[int]:
        """Collect a directory and all its descendants breadth first.

        Args:
            root_id: Top of the subtree.

        Returns:
            Directory IDs, starting with ``root_id``.
        """
        collected: list[int] = []
        visited: set[int] = set()
        queue = deque([root_id])
        while queue:
            current = queue.popleft()
            if current in visited:
                continue
            visited.add(current)
            collected.append(current)
            queue.extend(self._children.get(current, ()))
        return collected


def directory_path(project_id: int, directory_id: int | None) -> str:
    """Compute the full path of a directory from the database.

    Args:
        project_id: Owning project.
        directory_id: Directory ID, None for the project root.

    Returns:
        Slash-joined path, '' for the root.
    """
    if directory_id is None:
        return ''
    return DirectoryArena.load(project_id).path_of(directory_id)


def rewrite_file_paths(project_id: int, root_id: int) -> int:
    """Recompute the path of every file under a directory subtree.

    Must run inside the transaction that renamed or moved the directory.
    Pending files are rewritten too, so every record keeps a path that
    matches its directory. Nothing is written if any new path is too long.

    Args:
        project_id: Owning project.
        root_id: Directory whose subtree changed.

    Returns:
        Number of file records updated.

    Raises:
        ValidationError: If a new path exceeds the path column.
    """
    arena = DirectoryArena.load(project_id)
    directory_ids = arena.subtree_ids(root_id)

    files = list(
        File.objects.filter(
            project_id=project_id,
            directory_id__in=directory_ids,
        ).only('id', 'directory_id', 'file_name', 'path'),
    )

    changed = []
    for file_record in files:
        new_path = build_file_path(
            arena.path_of(file_record.directory_id),
            file_record.file_name,
        )
        if new_path != file_record.path:
            file_record.path = new_path
            changed.append(file_record)

    if changed:
        File.objects.bulk_update(changed, ['path'])

    logger.debug(
        'Rewrote %d file paths under directory %s',
        len(changed),
        root_id,
    )
    return len(changed)


def confirmed_path_taken(
    project_id: int,
    path: str,
    exclude_id: object | None = None,
) -> bool:
    """Check if a confirmed file occupies a path.

    Args:
        project_id: Owning project.
        path: Full file path.
        exclude_id: File ID to ignore, e.g. the file being renamed.

    Returns:
        True if the path is taken.
    """
    query = File.objects.filter(
        project_id=project_id,
        path=path,
        status=FileStatus.CONFIRMED,
    )
    if exclude_id is not None:
        query = query.exclude(pk=exclude_id)
    return query.exists()


def resolve_unique_file_name(
    project_id: int,
    directory_path: str,
    file_name: str,
    exclude_id: object | None = None,
) -> str:
    """Find a file name that no confirmed file uses in a directory.

    Appends `` (1)``, `` (2)`` and so on before the extension until the
    path is free: ``image.jpg`` becomes ``image (1).jpg``. Long names are
    shortened to keep room for the counter.

    Args:
        project_id: Owning project.
        directory_path: Path of the destination directory.
        file_name: Preferred file name.
        exclude_id: File ID to ignore.

    Returns:
        A free file name.
    """
    candidate = file_name
    counter = 1
    while confirmed_path_taken(
        project_id,
        join_path(directory_path, candidate),
        exclude_id,
    ):
        candidate = add_name_suffix(file_name, f' ({counter})')
        counter += 1
    return candidate
