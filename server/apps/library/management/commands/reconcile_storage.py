"""Management command to delete blobs no file record references."""

import datetime as dt
from typing import Any, Final

from django.core.management.base import BaseCommand

from server.apps.library.logic.cleanup_operations import (
    reconcile_orphaned_blobs,
)

_DEFAULT_MIN_AGE_HOURS: Final = 24


class Command(BaseCommand):
    """Remove orphaned blobs, e.g. old keys left behind by renames."""

    help = 'Delete stored blobs that no file record references'

    def add_arguments(self, parser: Any) -> None:
        """Add command line arguments.

        Args:
            parser: Argument parser.
        """
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be deleted without deleting',
        )
        parser.add_argument(
            '--min-age-hours',
            type=int,
            default=_DEFAULT_MIN_AGE_HOURS,
            help=(
                'Only consider blobs older than this '
                f'(default: {_DEFAULT_MIN_AGE_HOURS})'
            ),
        )

    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the reconcile command.

        Args:
            args: Positional arguments (unused).
            options: Command options.
        """
        dry_run = options['dry_run']
        min_age = dt.timedelta(hours=options['min_age_hours'])

        self.stdout.write(f'Looking for orphaned blobs older than {min_age}')
        orphaned = reconcile_orphaned_blobs(min_age=min_age, dry_run=dry_run)

        if dry_run:
            self.stdout.write(
                self.style.SUCCESS(f'Would delete {orphaned} orphaned blobs'),
            )
        else:
            self.stdout.write(
                self.style.SUCCESS(f'Deleted {orphaned} orphaned blobs'),
            )
