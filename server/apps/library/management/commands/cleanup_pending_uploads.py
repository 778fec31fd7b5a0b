"""Management command to purge stale pending uploads."""

import datetime as dt
import logging
import time
from typing import Any, Final

from django.conf import settings
from django.core.management.base import BaseCommand

from server.apps.library.logic.cleanup_operations import (
    get_pending_upload_timeout,
    purge_stale_uploads,
)

_DEFAULT_BATCH_SIZE: Final = 1000
_DEFAULT_INTERVAL_SECONDS: Final = 3600

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    """Delete pending uploads that were never confirmed."""

    help = 'Purge pending uploads older than the configured timeout (24h)'

    def add_arguments(self, parser: Any) -> None:
        """Add command line arguments.

        Args:
            parser: Argument parser.
        """
        batch_size = getattr(
            settings,
            'LIBRARY_REAPER_BATCH_SIZE',
            _DEFAULT_BATCH_SIZE,
        )
        interval = getattr(
            settings,
            'LIBRARY_REAPER_INTERVAL_SECONDS',
            _DEFAULT_INTERVAL_SECONDS,
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be purged without deleting',
        )
        parser.add_argument(
            '--batch-size',
            type=int,
            default=batch_size,
            help=f'Max uploads per sweep (default: {batch_size})',
        )
        parser.add_argument(
            '--loop',
            action='store_true',
            help='Keep sweeping on a fixed interval until interrupted',
        )
        parser.add_argument(
            '--interval',
            type=int,
            default=interval,
            help=f'Seconds between sweeps with --loop (default: {interval})',
        )

    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the cleanup command.

        Args:
            args: Positional arguments (unused).
            options: Command options.
        """
        timeout = get_pending_upload_timeout()

        if not options['loop']:
            self._sweep(timeout, options['batch_size'], options['dry_run'])
            return

        self.stdout.write(
            f'Sweeping every {options["interval"]} seconds, '
            'press Ctrl+C to stop',
        )
        try:
            while True:  # noqa: WPS457
                try:
                    self._sweep(
                        timeout,
                        options['batch_size'],
                        options['dry_run'],
                    )
                except Exception:
                    # Logged; the next sweep runs on schedule
                    logger.exception('Pending upload sweep crashed')
                time.sleep(options['interval'])
        except KeyboardInterrupt:
            self.stdout.write('Stopped')

    def _sweep(
        self,
        timeout: dt.timedelta,
        batch_size: int,
        dry_run: bool,
    ) -> None:
        self.stdout.write(
            f'Looking for pending uploads older than {timeout}',
        )
        result = purge_stale_uploads(
            timeout=timeout,
            batch_size=batch_size,
            dry_run=dry_run,
        )

        if dry_run:
            self.stdout.write(
                self.style.SUCCESS(
                    f'Would purge {result.purged} pending uploads',
                ),
            )
        else:
            self.stdout.write(
                self.style.SUCCESS(
                    f'Purged {result.purged} pending uploads, '
                    f'{result.failed} failed',
                ),
            )
