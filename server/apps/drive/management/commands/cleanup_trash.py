"""Management command to clean up old items from trash."""

from typing import Any, Final

from django.conf import settings
from django.core.management.base import BaseCommand

from server.apps.drive.logic.trash_operations import purge_expired_trash
from server.apps.drive.models import File

_DEFAULT_BATCH_SIZE: Final = 1000


class Command(BaseCommand):
    """Permanently delete items that outlived the trash retention window."""

    help = 'Clean up old files and folders from trash'

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
            '--batch-size',
            type=int,
            default=_DEFAULT_BATCH_SIZE,
            help=f'Max items of each type to process (default: {_DEFAULT_BATCH_SIZE})',
        )
        parser.add_argument(
            '--days',
            type=int,
            default=None,
            help='Retention window in days (default: DRIVE_TRASH_RETENTION_DAYS)',
        )

    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the cleanup command.

        Args:
            args: Positional arguments (unused).
            options: Command options.
        """
        dry_run = options['dry_run']
        retention_days = options['days']
        if retention_days is None:
            retention_days = settings.DRIVE_TRASH_RETENTION_DAYS

        self.stdout.write(
            f'Looking for items trashed more than {retention_days} days ago',
        )

        report = purge_expired_trash(
            retention_days=retention_days,
            batch_size=options['batch_size'],
            dry_run=dry_run,
        )

        if dry_run:
            for item in report.candidates:
                kind = 'file' if isinstance(item, File) else 'folder'
                self.stdout.write(
                    f'Would delete {kind}: {item.name} '
                    f'(user: {item.user.get_username()}, '
                    f'trashed: {item.trashed_at})',
                )
            self.stdout.write(
                self.style.SUCCESS(
                    f'Would purge {len(report.candidates)} items from trash',
                ),
            )
            return

        if report.failed:
            self.stderr.write(f'{report.failed} items could not be purged')
        self.stdout.write(
            self.style.SUCCESS(
                f'Purged {report.purged} items from trash, '
                f'{report.failed} failed',
            ),
        )
