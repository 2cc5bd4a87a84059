"""Management command to delete expired share links."""

from typing import Any

from django.core.management.base import BaseCommand

from server.apps.sharing.logic.share_operations import (
    expired_share_links,
    purge_expired_share_links,
)


class Command(BaseCommand):
    """Delete share links whose expiry has passed."""

    help = 'Delete expired share links'

    def add_arguments(self, parser: Any) -> None:
        """Add command line arguments.

        Args:
            parser: Argument parser.
        """
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show how many links would be deleted without deleting',
        )

    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the purge command.

        Args:
            args: Positional arguments (unused).
            options: Command options.
        """
        if options['dry_run']:
            expired = expired_share_links().count()
            self.stdout.write(
                self.style.SUCCESS(f'Would purge {expired} expired share links'),
            )
            return

        deleted = purge_expired_share_links()
        self.stdout.write(
            self.style.SUCCESS(f'Purged {deleted} expired share links'),
        )
