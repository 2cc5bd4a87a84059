"""Database models for sharing app."""

from datetime import datetime
from typing import ClassVar, Final, final

from typing_extensions import override

from django.conf import settings
from django.contrib.auth.hashers import check_password
from django.db import models
from django.utils import timezone

_TOKEN_MAX_LENGTH: Final = 128
_PASSWORD_MAX_LENGTH: Final = 128


@final
class ShareLink(models.Model):
    """Public capability link to one file.

    Anyone holding ``token`` can read the file's metadata and download
    it, subject to expiry, download limit and an optional password.

    ``file`` becomes empty when the file is permanently deleted. Such
    orphaned links stay in the table until revoked and resolve to
    "file deleted".
    """

    token = models.CharField(
        max_length=_TOKEN_MAX_LENGTH,
        unique=True,
        editable=False,
    )

    file = models.ForeignKey(
        'drive.File',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='share_links',
    )

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='share_links',
    )

    expires_at = models.DateTimeField(null=True, blank=True)

    # Salted hash from make_password, empty when unprotected
    password = models.CharField(
        max_length=_PASSWORD_MAX_LENGTH,
        blank=True,
        default='',
    )

    download_count = models.PositiveIntegerField(default=0)
    max_downloads = models.PositiveIntegerField(null=True, blank=True)

    is_active = models.BooleanField(default=True)
    last_accessed_at = models.DateTimeField(null=True, blank=True)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    modified_at = models.DateTimeField(auto_now=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'Share Link'  # type: ignore[mutable-override]
        verbose_name_plural = 'Share Links'  # type: ignore[mutable-override]
        ordering: ClassVar[list[str]] = ['-created_at']

        indexes: ClassVar[list[models.Index]] = [
            models.Index(
                fields=['owner', '-created_at'],
                name='share_links_owner_recent_idx',
            ),
            models.Index(
                fields=['expires_at'],
                name='share_links_expires_idx',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'ShareLink {self.pk} -> file {self.file_id}'

    @property
    def requires_password(self) -> bool:
        """Whether downloads must present a password."""
        return bool(self.password)

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check expiry against ``now`` (defaults to the current time).

        Returns:
            True once ``expires_at`` has passed. Links without expiry
            never expire.
        """
        if self.expires_at is None:
            return False
        return (now or timezone.now()) > self.expires_at

    def is_download_limit_reached(self) -> bool:
        """Check the download counter against ``max_downloads``.

        Returns:
            True if a limit is set and has been used up.
        """
        if self.max_downloads is None:
            return False
        return self.download_count >= self.max_downloads

    def check_password(self, raw_password: str | None) -> bool:
        """Verify a supplied password against the stored hash.

        Unprotected links accept any password, including none.

        Args:
            raw_password: Password supplied by the downloader.

        Returns:
            True if access is allowed.
        """
        if not self.password:
            return True
        return check_password(raw_password, self.password)
