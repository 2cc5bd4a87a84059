"""Database models for drive app."""

from pathlib import Path
from typing import Any, ClassVar, Final, final

from typing_extensions import override

from django.conf import settings
from django.db import models

# Constants for field max lengths
_NAME_MAX_LENGTH: Final = 255
_MIME_TYPE_MAX_LENGTH: Final = 255
_STORAGE_KEY_MAX_LENGTH: Final = 512
_SHARE_TOKEN_MAX_LENGTH: Final = 128

# Extension groups for file type categories
_IMAGE_EXTENSIONS: Final = frozenset(('jpg', 'jpeg', 'png', 'gif', 'bmp', 'webp'))
_DOCUMENT_EXTENSIONS: Final = frozenset(('pdf', 'doc', 'docx', 'txt', 'rtf'))
_SPREADSHEET_EXTENSIONS: Final = frozenset(('xls', 'xlsx', 'csv'))
_ARCHIVE_EXTENSIONS: Final = frozenset(('zip', 'rar'))


class ItemType(models.TextChoices):
    """Kind of item handled by hierarchy and trash operations."""

    FILE = 'file', 'File'
    FOLDER = 'folder', 'Folder'


class LiveManager(models.Manager[Any]):
    """Default manager that hides trashed rows."""

    @override
    def get_queryset(self) -> models.QuerySet[Any]:
        """Exclude trashed items."""
        return super().get_queryset().filter(is_trashed=False)


@final
class Folder(models.Model):
    """Folder in a user's drive.

    Folders form a tree through ``parent``. The reference is weak: it is
    resolved by id at read time and may point at a folder that no longer
    exists (e.g. a trashed child whose parent was deleted).

    ``path`` caches the ancestor names at the time the folder was last
    saved. It is a display hint only and goes stale when an ancestor is
    renamed or moved; hierarchy logic always walks ``parent_id``.
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='folders',
        db_index=True,
    )

    name = models.CharField(max_length=_NAME_MAX_LENGTH)

    parent = models.ForeignKey(
        'self',
        on_delete=models.DO_NOTHING,
        db_constraint=False,
        null=True,
        blank=True,
        related_name='children',
        help_text='Containing folder, empty for root',
    )

    path = models.TextField(
        blank=True,
        default='',
        help_text='Materialized ancestor names, e.g. "docs/reports"',
    )

    is_trashed = models.BooleanField(default=False)
    trashed_at = models.DateTimeField(null=True, blank=True)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    modified_at = models.DateTimeField(auto_now=True)

    objects = LiveManager()
    all_objects = models.Manager()

    class Meta:
        """Model metadata."""

        verbose_name = 'Folder'  # type: ignore[mutable-override]
        verbose_name_plural = 'Folders'  # type: ignore[mutable-override]
        ordering: ClassVar[list[str]] = ['-created_at']

        indexes: ClassVar[list[models.Index]] = [
            models.Index(
                fields=['user', 'is_trashed', '-created_at'],
                name='folders_user_recent_idx',
            ),
            models.Index(
                fields=['user', 'parent'],
                name='folders_user_parent_idx',
            ),
        ]

        constraints: ClassVar[list[models.BaseConstraint]] = [
            # Live sibling folders must have distinct names.
            # Root rows need their own constraint: NULL parents never clash.
            models.UniqueConstraint(
                fields=['user', 'parent', 'name'],
                condition=models.Q(is_trashed=False, parent__isnull=False),
                name='folders_user_parent_name_unique',
            ),
            models.UniqueConstraint(
                fields=['user', 'name'],
                condition=models.Q(is_trashed=False, parent__isnull=True),
                name='folders_user_root_name_unique',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.user_id}:{self.full_path}'

    @override
    def save(self, *args: Any, **kwargs: Any) -> None:
        """Recompute materialized path from the parent before saving."""
        self.path = self._build_path()
        update_fields = kwargs.get('update_fields')
        if update_fields is not None:
            kwargs['update_fields'] = {*update_fields, 'path'}
        super().save(*args, **kwargs)

    @property
    def full_path(self) -> str:
        """Materialized path including this folder's own name.

        Example: path 'docs/reports', name '2024' -> 'docs/reports/2024'
        """
        if self.path:
            return f'{self.path}/{self.name}'
        return self.name

    def _build_path(self) -> str:
        if self.parent_id is None:
            return ''
        parent = Folder.all_objects.filter(pk=self.parent_id).first()
        if parent is None:
            return ''
        return parent.full_path


@final
class File(models.Model):
    """File metadata; the content lives in the byte store.

    ``file`` holds the byte-store key (``{user_id}/{random}.ext``).
    ``name`` is the display name used for uniqueness, ``original_name``
    is the name the file was uploaded with and never changes.
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='files',
        db_index=True,
    )

    name = models.CharField(max_length=_NAME_MAX_LENGTH)

    original_name = models.CharField(
        max_length=_NAME_MAX_LENGTH,
        help_text='Name at upload time',
    )

    description = models.TextField(blank=True, default='')

    # upload_to='' means we control the full key
    file = models.FileField(
        upload_to='',
        max_length=_STORAGE_KEY_MAX_LENGTH,
        help_text='Byte-store key: {user_id}/{random}.ext',
    )

    size_bytes = models.BigIntegerField(help_text='File size in bytes')

    mime_type = models.CharField(max_length=_MIME_TYPE_MAX_LENGTH)

    folder = models.ForeignKey(
        Folder,
        on_delete=models.DO_NOTHING,
        db_constraint=False,
        null=True,
        blank=True,
        related_name='files',
        help_text='Containing folder, empty for root',
    )

    is_trashed = models.BooleanField(default=False)
    trashed_at = models.DateTimeField(null=True, blank=True)

    # Legacy single-token public sharing
    is_public = models.BooleanField(default=False)
    share_token = models.CharField(
        max_length=_SHARE_TOKEN_MAX_LENGTH,
        unique=True,
        null=True,
        blank=True,
    )

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    modified_at = models.DateTimeField(auto_now=True)

    objects = LiveManager()
    all_objects = models.Manager()

    class Meta:
        """Model metadata."""

        verbose_name = 'File'  # type: ignore[mutable-override]
        verbose_name_plural = 'Files'  # type: ignore[mutable-override]
        ordering: ClassVar[list[str]] = ['-created_at']

        indexes: ClassVar[list[models.Index]] = [
            # Optimize directory listing queries
            models.Index(
                fields=['user', 'is_trashed', '-created_at'],
                name='files_user_recent_idx',
            ),
            models.Index(
                fields=['user', 'folder'],
                name='files_user_folder_idx',
            ),
        ]

        constraints: ClassVar[list[models.BaseConstraint]] = [
            models.UniqueConstraint(
                fields=['user', 'folder', 'name'],
                condition=models.Q(is_trashed=False, folder__isnull=False),
                name='files_user_folder_name_unique',
            ),
            models.UniqueConstraint(
                fields=['user', 'name'],
                condition=models.Q(is_trashed=False, folder__isnull=True),
                name='files_user_root_name_unique',
            ),
            models.CheckConstraint(
                condition=models.Q(size_bytes__gte=0),
                name='files_size_bytes_non_negative',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.user_id}:{self.name}'

    def get_extension(self) -> str:
        """Extract file extension from the original name.

        Example: 'report.PDF' -> 'pdf'

        Returns:
            Extension without dot (lowercase).
        """
        extension = Path(self.original_name).suffix
        return extension.lstrip('.').lower()

    def get_file_type(self) -> str:
        """Coarse category used by clients to pick an icon or previewer.

        Returns:
            One of 'image', 'document', 'spreadsheet', 'archive', 'other'.
        """
        extension = self.get_extension()
        if extension in _IMAGE_EXTENSIONS:
            return 'image'
        if extension in _DOCUMENT_EXTENSIONS:
            return 'document'
        if extension in _SPREADSHEET_EXTENSIONS:
            return 'spreadsheet'
        if extension in _ARCHIVE_EXTENSIONS:
            return 'archive'
        return 'other'


# Default quota: 10 GB in bytes
_DEFAULT_QUOTA_BYTES: Final = 10 * 1024 * 1024 * 1024


@final
class UserQuota(models.Model):
    """Storage quota for a user.

    Tracks user's storage limit and current usage. Usage includes trashed
    files: their content stays in the byte store until purged.

    The limit is only enforced at upload time. A user already over quota
    can still read, trash and delete files.
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='quota',
        primary_key=True,
    )

    quota_bytes = models.BigIntegerField(
        default=_DEFAULT_QUOTA_BYTES,
        help_text='Storage quota limit in bytes',
    )

    used_bytes = models.BigIntegerField(
        default=0,
        help_text='Currently used storage in bytes',
    )

    class Meta:
        """Model metadata."""

        verbose_name = 'User Quota'  # type: ignore[mutable-override]
        verbose_name_plural = 'User Quotas'  # type: ignore[mutable-override]

        constraints: ClassVar[list[models.BaseConstraint]] = [
            models.CheckConstraint(
                condition=models.Q(quota_bytes__gte=0),
                name='quota_bytes_non_negative',
            ),
            models.CheckConstraint(
                condition=models.Q(used_bytes__gte=0),
                name='used_bytes_non_negative',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.user_id}: {self.used_bytes}/{self.quota_bytes}'

    def has_space_for(self, size_bytes: int) -> bool:
        """Check if there's enough space for the given size.

        Args:
            size_bytes: Size to check in bytes.

        Returns:
            True if there's enough space, False otherwise.
        """
        return self.used_bytes + size_bytes <= self.quota_bytes

    def available_bytes(self) -> int:
        """Get available storage space.

        Returns:
            Available bytes (never negative).
        """
        available = self.quota_bytes - self.used_bytes
        return max(0, available)
