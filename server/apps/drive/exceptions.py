"""Exceptions for drive app.

Every failure the core raises derives from ``DriveError`` and carries a
stable ``code``, so callers can branch on the category without parsing
messages.
"""

from django.core.exceptions import ObjectDoesNotExist


class DriveError(Exception):
    """Base class for drive and sharing failures."""

    code = 'drive_error'


class NotFoundError(DriveError, ObjectDoesNotExist):
    """Referenced item is absent, not owned, or in the wrong state."""

    code = 'not_found'


class ConflictError(DriveError):
    """Operation collides with existing state."""

    code = 'conflict'


class NameConflictError(ConflictError):
    """A live sibling of the same type already holds the name."""

    code = 'name_conflict'

    def __init__(self, item_type: str, name: str) -> None:
        """Initialize NameConflictError.

        Args:
            item_type: 'file' or 'folder'.
            name: The colliding name.
        """
        self.item_type = item_type
        self.name = name
        super().__init__(
            f'{item_type.capitalize()} with name {name!r} already exists '
            'in this location',
        )


class FolderNotEmptyError(ConflictError):
    """Folder still has live children and cannot be deleted directly."""

    code = 'folder_not_empty'


class InvalidStateError(DriveError):
    """Operation is not valid for the item's current state."""

    code = 'invalid_state'


class QuotaExceededError(DriveError):
    """Raised when upload would exceed user's storage quota."""

    code = 'quota_exceeded'

    def __init__(
        self,
        quota_bytes: int,
        used_bytes: int,
        required_bytes: int,
    ) -> None:
        """Initialize QuotaExceededError.

        Args:
            quota_bytes: Total quota limit in bytes.
            used_bytes: Currently used bytes.
            required_bytes: Bytes needed for the operation.
        """
        self.quota_bytes = quota_bytes
        self.used_bytes = used_bytes
        self.required_bytes = required_bytes

        available = max(0, quota_bytes - used_bytes)
        super().__init__(
            f'Quota exceeded: need {required_bytes} bytes, '
            f'only {available} bytes available '
            f'(quota: {quota_bytes}, used: {used_bytes})',
        )


class ShareLinkNotFoundError(NotFoundError):
    """Share token is unknown, revoked, inactive or expired."""


class SharedFileMissingError(NotFoundError):
    """Share link is valid but its file has been deleted."""


class InvalidSharePasswordError(DriveError):
    """Supplied password does not match the share link's password."""

    code = 'unauthorized'
