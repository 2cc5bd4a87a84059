"""Drive and sharing settings."""

from server.settings.components import config

# Default storage limit for new users: 10 GB
DRIVE_DEFAULT_QUOTA_BYTES = config(
    'DRIVE_DEFAULT_QUOTA_BYTES',
    cast=int,
    default=10 * 1024 * 1024 * 1024,
)

# Trashed items older than this are purged by `cleanup_trash`
DRIVE_TRASH_RETENTION_DAYS = config(
    'DRIVE_TRASH_RETENTION_DAYS',
    cast=int,
    default=30,
)

# Listing pagination
DRIVE_PAGE_SIZE = config('DRIVE_PAGE_SIZE', cast=int, default=20)
DRIVE_PAGE_SIZE_MAX = config('DRIVE_PAGE_SIZE_MAX', cast=int, default=100)

# Random bytes per share link token (hex encoded, so twice as many chars)
SHARING_TOKEN_BYTES = config('SHARING_TOKEN_BYTES', cast=int, default=32)
