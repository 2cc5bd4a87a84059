"""Business logic for storage quota operations.

The quota counter is the one piece of per-user state shared by every
concurrent upload and delete, so each mutation is a single ``UPDATE``
with an ``F()`` expression rather than a read-modify-write.
"""

import logging
from typing import Any, TypedDict

from django.conf import settings
from django.db import transaction
from django.db.models import F, Sum, Value  # noqa: WPS347
from django.db.models.functions import Greatest

from server.apps.drive.exceptions import QuotaExceededError
from server.apps.drive.models import File, UserQuota

# User type for Django's dynamic user model
_User = Any

# Field name constant to avoid string literal over-use
_USED_BYTES_FIELD = 'used_bytes'  # noqa: WPS226

logger = logging.getLogger(__name__)


class StorageInfo(TypedDict):
    """Quota snapshot returned alongside uploads and deletes."""

    used: int
    limit: int
    available: int
    percentage: float


def get_or_create_quota(user: _User) -> UserQuota:
    """Get or create quota for user (on-demand creation).

    Args:
        user: User to get quota for.

    Returns:
        UserQuota instance for the user.
    """
    quota, created = UserQuota.objects.get_or_create(
        user=user,
        defaults={'quota_bytes': settings.DRIVE_DEFAULT_QUOTA_BYTES},
    )
    if created:
        logger.info(
            'Created quota for user %s: %d bytes',
            user.pk,
            quota.quota_bytes,
        )
    return quota


def reserve(user: _User, size_bytes: int) -> bool:
    """Tell whether committing ``size_bytes`` would stay within the limit.

    Args:
        user: User to check quota for.
        size_bytes: Size of the upload in bytes.

    Returns:
        True if there is room for the upload.
    """
    return get_or_create_quota(user).has_space_for(size_bytes)


def check_quota(user: _User, size_bytes: int) -> None:
    """Check if user has enough quota for an upload.

    Creates quota on-demand if it doesn't exist.

    Args:
        user: User to check quota for.
        size_bytes: Size of the upload in bytes.

    Raises:
        QuotaExceededError: If upload would exceed quota.
    """
    quota = get_or_create_quota(user)

    if not quota.has_space_for(size_bytes):
        logger.warning(
            'Quota exceeded for user %s: need %d, have %d available',
            user.pk,
            size_bytes,
            quota.available_bytes(),
        )
        raise QuotaExceededError(
            quota_bytes=quota.quota_bytes,
            used_bytes=quota.used_bytes,
            required_bytes=size_bytes,
        )


def commit(user: _User, size_bytes: int, *, enforce_limit: bool = False) -> None:
    """Atomically increment user's storage usage.

    With ``enforce_limit`` the increment only applies while the result
    stays within the limit, so two racing uploads cannot both squeeze
    past it.

    Args:
        user: User to increment usage for.
        size_bytes: Bytes to add to usage.
        enforce_limit: Refuse the increment if it would exceed the limit.

    Raises:
        QuotaExceededError: If ``enforce_limit`` is set and there is no room.
    """
    get_or_create_quota(user)

    queryset = UserQuota.objects.filter(user=user)
    if enforce_limit:
        queryset = queryset.filter(
            used_bytes__lte=F('quota_bytes') - size_bytes,
        )

    updated = queryset.update(used_bytes=F(_USED_BYTES_FIELD) + size_bytes)
    if updated == 0:
        quota = UserQuota.objects.get(user=user)
        logger.warning(
            'Quota exceeded for user %s: need %d, have %d available',
            user.pk,
            size_bytes,
            quota.available_bytes(),
        )
        raise QuotaExceededError(
            quota_bytes=quota.quota_bytes,
            used_bytes=quota.used_bytes,
            required_bytes=size_bytes,
        )

    logger.debug(
        'Incremented usage for user %s by %d bytes',
        user.pk,
        size_bytes,
    )


def release(user: _User, size_bytes: int) -> None:
    """Atomically decrement user's storage usage.

    Prevents negative values by clamping to 0 inside the same UPDATE.

    Args:
        user: User to decrement usage for.
        size_bytes: Bytes to subtract from usage.
    """
    if size_bytes <= 0:
        return

    updated = UserQuota.objects.filter(user=user).update(
        used_bytes=Greatest(F(_USED_BYTES_FIELD) - size_bytes, Value(0)),
    )

    if updated == 0:
        # No quota exists, nothing to decrement
        logger.debug(
            'No quota exists for user %s, skipping decrement',
            user.pk,
        )
        return

    logger.debug(
        'Decremented usage for user %s by %d bytes',
        user.pk,
        size_bytes,
    )


def recalculate_usage(user: _User) -> int:
    """Recalculate user's storage usage from actual files.

    Reconciles the counter after failures or out-of-band cleanup.
    Includes files in trash since they still count against quota.

    Args:
        user: User to recalculate usage for.

    Returns:
        New calculated usage in bytes.
    """
    total = File.all_objects.filter(user=user).aggregate(
        total=Sum('size_bytes'),
    )['total'] or 0

    with transaction.atomic():
        quota = get_or_create_quota(user)
        old_usage = quota.used_bytes
        quota.used_bytes = total
        quota.save(update_fields=[_USED_BYTES_FIELD])

    logger.info(
        'Recalculated usage for user %s: %d -> %d bytes',
        user.pk,
        old_usage,
        total,
    )

    return total


def get_storage_info(user: _User) -> StorageInfo:
    """Build a quota snapshot for the user.

    Args:
        user: User to describe.

    Returns:
        Used and allotted bytes, available bytes and usage percentage
        (capped at 100).
    """
    quota = get_or_create_quota(user)
    quota.refresh_from_db()

    percentage = 0.0
    if quota.quota_bytes:
        percentage = round(quota.used_bytes / quota.quota_bytes * 100, 1)

    return StorageInfo(
        used=quota.used_bytes,
        limit=quota.quota_bytes,
        available=quota.available_bytes(),
        percentage=min(percentage, 100.0),
    )
