"""Business logic for share links.

A link is alive while it is active, not expired and under its download
limit. Expiry is checked lazily on every access: an expired link is
deactivated the first time someone tries to use it. The periodic purge
only reclaims rows and is never relied on for access control.
"""

import dataclasses
import logging
import secrets
from datetime import timedelta
from typing import Any, final

from django.conf import settings
from django.contrib.auth.hashers import make_password
from django.core.exceptions import ValidationError
from django.db.models import F, Q, QuerySet
from django.utils import timezone

from server.apps.drive.exceptions import (
    InvalidSharePasswordError,
    NotFoundError,
    SharedFileMissingError,
    ShareLinkNotFoundError,
)
from server.apps.drive.logic.file_operations import (
    FileDownload,
    build_download,
    get_live_file,
)
from server.apps.drive.logic.pagination import Page, paginate
from server.apps.drive.models import File
from server.apps.sharing.models import ShareLink

# User type for Django's dynamic user model
_User = Any

logger = logging.getLogger(__name__)


@final
@dataclasses.dataclass(frozen=True, slots=True)
class ShareInfo:
    """What an anonymous visitor may learn about a shared file."""

    name: str
    size: int
    mime_type: str
    requires_password: bool


def create_share_link(  # noqa: WPS211
    user: _User,
    file_id: int,
    expires_in_days: int | None = None,
    password: str | None = None,
    max_downloads: int | None = None,
) -> str:
    """Create a share link for a live file of the user.

    Args:
        user: File owner.
        file_id: ID of file to share.
        expires_in_days: Lifetime in days, None for no expiry.
        password: Optional password protecting downloads.
        max_downloads: Optional limit on successful downloads.

    Returns:
        The link token.

    Raises:
        ValidationError: If lifetime or download limit is not positive.
        NotFoundError: If file is missing, trashed or not owned.
    """
    if expires_in_days is not None and expires_in_days < 1:
        raise ValidationError('Expiry must be at least one day')
    if max_downloads is not None and max_downloads < 1:
        raise ValidationError('Download limit must be at least 1')

    file_instance = get_live_file(user, file_id)

    expires_at = None
    if expires_in_days is not None:
        expires_at = timezone.now() + timedelta(days=expires_in_days)

    share = ShareLink.objects.create(
        token=secrets.token_hex(settings.SHARING_TOKEN_BYTES),
        file=file_instance,
        owner=user,
        expires_at=expires_at,
        password=make_password(password) if password else '',
        max_downloads=max_downloads,
    )

    logger.info(
        'Share link created: ID=%d for file %d (expires: %s)',
        share.id,
        file_instance.id,
        expires_at,
    )
    return share.token


def _get_live_share(token: str) -> ShareLink:
    """Resolve a token to a usable link.

    Raises:
        ShareLinkNotFoundError: If the link is unknown, inactive, expired
            or used up.
    """
    share = ShareLink.objects.filter(token=token, is_active=True).first()
    if share is None:
        raise ShareLinkNotFoundError('Share link not found or has expired')

    if share.is_expired():
        ShareLink.objects.filter(pk=share.pk).update(is_active=False)
        logger.info('Share link expired, deactivated: ID=%d', share.id)
        raise ShareLinkNotFoundError('Share link not found or has expired')

    if share.is_download_limit_reached():
        raise ShareLinkNotFoundError('Share link not found or has expired')

    return share


def _get_shared_file(share: ShareLink) -> File:
    """Resolve the live file behind a link.

    Raises:
        SharedFileMissingError: If the file was deleted or is in trash.
    """
    file_instance = share.file
    if file_instance is None or file_instance.is_trashed:
        raise SharedFileMissingError('The linked file has been deleted')
    return file_instance


def get_share_info(token: str) -> ShareInfo:
    """Describe the file behind a share link without downloading it.

    Args:
        token: Share link token.

    Returns:
        ShareInfo for the shared file.

    Raises:
        ShareLinkNotFoundError: If the link is not usable.
        SharedFileMissingError: If the file was deleted or trashed.
    """
    share = _get_live_share(token)
    file_instance = _get_shared_file(share)

    return ShareInfo(
        name=file_instance.name,
        size=file_instance.size_bytes,
        mime_type=file_instance.mime_type,
        requires_password=share.requires_password,
    )


def download_shared_file(
    token: str,
    password: str | None = None,
) -> FileDownload:
    """Open the file behind a share link and count the download.

    Args:
        token: Share link token.
        password: Password, required when the link has one.

    Returns:
        FileDownload for the shared file.

    Raises:
        ShareLinkNotFoundError: If the link is not usable, including a
            limit reached by a concurrent download.
        SharedFileMissingError: If the file was deleted or trashed.
        InvalidSharePasswordError: If the password does not match.
        NotFoundError: If the content is missing from storage.
    """
    share = _get_live_share(token)
    file_instance = _get_shared_file(share)

    if not share.check_password(password):
        logger.warning('Invalid password for share link: ID=%d', share.id)
        raise InvalidSharePasswordError('Invalid password')

    download = build_download(file_instance)
    try:
        _record_download(share)
    except ShareLinkNotFoundError:
        download.content.close()
        raise

    logger.info(
        'Shared file downloaded: file %d via link %d',
        file_instance.id,
        share.id,
    )
    return download


def _record_download(share: ShareLink) -> None:
    """Increment the counter, refusing to go past ``max_downloads``."""
    under_limit = Q(max_downloads__isnull=True) | Q(
        download_count__lt=F('max_downloads'),
    )
    updated = ShareLink.objects.filter(
        under_limit,
        pk=share.pk,
        is_active=True,
    ).update(
        download_count=F('download_count') + 1,
        last_accessed_at=timezone.now(),
    )
    if updated == 0:
        raise ShareLinkNotFoundError('Share link not found or has expired')


def revoke_share_link(user: _User, share_id: int) -> None:
    """Delete one of the user's share links.

    Args:
        user: Link owner.
        share_id: ID of the link.

    Raises:
        NotFoundError: If no such link belongs to the user.
    """
    deleted, _ = ShareLink.objects.filter(pk=share_id, owner=user).delete()
    if not deleted:
        raise NotFoundError('Share link not found')

    logger.info('Share link revoked: ID=%d', share_id)


def list_share_links(
    user: _User,
    page: int = 1,
    limit: int | None = None,
) -> Page[ShareLink]:
    """List the user's share links, newest first.

    Orphaned links are dropped from the page after slicing, while
    ``total`` and ``total_pages`` still count them. A page may therefore
    hold fewer items than the limit.

    Args:
        user: Link owner.
        page: 1-based page number.
        limit: Page size.

    Returns:
        Page of share links with their files loaded.
    """
    shares = ShareLink.objects.filter(owner=user).select_related('file')
    result = paginate(shares.order_by('-created_at', '-id'), page, limit)

    return dataclasses.replace(
        result,
        items=[share for share in result.items if share.file_id is not None],
    )


def expired_share_links() -> QuerySet[ShareLink]:
    """Links whose expiry has passed, active or not."""
    return ShareLink.objects.filter(
        expires_at__isnull=False,
        expires_at__lte=timezone.now(),
    )


def purge_expired_share_links() -> int:
    """Delete links whose expiry has passed.

    Returns:
        Number of links deleted.
    """
    deleted, _ = expired_share_links().delete()

    logger.info('Purged %d expired share links', deleted)
    return deleted
