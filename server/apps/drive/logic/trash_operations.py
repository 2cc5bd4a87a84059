"""Business logic for trash (soft delete) operations.

Items move Live -> Trashed -> Purged. Trashing and restoring a folder
cascade over its whole subtree. Trashing never touches quota: trashed
content still occupies storage until it is purged.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, final

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone

from server.apps.drive.exceptions import (
    InvalidStateError,
    NameConflictError,
    NotFoundError,
)
from server.apps.drive.logic import quota_operations
from server.apps.drive.logic.file_operations import (
    ensure_file_name_free,
    get_live_file,
    purge_file,
)
from server.apps.drive.logic.folder_operations import (
    ensure_folder_name_free,
    get_descendant_folder_ids,
    get_live_folder,
)
from server.apps.drive.logic.pagination import Page, paginate
from server.apps.drive.models import File, Folder, ItemType

# User type for Django's dynamic user model
_User = Any

_TRASH_FIELDS = ('is_trashed', 'trashed_at', 'modified_at')

logger = logging.getLogger(__name__)


@final
@dataclass(frozen=True, slots=True)
class PurgeResult:
    """Outcome of a permanent delete over several items."""

    files_deleted: int
    folders_deleted: int
    bytes_freed: int


@final
@dataclass(frozen=True, slots=True)
class TrashListing:
    """Trashed files and folders, paginated per type."""

    files: Page[File]
    folders: Page[Folder]
    total: int


def parse_item_type(item_type: str) -> ItemType:
    """Validate a client-supplied item type.

    Args:
        item_type: 'file' or 'folder'.

    Returns:
        Matching ItemType.

    Raises:
        ValidationError: For any other value.
    """
    try:
        return ItemType(item_type)
    except ValueError as error:
        raise ValidationError(
            'Invalid type. Must be "file" or "folder"',
        ) from error


def trash_item(user: _User, item_type: str, item_id: int) -> File | Folder:
    """Move a live file or folder to trash.

    Args:
        user: Item owner.
        item_type: 'file' or 'folder'.
        item_id: ID of the item.

    Returns:
        Trashed item.

    Raises:
        ValidationError: If item_type is unknown.
        NotFoundError: If item is missing or already trashed.
    """
    if parse_item_type(item_type) == ItemType.FILE:
        return soft_delete_file(user, item_id)
    return soft_delete_folder(user, item_id)


def soft_delete_file(user: _User, file_id: int) -> File:
    """Move file to trash (soft delete).

    Quota is NOT decremented - trash files count toward quota.

    Args:
        user: File owner.
        file_id: ID of file to soft delete.

    Returns:
        Updated File instance.

    Raises:
        NotFoundError: If file is missing or already trashed.
    """
    file_instance = get_live_file(user, file_id)

    file_instance.is_trashed = True
    file_instance.trashed_at = timezone.now()
    file_instance.save(update_fields=_TRASH_FIELDS)

    logger.info(
        'File moved to trash: %s (ID: %d)',
        file_instance.name,
        file_id,
    )
    return file_instance


def soft_delete_folder(user: _User, folder_id: int) -> Folder:
    """Move folder and its whole live subtree to trash.

    Every descendant gets the same ``trashed_at`` as the folder.

    Args:
        user: Folder owner.
        folder_id: ID of folder to soft delete.

    Returns:
        Updated Folder instance.

    Raises:
        NotFoundError: If folder is missing or already trashed.
    """
    folder = get_live_folder(user, folder_id)
    trashed_at = timezone.now()

    with transaction.atomic():
        descendant_ids = get_descendant_folder_ids(
            user,
            folder.id,
            is_trashed=False,
        )

        folder.is_trashed = True
        folder.trashed_at = trashed_at
        folder.save(update_fields=_TRASH_FIELDS)

        folders_trashed = Folder.objects.filter(
            user=user,
            pk__in=descendant_ids,
        ).update(is_trashed=True, trashed_at=trashed_at, modified_at=trashed_at)
        files_trashed = File.objects.filter(
            user=user,
            folder_id__in=[folder.id, *descendant_ids],
        ).update(is_trashed=True, trashed_at=trashed_at, modified_at=trashed_at)

    logger.info(
        'Folder moved to trash: %s (ID: %d, subfolders: %d, files: %d)',
        folder.name,
        folder_id,
        folders_trashed,
        files_trashed,
    )
    return folder


def restore_item(user: _User, item_type: str, item_id: int) -> File | Folder:
    """Restore a trashed file or folder.

    Args:
        user: Item owner.
        item_type: 'file' or 'folder'.
        item_id: ID of the item.

    Returns:
        Restored item.

    Raises:
        ValidationError: If item_type is unknown.
        NotFoundError: If item is not in trash.
        InvalidStateError: If its parent folder is missing or trashed.
        NameConflictError: If a live sibling now holds its name.
    """
    if parse_item_type(item_type) == ItemType.FILE:
        return restore_file(user, item_id)
    return restore_folder(user, item_id)


def _ensure_parent_live(user: _User, parent_id: int | None) -> None:
    if parent_id is None:
        return
    if not Folder.objects.filter(user=user, pk=parent_id).exists():
        raise InvalidStateError(
            'Cannot restore. Parent folder does not exist or is in trash',
        )


def _untrash(item: File | Folder, item_type: ItemType) -> None:
    """Flip one item back to live, mapping a name clash to a conflict."""
    trashed_at = item.trashed_at
    item.is_trashed = False
    item.trashed_at = None
    try:
        with transaction.atomic():
            item.save(update_fields=_TRASH_FIELDS)
    except IntegrityError as error:
        item.is_trashed = True
        item.trashed_at = trashed_at
        raise NameConflictError(item_type, item.name) from error


def restore_file(user: _User, file_id: int) -> File:
    """Restore file from trash into its original folder.

    Args:
        user: File owner.
        file_id: ID of file to restore.

    Returns:
        Updated File instance.

    Raises:
        NotFoundError: If file is not in trash.
        InvalidStateError: If its folder is missing or trashed.
        NameConflictError: If a live sibling now holds its name.
    """
    try:
        file_instance = File.all_objects.get(
            user=user,
            pk=file_id,
            is_trashed=True,
        )
    except File.DoesNotExist as error:
        raise NotFoundError('File not found in trash') from error

    _ensure_parent_live(user, file_instance.folder_id)
    ensure_file_name_free(user, file_instance.folder_id, file_instance.name)
    _untrash(file_instance, ItemType.FILE)

    logger.info(
        'File restored: %s (ID: %d)',
        file_instance.name,
        file_id,
    )
    return file_instance


def restore_folder(user: _User, folder_id: int) -> Folder:
    """Restore folder from trash together with its trashed subtree.

    Every trashed descendant is restored, including items that were
    trashed on their own before the folder was. A descendant that now
    clashes with a live sibling, or whose parent stays in trash, is
    logged and left in trash.

    Args:
        user: Folder owner.
        folder_id: ID of folder to restore.

    Returns:
        Updated Folder instance.

    Raises:
        NotFoundError: If folder is not in trash.
        InvalidStateError: If its parent is missing or trashed.
        NameConflictError: If a live sibling now holds its name.
    """
    try:
        folder = Folder.all_objects.get(user=user, pk=folder_id, is_trashed=True)
    except Folder.DoesNotExist as error:
        raise NotFoundError('Folder not found in trash') from error

    _ensure_parent_live(user, folder.parent_id)
    ensure_folder_name_free(user, folder.parent_id, folder.name)

    with transaction.atomic():
        _untrash(folder, ItemType.FOLDER)
        folders_restored, files_restored = _restore_descendants(user, folder)

    logger.info(
        'Folder restored: %s (ID: %d, subfolders: %d, files: %d)',
        folder.name,
        folder_id,
        folders_restored,
        files_restored,
    )
    return folder


def _restore_descendants(user: _User, folder: Folder) -> tuple[int, int]:
    descendant_ids = get_descendant_folder_ids(user, folder.id)
    descendants = Folder.all_objects.in_bulk(descendant_ids)

    live_ids = {folder.id}
    folders_restored = 0

    # Parents come before children, so a parent's outcome is known
    for descendant_id in descendant_ids:
        descendant = descendants.get(descendant_id)
        if descendant is None or descendant.parent_id not in live_ids:
            continue
        if not descendant.is_trashed:
            live_ids.add(descendant.id)
            continue
        if _restore_cascaded(user, descendant, ItemType.FOLDER):
            live_ids.add(descendant.id)
            folders_restored += 1

    files_restored = 0
    trashed_files = File.all_objects.filter(
        user=user,
        folder_id__in=live_ids,
        is_trashed=True,
    )
    for file_instance in trashed_files:
        if _restore_cascaded(user, file_instance, ItemType.FILE):
            files_restored += 1

    return folders_restored, files_restored


def _restore_cascaded(
    user: _User,
    item: File | Folder,
    item_type: ItemType,
) -> bool:
    """Restore one descendant; failures are logged, never raised."""
    try:
        if item_type == ItemType.FILE:
            ensure_file_name_free(user, item.folder_id, item.name)
        else:
            ensure_folder_name_free(user, item.parent_id, item.name)
        _untrash(item, item_type)
    except NameConflictError:
        logger.warning(
            'Skipping restore of %s %d: name %r is taken',
            item_type,
            item.id,
            item.name,
        )
        return False
    except DatabaseError:
        logger.exception('Failed to restore %s %d', item_type, item.id)
        return False
    return True


def permanent_delete_item(
    user: _User,
    item_type: str,
    item_id: int,
) -> PurgeResult:
    """Permanently delete a trashed file or folder.

    Args:
        user: Item owner.
        item_type: 'file' or 'folder'.
        item_id: ID of the item.

    Returns:
        Counts of purged items and bytes released from quota.

    Raises:
        ValidationError: If item_type is unknown.
        NotFoundError: If item is not in trash.
    """
    if parse_item_type(item_type) == ItemType.FILE:
        return permanent_delete_file(user, item_id)
    return permanent_delete_folder(user, item_id)


def permanent_delete_file(user: _User, file_id: int) -> PurgeResult:
    """Permanently delete file from trash.

    Removes the record, decrements quota and releases the content.
    A storage failure is logged and does not block the rest.

    Args:
        user: File owner.
        file_id: ID of file to permanently delete.

    Returns:
        PurgeResult for the single file.

    Raises:
        NotFoundError: If file is not in trash (live files must be
            trashed first).
    """
    try:
        file_instance = File.all_objects.get(
            user=user,
            pk=file_id,
            is_trashed=True,
        )
    except File.DoesNotExist as error:
        raise NotFoundError('File not found in trash') from error

    size_bytes = file_instance.size_bytes
    purge_file(file_instance)

    logger.info(
        'File permanently deleted: ID=%d, size: %d',
        file_id,
        size_bytes,
    )
    return PurgeResult(files_deleted=1, folders_deleted=0, bytes_freed=size_bytes)


def permanent_delete_folder(user: _User, folder_id: int) -> PurgeResult:
    """Permanently delete folder from trash with its trashed subtree.

    Each trashed descendant file is purged and released from quota
    individually; then trashed descendant folders and the folder itself
    are removed.

    Args:
        user: Folder owner.
        folder_id: ID of folder to permanently delete.

    Returns:
        Counts of purged items and bytes released from quota.

    Raises:
        NotFoundError: If folder is not in trash.
    """
    try:
        folder = Folder.all_objects.get(user=user, pk=folder_id, is_trashed=True)
    except Folder.DoesNotExist as error:
        raise NotFoundError('Folder not found in trash') from error

    descendant_ids = get_descendant_folder_ids(user, folder.id, is_trashed=True)
    folder_ids = [folder.id, *descendant_ids]

    files_deleted = 0
    bytes_freed = 0
    trashed_files = File.all_objects.filter(
        user=user,
        folder_id__in=folder_ids,
        is_trashed=True,
    )
    for file_instance in trashed_files:
        try:
            purge_file(file_instance)
        except DatabaseError:
            logger.exception('Failed to purge file: %d', file_instance.id)
            continue
        files_deleted += 1
        bytes_freed += file_instance.size_bytes

    folders_deleted, _ = Folder.all_objects.filter(
        user=user,
        pk__in=folder_ids,
        is_trashed=True,
    ).delete()

    logger.info(
        'Folder permanently deleted: ID=%d (folders: %d, files: %d)',
        folder_id,
        folders_deleted,
        files_deleted,
    )
    return PurgeResult(
        files_deleted=files_deleted,
        folders_deleted=folders_deleted,
        bytes_freed=bytes_freed,
    )


def list_trash(
    user: _User,
    page: int = 1,
    limit: int | None = None,
) -> TrashListing:
    """List user's trashed files and folders.

    Args:
        user: User whose trash to list.
        page: 1-based page number, applied to each type.
        limit: Page size, applied to each type.

    Returns:
        TrashListing with newest trashed items first.
    """
    files = File.all_objects.filter(user=user, is_trashed=True)
    folders = Folder.all_objects.filter(user=user, is_trashed=True)

    files_page = paginate(files.order_by('-trashed_at', '-id'), page, limit)
    folders_page = paginate(folders.order_by('-trashed_at', '-id'), page, limit)

    return TrashListing(
        files=files_page,
        folders=folders_page,
        total=files_page.total + folders_page.total,
    )


def empty_trash(user: _User) -> PurgeResult:
    """Permanently delete everything in user's trash.

    Usage is decremented once, by the total size of files whose content
    was actually released from storage.

    Args:
        user: User whose trash to empty.

    Returns:
        Counts of purged items and bytes freed.
    """
    trashed_files = list(File.all_objects.filter(user=user, is_trashed=True))

    files_deleted = 0
    bytes_freed = 0
    for file_instance in trashed_files:
        try:
            content_released = purge_file(file_instance, release_quota=False)
        except DatabaseError:
            logger.exception(
                'Failed to permanently delete file: %d',
                file_instance.id,
            )
            continue
        files_deleted += 1
        if content_released:
            bytes_freed += file_instance.size_bytes

    quota_operations.release(user, bytes_freed)

    # Folders carry no content
    folders_deleted, _ = Folder.all_objects.filter(
        user=user,
        is_trashed=True,
    ).delete()

    logger.info(
        'Trash emptied for user %s: %d files, %d folders, %d bytes freed',
        user.pk,
        files_deleted,
        folders_deleted,
        bytes_freed,
    )
    return PurgeResult(
        files_deleted=files_deleted,
        folders_deleted=folders_deleted,
        bytes_freed=bytes_freed,
    )


@final
@dataclass(frozen=True, slots=True)
class ExpiredTrashReport:
    """Outcome of a retention sweep over everyone's trash."""

    candidates: list[File | Folder]
    purged: int
    failed: int


def purge_expired_trash(
    retention_days: int | None = None,
    batch_size: int = 1000,
    dry_run: bool = False,
) -> ExpiredTrashReport:
    """Permanently delete items trashed longer than the retention window.

    Files are swept before folders. A folder already removed together
    with an expired ancestor is skipped.

    Args:
        retention_days: Days an item stays in trash, defaults to
            ``DRIVE_TRASH_RETENTION_DAYS``.
        batch_size: Max files and max folders to process.
        dry_run: Only collect candidates, delete nothing.

    Returns:
        ExpiredTrashReport with candidates and purge counts.
    """
    if retention_days is None:
        retention_days = settings.DRIVE_TRASH_RETENTION_DAYS
    cutoff = timezone.now() - timedelta(days=retention_days)

    expired_files = list(
        File.all_objects.filter(
            is_trashed=True,
            trashed_at__lte=cutoff,
        ).select_related('user').order_by('trashed_at', 'id')[:batch_size],
    )
    expired_folders = list(
        Folder.all_objects.filter(
            is_trashed=True,
            trashed_at__lte=cutoff,
        ).select_related('user').order_by('trashed_at', 'id')[:batch_size],
    )
    candidates: list[File | Folder] = [*expired_files, *expired_folders]

    if dry_run:
        return ExpiredTrashReport(candidates=candidates, purged=0, failed=0)

    purged = 0
    failed = 0
    for file_instance in expired_files:
        try:
            permanent_delete_file(file_instance.user, file_instance.id)
        except Exception:
            logger.exception(
                'Failed to purge file from trash: %d',
                file_instance.id,
            )
            failed += 1
            continue
        purged += 1

    for folder in expired_folders:
        if not Folder.all_objects.filter(pk=folder.id).exists():
            continue
        try:
            permanent_delete_folder(folder.user, folder.id)
        except Exception:
            logger.exception('Failed to purge folder from trash: %d', folder.id)
            failed += 1
            continue
        purged += 1

    logger.info(
        'Expired trash sweep (cutoff %s): %d purged, %d failed',
        cutoff,
        purged,
        failed,
    )
    return ExpiredTrashReport(candidates=candidates, purged=purged, failed=failed)
