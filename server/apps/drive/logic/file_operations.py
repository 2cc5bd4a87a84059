"""Business logic for file operations."""

import logging
import secrets
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, BinaryIO, final

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.files.base import File as DjangoFile
from django.core.files.storage import default_storage
from django.db import IntegrityError, transaction

from server.apps.drive.exceptions import (
    InvalidStateError,
    NameConflictError,
    NotFoundError,
)
from server.apps.drive.infrastructure.metadata import (
    build_storage_name,
    detect_mime_type,
    extract_filename,
    get_content_size,
    validate_item_name,
    validate_storage_path,
)
from server.apps.drive.logic import quota_operations
from server.apps.drive.logic.folder_operations import get_live_folder
from server.apps.drive.logic.pagination import Page, paginate
from server.apps.drive.models import File, ItemType

if TYPE_CHECKING:
    from server.apps.drive.infrastructure.storage import FileStorage

# User type for Django's dynamic user model
_User = Any

logger = logging.getLogger(__name__)


@final
@dataclass(frozen=True, slots=True)
class FileDownload:
    """Open content handle plus what a caller needs to stream it."""

    content: Any
    original_name: str
    mime_type: str
    size_bytes: int


def _get_storage() -> 'FileStorage':
    """Get the configured default storage backend.

    Returns:
        FileStorage instance with proper S3 configuration.
    """
    return default_storage  # type: ignore[return-value]


def get_file(user: _User, file_id: int) -> File:
    """Get a file owned by user, live or trashed.

    Args:
        user: File owner.
        file_id: ID of the file.

    Returns:
        File instance.

    Raises:
        NotFoundError: If no such file belongs to the user.
    """
    try:
        return File.all_objects.get(user=user, pk=file_id)
    except File.DoesNotExist as error:
        raise NotFoundError('File not found') from error


def get_live_file(user: _User, file_id: int) -> File:
    """Get a non-trashed file owned by user.

    Args:
        user: File owner.
        file_id: ID of the file.

    Returns:
        File instance.

    Raises:
        NotFoundError: If file is missing, trashed or not owned.
    """
    try:
        return File.objects.get(user=user, pk=file_id)
    except File.DoesNotExist as error:
        raise NotFoundError('File not found') from error


def ensure_file_name_free(
    user: _User,
    folder_id: int | None,
    name: str,
    exclude_id: int | None = None,
) -> None:
    """Check that no live sibling file holds the name.

    Args:
        user: File owner.
        folder_id: Folder ID, None for root.
        name: Name to check.
        exclude_id: File to ignore (the one being renamed or moved).

    Raises:
        NameConflictError: If a live sibling already holds the name.
    """
    siblings = File.objects.filter(user=user, folder_id=folder_id, name=name)
    if exclude_id is not None:
        siblings = siblings.exclude(pk=exclude_id)
    if siblings.exists():
        raise NameConflictError(ItemType.FILE, name)


def _save_file(file_instance: File, update_fields: list[str]) -> None:
    """Save file, turning a uniqueness violation into a name conflict."""
    try:
        with transaction.atomic():
            file_instance.save(update_fields=update_fields)
    except IntegrityError as error:
        logger.warning(
            'File name collision at database level: %s (folder: %s)',
            file_instance.name,
            file_instance.folder_id,
        )
        raise NameConflictError(ItemType.FILE, file_instance.name) from error


def upload_file(  # noqa: WPS211
    user: _User,
    content: BinaryIO | DjangoFile | None,
    name: str | None = None,
    folder_id: int | None = None,
    description: str = '',
    mime_type: str | None = None,
) -> File:
    """Write uploaded content to storage and register it.

    Args:
        user: Owner of the file.
        content: Uploaded file-like object (with a ``name``).
        name: Display name, defaults to the uploaded file name.
        folder_id: Target folder ID, None for root.
        description: Free-form description.
        mime_type: Declared MIME type, guessed from the name if missing.

    Returns:
        Created File instance.

    Raises:
        ValidationError: If no content was supplied or the name is invalid.
        NotFoundError: If target folder is missing.
        NameConflictError: If a live sibling holds the name.
        QuotaExceededError: If the upload does not fit the quota.
    """
    if content is None:
        raise ValidationError('No file uploaded')

    original_name = extract_filename(getattr(content, 'name', None) or '')
    display_name = validate_item_name(name or original_name)
    size_bytes = get_content_size(content)
    mime_type = mime_type or detect_mime_type(original_name or display_name)

    storage = _get_storage()
    storage_name = build_storage_name(user.id, original_name or display_name)

    # Step 1: Upload to storage first
    logger.info('Uploading file to storage: %s', storage_name)
    saved_name = storage.save(storage_name, content)

    # Step 2: Register metadata; content is removed again on failure
    return create_file(
        user,
        name=display_name,
        folder_id=folder_id,
        size_bytes=size_bytes,
        mime_type=mime_type,
        original_name=original_name or display_name,
        storage_name=saved_name,
        description=description,
    )


def create_file(  # noqa: WPS211
    user: _User,
    name: str,
    folder_id: int | None,
    size_bytes: int,
    mime_type: str,
    original_name: str,
    storage_name: str,
    description: str = '',
) -> File:
    """Create the record for content already written to storage.

    The record insert and the quota increment run in one transaction,
    and the increment is conditional on the limit. On any failure the
    content under ``storage_name`` is deleted, so a rejected upload
    never leaves orphaned bytes behind.

    Args:
        user: Owner of the file.
        name: Display name.
        folder_id: Target folder ID, None for root.
        size_bytes: Content size in bytes.
        mime_type: MIME type.
        original_name: Name at upload time.
        storage_name: Storage key of the written content.
        description: Free-form description.

    Returns:
        Created File instance.

    Raises:
        ValidationError: If the storage key or name is invalid.
        NotFoundError: If target folder is missing.
        NameConflictError: If a live sibling holds the name.
        QuotaExceededError: If the upload does not fit the quota.
    """
    # Never touch content under another user's key
    validate_storage_path(user.id, storage_name)

    storage = _get_storage()
    try:
        file_instance = _register_file(
            user,
            name=name,
            folder_id=folder_id,
            size_bytes=size_bytes,
            mime_type=mime_type,
            original_name=original_name,
            storage_name=storage_name,
            description=description,
        )
    except IntegrityError as error:
        logger.warning(
            'File name collision at database level, rolling back: %s',
            storage_name,
        )
        storage.rollback_upload(storage_name)
        raise NameConflictError(ItemType.FILE, name) from error
    except Exception:
        logger.warning(
            'File registration failed, rolling back storage upload: %s',
            storage_name,
        )
        storage.rollback_upload(storage_name)
        raise

    logger.info(
        'File record created: %s (ID: %d, size: %d)',
        file_instance.name,
        file_instance.id,
        size_bytes,
    )
    return file_instance


def _register_file(  # noqa: WPS211
    user: _User,
    name: str,
    folder_id: int | None,
    size_bytes: int,
    mime_type: str,
    original_name: str,
    storage_name: str,
    description: str,
) -> File:
    name = validate_item_name(name)
    if folder_id is not None:
        get_live_folder(user, folder_id)
    ensure_file_name_free(user, folder_id, name)
    quota_operations.check_quota(user, size_bytes)

    with transaction.atomic():
        file_instance = File.objects.create(
            user=user,
            name=name,
            original_name=original_name,
            description=description or '',
            file=storage_name,
            size_bytes=size_bytes,
            mime_type=mime_type,
            folder_id=folder_id,
        )
        quota_operations.commit(user, size_bytes, enforce_limit=True)
    return file_instance


def rename_file(user: _User, file_id: int, new_name: str) -> File:
    """Rename a live file.

    Args:
        user: File owner.
        file_id: ID of file to rename.
        new_name: New display name.

    Returns:
        Updated File instance.

    Raises:
        ValidationError: If the name is invalid.
        NotFoundError: If file is missing or trashed.
        NameConflictError: If another live sibling holds the name.
    """
    file_instance = get_live_file(user, file_id)
    new_name = validate_item_name(new_name)

    if new_name == file_instance.name:
        return file_instance

    ensure_file_name_free(
        user,
        file_instance.folder_id,
        new_name,
        exclude_id=file_instance.id,
    )

    old_name = file_instance.name
    file_instance.name = new_name
    _save_file(file_instance, ['name', 'modified_at'])

    logger.info(
        'File renamed: %s -> %s (ID: %d)',
        old_name,
        new_name,
        file_instance.id,
    )
    return file_instance


def move_file(user: _User, file_id: int, folder_id: int | None) -> File:
    """Move a live file to another folder (or to root).

    Only metadata changes; the storage key stays the same.

    Args:
        user: File owner.
        file_id: ID of file to move.
        folder_id: Target folder ID, None for root.

    Returns:
        Updated File instance.

    Raises:
        NotFoundError: If file or target folder is missing, trashed
            or not owned.
        NameConflictError: If target already holds a live file with
            the same name.
    """
    file_instance = get_live_file(user, file_id)

    if folder_id is not None:
        get_live_folder(user, folder_id, 'Target folder not found')

    ensure_file_name_free(
        user,
        folder_id,
        file_instance.name,
        exclude_id=file_instance.id,
    )

    old_folder_id = file_instance.folder_id
    file_instance.folder_id = folder_id
    _save_file(file_instance, ['folder', 'modified_at'])

    logger.info(
        'File moved: ID=%d, folder %s -> %s',
        file_instance.id,
        old_folder_id,
        folder_id,
    )
    return file_instance


def remove_from_folder(user: _User, file_id: int) -> File:
    """Move a live file from its folder to root.

    Args:
        user: File owner.
        file_id: ID of file to move.

    Returns:
        Updated File instance.

    Raises:
        NotFoundError: If file is missing or trashed.
        InvalidStateError: If file is already at root.
        NameConflictError: If root already holds a live file with the
            same name.
    """
    file_instance = get_live_file(user, file_id)
    if file_instance.folder_id is None:
        raise InvalidStateError('File is already in root directory')
    return move_file(user, file_id, None)


def purge_file(file_instance: File, *, release_quota: bool = True) -> bool:
    """Remove a file record and its content.

    The record goes first, inside a transaction with the quota update.
    Content removal follows and is best-effort.

    Args:
        file_instance: File to purge (any state).
        release_quota: Decrement owner's usage by the file size.

    Returns:
        True if the content is gone from storage.
    """
    storage_name = file_instance.file.name
    size_bytes = file_instance.size_bytes
    owner = file_instance.user

    with transaction.atomic():
        file_instance.delete()
        if release_quota:
            quota_operations.release(owner, size_bytes)

    logger.info(
        'File record deleted: %s (size: %d)',
        storage_name,
        size_bytes,
    )

    if not storage_name:
        return True
    return _get_storage().release(storage_name)


def delete_file(user: _User, file_id: int) -> quota_operations.StorageInfo:
    """Permanently delete a live file without passing through trash.

    Args:
        user: File owner.
        file_id: ID of file to delete.

    Returns:
        Quota snapshot after the deletion.

    Raises:
        NotFoundError: If file is missing or trashed.
    """
    file_instance = get_live_file(user, file_id)
    logger.info('Deleting file: ID=%d, name=%s', file_id, file_instance.name)
    purge_file(file_instance)
    return quota_operations.get_storage_info(user)


def list_files(
    user: _User,
    folder_id: int | None = None,
    page: int = 1,
    limit: int | None = None,
    search: str | None = None,
) -> Page[File]:
    """List live files directly inside a folder.

    Args:
        user: Owner of files.
        folder_id: Folder ID, None for root.
        page: 1-based page number.
        limit: Page size.
        search: Case-insensitive substring filter on name.

    Returns:
        Page of files, newest first.
    """
    files = File.objects.filter(user=user, folder_id=folder_id)
    if search:
        files = files.filter(name__icontains=search)

    logger.debug('Listing files for user %s in %s', user.pk, folder_id)
    return paginate(files.order_by('-created_at', '-id'), page, limit)


def build_download(file_instance: File) -> FileDownload:
    """Open a file's content for streaming.

    Args:
        file_instance: File whose content to open.

    Returns:
        FileDownload with an open handle and display metadata.

    Raises:
        NotFoundError: If the content is missing from storage.
    """
    storage_name = file_instance.file.name
    if not _get_storage().exists(storage_name):
        logger.warning('File content missing from storage: %s', storage_name)
        raise NotFoundError('File not found on storage')

    return FileDownload(
        content=file_instance.file.open('rb'),
        original_name=file_instance.original_name,
        mime_type=file_instance.mime_type,
        size_bytes=file_instance.size_bytes,
    )


def open_file(user: _User, file_id: int) -> FileDownload:
    """Open a live file of the user for download.

    Args:
        user: File owner.
        file_id: ID of file to download.

    Returns:
        FileDownload for the file.

    Raises:
        NotFoundError: If file or its content is missing.
    """
    return build_download(get_live_file(user, file_id))


def set_file_public(user: _User, file_id: int, is_public: bool) -> File:
    """Turn legacy single-token public access on or off.

    Every time access is turned on a fresh token is issued, so a
    previously published link stops working.

    Args:
        user: File owner.
        file_id: ID of the file.
        is_public: New public flag.

    Returns:
        Updated File instance.

    Raises:
        NotFoundError: If file is missing or trashed.
    """
    file_instance = get_live_file(user, file_id)
    file_instance.is_public = is_public
    if is_public:
        file_instance.share_token = secrets.token_hex(
            settings.SHARING_TOKEN_BYTES,
        )
    else:
        file_instance.share_token = None
    file_instance.save(update_fields=['is_public', 'share_token', 'modified_at'])

    logger.info(
        'File public access %s: ID=%d',
        'enabled' if is_public else 'disabled',
        file_instance.id,
    )
    return file_instance


def get_public_file(share_token: str) -> File:
    """Resolve a live public file by its legacy token.

    Args:
        share_token: Token issued by ``set_file_public``.

    Returns:
        File instance.

    Raises:
        NotFoundError: If no live public file carries the token.
    """
    try:
        return File.objects.get(share_token=share_token, is_public=True)
    except File.DoesNotExist as error:
        raise NotFoundError('Shared file not found') from error


def open_public_file(share_token: str) -> FileDownload:
    """Open a public file by its legacy token.

    Args:
        share_token: Token issued by ``set_file_public``.

    Returns:
        FileDownload for the file.

    Raises:
        NotFoundError: If file or its content is missing.
    """
    return build_download(get_public_file(share_token))
