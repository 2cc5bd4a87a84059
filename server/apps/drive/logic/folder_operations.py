"""Business logic for folder hierarchy operations.

Every structural mutation checks two rules before writing:
- the parent (if any) is a live folder of the same user
- no live sibling folder already holds the name

The name check is backed by conditional unique constraints, so a racing
request that slips past the pre-check still fails with
``NameConflictError`` when it reaches the database.
"""

import logging
from typing import Any

from django.db import IntegrityError, transaction

from server.apps.drive.exceptions import (
    FolderNotEmptyError,
    InvalidStateError,
    NameConflictError,
    NotFoundError,
)
from server.apps.drive.infrastructure.metadata import validate_item_name
from server.apps.drive.logic.pagination import Page, paginate
from server.apps.drive.models import File, Folder, ItemType

# User type for Django's dynamic user model
_User = Any

logger = logging.getLogger(__name__)


def get_folder(user: _User, folder_id: int) -> Folder:
    """Get a folder owned by user, live or trashed.

    Args:
        user: Folder owner.
        folder_id: ID of the folder.

    Returns:
        Folder instance.

    Raises:
        NotFoundError: If no such folder belongs to the user.
    """
    try:
        return Folder.all_objects.get(user=user, pk=folder_id)
    except Folder.DoesNotExist as error:
        raise NotFoundError('Folder not found') from error


def get_live_folder(
    user: _User,
    folder_id: int,
    message: str = 'Folder not found',
) -> Folder:
    """Get a non-trashed folder owned by user.

    Args:
        user: Folder owner.
        folder_id: ID of the folder.
        message: Error message when the folder is unavailable.

    Returns:
        Folder instance.

    Raises:
        NotFoundError: If folder is missing, trashed or not owned.
    """
    try:
        return Folder.objects.get(user=user, pk=folder_id)
    except Folder.DoesNotExist as error:
        raise NotFoundError(message) from error


def ensure_folder_name_free(
    user: _User,
    parent_id: int | None,
    name: str,
    exclude_id: int | None = None,
) -> None:
    """Check that no live sibling folder holds the name.

    Args:
        user: Folder owner.
        parent_id: Parent folder ID, None for root.
        name: Name to check.
        exclude_id: Folder to ignore (the one being renamed or moved).

    Raises:
        NameConflictError: If a live sibling already holds the name.
    """
    siblings = Folder.objects.filter(user=user, parent_id=parent_id, name=name)
    if exclude_id is not None:
        siblings = siblings.exclude(pk=exclude_id)
    if siblings.exists():
        raise NameConflictError(ItemType.FOLDER, name)


def _save_folder(folder: Folder, **save_kwargs: Any) -> None:
    """Save folder, turning a uniqueness violation into a name conflict."""
    try:
        with transaction.atomic():
            folder.save(**save_kwargs)
    except IntegrityError as error:
        logger.warning(
            'Folder name collision at database level: %s (parent: %s)',
            folder.name,
            folder.parent_id,
        )
        raise NameConflictError(ItemType.FOLDER, folder.name) from error


def create_folder(
    user: _User,
    name: str,
    parent_id: int | None = None,
) -> Folder:
    """Create a folder under parent (or at root).

    Args:
        user: Owner of the folder.
        name: Folder name.
        parent_id: Parent folder ID, None for root.

    Returns:
        Created Folder instance.

    Raises:
        ValidationError: If the name is invalid.
        NotFoundError: If parent is missing, trashed or not owned.
        NameConflictError: If a live sibling already holds the name.
    """
    name = validate_item_name(name)

    if parent_id is not None:
        get_live_folder(user, parent_id, 'Parent folder not found')

    ensure_folder_name_free(user, parent_id, name)

    folder = Folder(user=user, name=name, parent_id=parent_id)
    _save_folder(folder)

    logger.info(
        'Folder created: %s (ID: %d, parent: %s)',
        folder.full_path,
        folder.id,
        parent_id,
    )
    return folder


def rename_folder(user: _User, folder_id: int, new_name: str) -> Folder:
    """Rename a live folder.

    Descendants keep their cached ``path``; it is only a display hint.

    Args:
        user: Folder owner.
        folder_id: ID of folder to rename.
        new_name: New folder name.

    Returns:
        Updated Folder instance.

    Raises:
        ValidationError: If the name is invalid.
        NotFoundError: If folder is missing or trashed.
        NameConflictError: If another live sibling holds the name.
    """
    folder = get_live_folder(user, folder_id)
    new_name = validate_item_name(new_name)

    if new_name != folder.name:
        ensure_folder_name_free(
            user,
            folder.parent_id,
            new_name,
            exclude_id=folder.id,
        )
        old_name = folder.name
        folder.name = new_name
        logger.info(
            'Renaming folder %s -> %s (ID: %d)',
            old_name,
            new_name,
            folder.id,
        )

    _save_folder(folder, update_fields=['name', 'modified_at'])
    return folder


def get_descendant_folder_ids(
    user: _User,
    folder_id: int,
    is_trashed: bool | None = None,
) -> list[int]:
    """Collect IDs of every folder below ``folder_id``.

    Walks the tree level by level with one query per level. With
    ``is_trashed`` set, the walk only descends through folders in that
    state.

    Args:
        user: Folder owner.
        folder_id: Root of the subtree (not included in the result).
        is_trashed: Restrict to live (False) or trashed (True) folders.

    Returns:
        Descendant folder IDs, parents before children.
    """
    descendants: list[int] = []
    seen = {folder_id}
    frontier = [folder_id]

    while frontier:
        children = Folder.all_objects.filter(user=user, parent_id__in=frontier)
        if is_trashed is not None:
            children = children.filter(is_trashed=is_trashed)
        child_ids = [
            child_id
            for child_id in children.values_list('id', flat=True)
            if child_id not in seen
        ]
        seen.update(child_ids)
        descendants.extend(child_ids)
        frontier = child_ids

    return descendants


def move_folder(
    user: _User,
    folder_id: int,
    parent_id: int | None,
) -> Folder:
    """Move a live folder under another parent (or to root).

    Only the moved folder's own ``path`` is recomputed.

    Args:
        user: Folder owner.
        folder_id: ID of folder to move.
        parent_id: New parent folder ID, None for root.

    Returns:
        Updated Folder instance.

    Raises:
        NotFoundError: If folder or target is missing, trashed or not owned.
        InvalidStateError: If target is the folder itself or inside it.
        NameConflictError: If the target already holds a live folder
            with the same name.
    """
    folder = get_live_folder(user, folder_id)

    if parent_id is not None:
        get_live_folder(user, parent_id, 'Target folder not found')
        if parent_id == folder.id or parent_id in get_descendant_folder_ids(
            user,
            folder.id,
        ):
            raise InvalidStateError(
                'Cannot move a folder into itself or one of its subfolders',
            )

    ensure_folder_name_free(user, parent_id, folder.name, exclude_id=folder.id)

    old_parent_id = folder.parent_id
    folder.parent_id = parent_id
    _save_folder(folder, update_fields=['parent', 'modified_at'])

    logger.info(
        'Folder moved: ID=%d, parent %s -> %s',
        folder.id,
        old_parent_id,
        parent_id,
    )
    return folder


def delete_folder(user: _User, folder_id: int) -> None:
    """Hard-delete an empty live folder.

    Non-empty trees are removed through the trash instead.

    Args:
        user: Folder owner.
        folder_id: ID of folder to delete.

    Raises:
        NotFoundError: If folder is missing or trashed.
        FolderNotEmptyError: If it still has live subfolders or files.
    """
    folder = get_live_folder(user, folder_id)

    has_children = (
        Folder.objects.filter(user=user, parent_id=folder.id).exists() or
        File.objects.filter(user=user, folder_id=folder.id).exists()
    )
    if has_children:
        raise FolderNotEmptyError(
            'Cannot delete folder with subfolders or files. '
            'Please empty the folder first.',
        )

    folder.delete()
    logger.info('Folder deleted: ID=%d', folder_id)


def list_folders(
    user: _User,
    parent_id: int | None = None,
    page: int = 1,
    limit: int | None = None,
    search: str | None = None,
) -> Page[Folder]:
    """List live folders directly under parent.

    Args:
        user: Owner of folders.
        parent_id: Parent folder ID, None for root.
        page: 1-based page number.
        limit: Page size.
        search: Case-insensitive substring filter on name.

    Returns:
        Page of folders, newest first.
    """
    folders = Folder.objects.filter(user=user, parent_id=parent_id)
    if search:
        folders = folders.filter(name__icontains=search)

    logger.debug('Listing folders for user %s under %s', user.pk, parent_id)
    return paginate(folders.order_by('-created_at', '-id'), page, limit)


def get_breadcrumbs(user: _User, folder_id: int) -> list[Folder]:
    """Resolve the chain of folders from root down to ``folder_id``.

    Uses ``parent_id`` links, never the cached ``path``. Stops at a
    dangling parent reference.

    Args:
        user: Folder owner.
        folder_id: Deepest folder of the chain.

    Returns:
        Folders ordered root first.

    Raises:
        NotFoundError: If the starting folder does not exist.
    """
    chain = [get_folder(user, folder_id)]
    seen = {folder_id}

    while chain[-1].parent_id is not None:
        parent_id = chain[-1].parent_id
        if parent_id in seen:
            break
        parent = Folder.all_objects.filter(user=user, pk=parent_id).first()
        if parent is None:
            break
        seen.add(parent_id)
        chain.append(parent)

    chain.reverse()
    return chain
