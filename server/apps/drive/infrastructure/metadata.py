"""Metadata helpers for uploaded files."""

import mimetypes
import os
import uuid
from pathlib import Path
from typing import Any, Final

from django.core.exceptions import ValidationError

_NAME_MAX_LENGTH: Final = 255
_DEFAULT_MIME_TYPE: Final = 'application/octet-stream'
_FORBIDDEN_NAMES: Final = frozenset(('.', '..'))


def detect_mime_type(filename: str) -> str:
    """Guess MIME type from filename extension.

    Used when the uploader did not declare a type.

    Args:
        filename: Filename with extension.

    Returns:
        MIME type string (e.g., 'image/jpeg', 'application/pdf').
        Returns 'application/octet-stream' if type cannot be determined.
    """
    mime_type, _ = mimetypes.guess_type(filename)
    if mime_type is None:
        return _DEFAULT_MIME_TYPE
    return mime_type


def extract_filename(path: str) -> str:
    """Extract filename from a client-supplied path.

    Args:
        path: Path or bare name (e.g., 'photos/cat.jpg').

    Returns:
        Filename (e.g., 'cat.jpg').
    """
    return Path(path).name


def get_content_size(content: Any) -> int:
    """Get size of file-like content in bytes.

    Args:
        content: File-like object.

    Returns:
        Size in bytes.
    """
    if hasattr(content, 'size'):
        return content.size
    size = content.seek(0, os.SEEK_END)
    content.seek(0)
    return size


def build_storage_name(user_id: int, original_name: str) -> str:
    """Build a fresh byte-store key for an upload.

    The key never depends on the display name, so renames and moves
    never touch storage.

    Args:
        user_id: Owner's user ID.
        original_name: Name the file was uploaded with.

    Returns:
        Key like '42/3f2c...9a.pdf'.
    """
    suffix = Path(original_name).suffix.lower()
    return f'{user_id}/{uuid.uuid4().hex}{suffix}'


def validate_storage_path(user_id: int, storage_path: str) -> None:
    """Validate storage key follows user isolation rules.

    Ensures the key starts with the user's ID, so one user's record can
    never point at another user's content.

    Args:
        user_id: Owner's user ID.
        storage_path: Proposed storage key.

    Raises:
        ValidationError: If key doesn't start with user_id or is invalid.
    """
    if not storage_path:
        raise ValidationError('Storage path cannot be empty')

    path_parts = Path(storage_path).parts
    if len(path_parts) < 2:
        raise ValidationError('Storage path must include a file name')

    first_component = path_parts[0]

    try:
        path_user_id = int(first_component)
    except ValueError as error:
        raise ValidationError(
            'Storage path must start with user ID',
        ) from error

    if path_user_id != user_id:
        raise ValidationError(
            f'Storage path user ID ({path_user_id}) does not match '
            f'owner ({user_id})',
        )


def validate_item_name(name: str) -> str:
    """Validate and normalize a file or folder display name.

    Args:
        name: Proposed name.

    Returns:
        Name with surrounding whitespace stripped.

    Raises:
        ValidationError: If name is empty, too long or contains '/'.
    """
    normalized = (name or '').strip()
    if not normalized:
        raise ValidationError('Name cannot be empty')
    if len(normalized) > _NAME_MAX_LENGTH:
        raise ValidationError(
            f'Name cannot be longer than {_NAME_MAX_LENGTH} characters',
        )
    if '/' in normalized or normalized in _FORBIDDEN_NAMES:
        raise ValidationError(f'Invalid name: {normalized!r}')
    return normalized
