"""Custom storage backend for S3-compatible storage."""

import logging
from typing import final

from storages.backends.s3 import S3Storage

logger = logging.getLogger(__name__)


@final
class FileStorage(S3Storage):
    """S3 storage backend holding uploaded file content.

    Extends django-storages S3Storage with:
    - Compensation for uploads whose metadata was rejected
    - Best-effort content release for purged files
    """

    def rollback_upload(self, name: str) -> None:
        """Delete content of an upload whose metadata was rejected.

        Called when quota, naming or database checks fail after the
        content already reached S3. Best-effort: if deletion fails, the
        error is logged but not raised, since the original failure is
        what the caller must see.

        Args:
            name: Storage key of file to delete.
        """
        try:
            logger.warning('Rolling back upload, deleting file: %s', name)
            self.delete(name)
            logger.info('Successfully rolled back file upload: %s', name)
        except Exception:
            logger.exception(
                'Failed to rollback upload, orphaned file: %s',
                name,
            )

    def release(self, name: str) -> bool:
        """Remove content of a purged file.

        Best-effort: failures are logged and reported through the return
        value; orphaned content is reconciled out of band.

        Args:
            name: Storage key of file to delete.

        Returns:
            True if the content is gone from storage (deleted now or
            already missing), False if deletion failed.
        """
        try:
            if self.exists(name):
                self.delete(name)
                logger.info('Released file content: %s', name)
            else:
                logger.warning(
                    'File not found in storage (already deleted?): %s',
                    name,
                )
        except Exception:
            logger.exception(
                'Failed to delete file from storage (orphaned): %s',
                name,
            )
            return False
        return True
