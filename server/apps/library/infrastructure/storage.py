"""Custom storage backend for S3-compatible storage."""

import datetime as dt
import logging
from collections.abc import Iterator
from typing import Final, final, override

from botocore.exceptions import BotoCoreError, ClientError
from storages.backends.s3 import S3Storage
from storages.utils import clean_name

from server.apps.library.exceptions import StorageError

logger = logging.getLogger(__name__)

_MISSING_KEY_CODES: Final = frozenset(('404', 'NoSuchKey', 'NotFound'))


@final
class FileStorage(S3Storage):
    """Custom S3 storage backend for project files.

    Extends django-storages S3Storage with:
    - Presigned upload and download URLs for direct client transfers
    - Server-side copy, existence checks and listing by key
    - Best-effort deletes for cleanup paths
    - Enhanced error logging
    """

    def generate_upload_url(
        self,
        key: str,
        content_type: str,
        size_bytes: int,
        expire: int,
    ) -> str:
        """Create a presigned PUT URL for a direct client upload.

        The client must send the same ``Content-Type`` header for the
        signature to match.

        Args:
            key: Storage key the blob will be written to.
            content_type: MIME type the client will upload.
            size_bytes: Declared size, stored as object metadata.
            expire: URL lifetime in seconds.

        Returns:
            Presigned URL.
        """
        name = self._normalize_name(clean_name(key))
        logger.debug('Generating upload URL: %s (%s)', name, content_type)
        return self.connection.meta.client.generate_presigned_url(
            'put_object',
            Params={
                'Bucket': self.bucket_name,
                'Key': name,
                'ContentType': content_type,
                'Metadata': {'filesize': str(size_bytes)},
            },
            ExpiresIn=expire,
            HttpMethod='PUT',
        )

    def generate_download_url(
        self,
        key: str,
        display_name: str,
        expire: int,
    ) -> str:
        """Create a presigned GET URL that renders inline in browsers.

        Args:
            key: Storage key of the blob.
            display_name: File name announced to the browser.
            expire: URL lifetime in seconds.

        Returns:
            Presigned URL.
        """
        safe_name = display_name.replace('"', '')
        return self.url(
            key,
            parameters={
                'ResponseContentDisposition': (
                    f'inline; filename="{safe_name}"'
                ),
            },
            expire=expire,
        )

    def blob_exists(self, key: str) -> bool:
        """Check whether a blob exists.

        Args:
            key: Storage key of the blob.

        Returns:
            True if the blob exists, False if storage reports it missing.

        Raises:
            StorageError: If storage fails for any other reason.
        """
        name = self._normalize_name(clean_name(key))
        try:
            self.connection.meta.client.head_object(
                Bucket=self.bucket_name,
                Key=name,
            )
        except ClientError as exc:
            error_code = str(exc.response.get('Error', {}).get('Code', ''))
            if error_code in _MISSING_KEY_CODES:
                return False
            logger.exception('Failed to check blob existence: %s', name)
            raise StorageError(
                f'Could not verify file in storage: {key}',
            ) from exc
        except BotoCoreError as exc:
            logger.exception('Failed to check blob existence: %s', name)
            raise StorageError(
                f'Could not verify file in storage: {key}',
            ) from exc
        return True

    def copy_blob(self, source: str, destination: str) -> None:
        """Copy a blob to a new key with a server-side copy.

        Args:
            source: Source storage key.
            destination: Destination storage key.

        Raises:
            Exception: If the copy fails.
        """
        source_name = self._normalize_name(clean_name(source))
        destination_name = self._normalize_name(clean_name(destination))
        try:
            logger.info('Copying blob: %s -> %s', source_name, destination_name)
            copy_source = {
                'Bucket': self.bucket_name,
                'Key': source_name,
            }
            self.bucket.copy(copy_source, destination_name)
        except Exception:
            logger.exception(
                'Copy failed: %s -> %s',
                source_name,
                destination_name,
            )
            raise

    @override
    def delete(self, name: str) -> None:
        """Delete blob from S3 with error handling and logging.

        Deleting a missing key succeeds.

        Args:
            name: Storage key of blob to delete.

        Raises:
            Exception: If S3 delete fails.
        """
        try:
            logger.info('Deleting blob from storage: %s', name)
            super().delete(name)
            logger.info('Successfully deleted blob: %s', name)
        except Exception:
            logger.exception('Failed to delete blob from storage: %s', name)
            raise

    def discard(self, name: str) -> bool:
        """Delete a blob without raising.

        Used where the database is already authoritative: after a record
        delete, or to drop a copy whose record update failed. Failures
        leave an orphaned blob for ``reconcile_storage``.

        Args:
            name: Storage key of blob to delete.

        Returns:
            True if the delete succeeded, False otherwise.
        """
        try:
            self.delete(name)
        except Exception:
            logger.exception('Failed to discard blob, orphaned: %s', name)
            return False
        return True

    def list_blobs(self, prefix: str) -> Iterator[tuple[str, dt.datetime]]:
        """Iterate over blobs under a key prefix.

        Args:
            prefix: Key prefix, e.g. ``projects/``.

        Yields:
            Tuples of (storage key, last modified time).
        """
        name = self._normalize_name(clean_name(prefix))
        for blob in self.bucket.objects.filter(Prefix=name):
            yield blob.key, blob.last_modified
