"""S3-compatible object storage for uploaded videos"""
import logging
from typing import BinaryIO, Iterable, Optional
import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from app.core.config import settings
from app.core.exceptions import ConfigurationError, StorageError

logger = logging.getLogger(__name__)


class ObjectStore:
    """Thin wrapper around a boto3 S3 client bound to one bucket"""

    def __init__(self, client=None, bucket: Optional[str] = None):
        if client is None:
            if not settings.STORAGE_ACCESS_KEY_ID or not settings.STORAGE_SECRET_ACCESS_KEY:
                raise ConfigurationError(
                    "Object storage is not configured. Set STORAGE_ACCESS_KEY_ID and STORAGE_SECRET_ACCESS_KEY."
                )
            client = boto3.client(
                's3',
                endpoint_url=settings.STORAGE_ENDPOINT_URL or None,
                aws_access_key_id=settings.STORAGE_ACCESS_KEY_ID,
                aws_secret_access_key=settings.STORAGE_SECRET_ACCESS_KEY,
                region_name=settings.STORAGE_REGION,
                config=Config(signature_version='s3v4')
            )
        self.s3_client = client
        self.bucket = bucket or settings.STORAGE_BUCKET_NAME
        if not self.bucket:
            raise ConfigurationError("STORAGE_BUCKET_NAME is not set.")

    def generate_download_url(self, object_key: str, expires_in: Optional[int] = None) -> str:
        """Presigned GET URL vendors can fetch the video from

        Raises:
            StorageError: If object_key is empty or signing fails
        """
        if not object_key:
            raise StorageError("Video has no stored file")
        if expires_in is None:
            expires_in = settings.SIGNED_URL_EXPIRY

        try:
            url = self.s3_client.generate_presigned_url(
                'get_object',
                Params={'Bucket': self.bucket, 'Key': object_key},
                ExpiresIn=expires_in
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to generate download URL for {object_key}: {e}", exc_info=True)
            raise StorageError("Failed to create signed URL")
        if not url:
            raise StorageError("Failed to create signed URL")
        logger.debug(f"Generated download URL for {object_key} (expires in {expires_in}s)")
        return url

    def upload_fileobj(self, fileobj: BinaryIO, object_key: str, content_type: str) -> None:
        """Upload a file-like object under object_key

        Raises:
            StorageError: If the upload fails
        """
        try:
            self.s3_client.upload_fileobj(
                fileobj, self.bucket, object_key,
                ExtraArgs={'ContentType': content_type}
            )
            logger.info(f"Uploaded {object_key} to bucket {self.bucket}")
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to upload {object_key}: {e}", exc_info=True)
            raise StorageError("Failed to upload file")

    def delete_object(self, object_key: str) -> bool:
        """Delete one object

        Returns:
            True if deletion succeeded or object doesn't exist, False on error
        """
        if not object_key:
            return False
        try:
            self.s3_client.delete_object(Bucket=self.bucket, Key=object_key)
            logger.info(f"Deleted {object_key} from bucket {self.bucket}")
            return True
        except ClientError as e:
            if e.response.get('Error', {}).get('Code') == 'NoSuchKey':
                return True
            logger.error(f"Failed to delete {object_key}: {e}", exc_info=True)
            return False
        except BotoCoreError as e:
            logger.error(f"Failed to delete {object_key}: {e}", exc_info=True)
            return False

    def delete_objects(self, object_keys: Iterable[str]) -> int:
        """Delete many objects; returns how many were removed"""
        keys = [k for k in object_keys if k]
        removed = 0
        # S3 DeleteObjects accepts at most 1000 keys per call
        for start in range(0, len(keys), 1000):
            batch = keys[start:start + 1000]
            try:
                response = self.s3_client.delete_objects(
                    Bucket=self.bucket,
                    Delete={'Objects': [{'Key': k} for k in batch], 'Quiet': True}
                )
            except (ClientError, BotoCoreError) as e:
                logger.error(f"Failed to delete {len(batch)} objects: {e}", exc_info=True)
                continue
            errors = response.get('Errors', [])
            for err in errors:
                logger.warning(f"Failed to delete {err.get('Key')}: {err.get('Message')}")
            removed += len(batch) - len(errors)
        return removed


# Global object store instance (lazy initialization)
_object_store: Optional[ObjectStore] = None


def get_object_store() -> ObjectStore:
    """FastAPI dependency: shared ObjectStore instance

    Raises:
        ConfigurationError: If storage configuration is missing
    """
    global _object_store
    if _object_store is None:
        _object_store = ObjectStore()
    return _object_store
