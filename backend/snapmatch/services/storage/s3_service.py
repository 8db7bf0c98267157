"""S3-compatible object storage service (presigned upload/download URLs)"""
import logging
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from snapmatch.core.config import settings
from snapmatch.core.errors import NotConfigured, UpstreamFailure

logger = logging.getLogger(__name__)

DOWNLOAD_URL_EXPIRATION = 3600  # seconds, gallery previews
PURCHASE_DOWNLOAD_URL_EXPIRATION = 600  # seconds, paid downloads


class StorageService:
    """Mints presigned URLs against the configured bucket"""

    def __init__(self):
        """Initialize storage service with configuration from settings"""
        if not settings.S3_BUCKET:
            raise NotConfigured("Object storage is not configured. Set S3_BUCKET.")

        self.bucket = settings.S3_BUCKET

        client_kwargs = {
            "region_name": settings.S3_REGION,
            "config": Config(
                signature_version='s3v4',
                s3={"addressing_style": "path" if settings.S3_FORCE_PATH_STYLE else "auto"}
            ),
        }
        if settings.S3_ENDPOINT:
            client_kwargs["endpoint_url"] = settings.S3_ENDPOINT
        if settings.S3_ACCESS_KEY_ID and settings.S3_SECRET_ACCESS_KEY:
            client_kwargs["aws_access_key_id"] = settings.S3_ACCESS_KEY_ID
            client_kwargs["aws_secret_access_key"] = settings.S3_SECRET_ACCESS_KEY

        self.s3_client = boto3.client('s3', **client_kwargs)
        logger.info(f"StorageService initialized for bucket: {self.bucket}")

    def generate_upload_url(self, object_key: str, content_type: Optional[str] = None, expires_in: Optional[int] = None) -> str:
        """Generate presigned PUT URL for direct upload

        Args:
            object_key: Object key (path in bucket)
            content_type: Content type the client must send
            expires_in: URL expiration time in seconds (default: from settings)

        Returns:
            Presigned PUT URL

        Raises:
            UpstreamFailure: If URL generation fails
        """
        if not object_key:
            raise ValueError("object_key cannot be empty")
        if expires_in is None:
            expires_in = settings.S3_UPLOAD_URL_EXPIRATION

        params = {'Bucket': self.bucket, 'Key': object_key}
        if content_type:
            params['ContentType'] = content_type

        try:
            url = self.s3_client.generate_presigned_url(
                'put_object',
                Params=params,
                ExpiresIn=expires_in
            )
            logger.debug(f"Generated upload URL for {object_key} (expires in {expires_in}s)")
            return url
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Failed to generate upload URL for {object_key}: {e}", exc_info=True)
            raise UpstreamFailure(f"Failed to generate upload URL: {str(e)}")

    def generate_download_url(self, object_key: str, expires_in: int = DOWNLOAD_URL_EXPIRATION) -> str:
        """Generate presigned GET URL for direct download

        Args:
            object_key: Object key (path in bucket)
            expires_in: URL expiration time in seconds (default: 1 hour)

        Returns:
            Presigned GET URL

        Raises:
            UpstreamFailure: If URL generation fails
        """
        if not object_key:
            raise ValueError("object_key cannot be empty")

        try:
            url = self.s3_client.generate_presigned_url(
                'get_object',
                Params={
                    'Bucket': self.bucket,
                    'Key': object_key
                },
                ExpiresIn=expires_in
            )
            logger.debug(f"Generated download URL for {object_key} (expires in {expires_in}s)")
            return url
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Failed to generate download URL for {object_key}: {e}", exc_info=True)
            raise UpstreamFailure(f"Failed to generate download URL: {str(e)}")


# Global storage service instance (lazy initialization)
_storage_service: Optional[StorageService] = None


def get_storage_service() -> StorageService:
    """Get or create storage service instance (lazy initialization)

    Raises:
        NotConfigured: If S3_BUCKET is missing
    """
    global _storage_service
    if _storage_service is None:
        _storage_service = StorageService()
    return _storage_service
