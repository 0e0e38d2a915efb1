"""S3 service for storing uploaded images and files"""

import logging
from typing import Optional
from urllib.parse import unquote, urlparse

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from botocore.config import Config

from clubportal.config import settings
from clubportal.monitoring.metrics import record_storage

logger = logging.getLogger(__name__)


class S3ServiceError(Exception):
    """Base exception for S3 service errors"""
    pass


class S3ConnectionError(S3ServiceError):
    """S3 connection error"""
    pass


class StorageDeleteFailed(S3ServiceError):
    """Object could not be deleted"""
    pass


class S3Service:
    """Service for S3 object uploads and deletions"""

    def __init__(self, bucket: Optional[str] = None):
        """Initialize S3 client with retry configuration"""
        self.bucket = bucket or settings.s3_bucket

        retry_config = Config(
            retries={
                "max_attempts": 3,
                "mode": "standard",
            },
            connect_timeout=5,
            read_timeout=10,
        )

        client_kwargs = {
            "region_name": settings.aws_region,
            "config": retry_config,
        }

        # Add credentials if provided (not needed for IAM roles)
        if settings.aws_access_key_id and settings.aws_secret_access_key:
            client_kwargs["aws_access_key_id"] = settings.aws_access_key_id
            client_kwargs["aws_secret_access_key"] = settings.aws_secret_access_key

        # Use custom endpoint for local development (MinIO)
        if settings.aws_endpoint_url:
            client_kwargs["endpoint_url"] = settings.aws_endpoint_url

        try:
            self.s3_client = boto3.client("s3", **client_kwargs)
            logger.info(f"S3 client initialized for bucket: {self.bucket}")
        except (BotoCoreError, ValueError) as e:
            logger.error(f"Failed to initialize S3 client: {e}")
            raise S3ConnectionError(f"Failed to initialize S3 client: {e}")

    def build_url(self, s3_key: str) -> str:
        """Public URL of an object key"""
        if settings.aws_endpoint_url:
            # For local development with MinIO
            return f"{settings.aws_endpoint_url.rstrip('/')}/{self.bucket}/{s3_key}"
        return f"https://{self.bucket}.s3.{settings.aws_region}.amazonaws.com/{s3_key}"

    def key_from_url(self, url: str) -> Optional[str]:
        """
        Recover the object key from a URL produced by ``build_url``.

        Returns:
            Object key, or None if the URL does not point into this bucket
        """
        if not url:
            return None

        parsed = urlparse(url)
        path = unquote(parsed.path).lstrip("/")

        if settings.aws_endpoint_url:
            prefix = f"{self.bucket}/"
            return path[len(prefix):] if path.startswith(prefix) and len(path) > len(prefix) else None

        if parsed.netloc.startswith(f"{self.bucket}.s3.") and path:
            return path
        return None

    def upload_bytes(
        self, file_bytes: bytes, s3_key: str, content_type: str = "application/octet-stream"
    ) -> str:
        """
        Upload bytes to S3.

        Args:
            file_bytes: Bytes to upload
            s3_key: S3 key for the object
            content_type: Content type of the file

        Returns:
            S3 URL of uploaded object

        Raises:
            S3ConnectionError: If upload fails
        """
        try:
            self.s3_client.put_object(
                Bucket=self.bucket,
                Key=s3_key,
                Body=file_bytes,
                ContentType=content_type,
            )
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            logger.error(f"Error uploading bytes: {error_code} - {e}")
            record_storage("upload", "error")
            raise S3ConnectionError(f"Failed to upload bytes: {error_code}")
        except BotoCoreError as e:
            logger.error(f"Unexpected error uploading bytes: {e}")
            record_storage("upload", "error")
            raise S3ConnectionError(f"Failed to upload bytes: {str(e)}")

        s3_url = self.build_url(s3_key)
        logger.info(f"Uploaded {len(file_bytes)} bytes to {s3_url}")
        record_storage("upload", "success")
        return s3_url

    def delete_object(self, s3_key: str) -> None:
        """
        Delete an object from S3.

        Args:
            s3_key: S3 key of the object to delete

        Raises:
            StorageDeleteFailed: If deletion fails
        """
        try:
            self.s3_client.delete_object(Bucket=self.bucket, Key=s3_key)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error deleting object {s3_key}: {e}")
            record_storage("delete", "error")
            raise StorageDeleteFailed(f"Failed to delete object {s3_key}: {e}")

        logger.info(f"Deleted object: {s3_key}")
        record_storage("delete", "success")

    def check_bucket(self) -> bool:
        """
        Check the bucket is reachable.

        Raises:
            S3ConnectionError: If the bucket cannot be reached
        """
        try:
            self.s3_client.head_bucket(Bucket=self.bucket)
            return True
        except (ClientError, BotoCoreError) as e:
            logger.error(f"S3 bucket check failed: {e}")
            raise S3ConnectionError(f"Bucket {self.bucket} is not reachable: {e}")
