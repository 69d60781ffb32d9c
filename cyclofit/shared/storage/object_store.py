"""
S3 object store adapter.

Three operations cover the whole analysis lifecycle: upload, issue a signed
URL and delete. Nothing here retries; callers decide whether a failure is
fatal (uploads) or tolerated (bulk deletes).
"""

import logging
from functools import lru_cache
from typing import Dict, Iterable, List

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from fastapi import Depends

from cyclofit.shared.config.settings import Settings, get_settings

logger = logging.getLogger(__name__)


class ObjectStoreError(Exception):
    """An S3 request failed."""


def processed_video_key(analysis_id: str) -> str:
    return f"videos/{analysis_id}/processed.mp4"


def keyframe_key(analysis_id: str, index: int) -> str:
    return f"videos/{analysis_id}/keyframe_{index}.jpg"


class S3ObjectStore:
    """Thin wrapper around a boto3 S3 client bound to one bucket."""

    def __init__(self, bucket: str, region: str, access_key_id: str, secret_access_key: str, client=None):
        self.bucket = bucket
        self.client = client or boto3.client(
            "s3",
            region_name=region,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
        )

    def upload(self, data: bytes, key: str, content_type: str) -> str:
        """Store data under key and return the key."""
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
                ContentDisposition="inline",
                CacheControl="max-age=31536000",
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Error uploading {key} to S3: {str(e)}")
            raise ObjectStoreError(f"Upload of {key} failed: {e}") from e
        logger.info(f"Uploaded {key} ({len(data)} bytes) to s3://{self.bucket}")
        return key

    def get_signed_url(self, key: str, ttl_seconds: int = 3600) -> str:
        """Time-limited GET URL for key."""
        try:
            return self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=ttl_seconds,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Error generating signed URL for {key}: {str(e)}")
            raise ObjectStoreError(f"Signing {key} failed: {e}") from e

    def delete(self, key: str) -> None:
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Error deleting {key} from S3: {str(e)}")
            raise ObjectStoreError(f"Delete of {key} failed: {e}") from e
        logger.info(f"Deleted {key} from s3://{self.bucket}")

    def delete_many(self, keys: Iterable[str]) -> List[str]:
        """
        Best-effort delete of every key.

        Returns the keys that could not be deleted; individual failures are
        logged and never raised.
        """
        failed = []
        for key in keys:
            try:
                self.delete(key)
            except ObjectStoreError:
                failed.append(key)
        if failed:
            logger.warning(f"{len(failed)} S3 object(s) could not be deleted: {failed}")
        return failed

    def check_connection(self) -> Dict:
        """Report whether the configured bucket is reachable."""
        try:
            self.client.head_bucket(Bucket=self.bucket)
            return {"connected": True, "bucket": self.bucket, "error": None}
        except (BotoCoreError, ClientError) as e:
            logger.error(f"S3 connection check failed: {str(e)}")
            return {"connected": False, "bucket": self.bucket, "error": str(e)}


@lru_cache(maxsize=4)
def _build_store(bucket: str, region: str, access_key_id: str, secret_access_key: str) -> S3ObjectStore:
    return S3ObjectStore(bucket, region, access_key_id, secret_access_key)


def get_object_store(settings: Settings = Depends(get_settings)) -> S3ObjectStore:
    """FastAPI dependency: one S3 client per configuration."""
    return _build_store(
        settings.AWS_BUCKET_NAME,
        settings.AWS_REGION,
        settings.AWS_ACCESS_KEY_ID,
        settings.AWS_SECRET_ACCESS_KEY,
    )
