import io
import json
from typing import Any
from urllib.parse import quote

from loguru import logger
from minio import Minio
from minio.error import S3Error

from api.config import Settings

BUCKET_EXISTS_CODES = {"BucketAlreadyOwnedByYou", "BucketAlreadyExists"}


class StorageError(Exception):
    pass


def build_minio_client(app_settings: Settings) -> Minio:
    return Minio(
        app_settings.minio_endpoint,
        access_key=app_settings.minio_access_key,
        secret_key=app_settings.minio_secret_key,
        secure=app_settings.minio_secure,
        region=app_settings.minio_region,
    )


def public_read_policy(bucket: str) -> str:
    return json.dumps(
        {
            "Version": "2012-10-17",
            "Statement": [
                {
                    "Effect": "Allow",
                    "Principal": {"AWS": ["*"]},
                    "Action": ["s3:GetObject"],
                    "Resource": [f"arn:aws:s3:::{bucket}/*"],
                }
            ],
        }
    )


class ObjectStore:
    """Blocking facade over a MinIO client.

    Every failure from the SDK is re-raised as StorageError so callers deal
    with one backend error type. Nothing is retried.
    """

    def __init__(self, client: Any, base_url: str, public_read: bool = False) -> None:
        self.client = client
        self.base_url = base_url.rstrip("/")
        self.public_read = public_read

    @classmethod
    def from_settings(cls, app_settings: Settings) -> "ObjectStore":
        return cls(
            build_minio_client(app_settings),
            base_url=app_settings.object_base_url,
            public_read=app_settings.public_read,
        )

    def ensure_bucket(self, bucket: str) -> None:
        try:
            if self.client.bucket_exists(bucket):
                return
        except Exception as exc:
            logger.exception("Bucket check failed bucket={} error={}", bucket, str(exc))
            raise StorageError(f"bucket check failed: {exc}") from exc

        try:
            self.client.make_bucket(bucket)
        except S3Error as exc:
            if exc.code not in BUCKET_EXISTS_CODES:
                logger.exception("Bucket create failed bucket={} code={}", bucket, exc.code)
                raise StorageError(f"bucket create failed: {exc}") from exc
            # Lost a creation race; the winner owns policy setup.
            logger.info("Bucket created concurrently bucket={} code={}", bucket, exc.code)
            return
        except Exception as exc:
            logger.exception("Bucket create failed bucket={} error={}", bucket, str(exc))
            raise StorageError(f"bucket create failed: {exc}") from exc
        logger.info("Bucket created bucket={} public_read={}", bucket, self.public_read)

        if self.public_read:
            try:
                self.client.set_bucket_policy(bucket, public_read_policy(bucket))
            except Exception as exc:
                logger.exception("Bucket policy failed bucket={} error={}", bucket, str(exc))
                raise StorageError(f"bucket policy update failed: {exc}") from exc

    def put(
        self,
        bucket: str,
        key: str,
        data: bytes,
        content_type: str,
        metadata: dict[str, str] | None = None,
    ) -> None:
        try:
            self.client.put_object(
                bucket,
                key,
                io.BytesIO(data),
                len(data),
                content_type=content_type,
                metadata=metadata,
            )
        except Exception as exc:
            logger.exception("Object put failed bucket={} key={} error={}", bucket, key, str(exc))
            raise StorageError(f"upload failed: {exc}") from exc
        logger.debug("Object put bucket={} key={} size_bytes={}", bucket, key, len(data))

    def object_url(self, bucket: str, key: str) -> str:
        return f"{self.base_url}/{bucket}/{quote(key)}"

    def ping(self) -> bool:
        try:
            self.client.list_buckets()
        except Exception as exc:
            logger.warning("Storage ping failed error={}", str(exc))
            return False
        return True
