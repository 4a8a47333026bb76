"""
AWS S3 adapter — read originals, write thumbnails, list the gallery.

Upload flow:
  1. Client asks GET /upload_url for a fresh key in the input bucket.
  2. Client PUTs the image there directly (no presigning, bucket policy decides).
  3. S3 publishes an ObjectCreated event to SNS, which calls POST /new_image_notify.
  4. The pipeline writes the thumbnail to the output bucket under the same key.

Every call opens a short-lived aioboto3 client. Failures surface as
TransportError (ObjectNotFound for a missing key) and are never retried here;
botocore's own retry policy is the only one in play.
"""
from __future__ import annotations

import logging
import uuid
from urllib.parse import quote

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError

from app.config import Settings
from app.exceptions import ObjectNotFound, TransportError

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = ("404", "NoSuchKey", "NotFound")


def _s3_session(settings: Settings) -> aioboto3.Session:
    # Empty credentials fall through to the default chain (env, profile, IAM role)
    return aioboto3.Session(
        aws_access_key_id=settings.aws_access_key_id or None,
        aws_secret_access_key=settings.aws_secret_access_key or None,
        region_name=settings.aws_region,
    )


class ObjectStore:
    """Object storage for originals (input bucket) and thumbnails (output bucket)."""

    def __init__(self, settings: Settings, session: aioboto3.Session | None = None) -> None:
        self._settings = settings
        self._session = session or _s3_session(settings)

    async def fetch(self, bucket: str, key: str) -> bytes:
        """Return the object body. Raises ObjectNotFound or TransportError."""
        try:
            async with self._session.client("s3") as s3:
                response = await s3.get_object(Bucket=bucket, Key=key)
                async with response["Body"] as body:
                    return await body.read()
        except ClientError as exc:
            error_code = exc.response.get("Error", {}).get("Code", "")
            if error_code in _NOT_FOUND_CODES:
                raise ObjectNotFound(bucket, key) from exc
            raise TransportError(f"S3 get_object failed for s3://{bucket}/{key}: {exc}") from exc
        except BotoCoreError as exc:
            raise TransportError(f"S3 get_object failed for s3://{bucket}/{key}: {exc}") from exc

    async def store(self, bucket: str, key: str, data: bytes, content_type: str) -> None:
        """Write (or overwrite) an object. Raises TransportError."""
        try:
            async with self._session.client("s3") as s3:
                response = await s3.put_object(
                    Bucket=bucket,
                    Key=key,
                    Body=data,
                    ContentType=content_type,
                )
        except (BotoCoreError, ClientError) as exc:
            raise TransportError(f"S3 put_object failed for s3://{bucket}/{key}: {exc}") from exc
        logger.info("Stored s3://%s/%s (%d bytes, etag %s)", bucket, key, len(data), response.get("ETag"))

    async def list_keys(self, bucket: str) -> list[str]:
        """Return every key in the bucket, following pagination. Raises TransportError."""
        keys: list[str] = []
        try:
            async with self._session.client("s3") as s3:
                paginator = s3.get_paginator("list_objects_v2")
                async for page in paginator.paginate(Bucket=bucket):
                    for obj in page.get("Contents", []):
                        if obj.get("Key"):
                            keys.append(obj["Key"])
        except (BotoCoreError, ClientError) as exc:
            raise TransportError(f"S3 list_objects_v2 failed for s3://{bucket}: {exc}") from exc
        return keys

    def public_url(self, bucket: str, key: str) -> str:
        """Path-style public URL of an object."""
        return f"https://s3.{self._settings.aws_region}.amazonaws.com/{bucket}/{quote(key)}"

    def new_upload_url(self) -> str:
        """A write URL for a fresh, unique key in the input bucket."""
        key = f"{uuid.uuid4()}{self._settings.upload_key_suffix}"
        return self.public_url(self._settings.s3_input_bucket, key)
