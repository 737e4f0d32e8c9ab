"""
S3-compatible ObjectStore built on aioboto3.

Works against AWS S3 and S3-compatible services (MinIO, DigitalOcean Spaces,
Wasabi) through ``endpoint``. Every put carries ``ServerSideEncryption``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError

from ..base import (
    ObjectNotFoundError,
    ObjectStore,
    PrimaryUnavailableError,
    StorageError,
    validate_key,
)

logger = logging.getLogger(__name__)

SUPPORTED_SSE = ("AES256", "aws:kms")

_NOT_FOUND_CODES = {"NoSuchKey", "NotFound", "404"}

# Network, auth and configuration failures. The caller falls back on these.
_UNAVAILABLE_CODES = {
    "AccessDenied",
    "AllAccessDisabled",
    "ExpiredToken",
    "InvalidAccessKeyId",
    "InvalidToken",
    "NoSuchBucket",
    "PermanentRedirect",
    "RequestTimeout",
    "ServiceUnavailable",
    "SignatureDoesNotMatch",
    "SlowDown",
    "InternalError",
    "403",
    "500",
    "503",
}


def classify_error(exc: BaseException, key: Optional[str] = None) -> Exception:
    """Map a provider exception onto the ObjectStore error vocabulary."""
    if isinstance(exc, ClientError):
        code = str(exc.response.get("Error", {}).get("Code", ""))
        status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        if code in _NOT_FOUND_CODES:
            return ObjectNotFoundError(f"object not found: {key}")
        if code in _UNAVAILABLE_CODES or (isinstance(status, int) and status >= 500):
            return PrimaryUnavailableError(f"S3 unavailable ({code or status}): {exc}")
        return StorageError(f"S3 rejected request ({code}): {exc}")
    if isinstance(exc, (BotoCoreError, OSError, asyncio.TimeoutError)):
        return PrimaryUnavailableError(f"S3 unreachable: {exc}")
    return StorageError(str(exc))


class S3Backend(ObjectStore):
    name = "s3"

    def __init__(
        self,
        bucket: str,
        region: str = "us-east-1",
        endpoint: Optional[str] = None,
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        *,
        server_side_encryption: str = "AES256",
        kms_key_id: Optional[str] = None,
    ):
        if not bucket:
            raise ValueError("S3 bucket is required")
        if server_side_encryption not in SUPPORTED_SSE:
            raise ValueError(
                f"server_side_encryption must be one of {SUPPORTED_SSE}, "
                f"got {server_side_encryption!r}"
            )
        self.bucket = bucket
        self.region = region
        self.endpoint = endpoint
        self.access_key = access_key
        self.secret_key = secret_key
        self.server_side_encryption = server_side_encryption
        self.kms_key_id = kms_key_id
        self._session = aioboto3.Session()

    def _client(self):
        return self._session.client(
            "s3",
            region_name=self.region,
            endpoint_url=self.endpoint,
            aws_access_key_id=self.access_key,
            aws_secret_access_key=self.secret_key,
        )

    def _encryption_args(self) -> dict[str, str]:
        args = {"ServerSideEncryption": self.server_side_encryption}
        if self.server_side_encryption == "aws:kms" and self.kms_key_id:
            args["SSEKMSKeyId"] = self.kms_key_id
        return args

    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str,
        metadata: Optional[dict[str, str]] = None,
    ) -> str:
        validate_key(key)
        try:
            async with self._client() as s3:
                await s3.put_object(
                    Bucket=self.bucket,
                    Key=key,
                    Body=data,
                    ContentType=content_type,
                    Metadata=dict(metadata or {}),
                    **self._encryption_args(),
                )
        except (ClientError, BotoCoreError, OSError, asyncio.TimeoutError) as e:
            raise classify_error(e, key) from e
        return key

    async def get(self, key: str) -> bytes:
        try:
            async with self._client() as s3:
                resp = await s3.get_object(Bucket=self.bucket, Key=key)
                async with resp["Body"] as stream:
                    return await stream.read()
        except (ClientError, BotoCoreError, OSError, asyncio.TimeoutError) as e:
            raise classify_error(e, key) from e

    async def head_exists(self, key: str) -> bool:
        try:
            async with self._client() as s3:
                await s3.head_object(Bucket=self.bucket, Key=key)
            return True
        except (ClientError, BotoCoreError, OSError, asyncio.TimeoutError) as e:
            err = classify_error(e, key)
            if not isinstance(err, ObjectNotFoundError):
                logger.warning("head_object failed for %s: %s", key, err)
            return False

    async def issue_signed_url(self, key: str, ttl: int) -> str:
        try:
            async with self._client() as s3:
                await s3.head_object(Bucket=self.bucket, Key=key)
                return await s3.generate_presigned_url(
                    "get_object",
                    Params={"Bucket": self.bucket, "Key": key},
                    ExpiresIn=int(ttl),
                )
        except (ClientError, BotoCoreError, OSError, asyncio.TimeoutError) as e:
            raise classify_error(e, key) from e

    async def delete(self, key: str) -> bool:
        if not await self.head_exists(key):
            return False
        try:
            async with self._client() as s3:
                await s3.delete_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError, OSError, asyncio.TimeoutError) as e:
            raise classify_error(e, key) from e
        return True

    async def list_keys(self, prefix: str = "", limit: Optional[int] = None) -> list[str]:
        keys: list[str] = []
        try:
            async with self._client() as s3:
                paginator = s3.get_paginator("list_objects_v2")
                async for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
                    for obj in page.get("Contents", []):
                        keys.append(obj["Key"])
                        if limit is not None and len(keys) >= limit:
                            return keys
        except (ClientError, BotoCoreError, OSError, asyncio.TimeoutError) as e:
            raise classify_error(e) from e
        return keys

    async def ping(self) -> None:
        try:
            async with self._client() as s3:
                await s3.head_bucket(Bucket=self.bucket)
        except (ClientError, BotoCoreError, OSError, asyncio.TimeoutError) as e:
            err = classify_error(e)
            if isinstance(err, PrimaryUnavailableError):
                raise err from e
            raise PrimaryUnavailableError(f"bucket check failed: {err}") from e
