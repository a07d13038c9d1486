"""
S3 object store implementation.

This module provides the S3 backend for the object store gateway using
aiobotocore. It works against AWS S3 and S3-compatible services (MinIO)
through a custom endpoint URL.

Invariants:
    - Listing uses ListObjects (v1) so continuation is marker based
    - A missing key maps to ObjectNotFoundError, every other botocore
      failure maps to StorageTransportError
    - No retries at this layer beyond botocore's own retry policy

How to change safely:
    - Test against MinIO before deploying to AWS
    - Keep error mapping in _translate_error so callers see one taxonomy
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from .base import (
    ListPage,
    ObjectInfo,
    ObjectNotFoundError,
    StorageTransportError,
)

logger = logging.getLogger(__name__)

# Try to import aiobotocore
try:
    from aiobotocore.session import get_session
    from botocore.exceptions import BotoCoreError, ClientError

    S3_AVAILABLE = True
except ImportError:
    S3_AVAILABLE = False
    get_session = None

_NOT_FOUND_CODES = {"NoSuchKey", "NotFound", "404"}


class S3ObjectStore:
    """S3 implementation of the ObjectStore protocol.

    Attributes:
        config: S3Config instance

    Example:
        >>> store = S3ObjectStore(S3Config(bucket="bottomless"))
        >>> await store.connect()
        >>> data = await store.get("mydb-<generation>/000000000000")
    """

    def __init__(self, config: Any, max_keys: Optional[int] = None) -> None:
        """Initialize the S3 store.

        Args:
            config: S3Config instance
            max_keys: Default page size for listings (S3 caps it at 1000)

        Raises:
            ImportError: If aiobotocore is not installed
        """
        if not S3_AVAILABLE:
            raise ImportError(
                "aiobotocore is required for the S3 backend. Install with: pip install aiobotocore"
            )

        self.config = config
        self.max_keys = max_keys
        self._session = None
        self._client = None
        self._client_ctx = None

    @property
    def bucket(self) -> str:
        return self.config.bucket

    @property
    def is_connected(self) -> bool:
        """Whether the S3 client is open."""
        return self._client is not None

    async def connect(self) -> None:
        """Create the S3 client.

        Raises:
            StorageTransportError: If the client cannot be created
        """
        if self._client is not None:
            return

        self._session = get_session()

        client_kwargs = {
            "region_name": self.config.region,
        }

        if self.config.endpoint_url:
            client_kwargs["endpoint_url"] = self.config.endpoint_url

        if self.config.access_key_id and self.config.secret_access_key:
            client_kwargs["aws_access_key_id"] = self.config.access_key_id
            client_kwargs["aws_secret_access_key"] = self.config.secret_access_key

        try:
            self._client_ctx = self._session.create_client("s3", **client_kwargs)
            self._client = await self._client_ctx.__aenter__()
        except BotoCoreError as e:
            self._client_ctx = None
            raise StorageTransportError(f"Failed to create S3 client: {e}", "connect") from e

        logger.info(
            "Connected to object store",
            extra={
                "bucket": self.config.bucket,
                "endpoint": self.config.endpoint_url or "AWS",
            },
        )

    async def close(self) -> None:
        """Close the S3 client."""
        if self._client is not None:
            await self._client_ctx.__aexit__(None, None, None)
            self._client = None
            self._client_ctx = None

    def _require_client(self):
        if self._client is None:
            raise StorageTransportError("Not connected to object store")
        return self._client

    def _translate_error(self, e: Exception, operation: str, key: str) -> Exception:
        if isinstance(e, ClientError):
            error_code = e.response.get("Error", {}).get("Code", "")
            if error_code in _NOT_FOUND_CODES:
                return ObjectNotFoundError(key)
        return StorageTransportError(f"S3 {operation} failed for {key!r}: {e}", operation)

    async def put(self, key: str, data: bytes) -> None:
        client = self._require_client()
        try:
            await client.put_object(Bucket=self.config.bucket, Key=key, Body=data)
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, "put", key) from e

    async def get(self, key: str) -> bytes:
        client = self._require_client()
        try:
            response = await client.get_object(Bucket=self.config.bucket, Key=key)
            async with response["Body"] as stream:
                return await stream.read()
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, "get", key) from e

    async def head(self, key: str) -> ObjectInfo:
        client = self._require_client()
        try:
            response = await client.head_object(Bucket=self.config.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, "head", key) from e
        return ObjectInfo(
            key=key,
            size=response.get("ContentLength", 0),
            last_modified=response.get("LastModified"),
        )

    async def delete(self, key: str) -> None:
        client = self._require_client()
        try:
            await client.delete_object(Bucket=self.config.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, "delete", key) from e

    async def list_page(
        self,
        prefix: str,
        delimiter: Optional[str] = None,
        marker: Optional[str] = None,
        max_keys: Optional[int] = None,
    ) -> ListPage:
        """List one page with ListObjects.

        S3 only returns NextMarker when a delimiter is given; for plain
        listings the last returned key is the marker of the next page.
        """
        client = self._require_client()
        request: dict[str, Any] = {"Bucket": self.config.bucket, "Prefix": prefix}
        if delimiter:
            request["Delimiter"] = delimiter
        if marker:
            request["Marker"] = marker
        max_keys = max_keys or self.max_keys
        if max_keys:
            request["MaxKeys"] = max_keys

        try:
            response = await client.list_objects(**request)
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, "list", prefix) from e

        objects = [
            ObjectInfo(
                key=obj["Key"],
                size=obj.get("Size", 0),
                last_modified=obj.get("LastModified"),
            )
            for obj in response.get("Contents", [])
        ]
        prefixes = [p["Prefix"] for p in response.get("CommonPrefixes", []) if "Prefix" in p]

        next_marker = None
        if response.get("IsTruncated"):
            next_marker = response.get("NextMarker")
            if not next_marker:
                candidates = [o.key for o in objects[-1:]] + prefixes[-1:]
                next_marker = max(candidates) if candidates else None

        return ListPage(objects=objects, common_prefixes=prefixes, next_marker=next_marker)
