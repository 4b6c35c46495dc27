"""S3-compatible registry backend."""

from __future__ import annotations

import logging
import os
from typing import Any, BinaryIO, Iterator, Optional

import boto3
from botocore.exceptions import ClientError

from foundry.lib.errors import RegistryError
from foundry.lib.registry.base import Registry

logger = logging.getLogger(__name__)

__all__ = ["S3Registry"]

_MISSING_CODES = {"404", "NoSuchKey", "NotFound"}


class S3Registry(Registry):
    """Registry backed by an S3 bucket, using boto3.

    Supports AWS S3, MinIO, and any S3-compatible object storage.

    Example:
        >>> registry = S3Registry("modules-bucket", prefix="registry", region="eu-central-1")
        >>> registry.get_module("acme", "vpc", "aws", "1.0.0").download_url
        's3::https://s3-eu-central-1.amazonaws.com/modules-bucket/registry/namespace=acme/...'

    Environment Variables:
        AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY: Credentials (boto3 chain)
        AWS_REGION: Bucket region when not passed explicitly
        AWS_ENDPOINT_URL: Custom S3 endpoint (for MinIO, LocalStack, etc.)
    """

    def __init__(
        self,
        bucket: str,
        *,
        prefix: Optional[str] = None,
        region: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        client: Any = None,
    ) -> None:
        super().__init__(prefix)
        if not bucket:
            raise ValueError("bucket is required for the S3 registry")

        self.bucket = bucket
        self._region = region or os.environ.get("AWS_REGION")
        endpoint_url = endpoint_url or os.environ.get("AWS_ENDPOINT_URL")

        if client is None:
            client = boto3.client("s3", region_name=self._region, endpoint_url=endpoint_url)
            logger.debug(
                "Created S3 client for bucket '%s' with endpoint: %s",
                bucket,
                endpoint_url or "default",
            )
        self.client = client

    @property
    def scheme(self) -> str:
        return "s3"

    @property
    def region(self) -> str:
        """Bucket region, looked up from the bucket when not configured."""
        if not self._region:
            try:
                response = self.client.get_bucket_location(Bucket=self.bucket)
            except ClientError as e:
                raise RegistryError(
                    f"failed to determine region of bucket {self.bucket}: {e}",
                    suggestion="Configure the bucket region explicitly.",
                ) from e
            # us-east-1 buckets report no location constraint
            self._region = response.get("LocationConstraint") or "us-east-1"
            logger.debug("Resolved region of bucket '%s': %s", self.bucket, self._region)
        return self._region

    def download_url(self, key: str) -> str:
        return f"s3::https://s3-{self.region}.amazonaws.com/{self.bucket}/{key}"

    def _exists(self, key: str) -> bool:
        try:
            self.client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            code = str(e.response.get("Error", {}).get("Code", ""))
            if code in _MISSING_CODES:
                return False
            raise RegistryError(
                f"failed to check s3://{self.bucket}/{key}: {e}",
                key=key,
            ) from e
        return True

    def _iter_keys(self, prefix: str) -> Iterator[str]:
        paginator = self.client.get_paginator("list_objects_v2")
        try:
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
                for obj in page.get("Contents", []):
                    yield obj["Key"]
        except ClientError as e:
            raise RegistryError(
                f"failed to list s3://{self.bucket}/{prefix}: {e}",
                key=prefix,
            ) from e

    def _put(self, key: str, content: BinaryIO) -> None:
        self.client.upload_fileobj(content, self.bucket, key)
        logger.info("Uploaded s3://%s/%s", self.bucket, key)

    def __repr__(self) -> str:
        return f"S3Registry(bucket={self.bucket!r}, prefix={self.prefix!r})"
