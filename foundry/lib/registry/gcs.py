"""Google Cloud Storage registry backend."""

from __future__ import annotations

import logging
import os
from typing import Any, BinaryIO, Iterator, Optional

from google.api_core.exceptions import GoogleAPIError
from google.cloud import storage

from foundry.lib.errors import ConfigurationError, RegistryError
from foundry.lib.registry.base import Registry

logger = logging.getLogger(__name__)

__all__ = ["GCSRegistry"]


class GCSRegistry(Registry):
    """Registry backed by a GCS bucket, using google-cloud-storage.

    Credentials come from Application Default Credentials; the project must
    be supplied explicitly or through ``GOOGLE_CLOUD_PROJECT``.

    Environment Variables:
        GOOGLE_CLOUD_PROJECT: Project owning the bucket
        GOOGLE_APPLICATION_CREDENTIALS: Service account key file (optional)
    """

    def __init__(
        self,
        bucket: str,
        *,
        prefix: Optional[str] = None,
        project: Optional[str] = None,
        client: Any = None,
    ) -> None:
        super().__init__(prefix)
        if not bucket:
            raise ValueError("bucket is required for the GCS registry")
        self.bucket = bucket

        if client is None:
            project = project or os.environ.get("GOOGLE_CLOUD_PROJECT")
            if not project:
                raise ConfigurationError(
                    "GCS registry requires a project",
                    field="gcs_project",
                    suggestion="Set GOOGLE_CLOUD_PROJECT or pass --gcs-project.",
                )
            client = storage.Client(project=project)
            logger.debug("Created GCS client for bucket '%s' in project %s", bucket, project)
        self.client = client
        self._bucket = client.bucket(bucket)

    @property
    def scheme(self) -> str:
        return "gcs"

    def download_url(self, key: str) -> str:
        return f"gcs::https://www.googleapis.com/storage/v1/{self.bucket}/{key}"

    def _exists(self, key: str) -> bool:
        try:
            return self._bucket.get_blob(key) is not None
        except GoogleAPIError as e:
            raise RegistryError(
                f"failed to check gs://{self.bucket}/{key}: {e}",
                key=key,
            ) from e

    def _iter_keys(self, prefix: str) -> Iterator[str]:
        try:
            for blob in self.client.list_blobs(self.bucket, prefix=prefix):
                yield blob.name
        except GoogleAPIError as e:
            raise RegistryError(
                f"failed to list gs://{self.bucket}/{prefix}: {e}",
                key=prefix,
            ) from e

    def _put(self, key: str, content: BinaryIO) -> None:
        self._bucket.blob(key).upload_from_file(content)
        logger.info("Uploaded gs://%s/%s", self.bucket, key)

    def __repr__(self) -> str:
        return f"GCSRegistry(bucket={self.bucket!r}, prefix={self.prefix!r})"
