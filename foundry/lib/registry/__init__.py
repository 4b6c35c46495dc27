"""Registry backends.

Usage:
    from foundry.lib.registry import get_registry

    registry = get_registry(settings)
    registry.upload_module("acme", "vpc", "aws", "1.0.0", archive)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from foundry.lib.errors import ConfigurationError
from foundry.lib.registry.base import Module, Registry
from foundry.lib.registry.gcs import GCSRegistry
from foundry.lib.registry.local import LocalRegistry
from foundry.lib.registry.s3 import S3Registry

if TYPE_CHECKING:
    from foundry.lib.config import UploadSettings

__all__ = [
    "GCSRegistry",
    "LocalRegistry",
    "Module",
    "Registry",
    "S3Registry",
    "get_registry",
]


def get_registry(settings: "UploadSettings") -> Registry:
    """Create the registry backend selected by ``settings.type``.

    Raises:
        ConfigurationError: If no backend is selected or its required
            settings are missing
    """
    if settings.type == "s3":
        if not settings.s3_bucket:
            raise ConfigurationError("missing setting s3_bucket", field="s3_bucket")
        return S3Registry(
            settings.s3_bucket,
            prefix=settings.s3_prefix,
            region=settings.s3_region,
            endpoint_url=settings.s3_endpoint_url,
        )

    if settings.type == "gcs":
        if not settings.gcs_bucket:
            raise ConfigurationError("missing setting gcs_bucket", field="gcs_bucket")
        return GCSRegistry(
            settings.gcs_bucket,
            prefix=settings.gcs_prefix,
            project=settings.gcs_project,
        )

    if settings.type == "local":
        if not settings.local_path:
            raise ConfigurationError("missing setting local_path", field="local_path")
        return LocalRegistry(settings.local_path)

    raise ConfigurationError(
        "registry type not set",
        field="type",
        suggestion="Choose one of: s3, gcs, local.",
    )
