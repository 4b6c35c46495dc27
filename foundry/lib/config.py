"""Upload configuration.

Settings come from, in increasing priority: a ``.env`` file, environment
variables prefixed with ``MODULE_REGISTRY_``, an optional YAML config file,
and explicit overrides (typically command-line flags).

Example YAML (registry.yaml):
    type: s3
    s3_bucket: acme-modules
    s3_prefix: registry
    s3_region: eu-central-1
    version_constraints_semver: ">=1.0.0, <2.0.0"
    ignore_existing: true
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import Field, ValidationError as PydanticValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from foundry.lib.errors import ConfigurationError
from foundry.lib.spec import SPEC_FILE_NAME

logger = logging.getLogger(__name__)

__all__ = ["REGISTRY_TYPES", "UploadSettings", "load_settings"]

REGISTRY_TYPES = ("s3", "gcs", "local")


class UploadSettings(BaseSettings):
    """Environment-based upload settings using pydantic-settings.

    Example:
        >>> # MODULE_REGISTRY_TYPE=s3
        >>> # MODULE_REGISTRY_S3_BUCKET=acme-modules
        >>> settings = UploadSettings()
        >>> settings.s3_bucket
        'acme-modules'
    """

    type: Optional[str] = Field(default=None, description="Registry backend: s3, gcs or local")

    s3_bucket: Optional[str] = Field(default=None, description="Bucket for the S3 registry")
    s3_prefix: str = Field(default="", description="Key prefix for the S3 registry")
    s3_region: Optional[str] = Field(default=None, description="Region of the S3 bucket")
    s3_endpoint_url: Optional[str] = Field(default=None, description="Custom S3 endpoint (MinIO, LocalStack)")

    gcs_bucket: Optional[str] = Field(default=None, description="Bucket for the GCS registry")
    gcs_prefix: str = Field(default="", description="Key prefix for the GCS registry")
    gcs_project: Optional[str] = Field(default=None, description="Project owning the GCS bucket")

    local_path: Optional[str] = Field(default=None, description="Directory for the local registry")

    version_constraints_semver: Optional[str] = Field(
        default=None, description="Semantic version range eligible for upload"
    )
    version_constraints_regex: Optional[str] = Field(
        default=None, description="Regex a version must match to be uploaded"
    )
    recursive: bool = Field(default=True, description="Walk the root directory for descriptors")
    ignore_existing: bool = Field(
        default=True, description="Skip modules already published instead of failing"
    )
    spec_file_name: str = Field(default=SPEC_FILE_NAME, min_length=1, description="Descriptor file name")

    model_config = SettingsConfigDict(
        env_prefix="MODULE_REGISTRY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("type")
    @classmethod
    def validate_type(cls, v: Optional[str]) -> Optional[str]:
        """Validate type is a supported backend."""
        if v is None or not v.strip():
            return None
        v = v.strip().lower()
        if v not in REGISTRY_TYPES:
            raise ValueError(f"type must be one of: {list(REGISTRY_TYPES)}")
        return v

    @field_validator("version_constraints_semver", "version_constraints_regex")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigurationError(f"cannot read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"invalid YAML in config file {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"config file {path} must contain a mapping, got {type(data).__name__}"
        )
    return data


def load_settings(
    path: Optional[Union[str, Path]] = None,
    **overrides: Any,
) -> UploadSettings:
    """Build UploadSettings from the environment, a YAML file and overrides.

    Overrides whose value is None are ignored, so unset command-line flags
    do not mask file or environment values.

    Raises:
        ConfigurationError: If the file cannot be read or a value is invalid
    """
    values: Dict[str, Any] = {}
    if path is not None:
        values.update(_read_yaml(Path(path)))
        logger.debug("Loaded upload settings from %s", path)

    values.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return UploadSettings(**values)
    except PydanticValidationError as e:
        issues = [
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
            for err in e.errors()
        ]
        raise ConfigurationError("invalid upload settings", issues=issues) from e
