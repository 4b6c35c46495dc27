"""Registry library modules.

This package contains the registry storage abstraction and the
discovery-and-publish pipeline that feeds it.
"""

from foundry.lib.archive import ArchiveStats, archive_module, write_archive
from foundry.lib.config import UploadSettings, load_settings
from foundry.lib.constraints import PolicyDecision, VersionConstraint, VersionPolicy
from foundry.lib.errors import (
    AlreadyExistsError,
    ArchiveError,
    ArchiveSourceNotFound,
    ConfigurationError,
    ConstraintParseError,
    IntegrityError,
    KeyDecodeError,
    NotFoundError,
    PublishCancelled,
    RegistryError,
    SourceNotFoundError,
    SpecParseError,
    UploadFailedError,
    ValidationError,
)
from foundry.lib.keys import module_key, module_prefix, parse_version_from_key
from foundry.lib.publish import ModuleResult, PublishOutcome, PublishReport, Publisher
from foundry.lib.registry import (
    GCSRegistry,
    LocalRegistry,
    Module,
    Registry,
    S3Registry,
    get_registry,
)
from foundry.lib.spec import ModuleSpec, parse_spec, parse_spec_file

__all__ = [
    # Archive
    "ArchiveStats",
    "archive_module",
    "write_archive",
    # Config
    "UploadSettings",
    "load_settings",
    # Constraints
    "PolicyDecision",
    "VersionConstraint",
    "VersionPolicy",
    # Errors
    "AlreadyExistsError",
    "ArchiveError",
    "ArchiveSourceNotFound",
    "ConfigurationError",
    "ConstraintParseError",
    "IntegrityError",
    "KeyDecodeError",
    "NotFoundError",
    "PublishCancelled",
    "RegistryError",
    "SourceNotFoundError",
    "SpecParseError",
    "UploadFailedError",
    "ValidationError",
    # Keys
    "module_key",
    "module_prefix",
    "parse_version_from_key",
    # Publish
    "ModuleResult",
    "PublishOutcome",
    "PublishReport",
    "Publisher",
    # Registry
    "GCSRegistry",
    "LocalRegistry",
    "Module",
    "Registry",
    "S3Registry",
    "get_registry",
    # Spec
    "ModuleSpec",
    "parse_spec",
    "parse_spec_file",
]
