"""Publishing side of a module registry.

Discovers versioned modules on disk, filters them by version policy,
archives them and stores them in an object-storage backend.
"""

from foundry.lib import (
    GCSRegistry,
    LocalRegistry,
    Module,
    ModuleSpec,
    Publisher,
    PublishOutcome,
    PublishReport,
    Registry,
    RegistryError,
    S3Registry,
    VersionPolicy,
    get_registry,
    load_settings,
)

__version__ = "1.0.0"

__all__ = [
    "GCSRegistry",
    "LocalRegistry",
    "Module",
    "ModuleSpec",
    "Publisher",
    "PublishOutcome",
    "PublishReport",
    "Registry",
    "RegistryError",
    "S3Registry",
    "VersionPolicy",
    "get_registry",
    "load_settings",
]
