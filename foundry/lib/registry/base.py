"""Abstract base class for registry backends.

A registry stores immutable module archives in an object store. The object
key is the only index: a module exists exactly when its archive object
exists, so there is no metadata to drift out of sync.

Subclasses supply three storage primitives (``_exists``, ``_iter_keys`` and
``_put``) plus the download locator format; the addressing scheme and the
upload protocol live here and are identical for every backend.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, BinaryIO, Dict, Iterator, List, Optional

from foundry.lib.errors import (
    AlreadyExistsError,
    IntegrityError,
    NotFoundError,
    UploadFailedError,
    ValidationError,
)
from foundry.lib.keys import (
    ARCHIVE_SUFFIX,
    module_key,
    module_prefix,
    parse_version_from_key,
)

logger = logging.getLogger(__name__)

__all__ = ["Module", "Registry"]


@dataclass(frozen=True)
class Module:
    """A module archive stored in a registry."""

    namespace: str
    name: str
    provider: str
    version: str
    download_url: str
    key: str

    @property
    def display_name(self) -> str:
        return f"{self.namespace}/{self.name}/{self.provider}@{self.version}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "namespace": self.namespace,
            "name": self.name,
            "provider": self.provider,
            "version": self.version,
            "download_url": self.download_url,
            "key": self.key,
        }


class Registry(ABC):
    """Backend-agnostic module registry.

    Archives are write-once: ``upload_module`` refuses to replace an
    existing archive. The existence probe and the write are separate calls,
    so two publishers racing on the same identity can both pass the probe;
    the later write then replaces the earlier one. No backend-native
    conditional write is assumed.
    """

    def __init__(self, prefix: Optional[str] = None) -> None:
        self.prefix = (prefix or "").strip("/")

    @property
    @abstractmethod
    def scheme(self) -> str:
        """Return the backend identifier (e.g., 's3', 'gcs', 'local')."""

    @abstractmethod
    def download_url(self, key: str) -> str:
        """Locator a compatible client can fetch the archive at ``key`` from."""

    @abstractmethod
    def _exists(self, key: str) -> bool:
        """Return True if an object is stored under ``key``."""

    @abstractmethod
    def _iter_keys(self, prefix: str) -> Iterator[str]:
        """Yield every object key starting with ``prefix``, across all pages."""

    @abstractmethod
    def _put(self, key: str, content: BinaryIO) -> None:
        """Stream ``content`` to ``key``; raise on any failure."""

    def module_key(self, namespace: str, name: str, provider: str, version: str) -> str:
        return module_key(namespace, name, provider, version, prefix=self.prefix)

    def _module_from_key(
        self,
        key: str,
        namespace: str,
        name: str,
        provider: str,
    ) -> Module:
        return Module(
            namespace=namespace,
            name=name,
            provider=provider,
            version=parse_version_from_key(key),
            download_url=self.download_url(key),
            key=key,
        )

    def get_module(self, namespace: str, name: str, provider: str, version: str) -> Module:
        """Resolve the stored archive for an exact module identity.

        Raises:
            NotFoundError: If no archive is stored for the identity
            IntegrityError: If the version decoded from the stored key does
                not match ``version``
        """
        key = self.module_key(namespace, name, provider, version)
        display = f"{namespace}/{name}/{provider}@{version}"

        if not self._exists(key):
            raise NotFoundError("module not found", module=display, key=key)

        module = self._module_from_key(key, namespace, name, provider)
        if module.version != version:
            raise IntegrityError(
                "stored key does not encode the requested version",
                module=display,
                key=key,
                expected=version,
                actual=module.version,
            )
        return module

    def list_module_versions(self, namespace: str, name: str, provider: str) -> List[Module]:
        """List every stored version of a module, in backend order.

        Raises:
            KeyDecodeError: If an archive below the module prefix has a key
                that does not follow the registry layout
        """
        prefix = module_prefix(namespace, name, provider, prefix=self.prefix)
        modules = [
            self._module_from_key(key, namespace, name, provider)
            for key in self._iter_keys(prefix)
            if key.endswith(ARCHIVE_SUFFIX)
        ]
        logger.debug("Listed %d versions under %s", len(modules), prefix)
        return modules

    def upload_module(
        self,
        namespace: str,
        name: str,
        provider: str,
        version: str,
        content: BinaryIO,
    ) -> Module:
        """Store a module archive under its canonical key.

        Raises:
            ValidationError: If an identity field is empty (no backend call
                is made)
            AlreadyExistsError: If an archive already exists for the identity
            UploadFailedError: If the backend write fails
        """
        identity = {
            "namespace": namespace,
            "name": name,
            "provider": provider,
            "version": version,
        }
        for field_name, value in identity.items():
            if not value:
                raise ValidationError(f"{field_name} not defined", field=field_name)

        key = self.module_key(namespace, name, provider, version)
        display = f"{namespace}/{name}/{provider}@{version}"

        try:
            existing = self.get_module(namespace, name, provider, version)
        except NotFoundError:
            pass
        else:
            raise AlreadyExistsError(
                "module already exists",
                module=display,
                key=key,
                details={"download_url": existing.download_url},
            )

        try:
            self._put(key, content)
        except Exception as e:
            raise UploadFailedError(
                f"failed to upload module: {e}",
                module=display,
                key=key,
                cause=e,
            ) from e

        logger.debug("Wrote %s://%s", self.scheme, key)
        return self.get_module(namespace, name, provider, version)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(prefix={self.prefix!r})"
