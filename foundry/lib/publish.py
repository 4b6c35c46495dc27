"""Discover module descriptors and publish them to a registry.

Each descriptor found is taken through::

    parse -> version policy -> existence check -> archive -> upload

strictly one at a time, in walk order. Filtered-out modules, and already
published modules when ``ignore_existing`` is set, are logged and skipped;
every other error stops the run and propagates to the caller. Archives
uploaded before a failure stay in the registry.
"""

from __future__ import annotations

import logging
import os
import threading
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Iterator, List, Optional, Union

from foundry.lib.archive import archive_module
from foundry.lib.constraints import VersionPolicy
from foundry.lib.errors import (
    AlreadyExistsError,
    ArchiveError,
    ArchiveSourceNotFound,
    NotFoundError,
    PublishCancelled,
    RegistryError,
    SourceNotFoundError,
)
from foundry.lib.registry import Module, Registry, get_registry
from foundry.lib.spec import SPEC_FILE_NAME, ModuleSpec, parse_spec_file

if TYPE_CHECKING:
    from foundry.lib.config import UploadSettings

logger = logging.getLogger(__name__)

__all__ = [
    "ModuleResult",
    "PublishOutcome",
    "PublishReport",
    "Publisher",
]


class PublishOutcome(Enum):
    """Terminal state of one descriptor in a publish run."""

    UPLOADED = "uploaded"
    SKIPPED_FILTERED_OUT = "skipped_filtered_out"
    SKIPPED_ALREADY_EXISTS = "skipped_already_exists"
    REJECTED_ALREADY_EXISTS = "rejected_already_exists"
    FAILED = "failed"

    @property
    def is_skip(self) -> bool:
        return self in (PublishOutcome.SKIPPED_FILTERED_OUT, PublishOutcome.SKIPPED_ALREADY_EXISTS)


@dataclass
class ModuleResult:
    """What happened to a single descriptor."""

    spec_path: Path
    outcome: PublishOutcome
    spec: Optional[ModuleSpec] = None
    module: Optional[Module] = None
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "spec_path": str(self.spec_path),
            "outcome": self.outcome.value,
            "module": self.spec.display_name if self.spec else None,
            "download_url": self.module.download_url if self.module else None,
            "reason": self.reason,
        }


@dataclass
class PublishReport:
    """Results of a publish run, in processing order."""

    results: List[ModuleResult] = field(default_factory=list)

    @property
    def uploaded(self) -> List[ModuleResult]:
        return [r for r in self.results if r.outcome is PublishOutcome.UPLOADED]

    @property
    def skipped(self) -> List[ModuleResult]:
        return [r for r in self.results if r.outcome.is_skip]

    def counts(self) -> Dict[str, int]:
        counter = Counter(r.outcome.value for r in self.results)
        return {outcome.value: counter.get(outcome.value, 0) for outcome in PublishOutcome}


class Publisher:
    """Publishes every module found below a root directory.

    Example:
        >>> publisher = Publisher(LocalRegistry("./registry"), VersionPolicy(">=1.0.0"))
        >>> report = publisher.publish("./modules")
        >>> [r.spec.version for r in report.uploaded]
        ['1.0.0']
    """

    def __init__(
        self,
        registry: Registry,
        policy: Optional[VersionPolicy] = None,
        *,
        ignore_existing: bool = True,
        recursive: bool = True,
        spec_file_name: str = SPEC_FILE_NAME,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        self.registry = registry
        self.policy = policy or VersionPolicy()
        self.ignore_existing = ignore_existing
        self.recursive = recursive
        self.spec_file_name = spec_file_name
        self.cancel_event = cancel_event

    @classmethod
    def from_settings(
        cls,
        settings: "UploadSettings",
        registry: Optional[Registry] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> "Publisher":
        """Build a publisher from settings.

        The version policy is parsed before the backend is created, so a
        malformed constraint fails without touching the registry.

        Raises:
            ConstraintParseError: If a version constraint is malformed
            ConfigurationError: If the registry backend is misconfigured
        """
        policy = VersionPolicy(
            semver_constraint=settings.version_constraints_semver,
            regex_constraint=settings.version_constraints_regex,
        )
        return cls(
            registry if registry is not None else get_registry(settings),
            policy,
            ignore_existing=settings.ignore_existing,
            recursive=settings.recursive,
            spec_file_name=settings.spec_file_name,
            cancel_event=cancel_event,
        )

    # Discovery

    def iter_spec_files(self, root: Union[str, Path]) -> Iterator[Path]:
        """Yield descriptor paths below ``root`` in walk order.

        Non-recursive mode yields ``root/<spec_file_name>``, or ``root``
        itself when it is a file.

        Raises:
            SourceNotFoundError: If ``root`` does not exist
        """
        root = Path(root)
        if not root.exists():
            raise SourceNotFoundError("directory to publish does not exist", path=str(root))

        if root.is_file():
            yield root
            return

        if not self.recursive:
            yield root / self.spec_file_name
            return

        def _walk_error(error: OSError) -> None:
            raise RegistryError(
                f"failed to walk {error.filename}: {error.strerror}",
                details={"root": str(root)},
            ) from error

        for dirpath, dirnames, filenames in os.walk(root, onerror=_walk_error):
            dirnames.sort()
            if self.spec_file_name in filenames:
                path = Path(dirpath) / self.spec_file_name
                if path.is_file():
                    yield path

    def discover(self, root: Union[str, Path]) -> List[Path]:
        return list(self.iter_spec_files(root))

    # Publishing

    def _check_cancelled(self, stage: str, spec: Optional[ModuleSpec] = None) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise PublishCancelled(
                f"publish run cancelled before {stage}",
                module=spec.display_name if spec else None,
            )

    def _existing(
        self,
        path: Path,
        spec: ModuleSpec,
        module: Optional[Module],
        key: str,
    ) -> ModuleResult:
        download_url = module.download_url if module else None

        if self.ignore_existing:
            logger.info(
                "Module %s already exists, skipped",
                spec.display_name,
                extra={
                    "registry_module": spec.display_name,
                    "key": key,
                    "download_url": download_url,
                    "outcome": PublishOutcome.SKIPPED_ALREADY_EXISTS.value,
                },
            )
            return ModuleResult(
                spec_path=path,
                outcome=PublishOutcome.SKIPPED_ALREADY_EXISTS,
                spec=spec,
                module=module,
                reason="already exists",
            )

        logger.error(
            "Module %s already exists",
            spec.display_name,
            extra={"registry_module": spec.display_name, "key": key, "download_url": download_url},
        )
        raise AlreadyExistsError(
            "module already exists",
            module=spec.display_name,
            key=key,
            details={"download_url": download_url} if download_url else None,
        )

    def publish_spec(self, path: Union[str, Path]) -> ModuleResult:
        """Take one descriptor through the publish pipeline.

        Returns:
            ModuleResult with outcome UPLOADED or one of the SKIPPED outcomes

        Raises:
            AlreadyExistsError: If the module exists and ignore_existing is off
            RegistryError: Any parse, constraint, archive or upload failure
        """
        path = Path(path)

        self._check_cancelled("parse")
        spec = parse_spec_file(path)

        decision = self.policy.allows(spec)
        if not decision:
            logger.info(
                "Module %s doesn't meet %s version constraints, skipped",
                spec.display_name,
                decision.rejected_by,
                extra={
                    "registry_module": spec.display_name,
                    "outcome": PublishOutcome.SKIPPED_FILTERED_OUT.value,
                },
            )
            return ModuleResult(
                spec_path=path,
                outcome=PublishOutcome.SKIPPED_FILTERED_OUT,
                spec=spec,
                reason=f"{decision.rejected_by} constraint",
            )

        key = self.registry.module_key(*spec.identity)

        self._check_cancelled("existence check", spec)
        try:
            existing = self.registry.get_module(*spec.identity)
        except NotFoundError:
            pass
        else:
            return self._existing(path, spec, existing, key)

        self._check_cancelled("archive", spec)
        try:
            archive = archive_module(path.parent)
        except ArchiveError as e:
            error_cls = ArchiveSourceNotFound if isinstance(e, ArchiveSourceNotFound) else ArchiveError
            raise error_cls(e.message, module=spec.display_name, path=e.path, cause=e.cause) from e

        self._check_cancelled("upload", spec)
        try:
            module = self.registry.upload_module(*spec.identity, archive)
        except AlreadyExistsError:
            # Another writer published this identity after our check
            return self._existing(path, spec, None, key)

        logger.info(
            "Module %s successfully uploaded",
            spec.display_name,
            extra={
                "registry_module": spec.display_name,
                "key": module.key,
                "download_url": module.download_url,
                "outcome": PublishOutcome.UPLOADED.value,
            },
        )
        return ModuleResult(
            spec_path=path,
            outcome=PublishOutcome.UPLOADED,
            spec=spec,
            module=module,
        )

    def publish(
        self,
        root: Union[str, Path],
        report: Optional[PublishReport] = None,
    ) -> PublishReport:
        """Publish every module below ``root``.

        Args:
            root: Directory to search (or a single descriptor file)
            report: Report to append results to; pass one in to keep the
                partial results of a run that raises

        Raises:
            RegistryError: On the first module that fails; modules uploaded
                before it are not rolled back
        """
        report = report if report is not None else PublishReport()
        for path in self.iter_spec_files(root):
            try:
                result = self.publish_spec(path)
            except RegistryError as e:
                outcome = (
                    PublishOutcome.REJECTED_ALREADY_EXISTS
                    if isinstance(e, AlreadyExistsError)
                    else PublishOutcome.FAILED
                )
                report.results.append(
                    ModuleResult(spec_path=path, outcome=outcome, reason=e.message)
                )
                logger.error(
                    "Publishing %s failed: %s",
                    path,
                    e.message,
                    extra={
                        "registry_module": e.module,
                        "key": e.key,
                        "spec_path": str(path),
                        "outcome": outcome.value,
                        "error": e.to_dict(),
                    },
                )
                raise
            report.results.append(result)

        logger.info(
            "Publish run finished: %d uploaded, %d skipped",
            len(report.uploaded),
            len(report.skipped),
        )
        return report
